"""Shared schema helpers."""

from pydantic import field_validator


def reject_null(*fields: str):
    """
    Validator for partial updates: the listed fields may be omitted but not
    sent as ``null``, since their columns are NOT NULL.
    """

    def _check(cls, value):
        if value is None:
            raise ValueError("Field may be omitted but not null")
        return value

    return field_validator(*fields, mode="before")(_check)
