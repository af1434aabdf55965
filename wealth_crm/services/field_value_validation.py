"""
Validation and typing of custom field values.

``validate_field_value`` turns a raw JSON value into the single typed column
it must be stored in, or raises ValidationError. ``read_field_value`` is the
inverse used by the read paths.
"""

import math
import re
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from wealth_crm.core.exceptions import ValidationError
from wealth_crm.db.enums import (
    DATE_FIELD_TYPES,
    NUMERIC_FIELD_TYPES,
    REFERENCE_FIELD_TYPES,
    TEXT_FIELD_TYPES,
    FieldType,
)


VALUE_COLUMNS = ("text_value", "number_value", "boolean_value", "date_value", "json_value")

_TRUE_STRINGS = {"true", "1", "yes"}
_FALSE_STRINGS = {"false", "0", "no"}


@dataclass(frozen=True)
class TypedValue:
    """Target column and converted value. ``column`` is None for a cleared value."""

    column: str | None
    value: Any = None

    def column_values(self) -> dict[str, Any]:
        """All five typed columns: the target set, the rest cleared."""
        values = {name: None for name in VALUE_COLUMNS}
        if self.column:
            values[self.column] = self.value
        return values


def _is_empty(value: Any) -> bool:
    return value is None or (isinstance(value, str) and value.strip() == "")


def _fail(field, message: str) -> ValidationError:
    custom = (field.options or {}).get("validation_message")
    return ValidationError(custom or f"Field '{field.field_name}': {message}")


def _choice_values(field) -> set[str]:
    choices = (field.options or {}).get("choices") or []
    return {str(choice.get("value")) for choice in choices if isinstance(choice, dict)}


def parse_datetime(value: Any) -> datetime:
    """Parse an ISO-8601 date or datetime. Naive values are taken as UTC."""
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str):
        parsed = datetime.fromisoformat(value.strip())
    else:
        raise ValueError("not a date string")
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _validate_text(field, value: Any) -> TypedValue:
    if isinstance(value, (dict, list, bool)):
        raise _fail(field, "expected text")
    text = str(value)
    options = field.options or {}
    max_length = options.get("max_length")
    if max_length and len(text) > max_length:
        raise _fail(field, f"must be at most {max_length} characters")
    pattern = options.get("pattern")
    if pattern:
        try:
            matched = re.fullmatch(pattern, text)
        except re.error:
            matched = None
        if not matched:
            raise _fail(field, "does not match the required format")
    return TypedValue("text_value", text)


def _validate_number(field, value: Any) -> TypedValue:
    if isinstance(value, bool):
        raise _fail(field, "must be a number")
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise _fail(field, "must be a number")
    if math.isnan(number) or math.isinf(number):
        raise _fail(field, "must be a finite number")

    options = field.options or {}
    minimum = options.get("min")
    maximum = options.get("max")
    if minimum is not None and number < minimum:
        raise _fail(field, f"must be at least {minimum}")
    if maximum is not None and number > maximum:
        raise _fail(field, f"must be at most {maximum}")
    precision = options.get("precision")
    if precision is not None:
        number = round(number, precision)
    return TypedValue("number_value", number)


def _validate_boolean(field, value: Any) -> TypedValue:
    if isinstance(value, bool):
        return TypedValue("boolean_value", value)
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in _TRUE_STRINGS:
            return TypedValue("boolean_value", True)
        if lowered in _FALSE_STRINGS:
            return TypedValue("boolean_value", False)
    if isinstance(value, int) and value in (0, 1):
        return TypedValue("boolean_value", bool(value))
    raise _fail(field, "must be true or false")


def _validate_date(field, value: Any) -> TypedValue:
    try:
        parsed = parse_datetime(value)
    except (TypeError, ValueError):
        raise _fail(field, "must be a valid ISO-8601 date")

    options = field.options or {}
    for key, check, message in (
        ("min_date", lambda bound: parsed < bound, "must not be before"),
        ("max_date", lambda bound: parsed > bound, "must not be after"),
    ):
        raw_bound = options.get(key)
        if not raw_bound:
            continue
        try:
            bound = parse_datetime(raw_bound)
        except ValueError:
            continue
        if check(bound):
            raise _fail(field, f"{message} {raw_bound}")
    return TypedValue("date_value", parsed)


def _validate_select(field, value: Any) -> TypedValue:
    if isinstance(value, (dict, list, bool)) or str(value) not in _choice_values(field):
        raise _fail(field, f"invalid option '{value}'")
    return TypedValue("text_value", str(value))


def _validate_multi_select(field, value: Any) -> TypedValue:
    if not isinstance(value, list):
        raise _fail(field, "must be a list of options")
    allowed = _choice_values(field)
    invalid = [item for item in value if isinstance(item, (dict, list)) or str(item) not in allowed]
    if invalid:
        raise _fail(field, f"invalid options {invalid}")
    return TypedValue("json_value", [str(item) for item in value])


def _validate_reference(field, value: Any) -> TypedValue:
    try:
        ref = uuid.UUID(str(value))
    except ValueError:
        raise _fail(field, "must be a valid id")
    return TypedValue("text_value", str(ref))


def validate_field_value(field, value: Any) -> TypedValue:
    """
    Validate ``value`` against the field definition and pick its column.

    Raises:
        ValidationError: required value missing, wrong type, out of range,
            or not one of the field's choices
    """
    if _is_empty(value):
        if field.is_required:
            raise _fail(field, "is required")
        return TypedValue(None)

    field_type = FieldType(field.field_type).value
    if field_type in TEXT_FIELD_TYPES:
        return _validate_text(field, value)
    if field_type in NUMERIC_FIELD_TYPES:
        return _validate_number(field, value)
    if field_type == FieldType.BOOLEAN.value:
        return _validate_boolean(field, value)
    if field_type in DATE_FIELD_TYPES:
        return _validate_date(field, value)
    if field_type == FieldType.SELECT.value:
        return _validate_select(field, value)
    if field_type == FieldType.MULTI_SELECT.value:
        return _validate_multi_select(field, value)
    if field_type in REFERENCE_FIELD_TYPES:
        return _validate_reference(field, value)
    return TypedValue("json_value", value)


def read_field_value(row, field_type: str | None = None) -> Any:
    """Return the populated typed column of a value row, JSON-ready."""
    if row.text_value is not None:
        return row.text_value
    if row.number_value is not None:
        return row.number_value
    if row.boolean_value is not None:
        return row.boolean_value
    if row.date_value is not None:
        if field_type == FieldType.DATE.value:
            return row.date_value.date().isoformat()
        return row.date_value.isoformat()
    return row.json_value
