"""Pydantic schemas for Custom Fields."""

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, Field, field_validator

from wealth_crm.db.enums import EntityTarget, FieldType
from wealth_crm.schemas.common import reject_null


# =============================================================================
# Custom Field Definition Schemas
# =============================================================================


class FieldChoice(BaseModel):
    """One option of a select / multi-select field."""

    value: str = Field(min_length=1, max_length=100)
    label: str = Field(min_length=1, max_length=255)
    color: str | None = None


class FieldOptions(BaseModel):
    """Type-specific settings for a custom field."""

    choices: list[FieldChoice] | None = None
    min: float | None = None
    max: float | None = None
    precision: int | None = Field(default=None, ge=0, le=6)
    max_length: int | None = Field(default=None, ge=1)
    pattern: str | None = None
    min_date: str | None = None
    max_date: str | None = None
    validation_message: str | None = None


class CustomFieldBase(BaseModel):
    """Base custom field fields."""

    field_name: str = Field(min_length=1, max_length=100, description="Display label")
    field_key: str = Field(
        min_length=1,
        max_length=100,
        description="Field key, unique per entity target (lowercase, underscores)",
    )
    field_type: FieldType = Field(description="Data type for the field")
    entity_target: EntityTarget = Field(description="Entity kind this field attaches to")
    description: str | None = None
    placeholder: str | None = Field(default=None, max_length=255)
    default_value: str | None = Field(default=None, max_length=255)
    is_required: bool = False
    show_in_list: bool = True
    show_in_detail: bool = True
    is_searchable: bool = False
    is_filterable: bool = False
    display_order: int | None = None
    field_group: str | None = Field(default=None, max_length=100)
    options: FieldOptions | None = None

    model_config = {"use_enum_values": True}

    @field_validator("field_key")
    @classmethod
    def validate_key(cls, v: str) -> str:
        """Normalize key to lowercase with underscores."""
        normalized = v.lower().strip().replace(" ", "_").replace("-", "_")
        if not normalized.replace("_", "").isalnum():
            raise ValueError("Key must contain only letters, numbers, and underscores")
        return normalized


class CustomFieldCreate(CustomFieldBase):
    """Schema for creating a custom field."""

    pass


class CustomFieldUpdate(BaseModel):
    """Schema for updating a custom field. Key, type and target are immutable."""

    field_name: str | None = Field(default=None, min_length=1, max_length=100)
    description: str | None = None
    placeholder: str | None = Field(default=None, max_length=255)
    default_value: str | None = Field(default=None, max_length=255)
    is_required: bool | None = None
    is_active: bool | None = None
    show_in_list: bool | None = None
    show_in_detail: bool | None = None
    is_searchable: bool | None = None
    is_filterable: bool | None = None
    display_order: int | None = None
    field_group: str | None = Field(default=None, max_length=100)
    options: FieldOptions | None = None

    check_not_null = reject_null(
        "field_name",
        "is_required",
        "is_active",
        "show_in_list",
        "show_in_detail",
        "is_searchable",
        "is_filterable",
        "display_order",
        "options",
    )


class CustomFieldRead(BaseModel):
    """Schema for reading a custom field."""

    id: UUID
    field_name: str
    field_key: str
    field_type: str
    entity_target: str
    description: str | None
    placeholder: str | None
    default_value: str | None
    is_required: bool
    is_active: bool
    show_in_list: bool
    show_in_detail: bool
    is_searchable: bool
    is_filterable: bool
    display_order: int
    field_group: str | None
    options: dict
    created_by_user_id: UUID | None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class FieldReorderRequest(BaseModel):
    """New display order: field ids, first to last."""

    field_ids: list[UUID] = Field(min_length=1)


# =============================================================================
# Custom Field Value Schemas
# =============================================================================


class FieldValueInput(BaseModel):
    """One value to write."""

    field_id: UUID
    value: Any = Field(default=None, description="The value to set (type must match field_type)")


class SetFieldValuesRequest(BaseModel):
    """Values for one entity, written atomically."""

    entity_type: EntityTarget
    entity_id: UUID
    values: list[FieldValueInput] = Field(min_length=1)

    model_config = {"use_enum_values": True}


class BulkFieldValuesRequest(BaseModel):
    """Read values for many entities of one type."""

    entity_type: EntityTarget
    entity_ids: list[UUID] = Field(min_length=1, max_length=500)

    model_config = {"use_enum_values": True}
