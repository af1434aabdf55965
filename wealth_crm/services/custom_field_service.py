"""Custom field service - definitions and the EAV value write path."""

import logging
from typing import Any
from uuid import UUID

from sqlalchemy import func
from sqlalchemy.orm import Session

from wealth_crm.core.exceptions import ConflictError, NotFoundError, ValidationError
from wealth_crm.db.enums import CHOICE_FIELD_TYPES, NUMERIC_FIELD_TYPES, FieldType
from wealth_crm.db.models import CustomFieldDefinition, CustomFieldValue
from wealth_crm.services.field_value_validation import read_field_value, validate_field_value


logger = logging.getLogger(__name__)


# =============================================================================
# Definitions
# =============================================================================


def validate_field_options(field_type: str, options: dict | None) -> None:
    """Reject option sets that cannot work for the field type."""
    options = options or {}
    if field_type in CHOICE_FIELD_TYPES:
        choices = options.get("choices")
        if not isinstance(choices, list) or not choices:
            raise ValidationError("Select fields require a non-empty choices list")
        values = [choice.get("value") for choice in choices]
        if len(values) != len(set(values)):
            raise ValidationError("Choice values must be unique")
    if field_type in NUMERIC_FIELD_TYPES:
        minimum = options.get("min")
        maximum = options.get("max")
        if minimum is not None and maximum is not None and minimum > maximum:
            raise ValidationError("Minimum value cannot be greater than maximum value")


def _clean_options(options: dict | None) -> dict:
    return {key: value for key, value in (options or {}).items() if value is not None}


def list_custom_fields(
    db: Session,
    entity_target: str | None = None,
    include_inactive: bool = False,
    field_group: str | None = None,
) -> list[CustomFieldDefinition]:
    query = db.query(CustomFieldDefinition)
    if entity_target:
        query = query.filter(CustomFieldDefinition.entity_target == entity_target)
    if not include_inactive:
        query = query.filter(CustomFieldDefinition.is_active.is_(True))
    if field_group:
        query = query.filter(CustomFieldDefinition.field_group == field_group)
    return query.order_by(
        CustomFieldDefinition.entity_target,
        CustomFieldDefinition.display_order,
        CustomFieldDefinition.field_name,
    ).all()


def get_custom_field(db: Session, field_id: UUID) -> CustomFieldDefinition | None:
    return db.get(CustomFieldDefinition, field_id)


def _next_display_order(db: Session, entity_target: str) -> int:
    current = (
        db.query(func.max(CustomFieldDefinition.display_order))
        .filter(CustomFieldDefinition.entity_target == entity_target)
        .scalar()
    )
    return (current or 0) + 1


def create_custom_field(
    db: Session,
    user_id: UUID,
    data: dict[str, Any],
) -> CustomFieldDefinition:
    """
    Create a custom field definition.

    Raises:
        ConflictError: field_key already used for this entity target
        ValidationError: options unusable for the field type
    """
    field_type = FieldType(data["field_type"]).value
    entity_target = data["entity_target"]
    options = _clean_options(data.get("options"))

    existing = (
        db.query(CustomFieldDefinition)
        .filter(
            CustomFieldDefinition.entity_target == entity_target,
            CustomFieldDefinition.field_key == data["field_key"],
        )
        .first()
    )
    if existing:
        raise ConflictError(
            f"Field key '{data['field_key']}' already exists for {entity_target}"
        )

    validate_field_options(field_type, options)

    display_order = data.get("display_order")
    if display_order is None:
        display_order = _next_display_order(db, entity_target)

    field = CustomFieldDefinition(
        field_name=data["field_name"],
        field_key=data["field_key"],
        field_type=field_type,
        entity_target=entity_target,
        description=data.get("description"),
        placeholder=data.get("placeholder"),
        default_value=data.get("default_value"),
        is_required=data.get("is_required", False),
        show_in_list=data.get("show_in_list", True),
        show_in_detail=data.get("show_in_detail", True),
        is_searchable=data.get("is_searchable", False),
        is_filterable=data.get("is_filterable", False),
        display_order=display_order,
        field_group=data.get("field_group"),
        options=options,
        created_by_user_id=user_id,
    )
    db.add(field)
    db.commit()
    db.refresh(field)
    logger.info(
        "Custom field created",
        extra={"field_id": str(field.id), "entity_target": entity_target},
    )
    return field


def update_custom_field(
    db: Session,
    field: CustomFieldDefinition,
    changes: dict[str, Any],
) -> CustomFieldDefinition:
    """Apply a partial update. Key, type and target cannot change."""
    if "options" in changes:
        options = _clean_options(changes["options"])
        validate_field_options(field.field_type, options)
        changes["options"] = options

    for name, value in changes.items():
        setattr(field, name, value)
    db.commit()
    db.refresh(field)
    return field


def delete_custom_field(db: Session, field: CustomFieldDefinition) -> bool:
    """
    Delete a field. Fields that already hold values are deactivated instead.

    Returns True when the row was hard-deleted.
    """
    has_values = (
        db.query(CustomFieldValue.id)
        .filter(CustomFieldValue.field_definition_id == field.id)
        .first()
        is not None
    )
    if has_values:
        field.is_active = False
        db.commit()
        logger.info("Custom field deactivated", extra={"field_id": str(field.id)})
        return False

    db.delete(field)
    db.commit()
    logger.info("Custom field deleted", extra={"field_id": str(field.id)})
    return True


def reorder_custom_fields(
    db: Session,
    entity_target: str,
    field_ids: list[UUID],
) -> list[CustomFieldDefinition]:
    """Assign display_order = position + 1 to the given fields of one target."""
    fields = (
        db.query(CustomFieldDefinition)
        .filter(
            CustomFieldDefinition.entity_target == entity_target,
            CustomFieldDefinition.id.in_(field_ids),
        )
        .all()
    )
    by_id = {field.id: field for field in fields}
    missing = [str(field_id) for field_id in field_ids if field_id not in by_id]
    if missing:
        raise NotFoundError(f"Custom fields not found for {entity_target}: {', '.join(missing)}")

    for position, field_id in enumerate(field_ids):
        by_id[field_id].display_order = position + 1
    db.commit()
    return list_custom_fields(db, entity_target=entity_target, include_inactive=True)


# =============================================================================
# Values (EAV)
# =============================================================================


def set_field_values(
    db: Session,
    user_id: UUID,
    entity_type: str,
    entity_id: UUID,
    values: list[tuple[UUID, Any]],
) -> dict[str, Any]:
    """
    Validate and upsert values for one entity.

    Every value is validated before anything is written, so a single bad
    value rejects the whole request. Each write clears all five typed
    columns and populates exactly one.

    Raises:
        NotFoundError: unknown field id
        ValidationError: value rejected, inactive field, or field targets
            another entity type
    """
    field_ids = [field_id for field_id, _ in values]
    fields = {
        field.id: field
        for field in db.query(CustomFieldDefinition)
        .filter(CustomFieldDefinition.id.in_(field_ids))
        .all()
    }

    typed = []
    for field_id, raw in values:
        field = fields.get(field_id)
        if not field:
            raise NotFoundError(f"Custom field {field_id} not found")
        if not field.is_active:
            raise ValidationError(f"Field '{field.field_name}' is inactive")
        if field.entity_target != entity_type:
            raise ValidationError(
                f"Field '{field.field_name}' applies to {field.entity_target}, not {entity_type}"
            )
        typed.append((field, validate_field_value(field, raw)))

    existing = {
        row.field_definition_id: row
        for row in db.query(CustomFieldValue)
        .filter(
            CustomFieldValue.entity_type == entity_type,
            CustomFieldValue.entity_id == entity_id,
            CustomFieldValue.field_definition_id.in_(field_ids),
        )
        .all()
    }

    for field, typed_value in typed:
        row = existing.get(field.id)
        if row is None:
            row = CustomFieldValue(
                field_definition_id=field.id,
                entity_type=entity_type,
                entity_id=entity_id,
            )
            db.add(row)
            existing[field.id] = row
        for column, column_value in typed_value.column_values().items():
            setattr(row, column, column_value)
        row.updated_by_user_id = user_id

    db.commit()
    return get_field_values(db, entity_type, entity_id)


def get_field_values(db: Session, entity_type: str, entity_id: UUID) -> dict[str, Any]:
    """Return ``{field_id: value}`` for one entity."""
    rows = (
        db.query(CustomFieldValue, CustomFieldDefinition.field_type)
        .join(CustomFieldDefinition, CustomFieldDefinition.id == CustomFieldValue.field_definition_id)
        .filter(
            CustomFieldValue.entity_type == entity_type,
            CustomFieldValue.entity_id == entity_id,
        )
        .all()
    )
    return {
        str(row.field_definition_id): read_field_value(row, field_type)
        for row, field_type in rows
    }


def get_bulk_field_values(
    db: Session,
    entity_type: str,
    entity_ids: list[UUID],
) -> dict[str, dict[str, Any]]:
    """Return ``{entity_id: {field_id: value}}`` with an entry for every requested id."""
    result: dict[str, dict[str, Any]] = {str(entity_id): {} for entity_id in entity_ids}
    rows = (
        db.query(CustomFieldValue, CustomFieldDefinition.field_type)
        .join(CustomFieldDefinition, CustomFieldDefinition.id == CustomFieldValue.field_definition_id)
        .filter(
            CustomFieldValue.entity_type == entity_type,
            CustomFieldValue.entity_id.in_(entity_ids),
        )
        .all()
    )
    for row, field_type in rows:
        result[str(row.entity_id)][str(row.field_definition_id)] = read_field_value(row, field_type)
    return result
