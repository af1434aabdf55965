"""Customization endpoints: custom fields, field values, tags, saved views, preferences."""

from typing import Any
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Response
from sqlalchemy.orm import Session

from wealth_crm.core.deps import get_current_session, get_db, require_roles
from wealth_crm.core.exceptions import ServiceError, handle_service_error
from wealth_crm.db.enums import (
    ROLES_CAN_DELETE_FIELDS,
    ROLES_CAN_DELETE_TAGS,
    ROLES_CAN_MANAGE_FIELDS,
    ROLES_CAN_MANAGE_TAGS,
    EntityTarget,
)
from wealth_crm.schemas.auth import UserSession
from wealth_crm.schemas.custom_field import (
    BulkFieldValuesRequest,
    CustomFieldCreate,
    CustomFieldRead,
    CustomFieldUpdate,
    FieldReorderRequest,
    SetFieldValuesRequest,
)
from wealth_crm.schemas.saved_view import (
    FavoriteInput,
    FavoriteToggleResponse,
    PreferencesRead,
    PreferencesUpdate,
    RecentItemInput,
    SavedViewCreate,
    SavedViewRead,
    SavedViewUpdate,
)
from wealth_crm.schemas.tag import (
    EntityTagRead,
    TagCreate,
    TagEntityRequest,
    TagRead,
    TagTreeRead,
    TagUpdate,
)
from wealth_crm.services import (
    custom_field_service,
    preference_service,
    saved_view_service,
    tag_service,
)


router = APIRouter(prefix="/customization", tags=["customization"])


# =============================================================================
# Custom Fields
# =============================================================================


@router.post("/fields", response_model=CustomFieldRead, status_code=201)
def create_custom_field(
    body: CustomFieldCreate,
    session: UserSession = Depends(require_roles(ROLES_CAN_MANAGE_FIELDS)),
    db: Session = Depends(get_db),
):
    try:
        return custom_field_service.create_custom_field(db, session.user_id, body.model_dump())
    except ServiceError as exc:
        raise handle_service_error(exc) from exc


@router.get("/fields", response_model=list[CustomFieldRead])
def list_custom_fields(
    entity_target: EntityTarget | None = None,
    include_inactive: bool = False,
    field_group: str | None = None,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    return custom_field_service.list_custom_fields(
        db,
        entity_target=entity_target.value if entity_target else None,
        include_inactive=include_inactive,
        field_group=field_group,
    )


@router.get("/fields/{field_id:uuid}", response_model=CustomFieldRead)
def get_custom_field(
    field_id: UUID,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    field = custom_field_service.get_custom_field(db, field_id)
    if not field:
        raise HTTPException(status_code=404, detail="Custom field not found")
    return field


@router.put("/fields/{field_id:uuid}", response_model=CustomFieldRead)
def update_custom_field(
    field_id: UUID,
    body: CustomFieldUpdate,
    session: UserSession = Depends(require_roles(ROLES_CAN_MANAGE_FIELDS)),
    db: Session = Depends(get_db),
):
    field = custom_field_service.get_custom_field(db, field_id)
    if not field:
        raise HTTPException(status_code=404, detail="Custom field not found")
    try:
        return custom_field_service.update_custom_field(db, field, body.model_dump(exclude_unset=True))
    except ServiceError as exc:
        raise handle_service_error(exc) from exc


@router.delete("/fields/{field_id:uuid}", status_code=204)
def delete_custom_field(
    field_id: UUID,
    session: UserSession = Depends(require_roles(ROLES_CAN_DELETE_FIELDS)),
    db: Session = Depends(get_db),
):
    field = custom_field_service.get_custom_field(db, field_id)
    if not field:
        raise HTTPException(status_code=404, detail="Custom field not found")
    custom_field_service.delete_custom_field(db, field)
    return Response(status_code=204)


@router.patch("/fields/reorder/{entity_target}", response_model=list[CustomFieldRead])
def reorder_custom_fields(
    entity_target: EntityTarget,
    body: FieldReorderRequest,
    session: UserSession = Depends(require_roles(ROLES_CAN_MANAGE_FIELDS)),
    db: Session = Depends(get_db),
):
    try:
        return custom_field_service.reorder_custom_fields(db, entity_target.value, body.field_ids)
    except ServiceError as exc:
        raise handle_service_error(exc) from exc


# =============================================================================
# Field Values
# =============================================================================


@router.post("/field-values")
def set_field_values(
    body: SetFieldValuesRequest,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
) -> dict[str, Any]:
    try:
        return custom_field_service.set_field_values(
            db,
            session.user_id,
            body.entity_type,
            body.entity_id,
            [(item.field_id, item.value) for item in body.values],
        )
    except ServiceError as exc:
        raise handle_service_error(exc) from exc


@router.get("/field-values/{entity_type}/{entity_id:uuid}")
def get_field_values(
    entity_type: EntityTarget,
    entity_id: UUID,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
) -> dict[str, Any]:
    return custom_field_service.get_field_values(db, entity_type.value, entity_id)


@router.post("/field-values/bulk")
def get_bulk_field_values(
    body: BulkFieldValuesRequest,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
) -> dict[str, dict[str, Any]]:
    return custom_field_service.get_bulk_field_values(db, body.entity_type, body.entity_ids)


# =============================================================================
# Tags
# =============================================================================


@router.post("/tags", response_model=TagRead, status_code=201)
def create_tag(
    body: TagCreate,
    session: UserSession = Depends(require_roles(ROLES_CAN_MANAGE_TAGS)),
    db: Session = Depends(get_db),
):
    try:
        return tag_service.create_tag(db, session.user_id, body.model_dump())
    except ServiceError as exc:
        raise handle_service_error(exc) from exc


@router.get("/tags", response_model=list[TagTreeRead])
def list_tags(
    category: str | None = None,
    include_inactive: bool = False,
    search: str | None = None,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    return tag_service.list_tags(
        db, category=category, include_inactive=include_inactive, search=search
    )


@router.post("/tags/entity", response_model=list[TagRead])
def set_entity_tags(
    body: TagEntityRequest,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    try:
        return tag_service.set_entity_tags(
            db, session.user_id, body.entity_type, body.entity_id, body.tag_ids
        )
    except ServiceError as exc:
        raise handle_service_error(exc) from exc


@router.get("/tags/{tag_id:uuid}", response_model=TagTreeRead)
def get_tag(
    tag_id: UUID,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    tag = tag_service.get_tag(db, tag_id)
    if not tag:
        raise HTTPException(status_code=404, detail="Tag not found")
    return tag


@router.put("/tags/{tag_id:uuid}", response_model=TagRead)
def update_tag(
    tag_id: UUID,
    body: TagUpdate,
    session: UserSession = Depends(require_roles(ROLES_CAN_MANAGE_TAGS)),
    db: Session = Depends(get_db),
):
    tag = tag_service.get_tag(db, tag_id)
    if not tag:
        raise HTTPException(status_code=404, detail="Tag not found")
    try:
        return tag_service.update_tag(db, tag, body.model_dump(exclude_unset=True))
    except ServiceError as exc:
        raise handle_service_error(exc) from exc


@router.delete("/tags/{tag_id:uuid}", status_code=204)
def delete_tag(
    tag_id: UUID,
    session: UserSession = Depends(require_roles(ROLES_CAN_DELETE_TAGS)),
    db: Session = Depends(get_db),
):
    tag = tag_service.get_tag(db, tag_id)
    if not tag:
        raise HTTPException(status_code=404, detail="Tag not found")
    tag_service.delete_tag(db, tag)
    return Response(status_code=204)


@router.post(
    "/tags/{tag_id:uuid}/add/{entity_type}/{entity_id:uuid}",
    response_model=EntityTagRead,
    status_code=201,
)
def add_tag_to_entity(
    tag_id: UUID,
    entity_type: EntityTarget,
    entity_id: UUID,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    try:
        return tag_service.add_tag_to_entity(db, session.user_id, tag_id, entity_type.value, entity_id)
    except ServiceError as exc:
        raise handle_service_error(exc) from exc


@router.delete("/tags/{tag_id:uuid}/remove/{entity_type}/{entity_id:uuid}", status_code=204)
def remove_tag_from_entity(
    tag_id: UUID,
    entity_type: EntityTarget,
    entity_id: UUID,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    if not tag_service.remove_tag_from_entity(db, tag_id, entity_type.value, entity_id):
        raise HTTPException(status_code=404, detail="Tag is not attached to this entity")
    return Response(status_code=204)


@router.get("/tags/{tag_id:uuid}/entities", response_model=list[EntityTagRead])
def get_tagged_entities(
    tag_id: UUID,
    entity_type: EntityTarget | None = None,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    if not tag_service.get_tag(db, tag_id):
        raise HTTPException(status_code=404, detail="Tag not found")
    return tag_service.get_entities_by_tag(
        db, tag_id, entity_type.value if entity_type else None
    )


@router.get("/entity-tags/{entity_type}/{entity_id:uuid}", response_model=list[TagRead])
def get_entity_tags(
    entity_type: EntityTarget,
    entity_id: UUID,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    return tag_service.get_entity_tags(db, entity_type.value, entity_id)


# =============================================================================
# Saved Views
# =============================================================================


@router.post("/views", response_model=SavedViewRead, status_code=201)
def create_saved_view(
    body: SavedViewCreate,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    try:
        return saved_view_service.create_saved_view(db, session.user_id, body.model_dump())
    except ServiceError as exc:
        raise handle_service_error(exc) from exc


@router.get("/views", response_model=list[SavedViewRead])
def list_saved_views(
    entity_type: EntityTarget | None = None,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    return saved_view_service.list_saved_views(
        db, session.user_id, entity_type.value if entity_type else None
    )


@router.get("/views/default/{entity_type}", response_model=SavedViewRead | None)
def get_default_view(
    entity_type: EntityTarget,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    return saved_view_service.get_default_view(db, session.user_id, entity_type.value)


@router.get("/views/{view_id:uuid}", response_model=SavedViewRead)
def get_saved_view(
    view_id: UUID,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    view = saved_view_service.get_visible_view(db, session.user_id, view_id)
    if not view:
        raise HTTPException(status_code=404, detail="View not found")
    return saved_view_service.record_view_usage(db, view)


@router.put("/views/{view_id:uuid}", response_model=SavedViewRead)
def update_saved_view(
    view_id: UUID,
    body: SavedViewUpdate,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    view = saved_view_service.get_owned_view(db, session.user_id, view_id)
    if not view:
        raise HTTPException(status_code=404, detail="View not found")
    try:
        return saved_view_service.update_saved_view(db, view, body.model_dump(exclude_unset=True))
    except ServiceError as exc:
        raise handle_service_error(exc) from exc


@router.delete("/views/{view_id:uuid}", status_code=204)
def delete_saved_view(
    view_id: UUID,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    view = saved_view_service.get_owned_view(db, session.user_id, view_id)
    if not view:
        raise HTTPException(status_code=404, detail="View not found")
    saved_view_service.delete_saved_view(db, view)
    return Response(status_code=204)


# =============================================================================
# User Preferences
# =============================================================================


@router.get("/preferences", response_model=PreferencesRead)
def get_preferences(
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    return preference_service.get_preferences(db, session.user_id)


@router.put("/preferences", response_model=PreferencesRead)
def update_preferences(
    body: PreferencesUpdate,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    return preference_service.update_preferences(
        db, session.user_id, body.model_dump(exclude_unset=True)
    )


@router.post("/preferences/recent", response_model=PreferencesRead)
def add_recent_item(
    body: RecentItemInput,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    return preference_service.add_recent_item(db, session.user_id, body.model_dump())


@router.post("/preferences/favorite", response_model=FavoriteToggleResponse)
def toggle_favorite(
    body: FavoriteInput,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    is_favorite, prefs = preference_service.toggle_favorite(db, session.user_id, body.model_dump())
    return FavoriteToggleResponse(
        is_favorite=is_favorite,
        preferences=PreferencesRead.model_validate(prefs),
    )


@router.put("/preferences/table/{table_name}", response_model=PreferencesRead)
def update_table_preference(
    table_name: str,
    body: dict[str, Any],
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    return preference_service.update_table_preference(db, session.user_id, table_name, body)
