"""Tag service - tag catalog and entity tagging with usage counters."""

import logging
from typing import Any
from uuid import UUID

from sqlalchemy import case, func
from sqlalchemy.orm import Session, selectinload

from wealth_crm.core.exceptions import ConflictError, NotFoundError, ValidationError
from wealth_crm.db.models import EntityTag, Tag


logger = logging.getLogger(__name__)


# =============================================================================
# Usage counter (SQL-side, committed with the association change)
# =============================================================================


def _increment_usage(db: Session, tag_ids: list[UUID]) -> None:
    if not tag_ids:
        return
    db.query(Tag).filter(Tag.id.in_(tag_ids)).update(
        {Tag.usage_count: Tag.usage_count + 1},
        synchronize_session=False,
    )


def _decrement_usage(db: Session, tag_ids: list[UUID]) -> None:
    if not tag_ids:
        return
    db.query(Tag).filter(Tag.id.in_(tag_ids)).update(
        {Tag.usage_count: case((Tag.usage_count > 0, Tag.usage_count - 1), else_=0)},
        synchronize_session=False,
    )


# =============================================================================
# Catalog
# =============================================================================


def _find_duplicate(db: Session, name: str, category: str | None, exclude_id: UUID | None = None):
    query = db.query(Tag).filter(func.lower(Tag.name) == name.strip().lower())
    if category is None:
        query = query.filter(Tag.category.is_(None))
    else:
        query = query.filter(Tag.category == category)
    if exclude_id:
        query = query.filter(Tag.id != exclude_id)
    return query.first()


def _validate_parent(db: Session, parent_id: UUID, tag_id: UUID | None = None) -> None:
    """Parent must exist and must not be the tag itself or one of its descendants."""
    if tag_id and parent_id == tag_id:
        raise ValidationError("A tag cannot be its own parent")
    parent = db.get(Tag, parent_id)
    if not parent:
        raise NotFoundError("Parent tag not found")
    seen = set()
    ancestor = parent
    while ancestor is not None and ancestor.id not in seen:
        if tag_id and ancestor.id == tag_id:
            raise ValidationError("Tag hierarchy cannot contain cycles")
        seen.add(ancestor.id)
        ancestor = ancestor.parent


def list_tags(
    db: Session,
    category: str | None = None,
    include_inactive: bool = False,
    search: str | None = None,
) -> list[Tag]:
    """Root tags (no parent) with their children, ordered by category then name."""
    query = db.query(Tag).options(selectinload(Tag.children)).filter(Tag.parent_id.is_(None))
    if category:
        query = query.filter(Tag.category == category)
    if not include_inactive:
        query = query.filter(Tag.is_active.is_(True))
    if search:
        query = query.filter(Tag.name.ilike(f"%{search.strip()}%"))
    return query.order_by(Tag.category, Tag.name).all()


def get_tag(db: Session, tag_id: UUID) -> Tag | None:
    return db.get(Tag, tag_id)


def create_tag(db: Session, user_id: UUID, data: dict[str, Any]) -> Tag:
    """
    Create a tag.

    Raises:
        ConflictError: same name already exists in the category
        NotFoundError: parent tag does not exist
    """
    name = data["name"].strip()
    category = data.get("category")
    if _find_duplicate(db, name, category):
        raise ConflictError(f"Tag '{name}' already exists in this category")
    if data.get("parent_id"):
        _validate_parent(db, data["parent_id"])

    tag = Tag(
        name=name,
        category=category,
        color=data.get("color") or "#6366f1",
        icon=data.get("icon"),
        description=data.get("description"),
        parent_id=data.get("parent_id"),
        created_by_user_id=user_id,
    )
    db.add(tag)
    db.commit()
    db.refresh(tag)
    logger.info("Tag created", extra={"tag_id": str(tag.id)})
    return tag


def update_tag(db: Session, tag: Tag, changes: dict[str, Any]) -> Tag:
    if "name" in changes or "category" in changes:
        name = (changes.get("name") or tag.name).strip()
        category = changes["category"] if "category" in changes else tag.category
        if _find_duplicate(db, name, category, exclude_id=tag.id):
            raise ConflictError(f"Tag '{name}' already exists in this category")
        if "name" in changes:
            changes["name"] = name
    if changes.get("parent_id"):
        _validate_parent(db, changes["parent_id"], tag_id=tag.id)

    for name, value in changes.items():
        setattr(tag, name, value)
    db.commit()
    db.refresh(tag)
    return tag


def delete_tag(db: Session, tag: Tag) -> bool:
    """
    Delete a tag. Tags in use are deactivated instead.

    Returns True when the row was hard-deleted.
    """
    db.refresh(tag)
    if tag.usage_count > 0:
        tag.is_active = False
        db.commit()
        logger.info("Tag deactivated", extra={"tag_id": str(tag.id)})
        return False

    db.query(Tag).filter(Tag.parent_id == tag.id).update(
        {Tag.parent_id: None}, synchronize_session=False
    )
    db.delete(tag)
    db.commit()
    logger.info("Tag deleted", extra={"tag_id": str(tag.id)})
    return True


# =============================================================================
# Entity tagging
# =============================================================================


def set_entity_tags(
    db: Session,
    user_id: UUID,
    entity_type: str,
    entity_id: UUID,
    tag_ids: list[UUID],
) -> list[Tag]:
    """
    Replace the full tag set of an entity.

    Unknown tag ids reject the request before anything changes. Counters
    move only for tags actually added or removed.
    """
    wanted = list(dict.fromkeys(tag_ids))
    if wanted:
        found = {row[0] for row in db.query(Tag.id).filter(Tag.id.in_(wanted)).all()}
        missing = [str(tag_id) for tag_id in wanted if tag_id not in found]
        if missing:
            raise NotFoundError(f"Tags not found: {', '.join(missing)}")

    current = (
        db.query(EntityTag)
        .filter(EntityTag.entity_type == entity_type, EntityTag.entity_id == entity_id)
        .all()
    )
    current_ids = {link.tag_id for link in current}

    removed = [link for link in current if link.tag_id not in wanted]
    added = [tag_id for tag_id in wanted if tag_id not in current_ids]

    for link in removed:
        db.delete(link)
    for tag_id in added:
        db.add(
            EntityTag(
                tag_id=tag_id,
                entity_type=entity_type,
                entity_id=entity_id,
                added_by_user_id=user_id,
            )
        )
    db.flush()
    _decrement_usage(db, [link.tag_id for link in removed])
    _increment_usage(db, added)
    db.commit()
    return get_entity_tags(db, entity_type, entity_id)


def add_tag_to_entity(
    db: Session,
    user_id: UUID,
    tag_id: UUID,
    entity_type: str,
    entity_id: UUID,
) -> EntityTag:
    """Attach one tag. Idempotent: returns the existing link when present."""
    if not db.get(Tag, tag_id):
        raise NotFoundError("Tag not found")

    existing = (
        db.query(EntityTag)
        .filter(
            EntityTag.tag_id == tag_id,
            EntityTag.entity_type == entity_type,
            EntityTag.entity_id == entity_id,
        )
        .first()
    )
    if existing:
        return existing

    link = EntityTag(
        tag_id=tag_id,
        entity_type=entity_type,
        entity_id=entity_id,
        added_by_user_id=user_id,
    )
    db.add(link)
    db.flush()
    _increment_usage(db, [tag_id])
    db.commit()
    db.refresh(link)
    return link


def remove_tag_from_entity(
    db: Session,
    tag_id: UUID,
    entity_type: str,
    entity_id: UUID,
) -> bool:
    """Detach one tag. The counter moves only when a link was actually removed."""
    deleted = (
        db.query(EntityTag)
        .filter(
            EntityTag.tag_id == tag_id,
            EntityTag.entity_type == entity_type,
            EntityTag.entity_id == entity_id,
        )
        .delete(synchronize_session=False)
    )
    if deleted:
        _decrement_usage(db, [tag_id])
    db.commit()
    return bool(deleted)


def get_entity_tags(db: Session, entity_type: str, entity_id: UUID) -> list[Tag]:
    return (
        db.query(Tag)
        .join(EntityTag, EntityTag.tag_id == Tag.id)
        .filter(EntityTag.entity_type == entity_type, EntityTag.entity_id == entity_id)
        .order_by(Tag.category, Tag.name)
        .all()
    )


def get_entities_by_tag(
    db: Session,
    tag_id: UUID,
    entity_type: str | None = None,
) -> list[EntityTag]:
    query = db.query(EntityTag).filter(EntityTag.tag_id == tag_id)
    if entity_type:
        query = query.filter(EntityTag.entity_type == entity_type)
    return query.order_by(EntityTag.created_at.desc()).all()
