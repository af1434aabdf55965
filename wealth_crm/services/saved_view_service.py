"""Saved view service - per-user list configurations."""

import logging
from datetime import datetime, timezone
from typing import Any
from uuid import UUID

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from wealth_crm.core.exceptions import ConflictError
from wealth_crm.db.models import SavedView


logger = logging.getLogger(__name__)


def _unset_other_defaults(
    db: Session,
    user_id: UUID,
    entity_type: str,
    keep_id: UUID | None = None,
) -> None:
    query = db.query(SavedView).filter(
        SavedView.user_id == user_id,
        SavedView.entity_type == entity_type,
        SavedView.is_default.is_(True),
    )
    if keep_id:
        query = query.filter(SavedView.id != keep_id)
    query.update({SavedView.is_default: False}, synchronize_session=False)
    # Clear the old default before the new one is written
    db.flush()


def _is_default_conflict(exc: IntegrityError) -> bool:
    # PostgreSQL names the index; SQLite lists its columns
    message = str(exc.orig)
    return "uq_saved_views_default" in message or "saved_views.user_id, saved_views.entity_type" in message


def _commit_default_change(db: Session) -> None:
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        if not _is_default_conflict(exc):
            raise
        raise ConflictError("Another default view was set concurrently; retry") from exc


def create_saved_view(db: Session, user_id: UUID, data: dict[str, Any]) -> SavedView:
    """Create a view. Making it the default unsets the user's previous default."""
    if data.get("is_default"):
        _unset_other_defaults(db, user_id, data["entity_type"])

    view = SavedView(user_id=user_id, **data)
    db.add(view)
    _commit_default_change(db)
    db.refresh(view)
    logger.info("Saved view created", extra={"view_id": str(view.id)})
    return view


def list_saved_views(db: Session, user_id: UUID, entity_type: str | None = None) -> list[SavedView]:
    """Own and shared views: pinned first, then default, then most recently used."""
    query = db.query(SavedView).filter(
        or_(SavedView.user_id == user_id, SavedView.is_shared.is_(True))
    )
    if entity_type:
        query = query.filter(SavedView.entity_type == entity_type)
    return query.order_by(
        SavedView.is_pinned.desc(),
        SavedView.is_default.desc(),
        SavedView.last_used_at.is_(None),
        SavedView.last_used_at.desc(),
        SavedView.name,
    ).all()


def get_visible_view(db: Session, user_id: UUID, view_id: UUID) -> SavedView | None:
    """A view the user owns or that is shared."""
    return (
        db.query(SavedView)
        .filter(
            SavedView.id == view_id,
            or_(SavedView.user_id == user_id, SavedView.is_shared.is_(True)),
        )
        .first()
    )


def get_owned_view(db: Session, user_id: UUID, view_id: UUID) -> SavedView | None:
    return (
        db.query(SavedView)
        .filter(SavedView.id == view_id, SavedView.user_id == user_id)
        .first()
    )


def record_view_usage(db: Session, view: SavedView) -> SavedView:
    """Bump usage_count and last_used_at when a view is opened."""
    db.query(SavedView).filter(SavedView.id == view.id).update(
        {
            SavedView.usage_count: SavedView.usage_count + 1,
            SavedView.last_used_at: datetime.now(timezone.utc),
        },
        synchronize_session=False,
    )
    db.commit()
    db.refresh(view)
    return view


def get_default_view(db: Session, user_id: UUID, entity_type: str) -> SavedView | None:
    return (
        db.query(SavedView)
        .filter(
            SavedView.user_id == user_id,
            SavedView.entity_type == entity_type,
            SavedView.is_default.is_(True),
        )
        .first()
    )


def update_saved_view(db: Session, view: SavedView, changes: dict[str, Any]) -> SavedView:
    if changes.get("is_default"):
        _unset_other_defaults(db, view.user_id, view.entity_type, keep_id=view.id)

    for name, value in changes.items():
        setattr(view, name, value)
    _commit_default_change(db)
    db.refresh(view)
    return view


def delete_saved_view(db: Session, view: SavedView) -> None:
    db.delete(view)
    db.commit()
    logger.info("Saved view deleted", extra={"view_id": str(view.id)})
