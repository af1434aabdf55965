"""User preference service."""

from datetime import datetime, timezone
from typing import Any
from uuid import UUID

from sqlalchemy.orm import Session

from wealth_crm.db.models import UserPreference


MAX_RECENT_ITEMS = 20


def get_preferences(db: Session, user_id: UUID) -> UserPreference:
    """Return the user's preferences, creating the defaults on first access."""
    prefs = db.query(UserPreference).filter(UserPreference.user_id == user_id).first()
    if prefs:
        return prefs
    prefs = UserPreference(
        user_id=user_id,
        dashboard_layout={},
        table_preferences={},
        sidebar_state={},
        recent_items=[],
        favorites=[],
        shortcuts={},
    )
    db.add(prefs)
    db.commit()
    db.refresh(prefs)
    return prefs


def update_preferences(db: Session, user_id: UUID, changes: dict[str, Any]) -> UserPreference:
    prefs = get_preferences(db, user_id)
    for name, value in changes.items():
        setattr(prefs, name, value)
    db.commit()
    db.refresh(prefs)
    return prefs


def add_recent_item(db: Session, user_id: UUID, item: dict[str, str]) -> UserPreference:
    """Put the item first, dropping any older entry for it; keep the newest 20."""
    prefs = get_preferences(db, user_id)
    entry = {
        "type": item["type"],
        "id": item["id"],
        "name": item["name"],
        "visited_at": datetime.now(timezone.utc).isoformat(),
    }
    others = [
        existing
        for existing in prefs.recent_items or []
        if not (existing.get("type") == entry["type"] and existing.get("id") == entry["id"])
    ]
    # Reassign so the JSON column is flagged dirty
    prefs.recent_items = [entry, *others][:MAX_RECENT_ITEMS]
    db.commit()
    db.refresh(prefs)
    return prefs


def toggle_favorite(db: Session, user_id: UUID, item: dict[str, str]) -> tuple[bool, UserPreference]:
    """Add or remove a favorite. Returns (is_favorite, preferences)."""
    prefs = get_preferences(db, user_id)
    favorites = list(prefs.favorites or [])
    remaining = [
        fav for fav in favorites
        if not (fav.get("type") == item["type"] and fav.get("id") == item["id"])
    ]
    is_favorite = len(remaining) == len(favorites)
    if is_favorite:
        remaining.append({"type": item["type"], "id": item["id"], "name": item["name"]})
    prefs.favorites = remaining
    db.commit()
    db.refresh(prefs)
    return is_favorite, prefs


def update_table_preference(
    db: Session,
    user_id: UUID,
    table_name: str,
    table_prefs: dict[str, Any],
) -> UserPreference:
    prefs = get_preferences(db, user_id)
    tables = dict(prefs.table_preferences or {})
    tables[table_name] = {**tables.get(table_name, {}), **table_prefs}
    prefs.table_preferences = tables
    db.commit()
    db.refresh(prefs)
    return prefs
