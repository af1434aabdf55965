"""Pydantic schemas for saved views and user preferences."""

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, Field

from wealth_crm.db.enums import EntityTarget, Theme, ViewType
from wealth_crm.schemas.common import reject_null


# =============================================================================
# Saved Views
# =============================================================================


class SavedViewCreate(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    description: str | None = None
    entity_type: EntityTarget
    view_type: ViewType = ViewType.TABLE
    is_shared: bool = False
    is_default: bool = False
    is_pinned: bool = False
    columns: list[dict[str, Any]] = Field(default_factory=list)
    filters: list[dict[str, Any]] = Field(default_factory=list)
    sorting: list[dict[str, Any]] = Field(default_factory=list)
    grouping: dict[str, Any] | None = None
    display: dict[str, Any] = Field(default_factory=dict)
    icon: str | None = Field(default=None, max_length=50)
    color: str | None = Field(default=None, max_length=7)

    model_config = {"use_enum_values": True}


class SavedViewUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=100)
    description: str | None = None
    view_type: ViewType | None = None
    is_shared: bool | None = None
    is_default: bool | None = None
    is_pinned: bool | None = None
    columns: list[dict[str, Any]] | None = None
    filters: list[dict[str, Any]] | None = None
    sorting: list[dict[str, Any]] | None = None
    grouping: dict[str, Any] | None = None
    display: dict[str, Any] | None = None
    icon: str | None = Field(default=None, max_length=50)
    color: str | None = Field(default=None, max_length=7)

    model_config = {"use_enum_values": True}

    check_not_null = reject_null(
        "name",
        "view_type",
        "is_shared",
        "is_default",
        "is_pinned",
        "columns",
        "filters",
        "sorting",
        "display",
    )


class SavedViewRead(BaseModel):
    id: UUID
    name: str
    description: str | None
    user_id: UUID
    entity_type: str
    view_type: str
    is_shared: bool
    is_default: bool
    is_pinned: bool
    columns: list
    filters: list
    sorting: list
    grouping: dict | None
    display: dict
    icon: str | None
    color: str | None
    usage_count: int
    last_used_at: datetime | None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


# =============================================================================
# User Preferences
# =============================================================================


class PreferencesUpdate(BaseModel):
    theme: Theme | None = None
    language: str | None = Field(default=None, max_length=10)
    timezone: str | None = Field(default=None, max_length=50)
    date_format: str | None = Field(default=None, max_length=20)
    currency: str | None = Field(default=None, min_length=3, max_length=3)
    dashboard_layout: dict[str, Any] | None = None
    sidebar_state: dict[str, Any] | None = None
    shortcuts: dict[str, Any] | None = None

    model_config = {"use_enum_values": True}

    check_not_null = reject_null(
        "theme",
        "language",
        "timezone",
        "date_format",
        "currency",
        "dashboard_layout",
        "sidebar_state",
        "shortcuts",
    )


class RecentItemInput(BaseModel):
    type: str = Field(min_length=1, max_length=50)
    id: str = Field(min_length=1, max_length=100)
    name: str = Field(min_length=1, max_length=255)


class FavoriteInput(BaseModel):
    type: str = Field(min_length=1, max_length=50)
    id: str = Field(min_length=1, max_length=100)
    name: str = Field(min_length=1, max_length=255)


class PreferencesRead(BaseModel):
    id: UUID
    user_id: UUID
    theme: str
    language: str
    timezone: str
    date_format: str
    currency: str
    dashboard_layout: dict
    table_preferences: dict
    sidebar_state: dict
    recent_items: list
    favorites: list
    shortcuts: dict
    updated_at: datetime

    model_config = {"from_attributes": True}


class FavoriteToggleResponse(BaseModel):
    is_favorite: bool
    preferences: PreferencesRead
