"""SQLAlchemy ORM models for custom fields, tags, saved views and preferences."""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any

from sqlalchemy import (
    Boolean,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    Uuid,
    func,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from wealth_crm.db.base import Base, JSONType


# =============================================================================
# Custom Fields (EAV)
# =============================================================================

class CustomFieldDefinition(Base):
    """
    Admin-defined typed field attached to one entity target.

    ``options`` carries type-specific settings: ``choices`` for select types,
    ``min``/``max``/``precision`` for numeric types, ``max_length``/``pattern``
    for text types, ``min_date``/``max_date`` for dates.
    """

    __tablename__ = "custom_field_definitions"
    __table_args__ = (
        UniqueConstraint("entity_target", "field_key", name="uq_custom_field_key"),
        Index("idx_custom_field_target_order", "entity_target", "display_order"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    field_name: Mapped[str] = mapped_column(String(100), nullable=False)
    field_key: Mapped[str] = mapped_column(String(100), nullable=False)
    field_type: Mapped[str] = mapped_column(String(20), nullable=False)
    entity_target: Mapped[str] = mapped_column(String(20), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    placeholder: Mapped[str | None] = mapped_column(String(255), nullable=True)
    default_value: Mapped[str | None] = mapped_column(String(255), nullable=True)

    is_required: Mapped[bool] = mapped_column(
        Boolean, default=False, server_default=text("FALSE"), nullable=False
    )
    is_active: Mapped[bool] = mapped_column(
        Boolean, default=True, server_default=text("TRUE"), nullable=False
    )
    show_in_list: Mapped[bool] = mapped_column(
        Boolean, default=True, server_default=text("TRUE"), nullable=False
    )
    show_in_detail: Mapped[bool] = mapped_column(
        Boolean, default=True, server_default=text("TRUE"), nullable=False
    )
    is_searchable: Mapped[bool] = mapped_column(
        Boolean, default=False, server_default=text("FALSE"), nullable=False
    )
    is_filterable: Mapped[bool] = mapped_column(
        Boolean, default=False, server_default=text("FALSE"), nullable=False
    )
    display_order: Mapped[int] = mapped_column(Integer, default=0, server_default=text("0"), nullable=False)
    field_group: Mapped[str | None] = mapped_column(String(100), nullable=True)

    options: Mapped[dict] = mapped_column(JSONType, default=dict, nullable=False)
    extra_data: Mapped[dict] = mapped_column("metadata", JSONType, default=dict, nullable=False)

    created_by_user_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(server_default=func.now(), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        server_default=func.now(), onupdate=func.now(), nullable=False
    )

    values: Mapped[list["CustomFieldValue"]] = relationship(
        back_populates="field", passive_deletes=True
    )


class CustomFieldValue(Base):
    """
    Value of one custom field for one entity.

    Exactly one of the typed columns is populated (or none, for a cleared value).
    """

    __tablename__ = "custom_field_values"
    __table_args__ = (
        UniqueConstraint(
            "field_definition_id", "entity_type", "entity_id",
            name="uq_custom_field_value_entity",
        ),
        Index("idx_custom_field_value_entity", "entity_type", "entity_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    field_definition_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("custom_field_definitions.id", ondelete="CASCADE"), nullable=False
    )
    entity_type: Mapped[str] = mapped_column(String(20), nullable=False)
    entity_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)

    text_value: Mapped[str | None] = mapped_column(Text, nullable=True)
    number_value: Mapped[float | None] = mapped_column(Float, nullable=True)
    boolean_value: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
    date_value: Mapped[datetime | None] = mapped_column(nullable=True)
    json_value: Mapped[Any] = mapped_column(JSONType, nullable=True)

    updated_by_user_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(server_default=func.now(), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        server_default=func.now(), onupdate=func.now(), nullable=False
    )

    field: Mapped[CustomFieldDefinition] = relationship(back_populates="values")


# =============================================================================
# Tags
# =============================================================================

class Tag(Base):
    """
    Label attachable to any entity.

    ``usage_count`` is denormalized and maintained by the tag/untag paths.
    """

    __tablename__ = "tags"
    __table_args__ = (
        UniqueConstraint("category", "name", name="uq_tag_category_name"),
        Index("idx_tags_parent", "parent_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    category: Mapped[str | None] = mapped_column(String(50), nullable=True)
    color: Mapped[str] = mapped_column(
        String(7), default="#6366f1", server_default=text("'#6366f1'"), nullable=False
    )
    icon: Mapped[str | None] = mapped_column(String(50), nullable=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    parent_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("tags.id", ondelete="SET NULL"), nullable=True
    )
    is_active: Mapped[bool] = mapped_column(
        Boolean, default=True, server_default=text("TRUE"), nullable=False
    )
    usage_count: Mapped[int] = mapped_column(Integer, default=0, server_default=text("0"), nullable=False)
    created_by_user_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(server_default=func.now(), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        server_default=func.now(), onupdate=func.now(), nullable=False
    )

    parent: Mapped["Tag | None"] = relationship(remote_side=[id], back_populates="children")
    children: Mapped[list["Tag"]] = relationship(back_populates="parent")


class EntityTag(Base):
    """Association of a tag with an entity."""

    __tablename__ = "entity_tags"
    __table_args__ = (
        UniqueConstraint("tag_id", "entity_type", "entity_id", name="uq_entity_tag"),
        Index("idx_entity_tags_entity", "entity_type", "entity_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    tag_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("tags.id", ondelete="CASCADE"), nullable=False
    )
    entity_type: Mapped[str] = mapped_column(String(20), nullable=False)
    entity_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    added_by_user_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(server_default=func.now(), nullable=False)

    tag: Mapped[Tag] = relationship()


# =============================================================================
# Saved Views & Preferences
# =============================================================================

class SavedView(Base):
    """
    Per-user saved list configuration (columns, filters, sorting, grouping).

    At most one view per (user, entity_type) may be the default. The partial
    unique index enforces it at the database level.
    """

    __tablename__ = "saved_views"
    __table_args__ = (
        Index("idx_saved_views_user_entity", "user_id", "entity_type"),
        Index(
            "uq_saved_views_default",
            "user_id",
            "entity_type",
            unique=True,
            postgresql_where=text("is_default"),
            sqlite_where=text("is_default = 1"),
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    entity_type: Mapped[str] = mapped_column(String(20), nullable=False)
    view_type: Mapped[str] = mapped_column(
        String(20), default="table", server_default=text("'table'"), nullable=False
    )
    is_shared: Mapped[bool] = mapped_column(
        Boolean, default=False, server_default=text("FALSE"), nullable=False
    )
    is_default: Mapped[bool] = mapped_column(
        Boolean, default=False, server_default=text("FALSE"), nullable=False
    )
    is_pinned: Mapped[bool] = mapped_column(
        Boolean, default=False, server_default=text("FALSE"), nullable=False
    )

    columns: Mapped[list] = mapped_column(JSONType, default=list, nullable=False)
    filters: Mapped[list] = mapped_column(JSONType, default=list, nullable=False)
    sorting: Mapped[list] = mapped_column(JSONType, default=list, nullable=False)
    grouping: Mapped[dict | None] = mapped_column(JSONType, nullable=True)
    display: Mapped[dict] = mapped_column(JSONType, default=dict, nullable=False)

    icon: Mapped[str | None] = mapped_column(String(50), nullable=True)
    color: Mapped[str | None] = mapped_column(String(7), nullable=True)
    usage_count: Mapped[int] = mapped_column(Integer, default=0, server_default=text("0"), nullable=False)
    last_used_at: Mapped[datetime | None] = mapped_column(nullable=True)
    created_at: Mapped[datetime] = mapped_column(server_default=func.now(), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        server_default=func.now(), onupdate=func.now(), nullable=False
    )


class UserPreference(Base):
    """One row of UI preferences per user."""

    __tablename__ = "user_preferences"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), unique=True, nullable=False
    )
    theme: Mapped[str] = mapped_column(
        String(20), default="system", server_default=text("'system'"), nullable=False
    )
    language: Mapped[str] = mapped_column(
        String(10), default="en", server_default=text("'en'"), nullable=False
    )
    timezone: Mapped[str] = mapped_column(
        String(50), default="America/New_York", server_default=text("'America/New_York'"), nullable=False
    )
    date_format: Mapped[str] = mapped_column(
        String(20), default="MM/DD/YYYY", server_default=text("'MM/DD/YYYY'"), nullable=False
    )
    currency: Mapped[str] = mapped_column(
        String(3), default="USD", server_default=text("'USD'"), nullable=False
    )
    dashboard_layout: Mapped[dict] = mapped_column(JSONType, default=dict, nullable=False)
    table_preferences: Mapped[dict] = mapped_column(JSONType, default=dict, nullable=False)
    sidebar_state: Mapped[dict] = mapped_column(JSONType, default=dict, nullable=False)
    # [{"type", "id", "name", "visited_at"}], newest first
    recent_items: Mapped[list] = mapped_column(JSONType, default=list, nullable=False)
    # [{"type", "id", "name"}]
    favorites: Mapped[list] = mapped_column(JSONType, default=list, nullable=False)
    shortcuts: Mapped[dict] = mapped_column(JSONType, default=dict, nullable=False)
    created_at: Mapped[datetime] = mapped_column(server_default=func.now(), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        server_default=func.now(), onupdate=func.now(), nullable=False
    )
