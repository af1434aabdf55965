"""Pydantic schemas for tags and entity tagging."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field

from wealth_crm.db.enums import EntityTarget
from wealth_crm.schemas.common import reject_null


HEX_COLOR_PATTERN = r"^#[0-9a-fA-F]{6}$"


class TagCreate(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    category: str | None = Field(default=None, max_length=50)
    color: str = Field(default="#6366f1", pattern=HEX_COLOR_PATTERN)
    icon: str | None = Field(default=None, max_length=50)
    description: str | None = None
    parent_id: UUID | None = None


class TagUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=100)
    category: str | None = Field(default=None, max_length=50)
    color: str | None = Field(default=None, pattern=HEX_COLOR_PATTERN)
    icon: str | None = Field(default=None, max_length=50)
    description: str | None = None
    parent_id: UUID | None = None
    is_active: bool | None = None

    check_not_null = reject_null("name", "color", "is_active")


class TagRead(BaseModel):
    id: UUID
    name: str
    category: str | None
    color: str
    icon: str | None
    description: str | None
    parent_id: UUID | None
    is_active: bool
    usage_count: int
    created_at: datetime

    model_config = {"from_attributes": True}


class TagTreeRead(TagRead):
    """Root tag with its direct children."""

    children: list[TagRead] = []


class TagEntityRequest(BaseModel):
    """Replace the full tag set of one entity."""

    entity_type: EntityTarget
    entity_id: UUID
    tag_ids: list[UUID] = Field(default_factory=list)

    model_config = {"use_enum_values": True}


class EntityTagRead(BaseModel):
    id: UUID
    tag_id: UUID
    entity_type: str
    entity_id: UUID
    added_by_user_id: UUID | None
    created_at: datetime

    model_config = {"from_attributes": True}


class TaggedEntityRead(BaseModel):
    entity_type: str
    entity_id: UUID
    tagged_at: datetime
