"""Pydantic schemas for the Outlook integration."""

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, Field

from wealth_crm.db.enums import MatchEntityType, MatchRuleType, OutlookSyncKind
from wealth_crm.schemas.common import reject_null


# =============================================================================
# Connection
# =============================================================================


class ConnectResponse(BaseModel):
    authorization_url: str
    state: str


class OAuthCallback(BaseModel):
    code: str = Field(min_length=1)
    state: str = Field(min_length=1)


class ConnectionRead(BaseModel):
    id: UUID
    user_id: UUID
    email: str | None
    status: str
    sync_emails: bool
    sync_calendar: bool
    auto_tag_emails: bool
    skip_private_events: bool
    skip_all_day_events: bool
    email_folders: list
    last_email_sync_at: datetime | None
    last_calendar_sync_at: datetime | None
    error_message: str | None
    created_at: datetime

    model_config = {"from_attributes": True}


class ConnectionUpdate(BaseModel):
    sync_emails: bool | None = None
    sync_calendar: bool | None = None
    auto_tag_emails: bool | None = None
    skip_private_events: bool | None = None
    skip_all_day_events: bool | None = None
    email_folders: list[str] | None = None

    check_not_null = reject_null(
        "sync_emails",
        "sync_calendar",
        "auto_tag_emails",
        "skip_private_events",
        "skip_all_day_events",
        "email_folders",
    )


class SyncRequest(BaseModel):
    kinds: list[OutlookSyncKind] | None = None


class SyncStatus(BaseModel):
    connected: bool
    status: str | None
    email: str | None
    last_email_sync_at: datetime | None
    last_calendar_sync_at: datetime | None
    error_message: str | None
    total_emails: int
    untagged_emails: int
    total_events: int
    untagged_events: int
    sync_in_progress: bool


# =============================================================================
# Emails & events
# =============================================================================


class EmailRead(BaseModel):
    id: UUID
    outlook_message_id: str
    conversation_id: str | None
    subject: str | None
    body_preview: str | None
    from_address: str | None
    from_name: str | None
    to_recipients: list
    cc_recipients: list
    received_at: datetime | None
    sent_at: datetime | None
    is_read: bool
    has_attachments: bool
    importance: str | None
    categories: list
    household_id: UUID | None
    account_id: UUID | None
    person_id: UUID | None
    match_metadata: dict | None
    manually_tagged: bool
    is_archived: bool

    model_config = {"from_attributes": True}


class EventRead(BaseModel):
    id: UUID
    outlook_event_id: str
    subject: str | None
    body_preview: str | None
    location: str | None
    start_time: datetime | None
    end_time: datetime | None
    is_all_day: bool
    is_cancelled: bool
    is_online_meeting: bool
    online_meeting_url: str | None
    organizer_email: str | None
    organizer_name: str | None
    attendees: list
    sensitivity: str | None
    show_as: str | None
    household_id: UUID | None
    account_id: UUID | None
    person_id: UUID | None
    match_metadata: dict | None
    manually_tagged: bool

    model_config = {"from_attributes": True}


class EmailListResponse(BaseModel):
    items: list[EmailRead]
    total: int


class EventListResponse(BaseModel):
    items: list[EventRead]
    total: int


class TagRequest(BaseModel):
    """Entities to attach; omitted ids are cleared."""

    household_id: UUID | None = None
    account_id: UUID | None = None
    person_id: UUID | None = None


class BulkTagRequest(TagRequest):
    email_ids: list[UUID] = Field(min_length=1, max_length=500)


class BulkTagResponse(BaseModel):
    tagged: int


# =============================================================================
# Matching rules
# =============================================================================


class MatchingRuleCreate(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    description: str | None = None
    rule_type: MatchRuleType
    pattern: str = Field(min_length=1, max_length=500)
    entity_type: MatchEntityType
    entity_id: UUID
    priority: int = Field(default=100, ge=0)
    is_active: bool = True

    model_config = {"use_enum_values": True}


class MatchingRuleUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=100)
    description: str | None = None
    rule_type: MatchRuleType | None = None
    pattern: str | None = Field(default=None, min_length=1, max_length=500)
    entity_type: MatchEntityType | None = None
    entity_id: UUID | None = None
    priority: int | None = Field(default=None, ge=0)
    is_active: bool | None = None

    model_config = {"use_enum_values": True}

    check_not_null = reject_null(
        "name",
        "rule_type",
        "pattern",
        "entity_type",
        "entity_id",
        "priority",
        "is_active",
    )


class MatchingRuleRead(BaseModel):
    id: UUID
    name: str
    description: str | None
    rule_type: str
    pattern: str
    entity_type: str
    entity_id: UUID
    priority: int
    is_active: bool
    created_by_user_id: UUID | None
    created_at: datetime

    model_config = {"from_attributes": True}


class ApplyRulesResponse(BaseModel):
    emails_tagged: int
    events_tagged: int
    rules_evaluated: int


class SyncResult(BaseModel):
    emails: dict[str, Any] | None = None
    calendar: dict[str, Any] | None = None
