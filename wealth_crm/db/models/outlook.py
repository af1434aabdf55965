"""SQLAlchemy ORM models for the Outlook (Microsoft Graph) integration."""

from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import (
    Boolean,
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


class OutlookConnection(Base):
    """
    Per-user OAuth connection to a Microsoft 365 mailbox.

    Tokens are stored Fernet-encrypted.
    """

    __tablename__ = "outlook_connections"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), unique=True, nullable=False
    )
    email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    access_token_encrypted: Mapped[str | None] = mapped_column(Text, nullable=True)
    refresh_token_encrypted: Mapped[str | None] = mapped_column(Text, nullable=True)
    token_expires_at: Mapped[datetime | None] = mapped_column(nullable=True)
    status: Mapped[str] = mapped_column(
        String(20), default="pending", server_default=text("'pending'"), nullable=False
    )

    sync_emails: Mapped[bool] = mapped_column(
        Boolean, default=True, server_default=text("TRUE"), nullable=False
    )
    sync_calendar: Mapped[bool] = mapped_column(
        Boolean, default=True, server_default=text("TRUE"), nullable=False
    )
    auto_tag_emails: Mapped[bool] = mapped_column(
        Boolean, default=True, server_default=text("TRUE"), nullable=False
    )
    skip_private_events: Mapped[bool] = mapped_column(
        Boolean, default=True, server_default=text("TRUE"), nullable=False
    )
    skip_all_day_events: Mapped[bool] = mapped_column(
        Boolean, default=False, server_default=text("FALSE"), nullable=False
    )
    # Folder ids to sync; empty means every folder
    email_folders: Mapped[list] = mapped_column(JSONType, default=list, nullable=False)

    last_email_sync_at: Mapped[datetime | None] = mapped_column(nullable=True)
    last_calendar_sync_at: Mapped[datetime | None] = mapped_column(nullable=True)
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(server_default=func.now(), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        server_default=func.now(), onupdate=func.now(), nullable=False
    )


class OutlookEmail(Base):
    """A synced mail message, optionally tagged to a household/account/person."""

    __tablename__ = "outlook_emails"
    __table_args__ = (
        UniqueConstraint("connection_id", "outlook_message_id", name="uq_outlook_email_message"),
        Index("idx_outlook_emails_household", "household_id"),
        Index("idx_outlook_emails_received", "received_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    connection_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("outlook_connections.id", ondelete="CASCADE"), nullable=False
    )
    outlook_message_id: Mapped[str] = mapped_column(String(255), nullable=False)
    conversation_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    internet_message_id: Mapped[str | None] = mapped_column(String(500), nullable=True)
    subject: Mapped[str | None] = mapped_column(Text, nullable=True)
    body_preview: Mapped[str | None] = mapped_column(Text, nullable=True)
    from_address: Mapped[str | None] = mapped_column(String(255), nullable=True)
    from_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    # [{"address", "name"}]
    to_recipients: Mapped[list] = mapped_column(JSONType, default=list, nullable=False)
    cc_recipients: Mapped[list] = mapped_column(JSONType, default=list, nullable=False)
    bcc_recipients: Mapped[list] = mapped_column(JSONType, default=list, nullable=False)
    received_at: Mapped[datetime | None] = mapped_column(nullable=True)
    sent_at: Mapped[datetime | None] = mapped_column(nullable=True)
    is_read: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    is_draft: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    has_attachments: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    importance: Mapped[str | None] = mapped_column(String(20), nullable=True)
    folder_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    categories: Mapped[list] = mapped_column(JSONType, default=list, nullable=False)

    household_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, nullable=True)
    account_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, nullable=True)
    person_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, nullable=True)
    match_metadata: Mapped[dict | None] = mapped_column(JSONType, nullable=True)
    manually_tagged: Mapped[bool] = mapped_column(
        Boolean, default=False, server_default=text("FALSE"), nullable=False
    )
    is_archived: Mapped[bool] = mapped_column(
        Boolean, default=False, server_default=text("FALSE"), nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(server_default=func.now(), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        server_default=func.now(), onupdate=func.now(), nullable=False
    )

    connection: Mapped[OutlookConnection] = relationship()


class OutlookEvent(Base):
    """A synced calendar event, optionally tagged to a household/account/person."""

    __tablename__ = "outlook_events"
    __table_args__ = (
        UniqueConstraint("connection_id", "outlook_event_id", name="uq_outlook_event"),
        Index("idx_outlook_events_household", "household_id"),
        Index("idx_outlook_events_start", "start_time"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    connection_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("outlook_connections.id", ondelete="CASCADE"), nullable=False
    )
    outlook_event_id: Mapped[str] = mapped_column(String(255), nullable=False)
    ical_uid: Mapped[str | None] = mapped_column(String(255), nullable=True)
    subject: Mapped[str | None] = mapped_column(Text, nullable=True)
    body_preview: Mapped[str | None] = mapped_column(Text, nullable=True)
    location: Mapped[str | None] = mapped_column(String(500), nullable=True)
    start_time: Mapped[datetime | None] = mapped_column(nullable=True)
    end_time: Mapped[datetime | None] = mapped_column(nullable=True)
    is_all_day: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    is_cancelled: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    is_online_meeting: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    online_meeting_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    organizer_email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    organizer_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    # [{"address", "name", "response"}]
    attendees: Mapped[list] = mapped_column(JSONType, default=list, nullable=False)
    sensitivity: Mapped[str | None] = mapped_column(String(20), nullable=True)
    show_as: Mapped[str | None] = mapped_column(String(20), nullable=True)
    categories: Mapped[list] = mapped_column(JSONType, default=list, nullable=False)

    household_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, nullable=True)
    account_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, nullable=True)
    person_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, nullable=True)
    match_metadata: Mapped[dict | None] = mapped_column(JSONType, nullable=True)
    manually_tagged: Mapped[bool] = mapped_column(
        Boolean, default=False, server_default=text("FALSE"), nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(server_default=func.now(), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        server_default=func.now(), onupdate=func.now(), nullable=False
    )

    connection: Mapped[OutlookConnection] = relationship()


class OutlookMatchingRule(Base):
    """
    Rule that auto-tags synced mail to a household, account or person.

    Rules are evaluated in ascending ``priority``; the first match wins.
    """

    __tablename__ = "outlook_matching_rules"
    __table_args__ = (
        Index("idx_outlook_rules_active_priority", "is_active", "priority"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    rule_type: Mapped[str] = mapped_column(String(30), nullable=False)
    pattern: Mapped[str] = mapped_column(String(500), nullable=False)
    entity_type: Mapped[str] = mapped_column(String(20), nullable=False)
    entity_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    priority: Mapped[int] = mapped_column(Integer, default=100, server_default=text("100"), nullable=False)
    is_active: Mapped[bool] = mapped_column(
        Boolean, default=True, server_default=text("TRUE"), nullable=False
    )
    created_by_user_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(server_default=func.now(), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        server_default=func.now(), onupdate=func.now(), nullable=False
    )
