"""Outlook integration service: OAuth connection, Graph sync, tagging and matching rules."""

import logging
from datetime import datetime, timedelta, timezone
from typing import Any
from uuid import UUID

import httpx
from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from wealth_crm.core.config import settings
from wealth_crm.core.encryption import decrypt_token, encrypt_token
from wealth_crm.core.exceptions import ValidationError
from wealth_crm.core.security import create_oauth_state, verify_oauth_state
from wealth_crm.db.enums import OutlookConnectionStatus, OutlookSyncKind
from wealth_crm.db.models import (
    OutlookConnection,
    OutlookEmail,
    OutlookEvent,
    OutlookMatchingRule,
)
from wealth_crm.services import graph_client
from wealth_crm.services.graph_client import GraphAPIError, parse_graph_datetime
from wealth_crm.services.outlook_matching import (
    apply_rule_match,
    email_addresses,
    event_addresses,
    find_matching_rule,
    normalize_address,
    validate_rule_pattern,
)


logger = logging.getLogger(__name__)

TOKEN_REFRESH_MARGIN = timedelta(minutes=5)
APPLY_RULES_BATCH = 500
ENTITY_FIELDS = ("household_id", "account_id", "person_id")

# (user_id, kind) pairs with a sync currently running on this process
_sync_in_progress: set[tuple[UUID, str]] = set()


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(value: datetime | None) -> datetime | None:
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def is_sync_in_progress(user_id: UUID, kind: OutlookSyncKind | None = None) -> bool:
    kinds = [kind] if kind else list(OutlookSyncKind)
    return any((user_id, k.value) in _sync_in_progress for k in kinds)


# =============================================================================
# Connection lifecycle
# =============================================================================


def get_connection(db: Session, user_id: UUID) -> OutlookConnection | None:
    return db.query(OutlookConnection).filter(OutlookConnection.user_id == user_id).first()


def get_active_connection(db: Session, user_id: UUID) -> OutlookConnection:
    """
    Connection usable for sync.

    Raises:
        ValidationError: no connection, or it was disconnected
    """
    connection = get_connection(db, user_id)
    if not connection or not connection.refresh_token_encrypted:
        raise ValidationError("Outlook is not connected")
    if connection.status == OutlookConnectionStatus.DISCONNECTED.value:
        raise ValidationError("Outlook is not connected")
    return connection


def begin_connect(user_id: UUID) -> dict[str, str]:
    if not settings.outlook_configured:
        raise ValidationError("Outlook integration is not configured")
    state = create_oauth_state(user_id)
    return {"authorization_url": graph_client.get_authorize_url(state), "state": state}


def _store_tokens(connection: OutlookConnection, tokens: dict[str, Any]) -> None:
    connection.access_token_encrypted = encrypt_token(tokens["access_token"])
    if tokens.get("refresh_token"):
        connection.refresh_token_encrypted = encrypt_token(tokens["refresh_token"])
    connection.token_expires_at = _now() + timedelta(seconds=int(tokens.get("expires_in", 3600)))


async def complete_connect(
    db: Session,
    user_id: UUID,
    code: str,
    state: str,
    client: httpx.AsyncClient | None = None,
) -> OutlookConnection:
    """
    Finish the OAuth flow: verify state, exchange the code, store encrypted tokens.

    Raises:
        ValidationError: state mismatch/expired, or Microsoft rejected the code
    """
    if not verify_oauth_state(state, user_id):
        raise ValidationError("Invalid or expired OAuth state")

    try:
        tokens = await graph_client.exchange_code(code, client=client)
        profile = await graph_client.get_me(tokens["access_token"], client=client)
    except GraphAPIError as e:
        raise ValidationError("Failed to connect Outlook account") from e

    connection = get_connection(db, user_id)
    if not connection:
        connection = OutlookConnection(user_id=user_id)
        db.add(connection)

    _store_tokens(connection, tokens)
    connection.email = profile.get("mail") or profile.get("userPrincipalName")
    connection.status = OutlookConnectionStatus.ACTIVE.value
    connection.error_message = None
    db.commit()
    db.refresh(connection)
    logger.info("Outlook connected", extra={"user_id": str(user_id)})
    return connection


def update_connection(db: Session, connection: OutlookConnection, changes: dict[str, Any]) -> OutlookConnection:
    for key, value in changes.items():
        setattr(connection, key, value)
    db.commit()
    db.refresh(connection)
    return connection


def disconnect(db: Session, connection: OutlookConnection) -> None:
    """Drop stored tokens; synced mail and events are kept."""
    connection.access_token_encrypted = None
    connection.refresh_token_encrypted = None
    connection.token_expires_at = None
    connection.status = OutlookConnectionStatus.DISCONNECTED.value
    db.commit()
    logger.info("Outlook disconnected", extra={"user_id": str(connection.user_id)})


async def get_access_token(
    db: Session,
    connection: OutlookConnection,
    client: httpx.AsyncClient | None = None,
) -> str:
    """Decrypted access token, refreshed when close to expiry."""
    expires_at = _as_utc(connection.token_expires_at)
    if connection.access_token_encrypted and expires_at and expires_at - TOKEN_REFRESH_MARGIN > _now():
        return decrypt_token(connection.access_token_encrypted)

    try:
        tokens = await graph_client.refresh_access_token(
            decrypt_token(connection.refresh_token_encrypted), client=client
        )
    except GraphAPIError as e:
        logger.error(
            "Outlook token refresh failed",
            extra={"user_id": str(connection.user_id), "error": str(e)},
        )
        connection.status = OutlookConnectionStatus.ERROR.value
        connection.error_message = "Authorization expired. Reconnect Outlook."
        db.commit()
        raise ValidationError("Outlook authorization expired. Reconnect Outlook.") from e

    _store_tokens(connection, tokens)
    db.commit()
    return tokens["access_token"]


# =============================================================================
# Graph payload mapping
# =============================================================================


def _address(entry: dict[str, Any] | None) -> dict[str, Any]:
    email_address = (entry or {}).get("emailAddress") or {}
    return {
        "address": normalize_address(email_address.get("address")) or None,
        "name": email_address.get("name"),
    }


def _recipients(entries: list[dict[str, Any]] | None) -> list[dict[str, Any]]:
    return [_address(entry) for entry in entries or []]


def message_fields(message: dict[str, Any]) -> dict[str, Any]:
    sender = _address(message.get("from"))
    return {
        "conversation_id": message.get("conversationId"),
        "internet_message_id": message.get("internetMessageId"),
        "subject": message.get("subject"),
        "body_preview": message.get("bodyPreview"),
        "from_address": sender["address"],
        "from_name": sender["name"],
        "to_recipients": _recipients(message.get("toRecipients")),
        "cc_recipients": _recipients(message.get("ccRecipients")),
        "bcc_recipients": _recipients(message.get("bccRecipients")),
        "received_at": parse_graph_datetime(message.get("receivedDateTime")),
        "sent_at": parse_graph_datetime(message.get("sentDateTime")),
        "is_read": bool(message.get("isRead")),
        "is_draft": bool(message.get("isDraft")),
        "has_attachments": bool(message.get("hasAttachments")),
        "importance": message.get("importance"),
        "folder_id": message.get("parentFolderId"),
        "categories": message.get("categories") or [],
    }


def event_fields(event: dict[str, Any]) -> dict[str, Any]:
    organizer = _address(event.get("organizer"))
    start = event.get("start") or {}
    end = event.get("end") or {}
    attendees = []
    for attendee in event.get("attendees") or []:
        entry = _address(attendee)
        entry["response"] = (attendee.get("status") or {}).get("response")
        attendees.append(entry)
    return {
        "ical_uid": event.get("iCalUId"),
        "subject": event.get("subject"),
        "body_preview": event.get("bodyPreview"),
        "location": (event.get("location") or {}).get("displayName"),
        "start_time": parse_graph_datetime(start.get("dateTime"), start.get("timeZone")),
        "end_time": parse_graph_datetime(end.get("dateTime"), end.get("timeZone")),
        "is_all_day": bool(event.get("isAllDay")),
        "is_cancelled": bool(event.get("isCancelled")),
        "is_online_meeting": bool(event.get("isOnlineMeeting")),
        "online_meeting_url": (event.get("onlineMeeting") or {}).get("joinUrl"),
        "organizer_email": organizer["address"],
        "organizer_name": organizer["name"],
        "attendees": attendees,
        "sensitivity": event.get("sensitivity"),
        "show_as": event.get("showAs"),
        "categories": event.get("categories") or [],
    }


def should_skip_event(connection: OutlookConnection, event: dict[str, Any]) -> bool:
    if connection.skip_private_events and event.get("sensitivity") in ("private", "confidential"):
        return True
    if connection.skip_all_day_events and event.get("isAllDay"):
        return True
    return False


def upsert_email(db: Session, connection: OutlookConnection, message: dict[str, Any]) -> tuple[OutlookEmail, bool]:
    """Insert or refresh one message by Graph id. Tags are never overwritten here."""
    row = (
        db.query(OutlookEmail)
        .filter(
            OutlookEmail.connection_id == connection.id,
            OutlookEmail.outlook_message_id == message["id"],
        )
        .first()
    )
    created = row is None
    if created:
        row = OutlookEmail(connection_id=connection.id, outlook_message_id=message["id"])
        db.add(row)
    for key, value in message_fields(message).items():
        setattr(row, key, value)
    return row, created


def upsert_event(db: Session, connection: OutlookConnection, event: dict[str, Any]) -> tuple[OutlookEvent, bool]:
    row = (
        db.query(OutlookEvent)
        .filter(
            OutlookEvent.connection_id == connection.id,
            OutlookEvent.outlook_event_id == event["id"],
        )
        .first()
    )
    created = row is None
    if created:
        row = OutlookEvent(connection_id=connection.id, outlook_event_id=event["id"])
        db.add(row)
    for key, value in event_fields(event).items():
        setattr(row, key, value)
    return row, created


def _is_untagged(item) -> bool:
    return not item.manually_tagged and all(getattr(item, field) is None for field in ENTITY_FIELDS)


def _active_rules(db: Session) -> list[OutlookMatchingRule]:
    return (
        db.query(OutlookMatchingRule)
        .filter(OutlookMatchingRule.is_active.is_(True))
        .order_by(OutlookMatchingRule.priority.asc(), OutlookMatchingRule.created_at.asc())
        .all()
    )


# =============================================================================
# Sync
# =============================================================================


def _record_sync_failure(db: Session, connection: OutlookConnection, error: Exception) -> None:
    db.rollback()
    connection.error_message = str(error)[:1000]
    if isinstance(error, GraphAPIError) and error.is_auth_error:
        connection.status = OutlookConnectionStatus.ERROR.value
    db.commit()


async def sync_emails(
    db: Session,
    connection: OutlookConnection,
    client: httpx.AsyncClient | None = None,
) -> dict[str, Any]:
    """Pull recent mail into ``outlook_emails`` and auto-tag new untagged rows."""
    key = (connection.user_id, OutlookSyncKind.EMAILS.value)
    if key in _sync_in_progress:
        logger.info("Email sync already running, skipping", extra={"user_id": str(connection.user_id)})
        return {"skipped": True}
    _sync_in_progress.add(key)
    try:
        access_token = await get_access_token(db, connection, client=client)
        window_start = _now() - timedelta(days=settings.OUTLOOK_EMAIL_DAYS)
        since = max(_as_utc(connection.last_email_sync_at) or window_start, window_start)

        messages: list[dict[str, Any]] = []
        for folder_id in connection.email_folders or [None]:
            messages.extend(
                await graph_client.list_messages(access_token, since, folder_id=folder_id, client=client)
            )

        rules = _active_rules(db) if connection.auto_tag_emails else []
        created = updated = auto_tagged = 0
        for message in messages:
            row, is_new = upsert_email(db, connection, message)
            if is_new:
                created += 1
            else:
                updated += 1
            if rules and _is_untagged(row):
                rule = find_matching_rule(rules, email_addresses(row), row.subject)
                if rule:
                    apply_rule_match(row, rule)
                    auto_tagged += 1

        connection.last_email_sync_at = _now()
        connection.error_message = None
        if connection.status == OutlookConnectionStatus.ERROR.value:
            connection.status = OutlookConnectionStatus.ACTIVE.value
        db.commit()
    except (GraphAPIError, ValidationError) as e:
        logger.error("Email sync failed", extra={"user_id": str(connection.user_id), "error": str(e)})
        _record_sync_failure(db, connection, e)
        raise ValidationError(f"Email sync failed: {e}") from e
    finally:
        _sync_in_progress.discard(key)

    logger.info(
        "Email sync complete",
        extra={
            "user_id": str(connection.user_id),
            "emails_created": created,
            "emails_updated": updated,
            "emails_auto_tagged": auto_tagged,
        },
    )
    return {"synced": len(messages), "created": created, "updated": updated, "auto_tagged": auto_tagged}


async def sync_calendar(
    db: Session,
    connection: OutlookConnection,
    client: httpx.AsyncClient | None = None,
) -> dict[str, Any]:
    """Pull the calendar view window into ``outlook_events``."""
    key = (connection.user_id, OutlookSyncKind.CALENDAR.value)
    if key in _sync_in_progress:
        logger.info("Calendar sync already running, skipping", extra={"user_id": str(connection.user_id)})
        return {"skipped": True}
    _sync_in_progress.add(key)
    try:
        access_token = await get_access_token(db, connection, client=client)
        now = _now()
        events = await graph_client.list_calendar_view(
            access_token,
            now - timedelta(days=settings.OUTLOOK_CALENDAR_DAYS_BEHIND),
            now + timedelta(days=settings.OUTLOOK_CALENDAR_DAYS_AHEAD),
            client=client,
        )

        rules = _active_rules(db) if connection.auto_tag_emails else []
        created = updated = skipped = auto_tagged = 0
        for event in events:
            if should_skip_event(connection, event):
                skipped += 1
                continue
            row, is_new = upsert_event(db, connection, event)
            if is_new:
                created += 1
            else:
                updated += 1
            if rules and _is_untagged(row):
                rule = find_matching_rule(rules, event_addresses(row), row.subject)
                if rule:
                    apply_rule_match(row, rule)
                    auto_tagged += 1

        connection.last_calendar_sync_at = _now()
        connection.error_message = None
        if connection.status == OutlookConnectionStatus.ERROR.value:
            connection.status = OutlookConnectionStatus.ACTIVE.value
        db.commit()
    except (GraphAPIError, ValidationError) as e:
        logger.error("Calendar sync failed", extra={"user_id": str(connection.user_id), "error": str(e)})
        _record_sync_failure(db, connection, e)
        raise ValidationError(f"Calendar sync failed: {e}") from e
    finally:
        _sync_in_progress.discard(key)

    logger.info(
        "Calendar sync complete",
        extra={
            "user_id": str(connection.user_id),
            "events_created": created,
            "events_updated": updated,
            "events_skipped": skipped,
        },
    )
    return {
        "synced": created + updated,
        "created": created,
        "updated": updated,
        "skipped": skipped,
        "auto_tagged": auto_tagged,
    }


async def sync_outlook(
    db: Session,
    user_id: UUID,
    kinds: list[OutlookSyncKind] | None = None,
    client: httpx.AsyncClient | None = None,
) -> dict[str, Any]:
    """Run the requested syncs honoring the connection's sync toggles."""
    connection = get_active_connection(db, user_id)
    kinds = kinds or list(OutlookSyncKind)
    result: dict[str, Any] = {}
    if OutlookSyncKind.EMAILS in kinds and connection.sync_emails:
        result["emails"] = await sync_emails(db, connection, client=client)
    if OutlookSyncKind.CALENDAR in kinds and connection.sync_calendar:
        result["calendar"] = await sync_calendar(db, connection, client=client)
    return result


def get_sync_status(db: Session, user_id: UUID) -> dict[str, Any]:
    connection = get_connection(db, user_id)
    if not connection:
        return {
            "connected": False,
            "status": None,
            "email": None,
            "last_email_sync_at": None,
            "last_calendar_sync_at": None,
            "error_message": None,
            "total_emails": 0,
            "untagged_emails": 0,
            "total_events": 0,
            "untagged_events": 0,
            "sync_in_progress": False,
        }

    def _counts(model) -> tuple[int, int]:
        base = db.query(func.count(model.id)).filter(model.connection_id == connection.id)
        total = base.scalar() or 0
        untagged = (
            base.filter(
                model.household_id.is_(None),
                model.account_id.is_(None),
                model.person_id.is_(None),
            ).scalar()
            or 0
        )
        return total, untagged

    total_emails, untagged_emails = _counts(OutlookEmail)
    total_events, untagged_events = _counts(OutlookEvent)
    return {
        "connected": connection.status == OutlookConnectionStatus.ACTIVE.value,
        "status": connection.status,
        "email": connection.email,
        "last_email_sync_at": connection.last_email_sync_at,
        "last_calendar_sync_at": connection.last_calendar_sync_at,
        "error_message": connection.error_message,
        "total_emails": total_emails,
        "untagged_emails": untagged_emails,
        "total_events": total_events,
        "untagged_events": untagged_events,
        "sync_in_progress": is_sync_in_progress(user_id),
    }


# =============================================================================
# Emails & events
# =============================================================================


def _apply_item_filters(query, model, household_id, account_id, person_id, untagged_only, search):
    if household_id:
        query = query.filter(model.household_id == household_id)
    if account_id:
        query = query.filter(model.account_id == account_id)
    if person_id:
        query = query.filter(model.person_id == person_id)
    if untagged_only:
        query = query.filter(
            model.household_id.is_(None),
            model.account_id.is_(None),
            model.person_id.is_(None),
        )
    if search:
        pattern = f"%{search}%"
        columns = [model.subject, model.body_preview]
        columns.append(model.from_address if model is OutlookEmail else model.organizer_email)
        query = query.filter(or_(*[column.ilike(pattern) for column in columns]))
    return query


def list_emails(
    db: Session,
    user_id: UUID | None = None,
    household_id: UUID | None = None,
    account_id: UUID | None = None,
    person_id: UUID | None = None,
    untagged_only: bool = False,
    search: str | None = None,
    include_archived: bool = False,
    limit: int = 50,
    offset: int = 0,
) -> tuple[list[OutlookEmail], int]:
    """
    Emails newest first with total count.

    ``user_id`` scopes to the caller's mailbox; household lookups pass None
    to see mail from every connected advisor.
    """
    query = db.query(OutlookEmail)
    if user_id:
        query = query.join(OutlookConnection).filter(OutlookConnection.user_id == user_id)
    if not include_archived:
        query = query.filter(OutlookEmail.is_archived.is_(False))
    query = _apply_item_filters(query, OutlookEmail, household_id, account_id, person_id, untagged_only, search)
    total = query.count()
    items = (
        query.order_by(OutlookEmail.received_at.desc().nulls_last(), OutlookEmail.id)
        .offset(offset)
        .limit(limit)
        .all()
    )
    return items, total


def list_events(
    db: Session,
    user_id: UUID | None = None,
    household_id: UUID | None = None,
    account_id: UUID | None = None,
    person_id: UUID | None = None,
    untagged_only: bool = False,
    search: str | None = None,
    start: datetime | None = None,
    end: datetime | None = None,
    limit: int = 50,
    offset: int = 0,
) -> tuple[list[OutlookEvent], int]:
    query = db.query(OutlookEvent)
    if user_id:
        query = query.join(OutlookConnection).filter(OutlookConnection.user_id == user_id)
    if start:
        query = query.filter(OutlookEvent.start_time >= start)
    if end:
        query = query.filter(OutlookEvent.start_time <= end)
    query = _apply_item_filters(query, OutlookEvent, household_id, account_id, person_id, untagged_only, search)
    total = query.count()
    items = (
        query.order_by(OutlookEvent.start_time.desc().nulls_last(), OutlookEvent.id)
        .offset(offset)
        .limit(limit)
        .all()
    )
    return items, total


def get_email(db: Session, user_id: UUID, email_id: UUID) -> OutlookEmail | None:
    return (
        db.query(OutlookEmail)
        .join(OutlookConnection)
        .filter(OutlookEmail.id == email_id, OutlookConnection.user_id == user_id)
        .first()
    )


def get_event(db: Session, user_id: UUID, event_id: UUID) -> OutlookEvent | None:
    return (
        db.query(OutlookEvent)
        .join(OutlookConnection)
        .filter(OutlookEvent.id == event_id, OutlookConnection.user_id == user_id)
        .first()
    )


def _tag_item(item, user_id: UUID, entities: dict[str, UUID | None]) -> None:
    for field in ENTITY_FIELDS:
        setattr(item, field, entities.get(field))
    item.manually_tagged = True
    item.match_metadata = {
        "matched_by": "manual",
        "tagged_by": str(user_id),
        "tagged_at": _now().isoformat(),
    }


def tag_item(db: Session, item, user_id: UUID, entities: dict[str, UUID | None]):
    """Manually tag (or untag) an email or event; rules will not touch it afterwards."""
    _tag_item(item, user_id, entities)
    db.commit()
    db.refresh(item)
    return item


def bulk_tag_emails(
    db: Session,
    user_id: UUID,
    email_ids: list[UUID],
    entities: dict[str, UUID | None],
) -> int:
    emails = (
        db.query(OutlookEmail)
        .join(OutlookConnection)
        .filter(OutlookEmail.id.in_(email_ids), OutlookConnection.user_id == user_id)
        .all()
    )
    for email in emails:
        _tag_item(email, user_id, entities)
    db.commit()
    return len(emails)


# =============================================================================
# Matching rules
# =============================================================================


def list_rules(db: Session, include_inactive: bool = False) -> list[OutlookMatchingRule]:
    query = db.query(OutlookMatchingRule)
    if not include_inactive:
        query = query.filter(OutlookMatchingRule.is_active.is_(True))
    return query.order_by(OutlookMatchingRule.priority.asc(), OutlookMatchingRule.created_at.asc()).all()


def get_rule(db: Session, rule_id: UUID) -> OutlookMatchingRule | None:
    return db.query(OutlookMatchingRule).filter(OutlookMatchingRule.id == rule_id).first()


def create_rule(db: Session, user_id: UUID, data: dict[str, Any]) -> OutlookMatchingRule:
    data = dict(data)
    data["pattern"] = validate_rule_pattern(data["rule_type"], data["pattern"])
    rule = OutlookMatchingRule(**data, created_by_user_id=user_id)
    db.add(rule)
    db.commit()
    db.refresh(rule)
    logger.info("Outlook matching rule created", extra={"rule_id": str(rule.id), "rule_type": rule.rule_type})
    return rule


def update_rule(db: Session, rule: OutlookMatchingRule, changes: dict[str, Any]) -> OutlookMatchingRule:
    if "pattern" in changes or "rule_type" in changes:
        rule_type = changes.get("rule_type", rule.rule_type)
        changes["pattern"] = validate_rule_pattern(rule_type, changes.get("pattern", rule.pattern))
    for key, value in changes.items():
        setattr(rule, key, value)
    db.commit()
    db.refresh(rule)
    return rule


def delete_rule(db: Session, rule: OutlookMatchingRule) -> None:
    db.delete(rule)
    db.commit()


def apply_matching_rules(db: Session, user_id: UUID | None = None) -> dict[str, int]:
    """
    Run active rules over untagged, non-manual emails and events.

    Processes at most one batch of each per call.
    """
    rules = _active_rules(db)
    if not rules:
        return {"emails_tagged": 0, "events_tagged": 0, "rules_evaluated": 0}

    def _untagged(model):
        query = db.query(model).filter(
            model.manually_tagged.is_(False),
            model.household_id.is_(None),
            model.account_id.is_(None),
            model.person_id.is_(None),
        )
        if user_id:
            query = query.join(OutlookConnection).filter(OutlookConnection.user_id == user_id)
        return query.limit(APPLY_RULES_BATCH).all()

    emails_tagged = 0
    for email in _untagged(OutlookEmail):
        rule = find_matching_rule(rules, email_addresses(email), email.subject)
        if rule:
            apply_rule_match(email, rule)
            emails_tagged += 1

    events_tagged = 0
    for event in _untagged(OutlookEvent):
        rule = find_matching_rule(rules, event_addresses(event), event.subject)
        if rule:
            apply_rule_match(event, rule)
            events_tagged += 1

    db.commit()
    logger.info(
        "Matching rules applied",
        extra={"emails_tagged": emails_tagged, "events_tagged": events_tagged, "rules_evaluated": len(rules)},
    )
    return {"emails_tagged": emails_tagged, "events_tagged": events_tagged, "rules_evaluated": len(rules)}
