"""Tests for the Outlook integration: connection, sync, tagging and matching rules.

Graph calls are replaced with monkeypatched coroutines; nothing leaves the process.
"""

import uuid
from datetime import datetime, timedelta, timezone

import pytest
from httpx import AsyncClient

from wealth_crm.core.encryption import encrypt_token
from wealth_crm.core.exceptions import ValidationError
from wealth_crm.db.models import OutlookConnection, OutlookEmail
from wealth_crm.services import graph_client
from wealth_crm.services.graph_client import GraphAPIError


SMITH_HOUSEHOLD = uuid.uuid4()

MESSAGES = [
    {
        "id": "msg-1",
        "conversationId": "conv-1",
        "subject": "Q3 rebalancing",
        "bodyPreview": "Following up on our call",
        "from": {"emailAddress": {"address": "Jane@SmithFamily.com", "name": "Jane Smith"}},
        "toRecipients": [{"emailAddress": {"address": "advisor@firm.test", "name": "Advisor"}}],
        "receivedDateTime": "2024-06-15T14:30:00Z",
        "isRead": True,
    },
    {
        "id": "msg-2",
        "subject": "Newsletter",
        "from": {"emailAddress": {"address": "news@vendor.com", "name": "Vendor"}},
        "receivedDateTime": "2024-06-14T09:00:00Z",
    },
]

EVENTS = [
    {
        "id": "evt-1",
        "subject": "Annual review",
        "start": {"dateTime": "2024-06-20T15:00:00.0000000", "timeZone": "UTC"},
        "end": {"dateTime": "2024-06-20T16:00:00.0000000", "timeZone": "UTC"},
        "organizer": {"emailAddress": {"address": "advisor@firm.test", "name": "Advisor"}},
        "attendees": [
            {
                "emailAddress": {"address": "jane@smithfamily.com", "name": "Jane Smith"},
                "status": {"response": "accepted"},
            }
        ],
        "sensitivity": "normal",
    },
    {
        "id": "evt-2",
        "subject": "Doctor",
        "start": {"dateTime": "2024-06-21T15:00:00.0000000", "timeZone": "UTC"},
        "end": {"dateTime": "2024-06-21T16:00:00.0000000", "timeZone": "UTC"},
        "sensitivity": "private",
    },
]


def _connect(db, user, expires_in: timedelta = timedelta(hours=1), **overrides) -> OutlookConnection:
    connection = OutlookConnection(
        user_id=user.id,
        email=user.email,
        access_token_encrypted=encrypt_token("access-1"),
        refresh_token_encrypted=encrypt_token("refresh-1"),
        token_expires_at=datetime.now(timezone.utc) + expires_in,
        status="active",
        **overrides,
    )
    db.add(connection)
    db.commit()
    db.refresh(connection)
    return connection


def _email_row(db, connection, message_id: str, from_address: str, **overrides) -> OutlookEmail:
    email = OutlookEmail(
        connection_id=connection.id,
        outlook_message_id=message_id,
        subject=f"Subject {message_id}",
        from_address=from_address,
        received_at=datetime(2024, 6, 1, tzinfo=timezone.utc),
        **overrides,
    )
    db.add(email)
    db.commit()
    db.refresh(email)
    return email


@pytest.fixture
def fake_graph(monkeypatch):
    """Serve MESSAGES and EVENTS; records the access tokens used."""
    calls = {"tokens": []}

    async def list_messages(access_token, since, folder_id=None, client=None):
        calls["tokens"].append(access_token)
        calls["since"] = since
        return MESSAGES

    async def list_calendar_view(access_token, start, end, client=None):
        return EVENTS

    monkeypatch.setattr(graph_client, "list_messages", list_messages)
    monkeypatch.setattr(graph_client, "list_calendar_view", list_calendar_view)
    return calls


# =============================================================================
# Connection
# =============================================================================


@pytest.mark.asyncio
async def test_connect_flow(advisor_client: AsyncClient, monkeypatch):
    async def exchange_code(code, client=None):
        assert code == "auth-code"
        return {"access_token": "access-1", "refresh_token": "refresh-1", "expires_in": 3600}

    async def get_me(access_token, client=None):
        return {"mail": None, "userPrincipalName": "advisor@firm.onmicrosoft.com"}

    monkeypatch.setattr(graph_client, "exchange_code", exchange_code)
    monkeypatch.setattr(graph_client, "get_me", get_me)

    missing = await advisor_client.get("/integrations/outlook/connection")
    assert missing.status_code == 404

    start = await advisor_client.post("/integrations/outlook/connect")
    assert start.status_code == 200, start.text
    assert "login.microsoftonline.com" in start.json()["authorization_url"]

    callback = await advisor_client.post(
        "/integrations/outlook/callback", json={"code": "auth-code", "state": start.json()["state"]}
    )
    assert callback.status_code == 200, callback.text
    assert callback.json()["status"] == "active"
    assert callback.json()["email"] == "advisor@firm.onmicrosoft.com"
    assert "access_token_encrypted" not in callback.json()

    patch = await advisor_client.patch("/integrations/outlook/connection", json={"sync_calendar": False})
    assert patch.status_code == 200, patch.text
    assert patch.json()["sync_calendar"] is False

    status = await advisor_client.get("/integrations/outlook/sync/status")
    assert status.json()["connected"] is True

    delete = await advisor_client.delete("/integrations/outlook/connection")
    assert delete.status_code == 204, delete.text

    status = await advisor_client.get("/integrations/outlook/sync/status")
    assert status.json()["connected"] is False
    assert status.json()["status"] == "disconnected"

    sync = await advisor_client.post("/integrations/outlook/sync")
    assert sync.status_code == 400
    assert sync.json()["detail"] == "Outlook is not connected"


@pytest.mark.asyncio
async def test_callback_rejects_foreign_state(advisor_client: AsyncClient, manager_client: AsyncClient):
    state = (await manager_client.post("/integrations/outlook/connect")).json()["state"]

    resp = await advisor_client.post("/integrations/outlook/callback", json={"code": "x", "state": state})
    assert resp.status_code == 400
    assert resp.json()["detail"] == "Invalid or expired OAuth state"


@pytest.mark.asyncio
async def test_connect_requires_configuration(advisor_client: AsyncClient, monkeypatch):
    from wealth_crm.core.config import settings

    monkeypatch.setattr(settings, "MICROSOFT_CLIENT_ID", "")
    resp = await advisor_client.post("/integrations/outlook/connect")
    assert resp.status_code == 400
    assert resp.json()["detail"] == "Outlook integration is not configured"


@pytest.mark.asyncio
async def test_status_without_connection(advisor_client: AsyncClient):
    resp = await advisor_client.get("/integrations/outlook/sync/status")
    assert resp.status_code == 200, resp.text
    assert resp.json()["connected"] is False
    assert resp.json()["total_emails"] == 0


# =============================================================================
# Sync
# =============================================================================


@pytest.mark.asyncio
async def test_sync_stores_and_auto_tags(
    db, advisor_user, manager_client: AsyncClient, advisor_client: AsyncClient, fake_graph
):
    _connect(db, advisor_user)
    rule = await manager_client.post(
        "/integrations/outlook/rules",
        json={
            "name": "Smith family domain",
            "rule_type": "email_domain",
            "pattern": "@SmithFamily.com",
            "entity_type": "household",
            "entity_id": str(SMITH_HOUSEHOLD),
        },
    )
    assert rule.status_code == 201, rule.text
    assert rule.json()["pattern"] == "smithfamily.com"

    sync = await advisor_client.post("/integrations/outlook/sync", json={})
    assert sync.status_code == 200, sync.text
    assert sync.json()["emails"] == {"synced": 2, "created": 2, "updated": 0, "auto_tagged": 1}
    assert sync.json()["calendar"] == {"synced": 1, "created": 1, "updated": 0, "skipped": 1, "auto_tagged": 1}
    assert fake_graph["tokens"] == ["access-1"]

    emails = (await advisor_client.get("/integrations/outlook/emails")).json()
    assert emails["total"] == 2
    # Newest first
    assert [e["subject"] for e in emails["items"]] == ["Q3 rebalancing", "Newsletter"]
    tagged = emails["items"][0]
    assert tagged["from_address"] == "jane@smithfamily.com"
    assert tagged["household_id"] == str(SMITH_HOUSEHOLD)
    assert tagged["match_metadata"]["matched_by"] == "rule"
    assert tagged["manually_tagged"] is False

    untagged = (await advisor_client.get("/integrations/outlook/emails", params={"untagged_only": True})).json()
    assert [e["subject"] for e in untagged["items"]] == ["Newsletter"]

    household = (await manager_client.get(f"/integrations/outlook/households/{SMITH_HOUSEHOLD}/emails")).json()
    assert household["total"] == 1
    events = (await manager_client.get(f"/integrations/outlook/households/{SMITH_HOUSEHOLD}/events")).json()
    assert [e["subject"] for e in events["items"]] == ["Annual review"]
    assert events["items"][0]["attendees"][0]["response"] == "accepted"

    status = (await advisor_client.get("/integrations/outlook/sync/status")).json()
    assert status["total_emails"] == 2
    assert status["untagged_emails"] == 1
    assert status["total_events"] == 1
    assert status["untagged_events"] == 0
    assert status["last_email_sync_at"] is not None


@pytest.mark.asyncio
async def test_resync_keeps_manual_tags(db, advisor_user, advisor_client: AsyncClient, fake_graph):
    _connect(db, advisor_user)
    await advisor_client.post("/integrations/outlook/sync", json={"kinds": ["emails"]})

    emails = (await advisor_client.get("/integrations/outlook/emails")).json()["items"]
    newsletter = next(e for e in emails if e["subject"] == "Newsletter")
    account_id = str(uuid.uuid4())

    tag = await advisor_client.patch(
        f"/integrations/outlook/emails/{newsletter['id']}/tag", json={"account_id": account_id}
    )
    assert tag.status_code == 200, tag.text
    assert tag.json()["account_id"] == account_id
    assert tag.json()["manually_tagged"] is True
    assert tag.json()["match_metadata"]["matched_by"] == "manual"

    again = await advisor_client.post("/integrations/outlook/sync", json={"kinds": ["emails"]})
    assert again.status_code == 200, again.text
    assert again.json()["emails"]["created"] == 0
    assert again.json()["emails"]["updated"] == 2
    assert again.json()["calendar"] is None

    refreshed = (await advisor_client.get(f"/integrations/outlook/emails/{newsletter['id']}")).json()
    assert refreshed["account_id"] == account_id
    assert refreshed["manually_tagged"] is True


@pytest.mark.asyncio
async def test_sync_honors_connection_toggles(db, advisor_user, advisor_client: AsyncClient, fake_graph):
    _connect(db, advisor_user, sync_calendar=False)

    resp = await advisor_client.post("/integrations/outlook/sync")
    assert resp.status_code == 200, resp.text
    assert resp.json()["emails"]["created"] == 2
    assert resp.json()["calendar"] is None


@pytest.mark.asyncio
async def test_expired_token_is_refreshed(db, advisor_user, fake_graph, monkeypatch):
    from wealth_crm.services import outlook_service

    async def refresh_access_token(refresh_token, client=None):
        assert refresh_token == "refresh-1"
        return {"access_token": "access-2", "refresh_token": "refresh-2", "expires_in": 3600}

    monkeypatch.setattr(graph_client, "refresh_access_token", refresh_access_token)
    connection = _connect(db, advisor_user, expires_in=timedelta(minutes=2))

    await outlook_service.sync_emails(db, connection)

    assert fake_graph["tokens"] == ["access-2"]
    db.refresh(connection)
    assert connection.status == "active"


@pytest.mark.asyncio
async def test_refresh_failure_marks_connection_error(db, advisor_user, fake_graph, monkeypatch):
    from wealth_crm.services import outlook_service

    async def refresh_access_token(refresh_token, client=None):
        raise GraphAPIError("Microsoft Graph returned 400", status_code=400)

    monkeypatch.setattr(graph_client, "refresh_access_token", refresh_access_token)
    connection = _connect(db, advisor_user, expires_in=timedelta(minutes=-5))

    with pytest.raises(ValidationError, match="authorization expired"):
        await outlook_service.sync_emails(db, connection)

    db.refresh(connection)
    assert connection.status == "error"
    assert connection.error_message
    assert fake_graph["tokens"] == []


@pytest.mark.asyncio
async def test_graph_failure_is_reported(db, advisor_user, advisor_client: AsyncClient, monkeypatch):
    async def list_messages(access_token, since, folder_id=None, client=None):
        raise GraphAPIError("Microsoft Graph returned 503", status_code=503)

    monkeypatch.setattr(graph_client, "list_messages", list_messages)
    connection = _connect(db, advisor_user)

    resp = await advisor_client.post("/integrations/outlook/sync", json={"kinds": ["emails"]})
    assert resp.status_code == 400
    assert resp.json()["detail"] == "Email sync failed: Microsoft Graph returned 503"

    db.refresh(connection)
    assert connection.status == "active"
    assert connection.error_message == "Microsoft Graph returned 503"


@pytest.mark.asyncio
async def test_sync_window_is_bounded(db, advisor_user, fake_graph):
    from wealth_crm.core.config import settings
    from wealth_crm.services import outlook_service

    connection = _connect(db, advisor_user, last_email_sync_at=datetime(2000, 1, 1, tzinfo=timezone.utc))
    before = datetime.now(timezone.utc)

    await outlook_service.sync_emails(db, connection)

    assert fake_graph["since"] >= before - timedelta(days=settings.OUTLOOK_EMAIL_DAYS, seconds=5)


@pytest.mark.asyncio
async def test_concurrent_sync_is_skipped(db, advisor_user, fake_graph):
    from wealth_crm.services import outlook_service

    connection = _connect(db, advisor_user)
    outlook_service._sync_in_progress.add((advisor_user.id, "emails"))

    assert await outlook_service.sync_emails(db, connection) == {"skipped": True}
    assert fake_graph["tokens"] == []
    assert outlook_service.get_sync_status(db, advisor_user.id)["sync_in_progress"] is True


@pytest.mark.asyncio
async def test_sync_logs_carry_ids_not_addresses(db, advisor_user, fake_graph, caplog):
    import logging

    from wealth_crm.services import outlook_service

    connection = _connect(db, advisor_user)
    with caplog.at_level(logging.INFO, logger="wealth_crm.services.outlook_service"):
        await outlook_service.sync_emails(db, connection)
        await outlook_service.sync_calendar(db, connection)

    records = [r for r in caplog.records if r.name == "wealth_crm.services.outlook_service"]
    assert [r.getMessage() for r in records] == ["Email sync complete", "Calendar sync complete"]
    assert all(r.user_id == str(advisor_user.id) for r in records)
    assert records[0].emails_created == 2
    assert not any(advisor_user.email in r.getMessage() for r in caplog.records)


# =============================================================================
# Emails
# =============================================================================


@pytest.mark.asyncio
async def test_mailboxes_are_private(db, advisor_user, advisor_client: AsyncClient, manager_client: AsyncClient):
    connection = _connect(db, advisor_user)
    email = _email_row(db, connection, "m-1", "jane@smithfamily.com")

    assert (await advisor_client.get(f"/integrations/outlook/emails/{email.id}")).status_code == 200
    assert (await manager_client.get(f"/integrations/outlook/emails/{email.id}")).status_code == 404
    assert (await manager_client.get("/integrations/outlook/emails")).json()["total"] == 0


@pytest.mark.asyncio
async def test_bulk_tag_and_search(db, advisor_user, advisor_client: AsyncClient):
    connection = _connect(db, advisor_user)
    first = _email_row(db, connection, "m-1", "jane@smithfamily.com")
    second = _email_row(db, connection, "m-2", "bob@smithfamily.com")
    _email_row(db, connection, "m-3", "old@smithfamily.com", is_archived=True)

    resp = await advisor_client.post(
        "/integrations/outlook/emails/bulk-tag",
        json={"email_ids": [str(first.id), str(second.id), str(uuid.uuid4())], "household_id": str(SMITH_HOUSEHOLD)},
    )
    assert resp.status_code == 200, resp.text
    assert resp.json() == {"tagged": 2}

    household = (await advisor_client.get("/integrations/outlook/emails", params={"household_id": str(SMITH_HOUSEHOLD)})).json()
    assert household["total"] == 2

    found = (await advisor_client.get("/integrations/outlook/emails", params={"search": "bob@"})).json()
    assert [e["id"] for e in found["items"]] == [str(second.id)]

    archived = (await advisor_client.get("/integrations/outlook/emails", params={"include_archived": True})).json()
    assert archived["total"] == 3


# =============================================================================
# Matching rules
# =============================================================================


@pytest.mark.asyncio
async def test_rule_permissions_and_validation(advisor_client: AsyncClient, manager_client: AsyncClient):
    payload = {
        "name": "Jane",
        "rule_type": "email_address",
        "pattern": "jane@smithfamily.com",
        "entity_type": "person",
        "entity_id": str(uuid.uuid4()),
    }
    forbidden = await advisor_client.post("/integrations/outlook/rules", json=payload)
    assert forbidden.status_code == 403

    bad = await manager_client.post("/integrations/outlook/rules", json={**payload, "pattern": "jane"})
    assert bad.status_code == 400
    assert "full address" in bad.json()["detail"]

    created = await manager_client.post("/integrations/outlook/rules", json=payload)
    assert created.status_code == 201, created.text
    rule_id = created.json()["id"]

    listed = await advisor_client.get("/integrations/outlook/rules")
    assert [r["id"] for r in listed.json()] == [rule_id]

    update = await manager_client.put(f"/integrations/outlook/rules/{rule_id}", json={"is_active": False})
    assert update.status_code == 200, update.text
    assert (await advisor_client.get("/integrations/outlook/rules")).json() == []
    inactive = await advisor_client.get("/integrations/outlook/rules", params={"include_inactive": True})
    assert len(inactive.json()) == 1

    bad_update = await manager_client.put(
        f"/integrations/outlook/rules/{rule_id}", json={"rule_type": "subject_pattern", "pattern": "(oops"}
    )
    assert bad_update.status_code == 400

    delete = await manager_client.delete(f"/integrations/outlook/rules/{rule_id}")
    assert delete.status_code == 204, delete.text
    missing = await manager_client.delete(f"/integrations/outlook/rules/{rule_id}")
    assert missing.status_code == 404


@pytest.mark.asyncio
async def test_apply_rules_skips_tagged_and_manual(db, advisor_user, manager_client: AsyncClient):
    connection = _connect(db, advisor_user)
    match = _email_row(db, connection, "m-1", "jane@smithfamily.com")
    manual = _email_row(db, connection, "m-2", "bob@smithfamily.com", manually_tagged=True)
    other = _email_row(db, connection, "m-3", "news@vendor.com")

    await manager_client.post(
        "/integrations/outlook/rules",
        json={
            "name": "Smith",
            "rule_type": "email_domain",
            "pattern": "smithfamily.com",
            "entity_type": "household",
            "entity_id": str(SMITH_HOUSEHOLD),
        },
    )

    resp = await manager_client.post("/integrations/outlook/rules/apply")
    assert resp.status_code == 200, resp.text
    assert resp.json() == {"emails_tagged": 1, "events_tagged": 0, "rules_evaluated": 1}

    for row in (match, manual, other):
        db.refresh(row)
    assert match.household_id == SMITH_HOUSEHOLD
    assert manual.household_id is None
    assert other.household_id is None


def test_rules_evaluated_in_priority_order(db, manager_user, advisor_user):
    from wealth_crm.services import outlook_service

    connection = _connect(db, advisor_user)
    email = _email_row(db, connection, "m-1", "jane@smithfamily.com")
    specific = uuid.uuid4()

    outlook_service.create_rule(
        db,
        manager_user.id,
        {"name": "Domain", "rule_type": "email_domain", "pattern": "smithfamily.com",
         "entity_type": "household", "entity_id": SMITH_HOUSEHOLD, "priority": 50},
    )
    outlook_service.create_rule(
        db,
        manager_user.id,
        {"name": "Jane", "rule_type": "email_address", "pattern": "jane@smithfamily.com",
         "entity_type": "person", "entity_id": specific, "priority": 10},
    )

    outlook_service.apply_matching_rules(db, user_id=advisor_user.id)

    db.refresh(email)
    assert email.person_id == specific
    assert email.household_id is None
    assert email.match_metadata["rule_name"] == "Jane"


def test_message_fields_mapping():
    from wealth_crm.services.outlook_service import event_fields, message_fields

    fields = message_fields(MESSAGES[0])
    assert fields["from_address"] == "jane@smithfamily.com"
    assert fields["to_recipients"] == [{"address": "advisor@firm.test", "name": "Advisor"}]
    assert fields["received_at"] == datetime(2024, 6, 15, 14, 30, tzinfo=timezone.utc)
    assert fields["is_read"] is True
    assert fields["categories"] == []

    event = event_fields(EVENTS[0])
    assert event["organizer_email"] == "advisor@firm.test"
    assert event["start_time"] == datetime(2024, 6, 20, 15, 0, tzinfo=timezone.utc)
    assert event["location"] is None
