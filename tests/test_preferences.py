"""Tests for per-user preferences."""

import pytest
from httpx import AsyncClient


@pytest.mark.asyncio
async def test_preferences_created_with_defaults(advisor_client: AsyncClient):
    resp = await advisor_client.get("/customization/preferences")
    assert resp.status_code == 200, resp.text
    prefs = resp.json()
    assert prefs["theme"] == "system"
    assert prefs["language"] == "en"
    assert prefs["timezone"] == "America/New_York"
    assert prefs["date_format"] == "MM/DD/YYYY"
    assert prefs["currency"] == "USD"
    assert prefs["recent_items"] == []


@pytest.mark.asyncio
async def test_update_preferences_is_partial(advisor_client: AsyncClient):
    resp = await advisor_client.put(
        "/customization/preferences", json={"theme": "dark", "sidebar_state": {"collapsed": True}}
    )
    assert resp.status_code == 200, resp.text
    assert resp.json()["theme"] == "dark"
    assert resp.json()["currency"] == "USD"

    bad = await advisor_client.put("/customization/preferences", json={"theme": "neon"})
    assert bad.status_code == 422


@pytest.mark.asyncio
async def test_null_preference_is_rejected(advisor_client: AsyncClient):
    resp = await advisor_client.put("/customization/preferences", json={"theme": None})
    assert resp.status_code == 422, resp.text

    prefs = await advisor_client.get("/customization/preferences")
    assert prefs.json()["theme"] == "system"


@pytest.mark.asyncio
async def test_recent_items_dedupe_and_order(advisor_client: AsyncClient):
    for item_id in ("h1", "h2", "h1"):
        resp = await advisor_client.post(
            "/customization/preferences/recent",
            json={"type": "household", "id": item_id, "name": f"Household {item_id}"},
        )
        assert resp.status_code == 200, resp.text

    recent = resp.json()["recent_items"]
    assert [item["id"] for item in recent] == ["h1", "h2"]
    assert "visited_at" in recent[0]


@pytest.mark.asyncio
async def test_favorite_toggle(advisor_client: AsyncClient):
    item = {"type": "account", "id": "a-77", "name": "Joint Brokerage"}

    added = await advisor_client.post("/customization/preferences/favorite", json=item)
    assert added.status_code == 200, added.text
    assert added.json()["is_favorite"] is True
    assert added.json()["preferences"]["favorites"] == [item]

    removed = await advisor_client.post("/customization/preferences/favorite", json=item)
    assert removed.json()["is_favorite"] is False
    assert removed.json()["preferences"]["favorites"] == []


@pytest.mark.asyncio
async def test_table_preferences_merge(advisor_client: AsyncClient):
    await advisor_client.put("/customization/preferences/table/households", json={"page_size": 50})
    resp = await advisor_client.put(
        "/customization/preferences/table/households", json={"hidden_columns": ["phone"]}
    )
    assert resp.status_code == 200, resp.text
    assert resp.json()["table_preferences"]["households"] == {"page_size": 50, "hidden_columns": ["phone"]}


def test_recent_items_capped(db, advisor_user):
    from wealth_crm.services import preference_service

    for i in range(25):
        prefs = preference_service.add_recent_item(
            db, advisor_user.id, {"type": "person", "id": str(i), "name": f"Person {i}"}
        )

    assert len(prefs.recent_items) == preference_service.MAX_RECENT_ITEMS
    assert prefs.recent_items[0]["id"] == "24"
    assert prefs.recent_items[-1]["id"] == "5"
