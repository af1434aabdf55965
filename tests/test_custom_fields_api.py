"""API contract tests for custom field definitions and values."""

import uuid

import pytest
from httpx import AsyncClient


def _field_payload(**overrides):
    payload = {
        "field_name": "Risk Tolerance",
        "field_key": "risk_tolerance",
        "field_type": "select",
        "entity_target": "household",
        "options": {
            "choices": [
                {"value": "conservative", "label": "Conservative"},
                {"value": "moderate", "label": "Moderate"},
                {"value": "aggressive", "label": "Aggressive"},
            ]
        },
    }
    payload.update(overrides)
    return payload


@pytest.mark.asyncio
async def test_custom_field_crud(manager_client: AsyncClient, admin_client: AsyncClient):
    create_resp = await manager_client.post("/customization/fields", json=_field_payload())
    assert create_resp.status_code == 201, create_resp.text
    created = create_resp.json()
    field_id = created["id"]
    assert created["field_key"] == "risk_tolerance"
    assert created["display_order"] == 1
    assert len(created["options"]["choices"]) == 3

    list_resp = await manager_client.get("/customization/fields", params={"entity_target": "household"})
    assert list_resp.status_code == 200, list_resp.text
    assert [f["id"] for f in list_resp.json()] == [field_id]

    put_resp = await manager_client.put(
        f"/customization/fields/{field_id}",
        json={"field_name": "Risk Appetite"},
    )
    assert put_resp.status_code == 200, put_resp.text
    assert put_resp.json()["field_name"] == "Risk Appetite"

    delete_resp = await admin_client.delete(f"/customization/fields/{field_id}")
    assert delete_resp.status_code == 204, delete_resp.text

    get_resp = await admin_client.get(f"/customization/fields/{field_id}")
    assert get_resp.status_code == 404


@pytest.mark.asyncio
async def test_update_rejects_null_for_required_columns(manager_client: AsyncClient):
    field_id = (await manager_client.post("/customization/fields", json=_field_payload())).json()["id"]

    for payload in ({"is_required": None}, {"field_name": None}, {"display_order": None}):
        resp = await manager_client.put(f"/customization/fields/{field_id}", json=payload)
        assert resp.status_code == 422, resp.text

    cleared = await manager_client.put(f"/customization/fields/{field_id}", json={"description": None})
    assert cleared.status_code == 200, cleared.text


@pytest.mark.asyncio
async def test_field_key_is_normalized(manager_client: AsyncClient):
    resp = await manager_client.post(
        "/customization/fields",
        json=_field_payload(field_key="Investment-Horizon", field_type="number", options=None),
    )
    assert resp.status_code == 201, resp.text
    assert resp.json()["field_key"] == "investment_horizon"


@pytest.mark.asyncio
async def test_duplicate_key_per_target_conflicts(manager_client: AsyncClient):
    first = await manager_client.post("/customization/fields", json=_field_payload())
    assert first.status_code == 201, first.text

    dup = await manager_client.post("/customization/fields", json=_field_payload())
    assert dup.status_code == 409, dup.text

    # Same key on another target is fine
    other = await manager_client.post(
        "/customization/fields", json=_field_payload(entity_target="account")
    )
    assert other.status_code == 201, other.text


@pytest.mark.asyncio
async def test_select_field_requires_choices(manager_client: AsyncClient):
    resp = await manager_client.post(
        "/customization/fields", json=_field_payload(options={"choices": []})
    )
    assert resp.status_code == 400, resp.text
    assert "choices" in resp.json()["detail"]


@pytest.mark.asyncio
async def test_advisor_cannot_manage_fields(advisor_client: AsyncClient):
    resp = await advisor_client.post("/customization/fields", json=_field_payload())
    assert resp.status_code == 403


@pytest.mark.asyncio
async def test_manager_cannot_delete_fields(manager_client: AsyncClient):
    created = await manager_client.post("/customization/fields", json=_field_payload())
    resp = await manager_client.delete(f"/customization/fields/{created.json()['id']}")
    assert resp.status_code == 403


@pytest.mark.asyncio
async def test_reorder_fields(manager_client: AsyncClient):
    ids = []
    for key in ("alpha", "beta", "gamma"):
        resp = await manager_client.post(
            "/customization/fields",
            json=_field_payload(field_key=key, field_name=key.title(), field_type="text", options=None),
        )
        assert resp.status_code == 201, resp.text
        ids.append(resp.json()["id"])

    new_order = [ids[2], ids[0], ids[1]]
    resp = await manager_client.patch(
        "/customization/fields/reorder/household", json={"field_ids": new_order}
    )
    assert resp.status_code == 200, resp.text
    by_id = {f["id"]: f["display_order"] for f in resp.json()}
    assert [by_id[i] for i in new_order] == [1, 2, 3]

    missing = await manager_client.patch(
        "/customization/fields/reorder/household", json={"field_ids": [str(uuid.uuid4())]}
    )
    assert missing.status_code == 404


@pytest.mark.asyncio
async def test_set_and_read_field_values(manager_client: AsyncClient, advisor_client: AsyncClient):
    select_field = (await manager_client.post("/customization/fields", json=_field_payload())).json()
    number_field = (
        await manager_client.post(
            "/customization/fields",
            json=_field_payload(
                field_key="annual_income",
                field_name="Annual Income",
                field_type="currency",
                options={"min": 0, "precision": 2},
            ),
        )
    ).json()
    household_id = str(uuid.uuid4())

    resp = await advisor_client.post(
        "/customization/field-values",
        json={
            "entity_type": "household",
            "entity_id": household_id,
            "values": [
                {"field_id": select_field["id"], "value": "moderate"},
                {"field_id": number_field["id"], "value": "250000.457"},
            ],
        },
    )
    assert resp.status_code == 200, resp.text
    assert resp.json() == {select_field["id"]: "moderate", number_field["id"]: 250000.46}

    read = await advisor_client.get(f"/customization/field-values/household/{household_id}")
    assert read.status_code == 200, read.text
    assert read.json()[select_field["id"]] == "moderate"

    other_household = str(uuid.uuid4())
    bulk = await advisor_client.post(
        "/customization/field-values/bulk",
        json={"entity_type": "household", "entity_ids": [household_id, other_household]},
    )
    assert bulk.status_code == 200, bulk.text
    assert bulk.json()[other_household] == {}
    assert bulk.json()[household_id][number_field["id"]] == 250000.46


@pytest.mark.asyncio
async def test_invalid_value_rejects_whole_request(manager_client: AsyncClient, advisor_client: AsyncClient):
    select_field = (await manager_client.post("/customization/fields", json=_field_payload())).json()
    text_field = (
        await manager_client.post(
            "/customization/fields",
            json=_field_payload(field_key="notes", field_name="Notes", field_type="text", options=None),
        )
    ).json()
    household_id = str(uuid.uuid4())

    resp = await advisor_client.post(
        "/customization/field-values",
        json={
            "entity_type": "household",
            "entity_id": household_id,
            "values": [
                {"field_id": text_field["id"], "value": "hello"},
                {"field_id": select_field["id"], "value": "reckless"},
            ],
        },
    )
    assert resp.status_code == 400, resp.text

    read = await advisor_client.get(f"/customization/field-values/household/{household_id}")
    assert read.json() == {}


@pytest.mark.asyncio
async def test_value_for_wrong_target_or_unknown_field(manager_client: AsyncClient, advisor_client: AsyncClient):
    field = (await manager_client.post("/customization/fields", json=_field_payload())).json()

    wrong_target = await advisor_client.post(
        "/customization/field-values",
        json={
            "entity_type": "account",
            "entity_id": str(uuid.uuid4()),
            "values": [{"field_id": field["id"], "value": "moderate"}],
        },
    )
    assert wrong_target.status_code == 400, wrong_target.text

    unknown = await advisor_client.post(
        "/customization/field-values",
        json={
            "entity_type": "household",
            "entity_id": str(uuid.uuid4()),
            "values": [{"field_id": str(uuid.uuid4()), "value": "x"}],
        },
    )
    assert unknown.status_code == 404, unknown.text


def test_delete_field_with_values_deactivates(db, manager_user):
    from wealth_crm.services import custom_field_service

    field = custom_field_service.create_custom_field(
        db,
        manager_user.id,
        {"field_name": "Has Trust", "field_key": "has_trust", "field_type": "boolean", "entity_target": "household"},
    )
    household_id = uuid.uuid4()
    custom_field_service.set_field_values(db, manager_user.id, "household", household_id, [(field.id, "yes")])

    assert custom_field_service.delete_custom_field(db, field) is False
    db.refresh(field)
    assert field.is_active is False
    assert custom_field_service.list_custom_fields(db, "household") == []
    assert custom_field_service.list_custom_fields(db, "household", include_inactive=True) == [field]


def test_inactive_field_rejects_writes(db, manager_user):
    from wealth_crm.core.exceptions import ValidationError
    from wealth_crm.services import custom_field_service

    field = custom_field_service.create_custom_field(
        db,
        manager_user.id,
        {"field_name": "Legacy", "field_key": "legacy", "field_type": "text", "entity_target": "person"},
    )
    custom_field_service.update_custom_field(db, field, {"is_active": False})

    with pytest.raises(ValidationError, match="inactive"):
        custom_field_service.set_field_values(db, manager_user.id, "person", uuid.uuid4(), [(field.id, "x")])


def test_overwrite_clears_previous_column(db, manager_user):
    from wealth_crm.db.models import CustomFieldValue
    from wealth_crm.services import custom_field_service

    field = custom_field_service.create_custom_field(
        db,
        manager_user.id,
        {"field_name": "Score", "field_key": "score", "field_type": "number", "entity_target": "account"},
    )
    account_id = uuid.uuid4()
    custom_field_service.set_field_values(db, manager_user.id, "account", account_id, [(field.id, 7)])
    result = custom_field_service.set_field_values(db, manager_user.id, "account", account_id, [(field.id, None)])

    assert result == {str(field.id): None}
    row = db.query(CustomFieldValue).filter(CustomFieldValue.entity_id == account_id).one()
    assert row.number_value is None


def test_min_greater_than_max_rejected():
    from wealth_crm.core.exceptions import ValidationError
    from wealth_crm.services.custom_field_service import validate_field_options

    with pytest.raises(ValidationError, match="Minimum"):
        validate_field_options("number", {"min": 10, "max": 1})
    with pytest.raises(ValidationError, match="unique"):
        validate_field_options("select", {"choices": [{"value": "a"}, {"value": "a"}]})
