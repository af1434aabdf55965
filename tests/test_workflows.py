"""Tests for workflow templates, step validation and instance progression."""

import uuid

import pytest
from httpx import AsyncClient

from wealth_crm.core.exceptions import NotFoundError, ValidationError
from wealth_crm.services.workflow_service import advance_step_statuses, validate_steps


def _step(step_id: str, order: int, depends_on=None, step_type: str = "task"):
    return {
        "id": step_id,
        "name": step_id.replace("-", " ").title(),
        "type": step_type,
        "order": order,
        "config": {},
        "depends_on": depends_on or [],
    }


# Diamond: intake -> (paperwork, risk-profile) -> proposal
DIAMOND_STEPS = [
    _step("intake", 1),
    _step("paperwork", 2, ["intake"]),
    _step("risk-profile", 3, ["intake"]),
    _step("proposal", 4, ["paperwork", "risk-profile"], step_type="meeting"),
]


def _template_payload(**overrides):
    payload = {
        "name": "Prospect Conversion",
        "trigger": "prospect_won",
        "status": "active",
        "steps": DIAMOND_STEPS,
        "estimated_duration_days": 14,
        "tags": ["prospects"],
    }
    payload.update(overrides)
    return payload


# =============================================================================
# Step graph
# =============================================================================


def test_validate_steps_accepts_diamond():
    validate_steps(DIAMOND_STEPS)


def test_validate_steps_rejects_duplicates():
    with pytest.raises(ValidationError, match="Duplicate step IDs"):
        validate_steps([_step("a", 1), _step("a", 2)])


def test_validate_steps_rejects_unknown_dependency():
    with pytest.raises(ValidationError, match="depends on unknown steps: ghost"):
        validate_steps([_step("a", 1, ["ghost"])])


def test_validate_steps_rejects_cycle():
    with pytest.raises(ValidationError, match="cycle"):
        validate_steps([_step("a", 1, ["c"]), _step("b", 2, ["a"]), _step("c", 3, ["b"])])


def test_advance_starts_roots_only():
    statuses, done = advance_step_statuses(DIAMOND_STEPS, {})
    assert {k: v["status"] for k, v in statuses.items()} == {
        "intake": "in_progress",
        "paperwork": "pending",
        "risk-profile": "pending",
        "proposal": "pending",
    }
    assert done is False


def test_advance_waits_for_every_dependency():
    statuses = {
        "intake": {"status": "completed"},
        "paperwork": {"status": "skipped"},
        "risk-profile": {"status": "in_progress"},
        "proposal": {"status": "pending"},
    }
    advanced, done = advance_step_statuses(DIAMOND_STEPS, statuses)
    assert advanced["proposal"]["status"] == "pending"
    assert done is False
    # Input is not mutated
    assert statuses["proposal"] == {"status": "pending"}


def test_advance_reports_all_done():
    statuses = {step["id"]: {"status": "completed"} for step in DIAMOND_STEPS}
    statuses["paperwork"] = {"status": "skipped"}
    _, done = advance_step_statuses(DIAMOND_STEPS, statuses)
    assert done is True


# =============================================================================
# Templates (API)
# =============================================================================


@pytest.mark.asyncio
async def test_template_crud(advisor_client: AsyncClient, admin_client: AsyncClient):
    create = await advisor_client.post("/workflows/templates", json=_template_payload(status="draft"))
    assert create.status_code == 201, create.text
    template = create.json()
    assert template["status"] == "draft"
    assert [s["id"] for s in template["steps"]] == ["intake", "paperwork", "risk-profile", "proposal"]

    patch = await advisor_client.patch(
        f"/workflows/templates/{template['id']}", json={"description": "Convert won prospects"}
    )
    assert patch.status_code == 200, patch.text
    assert patch.json()["description"] == "Convert won prospects"

    activate = await advisor_client.post(f"/workflows/templates/{template['id']}/activate")
    assert activate.json()["status"] == "active"
    deactivate = await advisor_client.post(f"/workflows/templates/{template['id']}/deactivate")
    assert deactivate.json()["status"] == "inactive"

    forbidden = await advisor_client.delete(f"/workflows/templates/{template['id']}")
    assert forbidden.status_code == 403
    delete = await admin_client.delete(f"/workflows/templates/{template['id']}")
    assert delete.status_code == 204, delete.text

    gone = await admin_client.get(f"/workflows/templates/{template['id']}")
    assert gone.status_code == 404


@pytest.mark.asyncio
async def test_template_with_cycle_is_400(advisor_client: AsyncClient):
    steps = [_step("a", 1, ["b"]), _step("b", 2, ["a"])]
    resp = await advisor_client.post("/workflows/templates", json=_template_payload(steps=steps))
    assert resp.status_code == 400, resp.text
    assert "cycle" in resp.json()["detail"]


@pytest.mark.asyncio
async def test_operations_cannot_create_templates(operations_client: AsyncClient):
    resp = await operations_client.post("/workflows/templates", json=_template_payload())
    assert resp.status_code == 403


@pytest.mark.asyncio
async def test_seed_defaults_is_idempotent(admin_client: AsyncClient):
    first = await admin_client.post("/workflows/templates/seed-defaults")
    assert first.status_code == 200, first.text
    assert sorted(t["name"] for t in first.json()) == [
        "Annual Review Preparation",
        "KYC Renewal",
        "New Client Onboarding",
    ]
    assert all(t["status"] == "active" and t["is_default"] for t in first.json())

    second = await admin_client.post("/workflows/templates/seed-defaults")
    assert second.json() == []

    listed = await admin_client.get("/workflows/templates", params={"status": "active"})
    assert len(listed.json()) == 3


# =============================================================================
# Instances (API)
# =============================================================================


@pytest.mark.asyncio
async def test_instance_runs_to_completion(advisor_client: AsyncClient):
    template = (await advisor_client.post("/workflows/templates", json=_template_payload())).json()
    household_id = str(uuid.uuid4())

    start = await advisor_client.post(
        "/workflows/instances", json={"template_id": template["id"], "household_id": household_id}
    )
    assert start.status_code == 201, start.text
    instance = start.json()
    assert instance["status"] == "running"
    assert instance["template"]["name"] == "Prospect Conversion"
    assert instance["step_statuses"]["intake"]["status"] == "in_progress"
    assert instance["current_step"] == 0

    url = f"/workflows/instances/{instance['id']}"
    blocked = await advisor_client.post(f"{url}/complete-step", json={"step_id": "proposal"})
    assert blocked.status_code == 400
    assert "waiting on its dependencies" in blocked.json()["detail"]

    step = await advisor_client.post(f"{url}/complete-step", json={"step_id": "intake", "notes": "Met in person"})
    assert step.status_code == 200, step.text
    statuses = step.json()["step_statuses"]
    assert statuses["intake"]["notes"] == "Met in person"
    assert statuses["paperwork"]["status"] == "in_progress"
    assert statuses["risk-profile"]["status"] == "in_progress"
    assert step.json()["current_step"] == 1

    again = await advisor_client.post(f"{url}/complete-step", json={"step_id": "intake"})
    assert again.status_code == 400
    assert "already completed" in again.json()["detail"]

    await advisor_client.post(f"{url}/skip-step", json={"step_id": "paperwork"})
    partial = await advisor_client.post(f"{url}/complete-step", json={"step_id": "risk-profile"})
    assert partial.json()["step_statuses"]["proposal"]["status"] == "in_progress"

    final = await advisor_client.post(f"{url}/complete-step", json={"step_id": "proposal"})
    assert final.status_code == 200, final.text
    assert final.json()["status"] == "completed"
    assert final.json()["completed_at"] is not None
    assert final.json()["current_step"] == 4

    closed = await advisor_client.post(f"{url}/skip-step", json={"step_id": "proposal"})
    assert closed.status_code == 400
    assert "not running" in closed.json()["detail"]

    household = await advisor_client.get(f"/workflows/instances/household/{household_id}")
    assert [i["id"] for i in household.json()] == [instance["id"]]

    stats = await advisor_client.get("/workflows/stats")
    assert stats.status_code == 200, stats.text
    assert stats.json()["total_active"] == 0
    assert stats.json()["completed_this_month"] == 1


@pytest.mark.asyncio
async def test_unknown_step_is_400(advisor_client: AsyncClient):
    template = (await advisor_client.post("/workflows/templates", json=_template_payload())).json()
    instance = (await advisor_client.post("/workflows/instances", json={"template_id": template["id"]})).json()

    resp = await advisor_client.post(
        f"/workflows/instances/{instance['id']}/complete-step", json={"step_id": "nope"}
    )
    assert resp.status_code == 400
    assert "not found in workflow" in resp.json()["detail"]


@pytest.mark.asyncio
async def test_cannot_start_inactive_or_missing_template(advisor_client: AsyncClient):
    draft = (await advisor_client.post("/workflows/templates", json=_template_payload(status="draft"))).json()

    inactive = await advisor_client.post("/workflows/instances", json={"template_id": draft["id"]})
    assert inactive.status_code == 400
    assert inactive.json()["detail"] == "Workflow template is not active"

    missing = await advisor_client.post("/workflows/instances", json={"template_id": str(uuid.uuid4())})
    assert missing.status_code == 404


@pytest.mark.asyncio
async def test_cancel_instance(advisor_client: AsyncClient):
    template = (await advisor_client.post("/workflows/templates", json=_template_payload())).json()
    instance = (await advisor_client.post("/workflows/instances", json={"template_id": template["id"]})).json()

    active = await advisor_client.get("/workflows/instances/active")
    assert [i["id"] for i in active.json()] == [instance["id"]]

    cancel = await advisor_client.post(
        f"/workflows/instances/{instance['id']}/cancel", json={"reason": "Prospect went elsewhere"}
    )
    assert cancel.status_code == 200, cancel.text
    assert cancel.json()["status"] == "cancelled"
    assert cancel.json()["metadata"]["cancellation_reason"] == "Prospect went elsewhere"

    again = await advisor_client.post(f"/workflows/instances/{instance['id']}/cancel")
    assert again.status_code == 400

    active = await advisor_client.get("/workflows/instances/active")
    assert active.json() == []


# =============================================================================
# Service
# =============================================================================


def test_skip_pending_step_unblocks_dependents(db, advisor_user):
    from wealth_crm.services import workflow_service

    template = workflow_service.create_template(db, advisor_user.id, _template_payload())
    instance = workflow_service.start_workflow(db, advisor_user.id, {"template_id": template.id})

    # Skipping is allowed before a step is reached
    instance = workflow_service.skip_step(db, instance.id, "risk-profile", advisor_user.id)
    assert instance.step_statuses["risk-profile"]["status"] == "skipped"
    assert instance.step_statuses["proposal"]["status"] == "pending"

    instance = workflow_service.complete_step(db, instance.id, "intake", advisor_user.id)
    instance = workflow_service.complete_step(db, instance.id, "paperwork", advisor_user.id)
    assert instance.step_statuses["proposal"]["status"] == "in_progress"


def test_deleted_template_cannot_start(db, advisor_user):
    from wealth_crm.services import workflow_service

    template = workflow_service.create_template(db, advisor_user.id, _template_payload())
    workflow_service.delete_template(db, template)
    assert template.status == "archived"

    with pytest.raises(NotFoundError):
        workflow_service.start_workflow(db, advisor_user.id, {"template_id": template.id})


def test_update_template_validates_steps(db, advisor_user):
    from wealth_crm.services import workflow_service

    template = workflow_service.create_template(db, advisor_user.id, _template_payload())
    with pytest.raises(ValidationError, match="Duplicate"):
        workflow_service.update_template(db, template, {"steps": [_step("x", 1), _step("x", 2)]})


def test_stats_count_running_by_template(db, advisor_user):
    from wealth_crm.services import workflow_service

    template = workflow_service.create_template(db, advisor_user.id, _template_payload())
    for _ in range(2):
        workflow_service.start_workflow(db, advisor_user.id, {"template_id": template.id})

    stats = workflow_service.get_workflow_stats(db)
    assert stats["total_active"] == 2
    assert stats["by_template"] == [
        {"template_id": template.id, "template_name": "Prospect Conversion", "count": 2}
    ]
    assert stats["average_completion_days"] == 0.0
