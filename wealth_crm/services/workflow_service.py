"""
Workflow service - templates and dependency-driven instances.

An instance tracks a status per template step. Steps start ``pending``;
the advance rule moves every pending step whose dependencies are all
completed or skipped to ``in_progress``. The instance completes once every
step is completed or skipped. Nothing here executes the steps themselves.
"""

import logging
import math
from datetime import datetime, timezone
from typing import Any
from uuid import UUID

from sqlalchemy import func
from sqlalchemy.orm import Session, joinedload

from wealth_crm.core.exceptions import NotFoundError, ValidationError
from wealth_crm.db.enums import (
    STEP_DONE_STATUSES,
    StepStatus,
    WorkflowInstanceStatus,
    WorkflowStatus,
)
from wealth_crm.db.models import WorkflowInstance, WorkflowTemplate
from wealth_crm.services.workflow_defaults import DEFAULT_TEMPLATES


logger = logging.getLogger(__name__)


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


# =============================================================================
# Step graph
# =============================================================================


def validate_steps(steps: list[dict[str, Any]]) -> None:
    """
    Reject duplicate ids, unknown dependencies and dependency cycles.

    Raises:
        ValidationError
    """
    ids = [step["id"] for step in steps]
    if len(ids) != len(set(ids)):
        raise ValidationError("Duplicate step IDs found")

    known = set(ids)
    graph = {}
    for step in steps:
        deps = step.get("depends_on") or []
        unknown = [dep for dep in deps if dep not in known]
        if unknown:
            raise ValidationError(
                f"Step '{step['id']}' depends on unknown steps: {', '.join(unknown)}"
            )
        graph[step["id"]] = deps

    # Kahn's algorithm: anything left unvisited sits on a cycle
    remaining = {step_id: len(deps) for step_id, deps in graph.items()}
    dependents: dict[str, list[str]] = {step_id: [] for step_id in graph}
    for step_id, deps in graph.items():
        for dep in deps:
            dependents[dep].append(step_id)
    ready = [step_id for step_id, count in remaining.items() if count == 0]
    visited = 0
    while ready:
        current = ready.pop()
        visited += 1
        for child in dependents[current]:
            remaining[child] -= 1
            if remaining[child] == 0:
                ready.append(child)
    if visited != len(graph):
        raise ValidationError("Step dependencies contain a cycle")


def advance_step_statuses(
    steps: list[dict[str, Any]],
    step_statuses: dict[str, dict[str, Any]],
) -> tuple[dict[str, dict[str, Any]], bool]:
    """
    Apply the advance rule to a copy of ``step_statuses``.

    Returns (new_statuses, all_done).
    """
    statuses = {step_id: dict(entry) for step_id, entry in step_statuses.items()}
    for step in steps:
        entry = statuses.setdefault(step["id"], {"status": StepStatus.PENDING.value})
        if entry["status"] != StepStatus.PENDING.value:
            continue
        deps = step.get("depends_on") or []
        if all(statuses.get(dep, {}).get("status") in STEP_DONE_STATUSES for dep in deps):
            entry["status"] = StepStatus.IN_PROGRESS.value
            entry["started_at"] = _now_iso()

    all_done = all(
        statuses[step["id"]]["status"] in STEP_DONE_STATUSES for step in steps
    )
    return statuses, all_done


def _advance_instance(instance: WorkflowInstance, template: WorkflowTemplate) -> None:
    statuses, all_done = advance_step_statuses(template.steps, instance.step_statuses or {})
    # Reassign so the JSON column is flagged dirty
    instance.step_statuses = statuses
    instance.current_step = sum(
        1 for entry in statuses.values() if entry["status"] in STEP_DONE_STATUSES
    )
    if all_done:
        instance.status = WorkflowInstanceStatus.COMPLETED.value
        instance.completed_at = datetime.now(timezone.utc)


# =============================================================================
# Templates
# =============================================================================


def list_templates(
    db: Session,
    trigger: str | None = None,
    status: str | None = None,
    search: str | None = None,
) -> list[WorkflowTemplate]:
    query = db.query(WorkflowTemplate).filter(WorkflowTemplate.deleted_at.is_(None))
    if trigger:
        query = query.filter(WorkflowTemplate.trigger == trigger)
    if status:
        query = query.filter(WorkflowTemplate.status == status)
    if search:
        query = query.filter(WorkflowTemplate.name.ilike(f"%{search.strip()}%"))
    return query.order_by(WorkflowTemplate.name).all()


def get_template(db: Session, template_id: UUID) -> WorkflowTemplate | None:
    return (
        db.query(WorkflowTemplate)
        .filter(WorkflowTemplate.id == template_id, WorkflowTemplate.deleted_at.is_(None))
        .first()
    )


def create_template(db: Session, user_id: UUID | None, data: dict[str, Any]) -> WorkflowTemplate:
    validate_steps(data["steps"])
    template = WorkflowTemplate(
        name=data["name"],
        description=data.get("description"),
        trigger=data["trigger"],
        status=data.get("status") or WorkflowStatus.DRAFT.value,
        trigger_conditions=data.get("trigger_conditions"),
        steps=data["steps"],
        estimated_duration_days=data.get("estimated_duration_days"),
        tags=data.get("tags") or [],
        is_default=data.get("is_default", False),
        created_by_user_id=user_id,
    )
    db.add(template)
    db.commit()
    db.refresh(template)
    logger.info("Workflow template created", extra={"template_id": str(template.id)})
    return template


def update_template(db: Session, template: WorkflowTemplate, changes: dict[str, Any]) -> WorkflowTemplate:
    if changes.get("steps") is not None:
        validate_steps(changes["steps"])
    for name, value in changes.items():
        setattr(template, name, value)
    db.commit()
    db.refresh(template)
    return template


def delete_template(db: Session, template: WorkflowTemplate) -> None:
    """Soft delete; running instances keep their template reference."""
    template.deleted_at = datetime.now(timezone.utc)
    template.status = WorkflowStatus.ARCHIVED.value
    db.commit()
    logger.info("Workflow template deleted", extra={"template_id": str(template.id)})


def set_template_status(db: Session, template: WorkflowTemplate, status: WorkflowStatus) -> WorkflowTemplate:
    template.status = status.value
    db.commit()
    db.refresh(template)
    return template


def seed_default_templates(db: Session, user_id: UUID | None = None) -> list[WorkflowTemplate]:
    """Create the built-in templates that do not exist yet. Seeded templates are active."""
    created = []
    for definition in DEFAULT_TEMPLATES:
        exists = (
            db.query(WorkflowTemplate.id)
            .filter(
                WorkflowTemplate.name == definition["name"],
                WorkflowTemplate.is_default.is_(True),
                WorkflowTemplate.deleted_at.is_(None),
            )
            .first()
        )
        if exists:
            continue
        template = WorkflowTemplate(
            **definition,
            status=WorkflowStatus.ACTIVE.value,
            is_default=True,
            created_by_user_id=user_id,
        )
        db.add(template)
        created.append(template)
    db.commit()
    for template in created:
        db.refresh(template)
    logger.info("Seeded default workflow templates", extra={"templates_created": len(created)})
    return created


# =============================================================================
# Instances
# =============================================================================


def get_instance(db: Session, instance_id: UUID) -> WorkflowInstance | None:
    return (
        db.query(WorkflowInstance)
        .options(joinedload(WorkflowInstance.template))
        .filter(WorkflowInstance.id == instance_id)
        .first()
    )


def start_workflow(db: Session, user_id: UUID, data: dict[str, Any]) -> WorkflowInstance:
    """
    Start an instance of an active template.

    Raises:
        NotFoundError: template missing or deleted
        ValidationError: template not active
    """
    template = get_template(db, data["template_id"])
    if not template:
        raise NotFoundError("Workflow template not found")
    if template.status != WorkflowStatus.ACTIVE.value:
        raise ValidationError("Workflow template is not active")

    instance = WorkflowInstance(
        template_id=template.id,
        household_id=data.get("household_id"),
        person_id=data.get("person_id"),
        prospect_id=data.get("prospect_id"),
        account_id=data.get("account_id"),
        status=WorkflowInstanceStatus.RUNNING.value,
        started_at=datetime.now(timezone.utc),
        current_step=0,
        step_statuses={step["id"]: {"status": StepStatus.PENDING.value} for step in template.steps},
        triggered_by_user_id=user_id,
        trigger_data=data.get("trigger_data"),
        extra_data={},
    )
    _advance_instance(instance, template)
    db.add(instance)
    db.commit()
    logger.info(
        "Workflow started",
        extra={"instance_id": str(instance.id), "template_id": str(template.id)},
    )
    return get_instance(db, instance.id)


def _load_running(db: Session, instance_id: UUID) -> WorkflowInstance:
    instance = get_instance(db, instance_id)
    if not instance:
        raise NotFoundError("Workflow instance not found")
    if instance.status != WorkflowInstanceStatus.RUNNING.value:
        raise ValidationError("Workflow instance is not running")
    return instance


def _finish_step(
    db: Session,
    instance_id: UUID,
    step_id: str,
    user_id: UUID,
    new_status: StepStatus,
    notes: str | None,
) -> WorkflowInstance:
    instance = _load_running(db, instance_id)
    statuses = {key: dict(value) for key, value in (instance.step_statuses or {}).items()}
    entry = statuses.get(step_id)
    if entry is None:
        raise ValidationError(f"Step '{step_id}' not found in workflow")
    if entry["status"] in STEP_DONE_STATUSES:
        raise ValidationError(f"Step '{step_id}' is already {entry['status']}")
    if new_status == StepStatus.COMPLETED and entry["status"] == StepStatus.PENDING.value:
        raise ValidationError(f"Step '{step_id}' is waiting on its dependencies")

    entry["status"] = new_status.value
    entry["completed_at"] = _now_iso()
    entry["completed_by"] = str(user_id)
    if notes:
        entry["notes"] = notes
    instance.step_statuses = statuses
    _advance_instance(instance, instance.template)
    db.commit()
    return get_instance(db, instance.id)


def complete_step(
    db: Session,
    instance_id: UUID,
    step_id: str,
    user_id: UUID,
    notes: str | None = None,
) -> WorkflowInstance:
    """Mark an in-progress step completed and advance its dependents."""
    return _finish_step(db, instance_id, step_id, user_id, StepStatus.COMPLETED, notes)


def skip_step(
    db: Session,
    instance_id: UUID,
    step_id: str,
    user_id: UUID,
    notes: str | None = None,
) -> WorkflowInstance:
    """Skip a step (pending or in progress); skipped steps satisfy dependencies."""
    return _finish_step(db, instance_id, step_id, user_id, StepStatus.SKIPPED, notes)


def cancel_instance(
    db: Session,
    instance_id: UUID,
    user_id: UUID,
    reason: str | None = None,
) -> WorkflowInstance:
    instance = _load_running(db, instance_id)
    instance.status = WorkflowInstanceStatus.CANCELLED.value
    instance.extra_data = {
        **(instance.extra_data or {}),
        "cancellation_reason": reason,
        "cancelled_at": _now_iso(),
        "cancelled_by": str(user_id),
    }
    db.commit()
    logger.info("Workflow cancelled", extra={"instance_id": str(instance.id)})
    return get_instance(db, instance.id)


def list_active_instances(db: Session, household_id: UUID | None = None) -> list[WorkflowInstance]:
    query = (
        db.query(WorkflowInstance)
        .options(joinedload(WorkflowInstance.template))
        .filter(WorkflowInstance.status == WorkflowInstanceStatus.RUNNING.value)
    )
    if household_id:
        query = query.filter(WorkflowInstance.household_id == household_id)
    return query.order_by(WorkflowInstance.started_at.desc()).all()


def list_household_instances(db: Session, household_id: UUID) -> list[WorkflowInstance]:
    return (
        db.query(WorkflowInstance)
        .options(joinedload(WorkflowInstance.template))
        .filter(WorkflowInstance.household_id == household_id)
        .order_by(WorkflowInstance.started_at.desc())
        .all()
    )


def get_workflow_stats(db: Session) -> dict[str, Any]:
    """Running totals, per-template counts, completions this month, average duration."""
    running = WorkflowInstanceStatus.RUNNING.value
    completed = WorkflowInstanceStatus.COMPLETED.value

    total_active = (
        db.query(func.count(WorkflowInstance.id))
        .filter(WorkflowInstance.status == running)
        .scalar()
    )
    by_template = [
        {"template_id": template_id, "template_name": name, "count": count}
        for template_id, name, count in (
            db.query(WorkflowTemplate.id, WorkflowTemplate.name, func.count(WorkflowInstance.id))
            .join(WorkflowInstance, WorkflowInstance.template_id == WorkflowTemplate.id)
            .filter(WorkflowInstance.status == running)
            .group_by(WorkflowTemplate.id, WorkflowTemplate.name)
            .order_by(func.count(WorkflowInstance.id).desc())
            .all()
        )
    ]

    month_start = datetime.now(timezone.utc).replace(day=1, hour=0, minute=0, second=0, microsecond=0)
    completed_this_month = (
        db.query(func.count(WorkflowInstance.id))
        .filter(
            WorkflowInstance.status == completed,
            WorkflowInstance.completed_at >= month_start,
        )
        .scalar()
    )

    durations = [
        math.ceil((completed_at - started_at).total_seconds() / 86400)
        for started_at, completed_at in (
            db.query(WorkflowInstance.started_at, WorkflowInstance.completed_at)
            .filter(
                WorkflowInstance.status == completed,
                WorkflowInstance.completed_at.is_not(None),
            )
            .all()
        )
    ]
    average = round(sum(durations) / len(durations), 1) if durations else 0.0

    return {
        "total_active": total_active or 0,
        "by_template": by_template,
        "completed_this_month": completed_this_month or 0,
        "average_completion_days": average,
    }
