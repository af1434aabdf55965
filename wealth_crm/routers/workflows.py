"""Workflow template and instance endpoints."""

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Response
from sqlalchemy.orm import Session

from wealth_crm.core.deps import get_current_session, get_db, require_roles
from wealth_crm.core.exceptions import ServiceError, handle_service_error
from wealth_crm.db.enums import (
    ROLES_CAN_DELETE_WORKFLOWS,
    ROLES_CAN_EDIT_WORKFLOWS,
    Role,
    WorkflowStatus,
    WorkflowTrigger,
)
from wealth_crm.schemas.auth import UserSession
from wealth_crm.schemas.workflow import (
    InstanceCancel,
    StepCompletion,
    WorkflowInstanceDetail,
    WorkflowInstanceRead,
    WorkflowInstanceStart,
    WorkflowStats,
    WorkflowTemplateCreate,
    WorkflowTemplateRead,
    WorkflowTemplateUpdate,
)
from wealth_crm.services import workflow_service


router = APIRouter(prefix="/workflows", tags=["workflows"])


def _get_template_or_404(db: Session, template_id: UUID):
    template = workflow_service.get_template(db, template_id)
    if not template:
        raise HTTPException(status_code=404, detail="Workflow template not found")
    return template


# =============================================================================
# Templates
# =============================================================================


@router.post("/templates", response_model=WorkflowTemplateRead, status_code=201)
def create_template(
    body: WorkflowTemplateCreate,
    session: UserSession = Depends(require_roles(ROLES_CAN_EDIT_WORKFLOWS)),
    db: Session = Depends(get_db),
):
    try:
        return workflow_service.create_template(db, session.user_id, body.model_dump())
    except ServiceError as exc:
        raise handle_service_error(exc) from exc


@router.get("/templates", response_model=list[WorkflowTemplateRead])
def list_templates(
    trigger: WorkflowTrigger | None = None,
    status: WorkflowStatus | None = None,
    search: str | None = None,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    return workflow_service.list_templates(
        db,
        trigger=trigger.value if trigger else None,
        status=status.value if status else None,
        search=search,
    )


@router.post("/templates/seed-defaults", response_model=list[WorkflowTemplateRead])
def seed_default_templates(
    session: UserSession = Depends(require_roles([Role.ADMIN])),
    db: Session = Depends(get_db),
):
    return workflow_service.seed_default_templates(db, session.user_id)


@router.get("/templates/{template_id:uuid}", response_model=WorkflowTemplateRead)
def get_template(
    template_id: UUID,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    return _get_template_or_404(db, template_id)


@router.patch("/templates/{template_id:uuid}", response_model=WorkflowTemplateRead)
def update_template(
    template_id: UUID,
    body: WorkflowTemplateUpdate,
    session: UserSession = Depends(require_roles(ROLES_CAN_EDIT_WORKFLOWS)),
    db: Session = Depends(get_db),
):
    template = _get_template_or_404(db, template_id)
    try:
        return workflow_service.update_template(db, template, body.model_dump(exclude_unset=True))
    except ServiceError as exc:
        raise handle_service_error(exc) from exc


@router.delete("/templates/{template_id:uuid}", status_code=204)
def delete_template(
    template_id: UUID,
    session: UserSession = Depends(require_roles(ROLES_CAN_DELETE_WORKFLOWS)),
    db: Session = Depends(get_db),
):
    template = _get_template_or_404(db, template_id)
    workflow_service.delete_template(db, template)
    return Response(status_code=204)


@router.post("/templates/{template_id:uuid}/activate", response_model=WorkflowTemplateRead)
def activate_template(
    template_id: UUID,
    session: UserSession = Depends(require_roles(ROLES_CAN_EDIT_WORKFLOWS)),
    db: Session = Depends(get_db),
):
    template = _get_template_or_404(db, template_id)
    return workflow_service.set_template_status(db, template, WorkflowStatus.ACTIVE)


@router.post("/templates/{template_id:uuid}/deactivate", response_model=WorkflowTemplateRead)
def deactivate_template(
    template_id: UUID,
    session: UserSession = Depends(require_roles(ROLES_CAN_EDIT_WORKFLOWS)),
    db: Session = Depends(get_db),
):
    template = _get_template_or_404(db, template_id)
    return workflow_service.set_template_status(db, template, WorkflowStatus.INACTIVE)


# =============================================================================
# Instances
# =============================================================================


@router.post("/instances", response_model=WorkflowInstanceDetail, status_code=201)
def start_workflow(
    body: WorkflowInstanceStart,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    try:
        return workflow_service.start_workflow(db, session.user_id, body.model_dump())
    except ServiceError as exc:
        raise handle_service_error(exc) from exc


@router.get("/instances/active", response_model=list[WorkflowInstanceDetail])
def list_active_instances(
    household_id: UUID | None = None,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    return workflow_service.list_active_instances(db, household_id=household_id)


@router.get("/instances/household/{household_id:uuid}", response_model=list[WorkflowInstanceDetail])
def list_household_instances(
    household_id: UUID,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    return workflow_service.list_household_instances(db, household_id)


@router.get("/instances/{instance_id:uuid}", response_model=WorkflowInstanceDetail)
def get_instance(
    instance_id: UUID,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    instance = workflow_service.get_instance(db, instance_id)
    if not instance:
        raise HTTPException(status_code=404, detail="Workflow instance not found")
    return instance


@router.post("/instances/{instance_id:uuid}/complete-step", response_model=WorkflowInstanceDetail)
def complete_step(
    instance_id: UUID,
    body: StepCompletion,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    try:
        return workflow_service.complete_step(
            db, instance_id, body.step_id, session.user_id, notes=body.notes
        )
    except ServiceError as exc:
        raise handle_service_error(exc) from exc


@router.post("/instances/{instance_id:uuid}/skip-step", response_model=WorkflowInstanceDetail)
def skip_step(
    instance_id: UUID,
    body: StepCompletion,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    try:
        return workflow_service.skip_step(
            db, instance_id, body.step_id, session.user_id, notes=body.notes
        )
    except ServiceError as exc:
        raise handle_service_error(exc) from exc


@router.post("/instances/{instance_id:uuid}/cancel", response_model=WorkflowInstanceRead)
def cancel_instance(
    instance_id: UUID,
    body: InstanceCancel | None = None,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    try:
        return workflow_service.cancel_instance(
            db, instance_id, session.user_id, reason=body.reason if body else None
        )
    except ServiceError as exc:
        raise handle_service_error(exc) from exc


@router.get("/stats", response_model=WorkflowStats)
def get_workflow_stats(
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    return workflow_service.get_workflow_stats(db)
