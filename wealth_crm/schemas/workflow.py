"""Pydantic schemas for workflow templates and instances."""

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, Field

from wealth_crm.db.enums import WorkflowStatus, WorkflowStepType, WorkflowTrigger
from wealth_crm.schemas.common import reject_null


STEP_ID_PATTERN = r"^[a-zA-Z0-9_-]+$"


# =============================================================================
# Templates
# =============================================================================


class WorkflowStep(BaseModel):
    id: str = Field(min_length=1, max_length=100, pattern=STEP_ID_PATTERN)
    name: str = Field(min_length=1, max_length=255)
    description: str | None = None
    type: WorkflowStepType
    order: int = Field(ge=0)
    config: dict[str, Any] = Field(default_factory=dict)
    depends_on: list[str] = Field(default_factory=list)

    model_config = {"use_enum_values": True}


class WorkflowTemplateCreate(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    description: str | None = None
    trigger: WorkflowTrigger
    status: WorkflowStatus = WorkflowStatus.DRAFT
    trigger_conditions: dict[str, Any] | None = None
    steps: list[WorkflowStep] = Field(min_length=1)
    estimated_duration_days: int | None = Field(default=None, ge=0)
    tags: list[str] = Field(default_factory=list)
    is_default: bool = False

    model_config = {"use_enum_values": True}


class WorkflowTemplateUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=255)
    description: str | None = None
    trigger: WorkflowTrigger | None = None
    status: WorkflowStatus | None = None
    trigger_conditions: dict[str, Any] | None = None
    steps: list[WorkflowStep] | None = Field(default=None, min_length=1)
    estimated_duration_days: int | None = Field(default=None, ge=0)
    tags: list[str] | None = None

    model_config = {"use_enum_values": True}

    check_not_null = reject_null("name", "trigger", "status", "steps", "tags")


class WorkflowTemplateRead(BaseModel):
    id: UUID
    name: str
    description: str | None
    trigger: str
    status: str
    trigger_conditions: dict | None
    steps: list[dict]
    estimated_duration_days: int | None
    tags: list
    is_default: bool
    created_by_user_id: UUID | None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


# =============================================================================
# Instances
# =============================================================================


class WorkflowInstanceStart(BaseModel):
    template_id: UUID
    household_id: UUID | None = None
    person_id: UUID | None = None
    prospect_id: UUID | None = None
    account_id: UUID | None = None
    trigger_data: dict[str, Any] | None = None


class StepCompletion(BaseModel):
    step_id: str = Field(min_length=1, max_length=100)
    notes: str | None = None


class InstanceCancel(BaseModel):
    reason: str | None = Field(default=None, max_length=1000)


class WorkflowInstanceRead(BaseModel):
    id: UUID
    template_id: UUID
    household_id: UUID | None
    person_id: UUID | None
    prospect_id: UUID | None
    account_id: UUID | None
    status: str
    started_at: datetime
    completed_at: datetime | None
    current_step: int
    step_statuses: dict
    triggered_by_user_id: UUID | None
    trigger_data: dict | None
    extra_data: dict = Field(serialization_alias="metadata")

    model_config = {"from_attributes": True}


class WorkflowInstanceDetail(WorkflowInstanceRead):
    template: WorkflowTemplateRead


class WorkflowStats(BaseModel):
    total_active: int
    by_template: list[dict[str, Any]]
    completed_this_month: int
    average_completion_days: float
