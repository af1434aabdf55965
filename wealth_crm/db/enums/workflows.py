"""Workflow enums."""

from enum import Enum


class WorkflowTrigger(str, Enum):
    NEW_CLIENT_ONBOARDING = "new_client_onboarding"
    ANNUAL_REVIEW_DUE = "annual_review_due"
    QUARTERLY_REVIEW_DUE = "quarterly_review_due"
    CLIENT_BIRTHDAY = "client_birthday"
    CLIENT_ANNIVERSARY = "client_anniversary"
    ACCOUNT_OPENED = "account_opened"
    ACCOUNT_CLOSED = "account_closed"
    LARGE_DEPOSIT = "large_deposit"
    LARGE_WITHDRAWAL = "large_withdrawal"
    KYC_EXPIRING = "kyc_expiring"
    DOCUMENT_EXPIRING = "document_expiring"
    COMPLIANCE_REVIEW_DUE = "compliance_review_due"
    NEW_PROSPECT = "new_prospect"
    PROSPECT_STAGE_CHANGE = "prospect_stage_change"
    PROSPECT_WON = "prospect_won"
    MANUAL = "manual"
    SCHEDULED = "scheduled"


class WorkflowStatus(str, Enum):
    """Template lifecycle status."""

    ACTIVE = "active"
    INACTIVE = "inactive"
    DRAFT = "draft"
    ARCHIVED = "archived"


class WorkflowInstanceStatus(str, Enum):
    RUNNING = "running"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class WorkflowStepType(str, Enum):
    TASK = "task"
    EMAIL = "email"
    NOTIFICATION = "notification"
    WAIT = "wait"
    CONDITION = "condition"
    MEETING = "meeting"


class StepStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    SKIPPED = "skipped"


# Steps in these states satisfy a dependency
STEP_DONE_STATUSES = frozenset({StepStatus.COMPLETED.value, StepStatus.SKIPPED.value})
