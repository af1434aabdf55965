"""Enum definitions for application constants."""

from wealth_crm.db.enums.analytics import PeriodType, ProfitabilityTier, SnapshotType
from wealth_crm.db.enums.auth import Role
from wealth_crm.db.enums.customization import (
    CHOICE_FIELD_TYPES,
    DATE_FIELD_TYPES,
    NUMERIC_FIELD_TYPES,
    REFERENCE_FIELD_TYPES,
    TEXT_FIELD_TYPES,
    EntityTarget,
    FieldType,
    Theme,
    ViewType,
)
from wealth_crm.db.enums.outlook import (
    MatchEntityType,
    MatchRuleType,
    OutlookConnectionStatus,
    OutlookSyncKind,
)
from wealth_crm.db.enums.permissions import (
    ALL_ROLES,
    ROLES_CAN_DELETE_FIELDS,
    ROLES_CAN_DELETE_TAGS,
    ROLES_CAN_DELETE_WORKFLOWS,
    ROLES_CAN_EDIT_WORKFLOWS,
    ROLES_CAN_MANAGE_FIELDS,
    ROLES_CAN_MANAGE_MATCHING_RULES,
    ROLES_CAN_MANAGE_TAGS,
    ROLES_CAN_VIEW_FIRM,
    ROLES_CAN_VIEW_PROFITABILITY,
)
from wealth_crm.db.enums.workflows import (
    STEP_DONE_STATUSES,
    StepStatus,
    WorkflowInstanceStatus,
    WorkflowStatus,
    WorkflowStepType,
    WorkflowTrigger,
)
