"""SQLAlchemy ORM models."""

from wealth_crm.db.models.analytics import (
    ACTIVITY_COUNTER_FIELDS,
    ActivitySnapshot,
    AdvisorMetrics,
    ClientProfitability,
    FirmMetrics,
)
from wealth_crm.db.models.auth import User
from wealth_crm.db.models.customization import (
    CustomFieldDefinition,
    CustomFieldValue,
    EntityTag,
    SavedView,
    Tag,
    UserPreference,
)
from wealth_crm.db.models.outlook import (
    OutlookConnection,
    OutlookEmail,
    OutlookEvent,
    OutlookMatchingRule,
)
from wealth_crm.db.models.workflows import WorkflowInstance, WorkflowTemplate

__all__ = [
    "ACTIVITY_COUNTER_FIELDS",
    "ActivitySnapshot",
    "AdvisorMetrics",
    "ClientProfitability",
    "CustomFieldDefinition",
    "CustomFieldValue",
    "EntityTag",
    "FirmMetrics",
    "OutlookConnection",
    "OutlookEmail",
    "OutlookEvent",
    "OutlookMatchingRule",
    "SavedView",
    "Tag",
    "User",
    "UserPreference",
    "WorkflowInstance",
    "WorkflowTemplate",
]
