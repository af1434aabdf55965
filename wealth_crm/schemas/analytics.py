"""Pydantic schemas for analytics: profitability, firm metrics, activity."""

from datetime import date, datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, Field

from wealth_crm.db.enums import PeriodType


# =============================================================================
# Client profitability
# =============================================================================


class ClientProfitabilityRead(BaseModel):
    id: UUID
    household_id: UUID
    period_start: date
    period_end: date
    period_type: str

    management_fees: float
    advisory_fees: float
    planning_fees: float
    performance_fees: float
    other_revenue: float
    total_revenue: float

    advisor_hours: float
    operations_hours: float
    compliance_hours: float

    direct_labor_cost: float
    technology_cost: float
    custodian_cost: float
    marketing_cost: float
    overhead_allocation: float
    total_cost: float

    gross_profit: float
    net_profit: float
    gross_margin: float
    net_margin: float
    revenue_per_hour: float
    profit_per_hour: float
    aum: float
    effective_fee_rate: float

    meetings_count: int
    email_count: int
    tasks_count: int
    documents_generated: int

    profitability_score: float | None
    tier: str | None
    extra_data: dict = Field(serialization_alias="metadata")
    updated_at: datetime

    model_config = {"from_attributes": True}


class TimeAllocationUpdate(BaseModel):
    household_id: UUID
    period_date: date | None = None
    advisor_hours: float | None = Field(default=None, ge=0)
    operations_hours: float | None = Field(default=None, ge=0)
    compliance_hours: float | None = Field(default=None, ge=0)


class ProfitabilityInputUpdate(BaseModel):
    """Revenue, cost and activity inputs for one household period."""

    period_type: PeriodType = PeriodType.MONTHLY
    period_date: date | None = None

    management_fees: float | None = Field(default=None, ge=0)
    advisory_fees: float | None = Field(default=None, ge=0)
    planning_fees: float | None = Field(default=None, ge=0)
    performance_fees: float | None = Field(default=None, ge=0)
    other_revenue: float | None = Field(default=None, ge=0)
    total_revenue: float | None = Field(default=None, ge=0)

    advisor_hours: float | None = Field(default=None, ge=0)
    operations_hours: float | None = Field(default=None, ge=0)
    compliance_hours: float | None = Field(default=None, ge=0)

    technology_cost: float | None = Field(default=None, ge=0)
    custodian_cost: float | None = Field(default=None, ge=0)
    marketing_cost: float | None = Field(default=None, ge=0)
    overhead_allocation: float | None = Field(default=None, ge=0)
    aum: float | None = Field(default=None, ge=0)

    meetings_count: int | None = Field(default=None, ge=0)
    email_count: int | None = Field(default=None, ge=0)
    tasks_count: int | None = Field(default=None, ge=0)
    documents_generated: int | None = Field(default=None, ge=0)

    metadata: dict[str, Any] | None = None

    model_config = {"use_enum_values": True}


# =============================================================================
# Advisor goals / firm metrics
# =============================================================================


class GoalsUpdate(BaseModel):
    revenue_target: float | None = Field(default=None, ge=0)
    meetings_target: int | None = Field(default=None, ge=0)
    new_clients_target: int | None = Field(default=None, ge=0)
    aum_target: float | None = Field(default=None, ge=0)


class GoalsRead(BaseModel):
    advisor_id: UUID
    period_start: date
    period_end: date
    goals: dict

    model_config = {"from_attributes": True}


class FirmMetricsRead(BaseModel):
    id: UUID
    period_start: date
    period_end: date
    period_type: str
    total_aum: float
    net_new_assets: float
    market_change: float
    total_revenue: float
    total_households: int
    new_households: int
    lost_households: int
    retention_rate: float
    average_household_aum: float
    blended_fee_rate: float
    operating_margin: float
    total_advisors: int
    revenue_per_advisor: float
    compliance_issues: int
    overdue_reviews: int
    kyc_compliance: float

    model_config = {"from_attributes": True}


# =============================================================================
# Activity
# =============================================================================


class ActivitySnapshotRead(BaseModel):
    id: UUID
    user_id: UUID | None
    snapshot_date: date
    snapshot_type: str
    tasks_created: int
    tasks_completed: int
    tasks_overdue: int
    meetings_scheduled: int
    meetings_completed: int
    meetings_cancelled: int
    emails_sent: int
    emails_received: int
    calls_logged: int
    documents_uploaded: int
    documents_generated: int
    prospects_added: int
    prospects_advanced: int
    prospects_converted: int
    prospects_lost: int
    workflows_started: int
    workflows_completed: int
    workflow_steps_completed: int
    additional_metrics: dict

    model_config = {"from_attributes": True}


class ActivityRecord(BaseModel):
    """Counter increments added to today's snapshot."""

    increments: dict[str, int] = Field(default_factory=dict)
    additional_metrics: dict[str, Any] | None = None
