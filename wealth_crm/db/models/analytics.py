"""SQLAlchemy ORM models for profitability and performance analytics."""

from __future__ import annotations

import uuid
from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import (
    Date,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    UniqueConstraint,
    Uuid,
    func,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column

from wealth_crm.db.base import Base, JSONType


def _money():
    return mapped_column(Numeric(15, 2), default=Decimal("0"), server_default=text("0"), nullable=False)


def _hours():
    return mapped_column(Numeric(8, 2), default=Decimal("0"), server_default=text("0"), nullable=False)


def _percent():
    return mapped_column(Numeric(5, 2), default=Decimal("0"), server_default=text("0"), nullable=False)


def _count():
    return mapped_column(Integer, default=0, server_default=text("0"), nullable=False)


class ClientProfitability(Base):
    """
    Profitability of one household over one period.

    Inputs are revenue components, hour allocations, non-labor costs and AUM.
    Every derived column (labor cost, totals, profits, margins, per-hour
    figures, fee rate, score, tier) is written by the scorer and must always
    agree with the stored inputs.
    """

    __tablename__ = "client_profitability"
    __table_args__ = (
        UniqueConstraint(
            "household_id", "period_type", "period_start",
            name="uq_client_profitability_period",
        ),
        Index("idx_client_profitability_period", "period_start", "period_end"),
        Index("idx_client_profitability_tier", "tier"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    household_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False, index=True)
    period_start: Mapped[date] = mapped_column(Date, nullable=False)
    period_end: Mapped[date] = mapped_column(Date, nullable=False)
    period_type: Mapped[str] = mapped_column(
        String(20), default="monthly", server_default=text("'monthly'"), nullable=False
    )

    # Revenue
    management_fees: Mapped[Decimal] = _money()
    advisory_fees: Mapped[Decimal] = _money()
    planning_fees: Mapped[Decimal] = _money()
    performance_fees: Mapped[Decimal] = _money()
    other_revenue: Mapped[Decimal] = _money()
    total_revenue: Mapped[Decimal] = _money()

    # Time allocation
    advisor_hours: Mapped[Decimal] = _hours()
    operations_hours: Mapped[Decimal] = _hours()
    compliance_hours: Mapped[Decimal] = _hours()

    # Costs
    direct_labor_cost: Mapped[Decimal] = _money()
    technology_cost: Mapped[Decimal] = _money()
    custodian_cost: Mapped[Decimal] = _money()
    marketing_cost: Mapped[Decimal] = _money()
    overhead_allocation: Mapped[Decimal] = _money()
    total_cost: Mapped[Decimal] = _money()

    # Derived
    gross_profit: Mapped[Decimal] = _money()
    net_profit: Mapped[Decimal] = _money()
    gross_margin: Mapped[Decimal] = mapped_column(
        Numeric(7, 2), default=Decimal("0"), server_default=text("0"), nullable=False
    )
    net_margin: Mapped[Decimal] = mapped_column(
        Numeric(7, 2), default=Decimal("0"), server_default=text("0"), nullable=False
    )
    revenue_per_hour: Mapped[Decimal] = mapped_column(
        Numeric(12, 2), default=Decimal("0"), server_default=text("0"), nullable=False
    )
    profit_per_hour: Mapped[Decimal] = mapped_column(
        Numeric(12, 2), default=Decimal("0"), server_default=text("0"), nullable=False
    )

    # Value
    aum: Mapped[Decimal] = mapped_column(
        Numeric(18, 2), default=Decimal("0"), server_default=text("0"), nullable=False
    )
    effective_fee_rate: Mapped[Decimal] = mapped_column(
        Numeric(7, 6), default=Decimal("0"), server_default=text("0"), nullable=False
    )

    # Activity counters
    meetings_count: Mapped[int] = _count()
    email_count: Mapped[int] = _count()
    tasks_count: Mapped[int] = _count()
    documents_generated: Mapped[int] = _count()

    # Scoring
    profitability_score: Mapped[Decimal | None] = mapped_column(Numeric(5, 2), nullable=True)
    tier: Mapped[str | None] = mapped_column(String(20), nullable=True)

    extra_data: Mapped[dict] = mapped_column("metadata", JSONType, default=dict, nullable=False)
    created_at: Mapped[datetime] = mapped_column(server_default=func.now(), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        server_default=func.now(), onupdate=func.now(), nullable=False
    )


class AdvisorMetrics(Base):
    """
    Period rollup of one advisor's book, revenue, activity and pipeline.

    The annual row also carries the advisor's goals.
    """

    __tablename__ = "advisor_metrics"
    __table_args__ = (
        UniqueConstraint(
            "advisor_id", "period_type", "period_start",
            name="uq_advisor_metrics_period",
        ),
        Index("idx_advisor_metrics_period", "period_start", "period_end"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    advisor_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    period_start: Mapped[date] = mapped_column(Date, nullable=False)
    period_end: Mapped[date] = mapped_column(Date, nullable=False)
    period_type: Mapped[str] = mapped_column(
        String(20), default="monthly", server_default=text("'monthly'"), nullable=False
    )

    # Book of business
    total_households: Mapped[int] = _count()
    new_households: Mapped[int] = _count()
    lost_households: Mapped[int] = _count()
    total_aum: Mapped[Decimal] = mapped_column(
        Numeric(18, 2), default=Decimal("0"), server_default=text("0"), nullable=False
    )
    net_new_assets: Mapped[Decimal] = mapped_column(
        Numeric(18, 2), default=Decimal("0"), server_default=text("0"), nullable=False
    )
    market_change: Mapped[Decimal] = mapped_column(
        Numeric(18, 2), default=Decimal("0"), server_default=text("0"), nullable=False
    )

    # Revenue
    total_revenue: Mapped[Decimal] = _money()
    management_fee_revenue: Mapped[Decimal] = _money()
    planning_fee_revenue: Mapped[Decimal] = _money()
    other_revenue: Mapped[Decimal] = _money()

    # Activity
    meetings_completed: Mapped[int] = _count()
    review_meetings: Mapped[int] = _count()
    prospect_meetings: Mapped[int] = _count()
    tasks_completed: Mapped[int] = _count()
    client_facing_hours: Mapped[Decimal] = _hours()
    admin_hours: Mapped[Decimal] = _hours()
    emails_sent: Mapped[int] = _count()
    emails_received: Mapped[int] = _count()

    # Pipeline
    prospects_added: Mapped[int] = _count()
    prospects_converted: Mapped[int] = _count()
    pipeline_value: Mapped[Decimal] = mapped_column(
        Numeric(18, 2), default=Decimal("0"), server_default=text("0"), nullable=False
    )
    conversion_rate: Mapped[Decimal] = _percent()

    # Quality
    client_satisfaction_score: Mapped[Decimal | None] = mapped_column(Numeric(5, 2), nullable=True)
    compliance_issues: Mapped[int] = _count()
    overdue_reviews: Mapped[int] = _count()
    overdue_kyc: Mapped[int] = _count()

    performance_score: Mapped[Decimal | None] = mapped_column(Numeric(5, 2), nullable=True)
    # {"revenue_target", "meetings_target", "new_clients_target", "aum_target"}
    goals: Mapped[dict] = mapped_column(JSONType, default=dict, nullable=False)
    extra_data: Mapped[dict] = mapped_column("metadata", JSONType, default=dict, nullable=False)
    created_at: Mapped[datetime] = mapped_column(server_default=func.now(), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        server_default=func.now(), onupdate=func.now(), nullable=False
    )


class FirmMetrics(Base):
    """Firm-wide period rollup used by the firm overview and trend."""

    __tablename__ = "firm_metrics"
    __table_args__ = (
        UniqueConstraint("period_type", "period_start", name="uq_firm_metrics_period"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    period_start: Mapped[date] = mapped_column(Date, nullable=False)
    period_end: Mapped[date] = mapped_column(Date, nullable=False)
    period_type: Mapped[str] = mapped_column(
        String(20), default="monthly", server_default=text("'monthly'"), nullable=False
    )

    # AUM
    total_aum: Mapped[Decimal] = mapped_column(
        Numeric(18, 2), default=Decimal("0"), server_default=text("0"), nullable=False
    )
    beginning_aum: Mapped[Decimal] = mapped_column(
        Numeric(18, 2), default=Decimal("0"), server_default=text("0"), nullable=False
    )
    net_new_assets: Mapped[Decimal] = mapped_column(
        Numeric(18, 2), default=Decimal("0"), server_default=text("0"), nullable=False
    )
    market_change: Mapped[Decimal] = mapped_column(
        Numeric(18, 2), default=Decimal("0"), server_default=text("0"), nullable=False
    )
    withdrawals: Mapped[Decimal] = mapped_column(
        Numeric(18, 2), default=Decimal("0"), server_default=text("0"), nullable=False
    )
    contributions: Mapped[Decimal] = mapped_column(
        Numeric(18, 2), default=Decimal("0"), server_default=text("0"), nullable=False
    )

    # Revenue
    total_revenue: Mapped[Decimal] = _money()
    management_fees: Mapped[Decimal] = _money()
    advisory_fees: Mapped[Decimal] = _money()
    planning_fees: Mapped[Decimal] = _money()
    other_revenue: Mapped[Decimal] = _money()

    # Clients
    total_households: Mapped[int] = _count()
    new_households: Mapped[int] = _count()
    lost_households: Mapped[int] = _count()
    retention_rate: Mapped[Decimal] = _percent()

    # Ratios
    average_household_aum: Mapped[Decimal] = _money()
    average_revenue_per_household: Mapped[Decimal] = _money()
    blended_fee_rate: Mapped[Decimal] = mapped_column(
        Numeric(7, 6), default=Decimal("0"), server_default=text("0"), nullable=False
    )
    operating_margin: Mapped[Decimal] = _percent()

    # Staff
    total_advisors: Mapped[int] = _count()
    revenue_per_advisor: Mapped[Decimal] = _money()
    aum_per_advisor: Mapped[Decimal] = mapped_column(
        Numeric(18, 2), default=Decimal("0"), server_default=text("0"), nullable=False
    )
    households_per_advisor: Mapped[Decimal] = mapped_column(
        Numeric(8, 2), default=Decimal("0"), server_default=text("0"), nullable=False
    )

    # Compliance
    compliance_issues: Mapped[int] = _count()
    overdue_reviews: Mapped[int] = _count()
    kyc_compliance: Mapped[Decimal] = _percent()

    extra_data: Mapped[dict] = mapped_column("metadata", JSONType, default=dict, nullable=False)
    created_at: Mapped[datetime] = mapped_column(server_default=func.now(), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        server_default=func.now(), onupdate=func.now(), nullable=False
    )


class ActivitySnapshot(Base):
    """Per-user activity counters for one day (or week)."""

    __tablename__ = "activity_snapshots"
    __table_args__ = (
        UniqueConstraint(
            "user_id", "snapshot_date", "snapshot_type",
            name="uq_activity_snapshot_key",
        ),
        Index("idx_activity_snapshot_date", "snapshot_date"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=True
    )
    snapshot_date: Mapped[date] = mapped_column(Date, nullable=False)
    snapshot_type: Mapped[str] = mapped_column(
        String(20), default="daily", server_default=text("'daily'"), nullable=False
    )

    # Tasks
    tasks_created: Mapped[int] = _count()
    tasks_completed: Mapped[int] = _count()
    tasks_overdue: Mapped[int] = _count()

    # Meetings
    meetings_scheduled: Mapped[int] = _count()
    meetings_completed: Mapped[int] = _count()
    meetings_cancelled: Mapped[int] = _count()

    # Communications
    emails_sent: Mapped[int] = _count()
    emails_received: Mapped[int] = _count()
    calls_logged: Mapped[int] = _count()

    # Documents
    documents_uploaded: Mapped[int] = _count()
    documents_generated: Mapped[int] = _count()

    # Pipeline
    prospects_added: Mapped[int] = _count()
    prospects_advanced: Mapped[int] = _count()
    prospects_converted: Mapped[int] = _count()
    prospects_lost: Mapped[int] = _count()

    # Workflows
    workflows_started: Mapped[int] = _count()
    workflows_completed: Mapped[int] = _count()
    workflow_steps_completed: Mapped[int] = _count()

    additional_metrics: Mapped[dict] = mapped_column(JSONType, default=dict, nullable=False)
    created_at: Mapped[datetime] = mapped_column(server_default=func.now(), nullable=False)


# Counter columns that may be incremented through record_daily_activity
ACTIVITY_COUNTER_FIELDS = (
    "tasks_created",
    "tasks_completed",
    "tasks_overdue",
    "meetings_scheduled",
    "meetings_completed",
    "meetings_cancelled",
    "emails_sent",
    "emails_received",
    "calls_logged",
    "documents_uploaded",
    "documents_generated",
    "prospects_added",
    "prospects_advanced",
    "prospects_converted",
    "prospects_lost",
    "workflows_started",
    "workflows_completed",
    "workflow_steps_completed",
)
