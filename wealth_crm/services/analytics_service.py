"""Analytics service - advisor dashboards, client profitability, firm metrics, activity."""

import logging
from collections import defaultdict
from datetime import date
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy import func, inspect
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from wealth_crm.core.exceptions import ValidationError
from wealth_crm.db.enums import PeriodType, ProfitabilityTier, SnapshotType
from wealth_crm.db.models import (
    ACTIVITY_COUNTER_FIELDS,
    ActivitySnapshot,
    AdvisorMetrics,
    ClientProfitability,
    FirmMetrics,
)
from wealth_crm.services.profitability_scoring import (
    RATIO_FIELDS,
    CostRates,
    ProfitabilityInputs,
    calculate_profitability,
    to_decimal,
)
from wealth_crm.utils.periods import period_bounds, percent_change, resolve_range


logger = logging.getLogger(__name__)

REVENUE_COMPONENTS = (
    "management_fees",
    "advisory_fees",
    "planning_fees",
    "performance_fees",
    "other_revenue",
)
COST_INPUTS = ("technology_cost", "custodian_cost", "marketing_cost", "overhead_allocation")
HOUR_INPUTS = ("advisor_hours", "operations_hours", "compliance_hours")
ACTIVITY_INPUTS = ("meetings_count", "email_count", "tasks_count", "documents_generated")

GOAL_KEYS = ("revenue_target", "meetings_target", "new_clients_target", "aum_target")
TOP_CLIENTS_LIMIT = 5
RECENT_ACTIVITY_DAYS = 7
MAX_ACTIVITY_SNAPSHOTS = 90


# =============================================================================
# Profitability
# =============================================================================


def apply_profitability(row: ClientProfitability, rates: CostRates | None = None) -> ClientProfitability:
    """Recompute every derived column of a profitability row from its inputs."""
    previous = {name: getattr(row, name) for name in RATIO_FIELDS}
    result = calculate_profitability(ProfitabilityInputs.from_record(row), rates, previous)
    for name, value in result.as_dict().items():
        setattr(row, name, value)
    return row


def _get_or_create_profitability(
    db: Session,
    household_id: UUID,
    period_type: str,
    period_start: date,
    period_end: date,
) -> ClientProfitability:
    row = (
        db.query(ClientProfitability)
        .filter(
            ClientProfitability.household_id == household_id,
            ClientProfitability.period_type == period_type,
            ClientProfitability.period_start == period_start,
        )
        .first()
    )
    if row:
        return row
    row = ClientProfitability(
        household_id=household_id,
        period_type=period_type,
        period_start=period_start,
        period_end=period_end,
        extra_data={},
    )
    for name in (*REVENUE_COMPONENTS, "total_revenue", *HOUR_INPUTS, *COST_INPUTS, "aum", *RATIO_FIELDS):
        setattr(row, name, Decimal("0"))
    for name in ACTIVITY_INPUTS:
        setattr(row, name, 0)
    db.add(row)
    return row


def list_client_profitability(
    db: Session,
    start_date: date | None = None,
    end_date: date | None = None,
    household_id: UUID | None = None,
    tier: str | None = None,
    period_type: str | None = None,
    include_unprofitable: bool = True,
) -> list[ClientProfitability]:
    """Rows whose period lies inside the range, highest net profit first."""
    start, end = resolve_range(start_date, end_date, PeriodType.ANNUAL.value)
    query = db.query(ClientProfitability).filter(
        ClientProfitability.period_start >= start,
        ClientProfitability.period_end <= end,
    )
    if household_id:
        query = query.filter(ClientProfitability.household_id == household_id)
    if tier:
        query = query.filter(ClientProfitability.tier == tier)
    if period_type:
        query = query.filter(ClientProfitability.period_type == period_type)
    if not include_unprofitable:
        query = query.filter(ClientProfitability.net_profit > 0)
    return query.order_by(ClientProfitability.net_profit.desc()).all()


def get_household_profitability(db: Session, household_id: UUID) -> ClientProfitability | None:
    """Latest profitability row for the household (by period end)."""
    return (
        db.query(ClientProfitability)
        .filter(ClientProfitability.household_id == household_id)
        .order_by(ClientProfitability.period_end.desc(), ClientProfitability.updated_at.desc())
        .first()
    )


def update_time_allocation(
    db: Session,
    household_id: UUID,
    hours: dict[str, Any],
    period_date: date | None = None,
) -> ClientProfitability:
    """Set hour allocations on the household's monthly row and rescore it."""
    start, end = period_bounds(period_date or date.today(), PeriodType.MONTHLY.value)
    row = _get_or_create_profitability(db, household_id, PeriodType.MONTHLY.value, start, end)
    for name in HOUR_INPUTS:
        if hours.get(name) is not None:
            if to_decimal(hours[name]) < 0:
                raise ValidationError(f"{name} cannot be negative")
            setattr(row, name, to_decimal(hours[name]))
    apply_profitability(row)
    db.commit()
    db.refresh(row)
    logger.info(
        "Time allocation updated",
        extra={"household_id": str(household_id), "period_start": start.isoformat()},
    )
    return row


def record_profitability(
    db: Session,
    household_id: UUID,
    data: dict[str, Any],
) -> ClientProfitability:
    """
    Upsert a household's period inputs and rescore.

    ``total_revenue`` defaults to the sum of the revenue components on a new row
    or when any component is sent; otherwise the stored total is kept.
    """
    period_type = data.get("period_type") or PeriodType.MONTHLY.value
    start, end = period_bounds(data.get("period_date") or date.today(), period_type)
    row = _get_or_create_profitability(db, household_id, period_type, start, end)
    is_new = inspect(row).pending

    for name in (*REVENUE_COMPONENTS, *HOUR_INPUTS, *COST_INPUTS, "aum"):
        if data.get(name) is not None:
            setattr(row, name, to_decimal(data[name]))
    for name in ACTIVITY_INPUTS:
        if data.get(name) is not None:
            setattr(row, name, int(data[name]))

    if data.get("total_revenue") is not None:
        row.total_revenue = to_decimal(data["total_revenue"])
    elif is_new or any(data.get(name) is not None for name in REVENUE_COMPONENTS):
        row.total_revenue = sum(
            (to_decimal(getattr(row, name)) for name in REVENUE_COMPONENTS), Decimal("0")
        )
    if data.get("metadata") is not None:
        row.extra_data = {**(row.extra_data or {}), **data["metadata"]}

    apply_profitability(row)
    db.commit()
    db.refresh(row)
    return row


def recalculate_all_profitability(db: Session, rates: CostRates | None = None) -> int:
    """Rescore every stored row (e.g. after cost rates change)."""
    rows = db.query(ClientProfitability).all()
    for row in rows:
        apply_profitability(row, rates)
    db.commit()
    return len(rows)


def generate_profitability_report(
    db: Session,
    start_date: date | None = None,
    end_date: date | None = None,
) -> dict[str, Any]:
    """Per-household rollup of the range with summary and tier distribution."""
    start, end = resolve_range(start_date, end_date, PeriodType.ANNUAL.value)
    rows = (
        db.query(ClientProfitability)
        .filter(
            ClientProfitability.period_start >= start,
            ClientProfitability.period_end <= end,
        )
        .order_by(ClientProfitability.period_end)
        .all()
    )

    by_household: dict[UUID, list[ClientProfitability]] = defaultdict(list)
    for row in rows:
        by_household[row.household_id].append(row)

    details = []
    for household_id, household_rows in by_household.items():
        latest = household_rows[-1]
        revenue = sum((to_decimal(r.total_revenue) for r in household_rows), Decimal("0"))
        cost = sum((to_decimal(r.total_cost) for r in household_rows), Decimal("0"))
        profit = revenue - cost
        details.append({
            "household_id": household_id,
            "periods": len(household_rows),
            "aum": float(latest.aum or 0),
            "total_revenue": float(revenue),
            "total_cost": float(cost),
            "net_profit": float(profit),
            "net_margin": round(float(profit / revenue * 100), 2) if revenue > 0 else 0.0,
            "profitability_score": float(latest.profitability_score) if latest.profitability_score is not None else None,
            "tier": latest.tier,
        })
    details.sort(key=lambda item: item["net_profit"], reverse=True)

    tier_counts = {tier.value: 0 for tier in ProfitabilityTier}
    tier_revenue = {tier.value: 0.0 for tier in ProfitabilityTier}
    for item in details:
        if item["tier"] in tier_counts:
            tier_counts[item["tier"]] += 1
            tier_revenue[item["tier"]] += item["total_revenue"]

    scores = [item["profitability_score"] for item in details if item["profitability_score"] is not None]
    count = len(details)
    summary = {
        "total_clients": count,
        "total_aum": sum(item["aum"] for item in details),
        "total_revenue": sum(item["total_revenue"] for item in details),
        "total_profit": sum(item["net_profit"] for item in details),
        "average_margin": round(sum(item["net_margin"] for item in details) / count, 2) if count else 0.0,
        "average_profitability_score": round(sum(scores) / len(scores), 2) if scores else 0.0,
    }
    return {
        "period": {"start_date": start, "end_date": end},
        "summary": summary,
        "details": details,
        "distribution": {
            "tier_counts": tier_counts,
            "tier_revenue": tier_revenue,
            "profitable_clients": sum(1 for item in details if item["net_profit"] > 0),
            "unprofitable_clients": sum(1 for item in details if item["net_profit"] <= 0),
        },
    }


# =============================================================================
# Advisor dashboard & goals
# =============================================================================


def _latest_advisor_metrics(db: Session, advisor_id: UUID, start: date, end: date) -> AdvisorMetrics | None:
    base = db.query(AdvisorMetrics).filter(
        AdvisorMetrics.advisor_id == advisor_id,
        AdvisorMetrics.period_start <= end,
        AdvisorMetrics.period_end >= start,
    )
    return (
        base.filter(AdvisorMetrics.period_type != PeriodType.ANNUAL.value)
        .order_by(AdvisorMetrics.period_end.desc())
        .first()
        or base.order_by(AdvisorMetrics.period_end.desc()).first()
    )


def _annual_metrics(db: Session, advisor_id: UUID, year: int) -> AdvisorMetrics | None:
    return (
        db.query(AdvisorMetrics)
        .filter(
            AdvisorMetrics.advisor_id == advisor_id,
            AdvisorMetrics.period_type == PeriodType.ANNUAL.value,
            AdvisorMetrics.period_start == date(year, 1, 1),
        )
        .first()
    )


def _year_to_date_totals(db: Session, advisor_id: UUID, end: date) -> dict[str, float]:
    totals = (
        db.query(
            func.coalesce(func.sum(AdvisorMetrics.total_revenue), 0),
            func.coalesce(func.sum(AdvisorMetrics.meetings_completed), 0),
            func.coalesce(func.sum(AdvisorMetrics.new_households), 0),
        )
        .filter(
            AdvisorMetrics.advisor_id == advisor_id,
            AdvisorMetrics.period_type == PeriodType.MONTHLY.value,
            AdvisorMetrics.period_start >= date(end.year, 1, 1),
            AdvisorMetrics.period_end <= end,
        )
        .one()
    )
    return {
        "revenue": float(totals[0]),
        "meetings": float(totals[1]),
        "new_clients": float(totals[2]),
    }


def goal_progress(actual, target) -> int:
    """Percent of target reached, rounded; 0 when no target is set."""
    target = float(target or 0)
    if target <= 0:
        return 0
    return round(float(actual or 0) / target * 100)


def _build_alerts(metrics: AdvisorMetrics | None) -> list[dict[str, Any]]:
    if not metrics:
        return []
    alerts = []
    if metrics.overdue_reviews:
        alerts.append({
            "type": "overdue_reviews",
            "severity": "warning",
            "count": metrics.overdue_reviews,
            "message": f"{metrics.overdue_reviews} client reviews are overdue",
        })
    if metrics.overdue_kyc:
        alerts.append({
            "type": "overdue_kyc",
            "severity": "critical",
            "count": metrics.overdue_kyc,
            "message": f"{metrics.overdue_kyc} KYC renewals are overdue",
        })
    if metrics.compliance_issues:
        alerts.append({
            "type": "compliance_issues",
            "severity": "critical",
            "count": metrics.compliance_issues,
            "message": f"{metrics.compliance_issues} open compliance issues",
        })
    return alerts


def get_advisor_dashboard(
    db: Session,
    advisor_id: UUID,
    start_date: date | None = None,
    end_date: date | None = None,
) -> dict[str, Any]:
    """Overview, recent activity, goal progress, top clients and alerts for an advisor."""
    start, end = resolve_range(start_date, end_date)
    metrics = _latest_advisor_metrics(db, advisor_id, start, end)
    annual = _annual_metrics(db, advisor_id, end.year)
    ytd = _year_to_date_totals(db, advisor_id, end)

    def metric(name: str, default=0):
        value = getattr(metrics, name, None) if metrics else None
        return default if value is None else value

    overview = {
        "total_households": metric("total_households"),
        "total_aum": float(metric("total_aum")),
        "net_new_assets": float(metric("net_new_assets")),
        "period_revenue": float(metric("total_revenue")),
        "ytd_revenue": ytd["revenue"],
        "meetings_completed": metric("meetings_completed"),
        "tasks_completed": metric("tasks_completed"),
        "prospects_added": metric("prospects_added"),
        "pipeline_value": float(metric("pipeline_value")),
        "performance_score": float(metrics.performance_score) if metrics and metrics.performance_score is not None else None,
    }

    goals = dict(annual.goals or {}) if annual else {}
    current_aum = overview["total_aum"]
    goal_actuals = {
        "revenue": ("revenue_target", ytd["revenue"]),
        "meetings": ("meetings_target", ytd["meetings"]),
        "new_clients": ("new_clients_target", ytd["new_clients"]),
        "aum": ("aum_target", current_aum),
    }
    goal_section = {
        name: {
            "target": goals.get(key, 0) or 0,
            "actual": actual,
            "progress": goal_progress(actual, goals.get(key)),
        }
        for name, (key, actual) in goal_actuals.items()
    }

    recent = (
        db.query(ActivitySnapshot)
        .filter(
            ActivitySnapshot.user_id == advisor_id,
            ActivitySnapshot.snapshot_type == SnapshotType.DAILY.value,
            ActivitySnapshot.snapshot_date <= end,
        )
        .order_by(ActivitySnapshot.snapshot_date.desc())
        .limit(RECENT_ACTIVITY_DAYS)
        .all()
    )
    recent_activity = [
        {
            "date": snapshot.snapshot_date,
            "tasks_completed": snapshot.tasks_completed,
            "meetings_completed": snapshot.meetings_completed,
            "emails_sent": snapshot.emails_sent,
            "calls_logged": snapshot.calls_logged,
        }
        for snapshot in recent
    ]

    top = (
        db.query(ClientProfitability)
        .filter(
            ClientProfitability.period_start <= end,
            ClientProfitability.period_end >= start,
        )
        .order_by(ClientProfitability.total_revenue.desc())
        .limit(TOP_CLIENTS_LIMIT)
        .all()
    )
    top_clients = [
        {
            "household_id": row.household_id,
            "aum": float(row.aum or 0),
            "revenue": float(row.total_revenue or 0),
            "net_profit": float(row.net_profit or 0),
            "tier": row.tier,
        }
        for row in top
    ]

    return {
        "advisor_id": advisor_id,
        "period": {"start_date": start, "end_date": end},
        "overview": overview,
        "recent_activity": recent_activity,
        "goals": goal_section,
        "top_clients": top_clients,
        "alerts": _build_alerts(metrics),
    }


def set_advisor_goals(db: Session, advisor_id: UUID, goals: dict[str, Any]) -> AdvisorMetrics:
    """Merge goals into the advisor's annual metrics row for the current year."""
    unknown = set(goals) - set(GOAL_KEYS)
    if unknown:
        raise ValidationError(f"Unknown goal keys: {', '.join(sorted(unknown))}")

    today = date.today()
    row = _annual_metrics(db, advisor_id, today.year)
    if not row:
        start, end = period_bounds(today, PeriodType.ANNUAL.value)
        row = AdvisorMetrics(
            advisor_id=advisor_id,
            period_type=PeriodType.ANNUAL.value,
            period_start=start,
            period_end=end,
            goals={},
            extra_data={},
        )
        db.add(row)

    merged = dict(row.goals or {})
    merged.update({key: value for key, value in goals.items() if value is not None})
    row.goals = merged
    db.commit()
    db.refresh(row)
    logger.info("Advisor goals updated", extra={"advisor_id": str(advisor_id)})
    return row


# =============================================================================
# Firm metrics
# =============================================================================


def _firm_sections(row: FirmMetrics | None, previous: FirmMetrics | None) -> dict[str, Any]:
    def value(name: str) -> float:
        return float(getattr(row, name) or 0) if row else 0.0

    return {
        "aum": {
            "total": value("total_aum"),
            "beginning": value("beginning_aum"),
            "net_new_assets": value("net_new_assets"),
            "market_change": value("market_change"),
            "contributions": value("contributions"),
            "withdrawals": value("withdrawals"),
            "change_percent": percent_change(value("total_aum"), previous.total_aum if previous else 0),
        },
        "revenue": {
            "total": value("total_revenue"),
            "management_fees": value("management_fees"),
            "advisory_fees": value("advisory_fees"),
            "planning_fees": value("planning_fees"),
            "other": value("other_revenue"),
            "change_percent": percent_change(value("total_revenue"), previous.total_revenue if previous else 0),
        },
        "clients": {
            "total_households": int(value("total_households")),
            "new_households": int(value("new_households")),
            "lost_households": int(value("lost_households")),
            "retention_rate": value("retention_rate"),
        },
        "efficiency": {
            "average_household_aum": value("average_household_aum"),
            "average_revenue_per_household": value("average_revenue_per_household"),
            "blended_fee_rate": value("blended_fee_rate"),
            "operating_margin": value("operating_margin"),
            "total_advisors": int(value("total_advisors")),
            "revenue_per_advisor": value("revenue_per_advisor"),
            "aum_per_advisor": value("aum_per_advisor"),
            "households_per_advisor": value("households_per_advisor"),
        },
        "compliance": {
            "compliance_issues": int(value("compliance_issues")),
            "overdue_reviews": int(value("overdue_reviews")),
            "kyc_compliance": value("kyc_compliance"),
        },
    }


def get_firm_overview(
    db: Session,
    start_date: date | None = None,
    end_date: date | None = None,
    period_type: str = PeriodType.MONTHLY.value,
) -> dict[str, Any]:
    """Latest firm metrics in range, with change against the preceding period."""
    start, end = resolve_range(start_date, end_date)
    row = (
        db.query(FirmMetrics)
        .filter(
            FirmMetrics.period_type == period_type,
            FirmMetrics.period_start <= end,
            FirmMetrics.period_end >= start,
        )
        .order_by(FirmMetrics.period_end.desc())
        .first()
    )
    previous = None
    if row:
        previous = (
            db.query(FirmMetrics)
            .filter(
                FirmMetrics.period_type == period_type,
                FirmMetrics.period_end < row.period_start,
            )
            .order_by(FirmMetrics.period_end.desc())
            .first()
        )

    return {
        "period": {
            "start_date": row.period_start if row else start,
            "end_date": row.period_end if row else end,
            "period_type": period_type,
        },
        "has_data": row is not None,
        **_firm_sections(row, previous),
    }


def get_firm_metrics_trend(
    db: Session,
    start_date: date | None = None,
    end_date: date | None = None,
    period_type: str = PeriodType.MONTHLY.value,
) -> list[FirmMetrics]:
    start, end = resolve_range(start_date, end_date, PeriodType.ANNUAL.value)
    return (
        db.query(FirmMetrics)
        .filter(
            FirmMetrics.period_type == period_type,
            FirmMetrics.period_start >= start,
            FirmMetrics.period_end <= end,
        )
        .order_by(FirmMetrics.period_start)
        .all()
    )


# =============================================================================
# Activity snapshots
# =============================================================================


def get_activity_snapshots(
    db: Session,
    user_id: UUID | None = None,
    snapshot_type: str | None = None,
    start_date: date | None = None,
    end_date: date | None = None,
) -> list[ActivitySnapshot]:
    query = db.query(ActivitySnapshot)
    if user_id:
        query = query.filter(ActivitySnapshot.user_id == user_id)
    if snapshot_type:
        query = query.filter(ActivitySnapshot.snapshot_type == snapshot_type)
    if start_date:
        query = query.filter(ActivitySnapshot.snapshot_date >= start_date)
    if end_date:
        query = query.filter(ActivitySnapshot.snapshot_date <= end_date)
    return (
        query.order_by(ActivitySnapshot.snapshot_date.desc())
        .limit(MAX_ACTIVITY_SNAPSHOTS)
        .all()
    )


def _get_daily_snapshot(db: Session, user_id: UUID, day: date) -> ActivitySnapshot | None:
    return (
        db.query(ActivitySnapshot)
        .filter(
            ActivitySnapshot.user_id == user_id,
            ActivitySnapshot.snapshot_date == day,
            ActivitySnapshot.snapshot_type == SnapshotType.DAILY.value,
        )
        .first()
    )


def record_daily_activity(
    db: Session,
    user_id: UUID,
    increments: dict[str, int] | None = None,
    additional_metrics: dict[str, Any] | None = None,
) -> ActivitySnapshot:
    """
    Upsert today's snapshot for the user and add the given counter increments.

    Raises:
        ValidationError: unknown counter or negative increment
    """
    increments = {name: amount for name, amount in (increments or {}).items() if amount}
    unknown = set(increments) - set(ACTIVITY_COUNTER_FIELDS)
    if unknown:
        raise ValidationError(f"Unknown activity counters: {', '.join(sorted(unknown))}")
    if any(amount < 0 for amount in increments.values()):
        raise ValidationError("Activity increments cannot be negative")

    today = date.today()
    snapshot = _get_daily_snapshot(db, user_id, today)
    if not snapshot:
        snapshot = ActivitySnapshot(
            user_id=user_id,
            snapshot_date=today,
            snapshot_type=SnapshotType.DAILY.value,
            additional_metrics={},
        )
        db.add(snapshot)
        try:
            db.commit()
        except IntegrityError:
            # Created by a concurrent request
            db.rollback()
            snapshot = _get_daily_snapshot(db, user_id, today)

    if increments:
        db.query(ActivitySnapshot).filter(ActivitySnapshot.id == snapshot.id).update(
            {
                getattr(ActivitySnapshot, name): getattr(ActivitySnapshot, name) + amount
                for name, amount in increments.items()
            },
            synchronize_session=False,
        )
    if additional_metrics:
        snapshot.additional_metrics = {**(snapshot.additional_metrics or {}), **additional_metrics}
    db.commit()
    db.refresh(snapshot)
    return snapshot
