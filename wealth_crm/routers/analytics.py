"""Analytics endpoints: advisor dashboards, client profitability, firm metrics, activity."""

from datetime import date
from typing import Any
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from wealth_crm.core.deps import get_current_session, get_db, require_roles
from wealth_crm.core.exceptions import ServiceError, handle_service_error
from wealth_crm.db.enums import (
    ROLES_CAN_VIEW_FIRM,
    ROLES_CAN_VIEW_PROFITABILITY,
    PeriodType,
    ProfitabilityTier,
    Role,
    SnapshotType,
)
from wealth_crm.schemas.analytics import (
    ActivityRecord,
    ActivitySnapshotRead,
    ClientProfitabilityRead,
    FirmMetricsRead,
    GoalsRead,
    GoalsUpdate,
    ProfitabilityInputUpdate,
    TimeAllocationUpdate,
)
from wealth_crm.schemas.auth import UserSession
from wealth_crm.services import analytics_service


router = APIRouter(prefix="/analytics", tags=["analytics"])


# =============================================================================
# Advisor dashboard & goals
# =============================================================================


@router.get("/dashboard")
def get_my_dashboard(
    start_date: date | None = None,
    end_date: date | None = None,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
) -> dict[str, Any]:
    try:
        return analytics_service.get_advisor_dashboard(db, session.user_id, start_date, end_date)
    except ServiceError as exc:
        raise handle_service_error(exc) from exc


@router.get("/dashboard/{advisor_id:uuid}")
def get_advisor_dashboard(
    advisor_id: UUID,
    start_date: date | None = None,
    end_date: date | None = None,
    session: UserSession = Depends(require_roles([Role.ADMIN])),
    db: Session = Depends(get_db),
) -> dict[str, Any]:
    try:
        return analytics_service.get_advisor_dashboard(db, advisor_id, start_date, end_date)
    except ServiceError as exc:
        raise handle_service_error(exc) from exc


@router.patch("/goals", response_model=GoalsRead)
def set_my_goals(
    body: GoalsUpdate,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    try:
        return analytics_service.set_advisor_goals(
            db, session.user_id, body.model_dump(exclude_unset=True)
        )
    except ServiceError as exc:
        raise handle_service_error(exc) from exc


@router.patch("/goals/{advisor_id:uuid}", response_model=GoalsRead)
def set_advisor_goals(
    advisor_id: UUID,
    body: GoalsUpdate,
    session: UserSession = Depends(require_roles([Role.ADMIN])),
    db: Session = Depends(get_db),
):
    try:
        return analytics_service.set_advisor_goals(db, advisor_id, body.model_dump(exclude_unset=True))
    except ServiceError as exc:
        raise handle_service_error(exc) from exc


# =============================================================================
# Client profitability
# =============================================================================


@router.get("/profitability", response_model=list[ClientProfitabilityRead])
def list_client_profitability(
    start_date: date | None = None,
    end_date: date | None = None,
    household_id: UUID | None = None,
    tier: ProfitabilityTier | None = None,
    period_type: PeriodType | None = None,
    include_unprofitable: bool = True,
    session: UserSession = Depends(require_roles(ROLES_CAN_VIEW_PROFITABILITY)),
    db: Session = Depends(get_db),
):
    try:
        return analytics_service.list_client_profitability(
            db,
            start_date=start_date,
            end_date=end_date,
            household_id=household_id,
            tier=tier.value if tier else None,
            period_type=period_type.value if period_type else None,
            include_unprofitable=include_unprofitable,
        )
    except ServiceError as exc:
        raise handle_service_error(exc) from exc


@router.get("/profitability/report")
def get_profitability_report(
    start_date: date | None = None,
    end_date: date | None = None,
    session: UserSession = Depends(require_roles([Role.ADMIN])),
    db: Session = Depends(get_db),
) -> dict[str, Any]:
    try:
        return analytics_service.generate_profitability_report(db, start_date, end_date)
    except ServiceError as exc:
        raise handle_service_error(exc) from exc


@router.get("/profitability/household/{household_id:uuid}", response_model=ClientProfitabilityRead)
def get_household_profitability(
    household_id: UUID,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    row = analytics_service.get_household_profitability(db, household_id)
    if not row:
        raise HTTPException(status_code=404, detail="No profitability data for this household")
    return row


@router.put("/profitability/household/{household_id:uuid}", response_model=ClientProfitabilityRead)
def record_household_profitability(
    household_id: UUID,
    body: ProfitabilityInputUpdate,
    session: UserSession = Depends(require_roles([Role.ADMIN])),
    db: Session = Depends(get_db),
):
    try:
        return analytics_service.record_profitability(db, household_id, body.model_dump())
    except ServiceError as exc:
        raise handle_service_error(exc) from exc


@router.patch("/profitability/time-allocation", response_model=ClientProfitabilityRead)
def update_time_allocation(
    body: TimeAllocationUpdate,
    session: UserSession = Depends(require_roles(ROLES_CAN_VIEW_PROFITABILITY)),
    db: Session = Depends(get_db),
):
    hours = body.model_dump(include={"advisor_hours", "operations_hours", "compliance_hours"})
    try:
        return analytics_service.update_time_allocation(
            db, body.household_id, hours, period_date=body.period_date
        )
    except ServiceError as exc:
        raise handle_service_error(exc) from exc


# =============================================================================
# Firm metrics
# =============================================================================


@router.get("/firm/overview")
def get_firm_overview(
    start_date: date | None = None,
    end_date: date | None = None,
    period_type: PeriodType = PeriodType.MONTHLY,
    session: UserSession = Depends(require_roles(ROLES_CAN_VIEW_FIRM)),
    db: Session = Depends(get_db),
) -> dict[str, Any]:
    try:
        return analytics_service.get_firm_overview(db, start_date, end_date, period_type.value)
    except ServiceError as exc:
        raise handle_service_error(exc) from exc


@router.get("/firm/trend", response_model=list[FirmMetricsRead])
def get_firm_metrics_trend(
    start_date: date | None = None,
    end_date: date | None = None,
    period_type: PeriodType = PeriodType.MONTHLY,
    session: UserSession = Depends(require_roles(ROLES_CAN_VIEW_FIRM)),
    db: Session = Depends(get_db),
):
    try:
        return analytics_service.get_firm_metrics_trend(db, start_date, end_date, period_type.value)
    except ServiceError as exc:
        raise handle_service_error(exc) from exc


# =============================================================================
# Activity
# =============================================================================


@router.get("/activity", response_model=list[ActivitySnapshotRead])
def get_activity_snapshots(
    user_id: UUID | None = Query(default=None, description="Defaults to the caller"),
    snapshot_type: SnapshotType | None = None,
    start_date: date | None = None,
    end_date: date | None = None,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    target = user_id or session.user_id
    if target != session.user_id and session.role not in (Role.ADMIN, Role.MANAGER):
        raise HTTPException(status_code=403, detail="Cannot view another user's activity")
    return analytics_service.get_activity_snapshots(
        db,
        user_id=target,
        snapshot_type=snapshot_type.value if snapshot_type else None,
        start_date=start_date,
        end_date=end_date,
    )


@router.post("/activity/record", response_model=ActivitySnapshotRead)
def record_daily_activity(
    body: ActivityRecord | None = None,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    try:
        return analytics_service.record_daily_activity(
            db,
            session.user_id,
            increments=body.increments if body else None,
            additional_metrics=body.additional_metrics if body else None,
        )
    except ServiceError as exc:
        raise handle_service_error(exc) from exc
