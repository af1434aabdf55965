"""Outlook integration endpoints: OAuth connection, sync, email/event tagging, matching rules."""

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response
from sqlalchemy.orm import Session

from wealth_crm.core.deps import get_current_session, get_db, require_roles
from wealth_crm.core.exceptions import ServiceError, handle_service_error
from wealth_crm.core.rate_limit import SYNC_RATE_LIMIT, limiter
from wealth_crm.db.enums import ROLES_CAN_MANAGE_MATCHING_RULES
from wealth_crm.schemas.auth import UserSession
from wealth_crm.schemas.outlook import (
    ApplyRulesResponse,
    BulkTagRequest,
    BulkTagResponse,
    ConnectionRead,
    ConnectionUpdate,
    ConnectResponse,
    EmailListResponse,
    EmailRead,
    EventListResponse,
    EventRead,
    MatchingRuleCreate,
    MatchingRuleRead,
    MatchingRuleUpdate,
    OAuthCallback,
    SyncRequest,
    SyncResult,
    SyncStatus,
    TagRequest,
)
from wealth_crm.services import outlook_service


router = APIRouter(prefix="/integrations/outlook", tags=["integrations"])


# =============================================================================
# Connection
# =============================================================================


@router.post("/connect", response_model=ConnectResponse)
@limiter.limit(SYNC_RATE_LIMIT)
def connect_outlook(
    request: Request,
    session: UserSession = Depends(get_current_session),
):
    try:
        return outlook_service.begin_connect(session.user_id)
    except ServiceError as exc:
        raise handle_service_error(exc) from exc


@router.post("/callback", response_model=ConnectionRead)
async def outlook_callback(
    body: OAuthCallback,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    try:
        return await outlook_service.complete_connect(db, session.user_id, body.code, body.state)
    except ServiceError as exc:
        raise handle_service_error(exc) from exc


@router.get("/connection", response_model=ConnectionRead)
def get_connection(
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    connection = outlook_service.get_connection(db, session.user_id)
    if not connection:
        raise HTTPException(status_code=404, detail="Outlook is not connected")
    return connection


@router.patch("/connection", response_model=ConnectionRead)
def update_connection(
    body: ConnectionUpdate,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    connection = outlook_service.get_connection(db, session.user_id)
    if not connection:
        raise HTTPException(status_code=404, detail="Outlook is not connected")
    return outlook_service.update_connection(db, connection, body.model_dump(exclude_unset=True))


@router.delete("/connection", status_code=204)
def disconnect_outlook(
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    connection = outlook_service.get_connection(db, session.user_id)
    if not connection:
        raise HTTPException(status_code=404, detail="Outlook is not connected")
    outlook_service.disconnect(db, connection)
    return Response(status_code=204)


# =============================================================================
# Sync
# =============================================================================


@router.get("/sync/status", response_model=SyncStatus)
def get_sync_status(
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    return outlook_service.get_sync_status(db, session.user_id)


@router.post("/sync", response_model=SyncResult)
@limiter.limit(SYNC_RATE_LIMIT)
async def trigger_sync(
    request: Request,
    body: SyncRequest | None = None,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    try:
        return await outlook_service.sync_outlook(
            db, session.user_id, kinds=body.kinds if body else None
        )
    except ServiceError as exc:
        raise handle_service_error(exc) from exc


# =============================================================================
# Emails
# =============================================================================


@router.get("/emails", response_model=EmailListResponse)
def list_emails(
    household_id: UUID | None = None,
    account_id: UUID | None = None,
    person_id: UUID | None = None,
    untagged_only: bool = False,
    include_archived: bool = False,
    search: str | None = None,
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    items, total = outlook_service.list_emails(
        db,
        user_id=session.user_id,
        household_id=household_id,
        account_id=account_id,
        person_id=person_id,
        untagged_only=untagged_only,
        search=search,
        include_archived=include_archived,
        limit=limit,
        offset=offset,
    )
    return {"items": items, "total": total}


@router.post("/emails/bulk-tag", response_model=BulkTagResponse)
def bulk_tag_emails(
    body: BulkTagRequest,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    entities = body.model_dump(include={"household_id", "account_id", "person_id"})
    tagged = outlook_service.bulk_tag_emails(db, session.user_id, body.email_ids, entities)
    return {"tagged": tagged}


@router.get("/emails/{email_id:uuid}", response_model=EmailRead)
def get_email(
    email_id: UUID,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    email = outlook_service.get_email(db, session.user_id, email_id)
    if not email:
        raise HTTPException(status_code=404, detail="Email not found")
    return email


@router.patch("/emails/{email_id:uuid}/tag", response_model=EmailRead)
def tag_email(
    email_id: UUID,
    body: TagRequest,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    email = outlook_service.get_email(db, session.user_id, email_id)
    if not email:
        raise HTTPException(status_code=404, detail="Email not found")
    return outlook_service.tag_item(db, email, session.user_id, body.model_dump())


# =============================================================================
# Events
# =============================================================================


@router.get("/events", response_model=EventListResponse)
def list_events(
    household_id: UUID | None = None,
    account_id: UUID | None = None,
    person_id: UUID | None = None,
    untagged_only: bool = False,
    search: str | None = None,
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    items, total = outlook_service.list_events(
        db,
        user_id=session.user_id,
        household_id=household_id,
        account_id=account_id,
        person_id=person_id,
        untagged_only=untagged_only,
        search=search,
        limit=limit,
        offset=offset,
    )
    return {"items": items, "total": total}


@router.get("/events/{event_id:uuid}", response_model=EventRead)
def get_event(
    event_id: UUID,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    event = outlook_service.get_event(db, session.user_id, event_id)
    if not event:
        raise HTTPException(status_code=404, detail="Event not found")
    return event


@router.patch("/events/{event_id:uuid}/tag", response_model=EventRead)
def tag_event(
    event_id: UUID,
    body: TagRequest,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    event = outlook_service.get_event(db, session.user_id, event_id)
    if not event:
        raise HTTPException(status_code=404, detail="Event not found")
    return outlook_service.tag_item(db, event, session.user_id, body.model_dump())


# =============================================================================
# Matching rules
# =============================================================================


@router.get("/rules", response_model=list[MatchingRuleRead])
def list_rules(
    include_inactive: bool = False,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    return outlook_service.list_rules(db, include_inactive=include_inactive)


@router.post("/rules", response_model=MatchingRuleRead, status_code=201)
def create_rule(
    body: MatchingRuleCreate,
    session: UserSession = Depends(require_roles(ROLES_CAN_MANAGE_MATCHING_RULES)),
    db: Session = Depends(get_db),
):
    try:
        return outlook_service.create_rule(db, session.user_id, body.model_dump())
    except ServiceError as exc:
        raise handle_service_error(exc) from exc


@router.post("/rules/apply", response_model=ApplyRulesResponse)
def apply_rules(
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    # Admins and managers sweep every mailbox; everyone else only their own
    scope = None if session.role in ROLES_CAN_MANAGE_MATCHING_RULES else session.user_id
    return outlook_service.apply_matching_rules(db, user_id=scope)


@router.put("/rules/{rule_id:uuid}", response_model=MatchingRuleRead)
def update_rule(
    rule_id: UUID,
    body: MatchingRuleUpdate,
    session: UserSession = Depends(require_roles(ROLES_CAN_MANAGE_MATCHING_RULES)),
    db: Session = Depends(get_db),
):
    rule = outlook_service.get_rule(db, rule_id)
    if not rule:
        raise HTTPException(status_code=404, detail="Matching rule not found")
    try:
        return outlook_service.update_rule(db, rule, body.model_dump(exclude_unset=True))
    except ServiceError as exc:
        raise handle_service_error(exc) from exc


@router.delete("/rules/{rule_id:uuid}", status_code=204)
def delete_rule(
    rule_id: UUID,
    session: UserSession = Depends(require_roles(ROLES_CAN_MANAGE_MATCHING_RULES)),
    db: Session = Depends(get_db),
):
    rule = outlook_service.get_rule(db, rule_id)
    if not rule:
        raise HTTPException(status_code=404, detail="Matching rule not found")
    outlook_service.delete_rule(db, rule)
    return Response(status_code=204)


# =============================================================================
# Household views
# =============================================================================


@router.get("/households/{household_id:uuid}/emails", response_model=EmailListResponse)
def list_household_emails(
    household_id: UUID,
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    items, total = outlook_service.list_emails(
        db, household_id=household_id, limit=limit, offset=offset
    )
    return {"items": items, "total": total}


@router.get("/households/{household_id:uuid}/events", response_model=EventListResponse)
def list_household_events(
    household_id: UUID,
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    items, total = outlook_service.list_events(
        db, household_id=household_id, limit=limit, offset=offset
    )
    return {"items": items, "total": total}
