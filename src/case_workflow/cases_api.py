"""Cases API router: explicit registration for /cases endpoints."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import JSONResponse
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from case_workflow.audit_context import get_correlation_id
from case_workflow.auth import require_api_key
from case_workflow.authorization import Actor, UserRole
from case_workflow.case_lifecycle import (
    CASE_STATUS_VALUES,
    KNOWN_OUTCOMES,
    TERMINAL_STATUSES,
    CaseStatus,
    allowed_transitions,
    is_terminal,
)
from case_workflow.config import get_config
from case_workflow.db import session_scope
from case_workflow.errors import CaseNotFound
from case_workflow.models import Case
from case_workflow.repository import SqlCaseStore
from case_workflow.schemas import (
    AllowedTransitionsResponse,
    CaseCreateRequest,
    CaseResponse,
    ErrorResponse,
    StatusChangeRequest,
    StatusChangeResponse,
    TransitionResponse,
)
from case_workflow.service import CaseStatusService, StatusChangeFailure, build_service

cases_router = APIRouter(tags=["cases"])

# Failure kind -> HTTP status
FAILURE_STATUS_CODES: dict[str, int] = {
    "InvalidTransition": 400,
    "SelfTransition": 400,
    "MissingOutcome": 400,
    "OutcomeNotApplicable": 400,
    "InvalidOutcome": 400,
    "Unauthenticated": 401,
    "Forbidden": 403,
    "CaseNotFound": 404,
    "ConcurrentModification": 409,
    "UnknownStatus": 422,
    "PersistenceError": 503,
}

_CREATE_ROLES = frozenset({UserRole.ADMIN, UserRole.ATTORNEY, UserRole.PARALEGAL})


def get_status_service() -> CaseStatusService:
    """Dependency: service built from current config. Tests override this."""
    return build_service(get_config())


def _known_outcomes() -> list[str]:
    extra = (get_config().get("workflow") or {}).get("extra_outcomes") or []
    return sorted(KNOWN_OUTCOMES | {o.strip().upper() for o in extra})


def _case_to_response(case: Case) -> CaseResponse:
    resp = CaseResponse.model_validate(case)
    resp.allowed_transitions = sorted(s.value for s in allowed_transitions(CaseStatus(case.status)))
    return resp


@cases_router.post("/cases", response_model=CaseResponse, status_code=201)
def create_case(body: CaseCreateRequest, actor: Actor = Depends(require_api_key)) -> CaseResponse:
    """Create an OPEN case owned by the caller. Audited."""
    if actor.role not in _CREATE_ROLES:
        raise HTTPException(status_code=403, detail="Insufficient permissions to create cases")
    department = body.department_id or actor.department_id
    if actor.role != UserRole.ADMIN and actor.department_id and department != actor.department_id:
        raise HTTPException(status_code=403, detail="Cannot create cases for another department")
    try:
        case_id = SqlCaseStore().create_case(
            case_number=body.case_number,
            title=body.title,
            created_by_id=actor.id,
            assigned_to_id=body.assigned_to_id,
            department_id=department,
            correlation_id=get_correlation_id(),
        )
    except IntegrityError as e:
        raise HTTPException(status_code=409, detail="Case number already exists") from e
    return get_case(case_id)


@cases_router.get("/cases", response_model=list[CaseResponse])
def list_cases(
    status: str | None = Query(None),
    department_id: str | None = Query(None),
    assigned_to_id: str | None = Query(None),
    limit: int = Query(100, ge=1, le=1000),
) -> list[CaseResponse]:
    """List cases with optional filters."""
    if status is not None and status.upper() not in CASE_STATUS_VALUES:
        raise HTTPException(
            status_code=422, detail=f"status must be one of {sorted(CASE_STATUS_VALUES)}"
        )
    with session_scope() as session:
        stmt = select(Case).order_by(Case.created_at.desc(), Case.id.desc()).limit(limit)
        if status is not None:
            stmt = stmt.where(Case.status == status.upper())
        if department_id is not None:
            stmt = stmt.where(Case.department_id == department_id)
        if assigned_to_id is not None:
            stmt = stmt.where(Case.assigned_to_id == assigned_to_id)
        cases = list(session.execute(stmt).scalars().all())
        return [_case_to_response(c) for c in cases]


@cases_router.get("/cases/{case_id}", response_model=CaseResponse)
def get_case(case_id: int) -> CaseResponse:
    """Get case by ID, including the statuses it may move to next."""
    with session_scope() as session:
        case = session.execute(select(Case).where(Case.id == case_id)).scalar_one_or_none()
        if not case:
            raise HTTPException(status_code=404, detail="Case not found")
        return _case_to_response(case)


@cases_router.put(
    "/cases/{case_id}/status",
    response_model=StatusChangeResponse,
    responses={code: {"model": ErrorResponse} for code in (400, 401, 403, 404, 409, 422, 503)},
)
def change_status(
    case_id: int,
    body: StatusChangeRequest,
    actor: Actor = Depends(require_api_key),
    service: CaseStatusService = Depends(get_status_service),
) -> Any:
    """Move a case to a new status (optimistic concurrency on expected_version). Audited."""
    result = service.change_case_status(
        case_id,
        body.status,
        actor_id=actor.id,
        expected_version=body.expected_version,
        outcome=body.outcome,
        note=body.note,
    )
    if isinstance(result, StatusChangeFailure):
        return JSONResponse(
            status_code=FAILURE_STATUS_CODES.get(result.kind, 400),
            content=ErrorResponse(kind=result.kind, message=result.message).model_dump(),
        )
    return StatusChangeResponse(
        case_id=case_id,
        status=result.new_status.value,
        outcome=result.new_outcome,
        version=result.new_version,
        record_id=result.record_id,
    )


@cases_router.get("/cases/{case_id}/transitions", response_model=list[TransitionResponse])
def list_case_transitions(case_id: int) -> list[TransitionResponse]:
    """Status history of a case, oldest first."""
    try:
        rows = SqlCaseStore().list_transitions(case_id)
    except CaseNotFound as e:
        raise HTTPException(status_code=404, detail="Case not found") from e
    return [TransitionResponse.model_validate(r) for r in rows]


@cases_router.get("/cases/{case_id}/allowed-transitions", response_model=AllowedTransitionsResponse)
def get_allowed_transitions(case_id: int) -> AllowedTransitionsResponse:
    """Statuses reachable from the case's current status, and which of them need an outcome."""
    try:
        snap = SqlCaseStore().load_case(case_id)
    except CaseNotFound as e:
        raise HTTPException(status_code=404, detail="Case not found") from e
    allowed = allowed_transitions(snap.state.status)
    return AllowedTransitionsResponse(
        case_id=case_id,
        status=snap.state.status.value,
        version=snap.state.version,
        terminal=is_terminal(snap.state.status),
        allowed=sorted(s.value for s in allowed),
        outcome_required_for=sorted(s.value for s in allowed & TERMINAL_STATUSES),
        known_outcomes=_known_outcomes(),
    )
