# backend/app/routers/matches.py
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Request, Response
from fastapi.responses import JSONResponse
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded

from ..config import MATCH_RATE_LIMIT, rate_limits_disabled
from ..exceptions import (
    DomainException,
    InvalidThrowValue,
    MatchNotPlaying,
    SelectionMissing,
    http_problem,
)
from ..schemas import (
    GameLogOut,
    GameStateOut,
    MatchSessionOut,
    MatchSetupIn,
    ReportOut,
    RulesIn,
    SelectionIn,
    SelectionOut,
    SignatureIn,
    ThrowIn,
)
from ..scoring import molkky
from ..services import (
    SIGNATURE_ROLES,
    SignatureError,
    ValidationError,
    build_report,
    history_rows,
    normalize_signature,
    sanitize_setup,
)
from ..services.report import points_label
from ..sessions import MatchSession, MatchSessionStore, NoPendingSelection, get_store
from .streams import broadcast

logger = logging.getLogger(__name__)

# Resource-only prefix; versioning is added in main.py
router = APIRouter(prefix="/matches", tags=["matches"])


def _client_ip(request: Request) -> str:
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        parts = [ip.strip() for ip in forwarded.split(",") if ip.strip()]
        if parts:
            return parts[-1]
    real_ip = request.headers.get("X-Real-IP")
    if real_ip:
        return real_ip
    if request.client and request.client.host:
        return request.client.host
    return "anonymous"


limiter = Limiter(key_func=_client_ip)


async def rate_limit_handler(request: Request, exc: RateLimitExceeded):
    detail = exc.detail if isinstance(exc.detail, str) else ""
    if detail:
        message = f"rate limit exceeded: {detail}"
    else:
        message = "rate limit exceeded: please wait before submitting another request."
    return JSONResponse(
        status_code=429,
        content={
            "detail": message,
            "code": "rate_limit_exceeded",
        },
    )


def _engine_problem(exc: ValueError) -> DomainException:
    if isinstance(exc, NoPendingSelection):
        return SelectionMissing()
    if isinstance(exc, molkky.MatchNotInProgress):
        return MatchNotPlaying(str(exc))
    return InvalidThrowValue(str(exc))


def _rules(body: Optional[RulesIn]) -> Optional[molkky.Rules]:
    if body is None:
        return None
    return molkky.Rules(
        target_score=body.targetScore,
        bust_reset_to=body.bustResetTo,
        max_faults=body.maxFaults,
    )


def _setup(body: MatchSetupIn):
    try:
        return sanitize_setup(
            body.nameA, body.rosterA, body.nameB, body.rosterB, body.startingTeam
        )
    except ValidationError as exc:
        raise http_problem(
            status_code=422,
            detail=exc.detail,
            code="match_invalid_setup",
        )


def _session_out(session: MatchSession) -> MatchSessionOut:
    state = session.state
    selected = session.selected_points
    return MatchSessionOut(
        id=session.id,
        state=GameStateOut.from_state(state),
        summary=molkky.summary(state),
        selectedPoints=selected,
        selectedLabel=points_label(selected) if selected is not None else None,
        canUndo=bool(state.history),
        signatures=sorted(session.signatures),
        createdAt=session.created_at,
        updatedAt=session.updated_at,
    )


async def _publish(session: MatchSession, event: str) -> None:
    await broadcast(
        session.id,
        {"event": event, "summary": molkky.summary(session.state)},
    )


# POST /api/v0/matches
@router.post("", response_model=MatchSessionOut, status_code=201)
async def create_match(
    body: MatchSetupIn,
    store: MatchSessionStore = Depends(get_store),
):
    setup = _setup(body)
    state = molkky.start_match(
        setup.name_a,
        setup.roster_a,
        setup.name_b,
        setup.roster_b,
        setup.starting_team,
        rules=_rules(body.rules),
    )
    session = await store.create(state)
    await _publish(session, "START")
    return _session_out(session)


# GET /api/v0/matches/{mid}
@router.get("/{mid}", response_model=MatchSessionOut)
async def get_match(mid: str, store: MatchSessionStore = Depends(get_store)):
    return _session_out(await store.get(mid))


# DELETE /api/v0/matches/{mid}
@router.delete("/{mid}", status_code=204)
async def delete_match(mid: str, store: MatchSessionStore = Depends(get_store)):
    await store.discard(mid)
    return Response(status_code=204)


# PUT /api/v0/matches/{mid}/selection
@router.put("/{mid}/selection", response_model=SelectionOut)
async def select_points(
    mid: str,
    body: SelectionIn,
    store: MatchSessionStore = Depends(get_store),
):
    session = await store.get(mid)
    try:
        points = session.select(body.points)
    except ValueError as exc:
        raise _engine_problem(exc)
    return SelectionOut.from_points(points)


# DELETE /api/v0/matches/{mid}/selection
@router.delete("/{mid}/selection", response_model=SelectionOut)
async def clear_selection(mid: str, store: MatchSessionStore = Depends(get_store)):
    session = await store.get(mid)
    session.clear_selection()
    return SelectionOut.from_points(None)


# POST /api/v0/matches/{mid}/confirm
@router.post("/{mid}/confirm", response_model=MatchSessionOut)
@limiter.limit(MATCH_RATE_LIMIT, exempt_when=rate_limits_disabled)
async def confirm_throw(
    request: Request,
    mid: str,
    store: MatchSessionStore = Depends(get_store),
):
    session = await store.get(mid)
    try:
        session.confirm()
    except ValueError as exc:
        raise _engine_problem(exc)
    await _publish(session, "THROW")
    return _session_out(session)


# POST /api/v0/matches/{mid}/throws
@router.post("/{mid}/throws", response_model=MatchSessionOut)
@limiter.limit(MATCH_RATE_LIMIT, exempt_when=rate_limits_disabled)
async def record_throw(
    request: Request,
    mid: str,
    body: ThrowIn,
    store: MatchSessionStore = Depends(get_store),
):
    session = await store.get(mid)
    try:
        session.throw(body.points)
    except ValueError as exc:
        raise _engine_problem(exc)
    await _publish(session, "THROW")
    return _session_out(session)


# POST /api/v0/matches/{mid}/undo
@router.post("/{mid}/undo", response_model=MatchSessionOut)
@limiter.limit(MATCH_RATE_LIMIT, exempt_when=rate_limits_disabled)
async def undo_throw(
    request: Request,
    mid: str,
    store: MatchSessionStore = Depends(get_store),
):
    session = await store.get(mid)
    if session.state.history:
        session.undo()
        await _publish(session, "UNDO")
    else:
        session.clear_selection()
    return _session_out(session)


# POST /api/v0/matches/{mid}/reset
@router.post("/{mid}/reset", response_model=MatchSessionOut)
async def reset_match(mid: str, store: MatchSessionStore = Depends(get_store)):
    session = await store.get(mid)
    session.reset()
    await _publish(session, "RESET")
    return _session_out(session)


# POST /api/v0/matches/{mid}/restart
@router.post("/{mid}/restart", response_model=MatchSessionOut)
async def restart_match(
    mid: str,
    body: MatchSetupIn,
    store: MatchSessionStore = Depends(get_store),
):
    session = await store.get(mid)
    session.restart(_setup(body), rules=_rules(body.rules))
    await _publish(session, "START")
    return _session_out(session)


# GET /api/v0/matches/{mid}/history
@router.get("/{mid}/history", response_model=list[GameLogOut])
async def match_history(mid: str, store: MatchSessionStore = Depends(get_store)):
    session = await store.get(mid)
    return [GameLogOut(**row) for row in history_rows(session.state)]


# GET /api/v0/matches/{mid}/report
@router.get("/{mid}/report", response_model=ReportOut)
async def match_report(mid: str, store: MatchSessionStore = Depends(get_store)):
    session = await store.get(mid)
    return ReportOut(**build_report(session.state, session.signatures))


def _check_role(role: str) -> str:
    if role not in SIGNATURE_ROLES:
        raise http_problem(
            status_code=404,
            detail=f"unknown signature role '{role}'",
            code="signature_role_unknown",
        )
    return role


# PUT /api/v0/matches/{mid}/signatures/{role}
@router.put("/{mid}/signatures/{role}", status_code=204)
async def save_signature(
    mid: str,
    role: str,
    body: SignatureIn,
    store: MatchSessionStore = Depends(get_store),
):
    _check_role(role)
    session = await store.get(mid)
    try:
        session.signatures[role] = normalize_signature(body.dataUrl)
    except SignatureError as exc:
        raise http_problem(
            status_code=exc.status_code,
            detail=exc.detail,
            code=exc.code,
        )
    logger.info("Captured %s signature for match %s", role, mid)
    return Response(status_code=204)


# DELETE /api/v0/matches/{mid}/signatures/{role}
@router.delete("/{mid}/signatures/{role}", status_code=204)
async def clear_signature(
    mid: str,
    role: str,
    store: MatchSessionStore = Depends(get_store),
):
    _check_role(role)
    session = await store.get(mid)
    session.signatures.pop(role, None)
    return Response(status_code=204)
