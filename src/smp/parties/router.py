"""Party router: all /api/v1/party/* endpoints, including the SSE stream."""

from __future__ import annotations

import asyncio
import json
from collections.abc import AsyncIterator

import structlog
from fastapi import APIRouter, Depends, Request, Response
from fastapi.responses import StreamingResponse
from sqlalchemy.ext.asyncio import AsyncSession

from smp.auth.dependencies import get_current_wallet
from smp.auth.jwt import create_game_session_token, game_ttl_seconds
from smp.config import get_settings
from smp.database import get_session
from smp.errors import AppError, ErrorCode
from smp.parties.events import PartyEvent, party_events
from smp.parties.schemas import (
    LeaveResponse,
    LockRequest,
    MyPartiesResponse,
    MyPartyEntry,
    PartyActionResponse,
    PartyResponse,
    ReadyRequest,
    StartPayloadResponse,
    StartResponse,
)
from smp.parties.service import (
    get_parties_for_wallet,
    join_or_create,
    join_party,
    leave_party,
    party_response,
    require_party,
    start_party,
    update_member_state,
)
from smp.schemas import Envelope, ok

logger = structlog.get_logger()

router = APIRouter(prefix="/api/v1/party", tags=["Parties"])

KEEPALIVE_SECONDS = 15.0


@router.post("/{gate_id}/join-or-create", response_model=Envelope[PartyActionResponse])
async def join_or_create_party(
    gate_id: str,
    wallet: str = Depends(get_current_wallet),
    db: AsyncSession = Depends(get_session),
) -> dict[str, object]:
    """Join an open party at the gate, or open a new one."""
    result = await join_or_create(db, wallet, gate_id)
    logger.info("party_join_or_create", wallet=wallet, gate_id=gate_id, party_id=result.party.id)
    return ok(PartyActionResponse(party_id=result.party.id, message=result.message))


@router.post("/{party_id}/join", response_model=Envelope[PartyActionResponse])
async def join(
    party_id: str,
    wallet: str = Depends(get_current_wallet),
    db: AsyncSession = Depends(get_session),
) -> dict[str, object]:
    result = await join_party(db, wallet, party_id)
    return ok(PartyActionResponse(party_id=result.party.id, message=result.message))


@router.post("/{party_id}/ready", response_model=Envelope[PartyActionResponse])
async def set_ready(
    party_id: str,
    body: ReadyRequest,
    wallet: str = Depends(get_current_wallet),
    db: AsyncSession = Depends(get_session),
) -> dict[str, object]:
    """Set the caller's ready flag."""
    await update_member_state(db, wallet, party_id, is_ready=body.is_ready)
    return ok(PartyActionResponse(party_id=party_id, message="Member state updated successfully"))


@router.post("/{party_id}/lock", response_model=Envelope[PartyActionResponse])
async def set_locked(
    party_id: str,
    body: LockRequest,
    wallet: str = Depends(get_current_wallet),
    db: AsyncSession = Depends(get_session),
) -> dict[str, object]:
    """Lock in (or unlock) the caller's equipment selection."""
    await update_member_state(
        db,
        wallet,
        party_id,
        is_locked=body.is_locked,
        equipped_relic_ids=body.equipped_relic_ids,
    )
    return ok(PartyActionResponse(party_id=party_id, message="Member state updated successfully"))


@router.post("/{party_id}/leave", response_model=Envelope[LeaveResponse])
async def leave(
    party_id: str,
    wallet: str = Depends(get_current_wallet),
    db: AsyncSession = Depends(get_session),
) -> dict[str, object]:
    result = await leave_party(db, wallet, party_id)
    return ok(LeaveResponse(message=result.message, new_leader=result.new_leader))


@router.post("/{party_id}/start", response_model=Envelope[StartResponse])
async def start(
    party_id: str,
    wallet: str = Depends(get_current_wallet),
    db: AsyncSession = Depends(get_session),
) -> dict[str, object]:
    """Leader-only: start the run once every member is ready and locked."""
    run_id = await start_party(db, wallet, party_id)
    logger.info("party_started", party_id=party_id, run_id=run_id)
    return ok(StartResponse(run_id=run_id, message="Party started successfully"))


@router.get("/my-parties", response_model=Envelope[MyPartiesResponse])
async def my_parties(
    wallet: str = Depends(get_current_wallet),
    db: AsyncSession = Depends(get_session),
) -> dict[str, object]:
    """Open parties the caller leads or belongs to."""
    parties = await get_parties_for_wallet(db, wallet)
    entries = []
    for party in parties:
        member = party.member(wallet)
        entries.append(
            MyPartyEntry(
                party_id=party.id,
                gate_id=party.gate_id,
                leader=party.leader,
                capacity=party.capacity,
                state=party.state,
                member_count=len(party.members),
                is_leader=party.leader == wallet,
                joined_at=member.joined_at if member is not None else None,
                created_at=party.created_at,
            )
        )
    return ok(MyPartiesResponse(parties=entries))


@router.get("/{party_id}", response_model=Envelope[PartyResponse])
async def get_party_details(party_id: str, db: AsyncSession = Depends(get_session)) -> dict[str, object]:
    party = await require_party(db, party_id)
    return ok(party_response(party))


def _format_sse(event: PartyEvent) -> str:
    return f"data: {json.dumps(event.to_dict())}\n\n"


async def _event_stream(request: Request, party_id: str) -> AsyncIterator[str]:
    queue = party_events.subscribe(party_id)
    try:
        yield ": connected\n\n"
        while True:
            if await request.is_disconnected():
                break
            try:
                event = await asyncio.wait_for(queue.get(), timeout=KEEPALIVE_SECONDS)
            except asyncio.TimeoutError:
                yield ": keepalive\n\n"
                continue
            if event is None:
                break
            yield _format_sse(event)
    finally:
        party_events.unsubscribe(party_id, queue)
        logger.debug("party_stream_closed", party_id=party_id)


@router.get("/{party_id}/stream")
async def stream(
    party_id: str,
    request: Request,
    wallet: str = Depends(get_current_wallet),
    db: AsyncSession = Depends(get_session),
) -> StreamingResponse:
    """Server-sent events for live party updates (members only)."""
    party = await require_party(db, party_id)
    if party.member(wallet) is None and party.leader != wallet:
        raise AppError.forbidden(ErrorCode.NOT_A_MEMBER, "Not a member of this party")

    return StreamingResponse(
        _event_stream(request, party_id),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )


@router.get("/{party_id}/start-payload", response_model=Envelope[StartPayloadResponse])
async def start_payload(
    party_id: str,
    response: Response,
    wallet: str = Depends(get_current_wallet),
    db: AsyncSession = Depends(get_session),
) -> dict[str, object]:
    """Hand the game client its seat in the run via the ``gb_game`` cookie."""
    settings = get_settings()
    party = await require_party(db, party_id)

    if party.state != "starting":
        raise AppError.conflict(ErrorCode.PARTY_STARTED, "Party is not in starting state")
    if party.run_id is None:
        raise AppError.internal_error("Party missing run ID")

    member = party.member(wallet)
    if member is None:
        raise AppError.forbidden(ErrorCode.NOT_A_MEMBER, "Not a member of this party")

    game_token = create_game_session_token({
        "partyId": party.id,
        "runId": party.run_id,
        "wallet": wallet,
        "displayName": member.display_name,
        "avatarId": member.avatar_id,
        "equippedRelicIds": list(member.equipped_relic_ids or []),
        "roomToken": f"room_{party.run_id}_{wallet}",
    })
    response.set_cookie(
        key=settings.game_cookie_name,
        value=game_token,
        max_age=game_ttl_seconds(),
        httponly=False,
        secure=settings.cookie_secure,
        samesite="lax",
        path="/",
    )

    return ok(StartPayloadResponse(redirect=f"https://play.{settings.domain}/run/{party.run_id}"))
