"""
Party coordinator.

State machine::

    waiting --(leader start, all ready + locked)--> starting
    any     --(last member leaves | run finished | expiry)--> closed

Members are kept in join order; when the leader leaves, the earliest remaining
member takes over. Each operation commits before emitting its events so
subscribers never see state that could still roll back.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import timedelta
from typing import TYPE_CHECKING

from sqlalchemy import select

from smp.config import get_settings
from smp.db.models import Party, PartyMember, utcnow
from smp.errors import AppError, ErrorCode
from smp.gates.service import has_capacity, require_active_gate, set_party_occupancy
from smp.ids import generate_id
from smp.parties.events import party_events
from smp.parties.schemas import PartyMemberResponse, PartyResponse
from smp.profiles.service import require_player

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)

OPEN_STATES = ("waiting", "starting")


@dataclass
class PartyJoinResult:
    party: Party
    message: str


@dataclass
class PartyLeaveResult:
    message: str
    new_leader: str | None = None


def party_response(party: Party) -> PartyResponse:
    """Build a PartyResponse from a Party model."""
    return PartyResponse(
        party_id=party.id,
        gate_id=party.gate_id,
        leader=party.leader,
        capacity=party.capacity,
        state=party.state,
        run_id=party.run_id,
        members=[
            PartyMemberResponse(
                wallet=m.wallet,
                display_name=m.display_name,
                avatar_id=m.avatar_id,
                is_ready=m.is_ready,
                is_locked=m.is_locked,
                equipped_relic_ids=list(m.equipped_relic_ids or []),
                joined_at=m.joined_at,
            )
            for m in party.members
        ],
        created_at=party.created_at,
        updated_at=party.updated_at,
    )


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------


async def get_party(db: AsyncSession, party_id: str) -> Party | None:
    result = await db.execute(select(Party).where(Party.id == party_id))
    return result.scalar_one_or_none()


async def require_party(db: AsyncSession, party_id: str) -> Party:
    party = await get_party(db, party_id)
    if party is None:
        raise AppError.not_found(ErrorCode.PARTY_NOT_FOUND, "Party not found")
    return party


async def get_parties_by_gate(db: AsyncSession, gate_id: str) -> list[Party]:
    """Open parties at a gate, oldest first."""
    result = await db.execute(
        select(Party)
        .where(Party.gate_id == gate_id)
        .where(Party.state.in_(OPEN_STATES))
        .order_by(Party.created_at, Party.id)
    )
    return list(result.scalars().all())


async def get_parties_for_wallet(db: AsyncSession, wallet: str) -> list[Party]:
    """Parties the wallet leads or belongs to, excluding closed ones."""
    wallet = wallet.lower()
    member_party_ids = select(PartyMember.party_id).where(PartyMember.wallet == wallet)
    result = await db.execute(
        select(Party)
        .where(Party.state != "closed")
        .where((Party.leader == wallet) | Party.id.in_(member_party_ids))
        .order_by(Party.created_at.desc())
    )
    return list(result.scalars().all())


# ---------------------------------------------------------------------------
# Membership
# ---------------------------------------------------------------------------


async def create_party(db: AsyncSession, wallet: str, gate_id: str) -> Party:
    """Open a new party at a gate with the caller as leader and first member."""
    wallet = wallet.lower()
    player = await require_player(db, wallet)
    gate = await require_active_gate(db, gate_id)
    if not has_capacity(gate, 1):
        raise AppError.conflict(ErrorCode.PARTY_FULL, "Gate is at maximum capacity")

    capacity = min(get_settings().party_max_size, gate.capacity)
    party = Party(
        id=generate_id("p"),
        gate_id=gate.id,
        leader=wallet,
        capacity=capacity,
        state="waiting",
        members=[
            PartyMember(
                wallet=wallet,
                display_name=player.display_name,
                avatar_id=player.avatar_id,
                equipped_relic_ids=[],
            )
        ],
    )
    db.add(party)
    await set_party_occupancy(db, gate.id, party.id, 1, capacity)
    await db.commit()

    logger.info("Party %s created at gate %s by %s", party.id, gate.id, wallet)
    party_events.emit(party.id, "member_joined", {
        "wallet": wallet,
        "displayName": player.display_name,
        "avatarId": player.avatar_id,
    })
    return party


async def join_party(db: AsyncSession, wallet: str, party_id: str) -> PartyJoinResult:
    """Add the caller to a waiting party. Joining twice is a no-op."""
    wallet = wallet.lower()
    player = await require_player(db, wallet)
    party = await require_party(db, party_id)

    if party.state != "waiting":
        raise AppError.conflict(ErrorCode.PARTY_STARTED, "Party is no longer accepting new members")
    if party.member(wallet) is not None:
        return PartyJoinResult(party=party, message="Already a member of this party")
    if len(party.members) >= party.capacity:
        raise AppError.conflict(ErrorCode.PARTY_FULL, "Party is full")

    party.members.append(
        PartyMember(
            wallet=wallet,
            display_name=player.display_name,
            avatar_id=player.avatar_id,
            equipped_relic_ids=[],
        )
    )
    party.updated_at = utcnow()
    await set_party_occupancy(db, party.gate_id, party.id, len(party.members), party.capacity)
    await db.commit()

    logger.info("%s joined party %s (%d/%d)", wallet, party.id, len(party.members), party.capacity)
    party_events.emit(party.id, "member_joined", {
        "wallet": wallet,
        "displayName": player.display_name,
        "avatarId": player.avatar_id,
    })
    return PartyJoinResult(party=party, message="Successfully joined party")


async def join_or_create(db: AsyncSession, wallet: str, gate_id: str) -> PartyJoinResult:
    """
    Put the caller into a party at ``gate_id``.

    Preference order: the caller's own waiting party at the gate, then the
    oldest waiting party with a free slot, then a brand-new party.
    """
    wallet = wallet.lower()
    await require_player(db, wallet)
    await require_active_gate(db, gate_id)

    candidates = [p for p in await get_parties_by_gate(db, gate_id) if p.state == "waiting"]
    for party in candidates:
        if party.member(wallet) is not None:
            return PartyJoinResult(party=party, message="Already a member of this party")

    for party in candidates:
        if len(party.members) < party.capacity:
            return await join_party(db, wallet, party.id)

    party = await create_party(db, wallet, gate_id)
    return PartyJoinResult(party=party, message="Party created successfully")


async def leave_party(db: AsyncSession, wallet: str, party_id: str) -> PartyLeaveResult:
    """Remove the caller; hand leadership to the next member or disband when empty."""
    wallet = wallet.lower()
    party = await require_party(db, party_id)
    member = party.member(wallet)
    if member is None:
        raise AppError.forbidden(ErrorCode.NOT_A_MEMBER, "Not a member of this party")

    party.members.remove(member)
    party.updated_at = utcnow()

    message = "Left party successfully"
    new_leader: str | None = None
    disbanded = False

    if not party.members:
        party.state = "closed"
        await set_party_occupancy(db, party.gate_id, party.id, 0, party.capacity)
        message = "Left party, party disbanded"
        disbanded = True
    else:
        if party.leader == wallet:
            new_leader = party.members[0].wallet
            party.leader = new_leader
            message = "Left party, new leader elected"
        await set_party_occupancy(db, party.gate_id, party.id, len(party.members), party.capacity)

    await db.commit()

    logger.info("%s left party %s", wallet, party.id)
    party_events.emit(party.id, "member_left", {"wallet": wallet})
    if new_leader is not None:
        party_events.emit(party.id, "leader_changed", {"wallet": new_leader})
    if disbanded:
        party_events.emit(party.id, "closed", {"reason": "Party disbanded"})
        party_events.close_stream(party.id)

    return PartyLeaveResult(message=message, new_leader=new_leader)


async def update_member_state(
    db: AsyncSession,
    wallet: str,
    party_id: str,
    is_ready: bool | None = None,
    is_locked: bool | None = None,
    equipped_relic_ids: list[int] | None = None,
) -> Party:
    """Toggle ready / locked flags and record equipped relics for one member."""
    wallet = wallet.lower()
    party = await require_party(db, party_id)
    member = party.member(wallet)
    if member is None:
        raise AppError.forbidden(ErrorCode.NOT_A_MEMBER, "Not a member of this party")

    if is_ready is not None:
        member.is_ready = is_ready
    if is_locked is not None:
        member.is_locked = is_locked
    if equipped_relic_ids is not None:
        member.equipped_relic_ids = list(equipped_relic_ids)
    party.updated_at = utcnow()
    await db.commit()

    if is_ready is not None:
        party_events.emit(party.id, "ready_changed", {"wallet": wallet, "isReady": is_ready})
    if is_locked is not None:
        party_events.emit(party.id, "locked_changed", {"wallet": wallet, "isLocked": is_locked})
    return party


# ---------------------------------------------------------------------------
# Lifecycle
# ---------------------------------------------------------------------------


async def start_party(db: AsyncSession, wallet: str, party_id: str) -> str:
    """
    Move a waiting party to ``starting`` and create its run.

    Returns:
        The new run id.
    """
    from smp.runs.service import RunParticipantInput, create_run

    wallet = wallet.lower()
    party = await require_party(db, party_id)

    if party.state != "waiting":
        raise AppError.conflict(ErrorCode.PARTY_STARTED, "Party has already started")
    if party.leader != wallet:
        raise AppError.forbidden(ErrorCode.NOT_LEADER, "Only the party leader can start the party")
    if any(not m.is_ready for m in party.members):
        raise AppError.conflict(ErrorCode.MEMBER_NOT_READY, "All party members must be ready before starting")
    if any(not m.is_locked for m in party.members):
        raise AppError.conflict(ErrorCode.MEMBER_NOT_LOCKED, "All party members must be locked before starting")

    run = await create_run(
        db,
        party_id=party.id,
        gate_id=party.gate_id,
        boss_id=f"{party.gate_id}_BOSS_1",
        participants=[
            RunParticipantInput(
                wallet=m.wallet,
                display_name=m.display_name,
                avatar_id=m.avatar_id,
                equipped_relic_ids=list(m.equipped_relic_ids or []),
            )
            for m in party.members
        ],
    )
    party.state = "starting"
    party.run_id = run.id
    party.updated_at = utcnow()
    await db.commit()

    logger.info("Party %s started run %s", party.id, run.id)
    party_events.emit(party.id, "started", {"runId": run.id})
    return run.id


async def close_party(db: AsyncSession, party_id: str, reason: str = "Party closed") -> bool:
    """Close a party and release its gate slot. Returns False when there was nothing to close."""
    party = await get_party(db, party_id)
    if party is None or party.state == "closed":
        return False

    party.state = "closed"
    party.updated_at = utcnow()
    await set_party_occupancy(db, party.gate_id, party.id, 0, party.capacity)
    await db.commit()

    logger.info("Party %s closed: %s", party.id, reason)
    party_events.emit(party.id, "closed", {"reason": reason})
    party_events.close_stream(party.id)
    return True


async def cleanup_stale_parties(db: AsyncSession, max_age: timedelta | None = None) -> int:
    """Close ``waiting`` parties created longer ago than ``max_age``. Returns how many were closed."""
    if max_age is None:
        max_age = timedelta(minutes=get_settings().party_stale_minutes)
    cutoff = utcnow() - max_age

    result = await db.execute(
        select(Party.id)
        .where(Party.state == "waiting")
        .where(Party.created_at < cutoff)
    )
    stale_ids = list(result.scalars().all())

    closed = 0
    for party_id in stale_ids:
        if await close_party(db, party_id, "Party expired due to inactivity"):
            closed += 1

    if closed:
        logger.info("Closed %d stale parties", closed)
    return closed
