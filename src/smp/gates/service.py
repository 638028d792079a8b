"""Gate registry: catalog lookups and live occupancy bookkeeping.

Occupancy is a per-gate list of ``{partyId, current, max}`` entries, one per
open party. Entries whose ``current`` drops to zero are removed. The sum of
``current`` is checked against the gate capacity when parties form, but is not
enforced transactionally.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from sqlalchemy import select

from smp.db.models import Gate
from smp.errors import AppError, ErrorCode

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)

_RANK_ORDER = {"E": 0, "D": 1, "C": 2, "B": 3, "A": 4, "S": 5}


async def get_gate(db: AsyncSession, gate_id: str) -> Gate | None:
    """Fetch a gate whether or not it is active."""
    result = await db.execute(select(Gate).where(Gate.id == gate_id))
    return result.scalar_one_or_none()


async def require_active_gate(db: AsyncSession, gate_id: str) -> Gate:
    gate = await get_gate(db, gate_id)
    if gate is None:
        raise AppError.not_found(ErrorCode.GATE_NOT_FOUND, f"Gate {gate_id} not found")
    if not gate.is_active:
        raise AppError.conflict(ErrorCode.GATE_INACTIVE, f"Gate {gate_id} is not active")
    return gate


async def list_active_gates(db: AsyncSession) -> list[Gate]:
    """Active gates ordered E → S, then by name."""
    result = await db.execute(select(Gate).where(Gate.is_active.is_(True)))
    gates = list(result.scalars().all())
    gates.sort(key=lambda g: (_RANK_ORDER.get(g.rank, len(_RANK_ORDER)), g.name))
    return gates


def occupied_slots(gate: Gate) -> int:
    return sum(int(entry.get("current", 0)) for entry in gate.occupancy or [])


def available_capacity(gate: Gate) -> int:
    return max(0, gate.capacity - occupied_slots(gate))


def has_capacity(gate: Gate, slots: int = 1) -> bool:
    return available_capacity(gate) >= slots


def update_gate_occupancy(gate: Gate, party_id: str, current: int, max_size: int) -> None:
    """Upsert the party's occupancy entry and drop empty entries."""
    entries: list[dict[str, Any]] = [dict(e) for e in gate.occupancy or [] if e.get("partyId") != party_id]
    entries.append({"partyId": party_id, "current": current, "max": max_size})
    gate.occupancy = [e for e in entries if int(e.get("current", 0)) > 0]


def remove_party_from_gate(gate: Gate, party_id: str) -> None:
    gate.occupancy = [dict(e) for e in gate.occupancy or [] if e.get("partyId") != party_id]


async def set_party_occupancy(db: AsyncSession, gate_id: str, party_id: str, current: int, max_size: int) -> None:
    """Load the gate and write the party's occupancy (removing it when ``current`` is 0)."""
    gate = await get_gate(db, gate_id)
    if gate is None:
        logger.warning("Occupancy update for missing gate %s (party %s)", gate_id, party_id)
        return
    if current <= 0:
        remove_party_from_gate(gate, party_id)
    else:
        update_gate_occupancy(gate, party_id, current, max_size)
