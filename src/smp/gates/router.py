"""Gate router: all /api/v1/gates/* endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from smp.database import get_session
from smp.db.models import Gate
from smp.errors import AppError, ErrorCode
from smp.gates.schemas import (
    GateOccupancyResponse,
    GateResponse,
    GatesListResponse,
    OccupancyEntry,
)
from smp.gates.service import available_capacity, get_gate, list_active_gates
from smp.parties.schemas import PartyResponse
from smp.parties.service import get_parties_by_gate, party_response
from smp.schemas import Envelope, ok

router = APIRouter(prefix="/api/v1/gates", tags=["Gates"])


def _occupancy(gate: Gate) -> list[OccupancyEntry]:
    return [
        OccupancyEntry(party_id=e["partyId"], current=e["current"], max=e["max"])
        for e in gate.occupancy or []
    ]


def gate_response(gate: Gate) -> GateResponse:
    """Build a GateResponse from a Gate model."""
    return GateResponse(
        id=gate.id,
        rank=gate.rank,
        name=gate.name,
        description=gate.description,
        thumb_url=gate.thumb_url,
        map_code=gate.map_code,
        capacity=gate.capacity,
        is_active=gate.is_active,
        occupancy=_occupancy(gate),
        created_at=gate.created_at,
        updated_at=gate.updated_at,
    )


async def _active_gate(db: AsyncSession, gate_id: str) -> Gate:
    gate = await get_gate(db, gate_id)
    if gate is None or not gate.is_active:
        raise AppError.not_found(ErrorCode.GATE_NOT_FOUND, f"Gate {gate_id} not found")
    return gate


@router.get("", response_model=Envelope[GatesListResponse])
async def list_gates(db: AsyncSession = Depends(get_session)) -> dict[str, object]:
    """All active gates with their live occupancy."""
    gates = await list_active_gates(db)
    return ok(GatesListResponse(gates=[gate_response(g) for g in gates]))


@router.get("/{gate_id}", response_model=Envelope[GateResponse])
async def get_gate_by_id(gate_id: str, db: AsyncSession = Depends(get_session)) -> dict[str, object]:
    gate = await _active_gate(db, gate_id)
    return ok(gate_response(gate))


@router.get("/{gate_id}/occupancy", response_model=Envelope[GateOccupancyResponse])
async def get_gate_occupancy(gate_id: str, db: AsyncSession = Depends(get_session)) -> dict[str, object]:
    """Free slots and per-party occupancy for one gate."""
    gate = await _active_gate(db, gate_id)
    return ok(
        GateOccupancyResponse(
            available_capacity=available_capacity(gate),
            total_capacity=gate.capacity,
            occupancy=_occupancy(gate),
        )
    )


@router.get("/{gate_id}/parties", response_model=Envelope[list[PartyResponse]])
async def list_gate_parties(gate_id: str, db: AsyncSession = Depends(get_session)) -> dict[str, object]:
    """Open (waiting or starting) parties at a gate."""
    await _active_gate(db, gate_id)
    parties = await get_parties_by_gate(db, gate_id)
    return ok([party_response(p) for p in parties])
