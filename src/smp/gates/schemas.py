"""Request/response schemas for the gate catalog."""

from __future__ import annotations

from datetime import datetime

from smp.schemas import CamelModel


class OccupancyEntry(CamelModel):
    party_id: str
    current: int
    max: int


class GateResponse(CamelModel):
    id: str
    rank: str
    name: str
    description: str
    thumb_url: str
    map_code: str
    capacity: int
    is_active: bool
    occupancy: list[OccupancyEntry]
    created_at: datetime
    updated_at: datetime


class GatesListResponse(CamelModel):
    gates: list[GateResponse]


class GateOccupancyResponse(CamelModel):
    available_capacity: int
    total_capacity: int
    occupancy: list[OccupancyEntry]


class SeedResponse(CamelModel):
    message: str
    count: int
