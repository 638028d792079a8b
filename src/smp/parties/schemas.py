"""Request/response schemas for parties."""

from __future__ import annotations

from datetime import datetime

from pydantic import Field

from smp.schemas import CamelModel


class PartyMemberResponse(CamelModel):
    wallet: str
    display_name: str
    avatar_id: str
    is_ready: bool
    is_locked: bool
    equipped_relic_ids: list[int]
    joined_at: datetime


class PartyResponse(CamelModel):
    party_id: str
    gate_id: str
    leader: str
    capacity: int
    state: str
    run_id: str | None = None
    members: list[PartyMemberResponse]
    created_at: datetime
    updated_at: datetime


class ReadyRequest(CamelModel):
    is_ready: bool


class LockRequest(CamelModel):
    is_locked: bool
    equipped_relic_ids: list[int] | None = Field(None, max_length=3)


class PartyActionResponse(CamelModel):
    party_id: str
    message: str


class LeaveResponse(CamelModel):
    message: str
    new_leader: str | None = None


class StartResponse(CamelModel):
    run_id: str
    message: str


class StartPayloadResponse(CamelModel):
    redirect: str


class MyPartyEntry(CamelModel):
    party_id: str
    gate_id: str
    leader: str
    capacity: int
    state: str
    member_count: int
    is_leader: bool
    joined_at: datetime | None = None
    created_at: datetime


class MyPartiesResponse(CamelModel):
    parties: list[MyPartyEntry]
