"""Request/response schemas for runs."""

from __future__ import annotations

from datetime import datetime

from pydantic import Field

from smp.schemas import Address, CamelModel


class Contribution(CamelModel):
    wallet: Address
    damage: int = Field(..., ge=0)
    normal_kills: int | None = Field(None, ge=0)


class FinishRunRequest(CamelModel):
    boss_id: str = Field(..., min_length=1, max_length=96)
    contributions: list[Contribution] = Field(..., min_length=1)


class RelicRef(CamelModel):
    token_id: int
    cid: str


class FinishRunResponse(CamelModel):
    tx_hash: str
    relics: list[RelicRef]


class CreateTestRunResponse(CamelModel):
    run_id: str
    message: str


class ParticipantResponse(CamelModel):
    wallet: str
    display_name: str
    avatar_id: str
    damage: int
    normal_kills: int


class XpAwardResponse(CamelModel):
    wallet: str
    xp: int
    xp_gained: int = 0
    level: int | None = None
    rank: str | None = None
    sbt_token_id: int | None = None


class RankUpResponse(CamelModel):
    wallet: str
    from_rank: str = Field(..., alias="from")
    to_rank: str = Field(..., alias="to")


class RunResultsResponse(CamelModel):
    run_id: str
    gate_id: str
    boss_id: str
    participants: list[ParticipantResponse]
    minted_relics: list[RelicRef]
    xp_awards: list[XpAwardResponse]
    rank_ups: list[RankUpResponse]
    tx_hash: str | None = None
    completed_at: datetime


class RunResponse(CamelModel):
    run_id: str
    party_id: str
    gate_id: str
    boss_id: str
    participants: list[ParticipantResponse]
    started_at: datetime
    ended_at: datetime | None = None
    status: str


class RecentRunEntry(CamelModel):
    run_id: str
    gate_id: str
    boss_id: str
    total_damage: int
    participant_count: int
    completed_at: datetime | None = None
    top_performer: ParticipantResponse | None = None
