"""Request/response schemas for the dev tools."""

from __future__ import annotations

from pydantic import Field

from smp.schemas import CamelModel, Rank


class MintTestRelicRequest(CamelModel):
    relic_type: str | None = Field(None, min_length=1, max_length=64)


class MintTestRelicResponse(CamelModel):
    token_id: int
    relic_type: str
    affixes: dict[str, int]
    cid: str
    equipped: bool = False


class UpdateXpRequest(CamelModel):
    xp: int = Field(..., ge=0, le=1_000_000)


class UpdateRankRequest(CamelModel):
    rank: Rank


class SimulateBossKillRequest(CamelModel):
    gate_id: str = Field(..., min_length=1)
    boss_id: str = Field("test_boss", min_length=1)
    damage: int = Field(10_000, ge=0)


class SimulateBossKillResponse(CamelModel):
    xp_gained: int
    new_xp: int
    new_level: int
    new_rank: str
    relic: MintTestRelicResponse
    boss_id: str
    gate_id: str


class MintSbtResponse(CamelModel):
    sbt_token_id: int
    wallet: str
    rank: str
    level: int
    xp: int
    message: str


class SystemStatsResponse(CamelModel):
    gates: int
    players: int
    runs: int
    parties: int
    relics: int


class ClearInventoryResponse(CamelModel):
    removed: int
