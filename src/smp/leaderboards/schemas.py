"""Response schemas for leaderboards."""

from __future__ import annotations

from datetime import datetime
from typing import Literal

from smp.schemas import CamelModel

WeeklyMetric = Literal["xp", "damage", "kills", "runs_completed"]
BossMetric = Literal["damage", "kills"]


class LeaderboardEntry(CamelModel):
    rank: int
    wallet: str
    display_name: str
    avatar_id: str
    value: int
    level: int = 1
    player_rank: str = "E"
    change: int = 0


class LeaderboardPeriod(CamelModel):
    start: datetime
    end: datetime


class LeaderboardResponse(CamelModel):
    scope: Literal["weekly", "per_boss", "all_time"]
    ref_id: str | None = None
    period: LeaderboardPeriod | None = None
    metric: str
    entries: list[LeaderboardEntry]
    total_entries: int
    last_updated: datetime


class PlayerLeaderboardStats(CamelModel):
    wallet: str
    display_name: str
    avatar_id: str
    current_rank: int | None = None
    total_score: int
    total_runs: int
    total_damage: int
    total_kills: int
    avg_damage: float
    avg_kills: float
    percentile: float


class LeaderboardStats(CamelModel):
    total_players: int
    total_runs: int
    average_score: float
    top_score: int


class CurrentWeekResponse(CamelModel):
    week_key: str
