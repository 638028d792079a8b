"""Request/response schemas for player profiles."""

from __future__ import annotations

from datetime import datetime

from pydantic import Field

from smp.schemas import AvatarId, CamelModel, DisplayName


class ProfileUpsertRequest(CamelModel):
    display_name: DisplayName
    avatar_id: AvatarId
    image_url: str = Field(..., min_length=1, max_length=2048, pattern=r"^https?://")


class ProfileResponse(CamelModel):
    wallet: str
    display_name: str
    avatar_id: str
    image_url: str
    rank: str
    level: int
    xp: int
    sbt_token_id: int | None = None
    created_at: datetime
    updated_at: datetime


class TopPlayerEntry(CamelModel):
    wallet: str
    display_name: str
    rank: str
    level: int
    xp: int


class ProfileSearchResult(CamelModel):
    wallet: str
    display_name: str
    avatar_id: str
    rank: str
    level: int
