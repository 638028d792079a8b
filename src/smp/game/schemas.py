"""Response schemas for the game client's start and completion screens."""

from __future__ import annotations

from smp.schemas import CamelModel


class GamePlayer(CamelModel):
    display_name: str
    rank: str
    level: int
    xp: int
    avatar_id: str
    image_url: str


class CurrentMission(CamelModel):
    gate_id: str
    gate_name: str
    boss_name: str
    difficulty: str
    description: str


class EquippedRelic(CamelModel):
    token_id: int
    name: str
    relic_type: str
    image_url: str
    benefits: list[str]


class GameFeature(CamelModel):
    title: str
    description: str
    icon: str


class GameStartData(CamelModel):
    player: GamePlayer
    current_mission: CurrentMission
    equipped_relics: list[EquippedRelic]
    game_features: list[GameFeature]


class Achievements(CamelModel):
    dungeons_conquered: int
    legendary_relics: int
    final_rank: str
    total_xp: int
    play_time: str


class Reward(CamelModel):
    type: str
    name: str
    description: str
    icon: str
    rarity: str


class RecentRelic(CamelModel):
    token_id: int
    name: str
    relic_type: str
    image_url: str
    rarity: str


class GameCompletionData(CamelModel):
    player: GamePlayer
    achievements: Achievements
    rewards: list[Reward]
    recent_relics: list[RecentRelic]
