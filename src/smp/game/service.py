"""Data for the game client's start and completion screens."""

from __future__ import annotations

from datetime import timedelta
from typing import TYPE_CHECKING, Any

from sqlalchemy import select

from smp.db.models import InventoryItem, Player, Run, RunParticipant
from smp.gates.service import get_gate
from smp.inventory.service import get_equipped_items, get_items
from smp.profiles.service import require_player
from smp.runs.service import get_runs_for_wallet
from smp.runs.rewards import AFFIX_MAX

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

PLACEHOLDER_IMAGE = "/api/placeholder/64/64"
DEFAULT_BENEFITS = ["Enhanced Power", "Shadow Mastery"]

GAME_FEATURES: list[dict[str, str]] = [
    {"title": "Shadow Army Command", "description": "Command your army of shadow soldiers in epic battles", "icon": "users"},
    {"title": "Blockchain Relics", "description": "Own unique NFT relics with real value", "icon": "sword"},
    {"title": "Real-time Combat", "description": "Engage in fast-paced multiplayer battles", "icon": "bolt"},
    {"title": "Boss Hunting", "description": "Hunt legendary bosses and earn rewards", "icon": "trophy"},
]

DEFAULT_MISSION: dict[str, str] = {
    "gate_id": "E_GOBLIN_CAVE",
    "gate_name": "Goblin Cave",
    "boss_name": "E_GOBLIN_CAVE_BOSS_1",
    "difficulty": "E-Rank",
    "description": "A dark cave infested with weak goblins. Perfect for beginners.",
}

# Highest affix magnitude -> rarity label
_RARITY_THRESHOLDS: tuple[tuple[int, str], ...] = (
    (AFFIX_MAX - 2, "Legendary"),
    (15, "Epic"),
    (11, "Rare"),
    (6, "Uncommon"),
)


def relic_rarity(affixes: dict[str, int] | None) -> str:
    peak = max((affixes or {}).values(), default=0)
    for threshold, label in _RARITY_THRESHOLDS:
        if peak >= threshold:
            return label
    return "Common"


def relic_name(item: InventoryItem) -> str:
    return item.name or f"{item.relic_type} Relic"


def format_play_time(total: timedelta) -> str:
    minutes = int(total.total_seconds()) // 60
    return f"{minutes // 60}h {minutes % 60}m"


def _player(player: Player) -> dict[str, Any]:
    return {
        "display_name": player.display_name,
        "rank": player.rank,
        "level": player.level,
        "xp": player.xp,
        "avatar_id": player.avatar_id,
        "image_url": player.image_url,
    }


async def _current_mission(db: AsyncSession, runs: list[Run]) -> dict[str, str]:
    if not runs:
        return dict(DEFAULT_MISSION)
    latest = runs[0]
    gate = await get_gate(db, latest.gate_id)
    if gate is None:
        return {**DEFAULT_MISSION, "gate_id": latest.gate_id, "boss_name": latest.boss_id}
    return {
        "gate_id": gate.id,
        "gate_name": gate.name,
        "boss_name": latest.boss_id,
        "difficulty": f"{gate.rank}-Rank",
        "description": gate.description,
    }


async def get_game_start_data(db: AsyncSession, wallet: str) -> dict[str, Any]:
    """Profile, the gate of the latest run, equipped relics and the feature blurbs."""
    player = await require_player(db, wallet)
    runs = await get_runs_for_wallet(db, player.wallet, limit=1)
    equipped = await get_equipped_items(db, player.wallet)

    return {
        "player": _player(player),
        "current_mission": await _current_mission(db, runs),
        "equipped_relics": [
            {
                "token_id": item.token_id,
                "name": relic_name(item),
                "relic_type": item.relic_type,
                "image_url": item.image_url or PLACEHOLDER_IMAGE,
                "benefits": list(item.benefits or DEFAULT_BENEFITS),
            }
            for item in equipped
        ],
        "game_features": GAME_FEATURES,
    }


async def get_game_completion_data(db: AsyncSession, wallet: str) -> dict[str, Any]:
    """Achievements across finished runs plus the rewards of the latest one."""
    player = await require_player(db, wallet)

    result = await db.execute(
        select(Run)
        .join(RunParticipant, RunParticipant.run_id == Run.id)
        .where(RunParticipant.wallet == player.wallet)
        .where(Run.ended_at.is_not(None))
        .order_by(Run.ended_at.desc())
    )
    finished = list(result.scalars().all())
    play_time = sum((r.ended_at - r.started_at for r in finished), timedelta())

    items = await get_items(db, player.wallet)
    recent = sorted(items, key=lambda i: i.created_at, reverse=True)[:3]
    legendary = [i for i in items if relic_rarity(i.affixes) == "Legendary"]

    rewards: list[dict[str, str]] = []
    if finished:
        latest = finished[0]
        for relic in latest.minted_relics or []:
            if relic.get("owner") != player.wallet:
                continue
            rewards.append(
                {
                    "type": "relic",
                    "name": f"{relic['relicType']} #{relic['tokenId']}",
                    "description": "NFT Relic",
                    "icon": "relic",
                    "rarity": relic_rarity(relic.get("affixes")),
                }
            )
        for award in latest.xp_awards or []:
            if award.get("wallet") == player.wallet:
                rewards.append(
                    {
                        "type": "xp",
                        "name": f"{award.get('xpGained', 0)} XP",
                        "description": "Experience",
                        "icon": "xp",
                        "rarity": "Common",
                    }
                )

    return {
        "player": _player(player),
        "achievements": {
            "dungeons_conquered": len(finished),
            "legendary_relics": len(legendary),
            "final_rank": player.rank,
            "total_xp": player.xp,
            "play_time": format_play_time(play_time),
        },
        "rewards": rewards,
        "recent_relics": [
            {
                "token_id": item.token_id,
                "name": relic_name(item),
                "relic_type": item.relic_type,
                "image_url": item.image_url or PLACEHOLDER_IMAGE,
                "rarity": relic_rarity(item.affixes),
            }
            for item in recent
        ],
    }
