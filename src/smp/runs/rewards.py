"""Reward calculation for finished runs.

Pure functions: given each participant's damage and current profile, compute
XP awards, level / rank changes and the relics to mint. Randomness (relic
type, affixes, placeholder ids) comes from an injectable ``random.Random``.

XP rules:
  base  = total_damage // participants // 10   (same for every participant)
  award = base + own_damage // 100
  level = xp // 1000 + 1
  rank  = RANKS[min(5, (level - 1) // 5)]      (only re-derived on level up)
"""

from __future__ import annotations

import random
import string
import time
from dataclasses import dataclass, field
from typing import Any

from smp.schemas import RANKS

XP_PER_LEVEL = 1000
LEVELS_PER_RANK = 5
MAX_RELICS_PER_RUN = 3

RELIC_TYPES: tuple[str, ...] = (
    "SunspireBand",
    "FrostbiteRing",
    "BlazingAmulet",
    "ShadowCloak",
    "VitalityPendant",
)

AFFIX_POOLS: dict[str, tuple[str, ...]] = {
    "SunspireBand": ("+Crit", "+Attack Speed", "+Movement Speed"),
    "FrostbiteRing": ("+Frost Damage", "+Mana", "+Cooldown Reduction"),
    "BlazingAmulet": ("+Fire Damage", "+Health", "+Defense"),
    "ShadowCloak": ("+Stealth", "+Evasion", "+Critical Damage"),
    "VitalityPendant": ("+Health", "+Regeneration", "+Max Health"),
}
DEFAULT_AFFIX_POOL: tuple[str, ...] = ("+Health", "+Defense")

AFFIX_MIN = 1
AFFIX_MAX = 20

_CID_ALPHABET = string.ascii_lowercase + string.digits


@dataclass(frozen=True)
class ParticipantDamage:
    wallet: str
    damage: int


@dataclass(frozen=True)
class ProfileSnapshot:
    """The parts of a profile the calculator reads."""

    xp: int
    level: int
    rank: str
    sbt_token_id: int | None = None


@dataclass
class XpAward:
    wallet: str
    xp: int
    xp_gained: int
    level: int
    rank: str
    sbt_token_id: int | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "wallet": self.wallet,
            "xp": self.xp,
            "xpGained": self.xp_gained,
            "level": self.level,
            "rank": self.rank,
            "sbtTokenId": self.sbt_token_id,
        }


@dataclass
class RankUp:
    wallet: str
    from_rank: str
    to_rank: str

    def to_dict(self) -> dict[str, Any]:
        return {"wallet": self.wallet, "from": self.from_rank, "to": self.to_rank}


@dataclass
class MintedRelic:
    token_id: int
    relic_type: str
    affixes: dict[str, int]
    cid: str
    owner: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "tokenId": self.token_id,
            "relicType": self.relic_type,
            "affixes": dict(self.affixes),
            "cid": self.cid,
            "owner": self.owner,
        }


@dataclass
class RewardResult:
    xp_awards: list[XpAward] = field(default_factory=list)
    rank_ups: list[RankUp] = field(default_factory=list)
    minted_relics: list[MintedRelic] = field(default_factory=list)


def base_xp_per_player(total_damage: int, participant_count: int) -> int:
    """Shared XP every participant receives (1 XP per 10 damage, split evenly)."""
    if participant_count <= 0:
        return 0
    return total_damage // participant_count // 10


def calculate_xp_award(total_damage: int, participant_count: int, damage: int) -> int:
    return base_xp_per_player(total_damage, participant_count) + damage // 100


def calculate_level_and_rank(xp: int, current_level: int, current_rank: str) -> tuple[int, str, bool]:
    """
    Derive level and rank from total XP.

    Returns:
        ``(level, rank, leveled_up)``. The rank is re-derived only when the
        level increased; otherwise the current rank is kept.
    """
    level = xp // XP_PER_LEVEL + 1
    if level <= current_level:
        return level, current_rank, False
    rank_index = min(len(RANKS) - 1, (level - 1) // LEVELS_PER_RANK)
    return level, RANKS[rank_index], True


def pick_relic_type(rng: random.Random) -> str:
    return rng.choice(RELIC_TYPES)


def generate_affixes(relic_type: str, rng: random.Random) -> dict[str, int]:
    """Two or three distinct affixes from the type's pool, each 1..20."""
    pool = AFFIX_POOLS.get(relic_type, DEFAULT_AFFIX_POOL)
    count = min(len(pool), rng.randint(2, 3))
    return {name: rng.randint(AFFIX_MIN, AFFIX_MAX) for name in rng.sample(pool, count)}


def placeholder_cid(rng: random.Random) -> str:
    """IPFS-looking placeholder until real metadata is pinned."""
    return "Qm" + "".join(rng.choice(_CID_ALPHABET) for _ in range(44))


def generate_sbt_token_id(rng: random.Random, now_ms: int) -> int:
    return now_ms + rng.randrange(1000)


def calculate_rewards(
    participants: list[ParticipantDamage],
    profiles: dict[str, ProfileSnapshot],
    rng: random.Random | None = None,
    now_ms: int | None = None,
) -> RewardResult:
    """
    Compute XP awards, rank ups and relic mints for a finished run.

    Participants without a profile earn no XP but still count toward the
    damage split. Relics go to the first ``min(3, n)`` participants in order.
    """
    rng = rng or random.Random()
    if now_ms is None:
        now_ms = int(time.time() * 1000)

    result = RewardResult()
    count = len(participants)
    total_damage = sum(p.damage for p in participants)

    for participant in participants:
        profile = profiles.get(participant.wallet)
        if profile is None:
            continue

        gained = calculate_xp_award(total_damage, count, participant.damage)
        new_xp = profile.xp + gained
        level, rank, leveled_up = calculate_level_and_rank(new_xp, profile.level, profile.rank)

        sbt_token_id = profile.sbt_token_id
        if sbt_token_id is None:
            sbt_token_id = generate_sbt_token_id(rng, now_ms)

        result.xp_awards.append(
            XpAward(
                wallet=participant.wallet,
                xp=new_xp,
                xp_gained=gained,
                level=level,
                rank=rank,
                sbt_token_id=sbt_token_id,
            )
        )
        # Recorded on every level increase, even when the rank bucket is unchanged.
        if leveled_up:
            result.rank_ups.append(RankUp(wallet=participant.wallet, from_rank=profile.rank, to_rank=rank))

    for index, participant in enumerate(participants[:MAX_RELICS_PER_RUN]):
        relic_type = pick_relic_type(rng)
        result.minted_relics.append(
            MintedRelic(
                token_id=now_ms + index,
                relic_type=relic_type,
                affixes=generate_affixes(relic_type, rng),
                cid=placeholder_cid(rng),
                owner=participant.wallet,
            )
        )

    return result
