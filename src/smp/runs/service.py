"""
Run ledger: creates runs when a party starts and finishes them exactly once.

A finish call walks a fixed sequence: outbox lookup, validation, damage write,
reward calculation, terminal commit, chain settlement, profile and inventory
updates, party close, outbox store. Once ``ended_at`` is committed the run is
terminal even if a later step (settlement) fails.
"""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from sqlalchemy import select

from smp.chain.client import ChainClient, get_chain_client
from smp.chain.settlement import settle_run
from smp.db.models import Run, RunParticipant, utcnow
from smp.errors import AppError, ErrorCode
from smp.gates.service import get_gate
from smp.ids import generate_id, now_ms, random_suffix
from smp.inventory.service import add_relic
from smp.profiles.service import get_players_by_wallets, require_player, update_player_progress
from smp.runs.outbox import get_stored_response, store_response
from smp.runs.rewards import ParticipantDamage, ProfileSnapshot, calculate_rewards

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from smp.runs.schemas import Contribution

logger = logging.getLogger(__name__)

TEST_PARTY_PREFIX = "test_party_"
TEST_RUN_GATE_RANK = "C"


@dataclass
class RunParticipantInput:
    wallet: str
    display_name: str
    avatar_id: str
    equipped_relic_ids: list[int] = field(default_factory=list)
    damage: int = 0
    normal_kills: int = 0


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------


async def get_run(db: AsyncSession, run_id: str) -> Run | None:
    result = await db.execute(select(Run).where(Run.id == run_id))
    return result.scalar_one_or_none()


async def require_run(db: AsyncSession, run_id: str) -> Run:
    run = await get_run(db, run_id)
    if run is None:
        raise AppError.not_found(ErrorCode.RUN_NOT_FOUND, "Run not found")
    return run


async def get_run_results(db: AsyncSession, run_id: str) -> Run:
    """Return a finished run. Unfinished runs are reported as not found."""
    run = await require_run(db, run_id)
    if not run.is_finished:
        raise AppError.not_found(ErrorCode.RUN_NOT_FOUND, "Run results not available")
    return run


async def get_recent_runs(db: AsyncSession, limit: int = 10) -> list[Run]:
    """Most recently finished runs first."""
    result = await db.execute(
        select(Run)
        .where(Run.ended_at.is_not(None))
        .order_by(Run.ended_at.desc())
        .limit(limit)
    )
    return list(result.scalars().all())


async def get_runs_for_wallet(db: AsyncSession, wallet: str, limit: int = 20) -> list[Run]:
    result = await db.execute(
        select(Run)
        .join(RunParticipant, RunParticipant.run_id == Run.id)
        .where(RunParticipant.wallet == wallet.lower())
        .order_by(Run.started_at.desc())
        .limit(limit)
    )
    return list(result.scalars().unique().all())


# ---------------------------------------------------------------------------
# Creation
# ---------------------------------------------------------------------------


async def create_run(
    db: AsyncSession,
    party_id: str,
    gate_id: str,
    boss_id: str,
    participants: list[RunParticipantInput],
    run_id: str | None = None,
) -> Run:
    """Insert a run with its participants. The caller owns the transaction."""
    run = Run(
        id=run_id or generate_id("run"),
        party_id=party_id,
        gate_id=gate_id,
        boss_id=boss_id,
        started_at=utcnow(),
        participants=[
            RunParticipant(
                wallet=p.wallet.lower(),
                display_name=p.display_name,
                avatar_id=p.avatar_id,
                equipped_relic_ids=list(p.equipped_relic_ids),
                damage=p.damage,
                normal_kills=p.normal_kills,
            )
            for p in participants
        ],
    )
    db.add(run)
    await db.flush()
    logger.info("Created run %s for party %s (%d participants)", run.id, party_id, len(participants))
    return run


async def create_test_run(db: AsyncSession, wallet: str, gate_id: str) -> Run:
    """Single-player run with a synthetic party, for exercising the finish flow."""
    wallet = wallet.lower()
    player = await require_player(db, wallet)

    run_id = f"test_run_{now_ms()}_{random_suffix()}"
    run = await create_run(
        db,
        party_id=f"{TEST_PARTY_PREFIX}{run_id}",
        gate_id=gate_id,
        boss_id="TestBoss",
        participants=[
            RunParticipantInput(
                wallet=wallet,
                display_name=player.display_name or "TestPlayer",
                avatar_id=player.avatar_id or "m_swordsman",
            )
        ],
        run_id=run_id,
    )
    await db.commit()
    return run


# ---------------------------------------------------------------------------
# Finish
# ---------------------------------------------------------------------------


async def finish_run(
    db: AsyncSession,
    run_id: str,
    boss_id: str,
    contributions: list[Contribution],
    idempotency_key: str | None = None,
    client: ChainClient | None = None,
    rng: random.Random | None = None,
) -> dict[str, Any]:
    """
    Finish a run: rewards, settlement, profile and inventory updates.

    Returns:
        ``{"txHash": str, "relics": [{"tokenId": int, "cid": str}]}``. With an
        idempotency key, a repeated call returns the stored response verbatim.

    Raises:
        AppError: RUN_NOT_FOUND, RUN_ALREADY_FINISHED, INVALID_CONTRIBUTIONS,
            or CHAIN_ERROR when the boss-kill transaction fails.
    """
    if idempotency_key:
        stored = await get_stored_response(db, run_id, idempotency_key)
        if stored is not None:
            logger.info("Replaying stored finish response for %s", run_id)
            return stored

    run = await require_run(db, run_id)
    if run.is_finished:
        raise AppError.conflict(ErrorCode.RUN_ALREADY_FINISHED, "Run has already been finished")

    if len(contributions) != len(run.participants):
        raise AppError.bad_request(
            ErrorCode.INVALID_CONTRIBUTIONS,
            "Contributions must cover every participant",
            {"expected": len(run.participants), "received": len(contributions)},
        )

    by_wallet = {c.wallet.lower(): c for c in contributions}
    for participant in run.participants:
        contribution = by_wallet.get(participant.wallet)
        if contribution is None:
            continue
        participant.damage = contribution.damage
        if contribution.normal_kills is not None:
            participant.normal_kills = contribution.normal_kills

    players = await get_players_by_wallets(db, [p.wallet for p in run.participants])
    profiles = {
        wallet: ProfileSnapshot(xp=p.xp, level=p.level, rank=p.rank, sbt_token_id=p.sbt_token_id)
        for wallet, p in players.items()
    }
    rewards = calculate_rewards(
        [ParticipantDamage(wallet=p.wallet, damage=p.damage) for p in run.participants],
        profiles,
        rng=rng,
    )

    gained = {a.wallet: a.xp_gained for a in rewards.xp_awards}
    for participant in run.participants:
        participant.xp_gained = gained.get(participant.wallet, 0)

    run.boss_id = boss_id
    run.ended_at = utcnow()
    run.xp_awards = [a.to_dict() for a in rewards.xp_awards]
    run.rank_ups = [r.to_dict() for r in rewards.rank_ups]
    run.minted_relics = [r.to_dict() for r in rewards.minted_relics]
    await db.commit()
    logger.info(
        "Run %s finished: %d awards, %d rank ups, %d relics",
        run.id,
        len(rewards.xp_awards),
        len(rewards.rank_ups),
        len(rewards.minted_relics),
    )

    gate = await get_gate(db, run.gate_id)
    gate_rank = gate.rank if gate is not None else TEST_RUN_GATE_RANK
    settlement = await settle_run(
        client or get_chain_client(),
        run.gate_id,
        gate_rank,
        boss_id,
        [(p.wallet, p.damage) for p in run.participants],
        rewards.xp_awards,
        rewards.minted_relics,
    )

    settled_ids = {(r.owner, r.cid): r.token_id for r in settlement.relics}
    minted = []
    for relic in rewards.minted_relics:
        token_id = settled_ids.get((relic.owner, relic.cid))
        if token_id is None:
            continue
        relic.token_id = token_id
        minted.append(relic)
    run.tx_hash = settlement.tx_hash
    run.minted_relics = [r.to_dict() for r in minted]

    for award in rewards.xp_awards:
        await update_player_progress(
            db, award.wallet, award.xp, award.level, award.rank, sbt_token_id=award.sbt_token_id
        )
    for relic in minted:
        await add_relic(
            db,
            relic.owner,
            relic.token_id,
            relic.relic_type,
            relic.affixes,
            relic.cid,
            tx_hash=settlement.tx_hash,
        )
    await db.commit()

    if not run.party_id.startswith(TEST_PARTY_PREFIX):
        from smp.parties.service import close_party

        await close_party(db, run.party_id, "Run completed")

    response = {
        "txHash": settlement.tx_hash,
        "relics": [{"tokenId": r.token_id, "cid": r.cid} for r in minted],
    }
    if idempotency_key:
        await store_response(db, run.id, idempotency_key, response, settlement.tx_hash)
        await db.commit()

    return response
