"""On-chain settlement of a finished run.

Steps run sequentially and are not atomic: the BossKilled event first (its
failure aborts settlement), then one mint per relic, then one progress update
per XP award. A failed mint or progress update is logged and skipped.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from smp.chain.client import ChainClient
from smp.errors import AppError
from smp.ids import now_ms
from smp.runs.rewards import MintedRelic, XpAward

logger = logging.getLogger(__name__)


@dataclass
class SettledRelic:
    token_id: int
    cid: str
    owner: str


@dataclass
class SettlementResult:
    tx_hash: str
    relics: list[SettledRelic] = field(default_factory=list)
    mocked: bool = False


async def settle_run(
    client: ChainClient,
    gate_id: str,
    gate_rank: str,
    boss_id: str,
    participants: list[tuple[str, int]],
    awards: list[XpAward],
    relics: list[MintedRelic],
) -> SettlementResult:
    """
    Write a run's outcome on-chain.

    Args:
        participants: ``(wallet, damage)`` pairs in participant order.

    Raises:
        AppError: CHAIN_ERROR when the BossKilled transaction fails.
    """
    if client.is_mock:
        logger.info("Contracts not deployed, returning mock settlement for %s", boss_id)
        return SettlementResult(
            tx_hash=f"mock_tx_{now_ms()}",
            relics=[SettledRelic(token_id=r.token_id, cid=r.cid, owner=r.owner) for r in relics],
            mocked=True,
        )

    boss_tx = await client.emit_boss_killed(
        gate_id,
        gate_rank,
        boss_id,
        [wallet for wallet, _ in participants],
        [damage for _, damage in participants],
    )
    if not boss_tx.success:
        logger.warning("BossKilled transaction %s for %s reverted", boss_tx.tx_hash, boss_id)

    settled: list[SettledRelic] = []
    for relic in relics:
        try:
            minted = await client.mint_relic(relic.owner, relic.relic_type, list(relic.affixes.values()), relic.cid)
        except AppError as e:
            logger.error("Mint of %s for %s failed: %s", relic.relic_type, relic.owner, e.details or e.message)
            continue
        token_id = minted.token_id if minted.token_id is not None else relic.token_id
        settled.append(SettledRelic(token_id=token_id, cid=relic.cid, owner=relic.owner))

    for award in awards:
        try:
            await client.update_progress(award.wallet, award.rank, award.level, award.xp)
        except AppError as e:
            logger.error("Progress update for %s failed: %s", award.wallet, e.details or e.message)

    return SettlementResult(tx_hash=boss_tx.tx_hash, relics=settled)
