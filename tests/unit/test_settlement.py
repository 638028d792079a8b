"""Unit tests for on-chain run settlement with a fake chain client."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from smp.chain.client import MintResult, TransactionResult
from smp.chain.settlement import settle_run
from smp.errors import AppError
from smp.runs.rewards import MintedRelic, XpAward

ALICE = "0x" + "a1" * 20
BOB = "0x" + "b2" * 20


def _relic(owner: str, token_id: int, cid: str) -> MintedRelic:
    return MintedRelic(token_id=token_id, relic_type="ShadowCloak", affixes={"+Stealth": 4, "+Evasion": 9}, cid=cid, owner=owner)


def _award(wallet: str) -> XpAward:
    return XpAward(wallet=wallet, xp=1200, xp_gained=200, level=2, rank="E", sbt_token_id=7)


def _client(mock: bool = False) -> MagicMock:
    client = MagicMock()
    client.is_mock = mock
    client.emit_boss_killed = AsyncMock(return_value=TransactionResult(tx_hash="0xboss", success=True))
    client.mint_relic = AsyncMock(side_effect=[MintResult("0xm1", 501), MintResult("0xm2", None)])
    client.update_progress = AsyncMock(return_value=TransactionResult(tx_hash="0xp", success=True))
    return client


class TestSettleRun:
    @pytest.mark.asyncio
    async def test_mock_mode_skips_chain(self):
        client = _client(mock=True)
        result = await settle_run(client, "E_GOBLIN_CAVE", "E", "Goblin King", [(ALICE, 10)], [_award(ALICE)], [_relic(ALICE, 1, "QmA")])

        assert result.mocked
        assert result.tx_hash.startswith("mock_tx_")
        assert [(r.token_id, r.cid, r.owner) for r in result.relics] == [(1, "QmA", ALICE)]
        client.emit_boss_killed.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_full_settlement(self):
        client = _client()
        relics = [_relic(ALICE, 1, "QmA"), _relic(BOB, 2, "QmB")]

        result = await settle_run(
            client, "E_GOBLIN_CAVE", "E", "Goblin King", [(ALICE, 600), (BOB, 400)], [_award(ALICE), _award(BOB)], relics
        )

        assert result.tx_hash == "0xboss"
        assert not result.mocked
        # Minted id from the Transfer log wins; the placeholder is kept otherwise
        assert [(r.token_id, r.owner) for r in result.relics] == [(501, ALICE), (2, BOB)]
        client.emit_boss_killed.assert_awaited_once_with("E_GOBLIN_CAVE", "E", "Goblin King", [ALICE, BOB], [600, 400])
        client.mint_relic.assert_any_await(ALICE, "ShadowCloak", [4, 9], "QmA")
        assert client.update_progress.await_count == 2

    @pytest.mark.asyncio
    async def test_boss_event_failure_aborts(self):
        client = _client()
        client.emit_boss_killed.side_effect = AppError.chain_error("Failed to emit BossKilled event")

        with pytest.raises(AppError) as exc:
            await settle_run(client, "E_GOBLIN_CAVE", "E", "Boss", [(ALICE, 1)], [_award(ALICE)], [_relic(ALICE, 1, "QmA")])

        assert exc.value.status_code == 502
        client.mint_relic.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_reverted_boss_event_logs_warning(self, caplog):
        client = _client()
        client.emit_boss_killed.return_value = TransactionResult(tx_hash="0xrevert", success=False)
        client.mint_relic.side_effect = [MintResult("0xm1", 501)]

        with caplog.at_level("WARNING", logger="smp.chain.settlement"):
            result = await settle_run(client, "E_GOBLIN_CAVE", "E", "Boss", [(ALICE, 1)], [_award(ALICE)], [_relic(ALICE, 1, "QmA")])

        assert result.tx_hash == "0xrevert"
        assert any("reverted" in r.getMessage() and r.levelname == "WARNING" for r in caplog.records)

    @pytest.mark.asyncio
    async def test_failed_mint_is_skipped(self):
        client = _client()
        client.mint_relic.side_effect = [AppError.chain_error("Failed to mint relic"), MintResult("0xm2", 777)]

        result = await settle_run(
            client,
            "E_GOBLIN_CAVE",
            "E",
            "Boss",
            [(ALICE, 1), (BOB, 1)],
            [_award(ALICE), _award(BOB)],
            [_relic(ALICE, 1, "QmA"), _relic(BOB, 2, "QmB")],
        )

        assert [(r.token_id, r.owner) for r in result.relics] == [(777, BOB)]

    @pytest.mark.asyncio
    async def test_failed_progress_update_does_not_abort(self):
        client = _client()
        client.update_progress.side_effect = AppError.chain_error("Failed to update player progress")

        result = await settle_run(client, "E_GOBLIN_CAVE", "E", "Boss", [(ALICE, 1)], [_award(ALICE)], [])

        assert result.tx_hash == "0xboss"
        assert result.relics == []
