"""
EVM client for the game contracts (web3.py ``AsyncWeb3``).

Writes are signed locally with the coordinator key and each waits for its
receipt up to the configured confirmation timeout. When any contract address
is the zero address the client runs in mock mode: settlement skips the chain
entirely and read helpers are still available for RPC-level queries.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any

from eth_account import Account
from web3 import AsyncWeb3

from smp.chain.abi import BOSS_LOG_ABI, PLAYER_CARD_SBT_ABI, RELIC_721_ABI, TRANSFER_TOPIC
from smp.config import ZERO_ADDRESS, Settings, get_settings
from smp.errors import AppError

logger = logging.getLogger(__name__)


@dataclass
class TransactionResult:
    tx_hash: str
    success: bool
    gas_used: int | None = None
    block_number: int | None = None


@dataclass
class MintResult:
    tx_hash: str
    token_id: int | None


@dataclass
class PlayerProgress:
    rank: str
    level: int
    xp: int


def token_id_from_logs(logs: list[Any]) -> int | None:
    """Token id from the first ERC-721 Transfer log (``topics[3]``)."""
    for log in logs:
        topics = log["topics"] if isinstance(log, dict) else getattr(log, "topics", [])
        if len(topics) < 4:
            continue
        signature = _hex(topics[0])
        if signature.lower() == TRANSFER_TOPIC:
            return int(_hex(topics[3]), 16)
    return None


def _hex(value: Any) -> str:
    if isinstance(value, (bytes, bytearray)):
        return "0x" + bytes(value).hex()
    text = str(value)
    return text if text.startswith("0x") else "0x" + text


class ChainClient:
    """Thin async wrapper around the BossLog, Relic721 and PlayerCardSBT contracts."""

    def __init__(self, settings: Settings | None = None) -> None:
        self.settings = settings or get_settings()
        self.w3 = AsyncWeb3(AsyncWeb3.AsyncHTTPProvider(self.settings.rpc_url))
        self.addresses = {
            "BossLog": self.settings.boss_log_address,
            "Relic721": self.settings.relic_721_address,
            "PlayerCardSBT": self.settings.player_card_sbt_address,
        }
        self._account = (
            Account.from_key(self.settings.coordinator_private_key)
            if self.settings.coordinator_private_key
            else None
        )

    @property
    def is_mock(self) -> bool:
        """True when any contract is not deployed (zero address)."""
        return any(addr.lower() == ZERO_ADDRESS for addr in self.addresses.values())

    @property
    def coordinator_address(self) -> str | None:
        return self._account.address if self._account is not None else None

    def _contract(self, name: str, abi: list[dict[str, Any]]) -> Any:
        return self.w3.eth.contract(address=AsyncWeb3.to_checksum_address(self.addresses[name]), abi=abi)

    # -----------------------------------------------------------------------
    # Writes
    # -----------------------------------------------------------------------

    async def _send(self, call: Any, action: str) -> dict[str, Any]:
        """Sign, send and await the receipt of a contract call."""
        if self._account is None:
            raise AppError.chain_error(f"Failed to {action}", {"error": "Coordinator key is not configured"})

        try:
            nonce = await self.w3.eth.get_transaction_count(self._account.address, "pending")
            tx = await call.build_transaction({
                "from": self._account.address,
                "nonce": nonce,
                "chainId": self.settings.chain_id,
            })
            signed = self._account.sign_transaction(tx)
            tx_hash = await self.w3.eth.send_raw_transaction(signed.raw_transaction)
            receipt = await self.w3.eth.wait_for_transaction_receipt(
                tx_hash,
                timeout=self.settings.chain_confirmation_timeout_seconds,
            )
        except AppError:
            raise
        except Exception as e:
            logger.error("Chain call failed (%s): %s", action, e)
            raise AppError.chain_error(f"Failed to {action}", {"error": str(e)}) from e

        return dict(receipt)

    @staticmethod
    def _tx_result(receipt: dict[str, Any]) -> TransactionResult:
        return TransactionResult(
            tx_hash=_hex(receipt["transactionHash"]),
            success=receipt.get("status") == 1,
            gas_used=receipt.get("gasUsed"),
            block_number=receipt.get("blockNumber"),
        )

    async def emit_boss_killed(
        self,
        gate_id: str,
        gate_rank: str,
        boss_id: str,
        participants: list[str],
        contributions: list[int],
    ) -> TransactionResult:
        contract = self._contract("BossLog", BOSS_LOG_ABI)
        call = contract.functions.emitBossKilled(
            gate_id,
            gate_rank,
            boss_id,
            [AsyncWeb3.to_checksum_address(p) for p in participants],
            contributions,
        )
        receipt = await self._send(call, "emit BossKilled event")
        return self._tx_result(receipt)

    async def mint_relic(self, to: str, relic_type: str, affix_values: list[int], cid: str) -> MintResult:
        contract = self._contract("Relic721", RELIC_721_ABI)
        call = contract.functions.mint(AsyncWeb3.to_checksum_address(to), relic_type, affix_values, cid)
        receipt = await self._send(call, "mint relic")
        return MintResult(tx_hash=_hex(receipt["transactionHash"]), token_id=token_id_from_logs(receipt.get("logs", [])))

    async def update_progress(self, wallet: str, rank: str, level: int, xp: int) -> TransactionResult:
        contract = self._contract("PlayerCardSBT", PLAYER_CARD_SBT_ABI)
        call = contract.functions.updateProgress(AsyncWeb3.to_checksum_address(wallet), rank, level, xp)
        receipt = await self._send(call, "update player progress")
        return self._tx_result(receipt)

    # -----------------------------------------------------------------------
    # Reads
    # -----------------------------------------------------------------------

    async def get_gas_price(self) -> int:
        try:
            return int(await self.w3.eth.gas_price)
        except Exception as e:
            raise AppError.chain_error("Failed to get gas price", {"error": str(e)}) from e

    async def get_block_number(self) -> int:
        try:
            return int(await self.w3.eth.block_number)
        except Exception as e:
            raise AppError.chain_error("Failed to get block number", {"error": str(e)}) from e

    async def get_network_info(self) -> dict[str, Any]:
        try:
            chain_id = int(await self.w3.eth.chain_id)
        except Exception as e:
            raise AppError.chain_error("Failed to get network info", {"error": str(e)}) from e
        return {"chainId": chain_id, "name": self.settings.chain_name, "network": self.settings.chain_name}

    async def get_total_relics(self) -> int:
        if self.is_mock:
            return 0
        contract = self._contract("Relic721", RELIC_721_ABI)
        try:
            return int(await contract.functions.totalSupply().call())
        except Exception as e:
            raise AppError.chain_error("Failed to get relic supply", {"error": str(e)}) from e

    async def get_stats(self) -> dict[str, Any]:
        total, block_number, gas_price = await asyncio.gather(
            self.get_total_relics(),
            self.get_block_number(),
            self.get_gas_price(),
        )
        return {"totalRelics": total, "blockNumber": block_number, "gasPrice": str(gas_price)}

    async def get_relic_data(self, token_id: int) -> dict[str, Any]:
        contract = self._contract("Relic721", RELIC_721_ABI)
        try:
            owner, token_uri = await asyncio.gather(
                contract.functions.ownerOf(token_id).call(),
                contract.functions.tokenURI(token_id).call(),
            )
        except Exception as e:
            raise AppError.chain_error("Failed to get relic data", {"error": str(e), "tokenId": token_id}) from e
        return {"tokenId": token_id, "owner": str(owner).lower(), "tokenUri": token_uri}

    async def get_relics_by_owner(self, wallet: str) -> list[dict[str, Any]]:
        """Enumerate a wallet's relics via ERC-721 enumerable. Unreadable tokens are skipped."""
        if self.is_mock:
            return []
        contract = self._contract("Relic721", RELIC_721_ABI)
        owner = AsyncWeb3.to_checksum_address(wallet)
        try:
            balance = int(await contract.functions.balanceOf(owner).call())
        except Exception as e:
            raise AppError.chain_error("Failed to get relics by owner", {"error": str(e), "wallet": wallet}) from e

        relics: list[dict[str, Any]] = []
        for index in range(balance):
            try:
                token_id = int(await contract.functions.tokenOfOwnerByIndex(owner, index).call())
                relics.append(await self.get_relic_data(token_id))
            except AppError as e:
                logger.warning("Skipping relic %d of %s: %s", index, wallet, e.message)
            except Exception as e:
                logger.warning("Skipping relic %d of %s: %s", index, wallet, e)
        return relics

    async def get_player_progress(self, wallet: str) -> PlayerProgress:
        """On-chain progress; a wallet without a card reads as E / 1 / 0."""
        if self.is_mock:
            return PlayerProgress(rank="E", level=1, xp=0)
        contract = self._contract("PlayerCardSBT", PLAYER_CARD_SBT_ABI)
        try:
            rank, level, xp = await contract.functions.getProgress(AsyncWeb3.to_checksum_address(wallet)).call()
        except Exception as e:
            logger.info("No on-chain progress for %s: %s", wallet, e)
            return PlayerProgress(rank="E", level=1, xp=0)
        return PlayerProgress(rank=rank, level=int(level), xp=int(xp))

    async def verify_ownership(self, wallet: str, token_id: int) -> bool:
        contract = self._contract("Relic721", RELIC_721_ABI)
        try:
            owner = await contract.functions.ownerOf(token_id).call()
        except Exception as e:
            logger.debug("ownerOf(%d) failed: %s", token_id, e)
            return False
        return str(owner).lower() == wallet.lower()

    async def validate_contracts(self) -> dict[str, Any]:
        """Report, per contract, whether bytecode exists at the configured address."""
        report: dict[str, Any] = {}
        for name, address in self.addresses.items():
            if address.lower() == ZERO_ADDRESS:
                report[name] = {"address": address, "deployed": False}
                continue
            try:
                code = await self.w3.eth.get_code(AsyncWeb3.to_checksum_address(address))
                report[name] = {"address": address, "deployed": len(code) > 0}
            except Exception as e:
                report[name] = {"address": address, "deployed": False, "error": str(e)}
        return report


_client: ChainClient | None = None


def get_chain_client() -> ChainClient:
    """Process-wide client (FastAPI dependency)."""
    global _client  # noqa: PLW0603
    if _client is None:
        _client = ChainClient()
    return _client


def reset_chain_client() -> None:
    global _client  # noqa: PLW0603
    _client = None
