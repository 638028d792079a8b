"""Relic inventory: local cache of each wallet's relics, reconciled against the chain."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Any

from sqlalchemy import delete, func, select, update

from smp.db.models import InventoryItem, utcnow
from smp.errors import AppError, ErrorCode

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from smp.chain.client import ChainClient

logger = logging.getLogger(__name__)

MAX_EQUIPPED = 3
MAX_SYNC_ATTEMPTS = 5
STALE_SYNC_AGE = timedelta(hours=24)


@dataclass
class SyncResult:
    wallet: str
    items_added: int
    items_updated: int
    total_items: int
    last_updated: datetime


async def get_items(db: AsyncSession, wallet: str) -> list[InventoryItem]:
    result = await db.execute(
        select(InventoryItem)
        .where(InventoryItem.wallet == wallet.lower())
        .order_by(InventoryItem.token_id)
    )
    return list(result.scalars().all())


async def get_equipped_items(db: AsyncSession, wallet: str) -> list[InventoryItem]:
    result = await db.execute(
        select(InventoryItem)
        .where(InventoryItem.wallet == wallet.lower())
        .where(InventoryItem.equipped.is_(True))
        .order_by(InventoryItem.token_id)
    )
    return list(result.scalars().all())


async def search_by_type(db: AsyncSession, wallet: str, relic_type: str) -> list[InventoryItem]:
    """Case-insensitive substring match on relic type."""
    result = await db.execute(
        select(InventoryItem)
        .where(InventoryItem.wallet == wallet.lower())
        .where(func.lower(InventoryItem.relic_type).contains(relic_type.lower(), autoescape=True))
        .order_by(InventoryItem.token_id)
    )
    return list(result.scalars().all())


async def get_items_for_wallets(db: AsyncSession, wallets: Iterable[str]) -> dict[str, list[InventoryItem]]:
    keys = [w.lower() for w in wallets]
    grouped: dict[str, list[InventoryItem]] = {w: [] for w in keys}
    if not keys:
        return grouped
    result = await db.execute(
        select(InventoryItem)
        .where(InventoryItem.wallet.in_(keys))
        .order_by(InventoryItem.wallet, InventoryItem.token_id)
    )
    for item in result.scalars().all():
        grouped.setdefault(item.wallet, []).append(item)
    return grouped


async def get_relic_by_id(db: AsyncSession, relic_id: str) -> InventoryItem:
    result = await db.execute(select(InventoryItem).where(InventoryItem.relic_id == relic_id).limit(1))
    item = result.scalar_one_or_none()
    if item is None:
        raise AppError.not_found(ErrorCode.RELIC_NOT_FOUND, "Relic not found")
    return item


async def add_relic(
    db: AsyncSession,
    wallet: str,
    token_id: int,
    relic_type: str,
    affixes: dict[str, int],
    cid: str,
    tx_hash: str | None = None,
    relic_id: str | None = None,
    name: str | None = None,
    image_url: str | None = None,
    description: str | None = None,
    benefits: list[str] | None = None,
) -> InventoryItem:
    """Insert or refresh a relic for ``(wallet, token_id)``."""
    wallet = wallet.lower()
    now = utcnow()
    result = await db.execute(
        select(InventoryItem)
        .where(InventoryItem.wallet == wallet)
        .where(InventoryItem.token_id == token_id)
    )
    item = result.scalar_one_or_none()
    if item is None:
        item = InventoryItem(wallet=wallet, token_id=token_id, equipped=False, minted_at=now)
        db.add(item)

    item.relic_type = relic_type
    item.affixes = dict(affixes)
    item.cid = cid
    item.tx_hash = tx_hash or item.tx_hash
    item.relic_id = relic_id or item.relic_id
    item.name = name or item.name
    item.image_url = image_url or item.image_url
    item.description = description or item.description
    item.benefits = list(benefits) if benefits is not None else list(item.benefits or [])
    item.last_synced = now
    item.sync_attempts = 0

    await db.flush()
    return item


async def remove_relic(db: AsyncSession, wallet: str, token_id: int) -> bool:
    result = await db.execute(
        delete(InventoryItem)
        .where(InventoryItem.wallet == wallet.lower())
        .where(InventoryItem.token_id == token_id)
    )
    return bool(result.rowcount)


async def clear_inventory(db: AsyncSession, wallet: str) -> int:
    result = await db.execute(delete(InventoryItem).where(InventoryItem.wallet == wallet.lower()))
    return int(result.rowcount or 0)


async def sync_inventory(
    db: AsyncSession,
    client: ChainClient,
    wallet: str,
    force_refresh: bool = False,
) -> SyncResult:
    """
    Reconcile the cached inventory with on-chain ownership.

    Relics found on-chain are added or refreshed. Cached relics the chain no
    longer reports are kept, but their ``sync_attempts`` counter grows so the
    cleanup job can drop them eventually.
    """
    wallet = wallet.lower()
    existing = {item.token_id: item for item in await get_items(db, wallet)}
    chain_relics = await client.get_relics_by_owner(wallet)
    now = utcnow()

    added = updated = 0
    seen: set[int] = set()
    for relic in chain_relics:
        token_id = int(relic["tokenId"])
        seen.add(token_id)
        item = existing.get(token_id)
        if item is None:
            db.add(
                InventoryItem(
                    wallet=wallet,
                    token_id=token_id,
                    relic_type=relic.get("relicType") or "Unknown",
                    affixes=dict(relic.get("affixes") or {}),
                    cid=relic.get("tokenUri", ""),
                    equipped=False,
                    last_synced=now,
                    sync_attempts=0,
                )
            )
            added += 1
            continue

        if force_refresh:
            item.relic_type = relic.get("relicType") or item.relic_type
            item.affixes = dict(relic.get("affixes") or item.affixes or {})
        item.cid = relic.get("tokenUri") or item.cid
        item.last_synced = now
        item.sync_attempts = 0
        updated += 1

    for token_id, item in existing.items():
        if token_id not in seen:
            item.last_synced = now
            item.sync_attempts = (item.sync_attempts or 0) + 1

    await db.flush()
    total = await db.scalar(select(func.count()).select_from(InventoryItem).where(InventoryItem.wallet == wallet))
    logger.info("Synced inventory for %s: +%d, ~%d", wallet, added, updated)
    return SyncResult(
        wallet=wallet,
        items_added=added,
        items_updated=updated,
        total_items=int(total or 0),
        last_updated=now,
    )


async def update_equipped_items(
    db: AsyncSession,
    wallet: str,
    token_ids: list[int],
    client: ChainClient | None = None,
) -> list[int]:
    """
    Replace the wallet's equipped set (at most three relics).

    Ownership is checked on-chain when contracts are deployed, otherwise
    against the cached inventory.
    """
    wallet = wallet.lower()
    wanted = list(dict.fromkeys(token_ids))
    if len(wanted) > MAX_EQUIPPED:
        raise AppError.bad_request(ErrorCode.VALIDATION_ERROR, f"Maximum {MAX_EQUIPPED} items can be equipped at once")

    owned_locally = {item.token_id for item in await get_items(db, wallet)}
    invalid: list[int] = []
    for token_id in wanted:
        if client is not None and not client.is_mock:
            owns = await client.verify_ownership(wallet, token_id)
        else:
            owns = token_id in owned_locally
        if not owns:
            invalid.append(token_id)

    if invalid:
        raise AppError(
            ErrorCode.FORBIDDEN,
            f"You don't own tokens: {', '.join(str(t) for t in invalid)}",
            403,
            {"invalidTokens": invalid},
        )

    await db.execute(update(InventoryItem).where(InventoryItem.wallet == wallet).values(equipped=False))
    if wanted:
        await db.execute(
            update(InventoryItem)
            .where(InventoryItem.wallet == wallet)
            .where(InventoryItem.token_id.in_(wanted))
            .values(equipped=True)
        )
    await db.flush()
    return wanted


async def get_inventory_stats(db: AsyncSession) -> dict[str, Any]:
    total_items = await db.scalar(select(func.count()).select_from(InventoryItem))
    total_wallets = await db.scalar(select(func.count(func.distinct(InventoryItem.wallet))))
    equipped = await db.scalar(
        select(func.count()).select_from(InventoryItem).where(InventoryItem.equipped.is_(True))
    )
    rows = await db.execute(
        select(InventoryItem.relic_type, func.count()).group_by(InventoryItem.relic_type)
    )
    return {
        "total_items": int(total_items or 0),
        "total_wallets": int(total_wallets or 0),
        "equipped_items": int(equipped or 0),
        "relic_types": {relic_type: int(count) for relic_type, count in rows.all()},
    }


async def cleanup_sync_attempts(db: AsyncSession) -> int:
    """Drop relics that failed to sync five times and were last checked over a day ago."""
    cutoff = utcnow() - STALE_SYNC_AGE
    result = await db.execute(
        delete(InventoryItem)
        .where(InventoryItem.sync_attempts >= MAX_SYNC_ATTEMPTS)
        .where(InventoryItem.last_synced < cutoff)
    )
    removed = int(result.rowcount or 0)
    if removed:
        logger.info("Removed %d unsynced inventory items", removed)
    return removed
