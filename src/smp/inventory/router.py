"""Inventory router: all /api/v1/inventory/* endpoints."""

from __future__ import annotations

from typing import Annotated

import structlog
from fastapi import APIRouter, Depends, Path, Query
from sqlalchemy.ext.asyncio import AsyncSession

from smp.auth.dependencies import SessionUser, get_current_user, get_current_wallet
from smp.chain.client import ChainClient, get_chain_client
from smp.database import get_session
from smp.db.models import InventoryItem, utcnow
from smp.errors import AppError, ErrorCode
from smp.inventory.schemas import (
    BulkRequest,
    BulkResponse,
    CleanupResponse,
    EquipRequest,
    EquipResponse,
    InventoryItemResponse,
    InventoryResponse,
    InventoryStatsResponse,
    SyncRequest,
    SyncResponse,
    WalletInventory,
)
from smp.inventory.service import (
    cleanup_sync_attempts,
    get_equipped_items,
    get_inventory_stats,
    get_items,
    get_items_for_wallets,
    get_relic_by_id,
    search_by_type,
    sync_inventory,
    update_equipped_items,
)
from smp.schemas import Envelope, ok

logger = structlog.get_logger()

router = APIRouter(prefix="/api/v1/inventory", tags=["Inventory"])

AddressPath = Annotated[str, Path(pattern=r"^0x[a-fA-F0-9]{40}$")]


def item_response(item: InventoryItem) -> InventoryItemResponse:
    """Build an InventoryItemResponse from an InventoryItem model."""
    return InventoryItemResponse(
        token_id=item.token_id,
        relic_id=item.relic_id,
        relic_type=item.relic_type,
        name=item.name,
        image_url=item.image_url,
        description=item.description,
        benefits=list(item.benefits or []),
        affixes=dict(item.affixes or {}),
        cid=item.cid,
        equipped=item.equipped,
    )


@router.get("/stats", response_model=Envelope[InventoryStatsResponse])
async def stats(db: AsyncSession = Depends(get_session)) -> dict[str, object]:
    """Totals across all wallets."""
    return ok(InventoryStatsResponse(**await get_inventory_stats(db)))


@router.post("/sync", response_model=Envelope[SyncResponse])
async def sync(
    body: SyncRequest,
    wallet: str = Depends(get_current_wallet),
    db: AsyncSession = Depends(get_session),
    client: ChainClient = Depends(get_chain_client),
) -> dict[str, object]:
    """Reconcile the caller's cached inventory with the chain."""
    if body.wallet != wallet:
        raise AppError.forbidden(ErrorCode.FORBIDDEN, "Can only sync own inventory")
    result = await sync_inventory(db, client, wallet, force_refresh=body.force_refresh)
    await db.commit()
    logger.info("inventory_synced", wallet=wallet, added=result.items_added, updated=result.items_updated)
    return ok(
        SyncResponse(
            wallet=result.wallet,
            items_added=result.items_added,
            items_updated=result.items_updated,
            total_items=result.total_items,
            last_updated=result.last_updated,
        )
    )


@router.post("/equip", response_model=Envelope[EquipResponse])
async def equip(
    body: EquipRequest,
    wallet: str = Depends(get_current_wallet),
    db: AsyncSession = Depends(get_session),
    client: ChainClient = Depends(get_chain_client),
) -> dict[str, object]:
    """Set which relics are equipped (max 3)."""
    equipped = await update_equipped_items(db, wallet, body.token_ids, client)
    await db.commit()
    return ok(EquipResponse(wallet=wallet, equipped_items=equipped))


@router.post("/bulk", response_model=Envelope[BulkResponse])
async def bulk(body: BulkRequest, db: AsyncSession = Depends(get_session)) -> dict[str, object]:
    """Inventories for up to 50 wallets."""
    grouped = await get_items_for_wallets(db, body.wallets)
    inventories = [
        WalletInventory(wallet=w, items=[item_response(i) for i in items], total_items=len(items))
        for w, items in grouped.items()
    ]
    return ok(BulkResponse(inventories=inventories, total_wallets=len(inventories)))


@router.post("/admin/cleanup", response_model=Envelope[CleanupResponse])
async def admin_cleanup(
    user: SessionUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> dict[str, object]:
    """Drop relics that repeatedly failed to sync (admins only)."""
    if not user.is_admin:
        raise AppError.forbidden(ErrorCode.FORBIDDEN, "Admin role required")
    removed = await cleanup_sync_attempts(db)
    await db.commit()
    logger.info("inventory_cleanup", removed=removed, admin=user.address)
    return ok(CleanupResponse(removed=removed))


@router.get("/equipped/{address}", response_model=Envelope[list[InventoryItemResponse]])
async def equipped(address: AddressPath, db: AsyncSession = Depends(get_session)) -> dict[str, object]:
    items = await get_equipped_items(db, address)
    return ok([item_response(i) for i in items])


@router.get("/search/{address}", response_model=Envelope[list[InventoryItemResponse]])
async def search(
    address: AddressPath,
    relic_type: str = Query(..., alias="type", min_length=1),
    db: AsyncSession = Depends(get_session),
) -> dict[str, object]:
    """Relics of one wallet whose type matches ``type``."""
    items = await search_by_type(db, address, relic_type)
    return ok([item_response(i) for i in items])


@router.get("/relic/{relic_id}", response_model=Envelope[InventoryItemResponse])
async def relic(relic_id: str, db: AsyncSession = Depends(get_session)) -> dict[str, object]:
    return ok(item_response(await get_relic_by_id(db, relic_id)))


@router.get("/{address}", response_model=Envelope[InventoryResponse])
async def inventory(address: AddressPath, db: AsyncSession = Depends(get_session)) -> dict[str, object]:
    """Cached inventory for a wallet."""
    items = await get_items(db, address)
    last_synced = [i.last_synced for i in items if i.last_synced is not None]
    return ok(
        InventoryResponse(
            wallet=address.lower(),
            items=[item_response(i) for i in items],
            total_items=len(items),
            equipped_items=[i.token_id for i in items if i.equipped],
            last_updated=max(last_synced) if last_synced else utcnow(),
        )
    )
