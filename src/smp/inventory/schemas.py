"""Request/response schemas for relic inventory."""

from __future__ import annotations

from datetime import datetime

from pydantic import Field

from smp.schemas import Address, CamelModel


class InventoryItemResponse(CamelModel):
    token_id: int
    relic_id: str | None = None
    relic_type: str
    name: str | None = None
    image_url: str | None = None
    description: str | None = None
    benefits: list[str] = []
    affixes: dict[str, int]
    cid: str
    equipped: bool


class InventoryResponse(CamelModel):
    wallet: str
    items: list[InventoryItemResponse]
    total_items: int
    equipped_items: list[int]
    last_updated: datetime


class SyncRequest(CamelModel):
    wallet: Address
    force_refresh: bool = False


class SyncResponse(CamelModel):
    wallet: str
    items_added: int
    items_updated: int
    total_items: int
    last_updated: datetime


class EquipRequest(CamelModel):
    token_ids: list[int]


class EquipResponse(CamelModel):
    wallet: str
    equipped_items: list[int]


class BulkRequest(CamelModel):
    wallets: list[Address] = Field(..., min_length=1, max_length=50)


class WalletInventory(CamelModel):
    wallet: str
    items: list[InventoryItemResponse]
    total_items: int


class BulkResponse(CamelModel):
    inventories: list[WalletInventory]
    total_wallets: int


class InventoryStatsResponse(CamelModel):
    total_items: int
    total_wallets: int
    equipped_items: int
    relic_types: dict[str, int]


class CleanupResponse(CamelModel):
    removed: int
