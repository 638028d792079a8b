"""Chain router: read-only /api/v1/chain/* status endpoints."""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from typing import Any

import structlog
from fastapi import APIRouter, Depends

from smp.chain.client import ChainClient, get_chain_client
from smp.errors import AppError
from smp.schemas import Envelope, ok

logger = structlog.get_logger()

router = APIRouter(prefix="/api/v1/chain", tags=["Chain"])


@router.get("/status", response_model=Envelope[dict[str, Any]])
async def chain_status(client: ChainClient = Depends(get_chain_client)) -> dict[str, object]:
    """Connectivity summary. Reports ``unhealthy`` instead of failing."""
    timestamp = datetime.now(timezone.utc).isoformat()
    try:
        stats, gas_price, block_number, network = await asyncio.gather(
            client.get_stats(),
            client.get_gas_price(),
            client.get_block_number(),
            client.get_network_info(),
        )
    except AppError as e:
        logger.warning("chain_status_unhealthy", error=e.message, details=e.details)
        return ok({"status": "unhealthy", "error": e.message, "timestamp": timestamp})

    return ok({
        "network": network,
        "stats": stats,
        "gasPrice": str(gas_price),
        "blockNumber": block_number,
        "mock": client.is_mock,
        "timestamp": timestamp,
        "status": "healthy",
    })


@router.get("/gas-price", response_model=Envelope[dict[str, str]])
async def gas_price(client: ChainClient = Depends(get_chain_client)) -> dict[str, object]:
    """Current gas price in wei (decimal string)."""
    return ok({"gasPrice": str(await client.get_gas_price())})


@router.get("/network", response_model=Envelope[dict[str, Any]])
async def network(client: ChainClient = Depends(get_chain_client)) -> dict[str, object]:
    return ok(await client.get_network_info())


@router.get("/block-number", response_model=Envelope[dict[str, int]])
async def block_number(client: ChainClient = Depends(get_chain_client)) -> dict[str, object]:
    return ok({"blockNumber": await client.get_block_number()})


@router.get("/stats", response_model=Envelope[dict[str, Any]])
async def stats(client: ChainClient = Depends(get_chain_client)) -> dict[str, object]:
    """Relic supply, block height and gas price."""
    return ok(await client.get_stats())


@router.get("/contracts", response_model=Envelope[dict[str, Any]])
async def contracts(client: ChainClient = Depends(get_chain_client)) -> dict[str, object]:
    """Whether each configured contract has bytecode on-chain."""
    return ok(await client.validate_contracts())
