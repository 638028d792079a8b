"""Integration tests for chain status endpoints with contracts undeployed."""

from unittest.mock import AsyncMock

import pytest
from httpx import AsyncClient

from smp.chain.client import ChainClient
from smp.errors import AppError


class TestChainStatus:
    @pytest.mark.asyncio
    async def test_healthy_in_mock_mode(self, client: AsyncClient, monkeypatch):
        monkeypatch.setattr(ChainClient, "get_gas_price", AsyncMock(return_value=1_500_000))
        monkeypatch.setattr(ChainClient, "get_block_number", AsyncMock(return_value=123))
        monkeypatch.setattr(
            ChainClient, "get_network_info", AsyncMock(return_value={"chainId": 84532, "name": "base-sepolia"})
        )

        data = (await client.get("/api/v1/chain/status")).json()["data"]

        assert data["status"] == "healthy"
        assert data["mock"] is True
        assert data["blockNumber"] == 123
        assert data["gasPrice"] == "1500000"
        assert data["stats"]["totalRelics"] == 0

    @pytest.mark.asyncio
    async def test_unreachable_rpc_reports_unhealthy(self, client: AsyncClient, monkeypatch):
        failing = AsyncMock(side_effect=AppError.chain_error("Failed to get block number"))
        monkeypatch.setattr(ChainClient, "get_block_number", failing)
        monkeypatch.setattr(ChainClient, "get_gas_price", AsyncMock(return_value=1))
        monkeypatch.setattr(ChainClient, "get_network_info", AsyncMock(return_value={}))

        response = await client.get("/api/v1/chain/status")

        assert response.status_code == 200
        assert response.json()["data"]["status"] == "unhealthy"

    @pytest.mark.asyncio
    async def test_gas_price_error_maps_to_502(self, client: AsyncClient, monkeypatch):
        monkeypatch.setattr(ChainClient, "get_gas_price", AsyncMock(side_effect=AppError.chain_error("boom")))

        response = await client.get("/api/v1/chain/gas-price")

        assert response.status_code == 502
        assert response.json()["error"]["code"] == "CHAIN_ERROR"

    @pytest.mark.asyncio
    async def test_contracts_not_deployed(self, client: AsyncClient):
        data = (await client.get("/api/v1/chain/contracts")).json()["data"]
        assert set(data) == {"BossLog", "Relic721", "PlayerCardSBT"}
        assert all(entry["deployed"] is False for entry in data.values())
