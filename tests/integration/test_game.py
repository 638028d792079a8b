"""Integration tests for the game client's start and completion data."""

import pytest
import pytest_asyncio
from httpx import AsyncClient

from smp.game.service import format_play_time, relic_rarity
from smp.gates.seed import seed_gates
from smp.inventory.service import add_relic
from tests.helpers import ALICE, auth_headers, create_profile, start_party


@pytest_asyncio.fixture
async def alice(client: AsyncClient, db_session):
    await seed_gates(db_session)
    await create_profile(client, ALICE, "Alice")
    return auth_headers(ALICE)


class TestHelpers:
    @pytest.mark.parametrize(
        ("affixes", "rarity"),
        [
            ({}, "Common"),
            ({"+Crit": 5}, "Common"),
            ({"+Crit": 6, "+Mana": 1}, "Uncommon"),
            ({"+Crit": 11}, "Rare"),
            ({"+Crit": 15}, "Epic"),
            ({"+Crit": 3, "+Mana": 19}, "Legendary"),
        ],
    )
    def test_relic_rarity(self, affixes, rarity):
        assert relic_rarity(affixes) == rarity

    def test_play_time(self):
        from datetime import timedelta

        assert format_play_time(timedelta(minutes=135, seconds=59)) == "2h 15m"
        assert format_play_time(timedelta()) == "0h 0m"


class TestStartData:
    @pytest.mark.asyncio
    async def test_new_player_gets_default_mission(self, client: AsyncClient, alice):
        data = (await client.get("/api/v1/game/start-data", headers=alice)).json()["data"]

        assert data["player"]["displayName"] == "Alice"
        assert data["currentMission"]["gateId"] == "E_GOBLIN_CAVE"
        assert data["equippedRelics"] == []
        assert len(data["gameFeatures"]) == 4

    @pytest.mark.asyncio
    async def test_mission_follows_latest_run(self, client: AsyncClient, alice):
        await start_party(client, [ALICE], gate_id="C_FROST_TEMPLE")

        mission = (await client.get("/api/v1/game/start-data", headers=alice)).json()["data"]["currentMission"]

        assert mission["gateId"] == "C_FROST_TEMPLE"
        assert mission["gateName"] == "Frost Temple"
        assert mission["difficulty"] == "C-Rank"

    @pytest.mark.asyncio
    async def test_equipped_relics(self, client: AsyncClient, alice, db_session):
        await add_relic(db_session, ALICE, 7, "ShadowCloak", {"+Stealth": 2}, "QmX")
        await db_session.commit()
        await client.post("/api/v1/inventory/equip", json={"tokenIds": [7]}, headers=alice)

        relics = (await client.get("/api/v1/game/start-data", headers=alice)).json()["data"]["equippedRelics"]

        assert relics == [
            {
                "tokenId": 7,
                "name": "ShadowCloak Relic",
                "relicType": "ShadowCloak",
                "imageUrl": "/api/placeholder/64/64",
                "benefits": ["Enhanced Power", "Shadow Mastery"],
            }
        ]

    @pytest.mark.asyncio
    async def test_requires_profile(self, client: AsyncClient):
        response = await client.get("/api/v1/game/start-data", headers=auth_headers(ALICE))
        assert response.status_code == 404


class TestCompletionData:
    @pytest.mark.asyncio
    async def test_after_finished_run(self, client: AsyncClient, alice):
        _, run_id = await start_party(client, [ALICE])
        await client.post(
            f"/api/v1/runs/{run_id}/finish",
            json={"bossId": "Goblin King", "contributions": [{"wallet": ALICE, "damage": 5000}]},
            headers=alice,
        )

        data = (await client.get("/api/v1/game/completion-data", headers=alice)).json()["data"]

        assert data["achievements"]["dungeonsConquered"] == 1
        assert data["achievements"]["totalXp"] == 550
        assert [r["type"] for r in data["rewards"]] == ["relic", "xp"]
        assert data["rewards"][1]["name"] == "550 XP"
        assert len(data["recentRelics"]) == 1

    @pytest.mark.asyncio
    async def test_without_runs(self, client: AsyncClient, alice):
        data = (await client.get("/api/v1/game/completion-data", headers=alice)).json()["data"]
        assert data["achievements"]["dungeonsConquered"] == 0
        assert data["achievements"]["playTime"] == "0h 0m"
        assert data["rewards"] == []
