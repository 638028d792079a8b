"""Integration tests for finishing runs."""

from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio
from httpx import AsyncClient

from smp.chain import settlement
from smp.errors import AppError
from smp.gates.seed import seed_gates
from tests.helpers import ALICE, BOB, CAROL, auth_headers, create_profile, start_party


@pytest_asyncio.fixture
async def hunters(client: AsyncClient, db_session):
    await seed_gates(db_session)
    for wallet, name in ((ALICE, "Alice"), (BOB, "Bobby"), (CAROL, "Carol")):
        await create_profile(client, wallet, name)


@pytest.fixture
def settle_calls(monkeypatch):
    """Count settlements while still running the real (mock-mode) settlement."""
    calls = []

    async def counting_settle(*args, **kwargs):
        calls.append(args)
        return await settlement.settle_run(*args, **kwargs)

    monkeypatch.setattr("smp.runs.service.settle_run", counting_settle)
    return calls


def _finish_body(damages: dict[str, int], boss_id: str = "Goblin King") -> dict:
    return {
        "bossId": boss_id,
        "contributions": [{"wallet": w, "damage": d, "normalKills": 3} for w, d in damages.items()],
    }


class TestFinish:
    @pytest.mark.asyncio
    async def test_finish_awards_xp_and_relics(self, client: AsyncClient, hunters):
        party_id, run_id = await start_party(client, [ALICE, BOB])

        response = await client.post(
            f"/api/v1/runs/{run_id}/finish",
            json=_finish_body({ALICE: 600, BOB: 400}),
            headers=auth_headers(ALICE),
        )

        assert response.status_code == 200, response.text
        data = response.json()["data"]
        assert data["txHash"].startswith("mock_tx_")
        assert len(data["relics"]) == 2

        results = (await client.get(f"/api/v1/runs/results/{run_id}")).json()["data"]
        assert results["bossId"] == "Goblin King"
        assert results["txHash"] == data["txHash"]
        awards = {a["wallet"]: a for a in results["xpAwards"]}
        assert awards[ALICE]["xpGained"] == 56
        assert awards[BOB]["xpGained"] == 54
        assert [p["damage"] for p in results["participants"]] == [600, 400]
        assert [p["normalKills"] for p in results["participants"]] == [3, 3]

        profile = (await client.get(f"/api/v1/profile/{ALICE}")).json()["data"]
        assert profile["xp"] == 56
        assert profile["sbtTokenId"] is not None

        inventory = (await client.get(f"/api/v1/inventory/{ALICE}")).json()["data"]
        assert [i["tokenId"] for i in inventory["items"]] == [data["relics"][0]["tokenId"]]

    @pytest.mark.asyncio
    async def test_finish_closes_party_and_frees_gate(self, client: AsyncClient, hunters):
        party_id, run_id = await start_party(client, [ALICE, BOB])

        await client.post(
            f"/api/v1/runs/{run_id}/finish",
            json=_finish_body({ALICE: 10, BOB: 10}),
            headers=auth_headers(BOB),
        )

        party = (await client.get(f"/api/v1/party/{party_id}")).json()["data"]
        assert party["state"] == "closed"
        occupancy = (await client.get("/api/v1/gates/E_GOBLIN_CAVE/occupancy")).json()["data"]
        assert occupancy["availableCapacity"] == 3

    @pytest.mark.asyncio
    async def test_idempotent_replay_settles_once(self, client: AsyncClient, hunters, settle_calls):
        _, run_id = await start_party(client, [ALICE, BOB])
        headers = {**auth_headers(ALICE), "Idempotency-Key": "finish-1"}
        body = _finish_body({ALICE: 500, BOB: 500})

        first = await client.post(f"/api/v1/runs/{run_id}/finish", json=body, headers=headers)
        second = await client.post(f"/api/v1/runs/{run_id}/finish", json=body, headers=headers)

        assert first.status_code == 200
        assert second.status_code == 200
        assert second.json() == first.json()
        assert len(settle_calls) == 1

    @pytest.mark.asyncio
    async def test_second_finish_without_key_conflicts(self, client: AsyncClient, hunters, settle_calls):
        _, run_id = await start_party(client, [ALICE])
        body = _finish_body({ALICE: 100})

        await client.post(f"/api/v1/runs/{run_id}/finish", json=body, headers=auth_headers(ALICE))
        response = await client.post(f"/api/v1/runs/{run_id}/finish", json=body, headers=auth_headers(ALICE))

        assert response.status_code == 409
        assert response.json()["error"]["code"] == "RUN_ALREADY_FINISHED"
        assert len(settle_calls) == 1

    @pytest.mark.asyncio
    async def test_finish_with_new_key_after_finish_conflicts(self, client: AsyncClient, hunters, settle_calls):
        _, run_id = await start_party(client, [ALICE])
        body = _finish_body({ALICE: 100})

        first = await client.post(
            f"/api/v1/runs/{run_id}/finish", json=body, headers={**auth_headers(ALICE), "Idempotency-Key": "k1"}
        )
        second = await client.post(
            f"/api/v1/runs/{run_id}/finish", json=body, headers={**auth_headers(ALICE), "Idempotency-Key": "k2"}
        )

        assert first.status_code == 200
        assert second.status_code == 409
        assert second.json()["error"]["code"] == "RUN_ALREADY_FINISHED"
        assert len(settle_calls) == 1

    @pytest.mark.asyncio
    async def test_chain_failure_leaves_run_finished_and_profiles_untouched(
        self, client: AsyncClient, hunters, monkeypatch
    ):
        failing = MagicMock()
        failing.is_mock = False
        failing.emit_boss_killed = AsyncMock(side_effect=AppError.chain_error("Failed to emit BossKilled event"))
        monkeypatch.setattr("smp.runs.service.get_chain_client", lambda: failing)
        _, run_id = await start_party(client, [ALICE])

        response = await client.post(
            f"/api/v1/runs/{run_id}/finish", json=_finish_body({ALICE: 1000}), headers=auth_headers(ALICE)
        )

        assert response.status_code == 502
        assert response.json()["error"]["code"] == "CHAIN_ERROR"
        run = (await client.get(f"/api/v1/runs/{run_id}")).json()["data"]
        assert run["status"] == "completed"
        profile = (await client.get(f"/api/v1/profile/{ALICE}")).json()["data"]
        assert profile["xp"] == 0
        inventory = (await client.get(f"/api/v1/inventory/{ALICE}")).json()["data"]
        assert inventory["items"] == []

    @pytest.mark.asyncio
    async def test_contribution_count_must_match(self, client: AsyncClient, hunters):
        _, run_id = await start_party(client, [ALICE, BOB])

        response = await client.post(
            f"/api/v1/runs/{run_id}/finish",
            json=_finish_body({ALICE: 999}),
            headers=auth_headers(ALICE),
        )

        assert response.status_code == 400
        error = response.json()["error"]
        assert error["code"] == "INVALID_CONTRIBUTIONS"
        assert error["details"] == {"expected": 2, "received": 1}

        run = (await client.get(f"/api/v1/runs/{run_id}")).json()["data"]
        assert run["status"] == "in_progress"
        assert [p["damage"] for p in run["participants"]] == [0, 0]

    @pytest.mark.asyncio
    async def test_non_participant_forbidden(self, client: AsyncClient, hunters):
        _, run_id = await start_party(client, [ALICE])

        response = await client.post(
            f"/api/v1/runs/{run_id}/finish",
            json=_finish_body({ALICE: 1}),
            headers=auth_headers(CAROL),
        )

        assert response.status_code == 403
        assert response.json()["error"]["code"] == "FORBIDDEN"

    @pytest.mark.asyncio
    async def test_unknown_run(self, client: AsyncClient, hunters):
        response = await client.post(
            "/api/v1/runs/run_missing/finish",
            json=_finish_body({ALICE: 1}),
            headers=auth_headers(ALICE),
        )
        assert response.status_code == 404
        assert response.json()["error"]["code"] == "RUN_NOT_FOUND"

    @pytest.mark.asyncio
    async def test_negative_damage_rejected(self, client: AsyncClient, hunters):
        _, run_id = await start_party(client, [ALICE])
        response = await client.post(
            f"/api/v1/runs/{run_id}/finish",
            json=_finish_body({ALICE: -5}),
            headers=auth_headers(ALICE),
        )
        assert response.status_code == 400
        assert response.json()["error"]["code"] == "VALIDATION_ERROR"


class TestReads:
    @pytest.mark.asyncio
    async def test_results_before_finish(self, client: AsyncClient, hunters):
        _, run_id = await start_party(client, [ALICE])
        response = await client.get(f"/api/v1/runs/results/{run_id}")
        assert response.status_code == 404
        assert response.json()["error"]["code"] == "RUN_NOT_FOUND"

    @pytest.mark.asyncio
    async def test_recent_runs(self, client: AsyncClient, hunters):
        _, first = await start_party(client, [ALICE, BOB])
        await client.post(
            f"/api/v1/runs/{first}/finish",
            json=_finish_body({ALICE: 300, BOB: 700}),
            headers=auth_headers(ALICE),
        )
        _, second = await start_party(client, [CAROL])
        await client.post(
            f"/api/v1/runs/{second}/finish",
            json=_finish_body({CAROL: 50}),
            headers=auth_headers(CAROL),
        )

        entries = (await client.get("/api/v1/runs/leaderboard/recent", params={"limit": 5})).json()["data"]

        assert [e["runId"] for e in entries] == [second, first]
        assert entries[1]["totalDamage"] == 1000
        assert entries[1]["participantCount"] == 2
        assert entries[1]["topPerformer"]["wallet"] == BOB


class TestTestRuns:
    @pytest.mark.asyncio
    async def test_create_and_finish_test_run(self, client: AsyncClient, hunters):
        response = await client.post("/api/v1/runs/create-test/C_FROST_TEMPLE", headers=auth_headers(ALICE))

        assert response.status_code == 200
        run_id = response.json()["data"]["runId"]
        assert run_id.startswith("test_run_")

        finish = await client.post(
            f"/api/v1/runs/{run_id}/finish",
            json=_finish_body({ALICE: 2000}, boss_id="TestBoss"),
            headers=auth_headers(ALICE),
        )
        assert finish.status_code == 200
        assert len(finish.json()["data"]["relics"]) == 1

    @pytest.mark.asyncio
    async def test_create_test_run_requires_profile(self, client: AsyncClient):
        response = await client.post("/api/v1/runs/create-test/E_GOBLIN_CAVE", headers=auth_headers(ALICE))
        assert response.status_code == 404
        assert response.json()["error"]["code"] == "PROFILE_NOT_FOUND"
