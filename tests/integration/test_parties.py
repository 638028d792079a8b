"""Integration tests for the party lifecycle."""

import pytest
import pytest_asyncio
from httpx import AsyncClient

from smp.gates.seed import seed_gates
from smp.parties.events import party_events
from tests.helpers import ALICE, BOB, CAROL, DAVE, auth_headers, create_profile, form_party, start_party


@pytest_asyncio.fixture
async def hunters(client: AsyncClient, db_session):
    await seed_gates(db_session)
    for wallet, name in ((ALICE, "Alice"), (BOB, "Bobby"), (CAROL, "Carol"), (DAVE, "David")):
        await create_profile(client, wallet, name)


async def _party(client: AsyncClient, party_id: str) -> dict:
    response = await client.get(f"/api/v1/party/{party_id}")
    assert response.status_code == 200
    return response.json()["data"]


async def _occupancy(client: AsyncClient, gate_id: str = "E_GOBLIN_CAVE") -> list[dict]:
    return (await client.get(f"/api/v1/gates/{gate_id}/occupancy")).json()["data"]["occupancy"]


class TestJoin:
    @pytest.mark.asyncio
    async def test_first_join_creates_party(self, client: AsyncClient, hunters):
        response = await client.post("/api/v1/party/E_GOBLIN_CAVE/join-or-create", headers=auth_headers(ALICE))

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["message"] == "Party created successfully"

        party = await _party(client, data["partyId"])
        assert party["leader"] == ALICE
        assert party["state"] == "waiting"
        assert party["capacity"] == 3
        assert [m["wallet"] for m in party["members"]] == [ALICE]

    @pytest.mark.asyncio
    async def test_second_player_joins_existing(self, client: AsyncClient, hunters):
        first = await form_party(client, [ALICE])
        response = await client.post("/api/v1/party/E_GOBLIN_CAVE/join-or-create", headers=auth_headers(BOB))

        assert response.json()["data"] == {"partyId": first, "message": "Successfully joined party"}

    @pytest.mark.asyncio
    async def test_rejoin_is_noop(self, client: AsyncClient, hunters):
        party_id = await form_party(client, [ALICE])
        response = await client.post("/api/v1/party/E_GOBLIN_CAVE/join-or-create", headers=auth_headers(ALICE))

        assert response.json()["data"]["message"] == "Already a member of this party"
        assert len((await _party(client, party_id))["members"]) == 1

    @pytest.mark.asyncio
    async def test_fourth_member_rejected(self, client: AsyncClient, hunters):
        party_id = await form_party(client, [ALICE, BOB, CAROL])

        response = await client.post(f"/api/v1/party/{party_id}/join", headers=auth_headers(DAVE))

        assert response.status_code == 409
        assert response.json()["error"]["code"] == "PARTY_FULL"

    @pytest.mark.asyncio
    async def test_full_gate_rejects_new_party(self, client: AsyncClient, hunters):
        await form_party(client, [ALICE, BOB, CAROL])

        response = await client.post("/api/v1/party/E_GOBLIN_CAVE/join-or-create", headers=auth_headers(DAVE))

        assert response.status_code == 409
        assert response.json()["error"]["code"] == "PARTY_FULL"

    @pytest.mark.asyncio
    async def test_join_requires_profile(self, client: AsyncClient, db_session):
        await seed_gates(db_session)
        response = await client.post("/api/v1/party/E_GOBLIN_CAVE/join-or-create", headers=auth_headers(ALICE))
        assert response.status_code == 404
        assert response.json()["error"]["code"] == "PROFILE_NOT_FOUND"

    @pytest.mark.asyncio
    async def test_unknown_gate(self, client: AsyncClient, hunters):
        response = await client.post("/api/v1/party/NOPE/join-or-create", headers=auth_headers(ALICE))
        assert response.status_code == 404
        assert response.json()["error"]["code"] == "GATE_NOT_FOUND"

    @pytest.mark.asyncio
    async def test_unknown_party(self, client: AsyncClient, hunters):
        response = await client.post("/api/v1/party/p_missing/join", headers=auth_headers(ALICE))
        assert response.status_code == 404
        assert response.json()["error"]["code"] == "PARTY_NOT_FOUND"


class TestLeave:
    @pytest.mark.asyncio
    async def test_leader_leaving_hands_off(self, client: AsyncClient, hunters):
        party_id = await form_party(client, [ALICE, BOB, CAROL])

        response = await client.post(f"/api/v1/party/{party_id}/leave", headers=auth_headers(ALICE))

        data = response.json()["data"]
        assert data == {"message": "Left party, new leader elected", "newLeader": BOB}
        party = await _party(client, party_id)
        assert party["leader"] == BOB
        assert [m["wallet"] for m in party["members"]] == [BOB, CAROL]
        assert await _occupancy(client) == [{"partyId": party_id, "current": 2, "max": 3}]

    @pytest.mark.asyncio
    async def test_last_member_disbands(self, client: AsyncClient, hunters):
        party_id = await form_party(client, [ALICE])

        response = await client.post(f"/api/v1/party/{party_id}/leave", headers=auth_headers(ALICE))

        assert response.json()["data"]["message"] == "Left party, party disbanded"
        assert (await _party(client, party_id))["state"] == "closed"
        assert await _occupancy(client) == []

    @pytest.mark.asyncio
    async def test_non_member_cannot_leave(self, client: AsyncClient, hunters):
        party_id = await form_party(client, [ALICE])
        response = await client.post(f"/api/v1/party/{party_id}/leave", headers=auth_headers(BOB))
        assert response.status_code == 403
        assert response.json()["error"]["code"] == "NOT_A_MEMBER"

    @pytest.mark.asyncio
    async def test_leave_emits_events(self, client: AsyncClient, hunters):
        party_id = await form_party(client, [ALICE, BOB])
        queue = party_events.subscribe(party_id)

        await client.post(f"/api/v1/party/{party_id}/leave", headers=auth_headers(ALICE))

        events = [queue.get_nowait().to_dict() for _ in range(2)]
        assert events == [
            {"type": "member_left", "data": {"wallet": ALICE}},
            {"type": "leader_changed", "data": {"wallet": BOB}},
        ]
        party_events.unsubscribe(party_id, queue)


class TestStart:
    @pytest.mark.asyncio
    async def test_start_creates_exactly_one_run(self, client: AsyncClient, hunters):
        party_id, run_id = await start_party(client, [ALICE, BOB])

        party = await _party(client, party_id)
        assert party["state"] == "starting"
        assert party["runId"] == run_id

        run = (await client.get(f"/api/v1/runs/{run_id}")).json()["data"]
        assert run["partyId"] == party_id
        assert run["gateId"] == "E_GOBLIN_CAVE"
        assert run["status"] == "in_progress"
        assert [p["wallet"] for p in run["participants"]] == [ALICE, BOB]

        again = await client.post(f"/api/v1/party/{party_id}/start", headers=auth_headers(ALICE))
        assert again.status_code == 409
        assert again.json()["error"]["code"] == "PARTY_STARTED"

    @pytest.mark.asyncio
    async def test_only_leader_starts(self, client: AsyncClient, hunters):
        party_id = await form_party(client, [ALICE, BOB])
        response = await client.post(f"/api/v1/party/{party_id}/start", headers=auth_headers(BOB))
        assert response.status_code == 403
        assert response.json()["error"]["code"] == "NOT_LEADER"

    @pytest.mark.asyncio
    async def test_members_must_be_ready(self, client: AsyncClient, hunters):
        party_id = await form_party(client, [ALICE, BOB])
        await client.post(f"/api/v1/party/{party_id}/ready", json={"isReady": True}, headers=auth_headers(ALICE))

        response = await client.post(f"/api/v1/party/{party_id}/start", headers=auth_headers(ALICE))

        assert response.status_code == 409
        assert response.json()["error"]["code"] == "MEMBER_NOT_READY"

    @pytest.mark.asyncio
    async def test_members_must_be_locked(self, client: AsyncClient, hunters):
        party_id = await form_party(client, [ALICE, BOB])
        for wallet in (ALICE, BOB):
            await client.post(f"/api/v1/party/{party_id}/ready", json={"isReady": True}, headers=auth_headers(wallet))
        await client.post(f"/api/v1/party/{party_id}/lock", json={"isLocked": True}, headers=auth_headers(ALICE))

        response = await client.post(f"/api/v1/party/{party_id}/start", headers=auth_headers(ALICE))

        assert response.status_code == 409
        assert response.json()["error"]["code"] == "MEMBER_NOT_LOCKED"

    @pytest.mark.asyncio
    async def test_started_party_rejects_joins(self, client: AsyncClient, hunters):
        party_id, _ = await start_party(client, [ALICE])
        response = await client.post(f"/api/v1/party/{party_id}/join", headers=auth_headers(BOB))
        assert response.status_code == 409
        assert response.json()["error"]["code"] == "PARTY_STARTED"

    @pytest.mark.asyncio
    async def test_lock_records_equipped_relics(self, client: AsyncClient, hunters):
        party_id = await form_party(client, [ALICE])
        await client.post(
            f"/api/v1/party/{party_id}/lock",
            json={"isLocked": True, "equippedRelicIds": [11, 12]},
            headers=auth_headers(ALICE),
        )

        member = (await _party(client, party_id))["members"][0]
        assert member["isLocked"] is True
        assert member["equippedRelicIds"] == [11, 12]


class TestGameHandoff:
    @pytest.mark.asyncio
    async def test_start_payload_sets_game_cookie(self, client: AsyncClient, hunters):
        from smp.auth.jwt import verify_token

        party_id, run_id = await start_party(client, [ALICE, BOB])

        response = await client.get(f"/api/v1/party/{party_id}/start-payload", headers=auth_headers(BOB))

        assert response.status_code == 200
        assert response.json()["data"]["redirect"] == f"https://play.lvh.me/run/{run_id}"
        claims = verify_token(response.cookies["gb_game"], expected_type="game_session")
        assert claims["runId"] == run_id
        assert claims["wallet"] == BOB
        assert claims["roomToken"] == f"room_{run_id}_{BOB}"

    @pytest.mark.asyncio
    async def test_start_payload_before_start(self, client: AsyncClient, hunters):
        party_id = await form_party(client, [ALICE])
        response = await client.get(f"/api/v1/party/{party_id}/start-payload", headers=auth_headers(ALICE))
        assert response.status_code == 409

    @pytest.mark.asyncio
    async def test_start_payload_for_outsider(self, client: AsyncClient, hunters):
        party_id, _ = await start_party(client, [ALICE])
        response = await client.get(f"/api/v1/party/{party_id}/start-payload", headers=auth_headers(BOB))
        assert response.status_code == 403
        assert response.json()["error"]["code"] == "NOT_A_MEMBER"


class TestMyParties:
    @pytest.mark.asyncio
    async def test_lists_open_parties(self, client: AsyncClient, hunters):
        party_id = await form_party(client, [ALICE, BOB])

        data = (await client.get("/api/v1/party/my-parties", headers=auth_headers(BOB))).json()["data"]

        assert len(data["parties"]) == 1
        entry = data["parties"][0]
        assert entry["partyId"] == party_id
        assert entry["isLeader"] is False
        assert entry["memberCount"] == 2

    @pytest.mark.asyncio
    async def test_closed_parties_hidden(self, client: AsyncClient, hunters):
        party_id = await form_party(client, [ALICE])
        await client.post(f"/api/v1/party/{party_id}/leave", headers=auth_headers(ALICE))

        data = (await client.get("/api/v1/party/my-parties", headers=auth_headers(ALICE))).json()["data"]
        assert data["parties"] == []

    @pytest.mark.asyncio
    async def test_stream_for_outsider_forbidden(self, client: AsyncClient, hunters):
        party_id = await form_party(client, [ALICE])
        response = await client.get(f"/api/v1/party/{party_id}/stream", headers=auth_headers(BOB))
        assert response.status_code == 403
