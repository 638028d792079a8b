"""Integration tests for wallet sign-in and sessions."""

from datetime import datetime, timezone

import pytest
from eth_account import Account
from eth_account.messages import encode_defunct
from httpx import AsyncClient

from smp.auth.siwe import build_message
from tests.helpers import ALICE, auth_headers, create_profile

ACCOUNT = Account.from_key("0x" + "42" * 32)


async def _challenge(client: AsyncClient, address: str) -> str:
    response = await client.post("/api/v1/auth/challenge", json={"address": address})
    assert response.status_code == 200
    body = response.json()
    assert body["ok"] is True
    assert body["data"]["expiresIn"] == 300
    return body["data"]["nonce"]


def _signed(nonce: str, account=ACCOUNT) -> dict:
    message = build_message("lvh.me", account.address, nonce, 84532)
    signature = account.sign_message(encode_defunct(text=message)).signature.hex()
    if not signature.startswith("0x"):
        signature = "0x" + signature
    return {"address": account.address, "message": message, "signature": signature}


class TestSignIn:
    @pytest.mark.asyncio
    async def test_challenge_then_verify_sets_session_cookie(self, client: AsyncClient):
        nonce = await _challenge(client, ACCOUNT.address)

        response = await client.post("/api/v1/auth/verify", json=_signed(nonce))

        assert response.status_code == 200
        assert response.json()["data"]["address"] == ACCOUNT.address.lower()
        assert "gb_session" in response.cookies

        token = response.cookies["gb_session"]
        me = await client.get("/api/v1/auth/me", headers={"Authorization": f"Bearer {token}"})
        assert me.status_code == 200
        assert me.json()["data"] == {"address": ACCOUNT.address.lower(), "roles": ["user"], "isAdmin": False}

    @pytest.mark.asyncio
    async def test_nonce_is_single_use(self, client: AsyncClient):
        nonce = await _challenge(client, ACCOUNT.address)
        first = await client.post("/api/v1/auth/verify", json=_signed(nonce))
        assert first.status_code == 200

        second = await client.post("/api/v1/auth/verify", json=_signed(nonce))
        assert second.status_code == 400
        assert second.json()["error"]["code"] == "NONCE_MISMATCH"

    @pytest.mark.asyncio
    async def test_verify_without_challenge(self, client: AsyncClient):
        response = await client.post("/api/v1/auth/verify", json=_signed("whatever1"))
        assert response.status_code == 400
        assert response.json()["error"]["code"] == "NONCE_MISMATCH"

    @pytest.mark.asyncio
    async def test_stale_nonce_in_message(self, client: AsyncClient):
        await _challenge(client, ACCOUNT.address)
        response = await client.post("/api/v1/auth/verify", json=_signed("notthenonce1"))
        assert response.status_code == 400
        assert response.json()["error"]["code"] == "NONCE_MISMATCH"

    @pytest.mark.asyncio
    async def test_signature_from_other_wallet(self, client: AsyncClient):
        other = Account.from_key("0x" + "43" * 32)
        nonce = await _challenge(client, ACCOUNT.address)
        message = build_message("lvh.me", ACCOUNT.address, nonce, 84532)
        signature = other.sign_message(encode_defunct(text=message)).signature.hex()
        if not signature.startswith("0x"):
            signature = "0x" + signature

        response = await client.post(
            "/api/v1/auth/verify",
            json={"address": ACCOUNT.address, "message": message, "signature": signature},
        )
        assert response.status_code == 400
        assert response.json()["error"]["code"] == "INVALID_SIGNATURE"

    @pytest.mark.asyncio
    async def test_expired_message_rejected(self, client: AsyncClient):
        nonce = await _challenge(client, ACCOUNT.address)
        message = build_message(
            "lvh.me",
            ACCOUNT.address,
            nonce,
            84532,
            issued_at=datetime(1999, 12, 31, tzinfo=timezone.utc),
            expiration_time=datetime(2000, 1, 1, tzinfo=timezone.utc),
        )
        signature = ACCOUNT.sign_message(encode_defunct(text=message)).signature.hex()
        if not signature.startswith("0x"):
            signature = "0x" + signature

        response = await client.post(
            "/api/v1/auth/verify",
            json={"address": ACCOUNT.address, "message": message, "signature": signature},
        )
        assert response.status_code == 400
        assert response.json()["error"]["code"] == "INVALID_SIGNATURE"
        assert "gb_session" not in response.cookies

    @pytest.mark.asyncio
    async def test_challenge_rejects_bad_address(self, client: AsyncClient):
        response = await client.post("/api/v1/auth/challenge", json={"address": "0x123"})
        assert response.status_code == 400
        assert response.json()["error"]["code"] == "VALIDATION_ERROR"


class TestSession:
    @pytest.mark.asyncio
    async def test_me_requires_auth(self, client: AsyncClient):
        response = await client.get("/api/v1/auth/me")
        assert response.status_code == 401
        assert response.json()["error"]["code"] == "UNAUTHORIZED"

    @pytest.mark.asyncio
    async def test_bearer_token_accepted(self, client: AsyncClient):
        response = await client.get("/api/v1/auth/me", headers=auth_headers(ALICE, ["user", "admin"]))
        assert response.status_code == 200
        assert response.json()["data"]["isAdmin"] is True

    @pytest.mark.asyncio
    async def test_admin_profile_gets_admin_role(self, client: AsyncClient, db_session):
        from smp.profiles.service import require_player

        await create_profile(client, ACCOUNT.address, "Overseer")
        player = await require_player(db_session, ACCOUNT.address)
        player.is_admin = True
        await db_session.commit()

        nonce = await _challenge(client, ACCOUNT.address)
        response = await client.post("/api/v1/auth/verify", json=_signed(nonce))
        token = response.cookies["gb_session"]
        me = await client.get("/api/v1/auth/admin", headers={"Authorization": f"Bearer {token}"})
        assert me.json()["data"] == {"isAdmin": True, "roles": ["user", "admin"]}

    @pytest.mark.asyncio
    async def test_logout_clears_cookie(self, client: AsyncClient):
        response = await client.post("/api/v1/auth/logout")
        assert response.status_code == 200
        assert response.json()["data"]["message"] == "Logged out"
        assert "gb_session" in response.headers.get("set-cookie", "")
