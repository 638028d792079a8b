"""Wallets and request helpers shared by the API tests."""

from __future__ import annotations

from httpx import AsyncClient

from smp.auth.jwt import create_session_token

ALICE = "0x" + "a1" * 20
BOB = "0x" + "b2" * 20
CAROL = "0x" + "c3" * 20
DAVE = "0x" + "d4" * 20


def auth_headers(wallet: str, roles: list[str] | None = None) -> dict[str, str]:
    """Bearer header carrying a session token for ``wallet``."""
    return {"Authorization": f"Bearer {create_session_token(wallet.lower(), roles)}"}


async def create_profile(client: AsyncClient, wallet: str, name: str, avatar_id: str = "m_swordsman") -> dict:
    response = await client.post(
        "/api/v1/profile",
        json={"displayName": name, "avatarId": avatar_id, "imageUrl": f"https://img.example/{name}.png"},
        headers=auth_headers(wallet),
    )
    assert response.status_code == 200, response.text
    return response.json()["data"]


async def form_party(client: AsyncClient, wallets: list[str], gate_id: str = "E_GOBLIN_CAVE") -> str:
    """Put every wallet into one party at ``gate_id``; the first wallet leads."""
    party_id = ""
    for wallet in wallets:
        response = await client.post(f"/api/v1/party/{gate_id}/join-or-create", headers=auth_headers(wallet))
        assert response.status_code == 200, response.text
        party_id = response.json()["data"]["partyId"]
    return party_id


async def start_party(client: AsyncClient, wallets: list[str], gate_id: str = "E_GOBLIN_CAVE") -> tuple[str, str]:
    """Form a party, mark everyone ready and locked, and start it. Returns ``(party_id, run_id)``."""
    party_id = await form_party(client, wallets, gate_id)
    for wallet in wallets:
        headers = auth_headers(wallet)
        await client.post(f"/api/v1/party/{party_id}/ready", json={"isReady": True}, headers=headers)
        await client.post(f"/api/v1/party/{party_id}/lock", json={"isLocked": True}, headers=headers)
    response = await client.post(f"/api/v1/party/{party_id}/start", headers=auth_headers(wallets[0]))
    assert response.status_code == 200, response.text
    return party_id, response.json()["data"]["runId"]
