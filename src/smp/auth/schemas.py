"""Request/response schemas for authentication endpoints."""

from __future__ import annotations

from pydantic import Field

from smp.schemas import Address, CamelModel


class ChallengeRequest(CamelModel):
    """Request a sign-in nonce for a wallet."""

    address: Address


class ChallengeResponse(CamelModel):
    nonce: str
    expires_in: int


class VerifyRequest(CamelModel):
    """Signed EIP-4361 message for the nonce handed out by /challenge."""

    address: Address
    message: str = Field(..., min_length=1, max_length=4096)
    signature: str = Field(..., min_length=2, max_length=200)


class VerifyResponse(CamelModel):
    address: str


class MeResponse(CamelModel):
    address: str
    roles: list[str]
    is_admin: bool


class AdminResponse(CamelModel):
    is_admin: bool
    roles: list[str]
