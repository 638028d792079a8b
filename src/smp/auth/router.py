"""Authentication router: all /api/v1/auth/* endpoints."""

from __future__ import annotations

import structlog
from fastapi import APIRouter, Depends, Response
from redis.asyncio import Redis
from sqlalchemy.ext.asyncio import AsyncSession

from smp.auth.dependencies import SessionUser, get_current_user
from smp.auth.jwt import create_session_token, session_ttl_seconds
from smp.auth.schemas import (
    AdminResponse,
    ChallengeRequest,
    ChallengeResponse,
    MeResponse,
    VerifyRequest,
    VerifyResponse,
)
from smp.auth.siwe import generate_nonce, verify_wallet_signature
from smp.config import get_settings
from smp.database import get_session
from smp.errors import AppError, ErrorCode
from smp.profiles.service import get_player
from smp.redis_client import get_redis
from smp.schemas import Envelope, MessageData, ok

logger = structlog.get_logger()

router = APIRouter(prefix="/api/v1/auth", tags=["Authentication"])


def _nonce_key(address: str) -> str:
    return f"auth:nonce:{address}"


@router.post("/challenge", response_model=Envelope[ChallengeResponse])
async def challenge(
    body: ChallengeRequest,
    redis: Redis = Depends(get_redis),  # type: ignore[assignment]
) -> dict[str, object]:
    """Issue a single-use sign-in nonce for a wallet."""
    settings = get_settings()
    nonce = generate_nonce()

    await redis.set(_nonce_key(body.address), nonce, ex=settings.siwe_nonce_ttl_seconds)

    return ok(ChallengeResponse(nonce=nonce, expires_in=settings.siwe_nonce_ttl_seconds))


@router.post("/verify", response_model=Envelope[VerifyResponse])
async def verify(
    body: VerifyRequest,
    response: Response,
    redis: Redis = Depends(get_redis),  # type: ignore[assignment]
    db: AsyncSession = Depends(get_session),
) -> dict[str, object]:
    """Verify a signed sign-in message and set the session cookie."""
    settings = get_settings()

    stored_nonce = await redis.get(_nonce_key(body.address))
    if stored_nonce is None:
        raise AppError.bad_request(ErrorCode.NONCE_MISMATCH, "Challenge expired or not found")

    address = verify_wallet_signature(body.address, body.message, body.signature, stored_nonce)

    # One-time use
    await redis.delete(_nonce_key(body.address))

    player = await get_player(db, address)
    roles = ["user", "admin"] if player is not None and player.is_admin else ["user"]
    token = create_session_token(address, roles)

    response.set_cookie(
        key=settings.session_cookie_name,
        value=token,
        max_age=session_ttl_seconds(),
        httponly=True,
        secure=settings.cookie_secure,
        samesite="lax",
        path="/",
    )
    logger.info("wallet_login", address=address, roles=roles)

    return ok(VerifyResponse(address=address))


@router.post("/logout", response_model=Envelope[MessageData])
async def logout(response: Response) -> dict[str, object]:
    """Clear the session cookie."""
    settings = get_settings()
    response.delete_cookie(
        key=settings.session_cookie_name,
        path="/",
        httponly=True,
        secure=settings.cookie_secure,
        samesite="lax",
    )
    return ok(MessageData(message="Logged out"))


@router.get("/me", response_model=Envelope[MeResponse])
async def me(user: SessionUser = Depends(get_current_user)) -> dict[str, object]:
    """Return the authenticated wallet and its roles."""
    return ok(MeResponse(address=user.address, roles=user.roles, is_admin=user.is_admin))


@router.get("/admin", response_model=Envelope[AdminResponse])
async def admin(user: SessionUser = Depends(get_current_user)) -> dict[str, object]:
    """Report whether the session carries the admin role."""
    return ok(AdminResponse(is_admin=user.is_admin, roles=user.roles))
