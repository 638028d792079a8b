"""FastAPI authentication dependencies."""

from __future__ import annotations

from dataclasses import dataclass, field

import jwt
from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from smp.auth.jwt import verify_token
from smp.config import get_settings
from smp.database import get_session
from smp.db.models import Player
from smp.errors import AppError, ErrorCode
from smp.profiles.service import get_player


@dataclass
class SessionUser:
    """The wallet behind the current request."""

    address: str
    roles: list[str] = field(default_factory=list)

    @property
    def is_admin(self) -> bool:
        return "admin" in self.roles


def _extract_token(request: Request) -> str | None:
    token = request.cookies.get(get_settings().session_cookie_name)
    if token:
        return token
    header = request.headers.get("authorization", "")
    scheme, _, credentials = header.partition(" ")
    if scheme.lower() == "bearer" and credentials:
        return credentials.strip()
    return None


async def get_current_user(request: Request) -> SessionUser:
    """
    Resolve the session from the ``gb_session`` cookie or a Bearer token.

    Raises 401 UNAUTHORIZED when missing or invalid.
    """
    token = _extract_token(request)
    if token is None:
        raise AppError.unauthorized(message="Not authenticated")
    try:
        payload = verify_token(token, expected_type="session")
    except jwt.InvalidTokenError as e:
        raise AppError.unauthorized(message=str(e)) from e

    return SessionUser(address=str(payload["sub"]).lower(), roles=list(payload.get("roles", [])))


async def get_current_wallet(user: SessionUser = Depends(get_current_user)) -> str:
    return user.address


async def require_dev_account(
    user: SessionUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> Player:
    """Allow only the configured test account (matched by profile display name)."""
    player = await get_player(db, user.address)
    if player is None:
        raise AppError.forbidden(message="Profile not found")
    if player.display_name.lower() != get_settings().dev_display_name.lower():
        raise AppError.forbidden(ErrorCode.FORBIDDEN, "Dev tools are restricted to the test account")
    return player
