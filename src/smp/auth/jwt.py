"""
HS256 JWT token management.

Two token kinds share the signing secret:
  - session tokens (``type=session``, audience web-client) live in the HttpOnly
    ``gb_session`` cookie and authenticate API calls;
  - game-session tokens (``type=game_session``, audience unity-client) are handed
    to the game client when a party starts.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any

import jwt

from smp.config import get_settings


def create_session_token(address: str, roles: list[str] | None = None) -> str:
    """
    Create a session token for an authenticated wallet.

    Args:
        address: Lowercase wallet address (becomes ``sub``).
        roles: Role names; defaults to ``["user"]``.

    Returns:
        Encoded JWT string.
    """
    settings = get_settings()
    now = datetime.now(timezone.utc)
    payload: dict[str, Any] = {
        "sub": address,
        "roles": roles or ["user"],
        "type": "session",
        "iat": now,
        "exp": now + timedelta(hours=settings.session_ttl_hours),
        "iss": settings.jwt_issuer,
        "aud": settings.jwt_audience,
    }
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def create_game_session_token(game_data: dict[str, Any]) -> str:
    """Create a short-lived token describing one player's seat in a run."""
    settings = get_settings()
    now = datetime.now(timezone.utc)
    payload: dict[str, Any] = {
        **game_data,
        "type": "game_session",
        "iat": now,
        "exp": now + timedelta(minutes=settings.game_ttl_minutes),
        "iss": settings.jwt_issuer,
        "aud": settings.game_jwt_audience,
    }
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def session_ttl_seconds() -> int:
    return get_settings().session_ttl_hours * 3600


def game_ttl_seconds() -> int:
    return get_settings().game_ttl_minutes * 60


def verify_token(token: str, expected_type: str = "session") -> dict[str, Any]:
    """
    Verify and decode a JWT token.

    Args:
        token: The encoded JWT string.
        expected_type: ``"session"`` or ``"game_session"``.

    Returns:
        Decoded payload dictionary.

    Raises:
        jwt.InvalidTokenError: If the token is invalid, expired, or wrong type.
    """
    settings = get_settings()
    audience = settings.jwt_audience if expected_type == "session" else settings.game_jwt_audience
    try:
        payload: dict[str, Any] = jwt.decode(
            token,
            settings.jwt_secret,
            algorithms=[settings.jwt_algorithm],
            issuer=settings.jwt_issuer,
            audience=audience,
        )
    except jwt.ExpiredSignatureError:
        msg = "Token has expired"
        raise jwt.InvalidTokenError(msg) from None

    if payload.get("type") != expected_type:
        msg = f"Expected token type '{expected_type}', got '{payload.get('type')}'"
        raise jwt.InvalidTokenError(msg)

    return payload
