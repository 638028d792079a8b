"""Identifier helpers for parties, runs and other generated ids."""

from __future__ import annotations

import secrets
import string
import time

_ALPHABET = string.ascii_lowercase + string.digits


def now_ms() -> int:
    return int(time.time() * 1000)


def random_suffix(length: int = 9) -> str:
    return "".join(secrets.choice(_ALPHABET) for _ in range(length))


def generate_id(prefix: str) -> str:
    """``<prefix>_<epoch ms>_<9 random base-36 chars>``, e.g. ``p_1718000000000_k3j9x0a1b``."""
    return f"{prefix}_{now_ms()}_{random_suffix()}"
