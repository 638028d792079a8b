"""Idempotency outbox: stored finish responses keyed by ``(run_id, key)``."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from smp.db.models import OutboxEntry
from smp.errors import AppError, ErrorCode

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)


async def get_stored_response(db: AsyncSession, run_id: str, key: str) -> dict[str, Any] | None:
    """Return the response stored for this run and key, if any."""
    result = await db.execute(
        select(OutboxEntry.response)
        .where(OutboxEntry.run_id == run_id)
        .where(OutboxEntry.key == key)
    )
    return result.scalar_one_or_none()


async def store_response(
    db: AsyncSession,
    run_id: str,
    key: str,
    response: dict[str, Any],
    tx_hash: str | None = None,
) -> OutboxEntry:
    """
    Persist a finish response under ``(run_id, key)``.

    Raises:
        AppError: DUPLICATE_IDEMPOTENCY_KEY if the pair is already recorded.
    """
    if await get_stored_response(db, run_id, key) is not None:
        raise AppError.conflict(
            ErrorCode.DUPLICATE_IDEMPOTENCY_KEY,
            "Idempotency key already used for this run",
            {"runId": run_id},
        )

    entry = OutboxEntry(run_id=run_id, key=key, response=dict(response), tx_hash=tx_hash)
    db.add(entry)
    try:
        await db.flush()
    except IntegrityError as e:
        await db.rollback()
        raise AppError.conflict(
            ErrorCode.DUPLICATE_IDEMPOTENCY_KEY,
            "Idempotency key already used for this run",
            {"runId": run_id},
        ) from e
    logger.debug("Stored finish response for %s under key %s", run_id, key)
    return entry
