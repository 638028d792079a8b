"""Unit tests for the idempotency outbox."""

import pytest

from smp.errors import AppError, ErrorCode
from smp.runs.outbox import get_stored_response, store_response


class TestOutbox:
    @pytest.mark.asyncio
    async def test_missing_key(self, db):
        assert await get_stored_response(db, "run_1", "key-1") is None

    @pytest.mark.asyncio
    async def test_store_and_read(self, db):
        response = {"txHash": "mock_tx_1", "relics": [{"tokenId": 5, "cid": "QmA"}]}
        await store_response(db, "run_1", "key-1", response, tx_hash="mock_tx_1")
        await db.commit()

        assert await get_stored_response(db, "run_1", "key-1") == response
        assert await get_stored_response(db, "run_1", "key-2") is None
        assert await get_stored_response(db, "run_2", "key-1") is None

    @pytest.mark.asyncio
    async def test_duplicate_pair_rejected(self, db):
        await store_response(db, "run_1", "key-1", {"txHash": "a", "relics": []})

        with pytest.raises(AppError) as exc:
            await store_response(db, "run_1", "key-1", {"txHash": "b", "relics": []})

        assert exc.value.code == ErrorCode.DUPLICATE_IDEMPOTENCY_KEY
        assert exc.value.status_code == 409

    @pytest.mark.asyncio
    async def test_same_key_different_run(self, db):
        await store_response(db, "run_1", "key-1", {"txHash": "a", "relics": []})
        await store_response(db, "run_2", "key-1", {"txHash": "b", "relics": []})

        assert (await get_stored_response(db, "run_2", "key-1"))["txHash"] == "b"
