"""Housekeeping jobs run against the test database."""

from datetime import timedelta

import pytest
from sqlalchemy import select

from smp.database import get_session_factory
from smp.db.models import Party, utcnow
from smp.gates.seed import seed_gates
from smp.gates.service import get_gate
from smp.inventory.service import add_relic, get_items
from smp.parties.service import create_party
from smp.profiles.service import upsert_profile
from smp.workers.housekeeping import WorkerSettings, expire_stale_parties, prune_unsynced_relics

WALLET = "0x" + "a1" * 20


class TestHousekeeping:
    @pytest.mark.asyncio
    async def test_expire_stale_parties(self, db):
        await seed_gates(db)
        await upsert_profile(db, WALLET, "Alice", "m_swordsman", "https://img.example/a.png")
        party = await create_party(db, WALLET, "E_GOBLIN_CAVE")
        party_id = party.id
        party.created_at = utcnow() - timedelta(hours=2)
        await db.commit()

        closed = await expire_stale_parties({"session_factory": get_session_factory()})

        assert closed == 1
        db.expire_all()
        state = (await db.execute(select(Party.state).where(Party.id == party_id))).scalar_one()
        assert state == "closed"
        assert (await get_gate(db, "E_GOBLIN_CAVE")).occupancy == []

    @pytest.mark.asyncio
    async def test_fresh_parties_survive(self, db):
        await seed_gates(db)
        await upsert_profile(db, WALLET, "Alice", "m_swordsman", "https://img.example/a.png")
        await create_party(db, WALLET, "E_GOBLIN_CAVE")

        assert await expire_stale_parties({"session_factory": get_session_factory()}) == 0

    @pytest.mark.asyncio
    async def test_prune_unsynced_relics(self, db):
        await add_relic(db, WALLET, 1, "ShadowCloak", {"+Stealth": 1}, "QmA")
        item = await add_relic(db, WALLET, 2, "ShadowCloak", {"+Stealth": 1}, "QmB")
        item.sync_attempts = 5
        item.last_synced = utcnow() - timedelta(days=3)
        await db.commit()

        removed = await prune_unsynced_relics({"session_factory": get_session_factory()})

        assert removed == 1
        db.expire_all()
        assert [i.token_id for i in await get_items(db, WALLET)] == [1]

    def test_cron_schedule(self):
        names = {job.name for job in WorkerSettings.cron_jobs}
        assert names == {"cron:expire_stale_parties", "cron:prune_unsynced_relics"}
