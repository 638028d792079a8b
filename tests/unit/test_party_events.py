"""Unit tests for the in-process party event bus."""

import asyncio

import pytest

from smp.parties.events import PartyEventBus


class TestPartyEventBus:
    @pytest.mark.asyncio
    async def test_emit_reaches_party_subscribers_only(self):
        bus = PartyEventBus()
        mine = bus.subscribe("p1")
        other = bus.subscribe("p2")

        delivered = bus.emit("p1", "member_joined", {"wallet": "0xabc"})

        assert delivered == 1
        event = mine.get_nowait()
        assert event.to_dict() == {"type": "member_joined", "data": {"wallet": "0xabc"}}
        assert other.empty()

    def test_emit_without_subscribers(self):
        bus = PartyEventBus()
        assert bus.emit("p1", "started") == 0

    def test_unknown_event_type_rejected(self):
        bus = PartyEventBus()
        with pytest.raises(ValueError, match="Unknown party event type"):
            bus.emit("p1", "exploded")

    @pytest.mark.asyncio
    async def test_unsubscribe_forgets_empty_party(self):
        bus = PartyEventBus()
        queue = bus.subscribe("p1")
        assert bus.subscriber_count("p1") == 1

        bus.unsubscribe("p1", queue)

        assert bus.subscriber_count("p1") == 0
        assert bus.active_party_ids == []

    @pytest.mark.asyncio
    async def test_close_stream_sends_terminator(self):
        bus = PartyEventBus()
        first = bus.subscribe("p1")
        second = bus.subscribe("p1")

        bus.close_stream("p1")

        assert await asyncio.wait_for(first.get(), 1) is None
        assert await asyncio.wait_for(second.get(), 1) is None
        assert "p1" not in bus.active_party_ids

    @pytest.mark.asyncio
    async def test_full_queue_drops_event_but_still_closes(self):
        bus = PartyEventBus(max_queue_size=1)
        queue = bus.subscribe("p1")

        assert bus.emit("p1", "ready_changed", {"isReady": True}) == 1
        assert bus.emit("p1", "ready_changed", {"isReady": False}) == 0

        bus.close_stream("p1")
        assert queue.get_nowait() is None
