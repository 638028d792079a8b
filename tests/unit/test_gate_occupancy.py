"""Unit tests for gate occupancy bookkeeping."""

from smp.db.models import Gate
from smp.gates.service import (
    available_capacity,
    has_capacity,
    occupied_slots,
    remove_party_from_gate,
    update_gate_occupancy,
)


def _gate(capacity: int = 3, occupancy=None) -> Gate:
    return Gate(id="E_TEST", rank="E", name="Test Gate", capacity=capacity, occupancy=occupancy or [])


class TestOccupancy:
    def test_empty_gate(self):
        gate = _gate()
        assert occupied_slots(gate) == 0
        assert available_capacity(gate) == 3
        assert has_capacity(gate)

    def test_upsert_replaces_party_entry(self):
        gate = _gate()
        update_gate_occupancy(gate, "p1", 1, 3)
        update_gate_occupancy(gate, "p1", 2, 3)

        assert gate.occupancy == [{"partyId": "p1", "current": 2, "max": 3}]
        assert available_capacity(gate) == 1

    def test_zero_current_drops_entry(self):
        gate = _gate(occupancy=[{"partyId": "p1", "current": 1, "max": 3}])
        update_gate_occupancy(gate, "p1", 0, 3)
        assert gate.occupancy == []

    def test_capacity_never_negative(self):
        gate = _gate(capacity=2)
        update_gate_occupancy(gate, "p1", 2, 3)
        update_gate_occupancy(gate, "p2", 1, 3)

        assert occupied_slots(gate) == 3
        assert available_capacity(gate) == 0
        assert not has_capacity(gate)

    def test_remove_party(self):
        gate = _gate()
        update_gate_occupancy(gate, "p1", 1, 3)
        update_gate_occupancy(gate, "p2", 2, 3)

        remove_party_from_gate(gate, "p1")

        assert [e["partyId"] for e in gate.occupancy] == ["p2"]

    def test_remove_unknown_party_is_noop(self):
        gate = _gate(occupancy=[{"partyId": "p1", "current": 1, "max": 3}])
        remove_party_from_gate(gate, "p9")
        assert len(gate.occupancy) == 1
