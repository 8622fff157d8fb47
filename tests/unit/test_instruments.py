"""
test_instruments.py - Unit tests for catalogue transitions

Tests:
- compute_register_instrument: ids, owner check, created entity
- compute_update_instrument_status: failure order, no-op, allowed targets
- is_instrument_available
"""

import pytest

from instrument_ledger import (
    InstrumentStatus,
    compute_register_instrument, compute_update_instrument_status, is_instrument_available,
    OwnerOnly, InvalidInstrument, InstrumentUnavailable, InvalidStatus,
)
from tests.conftest import OWNER, make_instrument
from tests.fake_view import FakeView


class TestRegisterInstrument:
    """Tests for compute_register_instrument."""

    def test_first_instrument_gets_id_one(self):
        view = FakeView(owner=OWNER)
        pending = compute_register_instrument(view, OWNER, "Yamaha Clarinet", "Woodwind", 10, 500)
        assert pending.result == 1
        assert len(pending.instrument_changes) == 1
        change = pending.instrument_changes[0]
        assert change.old is None
        assert change.new == make_instrument()

    def test_uses_next_instrument_id(self):
        view = FakeView(owner=OWNER, instruments=[make_instrument(1), make_instrument(2)])
        pending = compute_register_instrument(view, OWNER, "Trumpet", "Brass", 8, 300)
        assert pending.result == 3
        assert pending.instrument_changes[0].instrument_id == 3

    def test_owner_only(self):
        view = FakeView(owner=OWNER)
        with pytest.raises(OwnerOnly):
            compute_register_instrument(view, "mallory", "Flute", "Woodwind", 1, 1)

    def test_no_balance_or_record_changes(self):
        view = FakeView(owner=OWNER)
        pending = compute_register_instrument(view, OWNER, "Flute", "Woodwind", 0, 0)
        assert pending.balance_changes == ()
        assert pending.record_changes == ()


class TestUpdateInstrumentStatus:
    """Tests for compute_update_instrument_status."""

    def test_available_to_maintenance(self):
        view = FakeView(owner=OWNER, instruments=[make_instrument()])
        pending = compute_update_instrument_status(view, OWNER, 1, "maintenance")
        assert pending.result is True
        assert pending.instrument_changes[0].new.status == InstrumentStatus.MAINTENANCE

    def test_maintenance_to_available(self):
        view = FakeView(owner=OWNER, instruments=[make_instrument(status=InstrumentStatus.MAINTENANCE)])
        pending = compute_update_instrument_status(view, OWNER, 1, InstrumentStatus.AVAILABLE)
        assert pending.instrument_changes[0].new.status == InstrumentStatus.AVAILABLE

    def test_same_status_is_empty(self):
        """Setting the current status succeeds and writes nothing."""
        view = FakeView(owner=OWNER, instruments=[make_instrument()])
        pending = compute_update_instrument_status(view, OWNER, 1, "available")
        assert pending.is_empty()
        assert pending.result is True

    def test_owner_checked_first(self):
        view = FakeView(owner=OWNER)
        with pytest.raises(OwnerOnly):
            compute_update_instrument_status(view, "alice", 99, "bogus")

    def test_unknown_instrument(self):
        view = FakeView(owner=OWNER)
        with pytest.raises(InvalidInstrument):
            compute_update_instrument_status(view, OWNER, 99, "maintenance")

    def test_rented_instrument_untouchable(self):
        rented = make_instrument(status=InstrumentStatus.RENTED, renter="alice", rental_expiry=2008)
        view = FakeView(owner=OWNER, instruments=[rented])
        with pytest.raises(InstrumentUnavailable):
            compute_update_instrument_status(view, OWNER, 1, "maintenance")

    def test_sold_instrument_untouchable(self):
        sold = make_instrument(status=InstrumentStatus.SOLD, owner="bob")
        view = FakeView(owner=OWNER, instruments=[sold])
        with pytest.raises(InstrumentUnavailable):
            compute_update_instrument_status(view, OWNER, 1, "available")

    @pytest.mark.parametrize("target", ["rented", "sold", "lost", ""])
    def test_invalid_target(self, target):
        view = FakeView(owner=OWNER, instruments=[make_instrument()])
        with pytest.raises(InvalidStatus):
            compute_update_instrument_status(view, OWNER, 1, target)


class TestIsInstrumentAvailable:

    def test_available(self):
        view = FakeView(instruments=[make_instrument()])
        assert is_instrument_available(view, 1)

    def test_unknown(self):
        assert not is_instrument_available(FakeView(), 1)

    def test_maintenance(self):
        view = FakeView(instruments=[make_instrument(status=InstrumentStatus.MAINTENANCE)])
        assert not is_instrument_available(view, 1)
