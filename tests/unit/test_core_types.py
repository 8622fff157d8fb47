"""
test_core_types.py - Unit tests for core data structures

Tests:
- LedgerConfig: defaults, validation
- Instrument: creation, presence invariants, wire form
- TransactionRecord: rental-only fields, wire form
- Change records and PendingTransition intent ids
- LedgerError codes
"""

import pytest
from dataclasses import FrozenInstanceError

from instrument_ledger import (
    LedgerConfig, Instrument, TransactionRecord,
    InstrumentStatus, TransactionType, TransactionStatus,
    BalanceChange, InstrumentChange, RecordChange, PendingTransition,
    LedgerError, OwnerOnly, InsufficientBalance, Unauthorized, InvalidInstrument,
    InstrumentUnavailable, InvalidRentalPeriod, UnknownFunction, ERRORS_BY_CODE,
    UINT_MAX, to_wire,
)
from tests.conftest import make_instrument, make_rental_record


class TestLedgerConfig:
    """Tests for LedgerConfig defaults and validation."""

    def test_defaults(self):
        """One rental day is 144 blocks; a single call covers up to 365 days."""
        config = LedgerConfig()
        assert config.blocks_per_day == 144
        assert config.max_rental_days == 365

    @pytest.mark.parametrize("blocks, days", [(0, 365), (144, 0), (-1, 10)])
    def test_rejects_non_positive(self, blocks, days):
        with pytest.raises(ValueError):
            LedgerConfig(blocks_per_day=blocks, max_rental_days=days)

    def test_frozen(self):
        config = LedgerConfig()
        with pytest.raises(FrozenInstanceError):
            config.blocks_per_day = 10


class TestInstrument:
    """Tests for Instrument creation and invariants."""

    def test_new_instrument_is_available(self):
        instrument = make_instrument()
        assert instrument.status == InstrumentStatus.AVAILABLE
        assert instrument.owner is None
        assert instrument.renter is None
        assert instrument.rental_expiry is None

    def test_status_accepts_wire_string(self):
        """Status given as its string value is coerced to the enum."""
        instrument = make_instrument(status="maintenance")
        assert instrument.status is InstrumentStatus.MAINTENANCE

    def test_unknown_status_rejected(self):
        with pytest.raises(ValueError):
            make_instrument(status="lost")

    def test_renter_requires_expiry(self):
        with pytest.raises(ValueError, match="together"):
            make_instrument(status=InstrumentStatus.RENTED, renter="alice")

    def test_rented_requires_renter(self):
        with pytest.raises(ValueError):
            make_instrument(status=InstrumentStatus.RENTED)

    def test_renter_requires_rented_status(self):
        with pytest.raises(ValueError):
            make_instrument(renter="alice", rental_expiry=2000)

    def test_sold_requires_owner(self):
        with pytest.raises(ValueError):
            make_instrument(status=InstrumentStatus.SOLD)

    def test_owner_requires_sold(self):
        with pytest.raises(ValueError):
            make_instrument(owner="bob")

    def test_fee_must_be_uint(self):
        with pytest.raises(ValueError):
            make_instrument(fee=-1)
        with pytest.raises(ValueError):
            make_instrument(price=UINT_MAX + 1)

    def test_bool_is_not_a_uint(self):
        with pytest.raises(ValueError):
            make_instrument(fee=True)

    def test_empty_name_rejected(self):
        with pytest.raises(ValueError):
            make_instrument(name="")

    def test_wire_form_uses_hyphenated_keys(self):
        instrument = make_instrument(status=InstrumentStatus.RENTED, renter="alice", rental_expiry=2008)
        wire = instrument.to_wire()
        assert wire == {
            'name': "Yamaha Clarinet",
            'category': "Woodwind",
            'daily-rental-fee': 10,
            'purchase-price': 500,
            'status': "rented",
            'owner': None,
            'renter': "alice",
            'rental-expiry': 2008,
        }
        assert Instrument.from_wire(1, wire) == instrument


class TestTransactionRecord:
    """Tests for TransactionRecord fields."""

    def test_rental_record(self):
        record = make_rental_record(3, "alice", days=7)
        assert record.amount == 70
        assert record.expiry == 1000 + 7 * 144

    def test_rental_needs_period_and_expiry(self):
        with pytest.raises(ValueError):
            TransactionRecord(1, "alice", 1, 70, TransactionType.RENTAL, TransactionStatus.ACTIVE, 1000)

    def test_non_rental_has_no_period(self):
        with pytest.raises(ValueError):
            TransactionRecord(
                1, "alice", 0, 500, TransactionType.DEPOSIT, TransactionStatus.COMPLETED, 1000,
                rental_period_days=1, expiry=1144,
            )

    def test_wire_round_trip(self):
        record = TransactionRecord(
            1, "alice", 0, 500, "deposit", "completed", 1000,
        )
        wire = record.to_wire()
        assert wire['type'] == "deposit"
        assert wire['rental-period-days'] is None
        assert TransactionRecord.from_wire(1, wire) == record


class TestChangeRecords:
    """Tests for BalanceChange, InstrumentChange and RecordChange."""

    def test_balance_delta(self):
        assert BalanceChange("alice", 500, 430).delta == -70

    def test_empty_principal_rejected(self):
        with pytest.raises(ValueError):
            BalanceChange("  ", 0, 1)

    def test_instrument_changed_fields(self):
        old = make_instrument()
        new = make_instrument(status=InstrumentStatus.MAINTENANCE)
        assert InstrumentChange(1, old, new).changed_fields() == {
            'status': (InstrumentStatus.AVAILABLE, InstrumentStatus.MAINTENANCE),
        }

    def test_created_record_lists_every_set_field(self):
        record = make_rental_record(1, "alice")
        fields = RecordChange(1, None, record).changed_fields()
        assert fields['user'] == (None, "alice")
        assert 'rental_period_days' in fields


class TestPendingTransition:
    """Tests for intent ids."""

    def test_same_content_same_intent_id(self):
        a = PendingTransition("deposit", "alice", 1000, (BalanceChange("alice", 0, 5),))
        b = PendingTransition("deposit", "alice", 1000, (BalanceChange("alice", 0, 5),))
        assert a.intent_id == b.intent_id

    def test_different_clock_different_intent_id(self):
        a = PendingTransition("deposit", "alice", 1000, (BalanceChange("alice", 0, 5),))
        b = PendingTransition("deposit", "alice", 1001, (BalanceChange("alice", 0, 5),))
        assert a.intent_id != b.intent_id

    def test_is_empty(self):
        assert PendingTransition("mark-overdue-rentals", "system", 0).is_empty()


class TestErrors:
    """Tests for the error code table."""

    @pytest.mark.parametrize("cls, code, name", [
        (OwnerOnly, 100, "err-owner-only"),
        (InsufficientBalance, 101, "err-insufficient-balance"),
        (Unauthorized, 105, "err-unauthorized"),
        (InvalidInstrument, 106, "err-invalid-instrument"),
        (InstrumentUnavailable, 107, "err-instrument-unavailable"),
        (InvalidRentalPeriod, 108, "err-invalid-rental-period"),
        (UnknownFunction, 109, "err-invalid-instrument-class"),
    ])
    def test_stable_codes(self, cls, code, name):
        assert cls.code == code
        assert cls.error_name == name
        assert issubclass(cls, LedgerError)
        assert ERRORS_BY_CODE[code] is cls

    def test_codes_are_unique(self):
        assert len(ERRORS_BY_CODE) == 12

    def test_as_dict(self):
        assert OwnerOnly("nope").as_dict() == {"error-code": 100, "error-name": "err-owner-only"}


class TestToWire:

    def test_entities_and_enums(self):
        assert to_wire(make_instrument())['status'] == "available"
        assert to_wire(InstrumentStatus.SOLD) == "sold"
        assert to_wire([1, TransactionStatus.ACTIVE]) == [1, "active"]
        assert to_wire(None) is None
