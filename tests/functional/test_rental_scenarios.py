"""
test_rental_scenarios.py - End-to-end scenarios through the Dispatcher

Each test drives a fresh ledger through the public call interface only and
checks receipts, queries and the audit trail.
"""

import pytest

from instrument_ledger import (
    Ledger, Dispatcher, LifecycleEngine, InstrumentStatus, TransactionStatus, TransactionType,
)
from tests.conftest import OWNER, START_CLOCK


DAY = 144


@pytest.fixture
def shop():
    ledger = Ledger("shop", owner=OWNER, initial_clock=START_CLOCK, verbose=False)
    dispatcher = Dispatcher(ledger, verbose=False)
    dispatcher.submit(OWNER, "register-instrument", "Yamaha Clarinet", "Woodwind", 10, 500)
    return dispatcher


class TestRentalLifecycle:

    def test_deposit_rent_seven_days(self, shop):
        """Deposit 500, rent at fee 10 for 7 days: balance 430, rented, expiry 7 periods out."""
        assert shop.submit("alice", "deposit", 500).as_dict() == {"success": True, "value": 1}
        receipt = shop.submit("alice", "rent-instrument", 1, 7)

        assert receipt.as_dict() == {"success": True, "value": 2}
        assert shop.query("get-balance", "alice").value == 430
        wire = shop.query("get-instrument", 1).as_dict()["value"]
        assert wire["status"] == "rented"
        assert wire["renter"] == "alice"
        assert wire["rental-expiry"] == START_CLOCK + 7 * DAY

    def test_five_day_rental_expiry(self):
        """A 5-day rental taken at block 12300 runs until block 13020."""
        dispatcher = Dispatcher(Ledger("shop", owner=OWNER, verbose=False), verbose=False)
        dispatcher.submit(OWNER, "register-instrument", "Yamaha Clarinet", "Woodwind", 10, 500, clock=12300)
        dispatcher.submit("alice", "deposit", 1000)
        dispatcher.submit("alice", "rent-instrument", 1, 5)
        assert dispatcher.ledger.get_instrument(1).rental_expiry == 13020

    def test_full_cycle_with_extension(self, shop):
        shop.submit("alice", "deposit", 500)
        shop.submit("alice", "rent-instrument", 1, 7, clock=START_CLOCK + 10)

        receipt = shop.submit("alice", "extend-rental", 1, 3, clock=START_CLOCK + 20)
        assert receipt.value == START_CLOCK + 10 + 10 * DAY
        assert shop.query("get-balance", "alice").value == 400

        record = shop.query("get-transaction", 2).value
        assert record.rental_period_days == 10
        assert record.amount == 100

        assert shop.submit("alice", "return-instrument", 1, clock=START_CLOCK + 5 * DAY).value is True
        assert shop.query("is-instrument-available", 1).value is True
        assert shop.query("get-transaction", 2).value.status == TransactionStatus.COMPLETED
        # Returning early does not refund unused days
        assert shop.query("get-balance", "alice").value == 400

    def test_rent_again_after_return(self, shop):
        shop.submit("alice", "deposit", 500)
        shop.submit("bob", "deposit", 500)
        shop.submit("alice", "rent-instrument", 1, 1)
        shop.submit("alice", "return-instrument", 1)
        receipt = shop.submit("bob", "rent-instrument", 1, 2)
        assert receipt.success
        assert shop.ledger.find_rental_record(1, "bob").tx_id == receipt.value


class TestRejections:

    def test_maintenance_instrument_cannot_be_rented(self, shop):
        shop.submit("alice", "deposit", 500)
        shop.submit(OWNER, "update-instrument-status", 1, "maintenance")

        receipt = shop.submit("alice", "rent-instrument", 1, 1)

        assert receipt.as_dict() == {"success": False, "error-code": 107, "error-name": "err-instrument-unavailable"}
        assert shop.query("get-balance", "alice").value == 500

    @pytest.mark.parametrize("balance", [0, 10, 10_000])
    def test_four_hundred_days_rejected(self, shop, balance):
        if balance:
            shop.submit("alice", "deposit", balance)
        receipt = shop.submit("alice", "rent-instrument", 1, 400)
        assert receipt.error_code == 108

    def test_cannot_rent_sold_instrument(self, shop):
        shop.submit("bob", "deposit", 500)
        shop.submit("alice", "deposit", 500)
        assert shop.submit("bob", "purchase-instrument", 1).success
        assert shop.submit("alice", "rent-instrument", 1, 1).error_code == 107
        assert shop.submit(OWNER, "update-instrument-status", 1, "available").error_code == 107
        instrument = shop.query("get-instrument", 1).value
        assert instrument.status == InstrumentStatus.SOLD
        assert instrument.owner == "bob"


class TestOverdueAndRefunds:

    def test_overdue_sweep(self, shop):
        """An expired active rental is flagged overdue; the instrument stays rented."""
        shop.submit("alice", "deposit", 500)
        shop.submit("alice", "rent-instrument", 1, 1)

        engine = LifecycleEngine(shop)
        engine.run([START_CLOCK + DAY, START_CLOCK + DAY + 1])

        assert shop.query("get-transaction", 2).value.status == TransactionStatus.OVERDUE
        assert shop.query("get-instrument", 1).value.status == InstrumentStatus.RENTED
        assert shop.query("is-rental-active", 1).value is False

    def test_overdue_then_return(self, shop):
        shop.submit("alice", "deposit", 500)
        shop.submit("alice", "rent-instrument", 1, 1)
        shop.submit(OWNER, "mark-overdue-rentals", clock=START_CLOCK + 2 * DAY)

        assert shop.submit("alice", "return-instrument", 1).success
        assert shop.query("is-instrument-available", 1).value is True
        assert shop.query("get-transaction", 2).value.status == TransactionStatus.OVERDUE

    def test_refund_overdue_rental(self, shop):
        shop.submit("alice", "deposit", 500)
        shop.submit("alice", "rent-instrument", 1, 2)
        shop.system_call("mark-overdue-rentals", clock=START_CLOCK + 3 * DAY)

        receipt = shop.submit(OWNER, "process-refund", 2)

        assert receipt.value == 20
        assert shop.query("get-balance", "alice").value == 500
        refund = shop.query("get-transaction", 3).value
        assert refund.tx_type == TransactionType.REFUND
        assert refund.user == "alice"
        assert shop.submit(OWNER, "process-refund", 2).error_code == 103

    def test_purchase_is_not_refundable(self, shop):
        shop.submit("bob", "deposit", 500)
        shop.submit("bob", "purchase-instrument", 1)
        assert shop.submit(OWNER, "process-refund", 2).error_code == 103

    def test_refunded_rental_can_be_returned_not_extended(self, shop):
        """Every payment lands on a record: after a refund the renter may only return."""
        shop.submit("alice", "deposit", 1000)
        shop.submit("alice", "rent-instrument", 1, 7)
        shop.submit(OWNER, "process-refund", 2)

        receipt = shop.submit("alice", "extend-rental", 1, 5)

        assert receipt.error_code == 103
        assert shop.query("get-balance", "alice").value == 1000
        assert shop.query("get-next-tx-id").value == 4
        assert shop.query("get-transaction", 2).value.amount == 70
        assert shop.submit("alice", "return-instrument", 1).success
        assert shop.query("is-instrument-available", 1).value is True


class TestAuditTrail:

    def test_replay_and_time_travel(self, shop):
        shop.submit("alice", "deposit", 500, clock=START_CLOCK + 1)
        shop.submit("alice", "rent-instrument", 1, 7, clock=START_CLOCK + 2)
        shop.submit("alice", "return-instrument", 1, clock=START_CLOCK + 3)

        assert shop.replay().ledger.state_digest() == shop.ledger.state_digest()

        during = shop.ledger.clone_at(START_CLOCK + 2)
        assert during.get_instrument(1).renter == "alice"
        assert during.get_balance("alice") == 430

        before = shop.ledger.clone_at(START_CLOCK)
        assert before.get_balance("alice") == 0
        assert before.get_next_tx_id() == 1
