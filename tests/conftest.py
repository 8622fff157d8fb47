"""
conftest.py - Shared pytest fixtures for instrument ledger tests

Provides common fixtures used across unit, conformance and functional tests:
- Basic ledgers (empty, catalogued, funded)
- Dispatchers over those ledgers
- Builders for entities and rental records
- Hypothesis strategy for random call sequences
"""

import pytest
from hypothesis import strategies as st
from typing import List, Optional

from instrument_ledger import (
    Ledger, Dispatcher, Call, LedgerConfig,
    Instrument, TransactionRecord, InstrumentStatus, TransactionType, TransactionStatus,
    DEFAULT_BLOCKS_PER_DAY, SYSTEM_PRINCIPAL,
)

from tests.fake_view import FakeView


OWNER = "shop"
START_CLOCK = 1000


# =============================================================================
# HELPER FUNCTIONS
# =============================================================================

def make_instrument(
    instrument_id: int = 1,
    name: str = "Yamaha Clarinet",
    category: str = "Woodwind",
    fee: int = 10,
    price: int = 500,
    status: InstrumentStatus = InstrumentStatus.AVAILABLE,
    owner: Optional[str] = None,
    renter: Optional[str] = None,
    rental_expiry: Optional[int] = None,
) -> Instrument:
    """Create an Instrument for testing."""
    return Instrument(
        instrument_id=instrument_id,
        name=name,
        category=category,
        daily_rental_fee=fee,
        purchase_price=price,
        status=status,
        owner=owner,
        renter=renter,
        rental_expiry=rental_expiry,
    )


def make_rental_record(
    tx_id: int,
    user: str,
    instrument_id: int = 1,
    days: int = 7,
    fee: int = 10,
    timestamp: int = START_CLOCK,
    status: TransactionStatus = TransactionStatus.ACTIVE,
    blocks_per_day: int = DEFAULT_BLOCKS_PER_DAY,
) -> TransactionRecord:
    """Create a rental record whose expiry matches its period."""
    return TransactionRecord(
        tx_id=tx_id,
        user=user,
        instrument_id=instrument_id,
        amount=fee * days,
        tx_type=TransactionType.RENTAL,
        status=status,
        timestamp=timestamp,
        rental_period_days=days,
        expiry=timestamp + days * blocks_per_day,
    )


def rented_view(
    renter: str = "alice",
    days: int = 7,
    balance: int = 0,
    clock: int = START_CLOCK,
    record_status: TransactionStatus = TransactionStatus.ACTIVE,
) -> FakeView:
    """FakeView holding instrument 1 rented by renter under rental record 1."""
    record = make_rental_record(1, renter, days=days, status=record_status)
    instrument = make_instrument(
        status=InstrumentStatus.RENTED, renter=renter, rental_expiry=record.expiry,
    )
    return FakeView(
        owner=OWNER,
        balances={renter: balance},
        instruments=[instrument],
        transactions=[record],
        clock=clock,
    )


def new_ledger(config: Optional[LedgerConfig] = None, test_mode: bool = False) -> Ledger:
    return Ledger("test", owner=OWNER, config=config, initial_clock=START_CLOCK,
                  verbose=False, test_mode=test_mode)


# =============================================================================
# HYPOTHESIS STRATEGIES
# =============================================================================

PRINCIPALS = [OWNER, "alice", "bob", SYSTEM_PRINCIPAL]

_ids = st.integers(min_value=0, max_value=4)
_days = st.integers(min_value=0, max_value=400)
_amounts = st.integers(min_value=0, max_value=3000)

_call_args = st.one_of(
    st.tuples(st.just("register-instrument"),
              st.tuples(st.sampled_from(["Clarinet", "Violin", "Tuba"]), st.just("Band"),
                        st.integers(min_value=0, max_value=50), st.integers(min_value=0, max_value=2000))),
    st.tuples(st.just("update-instrument-status"),
              st.tuples(_ids, st.sampled_from(["available", "maintenance", "rented", "sold", "lost"]))),
    st.tuples(st.just("deposit"), st.tuples(_amounts)),
    st.tuples(st.just("purchase-instrument"), st.tuples(_ids)),
    st.tuples(st.just("rent-instrument"), st.tuples(_ids, _days)),
    st.tuples(st.just("extend-rental"), st.tuples(_ids, _days)),
    st.tuples(st.just("return-instrument"), st.tuples(_ids)),
    st.tuples(st.just("process-refund"), st.tuples(st.integers(min_value=0, max_value=12))),
    st.tuples(st.just("mark-overdue-rentals"), st.just(())),
)


@st.composite
def call_sequences(draw, max_size: int = 30) -> List[Call]:
    """Random call sequences with non-decreasing clocks."""
    steps = draw(st.lists(
        st.tuples(st.sampled_from(PRINCIPALS), _call_args, st.integers(min_value=0, max_value=400)),
        max_size=max_size,
    ))
    calls = []
    clock = START_CLOCK
    for caller, (function, args), tick in steps:
        clock += tick
        calls.append(Call(caller, function, args, clock))
    return calls


# =============================================================================
# FIXTURES
# =============================================================================

@pytest.fixture
def empty_ledger():
    """Ledger with no instruments and no balances."""
    return new_ledger()


@pytest.fixture
def dispatcher(empty_ledger):
    """Dispatcher over an empty ledger."""
    return Dispatcher(empty_ledger, verbose=False)


@pytest.fixture
def catalogue(dispatcher):
    """
    Dispatcher with two instruments registered:
    1. Yamaha Clarinet, fee 10, price 500
    2. Stentor Violin, fee 25, price 1200
    """
    dispatcher.submit(OWNER, "register-instrument", "Yamaha Clarinet", "Woodwind", 10, 500)
    dispatcher.submit(OWNER, "register-instrument", "Stentor Violin", "Strings", 25, 1200)
    return dispatcher


@pytest.fixture
def funded(catalogue):
    """Catalogue with alice holding 500 (tx 1) and bob holding 2000 (tx 2)."""
    catalogue.submit("alice", "deposit", 500)
    catalogue.submit("bob", "deposit", 2000)
    return catalogue


@pytest.fixture
def rented(funded):
    """Funded catalogue with alice renting the clarinet for 7 days (tx 3)."""
    funded.submit("alice", "rent-instrument", 1, 7)
    return funded
