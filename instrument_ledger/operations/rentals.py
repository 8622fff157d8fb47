"""
rentals.py - Instrument Rental Lifecycle

=== RENTAL MODEL ===

A rental is paid up front for a whole number of days:

    cost   = daily_rental_fee * days
    expiry = now + days * blocks_per_day

When an instrument is rented:
    1. cost is debited from the renter
    2. instrument: AVAILABLE -> RENTED, renter and rental_expiry set
    3. a RENTAL record (ACTIVE) is created with the same expiry

When a rental is extended:
    1. fee * extra_days is debited
    2. rental_expiry moves forward by extra_days * blocks_per_day
    3. the open rental record's expiry, rental_period_days and amount grow to match

When an instrument is returned:
    1. instrument: RENTED -> AVAILABLE, renter and rental_expiry cleared
    2. the rental record: ACTIVE -> COMPLETED

The overdue sweep flags ACTIVE rental records whose expiry has passed as
OVERDUE. The instrument stays RENTED; no penalty is charged and nothing is
returned automatically.

=== BOUNDS ===

Both rent and extend accept 1..max_rental_days per call. Each extension is
bounded on its own, not jointly with the rental it extends.
An expiry past UINT_MAX is rejected as an invalid rental period.

Only a rental with an open (active or overdue) record can be extended. Once
the record is refunded the rental can still be returned but not extended,
so every extension payment lands on a record.

=== PURE FUNCTIONS ===

All functions take a LedgerView (read-only) and return a PendingTransition,
or raise the typed LedgerError for the first failed check.
"""

from __future__ import annotations
from dataclasses import replace
from typing import List, Optional

from ..core import (
    LedgerView, PendingTransition, TransactionRecord, RecordChange, InstrumentChange,
    InstrumentStatus, TransactionType, TransactionStatus,
    SYSTEM_PRINCIPAL, UINT_MAX,
    FN_RENT_INSTRUMENT, FN_EXTEND_RENTAL, FN_RETURN_INSTRUMENT, FN_MARK_OVERDUE_RENTALS,
    OwnerOnly, Unauthorized, InvalidInstrument, InstrumentUnavailable, InvalidRentalPeriod,
    InvalidTransaction,
    build_transition, empty_transition, debit,
)


# Rental records that still describe an open rental.
OPEN_RENTAL_STATUSES = frozenset({TransactionStatus.ACTIVE, TransactionStatus.OVERDUE})


# =============================================================================
# PURE HELPERS
# =============================================================================

def compute_rental_cost(daily_rental_fee: int, days: int) -> int:
    """Cost of renting for days at daily_rental_fee."""
    return daily_rental_fee * days


def compute_rental_expiry(start: int, days: int, blocks_per_day: int) -> int:
    """Clock value a rental of days starting at start runs until."""
    return start + days * blocks_per_day


def validate_rental_period(view: LedgerView, days: int) -> None:
    """
    Raises:
        InvalidRentalPeriod: If days is outside 1..max_rental_days.
    """
    max_days = view.config.max_rental_days
    if days < 1 or days > max_days:
        raise InvalidRentalPeriod(f"rental period must be 1..{max_days} days, got {days}")


def check_rental_expiry(expiry: int) -> int:
    """
    Raises:
        InvalidRentalPeriod: If expiry does not fit in an unsigned integer.
    """
    if expiry > UINT_MAX:
        raise InvalidRentalPeriod(f"rental would run past clock {UINT_MAX}")
    return expiry


# =============================================================================
# TRANSITIONS
# =============================================================================

def compute_rent_instrument(
    view: LedgerView,
    caller: str,
    instrument_id: int,
    days: int,
) -> PendingTransition:
    """
    Rent an available instrument for days.

    Args:
        view: Read-only ledger access
        caller: Renter
        instrument_id: Instrument to rent
        days: Rental length, 1..max_rental_days

    Returns:
        PendingTransition with the debit, the rented instrument and an active
        rental record; its result is the rental record's tx id.

    Raises:
        InvalidInstrument: If the id is not registered.
        InstrumentUnavailable: If the instrument is not available.
        InvalidRentalPeriod: If days is out of range or the expiry overflows.
        InsufficientBalance: If the caller cannot cover fee * days.

    Example:
        # balance 500, fee 10, clock 1000
        pending = compute_rent_instrument(ledger, "alice", 1, 7)
        ledger.execute(pending)
        # balance 430, rental_expiry 1000 + 7 * 144 = 2008
    """
    instrument = view.get_instrument(instrument_id)
    if instrument is None:
        raise InvalidInstrument(f"instrument {instrument_id} not registered")
    if instrument.status != InstrumentStatus.AVAILABLE:
        raise InstrumentUnavailable(f"instrument {instrument_id} is {instrument.status.value}")
    validate_rental_period(view, days)
    now = view.current_clock
    expiry = check_rental_expiry(compute_rental_expiry(now, days, view.config.blocks_per_day))

    cost = compute_rental_cost(instrument.daily_rental_fee, days)
    payment = debit(view, caller, cost)

    rented = replace(
        instrument,
        status=InstrumentStatus.RENTED,
        renter=caller,
        rental_expiry=expiry,
    )
    tx_id = view.get_next_tx_id()
    record = TransactionRecord(
        tx_id=tx_id,
        user=caller,
        instrument_id=instrument_id,
        amount=cost,
        tx_type=TransactionType.RENTAL,
        status=TransactionStatus.ACTIVE,
        timestamp=now,
        rental_period_days=days,
        expiry=expiry,
    )
    return build_transition(
        view, caller, FN_RENT_INSTRUMENT,
        result=tx_id,
        balance_changes=[payment],
        instrument_changes=[InstrumentChange(instrument_id, instrument, rented)],
        record_changes=[RecordChange(tx_id, None, record)],
    )


def compute_extend_rental(
    view: LedgerView,
    caller: str,
    instrument_id: int,
    extra_days: int,
) -> PendingTransition:
    """
    Extend the caller's current rental by extra_days.

    The open rental record (active or overdue) is extended alongside the
    instrument so that its expiry keeps matching timestamp + days * period.
    An overdue record stays overdue; statuses never move back to active.

    Returns:
        PendingTransition whose result is the new rental expiry.

    Raises:
        InvalidInstrument: If the id is not registered.
        Unauthorized: If the caller is not the current renter.
        InvalidTransaction: If the rental has no open record (it was refunded).
        InvalidRentalPeriod: If extra_days is out of range or the new expiry
            overflows.
        InsufficientBalance: If the caller cannot cover fee * extra_days.
    """
    instrument = view.get_instrument(instrument_id)
    if instrument is None:
        raise InvalidInstrument(f"instrument {instrument_id} not registered")
    if instrument.renter != caller:
        raise Unauthorized(f"{caller} is not renting instrument {instrument_id}")
    record = view.find_rental_record(instrument_id, caller)
    if record is None or record.status not in OPEN_RENTAL_STATUSES:
        status = "missing" if record is None else record.status.value
        raise InvalidTransaction(f"rental record for instrument {instrument_id} is {status}")
    validate_rental_period(view, extra_days)
    added = extra_days * view.config.blocks_per_day
    new_expiry = check_rental_expiry(instrument.rental_expiry + added)

    cost = compute_rental_cost(instrument.daily_rental_fee, extra_days)
    payment = debit(view, caller, cost)

    extended = replace(instrument, rental_expiry=new_expiry)
    updated = replace(
        record,
        amount=record.amount + cost,
        rental_period_days=record.rental_period_days + extra_days,
        expiry=record.expiry + added,
    )

    return build_transition(
        view, caller, FN_EXTEND_RENTAL,
        result=new_expiry,
        balance_changes=[payment],
        instrument_changes=[InstrumentChange(instrument_id, instrument, extended)],
        record_changes=[RecordChange(record.tx_id, record, updated)],
    )


def compute_return_instrument(view: LedgerView, caller: str, instrument_id: int) -> PendingTransition:
    """
    Return a rented instrument.

    Raises:
        InvalidInstrument: If the id is not registered.
        Unauthorized: If the caller is not the current renter.
    """
    instrument = view.get_instrument(instrument_id)
    if instrument is None:
        raise InvalidInstrument(f"instrument {instrument_id} not registered")
    if instrument.renter != caller:
        raise Unauthorized(f"{caller} is not renting instrument {instrument_id}")

    returned = replace(
        instrument,
        status=InstrumentStatus.AVAILABLE,
        renter=None,
        rental_expiry=None,
    )

    record_changes = []
    record = view.find_rental_record(instrument_id, caller)
    if record is not None and record.status == TransactionStatus.ACTIVE:
        record_changes.append(RecordChange(
            record.tx_id, record, replace(record, status=TransactionStatus.COMPLETED)
        ))

    return build_transition(
        view, caller, FN_RETURN_INSTRUMENT,
        result=True,
        instrument_changes=[InstrumentChange(instrument_id, instrument, returned)],
        record_changes=record_changes,
    )


def find_expired_rentals(view: LedgerView, clock: Optional[int] = None) -> List[TransactionRecord]:
    """Active rental records whose expiry is strictly before clock (default: now)."""
    now = view.current_clock if clock is None else clock
    return [
        record for record in view.list_transactions(
            tx_type=TransactionType.RENTAL, status=TransactionStatus.ACTIVE,
        )
        if record.expiry < now
    ]


def compute_mark_overdue_rentals(view: LedgerView, caller: str) -> PendingTransition:
    """
    Flag every expired active rental record as overdue.

    Callable by the contract owner or by the periodic system trigger.

    Returns:
        PendingTransition whose result is the number of records flagged
        (an empty transition with result 0 when nothing has expired).

    Raises:
        OwnerOnly: If caller is neither the owner nor SYSTEM_PRINCIPAL.
    """
    if caller != view.owner and caller != SYSTEM_PRINCIPAL:
        raise OwnerOnly(f"{caller} cannot run the overdue sweep")

    expired = find_expired_rentals(view)
    if not expired:
        return empty_transition(view, caller, FN_MARK_OVERDUE_RENTALS, result=0)

    record_changes = [
        RecordChange(record.tx_id, record, replace(record, status=TransactionStatus.OVERDUE))
        for record in expired
    ]
    return build_transition(
        view, caller, FN_MARK_OVERDUE_RENTALS,
        result=len(record_changes),
        record_changes=record_changes,
    )


# =============================================================================
# QUERIES
# =============================================================================

def is_rental_active(view: LedgerView, instrument_id: int, clock: Optional[int] = None) -> bool:
    """True if the instrument is rented and its rental has not expired at clock (default: now)."""
    instrument = view.get_instrument(instrument_id)
    if instrument is None or instrument.status != InstrumentStatus.RENTED:
        return False
    now = view.current_clock if clock is None else clock
    return instrument.rental_expiry >= now


def get_rental_cost(view: LedgerView, instrument_id: int, days: int) -> Optional[int]:
    """Cost of renting instrument_id for days, or None if the id is not registered."""
    instrument = view.get_instrument(instrument_id)
    if instrument is None:
        return None
    return compute_rental_cost(instrument.daily_rental_fee, days)
