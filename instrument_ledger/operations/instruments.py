"""
instruments.py - Instrument Catalogue Transitions

1. compute_register_instrument() - Owner adds an instrument to the catalogue
2. compute_update_instrument_status() - Owner toggles available <-> maintenance
3. is_instrument_available() - Read-only availability check

Registration and status changes are owner-only. Rental and sale status moves
belong to rentals.py and payments.py; the owner cannot set them directly.
"""

from __future__ import annotations
from dataclasses import replace
from typing import Any

from ..core import (
    LedgerView, PendingTransition, Instrument, InstrumentChange, InstrumentStatus,
    FN_REGISTER_INSTRUMENT, FN_UPDATE_INSTRUMENT_STATUS,
    OwnerOnly, InvalidInstrument, InstrumentUnavailable, InvalidStatus,
    build_transition, empty_transition,
)


# Statuses the owner may move an instrument between.
OWNER_SETTABLE_STATUSES = frozenset({InstrumentStatus.AVAILABLE, InstrumentStatus.MAINTENANCE})


def compute_register_instrument(
    view: LedgerView,
    caller: str,
    name: str,
    category: str,
    daily_rental_fee: int,
    purchase_price: int,
) -> PendingTransition:
    """
    Register a new instrument under the next instrument id.

    Args:
        view: Read-only ledger access
        caller: Authenticated principal
        name: Display name
        category: Short ASCII category
        daily_rental_fee: Fee per rental day
        purchase_price: Outright purchase price

    Returns:
        PendingTransition creating the instrument; its result is the new id.

    Raises:
        OwnerOnly: If caller is not the contract owner.

    Example:
        pending = compute_register_instrument(ledger, "owner", "Yamaha Clarinet", "Woodwind", 10, 500)
        ledger.execute(pending)   # pending.result == 1 on an empty ledger
    """
    if caller != view.owner:
        raise OwnerOnly(f"{caller} cannot register instruments")

    instrument_id = view.get_next_instrument_id()
    instrument = Instrument(
        instrument_id=instrument_id,
        name=name,
        category=category,
        daily_rental_fee=daily_rental_fee,
        purchase_price=purchase_price,
    )
    return build_transition(
        view, caller, FN_REGISTER_INSTRUMENT,
        result=instrument_id,
        instrument_changes=[InstrumentChange(instrument_id, None, instrument)],
    )


def compute_update_instrument_status(
    view: LedgerView,
    caller: str,
    instrument_id: int,
    status: Any,
) -> PendingTransition:
    """
    Move an instrument between available and maintenance.

    Rented and sold instruments cannot be touched: a rental ends through
    return-instrument, and a sale is final.

    Raises:
        OwnerOnly: If caller is not the contract owner.
        InvalidInstrument: If the id is not registered.
        InstrumentUnavailable: If the instrument is rented or sold.
        InvalidStatus: If status is unknown or is rented/sold.
    """
    if caller != view.owner:
        raise OwnerOnly(f"{caller} cannot update instrument status")

    instrument = view.get_instrument(instrument_id)
    if instrument is None:
        raise InvalidInstrument(f"instrument {instrument_id} not registered")
    if instrument.status not in OWNER_SETTABLE_STATUSES:
        raise InstrumentUnavailable(
            f"instrument {instrument_id} is {instrument.status.value}"
        )

    try:
        target = InstrumentStatus(status)
    except ValueError:
        raise InvalidStatus(f"unknown instrument status {status!r}") from None
    if target not in OWNER_SETTABLE_STATUSES:
        raise InvalidStatus(f"status {target.value} cannot be set directly")

    if target == instrument.status:
        return empty_transition(view, caller, FN_UPDATE_INSTRUMENT_STATUS, result=True)

    updated = replace(instrument, status=target)
    return build_transition(
        view, caller, FN_UPDATE_INSTRUMENT_STATUS,
        result=True,
        instrument_changes=[InstrumentChange(instrument_id, instrument, updated)],
    )


def is_instrument_available(view: LedgerView, instrument_id: int) -> bool:
    """True if the instrument exists and is available."""
    instrument = view.get_instrument(instrument_id)
    return instrument is not None and instrument.status == InstrumentStatus.AVAILABLE
