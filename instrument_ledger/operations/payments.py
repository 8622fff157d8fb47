"""
payments.py - Balance-Moving Transitions Outside Rentals

This module provides the transitions that move value without a rental period:
1. compute_deposit() - Credit the caller's balance
2. compute_purchase_instrument() - Debit the purchase price and transfer ownership
3. compute_process_refund() - Owner returns the payment of an open rental

Every value movement leaves a TransactionRecord:

    deposit(500)                -> DEPOSIT record, completed
    purchase-instrument(1)      -> PURCHASE record, completed
    process-refund(tx)          -> refunded record flips to REFUNDED
                                   and a REFUND record, completed, is added

All functions take a LedgerView (read-only) and return a PendingTransition.
"""

from __future__ import annotations
from dataclasses import replace

from ..core import (
    LedgerView, PendingTransition, TransactionRecord, RecordChange, InstrumentChange,
    InstrumentStatus, TransactionType, TransactionStatus,
    DEPOSIT_INSTRUMENT_ID, REFUNDABLE_STATUSES, UINT_MAX,
    FN_DEPOSIT, FN_PURCHASE_INSTRUMENT, FN_PROCESS_REFUND,
    OwnerOnly, InvalidAmount, InvalidInstrument, InstrumentUnavailable, InvalidTransaction,
    build_transition, debit, credit,
)


def compute_deposit(view: LedgerView, caller: str, amount: int) -> PendingTransition:
    """
    Credit amount to the caller's balance.

    Returns:
        PendingTransition with the balance credit and a completed deposit
        record; its result is the deposit record's tx id.

    Raises:
        InvalidAmount: If amount is zero or the balance would overflow.
    """
    if amount <= 0:
        raise InvalidAmount(f"deposit amount must be positive, got {amount}")
    change = credit(view, caller, amount)
    if change.new_balance > UINT_MAX:
        raise InvalidAmount(f"deposit of {amount} overflows the balance of {caller}")

    tx_id = view.get_next_tx_id()
    record = TransactionRecord(
        tx_id=tx_id,
        user=caller,
        instrument_id=DEPOSIT_INSTRUMENT_ID,
        amount=amount,
        tx_type=TransactionType.DEPOSIT,
        status=TransactionStatus.COMPLETED,
        timestamp=view.current_clock,
    )
    return build_transition(
        view, caller, FN_DEPOSIT,
        result=tx_id,
        balance_changes=[change],
        record_changes=[RecordChange(tx_id, None, record)],
    )


def compute_purchase_instrument(view: LedgerView, caller: str, instrument_id: int) -> PendingTransition:
    """
    Buy an available instrument at its purchase price.

    The instrument becomes SOLD with owner = caller, which is terminal.

    Returns:
        PendingTransition with the debit, the sold instrument and a completed
        purchase record; its result is the purchase record's tx id.

    Raises:
        InvalidInstrument: If the id is not registered.
        InstrumentUnavailable: If the instrument is not available.
        InsufficientBalance: If the caller cannot cover the price.
    """
    instrument = view.get_instrument(instrument_id)
    if instrument is None:
        raise InvalidInstrument(f"instrument {instrument_id} not registered")
    if instrument.status != InstrumentStatus.AVAILABLE:
        raise InstrumentUnavailable(f"instrument {instrument_id} is {instrument.status.value}")

    price = instrument.purchase_price
    payment = debit(view, caller, price)

    sold = replace(instrument, status=InstrumentStatus.SOLD, owner=caller)
    tx_id = view.get_next_tx_id()
    record = TransactionRecord(
        tx_id=tx_id,
        user=caller,
        instrument_id=instrument_id,
        amount=price,
        tx_type=TransactionType.PURCHASE,
        status=TransactionStatus.COMPLETED,
        timestamp=view.current_clock,
    )
    return build_transition(
        view, caller, FN_PURCHASE_INSTRUMENT,
        result=tx_id,
        balance_changes=[payment],
        instrument_changes=[InstrumentChange(instrument_id, instrument, sold)],
        record_changes=[RecordChange(tx_id, None, record)],
    )


def compute_process_refund(view: LedgerView, caller: str, tx_id: int) -> PendingTransition:
    """
    Refund an active or overdue transaction record to its user.

    The record moves to REFUNDED and the amount is credited back. Instrument
    state is left alone: refunding a rental does not end it.

    Returns:
        PendingTransition with the credit, the refunded record and a new
        completed refund record; its result is the refunded amount.

    Raises:
        OwnerOnly: If caller is not the contract owner.
        InvalidTransaction: If the record is unknown or not refundable.
        InvalidAmount: If the credit would overflow the user's balance.

    Example:
        # Owner refunds tx 2 (an active 5-day rental of 50)
        pending = compute_process_refund(ledger, "owner", 2)
        ledger.execute(pending)
        # renter balance += 50, record 2 status == REFUNDED
    """
    if caller != view.owner:
        raise OwnerOnly(f"{caller} cannot process refunds")

    record = view.get_transaction(tx_id)
    if record is None:
        raise InvalidTransaction(f"transaction {tx_id} not found")
    if record.status not in REFUNDABLE_STATUSES:
        raise InvalidTransaction(f"transaction {tx_id} is {record.status.value}")
    payout = credit(view, record.user, record.amount)
    if payout.new_balance > UINT_MAX:
        raise InvalidAmount(f"refund of {record.amount} overflows the balance of {record.user}")

    refunded = replace(record, status=TransactionStatus.REFUNDED)
    refund_id = view.get_next_tx_id()
    refund_record = TransactionRecord(
        tx_id=refund_id,
        user=record.user,
        instrument_id=record.instrument_id,
        amount=record.amount,
        tx_type=TransactionType.REFUND,
        status=TransactionStatus.COMPLETED,
        timestamp=view.current_clock,
    )
    return build_transition(
        view, caller, FN_PROCESS_REFUND,
        result=record.amount,
        balance_changes=[payout],
        record_changes=[
            RecordChange(tx_id, record, refunded),
            RecordChange(refund_id, None, refund_record),
        ],
    )
