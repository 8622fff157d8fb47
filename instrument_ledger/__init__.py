"""
instrument_ledger - Instrument Rental and Purchase Ledger

A deterministic state machine for a catalogue of musical instruments that can
be rented by the day or bought outright, paid from per-principal balances.

Usage:
    from instrument_ledger import Ledger, Dispatcher

    ledger = Ledger("main", owner="owner")
    dispatcher = Dispatcher(ledger)

    dispatcher.submit("owner", "register-instrument", "Yamaha Clarinet", "Woodwind", 10, 500, clock=1000)
    dispatcher.submit("alice", "deposit", 500)

    receipt = dispatcher.submit("alice", "rent-instrument", 1, 7)
    receipt.as_dict()                                  # {"success": True, "value": 2}
    dispatcher.query("get-balance", "alice").value     # 430
"""

# Core types
from .core import (
    LedgerView,
    LedgerConfig,
    Instrument,
    TransactionRecord,
    InstrumentStatus,
    TransactionType,
    TransactionStatus,
    BalanceChange,
    InstrumentChange,
    RecordChange,
    PendingTransition,
    CommittedTransition,
    build_transition,
    empty_transition,
    to_wire,
    LedgerError,
    OwnerOnly,
    InsufficientBalance,
    InvalidAmount,
    InvalidTransaction,
    InvalidStatus,
    Unauthorized,
    InvalidInstrument,
    InstrumentUnavailable,
    InvalidRentalPeriod,
    UnknownFunction,
    InvalidArguments,
    InvariantViolation,
    ERRORS_BY_CODE,
    UINT_MAX,
    DEFAULT_BLOCKS_PER_DAY,
    DEFAULT_MAX_RENTAL_DAYS,
    SYSTEM_PRINCIPAL,
    FN_REGISTER_INSTRUMENT,
    FN_UPDATE_INSTRUMENT_STATUS,
    FN_DEPOSIT,
    FN_PURCHASE_INSTRUMENT,
    FN_RENT_INSTRUMENT,
    FN_EXTEND_RENTAL,
    FN_RETURN_INSTRUMENT,
    FN_PROCESS_REFUND,
    FN_MARK_OVERDUE_RENTALS,
)

# Ledger
from .ledger import Ledger

# Transition functions
from .operations import (
    compute_register_instrument,
    compute_update_instrument_status,
    is_instrument_available,
    compute_deposit,
    compute_purchase_instrument,
    compute_process_refund,
    compute_rental_cost,
    compute_rent_instrument,
    compute_extend_rental,
    compute_return_instrument,
    compute_mark_overdue_rentals,
    is_rental_active,
    get_rental_cost,
)

# Dispatcher and periodic trigger
from .dispatcher import Dispatcher, Call, Receipt
from .lifecycle_engine import LifecycleEngine


__all__ = [
    # Core types
    'LedgerView', 'LedgerConfig', 'Instrument', 'TransactionRecord',
    'InstrumentStatus', 'TransactionType', 'TransactionStatus',
    'BalanceChange', 'InstrumentChange', 'RecordChange',
    'PendingTransition', 'CommittedTransition',
    'build_transition', 'empty_transition', 'to_wire',
    # Errors
    'LedgerError', 'OwnerOnly', 'InsufficientBalance', 'InvalidAmount',
    'InvalidTransaction', 'InvalidStatus', 'Unauthorized', 'InvalidInstrument',
    'InstrumentUnavailable', 'InvalidRentalPeriod', 'UnknownFunction',
    'InvalidArguments', 'InvariantViolation', 'ERRORS_BY_CODE',
    # Constants
    'UINT_MAX', 'DEFAULT_BLOCKS_PER_DAY', 'DEFAULT_MAX_RENTAL_DAYS', 'SYSTEM_PRINCIPAL',
    'FN_REGISTER_INSTRUMENT', 'FN_UPDATE_INSTRUMENT_STATUS', 'FN_DEPOSIT',
    'FN_PURCHASE_INSTRUMENT', 'FN_RENT_INSTRUMENT', 'FN_EXTEND_RENTAL',
    'FN_RETURN_INSTRUMENT', 'FN_PROCESS_REFUND', 'FN_MARK_OVERDUE_RENTALS',
    # Ledger
    'Ledger',
    # Transitions
    'compute_register_instrument', 'compute_update_instrument_status',
    'is_instrument_available', 'compute_deposit', 'compute_purchase_instrument',
    'compute_process_refund', 'compute_rental_cost', 'compute_rent_instrument',
    'compute_extend_rental', 'compute_return_instrument',
    'compute_mark_overdue_rentals', 'is_rental_active', 'get_rental_cost',
    # Dispatch
    'Dispatcher', 'Call', 'Receipt', 'LifecycleEngine',
]

__version__ = '1.0.0'
