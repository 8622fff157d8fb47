"""
Core types and pure functions for the instrument rental ledger.

This module provides the foundational data structures and protocols for the ledger:
1. Configuration: LedgerConfig and module-level defaults
2. Protocols: LedgerView for read-only ledger access
3. Immutable data structures: Instrument, TransactionRecord, change records,
   PendingTransition, CommittedTransition
4. Exceptions: LedgerError and one subclass per wire error code
5. Canonicalization and wire encoding for digests, snapshots and receipts

All functions in this module are pure and operate on read-only views.
No function can mutate ledger state directly.
"""

from __future__ import annotations
from dataclasses import dataclass, field, fields
from enum import Enum
import hashlib
from typing import (
    Dict, List, Optional, Any, Protocol, Tuple, FrozenSet, runtime_checkable
)


# ============================================================================
# CONSTANTS
# ============================================================================

# Every balance, price, fee, id and clock value is an unsigned 128-bit integer.
UINT_MAX = 2 ** 128 - 1

# One rental day expressed in logical clock ticks (blocks).
DEFAULT_BLOCKS_PER_DAY = 144

# Upper bound for a single rent or extend call.
DEFAULT_MAX_RENTAL_DAYS = 365

NAME_MAX_LENGTH = 100
CATEGORY_MAX_LENGTH = 50

# Both global counters start here.
FIRST_ID = 1

# Principal used by the periodic trigger (overdue sweep).
SYSTEM_PRINCIPAL = "system"

# Deposits move value without touching an instrument.
DEPOSIT_INSTRUMENT_ID = 0

# Public function names (stable, part of the call interface).
FN_REGISTER_INSTRUMENT = "register-instrument"
FN_UPDATE_INSTRUMENT_STATUS = "update-instrument-status"
FN_DEPOSIT = "deposit"
FN_PURCHASE_INSTRUMENT = "purchase-instrument"
FN_RENT_INSTRUMENT = "rent-instrument"
FN_EXTEND_RENTAL = "extend-rental"
FN_RETURN_INSTRUMENT = "return-instrument"
FN_PROCESS_REFUND = "process-refund"
FN_MARK_OVERDUE_RENTALS = "mark-overdue-rentals"


# ============================================================================
# CONFIGURATION
# ============================================================================

@dataclass(frozen=True, slots=True)
class LedgerConfig:
    """
    Immutable ledger terms fixed at engine start.

    Attributes:
        blocks_per_day: Clock ticks per rental day (the rental period length).
        max_rental_days: Maximum days accepted by a single rent or extend call.
    """
    blocks_per_day: int = DEFAULT_BLOCKS_PER_DAY
    max_rental_days: int = DEFAULT_MAX_RENTAL_DAYS

    def __post_init__(self):
        if not isinstance(self.blocks_per_day, int) or self.blocks_per_day <= 0:
            raise ValueError(f"blocks_per_day must be a positive int, got {self.blocks_per_day!r}")
        if not isinstance(self.max_rental_days, int) or self.max_rental_days <= 0:
            raise ValueError(f"max_rental_days must be a positive int, got {self.max_rental_days!r}")


# ============================================================================
# ENUMS
# ============================================================================

class InstrumentStatus(str, Enum):
    """Lifecycle status of a catalogued instrument."""
    AVAILABLE = "available"       # Can be rented or purchased
    RENTED = "rented"             # Held by a renter until return
    MAINTENANCE = "maintenance"   # Withdrawn by the contract owner
    SOLD = "sold"                 # Terminal, owned by the buyer


class TransactionType(str, Enum):
    """Kind of value movement a transaction record describes."""
    RENTAL = "rental"
    PURCHASE = "purchase"
    DEPOSIT = "deposit"
    REFUND = "refund"


class TransactionStatus(str, Enum):
    """Status of a transaction record. Transitions are one-way."""
    ACTIVE = "active"
    COMPLETED = "completed"
    REFUNDED = "refunded"
    OVERDUE = "overdue"


# Allowed status moves for transaction records. No record returns to ACTIVE.
RECORD_TRANSITIONS: Dict[TransactionStatus, FrozenSet[TransactionStatus]] = {
    TransactionStatus.ACTIVE: frozenset({
        TransactionStatus.COMPLETED,
        TransactionStatus.OVERDUE,
        TransactionStatus.REFUNDED,
    }),
    TransactionStatus.OVERDUE: frozenset({TransactionStatus.REFUNDED}),
    TransactionStatus.COMPLETED: frozenset(),
    TransactionStatus.REFUNDED: frozenset(),
}

REFUNDABLE_STATUSES = frozenset({TransactionStatus.ACTIVE, TransactionStatus.OVERDUE})


# ============================================================================
# EXCEPTIONS
# ============================================================================

class LedgerError(Exception):
    """
    Base exception for all ledger-related errors.

    Each subclass carries a stable wire code and name. Transition functions
    raise these; the dispatcher turns them into failed receipts.
    """
    code: int = 0
    error_name: str = "err-ledger"

    def as_dict(self) -> Dict[str, Any]:
        return {"error-code": self.code, "error-name": self.error_name}


class OwnerOnly(LedgerError):
    """Raised when a restricted transition is called by someone other than the contract owner."""
    code = 100
    error_name = "err-owner-only"


class InsufficientBalance(LedgerError):
    """Raised when a debit would take a principal's balance below zero."""
    code = 101
    error_name = "err-insufficient-balance"


class InvalidAmount(LedgerError):
    """Raised when a deposit amount is zero or would overflow the balance."""
    code = 102
    error_name = "err-invalid-amount"


class InvalidTransaction(LedgerError):
    """Raised when a transaction id is unknown or the record cannot be refunded."""
    code = 103
    error_name = "err-invalid-transaction"


class InvalidStatus(LedgerError):
    """Raised when an instrument status value is unknown or not settable by the owner."""
    code = 104
    error_name = "err-invalid-status"


class Unauthorized(LedgerError):
    """Raised when a rental operation is called by someone other than the current renter."""
    code = 105
    error_name = "err-unauthorized"


class InvalidInstrument(LedgerError):
    """Raised when an instrument id is not registered."""
    code = 106
    error_name = "err-invalid-instrument"


class InstrumentUnavailable(LedgerError):
    """Raised when an instrument is not in a status that allows the operation."""
    code = 107
    error_name = "err-instrument-unavailable"


class InvalidRentalPeriod(LedgerError):
    """Raised when a rental or extension length is outside 1..max_rental_days."""
    code = 108
    error_name = "err-invalid-rental-period"


class UnknownFunction(LedgerError):
    """Raised when the dispatcher receives a function name it does not route."""
    code = 109
    error_name = "err-invalid-instrument-class"


class InvalidArguments(LedgerError):
    """Raised when call arguments do not match the function's signature."""
    code = 110
    error_name = "err-invalid-arguments"


class InvariantViolation(LedgerError):
    """Raised when the store refuses to commit a transition that would break an invariant."""
    code = 111
    error_name = "err-invariant-violation"


ERRORS_BY_CODE: Dict[int, type] = {
    cls.code: cls for cls in (
        OwnerOnly, InsufficientBalance, InvalidAmount, InvalidTransaction,
        InvalidStatus, Unauthorized, InvalidInstrument, InstrumentUnavailable,
        InvalidRentalPeriod, UnknownFunction, InvalidArguments, InvariantViolation,
    )
}


# ============================================================================
# ENTITIES
# ============================================================================

def is_uint(value: Any) -> bool:
    """True for ints (not bools) inside the unsigned 128-bit range."""
    return isinstance(value, int) and not isinstance(value, bool) and 0 <= value <= UINT_MAX


def _check_uint(value: Any, name: str) -> None:
    if not is_uint(value):
        raise ValueError(f"{name} must be an unsigned integer, got {value!r}")


def _check_optional_principal(value: Optional[str], name: str) -> None:
    if value is not None and (not isinstance(value, str) or not value.strip()):
        raise ValueError(f"{name} must be a non-empty principal or None, got {value!r}")


@dataclass(frozen=True, slots=True)
class Instrument:
    """
    A catalogued instrument available for rental or purchase.

    Attributes:
        instrument_id: Sequential id assigned from the next-instrument-id counter.
        name: Display name (UTF-8 text).
        category: Short ASCII category (e.g., "Woodwind").
        daily_rental_fee: Fee charged per rental day.
        purchase_price: Price to buy the instrument outright.
        status: Current InstrumentStatus.
        owner: Buyer, present only once sold.
        renter: Current renter, present only while rented.
        rental_expiry: Clock value the rental runs until, present only while rented.

    Invariants (checked in __post_init__):
        renter and rental_expiry are both present or both absent;
        status == RENTED exactly when renter is present;
        status == SOLD exactly when owner is present.
    """
    instrument_id: int
    name: str
    category: str
    daily_rental_fee: int
    purchase_price: int
    status: InstrumentStatus = InstrumentStatus.AVAILABLE
    owner: Optional[str] = None
    renter: Optional[str] = None
    rental_expiry: Optional[int] = None

    def __post_init__(self):
        # Accept the wire string form ("available") as well as the enum.
        object.__setattr__(self, 'status', InstrumentStatus(self.status))
        _check_uint(self.instrument_id, "instrument_id")
        _check_uint(self.daily_rental_fee, "daily_rental_fee")
        _check_uint(self.purchase_price, "purchase_price")
        if not isinstance(self.name, str) or not self.name:
            raise ValueError("Instrument name cannot be empty")
        if not isinstance(self.category, str) or not self.category:
            raise ValueError("Instrument category cannot be empty")
        _check_optional_principal(self.owner, "owner")
        _check_optional_principal(self.renter, "renter")
        if self.rental_expiry is not None:
            _check_uint(self.rental_expiry, "rental_expiry")
        if (self.renter is None) != (self.rental_expiry is None):
            raise ValueError("renter and rental_expiry must be set together")
        if (self.status == InstrumentStatus.RENTED) != (self.renter is not None):
            raise ValueError(f"status {self.status.value} inconsistent with renter {self.renter!r}")
        if (self.status == InstrumentStatus.SOLD) != (self.owner is not None):
            raise ValueError(f"status {self.status.value} inconsistent with owner {self.owner!r}")

    def to_wire(self) -> Dict[str, Any]:
        return {
            'name': self.name,
            'category': self.category,
            'daily-rental-fee': self.daily_rental_fee,
            'purchase-price': self.purchase_price,
            'status': self.status.value,
            'owner': self.owner,
            'renter': self.renter,
            'rental-expiry': self.rental_expiry,
        }

    @classmethod
    def from_wire(cls, instrument_id: int, data: Dict[str, Any]) -> Instrument:
        return cls(
            instrument_id=instrument_id,
            name=data['name'],
            category=data['category'],
            daily_rental_fee=data['daily-rental-fee'],
            purchase_price=data['purchase-price'],
            status=data['status'],
            owner=data.get('owner'),
            renter=data.get('renter'),
            rental_expiry=data.get('rental-expiry'),
        )


@dataclass(frozen=True, slots=True)
class TransactionRecord:
    """
    Record of a value-moving transition.

    Attributes:
        tx_id: Sequential id assigned from the next-tx-id counter.
        user: Principal whose balance moved.
        instrument_id: Instrument involved (DEPOSIT_INSTRUMENT_ID for deposits).
        amount: Value moved.
        tx_type: TransactionType.
        status: TransactionStatus.
        rental_period_days: Days paid for, rentals only.
        timestamp: Clock value at creation.
        expiry: Clock value the rental runs until, rentals only.

    The store additionally checks expiry == timestamp + rental_period_days * blocks_per_day.
    """
    tx_id: int
    user: str
    instrument_id: int
    amount: int
    tx_type: TransactionType
    status: TransactionStatus
    timestamp: int
    rental_period_days: Optional[int] = None
    expiry: Optional[int] = None

    def __post_init__(self):
        object.__setattr__(self, 'tx_type', TransactionType(self.tx_type))
        object.__setattr__(self, 'status', TransactionStatus(self.status))
        _check_uint(self.tx_id, "tx_id")
        _check_uint(self.instrument_id, "instrument_id")
        _check_uint(self.amount, "amount")
        _check_uint(self.timestamp, "timestamp")
        if not isinstance(self.user, str) or not self.user.strip():
            raise ValueError("TransactionRecord user cannot be empty")
        is_rental = self.tx_type == TransactionType.RENTAL
        if is_rental != (self.rental_period_days is not None):
            raise ValueError("rental_period_days is present exactly for rental records")
        if is_rental != (self.expiry is not None):
            raise ValueError("expiry is present exactly for rental records")
        if is_rental:
            _check_uint(self.rental_period_days, "rental_period_days")
            _check_uint(self.expiry, "expiry")

    def to_wire(self) -> Dict[str, Any]:
        return {
            'user': self.user,
            'instrument-id': self.instrument_id,
            'amount': self.amount,
            'type': self.tx_type.value,
            'status': self.status.value,
            'rental-period-days': self.rental_period_days,
            'timestamp': self.timestamp,
            'expiry': self.expiry,
        }

    @classmethod
    def from_wire(cls, tx_id: int, data: Dict[str, Any]) -> TransactionRecord:
        return cls(
            tx_id=tx_id,
            user=data['user'],
            instrument_id=data['instrument-id'],
            amount=data['amount'],
            tx_type=data['type'],
            status=data['status'],
            timestamp=data['timestamp'],
            rental_period_days=data.get('rental-period-days'),
            expiry=data.get('expiry'),
        )


# ============================================================================
# CHANGE RECORDS
# ============================================================================

def _changed_fields(old: Any, new: Any) -> Dict[str, Tuple[Any, Any]]:
    """Fields that differ between two entities of the same type (old may be None)."""
    changes = {}
    for f in fields(new):
        old_val = getattr(old, f.name) if old is not None else None
        new_val = getattr(new, f.name)
        if old_val != new_val:
            changes[f.name] = (old_val, new_val)
    return changes


@dataclass(frozen=True, slots=True)
class BalanceChange:
    """
    Before/after record of one principal's balance.

    The old value lets the store reject stale transitions and lets
    clone_at() unwind committed ones.
    """
    principal: str
    old_balance: int
    new_balance: int

    def __post_init__(self):
        if not self.principal or not self.principal.strip():
            raise ValueError("BalanceChange principal cannot be empty")

    @property
    def delta(self) -> int:
        return self.new_balance - self.old_balance


@dataclass(frozen=True, slots=True)
class InstrumentChange:
    """Before/after record of an instrument. old is None when the instrument is created."""
    instrument_id: int
    old: Optional[Instrument]
    new: Instrument

    def changed_fields(self) -> Dict[str, Tuple[Any, Any]]:
        return _changed_fields(self.old, self.new)


@dataclass(frozen=True, slots=True)
class RecordChange:
    """Before/after record of a transaction record. old is None when the record is created."""
    tx_id: int
    old: Optional[TransactionRecord]
    new: TransactionRecord

    def changed_fields(self) -> Dict[str, Tuple[Any, Any]]:
        return _changed_fields(self.old, self.new)


# ============================================================================
# CANONICALIZATION
# ============================================================================

def _canonicalize(value: Any) -> str:
    """
    Produce a canonical string representation of a value for hashing.

    Deterministic regardless of dict insertion order, so two ledgers that went
    through the same calls produce the same digest.
    """
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, Enum):
        return f"E:{value.value}"
    if isinstance(value, int):
        return f"N:{value}"
    if isinstance(value, str):
        return f"S:{value}"
    if isinstance(value, (Instrument, TransactionRecord)):
        return _canonicalize(value.to_wire())
    if isinstance(value, dict):
        items = sorted(value.items(), key=lambda kv: str(kv[0]))
        serialized = ",".join(f"{_canonicalize(k)}:{_canonicalize(v)}" for k, v in items)
        return f"{{{serialized}}}"
    if isinstance(value, (list, tuple)):
        serialized = ",".join(_canonicalize(item) for item in value)
        return f"[{serialized}]"
    return f"R:{repr(value)}"


def _compute_intent_id(
    function: str,
    caller: str,
    clock: int,
    balance_changes: Tuple[BalanceChange, ...],
    instrument_changes: Tuple[InstrumentChange, ...],
    record_changes: Tuple[RecordChange, ...],
) -> str:
    """
    Content hash of a transition's intent.

    Identical calls against identical state hash the same, which is what makes
    the transition log comparable across replicas. The hash is not used for
    deduplication: two equal deposits at the same clock are both applied.
    """
    content_parts = [f"call:{function}|{caller}|{clock}"]
    for bc in sorted(balance_changes, key=lambda b: b.principal):
        content_parts.append(f"balance:{bc.principal}|{bc.old_balance}|{bc.new_balance}")
    for ic in sorted(instrument_changes, key=lambda c: c.instrument_id):
        content_parts.append(
            f"instrument:{ic.instrument_id}|{_canonicalize(ic.old)}|{_canonicalize(ic.new)}"
        )
    for rc in sorted(record_changes, key=lambda c: c.tx_id):
        content_parts.append(f"record:{rc.tx_id}|{_canonicalize(rc.old)}|{_canonicalize(rc.new)}")
    content = "|".join(content_parts)
    return hashlib.sha256(content.encode()).hexdigest()[:16]


def to_wire(value: Any) -> Any:
    """Encode a receipt or query value in the call interface's typed-value form."""
    if isinstance(value, (Instrument, TransactionRecord)):
        return value.to_wire()
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (list, tuple)):
        return [to_wire(v) for v in value]
    return value


# ============================================================================
# PROTOCOLS
# ============================================================================

@runtime_checkable
class LedgerView(Protocol):
    """
    Read-only interface to ledger state.

    Transition functions accept a LedgerView and return a PendingTransition;
    they have no way to mutate state. The Ledger implements this protocol and
    also provides execute(). For testing, FakeView provides an immutable
    implementation.
    """

    @property
    def current_clock(self) -> int:
        """Return the current logical clock (block height)."""
        ...

    @property
    def owner(self) -> str:
        """Return the contract owner principal."""
        ...

    @property
    def config(self) -> LedgerConfig:
        """Return the ledger terms (period length, rental bounds)."""
        ...

    def get_balance(self, principal: str) -> int:
        """Return a principal's balance (0 if never credited)."""
        ...

    def get_instrument(self, instrument_id: int) -> Optional[Instrument]:
        """Return the instrument, or None if the id is not registered."""
        ...

    def get_transaction(self, tx_id: int) -> Optional[TransactionRecord]:
        """Return the transaction record, or None if the id is unknown."""
        ...

    def get_next_instrument_id(self) -> int:
        """Return the id the next registered instrument will receive."""
        ...

    def get_next_tx_id(self) -> int:
        """Return the id the next transaction record will receive."""
        ...

    def list_transactions(
        self,
        tx_type: Optional[TransactionType] = None,
        status: Optional[TransactionStatus] = None,
    ) -> List[TransactionRecord]:
        """Return records in id order, optionally filtered by type and status."""
        ...

    def find_rental_record(self, instrument_id: int, renter: str) -> Optional[TransactionRecord]:
        """Return the newest rental record for an instrument and renter."""
        ...


# ============================================================================
# TRANSITIONS
# ============================================================================

@dataclass(frozen=True, slots=True)
class PendingTransition:
    """
    A state transition before execution - represents INTENT.

    Created by transition functions and submitted to Ledger.execute(), which
    validates every change against the store's invariants and commits all of
    them or none.

    Attributes:
        function: Public function name that produced the transition.
        caller: Authenticated principal that made the call.
        clock: Logical clock the transition was computed at.
        balance_changes: Balance writes (old/new per principal).
        instrument_changes: Instrument writes (old is None for creation).
        record_changes: Transaction record writes (old is None for creation).
        result: Receipt value returned to the caller on success.
        intent_id: Content hash of the above (auto-computed).
    """
    function: str
    caller: str
    clock: int
    balance_changes: Tuple[BalanceChange, ...] = ()
    instrument_changes: Tuple[InstrumentChange, ...] = ()
    record_changes: Tuple[RecordChange, ...] = ()
    result: Any = None
    intent_id: str = field(default="")

    def __post_init__(self):
        if not self.intent_id:
            computed_id = _compute_intent_id(
                self.function, self.caller, self.clock,
                self.balance_changes, self.instrument_changes, self.record_changes,
            )
            object.__setattr__(self, 'intent_id', computed_id)

    def is_empty(self) -> bool:
        """Return True if this transition writes nothing."""
        return not self.balance_changes and not self.instrument_changes and not self.record_changes

    def __repr__(self) -> str:
        return (
            f"PendingTransition({self.function} by {self.caller} @ {self.clock}: "
            f"{len(self.balance_changes)} balances, {len(self.instrument_changes)} instruments, "
            f"{len(self.record_changes)} records)"
        )


def build_transition(
    view: LedgerView,
    caller: str,
    function: str,
    result: Any = None,
    balance_changes: Optional[List[BalanceChange]] = None,
    instrument_changes: Optional[List[InstrumentChange]] = None,
    record_changes: Optional[List[RecordChange]] = None,
) -> PendingTransition:
    """
    Build a PendingTransition stamped with the view's current clock.

    This is the standard way for transition functions to return their effects.

    Example:
        def compute_deposit(view, caller, amount):
            old = view.get_balance(caller)
            change = BalanceChange(caller, old, old + amount)
            return build_transition(view, caller, "deposit", result=True,
                                    balance_changes=[change])
    """
    return PendingTransition(
        function=function,
        caller=caller,
        clock=view.current_clock,
        balance_changes=tuple(balance_changes or ()),
        instrument_changes=tuple(instrument_changes or ()),
        record_changes=tuple(record_changes or ()),
        result=result,
    )


def empty_transition(view: LedgerView, caller: str, function: str, result: Any = None) -> PendingTransition:
    """Create a PendingTransition that writes nothing but still carries a receipt value."""
    return PendingTransition(function=function, caller=caller, clock=view.current_clock, result=result)


def debit(view: LedgerView, principal: str, amount: int) -> BalanceChange:
    """
    Balance change removing amount from principal.

    Raises:
        InsufficientBalance: If the balance is lower than amount.
    """
    balance = view.get_balance(principal)
    if balance < amount:
        raise InsufficientBalance(f"{principal} has {balance}, needs {amount}")
    return BalanceChange(principal, balance, balance - amount)


def credit(view: LedgerView, principal: str, amount: int) -> BalanceChange:
    """Balance change adding amount to principal."""
    balance = view.get_balance(principal)
    return BalanceChange(principal, balance, balance + amount)


@dataclass(frozen=True, slots=True)
class CommittedTransition:
    """
    An executed, immutable record of ledger state changes - represents FACT.

    Created by the ledger when executing a PendingTransition.

    Attributes:
        function, caller, clock, balance_changes, instrument_changes,
        record_changes, result, intent_id: copied from the PendingTransition.
        exec_id: Unique execution identifier (ledger + sequence + clock).
        ledger_name: Name of the ledger that executed this.
        sequence_number: Monotonic sequence within the ledger.
    """
    function: str
    caller: str
    clock: int
    balance_changes: Tuple[BalanceChange, ...]
    instrument_changes: Tuple[InstrumentChange, ...]
    record_changes: Tuple[RecordChange, ...]
    result: Any
    intent_id: str
    exec_id: str
    ledger_name: str
    sequence_number: int

    def __post_init__(self):
        if not self.balance_changes and not self.instrument_changes and not self.record_changes:
            raise ValueError("CommittedTransition must change at least one entry")

    def __repr__(self) -> str:
        w = 100

        def pad(text: str) -> str:
            if len(text) > w:
                return text[:w-3] + "..."
            return text + " " * (w - len(text))

        bar = "─" * w
        lines = [
            "",
            f"┌{bar}┐",
            f"│{pad(' Transition: ' + self.exec_id)}│",
            f"├{bar}┤",
            f"│{pad('   function  : ' + self.function)}│",
            f"│{pad('   caller    : ' + self.caller)}│",
            f"│{pad('   clock     : ' + str(self.clock))}│",
            f"│{pad('   intent_id : ' + self.intent_id)}│",
            f"│{pad('   result    : ' + repr(self.result))}│",
        ]
        if self.balance_changes:
            lines.append(f"├{bar}┤")
            lines.append(f"│{pad(' Balances (' + str(len(self.balance_changes)) + '):')}│")
            for bc in self.balance_changes:
                lines.append(f"│{pad(f'   {bc.principal}: {bc.old_balance} → {bc.new_balance}')}│")
        for label, changes, key in (
            ("Instruments", self.instrument_changes, "instrument_id"),
            ("Records", self.record_changes, "tx_id"),
        ):
            if not changes:
                continue
            lines.append(f"├{bar}┤")
            lines.append(f"│{pad(' ' + label + ' (' + str(len(changes)) + '):')}│")
            for change in changes:
                marker = " (new)" if change.old is None else ""
                lines.append(f"│{pad('   [' + str(getattr(change, key)) + ']' + marker)}│")
                for field_name, (old_val, new_val) in change.changed_fields().items():
                    lines.append(f"│{pad(f'      {field_name}: {old_val!r} → {new_val!r}')}│")
        lines.append(f"└{bar}┘")
        return "\n".join(lines)
