"""
dispatcher.py - Call Routing, Argument Decoding and Receipts

The Dispatcher is the single entry point for callers. Every call:

    Call(caller, function, args, clock)
        -> advance ledger clock
        -> look up handler            (err-invalid-instrument-class if unknown)
        -> decode arguments           (err-invalid-arguments on mismatch)
        -> compute_*(ledger, caller, *args)  -> PendingTransition
        -> ledger.execute(pending)
        -> Receipt

Read-only queries go through query() and never reach execute().

SYSTEM_PRINCIPAL is reserved: calls submitted under that name are rejected
with err-unauthorized. Only system_call(), used by the periodic trigger, can
issue the functions in SYSTEM_FUNCTIONS on its behalf.

Calls are serialized under one lock and recorded in call_log, so replay()
can rebuild the same state from the same inputs.
"""

from __future__ import annotations
from dataclasses import dataclass
import threading
from typing import Any, Callable, Dict, List, Optional, Set, Tuple

from .core import (
    LedgerError, UnknownFunction, InvalidArguments, Unauthorized,
    SYSTEM_PRINCIPAL,
    NAME_MAX_LENGTH, CATEGORY_MAX_LENGTH,
    FN_REGISTER_INSTRUMENT, FN_UPDATE_INSTRUMENT_STATUS, FN_DEPOSIT,
    FN_PURCHASE_INSTRUMENT, FN_RENT_INSTRUMENT, FN_EXTEND_RENTAL,
    FN_RETURN_INSTRUMENT, FN_PROCESS_REFUND, FN_MARK_OVERDUE_RENTALS,
    is_uint, to_wire,
)
from .ledger import Ledger
from .operations import (
    compute_register_instrument, compute_update_instrument_status,
    compute_deposit, compute_purchase_instrument, compute_process_refund,
    compute_rent_instrument, compute_extend_rental, compute_return_instrument,
    compute_mark_overdue_rentals,
    is_instrument_available, is_rental_active, get_rental_cost,
)


STATUS_MAX_LENGTH = 20


# ============================================================================
# CALLS AND RECEIPTS
# ============================================================================

@dataclass(frozen=True, slots=True)
class Call:
    """
    One externally submitted call, as delivered by the ordering layer.

    Attributes:
        caller: Authenticated principal.
        function: Public function name (e.g. "rent-instrument").
        args: Positional arguments in wire form.
        clock: Logical clock (block height) the call is delivered at.
    """
    caller: str
    function: str
    args: Tuple[Any, ...] = ()
    clock: int = 0

    def __post_init__(self):
        object.__setattr__(self, 'args', tuple(self.args))
        if not isinstance(self.caller, str) or not self.caller.strip():
            raise ValueError("Call caller cannot be empty")
        if not is_uint(self.clock):
            raise ValueError(f"Call clock must be an unsigned integer, got {self.clock!r}")


@dataclass(frozen=True, slots=True)
class Receipt:
    """
    Result of a call: a value on success, an error code and name on failure.

    sequence_number points at the committed transition in the ledger's log;
    it is None for failures, queries and calls that wrote nothing.
    """
    success: bool
    value: Any = None
    error_code: Optional[int] = None
    error_name: Optional[str] = None
    sequence_number: Optional[int] = None

    @classmethod
    def ok(cls, value: Any, sequence_number: Optional[int] = None) -> Receipt:
        return cls(success=True, value=value, sequence_number=sequence_number)

    @classmethod
    def failure(cls, error: LedgerError) -> Receipt:
        return cls(success=False, error_code=error.code, error_name=error.error_name)

    def as_dict(self) -> Dict[str, Any]:
        if self.success:
            return {"success": True, "value": to_wire(self.value)}
        return {"success": False, "error-code": self.error_code, "error-name": self.error_name}


# ============================================================================
# ARGUMENT DECODERS
# ============================================================================

Decoder = Callable[[Any], Any]


def _uint(value: Any) -> int:
    if not is_uint(value):
        raise InvalidArguments(f"expected an unsigned integer, got {value!r}")
    return value


def _principal(value: Any) -> str:
    if not isinstance(value, str) or not value.strip():
        raise InvalidArguments(f"expected a principal, got {value!r}")
    return value


def _text(max_length: int, ascii_only: bool) -> Decoder:
    kind = "ascii" if ascii_only else "utf8"

    def decode(value: Any) -> str:
        if not isinstance(value, str):
            raise InvalidArguments(f"expected {kind} text, got {value!r}")
        if not 1 <= len(value) <= max_length:
            raise InvalidArguments(f"{kind} text must be 1..{max_length} characters, got {len(value)}")
        if ascii_only and not value.isascii():
            raise InvalidArguments(f"expected ascii text, got {value!r}")
        return value

    return decode


_name = _text(NAME_MAX_LENGTH, ascii_only=False)
_category = _text(CATEGORY_MAX_LENGTH, ascii_only=True)
_status = _text(STATUS_MAX_LENGTH, ascii_only=True)


def decode_args(function: str, decoders: Tuple[Decoder, ...], args: Tuple[Any, ...]) -> Tuple[Any, ...]:
    """
    Check arity and decode each argument.

    Raises:
        InvalidArguments: On wrong arity or a value of the wrong kind.
    """
    if len(args) != len(decoders):
        raise InvalidArguments(f"{function} takes {len(decoders)} arguments, got {len(args)}")
    return tuple(decode(arg) for decode, arg in zip(decoders, args))


# ============================================================================
# HANDLER TABLES
# ============================================================================

# function name -> (transition function, argument decoders)
TRANSITIONS: Dict[str, Tuple[Callable[..., Any], Tuple[Decoder, ...]]] = {
    FN_REGISTER_INSTRUMENT: (compute_register_instrument, (_name, _category, _uint, _uint)),
    FN_UPDATE_INSTRUMENT_STATUS: (compute_update_instrument_status, (_uint, _status)),
    FN_DEPOSIT: (compute_deposit, (_uint,)),
    FN_PURCHASE_INSTRUMENT: (compute_purchase_instrument, (_uint,)),
    FN_RENT_INSTRUMENT: (compute_rent_instrument, (_uint, _uint)),
    FN_EXTEND_RENTAL: (compute_extend_rental, (_uint, _uint)),
    FN_RETURN_INSTRUMENT: (compute_return_instrument, (_uint,)),
    FN_PROCESS_REFUND: (compute_process_refund, (_uint,)),
    FN_MARK_OVERDUE_RENTALS: (compute_mark_overdue_rentals, ()),
}

# Functions system_call() may issue as SYSTEM_PRINCIPAL.
SYSTEM_FUNCTIONS = frozenset({FN_MARK_OVERDUE_RENTALS})

# Query handlers receive (view, clock, *args).
QUERIES: Dict[str, Tuple[Callable[..., Any], Tuple[Decoder, ...]]] = {
    "get-balance": (lambda view, clock, principal: view.get_balance(principal), (_principal,)),
    "get-instrument": (lambda view, clock, i: view.get_instrument(i), (_uint,)),
    "get-transaction": (lambda view, clock, t: view.get_transaction(t), (_uint,)),
    "get-next-tx-id": (lambda view, clock: view.get_next_tx_id(), ()),
    "get-next-instrument-id": (lambda view, clock: view.get_next_instrument_id(), ()),
    "get-contract-owner": (lambda view, clock: view.owner, ()),
    "is-instrument-available": (lambda view, clock, i: is_instrument_available(view, i), (_uint,)),
    "is-rental-active": (lambda view, clock, i: is_rental_active(view, i, clock), (_uint,)),
    "get-rental-cost": (lambda view, clock, i, days: get_rental_cost(view, i, days), (_uint, _uint)),
}


# ============================================================================
# DISPATCHER
# ============================================================================

class Dispatcher:
    """
    Routes calls to transition functions and turns their outcome into receipts.

    Only LedgerError is converted into a failed receipt. Anything else (a
    clock regression, a malformed entity) is a bug in the caller or the
    code and propagates.

    Example:
        ledger = Ledger("main", owner="owner", verbose=False)
        dispatcher = Dispatcher(ledger)
        dispatcher.submit("alice", "deposit", 500, clock=1000)
        receipt = dispatcher.submit("alice", "rent-instrument", 1, 7)
        receipt.as_dict()   # {"success": False, "error-code": 106, ...}
    """

    def __init__(self, ledger: Ledger, verbose: Optional[bool] = None):
        """
        Args:
            ledger: The store every call is executed against
            verbose: Print failed calls (default: ledger.verbose)
        """
        self.ledger = ledger
        self.verbose = ledger.verbose if verbose is None else verbose
        self.call_log: List[Call] = []
        self._initial_clock = ledger.current_clock
        # Indices into call_log issued through system_call()
        self._system_calls: Set[int] = set()
        self._lock = threading.RLock()

    def call(self, call: Call) -> Receipt:
        """
        Execute one call.

        The ledger clock is advanced to call.clock before the call is logged,
        so a regressing call raises ValueError and is not recorded.

        Returns:
            Receipt with the transition's value, or the error code and name
            of the first failed check. A call made as SYSTEM_PRINCIPAL fails
            with err-unauthorized.

        Raises:
            ValueError: If call.clock is before the ledger clock.
        """
        with self._lock:
            self.ledger.advance_clock(call.clock)
            self.call_log.append(call)
            return self._dispatch(call, system=False)

    def system_call(self, function: str, clock: Optional[int] = None) -> Receipt:
        """
        Issue function as SYSTEM_PRINCIPAL at clock (default: the ledger clock).

        Only functions in SYSTEM_FUNCTIONS can be issued; anything else fails
        with err-unauthorized.
        """
        with self._lock:
            at = self.ledger.current_clock if clock is None else clock
            call = Call(SYSTEM_PRINCIPAL, function, (), at)
            self.ledger.advance_clock(call.clock)
            self._system_calls.add(len(self.call_log))
            self.call_log.append(call)
            return self._dispatch(call, system=True)

    def _dispatch(self, call: Call, system: bool) -> Receipt:
        try:
            if system and call.function not in SYSTEM_FUNCTIONS:
                raise Unauthorized(f"{call.function!r} is not a system function")
            if not system and call.caller == SYSTEM_PRINCIPAL:
                raise Unauthorized(f"{SYSTEM_PRINCIPAL!r} is reserved for the periodic trigger")
            entry = TRANSITIONS.get(call.function)
            if entry is None:
                raise UnknownFunction(f"unknown function {call.function!r}")
            handler, decoders = entry
            args = decode_args(call.function, decoders, call.args)
            pending = handler(self.ledger, call.caller, *args)
            committed = self.ledger.execute(pending)
        except LedgerError as e:
            if self.verbose:
                print(f"✗ {call.function} by {call.caller} @ {call.clock}: {e.error_name} ({e.code}) {e}")
            return Receipt.failure(e)

        sequence = committed.sequence_number if committed is not None else None
        return Receipt.ok(pending.result, sequence_number=sequence)

    def submit(self, caller: str, function: str, *args: Any, clock: Optional[int] = None) -> Receipt:
        """Build a Call at clock (default: the ledger clock) and execute it."""
        with self._lock:
            at = self.ledger.current_clock if clock is None else clock
            return self.call(Call(caller, function, args, at))

    def query(self, function: str, *args: Any, clock: Optional[int] = None) -> Receipt:
        """
        Run a read-only query.

        Queries never mutate state and do not advance the clock. clock only
        matters for is-rental-active and defaults to the ledger clock.
        """
        with self._lock:
            at = self.ledger.current_clock if clock is None else clock
            try:
                entry = QUERIES.get(function)
                if entry is None:
                    raise UnknownFunction(f"unknown query {function!r}")
                handler, decoders = entry
                decoded = decode_args(function, decoders, args)
                return Receipt.ok(handler(self.ledger, at, *decoded))
            except LedgerError as e:
                return Receipt.failure(e)

    def advance_clock(self, clock: int) -> None:
        """Advance the ledger clock without issuing a call."""
        with self._lock:
            self.ledger.advance_clock(clock)

    def replay(self) -> Dispatcher:
        """
        Re-run call_log against a fresh ledger with the same owner and config.

        The replayed ledger's state_digest() equals this one's as long as the
        ledger was only ever written through this dispatcher.
        """
        with self._lock:
            fresh = Ledger(
                name=f"{self.ledger.name}_replayed",
                owner=self.ledger.owner,
                config=self.ledger.config,
                initial_clock=self._initial_clock,
                verbose=self.ledger.verbose,
            )
            replayed = Dispatcher(fresh, verbose=self.verbose)
            for index, call in enumerate(self.call_log):
                if index in self._system_calls:
                    replayed.system_call(call.function, clock=call.clock)
                else:
                    replayed.call(call)
            replayed.advance_clock(self.ledger.current_clock)
            return replayed
