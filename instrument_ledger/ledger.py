"""
ledger.py - Stateful Instrument Rental Ledger

The Ledger class is the central state manager for the instrument rental system.
It is the only module that mutates state, ensuring controlled and auditable changes.

Key responsibilities:
    - Implements LedgerView protocol for safe read-only access by transition functions
    - Executes transitions atomically (every change commits or none does)
    - Holds balances, instruments, transaction records and the two id counters
    - Tracks the logical clock and provides temporal operations (clone_at, replay)
    - Always validates and always logs - no exceptions
"""

from __future__ import annotations
from collections import defaultdict
from typing import Dict, List, Optional, Tuple, Any
import hashlib

from .core import (
    # Types
    Instrument, TransactionRecord, LedgerConfig,
    InstrumentStatus, TransactionType, TransactionStatus,
    PendingTransition, CommittedTransition,
    # Constants
    FIRST_ID, UINT_MAX, RECORD_TRANSITIONS,
    # Exceptions
    LedgerError, InvariantViolation,
    # Helper functions
    _canonicalize,
)


class Ledger:
    """
    Instrument rental ledger with full validation and audit trail.

    Implements the LedgerView protocol, allowing the ledger to be passed to pure
    transition functions that access only read-only methods.

    Design Principles:
        - Always validates: every transition is checked against the balance,
          instrument and record invariants before anything is written.
        - Always logs: every committed transition is recorded in the audit
          trail, enabling clone_at() and replay().

    Thread Safety:
        Not thread-safe. Share a Ledger only through a Dispatcher, which
        serializes calls.

    Example:
        ledger = Ledger("main", owner="owner")
        dispatcher = Dispatcher(ledger)
        dispatcher.submit("owner", "register-instrument", "Yamaha Clarinet", "Woodwind", 10, 500)
    """

    def __init__(
        self,
        name: str,
        owner: str,
        config: Optional[LedgerConfig] = None,
        initial_clock: int = 0,
        verbose: bool = True,
        test_mode: bool = False,
    ):
        """
        Create a ledger.

        Args:
            name: Ledger identifier
            owner: Contract owner principal (authorized for restricted transitions)
            config: Ledger terms (default: LedgerConfig())
            initial_clock: Starting logical clock (default: 0)
            verbose: Enable debug output (default: True)
            test_mode: Enable test mode to allow set_balance() calls (default: False)
        """
        if not owner or not owner.strip():
            raise ValueError("Ledger owner cannot be empty")
        self.name = name
        self._owner = owner
        self._config = config or LedgerConfig()
        self.balances: Dict[str, int] = {}
        self.instruments: Dict[int, Instrument] = {}
        self.transactions: Dict[int, TransactionRecord] = {}
        self.transition_log: List[CommittedTransition] = []
        self._current_clock: int = initial_clock
        self._next_instrument_id: int = FIRST_ID
        self._next_tx_id: int = FIRST_ID
        self.verbose = verbose
        self._test_mode = test_mode
        # Monotonic sequence counter for execution ordering
        self._next_sequence: int = 0
        # Inverted index mapping instrument -> rental record ids, oldest first
        self._rentals_by_instrument: Dict[int, List[int]] = defaultdict(list)

    # ========================================================================
    # LedgerView PROTOCOL IMPLEMENTATION (read-only methods)
    # ========================================================================

    @property
    def current_clock(self) -> int:
        """Current logical clock (block height) of the ledger."""
        return self._current_clock

    @property
    def owner(self) -> str:
        return self._owner

    @property
    def config(self) -> LedgerConfig:
        return self._config

    def get_balance(self, principal: str) -> int:
        """Balance of a principal. Principals that never received value read as 0."""
        return self.balances.get(principal, 0)

    def get_instrument(self, instrument_id: int) -> Optional[Instrument]:
        return self.instruments.get(instrument_id)

    def get_transaction(self, tx_id: int) -> Optional[TransactionRecord]:
        return self.transactions.get(tx_id)

    def get_next_instrument_id(self) -> int:
        return self._next_instrument_id

    def get_next_tx_id(self) -> int:
        return self._next_tx_id

    def list_transactions(
        self,
        tx_type: Optional[TransactionType] = None,
        status: Optional[TransactionStatus] = None,
    ) -> List[TransactionRecord]:
        """
        List transaction records in id order.

        Args:
            tx_type: Only records of this type (default: all)
            status: Only records with this status (default: all)
        """
        return [
            record for _, record in sorted(self.transactions.items())
            if (tx_type is None or record.tx_type == tx_type)
            and (status is None or record.status == status)
        ]

    def find_rental_record(self, instrument_id: int, renter: str) -> Optional[TransactionRecord]:
        """
        Newest rental record for an instrument taken by renter.

        Uses the rental index, so the cost is the number of rentals of that
        instrument rather than the size of the whole log.
        """
        for tx_id in reversed(self._rentals_by_instrument.get(instrument_id, [])):
            record = self.transactions[tx_id]
            if record.user == renter:
                return record
        return None

    def list_instruments(self) -> List[Instrument]:
        """All instruments in id order."""
        return [self.instruments[i] for i in sorted(self.instruments)]

    def verify_invariants(self) -> Dict[str, Any]:
        """
        Check the store-wide invariants.

        Entity-level invariants are enforced on construction; this checks the
        ones that span entities:
        - every balance is within 0..UINT_MAX
        - each counter is one past the highest id it issued
        - every rented instrument has a rental record for its renter

        Returns:
            Dict with 'valid' (bool) and 'violations' (list of str).

        Example:
            result = ledger.verify_invariants()
            assert result['valid'], result['violations']
        """
        violations = []
        for principal, balance in sorted(self.balances.items()):
            if not 0 <= balance <= UINT_MAX:
                violations.append(f"balance of {principal} out of range: {balance}")
        if self.instruments and max(self.instruments) != self._next_instrument_id - 1:
            violations.append(
                f"next-instrument-id {self._next_instrument_id} does not follow {max(self.instruments)}"
            )
        if self.transactions and max(self.transactions) != self._next_tx_id - 1:
            violations.append(
                f"next-tx-id {self._next_tx_id} does not follow {max(self.transactions)}"
            )
        for instrument in self.list_instruments():
            if instrument.status != InstrumentStatus.RENTED:
                continue
            if self.find_rental_record(instrument.instrument_id, instrument.renter) is None:
                violations.append(
                    f"instrument {instrument.instrument_id} rented by {instrument.renter} without a rental record"
                )
        return {'valid': not violations, 'violations': violations}

    # ========================================================================
    # CLOCK MANAGEMENT
    # ========================================================================

    def advance_clock(self, new_clock: int) -> None:
        """
        Advance the ledger's logical clock.

        The clock can only move forward, never backward.

        Raises:
            ValueError: If new_clock is before the current clock
        """
        if new_clock < self._current_clock:
            raise ValueError(
                f"Cannot move clock backwards: {new_clock} < {self._current_clock}"
            )
        self._current_clock = new_clock

    # ========================================================================
    # DIRECT WRITES (test mode)
    # ========================================================================

    def set_balance(self, principal: str, amount: int) -> None:
        """
        Set a principal's balance directly.

        WARNING: This bypasses transitions and the audit log, so replay()
        will not reproduce it. Only available in test mode.

        Raises:
            LedgerError: If called when test_mode is False
        """
        if not self._test_mode:
            raise LedgerError(
                "set_balance() is disabled in production mode. "
                "Use a deposit transition to modify balances. "
                "Set test_mode=True when creating Ledger for testing."
            )
        if not 0 <= amount <= UINT_MAX:
            raise ValueError(f"balance must be within 0..{UINT_MAX}, got {amount}")
        self._set_balance(principal, amount)

    # ========================================================================
    # INTERNAL MUTATORS (used only while committing a transition)
    # ========================================================================

    def _set_balance(self, principal: str, amount: int) -> None:
        self.balances[principal] = amount

    def _put_instrument(self, instrument: Instrument) -> None:
        self.instruments[instrument.instrument_id] = instrument

    def _put_transaction(self, record: TransactionRecord) -> None:
        is_new = record.tx_id not in self.transactions
        self.transactions[record.tx_id] = record
        if is_new and record.tx_type == TransactionType.RENTAL:
            self._rentals_by_instrument[record.instrument_id].append(record.tx_id)

    def _increment_instrument_counter(self) -> int:
        issued = self._next_instrument_id
        self._next_instrument_id += 1
        return issued

    def _increment_tx_counter(self) -> int:
        issued = self._next_tx_id
        self._next_tx_id += 1
        return issued

    # ========================================================================
    # TRANSITION EXECUTION (Mutating)
    # ========================================================================

    def _generate_exec_id(self, sequence: int) -> str:
        """
        Generate a unique execution ID.

        Format: exec:{ledger_name}:{sequence:012d}:{clock}
        """
        return f"exec:{self.name}:{sequence:012d}:{self._current_clock}"

    def execute(self, pending: PendingTransition) -> Optional[CommittedTransition]:
        """
        Execute a PendingTransition atomically.

        Every change is validated before any is written, so a rejected
        transition leaves balances, instruments, records, counters and the
        log exactly as they were.

        Args:
            pending: PendingTransition to execute

        Returns:
            The CommittedTransition appended to the log, or None if the
            transition was empty (nothing to write, nothing logged).

        Raises:
            InvariantViolation: If any change would break a store invariant
        """
        if pending.is_empty():
            return None

        valid, reason = self._validate_pending(pending)
        if not valid:
            if self.verbose:
                print(f"✗ REJECTED {pending.function} by {pending.caller}: {reason}")
            raise InvariantViolation(reason)

        sequence = self._next_sequence
        self._next_sequence += 1

        committed = CommittedTransition(
            function=pending.function,
            caller=pending.caller,
            clock=pending.clock,
            balance_changes=pending.balance_changes,
            instrument_changes=pending.instrument_changes,
            record_changes=pending.record_changes,
            result=pending.result,
            intent_id=pending.intent_id,
            exec_id=self._generate_exec_id(sequence),
            ledger_name=self.name,
            sequence_number=sequence,
        )

        # Validation passed - nothing below can fail
        for bc in committed.balance_changes:
            self._set_balance(bc.principal, bc.new_balance)
        for ic in committed.instrument_changes:
            if ic.old is None:
                self._increment_instrument_counter()
            self._put_instrument(ic.new)
        for rc in committed.record_changes:
            if rc.old is None:
                self._increment_tx_counter()
            self._put_transaction(rc.new)

        # Log transition (always - audit trail is mandatory)
        self.transition_log.append(committed)

        if self.verbose:
            print(repr(committed))
            print("✓ APPLIED")
        return committed

    def _validate_pending(self, pending: PendingTransition) -> Tuple[bool, str]:
        """
        Validate a pending transition against all store invariants.

        Checks performed:
        1. Clock (transition must not be from the future)
        2. Each entry is written at most once
        3. Every old value matches the stored value (stale transitions are refused)
        4. New balances stay within 0..UINT_MAX
        5. Created ids are consecutive from the counters
        6. Instrument and record transition rules

        Returns:
            Tuple of (success: bool, reason: str)
        """
        if pending.clock > self._current_clock:
            return False, f"future clock {pending.clock} > {self._current_clock}"

        seen_principals = set()
        for bc in pending.balance_changes:
            if bc.principal in seen_principals:
                return False, f"balance of {bc.principal} changed twice"
            seen_principals.add(bc.principal)
            current = self.get_balance(bc.principal)
            if bc.old_balance != current:
                return False, f"stale balance for {bc.principal}: expected {bc.old_balance}, found {current}"
            if not 0 <= bc.new_balance <= UINT_MAX:
                return False, f"balance of {bc.principal} out of range: {bc.new_balance}"

        expected_id = self._next_instrument_id
        seen_ids = set()
        for ic in pending.instrument_changes:
            if ic.instrument_id in seen_ids:
                return False, f"instrument {ic.instrument_id} changed twice"
            seen_ids.add(ic.instrument_id)
            if ic.new.instrument_id != ic.instrument_id:
                return False, f"instrument change {ic.instrument_id} carries id {ic.new.instrument_id}"
            current = self.instruments.get(ic.instrument_id)
            if ic.old is None:
                if current is not None:
                    return False, f"instrument {ic.instrument_id} already exists"
                if ic.instrument_id != expected_id:
                    return False, f"instrument id {ic.instrument_id} is not next-instrument-id {expected_id}"
                expected_id += 1
                if ic.new.status != InstrumentStatus.AVAILABLE:
                    return False, f"new instrument {ic.instrument_id} must start available"
            else:
                if current != ic.old:
                    return False, f"stale state for instrument {ic.instrument_id}"
                reason = self._check_instrument_transition(ic.old, ic.new)
                if reason:
                    return False, reason

        expected_id = self._next_tx_id
        seen_ids = set()
        for rc in pending.record_changes:
            if rc.tx_id in seen_ids:
                return False, f"record {rc.tx_id} changed twice"
            seen_ids.add(rc.tx_id)
            if rc.new.tx_id != rc.tx_id:
                return False, f"record change {rc.tx_id} carries id {rc.new.tx_id}"
            current = self.transactions.get(rc.tx_id)
            if rc.old is None:
                if current is not None:
                    return False, f"record {rc.tx_id} already exists"
                if rc.tx_id != expected_id:
                    return False, f"record id {rc.tx_id} is not next-tx-id {expected_id}"
                expected_id += 1
            else:
                if current != rc.old:
                    return False, f"stale state for record {rc.tx_id}"
                reason = self._check_record_transition(rc.old, rc.new)
                if reason:
                    return False, reason
            reason = self._check_record_expiry(rc.new)
            if reason:
                return False, reason

        return True, ""

    @staticmethod
    def _check_instrument_transition(old: Instrument, new: Instrument) -> str:
        """Return a reason string if old -> new is not an allowed instrument update."""
        for attr in ('name', 'category', 'daily_rental_fee', 'purchase_price'):
            if getattr(old, attr) != getattr(new, attr):
                return f"instrument {old.instrument_id}: {attr} is immutable"
        if old.status == InstrumentStatus.SOLD and new.status != InstrumentStatus.SOLD:
            return f"instrument {old.instrument_id} is sold"
        if old.owner is not None and new.owner != old.owner:
            return f"instrument {old.instrument_id}: owner is immutable once set"
        return ""

    @staticmethod
    def _check_record_transition(old: TransactionRecord, new: TransactionRecord) -> str:
        """Return a reason string if old -> new is not an allowed record update."""
        for attr in ('user', 'instrument_id', 'tx_type', 'timestamp'):
            if getattr(old, attr) != getattr(new, attr):
                return f"record {old.tx_id}: {attr} is immutable"
        if new.status != old.status and new.status not in RECORD_TRANSITIONS[old.status]:
            return f"record {old.tx_id}: {old.status.value} -> {new.status.value} not allowed"
        return ""

    def _check_record_expiry(self, record: TransactionRecord) -> str:
        if record.tx_type != TransactionType.RENTAL:
            return ""
        expected = record.timestamp + record.rental_period_days * self._config.blocks_per_day
        if record.expiry != expected:
            return f"record {record.tx_id}: expiry {record.expiry} != {expected}"
        return ""

    # ========================================================================
    # LEDGER OPERATIONS
    # ========================================================================

    def clone(self) -> Ledger:
        """
        Create a copy of this ledger.

        Entities are immutable, so copying the maps is enough for the clone to
        be fully independent of the original.

        Returns:
            A new Ledger instance with identical state
        """
        cloned = Ledger.__new__(Ledger)
        cloned.name = self.name
        cloned._owner = self._owner
        cloned._config = self._config
        cloned._current_clock = self._current_clock
        cloned.verbose = self.verbose
        cloned._test_mode = self._test_mode
        cloned.balances = dict(self.balances)
        cloned.instruments = dict(self.instruments)
        cloned.transactions = dict(self.transactions)
        cloned.transition_log = list(self.transition_log)
        cloned._next_instrument_id = self._next_instrument_id
        cloned._next_tx_id = self._next_tx_id
        cloned._next_sequence = self._next_sequence
        cloned._rentals_by_instrument = defaultdict(list)
        for instrument_id, tx_ids in self._rentals_by_instrument.items():
            cloned._rentals_by_instrument[instrument_id] = list(tx_ids)
        return cloned

    def clone_at(self, target_clock: int) -> Ledger:
        """
        Create a copy of this ledger as it existed at a past clock value.

        Walks backward through transitions committed after target_clock and
        restores every old value they overwrote:
        - balances go back to old_balance
        - created instruments/records are removed and their counters rewound
        - updated instruments/records go back to their old version

        Args:
            target_clock: The clock value to reconstruct

        Returns:
            A new Ledger instance with state as it was at target_clock

        Raises:
            ValueError: If target_clock is in the future
        """
        if target_clock > self._current_clock:
            raise ValueError(f"Target clock {target_clock} is in the future")

        cloned = self.clone()
        cloned._current_clock = target_clock
        cloned.transition_log = [tx for tx in self.transition_log if tx.clock <= target_clock]
        cloned._next_sequence = len(cloned.transition_log)

        for tx in reversed(self.transition_log):
            if tx.clock <= target_clock:
                break

            for bc in tx.balance_changes:
                cloned.balances[bc.principal] = bc.old_balance

            for ic in reversed(tx.instrument_changes):
                if ic.old is None:
                    del cloned.instruments[ic.instrument_id]
                    cloned._next_instrument_id -= 1
                else:
                    cloned.instruments[ic.instrument_id] = ic.old

            for rc in reversed(tx.record_changes):
                if rc.old is None:
                    del cloned.transactions[rc.tx_id]
                    cloned._next_tx_id -= 1
                    if rc.new.tx_type == TransactionType.RENTAL:
                        cloned._rentals_by_instrument[rc.new.instrument_id].remove(rc.tx_id)
                else:
                    cloned.transactions[rc.tx_id] = rc.old

        return cloned

    def replay(self, from_tx: int = 0) -> Ledger:
        """
        Create a new ledger by replaying the transition log.

        Each logged transition is re-executed, with full validation, against a
        fresh ledger that has the same owner and configuration.

        Note: balances set via set_balance() are NOT replayed because they are
        not part of the transition log. Use clone() to preserve them.

        Args:
            from_tx: Starting transition index (0 = replay from beginning)

        Returns:
            New Ledger instance with replayed state

        Raises:
            LedgerError: If replay fails
        """
        new_ledger = Ledger(
            name=f"{self.name}_replayed",
            owner=self._owner,
            config=self._config,
            verbose=self.verbose,
            test_mode=self._test_mode,
        )

        for tx in self.transition_log[from_tx:]:
            if tx.clock > new_ledger._current_clock:
                new_ledger.advance_clock(tx.clock)
            pending = PendingTransition(
                function=tx.function,
                caller=tx.caller,
                clock=tx.clock,
                balance_changes=tx.balance_changes,
                instrument_changes=tx.instrument_changes,
                record_changes=tx.record_changes,
                result=tx.result,
            )
            try:
                new_ledger.execute(pending)
            except InvariantViolation as e:
                raise LedgerError(f"Replay failed at {tx.exec_id}: {e}") from e

        if self._current_clock > new_ledger._current_clock:
            new_ledger.advance_clock(self._current_clock)
        return new_ledger

    # ========================================================================
    # PERSISTENCE CONTRACT
    # ========================================================================

    def snapshot(self) -> Dict[str, Any]:
        """
        Export the persistent state as plain, JSON-serializable data.

        The layout is the logical storage contract: three maps (balances,
        instruments, transactions) plus the two counters. Any key-value store
        can hold it; map keys are strings.
        """
        return {
            'owner': self._owner,
            'clock': self._current_clock,
            'config': {
                'blocks-per-day': self._config.blocks_per_day,
                'max-rental-days': self._config.max_rental_days,
            },
            'next-instrument-id': self._next_instrument_id,
            'next-tx-id': self._next_tx_id,
            # Zero balances read the same as absent ones
            'balances': {p: b for p, b in sorted(self.balances.items()) if b},
            'instruments': {str(i): inst.to_wire() for i, inst in sorted(self.instruments.items())},
            'transactions': {str(t): rec.to_wire() for t, rec in sorted(self.transactions.items())},
        }

    @classmethod
    def from_snapshot(
        cls,
        name: str,
        snapshot: Dict[str, Any],
        verbose: bool = True,
        test_mode: bool = False,
    ) -> Ledger:
        """
        Restore a ledger from snapshot() output.

        Entities are rebuilt through their constructors, so a corrupted
        snapshot fails with ValueError instead of loading an inconsistent
        store. The transition log starts empty.
        """
        cfg = snapshot['config']
        ledger = cls(
            name=name,
            owner=snapshot['owner'],
            config=LedgerConfig(cfg['blocks-per-day'], cfg['max-rental-days']),
            initial_clock=snapshot['clock'],
            verbose=verbose,
            test_mode=test_mode,
        )
        for principal, balance in snapshot['balances'].items():
            if not 0 <= balance <= UINT_MAX:
                raise ValueError(f"balance of {principal} out of range: {balance}")
            ledger._set_balance(principal, balance)
        for key, data in snapshot['instruments'].items():
            ledger._put_instrument(Instrument.from_wire(int(key), data))
        for key in sorted(snapshot['transactions'], key=int):
            ledger._put_transaction(TransactionRecord.from_wire(int(key), snapshot['transactions'][key]))
        ledger._next_instrument_id = snapshot['next-instrument-id']
        ledger._next_tx_id = snapshot['next-tx-id']
        return ledger

    def state_digest(self) -> str:
        """SHA-256 of the canonicalized snapshot. Equal digests mean equal state."""
        return hashlib.sha256(_canonicalize(self.snapshot()).encode()).hexdigest()
