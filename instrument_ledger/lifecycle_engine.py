"""
lifecycle_engine.py - Periodic System Trigger

Drives time-based transitions that no user calls on their own behalf.

Execution order each step():
1. Advance the ledger clock
2. Issue every registered periodic call as SYSTEM_PRINCIPAL, in sorted name order

The default periodic call is mark-overdue-rentals. Every periodic call goes
through Dispatcher.system_call(), so it lands in call_log and replays like
any other.
"""

from __future__ import annotations
from typing import Iterable, List, Optional

from .core import LedgerError, FN_MARK_OVERDUE_RENTALS
from .dispatcher import Dispatcher, Receipt, TRANSITIONS, SYSTEM_FUNCTIONS


class LifecycleEngine:
    """
    Issues registered periodic calls at each clock it is stepped to.

    Example:
        engine = LifecycleEngine(dispatcher)
        engine.run([1000, 1144, 1288])   # sweeps overdue rentals at each clock
    """

    def __init__(self, dispatcher: Dispatcher, functions: Optional[Iterable[str]] = None):
        """
        Args:
            dispatcher: Dispatcher the periodic calls are issued through
            functions: Periodic function names (default: mark-overdue-rentals)
        """
        self.dispatcher = dispatcher
        self.functions: List[str] = []
        self.verbose = dispatcher.verbose
        for function in (functions if functions is not None else [FN_MARK_OVERDUE_RENTALS]):
            self.register(function)

    def register(self, function: str) -> None:
        """
        Register a periodic call. Registering the same name twice is a no-op.

        Raises:
            ValueError: If the function is unknown, takes arguments or is not
                a system function.
        """
        entry = TRANSITIONS.get(function)
        if entry is None:
            raise ValueError(f"Unknown function {function!r}")
        if entry[1]:
            raise ValueError(f"Periodic function {function!r} must take no arguments")
        if function not in SYSTEM_FUNCTIONS:
            raise ValueError(f"{function!r} cannot be issued by the periodic trigger")
        if function not in self.functions:
            self.functions.append(function)

    def step(self, clock: int) -> List[Receipt]:
        """
        Advance to clock and issue every registered periodic call.

        Returns:
            One receipt per registered function, in sorted name order.

        Raises:
            LedgerError: If a periodic call fails.
        """
        self.dispatcher.advance_clock(clock)
        receipts: List[Receipt] = []
        for function in sorted(self.functions):
            receipt = self.dispatcher.system_call(function, clock=clock)
            if not receipt.success:
                raise LedgerError(
                    f"Periodic call {function} failed at {clock}: "
                    f"{receipt.error_name} ({receipt.error_code})"
                )
            if self.verbose and receipt.sequence_number is not None:
                print(f"[PERIODIC] {function} @ {clock}: {receipt.value!r}")
            receipts.append(receipt)
        return receipts

    def run(self, clocks: Iterable[int]) -> List[Receipt]:
        """Step through clocks in order and return every receipt."""
        all_receipts: List[Receipt] = []
        for clock in clocks:
            all_receipts.extend(self.step(clock))
        return all_receipts
