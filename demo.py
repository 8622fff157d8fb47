#!/usr/bin/env python3
"""
demo.py - Interactive Tutorial: An Instrument Rental Ledger Step by Step

Each step builds on the previous one. Press Enter to advance.

WHAT YOU'LL LEARN:
  1-3:  Catalogue   - The empty ledger, registering instruments, deposits
  4-6:  Rentals     - Renting, rejected calls, extending and returning
  7-8:  Time        - The overdue sweep, refunds
  9-10: Audit       - clone_at, call replay and state digests

Run:
    python demo.py           # Interactive mode (press Enter for each step)
    python demo.py --quick   # Run all steps without pausing
"""

from dataclasses import dataclass
import sys

from instrument_ledger import (
    Ledger, Dispatcher, LifecycleEngine,
    SYSTEM_PRINCIPAL, DEFAULT_BLOCKS_PER_DAY,
)


# ============================================================================
# CONFIGURATION
# ============================================================================

@dataclass
class DemoConfig:
    """Configuration for the tutorial. Modify these to experiment."""
    owner: str = "shop"
    start_clock: int = 1000

    clarinet_fee: int = 10
    clarinet_price: int = 500
    violin_fee: int = 25
    violin_price: int = 1200

    alice_deposit: int = 500
    bob_deposit: int = 2000
    rental_days: int = 7


CONFIG = DemoConfig()

QUICK_MODE = "--quick" in sys.argv


def wait_for_enter():
    """Pause for user input unless in quick mode."""
    if not QUICK_MODE:
        input("\n[Press Enter to continue...]")


def step_header(number: int, title: str, objective: str):
    """Print a step header with learning objective."""
    print(f"\n{'='*70}")
    print(f"STEP {number}: {title}")
    print(f"{'='*70}")
    print(f"\nObjective: {objective}\n")


def section_header(text: str):
    print(f"\n--- {text} ---\n")


def show(dispatcher: Dispatcher, query: str, *args):
    receipt = dispatcher.query(query, *args)
    print(f"  {query}{args}: {receipt.as_dict()['value']}")


# ============================================================================
# CATALOGUE (Steps 1-3)
# ============================================================================

def step_01_empty_ledger() -> Dispatcher:
    step_header(1, "The Empty Ledger",
        "A ledger starts with an owner, a clock and two counters.")

    ledger = Ledger("tutorial", owner=CONFIG.owner, initial_clock=CONFIG.start_clock, verbose=True)
    dispatcher = Dispatcher(ledger)

    print(f"Owner:               {ledger.owner}")
    print(f"Clock:               {ledger.current_clock}")
    print(f"Blocks per day:      {ledger.config.blocks_per_day}")
    print(f"Max rental days:     {ledger.config.max_rental_days}")
    print(f"Next instrument id:  {ledger.get_next_instrument_id()}")
    print(f"Next tx id:          {ledger.get_next_tx_id()}")
    return dispatcher


def step_02_register(dispatcher: Dispatcher) -> Dispatcher:
    step_header(2, "Registering Instruments",
        "Only the contract owner can add to the catalogue.")

    dispatcher.submit(CONFIG.owner, "register-instrument",
                      "Yamaha Clarinet", "Woodwind", CONFIG.clarinet_fee, CONFIG.clarinet_price)
    dispatcher.submit(CONFIG.owner, "register-instrument",
                      "Stentor Violin", "Strings", CONFIG.violin_fee, CONFIG.violin_price)

    section_header("A stranger tries to register")
    receipt = dispatcher.submit("mallory", "register-instrument", "Fake Flute", "Woodwind", 1, 1)
    print(f"  {receipt.as_dict()}")

    section_header("Catalogue")
    show(dispatcher, "get-instrument", 1)
    show(dispatcher, "get-instrument", 2)
    return dispatcher


def step_03_deposits(dispatcher: Dispatcher) -> Dispatcher:
    step_header(3, "Deposits",
        "Every value movement, deposits included, leaves a transaction record.")

    dispatcher.submit("alice", "deposit", CONFIG.alice_deposit)
    dispatcher.submit("bob", "deposit", CONFIG.bob_deposit)
    show(dispatcher, "get-balance", "alice")
    show(dispatcher, "get-balance", "bob")
    show(dispatcher, "get-transaction", 1)
    return dispatcher


# ============================================================================
# RENTALS (Steps 4-6)
# ============================================================================

def step_04_rent(dispatcher: Dispatcher) -> Dispatcher:
    step_header(4, "Renting",
        "A rental is paid up front: fee x days, expiring days x 144 blocks later.")

    receipt = dispatcher.submit("alice", "rent-instrument", 1, CONFIG.rental_days)
    print(f"  rental tx id: {receipt.value}")
    show(dispatcher, "get-balance", "alice")
    show(dispatcher, "get-instrument", 1)
    show(dispatcher, "is-rental-active", 1)
    return dispatcher


def step_05_rejections(dispatcher: Dispatcher) -> Dispatcher:
    step_header(5, "Rejected Calls",
        "A failed call returns an error code and changes nothing.")

    digest = dispatcher.ledger.state_digest()
    attempts = [
        ("bob", "rent-instrument", (1, 3)),           # already rented
        ("bob", "rent-instrument", (2, 400)),         # too long
        ("alice", "purchase-instrument", (2,)),       # cannot afford
        ("bob", "return-instrument", (1,)),           # not the renter
        ("bob", "rent-instrument", (99, 1)),          # no such instrument
    ]
    for caller, function, args in attempts:
        receipt = dispatcher.submit(caller, function, *args)
        print(f"  {caller:6s} {function}{args}: {receipt.error_code} {receipt.error_name}")
    print(f"\n  state unchanged: {digest == dispatcher.ledger.state_digest()}")
    return dispatcher


def step_06_extend_and_return(dispatcher: Dispatcher) -> Dispatcher:
    step_header(6, "Extending and Returning",
        "Extending moves the expiry; returning frees the instrument.")

    receipt = dispatcher.submit("alice", "extend-rental", 1, 3)
    print(f"  new expiry: {receipt.value}")
    show(dispatcher, "get-transaction", 3)

    clock = dispatcher.ledger.current_clock + 2 * DEFAULT_BLOCKS_PER_DAY
    dispatcher.submit("alice", "return-instrument", 1, clock=clock)
    show(dispatcher, "is-instrument-available", 1)
    show(dispatcher, "get-transaction", 3)
    return dispatcher


# ============================================================================
# TIME (Steps 7-8)
# ============================================================================

def step_07_overdue(dispatcher: Dispatcher) -> Dispatcher:
    step_header(7, "The Overdue Sweep",
        f"The periodic trigger runs as {SYSTEM_PRINCIPAL!r} and flags expired rentals.")

    receipt = dispatcher.submit("bob", "rent-instrument", 2, 1)
    rental_id = receipt.value
    engine = LifecycleEngine(dispatcher)

    now = dispatcher.ledger.current_clock
    for clock in (now + DEFAULT_BLOCKS_PER_DAY, now + DEFAULT_BLOCKS_PER_DAY + 1):
        receipts = engine.step(clock)
        print(f"  clock {clock}: flagged {receipts[0].value}")
    show(dispatcher, "get-transaction", rental_id)
    show(dispatcher, "is-rental-active", 2)
    return dispatcher


def step_08_refund(dispatcher: Dispatcher) -> Dispatcher:
    step_header(8, "Refunds",
        "The owner can refund an open rental; the record becomes refunded.")

    rental_id = dispatcher.ledger.get_next_tx_id() - 1
    receipt = dispatcher.submit(CONFIG.owner, "process-refund", rental_id)
    print(f"  refunded: {receipt.value}")
    show(dispatcher, "get-balance", "bob")
    show(dispatcher, "get-transaction", rental_id)

    section_header("Refunding twice")
    print(f"  {dispatcher.submit(CONFIG.owner, 'process-refund', rental_id).as_dict()}")

    section_header("Extending a refunded rental")
    print(f"  {dispatcher.submit('bob', 'extend-rental', 2, 1).as_dict()}")
    return dispatcher


# ============================================================================
# AUDIT (Steps 9-10)
# ============================================================================

def step_09_time_travel(dispatcher: Dispatcher) -> Dispatcher:
    step_header(9, "Time Travel",
        "clone_at() unwinds the transition log to any past clock.")

    ledger = dispatcher.ledger
    past = ledger.clone_at(CONFIG.start_clock)
    print(f"  now:  alice={ledger.get_balance('alice')} instrument 1={ledger.get_instrument(1).status.value}")
    print(f"  then: alice={past.get_balance('alice')} instrument 1={past.get_instrument(1).status.value}")
    print(f"  log:  {len(ledger.transition_log)} transitions now, {len(past.transition_log)} then")
    return dispatcher


def step_10_replay(dispatcher: Dispatcher) -> Dispatcher:
    step_header(10, "Replay",
        "The same calls in the same order give the same state.")

    dispatcher.ledger.verbose = False
    replayed = dispatcher.replay()
    print(f"  calls logged:    {len(dispatcher.call_log)}")
    print(f"  original digest: {dispatcher.ledger.state_digest()[:16]}")
    print(f"  replayed digest: {replayed.ledger.state_digest()[:16]}")
    print(f"  invariants:      {dispatcher.ledger.verify_invariants()}")
    return dispatcher


def main():
    """Run the complete tutorial."""
    print("=" * 70)
    print("       INSTRUMENT LEDGER - INTERACTIVE TUTORIAL")
    print("=" * 70)

    if QUICK_MODE:
        print("Running in QUICK mode (no pauses)")
    else:
        print("Running in INTERACTIVE mode (press Enter to advance)")
    wait_for_enter()

    dispatcher = step_01_empty_ledger()
    for step in (
        step_02_register, step_03_deposits,
        step_04_rent, step_05_rejections, step_06_extend_and_return,
        step_07_overdue, step_08_refund,
        step_09_time_travel, step_10_replay,
    ):
        wait_for_enter()
        dispatcher = step(dispatcher)

    print(f"\n{'='*70}")
    print("Done. Run the tests with: pytest tests/")


if __name__ == "__main__":
    main()
