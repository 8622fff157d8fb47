"""
Conformance Test Suite

This suite defines the NORMATIVE behavior of the instrument ledger.
Any compliant implementation MUST pass these tests.

The tests are organized by invariant:
1. atomicity.py - A failed call changes nothing; a successful one commits every write
2. determinism.py - The same calls in the same order give the same state
3. invariants.py - Balances, statuses and counters stay consistent under any call sequence
4. authorization.py - Owner-only, renter-only and system-trigger checks

These tests use hypothesis for property-based testing.
"""
