"""
Conformance Test Suite

This suite defines the NORMATIVE behavior of the distributor.
Any compliant engine MUST pass these tests.

The tests are organized by invariant:
1. test_invariants.py - Stake sums, chunk sums and monotonic totals
2. test_conservation.py - Token supply and reward solvency
3. test_atomicity.py - Rejected and rolled-back operations leave no trace
4. test_determinism.py - Reproducible state across replays and reloads

These tests use hypothesis for property-based testing.
"""
