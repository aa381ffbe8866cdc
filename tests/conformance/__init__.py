"""
Conformance Test Suite

This suite defines the NORMATIVE behavior of the asset registry.
Any compliant implementation MUST pass these tests.

The tests are organized by invariant:
1. ownership_invariants.py - Owner pointers and the ownership index agree
2. atomicity.py - All-or-nothing operation semantics
3. determinism.py - Reproducible state, DNA included

These tests use hypothesis for property-based testing.
"""
