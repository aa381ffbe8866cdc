"""
helpers.py - Test helpers for registry tests

Small builders and assertions shared by unit, conformance and functional tests.
"""

from typing import Any, Dict

from collectibles import AssetRegistry, DNA_LENGTH


# Genesis balances of the reference test runtime: account n holds 10 * n.
GENESIS_BALANCES = {1: 10, 2: 20, 3: 30, 4: 40, 5: 50, 6: 60}


def dna(byte: int) -> bytes:
    """DNA made of one repeated byte."""
    return bytes([byte]) * DNA_LENGTH


def registry_snapshot(registry: AssetRegistry) -> Dict[str, Any]:
    """Capture everything an operation could change."""
    return {
        "root": registry.state_root(),
        "count": registry.count(),
        "events": list(registry.events),
        "balances": {a: registry.free_balance(a) for a in GENESIS_BALANCES},
    }


def assert_consistent(registry: AssetRegistry) -> None:
    """Fail with the violation list if any registry invariant is broken."""
    report = registry.verify_invariants()
    assert report["valid"], report["violations"]
