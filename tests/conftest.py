"""
conftest.py - Shared pytest fixtures for registry tests

Provides common fixtures used across unit, conformance and functional tests:
- Basic registries (empty, endowed like the reference test runtime)
- Registries with pinned randomness for exact DNA assertions
- A listed asset for marketplace tests
"""

import pytest
from decimal import Decimal

from collectibles import (
    AssetRegistry, Balances, KeyValueStore, OwnershipIndex, StaticRandomness,
)

from tests.helpers import GENESIS_BALANCES, dna


# =============================================================================
# BASIC FIXTURES
# =============================================================================

@pytest.fixture
def kv():
    """Fresh flat store."""
    return KeyValueStore()


@pytest.fixture
def index(kv):
    """Ownership index over a fresh store."""
    return OwnershipIndex(kv)


@pytest.fixture
def empty_registry():
    """Registry with no balances and default randomness."""
    return AssetRegistry("test", verbose=False, test_mode=True)


@pytest.fixture
def registry():
    """Registry endowed with the reference genesis balances."""
    return AssetRegistry(
        "test",
        currency=Balances(GENESIS_BALANCES),
        verbose=False,
        test_mode=True,
    )


@pytest.fixture
def pinned_registry():
    """
    Registry whose randomness hands out 0xAA.., 0x55.., then 0x0F.. and repeats.

    create(1), create(1), breed(1, 0, 1) therefore yields parents 0xAA and 0x55
    and a 0x0F selector.
    """
    return AssetRegistry(
        "pinned",
        currency=Balances(GENESIS_BALANCES),
        randomness=StaticRandomness([dna(0xAA), dna(0x55), dna(0x0F)]),
        verbose=False,
        test_mode=True,
    )


@pytest.fixture
def marketplace(registry):
    """Account 1 owns asset 0, listed at 10."""
    registry.create(1)
    registry.ask(1, 0, Decimal("10"))
    return registry
