"""
collectibles - Deterministic Collectible Asset Registry

An ownership registry for uniquely identified collectible assets carrying
immutable DNA, with breeding, transfers and a minimal buy/sell marketplace.
Every transition is reproducible bit for bit by independent executors.

Usage:
    from collectibles import AssetRegistry, Balances

    registry = AssetRegistry("main", currency=Balances({"alice": 100, "bob": 100}))

    # Create two assets and breed them
    a = registry.create("alice").asset_id
    b = registry.create("alice").asset_id
    child = registry.breed("alice", a, b).asset_id

    # List one for sale and sell it to bob
    registry.ask("alice", child, 10)
    registry.buy("bob", child, 10)

    registry.list_owned("alice")   # [a, b]
    registry.list_owned("bob")     # [child]
"""

# Core types
from .core import (
    RegistryView,
    Asset,
    LinkedItem,
    ExecutionContext,
    ExecuteResult,
    Call,
    Extrinsic,
    Event,
    Created,
    Transferred,
    Ask,
    Sold,
    create_call,
    breed_call,
    transfer_call,
    ask_call,
    buy_call,
    to_amount,
    RegistryError,
    AssetNotFound,
    SameParent,
    NotOwner,
    CounterOverflow,
    NotForSale,
    PriceTooLow,
    InsufficientFunds,
    DNA_LENGTH,
    MAX_ASSET_ID,
    DEFAULT_SEED,
)

# Storage
from .store import KeyValueStore, AssetStore
from .linked_list import OwnershipIndex

# External collaborators
from .randomness import RandomnessSource, BlockRandomness, StaticRandomness
from .currency import CurrencyLedger, Balances

# Genetics
from .genetics import combine_dna, inherited_bits

# Registry
from .registry import AssetRegistry


__all__ = [
    # Core
    'RegistryView', 'Asset', 'LinkedItem', 'ExecutionContext', 'ExecuteResult',
    'Call', 'Extrinsic', 'Event', 'Created', 'Transferred', 'Ask', 'Sold',
    'create_call', 'breed_call', 'transfer_call', 'ask_call', 'buy_call',
    'to_amount',
    'RegistryError', 'AssetNotFound', 'SameParent', 'NotOwner', 'CounterOverflow',
    'NotForSale', 'PriceTooLow', 'InsufficientFunds',
    'DNA_LENGTH', 'MAX_ASSET_ID', 'DEFAULT_SEED',
    # Storage
    'KeyValueStore', 'AssetStore', 'OwnershipIndex',
    # Collaborators
    'RandomnessSource', 'BlockRandomness', 'StaticRandomness',
    'CurrencyLedger', 'Balances',
    # Genetics
    'combine_dna', 'inherited_bits',
    # Registry
    'AssetRegistry',
]
