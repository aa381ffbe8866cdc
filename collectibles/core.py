"""
Core types and pure functions for the collectible asset registry.

This module provides the foundational data structures and protocols:
1. Protocols: RegistryView for read-only registry access
2. Immutable data structures: Asset, LinkedItem, Call, Extrinsic, events
3. Exceptions: RegistryError and the named failure kinds
4. Type aliases: AccountId, AssetId, Amount, Dna
5. Canonical encoding: deterministic byte/string forms used for hashing

Nothing in this module mutates registry state.
"""

from __future__ import annotations
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import (
    Any, Hashable, List, Optional, Protocol, Tuple, Union,
    runtime_checkable,
)


# ============================================================================
# CONSTANTS
# ============================================================================

# Length of the genetic data carried by every asset, in bytes.
DNA_LENGTH = 16

# Largest representable asset id (u32). The counter may reach this value but
# an asset is never assigned it: allocation fails with CounterOverflow instead.
MAX_ASSET_ID = 2 ** 32 - 1

# Seed used by BlockRandomness when the runtime does not supply one.
DEFAULT_SEED = bytes(32)

# Call function names accepted by AssetRegistry.execute().
CALL_CREATE = "create"
CALL_BREED = "breed"
CALL_TRANSFER = "transfer"
CALL_ASK = "ask"
CALL_BUY = "buy"

CALL_FUNCTIONS = frozenset({CALL_CREATE, CALL_BREED, CALL_TRANSFER, CALL_ASK, CALL_BUY})


# ============================================================================
# TYPE ALIASES
# ============================================================================

# Identity of an account that can own assets and hold currency. Must be
# hashable, not None, and canonically encodable (see check_account).
AccountId = Hashable

# Dense asset index, assigned from 0 upwards.
AssetId = int

# Currency amount. Always a non-negative, finite Decimal.
Amount = Decimal

# Genetic data of an asset.
Dna = bytes


# ============================================================================
# PROTOCOLS
# ============================================================================

@runtime_checkable
class RegistryView(Protocol):
    """
    Read-only interface to registry state.

    Functions accepting a RegistryView declare that they only query state.
    AssetRegistry implements this protocol but also provides the mutating
    entry points.
    """

    def get_asset(self, asset_id: AssetId) -> Optional['Asset']:
        """Return the asset record, or None if it does not exist."""
        ...

    def get_owner(self, asset_id: AssetId) -> Optional[AccountId]:
        """Return the current owner of an asset, or None."""
        ...

    def get_price(self, asset_id: AssetId) -> Optional[Amount]:
        """Return the asking price of a listed asset, or None if not listed."""
        ...

    def count(self) -> int:
        """Return the next unassigned asset id (number of assets created)."""
        ...

    def list_owned(self, owner: AccountId) -> List[AssetId]:
        """Return the ids held by an owner, in ownership-index order."""
        ...


# ============================================================================
# ENUMS
# ============================================================================

class ExecuteResult(Enum):
    """
    Outcome of an extrinsic execution attempt.

    APPLIED: The call passed every check and all of its writes were committed.
    REJECTED: The call failed a check; no state was changed.
    """
    APPLIED = "applied"
    REJECTED = "rejected"


# ============================================================================
# EXCEPTIONS
# ============================================================================

class RegistryError(Exception):
    """Base exception for all registry failures."""
    pass


class AssetNotFound(RegistryError):
    """Raised when an operation refers to an asset id that has no record."""
    pass


class SameParent(RegistryError):
    """Raised when breeding an asset with itself."""
    pass


class NotOwner(RegistryError):
    """Raised when the caller does not own the asset it is acting on."""
    pass


class CounterOverflow(RegistryError):
    """Raised when the asset id space is exhausted."""
    pass


class NotForSale(RegistryError):
    """Raised when buying an asset that has no asking price."""
    pass


class PriceTooLow(RegistryError):
    """Raised when the buyer's maximum price is below the asking price."""
    pass


class InsufficientFunds(RegistryError):
    """Raised by the currency ledger when the payer cannot cover a transfer."""
    pass


# ============================================================================
# VALUE HELPERS
# ============================================================================

def to_amount(value: Any) -> Amount:
    """
    Convert a value to a currency Amount.

    Ints and strings are converted exactly; floats go through str() so that
    10.1 becomes Decimal("10.1") rather than its binary expansion.

    Raises:
        ValueError: If the value is negative, NaN or infinite.
    """
    if isinstance(value, bool):
        raise ValueError(f"Amount must be numeric, got {value!r}")
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    if value.is_nan() or value.is_infinite():
        raise ValueError(f"Amount must be finite, got {value}")
    if value < 0:
        raise ValueError(f"Amount cannot be negative, got {value}")
    return value


def _check_asset_id(asset_id: Any) -> None:
    if isinstance(asset_id, bool) or not isinstance(asset_id, int):
        raise ValueError(f"Asset id must be int, got {type(asset_id).__name__}")
    if asset_id < 0:
        raise ValueError(f"Asset id cannot be negative, got {asset_id}")


# ============================================================================
# CORE DATA STRUCTURES
# ============================================================================

@dataclass(frozen=True, slots=True)
class Asset:
    """
    A collectible asset record.

    Attributes:
        asset_id: Dense index assigned at creation.
        dna: Immutable genetic data, exactly DNA_LENGTH bytes.
    """
    asset_id: AssetId
    dna: Dna

    def __post_init__(self):
        _check_asset_id(self.asset_id)
        if isinstance(self.dna, (bytearray, memoryview)):
            object.__setattr__(self, 'dna', bytes(self.dna))
        if not isinstance(self.dna, bytes):
            raise ValueError(f"Asset dna must be bytes, got {type(self.dna).__name__}")
        if len(self.dna) != DNA_LENGTH:
            raise ValueError(f"Asset dna must be {DNA_LENGTH} bytes, got {len(self.dna)}")

    def __repr__(self) -> str:
        return f"Asset(#{self.asset_id} dna={self.dna.hex()})"


@dataclass(frozen=True, slots=True)
class LinkedItem:
    """
    A node of the ownership index.

    For a member node, prev/next are the neighbouring asset ids (None at the
    ends). For the sentinel node, next is the head and prev is the tail.
    """
    prev: Optional[AssetId] = None
    next: Optional[AssetId] = None

    def is_empty(self) -> bool:
        """Return True if this node links to nothing (an empty sentinel)."""
        return self.prev is None and self.next is None


# Sentinel value describing an empty list. Absence of the sentinel key reads
# identically.
EMPTY_ITEM = LinkedItem()


@dataclass(frozen=True, slots=True)
class ExecutionContext:
    """
    Position of an extrinsic within the replicated sequence.

    Attributes:
        block_number: Height of the block being built.
        extrinsic_index: Position of the extrinsic within that block.
    """
    block_number: int = 0
    extrinsic_index: int = 0

    def __post_init__(self):
        if self.block_number < 0:
            raise ValueError(f"block_number cannot be negative, got {self.block_number}")
        if self.extrinsic_index < 0:
            raise ValueError(f"extrinsic_index cannot be negative, got {self.extrinsic_index}")

    def next_extrinsic(self) -> ExecutionContext:
        return ExecutionContext(self.block_number, self.extrinsic_index + 1)

    def next_block(self) -> ExecutionContext:
        return ExecutionContext(self.block_number + 1, 0)


# ============================================================================
# EVENTS
# ============================================================================

@dataclass(frozen=True, slots=True)
class Created:
    """An asset was created or bred. (owner, asset_id)"""
    owner: AccountId
    asset_id: AssetId


@dataclass(frozen=True, slots=True)
class Transferred:
    """An asset changed hands by gift. (source, dest, asset_id)"""
    source: AccountId
    dest: AccountId
    asset_id: AssetId


@dataclass(frozen=True, slots=True)
class Ask:
    """An asset was listed (price set) or delisted (price None)."""
    owner: AccountId
    asset_id: AssetId
    price: Optional[Amount]


@dataclass(frozen=True, slots=True)
class Sold:
    """An asset was bought at its asking price. (source, dest, asset_id, price)"""
    source: AccountId
    dest: AccountId
    asset_id: AssetId
    price: Amount


Event = Union[Created, Transferred, Ask, Sold]


# ============================================================================
# CALLS AND THE EXTRINSIC LOG
# ============================================================================

@dataclass(frozen=True, slots=True)
class Call:
    """
    A signed request to run one of the registry's mutating operations.

    Attributes:
        sender: The signing account (the caller of the operation).
        function: One of CALL_FUNCTIONS.
        args: Positional arguments after the caller, e.g. (to, asset_id) for transfer.

    Raises:
        ValueError: If the function is unknown, an account is None, or any
                    field has no deterministic encoding.
    """
    sender: AccountId
    function: str
    args: Tuple[Any, ...] = ()

    def __post_init__(self):
        if self.function not in CALL_FUNCTIONS:
            raise ValueError(f"Unknown call function: {self.function!r}")
        object.__setattr__(self, 'args', tuple(self.args))
        check_account(self.sender)
        if self.function == CALL_TRANSFER and self.args:
            check_account(self.args[0])
        _canonicalize(self.args)

    def __repr__(self) -> str:
        args = ", ".join(repr(a) for a in self.args)
        return f"Call({self.sender!r}.{self.function}({args}))"


def create_call(sender: AccountId) -> Call:
    return Call(sender, CALL_CREATE)


def breed_call(sender: AccountId, asset_id_1: AssetId, asset_id_2: AssetId) -> Call:
    return Call(sender, CALL_BREED, (asset_id_1, asset_id_2))


def transfer_call(sender: AccountId, to: AccountId, asset_id: AssetId) -> Call:
    return Call(sender, CALL_TRANSFER, (to, asset_id))


def ask_call(sender: AccountId, asset_id: AssetId, price: Optional[Any]) -> Call:
    return Call(sender, CALL_ASK, (asset_id, price))


def buy_call(sender: AccountId, asset_id: AssetId, max_price: Any) -> Call:
    return Call(sender, CALL_BUY, (asset_id, max_price))


@dataclass(frozen=True, slots=True)
class Extrinsic:
    """
    Immutable record of one execution attempt, applied or rejected.

    Attributes:
        call: The call that was submitted.
        context: Block number and extrinsic index it ran at.
        result: APPLIED or REJECTED.
        event: The event emitted on success.
        reason: Failure kind name and message on rejection.
    """
    call: Call
    context: ExecutionContext
    result: ExecuteResult
    event: Optional[Event] = None
    reason: str = ""

    @property
    def applied(self) -> bool:
        return self.result == ExecuteResult.APPLIED

    def __repr__(self) -> str:
        where = f"{self.context.block_number}-{self.context.extrinsic_index}"
        if self.applied:
            return f"Extrinsic({where} {self.call!r} -> {self.event!r})"
        return f"Extrinsic({where} {self.call!r} -> REJECTED {self.reason})"


# ============================================================================
# CANONICAL ENCODING
# ============================================================================

def _normalize_decimal(d: Decimal) -> str:
    """
    Normalize a Decimal to a canonical string representation.

    Decimal("10"), Decimal("10.0") and Decimal("1E+1") all become "10".
    """
    if not d.is_finite():
        return str(d)
    normalized = d.normalize()
    if normalized == normalized.to_integral_value():
        return str(int(normalized))
    return format(normalized, 'f')


def _canonicalize(value: Any) -> str:
    """
    Produce a canonical string representation of a value for hashing.

    Independent of dict insertion order, set iteration order and Decimal
    representation, and type-tagged so that 1, "1" and b"\\x01" never collide.

    Raises:
        ValueError: If the value has no deterministic encoding (for example
                    an object whose repr contains a memory address).
    """
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, Decimal):
        return f"D:{_normalize_decimal(value)}"
    if isinstance(value, (int, float)):
        return f"N:{value}"
    if isinstance(value, str):
        return f"S:{value}"
    if isinstance(value, (bytes, bytearray)):
        return f"B:{bytes(value).hex()}"
    if isinstance(value, LinkedItem):
        return f"L:{_canonicalize(value.prev)}:{_canonicalize(value.next)}"
    if isinstance(value, Asset):
        return f"A:{value.asset_id}:{value.dna.hex()}"
    if isinstance(value, dict):
        items = sorted(
            ((_canonicalize(k), _canonicalize(v)) for k, v in value.items())
        )
        serialized = ",".join(f"{k}:{v}" for k, v in items)
        return f"{{{serialized}}}"
    if isinstance(value, (list, tuple)):
        serialized = ",".join(_canonicalize(item) for item in value)
        return f"[{serialized}]"
    if isinstance(value, (set, frozenset)):
        # Sorted by encoded form; iteration order depends on hash randomisation
        serialized = ",".join(sorted(_canonicalize(item) for item in value))
        return f"<{serialized}>"
    raise ValueError(f"No deterministic encoding for {type(value).__name__}: {value!r}")


def check_account(account: Any) -> None:
    """
    Validate an account id.

    Raises:
        ValueError: If the account is None or has no deterministic encoding.
    """
    if account is None:
        raise ValueError("Account id cannot be None")
    _canonicalize(account)


def encode(value: Any) -> bytes:
    """Encode a value to its canonical byte form."""
    return _canonicalize(value).encode()


