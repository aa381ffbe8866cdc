"""
randomness.py - Deterministic randomness for genetic data

Independent executors must derive identical DNA for the same extrinsic, so
randomness is a pure function of replicated inputs, never system entropy.

Classes:
- RandomnessSource: Protocol defining the randomness interface
- BlockRandomness: BLAKE2b-128 over (seed, sender, extrinsic index, block number)
- StaticRandomness: Replays a fixed list of values (for tests and fixtures)
"""

from __future__ import annotations
from typing import List, Protocol, Sequence, runtime_checkable
import hashlib

from .core import AccountId, DEFAULT_SEED, DNA_LENGTH, ExecutionContext, encode


@runtime_checkable
class RandomnessSource(Protocol):
    """
    Protocol for randomness sources.

    random_value() must return DNA_LENGTH bytes and must be deterministic in
    its inputs: the same sender at the same context always gets the same bytes.
    """

    def random_value(self, sender: AccountId, context: ExecutionContext) -> bytes:
        ...


class BlockRandomness:
    """
    Randomness derived from the runtime's seed and the extrinsic's position.

    The payload (seed, sender, extrinsic_index, block_number) is canonically
    encoded and hashed with BLAKE2b at a 16-byte digest size. Two calls by the
    same sender in the same extrinsic get the same value; anything else differs.
    """

    def __init__(self, seed: bytes = DEFAULT_SEED):
        if not isinstance(seed, (bytes, bytearray)):
            raise ValueError(f"Seed must be bytes, got {type(seed).__name__}")
        self.seed = bytes(seed)

    def random_value(self, sender: AccountId, context: ExecutionContext) -> bytes:
        payload = encode((self.seed, sender, context.extrinsic_index, context.block_number))
        return hashlib.blake2b(payload, digest_size=DNA_LENGTH).digest()

    def __repr__(self):
        return f"BlockRandomness(seed={self.seed.hex()[:16]}...)"


class StaticRandomness:
    """
    Randomness source that hands out a fixed sequence of values in order.

    After the last value it starts again from the first. Useful for pinning the
    DNA of created assets and the breeding selector in tests.
    """

    def __init__(self, values: Sequence[bytes]):
        if not values:
            raise ValueError("StaticRandomness needs at least one value")
        for value in values:
            if len(value) != DNA_LENGTH:
                raise ValueError(f"Random values must be {DNA_LENGTH} bytes, got {len(value)}")
        self.values: List[bytes] = [bytes(v) for v in values]
        self.calls = 0

    def random_value(self, sender: AccountId, context: ExecutionContext) -> bytes:
        value = self.values[self.calls % len(self.values)]
        self.calls += 1
        return value

    def __repr__(self):
        return f"StaticRandomness({len(self.values)} values)"
