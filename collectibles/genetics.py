"""
genetics.py - DNA recombination

Breeding picks every bit of the child's DNA from one of the two parents:

    child = (selector AND parent1) OR (NOT selector AND parent2)

A selector bit of 1 takes parent1's bit, 0 takes parent2's bit. Each byte is
independent, so the whole 16-byte array is combined in one vectorised step.
"""

import numpy as np

from .core import DNA_LENGTH, Dna


def _as_array(dna: bytes, name: str) -> np.ndarray:
    if len(dna) != DNA_LENGTH:
        raise ValueError(f"{name} must be {DNA_LENGTH} bytes, got {len(dna)}")
    return np.frombuffer(bytes(dna), dtype=np.uint8)


def combine_dna(dna1: bytes, dna2: bytes, selector: bytes) -> Dna:
    """
    Combine two parents' DNA bit by bit under a selector mask.

    Args:
        dna1: DNA of the first parent (chosen where the selector bit is 1)
        dna2: DNA of the second parent (chosen where the selector bit is 0)
        selector: Random mask, DNA_LENGTH bytes

    Returns:
        The child's DNA as bytes

    Example:
        >>> combine_dna(b"\\xff" * 16, b"\\x00" * 16, b"\\x0f" * 16)
        b'\\x0f\\x0f\\x0f\\x0f\\x0f\\x0f\\x0f\\x0f\\x0f\\x0f\\x0f\\x0f\\x0f\\x0f\\x0f\\x0f'
    """
    p1 = _as_array(dna1, "dna1")
    p2 = _as_array(dna2, "dna2")
    sel = _as_array(selector, "selector")
    child = np.bitwise_or(np.bitwise_and(sel, p1), np.bitwise_and(np.invert(sel), p2))
    return child.astype(np.uint8).tobytes()


def inherited_bits(child: bytes, dna1: bytes, dna2: bytes) -> bool:
    """
    Check that every bit of child comes from dna1 or dna2.

    Where the parents agree the child must agree with them; where they differ
    either bit is allowed.
    """
    c = _as_array(child, "child")
    p1 = _as_array(dna1, "dna1")
    p2 = _as_array(dna2, "dna2")
    agreed = np.invert(np.bitwise_xor(p1, p2))
    return bool(np.all(np.bitwise_and(agreed, np.bitwise_xor(c, p1)) == 0))
