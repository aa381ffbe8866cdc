"""
linked_list.py - Per-owner doubly linked list over a flat key-value store

A flat store cannot splice into a stored sequence, so each owner's holdings
are kept as an intrusive doubly linked list. Every node is its own storage
entry keyed by (owner, item):

    (owner, None)   sentinel: next = head, prev = tail
    (owner, item)   member:   prev/next = neighbouring items (None at the ends)

append() and remove() touch at most four keys regardless of list length.
A sentinel of LinkedItem(None, None) and a missing sentinel both mean empty.
"""

from __future__ import annotations
from typing import Generic, Hashable, Iterator, List, Optional, TypeVar

from .core import EMPTY_ITEM, LinkedItem
from .store import KeyValueStore, PREFIX_OWNED_ASSETS


K = TypeVar("K", bound=Hashable)
V = TypeVar("V", bound=Hashable)


class OwnershipIndex(Generic[K, V]):
    """
    Enumerable index of the items each key (owner) holds.

    Parameterized over the owner type K and the linked item type V. Items are
    kept in insertion order; removal leaves the order of the rest unchanged.

    Preconditions:
        - append(owner, item): item is not a member of any owner's list.
    """

    def __init__(self, kv: KeyValueStore, prefix: str = PREFIX_OWNED_ASSETS):
        self.kv = kv
        self.prefix = prefix

    # ========================================================================
    # READS
    # ========================================================================

    def get(self, owner: K, item: Optional[V]) -> Optional[LinkedItem]:
        """Return the raw node at (owner, item), or None if absent."""
        return self.kv.get(self.prefix, (owner, item))

    def sentinel(self, owner: K) -> LinkedItem:
        """Return the owner's sentinel, reading absence as an empty list."""
        return self.get(owner, None) or EMPTY_ITEM

    def contains(self, owner: K, item: V) -> bool:
        return self.kv.contains(self.prefix, (owner, item))

    def is_empty(self, owner: K) -> bool:
        return self.sentinel(owner).is_empty()

    def iter(self, owner: K) -> Iterator[V]:
        """Traverse the owner's list from head to tail."""
        current = self.sentinel(owner).next
        while current is not None:
            yield current
            current = self._node(owner, current).next

    def iter_reverse(self, owner: K) -> Iterator[V]:
        """Traverse the owner's list from tail to head."""
        current = self.sentinel(owner).prev
        while current is not None:
            yield current
            current = self._node(owner, current).prev

    def items(self, owner: K) -> List[V]:
        return list(self.iter(owner))

    def _node(self, owner: K, item: V) -> LinkedItem:
        node = self.get(owner, item)
        if node is None:
            raise KeyError(f"Ownership index corrupt: {owner!r} links to missing item {item!r}")
        return node

    def _put(self, owner: K, item: Optional[V], node: LinkedItem) -> None:
        self.kv.insert(self.prefix, (owner, item), node)

    # ========================================================================
    # MUTATIONS
    # ========================================================================

    def append(self, owner: K, item: V) -> None:
        """Link item at the tail of the owner's list."""
        head = self.sentinel(owner)
        old_tail = head.prev

        if old_tail is None:
            self._put(owner, None, LinkedItem(prev=item, next=item))
            self._put(owner, item, LinkedItem(prev=None, next=None))
            return

        tail_node = self._node(owner, old_tail)
        self._put(owner, old_tail, LinkedItem(prev=tail_node.prev, next=item))
        self._put(owner, item, LinkedItem(prev=old_tail, next=None))
        self._put(owner, None, LinkedItem(prev=item, next=head.next))

    def remove(self, owner: K, item: V) -> None:
        """Unlink item from the owner's list. No-op if it is not a member."""
        node = self.get(owner, item)
        if node is None:
            return
        p, n = node.prev, node.next

        # A single-member list rewrites the sentinel twice; read it fresh each time.
        if p is not None:
            prev_node = self._node(owner, p)
            self._put(owner, p, LinkedItem(prev=prev_node.prev, next=n))
        else:
            head = self.sentinel(owner)
            self._put(owner, None, LinkedItem(prev=head.prev, next=n))

        if n is not None:
            next_node = self._node(owner, n)
            self._put(owner, n, LinkedItem(prev=p, next=next_node.next))
        else:
            head = self.sentinel(owner)
            self._put(owner, None, LinkedItem(prev=p, next=head.next))

        self.kv.remove(self.prefix, (owner, item))
