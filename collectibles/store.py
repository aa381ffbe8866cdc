"""
store.py - Flat key-value storage for the asset registry

The replicated runtime only offers get/insert/remove on opaque keys. This
module models that store and layers the registry's typed maps on top of it.

Classes:
- KeyValueStore: Flat map keyed by (prefix, key) with transactional overlays
- AssetStore: Typed accessors for asset records, owners, prices and the counter

Writes made inside KeyValueStore.transaction() are buffered and only reach the
underlying map when the block exits normally. Any exception discards them.
"""

from __future__ import annotations
from contextlib import contextmanager
from typing import Any, Dict, Hashable, Iterator, List, Optional, Tuple
import copy

from .core import AccountId, Amount, Asset, AssetId


# Storage prefixes. Each typed map lives under its own prefix in the flat store.
PREFIX_ASSETS = "Assets"
PREFIX_ASSETS_COUNT = "AssetsCount"
PREFIX_ASSET_OWNERS = "AssetOwners"
PREFIX_ASSET_PRICES = "AssetPrices"
PREFIX_OWNED_ASSETS = "OwnedAssets"

StorageKey = Tuple[str, Hashable]

# Marks a key removed inside an open overlay.
_REMOVED = object()


class KeyValueStore:
    """
    Flat key-value store with nested all-or-nothing write overlays.

    Keys are (prefix, key) pairs. Reads see the innermost open overlay first,
    then enclosing overlays, then committed data.

    Thread Safety:
        Not thread-safe. The external sequencer never interleaves operations.
    """

    def __init__(self, data: Optional[Dict[StorageKey, Any]] = None):
        self._data: Dict[StorageKey, Any] = dict(data or {})
        self._overlays: List[Dict[StorageKey, Any]] = []

    def get(self, prefix: str, key: Hashable, default: Any = None) -> Any:
        storage_key = (prefix, key)
        for overlay in reversed(self._overlays):
            if storage_key in overlay:
                value = overlay[storage_key]
                return default if value is _REMOVED else value
        return self._data.get(storage_key, default)

    def contains(self, prefix: str, key: Hashable) -> bool:
        return self.get(prefix, key, _REMOVED) is not _REMOVED

    def insert(self, prefix: str, key: Hashable, value: Any) -> None:
        if value is None:
            raise ValueError(f"Cannot store None under {prefix}:{key!r}; use remove()")
        self._write((prefix, key), value)

    def remove(self, prefix: str, key: Hashable) -> None:
        self._write((prefix, key), _REMOVED)

    def _write(self, storage_key: StorageKey, value: Any) -> None:
        if self._overlays:
            self._overlays[-1][storage_key] = value
        elif value is _REMOVED:
            self._data.pop(storage_key, None)
        else:
            self._data[storage_key] = value

    @property
    def in_transaction(self) -> bool:
        return bool(self._overlays)

    @contextmanager
    def transaction(self) -> Iterator[KeyValueStore]:
        """
        Buffer writes until the block exits.

        On normal exit the overlay is merged into the enclosing overlay (or the
        committed data). On any exception it is dropped and the exception
        propagates.

        Example:
            with store.transaction():
                store.insert("AssetOwners", 0, "alice")
                raise NotOwner(...)   # the insert above is discarded
        """
        self._overlays.append({})
        try:
            yield self
        except BaseException:
            self._overlays.pop()
            raise
        overlay = self._overlays.pop()
        for storage_key, value in overlay.items():
            self._write(storage_key, value)

    def items(self) -> List[Tuple[StorageKey, Any]]:
        """
        Return every committed entry.

        Raises:
            RuntimeError: If called while an overlay is open.
        """
        if self._overlays:
            raise RuntimeError("Cannot enumerate the store inside an open transaction")
        return list(self._data.items())

    def prefix_items(self, prefix: str) -> List[Tuple[Hashable, Any]]:
        return [(key, value) for (p, key), value in self.items() if p == prefix]

    def __len__(self) -> int:
        return len(self._data)

    def clone(self) -> KeyValueStore:
        """Return an independent copy of the committed data."""
        if self._overlays:
            raise RuntimeError("Cannot clone the store inside an open transaction")
        return KeyValueStore(copy.deepcopy(self._data))


class AssetStore:
    """Typed maps for asset records, owner pointers, sale prices and the counter."""

    def __init__(self, kv: KeyValueStore):
        self.kv = kv

    # Assets: asset_id -> Asset
    def asset(self, asset_id: AssetId) -> Optional[Asset]:
        return self.kv.get(PREFIX_ASSETS, asset_id)

    def insert_asset(self, asset: Asset) -> None:
        self.kv.insert(PREFIX_ASSETS, asset.asset_id, asset)

    # AssetsCount: the next unassigned id
    def count(self) -> int:
        return self.kv.get(PREFIX_ASSETS_COUNT, None, 0)

    def set_count(self, value: int) -> None:
        self.kv.insert(PREFIX_ASSETS_COUNT, None, value)

    # AssetOwners: asset_id -> AccountId
    def owner(self, asset_id: AssetId) -> Optional[AccountId]:
        return self.kv.get(PREFIX_ASSET_OWNERS, asset_id)

    def set_owner(self, asset_id: AssetId, owner: AccountId) -> None:
        self.kv.insert(PREFIX_ASSET_OWNERS, asset_id, owner)

    # AssetPrices: asset_id -> Amount; absent means not for sale
    def price(self, asset_id: AssetId) -> Optional[Amount]:
        return self.kv.get(PREFIX_ASSET_PRICES, asset_id)

    def set_price(self, asset_id: AssetId, price: Amount) -> None:
        self.kv.insert(PREFIX_ASSET_PRICES, asset_id, price)

    def remove_price(self, asset_id: AssetId) -> None:
        self.kv.remove(PREFIX_ASSET_PRICES, asset_id)
