"""
registry.py - Deterministic Collectible Asset Registry

The AssetRegistry class is the central state manager for collectible assets.
It is the only module that mutates registry state, and it only does so through
five operations: create, breed, transfer, ask (list for sale) and buy.

Key responsibilities:
    - Implements RegistryView protocol for read-only access
    - Applies every operation atomically: all checks run before the first
      write, and writes are buffered in a store overlay until the operation
      completes
    - Keeps the asset, owner, price and ownership-index maps consistent
    - Emits one event per applied operation and logs every extrinsic, applied
      or rejected, so the whole history can be replayed bit for bit
"""

from __future__ import annotations
from typing import Any, Callable, Dict, List, Optional, Set
import copy
import hashlib

from .core import (
    # Types
    AccountId, Amount, Asset, AssetId, Call, Event, ExecuteResult,
    ExecutionContext, Extrinsic,
    Created, Transferred, Ask, Sold,
    # Constants
    MAX_ASSET_ID, CALL_CREATE, CALL_BREED, CALL_TRANSFER, CALL_ASK, CALL_BUY,
    # Exceptions
    RegistryError, AssetNotFound, SameParent, NotOwner, CounterOverflow,
    NotForSale, PriceTooLow,
    # Helper functions
    to_amount, _canonicalize,
)
from .currency import Balances, CurrencyLedger
from .genetics import combine_dna
from .linked_list import OwnershipIndex
from .randomness import BlockRandomness, RandomnessSource
from .store import (
    AssetStore, KeyValueStore,
    PREFIX_ASSETS, PREFIX_ASSET_OWNERS, PREFIX_ASSET_PRICES, PREFIX_OWNED_ASSETS,
)


class AssetRegistry:
    """
    Ownership registry for collectible assets with a minimal marketplace.

    Implements the RegistryView protocol, so the registry can be passed to
    functions that only query state.

    Design Principles:
        - Always validates: every failure condition is checked before the
          first write. A failing operation raises a RegistryError subclass
          and leaves state untouched.
        - Always logs: every extrinsic is recorded in extrinsic_log, enabling
          replay() to rebuild the registry from genesis.

    Thread Safety:
        Not thread-safe. Operations are applied one at a time in the order the
        external sequencer chooses.

    Example:
        registry = AssetRegistry("main", currency=Balances({1: 10, 2: 20}))
        created = registry.create(1)
        registry.ask(1, created.asset_id, 10)
        registry.buy(2, created.asset_id, 10)
        registry.get_owner(created.asset_id)   # 2
    """

    def __init__(
        self,
        name: str,
        currency: Optional[CurrencyLedger] = None,
        randomness: Optional[RandomnessSource] = None,
        max_asset_id: int = MAX_ASSET_ID,
        verbose: bool = True,
        test_mode: bool = False,
        initial_block: int = 0,
    ):
        """
        Create a registry.

        Args:
            name: Registry identifier
            currency: Ledger used to settle sales (default: empty Balances)
            randomness: Source of DNA and breeding selectors (default: BlockRandomness)
            max_asset_id: Largest representable asset id; never assigned
            verbose: Print one line per extrinsic (default: True)
            test_mode: Enable test mode to allow set_counter() calls (default: False)
            initial_block: Block number of the first extrinsic
        """
        if max_asset_id < 1:
            raise ValueError(f"max_asset_id must be at least 1, got {max_asset_id}")
        self.name = name
        self.kv = KeyValueStore()
        self.store = AssetStore(self.kv)
        self.index: OwnershipIndex[AccountId, AssetId] = OwnershipIndex(self.kv)
        self.currency: CurrencyLedger = currency if currency is not None else Balances()
        self.randomness: RandomnessSource = randomness if randomness is not None else BlockRandomness()
        # Pristine copy of the randomness source for replay()
        self._initial_randomness = copy.deepcopy(self.randomness)
        self.max_asset_id = max_asset_id
        self.verbose = verbose
        self._test_mode = test_mode
        self._context = ExecutionContext(block_number=initial_block)
        self.events: List[Event] = []
        self.extrinsic_log: List[Extrinsic] = []

    # ========================================================================
    # RegistryView PROTOCOL IMPLEMENTATION (read-only methods)
    # ========================================================================

    def get_asset(self, asset_id: AssetId) -> Optional[Asset]:
        """Return the asset record, or None if no asset has this id."""
        return self.store.asset(asset_id)

    def get_owner(self, asset_id: AssetId) -> Optional[AccountId]:
        """Return the owner of an asset, or None if it does not exist."""
        return self.store.owner(asset_id)

    def get_price(self, asset_id: AssetId) -> Optional[Amount]:
        """Return the asking price, or None if the asset is not for sale."""
        return self.store.price(asset_id)

    def count(self) -> int:
        """Return the next unassigned asset id."""
        return self.store.count()

    def list_owned(self, owner: AccountId) -> List[AssetId]:
        """
        Return the ids an owner holds, oldest acquisition first.

        Walks the ownership index from the owner's sentinel, so the cost is
        proportional to the owner's holdings only.
        """
        return self.index.items(owner)

    def list_owned_reverse(self, owner: AccountId) -> List[AssetId]:
        """Return the ids an owner holds, newest acquisition first."""
        return list(self.index.iter_reverse(owner))

    def free_balance(self, account: AccountId) -> Amount:
        """Return an account's currency balance."""
        return self.currency.free_balance(account)

    @property
    def context(self) -> ExecutionContext:
        """Block number and extrinsic index the next extrinsic will run at."""
        return self._context

    # ========================================================================
    # EXECUTION CONTEXT
    # ========================================================================

    def advance_block(self) -> ExecutionContext:
        """
        Move to the next block.

        The extrinsic index restarts at 0.

        Returns:
            The new context
        """
        self._context = self._context.next_block()
        return self._context

    # ========================================================================
    # OPERATIONS (Mutating)
    # ========================================================================

    def create(self, caller: AccountId) -> Created:
        """
        Create a new asset with random DNA, owned by caller.

        Raises:
            CounterOverflow: If the asset id space is exhausted
        """
        return self._apply(Call(caller, CALL_CREATE))

    def breed(self, caller: AccountId, asset_id_1: AssetId, asset_id_2: AssetId) -> Created:
        """
        Create a child of two assets the caller owns.

        Every bit of the child's DNA comes from parent 1 where the random
        selector bit is 1 and from parent 2 where it is 0.

        Raises:
            AssetNotFound: If either parent does not exist
            SameParent: If both ids are the same
            NotOwner: If caller does not own parent 1, or parent 2
            CounterOverflow: If the asset id space is exhausted
        """
        return self._apply(Call(caller, CALL_BREED, (asset_id_1, asset_id_2)))

    def transfer(self, caller: AccountId, to: AccountId, asset_id: AssetId) -> Transferred:
        """
        Give an asset to another account.

        An existing asking price stays in place.

        Raises:
            NotOwner: If caller does not hold the asset
        """
        return self._apply(Call(caller, CALL_TRANSFER, (to, asset_id)))

    def ask(self, caller: AccountId, asset_id: AssetId, price: Optional[Any]) -> Ask:
        """
        List an asset for sale at price, or delist it when price is None.

        Raises:
            NotOwner: If caller does not hold the asset
            ValueError: If price is negative or not finite
        """
        return self._apply(Call(caller, CALL_ASK, (asset_id, price)))

    list_for_sale = ask

    def buy(self, caller: AccountId, asset_id: AssetId, max_price: Any) -> Sold:
        """
        Buy a listed asset, paying its asking price to the current owner.

        Raises:
            AssetNotFound: If the asset does not exist
            NotForSale: If the asset has no asking price
            PriceTooLow: If max_price is below the asking price
            InsufficientFunds: If caller cannot pay the asking price
        """
        return self._apply(Call(caller, CALL_BUY, (asset_id, max_price)))

    def execute(self, call: Call) -> ExecuteResult:
        """
        Execute a Call as one extrinsic.

        Args:
            call: The call to apply

        Returns:
            ExecuteResult.APPLIED if every write was committed
            ExecuteResult.REJECTED if a check failed (state unchanged)
        """
        try:
            self._apply(call)
        except RegistryError:
            return ExecuteResult.REJECTED
        return ExecuteResult.APPLIED

    def set_counter(self, value: int) -> None:
        """
        Set the next-id counter directly.

        WARNING: This bypasses normal allocation and is not recorded in the
        extrinsic log, so replay() will not reproduce it. Only available in
        test mode.

        Raises:
            RegistryError: If called when test_mode is False
        """
        if not self._test_mode:
            raise RegistryError(
                "set_counter() is disabled in production mode. "
                "Set test_mode=True when creating AssetRegistry for testing."
            )
        if value < 0:
            raise ValueError(f"Counter cannot be negative, got {value}")
        self.store.set_count(value)

    # ========================================================================
    # EXTRINSIC EXECUTION
    # ========================================================================

    def _apply(self, call: Call) -> Event:
        """
        Run one call inside a store transaction and record the outcome.

        Malformed arguments (ValueError) propagate without being recorded.
        """
        handler = self._handlers()[call.function]
        context = self._context
        try:
            with self.kv.transaction():
                event = handler(call.sender, context, *call.args)
        except RegistryError as e:
            self._record(Extrinsic(
                call=call,
                context=context,
                result=ExecuteResult.REJECTED,
                reason=f"{type(e).__name__}: {e}",
            ))
            raise
        self.events.append(event)
        self._record(Extrinsic(
            call=call,
            context=context,
            result=ExecuteResult.APPLIED,
            event=event,
        ))
        return event

    def _handlers(self) -> Dict[str, Callable[..., Event]]:
        return {
            CALL_CREATE: self._do_create,
            CALL_BREED: self._do_breed,
            CALL_TRANSFER: self._do_transfer,
            CALL_ASK: self._do_ask,
            CALL_BUY: self._do_buy,
        }

    def _record(self, extrinsic: Extrinsic) -> None:
        self.extrinsic_log.append(extrinsic)
        self._context = self._context.next_extrinsic()
        if self.verbose:
            if extrinsic.applied:
                print(f"✓ APPLIED [{self.name}] {extrinsic!r}")
            else:
                print(f"✗ REJECTED [{self.name}] {extrinsic.call!r}: {extrinsic.reason}")

    # ------------------------------------------------------------------------
    # Handlers. Each one performs every check before its first write.
    # ------------------------------------------------------------------------

    def _do_create(self, caller: AccountId, context: ExecutionContext) -> Created:
        asset_id = self._next_asset_id()
        dna = self.randomness.random_value(caller, context)
        self._insert_asset(caller, Asset(asset_id, dna))
        return Created(caller, asset_id)

    def _do_breed(
        self,
        caller: AccountId,
        context: ExecutionContext,
        asset_id_1: AssetId,
        asset_id_2: AssetId,
    ) -> Created:
        parent1 = self.store.asset(asset_id_1)
        parent2 = self.store.asset(asset_id_2)
        if parent1 is None:
            raise AssetNotFound(f"Invalid asset_id_1: {asset_id_1}")
        if parent2 is None:
            raise AssetNotFound(f"Invalid asset_id_2: {asset_id_2}")
        if asset_id_1 == asset_id_2:
            raise SameParent(f"Needs different parents, got {asset_id_1} twice")
        if self.store.owner(asset_id_1) != caller:
            raise NotOwner(f"{caller!r} does not own asset {asset_id_1}")
        if self.store.owner(asset_id_2) != caller:
            raise NotOwner(f"{caller!r} does not own asset {asset_id_2}")

        asset_id = self._next_asset_id()
        selector = self.randomness.random_value(caller, context)
        dna = combine_dna(parent1.dna, parent2.dna, selector)
        self._insert_asset(caller, Asset(asset_id, dna))
        return Created(caller, asset_id)

    def _do_transfer(
        self,
        caller: AccountId,
        context: ExecutionContext,
        to: AccountId,
        asset_id: AssetId,
    ) -> Transferred:
        self._ensure_holds(caller, asset_id, "transfer")
        self._move(caller, to, asset_id)
        return Transferred(caller, to, asset_id)

    def _do_ask(
        self,
        caller: AccountId,
        context: ExecutionContext,
        asset_id: AssetId,
        price: Optional[Any],
    ) -> Ask:
        self._ensure_holds(caller, asset_id, "set price for")
        if price is not None:
            price = to_amount(price)
        if price is None:
            self.store.remove_price(asset_id)
        else:
            self.store.set_price(asset_id, price)
        return Ask(caller, asset_id, price)

    def _do_buy(
        self,
        caller: AccountId,
        context: ExecutionContext,
        asset_id: AssetId,
        max_price: Any,
    ) -> Sold:
        owner = self.store.owner(asset_id)
        if owner is None:
            raise AssetNotFound(f"Asset {asset_id} does not exist")
        price = self.store.price(asset_id)
        if price is None:
            raise NotForSale(f"Asset {asset_id} is not for sale")
        max_price = to_amount(max_price)
        if max_price < price:
            raise PriceTooLow(f"Asset {asset_id} costs {price}, offered at most {max_price}")

        # Last fallible step: caller and owner were validated by Call, and
        # the writes below cannot fail on a consistent store.
        self.currency.transfer(caller, owner, price)

        self.store.remove_price(asset_id)
        self._move(owner, caller, asset_id)
        return Sold(owner, caller, asset_id, price)

    # ------------------------------------------------------------------------
    # Shared steps
    # ------------------------------------------------------------------------

    def _ensure_holds(self, caller: AccountId, asset_id: AssetId, action: str) -> None:
        if not self.index.contains(caller, asset_id):
            raise NotOwner(f"Only owner can {action} asset {asset_id}")

    def _next_asset_id(self) -> AssetId:
        asset_id = self.store.count()
        if asset_id >= self.max_asset_id:
            raise CounterOverflow(f"Assets count overflow at {asset_id}")
        return asset_id

    def _insert_asset(self, owner: AccountId, asset: Asset) -> None:
        self.store.insert_asset(asset)
        self.store.set_count(asset.asset_id + 1)
        self.store.set_owner(asset.asset_id, owner)
        self.index.append(owner, asset.asset_id)

    def _move(self, source: AccountId, dest: AccountId, asset_id: AssetId) -> None:
        self.index.remove(source, asset_id)
        self.index.append(dest, asset_id)
        self.store.set_owner(asset_id, dest)

    # ========================================================================
    # VERIFICATION
    # ========================================================================

    def verify_invariants(self) -> Dict[str, Any]:
        """
        Check that the registry's maps are mutually consistent.

        Checks performed:
        1. Asset ids are exactly 0 .. count-1
        2. Every asset has exactly one owner pointer, and only assets do
        3. Each owner's index lists exactly the assets pointing to that owner,
           once each, and backward traversal is the exact reverse
        4. No asset appears under two owners
        5. Prices exist only for owned assets

        Returns:
            Dict with keys:
            - 'valid': bool - True if every invariant holds
            - 'count': int - The next-id counter
            - 'owners': Dict[owner, List[asset_id]] - Forward traversal per owner
            - 'violations': List[str] - Description of every failure found

        Example:
            report = registry.verify_invariants()
            assert report['valid'], report['violations']
        """
        violations: List[str] = []
        count = self.store.count()

        asset_ids = sorted(k for k, _ in self.kv.prefix_items(PREFIX_ASSETS))
        if asset_ids != list(range(count)):
            violations.append(f"asset ids {asset_ids[:10]}... do not match counter {count}")

        owner_ptrs = dict(self.kv.prefix_items(PREFIX_ASSET_OWNERS))
        if set(owner_ptrs) != set(asset_ids):
            violations.append(
                f"owner pointers {sorted(owner_ptrs)} differ from assets {asset_ids}"
            )

        expected: Dict[AccountId, Set[AssetId]] = {}
        for asset_id, owner in owner_ptrs.items():
            expected.setdefault(owner, set()).add(asset_id)

        nodes: Dict[AccountId, Set[AssetId]] = {}
        for (owner, item), _ in self.kv.prefix_items(PREFIX_OWNED_ASSETS):
            nodes.setdefault(owner, set())
            if item is not None:
                nodes[owner].add(item)

        owners: Dict[AccountId, List[AssetId]] = {}
        seen: Dict[AssetId, AccountId] = {}
        for owner in set(expected) | set(nodes):
            forward = self._bounded_walk(owner, nodes.get(owner, set()), reverse=False, violations=violations)
            backward = self._bounded_walk(owner, nodes.get(owner, set()), reverse=True, violations=violations)
            owners[owner] = forward
            if len(set(forward)) != len(forward):
                violations.append(f"{owner!r}: duplicate ids in {forward}")
            if set(forward) != expected.get(owner, set()):
                violations.append(
                    f"{owner!r}: index {sorted(forward)} != owned {sorted(expected.get(owner, set()))}"
                )
            if set(forward) != nodes.get(owner, set()):
                violations.append(f"{owner!r}: unreachable index nodes")
            if backward != list(reversed(forward)):
                violations.append(f"{owner!r}: backward {backward} is not reverse of {forward}")
            for asset_id in forward:
                if asset_id in seen:
                    violations.append(f"asset {asset_id} listed under {seen[asset_id]!r} and {owner!r}")
                seen[asset_id] = owner

        for asset_id, _ in self.kv.prefix_items(PREFIX_ASSET_PRICES):
            if asset_id not in owner_ptrs:
                violations.append(f"price set for unowned asset {asset_id}")

        return {
            'valid': len(violations) == 0,
            'count': count,
            'owners': owners,
            'violations': violations,
        }

    def _bounded_walk(
        self,
        owner: AccountId,
        members: Set[AssetId],
        reverse: bool,
        violations: List[str],
    ) -> List[AssetId]:
        """Traverse an owner's list, stopping on cycles or dangling links."""
        walk = self.index.iter_reverse(owner) if reverse else self.index.iter(owner)
        result: List[AssetId] = []
        try:
            for asset_id in walk:
                result.append(asset_id)
                if len(result) > len(members) + 1:
                    violations.append(f"{owner!r}: cycle in ownership index")
                    break
        except KeyError as e:
            violations.append(str(e))
        return result

    def state_root(self) -> str:
        """
        Return a content hash of every stored entry.

        Two registries that applied the same extrinsics from the same genesis
        have the same root, independent of insertion order.
        """
        entries = sorted(
            f"{_canonicalize(key)}={_canonicalize(value)}"
            for key, value in self.kv.items()
        )
        return hashlib.sha256("|".join(entries).encode()).hexdigest()

    # ========================================================================
    # REGISTRY OPERATIONS
    # ========================================================================

    def clone(self) -> AssetRegistry:
        """
        Create a deep copy of this registry.

        All state is fully independent: store entries, currency balances,
        randomness state, events, the extrinsic log and the execution context.
        """
        cloned = AssetRegistry.__new__(AssetRegistry)
        cloned.name = self.name
        cloned.kv = self.kv.clone()
        cloned.store = AssetStore(cloned.kv)
        cloned.index = OwnershipIndex(cloned.kv, self.index.prefix)
        cloned.currency = (
            self.currency.clone() if hasattr(self.currency, "clone") else copy.deepcopy(self.currency)
        )
        cloned.randomness = copy.deepcopy(self.randomness)
        cloned._initial_randomness = copy.deepcopy(self._initial_randomness)
        cloned.max_asset_id = self.max_asset_id
        cloned.verbose = self.verbose
        cloned._test_mode = self._test_mode
        cloned._context = self._context
        cloned.events = list(self.events)
        cloned.extrinsic_log = list(self.extrinsic_log)
        return cloned

    def replay(self, randomness: Optional[RandomnessSource] = None) -> AssetRegistry:
        """
        Create a new registry by re-executing the extrinsic log from genesis.

        Each extrinsic runs at its recorded block number and index, so
        BlockRandomness derives the same DNA. Rejected extrinsics are
        re-executed too and must be rejected again.

        Note: set_counter() calls are not logged and are not replayed.

        Args:
            randomness: Source to use instead of a pristine copy of the original

        Returns:
            New AssetRegistry instance with replayed state

        Raises:
            RegistryError: If the currency ledger cannot be reset to genesis,
                           or a replayed extrinsic has a different outcome
        """
        if not hasattr(self.currency, "at_genesis"):
            raise RegistryError(
                f"Cannot replay: {type(self.currency).__name__} has no genesis snapshot"
            )
        replayed = AssetRegistry(
            name=f"{self.name}_replayed",
            currency=self.currency.at_genesis(),
            randomness=randomness if randomness is not None else copy.deepcopy(self._initial_randomness),
            max_asset_id=self.max_asset_id,
            verbose=self.verbose,
            test_mode=self._test_mode,
        )
        for extrinsic in self.extrinsic_log:
            replayed._context = extrinsic.context
            try:
                event = replayed._apply(extrinsic.call)
            except RegistryError:
                event = None
            outcome = ExecuteResult.APPLIED if event is not None else ExecuteResult.REJECTED
            if outcome != extrinsic.result or event != extrinsic.event:
                raise RegistryError(f"Replay diverged at {extrinsic!r}")
        replayed._context = self._context
        return replayed

    def __repr__(self):
        return (
            f"AssetRegistry({self.name!r}, {self.count()} assets, "
            f"block={self._context.block_number}, {len(self.extrinsic_log)} extrinsics)"
        )
