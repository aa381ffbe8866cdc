"""
test_registry.py - Unit tests for AssetRegistry operations

Tests:
- Initial state and queries
- create / breed / transfer / ask / buy success paths
- Every named failure, with state left unchanged
- Events and the extrinsic log
- execute() dispatch and the execution context
"""

import pytest
from decimal import Decimal

from collectibles import (
    AssetRegistry, Call, ExecuteResult, ExecutionContext,
    Created, Transferred, Ask, Sold,
    RegistryError, AssetNotFound, SameParent, NotOwner, CounterOverflow,
    NotForSale, PriceTooLow, InsufficientFunds,
    RegistryView, MAX_ASSET_ID,
    create_call, breed_call, transfer_call, ask_call, buy_call,
)

from tests.helpers import assert_consistent, dna, registry_snapshot


class TestRegistryCreation:
    """Tests for AssetRegistry initialization."""

    def test_basic_setup(self, registry):
        assert registry.count() == 0
        assert registry.get_asset(0) is None
        assert registry.get_owner(0) is None
        assert registry.get_price(0) is None
        assert registry.free_balance(1) == Decimal("10")
        assert registry.free_balance(2) == Decimal("20")

    def test_defaults(self):
        registry = AssetRegistry("test", verbose=False)
        assert registry.max_asset_id == MAX_ASSET_ID
        assert registry.context == ExecutionContext(0, 0)
        assert registry.events == []
        assert registry.extrinsic_log == []

    def test_initial_block(self):
        registry = AssetRegistry("test", verbose=False, initial_block=7)
        assert registry.context == ExecutionContext(7, 0)

    def test_invalid_max_asset_id(self):
        with pytest.raises(ValueError):
            AssetRegistry("test", max_asset_id=0)

    def test_implements_view(self, registry):
        assert isinstance(registry, RegistryView)


class TestCreate:
    """Tests for create."""

    def test_create_works(self, registry):
        event = registry.create(1)

        assert event == Created(1, 0)
        assert registry.count() == 1
        assert registry.get_asset(0) is not None
        assert registry.get_owner(0) == 1
        assert registry.get_price(0) is None
        assert registry.list_owned(1) == [0]

    def test_ids_are_dense(self, registry):
        ids = [registry.create(owner).asset_id for owner in (1, 2, 1, 3)]
        assert ids == [0, 1, 2, 3]
        assert registry.count() == 4
        assert registry.list_owned(1) == [0, 2]
        assert_consistent(registry)

    def test_dna_comes_from_randomness(self, pinned_registry):
        pinned_registry.create(1)
        pinned_registry.create(1)
        assert pinned_registry.get_asset(0).dna == dna(0xAA)
        assert pinned_registry.get_asset(1).dna == dna(0x55)

    def test_dna_is_immutable(self, registry):
        registry.create(1)
        original = registry.get_asset(0).dna
        registry.create(1)
        registry.breed(1, 0, 1)
        registry.transfer(1, 2, 0)
        registry.ask(2, 0, 5)
        registry.buy(3, 0, 5)
        assert registry.get_asset(0).dna == original

    def test_consecutive_creates_differ(self, registry):
        registry.create(1)
        registry.create(1)
        assert registry.get_asset(0).dna != registry.get_asset(1).dna

    def test_counter_overflow(self, registry):
        registry.set_counter(MAX_ASSET_ID)
        before = registry_snapshot(registry)

        with pytest.raises(CounterOverflow, match="overflow"):
            registry.create(1)

        assert registry.count() == MAX_ASSET_ID
        assert registry.get_asset(0) is None
        assert registry.get_owner(0) is None
        assert registry.get_price(0) is None
        assert registry_snapshot(registry) == before

    def test_last_id_below_max_is_assignable(self):
        registry = AssetRegistry("small", max_asset_id=2, verbose=False)
        registry.create(1)
        registry.create(1)
        with pytest.raises(CounterOverflow):
            registry.create(1)
        assert registry.count() == 2
        with pytest.raises(CounterOverflow):
            registry.create(1)

    def test_set_counter_requires_test_mode(self):
        registry = AssetRegistry("prod", verbose=False)
        with pytest.raises(RegistryError, match="test_mode"):
            registry.set_counter(5)


class TestBreed:
    """Tests for breed."""

    def test_breed_works(self, registry):
        registry.create(1)
        registry.create(1)

        event = registry.breed(1, 0, 1)

        assert event == Created(1, 2)
        assert registry.count() == 3
        for asset_id in range(3):
            assert registry.get_asset(asset_id) is not None
            assert registry.get_owner(asset_id) == 1
            assert registry.get_price(asset_id) is None
        assert registry.list_owned(1) == [0, 1, 2]
        assert_consistent(registry)

    def test_child_dna_is_multiplexed(self, pinned_registry):
        pinned_registry.create(1)
        pinned_registry.create(1)
        pinned_registry.breed(1, 0, 1)
        # selector 0x0F: low nibble from parent 1 (0xAA), high from parent 2 (0x55)
        assert pinned_registry.get_asset(2).dna == dna(0x5A)

    def test_parent_order_matters(self, pinned_registry):
        pinned_registry.create(1)
        pinned_registry.create(1)
        pinned_registry.breed(1, 1, 0)
        assert pinned_registry.get_asset(2).dna == dna(0xA5)

    def test_breed_handles_basic_errors(self, registry):
        registry.create(1)
        registry.create(2)
        before = registry_snapshot(registry)

        with pytest.raises(SameParent):
            registry.breed(1, 0, 0)
        with pytest.raises(NotOwner, match="asset 0"):
            registry.breed(2, 0, 1)
        with pytest.raises(NotOwner, match="asset 1"):
            registry.breed(1, 0, 1)
        with pytest.raises(AssetNotFound, match="asset_id_1"):
            registry.breed(1, 2, 1)
        with pytest.raises(AssetNotFound, match="asset_id_2"):
            registry.breed(1, 0, 2)

        assert registry.count() == 2
        assert registry.get_asset(2) is None
        assert registry.get_owner(0) == 1
        assert registry.get_owner(1) == 2
        assert registry_snapshot(registry) == before

    def test_missing_parent_checked_before_same_parent(self, registry):
        with pytest.raises(AssetNotFound):
            registry.breed(1, 5, 5)

    def test_breed_overflow(self, registry):
        registry.create(1)
        registry.create(1)
        registry.set_counter(MAX_ASSET_ID)
        with pytest.raises(CounterOverflow):
            registry.breed(1, 0, 1)
        assert registry.list_owned(1) == [0, 1]

    def test_breed_does_not_consume_randomness_on_failure(self, pinned_registry):
        pinned_registry.create(1)
        pinned_registry.create(2)
        with pytest.raises(NotOwner):
            pinned_registry.breed(1, 0, 1)
        assert pinned_registry.randomness.calls == 2


class TestTransfer:
    """Tests for transfer."""

    def test_transfer_works(self, registry):
        registry.create(1)

        event = registry.transfer(1, 2, 0)

        assert event == Transferred(1, 2, 0)
        assert registry.count() == 1
        assert registry.get_asset(0) is not None
        assert registry.get_owner(0) == 2
        assert registry.get_price(0) is None
        assert 0 not in registry.list_owned(1)
        assert registry.list_owned(2) == [0]
        assert_consistent(registry)

    def test_transfer_handles_basic_errors(self, registry):
        registry.create(1)
        before = registry_snapshot(registry)

        with pytest.raises(NotOwner, match="Only owner can transfer"):
            registry.transfer(2, 2, 0)
        with pytest.raises(NotOwner, match="Only owner can transfer"):
            registry.transfer(1, 2, 1)

        assert registry.count() == 1
        assert registry.get_owner(0) == 1
        assert registry.get_price(0) is None
        assert registry_snapshot(registry) == before

    def test_transfer_appends_to_tail(self, registry):
        for _ in range(3):
            registry.create(1)
        registry.create(2)
        registry.transfer(1, 2, 1)
        assert registry.list_owned(1) == [0, 2]
        assert registry.list_owned(2) == [3, 1]
        assert registry.list_owned_reverse(2) == [1, 3]

    def test_transfer_to_self_moves_to_tail(self, registry):
        registry.create(1)
        registry.create(1)
        registry.transfer(1, 1, 0)
        assert registry.get_owner(0) == 1
        assert registry.list_owned(1) == [1, 0]
        assert_consistent(registry)

    def test_transfer_keeps_listing(self, registry):
        registry.create(1)
        registry.ask(1, 0, 10)
        registry.transfer(1, 2, 0)
        assert registry.get_price(0) == Decimal("10")

    def test_previous_owner_cannot_transfer_back(self, registry):
        registry.create(1)
        registry.transfer(1, 2, 0)
        with pytest.raises(NotOwner):
            registry.transfer(1, 1, 0)


class TestAsk:
    """Tests for ask (list for sale)."""

    def test_ask_works(self, registry):
        registry.create(1)

        event = registry.ask(1, 0, Decimal("10"))

        assert event == Ask(1, 0, Decimal("10"))
        assert registry.count() == 1
        assert registry.get_owner(0) == 1
        assert registry.get_price(0) == Decimal("10")

    def test_list_for_sale_alias(self, registry):
        registry.create(1)
        registry.list_for_sale(1, 0, 7)
        assert registry.get_price(0) == Decimal("7")

    def test_ask_none_delists(self, registry):
        registry.create(1)
        registry.ask(1, 0, 10)
        event = registry.ask(1, 0, None)
        assert event == Ask(1, 0, None)
        assert registry.get_price(0) is None

    def test_delist_unlisted_is_allowed(self, registry):
        registry.create(1)
        assert registry.ask(1, 0, None) == Ask(1, 0, None)

    def test_ask_replaces_price(self, registry):
        registry.create(1)
        registry.ask(1, 0, 10)
        registry.ask(1, 0, 3)
        assert registry.get_price(0) == Decimal("3")

    def test_zero_price_accepted(self, registry):
        registry.create(1)
        registry.ask(1, 0, 0)
        assert registry.get_price(0) == Decimal("0")

    def test_negative_price_rejected(self, registry):
        registry.create(1)
        before = registry_snapshot(registry)
        with pytest.raises(ValueError, match="negative"):
            registry.ask(1, 0, -5)
        assert registry_snapshot(registry) == before
        assert registry.extrinsic_log[-1].call == create_call(1)

    def test_non_owner_cannot_ask(self, registry):
        registry.create(1)
        registry.ask(1, 0, 10)
        before = registry_snapshot(registry)
        with pytest.raises(NotOwner, match="set price"):
            registry.ask(2, 0, 1)
        with pytest.raises(NotOwner):
            registry.ask(2, 0, None)
        assert registry.get_price(0) == Decimal("10")
        assert registry_snapshot(registry) == before

    @pytest.mark.parametrize("price", [-1, "NaN", Decimal("-Infinity")])
    def test_ownership_checked_before_price(self, registry, price):
        registry.create(1)
        before = registry_snapshot(registry)
        with pytest.raises(NotOwner):
            registry.ask(2, 0, price)
        assert registry_snapshot(registry) == before
        assert registry.extrinsic_log[-1].reason.startswith("NotOwner")

    def test_missing_asset_checked_before_price(self, registry):
        with pytest.raises(NotOwner):
            registry.ask(1, 42, -1)


class TestBuy:
    """Tests for buy."""

    def test_buy_works(self, marketplace):
        event = marketplace.buy(2, 0, 10)

        assert event == Sold(1, 2, 0, Decimal("10"))
        assert marketplace.count() == 1
        assert marketplace.get_owner(0) == 2
        assert marketplace.get_price(0) is None
        assert marketplace.free_balance(1) == Decimal("20")
        assert marketplace.free_balance(2) == Decimal("10")
        assert marketplace.list_owned(1) == []
        assert marketplace.list_owned(2) == [0]
        assert_consistent(marketplace)

    def test_second_buy_not_for_sale(self, marketplace):
        marketplace.buy(2, 0, 10)
        with pytest.raises(NotForSale):
            marketplace.buy(3, 0, 10)

    def test_overpay_limit_pays_asking_price(self, marketplace):
        event = marketplace.buy(3, 0, 25)
        assert event.price == Decimal("10")
        assert marketplace.free_balance(3) == Decimal("20")

    def test_buy_missing_asset(self, registry):
        with pytest.raises(AssetNotFound):
            registry.buy(2, 0, 10)

    def test_buy_unlisted(self, registry):
        registry.create(1)
        with pytest.raises(NotForSale):
            registry.buy(2, 0, 10)

    def test_existence_checked_before_max_price(self, registry):
        with pytest.raises(AssetNotFound):
            registry.buy(3, 99, -1)
        assert registry.extrinsic_log[-1].reason.startswith("AssetNotFound")

    def test_listing_checked_before_max_price(self, registry):
        registry.create(1)
        with pytest.raises(NotForSale):
            registry.buy(3, 0, "NaN")

    def test_malformed_max_price_on_listed_asset(self, marketplace):
        before = registry_snapshot(marketplace)
        with pytest.raises(ValueError, match="negative"):
            marketplace.buy(3, 0, -1)
        assert registry_snapshot(marketplace) == before

    def test_price_too_low(self, marketplace):
        before = registry_snapshot(marketplace)
        with pytest.raises(PriceTooLow):
            marketplace.buy(2, 0, 9)
        assert registry_snapshot(marketplace) == before
        assert marketplace.get_owner(0) == 1

    def test_insufficient_funds(self, registry):
        registry.create(1)
        registry.ask(1, 0, 15)
        before = registry_snapshot(registry)
        with pytest.raises(InsufficientFunds):
            registry.buy(99, 0, 15)
        assert registry_snapshot(registry) == before
        assert registry.get_owner(0) == 1
        assert registry.get_price(0) == Decimal("15")

    def test_transfer_then_buy_pays_new_owner(self, registry):
        registry.create(1)
        registry.ask(1, 0, 10)
        registry.transfer(1, 2, 0)
        event = registry.buy(3, 0, 10)
        assert event == Sold(2, 3, 0, Decimal("10"))
        assert registry.free_balance(1) == Decimal("10")
        assert registry.free_balance(2) == Decimal("30")
        assert registry.free_balance(3) == Decimal("20")

    def test_owner_buying_own_asset(self, marketplace):
        event = marketplace.buy(1, 0, 10)
        assert event == Sold(1, 1, 0, Decimal("10"))
        assert marketplace.free_balance(1) == Decimal("10")
        assert marketplace.get_price(0) is None
        assert_consistent(marketplace)

    def test_free_asset(self, registry):
        registry.create(1)
        registry.ask(1, 0, 0)
        registry.buy(99, 0, 0)
        assert registry.get_owner(0) == 99


class TestEventsAndLog:
    """Tests for event emission and the extrinsic log."""

    def test_one_event_per_success(self, registry):
        registry.create(1)
        registry.create(1)
        registry.breed(1, 0, 1)
        registry.transfer(1, 2, 2)
        registry.ask(2, 2, 5)
        registry.buy(3, 2, 5)

        assert registry.events == [
            Created(1, 0),
            Created(1, 1),
            Created(1, 2),
            Transferred(1, 2, 2),
            Ask(2, 2, Decimal("5")),
            Sold(2, 3, 2, Decimal("5")),
        ]

    def test_failures_emit_no_event_but_are_logged(self, registry):
        registry.create(1)
        with pytest.raises(NotOwner):
            registry.transfer(2, 3, 0)

        assert registry.events == [Created(1, 0)]
        assert len(registry.extrinsic_log) == 2
        rejected = registry.extrinsic_log[-1]
        assert rejected.result == ExecuteResult.REJECTED
        assert rejected.reason.startswith("NotOwner")
        assert rejected.event is None

    def test_log_records_context(self, registry):
        registry.create(1)
        registry.create(1)
        registry.advance_block()
        registry.create(1)
        contexts = [e.context for e in registry.extrinsic_log]
        assert contexts == [
            ExecutionContext(0, 0),
            ExecutionContext(0, 1),
            ExecutionContext(1, 0),
        ]

    def test_verbose_prints(self, capsys):
        registry = AssetRegistry("loud", verbose=True)
        registry.create(1)
        with pytest.raises(NotOwner):
            registry.transfer(2, 1, 0)
        out = capsys.readouterr().out
        assert "APPLIED" in out
        assert "REJECTED" in out


class TestExecute:
    """Tests for Call dispatch."""

    def test_execute_applies_calls(self, registry):
        assert registry.execute(create_call(1)) == ExecuteResult.APPLIED
        assert registry.execute(create_call(1)) == ExecuteResult.APPLIED
        assert registry.execute(breed_call(1, 0, 1)) == ExecuteResult.APPLIED
        assert registry.execute(transfer_call(1, 2, 2)) == ExecuteResult.APPLIED
        assert registry.execute(ask_call(2, 2, 5)) == ExecuteResult.APPLIED
        assert registry.execute(buy_call(3, 2, 5)) == ExecuteResult.APPLIED
        assert registry.get_owner(2) == 3

    def test_execute_rejects_failures(self, registry):
        assert registry.execute(transfer_call(1, 2, 0)) == ExecuteResult.REJECTED
        assert registry.execute(buy_call(1, 0, 1)) == ExecuteResult.REJECTED
        assert registry.count() == 0
        assert len(registry.extrinsic_log) == 2

    def test_execute_propagates_malformed_values(self, registry):
        registry.create(1)
        with pytest.raises(ValueError):
            registry.execute(ask_call(1, 0, "NaN"))

    def test_execute_accepts_plain_call(self, registry):
        assert registry.execute(Call(5, "create")) == ExecuteResult.APPLIED
        assert registry.get_owner(0) == 5
