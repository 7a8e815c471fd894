"""Tests for the Cart Store: mutations, persistence and notifications."""

import json
from decimal import Decimal

import pytest
from protean.exceptions import ValidationError

from storefront.cart.snapshot import CartLine
from storefront.cart.store import CartAction, CartStore, ChangeOrigin
from storefront.storage import MemoryStorage


@pytest.fixture
def store(storage):
    return CartStore(storage)


def stored_cart(storage):
    return json.loads(storage.get_item("cart"))


class TestAdd:
    def test_add_new_product(self, store, mug):
        line = store.add(mug, quantity=2)
        assert line.product_id == "1"
        assert line.quantity == 2
        assert store.item_count == 2

    def test_same_product_sums_into_one_line(self, store, mug):
        store.add(mug, quantity=2)
        store.add(mug, quantity=3)
        assert len(store.items) == 1
        assert store.items[0].quantity == 5

    def test_add_from_mapping(self, store):
        store.add({"id": 9, "name": "Hat", "price": 15.0, "imageUrl": "hat.png"})
        line = store.items[0]
        assert (line.product_id, line.name, line.image_url) == ("9", "Hat", "hat.png")

    def test_mapping_without_id_is_rejected(self, store):
        with pytest.raises(ValidationError):
            store.add({"name": "Nameless", "price": 1.0})

    def test_quantity_below_one_is_rejected(self, store, mug, storage):
        with pytest.raises(ValidationError):
            store.add(mug, quantity=0)
        assert store.items == ()
        assert storage.get_item("cart") is None


class TestUpdateAndRemove:
    def test_update_sets_exact_quantity(self, store, mug):
        store.add(mug, quantity=2)
        store.update_quantity("1", 7)
        assert store.items[0].quantity == 7

    @pytest.mark.parametrize("quantity", [0, -5])
    def test_update_to_zero_or_less_removes(self, store, mug, quantity):
        store.add(mug, quantity=2)
        store.update_quantity("1", quantity)
        assert store.items == ()

    def test_update_of_absent_product_is_a_no_op(self, store, mug, storage):
        store.add(mug)
        writes = len(storage.writes)
        store.update_quantity("99", 3)
        assert len(storage.writes) == writes

    def test_remove(self, store, mug, poster):
        store.add(mug)
        store.add(poster)
        store.remove("1")
        assert [line.product_id for line in store.items] == ["2"]

    def test_remove_absent_product_is_a_no_op(self, store, mug):
        store.add(mug)
        changes = []
        store.subscribe(changes.append)
        store.remove("99")
        assert len(store.items) == 1
        assert changes == []

    def test_clear(self, store, mug, poster, storage):
        store.add(mug)
        store.add(poster)
        store.clear()
        assert store.items == ()
        assert stored_cart(storage) == []


class TestPersistence:
    def test_every_mutation_writes_full_cart(self, store, mug, poster, storage):
        store.add(mug, quantity=2)
        store.add(poster)
        assert [(entry["productId"], entry["quantity"]) for entry in stored_cart(storage)] == [("1", 2), ("2", 1)]

    def test_reload_restores_cart(self, store, mug, storage):
        store.add(mug, quantity=2)
        reloaded = CartStore(storage)
        assert reloaded.items == store.items

    def test_malformed_cart_loads_empty(self):
        store = CartStore(MemoryStorage({"cart": "not json at all"}))
        assert store.items == ()

    def test_non_list_cart_loads_empty(self):
        store = CartStore(MemoryStorage({"cart": json.dumps({"items": []})}))
        assert store.items == ()

    def test_bad_entries_are_skipped_and_duplicates_merged(self):
        entries = [
            {"productId": "1", "name": "Mug", "price": 10.0, "quantity": 1},
            {"name": "no id"},
            {"productId": "2", "price": "free", "quantity": 1},
            {"productId": "3", "price": 1.0, "quantity": 0},
            "garbage",
            {"productId": "1", "name": "Mug", "price": 10.0, "quantity": 2},
        ]
        store = CartStore(MemoryStorage({"cart": json.dumps(entries)}))
        assert [(line.product_id, line.quantity) for line in store.items] == [("1", 3)]

    def test_storage_failure_keeps_in_memory_cart(self, store, mug, storage):
        storage.fail_writes = True
        store.add(mug, quantity=2)
        assert store.items[0].quantity == 2
        assert storage.get_item("cart") is None


class TestNotifications:
    def test_listeners_run_before_mutation_returns(self, store, mug):
        seen = []
        store.subscribe(lambda change: seen.append((change.action, change.snapshot.item_count)))
        store.add(mug, quantity=2)
        assert seen == [(CartAction.ADD, 2)]

    def test_change_carries_product_and_origin(self, store, mug):
        changes = []
        store.subscribe(changes.append)
        store.add(mug)
        store.update_quantity("1", 4)
        store.remove("1")
        assert [(c.action, c.product_id, c.origin) for c in changes] == [
            (CartAction.ADD, "1", ChangeOrigin.LOCAL),
            (CartAction.UPDATE, "1", ChangeOrigin.LOCAL),
            (CartAction.REMOVE, "1", ChangeOrigin.LOCAL),
        ]

    def test_storage_is_written_before_listeners_run(self, store, mug, storage):
        seen = []
        store.subscribe(lambda change: seen.append(stored_cart(storage)[0]["quantity"]))
        store.add(mug, quantity=3)
        assert seen == [3]

    def test_failing_listener_does_not_break_mutation(self, store, mug):
        def broken(change):
            raise RuntimeError("listener bug")

        store.subscribe(broken)
        store.add(mug)
        assert len(store.items) == 1

    def test_unsubscribe(self, store, mug):
        changes = []
        unsubscribe = store.subscribe(changes.append)
        unsubscribe()
        store.add(mug)
        assert changes == []


class TestSnapshots:
    def test_snapshot_is_isolated_from_later_mutations(self, store, mug):
        store.add(mug, quantity=2)
        snapshot = store.snapshot()
        store.update_quantity("1", 9)
        assert snapshot.items[0].quantity == 2
        assert snapshot.subtotal == Decimal("20.0")

    def test_total(self, store, mug, poster):
        store.add(mug, quantity=2)
        store.add(poster)
        assert store.total == Decimal("45.0")

    def test_replace_adopts_lines_as_remote_change(self, store, mug):
        store.add(mug)
        changes = []
        store.subscribe(changes.append)
        store.replace([CartLine(id="r1", product_id="5", name="Lamp", price=30.0, quantity=1)])
        assert [line.product_id for line in store.items] == ["5"]
        assert changes[0].action is CartAction.REPLACE
        assert changes[0].origin is ChangeOrigin.REMOTE
