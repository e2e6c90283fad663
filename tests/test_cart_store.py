"""
Tests for CartStore: mutations, feedback and the identity protocol
"""

import json
import threading
import pytest
from decimal import Decimal
from unittest.mock import Mock

from storefront.cart import CartItem, CartStore, MemoryStorage, StorageKeys
from storefront.cart.service import (
    DESCRIPTION_CLEARED,
    SIGN_IN_PROMPT,
    TITLE_ADDED,
    TITLE_CLEARED,
    TITLE_REMOVED,
    TITLE_UPDATED,
)
from storefront.services.audio import Cue
from storefront.services.notifications import Severity


def _record(*items):
    return json.dumps([
        {"id": item_id, "name": f"Product {item_id}", "price": 100, "image": "", "quantity": qty}
        for item_id, qty in items
    ])


def _stored(storage, key):
    return json.loads(storage.get(key))


class TestAddToCart:
    """Tests for add_to_cart."""

    def test_distinct_ids(self, store):
        """Test each distinct id adds one line of quantity 1."""
        for n in range(5):
            store.add_to_cart({"id": f"p{n}", "name": f"Product {n}", "price": 10})

        ids = [item.id for item in store.items]
        assert store.total_items == 5
        assert len(ids) == len(set(ids))

    def test_same_id_twice_increments(self, store, sample_product):
        """Test adding the same product twice gives one line with quantity 2."""
        store.add_to_cart(sample_product)
        store.add_to_cart(sample_product)

        assert len(store.items) == 1
        assert store.items[0].quantity == 2

    def test_new_item_appended_in_order(self, store, sample_product, other_product):
        store.add_to_cart(sample_product)
        store.add_to_cart(other_product)
        store.add_to_cart(sample_product)

        assert [item.id for item in store.items] == ["p1", "p2"]

    def test_accepts_cart_item(self, store):
        store.add_to_cart(CartItem(id="p9", name="Cable", price=150, quantity=7))

        assert store.get("p9").quantity == 1

    def test_requires_id(self, store, notifier, cues):
        with pytest.raises(ValueError):
            store.add_to_cart({"name": "No id", "price": 1})

        assert store.items == []
        assert notifier.notifications == []
        assert cues.cues == []

    def test_anonymous_add_prompts_sign_in(self, store, notifier, sample_product):
        store.add_to_cart(sample_product)

        note = notifier.notifications[-1]
        assert note.severity == Severity.SUCCESS
        assert note.title == TITLE_ADDED
        assert note.description == f"Wireless Earbuds added successfully! {SIGN_IN_PROMPT}"

    def test_anonymous_increment_prompts_sign_in(self, store, notifier, sample_product):
        store.add_to_cart(sample_product)
        store.add_to_cart(sample_product)

        note = notifier.notifications[-1]
        assert note.title == TITLE_UPDATED
        assert note.description == f"Wireless Earbuds quantity increased! {SIGN_IN_PROMPT}"

    def test_signed_in_messages(self, store, notifier, sample_product):
        """Test signed-in wording names the new quantity."""
        store.set_identity("user42")
        store.add_to_cart(sample_product)
        store.add_to_cart(sample_product)

        added, updated = notifier.notifications[-2:]
        assert added.description == "Wireless Earbuds added successfully!"
        assert updated.description == "Wireless Earbuds quantity increased to 2"

    def test_cue_on_every_add(self, store, cues, sample_product):
        store.add_to_cart(sample_product)
        store.add_to_cart(sample_product)

        assert cues.cues == [Cue.ADD_TO_CART, Cue.ADD_TO_CART]

    def test_persists_to_anonymous_key(self, store, storage, sample_product):
        store.add_to_cart(sample_product)

        stored = _stored(storage, StorageKeys.CART_ANONYMOUS)
        assert stored[0]["id"] == "p1"
        assert stored[0]["quantity"] == 1


class TestRemoveFromCart:
    """Tests for remove_from_cart."""

    def test_remove_existing(self, store, notifier, sample_product, other_product):
        store.add_to_cart(sample_product)
        store.add_to_cart(other_product)
        notifier.drain()

        store.remove_from_cart("p1")

        assert [item.id for item in store.items] == ["p2"]
        assert notifier.notifications[-1].title == TITLE_REMOVED
        assert notifier.notifications[-1].description == "Wireless Earbuds removed from cart"
        assert [entry["id"] for entry in _stored(store.storage, StorageKeys.CART_ANONYMOUS)] == ["p2"]

    def test_remove_missing_is_silent_noop(self, store, notifier, sample_product):
        store.add_to_cart(sample_product)
        before = store.items
        notifier.drain()

        store.remove_from_cart("nope")

        assert store.items == before
        assert notifier.notifications == []


class TestUpdateQuantity:
    """Tests for update_quantity."""

    def test_set_quantity_without_notification(self, store, notifier, sample_product):
        store.add_to_cart(sample_product)
        notifier.drain()

        store.update_quantity("p1", 5)

        assert store.get("p1").quantity == 5
        assert notifier.notifications == []
        assert _stored(store.storage, StorageKeys.CART_ANONYMOUS)[0]["quantity"] == 5

    @pytest.mark.parametrize("quantity", [0, -3])
    def test_zero_or_less_removes(self, store, notifier, sample_product, other_product, quantity):
        store.add_to_cart(sample_product)
        store.add_to_cart(other_product)
        notifier.drain()

        store.update_quantity("p1", quantity)

        assert len(store.items) == 1
        assert store.get("p1") is None
        assert notifier.titles == [TITLE_REMOVED]

    def test_unknown_id_is_noop(self, store, sample_product):
        store.add_to_cart(sample_product)

        store.update_quantity("nope", 3)

        assert [(i.id, i.quantity) for i in store.items] == [("p1", 1)]

    def test_zero_on_unknown_id_no_notification(self, store, notifier):
        store.update_quantity("nope", 0)

        assert notifier.notifications == []

    def test_rejects_non_integer(self, store, sample_product):
        store.add_to_cart(sample_product)

        with pytest.raises(ValueError):
            store.update_quantity("p1", 2.5)


class TestClearCart:
    """Tests for clear_cart."""

    def test_clear(self, store, notifier, sample_product):
        store.add_to_cart(sample_product)

        store.clear_cart()

        assert store.items == []
        assert notifier.notifications[-1].title == TITLE_CLEARED
        assert notifier.notifications[-1].description == DESCRIPTION_CLEARED
        assert _stored(store.storage, StorageKeys.CART_ANONYMOUS) == []

    def test_clear_empty_still_notifies(self, store, notifier):
        store.clear_cart()

        assert store.items == []
        assert notifier.titles == [TITLE_CLEARED]


class TestTotals:
    """Tests for derived totals."""

    def test_totals_follow_every_mutation(self, store, sample_product, other_product):
        store.add_to_cart(sample_product)
        store.add_to_cart(other_product)
        store.add_to_cart(sample_product)
        assert store.total_price == Decimal("2500") * 2 + Decimal("799.5")

        store.update_quantity("p2", 4)
        assert store.total_price == Decimal("5000") + Decimal("799.5") * 4
        assert store.total_items == 6

        store.remove_from_cart("p1")
        assert store.total_price == sum(i.price * i.quantity for i in store.items)

        store.clear_cart()
        assert store.total_price == 0
        assert store.total_items == 0

    def test_items_are_copies(self, store, sample_product):
        store.add_to_cart(sample_product)

        store.items[0].quantity = 99

        assert store.get("p1").quantity == 1

    def test_summary(self, store, sample_product):
        store.add_to_cart(sample_product)

        summary = store.summary()

        assert summary["authenticated"] is False
        assert summary["total_items"] == 1
        assert summary["total_price"] == 2500.0


class TestIdentityProtocol:
    """Tests for loading and merging carts on identity change."""

    def test_sign_in_adopts_anonymous_cart(self, notifier, cues):
        storage = MemoryStorage({StorageKeys.CART_ANONYMOUS: _record(("p1", 2))})
        store = CartStore(storage, notifier, cues)
        store.set_identity(None)

        store.set_identity("user42")

        assert [(i.id, i.quantity) for i in store.items] == [("p1", 2)]
        assert not storage.exists(StorageKeys.CART_ANONYMOUS)
        assert _stored(storage, "cart_user42")[0]["quantity"] == 2

    def test_sign_in_prefers_user_cart(self, notifier, cues):
        """Test an existing user cart wins and the anonymous one is not merged."""
        storage = MemoryStorage({
            StorageKeys.CART_ANONYMOUS: _record(("p1", 2)),
            "cart_user42": _record(("p7", 1), ("p8", 3)),
        })
        store = CartStore(storage, notifier, cues)

        store.set_identity("user42")

        assert [(i.id, i.quantity) for i in store.items] == [("p7", 1), ("p8", 3)]
        assert storage.exists(StorageKeys.CART_ANONYMOUS)

    def test_sign_in_with_nothing_stored(self, storage, notifier, cues):
        store = CartStore(storage, notifier, cues)

        store.set_identity("user42")

        assert store.items == []
        assert store.storage_key == "cart_user42"

    def test_sign_out_without_anonymous_cart(self, notifier, cues):
        """Test sign-out empties the cart and leaves the user record alone."""
        user_record = _record(("p1", 1))
        storage = MemoryStorage({"cart_user42": user_record})
        store = CartStore(storage, notifier, cues)
        store.set_identity("user42")

        store.set_identity(None)

        assert store.items == []
        assert json.loads(storage.get("cart_user42")) == json.loads(user_record)

    def test_sign_out_loads_anonymous_cart(self, notifier, cues):
        storage = MemoryStorage({
            "cart_user42": _record(("p1", 1)),
            StorageKeys.CART_ANONYMOUS: _record(("p5", 4)),
        })
        store = CartStore(storage, notifier, cues)
        store.set_identity("user42")

        store.set_identity(None)

        assert [(i.id, i.quantity) for i in store.items] == [("p5", 4)]

    def test_mutations_after_sign_in_go_to_user_key(self, store, storage, sample_product):
        store.set_identity("user42")
        store.add_to_cart(sample_product)

        assert _stored(storage, "cart_user42")[0]["id"] == "p1"
        # The (empty) anonymous record was adopted and removed on sign-in
        assert not storage.exists(StorageKeys.CART_ANONYMOUS)

    def test_round_trip_sign_in_out_in(self, store, storage, sample_product, other_product):
        store.add_to_cart(sample_product)
        store.set_identity("user42")
        store.add_to_cart(other_product)
        store.set_identity(None)
        assert store.items == []

        store.set_identity("user42")

        assert [i.id for i in store.items] == ["p1", "p2"]

    def test_repeated_identity_keeps_memory_state(self, store, sample_product):
        store.set_identity("user42")
        store.add_to_cart(sample_product)
        store.storage.delete("cart_user42")

        store.set_identity("user42")

        assert [i.id for i in store.items] == ["p1"]

    def test_corrupted_user_record_falls_back(self, notifier, cues):
        """Test a malformed record is treated as absent."""
        storage = MemoryStorage({
            "cart_user42": "{not json",
            StorageKeys.CART_ANONYMOUS: _record(("p1", 2)),
        })
        store = CartStore(storage, notifier, cues)

        store.set_identity("user42")

        assert [(i.id, i.quantity) for i in store.items] == [("p1", 2)]
        assert _stored(storage, "cart_user42")[0]["id"] == "p1"

    def test_corrupted_anonymous_record_gives_empty_cart(self, notifier, cues):
        storage = MemoryStorage({StorageKeys.CART_ANONYMOUS: '[{"id": "p1"}]'})
        store = CartStore(storage, notifier, cues)

        store.set_identity(None)

        assert store.items == []

    @pytest.mark.parametrize("price", ["NaN", '"NaN"', '"abc"', '"Infinity"'])
    def test_unparseable_price_record_falls_back(self, notifier, cues, price):
        """Test a record with a bad price is malformed, not a crash or a free item."""
        bad = f'[{{"id": "p9", "name": "Broken", "price": {price}, "image": "", "quantity": 1}}]'
        storage = MemoryStorage({
            "cart_user42": bad,
            StorageKeys.CART_ANONYMOUS: _record(("p1", 2)),
        })
        store = CartStore(storage, notifier, cues)

        store.set_identity("user42")

        assert [(i.id, i.quantity) for i in store.items] == [("p1", 2)]

    def test_unparseable_anonymous_price_gives_empty_cart(self, notifier, cues):
        storage = MemoryStorage({
            StorageKeys.CART_ANONYMOUS: '[{"id": "p1", "name": "A", "price": NaN, "image": "", "quantity": 1}]',
        })
        store = CartStore(storage, notifier, cues)

        store.set_identity(None)

        assert store.items == []
        assert _stored(storage, StorageKeys.CART_ANONYMOUS) == []


class TestConcurrentMutations:
    """Tests that concurrent mutations never lose updates."""

    def test_parallel_adds_of_same_item(self, store, storage, sample_product):
        threads_count = 8
        adds_per_thread = 50
        start = threading.Barrier(threads_count)

        def worker():
            start.wait()
            for _ in range(adds_per_thread):
                store.add_to_cart(sample_product)

        threads = [threading.Thread(target=worker) for _ in range(threads_count)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        expected = threads_count * adds_per_thread
        assert store.total_items == expected
        assert len(store.items) == 1
        assert _stored(storage, StorageKeys.CART_ANONYMOUS)[0]["quantity"] == expected

    def test_parallel_adds_of_distinct_items(self, store, storage):
        def worker(n):
            for i in range(20):
                store.add_to_cart({"id": f"t{n}-{i}", "name": f"Item {n}-{i}", "price": 1})

        threads = [threading.Thread(target=worker, args=(n,)) for n in range(5)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        ids = [item.id for item in store.items]
        assert len(ids) == 100
        assert len(set(ids)) == 100
        assert len(_stored(storage, StorageKeys.CART_ANONYMOUS)) == 100


class TestBestEffortSideEffects:
    """Tests that storage and feedback failures never break mutations."""

    def test_invalid_price_rejected_before_mutation(self, store, notifier, cues):
        for product in ({"id": "p1", "name": "A"}, {"id": "p2", "name": "B", "price": "abc"}):
            with pytest.raises(ValueError):
                store.add_to_cart(product)

        assert store.items == []
        assert notifier.notifications == []
        assert cues.cues == []

    def test_storage_write_failure(self, notifier, cues, sample_product):
        storage = Mock()
        storage.get.return_value = None
        storage.set.side_effect = OSError("quota exceeded")
        store = CartStore(storage, notifier, cues)
        store.set_identity(None)

        store.add_to_cart(sample_product)

        assert store.total_items == 1
        assert notifier.titles[-1] == TITLE_ADDED

    def test_storage_read_failure(self, notifier, cues):
        storage = Mock()
        storage.get.side_effect = OSError("storage disabled")
        store = CartStore(storage, notifier, cues)

        store.set_identity("user42")

        assert store.items == []

    def test_cue_failure(self, storage, notifier, sample_product):
        cues = Mock()
        cues.emit.side_effect = RuntimeError("no audio context")
        store = CartStore(storage, notifier, cues)

        store.add_to_cart(sample_product)

        assert store.total_items == 1
        assert notifier.titles == [TITLE_ADDED]

    def test_notification_failure(self, storage, cues, sample_product):
        notifier = Mock()
        notifier.success.side_effect = RuntimeError("toast unavailable")
        store = CartStore(storage, notifier, cues)

        store.add_to_cart(sample_product)
        store.clear_cart()

        assert store.items == []
        assert _stored(storage, StorageKeys.CART_ANONYMOUS) == []
