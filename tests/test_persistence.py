"""Tests for storage and the store's load/save behavior."""

import json
from datetime import datetime, timezone
from decimal import Decimal

from pydantic import TypeAdapter

from freshpick.scheduler import StatusScheduler
from freshpick.schemas import BundleItem, FulfillmentMethod, Order, OrderItem, OrderStatus
from freshpick.storage import JSONFileStorage, MemoryStorage
from freshpick.store import BUNDLES_KEY, ORDERS_KEY, OrderStore

from .conftest import FakeClock

PICKUP = datetime(2026, 10, 20, 9, 0, tzinfo=timezone.utc)


class BrokenStorage(MemoryStorage):
    """Reads work, every write fails."""

    def set(self, key, data):
        raise OSError("disk full")


class TestJSONFileStorage:

    def test_missing_key_reads_none(self, tmp_path) -> None:
        assert JSONFileStorage(tmp_path).get("nope") is None

    def test_set_get(self, tmp_path) -> None:
        storage = JSONFileStorage(tmp_path / "nested")
        storage.set("k", b"[1, 2]")
        assert storage.get("k") == b"[1, 2]"
        assert (tmp_path / "nested" / "k.json").exists()
        assert not [p for p in (tmp_path / "nested").iterdir() if p.suffix == ".tmp"]
        storage.set("k", b"[]")
        assert storage.get("k") == b"[]"


class TestRoundTrip:

    def test_bundles_and_orders_survive_restart(self, tmp_path, catalog, scheduler, settings, apple, milk) -> None:
        storage = JSONFileStorage(tmp_path)
        store = OrderStore(storage, catalog, scheduler, settings)
        store.create_bundle("Breakfast", [BundleItem(product=milk, quantity=2)])
        store.add_to_cart(apple, 2)
        order = store.place_order(PICKUP, "FreshPick Market", store.quote(FulfillmentMethod.pickup))

        reloaded = OrderStore(JSONFileStorage(tmp_path), catalog, scheduler, settings)
        assert [b.name for b in reloaded.bundles] == ["Breakfast"]
        assert reloaded.bundles[0].items[0].product == milk
        restored = reloaded.get_order(order.id)
        assert restored.model_dump() == order.model_dump()
        assert restored.grand_total == Decimal("6.4124")
        assert restored.items[0].frozen_price == Decimal("0.89")
        assert reloaded.cart_items == []

    def test_order_history_order_is_kept(self, storage, catalog, scheduler, settings, apple, milk) -> None:
        store = OrderStore(storage, catalog, scheduler, settings)
        ids = []
        for product in (apple, milk, apple):
            store.add_to_cart(product)
            ids.insert(0, store.place_order(PICKUP, "FreshPick Market", store.quote()).id)

        reloaded = OrderStore(storage, catalog, scheduler, settings)
        assert [o.id for o in reloaded.orders] == ids

    def test_stored_layout_uses_camel_case(self, storage, store, apple) -> None:
        store.add_to_cart(apple)
        store.create_bundle_from_cart("Fruit")
        store.place_order(PICKUP, "FreshPick Market", store.quote())

        order = json.loads(storage.get(ORDERS_KEY))[0]
        assert {
            "id", "userName", "storeLocation", "pickupTime", "date", "status",
            "itemsTotal", "deliveryFee", "serviceFee", "smallOrderFee", "tax", "tip",
            "grandTotal", "items",
        } <= set(order)
        assert order["status"] == "processing"
        assert set(order["items"][0]) == {"id", "product", "quantity", "frozenPrice"}

        bundle = json.loads(storage.get(BUNDLES_KEY))[0]
        assert set(bundle) == {"id", "name", "items", "createdAt"}

    def test_completed_status_survives_restart(self, storage, store, catalog, scheduler, settings, clock, apple) -> None:
        store.add_to_cart(apple)
        order = store.place_order(PICKUP, "FreshPick Market", store.quote())
        clock.advance(15)
        scheduler.run_pending()
        store.complete_order(order.id)
        reloaded = OrderStore(storage, catalog, scheduler, settings)
        assert reloaded.get_order(order.id).status is OrderStatus.completed
        assert reloaded.scheduler.pending(order.id) == 0

    def test_unfinished_orders_resume_after_restart(self, storage, store, catalog, settings, apple, milk) -> None:
        store.add_to_cart(apple)
        waiting = store.place_order(PICKUP, "FreshPick Market", store.quote())
        store.add_to_cart(milk)
        packing = store.place_order(PICKUP, "FreshPick Market", store.quote())
        packing.status = OrderStatus.packing
        store._save_orders()

        clock = FakeClock()
        scheduler = StatusScheduler(clock=clock)
        reloaded = OrderStore(storage, catalog, scheduler, settings)
        assert scheduler.pending(waiting.id) == 2
        assert scheduler.pending(packing.id) == 1

        clock.advance(100)
        assert scheduler.run_pending() == 3
        assert reloaded.get_order(waiting.id).status is OrderStatus.ready
        assert reloaded.get_order(packing.id).status is OrderStatus.ready
        assert reloaded.complete_order(waiting.id)

    def test_overdue_orders_advance_on_first_run(self, catalog, settings, apple) -> None:
        order = Order(
            user_name="Scrooge McDuck", store_location="FreshPick Market", pickup_time=PICKUP,
            date=datetime(2020, 1, 1, tzinfo=timezone.utc), items_total=Decimal("0.89"), grand_total=Decimal("0.89"),
            items=[OrderItem(product=apple, quantity=1, frozen_price=apple.price)],
        )
        storage = MemoryStorage({ORDERS_KEY: TypeAdapter(list[Order]).dump_json([order], by_alias=True)})
        scheduler = StatusScheduler(clock=FakeClock())
        store = OrderStore(storage, catalog, scheduler, settings)
        assert scheduler.run_pending() == 2
        assert store.get_order(order.id).status is OrderStatus.ready


class TestFailures:

    def test_corrupt_record_loads_empty(self, catalog, scheduler, settings) -> None:
        storage = MemoryStorage({BUNDLES_KEY: b"{not json", ORDERS_KEY: b'[{"id": 3}]'})
        store = OrderStore(storage, catalog, scheduler, settings)
        assert store.bundles == []
        assert store.orders == []

    def test_one_bad_record_does_not_affect_the_other(self, storage, store, catalog, scheduler, settings, apple) -> None:
        store.add_to_cart(apple)
        store.place_order(PICKUP, "FreshPick Market", store.quote())
        storage.set(BUNDLES_KEY, b"garbage")
        reloaded = OrderStore(storage, catalog, scheduler, settings)
        assert len(reloaded.orders) == 1
        assert reloaded.bundles == []

    def test_write_failures_are_swallowed(self, catalog, scheduler, settings, clock, apple) -> None:
        store = OrderStore(BrokenStorage(), catalog, scheduler, settings)
        store.add_to_cart(apple)
        bundle = store.create_bundle_from_cart("Apples")
        order = store.place_order(PICKUP, "FreshPick Market", store.quote())
        assert bundle is not None
        assert order is not None
        assert store.bundles == [bundle]
        assert store.orders == [order]

        clock.advance(5)
        scheduler.run_pending()
        assert order.status is OrderStatus.packing


class TestSampleBundles:

    def test_seeded_when_empty(self, storage, catalog, scheduler, settings) -> None:
        settings.SEED_SAMPLE_BUNDLES = True
        store = OrderStore(storage, catalog, scheduler, settings)
        assert [b.name for b in store.bundles] == ["Study Snacks", "Weekly Essentials", "Taco Night"]
        created = [b.created_at for b in store.bundles]
        assert created == sorted(created)
        assert storage.get(BUNDLES_KEY) is not None

        taco = store.bundles[2]
        assert ("Ground Beef", 1) in [(i.product.name, i.quantity) for i in taco.items]

    def test_not_seeded_over_saved_bundles(self, storage, store, catalog, scheduler, settings, milk) -> None:
        store.create_bundle("Mine", [BundleItem(product=milk)])
        settings.SEED_SAMPLE_BUNDLES = True
        reloaded = OrderStore(storage, catalog, scheduler, settings)
        assert [b.name for b in reloaded.bundles] == ["Mine"]
