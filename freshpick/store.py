"""Cart, saved bundles and order history for a single local shopper.

``OrderStore`` is the one owner of that state. Consumers hold a reference to
it, call its mutation methods and ``subscribe`` to hear which collection
changed. Invalid requests (empty cart checkout, unknown ids, non-positive
quantities) are no-ops that return ``None``/``False``; nothing here raises to
the caller.

Bundles and orders are written to storage after every change to them. Writes
are best effort: a failure is logged and dropped, never retried, and the
in-memory state stays authoritative for the session.
"""
from __future__ import annotations
import logging
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Callable, Iterable, Optional, TypeVar, Union
from uuid import UUID
from pydantic import TypeAdapter

from .catalog import Catalog
from .config import Settings
from .pricing import Number, calculate
from .scheduler import StatusScheduler
from .schemas import (
    BundleItem,
    CartItem,
    Customer,
    FulfillmentMethod,
    Order,
    OrderItem,
    OrderStatus,
    PriceBreakdown,
    Product,
    SavedBundle,
    utcnow,
)
from .storage import Storage

logger = logging.getLogger(__name__)

BUNDLES_KEY = "savedBundles_v1"
ORDERS_KEY = "pastOrders_v1"

CART = "cart"
BUNDLES = "bundles"
ORDERS = "orders"

Listener = Callable[[str], None]
Id = Union[UUID, str]
T = TypeVar("T")

_bundles_adapter = TypeAdapter(list[SavedBundle])
_orders_adapter = TypeAdapter(list[Order])

# name, [(catalog search term, quantity)], days ago
SAMPLE_BUNDLES = [
    ("Study Snacks", [
        ("Almonds", 2), ("Apple", 3), ("Yogurt", 4), ("Chips", 2),
        ("Banana", 1), ("Strawberry", 1), ("Cheese", 1),
    ], 5),
    ("Weekly Essentials", [
        ("Milk", 2), ("Eggs", 2), ("Bread", 2), ("Spinach", 2), ("Chicken", 2),
        ("Banana", 2), ("Apple", 2), ("Tomato", 2), ("Carrot", 2), ("Broccoli", 2),
        ("Cheese", 1), ("Yogurt", 2), ("Oil", 1), ("Rice", 1), ("Pasta", 1),
        ("Potato", 2), ("Bagels", 1), ("Salmon", 1),
    ], 3),
    ("Taco Night", [
        ("Beef", 1), ("Cheese", 1), ("Lemon", 2), ("Tomato", 2), ("Spinach", 1),
        ("Pepper", 2), ("Yogurt", 1), ("Chips", 1),
    ], 1),
]


def _as_uuid(value: Id) -> Optional[UUID]:
    if isinstance(value, UUID):
        return value
    try:
        return UUID(str(value))
    except ValueError:
        return None


class OrderStore:
    def __init__(
        self,
        storage: Storage,
        catalog: Optional[Catalog] = None,
        scheduler: Optional[StatusScheduler] = None,
        settings: Optional[Settings] = None,
    ):
        self.storage = storage
        self.catalog = catalog if catalog is not None else Catalog()
        self.scheduler = scheduler if scheduler is not None else StatusScheduler()
        self.settings = settings if settings is not None else Settings()
        self.customer = Customer(
            name=self.settings.CUSTOMER_NAME,
            email=self.settings.CUSTOMER_EMAIL,
            phone=self.settings.CUSTOMER_PHONE,
            member_id=self.settings.CUSTOMER_MEMBER_ID,
        )

        self._cart: dict[UUID, CartItem] = {}
        self._cart_by_product: dict[UUID, UUID] = {}
        self._bundles: dict[UUID, SavedBundle] = {}
        self._orders: dict[UUID, Order] = {}
        self._order_ids: list[UUID] = []  # newest first
        self._listeners: list[Listener] = []

        self._load()
        if not self._bundles and self.settings.SEED_SAMPLE_BUNDLES:
            self._seed_sample_bundles()

    # Subscriptions

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self, collection: str) -> None:
        for listener in list(self._listeners):
            try:
                listener(collection)
            except Exception:
                logger.exception("listener failed on %s change", collection)

    # Cart

    @property
    def cart_items(self) -> list[CartItem]:
        return list(self._cart.values())

    @property
    def cart_total(self) -> Decimal:
        return sum((item.line_total for item in self._cart.values()), Decimal("0"))

    @property
    def cart_count(self) -> int:
        return sum(item.quantity for item in self._cart.values())

    def get_cart_item(self, cart_item_id: Id) -> Optional[CartItem]:
        key = _as_uuid(cart_item_id)
        return self._cart.get(key) if key else None

    def add_to_cart(self, product: Product, quantity: int = 1) -> Optional[CartItem]:
        if quantity <= 0:
            logger.debug("ignoring add of %s with quantity %s", product.name, quantity)
            return None
        self._add(product, quantity)
        self._notify(CART)
        return self._cart[self._cart_by_product[product.id]]

    def _add(self, product: Product, quantity: int) -> None:
        existing = self._cart_by_product.get(product.id)
        if existing is not None:
            self._cart[existing].quantity += quantity
            return
        item = CartItem(product=product, quantity=quantity)
        self._cart[item.id] = item
        self._cart_by_product[product.id] = item.id

    def update_quantity(self, cart_item_id: Id, new_quantity: int) -> bool:
        item = self.get_cart_item(cart_item_id)
        if item is None:
            return False
        if new_quantity > 0:
            item.quantity = new_quantity
        else:
            self._drop(item.id)
        self._notify(CART)
        return True

    def remove_from_cart(self, ids: Iterable[Id]) -> int:
        removed = 0
        for raw in ids:
            key = _as_uuid(raw)
            if key in self._cart:
                self._drop(key)
                removed += 1
        if removed:
            self._notify(CART)
        return removed

    def remove_at(self, positions: Iterable[int]) -> int:
        lines = list(self._cart)
        ids = [lines[i] for i in set(positions) if 0 <= i < len(lines)]
        return self.remove_from_cart(ids)

    def clear_cart(self) -> None:
        if not self._cart:
            return
        self._cart.clear()
        self._cart_by_product.clear()
        self._notify(CART)

    def _drop(self, cart_item_id: UUID) -> None:
        item = self._cart.pop(cart_item_id)
        self._cart_by_product.pop(item.product.id, None)

    def quote(
        self,
        fulfillment: FulfillmentMethod = FulfillmentMethod.pickup,
        tip_percent: Number = 0,
        tax_rate: Optional[Number] = None,
    ) -> PriceBreakdown:
        if tax_rate is None:
            tax_rate = self.settings.TAX_RATE
        return calculate(self.cart_total, fulfillment, tip_percent, tax_rate)

    # Bundles

    @property
    def bundles(self) -> list[SavedBundle]:
        return list(self._bundles.values())

    def get_bundle(self, bundle_id: Id) -> Optional[SavedBundle]:
        key = _as_uuid(bundle_id)
        return self._bundles.get(key) if key else None

    def create_bundle_from_cart(self, name: str) -> Optional[SavedBundle]:
        if not self._cart:
            return None
        items = [BundleItem(product=item.product, quantity=item.quantity) for item in self._cart.values()]
        return self._insert_bundle(SavedBundle(name=name, items=items))

    def create_bundle(self, name: str, items: Iterable[BundleItem]) -> Optional[SavedBundle]:
        items = list(items)
        if not items or not name.strip():
            return None
        return self._insert_bundle(SavedBundle(name=name.strip(), items=items))

    def _insert_bundle(self, bundle: SavedBundle) -> SavedBundle:
        self._bundles[bundle.id] = bundle
        self._save_bundles()
        self._notify(BUNDLES)
        logger.info("saved bundle %r with %d lines", bundle.name, len(bundle.items))
        return bundle

    def add_bundle_to_cart(self, bundle: SavedBundle) -> int:
        # Merges into the cart; existing lines are kept
        for item in bundle.items:
            self._add(item.product, item.quantity)
        if bundle.items:
            self._notify(CART)
        return len(bundle.items)

    def update_bundle(self, bundle_id: Id, name: str, items: Iterable[BundleItem]) -> Optional[SavedBundle]:
        """Rename and replace the items of a bundle. Same rules as
        ``create_bundle``: a blank name or no items leaves it untouched."""
        current = self.get_bundle(bundle_id)
        items = list(items)
        name = (name or "").strip()
        if current is None or not name or not items:
            return None
        updated = current.model_copy(update={"name": name, "items": items})
        self._bundles[current.id] = updated
        self._save_bundles()
        self._notify(BUNDLES)
        return updated

    def delete_bundle(self, bundle_id: Id) -> bool:
        key = _as_uuid(bundle_id)
        if key not in self._bundles:
            return False
        del self._bundles[key]
        self._save_bundles()
        self._notify(BUNDLES)
        return True

    # Orders

    @property
    def orders(self) -> list[Order]:
        return [self._orders[oid] for oid in self._order_ids]

    @property
    def active_orders(self) -> list[Order]:
        return [order for order in self.orders if order.is_active]

    def get_order(self, order_id: Id) -> Optional[Order]:
        key = _as_uuid(order_id)
        return self._orders.get(key) if key else None

    def place_order(
        self,
        pickup_time: datetime,
        store_location: str,
        breakdown: PriceBreakdown,
        user_name: Optional[str] = None,
    ) -> Optional[Order]:
        if not self._cart:
            logger.debug("ignoring checkout of an empty cart")
            return None

        items = [
            OrderItem(product=item.product, quantity=item.quantity, frozen_price=item.product.price)
            for item in self._cart.values()
        ]
        order = Order(
            user_name=(user_name or "").strip() or self.customer.name,
            store_location=store_location,
            pickup_time=pickup_time,
            date=utcnow(),
            status=OrderStatus.processing,
            items_total=breakdown.items_total,
            delivery_fee=breakdown.delivery_fee,
            service_fee=breakdown.service_fee,
            small_order_fee=breakdown.small_order_fee,
            tax=breakdown.tax,
            tip=breakdown.tip,
            grand_total=breakdown.grand_total,
            items=items,
        )
        self._orders[order.id] = order
        self._order_ids.insert(0, order.id)
        self._cart.clear()
        self._cart_by_product.clear()
        self._save_orders()
        self._schedule_status(order)
        logger.info("placed order %s for %s (%d lines)", order.short_id, order.user_name, len(items))

        self._notify(CART)
        self._notify(ORDERS)
        return order

    def _schedule_status(self, order: Order, elapsed: float = 0.0) -> None:
        # Delays count from placement; anything already overdue fires on the next run
        packing = self.settings.PACKING_DELAY
        ready = packing + self.settings.READY_DELAY
        order_id = order.id
        if order.status is OrderStatus.processing:
            self.scheduler.schedule(packing - elapsed, order_id, lambda: self._advance_status(order_id, OrderStatus.packing))
        if order.status.rank < OrderStatus.ready.rank:
            self.scheduler.schedule(ready - elapsed, order_id, lambda: self._advance_status(order_id, OrderStatus.ready))

    def _advance_status(self, order_id: UUID, status: OrderStatus) -> bool:
        # Only ever forward, and never to completed: that takes complete_order
        order = self._orders.get(order_id)
        if order is None or status is OrderStatus.completed or order.status.rank >= status.rank:
            return False
        self._set_status(order, status)
        return True

    def _set_status(self, order: Order, status: OrderStatus) -> None:
        logger.info("order %s: %s -> %s", order.short_id, order.status.value, status.value)
        order.status = status
        self._save_orders()
        self._notify(ORDERS)

    def complete_order(self, order_id: Id) -> bool:
        """Confirm pickup of a ready order."""
        order = self.get_order(order_id)
        if order is None or order.status is not OrderStatus.ready:
            return False
        self._set_status(order, OrderStatus.completed)
        return True

    def delete_order(self, order_id: Id) -> bool:
        key = _as_uuid(order_id)
        if key not in self._orders:
            return False
        del self._orders[key]
        self._order_ids.remove(key)
        self.scheduler.cancel(key)
        self._save_orders()
        self._notify(ORDERS)
        return True

    # Persistence

    def _load(self) -> None:
        for bundle in self._read(BUNDLES_KEY, _bundles_adapter):
            self._bundles[bundle.id] = bundle
        for order in self._read(ORDERS_KEY, _orders_adapter):
            self._orders[order.id] = order
            self._order_ids.append(order.id)
            if order.status.rank < OrderStatus.ready.rank:
                self._schedule_status(order, self._seconds_since(order.date))
        logger.info("loaded %d bundles and %d orders", len(self._bundles), len(self._orders))

    @staticmethod
    def _seconds_since(moment: datetime) -> float:
        if moment.tzinfo is None:
            moment = moment.replace(tzinfo=timezone.utc)
        return max((utcnow() - moment).total_seconds(), 0.0)

    def _read(self, key: str, adapter: TypeAdapter[list[T]]) -> list[T]:
        try:
            data = self.storage.get(key)
            if data is None:
                return []
            return adapter.validate_json(data)
        except (OSError, ValueError) as e:
            logger.warning("could not load %s, starting empty: %s", key, e)
            return []

    def _write(self, key: str, adapter: TypeAdapter[list[T]], values: list[T]) -> None:
        try:
            self.storage.set(key, adapter.dump_json(values, by_alias=True))
        except Exception as e:
            logger.warning("could not save %s: %s", key, e)

    def _save_bundles(self) -> None:
        self._write(BUNDLES_KEY, _bundles_adapter, self.bundles)

    def _save_orders(self) -> None:
        self._write(ORDERS_KEY, _orders_adapter, self.orders)

    def _seed_sample_bundles(self) -> None:
        now = utcnow()
        for name, lines, days_ago in SAMPLE_BUNDLES:
            items = []
            for term, quantity in lines:
                product = self.catalog.find_first(term)
                if product is not None:
                    items.append(BundleItem(product=product, quantity=quantity))
            if not items:
                continue
            bundle = SavedBundle(name=name, items=items, created_at=now - timedelta(days=days_ago))
            self._bundles[bundle.id] = bundle
        self._save_bundles()
        logger.info("seeded %d sample bundles", len(self._bundles))
