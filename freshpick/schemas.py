from __future__ import annotations
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Optional
from uuid import UUID, uuid4
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

# FreshPick schemas. Stored records use camelCase keys.


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Model(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Category(str, Enum):
    fruits = "Fruits"
    vegetables = "Vegetables"
    bakery = "Bakery"
    dairy = "Dairy & Eggs"
    meat = "Meat & Seafood"
    frozen = "Frozen Foods"
    pantry = "Pantry"
    snacks = "Snacks"
    beverages = "Beverages"
    breakfast = "Breakfast"
    household = "Household"
    personal_care = "Personal Care"
    pets = "Pet Supplies"


class Product(Model):
    model_config = ConfigDict(frozen=True)

    id: UUID
    name: str
    category: Category
    price: Decimal = Field(ge=0)
    description: str = ""
    image_name: Optional[str] = None


class CartItem(Model):
    id: UUID = Field(default_factory=uuid4)
    product: Product
    quantity: int = Field(ge=1, default=1)

    @property
    def line_total(self) -> Decimal:
        return self.product.price * self.quantity


class BundleItem(Model):
    id: UUID = Field(default_factory=uuid4)
    product: Product
    quantity: int = Field(ge=1, default=1)


class SavedBundle(Model):
    id: UUID = Field(default_factory=uuid4)
    name: str
    items: list[BundleItem] = []
    created_at: datetime = Field(default_factory=utcnow)

    @property
    def item_count(self) -> int:
        return sum(item.quantity for item in self.items)

    @property
    def estimated_total(self) -> Decimal:
        return sum((item.product.price * item.quantity for item in self.items), Decimal("0"))


class FulfillmentMethod(str, Enum):
    pickup = "pickup"
    delivery = "delivery"


class PriceBreakdown(Model):
    items_total: Decimal
    delivery_fee: Decimal
    service_fee: Decimal
    small_order_fee: Decimal
    tax: Decimal
    tip: Decimal
    grand_total: Decimal


class OrderStatus(str, Enum):
    processing = "processing"
    packing = "packing"
    ready = "ready"
    completed = "completed"

    @property
    def rank(self) -> int:
        return _STATUS_RANK[self]

    @property
    def label(self) -> str:
        return _STATUS_LABELS[self]

    @property
    def progress(self) -> float:
        return _STATUS_PROGRESS[self]


_STATUS_RANK = {
    OrderStatus.processing: 0,
    OrderStatus.packing: 1,
    OrderStatus.ready: 2,
    OrderStatus.completed: 3,
}

_STATUS_LABELS = {
    OrderStatus.processing: "Processing",
    OrderStatus.packing: "Packing",
    OrderStatus.ready: "Ready for Pickup",
    OrderStatus.completed: "Picked Up",
}

_STATUS_PROGRESS = {
    OrderStatus.processing: 0.33,
    OrderStatus.packing: 0.66,
    OrderStatus.ready: 1.0,
    OrderStatus.completed: 1.0,
}


class OrderItem(Model):
    id: UUID = Field(default_factory=uuid4)
    product: Product
    quantity: int = Field(ge=1)
    # Unit price at placement time
    frozen_price: Decimal = Field(ge=0)

    @property
    def line_total(self) -> Decimal:
        return self.frozen_price * self.quantity


class Order(Model):
    id: UUID = Field(default_factory=uuid4)
    user_name: str
    store_location: str
    pickup_time: datetime
    date: datetime = Field(default_factory=utcnow)
    status: OrderStatus = OrderStatus.processing
    items_total: Decimal
    delivery_fee: Decimal = Decimal("0")
    service_fee: Decimal = Decimal("0")
    small_order_fee: Decimal = Decimal("0")
    tax: Decimal = Decimal("0")
    tip: Decimal = Decimal("0")
    grand_total: Decimal
    items: list[OrderItem] = []

    @property
    def is_active(self) -> bool:
        return self.status is not OrderStatus.completed

    @property
    def short_id(self) -> str:
        return str(self.id)[:4].upper()


class Customer(Model):
    name: str
    email: str
    phone: str
    member_id: str
