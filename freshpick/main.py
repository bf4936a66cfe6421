from __future__ import annotations
import asyncio
import contextlib
import logging
from contextlib import asynccontextmanager
from datetime import datetime
from decimal import Decimal
from typing import List, Optional
from fastapi import Depends, FastAPI, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field

from .catalog import Catalog
from .config import Settings
from .pricing import display
from .scheduler import StatusScheduler
from .schemas import BundleItem, Category, FulfillmentMethod, Order, Product, SavedBundle, utcnow
from .storage import get_storage
from .store import OrderStore

logger = logging.getLogger(__name__)


def build_store(settings: Settings) -> OrderStore:
    return OrderStore(get_storage(settings), Catalog(), StatusScheduler(), settings)


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = Settings()
    logging.basicConfig(
        level=settings.LOG_LEVEL.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    store = build_store(settings)
    app.state.store = store
    task = asyncio.create_task(store.scheduler.run())
    try:
        yield
    finally:
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task


app = FastAPI(title="FreshPick API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def get_store(request: Request) -> OrderStore:
    return request.app.state.store

# Utils

def product_to_client(p: Product) -> dict:
    return p.model_dump(mode="json", by_alias=True)


def cart_to_client(store: OrderStore) -> dict:
    return {
        "items": [
            {**item.model_dump(mode="json", by_alias=True), "lineTotal": str(item.line_total)}
            for item in store.cart_items
        ],
        "count": store.cart_count,
        "total": str(store.cart_total),
    }


def bundle_to_client(bundle: SavedBundle) -> dict:
    return {
        **bundle.model_dump(mode="json", by_alias=True),
        "itemCount": bundle.item_count,
        "estimatedTotal": str(bundle.estimated_total),
    }


def order_to_client(order: Order) -> dict:
    return {
        **order.model_dump(mode="json", by_alias=True),
        "shortId": order.short_id,
        "statusLabel": order.status.label,
        "progress": order.status.progress,
    }


def lookup_product(store: OrderStore, product_id: str) -> Product:
    product = store.catalog.get(product_id)
    if product is None:
        raise HTTPException(status_code=400, detail=f"Invalid product {product_id}")
    return product


@app.get("/")
async def root():
    return {"message": "FreshPick Backend Running"}


@app.get("/profile")
async def profile(store: OrderStore = Depends(get_store)):
    return store.customer.model_dump(by_alias=True)

# Catalog

@app.get("/products")
async def list_products(
    q: Optional[str] = Query(None),
    category: Optional[Category] = Query(None),
    store: OrderStore = Depends(get_store),
):
    return [product_to_client(p) for p in store.catalog.search(q, category)]


@app.get("/products/{product_id}")
async def get_product(product_id: str, store: OrderStore = Depends(get_store)):
    product = store.catalog.get(product_id)
    if product is None:
        raise HTTPException(status_code=404, detail="Product not found")
    return product_to_client(product)

# Cart

class CartItemIn(BaseModel):
    product_id: str
    quantity: int = 1


class QuantityIn(BaseModel):
    quantity: int


class QuoteIn(BaseModel):
    fulfillment: FulfillmentMethod = FulfillmentMethod.pickup
    tip_percent: Decimal = Decimal("0")
    tax_rate: Optional[Decimal] = None


@app.get("/cart")
async def get_cart(store: OrderStore = Depends(get_store)):
    return cart_to_client(store)


@app.post("/cart/items")
async def add_cart_item(payload: CartItemIn, store: OrderStore = Depends(get_store)):
    product = lookup_product(store, payload.product_id)
    if store.add_to_cart(product, payload.quantity) is None:
        raise HTTPException(status_code=400, detail="Quantity must be positive")
    return cart_to_client(store)


@app.patch("/cart/items/{item_id}")
async def update_cart_item(item_id: str, payload: QuantityIn, store: OrderStore = Depends(get_store)):
    if not store.update_quantity(item_id, payload.quantity):
        raise HTTPException(status_code=404, detail="Cart item not found")
    return cart_to_client(store)


@app.delete("/cart/items/{item_id}")
async def delete_cart_item(item_id: str, store: OrderStore = Depends(get_store)):
    if not store.remove_from_cart([item_id]):
        raise HTTPException(status_code=404, detail="Cart item not found")
    return cart_to_client(store)


@app.delete("/cart")
async def clear_cart(store: OrderStore = Depends(get_store)):
    store.clear_cart()
    return cart_to_client(store)


@app.post("/cart/quote")
async def quote_cart(payload: QuoteIn, store: OrderStore = Depends(get_store)):
    breakdown = store.quote(payload.fulfillment, payload.tip_percent, payload.tax_rate)
    return {
        "breakdown": breakdown.model_dump(mode="json", by_alias=True),
        "display": display(breakdown),
    }

# Bundles

class BundleLineIn(BaseModel):
    product_id: str
    quantity: int = Field(ge=1, default=1)


class BundleIn(BaseModel):
    name: str
    # Omitted: snapshot the current cart
    items: Optional[List[BundleLineIn]] = None


def bundle_items(store: OrderStore, lines: List[BundleLineIn]) -> list[BundleItem]:
    return [BundleItem(product=lookup_product(store, line.product_id), quantity=line.quantity) for line in lines]


@app.get("/bundles")
async def list_bundles(store: OrderStore = Depends(get_store)):
    return [bundle_to_client(b) for b in store.bundles]


@app.post("/bundles")
async def create_bundle(payload: BundleIn, store: OrderStore = Depends(get_store)):
    if payload.items is None:
        bundle = store.create_bundle_from_cart(payload.name)
    else:
        bundle = store.create_bundle(payload.name, bundle_items(store, payload.items))
    if bundle is None:
        raise HTTPException(status_code=400, detail="Bundle needs a name and at least one item")
    return bundle_to_client(bundle)


@app.put("/bundles/{bundle_id}")
async def update_bundle(bundle_id: str, payload: BundleIn, store: OrderStore = Depends(get_store)):
    current = store.get_bundle(bundle_id)
    if current is None:
        raise HTTPException(status_code=404, detail="Bundle not found")
    items = current.items if payload.items is None else bundle_items(store, payload.items)
    bundle = store.update_bundle(bundle_id, payload.name, items)
    if bundle is None:
        raise HTTPException(status_code=400, detail="Bundle needs a name and at least one item")
    return bundle_to_client(bundle)


@app.delete("/bundles/{bundle_id}")
async def delete_bundle(bundle_id: str, store: OrderStore = Depends(get_store)):
    if not store.delete_bundle(bundle_id):
        raise HTTPException(status_code=404, detail="Bundle not found")
    return {"deleted": True}


@app.post("/bundles/{bundle_id}/cart")
async def add_bundle_to_cart(bundle_id: str, store: OrderStore = Depends(get_store)):
    bundle = store.get_bundle(bundle_id)
    if bundle is None:
        raise HTTPException(status_code=404, detail="Bundle not found")
    store.add_bundle_to_cart(bundle)
    return cart_to_client(store)

# Orders

class CheckoutIn(QuoteIn):
    user_name: Optional[str] = None
    pickup_time: Optional[datetime] = None
    store_location: Optional[str] = None
    delivery_address: Optional[str] = None


@app.get("/orders")
async def list_orders(active: bool = Query(False), store: OrderStore = Depends(get_store)):
    orders = store.active_orders if active else store.orders
    return [order_to_client(o) for o in orders]


@app.get("/orders/{order_id}")
async def get_order(order_id: str, store: OrderStore = Depends(get_store)):
    order = store.get_order(order_id)
    if order is None:
        raise HTTPException(status_code=404, detail="Order not found")
    return order_to_client(order)


@app.post("/orders")
async def create_order(payload: CheckoutIn, store: OrderStore = Depends(get_store)):
    if payload.fulfillment is FulfillmentMethod.delivery:
        location = (payload.delivery_address or "").strip()
        if not location:
            raise HTTPException(status_code=400, detail="Delivery address required")
    else:
        location = payload.store_location or store.settings.STORE_LOCATION

    # Priced server-side from the live cart
    breakdown = store.quote(payload.fulfillment, payload.tip_percent, payload.tax_rate)
    order = store.place_order(payload.pickup_time or utcnow(), location, breakdown, user_name=payload.user_name)
    if order is None:
        raise HTTPException(status_code=400, detail="Cart is empty")
    return order_to_client(order)


@app.post("/orders/{order_id}/complete")
async def complete_order(order_id: str, store: OrderStore = Depends(get_store)):
    order = store.get_order(order_id)
    if order is None:
        raise HTTPException(status_code=404, detail="Order not found")
    if not store.complete_order(order.id):
        raise HTTPException(status_code=409, detail=f"Order is {order.status.label}, not ready for pickup")
    return order_to_client(order)


@app.delete("/orders/{order_id}")
async def delete_order(order_id: str, store: OrderStore = Depends(get_store)):
    if not store.delete_order(order_id):
        raise HTTPException(status_code=404, detail="Order not found")
    return {"deleted": True}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=Settings().PORT)
