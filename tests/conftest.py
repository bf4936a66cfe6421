import pytest
from decimal import Decimal

from freshpick.catalog import Catalog, product_id
from freshpick.config import Settings
from freshpick.scheduler import StatusScheduler
from freshpick.schemas import Category, Product
from freshpick.storage import MemoryStorage
from freshpick.store import OrderStore


class FakeClock:
    """Monotonic clock the tests move by hand."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def make_product(name: str, price: str, category: Category = Category.pantry) -> Product:
    return Product(id=product_id(name), name=name, category=category, price=Decimal(price))


@pytest.fixture
def catalog():
    return Catalog()


@pytest.fixture
def apple(catalog):
    return catalog.find_first("Fuji Apple")


@pytest.fixture
def milk(catalog):
    return catalog.find_first("Whole Milk")


@pytest.fixture
def salmon(catalog):
    return catalog.find_first("Salmon")


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def scheduler(clock):
    return StatusScheduler(clock=clock)


@pytest.fixture
def settings():
    return Settings(SEED_SAMPLE_BUNDLES=False, PACKING_DELAY=5, READY_DELAY=10)


@pytest.fixture
def storage():
    return MemoryStorage()


@pytest.fixture
def store(storage, catalog, scheduler, settings):
    return OrderStore(storage, catalog, scheduler, settings)
