from __future__ import annotations
from decimal import Decimal
from typing import Iterable, Optional, Union
from uuid import NAMESPACE_URL, UUID, uuid5
from .schemas import Category, Product

# Static product catalog. Ids are derived from the name so they survive restarts.


def product_id(name: str) -> UUID:
    return uuid5(NAMESPACE_URL, f"freshpick:product:{name}")


def _product(name: str, image_name: str, category: Category, description: str, price: str) -> Product:
    return Product(
        id=product_id(name),
        name=name,
        image_name=image_name,
        category=category,
        description=description,
        price=Decimal(price),
    )


SEED_PRODUCTS: list[Product] = [
    # Fruits
    _product("Fuji Apple", "apple", Category.fruits, "Crisp and sweet Fuji apple, perfect for snacking.", "0.89"),
    _product("Organic Bananas", "banana", Category.fruits, "Sweet and creamy organic bananas. Price per bunch.", "0.69"),
    _product("Fresh Lemon", "lemon", Category.fruits, "Bright and zesty lemons, great for cooking or drinks.", "0.59"),
    _product("Strawberries", "strawberry", Category.fruits, "Fresh, juicy strawberries. 1lb container.", "3.49"),
    # Vegetables
    _product("Broccoli", "broccoli", Category.vegetables, "Fresh broccoli crowns, rich in vitamins.", "1.89"),
    _product("Carrots", "carrot", Category.vegetables, "Crunchy organic carrots, 1lb bag.", "1.49"),
    _product("Cucumber", "cucumber", Category.vegetables, "Cool and crisp cucumber, individually sold.", "0.99"),
    _product("Red Bell Pepper", "pepper", Category.vegetables, "Sweet and crunchy red bell pepper.", "1.29"),
    _product("Russet Potato", "potato", Category.vegetables, "Classic Russet potato, great for baking or frying.", "0.79"),
    _product("Baby Spinach", "spinach", Category.vegetables, "Pre-washed fresh baby spinach, 10oz bag.", "2.99"),
    _product("Vine Tomato", "tomato", Category.vegetables, "Ripe red tomatoes on the vine.", "0.89"),
    # Bakery
    _product("Bagels (4 Pack)", "bagels", Category.bakery, "Freshly baked plain bagels.", "3.99"),
    _product("Sliced Bread", "bread", Category.bakery, "Whole wheat sliced bread loaf.", "2.99"),
    _product("Butter Croissant", "croissant", Category.bakery, "Flaky, buttery, authentic croissant.", "2.49"),
    # Dairy & Eggs
    _product("Cheddar Cheese", "cheese", Category.dairy, "Sharp cheddar cheese block, 8oz.", "4.49"),
    _product("Large Brown Eggs", "eggs", Category.dairy, "Farm fresh large brown eggs, dozen.", "4.19"),
    _product("Whole Milk", "milk", Category.dairy, "Gallon of fresh whole milk.", "3.29"),
    _product("Fruit Yogurt", "yogurt", Category.dairy, "Strawberry flavored greek yogurt cup.", "1.29"),
    # Meat & Seafood
    _product("Ground Beef", "beef", Category.meat, "Lean ground beef, 1lb pack.", "6.49"),
    _product("Chicken Breast", "chicken", Category.meat, "Boneless skinless chicken breast, 1lb.", "5.99"),
    _product("Salmon Fillet", "salmon", Category.meat, "Fresh Atlantic salmon fillet.", "10.99"),
    # Pantry
    _product("Cooking Oil", "oil", Category.pantry, "Vegetable oil for cooking and frying.", "3.99"),
    _product("Dried Pasta", "pasta", Category.pantry, "Classic penne pasta, 16oz box.", "1.29"),
    _product("White Rice", "rice", Category.pantry, "Long grain white rice, 2lb bag.", "2.99"),
    # Snacks
    _product("Roasted Almonds", "almonds", Category.snacks, "Salted roasted almonds, healthy snack.", "6.99"),
    _product("Potato Chips", "chips", Category.snacks, "Classic salted potato chips, party size.", "3.99"),
]


class Catalog:
    """Read-only, ordered product lookup."""

    def __init__(self, products: Iterable[Product] = SEED_PRODUCTS):
        self._products = list(products)
        self._by_id = {p.id: p for p in self._products}

    def __iter__(self):
        return iter(self._products)

    def __len__(self) -> int:
        return len(self._products)

    def all(self) -> list[Product]:
        return list(self._products)

    def get(self, pid: Union[UUID, str]) -> Optional[Product]:
        try:
            key = pid if isinstance(pid, UUID) else UUID(str(pid))
        except ValueError:
            return None
        return self._by_id.get(key)

    def search(self, q: Optional[str] = None, category: Optional[Category] = None) -> list[Product]:
        # Case-insensitive substring match on name
        needle = (q or "").strip().casefold()
        return [
            p for p in self._products
            if (not needle or needle in p.name.casefold())
            and (category is None or p.category == category)
        ]

    def find_first(self, name: str) -> Optional[Product]:
        matches = self.search(name)
        return matches[0] if matches else None
