"""Client-side cart and pricing calculator.

The cart holds items from a single restaurant. Prices are derived from the
current contents every time they are read, and the whole cart is written to a
local JSON store after every mutation so it survives restarts.
"""

from __future__ import annotations

import json
import logging
from decimal import Decimal
from pathlib import Path
from typing import Callable, List, Optional

from pydantic import BaseModel, Field

from .errors import CartConflictError, ValidationError

logger = logging.getLogger(__name__)

CART_STORAGE_KEY = "fooddash_cart"
TAX_RATE = Decimal("0.08")


class CartRestaurant(BaseModel):
    id: int
    name: str
    delivery_fee: Decimal = Decimal("0")
    image_url: Optional[str] = None


class CartMenuItem(BaseModel):
    id: int
    name: str
    price: Decimal
    image_url: Optional[str] = None


class CartItem(BaseModel):
    menu_item: CartMenuItem
    quantity: int = Field(default=1, ge=1)
    special_instructions: Optional[str] = None


class LocalStore:
    """Key/value store kept in a single JSON file."""

    def __init__(self, path: Path | str) -> None:
        self.path = Path(path)

    def _read(self) -> dict:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except json.JSONDecodeError:
            logger.warning("Ignoring unreadable store file %s", self.path)
            return {}
        if not isinstance(data, dict):
            logger.warning("Ignoring store file %s without a top-level object", self.path)
            return {}
        return data

    def _write(self, data: dict) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(data), encoding="utf-8")

    def get(self, key: str) -> Optional[dict]:
        return self._read().get(key)

    def set(self, key: str, value: dict) -> None:
        data = self._read()
        data[key] = value
        self._write(data)

    def remove(self, key: str) -> None:
        data = self._read()
        if key in data:
            del data[key]
            self._write(data)


class Cart:
    def __init__(self, store: Optional[LocalStore] = None) -> None:
        self._store = store
        self.restaurant: Optional[CartRestaurant] = None
        self.items: List[CartItem] = []

    @classmethod
    def load(cls, store: LocalStore) -> "Cart":
        cart = cls(store)
        stored = store.get(CART_STORAGE_KEY)
        if not stored:
            return cart
        if not isinstance(stored, dict):
            logger.error("Ignoring stored cart of type %s", type(stored).__name__)
            return cart
        try:
            restaurant = stored.get("restaurant")
            cart.restaurant = CartRestaurant.model_validate(restaurant) if restaurant else None
            cart.items = [CartItem.model_validate(item) for item in stored.get("items") or []]
        except (TypeError, ValueError) as exc:
            logger.error("Failed to load cart from storage: %s", exc)
            cart.restaurant = None
            cart.items = []
        return cart

    # derived amounts, recomputed on every read

    @property
    def subtotal(self) -> Decimal:
        return sum((item.menu_item.price * item.quantity for item in self.items), Decimal("0"))

    @property
    def delivery_fee(self) -> Decimal:
        return self.restaurant.delivery_fee if self.restaurant else Decimal("0")

    @property
    def tax(self) -> Decimal:
        return self.subtotal * TAX_RATE

    @property
    def total(self) -> Decimal:
        return self.subtotal + self.delivery_fee + self.tax

    @property
    def item_count(self) -> int:
        return sum(item.quantity for item in self.items)

    @property
    def is_empty(self) -> bool:
        return not self.items

    def add_item(
        self,
        restaurant: CartRestaurant,
        item: CartMenuItem,
        quantity: int = 1,
        instructions: Optional[str] = None,
        confirm: Optional[Callable[[], bool]] = None,
    ) -> CartItem:
        """Add ``quantity`` of ``item``; an existing entry for the item is incremented.

        When the cart holds another restaurant's items, ``confirm`` decides
        whether to empty the cart first. Without confirmation the add is
        rejected with ``CartConflictError`` and the cart is left as it was.
        """
        if quantity < 1:
            raise ValidationError("Quantity must be at least 1")
        if self.restaurant and self.restaurant.id != restaurant.id:
            if confirm is None or not confirm():
                raise CartConflictError("Your cart contains items from another restaurant")
            self.items = []

        self.restaurant = restaurant
        entry = self._find(item.id)
        if entry is not None:
            entry.quantity += quantity
            entry.special_instructions = instructions
        else:
            entry = CartItem(menu_item=item, quantity=quantity, special_instructions=instructions)
            self.items.append(entry)
        self._save()
        return entry

    def update_quantity(self, item_id: int, quantity: int) -> None:
        if quantity < 1:
            self.remove_item(item_id)
            return
        entry = self._find(item_id)
        if entry is not None:
            entry.quantity = quantity
        self._save()

    def remove_item(self, item_id: int) -> None:
        self.items = [item for item in self.items if item.menu_item.id != item_id]
        if not self.items:
            self.restaurant = None
        self._save()

    def clear(self) -> None:
        self.restaurant = None
        self.items = []
        if self._store is not None:
            self._store.remove(CART_STORAGE_KEY)

    def order_items(self) -> List[dict]:
        return [
            {
                "menu_item_id": item.menu_item.id,
                "item_name": item.menu_item.name,
                "item_price": item.menu_item.price,
                "quantity": item.quantity,
                "special_instructions": item.special_instructions,
            }
            for item in self.items
        ]

    def to_dict(self) -> dict:
        return {
            "restaurant": self.restaurant.model_dump(mode="json") if self.restaurant else None,
            "items": [item.model_dump(mode="json") for item in self.items],
        }

    def _find(self, item_id: int) -> Optional[CartItem]:
        for item in self.items:
            if item.menu_item.id == item_id:
                return item
        return None

    def _save(self) -> None:
        if self._store is None:
            return
        if self.restaurant or self.items:
            self._store.set(CART_STORAGE_KEY, self.to_dict())
        else:
            self._store.remove(CART_STORAGE_KEY)
