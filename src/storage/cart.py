# client-side shopping cart backed by the local key/value store
from __future__ import annotations

import asyncio
import json
from dataclasses import dataclass
from decimal import Decimal
from typing import Callable, List, Literal, Optional, Tuple

from pydantic import TypeAdapter, ValidationError

from storage import local
from storage.models import CartItem, Product, ProductId
from utils.logger import get_logger

_logger = get_logger(__name__)

_items_adapter = TypeAdapter(List[CartItem])

NOTICE_TIMEOUT = 3.0  # seconds a cart notice stays on screen


@dataclass(frozen=True)
class CartNotice:
    kind: Literal["added", "quantity"]
    message: str
    item: CartItem
    timeout: float = NOTICE_TIMEOUT


class CartStore:
    """
    Ordered cart lines, at most one per product id.

    In-memory state is changed synchronously, before any await, so each
    call is a single atomic step on the event loop. Every mutation then
    overwrites the persisted copy with the full collection.
    """

    def __init__(self) -> None:
        self._items: List[CartItem] = []
        self._hydrated = False
        self._write_lock = asyncio.Lock()
        self._listeners: List[Callable[[CartNotice], None]] = []

    # ---------------------------
    # Notifications
    # ---------------------------

    def on_notify(self, callback: Callable[[CartNotice], None]) -> Callable[[], None]:
        """Subscribe to add-to-cart notices. Returns an unsubscribe function."""
        self._listeners.append(callback)
        return lambda: self._listeners.remove(callback)

    def _emit(self, notice: CartNotice) -> None:
        for callback in list(self._listeners):
            try:
                callback(notice)
            except Exception:
                _logger.exception("Cart notice listener failed")

    # ---------------------------
    # Persistence
    # ---------------------------

    async def hydrate(self) -> None:
        """Load the persisted cart once. A corrupt payload is logged and discarded."""
        if self._hydrated:
            return
        self._hydrated = True

        raw = await local.get_item(local.CART_KEY)
        if raw is None:
            self._items = []
            return
        try:
            items = _items_adapter.validate_json(raw)
        except (ValidationError, ValueError) as e:
            _logger.error(f"Discarding unreadable persisted cart: {e}")
            self._items = []
            return

        # collapse duplicates a hand-edited payload could contain
        merged: List[CartItem] = []
        for item in items:
            existing = self._find(item.id, merged)
            if existing:
                existing.quantity += item.quantity
            else:
                merged.append(item)
        self._items = merged
        _logger.info(f"Cart restored with {len(merged)} line(s).")

    def dumps(self) -> str:
        return json.dumps([item.model_dump(mode="json") for item in self._items])

    async def _persist(self) -> None:
        # serialize inside the lock so the last write always carries the newest state
        async with self._write_lock:
            await local.set_item(local.CART_KEY, self.dumps())

    # ---------------------------
    # Queries
    # ---------------------------

    @staticmethod
    def _find(product_id: ProductId, items: List[CartItem]) -> Optional[CartItem]:
        for item in items:
            if item.id == product_id:
                return item
        return None

    @property
    def items(self) -> Tuple[CartItem, ...]:
        return tuple(self._items)

    def get(self, product_id: ProductId) -> Optional[CartItem]:
        return self._find(product_id, self._items)

    def is_empty(self) -> bool:
        return not self._items

    def total_items(self) -> int:
        return sum(item.quantity for item in self._items)

    def total_price(self) -> Decimal:
        return sum((item.line_total for item in self._items), Decimal("0"))

    # ---------------------------
    # Mutations
    # ---------------------------

    async def add(self, product: Product) -> CartItem:
        """Add one unit of product, merging with an existing line."""
        existing = self.get(product.id)
        if existing:
            existing.quantity += 1
            item = existing
            notice = CartNotice(
                "quantity", f"{item.name}: quantity now {item.quantity}", item
            )
        else:
            item = CartItem.from_product(product)
            self._items.append(item)
            notice = CartNotice("added", f"{item.name} added to cart", item)

        await self._persist()
        self._emit(notice)
        return item

    async def remove(self, product_id: ProductId) -> None:
        item = self.get(product_id)
        if item is None:
            return
        self._items.remove(item)
        await self._persist()

    async def set_quantity(self, product_id: ProductId, quantity: int) -> None:
        """Overwrite a line's quantity; zero or less removes the line."""
        if quantity <= 0:
            await self.remove(product_id)
            return
        item = self.get(product_id)
        if item is None:
            return
        item.quantity = quantity
        await self._persist()

    async def clear(self) -> None:
        """Empty the cart and erase its persisted state."""
        self._items = []
        async with self._write_lock:
            await local.remove_item(local.CART_KEY)

    async def complete_checkout(self) -> None:
        """Payment finished: drop the cart and the checkout marker."""
        await self.clear()
        await local.remove_item(local.CHECKOUT_MARKER_KEY)
