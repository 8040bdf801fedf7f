"""
Cart — session-scoped value object.

The cart is what the buyer *wants*; it is never trusted for prices or
availability. Every operation returns a new Cart:

    cart = Cart.empty("buyer-1").add("rod-1").add("reel-2", 2).add("rod-1")
    cart.lines  # (CartLine("rod-1", 2), CartLine("reel-2", 2))

CartStore keeps one cart per buyer between requests.
"""

import asyncio
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Protocol

from checkout.domain import BuyerId, CartLine, CheckoutErrors, ProductId


# ═══════════════════════════════════════════════════════════════════════════════
# Cart
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class Cart:
    owner_id: BuyerId | None
    lines: tuple[CartLine, ...] = ()

    @classmethod
    def empty(cls, owner_id: BuyerId | None = None) -> "Cart":
        return cls(owner_id=owner_id)

    @classmethod
    def from_lines(cls, lines: Iterable[CartLine], owner_id: BuyerId | None = None) -> "Cart":
        """Build a cart from raw lines, merging duplicates in first-seen order."""
        cart = cls.empty(owner_id)
        for line in lines:
            cart = cart.add(line.product_id, line.quantity)
        return cart

    @property
    def is_empty(self) -> bool:
        return not self.lines

    @property
    def product_ids(self) -> tuple[ProductId, ...]:
        return tuple(line.product_id for line in self.lines)

    def quantity_of(self, product_id: ProductId) -> int:
        for line in self.lines:
            if line.product_id == product_id:
                return line.quantity
        return 0

    def add(self, product_id: ProductId, quantity: int = 1) -> "Cart":
        if quantity < 1:
            raise CheckoutErrors.invalid_quantity(product_id, quantity)

        if self.quantity_of(product_id):
            return self._replace_lines(
                CartLine(line.product_id, line.quantity + quantity)
                if line.product_id == product_id
                else line
                for line in self.lines
            )
        return self._replace_lines((*self.lines, CartLine(product_id, quantity)))

    def set_quantity(self, product_id: ProductId, quantity: int) -> "Cart":
        if quantity < 1:
            raise CheckoutErrors.invalid_quantity(product_id, quantity)
        if not self.quantity_of(product_id):
            return self.add(product_id, quantity)
        return self._replace_lines(
            CartLine(product_id, quantity) if line.product_id == product_id else line
            for line in self.lines
        )

    def remove(self, product_id: ProductId) -> "Cart":
        return self.remove_many((product_id,))

    def remove_many(self, product_ids: Iterable[ProductId]) -> "Cart":
        gone = set(product_ids)
        return self._replace_lines(line for line in self.lines if line.product_id not in gone)

    def clear(self) -> "Cart":
        return Cart.empty(self.owner_id)

    def merge(self, other: "Cart") -> "Cart":
        """Fold another cart's lines into this one (e.g. guest cart after login)."""
        cart = self
        for line in other.lines:
            cart = cart.add(line.product_id, line.quantity)
        return cart

    def for_owner(self, owner_id: BuyerId | None) -> "Cart":
        """
        Bind the cart to a buyer.

        Note: a cart held for somebody else is discarded, never handed over.
        An anonymous cart is adopted as is.
        """
        if self.owner_id is None:
            return Cart(owner_id=owner_id, lines=self.lines)
        if self.owner_id != owner_id:
            return Cart.empty(owner_id)
        return self

    def _replace_lines(self, lines: Iterable[CartLine]) -> "Cart":
        return Cart(owner_id=self.owner_id, lines=tuple(lines))


# ═══════════════════════════════════════════════════════════════════════════════
# Cart Store
# ═══════════════════════════════════════════════════════════════════════════════


class CartStore(Protocol):
    async def load(self, buyer_id: BuyerId) -> Cart: ...

    async def save(self, cart: Cart) -> None: ...

    async def clear(self, buyer_id: BuyerId) -> None: ...

    async def remove_products(self, buyer_id: BuyerId, product_ids: Iterable[ProductId]) -> Cart: ...


class MemoryCartStore:
    """
    In-memory cart store keyed by buyer.

    Note: single process only.
    """

    def __init__(self) -> None:
        self._carts: dict[BuyerId, Cart] = {}
        self._lock = asyncio.Lock()

    async def load(self, buyer_id: BuyerId) -> Cart:
        async with self._lock:
            return self._carts.get(buyer_id, Cart.empty(buyer_id))

    async def save(self, cart: Cart) -> None:
        if cart.owner_id is None:
            raise ValueError("Only carts bound to a buyer can be stored")
        async with self._lock:
            self._carts[cart.owner_id] = cart

    async def clear(self, buyer_id: BuyerId) -> None:
        async with self._lock:
            self._carts.pop(buyer_id, None)

    async def remove_products(self, buyer_id: BuyerId, product_ids: Iterable[ProductId]) -> Cart:
        async with self._lock:
            cart = self._carts.get(buyer_id, Cart.empty(buyer_id)).remove_many(product_ids)
            self._carts[buyer_id] = cart
            return cart


__all__ = ("Cart", "CartStore", "MemoryCartStore")
