"""
Input — request and collaborators (entry points to the graph).
"""

from dataclasses import dataclass

from checkout import graph as G
from checkout.cart import Cart
from checkout.catalog import Catalog
from checkout.domain import Address, BuyerId, PaymentMethod
from checkout.profiles import ProfileStore
from checkout.shipping import FeeTable


@dataclass(frozen=True, slots=True)
class QuoteRequest:
    """What the client sends: a cart hint, maybe an address, maybe its own total."""

    buyer_id: BuyerId
    cart: Cart
    payment_method: PaymentMethod = PaymentMethod.CARD
    address: Address | None = None
    proposed_total: int | None = None


@dataclass(frozen=True, slots=True)
class QuoteContext:
    catalog: Catalog
    profiles: ProfileStore
    fee_table: FeeTable
    concurrency: int = 10


@G.node
class RequestNode:
    def __init__(self, data: QuoteRequest) -> None:
        self.data = data

    @classmethod
    def __compose__(cls, request: QuoteRequest) -> "RequestNode":
        return cls(request)


@G.node
class ContextNode:
    def __init__(self, data: QuoteContext) -> None:
        self.data = data

    @classmethod
    def __compose__(cls, context: QuoteContext) -> "ContextNode":
        return cls(context)


__all__ = ("QuoteRequest", "QuoteContext", "RequestNode", "ContextNode")
