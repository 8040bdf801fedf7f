"""
Quote — reconciled checkout state, the input of a payment authorization.
"""

import hashlib
from dataclasses import dataclass

from checkout import graph as G
from checkout.domain import (
    Address,
    BuyerId,
    PaymentMethod,
    PriceBreakdown,
    ProductId,
    ValidatedLine,
)
from checkout.observability import get_logger
from checkout.quote._address import AddressNode
from checkout.quote._input import QuoteContext, QuoteRequest, RequestNode
from checkout.quote._items import ValidatedCartNode
from checkout.quote._totals import BreakdownNode, ShippingFeeNode
from checkout.shipping import normalize_region

logger = get_logger(__name__)


@dataclass(frozen=True, slots=True)
class Quote:
    buyer_id: BuyerId
    lines: tuple[ValidatedLine, ...]
    missing: tuple[ProductId, ...]
    unavailable: tuple[ProductId, ...]
    address: Address | None
    payment_method: PaymentMethod
    breakdown: PriceBreakdown
    proposed_total: int | None = None

    @property
    def total(self) -> int:
        return self.breakdown.total

    @property
    def mismatch(self) -> bool:
        return self.proposed_total is not None and self.proposed_total != self.breakdown.total

    @property
    def fingerprint(self) -> str:
        """Changes whenever anything that sizes or describes the charge changes."""
        region = normalize_region(self.address.region) if self.address else ""
        parts = [
            str(self.breakdown.total),
            region,
            self.payment_method.value,
            *(f"{v.product.id}:{v.line.quantity}:{v.product.price}" for v in sorted(self.lines, key=lambda v: v.product.id)),
        ]
        return hashlib.sha256("|".join(parts).encode()).hexdigest()


@G.node
class QuoteNode:
    def __init__(self, data: Quote) -> None:
        self.data = data

    @classmethod
    def __compose__(
        cls,
        request: RequestNode,
        items: ValidatedCartNode,
        address: AddressNode,
        breakdown: BreakdownNode,
    ) -> "QuoteNode":
        quote = Quote(
            buyer_id=request.data.buyer_id,
            lines=items.data.lines,
            missing=items.data.missing,
            unavailable=items.data.unavailable,
            address=address.data,
            payment_method=request.data.payment_method,
            breakdown=breakdown.data,
            proposed_total=request.data.proposed_total,
        )

        if quote.mismatch:
            # Server total wins, the client figure is only reported
            logger.warning(
                "total_mismatch",
                buyer_id=quote.buyer_id,
                proposed=quote.proposed_total,
                reconciled=quote.total,
            )
        return cls(quote)


async def build_quote(request: QuoteRequest, context: QuoteContext) -> Quote:
    """Run the whole reconciliation graph. Raises CheckoutError."""
    node = await G.compose(QuoteNode, request, context)
    return node.data


async def preview_shipping(request: QuoteRequest, context: QuoteContext) -> int:
    """
    Shipping fee only.

    Only runs: items → address → fee. Subtotal and quote are never built.
    """
    node = await G.compose(ShippingFeeNode, request, context)
    return node.value


__all__ = ("Quote", "QuoteNode", "build_quote", "preview_shipping")
