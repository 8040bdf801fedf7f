"""
Totals — subtotal, shipping fee and the breakdown.
"""

from checkout import graph as G
from checkout import pricing
from checkout.domain import PriceBreakdown
from checkout.observability import get_logger
from checkout.quote._address import AddressNode
from checkout.quote._input import ContextNode
from checkout.quote._items import ValidatedCartNode
from checkout.shipping import buyer_pays_required, shipping_fee

logger = get_logger(__name__)


@G.node
class SubtotalNode:
    """Σ server price × quantity."""

    def __init__(self, value: int) -> None:
        self.value = value

    @classmethod
    def __compose__(cls, items: ValidatedCartNode) -> "SubtotalNode":
        return cls(pricing.subtotal(items.data.lines))


@G.node
class ShippingFeeNode:
    """
    Region fee when any validated item is buyer-paid.

    Composes on its own for a shipping preview: address + items only.
    """

    def __init__(self, value: int, buyer_pays: bool) -> None:
        self.value = value
        self.buyer_pays = buyer_pays

    @classmethod
    def __compose__(
        cls,
        items: ValidatedCartNode,
        address: AddressNode,
        context: ContextNode,
    ) -> "ShippingFeeNode":
        buyer_pays = buyer_pays_required(items.data.snapshots)
        fee = shipping_fee(address.region, buyer_pays, context.data.fee_table)
        return cls(fee, buyer_pays)


@G.node
class BreakdownNode:
    def __init__(self, data: PriceBreakdown) -> None:
        self.data = data

    @classmethod
    def __compose__(cls, subtotal: SubtotalNode, fee: ShippingFeeNode) -> "BreakdownNode":
        breakdown = PriceBreakdown.of(subtotal.value, fee.value)
        logger.debug(
            "price_reconciled",
            subtotal=breakdown.subtotal,
            shipping_fee=breakdown.shipping_fee,
            total=breakdown.total,
        )
        return cls(breakdown)


__all__ = ("SubtotalNode", "ShippingFeeNode", "BreakdownNode")
