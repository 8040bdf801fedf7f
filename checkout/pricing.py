"""
Price Reconciliation — the only place a total is computed.

    subtotal = Σ server price × quantity
    fee      = shipping_fee(region, any buyer-paid item)
    total    = subtotal + fee

Client-side figures never enter here; the Quote graph compares them with
the result afterwards.
"""

from collections.abc import Iterable

from checkout.domain import PriceBreakdown, ValidatedLine
from checkout.shipping import FeeTable, buyer_pays_required, shipping_fee


def subtotal(lines: Iterable[ValidatedLine]) -> int:
    return sum(line.line_total for line in lines)


def reconcile(lines: Iterable[ValidatedLine], region: str | None, table: FeeTable) -> PriceBreakdown:
    lines = tuple(lines)
    fee = shipping_fee(region, buyer_pays_required(line.product for line in lines), table)
    return PriceBreakdown.of(subtotal(lines), fee)


__all__ = ("subtotal", "reconcile")
