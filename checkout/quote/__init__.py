"""
Quote graph — server-side price reconciliation.

    QuoteRequest      QuoteContext
         │                 │
         ▼                 ▼
    RequestNode       ContextNode
         │                 │
         ├────────┬────────┤
         ▼        ▼        │
  ValidatedCartNode  AddressNode
         │        │        │
         ├──────┐ └──┐     │
         ▼      ▼    ▼     ▼
  SubtotalNode  ShippingFeeNode
         │           │
         └─────┬─────┘
               ▼
         BreakdownNode
               │
               ▼
           QuoteNode

ValidatedCartNode and AddressNode run concurrently. Any view is a
different target over the same nodes: preview_shipping stops at
ShippingFeeNode, build_quote goes all the way.
"""

from checkout.quote._input import QuoteRequest, QuoteContext, RequestNode, ContextNode
from checkout.quote._items import ValidatedCartNode
from checkout.quote._address import AddressNode
from checkout.quote._totals import SubtotalNode, ShippingFeeNode, BreakdownNode
from checkout.quote._quote import Quote, QuoteNode, build_quote, preview_shipping

__all__ = (
    "QuoteRequest",
    "QuoteContext",
    "RequestNode",
    "ContextNode",
    "ValidatedCartNode",
    "AddressNode",
    "SubtotalNode",
    "ShippingFeeNode",
    "BreakdownNode",
    "Quote",
    "QuoteNode",
    "build_quote",
    "preview_shipping",
)
