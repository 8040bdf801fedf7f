"""
Items — validated cart lines with fresh snapshots.
"""

from checkout import graph as G
from checkout.domain import CheckoutErrors
from checkout.inventory import ValidatedCart, validate_cart
from checkout.quote._input import ContextNode, RequestNode


@G.node
class ValidatedCartNode:
    """
    Fetch every product in parallel, keep what can still be bought.

    Raises EMPTY_CART for an empty cart. When nothing survives,
    PRODUCT_NOT_FOUND if every line was deleted, ITEM_UNAVAILABLE otherwise.
    """

    def __init__(self, data: ValidatedCart) -> None:
        self.data = data

    @classmethod
    async def __compose__(cls, request: RequestNode, context: ContextNode) -> "ValidatedCartNode":
        cart = request.data.cart
        if cart.is_empty:
            raise CheckoutErrors.empty_cart()

        validated = await validate_cart(
            cart.lines,
            context.data.catalog,
            buyer_id=request.data.buyer_id,
            concurrency=context.data.concurrency,
        )

        if validated.is_empty:
            if not validated.unavailable:
                raise CheckoutErrors.product_not_found(list(validated.missing))
            raise CheckoutErrors.item_unavailable(list(validated.dropped))

        return cls(validated)


__all__ = ("ValidatedCartNode",)
