"""
Address — request address, falling back to the buyer's saved one.
"""

from checkout import graph as G
from checkout.domain import Address, CheckoutErrors
from checkout.quote._input import ContextNode, RequestNode


@G.node
class AddressNode:
    """
    data is None while the buyer has not given an address yet.

    A present but incomplete address blocks checkout (ADDRESS_INCOMPLETE).
    """

    def __init__(self, data: Address | None) -> None:
        self.data = data

    @classmethod
    async def __compose__(cls, request: RequestNode, context: ContextNode) -> "AddressNode":
        address = request.data.address
        if address is None:
            profile = await context.data.profiles.get(request.data.buyer_id)
            address = profile.address if profile else None

        if address is not None and not address.is_complete:
            raise CheckoutErrors.address_incomplete(address.missing_fields)

        return cls(address)

    @property
    def region(self) -> str | None:
        return self.data.region if self.data else None


__all__ = ("AddressNode",)
