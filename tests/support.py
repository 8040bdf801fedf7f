"""Test data and helpers shared across test modules."""

from datetime import UTC, datetime, timedelta

from checkout.cart import Cart
from checkout.domain import (
    Address,
    CartLine,
    Category,
    ProductSnapshot,
    ProductStatus,
    ShippingPayer,
)
from checkout.payments import FakeProcessor, PaymentAuthorization
from checkout.quote import QuoteRequest
from checkout.service import CheckoutService, IntentRequest

BUYER = "buyer-1"

TOKYO = Address(postal_code="100-0001", region="東京都", city="千代田区", street="千代田1-1")
HOKKAIDO = Address(postal_code="060-0001", region="北海道", city="札幌市", street="北1条西1-1")


def product(
    pid: str,
    price: int,
    payer: ShippingPayer = ShippingPayer.SELLER,
    *,
    seller: str = "seller-1",
    status: ProductStatus = ProductStatus.AVAILABLE,
    reserved_for: str | None = None,
) -> ProductSnapshot:
    return ProductSnapshot(
        id=pid,
        title=f"商品{pid}",
        price=price,
        status=status,
        shipping_payer=payer,
        seller_id=seller,
        seller_name=f"{seller}-name",
        category=Category.ROD,
        reserved_for=reserved_for,
    )


# A (¥3,000, buyer pays) + B (¥5,000, seller pays)
PRODUCT_A = product("A", 3000, ShippingPayer.BUYER, seller="seller-1")
PRODUCT_B = product("B", 5000, ShippingPayer.SELLER, seller="seller-2")
LINES = (CartLine("A"), CartLine("B"))


class FakeClock:
    """Controllable clock for authorization expiry."""

    def __init__(self) -> None:
        self.now = datetime(2026, 1, 1, 12, 0, tzinfo=UTC)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


def quote_request(lines=LINES, address: Address | None = TOKYO, **kwargs) -> QuoteRequest:
    return QuoteRequest(buyer_id=BUYER, cart=Cart.from_lines(lines, owner_id=BUYER), address=address, **kwargs)


def intent_request(lines=LINES, address: Address | None = TOKYO, **kwargs) -> IntentRequest:
    return IntentRequest(buyer_id=BUYER, lines=lines, address=address, **kwargs)


async def authorized(service: CheckoutService, processor: FakeProcessor, **kwargs) -> PaymentAuthorization:
    """Open a payment intent and let the buyer pay it."""
    result = await service.create_payment_intent(intent_request(**kwargs))
    processor.confirm(result.authorization.id)
    return await service.confirm_authorization(result.authorization.id)
