"""
Domain — checkout of used fishing gear.

A buyer's cart is only a hint. Everything that ends up in front of the
payment processor or in the orders table is recomputed from the catalog:

    Cart (client hint)
        │
        ▼
    ProductSnapshot × N  (fresh catalog read)
        │
        ▼
    PriceBreakdown       (server prices + region fee)
        │
        ▼
    PaymentAuthorization (sized to the breakdown)
        │
        ▼
    Order + OrderItem    (denormalized, immutable money)

Money is an integer amount of yen.
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any


type ProductId = str
type BuyerId = str
type SellerId = str


# ═══════════════════════════════════════════════════════════════════════════════
# Catalog
# ═══════════════════════════════════════════════════════════════════════════════


class ProductStatus(Enum):
    AVAILABLE = "available"
    RESERVED = "reserved"
    SOLD = "sold"


class ShippingPayer(Enum):
    SELLER = "seller"
    BUYER = "buyer"


class Category(Enum):
    ROD = "rod"
    REEL = "reel"
    LURE = "lure"
    LINE = "line"
    HOOK = "hook"
    BAIT = "bait"
    WEAR = "wear"
    SET = "set"
    SERVICE = "service"
    OTHER = "other"


class Condition(Enum):
    NEW = "new"
    LIKE_NEW = "like-new"
    GOOD = "good"
    FAIR = "fair"
    POOR = "poor"


@dataclass(frozen=True, slots=True)
class ProductSnapshot:
    """Read-only projection of a catalog entry, fetched once per checkout attempt."""

    id: ProductId
    title: str
    price: int
    status: ProductStatus
    shipping_payer: ShippingPayer
    seller_id: SellerId
    seller_name: str
    image: str | None = None
    category: Category = Category.OTHER
    condition: Condition = Condition.GOOD
    reserved_for: BuyerId | None = None

    @property
    def buyer_pays_shipping(self) -> bool:
        return self.shipping_payer is ShippingPayer.BUYER

    def purchasable_by(self, buyer_id: BuyerId | None) -> bool:
        """Available, or already reserved for this very buyer."""
        if self.status is ProductStatus.AVAILABLE:
            return True
        return (
            self.status is ProductStatus.RESERVED
            and buyer_id is not None
            and self.reserved_for == buyer_id
        )


# ═══════════════════════════════════════════════════════════════════════════════
# Cart
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class CartLine:
    product_id: ProductId
    quantity: int = 1


@dataclass(frozen=True, slots=True)
class ValidatedLine:
    """A cart line that survived inventory validation, with its snapshot."""

    line: CartLine
    product: ProductSnapshot

    @property
    def line_total(self) -> int:
        return self.product.price * self.line.quantity


# ═══════════════════════════════════════════════════════════════════════════════
# Buyer
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class Address:
    postal_code: str
    region: str
    city: str
    street: str
    building: str | None = None

    @property
    def missing_fields(self) -> tuple[str, ...]:
        required = {
            "postal_code": self.postal_code,
            "region": self.region,
            "city": self.city,
            "street": self.street,
        }
        return tuple(name for name, value in required.items() if not value.strip())

    @property
    def is_complete(self) -> bool:
        return not self.missing_fields

    def to_dict(self) -> dict[str, str | None]:
        return {
            "postal_code": self.postal_code,
            "region": self.region,
            "city": self.city,
            "street": self.street,
            "building": self.building,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Address":
        return cls(
            postal_code=data["postal_code"],
            region=data["region"],
            city=data["city"],
            street=data["street"],
            building=data.get("building"),
        )


@dataclass(frozen=True, slots=True)
class BuyerProfile:
    buyer_id: BuyerId
    display_name: str
    address: Address | None = None


class PaymentMethod(Enum):
    CARD = "card"
    PAYPAY = "paypay"
    APPLE_PAY = "apple_pay"
    GOOGLE_PAY = "google_pay"


# ═══════════════════════════════════════════════════════════════════════════════
# Pricing
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class PriceBreakdown:
    subtotal: int
    shipping_fee: int
    total: int

    @classmethod
    def of(cls, subtotal: int, shipping_fee: int) -> "PriceBreakdown":
        return cls(subtotal=subtotal, shipping_fee=shipping_fee, total=subtotal + shipping_fee)


# ═══════════════════════════════════════════════════════════════════════════════
# Orders
# ═══════════════════════════════════════════════════════════════════════════════


class OrderStatus(Enum):
    """
    Lifecycle:
        PLACED → SHIPPED → DELIVERED
        PLACED | SHIPPED → CANCELLED
    """

    PLACED = "placed"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


class PaymentStatus(Enum):
    PAID = "paid"
    REFUNDED = "refunded"


@dataclass(frozen=True, slots=True)
class OrderItem:
    """Point-in-time copy of product and seller fields."""

    product_id: ProductId
    title: str
    image: str | None
    price: int
    quantity: int
    seller_id: SellerId
    seller_name: str
    category: Category
    condition: Condition
    shipping_payer: ShippingPayer

    @classmethod
    def capture(cls, validated: ValidatedLine) -> "OrderItem":
        product = validated.product
        return cls(
            product_id=product.id,
            title=product.title,
            image=product.image,
            price=product.price,
            quantity=validated.line.quantity,
            seller_id=product.seller_id,
            seller_name=product.seller_name,
            category=product.category,
            condition=product.condition,
            shipping_payer=product.shipping_payer,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "product_id": self.product_id,
            "title": self.title,
            "image": self.image,
            "price": self.price,
            "quantity": self.quantity,
            "seller_id": self.seller_id,
            "seller_name": self.seller_name,
            "category": self.category.value,
            "condition": self.condition.value,
            "shipping_payer": self.shipping_payer.value,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "OrderItem":
        return cls(
            product_id=data["product_id"],
            title=data["title"],
            image=data.get("image"),
            price=data["price"],
            quantity=data["quantity"],
            seller_id=data["seller_id"],
            seller_name=data["seller_name"],
            category=Category(data["category"]),
            condition=Condition(data["condition"]),
            shipping_payer=ShippingPayer(data["shipping_payer"]),
        )


@dataclass(frozen=True, slots=True)
class Order:
    id: str
    buyer_id: BuyerId
    authorization_id: str
    items: tuple[OrderItem, ...]
    subtotal: int
    shipping_fee: int
    total_amount: int
    currency: str
    payment_method: PaymentMethod
    shipping_address: Address
    order_status: OrderStatus
    payment_status: PaymentStatus
    created_at: datetime
    paid_at: datetime | None = None
    shipped_at: datetime | None = None
    delivered_at: datetime | None = None
    cancelled_at: datetime | None = None
    refunded_at: datetime | None = None

    @property
    def seller_ids(self) -> tuple[SellerId, ...]:
        """Distinct sellers, in item order."""
        return tuple(dict.fromkeys(item.seller_id for item in self.items))


# ═══════════════════════════════════════════════════════════════════════════════
# Errors
# ═══════════════════════════════════════════════════════════════════════════════


class CheckoutError(Exception):
    def __init__(
        self,
        code: str,
        message: str,
        *,
        details: dict[str, Any] | None = None,
        retryable: bool = False,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.details = details or {}
        self.retryable = retryable

    def __repr__(self) -> str:
        return f"CheckoutError({self.code!r}, {self.message!r})"


class CheckoutErrors:
    @staticmethod
    def empty_cart() -> CheckoutError:
        return CheckoutError("EMPTY_CART", "Cart is empty")

    @staticmethod
    def invalid_quantity(product_id: ProductId, quantity: int) -> CheckoutError:
        return CheckoutError(
            "INVALID_QUANTITY",
            f"Quantity for {product_id} must be at least 1, got {quantity}",
            details={"product_id": product_id, "quantity": quantity},
        )

    @staticmethod
    def address_incomplete(missing: tuple[str, ...]) -> CheckoutError:
        return CheckoutError(
            "ADDRESS_INCOMPLETE",
            "Shipping address is incomplete",
            details={"missing": list(missing)},
        )

    @staticmethod
    def address_required() -> CheckoutError:
        return CheckoutError(
            "ADDRESS_INCOMPLETE",
            "A shipping address is required before payment",
            details={"missing": ["address"]},
        )

    @staticmethod
    def product_not_found(product_ids: list[ProductId]) -> CheckoutError:
        return CheckoutError(
            "PRODUCT_NOT_FOUND",
            "Product no longer exists",
            details={"product_ids": product_ids},
        )

    @staticmethod
    def item_unavailable(product_ids: list[ProductId]) -> CheckoutError:
        return CheckoutError(
            "ITEM_UNAVAILABLE",
            "Item is no longer available",
            details={"product_ids": product_ids},
        )

    @staticmethod
    def catalog_error(msg: str) -> CheckoutError:
        return CheckoutError("CATALOG_ERROR", msg, retryable=True)

    @staticmethod
    def amount_below_minimum(amount: int, minimum: int) -> CheckoutError:
        return CheckoutError(
            "AMOUNT_BELOW_MINIMUM",
            f"Amount {amount} is below the processor minimum of {minimum}",
            details={"amount": amount, "minimum": minimum},
            retryable=True,
        )

    @staticmethod
    def processor_unavailable(msg: str) -> CheckoutError:
        return CheckoutError("PROCESSOR_UNAVAILABLE", msg, retryable=True)

    @staticmethod
    def authorization_not_found(authorization_id: str) -> CheckoutError:
        return CheckoutError(
            "AUTHORIZATION_NOT_FOUND",
            f"Payment authorization {authorization_id} not found",
            details={"authorization_id": authorization_id},
        )

    @staticmethod
    def authorization_stale(authorization_id: str) -> CheckoutError:
        return CheckoutError(
            "AUTHORIZATION_STALE",
            "Payment authorization was replaced; fetch a new client secret",
            details={"authorization_id": authorization_id},
        )

    @staticmethod
    def authorization_expired(authorization_id: str) -> CheckoutError:
        return CheckoutError(
            "AUTHORIZATION_EXPIRED",
            "Payment authorization expired; open a new one",
            details={"authorization_id": authorization_id},
        )

    @staticmethod
    def authorization_not_confirmed(authorization_id: str, status: str) -> CheckoutError:
        return CheckoutError(
            "AUTHORIZATION_NOT_CONFIRMED",
            f"Payment authorization is {status}, not authorized",
            details={"authorization_id": authorization_id, "status": status},
        )

    @staticmethod
    def buyer_mismatch(authorization_id: str) -> CheckoutError:
        return CheckoutError(
            "BUYER_MISMATCH",
            "Payment authorization belongs to another buyer",
            details={"authorization_id": authorization_id},
        )

    @staticmethod
    def amount_mismatch(authorized: int, reconciled: int) -> CheckoutError:
        return CheckoutError(
            "AMOUNT_MISMATCH",
            "Reconciled total differs from the authorized amount",
            details={"authorized": authorized, "reconciled": reconciled},
        )

    @staticmethod
    def invalid_transition(subject: str, current: str, target: str) -> CheckoutError:
        return CheckoutError(
            "INVALID_TRANSITION",
            f"{subject} cannot move from {current} to {target}",
            details={"current": current, "target": target},
        )

    @staticmethod
    def settlement_in_progress(authorization_id: str) -> CheckoutError:
        return CheckoutError(
            "SETTLEMENT_IN_PROGRESS",
            "Settlement for this authorization is already running",
            details={"authorization_id": authorization_id},
        )

    @staticmethod
    def order_not_found(order_id: str) -> CheckoutError:
        return CheckoutError(
            "ORDER_NOT_FOUND",
            f"Order {order_id} not found",
            details={"order_id": order_id},
        )

    @staticmethod
    def store_error(msg: str) -> CheckoutError:
        return CheckoutError("STORE_ERROR", msg, retryable=True)


# ═══════════════════════════════════════════════════════════════════════════════
# Exports
# ═══════════════════════════════════════════════════════════════════════════════

__all__ = (
    "ProductId",
    "BuyerId",
    "SellerId",
    "ProductStatus",
    "ShippingPayer",
    "Category",
    "Condition",
    "ProductSnapshot",
    "CartLine",
    "ValidatedLine",
    "Address",
    "BuyerProfile",
    "PaymentMethod",
    "PriceBreakdown",
    "OrderStatus",
    "PaymentStatus",
    "OrderItem",
    "Order",
    "CheckoutError",
    "CheckoutErrors",
)
