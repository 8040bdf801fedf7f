"""
HTTP schemas — pydantic models at the edge.

In-models convert with to_domain(), out-models with from_domain().
Field names are camelCase on the wire.
"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from checkout.domain import (
    Address,
    CartLine,
    Order,
    OrderItem,
    OrderStatus,
    PaymentMethod,
)
from checkout.orders import SettlementResult, SettleRequest
from checkout.payments import PaymentAuthorization, ProcessorEvent
from checkout.service import IntentRequest, IntentResult


class Schema(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ═══════════════════════════════════════════════════════════════════════════════
# Requests
# ═══════════════════════════════════════════════════════════════════════════════


class CartLineIn(Schema):
    product_id: str
    quantity: int = Field(default=1, ge=1)

    def to_domain(self) -> CartLine:
        return CartLine(self.product_id, self.quantity)


class AddressIn(Schema):
    postal_code: str = ""
    region: str = ""
    city: str = ""
    street: str = ""
    building: str | None = None

    def to_domain(self) -> Address:
        return Address(
            postal_code=self.postal_code,
            region=self.region,
            city=self.city,
            street=self.street,
            building=self.building,
        )


class PaymentIntentIn(Schema):
    buyer_id: str
    items: list[CartLineIn] | None = None
    address: AddressIn | None = None
    payment_method: PaymentMethod = PaymentMethod.CARD
    proposed_total: int | None = None
    checkout_id: str | None = None
    save_address: bool = False

    def to_domain(self) -> IntentRequest:
        return IntentRequest(
            buyer_id=self.buyer_id,
            lines=[item.to_domain() for item in self.items] if self.items is not None else None,
            address=self.address.to_domain() if self.address else None,
            payment_method=self.payment_method,
            proposed_total=self.proposed_total,
            checkout_id=self.checkout_id,
            save_address=self.save_address,
        )


class PaymentEventIn(Schema):
    type: str
    intent_id: str
    failure_message: str | None = None

    def to_domain(self) -> ProcessorEvent:
        return ProcessorEvent(type=self.type, intent_id=self.intent_id, failure_message=self.failure_message)


class SettleIn(Schema):
    authorization_id: str
    buyer_id: str
    client_secret: str | None = None

    def to_domain(self) -> SettleRequest:
        return SettleRequest(
            authorization_id=self.authorization_id,
            buyer_id=self.buyer_id,
            client_secret=self.client_secret,
        )


class OrderStatusIn(Schema):
    status: OrderStatus


# ═══════════════════════════════════════════════════════════════════════════════
# Responses
# ═══════════════════════════════════════════════════════════════════════════════


class PaymentIntentOut(Schema):
    authorization_id: str
    client_secret: str
    status: str
    amount: int
    currency: str
    subtotal: int
    shipping_fee: int
    total: int
    missing: list[str]
    unavailable: list[str]
    total_mismatch: bool

    @classmethod
    def from_domain(cls, result: IntentResult) -> "PaymentIntentOut":
        authorization, quote = result.authorization, result.quote
        return cls(
            authorization_id=authorization.id,
            client_secret=authorization.client_secret,
            status=authorization.status.value,
            amount=authorization.amount,
            currency=authorization.currency,
            subtotal=quote.breakdown.subtotal,
            shipping_fee=quote.breakdown.shipping_fee,
            total=quote.breakdown.total,
            missing=list(quote.missing),
            unavailable=list(quote.unavailable),
            total_mismatch=quote.mismatch,
        )


class AuthorizationOut(Schema):
    authorization_id: str
    status: str
    amount: int
    currency: str
    failure_reason: str | None = None

    @classmethod
    def from_domain(cls, authorization: PaymentAuthorization) -> "AuthorizationOut":
        return cls(
            authorization_id=authorization.id,
            status=authorization.status.value,
            amount=authorization.amount,
            currency=authorization.currency,
            failure_reason=authorization.failure_reason,
        )


class PaymentEventOut(Schema):
    received: bool = True
    authorization: AuthorizationOut | None = None


class SettleOut(Schema):
    order_id: str
    replayed: bool
    total_amount: int
    order_status: str

    @classmethod
    def from_domain(cls, result: SettlementResult) -> "SettleOut":
        return cls(
            order_id=result.order.id,
            replayed=result.replayed,
            total_amount=result.order.total_amount,
            order_status=result.order.order_status.value,
        )


class OrderItemOut(Schema):
    product_id: str
    title: str
    image: str | None
    price: int
    quantity: int
    seller_id: str
    seller_name: str
    category: str
    condition: str
    shipping_payer: str

    @classmethod
    def from_domain(cls, item: OrderItem) -> "OrderItemOut":
        return cls(**item.to_dict())


class AddressOut(Schema):
    postal_code: str
    region: str
    city: str
    street: str
    building: str | None = None


class OrderOut(Schema):
    order_id: str
    buyer_id: str
    authorization_id: str
    items: list[OrderItemOut]
    subtotal: int
    shipping_fee: int
    total_amount: int
    currency: str
    payment_method: str
    shipping_address: AddressOut
    order_status: str
    payment_status: str
    created_at: datetime
    paid_at: datetime | None = None
    shipped_at: datetime | None = None
    delivered_at: datetime | None = None
    cancelled_at: datetime | None = None
    refunded_at: datetime | None = None

    @classmethod
    def from_domain(cls, order: Order) -> "OrderOut":
        return cls(
            order_id=order.id,
            buyer_id=order.buyer_id,
            authorization_id=order.authorization_id,
            items=[OrderItemOut.from_domain(item) for item in order.items],
            subtotal=order.subtotal,
            shipping_fee=order.shipping_fee,
            total_amount=order.total_amount,
            currency=order.currency,
            payment_method=order.payment_method.value,
            shipping_address=AddressOut(**order.shipping_address.to_dict()),
            order_status=order.order_status.value,
            payment_status=order.payment_status.value,
            created_at=order.created_at,
            paid_at=order.paid_at,
            shipped_at=order.shipped_at,
            delivered_at=order.delivered_at,
            cancelled_at=order.cancelled_at,
            refunded_at=order.refunded_at,
        )


class ShippingFeeOut(Schema):
    region: str
    buyer_pays: bool
    fee: int


class ErrorBody(Schema):
    code: str
    message: str
    retryable: bool = False
    details: dict = Field(default_factory=dict)


class ErrorOut(Schema):
    error: ErrorBody


__all__ = (
    "CartLineIn",
    "AddressIn",
    "PaymentIntentIn",
    "PaymentEventIn",
    "SettleIn",
    "OrderStatusIn",
    "PaymentIntentOut",
    "AuthorizationOut",
    "PaymentEventOut",
    "SettleOut",
    "OrderItemOut",
    "AddressOut",
    "OrderOut",
    "ShippingFeeOut",
    "ErrorBody",
    "ErrorOut",
)
