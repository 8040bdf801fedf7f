"""
Checkout service — the facade HTTP handlers talk to.

    create_payment_intent   cart hint → quote → authorization
    confirm_authorization   poll the processor
    handle_event            processor webhook (refunds reach the order)
    settle                  authorization → order
    orders                  list / get / status transitions

Every method raises CheckoutError on refusal.
"""

from collections.abc import Callable, Sequence
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncEngine

from checkout.cart import Cart, CartStore, MemoryCartStore
from checkout.catalog import Catalog, SQLAlchemyCatalog
from checkout.config import Settings, get_settings
from checkout.db import create_database
from checkout.domain import (
    Address,
    BuyerId,
    CartLine,
    CheckoutErrors,
    Order,
    OrderStatus,
    PaymentMethod,
)
from checkout.idempotency import StoreAny
from checkout.notifications import MemoryNotificationSink, NotificationSink
from checkout.observability import bind_context, get_logger
from checkout.orders import (
    OrderRepository,
    OrderWriter,
    SettlementResult,
    SettleRequest,
    SQLAlchemyOrderRepository,
    settlement_store,
)
from checkout.payments import (
    AuthorizationManager,
    AuthorizationStore,
    EventType,
    FakeProcessor,
    MemoryAuthorizationStore,
    PaymentAuthorization,
    PaymentProcessor,
    ProcessorEvent,
    utcnow,
)
from checkout.profiles import MemoryProfileStore, ProfileStore
from checkout.quote import Quote, QuoteContext, QuoteRequest, build_quote, preview_shipping
from checkout.shipping import FeeTable, shipping_fee

logger = get_logger(__name__)


@dataclass(frozen=True, slots=True)
class IntentRequest:
    """
    A payment-intent request.

    Note: lines=None checks out the buyer's stored cart; otherwise the
    client's cart replaces it first.
    """

    buyer_id: BuyerId
    lines: Sequence[CartLine] | None = None
    address: Address | None = None
    payment_method: PaymentMethod = PaymentMethod.CARD
    proposed_total: int | None = None
    checkout_id: str | None = None
    save_address: bool = False


@dataclass(frozen=True, slots=True)
class IntentResult:
    authorization: PaymentAuthorization
    quote: Quote


def checkout_id_for(buyer_id: BuyerId) -> str:
    """One live checkout per buyer unless the client names its own."""
    return f"checkout:{buyer_id}"


class CheckoutService:
    def __init__(
        self,
        *,
        catalog: Catalog,
        orders: OrderRepository,
        processor: PaymentProcessor,
        carts: CartStore | None = None,
        profiles: ProfileStore | None = None,
        authorizations: AuthorizationStore | None = None,
        notifications: NotificationSink | None = None,
        settlements: StoreAny | None = None,
        settings: Settings | None = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.settings = settings or get_settings()
        self.catalog = catalog
        self.orders = orders
        self.carts = carts or MemoryCartStore()
        self.profiles = profiles or MemoryProfileStore()
        self.notifications = notifications or MemoryNotificationSink()
        self.fee_table = FeeTable.from_settings(self.settings)
        self._clock = clock

        self.payments = AuthorizationManager(
            processor,
            authorizations or MemoryAuthorizationStore(),
            self.settings,
            clock,
        )
        self.writer = OrderWriter(
            payments=self.payments,
            catalog=self.catalog,
            orders=self.orders,
            carts=self.carts,
            profiles=self.profiles,
            notifications=self.notifications,
            fee_table=self.fee_table,
            settlements=settlements,
            settings=self.settings,
            clock=clock,
        )

    @property
    def context(self) -> QuoteContext:
        return QuoteContext(
            catalog=self.catalog,
            profiles=self.profiles,
            fee_table=self.fee_table,
            concurrency=self.settings.inventory_concurrency,
        )

    # ═══════════════════════════════════════════════════════════════════════════
    # Checkout
    # ═══════════════════════════════════════════════════════════════════════════

    async def _cart_for(self, request: IntentRequest) -> Cart:
        if request.lines is None:
            return await self.carts.load(request.buyer_id)

        cart = Cart.from_lines(request.lines, owner_id=request.buyer_id)
        await self.carts.save(cart)
        return cart

    def _quote_request(self, request: IntentRequest, cart: Cart) -> QuoteRequest:
        return QuoteRequest(
            buyer_id=request.buyer_id,
            cart=cart,
            payment_method=request.payment_method,
            address=request.address,
            proposed_total=request.proposed_total,
        )

    async def quote(self, request: IntentRequest) -> Quote:
        cart = await self._cart_for(request)
        return await build_quote(self._quote_request(request, cart), self.context)

    async def create_payment_intent(self, request: IntentRequest) -> IntentResult:
        bind_context(buyer_id=request.buyer_id)
        quote = await self.quote(request)

        if request.save_address and request.address is not None:
            await self.profiles.save_address(request.buyer_id, request.address)

        checkout_id = request.checkout_id or checkout_id_for(request.buyer_id)
        authorization = await self.payments.open(checkout_id, quote)
        return IntentResult(authorization=authorization, quote=quote)

    async def preview_shipping(self, request: IntentRequest) -> int:
        cart = await self._cart_for(request)
        return await preview_shipping(self._quote_request(request, cart), self.context)

    def shipping_fee(self, region: str | None, buyer_pays: bool) -> int:
        return shipping_fee(region, buyer_pays, self.fee_table)

    # ═══════════════════════════════════════════════════════════════════════════
    # Payments
    # ═══════════════════════════════════════════════════════════════════════════

    async def confirm_authorization(self, authorization_id: str) -> PaymentAuthorization:
        return await self.payments.confirm(authorization_id)

    async def handle_event(self, event: ProcessorEvent) -> PaymentAuthorization | None:
        authorization = await self.payments.handle_event(event)
        if event.type == EventType.REFUNDED and authorization is not None:
            order = await self.orders.mark_refunded(authorization.id, self._clock())
            if order is not None:
                logger.info("order_refunded", order_id=order.id, authorization_id=authorization.id)
        return authorization

    async def abandon_expired(self) -> list[PaymentAuthorization]:
        return await self.payments.abandon_expired()

    # ═══════════════════════════════════════════════════════════════════════════
    # Orders
    # ═══════════════════════════════════════════════════════════════════════════

    async def settle(self, request: SettleRequest) -> SettlementResult:
        bind_context(buyer_id=request.buyer_id, authorization_id=request.authorization_id)
        return await self.writer.settle(request)

    async def get_order(self, order_id: str) -> Order:
        order = await self.orders.get(order_id)
        if order is None:
            raise CheckoutErrors.order_not_found(order_id)
        return order

    async def list_orders(self, buyer_id: BuyerId) -> list[Order]:
        return await self.orders.list_for_buyer(buyer_id)

    async def transition_order(self, order_id: str, status: OrderStatus) -> Order:
        order = await self.orders.transition(order_id, status, self._clock())
        logger.info("order_status_changed", order_id=order_id, status=status.value)
        return order


async def create_service(
    settings: Settings | None = None,
    *,
    processor: PaymentProcessor | None = None,
    **collaborators,
) -> tuple[CheckoutService, AsyncEngine]:
    """
    Database-backed service: SQLAlchemy catalog, orders and settlement
    records; in-memory carts, profiles and authorizations.

    Returns (service, engine); dispose the engine on shutdown.
    """
    settings = settings or get_settings()
    session_factory, engine = await create_database(settings.database_url)

    service = CheckoutService(
        catalog=SQLAlchemyCatalog(session_factory),
        orders=SQLAlchemyOrderRepository(session_factory),
        processor=processor or FakeProcessor(minimum_amount=settings.min_charge_amount),
        settlements=settlement_store(session_factory),
        settings=settings,
        **collaborators,
    )
    return service, engine


__all__ = (
    "IntentRequest",
    "IntentResult",
    "checkout_id_for",
    "CheckoutService",
    "create_service",
)
