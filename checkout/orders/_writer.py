"""
Order Writer — turn an authorized payment into exactly one order.

    settle(request)
      │
      ├─ idempotency (key = authorization id, FAIL on in-flight)
      │     completed → existing order, replayed=True
      │
      ├─ claim                   current, owned, authorized, in window → SETTLING
      ├─ re-validate             fresh snapshots, same total as authorized
      ├─ saga
      │     mark each product SOLD  ⟲ restore previous status
      │     insert order (unique authorization id)
      ├─ authorization SETTLED   (any refusal above releases the claim)
      ├─ clear purchased items from the cart
      └─ notify sellers (fire-and-forget)

Nothing before the order insert is visible to other buyers: a failed
settlement leaves the cart and availability as they were.
"""

import uuid
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import datetime

from combinators import lift as L
from kungfu import Error, LazyCoroResult, Ok

from checkout import idempotency as I
from checkout import pricing
from checkout import saga as S
from checkout.cart import CartStore
from checkout.catalog import Catalog, StatusChange, revert, transition
from checkout.config import Settings, get_settings
from checkout.domain import (
    BuyerId,
    CheckoutError,
    CheckoutErrors,
    Order,
    OrderItem,
    OrderStatus,
    PaymentStatus,
    ProductSnapshot,
    ProductStatus,
    ValidatedLine,
)
from checkout.inventory import fetch_snapshots
from checkout.notifications import NotificationSink, notify_sellers
from checkout.observability import get_logger
from checkout.orders._repository import OrderRepository
from checkout.orders._settlements import SettlementPending
from checkout.payments import AuthorizationManager, PaymentAuthorization, utcnow
from checkout.profiles import ProfileStore, display_name
from checkout.shipping import FeeTable

logger = get_logger(__name__)


@dataclass(frozen=True, slots=True)
class SettleRequest:
    authorization_id: str
    buyer_id: BuyerId
    client_secret: str | None = None


@dataclass(frozen=True, slots=True)
class SettlementResult:
    order: Order
    replayed: bool = False


def _checkout_error(e: Exception) -> CheckoutError:
    if isinstance(e, CheckoutError):
        return e
    return CheckoutErrors.store_error(str(e))


def new_order_id() -> str:
    return f"ord_{uuid.uuid4().hex[:20]}"


class OrderWriter:
    def __init__(
        self,
        *,
        payments: AuthorizationManager,
        catalog: Catalog,
        orders: OrderRepository,
        carts: CartStore,
        profiles: ProfileStore,
        notifications: NotificationSink,
        fee_table: FeeTable,
        settlements: I.StoreAny | None = None,
        settings: Settings | None = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._payments = payments
        self._catalog = catalog
        self._orders = orders
        self._carts = carts
        self._profiles = profiles
        self._notifications = notifications
        self._fee_table = fee_table
        self._settlements = settlements if settlements is not None else I.MemoryStore(clock)
        self._settings = settings or get_settings()
        self._clock = clock

    def _executor(self, request: SettleRequest) -> I.IdempotentExecutor[SettleRequest, str, CheckoutError]:
        store = self._settlements
        if isinstance(store, I.SQLAlchemyStore):
            store = store.with_pending(SettlementPending(request.authorization_id, request.buyer_id))

        return (
            I.idempotent(self._write)
            .key(lambda r: f"settle:{r.authorization_id}")
            .store(store)
            .policy(I.Policy().with_ttl(seconds=self._settings.settlement_ttl_seconds))
            .build()
        )

    async def settle(self, request: SettleRequest) -> SettlementResult:
        """
        Raises CheckoutError for every refusal; see require_settleable for
        the authorization checks.
        """
        match await self._executor(request).run(request):
            case Ok(result):
                order = await self._orders.get(result.value)
                if order is None:
                    raise CheckoutErrors.order_not_found(result.value)
                if order.buyer_id != request.buyer_id:
                    raise CheckoutErrors.buyer_mismatch(request.authorization_id)
                if result.from_cache:
                    logger.info("settlement_replayed", authorization_id=request.authorization_id, order_id=order.id)
                return SettlementResult(order=order, replayed=result.from_cache)
            case Error(e):
                match e.kind:
                    case I.IdempotencyErrorKind.CONFLICT:
                        raise CheckoutErrors.settlement_in_progress(request.authorization_id)
                    case I.IdempotencyErrorKind.EXECUTION if isinstance(e.original_error, CheckoutError):
                        raise e.original_error
                    case _:
                        raise CheckoutErrors.store_error(e.message)

    def _write(self, request: SettleRequest) -> LazyCoroResult[str, CheckoutError]:
        return L.catching_async(lambda: self._place_order(request), on_error=_checkout_error)

    async def _place_order(self, request: SettleRequest) -> str:
        authorization = await self._payments.claim(
            request.authorization_id,
            request.buyer_id,
            request.client_secret,
        )

        # Idempotency record expired but the order is there
        existing = await self._orders.get_by_authorization(authorization.id)
        if existing is not None:
            await self._payments.settle(authorization.id)
            return existing.id

        try:
            stored = await self._settle_claimed(authorization)
        except Exception:
            await self._payments.release(authorization.id)
            raise

        logger.info(
            "order_placed",
            order_id=stored.id,
            authorization_id=authorization.id,
            buyer_id=stored.buyer_id,
            total=stored.total_amount,
        )

        await self._clear_cart(stored)
        buyer_name = await display_name(self._profiles, stored.buyer_id)
        await notify_sellers(self._notifications, stored, buyer_name)
        return stored.id

    async def _settle_claimed(self, authorization: PaymentAuthorization) -> Order:
        """Runs while the authorization is SETTLING; a raise hands it back as AUTHORIZED."""
        lines = await self._revalidate(authorization)
        breakdown = pricing.reconcile(lines, authorization.address.region, self._fee_table)
        if breakdown.total != authorization.amount:
            raise CheckoutErrors.amount_mismatch(authorization.amount, breakdown.total)

        now = self._clock()
        order = Order(
            id=new_order_id(),
            buyer_id=authorization.buyer_id,
            authorization_id=authorization.id,
            items=tuple(OrderItem.capture(v) for v in lines),
            subtotal=breakdown.subtotal,
            shipping_fee=breakdown.shipping_fee,
            total_amount=breakdown.total,
            currency=authorization.currency,
            payment_method=authorization.payment_method,
            shipping_address=authorization.address,
            order_status=OrderStatus.PLACED,
            payment_status=PaymentStatus.PAID,
            created_at=now,
            paid_at=authorization.authorized_at or now,
        )

        stored = await self._commit(order, lines)
        await self._payments.settle(authorization.id)
        return stored

    async def _revalidate(self, authorization: PaymentAuthorization) -> list[ValidatedLine]:
        product_ids = [line.product_id for line in authorization.lines]
        snapshots = await fetch_snapshots(product_ids, self._catalog, concurrency=self._settings.inventory_concurrency)

        missing = [pid for pid, s in zip(product_ids, snapshots, strict=True) if s is None]
        if missing:
            raise CheckoutErrors.product_not_found(missing)

        unavailable = [s.id for s in snapshots if s is not None and not s.purchasable_by(authorization.buyer_id)]
        if unavailable:
            raise CheckoutErrors.item_unavailable(unavailable)

        return [
            ValidatedLine(line, snapshot)
            for line, snapshot in zip(authorization.lines, snapshots, strict=True)
            if snapshot is not None
        ]

    async def _commit(self, order: Order, lines: list[ValidatedLine]) -> Order:
        """Products to SOLD, then the order row; any failure restores the products."""
        steps: list[S.SagaStep] = [
            S.from_async(
                self._sell(v.product),
                on_error=_checkout_error,
                compensate=self._restore,
                name=f"sell:{v.product.id}",
            )
            for v in lines
        ]
        steps.append(
            S.from_async(
                lambda: self._orders.insert(order),
                on_error=_checkout_error,
                name="insert_order",
            )
        )

        match await S.run_all(steps):
            case Ok(result):
                return result.values[-1]
            case Error(e):
                logger.warning(
                    "settlement_rolled_back",
                    authorization_id=order.authorization_id,
                    step=e.step_failed,
                    rollback_complete=e.rollback_complete,
                    code=e.error.code,
                )
                raise e.error

    def _sell(self, product: ProductSnapshot) -> Callable[[], Awaitable[StatusChange]]:
        async def sell() -> StatusChange:
            change = await transition(self._catalog, product, ProductStatus.SOLD)
            if change is None:
                raise CheckoutErrors.item_unavailable([product.id])
            return change

        return sell

    async def _restore(self, change: StatusChange) -> None:
        await revert(self._catalog, change)

    async def _clear_cart(self, order: Order) -> None:
        try:
            if self._settings.clear_entire_cart:
                await self._carts.clear(order.buyer_id)
            else:
                await self._carts.remove_products(order.buyer_id, [item.product_id for item in order.items])
        except Exception as e:
            # The order stands; a stale cart re-validates on the next checkout
            logger.warning("cart_clear_failed", order_id=order.id, error=str(e))


__all__ = ("SettleRequest", "SettlementResult", "OrderWriter", "new_order_id")
