"""
Authorization Manager — one live payment authorization per checkout attempt.

    open(checkout_id, quote)
        current pending or paid, same fingerprint and total → reuse it
        current settling → SETTLEMENT_IN_PROGRESS
        otherwise → new processor intent, old one SUPERSEDED (or ABANDONED if paid)

    confirm / handle_event     PENDING → AUTHORIZED, only on the processor's word
    require_settleable         gate in front of order creation
    claim / release            AUTHORIZED ⇄ SETTLING, held by the order writer
    settle                     SETTLING → SETTLED
    abandon_expired            sweep PENDING/AUTHORIZED past their windows

Everything that changes an authorization runs under its checkout's lock.

Processor calls are bounded by a timeout and retried on outages only;
a rejected amount is never retried.
"""

import asyncio
from collections import defaultdict
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager
from dataclasses import dataclass, replace
from datetime import UTC, datetime, timedelta
from enum import StrEnum

import combinators as C
from combinators import flow, lift as L
from kungfu import Error, LazyCoroResult, Ok

from checkout.config import Settings, get_settings
from checkout.domain import CheckoutError, CheckoutErrors
from checkout.observability import get_logger
from checkout.payments._authorization import (
    AuthorizationStatus,
    AuthorizationStore,
    PaymentAuthorization,
)
from checkout.payments._processor import (
    AmountRejected,
    IntentStatus,
    PaymentProcessor,
    ProcessorIntent,
)
from checkout.quote import Quote

logger = get_logger(__name__)

type Clock = Callable[[], datetime]


def utcnow() -> datetime:
    return datetime.now(UTC)


@dataclass(frozen=True, slots=True)
class ProcessorEvent:
    """Webhook payload, reduced to what settlement cares about."""

    type: str
    intent_id: str
    failure_message: str | None = None


class EventType(StrEnum):
    SUCCEEDED = "payment_intent.succeeded"
    PAYMENT_FAILED = "payment_intent.payment_failed"
    CANCELED = "payment_intent.canceled"
    REFUNDED = "charge.refunded"


def _processor_error(e: Exception) -> CheckoutError:
    match e:
        case AmountRejected(amount=amount, minimum=minimum):
            return CheckoutErrors.amount_below_minimum(amount, minimum)
        case CheckoutError():
            return e
        case _:
            return CheckoutErrors.processor_unavailable(str(e))


def _as_checkout_error(e: CheckoutError | C.TimeoutError) -> CheckoutError:
    if isinstance(e, C.TimeoutError):
        return CheckoutErrors.processor_unavailable(f"Processor timed out: {e}")
    return e


def _is_outage(e: CheckoutError | C.TimeoutError) -> bool:
    return isinstance(e, C.TimeoutError) or e.code == "PROCESSOR_UNAVAILABLE"


class AuthorizationManager:
    def __init__(
        self,
        processor: PaymentProcessor,
        store: AuthorizationStore,
        settings: Settings | None = None,
        clock: Clock = utcnow,
    ) -> None:
        self._processor = processor
        self._store = store
        self._settings = settings or get_settings()
        self._clock = clock
        self._locks: defaultdict[str, asyncio.Lock] = defaultdict(asyncio.Lock)

    @property
    def settlement_window(self) -> timedelta:
        return timedelta(seconds=self._settings.settlement_window_seconds)

    # ═══════════════════════════════════════════════════════════════════════════
    # Processor calls
    # ═══════════════════════════════════════════════════════════════════════════

    def _call[T](self, fn: Callable[[], Awaitable[T]], *, retry: bool = False) -> LazyCoroResult[T, CheckoutError]:
        s = self._settings
        pipeline = flow(L.catching_async(fn, on_error=_processor_error)).timeout(
            seconds=s.processor_timeout_seconds
        )
        if retry:
            pipeline = pipeline.retry(
                policy=C.RetryPolicy.fixed(
                    times=s.processor_retry_times,
                    delay_seconds=s.processor_retry_delay_seconds,
                    retry_on=_is_outage,
                )
            )
        return pipeline.compile().map_err(_as_checkout_error)

    async def _create_intent(self, checkout_id: str, quote: Quote) -> ProcessorIntent:
        metadata = {
            "checkout_id": checkout_id,
            "buyer_id": quote.buyer_id,
            "product_ids": ",".join(v.product.id for v in quote.lines),
        }
        match await self._call(
            lambda: self._processor.create_intent(quote.total, self._settings.currency, metadata),
            retry=True,
        ):
            case Ok(intent):
                return intent
            case Error(e):
                logger.warning("intent_create_failed", checkout_id=checkout_id, code=e.code, amount=quote.total)
                raise e

    async def _release(self, authorization: PaymentAuthorization) -> None:
        """Cancel at the processor. Failure is logged, the funds hold lapses on its own."""
        match await self._call(lambda: self._processor.cancel_intent(authorization.id)):
            case Ok(_):
                pass
            case Error(e):
                logger.warning("intent_cancel_failed", authorization_id=authorization.id, error=e.message)

    # ═══════════════════════════════════════════════════════════════════════════
    # Lifecycle
    # ═══════════════════════════════════════════════════════════════════════════

    async def status_of(self, checkout_id: str) -> AuthorizationStatus:
        current = await self._store.current(checkout_id)
        return current.status if current else AuthorizationStatus.UNINITIALIZED

    async def get(self, authorization_id: str) -> PaymentAuthorization:
        authorization = await self._store.get(authorization_id)
        if authorization is None:
            raise CheckoutErrors.authorization_not_found(authorization_id)
        return authorization

    async def open(self, checkout_id: str, quote: Quote) -> PaymentAuthorization:
        """
        Authorize exactly the reconciled total.

        Raises CheckoutError: EMPTY_CART, ADDRESS_INCOMPLETE (no address),
        AMOUNT_BELOW_MINIMUM, PROCESSOR_UNAVAILABLE, SETTLEMENT_IN_PROGRESS
        (the current authorization is being turned into an order).
        """
        if not quote.lines:
            raise CheckoutErrors.empty_cart()
        if quote.address is None:
            raise CheckoutErrors.address_required()
        if quote.total < self._settings.min_charge_amount:
            raise CheckoutErrors.amount_below_minimum(quote.total, self._settings.min_charge_amount)

        async with self._locks[checkout_id]:
            now = self._clock()
            current = await self._store.current(checkout_id)

            if current is not None:
                current = await self._expire_if_due(current, now)
                if current.status is AuthorizationStatus.SETTLING:
                    raise CheckoutErrors.settlement_in_progress(current.id)
                if self._reusable(current, quote):
                    logger.debug("authorization_reused", checkout_id=checkout_id, authorization_id=current.id)
                    return current

            intent = await self._create_intent(checkout_id, quote)
            authorization = PaymentAuthorization(
                id=intent.id,
                client_secret=intent.client_secret,
                amount=intent.amount,
                currency=intent.currency,
                status=AuthorizationStatus.PENDING,
                checkout_id=checkout_id,
                buyer_id=quote.buyer_id,
                fingerprint=quote.fingerprint,
                lines=tuple(v.line for v in quote.lines),
                address=quote.address,
                payment_method=quote.payment_method,
                breakdown=quote.breakdown,
                created_at=now,
                expires_at=now + timedelta(seconds=self._settings.authorization_ttl_seconds),
            )
            await self._store.put(authorization)
            await self._store.set_current(checkout_id, authorization.id)

            if current is not None:
                await self._retire(current, authorization)

            logger.info(
                "authorization_opened",
                checkout_id=checkout_id,
                authorization_id=authorization.id,
                amount=authorization.amount,
            )
            return authorization

    async def _retire(self, previous: PaymentAuthorization, successor: PaymentAuthorization) -> None:
        match previous.status:
            case AuthorizationStatus.PENDING:
                await self._store.put(previous.advance(AuthorizationStatus.SUPERSEDED, superseded_by=successor.id))
                await self._release(previous)
                logger.info("authorization_superseded", authorization_id=previous.id, superseded_by=successor.id)
            case AuthorizationStatus.AUTHORIZED:
                # Buyer paid, then changed the cart or address before ordering
                await self._store.put(
                    previous.advance(AuthorizationStatus.ABANDONED, failure_reason="re-quoted after authorization")
                )
                await self._release(previous)
                logger.info("authorization_abandoned", authorization_id=previous.id, reason="re-quoted")
            case _:
                pass

    @staticmethod
    def _reusable(current: PaymentAuthorization, quote: Quote) -> bool:
        """
        Same buyer, same fingerprint, still live. A paid authorization is
        kept too, so a reload after paying does not charge twice. A
        client total that disagrees with the server always gets a fresh
        authorization.
        """
        return (
            current.status in (AuthorizationStatus.PENDING, AuthorizationStatus.AUTHORIZED)
            and current.fingerprint == quote.fingerprint
            and current.buyer_id == quote.buyer_id
            and not quote.mismatch
        )

    async def confirm(self, authorization_id: str) -> PaymentAuthorization:
        """Poll the processor for a PENDING authorization."""
        async with self._lock_for(authorization_id) as authorization:
            return await self._confirm(authorization)

    async def _confirm(self, authorization: PaymentAuthorization) -> PaymentAuthorization:
        authorization = await self._expire_if_due(authorization, self._clock())
        if authorization.status is not AuthorizationStatus.PENDING:
            return authorization
        return await self._refresh(authorization)

    @asynccontextmanager
    async def _lock_for(self, authorization_id: str) -> AsyncIterator[PaymentAuthorization]:
        """Hold the checkout lock and yield the authorization as stored under it."""
        checkout_id = (await self.get(authorization_id)).checkout_id
        async with self._locks[checkout_id]:
            yield await self.get(authorization_id)

    async def _refresh(self, authorization: PaymentAuthorization) -> PaymentAuthorization:
        """Apply what the processor says about the intent, whatever the caller claimed."""
        match await self._call(lambda: self._processor.retrieve_intent(authorization.id)):
            case Ok(intent):
                return await self._apply_intent(authorization, intent)
            case Error(e):
                raise e

    async def _apply_intent(self, authorization: PaymentAuthorization, intent: ProcessorIntent) -> PaymentAuthorization:
        match intent.status:
            case IntentStatus.SUCCEEDED if authorization.status is AuthorizationStatus.PENDING:
                return await self._authorize(authorization)
            case IntentStatus.SUCCEEDED:
                return authorization
            case IntentStatus.CANCELED:
                updated = authorization.advance(AuthorizationStatus.ABANDONED, failure_reason="canceled")
            case _ if intent.last_error:
                updated = _with_failure(authorization, intent.last_error)
            case _:
                return authorization
        await self._store.put(updated)
        return updated

    async def _authorize(self, authorization: PaymentAuthorization) -> PaymentAuthorization:
        updated = authorization.advance(
            AuthorizationStatus.AUTHORIZED,
            authorized_at=self._clock(),
            failure_reason=None,
        )
        await self._store.put(updated)
        logger.info("authorization_confirmed", authorization_id=updated.id, amount=updated.amount)
        return updated

    async def handle_event(self, event: ProcessorEvent) -> PaymentAuthorization | None:
        """
        Apply a processor webhook.

        Returns the affected authorization, None for event types that
        carry nothing for checkout. Unknown intents raise AUTHORIZATION_NOT_FOUND.

        The body is unauthenticated: success and cancellation are only
        applied after the processor confirms them for the intent.
        """
        if event.type not in set(EventType):
            logger.debug("processor_event_ignored", type=event.type, intent_id=event.intent_id)
            return None

        async with self._lock_for(event.intent_id) as authorization:
            logger.info(
                "processor_event",
                type=event.type,
                authorization_id=authorization.id,
                status=authorization.status.value,
            )

            match event.type, authorization.status:
                case (EventType.SUCCEEDED, AuthorizationStatus.PENDING):
                    return await self._refresh(authorization)
                case (EventType.SUCCEEDED, AuthorizationStatus.SUPERSEDED | AuthorizationStatus.ABANDONED):
                    # Buyer paid on an intent that no longer backs the checkout
                    logger.warning("stale_authorization_paid", authorization_id=authorization.id)
                    await self._release(authorization)
                    return authorization
                case (EventType.PAYMENT_FAILED, AuthorizationStatus.PENDING):
                    updated = _with_failure(authorization, event.failure_message or "payment_failed")
                    await self._store.put(updated)
                    return updated
                case (EventType.CANCELED, AuthorizationStatus.PENDING | AuthorizationStatus.AUTHORIZED):
                    return await self._refresh(authorization)
                case _:
                    return authorization

    async def require_settleable(
        self,
        authorization_id: str,
        buyer_id: str,
        client_secret: str | None = None,
    ) -> PaymentAuthorization:
        """
        Gate for order creation: the authorization must be AUTHORIZED,
        current, owned by the buyer and inside its settlement window.
        A still-PENDING authorization is polled once.
        """
        async with self._lock_for(authorization_id) as authorization:
            return await self._settleable(authorization, buyer_id, client_secret)

    async def claim(
        self,
        authorization_id: str,
        buyer_id: str,
        client_secret: str | None = None,
    ) -> PaymentAuthorization:
        """
        require_settleable, then AUTHORIZED → SETTLING in the same critical
        section as open(), so a re-quote can no longer retire it. An already
        SETTLED authorization is returned as is.
        """
        async with self._lock_for(authorization_id) as authorization:
            authorization = await self._settleable(authorization, buyer_id, client_secret)
            if authorization.status is AuthorizationStatus.SETTLED:
                return authorization
            claimed = authorization.advance(AuthorizationStatus.SETTLING)
            await self._store.put(claimed)
            return claimed

    async def release(self, authorization_id: str) -> PaymentAuthorization:
        """Settlement refused: SETTLING → AUTHORIZED, anything else untouched."""
        async with self._lock_for(authorization_id) as authorization:
            if authorization.status is not AuthorizationStatus.SETTLING:
                return authorization
            released = authorization.advance(AuthorizationStatus.AUTHORIZED)
            await self._store.put(released)
            return released

    async def _settleable(
        self,
        authorization: PaymentAuthorization,
        buyer_id: str,
        client_secret: str | None,
    ) -> PaymentAuthorization:
        authorization_id = authorization.id
        if authorization.buyer_id != buyer_id:
            raise CheckoutErrors.buyer_mismatch(authorization_id)
        if client_secret is not None and client_secret != authorization.client_secret:
            raise CheckoutErrors.authorization_stale(authorization_id)

        authorization = await self._confirm(authorization)

        match authorization.status:
            case AuthorizationStatus.AUTHORIZED | AuthorizationStatus.SETTLED:
                return authorization
            case AuthorizationStatus.SETTLING:
                raise CheckoutErrors.settlement_in_progress(authorization_id)
            case AuthorizationStatus.ABANDONED:
                raise CheckoutErrors.authorization_expired(authorization_id)
            case AuthorizationStatus.SUPERSEDED:
                raise CheckoutErrors.authorization_stale(authorization_id)
            case status:
                raise CheckoutErrors.authorization_not_confirmed(authorization_id, status.value)

    async def settle(self, authorization_id: str) -> PaymentAuthorization:
        async with self._lock_for(authorization_id) as authorization:
            if authorization.status is AuthorizationStatus.SETTLED:
                return authorization
            updated = authorization.advance(AuthorizationStatus.SETTLED, settled_at=self._clock())
            await self._store.put(updated)
            return updated

    async def abandon_expired(self, now: datetime | None = None) -> list[PaymentAuthorization]:
        """Sweep authorizations past their TTL or settlement window."""
        now = now or self._clock()
        abandoned = []
        for candidate in await self._store.all():
            async with self._lock_for(candidate.id) as authorization:
                updated = await self._expire_if_due(authorization, now)
            if updated is not authorization:
                abandoned.append(updated)
        return abandoned

    async def _expire_if_due(self, authorization: PaymentAuthorization, now: datetime) -> PaymentAuthorization:
        if not authorization.is_expired(now, self.settlement_window):
            return authorization

        updated = authorization.advance(AuthorizationStatus.ABANDONED, failure_reason="expired")
        await self._store.put(updated)
        # Pending intents lapse at the processor on their own
        if authorization.status is AuthorizationStatus.AUTHORIZED:
            await self._release(authorization)
        logger.info("authorization_abandoned", authorization_id=authorization.id, reason="expired")
        return updated


def _with_failure(authorization: PaymentAuthorization, reason: str) -> PaymentAuthorization:
    """Declines keep the authorization PENDING so the buyer can retry."""
    return replace(authorization, failure_reason=reason)


__all__ = (
    "AuthorizationManager",
    "ProcessorEvent",
    "EventType",
    "utcnow",
)
