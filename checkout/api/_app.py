"""
FastAPI application — routes over CheckoutService.

Every CheckoutError leaves as
    {"error": {"code", "message", "retryable", "details"}}
with the status from STATUS_CODES (500 for anything unlisted).
"""

from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager

import fastapi
from fastapi import Depends, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

from checkout.api._schemas import (
    AuthorizationOut,
    ErrorBody,
    ErrorOut,
    OrderOut,
    OrderStatusIn,
    PaymentEventIn,
    PaymentEventOut,
    PaymentIntentIn,
    PaymentIntentOut,
    SettleIn,
    SettleOut,
    ShippingFeeOut,
)
from checkout.config import get_settings
from checkout.domain import CheckoutError
from checkout.observability import clear_context, configure_logging, get_logger
from checkout.service import CheckoutService, create_service

logger = get_logger(__name__)


STATUS_CODES: dict[str, int] = {
    "EMPTY_CART": 400,
    "INVALID_QUANTITY": 400,
    "ADDRESS_INCOMPLETE": 400,
    "BUYER_MISMATCH": 403,
    "PRODUCT_NOT_FOUND": 404,
    "AUTHORIZATION_NOT_FOUND": 404,
    "ORDER_NOT_FOUND": 404,
    "ITEM_UNAVAILABLE": 409,
    "AUTHORIZATION_STALE": 409,
    "AUTHORIZATION_EXPIRED": 409,
    "AUTHORIZATION_NOT_CONFIRMED": 409,
    "AMOUNT_MISMATCH": 409,
    "INVALID_TRANSITION": 409,
    "SETTLEMENT_IN_PROGRESS": 409,
    "AMOUNT_BELOW_MINIMUM": 502,
    "PROCESSOR_UNAVAILABLE": 502,
    "CATALOG_ERROR": 502,
    "STORE_ERROR": 500,
    "INVALID_REQUEST": 400,
}


def error_response(error: CheckoutError) -> JSONResponse:
    status = STATUS_CODES.get(error.code, 500)
    body = ErrorOut(
        error=ErrorBody(
            code=error.code,
            message=error.message,
            retryable=error.retryable,
            details=error.details,
        )
    )
    return JSONResponse(status_code=status, content=body.model_dump(mode="json", by_alias=True))


async def _on_checkout_error(request: Request, exc: CheckoutError) -> JSONResponse:
    if STATUS_CODES.get(exc.code, 500) >= 500:
        logger.error("request_failed", path=request.url.path, code=exc.code, message=exc.message)
    else:
        logger.info("request_refused", path=request.url.path, code=exc.code)
    return error_response(exc)


async def _on_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    return error_response(
        CheckoutError("INVALID_REQUEST", "Request body or query is invalid", details={"errors": jsonable_encoder(exc.errors())})
    )


def get_service(request: Request) -> CheckoutService:
    return request.app.state.service


Service = Depends(get_service)


def create_app(
    service: CheckoutService | None = None,
    *,
    factory: Callable[[], Awaitable[CheckoutService]] | None = None,
) -> fastapi.FastAPI:
    """
    Build the app around a ready service, or let the lifespan build a
    database-backed one.
    """

    @asynccontextmanager
    async def lifespan(app: fastapi.FastAPI) -> AsyncIterator[None]:
        configure_logging()
        engine = None
        if service is not None:
            app.state.service = service
        elif factory is not None:
            app.state.service = await factory()
        else:
            app.state.service, engine = await create_service(get_settings())
        logger.info("checkout_started")
        yield
        if engine is not None:
            await engine.dispose()

    app = fastapi.FastAPI(title="tackle-checkout", lifespan=lifespan)
    app.add_exception_handler(CheckoutError, _on_checkout_error)
    app.add_exception_handler(RequestValidationError, _on_validation_error)

    @app.middleware("http")
    async def _request_context(request: Request, call_next):
        clear_context()
        return await call_next(request)

    # ═══════════════════════════════════════════════════════════════════════════
    # Payments
    # ═══════════════════════════════════════════════════════════════════════════

    @app.post("/payment-intent", response_model=PaymentIntentOut)
    async def create_payment_intent(body: PaymentIntentIn, svc: CheckoutService = Service) -> PaymentIntentOut:
        return PaymentIntentOut.from_domain(await svc.create_payment_intent(body.to_domain()))

    @app.post("/payment-intent/{authorization_id}/confirm", response_model=AuthorizationOut)
    async def confirm_payment_intent(authorization_id: str, svc: CheckoutService = Service) -> AuthorizationOut:
        return AuthorizationOut.from_domain(await svc.confirm_authorization(authorization_id))

    @app.post("/payment-events", response_model=PaymentEventOut)
    async def payment_event(body: PaymentEventIn, svc: CheckoutService = Service) -> PaymentEventOut:
        authorization = await svc.handle_event(body.to_domain())
        return PaymentEventOut(authorization=AuthorizationOut.from_domain(authorization) if authorization else None)

    @app.get("/shipping-fee", response_model=ShippingFeeOut)
    async def shipping_fee(
        region: str = "",
        buyer_pays: bool = Query(default=True, alias="buyerPays"),
        svc: CheckoutService = Service,
    ) -> ShippingFeeOut:
        return ShippingFeeOut(region=region, buyer_pays=buyer_pays, fee=svc.shipping_fee(region, buyer_pays))

    # ═══════════════════════════════════════════════════════════════════════════
    # Orders
    # ═══════════════════════════════════════════════════════════════════════════

    @app.post("/orders", response_model=SettleOut)
    async def create_order(body: SettleIn, svc: CheckoutService = Service) -> SettleOut:
        return SettleOut.from_domain(await svc.settle(body.to_domain()))

    @app.get("/orders", response_model=list[OrderOut])
    async def list_orders(
        buyer_id: str = Query(alias="buyerId"),
        svc: CheckoutService = Service,
    ) -> list[OrderOut]:
        return [OrderOut.from_domain(order) for order in await svc.list_orders(buyer_id)]

    @app.get("/orders/{order_id}", response_model=OrderOut)
    async def get_order(order_id: str, svc: CheckoutService = Service) -> OrderOut:
        return OrderOut.from_domain(await svc.get_order(order_id))

    @app.post("/orders/{order_id}/status", response_model=OrderOut)
    async def change_order_status(order_id: str, body: OrderStatusIn, svc: CheckoutService = Service) -> OrderOut:
        return OrderOut.from_domain(await svc.transition_order(order_id, body.status))

    @app.get("/health")
    async def health() -> dict[str, str]:
        return {"status": "ok"}

    return app


__all__ = ("STATUS_CODES", "error_response", "get_service", "create_app")
