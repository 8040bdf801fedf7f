"""
Order repository — one row per settled authorization.

Order lifecycle (forward only):
    PLACED → SHIPPED → DELIVERED
    PLACED | SHIPPED → CANCELLED

Payment lifecycle:
    PAID → REFUNDED
"""

import asyncio
from dataclasses import replace
from datetime import datetime
from typing import Protocol

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from checkout.db import OrderTable
from checkout.domain import (
    Address,
    BuyerId,
    CheckoutErrors,
    Order,
    OrderItem,
    OrderStatus,
    PaymentMethod,
    PaymentStatus,
)
from checkout.observability import get_logger

logger = get_logger(__name__)


_ORDER_TRANSITIONS: dict[OrderStatus, frozenset[OrderStatus]] = {
    OrderStatus.PLACED: frozenset({OrderStatus.SHIPPED, OrderStatus.CANCELLED}),
    OrderStatus.SHIPPED: frozenset({OrderStatus.DELIVERED, OrderStatus.CANCELLED}),
    OrderStatus.DELIVERED: frozenset(),
    OrderStatus.CANCELLED: frozenset(),
}

_STAMPS = {
    OrderStatus.SHIPPED: "shipped_at",
    OrderStatus.DELIVERED: "delivered_at",
    OrderStatus.CANCELLED: "cancelled_at",
}


def advance(order: Order, target: OrderStatus, now: datetime) -> Order:
    """Apply a forward transition and stamp its timestamp."""
    if target not in _ORDER_TRANSITIONS[order.order_status]:
        raise CheckoutErrors.invalid_transition("Order", order.order_status.value, target.value)
    return replace(order, order_status=target, **{_STAMPS[target]: now})


def refund(order: Order, now: datetime) -> Order:
    if order.payment_status is PaymentStatus.REFUNDED:
        return order
    return replace(order, payment_status=PaymentStatus.REFUNDED, refunded_at=now)


class OrderRepository(Protocol):
    async def insert(self, order: Order) -> Order:
        """Store a new order; a duplicate authorization returns the existing one."""
        ...

    async def get(self, order_id: str) -> Order | None: ...

    async def get_by_authorization(self, authorization_id: str) -> Order | None: ...

    async def list_for_buyer(self, buyer_id: BuyerId) -> list[Order]: ...

    async def transition(self, order_id: str, target: OrderStatus, now: datetime) -> Order: ...

    async def mark_refunded(self, authorization_id: str, now: datetime) -> Order | None: ...


# ═══════════════════════════════════════════════════════════════════════════════
# Memory Repository
# ═══════════════════════════════════════════════════════════════════════════════


class MemoryOrderRepository:
    def __init__(self) -> None:
        self._orders: dict[str, Order] = {}
        self._lock = asyncio.Lock()

    async def insert(self, order: Order) -> Order:
        async with self._lock:
            for existing in self._orders.values():
                if existing.authorization_id == order.authorization_id:
                    return existing
            self._orders[order.id] = order
            return order

    async def get(self, order_id: str) -> Order | None:
        async with self._lock:
            return self._orders.get(order_id)

    async def get_by_authorization(self, authorization_id: str) -> Order | None:
        async with self._lock:
            return next((o for o in self._orders.values() if o.authorization_id == authorization_id), None)

    async def list_for_buyer(self, buyer_id: BuyerId) -> list[Order]:
        async with self._lock:
            orders = [o for o in self._orders.values() if o.buyer_id == buyer_id]
        return sorted(orders, key=lambda o: o.created_at, reverse=True)

    async def transition(self, order_id: str, target: OrderStatus, now: datetime) -> Order:
        async with self._lock:
            order = self._orders.get(order_id)
            if order is None:
                raise CheckoutErrors.order_not_found(order_id)
            updated = advance(order, target, now)
            self._orders[order_id] = updated
            return updated

    async def mark_refunded(self, authorization_id: str, now: datetime) -> Order | None:
        async with self._lock:
            order = next((o for o in self._orders.values() if o.authorization_id == authorization_id), None)
            if order is None:
                return None
            updated = refund(order, now)
            self._orders[order.id] = updated
            return updated


# ═══════════════════════════════════════════════════════════════════════════════
# SQLAlchemy Repository
# ═══════════════════════════════════════════════════════════════════════════════


def _to_row(order: Order) -> OrderTable:
    return OrderTable(
        id=order.id,
        buyer_id=order.buyer_id,
        authorization_id=order.authorization_id,
        items=[item.to_dict() for item in order.items],
        subtotal=order.subtotal,
        shipping_fee=order.shipping_fee,
        total_amount=order.total_amount,
        currency=order.currency,
        payment_method=order.payment_method.value,
        shipping_address=order.shipping_address.to_dict(),
        order_status=order.order_status.value,
        payment_status=order.payment_status.value,
        created_at=order.created_at,
        paid_at=order.paid_at,
        shipped_at=order.shipped_at,
        delivered_at=order.delivered_at,
        cancelled_at=order.cancelled_at,
        refunded_at=order.refunded_at,
    )


def _from_row(row: OrderTable) -> Order:
    return Order(
        id=row.id,
        buyer_id=row.buyer_id,
        authorization_id=row.authorization_id,
        items=tuple(OrderItem.from_dict(item) for item in row.items),
        subtotal=row.subtotal,
        shipping_fee=row.shipping_fee,
        total_amount=row.total_amount,
        currency=row.currency,
        payment_method=PaymentMethod(row.payment_method),
        shipping_address=Address.from_dict(row.shipping_address),
        order_status=OrderStatus(row.order_status),
        payment_status=PaymentStatus(row.payment_status),
        created_at=row.created_at,
        paid_at=row.paid_at,
        shipped_at=row.shipped_at,
        delivered_at=row.delivered_at,
        cancelled_at=row.cancelled_at,
        refunded_at=row.refunded_at,
    )


class SQLAlchemyOrderRepository:
    """
    Orders table access.

    Note: the unique authorization_id column is the last line of defence
    against a double order; insert() turns the violation into a lookup.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def insert(self, order: Order) -> Order:
        try:
            async with self._session_factory() as session:
                session.add(_to_row(order))
                await session.commit()
                return order
        except IntegrityError:
            existing = await self.get_by_authorization(order.authorization_id)
            if existing is None:
                raise
            logger.info("order_already_exists", authorization_id=order.authorization_id, order_id=existing.id)
            return existing

    async def get(self, order_id: str) -> Order | None:
        async with self._session_factory() as session:
            row = await session.get(OrderTable, order_id)
            return _from_row(row) if row else None

    async def get_by_authorization(self, authorization_id: str) -> Order | None:
        async with self._session_factory() as session:
            row = await self._find_by_authorization(session, authorization_id)
            return _from_row(row) if row else None

    async def list_for_buyer(self, buyer_id: BuyerId) -> list[Order]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(OrderTable).where(OrderTable.buyer_id == buyer_id).order_by(OrderTable.created_at.desc())
            )
            return [_from_row(row) for row in result.scalars()]

    async def transition(self, order_id: str, target: OrderStatus, now: datetime) -> Order:
        async with self._session_factory() as session:
            row = await session.get(OrderTable, order_id)
            if row is None:
                raise CheckoutErrors.order_not_found(order_id)

            updated = advance(_from_row(row), target, now)
            row.order_status = updated.order_status.value
            row.shipped_at = updated.shipped_at
            row.delivered_at = updated.delivered_at
            row.cancelled_at = updated.cancelled_at
            await session.commit()
            return updated

    async def mark_refunded(self, authorization_id: str, now: datetime) -> Order | None:
        async with self._session_factory() as session:
            row = await self._find_by_authorization(session, authorization_id)
            if row is None:
                return None

            updated = refund(_from_row(row), now)
            row.payment_status = updated.payment_status.value
            row.refunded_at = updated.refunded_at
            await session.commit()
            return updated

    @staticmethod
    async def _find_by_authorization(session: AsyncSession, authorization_id: str) -> OrderTable | None:
        result = await session.execute(select(OrderTable).where(OrderTable.authorization_id == authorization_id))
        return result.scalar_one_or_none()


__all__ = (
    "advance",
    "refund",
    "OrderRepository",
    "MemoryOrderRepository",
    "SQLAlchemyOrderRepository",
)
