"""
Orders — settlement of authorized payments and the order lifecycle.

    writer = OrderWriter(payments=..., catalog=..., orders=..., carts=...,
                         profiles=..., notifications=..., fee_table=...,
                         settlements=settlement_store(session_factory))

    result = await writer.settle(SettleRequest(authorization_id, buyer_id, client_secret))
    result.order, result.replayed
"""

from checkout.orders._repository import (
    advance,
    refund,
    OrderRepository,
    MemoryOrderRepository,
    SQLAlchemyOrderRepository,
)
from checkout.orders._settlements import (
    SettlementPending,
    SettlementStore,
    settlement_store,
)
from checkout.orders._writer import (
    SettleRequest,
    SettlementResult,
    OrderWriter,
    new_order_id,
)

__all__ = (
    # Repository
    "advance",
    "refund",
    "OrderRepository",
    "MemoryOrderRepository",
    "SQLAlchemyOrderRepository",
    # Settlements
    "SettlementPending",
    "SettlementStore",
    "settlement_store",
    # Writer
    "SettleRequest",
    "SettlementResult",
    "OrderWriter",
    "new_order_id",
)
