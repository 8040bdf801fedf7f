"""
Seller notifications — one per distinct seller of a settled order.

Delivery is fire-and-forget: every send runs, failures are logged and
never reach the order.
"""

import asyncio
from dataclasses import dataclass
from datetime import datetime
from typing import Protocol

import combinators as C
from kungfu import Error, Ok

from checkout.domain import BuyerId, Order, SellerId
from checkout.observability import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True, slots=True)
class SellerNotification:
    seller_id: SellerId
    order_id: str
    title: str
    description: str
    link: str
    actor_id: BuyerId
    created_at: datetime | None = None


def purchase_notifications(order: Order, buyer_name: str) -> list[SellerNotification]:
    """Group items by seller; the link points at that seller's first item."""
    first_items = {}
    for item in order.items:
        first_items.setdefault(item.seller_id, item)

    return [
        SellerNotification(
            seller_id=seller_id,
            order_id=order.id,
            title=f"{buyer_name}さんが商品を購入しました",
            description=f"「{item.title}」が購入されました。購入者の情報を確認して発送の準備を始めてください。",
            link=f"/product-detail/{item.product_id}",
            actor_id=order.buyer_id,
            created_at=order.created_at,
        )
        for seller_id, item in first_items.items()
    ]


class NotificationSink(Protocol):
    async def send(self, notification: SellerNotification) -> None: ...


class MemoryNotificationSink:
    def __init__(self) -> None:
        self.sent: list[SellerNotification] = []
        self._lock = asyncio.Lock()

    async def send(self, notification: SellerNotification) -> None:
        async with self._lock:
            self.sent.append(notification)

    def for_seller(self, seller_id: SellerId) -> list[SellerNotification]:
        return [n for n in self.sent if n.seller_id == seller_id]


async def notify_sellers(
    sink: NotificationSink,
    order: Order,
    buyer_name: str,
    *,
    concurrency: int = 5,
) -> int:
    """Send all purchase notifications. Returns how many were delivered."""
    notifications = purchase_notifications(order, buyer_name)

    match await C.batch_all(
        notifications,
        lambda n: C.catching_async(lambda: sink.send(n), on_error=lambda e: e),
        concurrency=concurrency,
    ):
        case Ok(results):
            pass
        case Error(e):
            raise e

    delivered = 0
    for notification, result in zip(notifications, results, strict=True):
        match result:
            case Ok(_):
                delivered += 1
            case Error(e):
                logger.warning(
                    "seller_notification_failed",
                    order_id=order.id,
                    seller_id=notification.seller_id,
                    error=str(e),
                )
    return delivered


__all__ = (
    "SellerNotification",
    "purchase_notifications",
    "NotificationSink",
    "MemoryNotificationSink",
    "notify_sellers",
)
