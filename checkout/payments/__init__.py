"""
Payments — processor intents and the authorization state machine.

    manager = AuthorizationManager(FakeProcessor(), MemoryAuthorizationStore())

    auth = await manager.open("checkout-1", quote)     # PENDING, client_secret issued
    auth = await manager.confirm(auth.id)              # AUTHORIZED once the buyer paid
    auth = await manager.require_settleable(auth.id, buyer_id, auth.client_secret)
    auth = await manager.settle(auth.id)               # SETTLED, after the order is written
"""

from checkout.payments._processor import (
    IntentStatus,
    ProcessorIntent,
    AmountRejected,
    ProcessorUnavailable,
    IntentNotFound,
    PaymentProcessor,
    FakeProcessor,
)
from checkout.payments._authorization import (
    AuthorizationStatus,
    PaymentAuthorization,
    AuthorizationStore,
    MemoryAuthorizationStore,
)
from checkout.payments._manager import (
    AuthorizationManager,
    ProcessorEvent,
    EventType,
    utcnow,
)

__all__ = (
    # Processor
    "IntentStatus",
    "ProcessorIntent",
    "AmountRejected",
    "ProcessorUnavailable",
    "IntentNotFound",
    "PaymentProcessor",
    "FakeProcessor",
    # Authorization
    "AuthorizationStatus",
    "PaymentAuthorization",
    "AuthorizationStore",
    "MemoryAuthorizationStore",
    # Manager
    "AuthorizationManager",
    "ProcessorEvent",
    "EventType",
    "utcnow",
)
