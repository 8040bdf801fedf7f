"""
Payment authorization — state machine and store.

Lifecycle:
    UNINITIALIZED ─open─→ PENDING ─processor ok─→ AUTHORIZED ─claim─→ SETTLING ─order written─→ SETTLED
                            │                        │    ▲               │
                            │ re-quoted              │    └── refused ────┘
                            ▼                        ▼
                        SUPERSEDED               ABANDONED (re-quoted, window passed)
                            (PENDING past its TTL → ABANDONED too)

SETTLING belongs to the order writer: nothing else may retire it.

A checkout attempt always points at its newest authorization; a
superseded one keeps existing only to reject its client secret.
"""

import asyncio
from dataclasses import dataclass, replace
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Protocol

from checkout.domain import (
    Address,
    BuyerId,
    CartLine,
    CheckoutErrors,
    PaymentMethod,
    PriceBreakdown,
)


class AuthorizationStatus(Enum):
    UNINITIALIZED = "uninitialized"
    PENDING = "pending"
    AUTHORIZED = "authorized"
    SETTLING = "settling"
    SETTLED = "settled"
    ABANDONED = "abandoned"
    SUPERSEDED = "superseded"


_TRANSITIONS: dict[AuthorizationStatus, frozenset[AuthorizationStatus]] = {
    AuthorizationStatus.UNINITIALIZED: frozenset({AuthorizationStatus.PENDING}),
    AuthorizationStatus.PENDING: frozenset(
        {AuthorizationStatus.AUTHORIZED, AuthorizationStatus.SUPERSEDED, AuthorizationStatus.ABANDONED}
    ),
    AuthorizationStatus.AUTHORIZED: frozenset(
        {AuthorizationStatus.SETTLING, AuthorizationStatus.SETTLED, AuthorizationStatus.ABANDONED}
    ),
    AuthorizationStatus.SETTLING: frozenset({AuthorizationStatus.SETTLED, AuthorizationStatus.AUTHORIZED}),
    AuthorizationStatus.SETTLED: frozenset(),
    AuthorizationStatus.ABANDONED: frozenset(),
    AuthorizationStatus.SUPERSEDED: frozenset(),
}


@dataclass(frozen=True, slots=True)
class PaymentAuthorization:
    id: str
    client_secret: str
    amount: int
    currency: str
    status: AuthorizationStatus
    checkout_id: str
    buyer_id: BuyerId
    fingerprint: str
    lines: tuple[CartLine, ...]
    address: Address
    payment_method: PaymentMethod
    breakdown: PriceBreakdown
    created_at: datetime
    expires_at: datetime
    authorized_at: datetime | None = None
    settled_at: datetime | None = None
    superseded_by: str | None = None
    failure_reason: str | None = None

    def can_become(self, status: AuthorizationStatus) -> bool:
        return status in _TRANSITIONS[self.status]

    def advance(self, status: AuthorizationStatus, **changes: Any) -> "PaymentAuthorization":
        if not self.can_become(status):
            raise CheckoutErrors.invalid_transition("Payment authorization", self.status.value, status.value)
        return replace(self, status=status, **changes)

    def is_expired(self, now: datetime, settlement_window: timedelta) -> bool:
        match self.status:
            case AuthorizationStatus.PENDING:
                return now >= self.expires_at
            case AuthorizationStatus.AUTHORIZED if self.authorized_at is not None:
                return now >= self.authorized_at + settlement_window
            case _:
                return False


# ═══════════════════════════════════════════════════════════════════════════════
# Store
# ═══════════════════════════════════════════════════════════════════════════════


class AuthorizationStore(Protocol):
    async def get(self, authorization_id: str) -> PaymentAuthorization | None: ...

    async def put(self, authorization: PaymentAuthorization) -> None: ...

    async def current(self, checkout_id: str) -> PaymentAuthorization | None: ...

    async def set_current(self, checkout_id: str, authorization_id: str) -> None: ...

    async def all(self) -> list[PaymentAuthorization]: ...


class MemoryAuthorizationStore:
    """
    Authorizations are ephemeral, one checkout attempt long.

    Note: single process only.
    """

    def __init__(self) -> None:
        self._by_id: dict[str, PaymentAuthorization] = {}
        self._current: dict[str, str] = {}
        self._lock = asyncio.Lock()

    async def get(self, authorization_id: str) -> PaymentAuthorization | None:
        async with self._lock:
            return self._by_id.get(authorization_id)

    async def put(self, authorization: PaymentAuthorization) -> None:
        async with self._lock:
            self._by_id[authorization.id] = authorization

    async def current(self, checkout_id: str) -> PaymentAuthorization | None:
        async with self._lock:
            authorization_id = self._current.get(checkout_id)
            return self._by_id.get(authorization_id) if authorization_id else None

    async def set_current(self, checkout_id: str, authorization_id: str) -> None:
        async with self._lock:
            self._current[checkout_id] = authorization_id

    async def all(self) -> list[PaymentAuthorization]:
        async with self._lock:
            return list(self._by_id.values())


__all__ = (
    "AuthorizationStatus",
    "PaymentAuthorization",
    "AuthorizationStore",
    "MemoryAuthorizationStore",
)
