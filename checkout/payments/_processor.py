"""
Payment processor — intent API and an in-process fake.

    create_intent(amount, currency, metadata) → ProcessorIntent(id, client_secret)
    retrieve_intent(id)                       → ProcessorIntent (status polled)
    cancel_intent(id)                         → ProcessorIntent (funds released)

The buyer completes payment in the client widget against client_secret;
the processor then reports success through retrieve_intent or a webhook.
"""

import asyncio
import uuid
from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from enum import Enum


class IntentStatus(Enum):
    REQUIRES_PAYMENT_METHOD = "requires_payment_method"
    PROCESSING = "processing"
    SUCCEEDED = "succeeded"
    CANCELED = "canceled"


@dataclass(frozen=True, slots=True)
class ProcessorIntent:
    id: str
    client_secret: str
    amount: int
    currency: str
    status: IntentStatus
    metadata: Mapping[str, str] = field(default_factory=dict)
    last_error: str | None = None


# ═══════════════════════════════════════════════════════════════════════════════
# Errors
# ═══════════════════════════════════════════════════════════════════════════════


class AmountRejected(Exception):
    """Processor refused the amount (e.g. below its minimum charge)."""

    def __init__(self, amount: int, minimum: int) -> None:
        super().__init__(f"Amount {amount} below minimum {minimum}")
        self.amount = amount
        self.minimum = minimum


class ProcessorUnavailable(Exception):
    """Network failure or processor outage."""


class IntentNotFound(Exception):
    pass


# ═══════════════════════════════════════════════════════════════════════════════
# Protocol
# ═══════════════════════════════════════════════════════════════════════════════


class PaymentProcessor:
    """Interface; concrete processors override every method."""

    async def create_intent(self, amount: int, currency: str, metadata: Mapping[str, str]) -> ProcessorIntent:
        raise NotImplementedError

    async def retrieve_intent(self, intent_id: str) -> ProcessorIntent:
        raise NotImplementedError

    async def cancel_intent(self, intent_id: str) -> ProcessorIntent:
        raise NotImplementedError


# ═══════════════════════════════════════════════════════════════════════════════
# Fake Processor
# ═══════════════════════════════════════════════════════════════════════════════


class FakeProcessor(PaymentProcessor):
    """
    Deterministic processor for tests and local runs.

    Note: fail_next() scripts outages, confirm()/decline() play the buyer.
    """

    def __init__(self, minimum_amount: int = 50, latency: float = 0.0) -> None:
        self.minimum_amount = minimum_amount
        self.latency = latency
        self.create_calls = 0
        self._intents: dict[str, ProcessorIntent] = {}
        self._failures: list[Exception] = []

    def fail_next(self, times: int = 1, error: Exception | None = None) -> None:
        self._failures.extend([error or ProcessorUnavailable("connection reset")] * times)

    async def create_intent(self, amount: int, currency: str, metadata: Mapping[str, str]) -> ProcessorIntent:
        self.create_calls += 1
        await self._network()
        if amount < self.minimum_amount:
            raise AmountRejected(amount, self.minimum_amount)

        intent_id = f"pi_{uuid.uuid4().hex[:24]}"
        intent = ProcessorIntent(
            id=intent_id,
            client_secret=f"{intent_id}_secret_{uuid.uuid4().hex[:16]}",
            amount=amount,
            currency=currency,
            status=IntentStatus.REQUIRES_PAYMENT_METHOD,
            metadata=dict(metadata),
        )
        self._intents[intent_id] = intent
        return intent

    async def retrieve_intent(self, intent_id: str) -> ProcessorIntent:
        await self._network()
        return self._get(intent_id)

    async def cancel_intent(self, intent_id: str) -> ProcessorIntent:
        await self._network()
        return self._set(intent_id, IntentStatus.CANCELED)

    def confirm(self, intent_id: str) -> ProcessorIntent:
        return self._set(intent_id, IntentStatus.SUCCEEDED)

    def decline(self, intent_id: str, reason: str = "card_declined") -> ProcessorIntent:
        intent = replace(self._get(intent_id), status=IntentStatus.REQUIRES_PAYMENT_METHOD, last_error=reason)
        self._intents[intent_id] = intent
        return intent

    async def _network(self) -> None:
        if self.latency:
            await asyncio.sleep(self.latency)
        if self._failures:
            raise self._failures.pop(0)

    def _get(self, intent_id: str) -> ProcessorIntent:
        intent = self._intents.get(intent_id)
        if intent is None:
            raise IntentNotFound(intent_id)
        return intent

    def _set(self, intent_id: str, status: IntentStatus) -> ProcessorIntent:
        intent = replace(self._get(intent_id), status=status, last_error=None)
        self._intents[intent_id] = intent
        return intent


__all__ = (
    "IntentStatus",
    "ProcessorIntent",
    "AmountRejected",
    "ProcessorUnavailable",
    "IntentNotFound",
    "PaymentProcessor",
    "FakeProcessor",
)
