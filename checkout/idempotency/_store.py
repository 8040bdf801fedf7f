"""
Idempotency store — typed storage protocol.

All methods return Result, store failures are values, not exceptions.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from dataclasses import dataclass, replace
from datetime import datetime, timedelta
from typing import Any, Protocol

from kungfu import Error, Ok, Result

from checkout.idempotency._types import IdempotencyRecord, RecordState


# ═══════════════════════════════════════════════════════════════════════════════
# Store Error
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True)
class StoreError:
    """Storage operation error."""

    message: str
    cause: Exception | None = None


# ═══════════════════════════════════════════════════════════════════════════════
# Store Protocol
# ═══════════════════════════════════════════════════════════════════════════════


class Store[T](Protocol):
    """
    Typed idempotency store protocol.

    set_pending must be atomic: exactly one caller acquires a key.
    """

    async def get(self, key: str) -> Result[IdempotencyRecord[T] | None, StoreError]:
        """Get existing record. Returns Ok(None) if not found or expired."""
        ...

    async def set_pending(self, key: str, ttl: timedelta | None) -> Result[bool, StoreError]:
        """Returns Ok(True) if acquired, Ok(False) if the key is taken."""
        ...

    async def set_completed(self, key: str, value: T, ttl: timedelta | None) -> Result[None, StoreError]: ...

    async def delete(self, key: str) -> Result[bool, StoreError]:
        """Delete record. Returns Ok(True) if existed."""
        ...


# ═══════════════════════════════════════════════════════════════════════════════
# Memory Store — Single Process
# ═══════════════════════════════════════════════════════════════════════════════


class MemoryStore[T]:
    """
    In-memory idempotency store, used by tests and the in-memory service.

    Records are frozen; every transition swaps in a new one. Expired
    records are dropped lazily, on the next touch of their key.
    """

    def __init__(self, clock: Callable[[], datetime] = datetime.now) -> None:
        self._records: dict[str, IdempotencyRecord[T]] = {}
        self._lock = asyncio.Lock()
        self._clock = clock

    async def get(self, key: str) -> Result[IdempotencyRecord[T] | None, StoreError]:
        async with self._lock:
            return Ok(self._live(key))

    async def set_pending(self, key: str, ttl: timedelta | None) -> Result[bool, StoreError]:
        async with self._lock:
            if self._live(key) is not None:
                return Ok(False)
            self._records[key] = IdempotencyRecord(key, RecordState.PENDING, None, self._until(ttl))
            return Ok(True)

    async def set_completed(self, key: str, value: T, ttl: timedelta | None) -> Result[None, StoreError]:
        async with self._lock:
            record = self._records.get(key)
            if record is None:
                return Error(StoreError(f"No pending record for key: {key}"))
            self._records[key] = replace(record, state=RecordState.COMPLETED, value=value, expires_at=self._until(ttl))
            return Ok(None)

    async def delete(self, key: str) -> Result[bool, StoreError]:
        async with self._lock:
            return Ok(self._records.pop(key, None) is not None)

    def _live(self, key: str) -> IdempotencyRecord[T] | None:
        record = self._records.get(key)
        if record is not None and record.expired(self._clock()):
            del self._records[key]
            return None
        return record

    def _until(self, ttl: timedelta | None) -> datetime | None:
        return self._clock() + ttl if ttl else None


# ═══════════════════════════════════════════════════════════════════════════════
# Exports
# ═══════════════════════════════════════════════════════════════════════════════

type StoreAny = Store[Any]


__all__ = (
    "StoreError",
    "Store",
    "StoreAny",
    "MemoryStore",
)
