"""
SQLAlchemy integration — idempotency records on any model.

Usage:
    1. Add IdempotencyMixin to a model:

        class SettlementTable(Base, IdempotencyMixin):
            __tablename__ = "settlements"
            id: Mapped[str] = mapped_column(primary_key=True)
            buyer_id: Mapped[str] = ...

    2. Create a store that knows how to build the pending row:

        store = SQLAlchemyStore(
            session_factory,
            model=SettlementTable,
            to_pending=lambda key, data: SettlementTable(...),
            to_insert=lambda row: sqlite_insert(SettlementTable).values(...)
                .on_conflict_do_nothing(index_elements=["idempotency_key"]),
        )

    3. Bind the per-request data and hand it to the executor:

        I.idempotent(op).key(...).store(store.with_pending(data)).build()
"""

from collections.abc import Callable
from datetime import datetime, timedelta
from typing import Any, cast

from kungfu import Error, Ok, Result
from sqlalchemy import DateTime, String, Text, delete, select
from sqlalchemy.engine import CursorResult
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm import Mapped, mapped_column

from checkout.idempotency._store import StoreError
from checkout.idempotency._types import IdempotencyRecord, RecordState


# ═══════════════════════════════════════════════════════════════════════════════
# Idempotency Mixin
# ═══════════════════════════════════════════════════════════════════════════════


class IdempotencyMixin:
    """
    Columns:
    - idempotency_key: unique key for deduplication
    - idempotency_status: "processing" | "completed"
    - idempotency_value: serialized result
    - idempotency_expires_at: optional TTL
    """

    idempotency_key: Mapped[str] = mapped_column(String(255), nullable=False, unique=True, index=True)
    idempotency_status: Mapped[str] = mapped_column(String(20), nullable=False, default="processing")
    idempotency_value: Mapped[str | None] = mapped_column(Text, nullable=True)
    idempotency_expires_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)


class IdempotencyStatus:
    """Status constants for idempotency_status column."""

    PROCESSING = "processing"
    COMPLETED = "completed"


# ═══════════════════════════════════════════════════════════════════════════════
# Generic SQLAlchemy Store
# ═══════════════════════════════════════════════════════════════════════════════


class SQLAlchemyStore[M: IdempotencyMixin, P]:
    """
    Idempotency store over a model with IdempotencyMixin.

    Type parameters:
        M: model type (e.g. SettlementTable)
        P: data needed to build the pending row (e.g. SettlementPending)

    Values are strings; callers serialize what they keep.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        model: type[M],
        to_pending: Callable[[str, P], M],
        to_insert: Callable[[M], Any],
        clock: Callable[[], datetime] = datetime.now,
        pending: P | None = None,
    ) -> None:
        """
        Args:
            to_pending: (key, pending_data) → pending row
            to_insert: pending row → INSERT ... ON CONFLICT DO NOTHING
            clock: naive wall clock, SQLite drops tzinfo
        """
        self._session_factory = session_factory
        self._model = model
        self._to_pending = to_pending
        self._to_insert = to_insert
        self._clock = clock
        self._pending = pending

    def with_pending(self, pending: P) -> "SQLAlchemyStore[M, P]":
        """Create a store bound to the pending data of one request."""
        return SQLAlchemyStore(
            self._session_factory,
            self._model,
            self._to_pending,
            self._to_insert,
            clock=self._clock,
            pending=pending,
        )

    async def get(self, key: str) -> Result[IdempotencyRecord[str] | None, StoreError]:
        try:
            async with self._session_factory() as session:
                row = await self._find(session, key)
        except Exception as e:
            return Error(StoreError(f"Failed to get: {e}", e))

        if row is None:
            return Ok(None)
        record = IdempotencyRecord(
            key=row.idempotency_key,
            state=RecordState.COMPLETED
            if row.idempotency_status == IdempotencyStatus.COMPLETED
            else RecordState.PENDING,
            value=row.idempotency_value,
            expires_at=row.idempotency_expires_at,
        )
        return Ok(None if record.expired(self._clock()) else record)

    async def set_pending(self, key: str, ttl: timedelta | None) -> Result[bool, StoreError]:
        """Insert the pending row atomically; rowcount tells who won."""
        if self._pending is None:
            return Error(StoreError("Pending data not set. Call with_pending() first."))

        now = self._clock()
        row = self._to_pending(key, self._pending)
        row.idempotency_status = IdempotencyStatus.PROCESSING
        row.idempotency_expires_at = now + ttl if ttl else None

        try:
            async with self._session_factory() as session:
                # An expired row would block the insert forever
                await session.execute(
                    delete(self._model).where(
                        self._model.idempotency_key == key,
                        self._model.idempotency_expires_at < now,
                    )
                )
                cursor = cast(CursorResult[Any], await session.execute(self._to_insert(row)))
                await session.commit()
                return Ok(cursor.rowcount > 0)
        except Exception as e:
            return Error(StoreError(f"Failed to set pending: {e}", e))

    async def set_completed(self, key: str, value: str, ttl: timedelta | None) -> Result[None, StoreError]:
        try:
            async with self._session_factory() as session:
                row = await self._find(session, key)
                if row is None:
                    return Error(StoreError(f"Record not found: {key}"))

                row.idempotency_status = IdempotencyStatus.COMPLETED
                row.idempotency_value = value
                row.idempotency_expires_at = self._clock() + ttl if ttl else None
                await session.commit()
                return Ok(None)
        except Exception as e:
            return Error(StoreError(f"Failed to mark completed: {e}", e))

    async def delete(self, key: str) -> Result[bool, StoreError]:
        try:
            async with self._session_factory() as session:
                cursor = cast(
                    CursorResult[Any],
                    await session.execute(delete(self._model).where(self._model.idempotency_key == key)),
                )
                await session.commit()
                return Ok(cursor.rowcount > 0)
        except Exception as e:
            return Error(StoreError(f"Failed to delete: {e}", e))

    async def _find(self, session: AsyncSession, key: str) -> M | None:
        result = await session.execute(select(self._model).where(self._model.idempotency_key == key))
        return result.scalar_one_or_none()


__all__ = (
    "IdempotencyMixin",
    "IdempotencyStatus",
    "SQLAlchemyStore",
)
