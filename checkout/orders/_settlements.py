"""
Settlement records — idempotency store over the settlements table.
"""

import uuid
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from checkout import idempotency as I
from checkout.db import SettlementTable


@dataclass(frozen=True, slots=True)
class SettlementPending:
    """Data for the pending row of one settlement attempt."""

    authorization_id: str
    buyer_id: str


def _to_pending(key: str, data: SettlementPending) -> SettlementTable:
    return SettlementTable(
        id=f"stl_{uuid.uuid4().hex[:16]}",
        idempotency_key=key,
        authorization_id=data.authorization_id,
        buyer_id=data.buyer_id,
        created_at=datetime.now(),
    )


def _to_insert(row: SettlementTable):
    return (
        sqlite_insert(SettlementTable)
        .values(
            id=row.id,
            idempotency_key=row.idempotency_key,
            idempotency_status=row.idempotency_status,
            idempotency_expires_at=row.idempotency_expires_at,
            authorization_id=row.authorization_id,
            buyer_id=row.buyer_id,
            created_at=row.created_at,
        )
        .on_conflict_do_nothing(index_elements=["idempotency_key"])
    )


type SettlementStore = I.SQLAlchemyStore[SettlementTable, SettlementPending]


def settlement_store(session_factory: async_sessionmaker[AsyncSession]) -> SettlementStore:
    return I.SQLAlchemyStore(
        session_factory,
        model=SettlementTable,
        to_pending=_to_pending,
        to_insert=_to_insert,
    )


__all__ = ("SettlementPending", "SettlementStore", "settlement_store")
