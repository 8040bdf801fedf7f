"""
Idempotency — run an operation at most once per key.

    from checkout import idempotency as I

    executor = (
        I.idempotent(write_order)
        .key(lambda req: f"settle:{req.authorization_id}")
        .store(I.MemoryStore())
        .policy(I.Policy().with_ttl(hours=24))
        .build()
    )
    result = await executor.run(request)

    match result:
        case Ok(r) if r.from_cache:
            ...  # replay, the first run's value
        case Ok(r):
            ...  # fresh execution
        case Error(e):
            ...  # e.kind: CONFLICT | STORE_ERROR | EXECUTION
"""

from checkout.idempotency._types import (
    RecordState,
    IdempotencyRecord,
    IdempotencyResult,
    IdempotencyError,
    IdempotencyErrorKind,
)
from checkout.idempotency._store import (
    Store,
    StoreAny,
    StoreError,
    MemoryStore,
)
from checkout.idempotency._policy import Policy
from checkout.idempotency._executor import (
    idempotent,
    Idempotent,
    IdempotentExecutor,
)
from checkout.idempotency._sqlalchemy import (
    IdempotencyMixin,
    IdempotencyStatus,
    SQLAlchemyStore,
)

__all__ = (
    # Types
    "RecordState",
    "IdempotencyRecord",
    "IdempotencyResult",
    "IdempotencyError",
    "IdempotencyErrorKind",
    # Store
    "Store",
    "StoreAny",
    "StoreError",
    "MemoryStore",
    # Policy
    "Policy",
    # Builder
    "idempotent",
    "Idempotent",
    "IdempotentExecutor",
    # SQLAlchemy
    "IdempotencyMixin",
    "IdempotencyStatus",
    "SQLAlchemyStore",
)
