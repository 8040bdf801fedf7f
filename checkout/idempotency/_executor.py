"""
Idempotent executor — fluent builder over a Store.

    record exists? ──┬── COMPLETED ─────────────→ Ok(from_cache=True)
                     ├── PENDING ───────────────→ Error(CONFLICT)
                     └── none ── set_pending ──┬─ acquired → run operation
                                               └─ lost race → cached | CONFLICT

Operation errors free the key, so nothing but success is remembered.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from kungfu import Error, LazyCoroResult, Ok, Result

from checkout.idempotency._policy import Policy
from checkout.idempotency._store import MemoryStore, StoreAny, StoreError
from checkout.idempotency._types import (
    IdempotencyError,
    IdempotencyErrorKind,
    IdempotencyRecord,
    IdempotencyResult,
    RecordState,
)


type KeyFn[K] = Callable[[K], str]
type Outcome[T, E] = Result[IdempotencyResult[T], IdempotencyError[E]]


# ═══════════════════════════════════════════════════════════════════════════════
# Idempotent Builder
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(slots=True, frozen=True)
class Idempotent[K, T, E]:
    _operation: Callable[[K], LazyCoroResult[T, E]]
    _key_fn: KeyFn[K] | None
    _store: StoreAny | None
    _policy: Policy

    def key(self, fn: KeyFn[K]) -> Idempotent[K, T, E]:
        return Idempotent(self._operation, fn, self._store, self._policy)

    def store(self, s: StoreAny) -> Idempotent[K, T, E]:
        return Idempotent(self._operation, self._key_fn, s, self._policy)

    def policy(self, p: Policy) -> Idempotent[K, T, E]:
        return Idempotent(self._operation, self._key_fn, self._store, p)

    def build(self) -> IdempotentExecutor[K, T, E]:
        if self._key_fn is None:
            raise ValueError("key() is required")

        return IdempotentExecutor(
            operation=self._operation,
            key_fn=self._key_fn,
            store=self._store if self._store is not None else MemoryStore(),
            policy=self._policy,
        )


# ═══════════════════════════════════════════════════════════════════════════════
# Idempotent Executor
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(slots=True, frozen=True)
class IdempotentExecutor[K, T, E]:
    operation: Callable[[K], LazyCoroResult[T, E]]
    key_fn: KeyFn[K]
    store: StoreAny
    policy: Policy

    def run(self, input_val: K) -> LazyCoroResult[IdempotencyResult[T], IdempotencyError[E]]:
        key = self.key_fn(input_val)

        async def execute() -> Outcome[T, E]:
            match await self.store.get(key):
                case Error(err):
                    return _store_failure(err)
                case Ok(None):
                    return await self._execute_new(key, input_val)
                case Ok(record):
                    return _from_record(key, record)

        return LazyCoroResult(execute)

    async def invalidate(self, input_val: K) -> bool:
        match await self.store.delete(self.key_fn(input_val)):
            case Ok(deleted):
                return deleted
            case _:
                return False

    async def _execute_new(self, key: str, input_val: K) -> Outcome[T, E]:
        match await self.store.set_pending(key, self.policy.result_ttl):
            case Error(err):
                return _store_failure(err)
            case Ok(False):
                # Lost the insert to a concurrent request with the same key
                match await self.store.get(key):
                    case Ok(record) if record is not None:
                        return _from_record(key, record)
                    case _:
                        return _conflict(key)
            case Ok(True):
                pass

        try:
            result: Result[T, E] = await self.operation(input_val)
        except Exception:
            await self.store.delete(key)
            raise

        match result:
            case Ok(value):
                match await self.store.set_completed(key, value, self.policy.result_ttl):
                    case Error(err):
                        return _store_failure(err)
                    case Ok(_):
                        return Ok(IdempotencyResult(value=value, from_cache=False, key=key))
            case Error(err):
                await self.store.delete(key)
                return Error(IdempotencyError(IdempotencyErrorKind.EXECUTION, "Operation returned Error", err))


def _from_record[T, E](key: str, record: IdempotencyRecord[Any]) -> Outcome[T, E]:
    if record.state is RecordState.COMPLETED:
        return Ok(IdempotencyResult(value=record.value, from_cache=True, key=key))
    return _conflict(key)


def _conflict[T, E](key: str) -> Outcome[T, E]:
    return Error(IdempotencyError(IdempotencyErrorKind.CONFLICT, f"Pending conflict: {key}"))


def _store_failure[T, E](err: StoreError) -> Outcome[T, E]:
    return Error(IdempotencyError(IdempotencyErrorKind.STORE_ERROR, err.message))


# ═══════════════════════════════════════════════════════════════════════════════
# idempotent() — Entry Point
# ═══════════════════════════════════════════════════════════════════════════════


def idempotent[K, T, E](operation: Callable[[K], LazyCoroResult[T, E]]) -> Idempotent[K, T, E]:
    """
    Create idempotent wrapper for an operation.

    Example:
        executor = (
            I.idempotent(write_order)
            .key(lambda req: f"settle:{req.authorization_id}")
            .store(I.MemoryStore())
            .policy(I.Policy().with_ttl(hours=24))
            .build()
        )

        result = await executor.run(request)
    """
    return Idempotent(_operation=operation, _key_fn=None, _store=None, _policy=Policy())


__all__ = (
    "Idempotent",
    "IdempotentExecutor",
    "idempotent",
)
