"""Tests for the idempotent executor over memory and settlement stores."""

from datetime import timedelta

import pytest
from kungfu import Error, LazyCoroResult, Ok, Result

from checkout import idempotency as I
from checkout.orders import SettlementPending, settlement_store
from tests.support import FakeClock


class Recorder:
    """Operation that counts runs and answers with a scripted outcome."""

    def __init__(self, outcome: Result[str, str] | Exception = Ok("ord_1")) -> None:
        self.outcome = outcome
        self.calls: list[str] = []

    def __call__(self, authorization_id: str) -> LazyCoroResult[str, str]:
        async def run() -> Result[str, str]:
            self.calls.append(authorization_id)
            if isinstance(self.outcome, Exception):
                raise self.outcome
            return self.outcome

        return LazyCoroResult(run)


def executor(operation: Recorder, store: I.StoreAny):
    return (
        I.idempotent(operation)
        .key(lambda authorization_id: f"settle:{authorization_id}")
        .store(store)
        .policy(I.Policy().with_ttl(hours=1))
        .build()
    )


class TestMemoryStoreExecution:
    @pytest.mark.asyncio
    async def test_second_run_is_replayed(self):
        op = Recorder()
        run = executor(op, I.MemoryStore())

        first = await run.run("pi_1")
        second = await run.run("pi_1")

        assert first == Ok(I.IdempotencyResult(value="ord_1", from_cache=False, key="settle:pi_1"))
        assert second == Ok(I.IdempotencyResult(value="ord_1", from_cache=True, key="settle:pi_1"))
        assert op.calls == ["pi_1"]

    @pytest.mark.asyncio
    async def test_different_keys_run_separately(self):
        op = Recorder()
        run = executor(op, I.MemoryStore())

        await run.run("pi_1")
        await run.run("pi_2")

        assert op.calls == ["pi_1", "pi_2"]

    @pytest.mark.asyncio
    async def test_failure_is_not_cached(self):
        op = Recorder(Error("item sold"))
        run = executor(op, I.MemoryStore())

        match await run.run("pi_1"):
            case Error(e):
                assert e.kind is I.IdempotencyErrorKind.EXECUTION
                assert e.original_error == "item sold"
            case Ok(_):
                pytest.fail("expected an execution error")

        op.outcome = Ok("ord_2")
        result = await run.run("pi_1")

        assert result.unwrap().value == "ord_2"
        assert len(op.calls) == 2

    @pytest.mark.asyncio
    async def test_pending_record_conflicts(self):
        store = I.MemoryStore()
        await store.set_pending("settle:pi_1", timedelta(minutes=5))
        op = Recorder()

        match await executor(op, store).run("pi_1"):
            case Error(e):
                assert e.kind is I.IdempotencyErrorKind.CONFLICT
            case Ok(_):
                pytest.fail("expected a conflict")

        assert op.calls == []

    @pytest.mark.asyncio
    async def test_raised_exception_frees_the_key(self):
        store = I.MemoryStore()
        op = Recorder(RuntimeError("crash"))

        with pytest.raises(RuntimeError):
            await executor(op, store).run("pi_1")

        assert await store.get("settle:pi_1") == Ok(None)

    @pytest.mark.asyncio
    async def test_completed_key_expires(self):
        clock = FakeClock()
        op = Recorder()
        run = executor(op, I.MemoryStore(clock))
        await run.run("pi_1")

        clock.advance(3599)
        assert (await run.run("pi_1")).unwrap().from_cache is True

        clock.advance(2)
        assert (await run.run("pi_1")).unwrap().from_cache is False
        assert len(op.calls) == 2

    @pytest.mark.asyncio
    async def test_invalidate(self):
        store = I.MemoryStore()
        op = Recorder()
        run = executor(op, store)
        await run.run("pi_1")

        assert await run.invalidate("pi_1") is True
        await run.run("pi_1")
        assert len(op.calls) == 2


class TestPolicy:
    def test_ttl_units_add_up(self):
        policy = I.Policy().with_ttl(minutes=1, seconds=30)

        assert policy.result_ttl == timedelta(seconds=90)

    def test_zero_ttl_means_forever(self):
        assert I.Policy().with_ttl(seconds=0).result_ttl is None

    def test_builder_requires_key(self):
        with pytest.raises(ValueError):
            I.idempotent(Recorder()).build()


class TestSettlementStore:
    """SQLAlchemy store over the settlements table."""

    @pytest.mark.asyncio
    async def test_replay_across_executors(self, session_factory):
        store = settlement_store(session_factory).with_pending(SettlementPending("pi_1", "buyer-1"))
        op = Recorder()

        first = await executor(op, store).run("pi_1")
        second = await executor(op, store).run("pi_1")

        assert first.unwrap().from_cache is False
        assert second.unwrap() == I.IdempotencyResult(value="ord_1", from_cache=True, key="settle:pi_1")
        assert op.calls == ["pi_1"]

    @pytest.mark.asyncio
    async def test_only_one_pending_insert_wins(self, session_factory):
        store = settlement_store(session_factory).with_pending(SettlementPending("pi_1", "buyer-1"))

        assert await store.set_pending("settle:pi_1", None) == Ok(True)
        assert await store.set_pending("settle:pi_1", None) == Ok(False)

        record = (await store.get("settle:pi_1")).unwrap()
        assert record.state is I.RecordState.PENDING

    @pytest.mark.asyncio
    async def test_pending_data_required(self, session_factory):
        match await settlement_store(session_factory).set_pending("settle:pi_1", None):
            case Error(e):
                assert "with_pending" in e.message
            case Ok(_):
                pytest.fail("expected a store error")

    @pytest.mark.asyncio
    async def test_failed_execution_deletes_row(self, session_factory):
        store = settlement_store(session_factory).with_pending(SettlementPending("pi_1", "buyer-1"))

        await executor(Recorder(Error("declined")), store).run("pi_1")

        assert await store.get("settle:pi_1") == Ok(None)
