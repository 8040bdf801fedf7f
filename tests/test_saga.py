"""Tests for compensated saga steps."""

import pytest
from kungfu import Error, Ok

from checkout import saga as S


class Ledger:
    def __init__(self) -> None:
        self.done: list[str] = []
        self.undone: list[str] = []

    def action(self, name: str, fail: bool = False):
        async def act() -> str:
            if fail:
                raise RuntimeError(f"{name} failed")
            self.done.append(name)
            return name

        return act

    async def undo(self, name: str) -> None:
        self.undone.append(name)


class TestRunAll:
    @pytest.mark.asyncio
    async def test_all_steps_succeed(self):
        ledger = Ledger()
        steps = [S.from_async(ledger.action(n), on_error=str, compensate=ledger.undo, name=n) for n in "abc"]

        match await S.run_all(steps):
            case Ok(result):
                assert result.values == ["a", "b", "c"]
                assert result.steps_executed == 3
            case Error(e):
                pytest.fail(f"unexpected saga error: {e}")

        assert ledger.undone == []

    @pytest.mark.asyncio
    async def test_failure_compensates_in_reverse(self):
        ledger = Ledger()
        steps = [
            S.from_async(ledger.action("sell:A"), on_error=str, compensate=ledger.undo),
            S.from_async(ledger.action("sell:B"), on_error=str, compensate=ledger.undo),
            S.from_async(ledger.action("insert", fail=True), on_error=str),
        ]

        match await S.run_all(steps):
            case Error(e):
                assert e.error == "insert failed"
                assert e.step_failed == 3
                assert e.compensators_run == 2
                assert e.rollback_complete
            case Ok(_):
                pytest.fail("expected the saga to fail")

        assert ledger.undone == ["sell:B", "sell:A"]

    @pytest.mark.asyncio
    async def test_failed_compensator_is_counted(self):
        ledger = Ledger()

        async def broken(_: str) -> None:
            raise RuntimeError("restore failed")

        steps = [
            S.from_async(ledger.action("a"), on_error=str, compensate=ledger.undo),
            S.from_async(ledger.action("b"), on_error=str, compensate=broken),
            S.from_async(ledger.action("c", fail=True), on_error=str),
        ]

        match await S.run_all(steps):
            case Error(e):
                assert e.compensators_run == 1
                assert e.compensators_failed == 1
                assert not e.rollback_complete
            case Ok(_):
                pytest.fail("expected the saga to fail")

        assert ledger.undone == ["a"]

    @pytest.mark.asyncio
    async def test_first_step_failure_runs_nothing(self):
        ledger = Ledger()

        result = await S.run(S.from_async(ledger.action("a", fail=True), on_error=str, compensate=ledger.undo))

        assert result.unwrap_err().step_failed == 1
        assert ledger.undone == []
