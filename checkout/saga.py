"""
Saga — compensated steps with automatic rollback.

    steps = [
        S.from_async(
            lambda: catalog.mark_sold(pid),
            on_error=lambda e: CheckoutErrors.store_error(str(e)),
            compensate=lambda change: catalog.restore(change),
        )
        for pid in product_ids
    ]
    result = await S.run_all(steps)

Steps run in order. When one fails, the compensators of every step that
already succeeded run in reverse and the original error is returned.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass

from combinators import lift as L
from kungfu import Error, LazyCoroResult, Ok, Result

from checkout.observability import get_logger

logger = get_logger(__name__)


# ═══════════════════════════════════════════════════════════════════════════════
# Types
# ═══════════════════════════════════════════════════════════════════════════════

type Compensator[T] = Callable[[T], Awaitable[None]]
"""Receives the action result and undoes it."""


@dataclass(frozen=True, slots=True)
class SagaStep[T, E]:
    """A single saga step: action + compensator."""

    action: LazyCoroResult[T, E]
    compensate: Compensator[T] | None
    name: str = "step"


@dataclass(frozen=True, slots=True)
class SagaResult[T]:
    values: list[T]
    steps_executed: int


@dataclass(frozen=True, slots=True)
class SagaError[E]:
    """Saga error with rollback status."""

    error: E
    step_failed: int
    compensators_run: int
    compensators_failed: int

    @property
    def rollback_complete(self) -> bool:
        return self.compensators_failed == 0


# ═══════════════════════════════════════════════════════════════════════════════
# Constructors
# ═══════════════════════════════════════════════════════════════════════════════


def step[T, E](
    action: LazyCoroResult[T, E],
    compensate: Compensator[T] | None = None,
    *,
    name: str = "step",
) -> SagaStep[T, E]:
    return SagaStep(action=action, compensate=compensate, name=name)


def from_async[T, E](
    action: Callable[[], Awaitable[T]],
    on_error: Callable[[Exception], E],
    compensate: Compensator[T] | None = None,
    *,
    name: str = "step",
) -> SagaStep[T, E]:
    """Create step from async callable; raised exceptions become Error(on_error(e))."""
    return SagaStep(
        action=L.catching_async(action, on_error=on_error),
        compensate=compensate,
        name=name,
    )


# ═══════════════════════════════════════════════════════════════════════════════
# Execution
# ═══════════════════════════════════════════════════════════════════════════════

type RecordedCompensator[T] = tuple[str, T, Compensator[T]]


async def run_compensators[T](compensators: list[RecordedCompensator[T]]) -> tuple[int, int]:
    """Run compensators in reverse. Returns (run, failed)."""
    comp_run = 0
    comp_failed = 0

    for name, value, comp in reversed(compensators):
        try:
            await comp(value)
            comp_run += 1
        except Exception as e:
            comp_failed += 1
            logger.error("saga_compensation_failed", step=name, error=str(e))

    return comp_run, comp_failed


async def run_all[T, E](steps: Sequence[SagaStep[T, E]]) -> Result[SagaResult[T], SagaError[E]]:
    """
    Execute steps in order with rollback on the first failure.

    Example:
        match await S.run_all(steps):
            case Ok(r):
                r.values
            case Error(e):
                e.error, e.rollback_complete
    """
    compensators: list[RecordedCompensator[T]] = []
    values: list[T] = []

    for index, saga_step in enumerate(steps, start=1):
        match await saga_step.action:
            case Ok(value):
                values.append(value)
                if saga_step.compensate is not None:
                    compensators.append((saga_step.name, value, saga_step.compensate))
            case Error(error):
                logger.warning("saga_rolling_back", step=saga_step.name, completed=len(compensators))
                comp_run, comp_failed = await run_compensators(compensators)
                return Error(
                    SagaError(
                        error=error,
                        step_failed=index,
                        compensators_run=comp_run,
                        compensators_failed=comp_failed,
                    )
                )

    return Ok(SagaResult(values=values, steps_executed=len(values)))


async def run[T, E](saga_step: SagaStep[T, E]) -> Result[SagaResult[T], SagaError[E]]:
    return await run_all([saga_step])


__all__ = (
    "Compensator",
    "SagaStep",
    "SagaResult",
    "SagaError",
    "step",
    "from_async",
    "run_compensators",
    "run_all",
    "run",
)
