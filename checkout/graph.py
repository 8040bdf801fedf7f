"""
Graph — thin runner over nodnod.

    from checkout import graph as G

    @G.node
    class SubtotalNode:
        def __init__(self, value: int) -> None:
            self.value = value

        @classmethod
        def __compose__(cls, cart: ValidatedCartNode) -> "SubtotalNode":
            return cls(sum(line.line_total for line in cart.lines))

    node = await G.compose(SubtotalNode, request, context)

Nodes are discovered from the target, independent branches run
concurrently. Injected values are keyed by their exact runtime type.

Note: modules defining nodes must not use `from __future__ import
annotations`, nodnod reads the __compose__ hints at runtime.
"""

from __future__ import annotations

from collections.abc import Callable, Coroutine
from typing import Any, cast

from nodnod import EventLoopAgent, Node, Scope, Value
from nodnod import scalar_node as node


# ═══════════════════════════════════════════════════════════════════════════════
# TypedScope
# ═══════════════════════════════════════════════════════════════════════════════


class TypedScope:
    """Type-safe wrapper around nodnod.Scope."""

    __slots__ = ("_scope",)

    def __init__(self, detail: str = "scope") -> None:
        self._scope = Scope(detail=detail)

    @property
    def inner(self) -> Scope:
        return self._scope

    def inject[T](self, typ: type[T], value: T) -> TypedScope:
        self._scope.push(Value(typ, value))
        return self

    def get[T](self, typ: type[T]) -> T:
        result = self._scope.get(typ)
        if result is None:
            raise KeyError(f"{typ.__name__} not found in scope")
        return cast(T, result.value)

    async def __aenter__(self) -> TypedScope:
        await self._scope.__aenter__()
        return self

    async def __aexit__(self, *args: object) -> None:
        await self._scope.__aexit__(*args)


# ═══════════════════════════════════════════════════════════════════════════════
# compose — One-shot
# ═══════════════════════════════════════════════════════════════════════════════


async def compose[T](target: type[T], *inputs: object) -> T:
    """
    Build and run the subgraph needed for target.

    Exceptions raised inside nodes (e.g. CheckoutError) propagate to the
    caller unchanged.
    """
    agent = EventLoopAgent.build({cast(type[Node[Any, Any]], target)})

    async with TypedScope(detail=f"compose:{target.__name__}") as scope:
        for value in inputs:
            scope.inject(cast(type[Any], type(value)), value)

        run_method = cast(
            Callable[[Scope, dict[type[Any], Scope]], Coroutine[Any, Any, None]],
            getattr(agent, "run"),
        )
        await run_method(scope.inner, {})

        return scope.get(target)


__all__ = ("node", "TypedScope", "compose")
