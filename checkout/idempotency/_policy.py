"""
Idempotency policy — how long a key is remembered.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import timedelta


@dataclass(frozen=True, slots=True)
class Policy:
    """
    Example:
        Policy().with_ttl(hours=24)

    A request that finds its key pending gets CONFLICT right away; there
    is no waiting on the first request. Failed executions are never
    remembered, the key is freed so the request can be retried.
    """

    result_ttl: timedelta | None = None

    def with_ttl(
        self,
        *,
        seconds: float | None = None,
        minutes: float | None = None,
        hours: float | None = None,
    ) -> Policy:
        """Zero or nothing means completed keys are kept forever."""
        total = (seconds or 0) + (minutes or 0) * 60 + (hours or 0) * 3600
        return replace(self, result_ttl=timedelta(seconds=total) if total > 0 else None)


__all__ = ("Policy",)
