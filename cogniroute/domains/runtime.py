"""
Runtime - Injectable clock and identifier sources.

Components never read the wall clock or generate random IDs directly,
so tests can pin both.
"""

from __future__ import annotations

import itertools
import uuid
from collections.abc import Callable
from datetime import datetime, timedelta, timezone
from typing import Protocol, runtime_checkable

__all__ = [
    "Clock",
    "SystemClock",
    "ManualClock",
    "IdFactory",
    "uuid_ids",
    "SequentialIds",
]

IdFactory = Callable[[], str]


@runtime_checkable
class Clock(Protocol):
    """Source of the current time (timezone-aware UTC)."""

    def now(self) -> datetime:
        ...


class SystemClock:
    """Wall-clock time."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class ManualClock:
    """
    Clock that only moves when told to.

    Example:
        >>> clock = ManualClock()
        >>> clock.advance(ms=1500)
    """

    def __init__(self, start: datetime | None = None) -> None:
        self._now = start or datetime(2025, 1, 1, tzinfo=timezone.utc)

    def now(self) -> datetime:
        return self._now

    def advance(self, ms: float = 0.0, seconds: float = 0.0) -> datetime:
        """Move the clock forward and return the new time."""
        self._now += timedelta(milliseconds=ms, seconds=seconds)
        return self._now


def uuid_ids(prefix: str = "") -> IdFactory:
    """Random UUID4 identifiers, optionally prefixed (``task_<hex>``)."""

    def _next() -> str:
        value = uuid.uuid4().hex
        return f"{prefix}_{value}" if prefix else value

    return _next


class SequentialIds:
    """Deterministic identifiers: ``node_1``, ``node_2``, ..."""

    def __init__(self, prefix: str = "id") -> None:
        self._prefix = prefix
        self._counter = itertools.count(1)

    def __call__(self) -> str:
        return f"{self._prefix}_{next(self._counter)}"
