"""
Lifecycle Events - Observer channel for orchestration signals.

The orchestrator publishes one event per phase; logging, metrics or
persistence sinks subscribe here instead of hooking into the core.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from collections import deque
from collections.abc import Awaitable, Callable, Iterable
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)

__all__ = ["EventBus", "EventName", "LifecycleEvent", "EventHandler"]


class EventName(str, Enum):
    """Lifecycle signals emitted by the orchestrator."""

    STARTED = "reasoning-started"
    CACHE_HIT = "cache-hit"
    STEP = "reasoning-step"
    COMPLETED = "reasoning-completed"
    ERROR = "reasoning-error"


class LifecycleEvent(BaseModel):
    """Structured payload of one lifecycle signal."""

    name: EventName
    task_id: str
    query: str = ""
    agent_id: str | None = None
    cost: float | None = None
    data: dict[str, Any] = Field(default_factory=dict)
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


EventHandler = Callable[[LifecycleEvent], "Awaitable[None] | None"]


class EventBus:
    """
    In-process publisher of lifecycle events.

    Handlers may be plain or async callables. A handler that raises is
    logged and skipped; it never fails the request that emitted the event.

    Example:
        >>> bus = EventBus()
        >>> bus.subscribe(lambda e: print(e.name.value), names=[EventName.CACHE_HIT])
        >>> orchestrator = CognitiveOrchestrator(invoker, events=bus)
    """

    def __init__(self, history_size: int = 1000) -> None:
        self._handlers: list[tuple[EventHandler, frozenset[EventName] | None]] = []
        self._queues: list[asyncio.Queue[LifecycleEvent]] = []
        self._history: deque[LifecycleEvent] = deque(maxlen=history_size)

    @property
    def history(self) -> list[LifecycleEvent]:
        """Most recent events, oldest first."""
        return list(self._history)

    def subscribe(
        self,
        handler: EventHandler,
        names: Iterable[EventName | str] | None = None,
    ) -> Callable[[], None]:
        """
        Register a handler.

        Args:
            handler: Called with every matching event
            names: Only deliver these events (all when None)

        Returns:
            A callable that removes the subscription
        """
        entry = (handler, frozenset(EventName(n) for n in names) if names is not None else None)
        self._handlers.append(entry)

        def _unsubscribe() -> None:
            if entry in self._handlers:
                self._handlers.remove(entry)

        return _unsubscribe

    def queue(self, maxsize: int = 0) -> asyncio.Queue[LifecycleEvent]:
        """
        Subscribe with a queue that receives every event.

        Args:
            maxsize: Bound on pending events (0 is unbounded); when full,
                the oldest pending event is dropped

        Returns:
            The queue; pass it to ``remove_queue`` to stop delivery
        """
        q: asyncio.Queue[LifecycleEvent] = asyncio.Queue(maxsize=maxsize)
        self._queues.append(q)
        return q

    def remove_queue(self, q: asyncio.Queue[LifecycleEvent]) -> None:
        """Stop delivering to a queue returned by ``queue``."""
        if q in self._queues:
            self._queues.remove(q)

    async def emit(self, event: LifecycleEvent) -> None:
        """Deliver an event to every matching handler and queue."""
        self._history.append(event)
        logger.debug("Event %s for task %s", event.name.value, event.task_id)

        for handler, names in list(self._handlers):
            if names is not None and event.name not in names:
                continue
            try:
                outcome = handler(event)
                if inspect.isawaitable(outcome):
                    await outcome
            except Exception as e:
                logger.warning("Event handler failed on %s: %s", event.name.value, e)

        for q in list(self._queues):
            if q.full():
                q.get_nowait()
                logger.debug("Event queue full, dropped oldest event")
            q.put_nowait(event)

    async def publish(self, name: EventName, task_id: str, **fields: Any) -> LifecycleEvent:
        """Build and emit an event."""
        event = LifecycleEvent(name=name, task_id=task_id, **fields)
        await self.emit(event)
        return event
