"""
Routing Contracts - Interfaces for the routing domain.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from .models import Complexity, RoutingDecision, TaskRequest, Urgency


@runtime_checkable
class AgentRouter(Protocol):
    """Contract for agent selection."""

    def route(
        self,
        query: str,
        complexity: Complexity | str | None = None,
        urgency: Urgency | str = Urgency.MEDIUM,
        domain: str = "general",
        max_cost: float | None = None,
        needs_multimodal: bool = False,
        query_id: str | None = None,
    ) -> RoutingDecision:
        """
        Select agents for a query.

        Returns:
            Ordered primary agents plus fallbacks
        """
        ...

    def route_task(self, task: TaskRequest) -> RoutingDecision:
        """Select agents for a structured task request."""
        ...
