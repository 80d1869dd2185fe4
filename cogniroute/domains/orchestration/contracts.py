"""
Orchestration Contracts - Interfaces for orchestration domain.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Protocol, runtime_checkable

from cogniroute.domains.routing import AgentCapability

from .models import InvocationResult, OrchestrationResult, ReasoningContext


@runtime_checkable
class ModelInvoker(Protocol):
    """Contract for backend model invocation."""

    async def invoke(
        self,
        agent: AgentCapability,
        prompt: str,
        context: Mapping[str, Any],
    ) -> InvocationResult:
        """
        Run one prompt on one agent.

        Args:
            agent: Agent descriptor (provider, model, prices)
            prompt: Full prompt text
            context: Request context (domain, complexity, task id, ...)

        Returns:
            Text with confidence, verification flag and cost when known

        Raises:
            ProviderError: If the backend call failed
        """
        ...


@runtime_checkable
class Guardrail(Protocol):
    """Contract for request validation before any processing."""

    def check(self, query: str, context: ReasoningContext) -> None:
        """
        Validate a request.

        Raises:
            ValidationError: If the request must not be processed
        """
        ...


@runtime_checkable
class QueryOrchestrator(Protocol):
    """Contract for the orchestration entry point."""

    async def process_complex_query(
        self,
        query: str,
        context: ReasoningContext | Mapping[str, Any] | None = None,
    ) -> OrchestrationResult:
        """
        Answer a query through cache, routing and agent execution.

        Args:
            query: The incoming query
            context: Complexity, domain, urgency, mode and metadata

        Returns:
            Response with reasoning chain, confidence and cost
        """
        ...
