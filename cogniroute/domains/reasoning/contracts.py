"""
Reasoning Contracts - Interfaces for the reasoning tree domain.
"""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable

from cogniroute.domains.routing import Complexity

from .models import GeneratedThought, ReasoningResult


@runtime_checkable
class ThoughtGenerator(Protocol):
    """Contract for producing the text of one thought node."""

    async def generate(
        self,
        prompt: str,
        complexity: Complexity,
        domain: str,
        metadata: dict[str, Any],
    ) -> GeneratedThought:
        """
        Generate a thought.

        Args:
            prompt: Perspective, expansion or critique prompt
            complexity: Complexity to route the call with
            domain: Request domain
            metadata: Provenance (perspective, strategy, parent id, ...)

        Returns:
            Generated text with confidence and cost
        """
        ...


@runtime_checkable
class ContradictionDetector(Protocol):
    """Contract for flagging conflicts between a child and its parent."""

    def detect(self, child_content: str, parent_content: str) -> list[str]:
        """Return one description per detected conflict."""
        ...


@runtime_checkable
class TreeReasoner(Protocol):
    """Contract for tree-structured reasoning."""

    async def reason(
        self,
        query: str,
        domain: str = "general",
        complexity: Complexity | str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> ReasoningResult:
        """
        Search a thought forest for the best line of argument.

        Returns:
            Result; ``no_conclusion`` is set when nothing could be built
        """
        ...
