"""
Model Router - Cost-aware agent selection.

Selects an ordered list of agents for a query from its declared (or
estimated) complexity, urgency and content, then trims the list to a
cost ceiling without ever dropping the primary agent.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable

from cogniroute.domains.runtime import IdFactory, uuid_ids

from .models import (
    AgentCapability,
    Complexity,
    ModelTier,
    Priority,
    RoutingDecision,
    TaskRequest,
    Urgency,
)
from .registry import AgentRegistry

logger = logging.getLogger(__name__)

__all__ = ["ModelRouter", "complexity_score", "references_visual_content"]

# Queries referencing visual material get a multimodal agent on the complex path
VISUAL_PATTERNS = [
    r"\bimages?\b",
    r"\bcharts?\b",
    r"\bvisual(s|ly|ize|isation|ization)?\b",
    r"\bdiagrams?\b",
    r"\bgraphs?\b",
    r"\bplots?\b",
    r"\bscreenshots?\b",
    r"\bphotos?\b",
    r"\bpictures?\b",
]

SIMPLE_SCORE_LIMIT = 0.3
MEDIUM_SCORE_LIMIT = 0.7

_URGENT = (Urgency.HIGH, Urgency.CRITICAL)


def complexity_score(query: str) -> float:
    """Length-based complexity estimate in [0, 1], monotonic in length."""
    return min(len(query) / 500, 1.0)


def references_visual_content(query: str) -> bool:
    """Whether the query mentions images, charts or other visual material."""
    text = query.lower()
    return any(re.search(pattern, text) for pattern in VISUAL_PATTERNS)


def _score_to_complexity(score: float) -> Complexity:
    if score < SIMPLE_SCORE_LIMIT:
        return Complexity.SIMPLE
    if score < MEDIUM_SCORE_LIMIT:
        return Complexity.MEDIUM
    return Complexity.COMPLEX


class ModelRouter:
    """
    Deterministic router over an agent registry.

    Selection by effective complexity:
    - simple: the single cheapest agent
    - medium: a balanced agent, plus a latency-optimized one when urgent
    - complex/critical: the most reliable agent plus a secondary analyst,
      plus a multimodal agent when the query references visual content
    """

    def __init__(
        self,
        registry: AgentRegistry | None = None,
        id_factory: IdFactory | None = None,
    ) -> None:
        self._registry = registry or AgentRegistry()
        self._new_id = id_factory or uuid_ids("query")

    @property
    def registry(self) -> AgentRegistry:
        return self._registry

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

        Args:
            query: Query text
            complexity: Declared complexity; estimated from the text when None
            urgency: Declared urgency
            domain: Request domain (recorded in the reasoning)
            max_cost: Ceiling on the projected total cost
            needs_multimodal: Force a multimodal-capable agent
            query_id: Identifier to record; generated when None

        Returns:
            Routing decision with ordered agents and fallbacks
        """
        query_id = query_id or self._new_id()
        urgency = Urgency(urgency)
        score = complexity_score(query)

        if complexity is None:
            effective = _score_to_complexity(score)
            source = f"estimated from length (score={score:.2f})"
        else:
            effective = Complexity(complexity)
            source = "declared"

        selected = self._select(query, effective, urgency)
        notes = [f"{effective.value} complexity ({source})"]

        if needs_multimodal and not any(self._registry.get(a).supports_multimodal for a in selected):
            extra = self._best_multimodal(selected)
            if extra:
                selected.append(extra.id)
                notes.append("multimodal agent required")

        kept, dropped = self._apply_cost_ceiling(selected, max_cost)
        if dropped:
            notes.append(f"dropped {', '.join(dropped)} to fit max_cost={max_cost}")

        decision = RoutingDecision(
            query_id=query_id,
            agent_ids=kept,
            fallback_ids=self._fallbacks(kept),
            complexity=effective,
            complexity_score=score,
            projected_cost=self._registry.projected_cost(kept),
            dropped_ids=dropped,
            reasoning=f"domain={domain}, urgency={urgency.value}: " + "; ".join(notes),
        )

        logger.info(
            "Routed query %s: complexity=%s, agents=%s, cost=%.3f",
            query_id[:16],
            effective.value,
            ",".join(kept),
            decision.projected_cost,
        )
        return decision

    def route_task(self, task: TaskRequest) -> RoutingDecision:
        """Route a multi-agent task request."""
        urgency = Urgency.HIGH if task.priority >= Priority.HIGH else Urgency.MEDIUM
        complexity = Complexity.COMPLEX if task.requirements.needs_reasoning else None
        return self.route(
            task.content,
            complexity=complexity,
            urgency=urgency,
            domain=task.context.domain,
            max_cost=task.requirements.max_cost,
            needs_multimodal=task.requirements.needs_multimodal,
            query_id=task.id,
        )

    # --- Role selection ---

    def _select(self, query: str, complexity: Complexity, urgency: Urgency) -> list[str]:
        if complexity == Complexity.SIMPLE:
            return [self._cheapest().id]

        if complexity == Complexity.MEDIUM:
            selected = [self._balanced().id]
            if urgency in _URGENT:
                fast = self._latency_optimized(selected)
                if fast:
                    selected.append(fast.id)
            return selected

        selected = [self._most_reliable().id]
        secondary = self._secondary(selected)
        if secondary:
            selected.append(secondary.id)
        if references_visual_content(query):
            visual = self._best_multimodal(selected)
            if visual:
                selected.append(visual.id)
        return selected

    def _cheapest(self) -> AgentCapability:
        return min(self._registry, key=lambda a: (a.cost_per_query, a.latency_ms))

    def _most_reliable(self) -> AgentCapability:
        return max(self._registry, key=lambda a: (a.reliability, -a.cost_per_query))

    def _balanced(self) -> AgentCapability:
        candidates = self._registry.by_tier(ModelTier.BALANCED) or [
            a for a in self._registry if a.tier != ModelTier.FAST
        ]
        if not candidates:
            return self._cheapest()
        return max(candidates, key=lambda a: (a.reliability, -a.cost_per_query))

    def _latency_optimized(self, exclude: Iterable[str]) -> AgentCapability | None:
        pool = self._unselected(exclude)
        candidates = [a for a in pool if a.tier != ModelTier.FAST] or pool
        if not candidates:
            return None
        return min(candidates, key=lambda a: (a.latency_ms, a.cost_per_query))

    def _secondary(self, exclude: Iterable[str]) -> AgentCapability | None:
        pool = self._unselected(exclude)
        candidates = [a for a in pool if a.tier == ModelTier.BALANCED] or pool
        if not candidates:
            return None
        return max(candidates, key=lambda a: (a.reliability, -a.cost_per_query))

    def _best_multimodal(self, exclude: Iterable[str]) -> AgentCapability | None:
        candidates = [a for a in self._unselected(exclude) if a.supports_multimodal]
        if not candidates:
            return None
        return max(candidates, key=lambda a: (a.reliability, -a.cost_per_query))

    def _unselected(self, exclude: Iterable[str]) -> list[AgentCapability]:
        excluded = set(exclude)
        return [a for a in self._registry if a.id not in excluded]

    # --- Cost and fallbacks ---

    def _apply_cost_ceiling(
        self,
        agent_ids: list[str],
        max_cost: float | None,
    ) -> tuple[list[str], list[str]]:
        """Drop trailing agents until the projected cost fits; keep the primary."""
        kept = list(agent_ids)
        dropped: list[str] = []
        if max_cost is None:
            return kept, dropped

        while len(kept) > 1 and self._registry.projected_cost(kept) > max_cost:
            dropped.insert(0, kept.pop())

        if self._registry.projected_cost(kept) > max_cost:
            logger.warning(
                "Primary agent %s alone exceeds max_cost=%.3f",
                kept[0],
                max_cost,
            )
        return kept, dropped

    def _fallbacks(self, selected: list[str]) -> list[str]:
        remaining = self._unselected(selected)
        remaining.sort(key=lambda a: (-a.reliability, a.cost_per_query))
        return [a.id for a in remaining]
