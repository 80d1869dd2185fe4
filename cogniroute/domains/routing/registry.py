"""
Agent Registry - Catalogue of available backend agents.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator

from cogniroute.config import CogniRouteError, ErrorCode

from .models import AgentCapability, ModelTier

logger = logging.getLogger(__name__)

__all__ = ["AgentRegistry", "DEFAULT_AGENTS"]


DEFAULT_AGENTS: tuple[AgentCapability, ...] = (
    AgentCapability(
        id="gpt-5-orchestrator",
        name="GPT-5 Master Orchestrator",
        provider="openai",
        model="gpt-5",
        tier=ModelTier.PREMIUM,
        specialization=["complex-reasoning", "task-decomposition", "strategic-planning"],
        cost_per_query=0.15,
        latency_ms=2500,
        reliability=0.98,
        context_window=400_000,
    ),
    AgentCapability(
        id="claude-analyst",
        name="Claude Critical Analyst",
        provider="anthropic",
        model="claude-sonnet-4-5",
        tier=ModelTier.BALANCED,
        specialization=["critical-analysis", "document-processing", "ethical-reasoning"],
        cost_per_query=0.12,
        latency_ms=2000,
        reliability=0.97,
        context_window=200_000,
    ),
    AgentCapability(
        id="gemini-multimodal",
        name="Gemini Multimodal Processor",
        provider="gemini",
        model="gemini-2.5-pro",
        tier=ModelTier.MULTIMODAL,
        specialization=["multimodal-analysis", "data-visualization", "pattern-recognition"],
        cost_per_query=0.08,
        latency_ms=1800,
        reliability=0.95,
        supports_multimodal=True,
    ),
    AgentCapability(
        id="glm-efficient",
        name="GLM Efficient Processor",
        provider="ollama",
        model="glm4",
        tier=ModelTier.FAST,
        specialization=["routine-tasks", "data-processing", "simple-reasoning"],
        cost_per_query=0.03,
        latency_ms=1000,
        reliability=0.92,
        context_window=128_000,
    ),
)


class AgentRegistry:
    """
    Ordered, id-keyed set of agents.

    Iteration order is registration order.
    """

    def __init__(self, agents: Iterable[AgentCapability] = DEFAULT_AGENTS) -> None:
        self._agents: dict[str, AgentCapability] = {}
        for agent in agents:
            self.register(agent)
        if not self._agents:
            raise ValueError("AgentRegistry needs at least one agent")

    def register(self, agent: AgentCapability) -> None:
        """Add or replace an agent."""
        if agent.id in self._agents:
            logger.debug("Replacing agent %s", agent.id)
        self._agents[agent.id] = agent

    def get(self, agent_id: str) -> AgentCapability:
        """
        Look up an agent.

        Raises:
            CogniRouteError: UNKNOWN_AGENT if the id is not registered
        """
        try:
            return self._agents[agent_id]
        except KeyError:
            raise CogniRouteError(
                ErrorCode.UNKNOWN_AGENT,
                f"Unknown agent: {agent_id}",
                {"agent_id": agent_id},
            ) from None

    def __contains__(self, agent_id: object) -> bool:
        return agent_id in self._agents

    def __iter__(self) -> Iterator[AgentCapability]:
        return iter(self._agents.values())

    def __len__(self) -> int:
        return len(self._agents)

    @property
    def ids(self) -> list[str]:
        return list(self._agents)

    def by_tier(self, tier: ModelTier) -> list[AgentCapability]:
        return [a for a in self._agents.values() if a.tier == tier]

    def with_specialization(self, tag: str) -> list[AgentCapability]:
        return [a for a in self._agents.values() if tag in a.specialization]

    def multimodal(self) -> list[AgentCapability]:
        return [a for a in self._agents.values() if a.supports_multimodal]

    def projected_cost(self, agent_ids: Iterable[str]) -> float:
        return sum(self.get(agent_id).cost_per_query for agent_id in agent_ids)
