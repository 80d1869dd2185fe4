"""
Routing Domain - Agent catalogue and cost-aware model selection.

This domain handles:
- Agent capability descriptors and the default agent set
- Complexity/urgency based routing with a cost ceiling
- Task request and result types shared with orchestration
"""

from .contracts import AgentRouter
from .models import (
    AgentCapability,
    Complexity,
    ModelTier,
    Priority,
    RoutingDecision,
    TaskContext,
    TaskRequest,
    TaskRequirements,
    TaskResult,
    TaskType,
    Urgency,
)
from .registry import DEFAULT_AGENTS, AgentRegistry
from .router import ModelRouter, complexity_score, references_visual_content

__all__ = [
    # Contracts
    "AgentRouter",
    # Models
    "AgentCapability",
    "Complexity",
    "ModelTier",
    "Priority",
    "RoutingDecision",
    "TaskContext",
    "TaskRequest",
    "TaskRequirements",
    "TaskResult",
    "TaskType",
    "Urgency",
    # Implementations
    "AgentRegistry",
    "DEFAULT_AGENTS",
    "ModelRouter",
    "complexity_score",
    "references_visual_content",
]
