"""
Orchestration Models - Data types for the orchestration domain.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field

from cogniroute.domains.routing import Complexity, Urgency


class ConfidentialityLevel(str, Enum):
    """Sensitivity of the data a request carries."""

    PUBLIC = "public"
    INTERNAL = "internal"
    CONFIDENTIAL = "confidential"
    SECRET = "secret"


class ExecutionMode(str, Enum):
    """How selected agents are executed."""

    CHAIN = "chain"  # each step's output feeds the next
    PARALLEL = "parallel"  # every agent answers the original query
    DECOMPOSE = "decompose"  # typed sub-tasks on specialist agents
    TREE = "tree"  # tree-of-thoughts search


class ReasoningContext(BaseModel):
    """Per-request context for ``process_complex_query``."""

    task_id: str = ""
    complexity: Complexity | None = None
    domain: str = "general"
    urgency: Urgency = Urgency.MEDIUM
    confidentiality_level: ConfidentialityLevel = ConfidentialityLevel.INTERNAL
    mode: ExecutionMode = ExecutionMode.CHAIN
    max_cost: float | None = Field(default=None, ge=0.0)
    use_cache: bool = True
    cache_threshold: float | None = Field(default=None, ge=0.0, le=1.0)
    metadata: dict[str, Any] = Field(default_factory=dict)


class InvocationResult(BaseModel):
    """What a backend returns for one prompt."""

    text: str
    confidence: float = Field(ge=0.0, le=1.0)
    reasoning: str = ""
    verified: bool = False
    cost: float | None = Field(default=None, ge=0.0)  # None when usage is unknown
    usage: dict[str, int] = Field(default_factory=dict)


class ReasoningStep(BaseModel):
    """One agent call in a reasoning chain."""

    agent: str
    input: str
    output: str
    confidence: float = Field(ge=0.0, le=1.0)
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    reasoning: str = ""
    verified: bool = False
    cost: float = 0.0
    latency_ms: float = 0.0
    fallback_for: str | None = None  # agent this step replaced after a failure


class OrchestrationResult(BaseModel):
    """Outcome of ``process_complex_query``."""

    task_id: str
    response: str
    reasoning_chain: list[ReasoningStep] = Field(default_factory=list)
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)
    cost: float = 0.0
    cache_hit: bool = False
    no_conclusion: bool = False
    complete: bool = True  # False when part of the work (a decomposed sub-task) failed
    metadata: dict[str, Any] = Field(default_factory=dict)


class AgentMetrics(BaseModel):
    """Observed performance of one agent."""

    total_queries: int = 0
    failures: int = 0
    average_latency_ms: float = 0.0
    reliability: float = 0.0
    cost_efficiency: float = 0.0
    total_cost: float = 0.0


class SystemMetrics(BaseModel):
    """Counters for the task decomposition path."""

    total_tasks_processed: int = 0
    average_processing_time_ms: float = 0.0
    total_cost: float = 0.0
    agent_utilization: dict[str, float] = Field(default_factory=dict)
    success_rate: float = 0.0
