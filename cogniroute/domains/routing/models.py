"""
Routing Models - Data types for the routing domain.
"""

from __future__ import annotations

from enum import Enum, IntEnum
from typing import Any

from pydantic import BaseModel, Field


class Complexity(str, Enum):
    """Declared complexity of a request."""

    SIMPLE = "simple"
    MEDIUM = "medium"
    COMPLEX = "complex"
    CRITICAL = "critical"


class Urgency(str, Enum):
    """Declared urgency of a request."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class ModelTier(str, Enum):
    """Agent capability tiers."""

    FAST = "fast"  # Cheapest, quickest
    BALANCED = "balanced"  # Cost/accuracy trade-off
    PREMIUM = "premium"  # Highest reliability, highest cost
    MULTIMODAL = "multimodal"  # Images, charts, visual content


class TaskType(str, Enum):
    """Kinds of work a task request can carry."""

    ORCHESTRATION = "orchestration"
    CODE_GENERATION = "code_generation"
    CODE_ANALYSIS = "code_analysis"
    TOOL_INTERACTION = "tool_interaction"
    AUTONOMOUS_WORKFLOW = "autonomous_workflow"
    REASONING = "reasoning"
    GENERAL_QUERY = "general_query"
    MULTIMODAL = "multimodal"


class Priority(IntEnum):
    """Task priority, higher runs first."""

    LOW = 1
    MEDIUM = 2
    HIGH = 3
    URGENT = 4


class AgentCapability(BaseModel):
    """Static descriptor of one backend model agent."""

    id: str = Field(..., min_length=1)
    name: str
    provider: str  # openai, deepseek, ollama, gemini, anthropic, ...
    model: str
    tier: ModelTier
    specialization: list[str] = Field(default_factory=list)
    cost_per_query: float = Field(ge=0.0)
    latency_ms: float = Field(ge=0.0)
    reliability: float = Field(ge=0.0, le=1.0)
    supports_multimodal: bool = False
    context_window: int | None = None

    # Token prices in USD per million tokens, when known
    input_price_per_million: float | None = None
    cached_input_price_per_million: float | None = None
    output_price_per_million: float | None = None

    model_config = {"frozen": True}


class RoutingDecision(BaseModel):
    """Ordered agent selection for one request."""

    query_id: str
    agent_ids: list[str]
    fallback_ids: list[str] = Field(default_factory=list)
    complexity: Complexity
    complexity_score: float = Field(ge=0.0, le=1.0)
    projected_cost: float = 0.0
    dropped_ids: list[str] = Field(default_factory=list)
    reasoning: str = ""

    @property
    def primary(self) -> str:
        return self.agent_ids[0]


class TaskContext(BaseModel):
    """Where a task comes from and what it may use."""

    session_id: str = ""
    user_id: str | None = None
    domain: str = "general"
    available_tools: list[str] = Field(default_factory=list)


class TaskRequirements(BaseModel):
    """Constraints a task must satisfy."""

    max_cost: float | None = Field(default=None, ge=0.0)
    max_time_ms: float | None = Field(default=None, gt=0.0)
    min_accuracy: float | None = Field(default=None, ge=0.0, le=1.0)
    needs_tools: bool = False
    needs_multimodal: bool = False
    needs_reasoning: bool = False


class TaskRequest(BaseModel):
    """A unit of work for the multi-agent path."""

    id: str
    type: TaskType = TaskType.GENERAL_QUERY
    priority: Priority = Priority.MEDIUM
    content: str
    includes_code: bool = False
    context: TaskContext = Field(default_factory=TaskContext)
    requirements: TaskRequirements = Field(default_factory=TaskRequirements)
    parent_id: str | None = None


class TaskResult(BaseModel):
    """Outcome of one task request."""

    id: str
    agent_id: str
    result: str = ""
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)
    processing_time_ms: float = 0.0
    cost_estimate: float = 0.0
    metadata: dict[str, Any] = Field(default_factory=dict)
    no_conclusion: bool = False
