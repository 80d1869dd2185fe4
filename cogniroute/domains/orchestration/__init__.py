"""
Orchestration Domain - Query processing across backend agents.

This domain handles:
- The cognitive orchestrator entry point (cache, routing, execution, synthesis)
- Lifecycle events for observability
- Security guardrails
- Multi-agent task decomposition
"""

from .contracts import Guardrail, ModelInvoker, QueryOrchestrator
from .decomposition import (
    DEFAULT_SPECIALISTS,
    TaskCoordinator,
    decompose,
    infer_task_type,
    optimize_task_distribution,
)
from .events import EventBus, EventName, LifecycleEvent
from .guardrails import SecurityGuardrails
from .models import (
    AgentMetrics,
    ConfidentialityLevel,
    ExecutionMode,
    InvocationResult,
    OrchestrationResult,
    ReasoningContext,
    ReasoningStep,
    SystemMetrics,
)
from .orchestrator import (
    CACHE_AGENT_ID,
    CognitiveOrchestrator,
    OrchestratorThoughtGenerator,
    chain_confidence,
    synthesize_response,
)

__all__ = [
    # Contracts
    "Guardrail",
    "ModelInvoker",
    "QueryOrchestrator",
    # Models
    "AgentMetrics",
    "ConfidentialityLevel",
    "ExecutionMode",
    "InvocationResult",
    "OrchestrationResult",
    "ReasoningContext",
    "ReasoningStep",
    "SystemMetrics",
    "LifecycleEvent",
    "EventName",
    # Implementations
    "CognitiveOrchestrator",
    "OrchestratorThoughtGenerator",
    "EventBus",
    "SecurityGuardrails",
    "TaskCoordinator",
    "DEFAULT_SPECIALISTS",
    "CACHE_AGENT_ID",
    # Functions
    "decompose",
    "infer_task_type",
    "optimize_task_distribution",
    "chain_confidence",
    "synthesize_response",
]
