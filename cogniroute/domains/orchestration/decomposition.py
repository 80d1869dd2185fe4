"""
Task Decomposition - Multi-agent fan-out over typed sub-tasks.

One TaskRequest is split by its declared requirements, each sub-task runs
on the specialist agent for its type, and the results are merged back
into a single TaskResult.
"""

from __future__ import annotations

import asyncio
import logging
import re
import time
from collections import Counter
from collections.abc import Iterable, Mapping

from cogniroute.config import ProviderError
from cogniroute.domains.routing import (
    AgentCapability,
    AgentRegistry,
    Priority,
    TaskRequest,
    TaskResult,
    TaskType,
    references_visual_content,
)
from cogniroute.domains.runtime import IdFactory, uuid_ids

from .contracts import ModelInvoker
from .models import SystemMetrics

logger = logging.getLogger(__name__)

__all__ = [
    "DEFAULT_SPECIALISTS",
    "COORDINATOR_ID",
    "TaskCoordinator",
    "build_task_prompt",
    "decompose",
    "infer_task_type",
    "optimize_task_distribution",
]

COORDINATOR_ID = "task-coordinator"

# Task type -> agent id in the default registry
DEFAULT_SPECIALISTS: dict[TaskType, str] = {
    TaskType.CODE_GENERATION: "claude-analyst",
    TaskType.CODE_ANALYSIS: "claude-analyst",
    TaskType.TOOL_INTERACTION: "glm-efficient",
    TaskType.MULTIMODAL: "gemini-multimodal",
    TaskType.AUTONOMOUS_WORKFLOW: "gpt-5-orchestrator",
    TaskType.ORCHESTRATION: "gpt-5-orchestrator",
    TaskType.REASONING: "gpt-5-orchestrator",
    TaskType.GENERAL_QUERY: "gpt-5-orchestrator",
}

COST_SENSITIVE_LIMIT = 0.05
SUCCESS_CONFIDENCE = 0.8

# Checked in order, first match wins
_TYPE_PATTERNS: list[tuple[TaskType, list[str]]] = [
    (TaskType.CODE_ANALYSIS, [r"\b(review|debug|audit)\b.*\bcode\b", r"\bcode review\b", r"\bstack ?trace\b"]),
    (TaskType.CODE_GENERATION, [r"```", r"\bdef \w+\(", r"\b(write|implement|generate|refactor)\b.*\b(code|function|class|script)\b"]),
    (TaskType.TOOL_INTERACTION, [r"\b(api|endpoint|database|sql|webhook)\b", r"\b(call|invoke|run) the\b"]),
    (TaskType.AUTONOMOUS_WORKFLOW, [r"\bworkflow\b", r"\bautomate\b", r"\bstep[- ]by[- ]step\b", r"\bmulti[- ]step\b"]),
    (TaskType.ORCHESTRATION, [r"\b(plan|coordinate|delegate|orchestrate)\b"]),
    (TaskType.REASONING, [r"\b(why|should|evaluate|compare|trade-?offs?|pros and cons)\b"]),
]

_COMPILED = [
    (task_type, [re.compile(p, re.IGNORECASE) for p in patterns])
    for task_type, patterns in _TYPE_PATTERNS
]


def infer_task_type(text: str) -> TaskType:
    """Classify free text into a task type by keyword patterns."""
    for task_type, patterns in _COMPILED:
        if any(p.search(text) for p in patterns):
            return task_type
    if references_visual_content(text):
        return TaskType.MULTIMODAL
    return TaskType.GENERAL_QUERY


def decompose(request: TaskRequest, id_factory: IdFactory | None = None) -> list[TaskRequest]:
    """
    Split a request into typed sub-tasks.

    - tools required -> tool_interaction (HIGH)
    - code in content or a code_generation request -> code_generation (HIGH)
    - multimodal required -> multimodal (MEDIUM)
    - none of the above -> one general_query task keeping the original id
    """
    new_id = id_factory or uuid_ids("task")
    sub_tasks: list[TaskRequest] = []

    def _spawn(task_type: TaskType, priority: Priority) -> None:
        sub_tasks.append(
            request.model_copy(
                update={
                    "id": new_id(),
                    "type": task_type,
                    "priority": priority,
                    "parent_id": request.id,
                }
            )
        )

    if request.requirements.needs_tools:
        _spawn(TaskType.TOOL_INTERACTION, Priority.HIGH)
    if request.includes_code or request.type == TaskType.CODE_GENERATION:
        _spawn(TaskType.CODE_GENERATION, Priority.HIGH)
    if request.requirements.needs_multimodal:
        _spawn(TaskType.MULTIMODAL, Priority.MEDIUM)

    if not sub_tasks:
        sub_tasks.append(request.model_copy(update={"type": TaskType.GENERAL_QUERY}))

    return sub_tasks


def _cost_sensitive(task: TaskRequest) -> bool:
    max_cost = task.requirements.max_cost
    return max_cost is not None and max_cost < COST_SENSITIVE_LIMIT


def optimize_task_distribution(tasks: Iterable[TaskRequest]) -> list[TaskRequest]:
    """Order tasks by priority (highest first), cost-sensitive tasks first on ties."""
    return sorted(tasks, key=lambda t: (-int(t.priority), not _cost_sensitive(t)))


class TaskCoordinator:
    """
    Runs decomposed requests on specialist agents.

    Sub-tasks execute concurrently. When the specialist fails, the other
    registered agents are tried in reliability order. A sub-task no agent
    could complete is logged and listed in ``metadata["failed"]``; the
    aggregate is marked incomplete rather than silently dropping it.
    """

    def __init__(
        self,
        invoker: ModelInvoker,
        registry: AgentRegistry | None = None,
        specialists: Mapping[TaskType, str] | None = None,
        backend_timeout_seconds: float | None = 30.0,
        id_factory: IdFactory | None = None,
    ) -> None:
        """
        Initialize coordinator.

        Args:
            invoker: Backend model invocation
            registry: Agents available to sub-tasks
            specialists: Task type -> agent id table
            backend_timeout_seconds: Per-call budget (None disables it)
            id_factory: Sub-task and result ID source
        """
        self._invoker = invoker
        self._registry = registry or AgentRegistry()
        self._specialists = dict(specialists or DEFAULT_SPECIALISTS)
        self._backend_timeout = backend_timeout_seconds
        self._new_id = id_factory or uuid_ids("task")
        # Running totals only; no per-request results are retained
        self._tasks_processed = 0
        self._successes = 0
        self._total_time_ms = 0.0
        self._total_cost = 0.0
        self._agent_usage: Counter[str] = Counter()

    def select_agent(self, task: TaskRequest) -> AgentCapability:
        """Specialist for the task type, else the most reliable agent."""
        agent_id = self._specialists.get(task.type)
        if agent_id and agent_id in self._registry:
            return self._registry.get(agent_id)
        return max(self._registry, key=lambda a: (a.reliability, -a.cost_per_query))

    async def process_request(self, request: TaskRequest) -> TaskResult:
        """
        Decompose, execute and aggregate one request.

        Returns:
            Aggregated result; zero-confidence with ``no_conclusion`` when
            every sub-task failed
        """
        started = time.perf_counter()
        sub_tasks = optimize_task_distribution(decompose(request, self._new_id))
        logger.info(
            "Decomposed task %s into %d sub-tasks: %s",
            request.id,
            len(sub_tasks),
            ",".join(t.type.value for t in sub_tasks),
        )

        outcomes = await asyncio.gather(
            *(self._run_sub_task(task) for task in sub_tasks),
            return_exceptions=True,
        )

        results: list[TaskResult] = []
        failed: list[dict[str, str]] = []
        for task, outcome in zip(sub_tasks, outcomes):
            if isinstance(outcome, BaseException):
                if not isinstance(outcome, Exception):
                    raise outcome
                logger.warning("Sub-task %s (%s) failed: %s", task.id, task.type.value, outcome)
                failed.append({"task_id": task.id, "type": task.type.value, "error": str(outcome)})
                continue
            results.append(outcome)

        aggregated = self._aggregate(request, sub_tasks, results, failed, started)
        self._record(aggregated, results)
        return aggregated

    def _record(self, aggregated: TaskResult, results: list[TaskResult]) -> None:
        self._tasks_processed += 1
        self._total_time_ms += aggregated.processing_time_ms
        self._total_cost += aggregated.cost_estimate
        if aggregated.confidence > SUCCESS_CONFIDENCE:
            self._successes += 1
        self._agent_usage.update(r.agent_id for r in results)

    def candidates(self, task: TaskRequest) -> list[AgentCapability]:
        """Selected agent first, then the rest by reliability, cheaper first on ties."""
        primary = self.select_agent(task)
        rest = sorted(
            (a for a in self._registry if a.id != primary.id),
            key=lambda a: (-a.reliability, a.cost_per_query),
        )
        return [primary, *rest]

    async def _run_sub_task(self, task: TaskRequest) -> TaskResult:
        agents = self.candidates(task)
        primary = agents[0]
        attempted: list[str] = []
        last_error: ProviderError | None = None

        for agent in agents:
            attempted.append(agent.id)
            try:
                result = await self._invoke_agent(agent, task)
            except ProviderError as e:
                last_error = e
            except Exception as e:
                last_error = ProviderError(str(e), agent_id=agent.id)
            else:
                if agent.id != primary.id:
                    logger.info("Sub-task %s served by %s for %s", task.id, agent.id, primary.id)
                    result.metadata["fallback_for"] = primary.id
                return result
            logger.warning("Sub-task %s failed on %s: %s", task.id, agent.id, last_error)

        raise ProviderError(
            f"No agent completed {task.type.value} sub-task {task.id}",
            agent_id=attempted[-1],
            details={"attempted": attempted, "last_error": str(last_error)},
        )

    async def _invoke_agent(self, agent: AgentCapability, task: TaskRequest) -> TaskResult:
        prompt = build_task_prompt(agent, task)
        context = {
            "task_id": task.id,
            "task_type": task.type.value,
            "domain": task.context.domain,
            "priority": int(task.priority),
        }

        started = time.perf_counter()
        call = self._invoker.invoke(agent, prompt, context)
        try:
            if self._backend_timeout is None:
                invocation = await call
            else:
                invocation = await asyncio.wait_for(call, self._backend_timeout)
        except asyncio.TimeoutError:
            raise ProviderError(
                f"Agent {agent.id} timed out after {self._backend_timeout}s",
                agent_id=agent.id,
            ) from None

        return TaskResult(
            id=task.id,
            agent_id=agent.id,
            result=invocation.text,
            confidence=invocation.confidence,
            processing_time_ms=(time.perf_counter() - started) * 1000,
            cost_estimate=invocation.cost if invocation.cost is not None else agent.cost_per_query,
            metadata={"task_type": task.type.value, "verified": invocation.verified},
        )

    def _aggregate(
        self,
        request: TaskRequest,
        sub_tasks: list[TaskRequest],
        results: list[TaskResult],
        failed: list[dict[str, str]],
        started: float,
    ) -> TaskResult:
        elapsed_ms = (time.perf_counter() - started) * 1000
        metadata = {
            "sub_tasks": len(sub_tasks),
            "sub_results": [
                {
                    "task_id": r.id,
                    "type": r.metadata.get("task_type"),
                    "agent_id": r.agent_id,
                    "result": r.result,
                    "confidence": r.confidence,
                    "cost": r.cost_estimate,
                    "fallback_for": r.metadata.get("fallback_for"),
                }
                for r in results
            ],
            "failed": failed,
            "complete": not failed,
        }

        if not results:
            logger.warning("Task %s produced no sub-results", request.id)
            return TaskResult(
                id=request.id,
                agent_id=COORDINATOR_ID,
                confidence=0.0,
                processing_time_ms=elapsed_ms,
                no_conclusion=True,
                metadata=metadata,
            )

        return TaskResult(
            id=request.id,
            agent_id=COORDINATOR_ID,
            result="\n".join(r.result for r in results),
            confidence=sum(r.confidence for r in results) / len(results),
            processing_time_ms=elapsed_ms,
            cost_estimate=sum(r.cost_estimate for r in results),
            metadata=metadata,
        )

    def system_metrics(self) -> SystemMetrics:
        """Counters over every request processed so far."""
        count = self._tasks_processed
        if not count:
            return SystemMetrics()

        total_uses = sum(self._agent_usage.values())
        return SystemMetrics(
            total_tasks_processed=count,
            average_processing_time_ms=self._total_time_ms / count,
            total_cost=self._total_cost,
            agent_utilization=(
                {a: n / total_uses for a, n in self._agent_usage.items()} if total_uses else {}
            ),
            success_rate=self._successes / count,
        )


def build_task_prompt(agent: AgentCapability, task: TaskRequest) -> str:
    """Prompt for one sub-task on its specialist."""
    lines = [
        f"As a {agent.name} specialized in {', '.join(agent.specialization) or 'general tasks'}, "
        f"handle the following {task.type.value.replace('_', ' ')} task "
        f"in the context of {task.context.domain}:",
        "",
        f"Task: {task.content}",
    ]
    if task.context.available_tools:
        lines += ["", f"Available tools: {', '.join(task.context.available_tools)}"]
    if task.requirements.min_accuracy is not None:
        lines += ["", f"Required accuracy: {task.requirements.min_accuracy:.2f}"]
    return "\n".join(lines)
