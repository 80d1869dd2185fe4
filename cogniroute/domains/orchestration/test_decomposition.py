"""
Tests for multi-agent task decomposition.
"""

from __future__ import annotations

from types import SimpleNamespace
from unittest.mock import AsyncMock

import pytest

from cogniroute.config import ProviderError
from cogniroute.domains.routing import (
    AgentCapability,
    AgentRegistry,
    ModelTier,
    Priority,
    TaskContext,
    TaskRequest,
    TaskRequirements,
    TaskType,
)
from cogniroute.domains.runtime import SequentialIds

from .decomposition import (
    COORDINATOR_ID,
    DEFAULT_SPECIALISTS,
    TaskCoordinator,
    build_task_prompt,
    decompose,
    infer_task_type,
    optimize_task_distribution,
)
from .models import InvocationResult


def request(**kwargs) -> TaskRequest:
    kwargs.setdefault("id", "req_1")
    kwargs.setdefault("content", "Build a dashboard")
    return TaskRequest(**kwargs)


def as_invoker(mock: AsyncMock) -> SimpleNamespace:
    """Expose a mock as the ``invoke`` method of a ``ModelInvoker``."""
    return SimpleNamespace(invoke=mock)


def reliable_invoker() -> AsyncMock:
    async def _invoke(agent, prompt, context):
        return InvocationResult(text=f"{agent.id} done", confidence=agent.reliability, verified=True)

    return AsyncMock(side_effect=_invoke)


# --- Decomposition Tests ---


def test_decompose_by_requirements() -> None:
    """Test each requirement spawns its typed sub-task."""
    parent = request(
        includes_code=True,
        requirements=TaskRequirements(needs_tools=True, needs_multimodal=True),
    )

    sub_tasks = decompose(parent, SequentialIds("sub"))

    assert [(t.type, t.priority) for t in sub_tasks] == [
        (TaskType.TOOL_INTERACTION, Priority.HIGH),
        (TaskType.CODE_GENERATION, Priority.HIGH),
        (TaskType.MULTIMODAL, Priority.MEDIUM),
    ]
    assert [t.id for t in sub_tasks] == ["sub_1", "sub_2", "sub_3"]
    assert all(t.parent_id == "req_1" for t in sub_tasks)
    assert all(t.content == parent.content for t in sub_tasks)


def test_decompose_code_generation_type() -> None:
    """Test a code_generation request spawns a code sub-task without the flag."""
    sub_tasks = decompose(request(type=TaskType.CODE_GENERATION))
    assert [t.type for t in sub_tasks] == [TaskType.CODE_GENERATION]


def test_decompose_falls_back_to_general_query() -> None:
    """Test a plain request becomes one general query keeping its id."""
    [task] = decompose(request(type=TaskType.REASONING))
    assert task.type == TaskType.GENERAL_QUERY
    assert task.id == "req_1"
    assert task.parent_id is None


def test_optimize_task_distribution() -> None:
    """Test priority order, then cost-sensitive tasks first."""
    low = request(id="low", priority=Priority.LOW)
    high = request(id="high", priority=Priority.HIGH)
    cheap = request(
        id="cheap", priority=Priority.HIGH, requirements=TaskRequirements(max_cost=0.01)
    )
    urgent = request(id="urgent", priority=Priority.URGENT)

    ordered = optimize_task_distribution([low, high, cheap, urgent])

    assert [t.id for t in ordered] == ["urgent", "cheap", "high", "low"]


@pytest.mark.parametrize(
    "text,expected",
    [
        ("Please review this code for bugs", TaskType.CODE_ANALYSIS),
        ("Implement a function to parse dates", TaskType.CODE_GENERATION),
        ("Fetch the latest rows from the database", TaskType.TOOL_INTERACTION),
        ("Automate the onboarding workflow", TaskType.AUTONOMOUS_WORKFLOW),
        ("Plan the migration across teams", TaskType.ORCHESTRATION),
        ("Should we raise prices?", TaskType.REASONING),
        ("Describe this photo", TaskType.MULTIMODAL),
        ("Hello there", TaskType.GENERAL_QUERY),
    ],
)
def test_infer_task_type(text: str, expected: TaskType) -> None:
    """Test free-text classification."""
    assert infer_task_type(text) == expected


def test_build_task_prompt() -> None:
    """Test the sub-task prompt names the task and its tools."""
    agent = AgentRegistry().get("glm-efficient")
    task = request(
        type=TaskType.TOOL_INTERACTION,
        context=TaskContext(domain="ops", available_tools=["api", "database"]),
    )

    prompt = build_task_prompt(agent, task)

    assert "tool interaction task in the context of ops" in prompt
    assert "Task: Build a dashboard" in prompt
    assert "Available tools: api, database" in prompt


# --- Coordinator Tests ---


async def test_process_request_aggregates() -> None:
    """Test mean confidence, summed cost and per-sub-task provenance."""
    invoker = reliable_invoker()
    coordinator = TaskCoordinator(as_invoker(invoker), id_factory=SequentialIds("sub"))
    parent = request(includes_code=True, requirements=TaskRequirements(needs_tools=True))

    result = await coordinator.process_request(parent)

    assert result.id == "req_1"
    assert result.agent_id == COORDINATOR_ID
    assert result.confidence == pytest.approx((0.92 + 0.97) / 2)
    assert result.cost_estimate == pytest.approx(0.03 + 0.12)
    assert [s["agent_id"] for s in result.metadata["sub_results"]] == [
        "glm-efficient",
        "claude-analyst",
    ]
    assert result.metadata["complete"] is True
    assert result.result == "glm-efficient done\nclaude-analyst done"
    assert invoker.await_count == 2


async def test_failed_sub_task_marks_incomplete() -> None:
    """Test a sub-task no agent can complete is reported, not hidden."""

    async def _invoke(agent, prompt, context):
        if "multimodal task" in prompt:
            raise ProviderError("down", agent_id=agent.id)
        return InvocationResult(text="ok", confidence=0.9)

    invoker = AsyncMock(side_effect=_invoke)
    coordinator = TaskCoordinator(as_invoker(invoker))
    parent = request(includes_code=True, requirements=TaskRequirements(needs_multimodal=True))

    result = await coordinator.process_request(parent)

    assert result.metadata["complete"] is False
    [failure] = result.metadata["failed"]
    assert failure["type"] == "multimodal"
    assert result.confidence == pytest.approx(0.9)
    # One code call plus one attempt per registered agent for the multimodal task
    assert invoker.await_count == 1 + len(AgentRegistry())


async def test_failed_specialist_falls_back_to_next_agent() -> None:
    """Test another agent serves a sub-task whose specialist is down."""
    calls: list[str] = []

    async def _invoke(agent, prompt, context):
        calls.append(agent.id)
        if agent.id == "gemini-multimodal":
            raise ProviderError("down", agent_id=agent.id)
        return InvocationResult(text=f"{agent.id} done", confidence=agent.reliability)

    coordinator = TaskCoordinator(as_invoker(AsyncMock(side_effect=_invoke)))
    parent = request(requirements=TaskRequirements(needs_multimodal=True))

    result = await coordinator.process_request(parent)

    assert calls == ["gemini-multimodal", "gpt-5-orchestrator"]
    assert result.metadata["complete"] is True
    assert result.metadata["failed"] == []
    [sub] = result.metadata["sub_results"]
    assert sub["agent_id"] == "gpt-5-orchestrator"
    assert sub["fallback_for"] == "gemini-multimodal"


def test_candidates_order_by_reliability() -> None:
    """Test fallback agents follow the specialist, most reliable first."""
    coordinator = TaskCoordinator(as_invoker(AsyncMock()))
    registry = AgentRegistry()

    agents = coordinator.candidates(request(type=TaskType.TOOL_INTERACTION))

    assert agents[0].id == "glm-efficient"
    assert len(agents) == len(registry)
    rest = [a.reliability for a in agents[1:]]
    assert rest == sorted(rest, reverse=True)


async def test_all_sub_tasks_fail_gives_no_conclusion() -> None:
    """Test zero sub-results produce a zero-confidence result."""
    coordinator = TaskCoordinator(as_invoker(AsyncMock(side_effect=ProviderError("down"))))

    result = await coordinator.process_request(request())

    assert result.no_conclusion is True
    assert result.confidence == 0.0
    assert result.cost_estimate == 0.0


async def test_reported_cost_is_used() -> None:
    """Test token-based cost replaces the declared per-query cost."""
    invoker = AsyncMock(return_value=InvocationResult(text="ok", confidence=0.9, cost=0.004))
    result = await TaskCoordinator(as_invoker(invoker)).process_request(request())
    assert result.cost_estimate == pytest.approx(0.004)


def test_select_agent_falls_back_to_most_reliable() -> None:
    """Test a missing specialist falls back to the most reliable agent."""
    registry = AgentRegistry(
        [
            AgentCapability(
                id="local",
                name="Local",
                provider="ollama",
                model="llama3.2",
                tier=ModelTier.FAST,
                cost_per_query=0.0,
                latency_ms=300,
                reliability=0.8,
            )
        ]
    )
    coordinator = TaskCoordinator(as_invoker(AsyncMock()), registry=registry)

    assert coordinator.select_agent(request(type=TaskType.CODE_GENERATION)).id == "local"
    assert DEFAULT_SPECIALISTS[TaskType.CODE_GENERATION] == "claude-analyst"


async def test_system_metrics() -> None:
    """Test counters across processed requests."""
    coordinator = TaskCoordinator(as_invoker(reliable_invoker()))
    assert coordinator.system_metrics().total_tasks_processed == 0

    await coordinator.process_request(request(id="a"))
    await coordinator.process_request(request(id="b", includes_code=True))

    metrics = coordinator.system_metrics()
    assert metrics.total_tasks_processed == 2
    assert metrics.total_cost == pytest.approx(0.15 + 0.12)
    assert metrics.agent_utilization == {
        "gpt-5-orchestrator": pytest.approx(0.5),
        "claude-analyst": pytest.approx(0.5),
    }
    assert metrics.success_rate == 1.0


async def test_system_metrics_accumulate_over_many_requests() -> None:
    """Test totals stay exact across many requests, including low-confidence ones."""
    confidences = iter([0.9, 0.5] * 50)

    async def _invoke(agent, prompt, context):
        return InvocationResult(text="ok", confidence=next(confidences), cost=0.01)

    coordinator = TaskCoordinator(as_invoker(AsyncMock(side_effect=_invoke)))
    for i in range(100):
        await coordinator.process_request(request(id=f"r{i}"))

    metrics = coordinator.system_metrics()
    assert metrics.total_tasks_processed == 100
    assert metrics.total_cost == pytest.approx(1.0)
    assert metrics.success_rate == pytest.approx(0.5)
    assert metrics.agent_utilization == {"gpt-5-orchestrator": pytest.approx(1.0)}
    assert metrics.average_processing_time_ms >= 0.0
