"""
Cognitive Orchestrator - Entry point for multi-agent query processing.

Flow per request:
1. Guardrail validation
2. Semantic cache lookup (short-circuits on hit)
3. Routing to one or more agents
4. Execution as a chain, in parallel, by decomposition or by tree search
5. Response synthesis and confidence scoring
6. Cache write-through
7. Lifecycle events at every phase
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from cogniroute.config import (
    CogniRouteError,
    ErrorCode,
    OrchestrationTimeoutError,
    ProviderError,
    Settings,
    ValidationError,
)
from cogniroute.domains.cache import CacheLookup, CacheMetadata, CacheStatistics, ResponseCache, SemanticCache
from cogniroute.domains.embedding import create_embedding_provider
from cogniroute.domains.reasoning import (
    GeneratedThought,
    ReasoningEngine,
    ReasoningResult,
    ThoughtGenerator,
    TreeReasoner,
)
from cogniroute.domains.routing import (
    AgentCapability,
    Complexity,
    ModelRouter,
    RoutingDecision,
    TaskContext,
    TaskRequest,
    TaskRequirements,
    TaskResult,
    TaskType,
    references_visual_content,
)
from cogniroute.domains.runtime import IdFactory, uuid_ids

from .contracts import Guardrail, ModelInvoker
from .decomposition import TaskCoordinator, infer_task_type
from .events import EventBus, EventName
from .guardrails import SecurityGuardrails
from .models import (
    AgentMetrics,
    ExecutionMode,
    InvocationResult,
    OrchestrationResult,
    ReasoningContext,
    ReasoningStep,
)

logger = logging.getLogger(__name__)

__all__ = [
    "CognitiveOrchestrator",
    "OrchestratorThoughtGenerator",
    "CACHE_AGENT_ID",
    "synthesize_response",
    "chain_confidence",
    "build_agent_prompt",
]

CACHE_AGENT_ID = "semantic-cache"
TREE_AGENT_PREFIX = "reasoning-tree"
VERIFICATION_BONUS = 0.1

ReasonerFactory = Callable[[ThoughtGenerator], TreeReasoner]


def synthesize_response(steps: list[ReasoningStep]) -> str:
    """Merge step outputs, keeping them in chain order."""
    return "Comprehensive Analysis:\n" + "\n\nIntegrated Analysis:\n".join(s.output for s in steps)


def chain_confidence(steps: list[ReasoningStep]) -> float:
    """Mean step confidence plus 0.1 x the verified fraction, capped at 1.0."""
    if not steps:
        return 0.0
    mean = sum(s.confidence for s in steps) / len(steps)
    verified = sum(1 for s in steps if s.verified) / len(steps)
    return min(mean + VERIFICATION_BONUS * verified, 1.0)


@dataclass
class _AgentCounters:
    queries: int = 0
    failures: int = 0
    total_latency_ms: float = 0.0
    total_cost: float = 0.0


class CognitiveOrchestrator:
    """
    Routes queries across backend agents with caching and tree reasoning.

    Example:
        >>> orchestrator = CognitiveOrchestrator(LLMService())
        >>> result = await orchestrator.process_complex_query(
        ...     "What is 2+2?", {"complexity": "simple"}
        ... )
        >>> print(result.response, result.cost)
    """

    def __init__(
        self,
        invoker: ModelInvoker,
        cache: ResponseCache | None = None,
        router: ModelRouter | None = None,
        events: EventBus | None = None,
        guardrails: Guardrail | None = None,
        coordinator: TaskCoordinator | None = None,
        reasoner_factory: ReasonerFactory | None = None,
        timeout_seconds: float | None = 120.0,
        backend_timeout_seconds: float | None = 30.0,
        id_factory: IdFactory | None = None,
    ) -> None:
        """
        Initialize orchestrator.

        Args:
            invoker: Backend model invocation
            cache: Semantic cache (hash-embedding cache when None)
            router: Agent router (default registry when None)
            events: Lifecycle event bus
            guardrails: Request validation
            coordinator: Task decomposition coordinator
            reasoner_factory: Builds a tree reasoner around a thought generator
            timeout_seconds: Global wall-clock budget per request (None disables it)
            backend_timeout_seconds: Budget per agent call (None disables it)
            id_factory: Task ID source
        """
        self._invoker = invoker
        self._router = router or ModelRouter()
        self._cache = cache if cache is not None else SemanticCache(create_embedding_provider())
        self._events = events or EventBus()
        self._guardrails = guardrails or SecurityGuardrails()
        self._coordinator = coordinator or TaskCoordinator(
            invoker,
            registry=self._router.registry,
            backend_timeout_seconds=backend_timeout_seconds,
        )
        self._reasoner_factory = reasoner_factory or (lambda generator: ReasoningEngine(generator))
        self._timeout = timeout_seconds
        self._backend_timeout = backend_timeout_seconds
        self._new_id = id_factory or uuid_ids("task")

        self._active: dict[str, ReasoningContext] = {}
        self._counters: dict[str, _AgentCounters] = {}

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        invoker: ModelInvoker,
        **kwargs: Any,
    ) -> CognitiveOrchestrator:
        """Build an orchestrator, its cache and its tree reasoner from settings."""
        params: dict[str, Any] = {
            "cache": SemanticCache.from_settings(settings, create_embedding_provider(settings)),
            "reasoner_factory": lambda generator: ReasoningEngine.from_settings(
                settings, generator, timeout_seconds=None
            ),
            "timeout_seconds": settings.orchestration_timeout_seconds,
            "backend_timeout_seconds": settings.backend_timeout_seconds,
        }
        params.update(kwargs)
        return cls(invoker, **params)

    @property
    def events(self) -> EventBus:
        return self._events

    @property
    def cache(self) -> ResponseCache:
        return self._cache

    @property
    def router(self) -> ModelRouter:
        return self._router

    # --- Entry point ---

    async def process_complex_query(
        self,
        query: str,
        context: ReasoningContext | Mapping[str, Any] | None = None,
    ) -> OrchestrationResult:
        """
        Answer a query.

        Args:
            query: The incoming query
            context: ReasoningContext or a dict of its fields

        Returns:
            Orchestration result with reasoning chain, confidence and cost

        Raises:
            ValidationError: Malformed context or guardrail violation
            ProviderError: No agent could complete a step
            OrchestrationTimeoutError: Global budget exceeded
            CogniRouteError: Any other failure, as INTERNAL_ERROR
        """
        ctx = self._build_context(context)
        self._active[ctx.task_id] = ctx
        await self._events.publish(
            EventName.STARTED,
            ctx.task_id,
            query=query,
            data={"mode": ctx.mode.value, "domain": ctx.domain},
        )

        try:
            return await self._run_with_timeout(query, ctx)
        except CogniRouteError as e:
            await self._publish_error(ctx, query, e)
            raise
        except Exception as e:
            logger.exception("Unexpected failure in task %s", ctx.task_id)
            error = CogniRouteError(
                ErrorCode.INTERNAL_ERROR,
                f"Orchestration failed: {e}",
                details={"task_id": ctx.task_id, "type": type(e).__name__},
            )
            await self._publish_error(ctx, query, error)
            raise error from e
        finally:
            self._active.pop(ctx.task_id, None)

    async def perform_advanced_reasoning(
        self,
        query: str,
        context: ReasoningContext | Mapping[str, Any] | None = None,
    ) -> ReasoningResult:
        """
        Run a tree search and return the full reasoning result.

        Guardrails apply; the cache does not. Thoughts are generated through
        this orchestrator, so routing, fallback and metrics still hold.

        Raises:
            ValidationError: If the query or context is rejected
            OrchestrationTimeoutError: If the global timeout elapses
        """
        ctx = self._build_context(context)
        ctx.mode = ExecutionMode.TREE
        self._guardrails.check(query, ctx)

        reasoner = self._reasoner_factory(OrchestratorThoughtGenerator(self, ctx))
        call = reasoner.reason(
            query,
            domain=ctx.domain,
            complexity=ctx.complexity,
            metadata=ctx.metadata,
        )
        if self._timeout is None:
            return await call
        try:
            return await asyncio.wait_for(call, self._timeout)
        except asyncio.TimeoutError:
            raise OrchestrationTimeoutError(
                f"Reasoning exceeded {self._timeout}s",
                details={"task_id": ctx.task_id, "timeout_seconds": self._timeout},
            ) from None

    def _build_context(self, context: ReasoningContext | Mapping[str, Any] | None) -> ReasoningContext:
        try:
            if context is None:
                ctx = ReasoningContext()
            elif isinstance(context, ReasoningContext):
                ctx = context.model_copy(deep=True)
            else:
                ctx = ReasoningContext.model_validate(dict(context))
        except PydanticValidationError as e:
            raise ValidationError("Invalid reasoning context", details={"errors": str(e)}) from e

        if not ctx.task_id:
            ctx.task_id = self._new_id()
        return ctx

    async def _run_with_timeout(self, query: str, ctx: ReasoningContext) -> OrchestrationResult:
        if self._timeout is None:
            return await self._process(query, ctx)
        try:
            return await asyncio.wait_for(self._process(query, ctx), self._timeout)
        except asyncio.TimeoutError as e:
            if isinstance(e, CogniRouteError):
                raise
            logger.error("Task %s exceeded %.1fs", ctx.task_id, self._timeout)
            raise OrchestrationTimeoutError(
                f"Query processing exceeded {self._timeout}s",
                details={"task_id": ctx.task_id, "timeout_seconds": self._timeout},
            ) from None

    async def _process(self, query: str, ctx: ReasoningContext) -> OrchestrationResult:
        started = time.perf_counter()
        self._guardrails.check(query, ctx)

        if ctx.use_cache:
            lookup = await self._lookup(query, ctx)
            if lookup.found:
                return await self._cache_hit(query, ctx, lookup)

        if ctx.mode == ExecutionMode.TREE:
            result = await self._run_tree(query, ctx)
        elif ctx.mode == ExecutionMode.DECOMPOSE:
            result = await self._run_decomposition(query, ctx)
        else:
            result = await self._run_agents(query, ctx)

        result.metadata["processing_time_ms"] = (time.perf_counter() - started) * 1000

        # Partial answers are never cached
        if ctx.use_cache and not result.no_conclusion and result.complete:
            await self._write_through(query, ctx, result)
        elif ctx.use_cache and not result.complete:
            logger.info("Task %s incomplete, not cached", ctx.task_id)

        await self._events.publish(
            EventName.COMPLETED,
            ctx.task_id,
            query=query,
            cost=result.cost,
            data={"confidence": result.confidence, "response": result.response},
        )
        logger.info(
            "Task %s completed: mode=%s, steps=%d, confidence=%.3f, cost=%.3f",
            ctx.task_id,
            ctx.mode.value,
            len(result.reasoning_chain),
            result.confidence,
            result.cost,
        )
        return result

    # --- Cache ---

    async def _lookup(self, query: str, ctx: ReasoningContext) -> CacheLookup:
        try:
            return await self._cache.get(query, threshold=ctx.cache_threshold)
        except Exception as e:
            logger.warning("Cache lookup failed, treating as miss: %s", e)
            return CacheLookup(found=False)

    async def _cache_hit(
        self,
        query: str,
        ctx: ReasoningContext,
        lookup: CacheLookup,
    ) -> OrchestrationResult:
        response = lookup.response or ""
        confidence = lookup.confidence if lookup.confidence is not None else 0.0
        await self._events.publish(
            EventName.CACHE_HIT,
            ctx.task_id,
            query=query,
            cost=0.0,
            data={"similarity": lookup.similarity, "cost_saved": lookup.cost_saved},
        )
        logger.info("Task %s served from cache (similarity=%.3f)", ctx.task_id, lookup.similarity or 0.0)
        return OrchestrationResult(
            task_id=ctx.task_id,
            response=response,
            reasoning_chain=[
                ReasoningStep(
                    agent=CACHE_AGENT_ID,
                    input=query,
                    output=response,
                    confidence=confidence,
                    reasoning="Retrieved from semantic cache",
                    verified=True,
                )
            ],
            confidence=confidence,
            cost=0.0,
            cache_hit=True,
            metadata={
                "cache_hit": True,
                "similarity": lookup.similarity,
                "cost_saved": lookup.cost_saved,
                "entry_id": lookup.entry_id,
            },
        )

    async def _write_through(self, query: str, ctx: ReasoningContext, result: OrchestrationResult) -> None:
        metadata = CacheMetadata(
            agents_used=result.metadata.get("agents_used", []),
            processing_time_ms=result.metadata.get("processing_time_ms", 0.0),
            complexity=result.metadata.get("complexity") or "medium",
            domain=ctx.domain,
            original_cost=result.cost,
        )
        try:
            await self._cache.set(query, result.response, metadata, confidence=result.confidence)
        except Exception as e:
            logger.warning("Cache write failed for task %s: %s", ctx.task_id, e)

    # --- Agent execution ---

    def _route(self, query: str, ctx: ReasoningContext) -> RoutingDecision:
        return self._router.route(
            query,
            complexity=ctx.complexity,
            urgency=ctx.urgency,
            domain=ctx.domain,
            max_cost=ctx.max_cost,
            query_id=ctx.task_id,
        )

    async def _run_agents(self, query: str, ctx: ReasoningContext) -> OrchestrationResult:
        decision = self._route(query, ctx)
        used: set[str] = set()

        if ctx.mode == ExecutionMode.PARALLEL:
            outcomes = await asyncio.gather(
                *(
                    self._execute_with_fallback(agent_id, query, ctx, decision, used)
                    for agent_id in decision.agent_ids
                ),
                return_exceptions=True,
            )
            steps = []
            for outcome in outcomes:
                if isinstance(outcome, BaseException):
                    raise outcome
                steps.append(outcome)
            for step in steps:
                await self._publish_step(ctx, step)
        else:
            steps = []
            current = query
            for agent_id in decision.agent_ids:
                step = await self._execute_with_fallback(agent_id, current, ctx, decision, used)
                steps.append(step)
                current = step.output
                await self._publish_step(ctx, step)

        return OrchestrationResult(
            task_id=ctx.task_id,
            response=synthesize_response(steps),
            reasoning_chain=steps,
            confidence=chain_confidence(steps),
            cost=sum(s.cost for s in steps),
            metadata={
                "agents_used": [s.agent for s in steps],
                "complexity": decision.complexity.value,
                "routing": decision.reasoning,
                "dropped_agents": decision.dropped_ids,
            },
        )

    async def _execute_with_fallback(
        self,
        agent_id: str,
        text: str,
        ctx: ReasoningContext,
        decision: RoutingDecision,
        used: set[str],
    ) -> ReasoningStep:
        """Run one step, retrying on fallback agents not yet used in this request."""
        candidates = [agent_id] + [f for f in decision.fallback_ids if f != agent_id]
        attempted: list[str] = []
        last_error: ProviderError | None = None

        for candidate in candidates:
            if candidate != agent_id and candidate in used:
                continue
            used.add(candidate)
            attempted.append(candidate)
            try:
                step = await self._execute_agent(self._router.registry.get(candidate), text, ctx)
            except ProviderError as e:
                last_error = e
                logger.warning("Agent %s failed on task %s: %s", candidate, ctx.task_id, e.message)
                continue
            if candidate != agent_id:
                step.fallback_for = agent_id
            return step

        failing = last_error.agent_id if last_error and last_error.agent_id else agent_id
        raise ProviderError(
            f"No agent could complete the step for {agent_id}",
            agent_id=failing,
            details={"task_id": ctx.task_id, "attempted": attempted},
            code=last_error.code if last_error else ErrorCode.PROVIDER_FAILED,
        ) from last_error

    async def _execute_agent(
        self,
        agent: AgentCapability,
        text: str,
        ctx: ReasoningContext,
    ) -> ReasoningStep:
        prompt = build_agent_prompt(agent, text, ctx)
        counters = self._counters.setdefault(agent.id, _AgentCounters())
        counters.queries += 1
        started = time.perf_counter()

        try:
            invocation = await self._invoke(agent, prompt, ctx)
        except ProviderError:
            counters.failures += 1
            raise
        except Exception as e:
            counters.failures += 1
            raise ProviderError(f"{type(e).__name__}: {e}", agent_id=agent.id) from e

        latency_ms = (time.perf_counter() - started) * 1000
        cost = invocation.cost if invocation.cost is not None else agent.cost_per_query
        counters.total_latency_ms += latency_ms
        counters.total_cost += cost

        return ReasoningStep(
            agent=agent.id,
            input=text,
            output=invocation.text,
            confidence=invocation.confidence,
            reasoning=invocation.reasoning
            or f"Applied {', '.join(agent.specialization)} to analyze the query",
            verified=invocation.verified,
            cost=cost,
            latency_ms=latency_ms,
        )

    async def _invoke(self, agent: AgentCapability, prompt: str, ctx: ReasoningContext) -> InvocationResult:
        call = self._invoker.invoke(agent, prompt, ctx.model_dump(mode="json"))
        if self._backend_timeout is None:
            return await call
        try:
            return await asyncio.wait_for(call, self._backend_timeout)
        except asyncio.TimeoutError:
            raise ProviderError(
                f"Agent {agent.id} timed out after {self._backend_timeout}s",
                agent_id=agent.id,
                code=ErrorCode.PROVIDER_TIMEOUT,
            ) from None

    # --- Alternative strategies ---

    async def _run_decomposition(self, query: str, ctx: ReasoningContext) -> OrchestrationResult:
        task_type = infer_task_type(query)
        request = TaskRequest(
            id=ctx.task_id,
            type=task_type,
            content=query,
            includes_code=task_type in (TaskType.CODE_GENERATION, TaskType.CODE_ANALYSIS),
            context=TaskContext(
                session_id=str(ctx.metadata.get("session_id", "")),
                domain=ctx.domain,
                available_tools=list(ctx.metadata.get("available_tools", [])),
            ),
            requirements=TaskRequirements(
                max_cost=ctx.max_cost,
                needs_tools=bool(ctx.metadata.get("needs_tools", False)),
                needs_multimodal=references_visual_content(query),
                needs_reasoning=ctx.complexity in (Complexity.COMPLEX, Complexity.CRITICAL),
            ),
        )
        aggregated = await self._coordinator.process_request(request)
        return self._from_task_result(query, ctx, aggregated)

    def _from_task_result(self, query: str, ctx: ReasoningContext, aggregated: TaskResult) -> OrchestrationResult:
        steps = [
            ReasoningStep(
                agent=sub["agent_id"],
                input=query,
                output=sub["result"],
                confidence=sub["confidence"],
                reasoning=f"Decomposed {sub['type']} sub-task",
                fallback_for=sub.get("fallback_for"),
                cost=sub["cost"],
            )
            for sub in aggregated.metadata.get("sub_results", [])
        ]
        return OrchestrationResult(
            task_id=ctx.task_id,
            response=aggregated.result,
            reasoning_chain=steps,
            confidence=aggregated.confidence,
            cost=aggregated.cost_estimate,
            no_conclusion=aggregated.no_conclusion,
            complete=aggregated.metadata.get("complete", True),
            metadata={
                **aggregated.metadata,
                "agents_used": [s.agent for s in steps],
                "complexity": ctx.complexity.value if ctx.complexity else None,
            },
        )

    async def _run_tree(self, query: str, ctx: ReasoningContext) -> OrchestrationResult:
        reasoner = self._reasoner_factory(OrchestratorThoughtGenerator(self, ctx))
        outcome = await reasoner.reason(
            query,
            domain=ctx.domain,
            complexity=ctx.complexity,
            metadata=ctx.metadata,
        )
        return self._from_reasoning_result(ctx, outcome)

    def _from_reasoning_result(self, ctx: ReasoningContext, outcome: ReasoningResult) -> OrchestrationResult:
        steps = [
            ReasoningStep(
                agent=f"{TREE_AGENT_PREFIX}:{node.perspective or node.strategy or 'node'}",
                input=node.reasoning,
                output=node.content,
                confidence=node.confidence,
                timestamp=node.created_at,
                reasoning=node.reasoning,
                cost=node.cost,
            )
            for node in outcome.reasoning_path
        ]
        return OrchestrationResult(
            task_id=ctx.task_id,
            response=outcome.conclusion,
            reasoning_chain=steps,
            confidence=outcome.confidence,
            cost=outcome.cost,
            no_conclusion=outcome.no_conclusion,
            metadata={
                "agents_used": [TREE_AGENT_PREFIX],
                "complexity": ctx.complexity.value if ctx.complexity else Complexity.COMPLEX.value,
                "alternatives": outcome.alternatives,
                "evidence": outcome.evidence,
                "assumptions": outcome.assumptions,
                "potential_biases": outcome.potential_biases,
                "critique_completed": outcome.critique_completed,
                "statistics": outcome.statistics.model_dump(),
                **outcome.metadata,
            },
        )

    # --- Events ---

    async def _publish_step(self, ctx: ReasoningContext, step: ReasoningStep) -> None:
        await self._events.publish(
            EventName.STEP,
            ctx.task_id,
            agent_id=step.agent,
            cost=step.cost,
            data={"confidence": step.confidence, "verified": step.verified, "fallback_for": step.fallback_for},
        )

    async def _publish_error(self, ctx: ReasoningContext, query: str, error: CogniRouteError) -> None:
        await self._events.publish(
            EventName.ERROR,
            ctx.task_id,
            query=query,
            agent_id=error.details.get("agent_id"),
            data=error.to_dict(),
        )

    # --- Monitoring ---

    def active_reasoning_chains(self) -> list[ReasoningContext]:
        """Contexts of requests currently in flight."""
        return list(self._active.values())

    def agent_performance_metrics(self) -> dict[str, AgentMetrics]:
        """Observed counters per agent, with declared values before any call."""
        metrics: dict[str, AgentMetrics] = {}
        for agent in self._router.registry:
            counters = self._counters.get(agent.id, _AgentCounters())
            successes = counters.queries - counters.failures
            metrics[agent.id] = AgentMetrics(
                total_queries=counters.queries,
                failures=counters.failures,
                average_latency_ms=(
                    counters.total_latency_ms / successes if successes else agent.latency_ms
                ),
                reliability=successes / counters.queries if counters.queries else agent.reliability,
                cost_efficiency=1 / agent.cost_per_query if agent.cost_per_query else 0.0,
                total_cost=counters.total_cost,
            )
        return metrics

    def cache_statistics(self) -> CacheStatistics:
        return self._cache.statistics()


class OrchestratorThoughtGenerator:
    """
    Thought generator backed by the orchestrator in chain mode.

    Each thought is one uncached ``process_complex_query`` call that keeps
    the parent request's confidentiality settings.
    """

    def __init__(self, orchestrator: CognitiveOrchestrator, parent: ReasoningContext | None = None) -> None:
        self._orchestrator = orchestrator
        self._parent = parent or ReasoningContext()

    async def generate(
        self,
        prompt: str,
        complexity: Complexity,
        domain: str,
        metadata: dict[str, Any],
    ) -> GeneratedThought:
        context = self._parent.model_copy(
            update={
                "task_id": "",
                "complexity": complexity,
                "domain": domain,
                "mode": ExecutionMode.CHAIN,
                "use_cache": False,
                "metadata": {**self._parent.metadata, **metadata},
            }
        )
        result = await self._orchestrator.process_complex_query(prompt, context)
        return GeneratedThought(
            text=result.response,
            confidence=result.confidence,
            cost=result.cost,
            agent_ids=list(result.metadata.get("agents_used", [])),
        )


def build_agent_prompt(agent: AgentCapability, query: str, ctx: ReasoningContext) -> str:
    """Prompt for one chain step on one agent."""
    complexity = ctx.complexity.value if ctx.complexity else "auto"
    return (
        f"As a {agent.name} specialized in {', '.join(agent.specialization) or 'general analysis'}, "
        f"analyze the following query in the context of {ctx.domain}:\n\n"
        f"Query: {query}\n\n"
        "Context:\n"
        f"- Complexity: {complexity}\n"
        f"- Urgency: {ctx.urgency.value}\n"
        f"- Domain: {ctx.domain}\n\n"
        "Provide a detailed analysis with reasoning steps and confidence level."
    )
