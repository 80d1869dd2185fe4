"""
Reasoning Engine - Tree-of-thoughts search over multiple perspectives.

Phases:
1. One root thought per perspective
2. Level-by-level expansion of confident nodes with distinct strategies
3. Root-to-leaf path extraction and scoring
4. Best-path selection
5. A critique call over the winning path
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Sequence
from typing import Any

from cogniroute.config import DEFAULT_PERSPECTIVES, OrchestrationTimeoutError, Settings
from cogniroute.domains.routing import Complexity
from cogniroute.domains.runtime import Clock, IdFactory

from .contracts import ContradictionDetector, ThoughtGenerator
from .forest import ThoughtForest
from .markers import (
    KeywordContradictionDetector,
    extract_alternatives,
    extract_assumptions,
    extract_biases,
    extract_evidence,
)
from .models import (
    NO_CONCLUSION,
    GeneratedThought,
    ReasoningPath,
    ReasoningResult,
    ThoughtNode,
)
from .scoring import score_paths, select_best_path

logger = logging.getLogger(__name__)

__all__ = ["ReasoningEngine", "PERSPECTIVE_INSTRUCTIONS", "EXPANSION_STRATEGIES"]

PERSPECTIVE_INSTRUCTIONS = {
    "analytical_perspective": "Analyze this systematically with data and logic",
    "creative_perspective": "Approach this with creative and innovative thinking",
    "skeptical_perspective": "Question assumptions and look for potential flaws",
    "practical_perspective": "Focus on practical implementation and real-world constraints",
    "ethical_perspective": "Consider ethical implications and moral dimensions",
}

EXPANSION_STRATEGIES = {
    "deeper_analysis": "Dive deeper into the analysis with more detail and nuance",
    "alternative_approach": "Consider an alternative approach or perspective",
    "evidence_examination": "Examine and strengthen the evidence base",
}

CRITIQUE_DOMAIN = "critical_thinking"


class ReasoningEngine:
    """
    Tree-of-thoughts reasoner.

    Every node's text comes from a ThoughtGenerator (normally the
    orchestrator). Node depth never exceeds ``max_depth - 1`` and only
    nodes with confidence strictly above ``pruning_threshold`` are
    expanded. Generation failures are logged and skipped.

    Example:
        >>> engine = ReasoningEngine(generator)
        >>> result = await engine.reason("Should a city adopt congestion pricing?")
        >>> print(result.conclusion, result.confidence)
    """

    def __init__(
        self,
        generator: ThoughtGenerator,
        max_depth: int = 3,
        pruning_threshold: float = 0.6,
        children_per_node: int = 2,
        depth_decay: float = 0.1,
        perspectives: Sequence[str] = DEFAULT_PERSPECTIVES,
        detector: ContradictionDetector | None = None,
        timeout_seconds: float | None = None,
        clock: Clock | None = None,
        id_factory: IdFactory | None = None,
    ) -> None:
        """
        Initialize engine.

        Args:
            generator: Source of thought text
            max_depth: Number of tree levels (roots are level 0)
            pruning_threshold: Nodes at or below this confidence are leaves
            children_per_node: Expansion strategies applied per node
            depth_decay: Child confidence = response * (1 - depth * decay)
            perspectives: Root perspectives
            detector: Child/parent contradiction check
            timeout_seconds: Wall-clock budget for one ``reason`` call
            clock: Time source for node timestamps
            id_factory: Node ID source
        """
        if max_depth < 1:
            raise ValueError("max_depth must be at least 1")
        if not 1 <= children_per_node <= len(EXPANSION_STRATEGIES):
            raise ValueError(f"children_per_node must be between 1 and {len(EXPANSION_STRATEGIES)}")
        if not perspectives:
            raise ValueError("at least one perspective is required")

        self._generator = generator
        self._max_depth = max_depth
        self._threshold = pruning_threshold
        self._strategies = list(EXPANSION_STRATEGIES)[:children_per_node]
        self._decay = depth_decay
        self._perspectives = list(perspectives)
        self._detector = detector or KeywordContradictionDetector()
        self._timeout = timeout_seconds
        self._clock = clock
        self._id_factory = id_factory

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        generator: ThoughtGenerator,
        **kwargs: Any,
    ) -> ReasoningEngine:
        """Build an engine from application settings."""
        params: dict[str, Any] = {
            "max_depth": settings.reasoning_max_depth,
            "pruning_threshold": settings.reasoning_pruning_threshold,
            "children_per_node": settings.reasoning_children_per_node,
            "depth_decay": settings.reasoning_depth_decay,
            "perspectives": settings.reasoning_perspectives,
            "timeout_seconds": settings.orchestration_timeout_seconds,
        }
        params.update(kwargs)
        return cls(generator, **params)

    async def reason(
        self,
        query: str,
        domain: str = "general",
        complexity: Complexity | str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> ReasoningResult:
        """
        Run one tree search.

        Args:
            query: Question to reason about
            domain: Request domain passed to every generation call
            complexity: Declared complexity (recorded in prompts)
            metadata: Extra context recorded in prompts

        Returns:
            ReasoningResult; zero-confidence with ``no_conclusion`` when no
            path could be built

        Raises:
            OrchestrationTimeoutError: If the wall-clock budget is exceeded
        """
        context = {
            "domain": domain,
            "complexity": Complexity(complexity).value if complexity else None,
            **(metadata or {}),
        }
        logger.info("Starting tree reasoning (domain=%s): %s", domain, query[:80])

        if self._timeout is None:
            return await self._search(query, domain, context)
        try:
            return await asyncio.wait_for(self._search(query, domain, context), self._timeout)
        except asyncio.TimeoutError:
            logger.error("Tree reasoning exceeded %.1fs", self._timeout)
            raise OrchestrationTimeoutError(
                f"Reasoning exceeded {self._timeout}s",
                details={"timeout_seconds": self._timeout},
            ) from None

    # --- Search phases ---

    async def _search(self, query: str, domain: str, context: dict[str, Any]) -> ReasoningResult:
        forest = ThoughtForest(clock=self._clock, id_factory=self._id_factory)
        cost = await self._generate_roots(forest, query, domain, context)
        cost += await self._expand(forest, domain)

        paths = score_paths(forest.paths())
        best = select_best_path(paths)
        statistics = forest.statistics()

        if best is None:
            logger.warning("Tree reasoning produced no paths for: %s", query[:80])
            return ReasoningResult(
                conclusion=NO_CONCLUSION,
                confidence=0.0,
                cost=cost,
                statistics=statistics,
                no_conclusion=True,
            )

        evidence = [item for node in best.nodes for item in node.evidence]
        critique, critique_cost = await self._critique(best, query)
        cost += critique_cost

        result = ReasoningResult(
            conclusion=best.leaf.content,
            reasoning_path=best.nodes,
            confidence=best.score,
            alternatives=extract_alternatives(critique) if critique is not None else [],
            evidence=evidence,
            assumptions=extract_assumptions(critique) if critique is not None else [],
            potential_biases=extract_biases(critique) if critique is not None else [],
            cost=cost,
            statistics=statistics,
            critique_completed=critique is not None,
            metadata={
                "path_scores": {
                    "coherence": best.coherence,
                    "completeness": best.completeness,
                    "evidence_strength": best.evidence_strength,
                },
            },
        )
        logger.info(
            "Tree reasoning done: %d nodes, %d paths, confidence=%.3f, cost=%.3f",
            statistics.total_nodes,
            statistics.path_count,
            result.confidence,
            cost,
        )
        return result

    async def _generate_roots(
        self,
        forest: ThoughtForest,
        query: str,
        domain: str,
        context: dict[str, Any],
    ) -> float:
        calls = [
            self._generator.generate(
                self._perspective_prompt(query, perspective, context),
                Complexity.MEDIUM,
                domain,
                {"perspective": perspective, "reasoning_phase": "initial_thoughts"},
            )
            for perspective in self._perspectives
        ]
        outcomes = await asyncio.gather(*calls, return_exceptions=True)

        cost = 0.0
        for perspective, outcome in zip(self._perspectives, outcomes):
            if isinstance(outcome, BaseException):
                _reraise_cancellation(outcome)
                logger.warning("Perspective %s failed: %s", perspective, outcome)
                continue
            cost += outcome.cost
            forest.add_root(
                outcome.text,
                outcome.confidence,
                reasoning=f"Generated from {perspective}",
                evidence=extract_evidence(outcome.text),
                perspective=perspective,
                cost=outcome.cost,
            )
        return cost

    async def _expand(self, forest: ThoughtForest, domain: str) -> float:
        cost = 0.0
        current = forest.roots()

        for depth in range(1, self._max_depth):
            parents = [n for n in current if n.confidence > self._threshold]
            jobs = [(parent, strategy) for parent in parents for strategy in self._strategies]
            if not jobs:
                break

            outcomes = await asyncio.gather(
                *(self._generate_child(parent, strategy, depth, domain) for parent, strategy in jobs),
                return_exceptions=True,
            )

            next_level: list[ThoughtNode] = []
            for (parent, strategy), outcome in zip(jobs, outcomes):
                if isinstance(outcome, BaseException):
                    _reraise_cancellation(outcome)
                    logger.warning(
                        "Expansion %s of %s failed: %s", strategy, parent.id, outcome
                    )
                    continue
                cost += outcome.cost
                child = forest.add_child(
                    parent.id,
                    outcome.text,
                    max(0.0, outcome.confidence * (1 - depth * self._decay)),
                    reasoning=f"Expanded from parent using {strategy}",
                    evidence=extract_evidence(outcome.text),
                    contradictions=self._detector.detect(outcome.text, parent.content),
                    strategy=strategy,
                    cost=outcome.cost,
                )
                next_level.append(child)

            logger.debug("Depth %d: expanded %d nodes into %d", depth, len(parents), len(next_level))
            if not next_level:
                break
            current = next_level

        return cost

    async def _generate_child(
        self,
        parent: ThoughtNode,
        strategy: str,
        depth: int,
        domain: str,
    ) -> GeneratedThought:
        return await self._generator.generate(
            self._expansion_prompt(parent, strategy),
            Complexity.COMPLEX if depth > 2 else Complexity.MEDIUM,
            domain,
            {"expansion_strategy": strategy, "parent_id": parent.id},
        )

    async def _critique(self, path: ReasoningPath, query: str) -> tuple[str | None, float]:
        """Returns the critique text (None on failure) and its cost."""
        try:
            thought = await self._generator.generate(
                self._critique_prompt(path, query),
                Complexity.COMPLEX,
                CRITIQUE_DOMAIN,
                {"analysis_type": "critical_validation"},
            )
        except Exception as e:
            logger.warning("Critique of best path failed: %s", e)
            return None, 0.0
        return thought.text, thought.cost

    # --- Prompts ---

    @staticmethod
    def _perspective_prompt(query: str, perspective: str, context: dict[str, Any]) -> str:
        label = perspective.replace("_", " ")
        instruction = PERSPECTIVE_INSTRUCTIONS.get(
            perspective, f"Reason about this from the {label}"
        )
        return (
            f"From a {label}, {instruction}:\n\n"
            f"Query: {query}\n\n"
            f"Context: {json.dumps(context, default=str, sort_keys=True)}\n\n"
            "Provide your analysis and reasoning."
        )

    @staticmethod
    def _expansion_prompt(parent: ThoughtNode, strategy: str) -> str:
        return (
            f'Building on this thought: "{parent.content}"\n\n'
            f"Using {strategy.replace('_', ' ')} strategy: {EXPANSION_STRATEGIES[strategy]}\n\n"
            "Expand and refine the reasoning."
        )

    @staticmethod
    def _critique_prompt(path: ReasoningPath, query: str) -> str:
        chain = " -> ".join(node.content for node in path.nodes)
        return (
            "Perform a critical analysis of this reasoning:\n\n"
            f"Original Query: {query}\n\n"
            f"Reasoning Path: {chain}\n\n"
            "Identify:\n"
            "1. Key assumptions being made\n"
            "2. Alternative perspectives or solutions\n"
            "3. Potential cognitive biases\n"
            "4. Strength of evidence presented\n\n"
            "Provide structured analysis."
        )


def _reraise_cancellation(outcome: BaseException) -> None:
    """Propagate CancelledError, KeyboardInterrupt and the like captured by gather."""
    if not isinstance(outcome, Exception):
        raise outcome
