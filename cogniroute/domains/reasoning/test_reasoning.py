"""
Tests for thought forest, path scoring, markers and the reasoning engine.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from typing import Any

import pytest

from cogniroute.config import CompositionError, OrchestrationTimeoutError, ProviderError, Settings
from cogniroute.domains.routing import Complexity
from cogniroute.domains.runtime import ManualClock, SequentialIds

from .contracts import ContradictionDetector, ThoughtGenerator, TreeReasoner
from .engine import ReasoningEngine
from .forest import ThoughtForest
from .markers import (
    KeywordContradictionDetector,
    extract_alternatives,
    extract_assumptions,
    extract_biases,
    extract_evidence,
)
from .models import NO_CONCLUSION, GeneratedThought, ReasoningPath, ReasoningResult
from .scoring import evaluate_path, score_paths, select_best_path


class ScriptedGenerator:
    """Thought generator driven by a callable over (prompt, metadata)."""

    def __init__(self, script: Callable[[str, dict[str, Any]], GeneratedThought]) -> None:
        self.script = script
        self.calls: list[dict[str, Any]] = []

    async def generate(
        self,
        prompt: str,
        complexity: Complexity,
        domain: str,
        metadata: dict[str, Any],
    ) -> GeneratedThought:
        self.calls.append(
            {"prompt": prompt, "complexity": complexity, "domain": domain, "metadata": metadata}
        )
        return self.script(prompt, metadata)


def constant(confidence: float = 0.9, text: str = "Evidence shows it works.", cost: float = 0.01):
    return lambda prompt, metadata: GeneratedThought(text=text, confidence=confidence, cost=cost)


def engine_with(generator: ThoughtGenerator, **kwargs: Any) -> ReasoningEngine:
    return ReasoningEngine(
        generator,
        clock=ManualClock(),
        id_factory=SequentialIds("node"),
        **kwargs,
    )


# --- ThoughtForest Tests ---


def test_forest_depth_and_links() -> None:
    """Test children sit one level below their parent and are linked both ways."""
    forest = ThoughtForest(clock=ManualClock(), id_factory=SequentialIds("n"))
    root = forest.add_root("root", 0.9)
    child = forest.add_child(root.id, "child", 0.8)
    grandchild = forest.add_child(child.id, "grandchild", 0.7)

    assert root.depth == 0 and root.parent_id is None
    assert child.depth == 1 and child.parent_id == root.id
    assert grandchild.depth == 2
    assert root.child_ids == [child.id]
    assert forest.children(root.id) == [child]


def test_forest_paths_multiple_roots() -> None:
    """Test every root-to-leaf path is enumerated in insertion order."""
    forest = ThoughtForest(id_factory=SequentialIds("n"))
    a = forest.add_root("a", 0.9)
    b = forest.add_root("b", 0.9)
    a1 = forest.add_child(a.id, "a1", 0.8)
    a2 = forest.add_child(a.id, "a2", 0.8)

    paths = [[n.content for n in p] for p in forest.paths()]

    assert paths == [["a", "a1"], ["a", "a2"], ["b"]]
    assert forest.level(1) == [a1, a2]
    assert forest.roots() == [a, b]


def test_forest_unknown_parent() -> None:
    """Test adding a child to a missing parent fails."""
    forest = ThoughtForest()
    with pytest.raises(KeyError):
        forest.add_child("missing", "x", 0.5)


def test_forest_statistics() -> None:
    """Test statistics over a small forest."""
    forest = ThoughtForest(id_factory=SequentialIds("n"))
    root = forest.add_root("r", 0.9)
    forest.add_child(root.id, "c1", 0.8)
    forest.add_child(root.id, "c2", 0.8)

    stats = forest.statistics()

    assert stats.total_nodes == 3
    assert stats.average_depth == pytest.approx(2 / 3)
    assert stats.branching_factor == pytest.approx(2 / 3)
    assert stats.path_count == 2
    assert stats.max_depth == 1


def test_empty_forest_statistics() -> None:
    """Test statistics of an empty forest are zero."""
    stats = ThoughtForest().statistics()
    assert stats.total_nodes == 0
    assert stats.path_count == 0


# --- Scoring Tests ---


def _chain(*specs: tuple[float, int, int]) -> list:
    """Build a path from (confidence, evidence count, contradiction count) tuples."""
    forest = ThoughtForest(id_factory=SequentialIds("n"))
    node = None
    for confidence, evidence, contradictions in specs:
        fields = {"evidence": ["e"] * evidence, "contradictions": ["c"] * contradictions}
        if node is None:
            node = forest.add_root("root", confidence, **fields)
        else:
            node = forest.add_child(node.id, "child", confidence, **fields)
    return forest.paths()[0]


def test_single_node_path_scores() -> None:
    """Test a lone root has coherence 1.0."""
    scores = evaluate_path(_chain((0.8, 1, 0)))
    assert scores.coherence == 1.0
    assert scores.completeness == pytest.approx(0.8 + 0.25 * 0.2)
    assert scores.evidence_strength == pytest.approx(0.5)
    assert scores.score == pytest.approx(0.4 * 1.0 + 0.4 * 0.85 + 0.2 * 0.5)


def test_multi_node_path_scores() -> None:
    """Test coherence ignores the root and penalizes contradictions."""
    scores = evaluate_path(_chain((0.9, 0, 0), (0.8, 1, 1), (0.6, 2, 0)))

    assert scores.coherence == pytest.approx(((0.8 - 0.1) + 0.6) / 2)
    assert scores.completeness == pytest.approx(0.6 + 0.75 * 0.2)
    assert scores.evidence_strength == pytest.approx(3 / 6)


def test_coherence_clamped_at_zero() -> None:
    """Test heavy contradictions cannot push a node below zero."""
    scores = evaluate_path(_chain((0.9, 0, 0), (0.2, 0, 5)))
    assert scores.coherence == 0.0


def test_completeness_and_evidence_capped() -> None:
    """Test completeness and evidence strength never exceed 1.0."""
    scores = evaluate_path(_chain((1.0, 9, 0), (1.0, 9, 0), (1.0, 9, 0), (1.0, 9, 0)))
    assert scores.completeness == 1.0
    assert scores.evidence_strength == 1.0
    assert scores.score == pytest.approx(1.0)


def test_evaluate_path_is_deterministic() -> None:
    """Test repeated evaluation of a fixed path gives identical scores."""
    path = _chain((0.9, 1, 0), (0.7, 0, 1), (0.65, 2, 0))
    assert len({evaluate_path(path) for _ in range(10)}) == 1


def test_evaluate_empty_path() -> None:
    """Test an empty path is rejected."""
    with pytest.raises(ValueError):
        evaluate_path([])


def test_select_best_path_tie_breaks() -> None:
    """Test ties go to completeness, then to the shorter path."""
    root = _chain((0.9, 0, 0))
    a = ReasoningPath(nodes=root * 3, score=0.8, completeness=0.7)
    b = ReasoningPath(nodes=root * 3, score=0.8, completeness=0.9)
    c = ReasoningPath(nodes=root * 2, score=0.8, completeness=0.9)
    d = ReasoningPath(nodes=root, score=0.5, completeness=1.0)

    assert select_best_path([a, b, c, d]) is c
    assert select_best_path([a, b]) is b
    assert select_best_path([]) is None


def test_score_paths_wraps_scores() -> None:
    """Test scored paths carry their metrics."""
    [scored] = score_paths([_chain((0.9, 0, 0), (0.8, 0, 0))])
    assert scored.score == evaluate_path(scored.nodes).score
    assert len(scored) == 2


# --- Marker Tests ---


def test_extract_evidence_sentences() -> None:
    """Test evidence sentences are found case-insensitively."""
    text = "Research indicates lower traffic. Prices rose. The data reveals a trend!"
    assert extract_evidence(text) == ["Research indicates lower traffic.", "The data reveals a trend!"]


def test_extract_critique_markers() -> None:
    """Test alternatives, assumptions and biases are labeled."""
    text = (
        "Alternatively, the city could expand transit. "
        "Given that incomes vary, fairness matters. "
        "Beware of confirmation bias in the survey."
    )
    assert extract_alternatives(text) == [
        "Alternative approach identified: Alternatively, the city could expand transit."
    ]
    assert extract_assumptions(text) == ["Assumption: Given that incomes vary, fairness matters."]
    assert extract_biases(text) == ["Potential bias: Beware of confirmation bias in the survey."]


def test_markers_match_whole_words() -> None:
    """Test markers embedded inside other words do not match."""
    assert extract_assumptions("The unassuming mayor spoke.") == []


def test_keyword_contradiction_detector() -> None:
    """Test the negation heuristic uses whole words."""
    detector = KeywordContradictionDetector()
    assert detector.detect("This is not viable", "Pricing is effective") == [
        KeywordContradictionDetector.MESSAGE
    ]
    assert detector.detect("Nothing changes", "Pricing is effective") == []
    assert detector.detect("This is not viable", "Pricing works") == []
    assert isinstance(detector, ContradictionDetector)


# --- Engine Tests ---


async def test_congestion_pricing_scenario() -> None:
    """Test a complex query builds a multi-level forest and a bounded conclusion."""
    generator = ScriptedGenerator(
        lambda prompt, metadata: GeneratedThought(
            text=f"Evidence shows congestion pricing cuts traffic ({metadata.get('perspective') or metadata.get('expansion_strategy')}).",
            confidence=0.9,
            cost=0.02,
        )
    )
    engine = engine_with(generator)

    result = await engine.reason("Should a city adopt congestion pricing?", complexity="complex")

    assert result.statistics.total_nodes >= 3
    assert sum(1 for n in result.reasoning_path if n.depth == 0) == 1
    assert len(result.reasoning_path) >= 2
    assert result.conclusion
    assert 0.0 <= result.confidence <= 1.0
    assert result.no_conclusion is False
    assert result.critique_completed is True


async def test_roots_per_perspective() -> None:
    """Test one root per perspective with medium complexity."""
    generator = ScriptedGenerator(constant(confidence=0.5))
    result = await engine_with(generator).reason("q")

    root_calls = [c for c in generator.calls if "perspective" in c["metadata"]]
    assert len(root_calls) == 5
    assert all(c["complexity"] == Complexity.MEDIUM for c in root_calls)
    assert result.statistics.total_nodes == 5


@pytest.mark.parametrize("max_depth", [1, 2, 3, 4])
async def test_depth_invariant(max_depth: int) -> None:
    """Test every node sits one below its parent and never beyond max_depth - 1."""
    generator = ScriptedGenerator(constant(confidence=1.0))
    engine = engine_with(generator, max_depth=max_depth, depth_decay=0.0)

    result = await engine.reason("q")

    assert result.statistics.max_depth == max_depth - 1
    path = result.reasoning_path
    assert path[0].depth == 0 and path[0].parent_id is None
    for parent, child in zip(path, path[1:]):
        assert child.depth == parent.depth + 1
        assert child.parent_id == parent.id


async def test_full_tree_shape() -> None:
    """Test node count with no pruning: 5 roots doubling per level."""
    generator = ScriptedGenerator(constant(confidence=1.0))
    result = await engine_with(generator, max_depth=3, depth_decay=0.0).reason("q")

    assert result.statistics.total_nodes == 5 + 10 + 20
    assert result.statistics.path_count == 20


async def test_pruning_respected() -> None:
    """Test nodes at or below the threshold are never expanded."""
    def script(prompt: str, metadata: dict[str, Any]) -> GeneratedThought:
        confident = (
            metadata.get("perspective") == "analytical_perspective"
            or "expansion_strategy" in metadata
        )
        return GeneratedThought(text="ok", confidence=0.9 if confident else 0.6)

    generator = ScriptedGenerator(script)
    result = await engine_with(generator).reason("q")

    assert result.statistics.total_nodes == 5 + 2 + 4
    parent_ids = {c["metadata"].get("parent_id") for c in generator.calls} - {None}
    assert len(parent_ids) == 1 + 2


async def test_child_confidence_decays_with_depth() -> None:
    """Test child confidence is response * (1 - depth * 0.1)."""
    generator = ScriptedGenerator(constant(confidence=0.9))
    result = await engine_with(generator, max_depth=3).reason("q")

    by_depth = {n.depth: n.confidence for n in result.reasoning_path}
    assert by_depth[0] == pytest.approx(0.9)
    assert by_depth[1] == pytest.approx(0.81)
    assert by_depth[2] == pytest.approx(0.72)


async def test_children_use_distinct_strategies() -> None:
    """Test each expanded node gets one child per strategy."""
    generator = ScriptedGenerator(constant(confidence=0.9))
    await engine_with(generator, max_depth=2, perspectives=["analytical_perspective"]).reason("q")

    strategies = [c["metadata"]["expansion_strategy"] for c in generator.calls if "expansion_strategy" in c["metadata"]]
    assert strategies == ["deeper_analysis", "alternative_approach"]


async def test_deep_children_use_complex_routing() -> None:
    """Test expansions beyond depth 2 request complex routing."""
    generator = ScriptedGenerator(constant(confidence=1.0))
    await engine_with(
        generator, max_depth=4, depth_decay=0.0, perspectives=["analytical_perspective"]
    ).reason("q")

    expansion_complexities = [
        c["complexity"] for c in generator.calls if "expansion_strategy" in c["metadata"]
    ]
    assert expansion_complexities[:6] == [Complexity.MEDIUM] * 6
    assert set(expansion_complexities[6:]) == {Complexity.COMPLEX}


async def test_contradictions_recorded() -> None:
    """Test child/parent conflicts are flagged on the child."""

    def script(prompt: str, metadata: dict[str, Any]) -> GeneratedThought:
        if "perspective" in metadata:
            return GeneratedThought(text="Pricing is effective.", confidence=0.9)
        return GeneratedThought(text="That is not certain.", confidence=0.9)

    generator = ScriptedGenerator(script)
    result = await engine_with(generator, max_depth=2).reason("q")

    child = result.reasoning_path[1]
    assert child.contradictions == [KeywordContradictionDetector.MESSAGE]


async def test_costs_are_summed() -> None:
    """Test every call's cost, including the critique, is accumulated."""
    generator = ScriptedGenerator(constant(confidence=0.5, cost=0.01))
    result = await engine_with(generator).reason("q")

    assert len(generator.calls) == 5 + 1
    assert result.cost == pytest.approx(0.06)


async def test_critique_extracts_markers() -> None:
    """Test the critique response feeds alternatives, assumptions and biases."""

    def script(prompt: str, metadata: dict[str, Any]) -> GeneratedThought:
        if metadata.get("analysis_type") == "critical_validation":
            return GeneratedThought(
                text="Assuming stable demand, tolls work. Alternatively, add buses. Watch for anchoring bias.",
                confidence=0.9,
            )
        return GeneratedThought(text="Studies demonstrate fewer cars.", confidence=0.5)

    generator = ScriptedGenerator(script)
    result = await engine_with(generator).reason("q", domain="urban")

    critique_call = generator.calls[-1]
    assert critique_call["domain"] == "critical_thinking"
    assert critique_call["complexity"] == Complexity.COMPLEX
    assert result.assumptions == ["Assumption: Assuming stable demand, tolls work."]
    assert result.alternatives == ["Alternative approach identified: Alternatively, add buses."]
    assert result.potential_biases == ["Potential bias: Watch for anchoring bias."]
    assert result.evidence == ["Studies demonstrate fewer cars."]


async def test_critique_failure_is_reported() -> None:
    """Test a failed critique leaves the lists empty and says so."""

    def script(prompt: str, metadata: dict[str, Any]) -> GeneratedThought:
        if metadata.get("analysis_type") == "critical_validation":
            raise ProviderError("critique backend down", agent_id="gpt-5-orchestrator")
        return GeneratedThought(text="Fine.", confidence=0.5)

    result = await engine_with(ScriptedGenerator(script)).reason("q")

    assert result.critique_completed is False
    assert result.alternatives == []
    assert result.assumptions == []
    assert result.conclusion == "Fine."


async def test_failed_perspectives_are_skipped() -> None:
    """Test a failing perspective does not abort the search."""

    def script(prompt: str, metadata: dict[str, Any]) -> GeneratedThought:
        if metadata.get("perspective") == "ethical_perspective":
            raise ProviderError("down")
        return GeneratedThought(text="ok", confidence=0.5)

    result = await engine_with(ScriptedGenerator(script)).reason("q")
    assert result.statistics.total_nodes == 4


async def test_all_perspectives_fail_gives_no_conclusion() -> None:
    """Test an empty forest yields a zero-confidence no-conclusion result."""

    def script(prompt: str, metadata: dict[str, Any]) -> GeneratedThought:
        raise ProviderError("down")

    generator = ScriptedGenerator(script)
    result = await engine_with(generator).reason("q")

    assert result.no_conclusion is True
    assert result.confidence == 0.0
    assert result.conclusion == NO_CONCLUSION
    assert result.reasoning_path == []
    assert len(generator.calls) == 5
    with pytest.raises(CompositionError):
        result.raise_for_no_conclusion()


async def test_reasoning_timeout() -> None:
    """Test the wall-clock budget raises a typed timeout."""

    class SlowGenerator:
        async def generate(self, prompt, complexity, domain, metadata) -> GeneratedThought:
            await asyncio.sleep(10)
            return GeneratedThought(text="late", confidence=0.9)

    engine = engine_with(SlowGenerator(), timeout_seconds=0.05)
    with pytest.raises(OrchestrationTimeoutError):
        await engine.reason("q")


def test_engine_validation() -> None:
    """Test invalid engine configuration is rejected."""
    generator = ScriptedGenerator(constant())
    with pytest.raises(ValueError):
        ReasoningEngine(generator, max_depth=0)
    with pytest.raises(ValueError):
        ReasoningEngine(generator, children_per_node=4)
    with pytest.raises(ValueError):
        ReasoningEngine(generator, perspectives=[])


def test_engine_from_settings() -> None:
    """Test building the engine from settings."""
    settings = Settings(reasoning_max_depth=2, reasoning_perspectives=["practical_perspective"])
    engine = ReasoningEngine.from_settings(settings, ScriptedGenerator(constant()))
    assert engine._max_depth == 2
    assert engine._perspectives == ["practical_perspective"]
    assert isinstance(engine, TreeReasoner)


def test_no_conclusion_result_does_not_raise_when_concluded() -> None:
    """Test raise_for_no_conclusion is silent for a real conclusion."""
    ReasoningResult(conclusion="yes", confidence=0.7).raise_for_no_conclusion()
