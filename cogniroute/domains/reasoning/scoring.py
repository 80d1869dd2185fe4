"""
Path Scoring - Deterministic evaluation of reasoning paths.

    coherence         = mean(max(0, confidence - 0.1 * contradictions)) over non-root nodes
                        (1.0 for a single-node path)
    completeness      = min(leaf.confidence + min(len / 4, 1) * 0.2, 1)
    evidence_strength = min(total evidence / (len * 2), 1)
    score             = 0.4 * coherence + 0.4 * completeness + 0.2 * evidence_strength
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence

from .models import PathScores, ReasoningPath, ThoughtNode

__all__ = ["evaluate_path", "score_paths", "select_best_path"]

COHERENCE_WEIGHT = 0.4
COMPLETENESS_WEIGHT = 0.4
EVIDENCE_WEIGHT = 0.2
CONTRADICTION_PENALTY = 0.1
DEPTH_BONUS = 0.2


def _coherence(nodes: Sequence[ThoughtNode]) -> float:
    if len(nodes) < 2:
        return 1.0
    per_node = [
        max(0.0, n.confidence - CONTRADICTION_PENALTY * len(n.contradictions))
        for n in nodes[1:]
    ]
    return sum(per_node) / len(per_node)


def _completeness(nodes: Sequence[ThoughtNode]) -> float:
    bonus = min(len(nodes) / 4, 1.0) * DEPTH_BONUS
    return min(nodes[-1].confidence + bonus, 1.0)


def _evidence_strength(nodes: Sequence[ThoughtNode]) -> float:
    total = sum(len(n.evidence) for n in nodes)
    return min(total / (len(nodes) * 2), 1.0)


def evaluate_path(nodes: Sequence[ThoughtNode]) -> PathScores:
    """
    Score a root-to-leaf path.

    Raises:
        ValueError: If the path is empty
    """
    if not nodes:
        raise ValueError("Cannot evaluate an empty path")

    coherence = _coherence(nodes)
    completeness = _completeness(nodes)
    evidence_strength = _evidence_strength(nodes)
    score = (
        COHERENCE_WEIGHT * coherence
        + COMPLETENESS_WEIGHT * completeness
        + EVIDENCE_WEIGHT * evidence_strength
    )
    return PathScores(
        coherence=coherence,
        completeness=completeness,
        evidence_strength=evidence_strength,
        score=min(max(score, 0.0), 1.0),
    )


def score_paths(paths: Iterable[Sequence[ThoughtNode]]) -> list[ReasoningPath]:
    """Evaluate every path."""
    scored = []
    for nodes in paths:
        scores = evaluate_path(nodes)
        scored.append(ReasoningPath(nodes=list(nodes), **scores.model_dump()))
    return scored


def select_best_path(paths: Iterable[ReasoningPath]) -> ReasoningPath | None:
    """
    Highest score wins; ties go to greater completeness, then the shorter path.

    Remaining ties keep the earliest path.
    """
    best: ReasoningPath | None = None
    for path in paths:
        if best is None or _rank(path) > _rank(best):
            best = path
    return best


def _rank(path: ReasoningPath) -> tuple[float, float, int]:
    return (path.score, path.completeness, -len(path.nodes))
