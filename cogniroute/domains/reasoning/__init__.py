"""
Reasoning Domain - Tree-structured multi-perspective reasoning.

This domain handles:
- Thought forest storage (arena keyed by node id)
- Multi-perspective generation and pruned expansion
- Path scoring and best-path selection
- Critique marker extraction (alternatives, assumptions, biases)
"""

from .contracts import ContradictionDetector, ThoughtGenerator, TreeReasoner
from .engine import EXPANSION_STRATEGIES, PERSPECTIVE_INSTRUCTIONS, ReasoningEngine
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
    PathScores,
    ReasoningPath,
    ReasoningResult,
    ThoughtNode,
    TreeStatistics,
)
from .scoring import evaluate_path, score_paths, select_best_path

__all__ = [
    # Contracts
    "ContradictionDetector",
    "ThoughtGenerator",
    "TreeReasoner",
    # Models
    "NO_CONCLUSION",
    "GeneratedThought",
    "PathScores",
    "ReasoningPath",
    "ReasoningResult",
    "ThoughtNode",
    "TreeStatistics",
    # Implementations
    "ReasoningEngine",
    "ThoughtForest",
    "KeywordContradictionDetector",
    "PERSPECTIVE_INSTRUCTIONS",
    "EXPANSION_STRATEGIES",
    # Functions
    "evaluate_path",
    "score_paths",
    "select_best_path",
    "extract_alternatives",
    "extract_assumptions",
    "extract_biases",
    "extract_evidence",
]
