"""
Reasoning Models - Data types for the reasoning tree domain.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from cogniroute.config import CompositionError

NO_CONCLUSION = "No conclusion reached"


class ThoughtNode(BaseModel):
    """One unit of reasoning in the thought forest."""

    id: str
    content: str
    confidence: float = Field(ge=0.0, le=1.0)
    depth: int = Field(ge=0)
    parent_id: str | None = None
    child_ids: list[str] = Field(default_factory=list)
    reasoning: str = ""  # which perspective/strategy produced it
    evidence: list[str] = Field(default_factory=list)
    contradictions: list[str] = Field(default_factory=list)
    created_at: datetime
    perspective: str | None = None
    strategy: str | None = None
    cost: float = 0.0


class GeneratedThought(BaseModel):
    """Text produced for one node by the thought generator."""

    text: str
    confidence: float = Field(ge=0.0, le=1.0)
    cost: float = Field(default=0.0, ge=0.0)
    agent_ids: list[str] = Field(default_factory=list)


class PathScores(BaseModel):
    """Quality metrics of one root-to-leaf path."""

    coherence: float
    completeness: float
    evidence_strength: float
    score: float

    model_config = {"frozen": True}


class ReasoningPath(BaseModel):
    """A scored root-to-leaf walk through the forest."""

    nodes: list[ThoughtNode]
    score: float = 0.0
    coherence: float = 0.0
    completeness: float = 0.0
    evidence_strength: float = 0.0

    @property
    def leaf(self) -> ThoughtNode:
        return self.nodes[-1]

    def __len__(self) -> int:
        return len(self.nodes)


class TreeStatistics(BaseModel):
    """Shape of a thought forest."""

    total_nodes: int = 0
    average_depth: float = 0.0
    branching_factor: float = 0.0
    path_count: int = 0
    max_depth: int = 0


class ReasoningResult(BaseModel):
    """Outcome of one tree search."""

    conclusion: str
    reasoning_path: list[ThoughtNode] = Field(default_factory=list)
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)
    alternatives: list[str] = Field(default_factory=list)
    evidence: list[str] = Field(default_factory=list)
    assumptions: list[str] = Field(default_factory=list)
    potential_biases: list[str] = Field(default_factory=list)
    cost: float = 0.0
    statistics: TreeStatistics = Field(default_factory=TreeStatistics)
    no_conclusion: bool = False
    critique_completed: bool = False
    metadata: dict[str, Any] = Field(default_factory=dict)

    def raise_for_no_conclusion(self) -> None:
        """
        Raise when the search produced nothing to conclude from.

        Raises:
            CompositionError: If ``no_conclusion`` is set
        """
        if self.no_conclusion:
            raise CompositionError(
                "Reasoning produced no valid paths",
                details={"statistics": self.statistics.model_dump()},
            )
