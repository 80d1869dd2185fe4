"""
Thought Forest - Arena of thought nodes keyed by id.

Nodes reference each other only through ``parent_id`` and ``child_ids``;
the forest owns every node and enforces the depth invariant.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from typing import Any

from cogniroute.domains.runtime import Clock, IdFactory, SystemClock, uuid_ids

from .models import ThoughtNode, TreeStatistics

logger = logging.getLogger(__name__)

__all__ = ["ThoughtForest"]


class ThoughtForest:
    """
    Forest of reasoning trees.

    Example:
        >>> forest = ThoughtForest()
        >>> root = forest.add_root("Pricing reduces congestion", 0.9)
        >>> child = forest.add_child(root.id, "Evidence shows a 20% drop", 0.8)
        >>> [len(p) for p in forest.paths()]
        [2]
    """

    def __init__(
        self,
        clock: Clock | None = None,
        id_factory: IdFactory | None = None,
    ) -> None:
        self._clock = clock or SystemClock()
        self._new_id = id_factory or uuid_ids("node")
        self._nodes: dict[str, ThoughtNode] = {}
        self._root_ids: list[str] = []

    def __len__(self) -> int:
        return len(self._nodes)

    def __contains__(self, node_id: object) -> bool:
        return node_id in self._nodes

    def get(self, node_id: str) -> ThoughtNode:
        """
        Look up a node.

        Raises:
            KeyError: If the node is not in this forest
        """
        return self._nodes[node_id]

    def nodes(self) -> list[ThoughtNode]:
        """All nodes in insertion order."""
        return list(self._nodes.values())

    def roots(self) -> list[ThoughtNode]:
        return [self._nodes[node_id] for node_id in self._root_ids]

    def children(self, node_id: str) -> list[ThoughtNode]:
        return [self._nodes[child_id] for child_id in self._nodes[node_id].child_ids]

    def level(self, depth: int) -> list[ThoughtNode]:
        """All nodes at ``depth``."""
        return [n for n in self._nodes.values() if n.depth == depth]

    def add_root(self, content: str, confidence: float, **fields: Any) -> ThoughtNode:
        """Add a depth-0 node."""
        node = ThoughtNode(
            id=self._new_id(),
            content=content,
            confidence=confidence,
            depth=0,
            parent_id=None,
            created_at=self._clock.now(),
            **fields,
        )
        self._nodes[node.id] = node
        self._root_ids.append(node.id)
        return node

    def add_child(
        self,
        parent_id: str,
        content: str,
        confidence: float,
        **fields: Any,
    ) -> ThoughtNode:
        """
        Add a node under ``parent_id`` at ``parent.depth + 1``.

        Raises:
            KeyError: If the parent is not in this forest
        """
        parent = self._nodes[parent_id]
        node = ThoughtNode(
            id=self._new_id(),
            content=content,
            confidence=confidence,
            depth=parent.depth + 1,
            parent_id=parent.id,
            created_at=self._clock.now(),
            **fields,
        )
        self._nodes[node.id] = node
        parent.child_ids.append(node.id)
        return node

    def iter_paths(self) -> Iterator[list[ThoughtNode]]:
        """Yield every root-to-leaf path, depth first, in insertion order."""
        for root in self.roots():
            stack: list[list[ThoughtNode]] = [[root]]
            while stack:
                path = stack.pop()
                node = path[-1]
                if not node.child_ids:
                    yield path
                    continue
                for child_id in reversed(node.child_ids):
                    stack.append([*path, self._nodes[child_id]])

    def paths(self) -> list[list[ThoughtNode]]:
        return list(self.iter_paths())

    def statistics(self) -> TreeStatistics:
        """Node count, average depth, branching factor and path count."""
        nodes = list(self._nodes.values())
        if not nodes:
            return TreeStatistics()

        return TreeStatistics(
            total_nodes=len(nodes),
            average_depth=sum(n.depth for n in nodes) / len(nodes),
            branching_factor=sum(len(n.child_ids) for n in nodes) / len(nodes),
            path_count=sum(1 for _ in self.iter_paths()),
            max_depth=max(n.depth for n in nodes),
        )
