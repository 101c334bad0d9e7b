"""Deterministic execution ordering for workflow graphs."""

from collections import deque
from typing import Dict, List, Sequence

from ..models.core import Edge, Node
from .logging import get_logger

logger = get_logger(__name__)


class Scheduler:
    """Computes a linear execution order with Kahn's algorithm."""

    def order(self, nodes: Sequence[Node], edges: Sequence[Edge]) -> List[str]:
        """
        Return node IDs in a topological order.

        Ties are broken FIFO: the queue is seeded in node-declaration order and
        successors are released in edge-declaration order, so a fixed graph
        always yields the same order. The graph must already be validated;
        nodes on a cycle are left out instead of raising.

        Args:
            nodes: Nodes in declaration order
            edges: Edges in declaration order

        Returns:
            List of node IDs in execution order
        """
        successors: Dict[str, List[str]] = {node.id: [] for node in nodes}
        in_degree: Dict[str, int] = {node.id: 0 for node in nodes}

        for edge in edges:
            # Dangling references are reported by the validator
            if edge.source not in successors or edge.target not in in_degree:
                continue
            successors[edge.source].append(edge.target)
            in_degree[edge.target] += 1

        queue = deque(node_id for node_id, degree in in_degree.items() if degree == 0)
        ordered: List[str] = []

        while queue:
            current = queue.popleft()
            ordered.append(current)
            for successor in successors[current]:
                in_degree[successor] -= 1
                if in_degree[successor] == 0:
                    queue.append(successor)

        if len(ordered) < len(in_degree):
            logger.warning(f"Scheduler omitted {len(in_degree) - len(ordered)} node(s) that are part of a cycle")

        return ordered
