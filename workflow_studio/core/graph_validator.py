"""Structural validation of workflow graphs."""

from typing import Dict, List, Sequence

from ..models.core import Edge, Node, NodeKind, ValidationResult, WorkflowGraph
from .logging import get_logger

logger = get_logger(__name__)

EMPTY_WORKFLOW_ERROR = "workflow must contain at least one node"
MISSING_INPUT_ERROR = "workflow must contain at least one input node"
MISSING_OUTPUT_WARNING = "recommend adding at least one output node"
CYCLE_ERROR = "workflow has a circular dependency"


class GraphValidator:
    """Checks that a workflow graph is well formed and acyclic.

    Validation never raises and never mutates the graph; running it twice on
    the same graph yields the same result.
    """

    def validate(self, graph: WorkflowGraph) -> ValidationResult:
        """
        Validate a workflow graph.

        Every rule is checked so the caller sees all problems at once, except
        for an empty graph which short-circuits with a single error.

        Args:
            graph: The workflow graph to validate

        Returns:
            ValidationResult: Validation results with errors and warnings
        """
        if not graph.nodes:
            return ValidationResult(is_valid=False, errors=[EMPTY_WORKFLOW_ERROR], warnings=[])

        errors: List[str] = []
        warnings: List[str] = []

        self._validate_required_kinds(graph.nodes, errors, warnings)
        self._validate_edge_references(graph, errors)
        self._validate_isolated_nodes(graph, warnings)

        if self.has_cycle(graph.nodes, graph.edges):
            errors.append(CYCLE_ERROR)

        result = ValidationResult(is_valid=len(errors) == 0, errors=errors, warnings=warnings)
        logger.debug(
            f"Validated workflow '{graph.id}': valid={result.is_valid}, "
            f"errors={len(errors)}, warnings={len(warnings)}"
        )
        return result

    def _validate_required_kinds(self, nodes: Sequence[Node], errors: List[str], warnings: List[str]):
        kinds = {node.kind for node in nodes}
        if NodeKind.INPUT.value not in kinds:
            errors.append(MISSING_INPUT_ERROR)
        if NodeKind.OUTPUT.value not in kinds:
            warnings.append(MISSING_OUTPUT_WARNING)

    def _validate_edge_references(self, graph: WorkflowGraph, errors: List[str]):
        node_ids = {node.id for node in graph.nodes}
        for edge in graph.edges:
            if edge.source not in node_ids:
                errors.append(f"edge {edge.id} references missing source node: {edge.source}")
            if edge.target not in node_ids:
                errors.append(f"edge {edge.id} references missing target node: {edge.target}")

    def _validate_isolated_nodes(self, graph: WorkflowGraph, warnings: List[str]):
        if len(graph.nodes) <= 1:
            return

        connected = set()
        for edge in graph.edges:
            connected.add(edge.source)
            connected.add(edge.target)

        isolated = [node for node in graph.nodes if node.id not in connected]
        if isolated:
            labels = ", ".join(node.display_name for node in isolated)
            warnings.append(f"found {len(isolated)} isolated node(s): {labels}")

    @staticmethod
    def has_cycle(nodes: Sequence[Node], edges: Sequence[Edge]) -> bool:
        """Check for a cycle using DFS with a recursion-stack set.

        Starts from every unvisited node so disconnected components are
        covered; a self-loop is a cycle of length one.
        """
        graph: Dict[str, List[str]] = {node.id: [] for node in nodes}
        for edge in edges:
            graph.setdefault(edge.source, []).append(edge.target)

        visited = set()
        on_stack = set()

        for start in graph:
            if start in visited:
                continue

            # Iterative DFS: (node, index of next neighbour to explore)
            visited.add(start)
            on_stack.add(start)
            stack = [(start, 0)]
            while stack:
                current, index = stack[-1]
                neighbours = graph.get(current, [])
                if index < len(neighbours):
                    stack[-1] = (current, index + 1)
                    neighbour = neighbours[index]
                    if neighbour in on_stack:
                        return True
                    if neighbour not in visited:
                        visited.add(neighbour)
                        on_stack.add(neighbour)
                        stack.append((neighbour, 0))
                else:
                    on_stack.discard(current)
                    stack.pop()

        return False
