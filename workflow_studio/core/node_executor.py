"""Per-node execution dispatch."""

import time
from typing import Callable, Dict, Optional, Sequence

from ..models.core import (
    AgentPayload,
    Edge,
    InputPayload,
    Node,
    NodeExecutionResult,
    NodeKind,
    NodePayload,
    OutputPayload,
    RunContext,
)
from ..services.generation import (
    DEFAULT_MAX_TOKENS,
    DEFAULT_MODEL,
    DEFAULT_TEMPERATURE,
    NOT_CONFIGURED_MESSAGE,
    ContentGenerationService,
    GenerationRequest,
    GenerationResponse,
)
from ..storage.result_store import ResultSink
from .exceptions import NodeExecutionError
from .logging import get_logger

logger = get_logger(__name__)

INPUT_PLACEHOLDER = "{input}"
INPUT_SEPARATOR = "\n\n"


class NodeExecutor:
    """Runs a single node and turns the outcome into a NodeExecutionResult."""

    def __init__(
        self,
        generation_service: ContentGenerationService,
        result_sink: Optional[ResultSink] = None,
        default_model: str = DEFAULT_MODEL,
        default_temperature: float = DEFAULT_TEMPERATURE,
        default_max_tokens: int = DEFAULT_MAX_TOKENS
    ):
        """Initialize the node executor.

        Args:
            generation_service: Backend used by agent nodes
            result_sink: Optional best-effort sink for agent results
            default_model: Model used when an agent node names none
            default_temperature: Temperature used when an agent node sets none
            default_max_tokens: Token limit used when an agent node sets none
        """
        self.generation_service = generation_service
        self.result_sink = result_sink
        self.default_model = default_model
        self.default_temperature = default_temperature
        self.default_max_tokens = default_max_tokens

        self._handlers: Dict[str, Callable[[Node, Sequence[Edge], RunContext], NodePayload]] = {
            NodeKind.INPUT.value: self._execute_input_node,
            NodeKind.AGENT.value: self._execute_agent_node,
            NodeKind.OUTPUT.value: self._execute_output_node,
        }

    def execute(self, node: Node, edges: Sequence[Edge], context: RunContext) -> NodeExecutionResult:
        """
        Execute one node against the current run context.

        Failures are captured in the returned result; this method does not raise.

        Args:
            node: Node to execute
            edges: All edges of the workflow, used to find predecessors
            context: Run context holding the results of earlier nodes

        Returns:
            NodeExecutionResult with the node payload or an error message
        """
        started = time.monotonic()

        try:
            handler = self._handlers.get(node.kind)
            if handler is None:
                raise NodeExecutionError(f"unsupported node type: {node.kind}", node_id=node.id, node_kind=node.kind)
            payload = handler(node, edges, context)

        except NodeExecutionError as e:
            logger.error(f"Node {node.id} execution failed: {e.message}")
            return NodeExecutionResult(success=False, error=e.message, duration=time.monotonic() - started)
        except Exception as e:
            logger.error(f"Unexpected error executing node {node.id}: {str(e)}", exc_info=True)
            return NodeExecutionResult(
                success=False,
                error=str(e) or "node execution failed",
                duration=time.monotonic() - started
            )

        logger.debug(f"Node {node.id} ({node.kind}) executed successfully")
        return NodeExecutionResult(success=True, data=payload, duration=time.monotonic() - started)

    def resolve_input(self, node_id: str, edges: Sequence[Edge], context: RunContext) -> str:
        """Join the content of every predecessor result, in edge order."""
        contents = []
        for edge in edges:
            if edge.target != node_id:
                continue
            payload = context.variables.get(edge.source)
            if payload is not None and payload.content is not None:
                contents.append(payload.content)
        return INPUT_SEPARATOR.join(contents)

    def _execute_input_node(self, node: Node, edges: Sequence[Edge], context: RunContext) -> InputPayload:
        return InputPayload(node_id=node.id, content=node.content or "")

    def _execute_agent_node(self, node: Node, edges: Sequence[Edge], context: RunContext) -> AgentPayload:
        config = node.config
        prompt = config.prompt_template if config.prompt_template is not None else (node.content or "")

        input_content = self.resolve_input(node.id, edges, context)
        if input_content:
            prompt = prompt.replace(INPUT_PLACEHOLDER, input_content)

        if not prompt.strip():
            raise NodeExecutionError("agent node missing prompt content", node_id=node.id, node_kind=node.kind)

        model = config.model if config.model is not None else self.default_model
        request = GenerationRequest(
            prompt=prompt,
            model=model,
            temperature=config.temperature if config.temperature is not None else self.default_temperature,
            max_tokens=config.max_tokens if config.max_tokens is not None else self.default_max_tokens,
        )

        if self.generation_service.is_configured():
            response = self.generation_service.generate(request)
        else:
            response = GenerationResponse.failure(NOT_CONFIGURED_MESSAGE)

        if not response.success:
            raise NodeExecutionError(response.error or "AI generation failed", node_id=node.id, node_kind=node.kind)

        payload = AgentPayload(
            node_id=node.id,
            content=response.data.content if response.data else "",
            model=model,
            prompt=prompt,
        )
        self._save_result(node.id, payload)
        return payload

    def _execute_output_node(self, node: Node, edges: Sequence[Edge], context: RunContext) -> OutputPayload:
        input_content = self.resolve_input(node.id, edges, context)
        return OutputPayload(node_id=node.id, content=input_content or node.content or "")

    def _save_result(self, node_id: str, payload: AgentPayload) -> None:
        if self.result_sink is None:
            return
        try:
            self.result_sink.save_result(node_id, payload)
        except Exception as e:
            logger.error(f"Failed to save result for node {node_id}: {str(e)}")
