"""Core Pydantic models for the workflow studio engine."""

from datetime import datetime, timezone
from enum import Enum
from typing import Annotated, Any, Dict, List, Literal, Optional, Union
from pydantic import BaseModel, ConfigDict, Field, field_validator


def utcnow() -> datetime:
    """Timezone-aware current UTC time."""
    return datetime.now(timezone.utc)


class NodeKind(str, Enum):
    """Node kinds the engine knows how to execute."""
    INPUT = "input"
    AGENT = "agent"
    OUTPUT = "output"


class RunStatus(str, Enum):
    """Enumeration of workflow run statuses."""
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


class ValidationResult(BaseModel):
    """Result of workflow graph validation."""
    is_valid: bool = Field(..., description="Whether the graph may be executed")
    errors: List[str] = Field(default_factory=list, description="Blocking validation errors")
    warnings: List[str] = Field(default_factory=list, description="Non-blocking validation warnings")


class NodeConfig(BaseModel):
    """Kind-specific node settings.

    Agent nodes read the prompt template and model parameters; output nodes
    carry a format and filename used only by external renderers.
    """
    model_config = ConfigDict(populate_by_name=True, frozen=True, extra="ignore")

    prompt_template: Optional[str] = Field(None, alias="promptTemplate", description="Agent prompt, may contain {input}")
    model: Optional[str] = Field(None, description="Model name for agent nodes")
    temperature: Optional[float] = Field(None, description="Sampling temperature for agent nodes")
    max_tokens: Optional[int] = Field(None, alias="maxTokens", description="Completion token limit for agent nodes")
    format: Optional[str] = Field(None, description="Output rendering format")
    filename: Optional[str] = Field(None, description="Output file name")


class Node(BaseModel):
    """A workflow node as drawn on the canvas.

    ``kind`` is kept as a plain string: kinds the engine cannot run are
    rejected at execution time with an "unsupported node type" failure.
    """
    model_config = ConfigDict(populate_by_name=True, frozen=True, extra="ignore")

    id: str = Field(..., description="Unique identifier for the node")
    kind: str = Field(..., alias="type", description="Node kind: input, agent or output")
    label: str = Field("", description="Display name")
    content: Optional[str] = Field(None, description="Raw text for input/output nodes")
    config: NodeConfig = Field(default_factory=NodeConfig, description="Kind-specific settings")

    @field_validator('id')
    @classmethod
    def validate_id(cls, id_value):
        """Ensure the node ID is not blank."""
        if not id_value or not id_value.strip():
            raise ValueError("Node ID cannot be empty")
        return id_value

    @property
    def display_name(self) -> str:
        return self.label or self.id


class Edge(BaseModel):
    """Directed connection between two nodes."""
    model_config = ConfigDict(populate_by_name=True, frozen=True, extra="ignore")

    id: str = Field(..., description="Edge ID")
    source: str = Field(..., description="Source node ID")
    target: str = Field(..., description="Target node ID")
    source_handle: Optional[str] = Field(None, alias="sourceHandle", description="Visual port on the source node")
    target_handle: Optional[str] = Field(None, alias="targetHandle", description="Visual port on the target node")


class WorkflowGraph(BaseModel):
    """Immutable input to a workflow run."""
    model_config = ConfigDict(frozen=True)

    id: str = Field("", description="Workflow ID")
    name: str = Field("", description="Workflow name")
    nodes: List[Node] = Field(default_factory=list, description="Nodes in declaration order")
    edges: List[Edge] = Field(default_factory=list, description="Edges in declaration order")

    @field_validator('nodes')
    @classmethod
    def validate_unique_node_ids(cls, nodes):
        """Ensure all node IDs are unique."""
        node_ids = [node.id for node in nodes]
        if len(node_ids) != len(set(node_ids)):
            raise ValueError("All node IDs must be unique")
        return nodes

    def get_node(self, node_id: str) -> Optional[Node]:
        for node in self.nodes:
            if node.id == node_id:
                return node
        return None


class NodePayload(BaseModel):
    """Result produced by a node and visible to its successors."""
    model_config = ConfigDict(populate_by_name=True)

    node_id: str = Field(..., alias="nodeId", description="ID of the producing node")
    content: Optional[str] = Field(None, description="Text handed to successor nodes")


class InputPayload(NodePayload):
    type: Literal["input"] = "input"


class AgentPayload(NodePayload):
    type: Literal["agent"] = "agent"
    model: str = Field(..., description="Model that generated the content")
    prompt: str = Field(..., description="Prompt sent to the generation service")
    timestamp: datetime = Field(default_factory=utcnow, description="Generation time")


class OutputPayload(NodePayload):
    type: Literal["output"] = "output"


ResultPayload = Annotated[
    Union[InputPayload, AgentPayload, OutputPayload],
    Field(discriminator="type"),
]


class NodeExecutionResult(BaseModel):
    """Outcome of one node attempt."""
    success: bool = Field(..., description="Whether the node succeeded")
    data: Optional[ResultPayload] = Field(None, description="Node payload, present on success")
    error: Optional[str] = Field(None, description="Error message, present on failure")
    duration: float = Field(0.0, description="Elapsed time in seconds")


class RunContext(BaseModel):
    """Mutable state scoped to one workflow run."""
    workflow_id: str = Field(..., description="ID of the workflow being run")
    execution_id: str = Field(..., description="Unique identifier for this run")
    start_time: datetime = Field(default_factory=utcnow, description="When the run started")
    status: RunStatus = Field(RunStatus.PENDING, description="Current run status")
    variables: Dict[str, ResultPayload] = Field(
        default_factory=dict,
        description="Node results keyed by node ID, in completion order",
    )

    def materialize_variables(self) -> Dict[str, Dict[str, Any]]:
        return {
            node_id: payload.model_dump(mode="json", by_alias=True)
            for node_id, payload in self.variables.items()
        }


class ExecutionResult(BaseModel):
    """Outcome of a whole workflow run."""
    success: bool = Field(..., description="Overall success")
    data: Optional[Dict[str, Dict[str, Any]]] = Field(None, description="Node results keyed by node ID")
    error: Optional[str] = Field(None, description="Error message")
    duration: Optional[float] = Field(None, description="Total run time in seconds")
    execution_id: Optional[str] = Field(None, description="ID of the run, absent when validation failed")
    warnings: List[str] = Field(default_factory=list, description="Validation warnings to show the user")


class ExecutionRecord(BaseModel):
    """Execution history entry handed to the result sink."""
    id: str = Field(..., description="Execution ID")
    workflow_id: str = Field(..., description="Workflow ID")
    start_time: datetime = Field(..., description="Run start")
    end_time: Optional[datetime] = Field(None, description="Run end")
    status: RunStatus = Field(..., description="Terminal status")
    result: Optional[Dict[str, Any]] = Field(None, description="Materialized node results")
    error: Optional[str] = Field(None, description="Failure message")
