"""Data models for the workflow studio engine."""

from .core import (
    NodeKind,
    RunStatus,
    ValidationResult,
    NodeConfig,
    Node,
    Edge,
    WorkflowGraph,
    NodePayload,
    InputPayload,
    AgentPayload,
    OutputPayload,
    ResultPayload,
    NodeExecutionResult,
    RunContext,
    ExecutionResult,
    ExecutionRecord,
)

__all__ = [
    "NodeKind",
    "RunStatus",
    "ValidationResult",
    "NodeConfig",
    "Node",
    "Edge",
    "WorkflowGraph",
    "NodePayload",
    "InputPayload",
    "AgentPayload",
    "OutputPayload",
    "ResultPayload",
    "NodeExecutionResult",
    "RunContext",
    "ExecutionResult",
    "ExecutionRecord",
]
