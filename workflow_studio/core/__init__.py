"""Core workflow engine components.

The node executor and coordinator depend on the service and storage layers;
import them from their modules (``workflow_studio.core.coordinator``).
"""

from .exceptions import (
    WorkflowEngineError,
    GraphValidationError,
    NodeExecutionError,
    GenerationServiceError,
    ConfigurationError,
    StorageError,
    APIError,
)
from .logging import setup_logging, get_logger
from .graph_validator import GraphValidator
from .scheduler import Scheduler

__all__ = [
    "WorkflowEngineError",
    "GraphValidationError",
    "NodeExecutionError",
    "GenerationServiceError",
    "ConfigurationError",
    "StorageError",
    "APIError",
    "setup_logging",
    "get_logger",
    "GraphValidator",
    "Scheduler",
]
