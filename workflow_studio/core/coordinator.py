"""Run-level orchestration of workflow executions."""

import logging
import threading
import time
import uuid
from typing import Callable, List, Optional

from ..models.core import (
    ExecutionRecord,
    ExecutionResult,
    NodeExecutionResult,
    RunContext,
    RunStatus,
    ValidationResult,
    WorkflowGraph,
    utcnow,
)
from ..services.generation import (
    DEFAULT_MAX_TOKENS,
    DEFAULT_MODEL,
    DEFAULT_TEMPERATURE,
    ContentGenerationService,
    GenerationSettings,
)
from ..storage.result_store import ResultSink
from .exceptions import GraphValidationError
from .graph_validator import GraphValidator
from .logging import get_logger, log_with_context, logging_context
from .node_executor import NodeExecutor
from .scheduler import Scheduler

logger = get_logger(__name__)

StatusListener = Callable[[RunStatus], None]
NodeListener = Callable[[str, NodeExecutionResult], None]
ConfigLoader = Callable[[], Optional[GenerationSettings]]

CANCELLED_ERROR = "workflow execution cancelled"


class ExecutionCoordinator:
    """Validates, schedules and runs workflow graphs one node at a time.

    A coordinator owns at most one RunContext. Runs are serialized: a second
    call to ``run`` waits until the active run has finished.
    """

    def __init__(
        self,
        generation_service: ContentGenerationService,
        result_sink: Optional[ResultSink] = None,
        config_loader: Optional[ConfigLoader] = None,
        validator: Optional[GraphValidator] = None,
        scheduler: Optional[Scheduler] = None,
        default_model: str = DEFAULT_MODEL,
        default_temperature: float = DEFAULT_TEMPERATURE,
        default_max_tokens: int = DEFAULT_MAX_TOKENS
    ):
        """Initialize the coordinator.

        Args:
            generation_service: Backend used by agent nodes
            result_sink: Optional best-effort sink for results and run history
            config_loader: Supplies generation settings when the service has none
            validator: Graph validator, a default one if not given
            scheduler: Scheduler, a default one if not given
            default_model: Model used when an agent node names none
            default_temperature: Temperature used when an agent node sets none
            default_max_tokens: Token limit used when an agent node sets none
        """
        self.generation_service = generation_service
        self.result_sink = result_sink
        self.config_loader = config_loader
        self.validator = validator or GraphValidator()
        self.scheduler = scheduler or Scheduler()
        self.executor = NodeExecutor(
            generation_service,
            result_sink,
            default_model=default_model,
            default_temperature=default_temperature,
            default_max_tokens=default_max_tokens,
        )

        self._context: Optional[RunContext] = None
        self._last_status = RunStatus.PENDING
        self._context_lock = threading.RLock()
        self._run_lock = threading.Lock()
        self._status_listeners: List[StatusListener] = []
        self._node_listeners: List[NodeListener] = []

    # Observers

    def add_status_listener(self, listener: StatusListener) -> None:
        self._status_listeners.append(listener)

    def remove_status_listener(self, listener: StatusListener) -> None:
        if listener in self._status_listeners:
            self._status_listeners.remove(listener)

    def add_node_listener(self, listener: NodeListener) -> None:
        self._node_listeners.append(listener)

    def remove_node_listener(self, listener: NodeListener) -> None:
        if listener in self._node_listeners:
            self._node_listeners.remove(listener)

    # Queries

    def validate(self, workflow: WorkflowGraph) -> ValidationResult:
        return self.validator.validate(workflow)

    def get_execution_context(self) -> Optional[RunContext]:
        """Return the active run context, if a run is in progress."""
        with self._context_lock:
            return self._context

    @property
    def status(self) -> RunStatus:
        """Status of the active run, or the final status of the last one."""
        return self._last_status

    # Lifecycle

    def run(self, workflow: WorkflowGraph) -> ExecutionResult:
        """
        Execute a workflow graph end to end.

        Args:
            workflow: The graph to run

        Returns:
            ExecutionResult: node results on success, an error message otherwise
        """
        try:
            validation = self._check_workflow(workflow)
        except GraphValidationError as e:
            logger.warning(f"Rejected workflow '{workflow.id}': {e.message}")
            return ExecutionResult(success=False, error=e.message)

        with self._run_lock:
            self._ensure_generation_config()

            context = RunContext(
                workflow_id=workflow.id,
                execution_id=self._generate_execution_id(),
                status=RunStatus.PENDING,
            )
            with self._context_lock:
                self._context = context

            with logging_context(workflow_id=workflow.id, execution_id=context.execution_id):
                result = self._execute(workflow, context)

            result.execution_id = context.execution_id
            result.warnings = list(validation.warnings)
            return result

    def stop_execution(self) -> bool:
        """
        Cancel the active run.

        An agent call already in flight is not interrupted; its result is
        discarded when it returns.

        Returns:
            True if a run was active and has been cancelled, False otherwise
        """
        with self._context_lock:
            context = self._context
            if context is None:
                return False
            self._context = None

        self._update_status(context, RunStatus.CANCELLED)
        self._record_execution(context, error=CANCELLED_ERROR)
        logger.info(f"Cancelled workflow execution {context.execution_id}")
        return True

    def _check_workflow(self, workflow: WorkflowGraph) -> ValidationResult:
        validation = self.validator.validate(workflow)
        if not validation.is_valid:
            raise GraphValidationError(
                f"workflow validation failed: {', '.join(validation.errors)}",
                validation_errors=validation.errors,
                workflow_id=workflow.id,
            )
        if validation.warnings:
            logger.warning(f"Workflow validation warnings: {'; '.join(validation.warnings)}")
        return validation

    def _execute(self, workflow: WorkflowGraph, context: RunContext) -> ExecutionResult:
        started = time.monotonic()
        self._update_status(context, RunStatus.RUNNING)
        logger.info(f"Started workflow execution {context.execution_id} for workflow '{workflow.id}'")

        try:
            for node_id in self.scheduler.order(workflow.nodes, workflow.edges):
                if not self._is_active(context):
                    return ExecutionResult(success=False, error=CANCELLED_ERROR)

                node = workflow.get_node(node_id)
                if node is None:
                    continue

                result = self.executor.execute(node, workflow.edges, context)

                # Discard the outcome of a node that finished after cancellation
                if not self._is_active(context):
                    logger.info(f"Discarding result of node {node_id}: execution was cancelled")
                    return ExecutionResult(success=False, error=CANCELLED_ERROR)

                self._notify_node_executed(node_id, result)
                log_with_context(
                    logger, logging.INFO if result.success else logging.ERROR,
                    f"Node {node_id} {'completed' if result.success else 'failed'}",
                    node_id=node_id, node_kind=node.kind, duration=result.duration,
                )

                if not result.success:
                    error = f"node {node.display_name} failed: {result.error}"
                    if not self._finish(context, RunStatus.FAILED, error=error):
                        return ExecutionResult(success=False, error=CANCELLED_ERROR)
                    return ExecutionResult(success=False, error=error)

                if result.data is not None:
                    context.variables[node_id] = result.data

            data = context.materialize_variables()
            if not self._finish(context, RunStatus.COMPLETED, result=data):
                return ExecutionResult(success=False, error=CANCELLED_ERROR)
            logger.info(f"Workflow execution {context.execution_id} completed")
            return ExecutionResult(success=True, data=data, duration=time.monotonic() - started)

        except Exception as e:
            logger.error(f"Workflow execution {context.execution_id} failed: {str(e)}", exc_info=True)
            error = str(e) or "unknown error"
            if not self._finish(context, RunStatus.FAILED, error=error):
                return ExecutionResult(success=False, error=CANCELLED_ERROR)
            return ExecutionResult(success=False, error=error)

    def _finish(self, context: RunContext, status: RunStatus, result=None, error: Optional[str] = None) -> bool:
        """Move the run to a terminal status; False if it was cancelled meanwhile."""
        with self._context_lock:
            if self._context is not context:
                return False
            self._context = None
        self._update_status(context, status)
        self._record_execution(context, result=result, error=error)
        return True

    def _is_active(self, context: RunContext) -> bool:
        with self._context_lock:
            return self._context is context

    def _ensure_generation_config(self) -> None:
        if self.generation_service.is_configured() or self.config_loader is None:
            return
        try:
            settings = self.config_loader()
            if settings is not None:
                self.generation_service.set_config(settings)
                logger.info("Loaded generation service configuration")
            else:
                logger.warning("No generation service configuration found")
        except Exception as e:
            logger.error(f"Failed to load generation service configuration: {str(e)}")

    def _update_status(self, context: RunContext, status: RunStatus) -> None:
        context.status = status
        self._last_status = status
        for listener in list(self._status_listeners):
            try:
                listener(status)
            except Exception as e:
                logger.error(f"Status listener failed: {str(e)}")

    def _notify_node_executed(self, node_id: str, result: NodeExecutionResult) -> None:
        for listener in list(self._node_listeners):
            try:
                listener(node_id, result)
            except Exception as e:
                logger.error(f"Node listener failed for node {node_id}: {str(e)}")

    def _record_execution(self, context: RunContext, result=None, error: Optional[str] = None) -> None:
        if self.result_sink is None:
            return
        try:
            self.result_sink.save_execution(ExecutionRecord(
                id=context.execution_id,
                workflow_id=context.workflow_id,
                start_time=context.start_time,
                end_time=utcnow(),
                status=context.status,
                result=result,
                error=error,
            ))
        except Exception as e:
            logger.error(f"Failed to record execution {context.execution_id}: {str(e)}")

    @staticmethod
    def _generate_execution_id() -> str:
        return f"exec_{uuid.uuid4().hex}"
