"""FastAPI REST endpoints for Workflow Studio."""

from datetime import datetime
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, Field

from ..core.coordinator import ExecutionCoordinator
from ..core.exceptions import (
    APIError,
    ConfigurationError,
    StorageError,
    WorkflowEngineError,
    create_error_response,
)
from ..core.logging import get_logger
from ..models.core import (
    ExecutionRecord,
    ExecutionResult,
    RunStatus,
    ValidationResult,
    WorkflowGraph,
)
from ..services.generation import ContentGenerationService, GenerationSettings
from ..storage.result_store import ResultStore

logger = get_logger(__name__)

# Create router
router = APIRouter(prefix="/api/v1", tags=["workflow"])

# Global instances (initialized by the application lifespan)
_coordinator: Optional[ExecutionCoordinator] = None
_generation_service: Optional[ContentGenerationService] = None
_result_store: Optional[ResultStore] = None


def init_dependencies(
    coordinator: ExecutionCoordinator,
    generation_service: ContentGenerationService,
    result_store: ResultStore
):
    """Initialize the global dependencies."""
    global _coordinator, _generation_service, _result_store
    _coordinator = coordinator
    _generation_service = generation_service
    _result_store = result_store


def get_coordinator() -> ExecutionCoordinator:
    """Dependency to get the execution coordinator."""
    if _coordinator is None:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Execution coordinator not initialized"
        )
    return _coordinator


def get_generation_service() -> ContentGenerationService:
    """Dependency to get the content generation service."""
    if _generation_service is None:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Generation service not initialized"
        )
    return _generation_service


def get_result_store() -> ResultStore:
    """Dependency to get the result store."""
    if _result_store is None:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Result store not initialized"
        )
    return _result_store


# Request/Response models
class StopExecutionResponse(BaseModel):
    stopped: bool = Field(..., description="Whether an active run was cancelled")


class CurrentExecutionResponse(BaseModel):
    """Summary of the active run."""
    workflow_id: str = Field(..., description="ID of the workflow being run")
    execution_id: str = Field(..., description="ID of the run")
    status: RunStatus = Field(..., description="Current run status")
    start_time: datetime = Field(..., description="When the run started")
    completed_nodes: List[str] = Field(default_factory=list, description="Node IDs with stored results")


class StoredResult(BaseModel):
    id: int
    node_id: str
    node_type: str
    content: Optional[str] = None
    model: Optional[str] = None
    prompt: Optional[str] = None
    created_at: Optional[datetime] = None


class GenerationConfigRequest(BaseModel):
    """Request model for updating generation settings."""
    api_key: str = Field(..., description="API key for the generation service")
    model: Optional[str] = Field(None, description="Default model")
    timeout: Optional[float] = Field(None, gt=0, description="Request timeout in seconds")


class GenerationConfigResponse(BaseModel):
    configured: bool = Field(..., description="Whether the service can make calls")
    api_key: Optional[str] = Field(None, description="Masked API key")
    model: Optional[str] = Field(None, description="Default model")
    timeout: Optional[float] = Field(None, description="Request timeout in seconds")


def _error_status(error: WorkflowEngineError) -> int:
    if isinstance(error, APIError):
        return error.status_code
    if isinstance(error, ConfigurationError):
        return status.HTTP_422_UNPROCESSABLE_ENTITY
    return status.HTTP_500_INTERNAL_SERVER_ERROR


def _raise_http(error: WorkflowEngineError):
    raise HTTPException(status_code=_error_status(error), detail=create_error_response(error))


def _mask_key(api_key: Optional[str]) -> Optional[str]:
    if not api_key:
        return None
    return f"****{api_key[-4:]}" if len(api_key) > 4 else "****"


def _config_response(service: ContentGenerationService) -> GenerationConfigResponse:
    settings = service.get_config()
    return GenerationConfigResponse(
        configured=service.is_configured(),
        api_key=_mask_key(settings.api_key) if settings else None,
        model=settings.model if settings else None,
        timeout=settings.timeout if settings else None,
    )


# Endpoints

@router.post(
    "/workflows/validate",
    response_model=ValidationResult,
    summary="Validate a workflow graph",
    description="Check structure and acyclicity of a workflow graph without running it"
)
async def validate_workflow(
    workflow: WorkflowGraph,
    coordinator: ExecutionCoordinator = Depends(get_coordinator)
) -> ValidationResult:
    return coordinator.validate(workflow)


@router.post(
    "/workflows/execute",
    response_model=ExecutionResult,
    summary="Execute a workflow graph",
    description="Run a workflow graph to completion and return the node results"
)
def execute_workflow(
    workflow: WorkflowGraph,
    coordinator: ExecutionCoordinator = Depends(get_coordinator)
) -> ExecutionResult:
    """
    Execute a workflow graph.

    Runs synchronously in the server's worker threadpool; a second request
    waits until the active run has finished.

    Args:
        workflow: The graph to execute
        coordinator: Execution coordinator dependency

    Returns:
        ExecutionResult: run outcome, validation failures included
    """
    logger.info(f"Executing workflow '{workflow.id}' with {len(workflow.nodes)} nodes")
    return coordinator.run(workflow)


@router.post(
    "/executions/stop",
    response_model=StopExecutionResponse,
    summary="Cancel the active run"
)
def stop_execution(coordinator: ExecutionCoordinator = Depends(get_coordinator)) -> StopExecutionResponse:
    return StopExecutionResponse(stopped=coordinator.stop_execution())


@router.get(
    "/executions/current",
    response_model=CurrentExecutionResponse,
    summary="Get the active run"
)
def get_current_execution(coordinator: ExecutionCoordinator = Depends(get_coordinator)) -> CurrentExecutionResponse:
    context = coordinator.get_execution_context()
    if context is None:
        _raise_http(APIError("No workflow execution is active", status_code=status.HTTP_404_NOT_FOUND,
                             endpoint="/executions/current"))
    return CurrentExecutionResponse(
        workflow_id=context.workflow_id,
        execution_id=context.execution_id,
        status=context.status,
        start_time=context.start_time,
        completed_nodes=list(context.variables.keys()),
    )


@router.get(
    "/executions",
    response_model=List[ExecutionRecord],
    summary="List execution history"
)
def list_executions(
    workflow_id: Optional[str] = Query(None, description="Filter by workflow ID"),
    result_store: ResultStore = Depends(get_result_store)
) -> List[ExecutionRecord]:
    try:
        return result_store.list_executions(workflow_id)
    except StorageError as e:
        logger.error(f"Failed to list executions: {e.message}")
        _raise_http(e)


@router.get(
    "/executions/{execution_id}",
    response_model=ExecutionRecord,
    summary="Get one execution history entry"
)
def get_execution(
    execution_id: str,
    result_store: ResultStore = Depends(get_result_store)
) -> ExecutionRecord:
    try:
        record = result_store.get_execution(execution_id)
    except StorageError as e:
        logger.error(f"Failed to get execution {execution_id}: {e.message}")
        _raise_http(e)

    if record is None:
        _raise_http(APIError(f"Execution '{execution_id}' not found", status_code=status.HTTP_404_NOT_FOUND,
                             endpoint="/executions/{execution_id}"))
    return record


@router.get(
    "/results",
    response_model=List[StoredResult],
    summary="List stored agent results"
)
def list_results(
    node_id: Optional[str] = Query(None, description="Filter by node ID"),
    result_store: ResultStore = Depends(get_result_store)
) -> List[Dict[str, Any]]:
    try:
        return result_store.list_results(node_id)
    except StorageError as e:
        logger.error(f"Failed to list results: {e.message}")
        _raise_http(e)


@router.get(
    "/config/generation",
    response_model=GenerationConfigResponse,
    summary="Get generation service settings"
)
def get_generation_config(
    service: ContentGenerationService = Depends(get_generation_service)
) -> GenerationConfigResponse:
    return _config_response(service)


@router.put(
    "/config/generation",
    response_model=GenerationConfigResponse,
    summary="Replace generation service settings"
)
def update_generation_config(
    request: GenerationConfigRequest,
    service: ContentGenerationService = Depends(get_generation_service)
) -> GenerationConfigResponse:
    if not service.validate_api_key(request.api_key):
        _raise_http(ConfigurationError("API key format is invalid", config_key="api_key"))

    current = service.get_config() or GenerationSettings()
    service.set_config(current.model_copy(update={
        "api_key": request.api_key.strip(),
        "model": request.model or current.model,
        "timeout": request.timeout or current.timeout,
    }))
    logger.info("Generation service settings updated via API")
    return _config_response(service)


@router.get(
    "/config/generation/models",
    response_model=List[str],
    summary="List available generation models"
)
def list_generation_models(
    service: ContentGenerationService = Depends(get_generation_service)
) -> List[str]:
    return service.list_models()
