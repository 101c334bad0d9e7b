"""Result and execution-history persistence."""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from ..core.exceptions import StorageError
from ..core.logging import get_logger
from ..models.core import ExecutionRecord, NodePayload, RunStatus
from .database import get_session_factory
from .models import ExecutionModel, NodeResultModel

logger = get_logger(__name__)


class ResultSink(ABC):
    """Fire-and-forget destination for node results and run history.

    Callers treat every method as best effort: exceptions are logged by the
    engine and never change a run's outcome.
    """

    @abstractmethod
    def save_result(self, node_id: str, payload: NodePayload) -> None:
        """Record the result of a node."""

    @abstractmethod
    def save_execution(self, record: ExecutionRecord) -> None:
        """Record a finished run."""


class ResultStore(ResultSink):
    """SQLAlchemy-backed result sink with query helpers for the API."""

    def __init__(self, session_factory: Optional[sessionmaker] = None):
        """Initialize the store.

        Args:
            session_factory: Optional session factory. If not provided, sessions
                are bound to the global database engine.
        """
        self._session_factory = session_factory or get_session_factory()

    def save_result(self, node_id: str, payload: NodePayload) -> None:
        data = payload.model_dump(mode="json", by_alias=True)
        session = self._session_factory()
        try:
            session.add(NodeResultModel(
                node_id=node_id,
                node_type=data.get("type", "unknown"),
                content=payload.content,
                model=data.get("model"),
                prompt=data.get("prompt"),
                payload=data,
            ))
            session.commit()
            logger.debug(f"Saved result for node {node_id}")
        except SQLAlchemyError as e:
            session.rollback()
            raise StorageError(f"Failed to save result for node {node_id}: {str(e)}",
                               operation="save_result", table="node_results")
        finally:
            session.close()

    def save_execution(self, record: ExecutionRecord) -> None:
        session = self._session_factory()
        try:
            # Upsert by execution ID
            session.merge(ExecutionModel(
                id=record.id,
                workflow_id=record.workflow_id,
                status=record.status.value,
                start_time=record.start_time,
                end_time=record.end_time,
                result=record.result,
                error=record.error,
            ))
            session.commit()
            logger.debug(f"Saved execution {record.id} with status {record.status.value}")
        except SQLAlchemyError as e:
            session.rollback()
            raise StorageError(f"Failed to save execution {record.id}: {str(e)}",
                               operation="save_execution", table="executions")
        finally:
            session.close()

    def list_results(self, node_id: Optional[str] = None) -> List[Dict[str, Any]]:
        """
        List stored node results, oldest first.

        Args:
            node_id: Optional filter on the producing node

        Returns:
            List of result dictionaries
        """
        session = self._session_factory()
        try:
            query = session.query(NodeResultModel)
            if node_id:
                query = query.filter(NodeResultModel.node_id == node_id)
            return [
                {
                    "id": row.id,
                    "node_id": row.node_id,
                    "node_type": row.node_type,
                    "content": row.content,
                    "model": row.model,
                    "prompt": row.prompt,
                    "created_at": row.created_at,
                }
                for row in query.order_by(NodeResultModel.id).all()
            ]
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to list results: {str(e)}", operation="list_results", table="node_results")
        finally:
            session.close()

    def list_executions(self, workflow_id: Optional[str] = None) -> List[ExecutionRecord]:
        """
        List execution history, most recent first.

        Args:
            workflow_id: Optional filter on the workflow

        Returns:
            List of execution records
        """
        session = self._session_factory()
        try:
            query = session.query(ExecutionModel)
            if workflow_id:
                query = query.filter(ExecutionModel.workflow_id == workflow_id)
            rows = query.order_by(ExecutionModel.start_time.desc()).all()
            return [self._to_record(row) for row in rows]
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to list executions: {str(e)}", operation="list_executions", table="executions")
        finally:
            session.close()

    def get_execution(self, execution_id: str) -> Optional[ExecutionRecord]:
        session = self._session_factory()
        try:
            row = session.query(ExecutionModel).filter(ExecutionModel.id == execution_id).first()
            return self._to_record(row) if row else None
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to get execution {execution_id}: {str(e)}",
                               operation="get_execution", table="executions")
        finally:
            session.close()

    def clear(self) -> None:
        """Delete all stored results and history."""
        session = self._session_factory()
        try:
            session.query(NodeResultModel).delete()
            session.query(ExecutionModel).delete()
            session.commit()
            logger.info("Cleared all stored results and execution history")
        except SQLAlchemyError as e:
            session.rollback()
            raise StorageError(f"Failed to clear storage: {str(e)}", operation="clear")
        finally:
            session.close()

    @staticmethod
    def _to_record(row: ExecutionModel) -> ExecutionRecord:
        return ExecutionRecord(
            id=row.id,
            workflow_id=row.workflow_id,
            status=RunStatus(row.status),
            start_time=row.start_time,
            end_time=row.end_time,
            result=row.result,
            error=row.error,
        )
