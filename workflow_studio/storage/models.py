"""SQLAlchemy database models for results and execution history."""

from datetime import datetime, timezone

from sqlalchemy import JSON, Column, DateTime, Integer, String, Text

from .database import Base


def _utcnow():
    return datetime.now(timezone.utc)


class NodeResultModel(Base):
    """Agent node output kept as a reusable asset."""
    __tablename__ = "node_results"

    id = Column(Integer, primary_key=True, autoincrement=True)
    node_id = Column(String, nullable=False, index=True)
    node_type = Column(String, nullable=False)
    content = Column(Text)
    model = Column(String)
    prompt = Column(Text)
    payload = Column(JSON, nullable=False)  # Full result payload as produced by the node
    created_at = Column(DateTime, default=_utcnow)


class ExecutionModel(Base):
    """Database model for workflow execution history."""
    __tablename__ = "executions"

    id = Column(String, primary_key=True)
    workflow_id = Column(String, nullable=False, index=True)
    status = Column(String, nullable=False)  # completed, failed, cancelled
    start_time = Column(DateTime, nullable=False)
    end_time = Column(DateTime)
    result = Column(JSON)
    error = Column(Text)
