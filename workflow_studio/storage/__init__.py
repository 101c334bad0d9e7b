"""Database models and storage layer."""

from .database import Base, get_db, get_database_engine, get_session_factory, create_tables, drop_tables
from .models import NodeResultModel, ExecutionModel
from .result_store import ResultSink, ResultStore

__all__ = [
    "Base",
    "get_db",
    "get_database_engine",
    "get_session_factory",
    "create_tables",
    "drop_tables",
    "NodeResultModel",
    "ExecutionModel",
    "ResultSink",
    "ResultStore",
]
