"""Pytest configuration and fixtures."""

import os
import tempfile
from typing import List, Optional

import pytest
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool

from workflow_studio.models.core import Edge, Node, NodeConfig, WorkflowGraph
from workflow_studio.services.generation import (
    ContentGenerationService,
    GeneratedContent,
    GenerationRequest,
    GenerationResponse,
    GenerationSettings,
)
from workflow_studio.storage.database import create_tables, get_session_factory, reset_database_engine
from workflow_studio.storage.result_store import ResultSink, ResultStore


class FakeGenerationService(ContentGenerationService):
    """Generation service that answers from a script and records every request."""

    def __init__(self, configured: bool = True, responses: Optional[List[GenerationResponse]] = None,
                 reply: str = "generated"):
        self._settings = GenerationSettings(api_key="test-api-key-123") if configured else None
        self.responses = list(responses or [])
        self.reply = reply
        self.requests: List[GenerationRequest] = []
        self.on_generate = None

    def is_configured(self) -> bool:
        return bool(self._settings and self._settings.api_key)

    def set_config(self, settings: GenerationSettings) -> None:
        self._settings = settings

    def get_config(self) -> Optional[GenerationSettings]:
        return self._settings

    def generate(self, request: GenerationRequest) -> GenerationResponse:
        self.requests.append(request)
        if self.on_generate is not None:
            self.on_generate(request)
        if self.responses:
            return self.responses.pop(0)
        return GenerationResponse(success=True, data=GeneratedContent(content=self.reply))


class RecordingSink(ResultSink):
    """Result sink that keeps everything in memory."""

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.results = []
        self.executions = []

    def save_result(self, node_id, payload):
        if self.fail:
            raise RuntimeError("sink unavailable")
        self.results.append((node_id, payload))

    def save_execution(self, record):
        if self.fail:
            raise RuntimeError("sink unavailable")
        self.executions.append(record)


def make_node(node_id: str, kind: str, content: Optional[str] = None, label: str = "", **config) -> Node:
    """Build a node the way the canvas sends it."""
    return Node(id=node_id, type=kind, label=label, content=content, config=NodeConfig(**config))


def make_edge(source: str, target: str) -> Edge:
    return Edge(id=f"{source}-{target}", source=source, target=target)


def make_graph(nodes: List[Node], edges: Optional[List[Edge]] = None, workflow_id: str = "wf_test") -> WorkflowGraph:
    return WorkflowGraph(id=workflow_id, name="Test workflow", nodes=nodes, edges=edges or [])


@pytest.fixture
def generation_service():
    """A configured fake generation service."""
    return FakeGenerationService()


@pytest.fixture
def sink():
    return RecordingSink()


@pytest.fixture
def temp_db():
    """Create a temporary SQLite database and yield its engine."""
    db_fd, db_path = tempfile.mkstemp(suffix=".db")
    os.close(db_fd)

    engine = create_engine(
        f"sqlite:///{db_path}",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        echo=False
    )
    create_tables(engine)

    yield engine

    # Cleanup
    engine.dispose()
    try:
        os.unlink(db_path)
    except OSError:
        pass


@pytest.fixture
def result_store(temp_db):
    """Create a ResultStore bound to the temporary database."""
    return ResultStore(get_session_factory(temp_db))


@pytest.fixture
def client(generation_service):
    """Create a test client for an application backed by an in-memory database."""
    from fastapi.testclient import TestClient

    from workflow_studio.config import get_testing_config
    from workflow_studio.main import create_app

    reset_database_engine()
    app = create_app(get_testing_config(), generation_service=generation_service)
    with TestClient(app) as test_client:
        yield test_client
    reset_database_engine()
