"""Tests for run-level workflow orchestration."""

import pytest

from conftest import FakeGenerationService, RecordingSink, make_edge, make_graph, make_node
from workflow_studio.core.coordinator import CANCELLED_ERROR, ExecutionCoordinator
from workflow_studio.core.graph_validator import MISSING_OUTPUT_WARNING
from workflow_studio.models.core import RunStatus
from workflow_studio.services.generation import NOT_CONFIGURED_MESSAGE, GenerationResponse, GenerationSettings


@pytest.fixture
def coordinator(generation_service, sink):
    return ExecutionCoordinator(generation_service, result_sink=sink)


@pytest.fixture
def statuses(coordinator):
    seen = []
    coordinator.add_status_listener(seen.append)
    return seen


@pytest.fixture
def executed(coordinator):
    seen = []
    coordinator.add_node_listener(lambda node_id, result: seen.append((node_id, result)))
    return seen


def pipeline_graph():
    """Input -> Agent -> Output."""
    return make_graph(
        [make_node("in", "input", "X"),
         make_node("ag", "agent", label="Writer", prompt_template="{input}"),
         make_node("out", "output")],
        [make_edge("in", "ag"), make_edge("ag", "out")],
    )


class TestWorkflowScenarios:
    """End-to-end runs through the coordinator."""

    def test_input_to_output(self, coordinator, statuses, executed):
        graph = make_graph([make_node("I", "input", "hello"), make_node("O", "output")], [make_edge("I", "O")])

        result = coordinator.run(graph)

        assert result.success
        assert result.error is None
        assert result.data["O"]["content"] == "hello"
        assert result.data["I"]["type"] == "input"
        assert result.data["I"]["nodeId"] == "I"
        assert "node_id" not in result.data["I"]
        assert result.duration is not None and result.duration >= 0
        assert result.execution_id.startswith("exec_")
        assert statuses == [RunStatus.RUNNING, RunStatus.COMPLETED]
        assert [node_id for node_id, _ in executed] == ["I", "O"]
        assert coordinator.status == RunStatus.COMPLETED
        assert coordinator.get_execution_context() is None

    def test_agent_without_predecessor_keeps_literal_placeholder(self, coordinator, generation_service):
        graph = make_graph([make_node("in", "input", "unused"),
                            make_node("ag", "agent", "", prompt_template="Summarize: {input}")])

        result = coordinator.run(graph)

        assert result.success
        assert generation_service.requests[0].prompt == "Summarize: {input}"
        assert MISSING_OUTPUT_WARNING in result.warnings
        assert any("isolated node(s)" in warning for warning in result.warnings)

    def test_agent_output_reaches_output_node(self, sink):
        service = FakeGenerationService(reply="Y")
        coordinator = ExecutionCoordinator(service, result_sink=sink)

        result = coordinator.run(pipeline_graph())

        assert result.success
        assert result.data["out"]["content"] == "Y"
        assert result.data["ag"]["prompt"] == "X"
        assert result.warnings == []
        assert [node_id for node_id, _ in sink.results] == ["ag"]

    def test_agent_failure_stops_the_run(self, sink):
        service = FakeGenerationService(responses=[GenerationResponse.failure("quota exceeded")])
        coordinator = ExecutionCoordinator(service, result_sink=sink)
        statuses, executed = [], []
        coordinator.add_status_listener(statuses.append)
        coordinator.add_node_listener(lambda node_id, result: executed.append(node_id))

        result = coordinator.run(pipeline_graph())

        assert not result.success
        assert result.data is None
        assert "Writer" in result.error
        assert "quota exceeded" in result.error
        assert executed == ["in", "ag"]
        assert statuses == [RunStatus.RUNNING, RunStatus.FAILED]
        assert coordinator.status == RunStatus.FAILED

    def test_cycle_is_rejected_before_running(self, coordinator, statuses, executed, sink, generation_service):
        graph = make_graph([make_node("A", "input", "x"), make_node("B", "output")],
                           [make_edge("A", "B"), make_edge("B", "A")])

        result = coordinator.run(graph)

        assert not result.success
        assert result.error.startswith("workflow validation failed: ")
        assert "circular dependency" in result.error
        assert result.execution_id is None
        assert statuses == []
        assert executed == []
        assert sink.executions == []
        assert generation_service.requests == []
        assert coordinator.status == RunStatus.PENDING

    def test_validation_errors_are_joined(self, coordinator):
        result = coordinator.run(make_graph([make_node("ag", "agent", prompt_template="p")],
                                            [make_edge("ag", "nowhere")]))

        assert result.error == (
            "workflow validation failed: workflow must contain at least one input node, "
            "edge ag-nowhere references missing target node: nowhere"
        )


class TestObservers:
    """Test cases for status and node listeners."""

    def test_node_listener_receives_results_in_order(self, coordinator, executed):
        coordinator.run(pipeline_graph())

        assert [node_id for node_id, _ in executed] == ["in", "ag", "out"]
        assert all(result.success for _, result in executed)

    def test_listener_exceptions_do_not_affect_run(self, coordinator):
        def broken(*args):
            raise RuntimeError("listener bug")

        coordinator.add_status_listener(broken)
        coordinator.add_node_listener(broken)

        assert coordinator.run(pipeline_graph()).success

    def test_removed_listener_is_not_called(self, coordinator):
        statuses = []
        coordinator.add_status_listener(statuses.append)
        coordinator.remove_status_listener(statuses.append)
        coordinator.remove_node_listener(statuses.append)

        coordinator.run(pipeline_graph())

        assert statuses == []


class TestExecutionHistory:
    """Test cases for execution records handed to the result sink."""

    def test_completed_run_is_recorded(self, coordinator, sink):
        result = coordinator.run(pipeline_graph())

        assert len(sink.executions) == 1
        record = sink.executions[0]
        assert record.id == result.execution_id
        assert record.workflow_id == "wf_test"
        assert record.status == RunStatus.COMPLETED
        assert record.result == result.data
        assert record.end_time >= record.start_time

    def test_failed_run_is_recorded_with_error(self, sink):
        service = FakeGenerationService(responses=[GenerationResponse.failure("quota exceeded")])
        coordinator = ExecutionCoordinator(service, result_sink=sink)

        result = coordinator.run(pipeline_graph())

        record = sink.executions[0]
        assert record.status == RunStatus.FAILED
        assert record.error == result.error
        assert record.result is None

    def test_sink_failures_are_swallowed(self, generation_service):
        coordinator = ExecutionCoordinator(generation_service, result_sink=RecordingSink(fail=True))

        result = coordinator.run(pipeline_graph())

        assert result.success

    def test_runs_without_sink(self, generation_service):
        assert ExecutionCoordinator(generation_service).run(pipeline_graph()).success

    def test_each_run_gets_a_new_execution_id(self, coordinator):
        first = coordinator.run(pipeline_graph())
        second = coordinator.run(pipeline_graph())

        assert first.execution_id != second.execution_id


class TestCancellation:
    """Test cases for stop_execution."""

    def test_stop_without_active_run(self, coordinator, statuses):
        assert coordinator.stop_execution() is False
        assert statuses == []

    def test_stop_during_agent_call_discards_result(self, coordinator, generation_service, statuses, executed, sink):
        stopped = []
        generation_service.on_generate = lambda request: stopped.append(coordinator.stop_execution())

        result = coordinator.run(pipeline_graph())

        assert stopped == [True]
        assert not result.success
        assert result.error == CANCELLED_ERROR
        assert [node_id for node_id, _ in executed] == ["in"]
        assert statuses == [RunStatus.RUNNING, RunStatus.CANCELLED]
        assert coordinator.status == RunStatus.CANCELLED
        assert coordinator.get_execution_context() is None

        assert len(sink.executions) == 1
        assert sink.executions[0].status == RunStatus.CANCELLED
        assert sink.executions[0].error == CANCELLED_ERROR

    def test_context_is_visible_while_running(self, coordinator, generation_service):
        seen = []

        def capture(request):
            context = coordinator.get_execution_context()
            seen.append((context.status, list(context.variables)))

        generation_service.on_generate = capture

        result = coordinator.run(pipeline_graph())

        assert seen == [(RunStatus.RUNNING, ["in"])]
        assert coordinator.status == RunStatus.COMPLETED
        assert result.success


class TestGenerationConfig:
    """Test cases for lazy generation service configuration."""

    def test_config_loader_configures_service(self, sink):
        service = FakeGenerationService(configured=False)
        coordinator = ExecutionCoordinator(
            service, result_sink=sink,
            config_loader=lambda: GenerationSettings(api_key="loaded-api-key-1")
        )

        result = coordinator.run(pipeline_graph())

        assert result.success
        assert service.get_config().api_key == "loaded-api-key-1"

    def test_missing_config_fails_agent_node(self, sink):
        service = FakeGenerationService(configured=False)
        coordinator = ExecutionCoordinator(service, result_sink=sink, config_loader=lambda: None)

        result = coordinator.run(pipeline_graph())

        assert not result.success
        assert NOT_CONFIGURED_MESSAGE in result.error
        assert service.requests == []

    def test_config_loader_errors_are_not_fatal(self, sink):
        def broken_loader():
            raise OSError("config store unavailable")

        coordinator = ExecutionCoordinator(FakeGenerationService(configured=False), result_sink=sink,
                                           config_loader=broken_loader)
        graph = make_graph([make_node("I", "input", "hello"), make_node("O", "output")], [make_edge("I", "O")])

        assert coordinator.run(graph).success

    def test_loader_not_consulted_when_configured(self, generation_service):
        calls = []
        coordinator = ExecutionCoordinator(generation_service, config_loader=lambda: calls.append(1))

        coordinator.run(pipeline_graph())

        assert calls == []


class TestInjectedCollaborators:
    """Test cases for injected validator and scheduler."""

    def test_unexpected_scheduler_error_fails_run(self, generation_service, sink):
        class BrokenScheduler:
            def order(self, nodes, edges):
                raise RuntimeError("scheduler exploded")

        coordinator = ExecutionCoordinator(generation_service, result_sink=sink, scheduler=BrokenScheduler())
        statuses = []
        coordinator.add_status_listener(statuses.append)

        result = coordinator.run(pipeline_graph())

        assert not result.success
        assert result.error == "scheduler exploded"
        assert statuses == [RunStatus.RUNNING, RunStatus.FAILED]
        assert sink.executions[0].status == RunStatus.FAILED

    def test_validate_delegates_to_validator(self, coordinator):
        assert coordinator.validate(pipeline_graph()).is_valid
        assert not coordinator.validate(make_graph([])).is_valid
