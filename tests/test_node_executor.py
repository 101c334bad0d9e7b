"""Tests for per-node execution."""

import pytest

from conftest import FakeGenerationService, RecordingSink, make_edge, make_node
from workflow_studio.core.node_executor import NodeExecutor
from workflow_studio.models.core import AgentPayload, InputPayload, OutputPayload, RunContext
from workflow_studio.services.generation import NOT_CONFIGURED_MESSAGE, GenerationResponse


@pytest.fixture
def context():
    return RunContext(workflow_id="wf_test", execution_id="exec_test")


@pytest.fixture
def executor(generation_service, sink):
    return NodeExecutor(generation_service, sink)


class TestInputAndOutputNodes:
    """Test cases for input and output nodes."""

    def test_input_node_emits_its_content(self, executor, context):
        result = executor.execute(make_node("in", "input", "hello"), [], context)

        assert result.success
        assert isinstance(result.data, InputPayload)
        assert result.data.content == "hello"
        assert result.duration >= 0

    def test_input_node_without_content(self, executor, context):
        result = executor.execute(make_node("in", "input"), [], context)

        assert result.success
        assert result.data.content == ""

    def test_payload_uses_canvas_keys(self, executor, context):
        result = executor.execute(make_node("in", "input", "hello"), [], context)
        context.variables["in"] = result.data

        assert context.materialize_variables() == {"in": {"nodeId": "in", "content": "hello", "type": "input"}}
        assert InputPayload.model_validate({"nodeId": "in", "content": "hello"}).node_id == "in"

    def test_output_node_passes_predecessor_content_through(self, executor, context):
        context.variables["in"] = InputPayload(node_id="in", content="hello")

        result = executor.execute(make_node("out", "output", "fallback"), [make_edge("in", "out")], context)

        assert isinstance(result.data, OutputPayload)
        assert result.data.content == "hello"

    def test_output_node_falls_back_to_own_content(self, executor, context):
        result = executor.execute(make_node("out", "output", "fallback"), [], context)
        assert result.data.content == "fallback"

    def test_unsupported_node_kind(self, executor, context):
        result = executor.execute(make_node("x", "webhook"), [], context)

        assert not result.success
        assert result.data is None
        assert result.error == "unsupported node type: webhook"


class TestInputResolution:
    """Test cases for predecessor content resolution."""

    def test_joins_predecessors_in_edge_order(self, executor, context):
        context.variables["a"] = InputPayload(node_id="a", content="first")
        context.variables["b"] = InputPayload(node_id="b", content="second")
        edges = [make_edge("b", "t"), make_edge("a", "t"), make_edge("a", "other")]

        assert executor.resolve_input("t", edges, context) == "second\n\nfirst"

    def test_skips_missing_and_contentless_predecessors(self, executor, context):
        context.variables["a"] = InputPayload(node_id="a", content=None)
        context.variables["b"] = InputPayload(node_id="b", content="kept")
        edges = [make_edge("a", "t"), make_edge("ghost", "t"), make_edge("b", "t")]

        assert executor.resolve_input("t", edges, context) == "kept"


class TestAgentNode:
    """Test cases for agent nodes."""

    def test_prompt_substitution_and_defaults(self, executor, generation_service, context):
        context.variables["in"] = InputPayload(node_id="in", content="X")
        node = make_node("ag", "agent", prompt_template="Summarize: {input} / {input}")

        result = executor.execute(node, [make_edge("in", "ag")], context)

        assert result.success
        request = generation_service.requests[0]
        assert request.prompt == "Summarize: X / X"
        assert request.model == "glm-4"
        assert request.temperature == 0.7
        assert request.max_tokens == 1000

        assert isinstance(result.data, AgentPayload)
        assert result.data.content == "generated"
        assert result.data.prompt == "Summarize: X / X"
        assert result.data.model == "glm-4"

    def test_placeholder_kept_without_predecessors(self, executor, generation_service, context):
        node = make_node("ag", "agent", prompt_template="Summarize: {input}")

        result = executor.execute(node, [], context)

        assert result.success
        assert generation_service.requests[0].prompt == "Summarize: {input}"

    def test_falls_back_to_content_when_template_unset(self, executor, generation_service, context):
        node = make_node("ag", "agent", "Tell a story")

        executor.execute(node, [], context)

        assert generation_service.requests[0].prompt == "Tell a story"

    def test_empty_template_does_not_fall_back_to_content(self, executor, generation_service, context):
        """An explicitly empty template is used as is, even when content is set."""
        node = make_node("ag", "agent", "Hello", prompt_template="")

        result = executor.execute(node, [], context)

        assert not result.success
        assert result.error == "agent node missing prompt content"
        assert generation_service.requests == []

    def test_empty_model_is_not_replaced_by_default(self, executor, generation_service, context):
        result = executor.execute(make_node("ag", "agent", prompt_template="p", model=""), [], context)

        assert generation_service.requests[0].model == ""
        assert result.data.model == ""

    def test_node_config_overrides_defaults(self, executor, generation_service, context):
        node = make_node("ag", "agent", prompt_template="p", model="glm-4-air", temperature=0.0, max_tokens=5)

        result = executor.execute(node, [], context)

        request = generation_service.requests[0]
        assert request.model == "glm-4-air"
        assert request.temperature == 0.0
        assert request.max_tokens == 5
        assert result.data.model == "glm-4-air"

    def test_blank_prompt_fails_without_calling_service(self, executor, generation_service, context):
        result = executor.execute(make_node("ag", "agent", "   "), [], context)

        assert not result.success
        assert result.error == "agent node missing prompt content"
        assert generation_service.requests == []

    def test_unconfigured_service_is_not_called(self, sink, context):
        service = FakeGenerationService(configured=False)
        executor = NodeExecutor(service, sink)

        result = executor.execute(make_node("ag", "agent", prompt_template="p"), [], context)

        assert not result.success
        assert result.error == NOT_CONFIGURED_MESSAGE
        assert service.requests == []

    def test_service_failure_message_is_kept(self, sink, context):
        service = FakeGenerationService(responses=[GenerationResponse.failure("quota exceeded")])
        executor = NodeExecutor(service, sink)

        result = executor.execute(make_node("ag", "agent", prompt_template="p"), [], context)

        assert not result.success
        assert result.error == "quota exceeded"
        assert sink.results == []

    def test_service_failure_without_message(self, sink, context):
        service = FakeGenerationService(responses=[GenerationResponse(success=False)])
        executor = NodeExecutor(service, sink)

        result = executor.execute(make_node("ag", "agent", prompt_template="p"), [], context)

        assert result.error == "AI generation failed"

    def test_agent_result_handed_to_sink(self, executor, sink, context):
        result = executor.execute(make_node("ag", "agent", prompt_template="p"), [], context)

        assert len(sink.results) == 1
        node_id, payload = sink.results[0]
        assert node_id == "ag"
        assert payload == result.data

    def test_sink_failure_does_not_fail_node(self, generation_service, context):
        executor = NodeExecutor(generation_service, RecordingSink(fail=True))

        result = executor.execute(make_node("ag", "agent", prompt_template="p"), [], context)

        assert result.success

    def test_unexpected_service_exception_is_captured(self, sink, context):
        service = FakeGenerationService()

        def explode(request):
            raise RuntimeError("connection reset")

        service.on_generate = explode
        executor = NodeExecutor(service, sink)

        result = executor.execute(make_node("ag", "agent", prompt_template="p"), [], context)

        assert not result.success
        assert result.error == "connection reset"

    def test_custom_default_model(self, generation_service, context):
        executor = NodeExecutor(generation_service, default_model="glm-4-flash", default_max_tokens=42)

        result = executor.execute(make_node("ag", "agent", prompt_template="p"), [], context)

        assert result.data.model == "glm-4-flash"
        assert generation_service.requests[0].max_tokens == 42
