"""Tests for the tolerant wire parsers and the result classifiers."""

from __future__ import annotations

import pytest

from a2a_recorder.exceptions import A2AProtocolError
from a2a_recorder.parsing import (
    classify_result,
    classify_stream_event,
    compact_json,
    parse_message,
    parse_part,
    parse_task,
    parse_task_state,
)
from a2a_recorder.types import (
    ArtifactEvent,
    DataPart,
    Message,
    MessageEvent,
    StatusEvent,
    Task,
    TaskSnapshotEvent,
    TaskState,
    TextPart,
)

from .conftest import (
    artifact_frame,
    make_message_dict,
    make_task_dict,
    message_frame,
    status_frame,
)


class TestParseTaskState:
    @pytest.mark.parametrize("state", [s.value for s in TaskState])
    def test_known_states(self, state):
        assert parse_task_state(state) == TaskState(state)

    @pytest.mark.parametrize("value", [None, "", "unknown", "COMPLETED", 3, {"state": "working"}])
    def test_anything_else_is_pending(self, value):
        assert parse_task_state(value) is TaskState.PENDING

    def test_exactly_seven_states(self):
        assert len(TaskState) == 7


class TestParsePart:
    def test_text(self):
        assert parse_part({"text": "hi"}) == TextPart(text="hi")

    def test_data_with_mime_type(self):
        part = parse_part({"data": {"k": 1}, "mimeType": "application/x-custom"})

        assert part == DataPart(data={"k": 1}, mime_type="application/x-custom")

    def test_data_without_mime_type(self):
        part = parse_part({"data": [1, 2]})

        assert isinstance(part, DataPart)
        assert part.mime_type == "application/json"

    def test_non_string_text_coerced(self):
        assert parse_part({"text": 42}) == TextPart(text="42")

    @pytest.mark.parametrize("value", [None, "text", {}, {"kind": "file"}])
    def test_malformed_is_empty_text(self, value):
        assert parse_part(value) == TextPart(text="")


class TestParseMessage:
    def test_agent_role_becomes_assistant(self):
        assert parse_message(make_message_dict(role="agent")).role == "assistant"

    def test_assistant_role(self):
        assert parse_message(make_message_dict(role="assistant")).role == "assistant"

    @pytest.mark.parametrize("role", ["user", "system", None, 7])
    def test_other_roles_become_user(self, role):
        assert parse_message({"role": role, "parts": []}).role == "user"

    def test_fields(self):
        message = parse_message(
            {
                "role": "agent",
                "parts": [{"text": "a"}, {"data": {"x": 1}}, {"text": "b"}],
                "messageId": "m-1",
                "contextId": "ctx",
                "taskId": "t-1",
                "referenceTaskIds": ["t-0"],
                "metadata": {"skill": "summarize"},
            }
        )

        assert message.message_id == "m-1"
        assert message.context_id == "ctx"
        assert message.task_id == "t-1"
        assert message.reference_task_ids == ["t-0"]
        assert message.metadata == {"skill": "summarize"}
        assert message.text() == "ab"

    def test_non_object(self):
        assert parse_message("nope") == Message(role="user", parts=[])


class TestParseTask:
    def test_history_field(self):
        task = parse_task(make_task_dict(history=[make_message_dict("done")]))

        assert task.id == "task-1"
        assert task.status is TaskState.COMPLETED
        assert task.context_id == "ctx-1"
        assert [m.text() for m in task.messages] == ["done"]

    def test_legacy_messages_field(self):
        task = parse_task({"id": "t", "status": "working", "messages": [make_message_dict("x")]})

        assert len(task.messages) == 1

    def test_history_preferred_over_messages(self):
        task = parse_task(
            {
                "id": "t",
                "history": [make_message_dict("new")],
                "messages": [make_message_dict("old")],
            }
        )

        assert task.messages[0].text() == "new"

    def test_missing_status_is_pending(self):
        assert parse_task({"id": "t"}).status is TaskState.PENDING

    def test_unknown_status_is_pending(self):
        assert parse_task(make_task_dict(status="paused")).status is TaskState.PENDING

    def test_artifacts(self):
        task = parse_task(
            make_task_dict(
                artifacts=[
                    {"name": "report", "parts": [{"text": "r"}], "index": 0, "lastChunk": True}
                ]
            )
        )

        assert task.artifacts is not None
        assert task.artifacts[0].name == "report"
        assert task.artifacts[0].last_chunk is True


class TestClassifyResult:
    def test_status_means_task(self):
        assert isinstance(classify_result(make_task_dict()), Task)

    def test_role_means_message(self):
        assert isinstance(classify_result(make_message_dict()), Message)

    def test_status_wins_over_role(self):
        assert isinstance(classify_result({"id": "t", "status": "working", "role": "agent"}), Task)

    def test_unknown_shape(self):
        with pytest.raises(A2AProtocolError) as exc_info:
            classify_result({"foo": "bar"}, status_code=200)

        assert str(exc_info.value) == 'Unknown response type: {"foo":"bar"}'
        assert exc_info.value.status_code == 200

    def test_unknown_shape_excerpt_truncated(self):
        with pytest.raises(A2AProtocolError) as exc_info:
            classify_result({"blob": "x" * 1000})

        assert len(exc_info.value.excerpt) == 200

    def test_non_object(self):
        with pytest.raises(A2AProtocolError, match="Unknown response type: \\[1\\]"):
            classify_result([1])


class TestClassifyStreamEvent:
    def test_status(self):
        event = classify_stream_event(status_frame("t-1", "working", final=True))

        assert isinstance(event, StatusEvent)
        assert event.task_id == "t-1"
        assert event.status is TaskState.WORKING
        assert event.final is True

    def test_status_with_message(self):
        frame = status_frame()
        frame["result"]["message"] = make_message_dict("thinking")

        event = classify_stream_event(frame)

        assert isinstance(event, StatusEvent)
        assert event.message is not None
        assert event.message.text() == "thinking"

    def test_artifact(self):
        event = classify_stream_event(artifact_frame("t-1", "chunk"))

        assert isinstance(event, ArtifactEvent)
        assert event.artifact.parts == [TextPart(text="chunk")]

    def test_task_snapshot(self):
        event = classify_stream_event(
            {"result": make_task_dict(history=[make_message_dict("x")])}
        )

        assert isinstance(event, TaskSnapshotEvent)
        assert event.task.id == "task-1"

    def test_message(self):
        event = classify_stream_event(message_frame("Hi"))

        assert isinstance(event, MessageEvent)
        assert event.message.text() == "Hi"

    def test_status_precedes_artifact(self):
        frame = {"result": {"taskId": "t", "status": "working", "artifact": {"parts": []}}}

        assert isinstance(classify_stream_event(frame), StatusEvent)

    def test_artifact_precedes_message(self):
        frame = {"result": {"taskId": "t", "artifact": {}, "role": "agent", "parts": []}}

        assert isinstance(classify_stream_event(frame), ArtifactEvent)

    def test_snapshot_precedes_message(self):
        frame = {"result": {"id": "t", "status": "working", "history": [], "role": "agent", "parts": []}}

        assert isinstance(classify_stream_event(frame), TaskSnapshotEvent)

    @pytest.mark.parametrize(
        "frame",
        [
            None,
            [],
            {"jsonrpc": "2.0", "id": "1"},
            {"result": {}},
            {"result": "text"},
            {"result": {"status": "working"}},
            {"error": {"code": -32000, "message": "x"}},
        ],
    )
    def test_unclassifiable(self, frame):
        assert classify_stream_event(frame) is None


def test_compact_json():
    assert compact_json({"a": [1, 2], "b": "é"}) == '{"a":[1,2],"b":"é"}'
