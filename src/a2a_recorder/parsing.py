"""Tolerant parsers for A2A wire payloads.

Agents in the wild send loosely shaped JSON, so these parsers coerce rather
than validate: a missing or unknown task status becomes ``pending``, a
malformed part becomes an empty TextPart. The two classifiers decide what a
``result`` object is purely from which fields are present, in a fixed order.
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from typing import Any

from .exceptions import A2AProtocolError, excerpt
from .types import (
    Artifact,
    ArtifactEvent,
    DataPart,
    Message,
    MessageEvent,
    StatusEvent,
    StreamEvent,
    Task,
    TaskSnapshotEvent,
    TaskState,
    TextPart,
)

_KNOWN_STATES = frozenset(state.value for state in TaskState)

_ASSISTANT_ROLES = frozenset({"assistant", "agent"})


def _opt_str(value: Any) -> str | None:
    return str(value) if value else None


def compact_json(value: Any) -> str:
    """Serialize without whitespace, the way payload excerpts are shown."""
    return json.dumps(value, separators=(",", ":"), ensure_ascii=False)


def parse_task_state(value: Any) -> TaskState:
    """Coerce a wire status to a TaskState. Never raises."""
    if isinstance(value, str) and value in _KNOWN_STATES:
        return TaskState(value)
    return TaskState.PENDING


def parse_part(data: Any) -> TextPart | DataPart:
    if not isinstance(data, Mapping):
        return TextPart(text="")

    text = data.get("text")
    if isinstance(text, str):
        return TextPart(text=text)
    if "data" in data:
        return DataPart(
            data=data["data"],
            mime_type=str(data.get("mimeType") or "application/json"),
        )
    if text is not None:
        return TextPart(text=str(text))
    return TextPart(text="")


def _parse_parts(data: Any) -> list[TextPart | DataPart]:
    if not isinstance(data, list):
        return []
    return [parse_part(p) for p in data]


def parse_message(data: Any) -> Message:
    if not isinstance(data, Mapping):
        return Message(role="user", parts=[])

    metadata = data.get("metadata")
    reference_ids = data.get("referenceTaskIds")
    return Message(
        role="assistant" if data.get("role") in _ASSISTANT_ROLES else "user",
        parts=_parse_parts(data.get("parts")),
        message_id=_opt_str(data.get("messageId")),
        context_id=_opt_str(data.get("contextId")),
        task_id=_opt_str(data.get("taskId")),
        reference_task_ids=(
            [str(i) for i in reference_ids] if isinstance(reference_ids, list) else None
        ),
        metadata=dict(metadata) if isinstance(metadata, Mapping) else None,
    )


def parse_artifact(data: Any) -> Artifact:
    if not isinstance(data, Mapping):
        data = {}

    index = data.get("index")
    return Artifact(
        name=_opt_str(data.get("name")),
        description=_opt_str(data.get("description")),
        parts=_parse_parts(data.get("parts")),
        index=index if isinstance(index, int) and not isinstance(index, bool) else None,
        append=bool(data.get("append")),
        last_chunk=bool(data.get("lastChunk")),
    )


def parse_task(data: Mapping[str, Any]) -> Task:
    """Parse a Task, taking messages from ``history`` or legacy ``messages``."""
    history = data.get("history")
    if not isinstance(history, list):
        history = data.get("messages")
    if not isinstance(history, list):
        history = []

    artifacts = data.get("artifacts")
    return Task(
        id=str(data.get("id") or ""),
        status=parse_task_state(data.get("status")),
        messages=[parse_message(m) for m in history],
        artifacts=(
            [parse_artifact(a) for a in artifacts] if isinstance(artifacts, list) else None
        ),
        context_id=_opt_str(data.get("contextId")),
        created_at=_opt_str(data.get("createdAt")),
        updated_at=_opt_str(data.get("updatedAt")),
    )


def classify_result(result: Any, *, status_code: int | None = None) -> Task | Message:
    """Decide whether a ``message/send`` result is a Task or a Message.

    A ``status`` field means Task; otherwise a ``role`` field means Message.

    Raises:
        A2AProtocolError: If the result is neither.
    """
    if isinstance(result, Mapping):
        if "status" in result:
            return parse_task(result)
        if "role" in result:
            return parse_message(result)

    shown = excerpt(compact_json(result))
    raise A2AProtocolError(
        f"Unknown response type: {shown}",
        excerpt=shown,
        status_code=status_code,
    )


def classify_stream_event(frame: Any) -> StreamEvent | None:
    """Classify one decoded SSE frame (a JSON-RPC response object).

    Precedence is status, artifact, task snapshot, message. Frames without
    a ``result`` object, or whose result matches none of the shapes,
    classify as None.
    """
    if not isinstance(frame, Mapping):
        return None
    result = frame.get("result")
    if not isinstance(result, Mapping) or not result:
        return None

    if "status" in result and "taskId" in result:
        return StatusEvent(
            task_id=str(result.get("taskId") or ""),
            context_id=_opt_str(result.get("contextId")),
            status=parse_task_state(result.get("status")),
            message=parse_message(result["message"]) if result.get("message") else None,
            final=bool(result.get("final")),
        )

    if "artifact" in result and "taskId" in result:
        return ArtifactEvent(
            task_id=str(result.get("taskId") or ""),
            context_id=_opt_str(result.get("contextId")),
            artifact=parse_artifact(result.get("artifact")),
        )

    if "id" in result and "status" in result and ("messages" in result or "history" in result):
        return TaskSnapshotEvent(task=parse_task(result))

    if "role" in result and "parts" in result:
        return MessageEvent(message=parse_message(result))

    return None
