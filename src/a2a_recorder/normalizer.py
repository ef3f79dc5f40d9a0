"""Protocol-agnostic view of recorded A2A payloads.

Recorded events keep their raw JSON; this module derives a small normalized
form from it so status updates, artifacts and messages can be listed side by
side regardless of which wire shape carried them.
"""

from __future__ import annotations

from collections.abc import Mapping
from datetime import UTC, datetime
from typing import Any, Literal

from pydantic import BaseModel, Field

_ASSISTANT_ROLES = frozenset({"assistant", "agent"})


class TextContent(BaseModel):
    type: Literal["text"] = "text"
    text: str


class StatusContent(BaseModel):
    type: Literal["status"] = "status"
    status: str
    message: str = ""


class ArtifactContent(BaseModel):
    type: Literal["artifact"] = "artifact"
    name: str | None = None
    mime_type: str | None = None
    data: Any = None


class NormalizedEvent(BaseModel):
    """One recorded payload, reduced to actor, type and content."""

    version: Literal[1] = 1
    protocol: Literal["a2a"] = "a2a"
    type: Literal["message", "status", "artifact"]
    timestamp: str = Field(default_factory=lambda: datetime.now(UTC).isoformat())
    actor: Literal["user", "assistant", "system"]
    content: TextContent | StatusContent | ArtifactContent


def _message_text(message: Any) -> str:
    if not isinstance(message, Mapping):
        return ""
    parts = message.get("parts")
    if not isinstance(parts, list):
        return ""
    return "".join(
        p["text"] for p in parts if isinstance(p, Mapping) and isinstance(p.get("text"), str)
    )


def _first_part_value(parts: Any, key: str) -> Any:
    if not isinstance(parts, list):
        return None
    for part in parts:
        if isinstance(part, Mapping) and key in part:
            return part[key]
    return None


def normalize_a2a_event(raw: Any) -> NormalizedEvent | None:
    """Normalize a recorded A2A payload.

    Accepts a JSON-RPC response envelope (``{"result": ...}``) or a bare
    message object, as written by the session recorder for responses and
    requests respectively.

    Returns:
        The normalized event, or None if the payload is not a status
        update, an artifact update or a message.
    """
    if not isinstance(raw, Mapping):
        return None

    result = raw.get("result")
    if not isinstance(result, Mapping):
        result = raw

    if "status" in result and "taskId" in result:
        return NormalizedEvent(
            type="status",
            actor="system",
            content=StatusContent(
                status=str(result["status"]),
                message=_message_text(result.get("message")),
            ),
        )

    if "artifact" in result:
        artifact = result["artifact"] if isinstance(result["artifact"], Mapping) else {}
        parts = artifact.get("parts")
        mime_type = _first_part_value(parts, "mimeType")
        return NormalizedEvent(
            type="artifact",
            actor="assistant",
            content=ArtifactContent(
                name=str(artifact["name"]) if artifact.get("name") is not None else None,
                mime_type=str(mime_type) if mime_type is not None else None,
                data=_first_part_value(parts, "data"),
            ),
        )

    if "role" in result and "parts" in result:
        return NormalizedEvent(
            type="message",
            actor="assistant" if result["role"] in _ASSISTANT_ROLES else "user",
            content=TextContent(text=_message_text(result)),
        )

    return None
