"""Type definitions for a2a-recorder.

Wire-facing models use camelCase aliases so they can be validated from and
dumped to A2A JSON directly; Python code uses the snake_case field names.
"""

from __future__ import annotations

from enum import StrEnum
from typing import Any, Literal, Self

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    NonNegativeInt,
    StrictBool,
    StrictStr,
)
from pydantic.alias_generators import to_camel

from .exceptions import A2ARecorderError, CancelSource


class _WireModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_wire(self) -> dict[str, Any]:
        """Dump to the camelCase JSON shape used on the wire."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


# ---------------------------------------------------------------------------
# Agent card
# ---------------------------------------------------------------------------


class _CardModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, frozen=True
    )


class AgentProvider(_CardModel):
    organization: StrictStr | None = None
    url: StrictStr | None = None


class AgentCapabilities(_CardModel):
    streaming: StrictBool | None = None
    push_notifications: StrictBool | None = None
    state_transition_history: StrictBool | None = None


class AgentAuthentication(_CardModel):
    schemes: list[StrictStr] = Field(default_factory=list)
    credentials: StrictStr | None = None


class AgentSkill(_CardModel):
    id: StrictStr
    name: StrictStr
    description: StrictStr | None = None
    tags: list[StrictStr] | None = None
    examples: list[StrictStr] | None = None
    input_modes: list[StrictStr] | None = None
    output_modes: list[StrictStr] | None = None


class AgentCard(_CardModel):
    """Identity and capabilities of a remote agent.

    Served at ``/.well-known/agent.json``. ``name``, ``url`` and ``version``
    are required; everything else is optional. Instances are immutable.
    """

    name: StrictStr
    url: StrictStr
    version: StrictStr
    description: StrictStr | None = None
    provider: AgentProvider | None = None
    documentation_url: StrictStr | None = None
    capabilities: AgentCapabilities | None = None
    authentication: AgentAuthentication | None = None
    default_input_modes: list[StrictStr] | None = None
    default_output_modes: list[StrictStr] | None = None
    skills: list[AgentSkill] | None = None


# ---------------------------------------------------------------------------
# Messages, tasks, artifacts
# ---------------------------------------------------------------------------


class TaskState(StrEnum):
    """The seven task lifecycle states. Anything else on the wire is PENDING."""

    PENDING = "pending"
    WORKING = "working"
    INPUT_REQUIRED = "input_required"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELED = "canceled"
    REJECTED = "rejected"


class TextPart(_WireModel):
    text: str


class DataPart(_WireModel):
    data: Any = None
    mime_type: str = "application/json"


type Part = TextPart | DataPart


class Message(_WireModel):
    """A single conversational turn.

    ``role`` is normalized: the protocol's ``agent`` role is stored as
    ``assistant``.
    """

    role: Literal["user", "assistant"]
    parts: list[TextPart | DataPart] = Field(default_factory=list)
    message_id: str | None = None
    context_id: str | None = None
    task_id: str | None = None
    reference_task_ids: list[str] | None = None
    metadata: dict[str, Any] | None = None

    def text(self) -> str:
        """Concatenated text of all TextParts; DataParts contribute nothing."""
        return "".join(p.text for p in self.parts if isinstance(p, TextPart))


class Artifact(_WireModel):
    name: str | None = None
    description: str | None = None
    parts: list[TextPart | DataPart] = Field(default_factory=list)
    index: int | None = None
    append: bool = False
    last_chunk: bool = False


class Task(_WireModel):
    """Unit of long-running work on the agent.

    ``messages`` holds the conversation history, read from the wire's
    ``history`` field or the legacy ``messages`` field.
    """

    id: str
    status: TaskState = TaskState.PENDING
    messages: list[Message] = Field(default_factory=list)
    artifacts: list[Artifact] | None = None
    context_id: str | None = None
    created_at: str | None = None
    updated_at: str | None = None


# ---------------------------------------------------------------------------
# Stream events
# ---------------------------------------------------------------------------


class StatusEvent(BaseModel):
    kind: Literal["status"] = "status"
    task_id: str
    context_id: str | None = None
    status: TaskState
    final: bool = False
    message: Message | None = None


class ArtifactEvent(BaseModel):
    kind: Literal["artifact"] = "artifact"
    task_id: str
    context_id: str | None = None
    artifact: Artifact


class MessageEvent(BaseModel):
    kind: Literal["message"] = "message"
    message: Message


class TaskSnapshotEvent(BaseModel):
    kind: Literal["task"] = "task"
    task: Task


type StreamEvent = StatusEvent | ArtifactEvent | MessageEvent | TaskSnapshotEvent


# ---------------------------------------------------------------------------
# tasks/list
# ---------------------------------------------------------------------------


class ListTasksParams(_WireModel):
    context_id: str | None = None
    status: TaskState | None = None
    page_size: NonNegativeInt | None = None
    page_token: str | None = None
    include_artifacts: bool | None = None


class ListTasksResponse(BaseModel):
    tasks: list[Task] = Field(default_factory=list)
    next_page_token: str = ""
    page_size: int = 50
    total_size: int | None = None


# ---------------------------------------------------------------------------
# Operation results
# ---------------------------------------------------------------------------


class OperationResult(BaseModel):
    """Outcome of a client operation.

    Expected failures never raise; they come back with ``ok=False``, a
    human-readable ``error`` and the typed exception in ``exception``.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    ok: bool
    error: str | None = None
    status_code: int | None = None
    exception: A2ARecorderError | None = Field(default=None, exclude=True, repr=False)

    @classmethod
    def failure(cls, exc: A2ARecorderError, **fields: Any) -> Self:
        """Build an ``ok=False`` result from a typed exception."""
        return cls(
            ok=False,
            error=exc.message,
            status_code=exc.status_code,
            exception=exc,
            **fields,
        )

    def raise_for_error(self) -> None:
        """Re-raise the stored exception if this result is a failure."""
        if self.exception is not None:
            raise self.exception


class FetchAgentCardResult(OperationResult):
    agent_card: AgentCard | None = None
    hash: str | None = None  # SHA-256 hex of the raw body


class SendMessageResult(OperationResult):
    rpc_id: str | None = None
    task: Task | None = None
    message: Message | None = None


class GetTaskResult(OperationResult):
    rpc_id: str | None = None
    task: Task | None = None


class CancelTaskResult(OperationResult):
    rpc_id: str | None = None
    task: Task | None = None


class ListTasksResult(OperationResult):
    rpc_id: str | None = None
    response: ListTasksResponse | None = None


class StreamMessageResult(OperationResult):
    rpc_id: str | None = None
    task_id: str | None = None
    cancel_source: CancelSource | None = None
