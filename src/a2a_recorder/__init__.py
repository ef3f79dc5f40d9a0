"""A2A Recorder: a recording client for the agent-to-agent protocol.

A2AClient speaks JSON-RPC 2.0 (unary and SSE streaming) to remote agents;
SessionRecorder turns the observed traffic into session, RPC-call and event
records.
"""

from .agent_card import fetch_agent_card, normalize_agent_card_url
from .auth import AuthConfig, TLSCertificates
from .client import A2AClient
from .config import (
    AgentTargetConfig,
    ClientSettings,
    TargetAuthConfig,
    parse_agent_config,
)
from .exceptions import (
    A2AConnectionError,
    A2AProtocolError,
    A2ARecorderError,
    A2ARpcStateError,
    A2ASizeLimitError,
    A2ATimeoutError,
    A2AValidationError,
)
from .guard import is_private_url, validate_url
from .normalizer import NormalizedEvent, normalize_a2a_event
from .recorder import SessionRecorder
from .resolver import (
    AgentTarget,
    CachedAgentCard,
    InMemoryAgentCardCache,
    InMemoryTargetRegistry,
    ResolveClientResult,
    resolve_client,
)
from .store import EventStore, InMemoryEventStore
from .types import (
    AgentCard,
    Artifact,
    ArtifactEvent,
    CancelTaskResult,
    DataPart,
    FetchAgentCardResult,
    GetTaskResult,
    ListTasksParams,
    ListTasksResponse,
    ListTasksResult,
    Message,
    MessageEvent,
    SendMessageResult,
    StatusEvent,
    StreamMessageResult,
    Task,
    TaskSnapshotEvent,
    TaskState,
    TextPart,
)

__all__ = [
    "A2AClient",
    "A2AConnectionError",
    "A2AProtocolError",
    "A2ARecorderError",
    "A2ARpcStateError",
    "A2ASizeLimitError",
    "A2ATimeoutError",
    "A2AValidationError",
    "AgentCard",
    "AgentTarget",
    "AgentTargetConfig",
    "Artifact",
    "ArtifactEvent",
    "AuthConfig",
    "CachedAgentCard",
    "CancelTaskResult",
    "ClientSettings",
    "DataPart",
    "EventStore",
    "FetchAgentCardResult",
    "GetTaskResult",
    "InMemoryAgentCardCache",
    "InMemoryEventStore",
    "InMemoryTargetRegistry",
    "ListTasksParams",
    "ListTasksResponse",
    "ListTasksResult",
    "Message",
    "MessageEvent",
    "NormalizedEvent",
    "ResolveClientResult",
    "SendMessageResult",
    "SessionRecorder",
    "StatusEvent",
    "StreamMessageResult",
    "TLSCertificates",
    "TargetAuthConfig",
    "Task",
    "TaskSnapshotEvent",
    "TaskState",
    "TextPart",
    "fetch_agent_card",
    "is_private_url",
    "normalize_a2a_event",
    "normalize_agent_card_url",
    "parse_agent_config",
    "resolve_client",
    "validate_url",
]
