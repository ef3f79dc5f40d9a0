"""Persistence interface consumed by the session recorder.

The recorder only needs four single-row operations. ``InMemoryEventStore``
implements them for tests and for callers that keep recordings in process.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Literal, Protocol
from uuid import uuid4

from .normalizer import NormalizedEvent, normalize_a2a_event

logger = logging.getLogger(__name__)

type Direction = Literal["client_to_server", "server_to_client"]
type EventKind = Literal["request", "response"]


def _now() -> str:
    return datetime.now(UTC).isoformat()


@dataclass(frozen=True)
class ActorMeta:
    actor_id: str
    actor_kind: str
    actor_label: str


@dataclass
class SessionRecord:
    session_id: str
    target_id: str
    actor: ActorMeta | None = None
    context_id: str | None = None
    started_at: str = field(default_factory=_now)


@dataclass
class RpcCallRecord:
    """One JSON-RPC exchange; ``success`` stays None until it completes."""

    session_id: str
    rpc_id: str
    method: str
    request_ts: str = field(default_factory=_now)
    response_ts: str | None = None
    success: bool | None = None
    error_code: int | None = None

    @property
    def is_open(self) -> bool:
        return self.response_ts is None


@dataclass
class EventRecord:
    event_id: str
    session_id: str
    direction: Direction
    kind: EventKind
    rpc_id: str | None = None
    raw_json: str | None = None
    summary: str | None = None
    protocol: str | None = None
    normalized: NormalizedEvent | None = None
    ts: str = field(default_factory=_now)


class EventStore(Protocol):
    """Storage collaborator of :class:`~a2a_recorder.recorder.SessionRecorder`."""

    def create_session(self, target_id: str, actor: ActorMeta) -> SessionRecord: ...

    def save_rpc_call(self, session_id: str, rpc_id: str, method: str) -> RpcCallRecord: ...

    def complete_rpc_call(
        self,
        session_id: str,
        rpc_id: str,
        success: bool,
        error_code: int | None = None,
    ) -> None: ...

    def save_event(
        self,
        session_id: str,
        direction: Direction,
        kind: EventKind,
        *,
        rpc_id: str | None = None,
        raw_json: str | None = None,
        summary: str | None = None,
        protocol: str | None = None,
    ) -> EventRecord: ...


class InMemoryEventStore:
    """Event store backed by plain dicts and lists.

    Events saved with ``protocol="a2a"`` get a normalized view attached when
    their raw JSON can be normalized.
    """

    def __init__(self) -> None:
        self.sessions: dict[str, SessionRecord] = {}
        self.rpc_calls: dict[tuple[str, str], RpcCallRecord] = {}
        self.events: list[EventRecord] = []

    def create_session(self, target_id: str, actor: ActorMeta) -> SessionRecord:
        session = SessionRecord(session_id=str(uuid4()), target_id=target_id, actor=actor)
        self.sessions[session.session_id] = session
        logger.debug("Created session %s for %s", session.session_id, target_id)
        return session

    def save_rpc_call(self, session_id: str, rpc_id: str, method: str) -> RpcCallRecord:
        record = RpcCallRecord(session_id=session_id, rpc_id=rpc_id, method=method)
        self.rpc_calls[(session_id, rpc_id)] = record
        return record

    def complete_rpc_call(
        self,
        session_id: str,
        rpc_id: str,
        success: bool,
        error_code: int | None = None,
    ) -> None:
        record = self.rpc_calls.get((session_id, rpc_id))
        if record is None:
            logger.warning("No RPC call %s in session %s to complete", rpc_id, session_id)
            return
        record.response_ts = _now()
        record.success = success
        record.error_code = error_code

    def save_event(
        self,
        session_id: str,
        direction: Direction,
        kind: EventKind,
        *,
        rpc_id: str | None = None,
        raw_json: str | None = None,
        summary: str | None = None,
        protocol: str | None = None,
    ) -> EventRecord:
        normalized = None
        if protocol == "a2a" and raw_json:
            try:
                normalized = normalize_a2a_event(json.loads(raw_json))
            except ValueError as e:
                logger.debug("Event payload not normalized: %s", e)

        event = EventRecord(
            event_id=str(uuid4()),
            session_id=session_id,
            direction=direction,
            kind=kind,
            rpc_id=rpc_id,
            raw_json=raw_json,
            summary=summary,
            protocol=protocol,
            normalized=normalized,
        )
        self.events.append(event)
        return event

    # -- Queries --------------------------------------------------------------

    def sessions_for_target(self, target_id: str) -> list[SessionRecord]:
        return [s for s in self.sessions.values() if s.target_id == target_id]

    def rpc_calls_for_session(self, session_id: str) -> list[RpcCallRecord]:
        return [r for r in self.rpc_calls.values() if r.session_id == session_id]

    def events_for_session(self, session_id: str) -> list[EventRecord]:
        return [e for e in self.events if e.session_id == session_id]
