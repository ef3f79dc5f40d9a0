"""Session and RPC recording for A2A conversations.

Maps observed messages onto the storage model: a session per conversation,
an RPC-call record per request/response pair, and an event row per message.
One recorder serves one conversation at a time; use separate instances for
concurrent conversations.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from .exceptions import A2ARpcStateError
from .parsing import compact_json
from .store import ActorMeta, EventStore
from .types import Message, Task

logger = logging.getLogger(__name__)

SUMMARY_LENGTH = 50

RPC_ERROR_CODE = 500


def summarize_message(message: Message) -> str:
    """Message text cut to 50 characters, with ``...`` appended when cut."""
    text = message.text()
    if len(text) > SUMMARY_LENGTH:
        return text[:SUMMARY_LENGTH] + "..."
    return text


@dataclass
class ConversationState:
    """The conversation a recorder is currently attached to."""

    session_id: str | None = None
    context_id: str | None = None


class SessionRecorder:
    """Records A2A traffic for one agent target into an EventStore.

    Completion outcomes are tracked per RPC call so a call closes exactly
    once; only the outcomes of the current session are kept.

    Example:
        ```python
        recorder = SessionRecorder(InMemoryEventStore(), "weather-agent")
        recorder.record_message("ctx-1", outgoing, is_request=True, rpc_id=result.rpc_id)
        recorder.record_message("ctx-1", result.message, is_request=False, rpc_id=result.rpc_id)
        ```
    """

    def __init__(self, store: EventStore, target_id: str) -> None:
        self._store = store
        self._target_id = target_id
        self._state = ConversationState()
        self._outcomes: dict[tuple[str, str], tuple[bool, int | None]] = {}

    @property
    def state(self) -> ConversationState:
        return self._state

    def get_or_create_session(self, context_id: str | None = None) -> str:
        """Return the session for ``context_id``, creating one if needed.

        Only the most recently used conversation is remembered. Without a
        ``context_id`` a new session is always created.
        """
        state = self._state
        if context_id and state.context_id == context_id and state.session_id:
            return state.session_id

        if context_id:
            existing = self._find_session_by_context_id(context_id)
            if existing:
                self._switch_to(existing, context_id)
                return existing

        session = self._store.create_session(
            self._target_id,
            ActorMeta(
                actor_id=self._target_id,
                actor_kind="agent",
                actor_label=self._target_id,
            ),
        )
        self._switch_to(session.session_id, context_id or None)
        logger.debug(
            "Recording %s (context %s) in session %s",
            self._target_id,
            context_id,
            session.session_id,
        )
        return session.session_id

    def _switch_to(self, session_id: str, context_id: str | None) -> None:
        # earlier sessions can no longer be reached, so forget their outcomes
        self._outcomes = {
            key: outcome for key, outcome in self._outcomes.items() if key[0] == session_id
        }
        self._state = ConversationState(session_id, context_id)

    def record_message(
        self,
        context_id: str | None,
        message: Message,
        is_request: bool,
        rpc_id: str | None = None,
    ) -> None:
        """Record one sent (``is_request``) or received message.

        A request with an ``rpc_id`` opens a ``message/send`` RPC call; a
        response with an ``rpc_id`` completes it successfully.
        """
        session_id = self.get_or_create_session(context_id)
        self._record(session_id, message, is_request, rpc_id)

    def record_task(
        self,
        context_id: str | None,
        task: Task,
        rpc_id: str | None = None,
    ) -> None:
        """Record every message in a task's history as a response.

        User messages replayed in the history are stored without an RPC id
        so a single call is not counted once per message.
        """
        session_id = self.get_or_create_session(context_id)
        if rpc_id and any(m.role != "user" for m in task.messages):
            self._check_completion(session_id, rpc_id, True)
        for message in task.messages:
            linked = None if message.role == "user" else rpc_id
            self._record(session_id, message, False, linked)

    def record_error(self, context_id: str | None, rpc_id: str, message: str) -> None:
        """Complete an RPC call as failed with error code 500.

        ``message`` is logged; the store has no column for it.
        """
        session_id = self.get_or_create_session(context_id)
        logger.warning("RPC %s to %s failed: %s", rpc_id, self._target_id, message)
        self._complete_rpc(session_id, rpc_id, False, RPC_ERROR_CODE)

    def _record(
        self,
        session_id: str,
        message: Message,
        is_request: bool,
        rpc_id: str | None,
    ) -> None:
        if not is_request and rpc_id:
            self._check_completion(session_id, rpc_id, True)
        if is_request and rpc_id:
            self._store.save_rpc_call(session_id, rpc_id, "message/send")

        wire = message.to_wire()
        if is_request:
            raw_json = compact_json(wire)
        else:
            raw_json = compact_json({"jsonrpc": "2.0", "id": rpc_id, "result": wire})

        self._store.save_event(
            session_id,
            "client_to_server" if is_request else "server_to_client",
            "request" if is_request else "response",
            rpc_id=rpc_id,
            raw_json=raw_json,
            summary=summarize_message(message),
            protocol="a2a",
        )

        if not is_request and rpc_id:
            self._complete_rpc(session_id, rpc_id, True)

    def _complete_rpc(
        self,
        session_id: str,
        rpc_id: str,
        success: bool,
        error_code: int | None = None,
    ) -> None:
        if self._check_completion(session_id, rpc_id, success, error_code):
            return
        self._store.complete_rpc_call(session_id, rpc_id, success, error_code)
        self._outcomes[(session_id, rpc_id)] = (success, error_code)

    def _check_completion(
        self,
        session_id: str,
        rpc_id: str,
        success: bool,
        error_code: int | None = None,
    ) -> bool:
        """Return True if the call already closed with this outcome.

        Raises:
            A2ARpcStateError: If it closed with a different outcome.
        """
        previous = self._outcomes.get((session_id, rpc_id))
        if previous is None:
            return False
        if previous != (success, error_code):
            raise A2ARpcStateError(
                f"RPC call {rpc_id} already completed with success={previous[0]}"
            )
        return True

    def _find_session_by_context_id(self, context_id: str) -> str | None:
        # TODO: persist the contextId on the session so a new recorder can resume it
        return None
