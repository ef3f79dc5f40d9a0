"""A2A protocol client.

Wraps the unary JSON-RPC caller and the SSE reader behind one object bound
to an agent card. Every public operation returns a result object; expected
failures are reported with ``ok=False`` instead of being raised.
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any, Self
from uuid import uuid4

import httpx

from .agent_card import fetch_agent_card
from .auth import AuthConfig
from .config import ClientSettings
from .exceptions import (
    A2AConnectionError,
    A2AProtocolError,
    A2ARecorderError,
    A2ATimeoutError,
    A2AValidationError,
)
from .guard import PRIVATE_URL_ERROR, is_private_url, validate_url
from .parsing import classify_result, parse_task
from .rpc import JsonRpcCaller, timeout_message
from .stream import StreamHandlers, read_event_stream, run_with_cancellation
from .types import (
    AgentCard,
    CancelTaskResult,
    GetTaskResult,
    ListTasksParams,
    ListTasksResponse,
    ListTasksResult,
    Message,
    SendMessageResult,
    StreamMessageResult,
    Task,
    TextPart,
)

if TYPE_CHECKING:
    from types import TracebackType

    from .stream import Callback
    from .types import ArtifactEvent, StatusEvent

logger = logging.getLogger(__name__)

# Public input type for send_message / stream_message
type A2AInput = str | Message


def _build_message(message: A2AInput) -> Message:
    """Turn caller input into an outgoing user message with a message id."""
    if isinstance(message, str):
        return Message(
            role="user",
            parts=[TextPart(text=message)],
            message_id=str(uuid4()),
        )
    if message.message_id is None:
        return message.model_copy(update={"message_id": str(uuid4())})
    return message


def _parse_list_response(result: Mapping[str, Any]) -> ListTasksResponse:
    tasks = result.get("tasks")
    page_size = result.get("pageSize")
    total_size = result.get("totalSize")
    return ListTasksResponse(
        tasks=[parse_task(t) for t in tasks if isinstance(t, Mapping)]
        if isinstance(tasks, list)
        else [],
        next_page_token=str(result["nextPageToken"]) if result.get("nextPageToken") else "",
        page_size=page_size if isinstance(page_size, int) else 50,
        total_size=total_size if isinstance(total_size, int) else None,
    )


class A2AClient:
    """Client for one A2A agent.

    Requests go to ``agent_card.url`` (trailing slash removed); streaming
    requests go to ``<url>/message/stream``. An ``httpx.AsyncClient`` is
    created on first use unless one is passed in; only an owned client is
    closed by :meth:`close`.

    Example:
        ```python
        async with await A2AClient.from_agent_url("https://agent.example") as client:
            result = await client.send_message("Hello")
            if result.ok and result.task:
                print(result.task.status)
        ```
    """

    def __init__(
        self,
        agent_card: AgentCard,
        *,
        headers: Mapping[str, str] | None = None,
        auth: AuthConfig | None = None,
        allow_local: bool = False,
        http_client: httpx.AsyncClient | None = None,
        settings: ClientSettings | None = None,
    ) -> None:
        """Bind a client to an agent.

        Raises:
            A2AValidationError: If the agent URL is malformed, or private or
                local and ``allow_local`` is not set.
        """
        self._agent_card = agent_card
        self._base_url = agent_card.url.removesuffix("/")
        self._allow_local = allow_local
        self._settings = settings or ClientSettings()
        self._auth = auth

        validate_url(self._base_url)
        if not allow_local and is_private_url(self._base_url):
            raise A2AValidationError(PRIVATE_URL_ERROR)

        self._headers: dict[str, str] = dict(headers or {})
        if auth is not None:
            self._headers.update(auth.build_headers())

        self._http_client = http_client
        self._owns_client = http_client is None
        self._caller: JsonRpcCaller | None = None

    @classmethod
    async def from_agent_url(
        cls,
        url: str,
        *,
        headers: Mapping[str, str] | None = None,
        auth: AuthConfig | None = None,
        allow_local: bool = False,
        http_client: httpx.AsyncClient | None = None,
        settings: ClientSettings | None = None,
    ) -> Self:
        """Discover an agent by its URL and build a client for it.

        Raises:
            A2ARecorderError: If the agent card cannot be fetched or is
                invalid, or the card's URL is not allowed.
        """
        settings = settings or ClientSettings()
        card_headers = dict(headers or {})
        if auth is not None:
            card_headers.update(auth.build_headers())

        result = await fetch_agent_card(
            url,
            timeout=settings.card_timeout,
            headers=card_headers,
            allow_local=allow_local,
            http_client=http_client,
            max_size=settings.max_response_size,
        )
        result.raise_for_error()
        assert result.agent_card is not None

        return cls(
            result.agent_card,
            headers=headers,
            auth=auth,
            allow_local=allow_local,
            http_client=http_client,
            settings=settings,
        )

    @property
    def agent_card(self) -> AgentCard:
        return self._agent_card

    @property
    def base_url(self) -> str:
        return self._base_url

    # -- Lifecycle ------------------------------------------------------------

    def _get_http_client(self) -> httpx.AsyncClient:
        if self._http_client is None:
            ssl_context = self._auth.build_ssl_context() if self._auth else None
            # Deadlines are enforced per call, not by httpx
            self._http_client = httpx.AsyncClient(
                timeout=None,
                verify=ssl_context if ssl_context is not None else True,
            )
        return self._http_client

    def _get_caller(self) -> JsonRpcCaller:
        if self._caller is None:
            self._caller = JsonRpcCaller(
                self._base_url,
                self._get_http_client(),
                headers=self._headers,
                allow_local=self._allow_local,
                max_response_size=self._settings.max_response_size,
            )
        return self._caller

    async def close(self) -> None:
        """Close the HTTP client if this instance created it."""
        if self._owns_client and self._http_client is not None:
            await self._http_client.aclose()
            self._http_client = None
            self._caller = None

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.close()

    # -- Unary operations -----------------------------------------------------

    async def send_message(
        self,
        message: A2AInput,
        *,
        timeout: float | None = None,
        headers: Mapping[str, str] | None = None,
        blocking: bool = False,
    ) -> SendMessageResult:
        """Send a message via ``message/send``.

        Args:
            message: Text (sent as a single TextPart user message) or a
                prepared Message. A missing message id is generated.
            timeout: Deadline in seconds (default from settings, 30s).
            headers: Per-call headers; they win over instance headers.
            blocking: Ask the agent to answer only once the task settles.

        Returns:
            SendMessageResult with either ``task`` or ``message`` set.
        """
        outgoing = _build_message(message)
        params: dict[str, Any] = {"message": outgoing.to_wire()}
        if blocking:
            params["configuration"] = {"blocking": True}

        caller = self._get_caller()
        request = caller.build_request("message/send", params)
        rpc_id = request["id"]
        try:
            response = await caller.send(
                request,
                timeout=timeout or self._settings.request_timeout,
                headers=headers,
            )
            if response.result is None:
                raise A2AProtocolError(
                    "No result in response", status_code=response.status_code
                )
            outcome = classify_result(response.result, status_code=response.status_code)
        except A2ARecorderError as e:
            logger.warning("message/send to %s failed: %s", self._base_url, e.message)
            return SendMessageResult.failure(e, rpc_id=rpc_id)

        if isinstance(outcome, Task):
            return SendMessageResult(
                ok=True, rpc_id=rpc_id, task=outcome, status_code=response.status_code
            )
        return SendMessageResult(
            ok=True, rpc_id=rpc_id, message=outcome, status_code=response.status_code
        )

    async def get_task(
        self,
        task_id: str,
        *,
        history_length: int | None = None,
        timeout: float | None = None,
        headers: Mapping[str, str] | None = None,
    ) -> GetTaskResult:
        """Fetch a task's current state via ``tasks/get``."""
        params: dict[str, Any] = {"id": task_id}
        if history_length is not None:
            params["historyLength"] = history_length

        caller = self._get_caller()
        request = caller.build_request("tasks/get", params)
        rpc_id = request["id"]
        try:
            response = await caller.send(
                request,
                timeout=timeout or self._settings.request_timeout,
                headers=headers,
            )
            if not isinstance(response.result, Mapping) or not response.result:
                raise A2AProtocolError(
                    "No result in response", status_code=response.status_code
                )
        except A2ARecorderError as e:
            logger.warning("tasks/get %s failed: %s", task_id, e.message)
            return GetTaskResult.failure(e, rpc_id=rpc_id)

        return GetTaskResult(
            ok=True,
            rpc_id=rpc_id,
            task=parse_task(response.result),
            status_code=response.status_code,
        )

    async def list_tasks(
        self,
        params: ListTasksParams | None = None,
        *,
        timeout: float | None = None,
        headers: Mapping[str, str] | None = None,
    ) -> ListTasksResult:
        """List tasks via ``tasks/list``.

        Missing paging fields default to an empty ``next_page_token`` and a
        ``page_size`` of 50.
        """
        wire_params = params.to_wire() if params is not None else {}

        caller = self._get_caller()
        request = caller.build_request("tasks/list", wire_params)
        rpc_id = request["id"]
        try:
            response = await caller.send(
                request,
                timeout=timeout or self._settings.request_timeout,
                headers=headers,
            )
            if not isinstance(response.result, Mapping) or not response.result:
                raise A2AProtocolError(
                    "No result in response", status_code=response.status_code
                )
        except A2ARecorderError as e:
            logger.warning("tasks/list failed: %s", e.message)
            return ListTasksResult.failure(e, rpc_id=rpc_id)

        return ListTasksResult(
            ok=True,
            rpc_id=rpc_id,
            response=_parse_list_response(response.result),
            status_code=response.status_code,
        )

    async def cancel_task(
        self,
        task_id: str,
        *,
        timeout: float | None = None,
        headers: Mapping[str, str] | None = None,
    ) -> CancelTaskResult:
        """Request cancellation via ``tasks/cancel``.

        An agent may acknowledge without returning the task; that is still a
        success, with ``task`` unset.
        """
        caller = self._get_caller()
        request = caller.build_request("tasks/cancel", {"id": task_id})
        rpc_id = request["id"]
        try:
            response = await caller.send(
                request,
                timeout=timeout or self._settings.request_timeout,
                headers=headers,
            )
        except A2ARecorderError as e:
            logger.warning("tasks/cancel %s failed: %s", task_id, e.message)
            return CancelTaskResult.failure(e, rpc_id=rpc_id)

        task = None
        if isinstance(response.result, Mapping) and response.result:
            task = parse_task(response.result)
        return CancelTaskResult(
            ok=True, rpc_id=rpc_id, task=task, status_code=response.status_code
        )

    # -- Streaming ------------------------------------------------------------

    async def stream_message(
        self,
        message: A2AInput,
        *,
        timeout: float | None = None,
        headers: Mapping[str, str] | None = None,
        on_status: Callback[StatusEvent] | None = None,
        on_artifact: Callback[ArtifactEvent] | None = None,
        on_message: Callback[Message] | None = None,
        on_task: Callback[Task] | None = None,
        on_error: Callback[str] | None = None,
        cancel_event: asyncio.Event | None = None,
    ) -> StreamMessageResult:
        """Send a message via ``message/stream`` and dispatch its SSE events.

        Callbacks may be plain functions or coroutine functions. The call
        returns after a final status event or when the stream ends.

        Args:
            message: Text or a prepared Message.
            timeout: Deadline for the whole stream in seconds (default 60s).
            headers: Per-call headers.
            on_status: Called for each task status update.
            on_artifact: Called for each artifact update.
            on_message: Called for each standalone message.
            on_task: Called for each full task snapshot.
            on_error: Called with a description of each unusable frame.
            cancel_event: Setting this event aborts the stream.

        Returns:
            StreamMessageResult carrying the last task id seen. When the
            stream was cut short, ``cancel_source`` tells whether the deadline
            or ``cancel_event`` fired.
        """
        timeout = timeout or self._settings.stream_timeout
        caller = self._get_caller()
        outgoing = _build_message(message)
        request = caller.build_request("message/stream", {"message": outgoing.to_wire()})
        rpc_id = request["id"]
        handlers = StreamHandlers(
            on_status=on_status,
            on_artifact=on_artifact,
            on_message=on_message,
            on_task=on_task,
            on_error=on_error,
        )

        try:
            caller.check_target()
            task_id = await run_with_cancellation(
                self._post_stream(caller, request, headers, handlers, timeout),
                timeout=timeout,
                cancel_event=cancel_event,
            )
        except A2ATimeoutError as e:
            logger.warning("message/stream to %s stopped: %s", self._base_url, e.message)
            return StreamMessageResult.failure(e, rpc_id=rpc_id, cancel_source=e.source)
        except A2ARecorderError as e:
            logger.warning("message/stream to %s failed: %s", self._base_url, e.message)
            return StreamMessageResult.failure(e, rpc_id=rpc_id)

        return StreamMessageResult(ok=True, rpc_id=rpc_id, task_id=task_id)

    async def _post_stream(
        self,
        caller: JsonRpcCaller,
        request: Mapping[str, Any],
        headers: Mapping[str, str] | None,
        handlers: StreamHandlers,
        timeout: float,
    ) -> str | None:
        try:
            async with self._get_http_client().stream(
                "POST",
                f"{self._base_url}/message/stream",
                headers=caller.merge_headers(headers),
                content=json.dumps(request).encode(),
            ) as response:
                return await read_event_stream(response, handlers)
        except httpx.TimeoutException as e:
            raise A2ATimeoutError(
                timeout_message(timeout, "Timeout"), timeout=timeout, cause=e
            ) from e
        except httpx.InvalidURL as e:
            raise A2AValidationError(f"Invalid URL: {self._base_url}", cause=e) from e
        except httpx.HTTPError as e:
            raise A2AConnectionError(str(e) or type(e).__name__, cause=e) from e
