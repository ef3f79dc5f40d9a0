"""Server-sent event decoding for ``message/stream``.

The decoder keeps a carry-over buffer so a line split across two network
reads is reassembled before parsing. Bad frames are reported through the
error callback and skipped; they never end an otherwise healthy stream.
"""

from __future__ import annotations

import asyncio
import inspect
import json
import logging
from collections.abc import AsyncIterator, Awaitable, Callable, Coroutine
from dataclasses import dataclass
from typing import Any, TypeVar

import httpx

from .exceptions import A2AProtocolError, A2ATimeoutError
from .parsing import classify_stream_event
from .rpc import timeout_message
from .types import (
    ArtifactEvent,
    Message,
    MessageEvent,
    StatusEvent,
    Task,
    TaskSnapshotEvent,
)

logger = logging.getLogger(__name__)

DEFAULT_STREAM_TIMEOUT = 60.0

SSE_CONTENT_TYPE = "text/event-stream"
DATA_PREFIX = "data: "
DONE_SENTINEL = "[DONE]"

T = TypeVar("T")

type Callback[A] = Callable[[A], Awaitable[None] | None]


class SSEDecoder:
    """Turns decoded text chunks into SSE ``data:`` payloads.

    Only lines starting with ``data: `` carry payloads; ``[DONE]`` is a
    sentinel and is dropped. The last, possibly incomplete, line of each
    chunk is held back until the next chunk arrives.
    """

    def __init__(self) -> None:
        self._buffer = ""

    @property
    def pending(self) -> str:
        return self._buffer

    def feed(self, chunk: str) -> list[str]:
        self._buffer += chunk
        *lines, self._buffer = self._buffer.split("\n")

        payloads = []
        for line in lines:
            line = line.removesuffix("\r")
            if not line.startswith(DATA_PREFIX):
                continue
            data = line[len(DATA_PREFIX) :]
            if data == DONE_SENTINEL:
                continue
            payloads.append(data)
        return payloads


@dataclass
class StreamHandlers:
    """Per-event callbacks for a streaming call.

    Each may be a plain function or a coroutine function. An exception
    raised by a callback is reported through ``on_error`` and the stream
    keeps going; one raised by ``on_error`` itself propagates.
    """

    on_status: Callback[StatusEvent] | None = None
    on_artifact: Callback[ArtifactEvent] | None = None
    on_message: Callback[Message] | None = None
    on_task: Callback[Task] | None = None
    on_error: Callback[str] | None = None

    async def emit(self, callback: Callback[Any] | None, value: Any) -> None:
        if callback is None:
            return
        try:
            outcome = callback(value)
            if inspect.isawaitable(outcome):
                await outcome
        except Exception as e:
            # a failing error handler ends the stream
            if callback is self.on_error:
                raise
            logger.warning("Stream callback failed: %s", e)
            await self.emit(self.on_error, f"Callback error: {e}")


async def consume_events(
    chunks: AsyncIterator[str], handlers: StreamHandlers
) -> str | None:
    """Drive the handlers from a stream of text chunks.

    Returns:
        The last task id seen. Returns as soon as a status event with
        ``final`` set arrives, without draining the rest of the stream.

    Raises:
        A2AProtocolError: If the stream carried no bytes at all.
    """
    decoder = SSEDecoder()
    task_id: str | None = None
    received = False

    async for chunk in chunks:
        if not chunk:
            continue
        received = True

        for payload in decoder.feed(chunk):
            try:
                frame = json.loads(payload)
                event = classify_stream_event(frame)
            except ValueError as e:
                logger.warning("Skipping malformed stream frame: %s", e)
                await handlers.emit(handlers.on_error, f"Parse error: {e}")
                continue

            if event is None:
                if isinstance(frame, dict) and isinstance(frame.get("error"), dict):
                    error = frame["error"]
                    await handlers.emit(
                        handlers.on_error, f"{error.get('code')}: {error.get('message')}"
                    )
                continue

            if isinstance(event, StatusEvent):
                task_id = event.task_id
                await handlers.emit(handlers.on_status, event)
                if event.final:
                    return task_id
            elif isinstance(event, ArtifactEvent):
                await handlers.emit(handlers.on_artifact, event)
            elif isinstance(event, MessageEvent):
                await handlers.emit(handlers.on_message, event.message)
            elif isinstance(event, TaskSnapshotEvent):
                task_id = event.task.id
                await handlers.emit(handlers.on_task, event.task)

    if not received:
        raise A2AProtocolError("No response body")
    return task_id


async def read_event_stream(
    response: httpx.Response, handlers: StreamHandlers
) -> str | None:
    """Validate a streaming response and consume its events.

    Raises:
        A2AProtocolError: On an HTTP error status, a non-SSE content type,
            or an empty body.
    """
    if response.is_error:
        raise A2AProtocolError(
            f"HTTP {response.status_code}: {response.reason_phrase}",
            status_code=response.status_code,
        )

    content_type = response.headers.get("content-type")
    if not content_type or SSE_CONTENT_TYPE not in content_type:
        raise A2AProtocolError(
            f"Expected SSE, got {content_type or 'unknown'}",
            status_code=response.status_code,
        )

    return await consume_events(response.aiter_text(), handlers)


async def run_with_cancellation(
    work: Coroutine[Any, Any, T],
    *,
    timeout: float,
    cancel_event: asyncio.Event | None = None,
) -> T:
    """Run ``work`` until it finishes, the deadline passes, or the caller cancels.

    The deadline and the caller's event are two independent sources feeding
    one wait point; whichever fires first cancels ``work``.

    Raises:
        A2ATimeoutError: With ``source="deadline"`` or ``source="caller"``.
    """
    task = asyncio.ensure_future(work)
    waiters: set[asyncio.Future[Any]] = {task}
    cancel_waiter = None
    if cancel_event is not None:
        cancel_waiter = asyncio.ensure_future(cancel_event.wait())
        waiters.add(cancel_waiter)

    try:
        done, _ = await asyncio.wait(
            waiters, timeout=timeout, return_when=asyncio.FIRST_COMPLETED
        )
    except asyncio.CancelledError:
        task.cancel()
        raise
    finally:
        if cancel_waiter is not None:
            cancel_waiter.cancel()

    if task in done:
        return task.result()

    task.cancel()
    await asyncio.gather(task, return_exceptions=True)

    if cancel_waiter is not None and cancel_waiter in done:
        raise A2ATimeoutError(
            "Stream canceled by caller", source="caller", timeout=timeout
        )
    raise A2ATimeoutError(
        timeout_message(timeout, "Timeout"), source="deadline", timeout=timeout
    )

