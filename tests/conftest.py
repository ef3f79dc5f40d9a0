"""Shared fixtures for a2a-recorder tests."""

from __future__ import annotations

import json
from collections.abc import AsyncIterator, Awaitable, Callable
from typing import Any

import httpx
import pytest

from a2a_recorder.client import A2AClient
from a2a_recorder.store import InMemoryEventStore
from a2a_recorder.types import AgentCard

AGENT_URL = "https://agent.example.com"

type Handler = Callable[[httpx.Request], httpx.Response | Awaitable[httpx.Response]]

# ---------------------------------------------------------------------------
# Agent cards
# ---------------------------------------------------------------------------


def make_card_dict(**overrides: Any) -> dict[str, Any]:
    card: dict[str, Any] = {
        "name": "Test Agent",
        "description": "A test agent for unit tests",
        "url": AGENT_URL,
        "version": "1.0.0",
        "capabilities": {"streaming": True},
        "defaultInputModes": ["text/plain"],
        "defaultOutputModes": ["text/plain"],
        "skills": [
            {
                "id": "summarize",
                "name": "Summarize",
                "description": "Summarize documents",
                "tags": ["summarize"],
            }
        ],
    }
    card.update(overrides)
    return card


@pytest.fixture
def agent_card() -> AgentCard:
    return AgentCard.model_validate(make_card_dict())


# ---------------------------------------------------------------------------
# A2A payload builders (wire shape, camelCase)
# ---------------------------------------------------------------------------


def make_message_dict(
    text: str = "Hello!",
    *,
    role: str = "agent",
    message_id: str | None = "msg-1",
    context_id: str | None = None,
) -> dict[str, Any]:
    message: dict[str, Any] = {"role": role, "parts": [{"text": text}]}
    if message_id:
        message["messageId"] = message_id
    if context_id:
        message["contextId"] = context_id
    return message


def make_task_dict(
    task_id: str = "task-1",
    status: Any = "completed",
    *,
    history: list[dict[str, Any]] | None = None,
    context_id: str | None = "ctx-1",
    artifacts: list[dict[str, Any]] | None = None,
) -> dict[str, Any]:
    task: dict[str, Any] = {"id": task_id, "status": status}
    if history is not None:
        task["history"] = history
    if context_id:
        task["contextId"] = context_id
    if artifacts is not None:
        task["artifacts"] = artifacts
    return task


def status_frame(
    task_id: str = "task-1",
    status: str = "working",
    *,
    final: bool = False,
    rpc_id: str = "1",
) -> dict[str, Any]:
    return {
        "jsonrpc": "2.0",
        "id": rpc_id,
        "result": {"taskId": task_id, "status": status, "final": final},
    }


def artifact_frame(
    task_id: str = "task-1", text: str = "chunk", *, rpc_id: str = "1"
) -> dict[str, Any]:
    return {
        "jsonrpc": "2.0",
        "id": rpc_id,
        "result": {
            "taskId": task_id,
            "artifact": {"name": "output", "parts": [{"text": text}]},
        },
    }


def message_frame(text: str = "Hi", *, rpc_id: str = "1") -> dict[str, Any]:
    return {"jsonrpc": "2.0", "id": rpc_id, "result": make_message_dict(text)}


# ---------------------------------------------------------------------------
# HTTP responses
# ---------------------------------------------------------------------------


def rpc_success(result: Any, rpc_id: str = "1") -> dict[str, Any]:
    return {"jsonrpc": "2.0", "id": rpc_id, "result": result}


def rpc_error(code: int, message: str, rpc_id: str = "1") -> dict[str, Any]:
    return {"jsonrpc": "2.0", "id": rpc_id, "error": {"code": code, "message": message}}


def json_response(payload: Any, status_code: int = 200) -> httpx.Response:
    return httpx.Response(status_code, json=payload)


def sse_data(*frames: Any, done: bool = True) -> str:
    lines = [f"data: {json.dumps(f) if not isinstance(f, str) else f}\n\n" for f in frames]
    if done:
        lines.append("data: [DONE]\n\n")
    return "".join(lines)


def sse_response(
    content: str | bytes | AsyncIterator[bytes], status_code: int = 200
) -> httpx.Response:
    if isinstance(content, str):
        content = content.encode()
    return httpx.Response(
        status_code,
        headers={"content-type": "text/event-stream"},
        content=content,
    )


async def chunked(*chunks: bytes) -> AsyncIterator[bytes]:
    for chunk in chunks:
        yield chunk


def reply_with(result: Any) -> Handler:
    """Handler answering every JSON-RPC request with ``result``, echoing its id."""

    def handler(request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        return json_response(rpc_success(result, body["id"]))

    return handler


# ---------------------------------------------------------------------------
# Clients and stores
# ---------------------------------------------------------------------------


def mock_http_client(handler: Handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


def make_client(handler: Handler, card: AgentCard | None = None, **kwargs: Any) -> A2AClient:
    return A2AClient(
        card or AgentCard.model_validate(make_card_dict()),
        http_client=mock_http_client(handler),
        **kwargs,
    )


@pytest.fixture
def store() -> InMemoryEventStore:
    return InMemoryEventStore()
