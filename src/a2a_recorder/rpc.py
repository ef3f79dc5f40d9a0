"""Unary JSON-RPC 2.0 calls over HTTP POST.

One call sends one envelope with a fresh id and validates the answer in a
fixed order: private-address re-check, content type, body size, JSON
syntax, JSON-RPC error object. Result-shape decisions are left to the
caller.
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any
from uuid import uuid4

import httpx

from .config import MAX_RESPONSE_SIZE
from .exceptions import (
    A2AConnectionError,
    A2AProtocolError,
    A2ASizeLimitError,
    A2ATimeoutError,
    A2AValidationError,
    _raise_for_rpc_error,
    excerpt,
)
from .guard import PRIVATE_URL_ERROR, is_private_url

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30.0

JSON_CONTENT_TYPE = "application/json"

_BASE_HEADERS = {
    "Content-Type": JSON_CONTENT_TYPE,
    "Accept": JSON_CONTENT_TYPE,
}


def timeout_message(timeout: float, prefix: str = "Request timeout") -> str:
    return f"{prefix} after {round(timeout * 1000)}ms"


def check_content_length(response: httpx.Response, max_size: int) -> None:
    """Reject a response whose declared Content-Length exceeds ``max_size``."""
    declared = response.headers.get("content-length")
    if declared is None or not declared.strip().isdigit():
        return
    if int(declared) > max_size:
        raise A2ASizeLimitError(int(declared), max_size, status_code=response.status_code)


async def read_capped_body(response: httpx.Response, max_size: int) -> bytes:
    """Read a streamed response body, failing once it grows past ``max_size``."""
    body = bytearray()
    async for chunk in response.aiter_bytes():
        body.extend(chunk)
        if len(body) > max_size:
            raise A2ASizeLimitError(len(body), max_size, status_code=response.status_code)
    return bytes(body)


@dataclass(frozen=True)
class RpcResponse:
    """Validated JSON-RPC success envelope."""

    rpc_id: str
    result: Any
    status_code: int


class JsonRpcCaller:
    """Sends JSON-RPC 2.0 requests to a single agent endpoint.

    Headers are merged case-insensitively in three layers: the JSON
    defaults, the instance headers, then the per-call headers; later layers
    win.
    """

    def __init__(
        self,
        endpoint: str,
        http_client: httpx.AsyncClient,
        *,
        headers: Mapping[str, str] | None = None,
        allow_local: bool = False,
        max_response_size: int = MAX_RESPONSE_SIZE,
    ) -> None:
        self._endpoint = endpoint
        self._http_client = http_client
        self._headers = dict(headers or {})
        self._allow_local = allow_local
        self._max_response_size = max_response_size

    @property
    def endpoint(self) -> str:
        return self._endpoint

    def merge_headers(self, headers: Mapping[str, str] | None = None) -> httpx.Headers:
        merged = httpx.Headers(_BASE_HEADERS)
        merged.update(self._headers)
        if headers:
            merged.update(headers)
        return merged

    @staticmethod
    def build_request(method: str, params: Mapping[str, Any]) -> dict[str, Any]:
        return {
            "jsonrpc": "2.0",
            "id": str(uuid4()),
            "method": method,
            "params": dict(params),
        }

    def check_target(self) -> None:
        """Re-validate the endpoint; the client already did so at construction."""
        if not self._allow_local and is_private_url(self._endpoint):
            raise A2AValidationError(PRIVATE_URL_ERROR)

    async def call(
        self,
        method: str,
        params: Mapping[str, Any],
        *,
        timeout: float = DEFAULT_TIMEOUT,
        headers: Mapping[str, str] | None = None,
    ) -> RpcResponse:
        """Send one request and return the validated success envelope.

        Raises:
            A2AValidationError: If the endpoint is private and not allowed.
            A2ATimeoutError: If the round trip exceeds ``timeout`` seconds.
            A2AConnectionError: On network failures.
            A2AProtocolError: On a non-JSON answer, invalid JSON, or a
                JSON-RPC error object.
            A2ASizeLimitError: If the body exceeds the size cap.
        """
        request = self.build_request(method, params)
        return await self.send(request, timeout=timeout, headers=headers)

    async def send(
        self,
        request: Mapping[str, Any],
        *,
        timeout: float = DEFAULT_TIMEOUT,
        headers: Mapping[str, str] | None = None,
    ) -> RpcResponse:
        """Send a prebuilt envelope; see :meth:`call`."""
        self.check_target()
        rpc_id = str(request["id"])
        logger.debug("Sending %s (%s) to %s", request["method"], rpc_id, self._endpoint)

        try:
            async with asyncio.timeout(timeout):
                status_code, body = await self._post(request, headers)
        except (TimeoutError, httpx.TimeoutException) as e:
            raise A2ATimeoutError(
                timeout_message(timeout), source="deadline", timeout=timeout, cause=e
            ) from e
        except httpx.InvalidURL as e:
            raise A2AValidationError(f"Invalid URL: {self._endpoint}", cause=e) from e
        except httpx.HTTPError as e:
            raise A2AConnectionError(str(e) or type(e).__name__, cause=e) from e

        try:
            envelope = json.loads(body)
        except ValueError as e:
            shown = excerpt(body.decode("utf-8", errors="replace"))
            raise A2AProtocolError(
                f"Invalid JSON response: {shown}",
                excerpt=shown,
                status_code=status_code,
                cause=e,
            ) from e

        if not isinstance(envelope, dict):
            shown = excerpt(body.decode("utf-8", errors="replace"))
            raise A2AProtocolError(
                f"Invalid JSON-RPC response: {shown}",
                excerpt=shown,
                status_code=status_code,
            )

        if envelope.get("error"):
            _raise_for_rpc_error(envelope["error"], status_code=status_code)

        return RpcResponse(
            rpc_id=rpc_id,
            result=envelope.get("result"),
            status_code=status_code,
        )

    async def _post(
        self, request: Mapping[str, Any], headers: Mapping[str, str] | None
    ) -> tuple[int, bytes]:
        async with self._http_client.stream(
            "POST",
            self._endpoint,
            headers=self.merge_headers(headers),
            content=json.dumps(request).encode(),
        ) as response:
            content_type = response.headers.get("content-type")
            if not content_type or JSON_CONTENT_TYPE not in content_type:
                raise A2AProtocolError(
                    f"Expected JSON response, got {content_type or 'unknown'}",
                    status_code=response.status_code,
                )
            check_content_length(response, self._max_response_size)
            body = await read_capped_body(response, self._max_response_size)
            return response.status_code, body
