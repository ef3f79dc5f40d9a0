"""Agent Card discovery.

Fetches ``/.well-known/agent.json`` from an agent, validates it and hashes
the raw body so a caller-side cache can tell when a card changed.
"""

from __future__ import annotations

import asyncio
import hashlib
import json
import logging
from collections.abc import Mapping
from urllib.parse import urlsplit, urlunsplit

import httpx
from pydantic import ValidationError

from .config import MAX_RESPONSE_SIZE
from .exceptions import (
    A2AConnectionError,
    A2AProtocolError,
    A2ARecorderError,
    A2ATimeoutError,
    A2AValidationError,
)
from .guard import PRIVATE_URL_ERROR, is_private_url, validate_url
from .rpc import check_content_length, read_capped_body, timeout_message
from .types import AgentCard, FetchAgentCardResult

logger = logging.getLogger(__name__)

AGENT_CARD_PATH = "/.well-known/agent.json"

DEFAULT_CARD_TIMEOUT = 10.0


def normalize_agent_card_url(url: str) -> str:
    """Point ``url`` at the agent card endpoint.

    Appends ``/.well-known/agent.json`` unless the path already ends with
    it. Query string and fragment are kept and moved after the new path.
    """
    url = url.strip()
    try:
        parts = urlsplit(url)
    except ValueError:
        return url.rstrip("/") + AGENT_CARD_PATH

    if parts.path.endswith(AGENT_CARD_PATH):
        return url

    path = parts.path.rstrip("/") + AGENT_CARD_PATH
    return urlunsplit((parts.scheme, parts.netloc, path, parts.query, parts.fragment))


def compute_hash(body: bytes) -> str:
    """SHA-256 hex digest of a raw response body."""
    return hashlib.sha256(body).hexdigest()


def parse_agent_card(data: object) -> AgentCard:
    """Validate a decoded agent card.

    Raises:
        A2AProtocolError: If required fields are missing or mistyped.
    """
    if not isinstance(data, Mapping):
        raise A2AProtocolError("Invalid Agent Card: Agent card must be an object")
    try:
        return AgentCard.model_validate(dict(data))
    except ValidationError as e:
        first = e.errors()[0]
        field = ".".join(str(p) for p in first["loc"])
        raise A2AProtocolError(
            f"Invalid Agent Card: {field}: {first['msg']}", cause=e
        ) from e


def _validate_target(url: str, card_url: str, allow_local: bool) -> None:
    try:
        validate_url(card_url)
    except A2AValidationError as e:
        raise A2AValidationError(f"Invalid URL: {url}", cause=e) from e
    if not allow_local and is_private_url(card_url):
        raise A2AValidationError(PRIVATE_URL_ERROR)


async def fetch_agent_card(
    url: str,
    *,
    timeout: float = DEFAULT_CARD_TIMEOUT,
    headers: Mapping[str, str] | None = None,
    allow_local: bool = False,
    http_client: httpx.AsyncClient | None = None,
    max_size: int = MAX_RESPONSE_SIZE,
) -> FetchAgentCardResult:
    """Fetch and validate an agent's card.

    Args:
        url: Agent base URL or full agent card URL.
        timeout: Deadline in seconds (default 10s).
        headers: Extra request headers; they win over ``Accept``.
        allow_local: Permit private and loopback addresses.
        http_client: Client to use; a temporary one is created otherwise.
        max_size: Body size cap in bytes.

    Returns:
        FetchAgentCardResult. Expected failures (bad URL, private address,
        timeout, oversize body, invalid JSON, schema mismatch, HTTP error)
        come back with ``ok=False``. Whenever a body was read, ``hash`` is
        set even if validation failed.
    """
    card_url = normalize_agent_card_url(url)
    try:
        _validate_target(url, card_url, allow_local)
    except A2AValidationError as e:
        return FetchAgentCardResult.failure(e)

    request_headers = httpx.Headers({"Accept": "application/json"})
    if headers:
        request_headers.update(headers)

    owns_client = http_client is None
    client = http_client or httpx.AsyncClient(timeout=None)
    try:
        async with asyncio.timeout(timeout):
            status_code, reason, body = await _get(client, card_url, request_headers, max_size)
    except (TimeoutError, httpx.TimeoutException) as e:
        return FetchAgentCardResult.failure(
            A2ATimeoutError(timeout_message(timeout), timeout=timeout, cause=e)
        )
    except httpx.HTTPError as e:
        return FetchAgentCardResult.failure(
            A2AConnectionError(str(e) or type(e).__name__, cause=e)
        )
    except A2ARecorderError as e:
        return FetchAgentCardResult.failure(e)
    finally:
        if owns_client:
            await client.aclose()

    card_hash = compute_hash(body)
    try:
        if status_code >= 400:
            raise A2AProtocolError(f"HTTP {status_code}: {reason}")
        try:
            data = json.loads(body)
        except ValueError as e:
            raise A2AProtocolError("Invalid JSON response", cause=e) from e
        card = parse_agent_card(data)
    except A2AProtocolError as e:
        e.status_code = status_code
        logger.warning("Agent card fetch from %s failed: %s", card_url, e.message)
        return FetchAgentCardResult.failure(e, hash=card_hash)

    logger.debug("Fetched agent card '%s' from %s", card.name, card_url)
    return FetchAgentCardResult(
        ok=True,
        agent_card=card,
        hash=card_hash,
        status_code=status_code,
    )


async def _get(
    client: httpx.AsyncClient,
    url: str,
    headers: httpx.Headers,
    max_size: int,
) -> tuple[int, str, bytes]:
    async with client.stream("GET", url, headers=headers) as response:
        check_content_length(response, max_size)
        body = await read_capped_body(response, max_size)
        return response.status_code, response.reason_phrase, body
