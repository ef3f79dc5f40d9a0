"""Resolve a configured agent target into a ready A2AClient.

Targets come from a registry, agent cards from a per-target cache that is
refreshed from the network once its entry expires.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from typing import Any, Protocol

import httpx

from .agent_card import fetch_agent_card
from .auth import AuthConfig
from .client import A2AClient
from .config import AgentTargetConfig, ClientSettings, parse_agent_config
from .exceptions import A2ARecorderError, A2AValidationError
from .types import AgentCard, OperationResult

logger = logging.getLogger(__name__)

# Maps a secret reference from a target's auth config to the secret itself
type TokenResolver = Callable[[str], str | None]


@dataclass(frozen=True)
class AgentTarget:
    """A registered agent: an id, an enabled flag and its stored config."""

    id: str
    config: Mapping[str, Any] = field(default_factory=dict)
    enabled: bool = True


class TargetRegistry(Protocol):
    def list_agents(self) -> list[AgentTarget]: ...


class InMemoryTargetRegistry:
    def __init__(self, targets: Iterable[AgentTarget] = ()) -> None:
        self._targets = list(targets)

    def add(self, target: AgentTarget) -> None:
        self._targets.append(target)

    def list_agents(self) -> list[AgentTarget]:
        return list(self._targets)


@dataclass
class CachedAgentCard:
    """A cached agent card.

    Attributes:
        target_id: Registry id of the agent.
        agent_card: The card as last fetched.
        agent_card_hash: SHA-256 hex of the card body.
        fetched_at: When the card was fetched.
        expires_at: When the entry goes stale; None never expires.
    """

    target_id: str
    agent_card: AgentCard
    agent_card_hash: str | None
    fetched_at: datetime
    expires_at: datetime | None = None

    def is_fresh(self, now: datetime) -> bool:
        return self.expires_at is None or self.expires_at > now


class AgentCardCache(Protocol):
    def get(self, target_id: str) -> CachedAgentCard | None: ...

    def set(self, entry: CachedAgentCard) -> None: ...


class InMemoryAgentCardCache:
    def __init__(self) -> None:
        self._entries: dict[str, CachedAgentCard] = {}

    def get(self, target_id: str) -> CachedAgentCard | None:
        return self._entries.get(target_id)

    def set(self, entry: CachedAgentCard) -> None:
        self._entries[entry.target_id] = entry

    def invalidate(self, target_id: str) -> None:
        self._entries.pop(target_id, None)


class ResolveClientResult(OperationResult):
    client: A2AClient | None = None
    agent_card: AgentCard | None = None
    target_id: str | None = None


def find_target(agents: Iterable[AgentTarget], agent_id: str) -> AgentTarget | None:
    """First agent whose id equals ``agent_id`` or starts with it."""
    return next(
        (a for a in agents if a.id == agent_id or a.id.startswith(agent_id)),
        None,
    )


def _build_auth(
    agent_id: str,
    config: AgentTargetConfig,
    token_resolver: TokenResolver | None,
) -> AuthConfig | None:
    if config.auth is None or not config.auth.token_ref or token_resolver is None:
        return None
    token = token_resolver(config.auth.token_ref)
    if not token:
        raise A2AValidationError(
            f"Agent '{agent_id}' token reference '{config.auth.token_ref}' could not be resolved"
        )
    return AuthConfig.from_target(config.auth, token)


async def resolve_client(
    agent_id: str,
    *,
    registry: TargetRegistry,
    cache: AgentCardCache,
    http_client: httpx.AsyncClient | None = None,
    token_resolver: TokenResolver | None = None,
    settings: ClientSettings | None = None,
    now: datetime | None = None,
) -> ResolveClientResult:
    """Build a client for a registered agent.

    The agent is looked up by id or id prefix. A cached card is used while
    fresh; otherwise the card is fetched, cached for the target's
    ``ttl_seconds`` (default 3600) and used.

    Args:
        agent_id: Full or prefix id of the agent.
        registry: Source of agent targets.
        cache: Agent card cache keyed by target id.
        http_client: Shared HTTP client for the fetch and the new client.
        token_resolver: Resolves ``auth.token_ref`` from the target config.
        settings: Client settings for the new client.
        now: Current time, for cache expiry.

    Returns:
        ResolveClientResult with ``client`` and ``agent_card`` on success.
    """
    target = find_target(registry.list_agents(), agent_id)
    if target is None:
        return ResolveClientResult.failure(A2AValidationError(f"Agent '{agent_id}' not found"))
    if not target.enabled:
        return ResolveClientResult.failure(
            A2AValidationError(f"Agent '{agent_id}' is disabled"), target_id=target.id
        )
    if not target.config.get("url"):
        return ResolveClientResult.failure(
            A2AValidationError(f"Agent '{agent_id}' has no URL configured"),
            target_id=target.id,
        )

    settings = settings or ClientSettings()
    now = now or datetime.now(UTC)
    try:
        config = parse_agent_config(target.config)
        auth = _build_auth(agent_id, config, token_resolver)
    except A2AValidationError as e:
        return ResolveClientResult.failure(e, target_id=target.id)

    cached = cache.get(target.id)
    if cached is not None and cached.is_fresh(now):
        logger.debug("Using cached agent card for %s", target.id)
        agent_card = cached.agent_card
    else:
        fetched = await fetch_agent_card(
            config.url,
            timeout=settings.card_timeout,
            headers=auth.build_headers() if auth else None,
            allow_local=config.allow_local,
            http_client=http_client,
            max_size=settings.max_response_size,
        )
        if not fetched.ok or fetched.agent_card is None:
            return ResolveClientResult(
                ok=False,
                error=f"Failed to fetch agent card: {fetched.error}",
                status_code=fetched.status_code,
                exception=fetched.exception,
                target_id=target.id,
            )
        agent_card = fetched.agent_card
        cache.set(
            CachedAgentCard(
                target_id=target.id,
                agent_card=agent_card,
                agent_card_hash=fetched.hash,
                fetched_at=now,
                expires_at=now + timedelta(seconds=config.effective_ttl_seconds),
            )
        )

    try:
        client = A2AClient(
            agent_card,
            auth=auth,
            allow_local=config.allow_local,
            http_client=http_client,
            settings=settings,
        )
    except A2ARecorderError as e:
        return ResolveClientResult.failure(e, target_id=target.id, agent_card=agent_card)

    return ResolveClientResult(
        ok=True, client=client, agent_card=agent_card, target_id=target.id
    )
