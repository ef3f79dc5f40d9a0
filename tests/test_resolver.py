"""Tests for resolving registered agent targets into clients."""

from __future__ import annotations

import json
from datetime import UTC, datetime, timedelta

import httpx
import pytest

from a2a_recorder.agent_card import compute_hash
from a2a_recorder.resolver import (
    AgentTarget,
    CachedAgentCard,
    InMemoryAgentCardCache,
    InMemoryTargetRegistry,
    find_target,
    resolve_client,
)
from a2a_recorder.types import AgentCard

from .conftest import AGENT_URL, make_card_dict, mock_http_client

NOW = datetime(2026, 1, 1, tzinfo=UTC)


class CardServer:
    """Serves one agent card and counts fetches."""

    def __init__(self, card: dict | None = None, status_code: int = 200) -> None:
        self.body = json.dumps(card or make_card_dict()).encode()
        self.status_code = status_code
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return httpx.Response(
            self.status_code, headers={"content-type": "application/json"}, content=self.body
        )


def registry_with(*targets: AgentTarget) -> InMemoryTargetRegistry:
    return InMemoryTargetRegistry(targets)


def target(agent_id: str = "agent-weather-01", **config) -> AgentTarget:
    return AgentTarget(id=agent_id, config={"schema_version": 1, "url": AGENT_URL, **config})


def cached_entry(target_id: str, expires_at: datetime | None) -> CachedAgentCard:
    return CachedAgentCard(
        target_id=target_id,
        agent_card=AgentCard.model_validate(make_card_dict(name="Cached Agent")),
        agent_card_hash="abc",
        fetched_at=NOW - timedelta(hours=2),
        expires_at=expires_at,
    )


class TestFindTarget:
    def test_exact_id(self):
        agents = [target("alpha"), target("beta")]

        assert find_target(agents, "beta").id == "beta"

    def test_prefix(self):
        assert find_target([target("agent-weather-01")], "agent-we").id == "agent-weather-01"

    def test_missing(self):
        assert find_target([target("alpha")], "zeta") is None


class TestResolveClient:
    @pytest.mark.asyncio
    async def test_not_found(self):
        result = await resolve_client(
            "nope", registry=registry_with(), cache=InMemoryAgentCardCache()
        )

        assert not result.ok
        assert result.error == "Agent 'nope' not found"

    @pytest.mark.asyncio
    async def test_disabled(self):
        disabled = AgentTarget(id="agent-1", config={"url": AGENT_URL}, enabled=False)

        result = await resolve_client(
            "agent-1", registry=registry_with(disabled), cache=InMemoryAgentCardCache()
        )

        assert result.error == "Agent 'agent-1' is disabled"

    @pytest.mark.asyncio
    async def test_no_url(self):
        result = await resolve_client(
            "agent-1",
            registry=registry_with(AgentTarget(id="agent-1", config={})),
            cache=InMemoryAgentCardCache(),
        )

        assert result.error == "Agent 'agent-1' has no URL configured"

    @pytest.mark.asyncio
    async def test_invalid_config(self):
        result = await resolve_client(
            "agent-1",
            registry=registry_with(target("agent-1", ttl_seconds=-5)),
            cache=InMemoryAgentCardCache(),
        )

        assert not result.ok
        assert result.error.startswith("Agent config error: ttl_seconds")

    @pytest.mark.asyncio
    async def test_cache_miss_fetches_and_stores(self):
        server = CardServer()
        cache = InMemoryAgentCardCache()

        result = await resolve_client(
            "agent-weather",
            registry=registry_with(target()),
            cache=cache,
            http_client=mock_http_client(server),
            now=NOW,
        )

        assert result.ok
        assert result.target_id == "agent-weather-01"
        assert result.client is not None
        assert result.client.base_url == AGENT_URL
        entry = cache.get("agent-weather-01")
        assert entry is not None
        assert entry.agent_card_hash == compute_hash(server.body)
        assert entry.fetched_at == NOW
        assert entry.expires_at == NOW + timedelta(seconds=3600)

    @pytest.mark.asyncio
    async def test_ttl_from_config(self):
        cache = InMemoryAgentCardCache()

        await resolve_client(
            "agent-weather-01",
            registry=registry_with(target(ttl_seconds=60)),
            cache=cache,
            http_client=mock_http_client(CardServer()),
            now=NOW,
        )

        assert cache.get("agent-weather-01").expires_at == NOW + timedelta(seconds=60)

    @pytest.mark.asyncio
    async def test_fresh_cache_hit_skips_fetch(self):
        server = CardServer()
        cache = InMemoryAgentCardCache()
        cache.set(cached_entry("agent-weather-01", NOW + timedelta(minutes=5)))

        result = await resolve_client(
            "agent-weather-01",
            registry=registry_with(target()),
            cache=cache,
            http_client=mock_http_client(server),
            now=NOW,
        )

        assert result.ok
        assert result.agent_card.name == "Cached Agent"
        assert server.requests == []

    @pytest.mark.asyncio
    async def test_entry_without_expiry_never_stale(self):
        server = CardServer()
        cache = InMemoryAgentCardCache()
        cache.set(cached_entry("agent-weather-01", None))

        result = await resolve_client(
            "agent-weather-01",
            registry=registry_with(target()),
            cache=cache,
            http_client=mock_http_client(server),
            now=NOW,
        )

        assert result.agent_card.name == "Cached Agent"
        assert server.requests == []

    @pytest.mark.asyncio
    async def test_expired_cache_refetches(self):
        server = CardServer()
        cache = InMemoryAgentCardCache()
        cache.set(cached_entry("agent-weather-01", NOW - timedelta(seconds=1)))

        result = await resolve_client(
            "agent-weather-01",
            registry=registry_with(target()),
            cache=cache,
            http_client=mock_http_client(server),
            now=NOW,
        )

        assert result.agent_card.name == "Test Agent"
        assert len(server.requests) == 1

    @pytest.mark.asyncio
    async def test_fetch_failure(self):
        result = await resolve_client(
            "agent-weather-01",
            registry=registry_with(target()),
            cache=InMemoryAgentCardCache(),
            http_client=mock_http_client(CardServer(status_code=503)),
            now=NOW,
        )

        assert not result.ok
        assert result.error == "Failed to fetch agent card: HTTP 503: Service Unavailable"

    @pytest.mark.asyncio
    async def test_private_target_needs_allow_local(self):
        result = await resolve_client(
            "local",
            registry=registry_with(target("local", url="http://localhost:8080")),
            cache=InMemoryAgentCardCache(),
        )

        assert result.error == "Failed to fetch agent card: Private or local URLs are not allowed"

    @pytest.mark.asyncio
    async def test_allow_local_passed_to_client(self):
        card = make_card_dict(url="http://localhost:8080")

        result = await resolve_client(
            "local",
            registry=registry_with(target("local", url="http://localhost:8080", allow_local=True)),
            cache=InMemoryAgentCardCache(),
            http_client=mock_http_client(CardServer(card)),
        )

        assert result.ok
        assert result.client.base_url == "http://localhost:8080"

    @pytest.mark.asyncio
    async def test_private_card_url_rejected_by_client(self):
        # The card points a public target at a private RPC endpoint
        cache = InMemoryAgentCardCache()

        result = await resolve_client(
            "agent-weather-01",
            registry=registry_with(target()),
            cache=cache,
            http_client=mock_http_client(CardServer(make_card_dict(url="http://10.1.2.3"))),
            now=NOW,
        )

        assert not result.ok
        assert result.error == "Private or local URLs are not allowed"
        assert result.agent_card is not None

    @pytest.mark.asyncio
    async def test_token_resolver_builds_auth(self):
        server = CardServer()

        result = await resolve_client(
            "agent-weather-01",
            registry=registry_with(
                target(auth={"type": "api_key", "token_ref": "vault:weather", "header_name": "X-Key"})
            ),
            cache=InMemoryAgentCardCache(),
            http_client=mock_http_client(server),
            token_resolver={"vault:weather": "s3cret"}.get,
        )

        assert result.ok
        assert server.requests[0].headers["x-key"] == "s3cret"

    @pytest.mark.asyncio
    async def test_unresolvable_token(self):
        result = await resolve_client(
            "agent-weather-01",
            registry=registry_with(target(auth={"type": "bearer", "token_ref": "vault:gone"})),
            cache=InMemoryAgentCardCache(),
            token_resolver=lambda ref: None,
        )

        assert not result.ok
        assert "vault:gone" in result.error
