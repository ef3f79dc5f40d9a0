"""Configuration for the A2A client.

Client-wide defaults live in a frozen dataclass; per-agent target configs
stored by the surrounding tool are validated with pydantic.
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Literal

from pydantic import (
    BaseModel,
    ConfigDict,
    NonNegativeFloat,
    StrictBool,
    StrictStr,
    ValidationError,
)

from .exceptions import A2AValidationError

# Hard cap on response bodies (1 MiB)
MAX_RESPONSE_SIZE = 1024 * 1024

DEFAULT_CARD_TTL_SECONDS = 3600


@dataclass(frozen=True)
class ClientSettings:
    """Defaults for an A2AClient instance.

    Attributes:
        request_timeout: Deadline for unary calls in seconds (default: 30s).
        stream_timeout: Deadline for a whole streaming call (default: 60s).
        card_timeout: Deadline for agent card discovery (default: 10s).
        max_response_size: Body size cap in bytes (default: 1 MiB).
    """

    request_timeout: float = 30.0
    stream_timeout: float = 60.0
    card_timeout: float = 10.0
    max_response_size: int = MAX_RESPONSE_SIZE


class TargetAuthConfig(BaseModel):
    """Authentication reference stored with an agent target.

    ``token_ref`` names a secret held elsewhere; it is resolved by the
    caller, never read from this config.
    """

    model_config = ConfigDict(extra="ignore")

    type: Literal["bearer", "api_key", "oauth2"]
    token_ref: StrictStr | None = None
    header_name: StrictStr | None = None


class AgentTargetConfig(BaseModel):
    """Stored configuration of an A2A agent target (schema version 1)."""

    model_config = ConfigDict(extra="ignore")

    schema_version: Literal[1] = 1
    url: StrictStr
    ttl_seconds: NonNegativeFloat | None = None
    allow_local: StrictBool = False
    auth: TargetAuthConfig | None = None

    @property
    def effective_ttl_seconds(self) -> float:
        # zero or missing falls back to the default
        return self.ttl_seconds or DEFAULT_CARD_TTL_SECONDS


def _describe(exc: ValidationError) -> str:
    first = exc.errors()[0]
    location = ".".join(str(p) for p in first["loc"]) or "config"
    return f"{location}: {first['msg']}"


def parse_agent_config(config: str | Mapping[str, Any]) -> AgentTargetConfig:
    """Validate an agent target config given as JSON text or a mapping.

    Raises:
        A2AValidationError: If the JSON is malformed or the config does not
            match schema version 1.
    """
    if isinstance(config, str):
        try:
            config = json.loads(config)
        except json.JSONDecodeError as e:
            raise A2AValidationError(f"Invalid JSON: {e}", cause=e) from e

    if not isinstance(config, Mapping):
        raise A2AValidationError("Agent config error: config must be an object")

    try:
        return AgentTargetConfig.model_validate(dict(config))
    except ValidationError as e:
        raise A2AValidationError(
            f"Agent config error: {_describe(e)}", cause=e
        ) from e
