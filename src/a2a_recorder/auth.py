"""Authentication configuration for A2A agents.

Credentials end up as default request headers on the client; client
certificates end up in the SSL context of the owned HTTP client.
"""

from __future__ import annotations

import ssl
from dataclasses import dataclass, field
from pathlib import Path

from .config import TargetAuthConfig


@dataclass(frozen=True)
class TLSCertificates:
    """Client certificate material for mutual TLS."""

    client_cert_path: str
    client_key_path: str
    ca_cert_path: str | None = None


@dataclass
class AuthConfig:
    """Credentials attached to every request sent to one agent.

    Example:
        ```python
        auth = AuthConfig().with_bearer_token("eyJhbGc...")
        client = A2AClient(card, auth=auth)
        ```
    """

    bearer_token: str | None = None
    token_type: str = "Bearer"
    api_key: str | None = None
    api_key_header: str = "X-API-Key"
    tls: TLSCertificates | None = None
    extra_headers: dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_target(cls, target_auth: TargetAuthConfig, token: str) -> AuthConfig:
        """Build credentials from a stored target auth reference.

        Args:
            target_auth: Auth section of an agent target config.
            token: The secret ``target_auth.token_ref`` resolved to.
        """
        if target_auth.type == "api_key":
            return cls(
                api_key=token,
                api_key_header=target_auth.header_name or "X-API-Key",
            )
        # bearer and oauth2 access tokens share the Authorization header
        return cls(bearer_token=token)

    def with_bearer_token(self, token: str, token_type: str = "Bearer") -> AuthConfig:
        self.bearer_token = token
        self.token_type = token_type
        return self

    def with_api_key(self, key: str, header_name: str = "X-API-Key") -> AuthConfig:
        self.api_key = key
        self.api_key_header = header_name
        return self

    def with_header(self, name: str, value: str) -> AuthConfig:
        self.extra_headers[name] = value
        return self

    def with_tls_certificates(
        self,
        client_cert: str | Path,
        client_key: str | Path,
        ca_cert: str | Path | None = None,
    ) -> AuthConfig:
        self.tls = TLSCertificates(
            client_cert_path=str(client_cert),
            client_key_path=str(client_key),
            ca_cert_path=str(ca_cert) if ca_cert else None,
        )
        return self

    def build_headers(self) -> dict[str, str]:
        """HTTP headers carrying the configured credentials."""
        headers = dict(self.extra_headers)
        if self.bearer_token:
            headers["Authorization"] = f"{self.token_type} {self.bearer_token}"
        if self.api_key:
            headers[self.api_key_header] = self.api_key
        return headers

    def build_ssl_context(self) -> ssl.SSLContext | None:
        """SSL context presenting the client certificate, if one is configured.

        Raises:
            FileNotFoundError: If a certificate file is missing.
            ssl.SSLError: If the certificate material is invalid.
        """
        if self.tls is None:
            return None

        context = ssl.create_default_context(cafile=self.tls.ca_cert_path)
        context.load_cert_chain(
            certfile=self.tls.client_cert_path,
            keyfile=self.tls.client_key_path,
        )
        return context
