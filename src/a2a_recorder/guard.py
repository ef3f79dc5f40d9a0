"""Private-address guard.

Classifies URLs by their literal host only. No DNS lookup and no redirect
inspection is done, so a public hostname that resolves to a private address
is NOT caught.
"""

from __future__ import annotations

import ipaddress
import re
import socket
from urllib.parse import urlsplit

import httpx

from .exceptions import A2AValidationError

PRIVATE_URL_ERROR = "Private or local URLs are not allowed"

_ALLOWED_SCHEMES = frozenset({"http", "https"})

_PRIVATE_V4 = tuple(
    ipaddress.IPv4Network(net)
    for net in (
        "127.0.0.0/8",
        "10.0.0.0/8",
        "172.16.0.0/12",
        "192.168.0.0/16",
        "169.254.0.0/16",
    )
)

_PRIVATE_V6 = tuple(
    ipaddress.IPv6Network(net) for net in ("::1/128", "fc00::/7", "fe80::/10")
)

# Hosts made only of these characters may be shorthand IPv4 literals (127.1, 0x7f.1)
_NUMERIC_HOST = re.compile(r"[0-9a-fx.]+")


def _parse_ip_literal(host: str) -> ipaddress.IPv4Address | ipaddress.IPv6Address | None:
    try:
        return ipaddress.ip_address(host)
    except ValueError:
        pass

    if _NUMERIC_HOST.fullmatch(host) and any(c.isdigit() for c in host):
        try:
            return ipaddress.IPv4Address(socket.inet_aton(host))
        except OSError:
            return None
    return None


def validate_url(url: str) -> httpx.URL:
    """Parse ``url`` the way the HTTP client will, requiring a scheme and host.

    Raises:
        A2AValidationError: If httpx rejects the URL or it has no host.
    """
    try:
        parsed = httpx.URL(url)
    except (httpx.InvalidURL, ValueError) as e:
        raise A2AValidationError(f"Invalid URL: {url}", cause=e) from e
    if not parsed.scheme or not parsed.host:
        raise A2AValidationError(f"Invalid URL: {url}")
    return parsed


def is_private_url(url: str) -> bool:
    """Return True if ``url`` must not be contacted without ``allow_local``.

    A URL is private when its scheme is not http/https, its host is
    ``localhost``, or its host is a literal address in a loopback, private
    or link-local range. Malformed URLs count as private.
    """
    try:
        parts = urlsplit(url.strip())
        host = parts.hostname
    except ValueError:
        return True

    if parts.scheme.lower() not in _ALLOWED_SCHEMES:
        return True
    if not host:
        return True
    if host == "localhost":
        return True

    address = _parse_ip_literal(host)
    if address is None:
        return False
    if isinstance(address, ipaddress.IPv4Address):
        return any(address in net for net in _PRIVATE_V4)
    return any(address in net for net in _PRIVATE_V6)
