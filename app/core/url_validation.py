"""URL validation helpers for outbound HTTP requests (SSRF defense)."""

from __future__ import annotations

import ipaddress
import socket
from urllib.parse import urlsplit, urlunsplit

from app.core.exceptions import SsrfBlockedError


ALLOWED_SCHEMES = ("http", "https")
BLOCKED_HOSTNAMES = frozenset({"localhost", "metadata", "metadata.google.internal", "metadata.goog"})


def _is_ip_global(ip: ipaddress.IPv4Address | ipaddress.IPv6Address) -> bool:
    # Rejects loopback, link-local, private RFC1918, multicast, etc.
    return ip.is_global


def validate_outbound_url(url: str) -> str:
    """
    Validate a URL configured on a workflow api_call node.

    Security goals:
    - Prevent SSRF to localhost, RFC1918, link-local, cloud metadata, etc.
    - Allow only http:// and https:// URLs.
    - Disallow credentials in the URL.

    Returns a normalized URL (lowercased scheme, no fragment) or raises
    SsrfBlockedError.
    """
    candidate = (url or "").strip()
    if not candidate:
        raise SsrfBlockedError("URL is required")

    parts = urlsplit(candidate)
    scheme = (parts.scheme or "").lower()
    if scheme not in ALLOWED_SCHEMES:
        raise SsrfBlockedError("URL must start with http:// or https://")

    if parts.username or parts.password:
        raise SsrfBlockedError("URL must not include credentials")

    host = (parts.hostname or "").strip().lower().rstrip(".")
    if not host:
        raise SsrfBlockedError("URL must include a host")

    if host in BLOCKED_HOSTNAMES:
        raise SsrfBlockedError("URL host is not allowed")

    normalized = urlunsplit((scheme, parts.netloc, parts.path, parts.query, ""))

    try:
        ip = ipaddress.ip_address(host)
    except ValueError:
        ip = None
    if ip is not None:
        if not _is_ip_global(ip):
            raise SsrfBlockedError("URL host is not allowed")
        return normalized

    # Resolve DNS to defend against internal hostnames and tricky IP representations.
    port = parts.port or (443 if scheme == "https" else 80)
    try:
        infos = socket.getaddrinfo(host, port, type=socket.SOCK_STREAM)
    except OSError as exc:
        raise SsrfBlockedError("URL host could not be resolved") from exc

    resolved_ips: set[ipaddress.IPv4Address | ipaddress.IPv6Address] = set()
    for info in infos:
        sockaddr = info[4]
        if not sockaddr:
            continue
        try:
            resolved_ips.add(ipaddress.ip_address(sockaddr[0]))
        except ValueError:
            continue

    if not resolved_ips:
        raise SsrfBlockedError("URL host could not be resolved")

    for resolved in resolved_ips:
        if not _is_ip_global(resolved):
            raise SsrfBlockedError("URL host is not allowed")

    return normalized
