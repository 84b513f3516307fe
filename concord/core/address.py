"""Canonical ``host:port`` addresses for dialing and CONNECT targets."""

import httpx

from concord.core.errors import InvalidRequestError


DEFAULT_PORTS: dict[str, int] = {
    "http": 80,
    "ws": 80,
    "https": 443,
    "wss": 443,
}

SECURE_SCHEMES = frozenset({"https", "wss"})


def is_secure(url: httpx.URL) -> bool:
    """Return True if the URL's scheme requires TLS to the destination."""
    return url.scheme in SECURE_SCHEMES


def default_port(scheme: str) -> int | None:
    """Return the well-known port for a scheme, or None if it has none."""
    return DEFAULT_PORTS.get(scheme.lower())


def effective_port(url: httpx.URL) -> int:
    """Return the explicit port of ``url`` or its scheme's default port.

    Raises:
        InvalidRequestError: If there is no explicit port and the scheme
            has no default
    """
    if url.port is not None:
        return url.port
    port = default_port(url.scheme)
    if port is None:
        raise InvalidRequestError(
            f"No port given and no default port for scheme {url.scheme!r}",
            url=str(url),
        )
    return port


def canonical_address(url: httpx.URL | str) -> str:
    """Normalize a destination into ``host:port``.

    An explicit port is used verbatim; otherwise ``http`` maps to 80 and
    ``https`` to 443. A bare ``host:port`` string is already canonical and
    comes back unchanged. IPv6 literals are bracketed.

    Examples:
    - "http://127.0.0.1" -> "127.0.0.1:80"
    - "https://127.0.0.1:8443" -> "127.0.0.1:8443"
    - "127.0.0.1:80" -> "127.0.0.1:80"
    """
    if isinstance(url, str):
        url = httpx.URL(url if "://" in url else f"//{url}")

    host = url.raw_host.decode("ascii")
    if ":" in host:
        host = f"[{host}]"
    return f"{host}:{effective_port(url)}"


__all__ = [
    "DEFAULT_PORTS",
    "SECURE_SCHEMES",
    "canonical_address",
    "default_port",
    "effective_port",
    "is_secure",
]
