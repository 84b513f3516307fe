"""Proxy resolvers: pick the proxy URL for a request URL."""

import urllib.request
from collections.abc import Mapping
from typing import Protocol, runtime_checkable

import httpx

from concord.core.errors import InvalidRequestError


@runtime_checkable
class ProxyResolver(Protocol):
    """Returns the proxy URL to use for a request URL, or None for direct.

    A string result is parsed like a configured proxy URL, so ``"proxy:3128"``
    means ``http://proxy:3128``.
    """

    def __call__(self, url: httpx.URL) -> httpx.URL | str | None: ...


def parse_proxy_url(value: str | httpx.URL) -> httpx.URL:
    """Parse a proxy URL, defaulting to ``http://`` when no scheme is given.

    Raises:
        InvalidRequestError: If the URL has no host
    """
    if isinstance(value, str) and "://" not in value:
        value = f"http://{value}"
    try:
        url = httpx.URL(value)
    except httpx.InvalidURL as exc:
        raise InvalidRequestError(
            f"Invalid proxy URL: {value}", url=str(value), cause=exc
        ) from exc
    if not url.host:
        raise InvalidRequestError(f"Invalid proxy URL: {value}", url=str(value))
    return url


class FixedProxyResolver:
    """Sends every request through the same proxy."""

    def __init__(self, proxy_url: str | httpx.URL) -> None:
        self.proxy_url = parse_proxy_url(proxy_url)

    def __repr__(self) -> str:
        return f"FixedProxyResolver({str(self.proxy_url)!r})"

    def __call__(self, url: httpx.URL) -> httpx.URL | None:
        return self.proxy_url


def proxy_url(value: str | httpx.URL) -> FixedProxyResolver:
    """Resolver that always returns ``value``."""
    return FixedProxyResolver(value)


class EnvironmentProxyResolver:
    """Picks proxies from ``HTTP_PROXY``, ``HTTPS_PROXY`` and ``ALL_PROXY``.

    Hosts matched by ``NO_PROXY`` go direct. The environment is read once,
    at construction, so the resolver behaves the same for its whole life.
    """

    def __init__(self, environ: Mapping[str, str] | None = None) -> None:
        if environ is None:
            proxies = urllib.request.getproxies_environment()
        else:
            proxies = _proxies_from_mapping(environ)
        self._no_proxy = proxies.pop("no", "")
        self._proxies = {
            scheme: parse_proxy_url(value)
            for scheme, value in proxies.items()
            if value and scheme in ("http", "https", "all")
        }

    def __repr__(self) -> str:
        schemes = sorted(self._proxies)
        return f"EnvironmentProxyResolver(schemes={schemes!r})"

    def _bypass(self, url: httpx.URL) -> bool:
        if not self._no_proxy:
            return False
        host = url.host if url.port is None else f"{url.host}:{url.port}"
        return bool(
            urllib.request.proxy_bypass_environment(host, {"no": self._no_proxy})
        )

    def __call__(self, url: httpx.URL) -> httpx.URL | None:
        if self._bypass(url):
            return None
        return self._proxies.get(url.scheme) or self._proxies.get("all")


def _proxies_from_mapping(environ: Mapping[str, str]) -> dict[str, str]:
    # Same precedence as urllib: lowercase names win over uppercase ones
    proxies: dict[str, str] = {}
    for name, value in environ.items():
        key = name.lower()
        if value and key.endswith("_proxy"):
            if key == name or key[:-6] not in proxies:
                proxies[key[:-6]] = value
    return proxies


__all__ = [
    "EnvironmentProxyResolver",
    "FixedProxyResolver",
    "ProxyResolver",
    "parse_proxy_url",
    "proxy_url",
]
