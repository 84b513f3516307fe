"""Pluggable proxy authentication handshakes."""

import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import TYPE_CHECKING
from urllib.request import parse_http_list

import httpx


if TYPE_CHECKING:
    from concord.transport.connection import Connection


PROXY_AUTHENTICATE = "Proxy-Authenticate"
PROXY_AUTHORIZATION = "Proxy-Authorization"

# auth-param = token BWS "=" BWS ( token / quoted-string )
_AUTH_PARAM = re.compile(r"[^\s=,]+\s*=")


@dataclass(frozen=True)
class Challenge:
    """One authentication challenge from a ``Proxy-Authenticate`` header."""

    scheme: str
    params: dict[str, str] = field(default_factory=dict)

    @property
    def realm(self) -> str | None:
        return self.params.get("realm")

    def names(self, scheme: str) -> bool:
        return self.scheme.lower() == scheme.lower()


def _param(text: str) -> tuple[str, str]:
    name, _, raw = text.partition("=")
    raw = raw.strip()
    # parse_http_list has already removed backslash escapes
    if len(raw) >= 2 and raw.startswith('"') and raw.endswith('"'):
        raw = raw[1:-1]
    return name.strip().lower(), raw


def _parse_header(value: str) -> list[Challenge]:
    # 'Negotiate, Basic realm="proxy", charset="UTF-8"' holds two challenges;
    # an item that does not start with "name=" opens the next one
    challenges: list[Challenge] = []
    scheme: str | None = None
    params: dict[str, str] = {}
    for item in parse_http_list(value):
        item = item.strip()
        if not item:
            continue
        if _AUTH_PARAM.match(item):
            if scheme is not None:
                name, raw = _param(item)
                params[name] = raw
            continue
        if scheme is not None:
            challenges.append(Challenge(scheme=scheme, params=params))
        scheme, _, rest = item.partition(" ")
        params = {}
        if "=" in rest:
            name, raw = _param(rest)
            params[name] = raw
    if scheme is not None:
        challenges.append(Challenge(scheme=scheme, params=params))
    return challenges


def parse_challenges(headers: httpx.Headers) -> list[Challenge]:
    """Parse every ``Proxy-Authenticate`` header into challenges.

    A header may carry several comma separated challenges, and proxies may
    also send one header per scheme; both forms are accepted.
    """
    challenges = []
    for value in headers.get_list(PROXY_AUTHENTICATE):
        challenges.extend(_parse_header(value))
    return challenges


def is_challenge(response: httpx.Response) -> bool:
    """Whether ``response`` demands proxy credentials."""
    return response.status_code == httpx.codes.PROXY_AUTHENTICATION_REQUIRED


class Handshaker(ABC):
    """Base class for proxy authentication strategies.

    A handshaker answers one ``407 Proxy Authentication Required`` response.
    It re-issues the original request over the same connection with whatever
    credentials its scheme calls for and returns the proxy's new response.
    Strategies are chosen by configuration; the transport never looks at
    the concrete type.
    """

    scheme: str = ""

    @abstractmethod
    def handshake(
        self,
        challenge: httpx.Response,
        request: httpx.Request,
        connection: "Connection",
    ) -> httpx.Response:
        """Answer a proxy authentication challenge.

        Args:
            challenge: The 407 response, with its body already drained
            request: The request the proxy challenged
            connection: The live connection the challenge arrived on

        Returns:
            The proxy's response to the authorized request

        Raises:
            HandshakeError: If the scheme is unsupported, the credentials
                are rejected again, or the connection fails mid-exchange
        """
        raise NotImplementedError()


__all__ = [
    "Challenge",
    "Handshaker",
    "PROXY_AUTHENTICATE",
    "PROXY_AUTHORIZATION",
    "is_challenge",
    "parse_challenges",
]
