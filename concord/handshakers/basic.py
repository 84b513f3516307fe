"""Basic proxy authentication."""

import base64
from typing import TYPE_CHECKING

import httpx

from concord.core.errors import ClosedConnectionError, HandshakeError, TransportIOError
from concord.core.logging import get_logger
from concord.handshakers.base import (
    PROXY_AUTHORIZATION,
    Handshaker,
    is_challenge,
    parse_challenges,
)


if TYPE_CHECKING:
    from concord.transport.connection import Connection


logger = get_logger(__name__)


def basic_auth_header(username: str, password: str) -> str:
    """Return the ``Proxy-Authorization`` value for a username and password."""
    token = base64.b64encode(f"{username}:{password}".encode()).decode("ascii")
    return f"Basic {token}"


class BasicProxyAuthorizer(Handshaker):
    """Answers Basic challenges with a fixed username and password.

    Any realm is accepted. A challenge without a ``Proxy-Authenticate``
    header is assumed to be Basic.
    """

    scheme = "Basic"

    def __init__(self, username: str, password: str) -> None:
        self.username = username
        self.password = password

    def __repr__(self) -> str:
        return f"BasicProxyAuthorizer(username={self.username!r})"

    @property
    def authorization(self) -> str:
        return basic_auth_header(self.username, self.password)

    def authorize(self, request: httpx.Request) -> httpx.Request:
        """Return a copy of ``request`` carrying the Basic credentials."""
        headers = request.headers.copy()
        headers[PROXY_AUTHORIZATION] = self.authorization
        return httpx.Request(
            method=request.method,
            url=request.url,
            headers=headers,
            stream=request.stream,
            extensions=request.extensions,
        )

    def handshake(
        self,
        challenge: httpx.Response,
        request: httpx.Request,
        connection: "Connection",
    ) -> httpx.Response:
        challenges = parse_challenges(challenge.headers)
        if challenges and not any(c.names(self.scheme) for c in challenges):
            offered = ", ".join(c.scheme for c in challenges)
            raise HandshakeError(
                f"Proxy offered unsupported authentication schemes: {offered}",
                scheme=challenges[0].scheme,
            )

        try:
            response = connection.send(self.authorize(request))
        except (TransportIOError, ClosedConnectionError) as exc:
            raise HandshakeError(
                f"Connection failed during Basic handshake: {exc}",
                scheme=self.scheme,
                cause=exc,
            ) from exc

        if is_challenge(response):
            response.close()
            logger.warning(
                "proxy_auth_rejected",
                scheme=self.scheme,
                url=str(request.url),
            )
            raise HandshakeError(
                "Proxy rejected Basic credentials", scheme=self.scheme
            )

        logger.debug(
            "proxy_auth_accepted",
            scheme=self.scheme,
            status_code=response.status_code,
        )
        return response


__all__ = ["BasicProxyAuthorizer", "basic_auth_header"]
