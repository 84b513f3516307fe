"""httpx transport that routes each request through an optional proxy."""

import ssl
from typing import Any

import httpx

from concord.core.address import canonical_address, is_secure
from concord.core.errors import (
    ConcordError,
    HandshakeError,
    InvalidRequestError,
    ProxyResolutionError,
    TunnelError,
)
from concord.core.logging import get_logger
from concord.handshakers.base import Handshaker, is_challenge
from concord.transport.body import bind_response
from concord.transport.connection import Connection
from concord.transport.dial import acquire_connection
from concord.transport.resolvers import ProxyResolver, parse_proxy_url
from concord.transport.tunnel import connect_request, establish_tunnel, is_success


logger = get_logger(__name__)

REQUEST_SCHEMES = frozenset({"http", "https"})


class ProxyTransport(httpx.BaseTransport):
    """Performs one request over one dedicated connection.

    The connection goes straight to the destination, or to the proxy the
    resolver picks. https destinations behind a proxy get a CONNECT tunnel.
    A ``407`` is handed to the configured handshaker once; without one the
    ``407`` is returned to the caller. The returned response owns the
    connection, which is closed when the response is closed.

    The transport keeps no per-request state and can be shared between
    threads.
    """

    def __init__(
        self,
        proxy: ProxyResolver | None = None,
        handshaker: Handshaker | None = None,
        ssl_context: ssl.SSLContext | None = None,
    ) -> None:
        """Initialize the transport.

        Args:
            proxy: Picks the proxy URL for each request, or None for direct
            handshaker: Answers proxy authentication challenges
            ssl_context: TLS settings for https destinations and proxies
        """
        self.proxy = proxy
        self.handshaker = handshaker
        self.ssl_context = ssl_context or ssl.create_default_context()

    def handle_request(self, request: httpx.Request) -> httpx.Response:
        return self.round_trip(request)

    def round_trip(self, request: httpx.Request) -> httpx.Response:
        """Send ``request`` and return the response bound to its connection.

        Raises:
            InvalidRequestError: If the request URL is not http(s) with a host
            ProxyResolutionError: If the proxy resolver fails
            DialError: If the connection cannot be established
            TunnelError: If the proxy refuses the CONNECT tunnel
            HandshakeError: If proxy authentication fails
            TransportIOError: If reading or writing fails mid-exchange
        """
        url = request.url
        if url.scheme not in REQUEST_SCHEMES or not url.host:
            raise InvalidRequestError(f"Invalid request URL: {url}", url=str(url))

        proxy_url = self._resolve_proxy(url)
        timeouts: dict[str, Any] = request.extensions.get("timeout", {})

        if self.handshaker is not None:
            # A challenged request is sent twice
            request.read()

        connection = acquire_connection(
            url,
            proxy_url,
            ssl_context=self.ssl_context,
            timeout=timeouts.get("connect"),
        )
        try:
            response = self._exchange(request, connection, proxy_url)
        except BaseException as exc:
            connection.close()
            if isinstance(exc, ConcordError):
                logger.warning(
                    "round_trip_failed",
                    method=request.method,
                    url=str(url),
                    stage=exc.stage,
                    error=str(exc),
                )
            raise

        return bind_response(connection, response)

    def _resolve_proxy(self, url: httpx.URL) -> httpx.URL | None:
        if self.proxy is None:
            return None
        try:
            proxy_url = self.proxy(url)
        except ConcordError:
            raise
        except Exception as exc:
            raise ProxyResolutionError(
                f"Proxy resolution failed for {url}: {exc}", url=str(url), cause=exc
            ) from exc
        if proxy_url is None:
            return None
        proxy = parse_proxy_url(proxy_url)
        logger.debug(
            "proxy_resolved", url=str(url), proxy=f"{proxy.scheme}://{proxy.host}"
        )
        return proxy

    def _exchange(
        self,
        request: httpx.Request,
        connection: Connection,
        proxy_url: httpx.URL | None,
    ) -> httpx.Response:
        url = request.url
        timeouts: dict[str, Any] = request.extensions.get("timeout", {})

        if is_secure(url):
            if proxy_url is not None:
                challenge = self._tunnel(request, connection)
                if challenge is not None:
                    return challenge
            connection.start_tls(
                self.ssl_context,
                server_hostname=url.host,
                timeout=timeouts.get("connect"),
            )

        response = connection.send(request)
        if is_challenge(response) and self.handshaker is not None:
            response = self._handshake(response, request, connection)
        return response

    def _tunnel(
        self, request: httpx.Request, connection: Connection
    ) -> httpx.Response | None:
        """Open the CONNECT tunnel, authenticating if the proxy asks.

        Returns the proxy's 407 when there is no handshaker to answer it,
        otherwise None once the tunnel is open.
        """
        try:
            establish_tunnel(connection, request.url, extensions=request.extensions)
            return None
        except TunnelError as exc:
            if not exc.is_challenge or exc.response is None:
                if exc.response is not None:
                    exc.response.close()
                raise
            if self.handshaker is None:
                return exc.response
            challenge = exc.response

        response = self._handshake(
            challenge,
            connect_request(request.url, extensions=request.extensions),
            connection,
        )
        if not is_success(response):
            response.close()
            raise TunnelError(
                f"Proxy refused tunnel to {canonical_address(request.url)} "
                f"after authentication: {response.status_code}",
                status_code=response.status_code,
                headers=response.headers,
            )
        return None

    def _handshake(
        self,
        challenge: httpx.Response,
        request: httpx.Request,
        connection: Connection,
    ) -> httpx.Response:
        assert self.handshaker is not None
        logger.debug(
            "proxy_auth_challenge",
            url=str(request.url),
            method=request.method,
            proxy_authenticate=challenge.headers.get("Proxy-Authenticate"),
        )

        try:
            # Drain the challenge so the connection is free for the retry
            challenge.read()
            response = self.handshaker.handshake(challenge, request, connection)
        except HandshakeError:
            raise
        except ConcordError as exc:
            raise HandshakeError(
                f"Proxy authentication failed: {exc}",
                scheme=self.handshaker.scheme or None,
                cause=exc,
            ) from exc

        if is_challenge(response):
            response.close()
            raise HandshakeError(
                "Proxy challenged the request again after authentication",
                scheme=self.handshaker.scheme or None,
            )
        return response

    def close(self) -> None:
        """Nothing to release; connections belong to their responses."""


__all__ = ["ProxyTransport", "REQUEST_SCHEMES"]
