"""CONNECT tunnels through a forward proxy."""

from typing import Any

import httpx

from concord.core.address import canonical_address
from concord.core.errors import TunnelError
from concord.core.logging import get_logger
from concord.transport.connection import Connection


logger = get_logger(__name__)


def connect_request(
    url: httpx.URL,
    headers: dict[str, str] | None = None,
    extensions: dict[str, Any] | None = None,
) -> httpx.Request:
    """Build the CONNECT request that opens a tunnel to ``url``.

    The request target and ``Host`` header are both the destination's
    canonical address.
    """
    address = canonical_address(url)
    connect_headers = {"Host": address}
    if headers:
        connect_headers.update(headers)
    return httpx.Request(
        "CONNECT", url, headers=connect_headers, extensions=extensions or {}
    )


def is_success(response: httpx.Response) -> bool:
    return 200 <= response.status_code < 300


def establish_tunnel(
    connection: Connection,
    url: httpx.URL,
    *,
    extensions: dict[str, Any] | None = None,
) -> httpx.Response:
    """Ask the proxy on ``connection`` for a tunnel to ``url``.

    On success the connection now carries the raw tunnel stream, ready for a
    TLS handshake with the destination.

    Returns:
        The proxy's 2xx response (status line and headers only)

    Raises:
        TunnelError: If the proxy answers with anything but 2xx. The error
            carries the response with its body still unread; whoever handles
            the error must read or close it.
        TransportIOError: If the exchange itself fails
    """
    request = connect_request(url, extensions=extensions)
    response = connection.send(request)
    if is_success(response):
        logger.debug(
            "tunnel_established",
            target=canonical_address(url),
            status_code=response.status_code,
        )
        return response

    logger.debug(
        "tunnel_refused",
        target=canonical_address(url),
        status_code=response.status_code,
    )
    raise TunnelError(
        f"Proxy refused tunnel to {canonical_address(url)}: "
        f"{response.status_code} {response.reason_phrase}",
        status_code=response.status_code,
        headers=response.headers,
        response=response,
    )


__all__ = ["connect_request", "establish_tunnel", "is_success"]
