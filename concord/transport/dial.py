"""Open the one network connection a round trip uses."""

import ssl

import httpcore
import httpx

from concord.core.address import canonical_address, effective_port
from concord.core.errors import DialError, InvalidRequestError
from concord.core.logging import get_logger
from concord.transport.connection import Connection, origin_for


logger = get_logger(__name__)

PROXY_SCHEMES = frozenset({"http", "https"})

_backend = httpcore.SyncBackend()


def acquire_connection(
    url: httpx.URL,
    proxy_url: httpx.URL | None = None,
    *,
    ssl_context: ssl.SSLContext | None = None,
    timeout: float | None = None,
) -> Connection:
    """Dial the proxy if one is given, otherwise the destination itself.

    A single attempt is made. With an ``https`` proxy the returned connection
    already carries a TLS session to the proxy.

    Args:
        url: The request's destination URL
        proxy_url: The proxy chosen for this request, if any
        ssl_context: TLS settings used when the proxy speaks https
        timeout: Connect timeout in seconds, None to block

    Returns:
        An open connection

    Raises:
        InvalidRequestError: If the proxy URL has an unsupported scheme
        DialError: If the connection cannot be established
    """
    peer = url if proxy_url is None else proxy_url
    if proxy_url is not None and proxy_url.scheme not in PROXY_SCHEMES:
        raise InvalidRequestError(
            f"Unsupported proxy scheme {proxy_url.scheme!r}", url=str(proxy_url)
        )

    address = canonical_address(peer)
    try:
        stream = _backend.connect_tcp(
            peer.host, effective_port(peer), timeout=timeout
        )
    except (httpcore.ConnectError, httpcore.ConnectTimeout) as exc:
        logger.warning("dial_failed", address=address, error=str(exc))
        raise DialError(
            f"Could not connect to {address}: {exc!r}",
            address=address,
            timeout=timeout,
            cause=exc,
        ) from exc

    connection = Connection(
        stream, origin_for(peer), forwarding=proxy_url is not None
    )
    logger.debug(
        "connection_dialed", address=address, via_proxy=proxy_url is not None
    )

    if proxy_url is not None and proxy_url.scheme == "https":
        try:
            connection.start_tls(
                ssl_context or ssl.create_default_context(),
                server_hostname=proxy_url.host,
                timeout=timeout,
            )
        except Exception:
            connection.close()
            raise

    return connection


__all__ = ["PROXY_SCHEMES", "acquire_connection"]
