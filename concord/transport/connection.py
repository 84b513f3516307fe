"""Single-owner network connection with HTTP/1.1 framing.

A :class:`Connection` wraps one ``httpcore`` network stream. It frames
requests with ``httpcore.HTTP11Connection``, adopts the raw stream when the
peer accepts a CONNECT, upgrades to TLS on request, and can be closed exactly
once. Every write checks the closed flag first, so a torn down connection is
never silently reused.
"""

import ssl
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

import httpcore
import httpx

from concord.core.address import canonical_address, effective_port
from concord.core.errors import ClosedConnectionError, TransportIOError
from concord.core.logging import get_logger


logger = get_logger(__name__)


_IO_ERRORS = (
    httpcore.TimeoutException,
    httpcore.NetworkError,
    httpcore.ProtocolError,
    httpcore.ConnectionNotAvailable,
)


@contextmanager
def map_io_errors(operation: str) -> Iterator[None]:
    """Translate httpcore I/O failures into :class:`TransportIOError`."""
    try:
        yield
    except _IO_ERRORS as exc:
        raise TransportIOError(f"{operation} failed: {exc!r}", cause=exc) from exc


def origin_for(url: httpx.URL) -> httpcore.Origin:
    """Build the httpcore origin for a URL, filling in the default port."""
    return httpcore.Origin(
        scheme=url.raw_scheme,
        host=url.raw_host,
        port=effective_port(url),
    )


class CoreResponseStream(httpx.SyncByteStream):
    """Expose an httpcore response body as an httpx byte stream."""

    def __init__(self, stream: Any) -> None:
        self._stream = stream

    def __iter__(self) -> Iterator[bytes]:
        with map_io_errors("Reading response body"):
            yield from self._stream

    def close(self) -> None:
        if hasattr(self._stream, "close"):
            with map_io_errors("Closing response body"):
                self._stream.close()


class Connection:
    """One bidirectional byte stream owned by a single round trip.

    Attributes:
        origin: The peer requests are framed for. This is the proxy until a
            tunnel is adopted, then the destination.
        forwarding: True while requests go to a plain forward proxy and must
            use the absolute-form request target.
    """

    def __init__(
        self,
        stream: httpcore.NetworkStream,
        origin: httpcore.Origin,
        *,
        forwarding: bool = False,
    ) -> None:
        self.origin = origin
        self.forwarding = forwarding
        self._stream = stream
        self._http: httpcore.HTTP11Connection | None = None
        self._closed = False

    def __repr__(self) -> str:
        state = "closed" if self._closed else "open"
        return f"<Connection [{self.origin}, {state}]>"

    @property
    def closed(self) -> bool:
        return self._closed

    def _ensure_open(self) -> None:
        if self._closed:
            raise ClosedConnectionError(f"Connection to {self.origin} is closed")

    def _framer(self) -> httpcore.HTTP11Connection:
        if self._http is None:
            self._http = httpcore.HTTP11Connection(
                origin=self.origin, stream=self._stream
            )
        return self._http

    def _target(self, request: httpx.Request) -> bytes:
        if request.method == "CONNECT":
            return canonical_address(request.url).encode("ascii")
        if self.forwarding:
            url = request.url
            return url.raw_scheme + b"://" + url.netloc + url.raw_path
        return request.url.raw_path

    def send(self, request: httpx.Request) -> httpx.Response:
        """Write ``request`` and read the response status line and headers.

        The body is returned as a lazy stream; it must be read or closed
        before the next request on this connection. A 2xx answer to a
        CONNECT switches the connection to the raw tunnel stream.

        Raises:
            ClosedConnectionError: If the connection was already closed
            TransportIOError: If writing or reading fails
        """
        self._ensure_open()

        core_request = httpcore.Request(
            method=request.method.encode("ascii"),
            url=httpcore.URL(
                scheme=self.origin.scheme,
                host=self.origin.host,
                port=self.origin.port,
                target=self._target(request),
            ),
            headers=request.headers.raw,
            content=request.stream,
            extensions=request.extensions,
        )

        with map_io_errors(f"{request.method} {request.url}"):
            core_response = self._framer().handle_request(core_request)

        extensions = {
            key: value
            for key, value in core_response.extensions.items()
            if key != "network_stream"
        }

        if request.method == "CONNECT" and 200 <= core_response.status < 300:
            # The framer is done with this stream. Leave its response open:
            # closing it would tear down the socket underneath the tunnel.
            self._adopt_tunnel(core_response.extensions["network_stream"], request)
            return httpx.Response(
                status_code=core_response.status,
                headers=core_response.headers,
                extensions=extensions,
            )

        return httpx.Response(
            status_code=core_response.status,
            headers=core_response.headers,
            stream=CoreResponseStream(core_response.stream),
            extensions=extensions,
        )

    def _adopt_tunnel(
        self, stream: httpcore.NetworkStream, request: httpx.Request
    ) -> None:
        self._stream = stream
        self._http = None
        self.origin = origin_for(request.url)
        self.forwarding = False
        logger.debug(
            "tunnel_adopted",
            target=canonical_address(request.url),
        )

    def start_tls(
        self,
        ssl_context: ssl.SSLContext,
        server_hostname: str,
        timeout: float | None = None,
    ) -> None:
        """Layer a TLS session over the current stream.

        Raises:
            ClosedConnectionError: If the connection was already closed
            TransportIOError: If the TLS handshake fails
        """
        self._ensure_open()
        if self._http is not None:
            raise TransportIOError(
                f"Cannot start TLS on {self.origin} after HTTP traffic"
            )
        try:
            self._stream = self._stream.start_tls(
                ssl_context, server_hostname=server_hostname, timeout=timeout
            )
        except _IO_ERRORS as exc:
            raise TransportIOError(
                f"TLS handshake with {server_hostname} failed: {exc!r}", cause=exc
            ) from exc
        logger.debug("tls_established", server_hostname=server_hostname)

    def write(self, data: bytes, timeout: float | None = None) -> None:
        """Write raw bytes to the stream.

        Raises:
            ClosedConnectionError: If the connection was already closed
            TransportIOError: If the write fails
        """
        self._ensure_open()
        with map_io_errors(f"Writing to {self.origin}"):
            self._stream.write(data, timeout=timeout)

    def read(self, max_bytes: int = 65536, timeout: float | None = None) -> bytes:
        """Read up to ``max_bytes`` raw bytes from the stream."""
        self._ensure_open()
        with map_io_errors(f"Reading from {self.origin}"):
            return self._stream.read(max_bytes, timeout=timeout)

    def close(self) -> None:
        """Close the connection. Calling it again is a no-op."""
        if self._closed:
            return
        self._closed = True
        try:
            if self._http is not None:
                self._http.close()
            else:
                self._stream.close()
        except _IO_ERRORS as exc:
            logger.debug(
                "connection_close_failed", origin=str(self.origin), error=str(exc)
            )
        logger.debug("connection_closed", origin=str(self.origin))

    def __enter__(self) -> "Connection":
        return self

    def __exit__(self, *_args: Any) -> None:
        self.close()


__all__ = ["Connection", "CoreResponseStream", "map_io_errors", "origin_for"]
