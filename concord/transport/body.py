"""Response bodies that own the connection they were read from."""

from collections.abc import Iterable, Iterator

import httpx

from concord.core.logging import get_logger
from concord.transport.connection import Connection


logger = get_logger(__name__)


class ConnectionBoundStream(httpx.SyncByteStream):
    """Pass-through body stream that closes its connection on close.

    Exhausting the stream does not close anything; only :meth:`close` does,
    and only the first call has an effect.
    """

    def __init__(self, stream: Iterable[bytes], connection: Connection) -> None:
        self._stream = stream
        self._connection = connection
        self._closed = False

    @property
    def connection(self) -> Connection:
        return self._connection

    def __iter__(self) -> Iterator[bytes]:
        yield from self._stream

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        try:
            close = getattr(self._stream, "close", None)
            if close is not None:
                close()
        finally:
            self._connection.close()
            logger.debug("response_body_released", origin=str(self._connection.origin))


def bind_response(connection: Connection, response: httpx.Response) -> httpx.Response:
    """Return a copy of ``response`` whose body owns ``connection``.

    Ownership of the connection moves to the returned response: closing it
    closes the connection. A response that was already read keeps its
    buffered content.
    """
    headers = httpx.Headers(response.headers)
    try:
        stream: Iterable[bytes] = httpx.ByteStream(response.content)
    except httpx.ResponseNotRead:
        stream = response.stream
    else:
        # Buffered content is already decoded
        headers.pop("Content-Encoding", None)

    return httpx.Response(
        status_code=response.status_code,
        headers=headers,
        stream=ConnectionBoundStream(stream, connection),
        extensions=response.extensions,
    )


__all__ = ["ConnectionBoundStream", "bind_response"]
