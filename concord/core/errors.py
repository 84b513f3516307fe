"""Core error types for the proxy transport."""

from collections.abc import Mapping
from typing import TYPE_CHECKING


if TYPE_CHECKING:
    import httpx


class ConcordError(Exception):
    """Base exception for all transport errors.

    Every error names the ``stage`` of the round trip that failed and whether
    the failure is worth retrying on a fresh connection.
    """

    stage = "transport"
    retryable = False

    def __init__(self, message: str, cause: Exception | None = None):
        """Initialize with a message and optional cause.

        Args:
            message: The error message
            cause: The underlying exception that caused this error
        """
        super().__init__(message)
        self.cause = cause
        if cause:
            self.__cause__ = cause


class InvalidRequestError(ConcordError):
    """Error raised when a request target or proxy URL is malformed."""

    stage = "request"

    def __init__(
        self, message: str, url: str | None = None, cause: Exception | None = None
    ):
        super().__init__(message, cause)
        self.url = url


class ProxyResolutionError(ConcordError):
    """Error raised when the proxy resolver itself fails."""

    stage = "resolve"

    def __init__(
        self, message: str, url: str | None = None, cause: Exception | None = None
    ):
        super().__init__(message, cause)
        self.url = url


class DialError(ConcordError):
    """Error raised when a network connection cannot be established."""

    stage = "dial"
    retryable = True

    def __init__(
        self,
        message: str,
        address: str | None = None,
        timeout: float | None = None,
        cause: Exception | None = None,
    ):
        """Initialize with a message, dialed address, and cause.

        Args:
            message: The error message
            address: The ``host:port`` that could not be reached
            timeout: The connect timeout in effect, if any
            cause: The underlying exception
        """
        super().__init__(message, cause)
        self.address = address
        self.timeout = timeout


class TunnelError(ConcordError):
    """Error raised when the proxy refuses a CONNECT tunnel.

    Carries the proxy's status and headers, and the drained response itself,
    so callers can look for an authentication challenge.
    """

    stage = "tunnel"

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        headers: Mapping[str, str] | None = None,
        response: "httpx.Response | None" = None,
        cause: Exception | None = None,
    ):
        super().__init__(message, cause)
        self.status_code = status_code
        self.headers = headers
        self.response = response

    @property
    def is_challenge(self) -> bool:
        """Whether the proxy answered the CONNECT with 407."""
        return self.status_code == 407


class HandshakeError(ConcordError):
    """Error raised when proxy authentication fails."""

    stage = "handshake"

    def __init__(
        self,
        message: str,
        scheme: str | None = None,
        cause: Exception | None = None,
    ):
        """Initialize with a message, auth scheme, and cause.

        Args:
            message: The error message
            scheme: The authentication scheme that failed
            cause: The underlying exception
        """
        super().__init__(message, cause)
        self.scheme = scheme


class TransportIOError(ConcordError):
    """Error raised when a read or write fails mid-exchange."""

    stage = "io"
    retryable = True


class ClosedConnectionError(ConcordError):
    """Error raised when an operation targets an already closed connection."""

    stage = "io"


__all__ = [
    "ClosedConnectionError",
    "ConcordError",
    "DialError",
    "HandshakeError",
    "InvalidRequestError",
    "ProxyResolutionError",
    "TransportIOError",
    "TunnelError",
]
