"""Core building blocks: errors, logging, and address handling."""

from concord.core.address import canonical_address
from concord.core.errors import (
    ClosedConnectionError,
    ConcordError,
    DialError,
    HandshakeError,
    InvalidRequestError,
    ProxyResolutionError,
    TransportIOError,
    TunnelError,
)


__all__ = [
    # Addresses
    "canonical_address",
    # Error types
    "ConcordError",
    "InvalidRequestError",
    "ProxyResolutionError",
    "DialError",
    "TunnelError",
    "HandshakeError",
    "TransportIOError",
    "ClosedConnectionError",
]
