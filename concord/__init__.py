"""concord: a proxy-aware, one-connection-per-request httpx transport."""

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
from concord.handshakers import BasicProxyAuthorizer, Handshaker
from concord.transport import (
    Connection,
    EnvironmentProxyResolver,
    FixedProxyResolver,
    ProxyResolver,
    ProxyTransport,
    bind_response,
    proxy_url,
)


__version__ = "0.1.0"

__all__ = [
    # Transport
    "ProxyTransport",
    "Connection",
    "bind_response",
    "canonical_address",
    # Proxy resolution
    "ProxyResolver",
    "FixedProxyResolver",
    "EnvironmentProxyResolver",
    "proxy_url",
    # Authentication
    "Handshaker",
    "BasicProxyAuthorizer",
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
