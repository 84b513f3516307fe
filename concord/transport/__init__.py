"""Connection handling and the proxy-aware httpx transport."""

from concord.transport.body import ConnectionBoundStream, bind_response
from concord.transport.connection import Connection
from concord.transport.dial import acquire_connection
from concord.transport.resolvers import (
    EnvironmentProxyResolver,
    FixedProxyResolver,
    ProxyResolver,
    proxy_url,
)
from concord.transport.transport import ProxyTransport
from concord.transport.tunnel import connect_request, establish_tunnel


__all__ = [
    "Connection",
    "ConnectionBoundStream",
    "EnvironmentProxyResolver",
    "FixedProxyResolver",
    "ProxyResolver",
    "ProxyTransport",
    "acquire_connection",
    "bind_response",
    "connect_request",
    "establish_tunnel",
    "proxy_url",
]
