"""Utility modules for concord."""

from .http_factory import (
    configure_logging,
    create_client,
    create_handshaker,
    create_proxy_resolver,
    create_ssl_context,
    create_transport,
)


__all__ = [
    "configure_logging",
    "create_client",
    "create_handshaker",
    "create_proxy_resolver",
    "create_ssl_context",
    "create_transport",
]
