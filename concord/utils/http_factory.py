"""Factory functions for building configured transports and httpx clients."""

import ssl
from pathlib import Path
from typing import Any

import httpx

from concord.config.settings import Settings, TLSSettings
from concord.core.logging import get_logger, setup_logging
from concord.handshakers.base import Handshaker
from concord.handshakers.basic import BasicProxyAuthorizer
from concord.transport.resolvers import (
    EnvironmentProxyResolver,
    FixedProxyResolver,
    ProxyResolver,
)
from concord.transport.transport import ProxyTransport


logger = get_logger(__name__)


def create_ssl_context(tls: TLSSettings) -> ssl.SSLContext:
    """Create an SSL context from TLS settings."""
    context = ssl.create_default_context()

    if not tls.verify:
        context.check_hostname = False
        context.verify_mode = ssl.CERT_NONE
        return context

    if tls.ca_bundle:
        ca_path = Path(tls.ca_bundle)
        if ca_path.exists():
            context.load_verify_locations(ca_path)
            logger.debug("ca_bundle_loaded", path=str(ca_path))
        else:
            logger.warning("ca_bundle_not_found", path=str(ca_path))

    if tls.client_cert:
        cert_path = Path(tls.client_cert)
        key_path = Path(tls.client_key) if tls.client_key else cert_path

        if cert_path.exists() and key_path.exists():
            context.load_cert_chain(cert_path, key_path)
            logger.debug("client_certificate_loaded", path=str(cert_path))
        else:
            logger.warning(
                "client_certificate_not_found",
                cert_path=str(cert_path),
                key_path=str(key_path),
            )

    return context


def configure_logging(settings: Settings) -> None:
    """Apply the logging section of the settings."""
    setup_logging(
        json_logs=settings.logging.json_logs, log_level=settings.logging.level
    )


def create_proxy_resolver(settings: Settings) -> ProxyResolver | None:
    """Pick the proxy resolver the settings ask for.

    An explicit proxy URL wins; otherwise the environment is consulted when
    ``trust_env`` is on.
    """
    if settings.proxy.url:
        return FixedProxyResolver(settings.proxy.url)
    if settings.proxy.trust_env:
        return EnvironmentProxyResolver()
    return None


def create_handshaker(settings: Settings) -> Handshaker | None:
    """Build a Basic authorizer when proxy credentials are configured."""
    if settings.proxy.username is None or settings.proxy.password is None:
        return None
    return BasicProxyAuthorizer(
        username=settings.proxy.username,
        password=settings.proxy.password.get_secret_value(),
    )


def create_transport(
    settings: Settings | None = None,
    *,
    proxy: ProxyResolver | None = None,
    handshaker: Handshaker | None = None,
) -> ProxyTransport:
    """Create a proxy transport from settings.

    Args:
        settings: Configuration, loaded from the environment when omitted
        proxy: Resolver that replaces the one derived from settings
        handshaker: Handshaker that replaces the one derived from settings

    Returns:
        Configured ProxyTransport
    """
    settings = settings or Settings()
    transport = ProxyTransport(
        proxy=proxy if proxy is not None else create_proxy_resolver(settings),
        handshaker=(
            handshaker if handshaker is not None else create_handshaker(settings)
        ),
        ssl_context=create_ssl_context(settings.tls),
    )
    logger.debug(
        "transport_created",
        proxy=repr(transport.proxy),
        handshaker=(
            transport.handshaker.scheme if transport.handshaker is not None else None
        ),
    )
    return transport


def create_client(settings: Settings | None = None, **kwargs: Any) -> httpx.Client:
    """Create an httpx client that sends every request through a ProxyTransport.

    Args:
        settings: Configuration, loaded from the environment when omitted
        **kwargs: Extra ``httpx.Client`` arguments (headers, base_url, ...)

    Returns:
        Configured httpx.Client
    """
    settings = settings or Settings()
    timeout = httpx.Timeout(
        connect=settings.timeouts.connect,
        read=settings.timeouts.read,
        write=settings.timeouts.write,
        pool=settings.timeouts.connect,
    )
    return httpx.Client(
        transport=create_transport(settings),
        timeout=timeout,
        trust_env=False,
        **kwargs,
    )


__all__ = [
    "configure_logging",
    "create_client",
    "create_handshaker",
    "create_proxy_resolver",
    "create_ssl_context",
    "create_transport",
]
