"""Configuration for concord transports and clients."""

from .settings import (
    ConfigurationError,
    LoggingSettings,
    ProxySettings,
    Settings,
    TimeoutSettings,
    TLSSettings,
)


__all__ = [
    "ConfigurationError",
    "LoggingSettings",
    "ProxySettings",
    "Settings",
    "TimeoutSettings",
    "TLSSettings",
]
