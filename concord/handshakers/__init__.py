"""Proxy authentication handshakers."""

from concord.handshakers.base import Challenge, Handshaker, parse_challenges
from concord.handshakers.basic import BasicProxyAuthorizer, basic_auth_header


__all__ = [
    "BasicProxyAuthorizer",
    "Challenge",
    "Handshaker",
    "basic_auth_header",
    "parse_challenges",
]
