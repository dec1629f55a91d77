"""
Olaf exception hierarchy.

Every failure of a handshake attempt is terminal for that attempt; callers
receive exactly one of these. None of them carry secret material.
"""

from typing import Optional


class OlafError(Exception):
    """Base class for all olaf errors."""


class ConfigError(OlafError):
    """Proxy configuration is missing or invalid."""


class BindFailure(OlafError):
    """The client callback listener could not acquire a loopback port."""


class NetworkFailure(OlafError):
    """The client could not obtain an authorization URL from the proxy."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class ExchangeError(OlafError):
    """The authorization code could not be exchanged for an access token."""


class SessionHandlerError(OlafError):
    """The embedder-supplied session handler failed."""


class CsrfMismatch(OlafError):
    """The completion request does not belong to this handshake."""

    def __init__(self, message: str = "CSRF token mismatch on completion request"):
        super().__init__(message)


class HandshakeTimeout(OlafError):
    """No completion request arrived before the deadline."""


class ProxyFailure(OlafError):
    """The proxy reported an explicit failure marker instead of a response."""

    def __init__(self, marker: str):
        super().__init__(f"Proxy reported handshake failure: {marker}")
        self.marker = marker


class CodecError(OlafError):
    """A response payload could not be serialized or deserialized."""
