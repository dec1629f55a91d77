"""
Olaf - OAuth 2.0 authentication for command-line applications via a proxy.

The proxy holds the OAuth client secret and runs the authorization code
grant; the command-line client only runs a loopback listener and receives
the value produced by the proxy's session handler (an access token, a
user identity, ...).

Terminology:
    Server: the OAuth 2.0 authorization server (e.g. Github)
    Proxy: the OAuth 2.0 client holding the client secret
    Client: the command-line application being authenticated
"""

__version__ = "0.2.0"

from olaf._types import AccessToken, FinParams, FinResponse, GenParams, new_csrf_token
from olaf.client import ClientOrchestrator, HandshakeState, authenticate
from olaf.codec import JsonCodec, ModelCodec, SecretValueCodec, StringCodec
from olaf.exceptions import (
    BindFailure,
    CodecError,
    ConfigError,
    CsrfMismatch,
    ExchangeError,
    HandshakeTimeout,
    NetworkFailure,
    OlafError,
    ProxyFailure,
    SessionHandlerError,
)

__all__ = [
    "__version__",
    "AccessToken",
    "FinParams",
    "FinResponse",
    "GenParams",
    "new_csrf_token",
    "ClientOrchestrator",
    "HandshakeState",
    "authenticate",
    "JsonCodec",
    "ModelCodec",
    "SecretValueCodec",
    "StringCodec",
    "BindFailure",
    "CodecError",
    "ConfigError",
    "CsrfMismatch",
    "ExchangeError",
    "HandshakeTimeout",
    "NetworkFailure",
    "OlafError",
    "ProxyFailure",
    "SessionHandlerError",
]
