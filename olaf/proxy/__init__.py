"""
Olaf proxy: the OAuth 2.0 client that holds the client secret.
"""

from .config import GITHUB, OAuthProvider, ProxyConfig
from .oauth_engine import OAuthExchangeEngine, build_authorization_url
from .proxy_server import create_app, run, run_with
from .session_handler import (
    ClosureHandler,
    GithubLoginHandler,
    SessionHandler,
    TokenPassthroughHandler,
)

__all__ = [
    "GITHUB",
    "OAuthProvider",
    "ProxyConfig",
    "OAuthExchangeEngine",
    "build_authorization_url",
    "create_app",
    "run",
    "run_with",
    "ClosureHandler",
    "GithubLoginHandler",
    "SessionHandler",
    "TokenPassthroughHandler",
]
