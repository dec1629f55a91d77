"""Olaf proxy server: wires the OAuth endpoints into a FastAPI app and runs it."""

import copy
from typing import Any, Awaitable, Callable, Dict, Optional, TypeVar, Union

import httpx
import uvicorn
from fastapi import FastAPI
from uvicorn.config import LOGGING_CONFIG

from olaf._logging import verbose_proxy_logger
from olaf._types import AccessToken
from olaf.codec import SecretValueCodec
from olaf.proxy.config import ProxyConfig
from olaf.proxy.oauth_endpoints import initialize_oauth_endpoints, router
from olaf.proxy.oauth_engine import OAuthExchangeEngine
from olaf.proxy.session_handler import ClosureHandler, SessionHandler, as_session_handler

R = TypeVar("R")


def create_app(
    config: ProxyConfig,
    session_handler: Any,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> FastAPI:
    """
    Create the proxy application.

    Each app owns its engine and handler; building another app does not
    affect this one.

    Args:
        config: Proxy configuration
        session_handler: A SessionHandler, or a callable taking the AccessToken
        transport: Optional HTTP transport for the token request

    Returns:
        FastAPI app exposing ``/oauth-cli/start`` and ``/oauth-cli/finish``
    """
    app = FastAPI(
        title="Olaf OAuth Proxy",
        description="OAuth 2.0 proxy authenticating command-line clients",
        version="0.2.0",
    )

    initialize_oauth_endpoints(
        app,
        OAuthExchangeEngine(config, transport=transport),
        as_session_handler(session_handler),
    )
    app.include_router(router)
    return app


def uvicorn_log_config() -> Dict[str, Any]:
    """uvicorn's default logging config with query strings stripped from access logs."""
    log_config = copy.deepcopy(LOGGING_CONFIG)
    log_config.setdefault("filters", {})["redact_query"] = {
        "()": "olaf._logging.RedactQueryFilter",
    }
    log_config["handlers"]["access"].setdefault("filters", []).append("redact_query")
    return log_config


def run(config: ProxyConfig, session_handler: SessionHandler) -> None:
    """Run the proxy server (blocking)."""
    app = create_app(config, session_handler)
    verbose_proxy_logger.info(f"Starting olaf proxy on {config.host}:{config.port}")
    uvicorn.run(
        app,
        host=config.host,
        port=config.port,
        log_level="info",
        log_config=uvicorn_log_config(),
    )


def run_with(
    config: ProxyConfig,
    func: Callable[[AccessToken], Union[R, Awaitable[R]]],
    codec: Optional[SecretValueCodec] = None,
) -> None:
    """Run the proxy server with a plain function as the session handler."""
    run(config, ClosureHandler(func, codec=codec))
