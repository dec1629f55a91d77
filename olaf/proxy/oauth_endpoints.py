"""
OAuth CLI API Endpoints

FastAPI endpoints driving the proxy side of the handshake:

- ``POST /oauth-cli/start``: client asks for an authorization URL
- ``GET /oauth-cli/finish``: authorization server sends the user back;
  the code is exchanged, the session handler runs, and the browser is
  redirected to the client's loopback listener
"""

from typing import Optional
from urllib.parse import urlsplit

from fastapi import APIRouter, Depends, FastAPI, HTTPException, Query, Request, status
from fastapi.responses import HTMLResponse, JSONResponse, PlainTextResponse, RedirectResponse
from pydantic import ValidationError

from olaf._logging import verbose_proxy_logger
from olaf._types import FinParams, FinResponse, GenParams
from olaf.codec import encode_fin_response
from olaf.exceptions import ExchangeError, SessionHandlerError
from olaf.proxy.oauth_engine import OAuthExchangeEngine
from olaf.proxy.session_handler import SessionHandler, invoke_session_handler
from olaf.utils.redirect_page import NO_STORE_HEADERS, render_redirect_page

# Longer redirect targets are served as an auto-redirect page instead of a 303
MAX_REDIRECT_URL_LENGTH = 2000

# Failure markers sent to the client when echo_failures is enabled
ACCESS_DENIED = "access_denied"
EXCHANGE_FAILED = "exchange_failed"
SESSION_FAILED = "session_failed"


router = APIRouter(prefix="/oauth-cli", tags=["OAuth CLI"])


def initialize_oauth_endpoints(
    app: FastAPI,
    engine: OAuthExchangeEngine,
    handler: SessionHandler,
) -> None:
    """Install the exchange engine and session handler used by ``app``'s routes."""
    app.state.oauth_engine = engine
    app.state.session_handler = handler

    verbose_proxy_logger.info("OAuth CLI endpoints initialized")


def get_oauth_engine(request: Request) -> OAuthExchangeEngine:
    engine = getattr(request.app.state, "oauth_engine", None)
    if engine is None:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="OAuth proxy not configured"
        )
    return engine


def get_session_handler(request: Request) -> SessionHandler:
    handler = getattr(request.app.state, "session_handler", None)
    if handler is None:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Session handler not configured"
        )
    return handler


@router.post("/start", response_class=PlainTextResponse)
async def start_oauth(
    params: GenParams,
    engine: OAuthExchangeEngine = Depends(get_oauth_engine),
):
    """
    Generate the authorization URL for the client to visit.

    This runs on the proxy because the URL is bound to the proxy's OAuth
    client identity and its redirect route.
    """
    try:
        auth_url = engine.generate_authorization_url(params.csrf_token, params.client_port)
    except Exception as e:
        verbose_proxy_logger.error(f"Failed to generate authorization URL: {type(e).__name__}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to generate authorization URL"
        )

    verbose_proxy_logger.info(f"Started handshake for client port {params.client_port}")
    return PlainTextResponse(auth_url)


@router.get("/finish")
async def finish_oauth(
    client_port: Optional[str] = Query(None),
    state: Optional[str] = Query(None),
    csrf_token: Optional[str] = Query(None),
    code: Optional[str] = Query(None),
    error: Optional[str] = Query(None),
    engine: OAuthExchangeEngine = Depends(get_oauth_engine),
    handler: SessionHandler = Depends(get_session_handler),
):
    """
    Complete the handshake and send the browser back to the client.

    Exchanges the authorization code for an access token, runs the session
    handler on it, and redirects to ``http://{client_redirect_host}:{client_port}/``
    with the CSRF token and the serialized result.
    """
    raw = {"client_port": client_port, "csrf_token": csrf_token or state}
    if code is not None:
        raw["code"] = code
    if error is not None:
        raw["error"] = error

    try:
        params = FinParams.model_validate(raw)
    except ValidationError:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="Missing or invalid parameters: state, client_port"
        )

    if params.error is not None:
        verbose_proxy_logger.warning(
            f"Authorization server refused the request for client port {params.client_port}"
        )
        return _fail(engine, params, ACCESS_DENIED)

    if not params.authorization_code:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="Missing required parameter: code"
        )

    try:
        token = await engine.exchange_code(
            params.authorization_code,
            redirect_url=engine.redirect_url_for(params.client_port),
        )
    except ExchangeError:
        return _fail(engine, params, EXCHANGE_FAILED)

    try:
        encoded = await invoke_session_handler(handler, token)
    except SessionHandlerError:
        return _fail(engine, params, SESSION_FAILED)

    fin_response = FinResponse(
        csrf_token=params.csrf_token,
        response=encoded,
        welcome_redirect=engine.config.welcome_redirect,
    )
    verbose_proxy_logger.info(f"Handshake complete, redirecting to client port {params.client_port}")
    return _redirect_to_client(engine, fin_response, params.client_port)


@router.get("/health")
async def health_check(request: Request):
    """Report that the proxy is configured and which provider it uses."""
    engine = getattr(request.app.state, "oauth_engine", None)
    handler = getattr(request.app.state, "session_handler", None)
    if engine is None or handler is None:
        return JSONResponse(
            content={
                "status": "unhealthy",
                "message": "OAuth proxy not configured"
            },
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE
        )

    return JSONResponse(
        content={
            "status": "healthy",
            "provider": urlsplit(engine.config.oauth_provider.authorize_url).hostname,
        }
    )


def _fail(engine: OAuthExchangeEngine, params: FinParams, marker: str):
    if engine.config.echo_failures:
        fin_response = FinResponse(csrf_token=params.csrf_token, error=marker)
        return _redirect_to_client(engine, fin_response, params.client_port)

    raise HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail="OAuth handshake failed",
        headers=NO_STORE_HEADERS,
    )


def _redirect_to_client(engine: OAuthExchangeEngine, fin_response: FinResponse, client_port: int):
    redirect_url = encode_fin_response(
        fin_response, client_port, host=engine.config.client_redirect_host
    )

    if len(redirect_url) > MAX_REDIRECT_URL_LENGTH:
        return HTMLResponse(
            render_redirect_page(redirect_url, title="Finishing sign-in"),
            headers=NO_STORE_HEADERS,
        )

    return RedirectResponse(
        redirect_url,
        status_code=status.HTTP_303_SEE_OTHER,
        headers=NO_STORE_HEADERS,
    )
