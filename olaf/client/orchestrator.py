"""
Client Orchestrator

Runs one handshake from the command-line side:

    IDLE -> LISTENER_STARTED -> AUTHORIZATION_URL_REQUESTED
         -> BROWSER_LAUNCHED -> AWAITING_CALLBACK -> COMPLETED | FAILED
"""

import sys
import webbrowser
from concurrent.futures import CancelledError
from concurrent.futures import TimeoutError as FutureTimeoutError
from enum import Enum
from typing import Callable, Generic, Optional, TypeVar

import httpx

from olaf._logging import redact_url, verbose_client_logger
from olaf._types import GenParams, new_csrf_token
from olaf.client.callback_listener import CallbackListener
from olaf.codec import SecretValueCodec, StringCodec
from olaf.exceptions import HandshakeTimeout, NetworkFailure

R = TypeVar("R")

START_PATH = "/oauth-cli/start"
DEFAULT_TIMEOUT = 300.0


class HandshakeState(str, Enum):
    IDLE = "idle"
    LISTENER_STARTED = "listener_started"
    AUTHORIZATION_URL_REQUESTED = "authorization_url_requested"
    BROWSER_LAUNCHED = "browser_launched"
    AWAITING_CALLBACK = "awaiting_callback"
    COMPLETED = "completed"
    FAILED = "failed"


def _default_browser_opener(url: str) -> bool:
    try:
        return webbrowser.open(url)
    except webbrowser.Error:
        return False


class ClientOrchestrator(Generic[R]):
    """
    Drives a single handshake against an olaf proxy.

    One instance runs one handshake; ``run()`` may only be called once.
    """

    def __init__(
        self,
        proxy_url: str,
        codec: Optional[SecretValueCodec] = None,
        timeout: Optional[float] = DEFAULT_TIMEOUT,
        open_browser: bool = True,
        http_client: Optional[httpx.Client] = None,
        browser_opener: Callable[[str], bool] = _default_browser_opener,
        listener_factory: Callable[..., CallbackListener] = CallbackListener,
        request_timeout: float = 30.0,
    ):
        """
        Args:
            proxy_url: Base URL of the proxy, e.g. ``https://auth.example.com``
            codec: Decoder for the result; must match the proxy's session handler
            timeout: Seconds to wait for the browser to come back (None waits forever)
            open_browser: Whether to try launching the system browser
            http_client: Client used for the start request (a fresh one if omitted)
            browser_opener: Callable opening a URL, returning False on failure
            listener_factory: Builds the callback listener from (csrf_token, codec)
            request_timeout: Timeout for the start request
        """
        self.proxy_url = proxy_url.rstrip("/")
        self.codec = codec or StringCodec()
        self.timeout = timeout
        self.open_browser = open_browser
        self.http_client = http_client
        self.browser_opener = browser_opener
        self.listener_factory = listener_factory
        self.request_timeout = request_timeout

        self.state = HandshakeState.IDLE
        self.authorization_url: Optional[str] = None
        self.listener: Optional[CallbackListener] = None

    def run(self) -> R:
        """
        Perform the handshake and return the value delivered by the proxy.

        Raises:
            BindFailure: Listener could not bind; no request was sent
            NetworkFailure: The start request failed
            CsrfMismatch: The completion request belonged to another handshake
            ProxyFailure: The proxy reported a failure marker
            HandshakeTimeout: The browser never came back
        """
        if self.state is not HandshakeState.IDLE:
            raise RuntimeError("A ClientOrchestrator runs exactly one handshake")

        try:
            result = self._run()
        except Exception:
            self.state = HandshakeState.FAILED
            raise
        finally:
            if self.listener is not None:
                self.listener.stop()

        self.state = HandshakeState.COMPLETED
        verbose_client_logger.info("Handshake completed")
        return result

    def _run(self) -> R:
        csrf_token = new_csrf_token()
        self.listener = self.listener_factory(csrf_token, self.codec)
        port, result = self.listener.start()
        self.state = HandshakeState.LISTENER_STARTED

        params = GenParams(csrf_token=csrf_token, client_port=port)
        self.state = HandshakeState.AUTHORIZATION_URL_REQUESTED
        self.authorization_url = self._request_authorization_url(params)

        self._launch_browser(self.authorization_url)
        self.state = HandshakeState.BROWSER_LAUNCHED

        self.state = HandshakeState.AWAITING_CALLBACK
        verbose_client_logger.debug(f"Waiting for callback on port {port}")
        try:
            return result.result(timeout=self.timeout)
        except FutureTimeoutError:
            raise HandshakeTimeout(
                f"No completion request received within {self.timeout} seconds"
            ) from None
        except CancelledError:
            raise HandshakeTimeout("Callback listener stopped before completion") from None

    def _request_authorization_url(self, params: GenParams) -> str:
        url = f"{self.proxy_url}{START_PATH}"
        verbose_client_logger.debug(f"Requesting authorization URL from {url}")

        client = self.http_client or httpx.Client(timeout=self.request_timeout)
        try:
            response = client.post(url, json=params.to_payload())
        except httpx.HTTPError as e:
            raise NetworkFailure(f"Could not reach proxy at {self.proxy_url}: {type(e).__name__}") from e
        finally:
            if self.http_client is None:
                client.close()

        if not response.is_success:
            raise NetworkFailure(
                f"Proxy returned {response.status_code} for start request",
                status_code=response.status_code,
            )

        authorization_url = response.text.strip()
        if not authorization_url.startswith(("http://", "https://")):
            raise NetworkFailure("Proxy returned an invalid authorization URL")

        verbose_client_logger.info(f"Received authorization URL for {redact_url(authorization_url)}")
        return authorization_url

    def _launch_browser(self, url: str) -> None:
        opened = False
        if self.open_browser:
            opened = self.browser_opener(url)
        if not opened:
            print(f"Open this URL in your browser:\n{url}\n", file=sys.stderr)


def authenticate(
    proxy_url: str,
    codec: Optional[SecretValueCodec] = None,
    timeout: Optional[float] = DEFAULT_TIMEOUT,
    open_browser: bool = True,
):
    """Run one handshake against ``proxy_url`` and return the delivered value."""
    return ClientOrchestrator(
        proxy_url,
        codec=codec,
        timeout=timeout,
        open_browser=open_browser,
    ).run()
