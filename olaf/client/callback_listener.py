"""
Client Callback Listener

Single-shot HTTP server bound to an OS-assigned loopback port. It waits for
the browser to arrive with the proxy's completion redirect, checks the
CSRF token, and hands the result to the waiting thread through a
``concurrent.futures.Future``.
"""

import ipaddress
import secrets
import threading
from concurrent.futures import Future
from http.server import BaseHTTPRequestHandler, HTTPServer
from typing import Generic, Optional, Tuple, TypeVar
from urllib.parse import urlsplit

from olaf._logging import redact_query_strings, verbose_client_logger
from olaf._types import FinResponse
from olaf.codec import COMPLETION_PATH, SecretValueCodec, StringCodec, decode_fin_response
from olaf.exceptions import BindFailure, CodecError, CsrfMismatch, ProxyFailure
from olaf.utils.redirect_page import NO_STORE_HEADERS, render_redirect_page

R = TypeVar("R")

LOOPBACK_HOST = "127.0.0.1"


class _CallbackHTTPServer(HTTPServer):
    allow_reuse_address = False

    def __init__(self, server_address, listener: "CallbackListener"):
        self.listener = listener
        super().__init__(server_address, _CallbackHandler)


class _CallbackHandler(BaseHTTPRequestHandler):
    """HTTP request handler for the completion redirect."""

    server: _CallbackHTTPServer

    def do_GET(self):
        listener = self.server.listener
        parts = urlsplit(self.path)

        if parts.path != COMPLETION_PATH:
            self._respond(404)
            return

        try:
            fin_response = decode_fin_response(parts.query)
            delivered = listener.deliver(fin_response)
        except CodecError as e:
            # Malformed probes must not end the handshake
            verbose_client_logger.warning(f"Rejected malformed completion request: {e}")
            self._respond(400, b"Malformed completion request\n", "text/plain; charset=utf-8")
            return

        if not delivered:
            self._respond(410, b"Handshake already finished\n", "text/plain; charset=utf-8")
            return

        welcome = fin_response.welcome_redirect
        if listener.accepted and welcome and welcome.startswith(("http://", "https://")):
            page = render_redirect_page(welcome, title="Signed in", message="You are signed in.")
            self._respond(200, page.encode("utf-8"), "text/html; charset=utf-8")
        else:
            self._respond(200)

        listener.stop()

    def _respond(self, code: int, body: bytes = b"", content_type: Optional[str] = None):
        self.close_connection = True
        self.send_response(code)
        self.send_header("Connection", "close")
        for name, value in NO_STORE_HEADERS.items():
            self.send_header(name, value)
        if content_type:
            self.send_header("Content-Type", content_type)
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        if body:
            self.wfile.write(body)

    def log_request(self, code="-", size="-"):
        # The query string carries the CSRF token and the secret
        verbose_client_logger.debug(f"{redact_query_strings(self.requestline)} -> {code}")

    def log_message(self, format, *args):
        # Error messages can quote the raw request line
        verbose_client_logger.debug(f"Callback listener: {redact_query_strings(format % args)}")


class CallbackListener(Generic[R]):
    """
    Ephemeral loopback listener for one handshake.

    ``start()`` binds the port and serves on a daemon thread. The first
    well-formed completion request decides the outcome: the decoded value,
    ``CsrfMismatch``, or ``ProxyFailure``. Later requests never overwrite
    it. ``stop()`` is idempotent and safe to call from the serving thread.
    """

    def __init__(
        self,
        csrf_token: str,
        codec: Optional[SecretValueCodec] = None,
        host: str = LOOPBACK_HOST,
    ):
        if not ipaddress.ip_address(host).is_loopback:
            raise ValueError(f"Callback listener must bind to a loopback address, not {host}")

        self.csrf_token = csrf_token
        self.codec = codec or StringCodec()
        self.host = host
        self.result: "Future[R]" = Future()
        self.port: Optional[int] = None
        self.accepted = False

        self._server: Optional[_CallbackHTTPServer] = None
        self._thread: Optional[threading.Thread] = None
        self._lock = threading.Lock()
        self._stopped = False

    def start(self) -> Tuple[int, "Future[R]"]:
        """
        Bind to an ephemeral loopback port and start serving.

        Returns:
            Tuple of (port, result future)

        Raises:
            BindFailure: If no port could be bound
        """
        try:
            self._server = _CallbackHTTPServer((self.host, 0), self)
        except OSError as e:
            raise BindFailure(f"Could not bind callback listener on {self.host}: {e}") from e

        self.port = self._server.server_address[1]
        self._thread = threading.Thread(
            target=self._server.serve_forever,
            kwargs={"poll_interval": 0.1},
            name=f"olaf-callback-{self.port}",
            daemon=True,
        )
        self._thread.start()

        verbose_client_logger.info(f"Callback listener started on {self.host}:{self.port}")
        return self.port, self.result

    def deliver(self, fin_response: FinResponse) -> bool:
        """
        Check the completion payload and settle the result.

        Returns:
            True if this request settled the result, False if it was
            already settled (or the listener was stopped)

        Raises:
            CodecError: If the token matches but ``response`` cannot be decoded
        """
        with self._lock:
            if self.result.done():
                return False

            if not secrets.compare_digest(
                fin_response.csrf_token.encode("utf-8"),
                self.csrf_token.encode("utf-8"),
            ):
                verbose_client_logger.warning("Completion request carried a foreign CSRF token")
                self.result.set_exception(CsrfMismatch())
                return True

            if fin_response.error is not None:
                self.result.set_exception(ProxyFailure(fin_response.error))
                return True

            value = self.codec.decode(fin_response.response or "")
            self.accepted = True
            self.result.set_result(value)
            return True

    def stop(self) -> None:
        """Stop serving and release the port. Stopping twice is a no-op."""
        with self._lock:
            if self._stopped:
                return
            self._stopped = True
            # Nothing may settle the result after this point
            self.result.cancel()
            server, thread = self._server, self._thread

        if server is None:
            return

        if thread is threading.current_thread():
            # shutdown() waits for serve_forever(), which is running this request
            threading.Thread(target=self._close, args=(server,), daemon=True).start()
        else:
            self._close(server)
            if thread is not None:
                thread.join(timeout=2.0)

        verbose_client_logger.info(f"Callback listener on port {self.port} stopped")

    @staticmethod
    def _close(server: _CallbackHTTPServer) -> None:
        server.shutdown()
        server.server_close()

    @property
    def stopped(self) -> bool:
        return self._stopped
