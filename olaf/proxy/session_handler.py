"""
Session Handlers

A session handler turns the access token obtained by the proxy into the
value ``R`` delivered to the client: the token itself, a user identity,
or anything derived from them. Each handler carries the codec used to
put ``R`` into the redirect query string.
"""

import inspect
from typing import Any, Awaitable, Callable, Generic, Optional, Protocol, TypeVar, Union, runtime_checkable

import httpx
from fastapi.concurrency import run_in_threadpool

from olaf._logging import verbose_proxy_logger
from olaf._types import AccessToken
from olaf.codec import SecretValueCodec, StringCodec
from olaf.exceptions import CodecError, SessionHandlerError

R = TypeVar("R")


@runtime_checkable
class SessionHandler(Protocol[R]):
    """Maps an access token to an application-specific result."""

    codec: SecretValueCodec

    def handle(self, token: AccessToken) -> Union[R, Awaitable[R]]:
        ...


class ClosureHandler(Generic[R]):
    """Adapts a plain (sync or async) function into a session handler."""

    def __init__(
        self,
        func: Callable[[AccessToken], Union[R, Awaitable[R]]],
        codec: Optional[SecretValueCodec] = None,
    ):
        self.func = func
        self.codec = codec or StringCodec()

    def handle(self, token: AccessToken) -> Union[R, Awaitable[R]]:
        return self.func(token)


class TokenPassthroughHandler:
    """Delivers the OAuth access token itself to the client."""

    codec = StringCodec()

    def handle(self, token: AccessToken) -> str:
        return token.get_secret_value()


class GithubLoginHandler:
    """
    Resolves the Github account that authorized the proxy.

    Returns the account login, e.g. ``"octocat"``, or ``"user:octocat"``
    when ``prefix`` is set.
    """

    USER_URL = "https://api.github.com/user"

    def __init__(
        self,
        prefix: str = "",
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: float = 15.0,
    ):
        self.codec = StringCodec()
        self.prefix = prefix
        self._transport = transport
        self.timeout = timeout

    async def handle(self, token: AccessToken) -> str:
        headers = {
            "Authorization": f"Bearer {token.get_secret_value()}",
            "Accept": "application/vnd.github+json",
        }
        async with httpx.AsyncClient(transport=self._transport, timeout=self.timeout) as client:
            response = await client.get(self.USER_URL, headers=headers)
            response.raise_for_status()
            login = response.json()["login"]
        return f"{self.prefix}{login}"


def as_session_handler(handler: Any) -> SessionHandler:
    """Accept either a handler object or a bare callable."""
    if isinstance(handler, SessionHandler):
        return handler
    if callable(handler):
        return ClosureHandler(handler)
    raise TypeError(f"Not a session handler: {handler!r}")


async def invoke_session_handler(handler: SessionHandler, token: AccessToken) -> str:
    """
    Run the handler once and serialize its result.

    Synchronous handlers run in the threadpool so that network calls made
    by the embedder do not block the event loop.

    Returns:
        The codec-encoded result

    Raises:
        SessionHandlerError: If the handler raises or its result cannot be encoded
    """
    try:
        if inspect.iscoroutinefunction(handler.handle):
            result = await handler.handle(token)
        else:
            result = await run_in_threadpool(handler.handle, token)
            if inspect.isawaitable(result):
                result = await result
    except Exception as e:
        verbose_proxy_logger.error(f"Session handler failed: {type(e).__name__}")
        raise SessionHandlerError("Session handler failed") from e

    try:
        return handler.codec.encode(result)
    except CodecError as e:
        verbose_proxy_logger.error(f"Session handler result could not be encoded: {e}")
        raise SessionHandlerError("Session handler result could not be encoded") from e
