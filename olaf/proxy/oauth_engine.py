"""
OAuth Exchange Engine

Holds the proxy's OAuth client identity and performs the two per-handshake
operations against the authorization server:

1. building the authorization URL the user visits, and
2. exchanging the returned authorization code for an access token.

The redirect URL is an explicit argument of every operation. The engine
keeps no per-request state, so concurrent handshakes cannot observe each
other's redirect target.
"""

from typing import Any, Dict, Optional
from urllib.parse import parse_qsl, urlencode

import httpx

from olaf._logging import redact_url, verbose_proxy_logger
from olaf._types import AccessToken
from olaf.exceptions import ExchangeError
from olaf.proxy.config import ProxyConfig

FINISH_PATH = "/oauth-cli/finish"


def build_redirect_url(config: ProxyConfig, client_port: int) -> str:
    """Redirect target for one handshake: the proxy's finish route, carrying the client port."""
    return f"{config.proxy_base_url}{FINISH_PATH}?{urlencode({'client_port': client_port})}"


def build_authorization_url(
    config: ProxyConfig,
    redirect_url: str,
    csrf_token: str,
) -> str:
    """
    Build the OAuth authorization URL.

    Args:
        config: Proxy configuration (client id, scopes, provider endpoints)
        redirect_url: Where the authorization server sends the user back to
        csrf_token: Client nonce, sent as ``state``

    Returns:
        Complete authorization URL
    """
    params = {
        "response_type": "code",
        "client_id": config.client_id,
        "state": csrf_token,
        "redirect_uri": redirect_url,
    }
    if config.scopes:
        params["scope"] = " ".join(config.scopes)

    authorize_url = config.oauth_provider.authorize_url
    separator = "&" if "?" in authorize_url else "?"
    return f"{authorize_url}{separator}{urlencode(params)}"


class OAuthExchangeEngine:
    """
    Performs authorization-code-grant operations for the proxy.

    The configuration is immutable after construction. ``transport`` lets
    callers (tests, embedders with custom networking) replace the HTTP
    transport used for the token request.
    """

    def __init__(
        self,
        config: ProxyConfig,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.config = config
        self._transport = transport

    def redirect_url_for(self, client_port: int) -> str:
        return build_redirect_url(self.config, client_port)

    def generate_authorization_url(self, csrf_token: str, client_port: int) -> str:
        """
        Generate the authorization URL for one handshake.

        Args:
            csrf_token: Client nonce, echoed back by the authorization server as ``state``
            client_port: Port of the client callback listener

        Returns:
            Authorization URL for the user to visit
        """
        url = build_authorization_url(
            self.config,
            self.redirect_url_for(client_port),
            csrf_token,
        )
        verbose_proxy_logger.debug(
            f"Built authorization URL for {redact_url(url)} (client_port={client_port})"
        )
        return url

    async def exchange_code(
        self,
        authorization_code: str,
        redirect_url: Optional[str] = None,
    ) -> AccessToken:
        """
        Exchange an authorization code for an access token.

        Performs exactly one token request; there is no retry and no cache.

        Args:
            authorization_code: One-time code from the authorization server
            redirect_url: The redirect URL used when the code was issued

        Returns:
            The access token

        Raises:
            ExchangeError: On network failure, non-2xx response, provider
                error payload, or a payload without an access token
        """
        data = {
            "grant_type": "authorization_code",
            "code": authorization_code,
            "client_id": self.config.client_id,
            "client_secret": self.config.client_secret.get_secret_value(),
        }
        if redirect_url:
            data["redirect_uri"] = redirect_url

        headers = {"Accept": "application/json"}
        token_url = self.config.oauth_provider.token_url

        verbose_proxy_logger.info(f"Exchanging authorization code at {redact_url(token_url)}")

        try:
            async with httpx.AsyncClient(
                transport=self._transport,
                timeout=self.config.token_timeout,
            ) as client:
                response = await client.post(token_url, data=data, headers=headers)
        except httpx.HTTPError as e:
            verbose_proxy_logger.error(f"Token request failed: {type(e).__name__}")
            raise ExchangeError("Token request failed") from e

        if not response.is_success:
            verbose_proxy_logger.error(
                f"Token exchange failed with status {response.status_code}"
            )
            raise ExchangeError(f"Token endpoint returned {response.status_code}")

        payload = _parse_token_payload(response)

        if "error" in payload:
            # Github answers bad codes with 200 and an error field
            verbose_proxy_logger.error(f"Token endpoint returned error {payload['error']!r}")
            raise ExchangeError("Token endpoint returned an error")

        access_token = payload.get("access_token")
        if not isinstance(access_token, str) or not access_token:
            raise ExchangeError("Token response has no access_token")

        verbose_proxy_logger.info("Successfully exchanged authorization code")
        return AccessToken(access_token)


def _parse_token_payload(response: httpx.Response) -> Dict[str, Any]:
    content_type = response.headers.get("content-type", "")
    if "application/x-www-form-urlencoded" in content_type or "text/plain" in content_type:
        return dict(parse_qsl(response.text))
    try:
        payload = response.json()
    except ValueError as e:
        raise ExchangeError("Token response is not valid JSON") from e
    if not isinstance(payload, dict):
        raise ExchangeError("Token response is not a JSON object")
    return payload
