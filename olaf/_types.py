"""
Message types exchanged between the client, the proxy and the
authorization server.
"""

import secrets
from typing import Any, Dict, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, SecretStr

CSRF_TOKEN_BYTES = 32


def new_csrf_token() -> str:
    """Generate a single-use anti-forgery nonce (URL safe, 256 bits)."""
    return secrets.token_urlsafe(CSRF_TOKEN_BYTES)


class AccessToken(SecretStr):
    """Bearer credential issued by the authorization server.

    The value is masked in ``repr``/``str``; use ``get_secret_value()``.
    """


class GenParams(BaseModel):
    """Parameters sent from client -> proxy to start a handshake."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    csrf_token: str = Field(
        min_length=1,
        repr=False,
        validation_alias=AliasChoices("csrf_token", "state"),
    )
    client_port: int = Field(ge=0, le=65535)

    def to_payload(self) -> Dict[str, Any]:
        return {"csrf_token": self.csrf_token, "client_port": self.client_port}


class FinParams(BaseModel):
    """Parameters sent from the authorization server back to the proxy
    after the user has made an authorization decision.

    ``csrf_token`` arrives as ``state`` from the authorization server.
    ``error`` is set instead of ``authorization_code`` when the user or
    the provider refused the request.
    """

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    csrf_token: str = Field(
        min_length=1,
        repr=False,
        validation_alias=AliasChoices("csrf_token", "state"),
    )
    client_port: int = Field(ge=0, le=65535)
    authorization_code: Optional[str] = Field(
        default=None,
        repr=False,
        validation_alias=AliasChoices("code", "authorization_code"),
    )
    error: Optional[str] = None


class FinResponse(BaseModel):
    """Completion payload sent from proxy -> client through the browser.

    ``response`` is the codec-serialized session handler result. Exactly
    one of ``response`` and ``error`` is set.
    """

    model_config = ConfigDict(frozen=True)

    csrf_token: str = Field(repr=False)
    response: Optional[str] = Field(default=None, repr=False)
    welcome_redirect: Optional[str] = None
    error: Optional[str] = None
