"""
Proxy configuration management.

Loads the long-lived OAuth client identity from a JSON or TOML file,
then applies ``OLAF_*`` environment variable overrides.
"""

import json
import os
import tomllib
from pathlib import Path
from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, SecretStr, ValidationError, field_validator

from olaf._logging import verbose_proxy_logger
from olaf.exceptions import ConfigError


class OAuthProvider(BaseModel):
    """Authorization server endpoints."""

    model_config = ConfigDict(frozen=True)

    authorize_url: str
    token_url: str

    @field_validator("authorize_url", "token_url")
    @classmethod
    def _http_url(cls, value: str) -> str:
        if not value.startswith(("http://", "https://")):
            raise ValueError("must be an http(s) URL")
        return value


GITHUB = OAuthProvider(
    authorize_url="https://github.com/login/oauth/authorize",
    token_url="https://github.com/login/oauth/access_token",
)

PRESET_PROVIDERS: Dict[str, OAuthProvider] = {
    "github": GITHUB,
}


class ProxyConfig(BaseModel):
    """
    Proxy configuration values.

    Immutable once loaded; the per-handshake redirect URL is derived from
    ``proxy_base_url`` on every call and never stored here.
    """

    model_config = ConfigDict(frozen=True)

    # OAuth2 client identity
    client_id: str = Field(min_length=1)
    client_secret: SecretStr

    # Where the proxy listens
    port: int = Field(default=8081, ge=1, le=65535)
    host: str = "127.0.0.1"

    oauth_provider: OAuthProvider = GITHUB

    # Public base URL of this proxy; the authorization server redirects to
    # ``{proxy_base_url}/oauth-cli/finish``
    proxy_base_url: str

    scopes: List[str] = Field(default_factory=list)

    # Page the browser lands on once the client consumed the result
    welcome_redirect: Optional[str] = None

    # Host name in the redirect to the client listener, which binds 127.0.0.1.
    # Use "127.0.0.1" where localhost resolves to ::1 first.
    client_redirect_host: Literal["localhost", "127.0.0.1"] = "localhost"

    # Redirect failures to the client as an explicit error marker instead
    # of answering the browser with a bare 500
    echo_failures: bool = False

    token_timeout: float = Field(default=30.0, gt=0)

    @field_validator("oauth_provider", mode="before")
    @classmethod
    def _resolve_provider(cls, value: Any) -> Any:
        if isinstance(value, str):
            preset = PRESET_PROVIDERS.get(value.lower())
            if preset is None:
                raise ValueError(f"Unknown OAuth provider: {value}")
            return preset
        if isinstance(value, dict) and "custom" in value:
            return value["custom"]
        return value

    @field_validator("proxy_base_url")
    @classmethod
    def _strip_base_url(cls, value: str) -> str:
        if not value.startswith(("http://", "https://")):
            raise ValueError("proxy_base_url must be an http(s) URL")
        return value.rstrip("/")

    @field_validator("scopes", mode="before")
    @classmethod
    def _split_scopes(cls, value: Any) -> Any:
        if isinstance(value, str):
            return [scope.strip() for scope in value.split(",") if scope.strip()]
        return value

    @classmethod
    def from_file(cls, path: Union[str, Path], use_env: bool = True) -> "ProxyConfig":
        """
        Load configuration from a ``.json`` or ``.toml`` file.

        Args:
            path: Configuration file path
            use_env: Whether ``OLAF_*`` environment variables override file values

        Raises:
            ConfigError: If the file cannot be read or the values are invalid
        """
        path = Path(os.path.expandvars(os.path.expanduser(str(path))))
        if not path.exists():
            raise ConfigError(f"Configuration file not found: {path}")

        try:
            if path.suffix == ".toml":
                data = tomllib.loads(path.read_text())
            else:
                data = json.loads(path.read_text())
        except (json.JSONDecodeError, tomllib.TOMLDecodeError) as e:
            raise ConfigError(f"Could not parse {path}: {e}") from e

        verbose_proxy_logger.debug(f"Loaded proxy configuration from {path}")
        return cls.from_mapping(data, use_env=use_env)

    @classmethod
    def from_env(cls) -> "ProxyConfig":
        """Load configuration from environment variables only."""
        return cls.from_mapping({}, use_env=True)

    @classmethod
    def from_mapping(cls, data: Dict[str, Any], use_env: bool = True) -> "ProxyConfig":
        merged = dict(data)
        if use_env:
            merged.update(_load_from_env())
        try:
            return cls.model_validate(merged)
        except ValidationError as e:
            # Field names only; input values may include the client secret
            fields = ", ".join(
                ".".join(str(part) for part in err["loc"]) for err in e.errors()
            )
            raise ConfigError(f"Invalid proxy configuration: {fields}") from None


_ENV_FIELDS = {
    "OLAF_CLIENT_ID": "client_id",
    "OLAF_CLIENT_SECRET": "client_secret",
    "OLAF_PORT": "port",
    "OLAF_HOST": "host",
    "OLAF_PROXY_BASE_URL": "proxy_base_url",
    "OLAF_SCOPES": "scopes",
    "OLAF_WELCOME_REDIRECT": "welcome_redirect",
    "OLAF_CLIENT_REDIRECT_HOST": "client_redirect_host",
    "OLAF_OAUTH_PROVIDER": "oauth_provider",
}


def _load_from_env() -> Dict[str, Any]:
    overrides: Dict[str, Any] = {}
    for env_name, field in _ENV_FIELDS.items():
        value = os.getenv(env_name)
        if value:
            overrides[field] = value
    return overrides
