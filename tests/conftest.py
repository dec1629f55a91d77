"""Shared fixtures for olaf tests."""

import json
from urllib.parse import parse_qs

import httpx
import pytest

from olaf.proxy.config import ProxyConfig


@pytest.fixture(autouse=True)
def _clear_olaf_env(monkeypatch):
    for name in (
        "OLAF_CLIENT_ID",
        "OLAF_CLIENT_SECRET",
        "OLAF_PORT",
        "OLAF_HOST",
        "OLAF_PROXY_BASE_URL",
        "OLAF_SCOPES",
        "OLAF_WELCOME_REDIRECT",
        "OLAF_CLIENT_REDIRECT_HOST",
        "OLAF_OAUTH_PROVIDER",
    ):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def proxy_config():
    """Proxy configuration pointing at a fake authorization server."""
    return ProxyConfig(
        client_id="test-client-id",
        client_secret="test-client-secret",
        port=8081,
        oauth_provider={
            "authorize_url": "https://auth.example.com/oauth/authorize",
            "token_url": "https://auth.example.com/oauth/token",
        },
        proxy_base_url="https://proxy.example.com/",
        scopes=["read:user", "user:email"],
        welcome_redirect="https://example.com/welcome",
    )


@pytest.fixture
def token_endpoint():
    """Fake token endpoint recording every exchange request."""

    class TokenEndpoint:
        def __init__(self):
            self.requests = []
            self.status_code = 200
            self.payload = {"access_token": "gho_test_access_token", "token_type": "bearer"}

        def __call__(self, request: httpx.Request) -> httpx.Response:
            self.requests.append(
                {key: values[0] for key, values in parse_qs(request.content.decode()).items()}
            )
            return httpx.Response(
                self.status_code,
                content=json.dumps(self.payload),
                headers={"content-type": "application/json"},
            )

        @property
        def transport(self) -> httpx.MockTransport:
            return httpx.MockTransport(self)

    return TokenEndpoint()
