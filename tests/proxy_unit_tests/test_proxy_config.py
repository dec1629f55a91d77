"""
Tests for proxy configuration loading
"""

import json

import pytest

from olaf.exceptions import ConfigError
from olaf.proxy.config import GITHUB, OAuthProvider, ProxyConfig


@pytest.fixture
def config_data():
    return {
        "client_id": "file-client-id",
        "client_secret": "file-client-secret",
        "port": 9000,
        "oauth_provider": "github",
        "proxy_base_url": "https://proxy.example.com",
        "scopes": ["read:user"],
    }


class TestProxyConfig:
    """Test suite for ProxyConfig."""

    def test_github_preset(self, config_data):
        config = ProxyConfig.from_mapping(config_data)

        assert config.oauth_provider == GITHUB
        assert config.oauth_provider.token_url == "https://github.com/login/oauth/access_token"

    def test_custom_provider_object(self, config_data):
        config_data["oauth_provider"] = {
            "custom": {
                "authorize_url": "https://sso.example.com/authorize",
                "token_url": "https://sso.example.com/token",
            }
        }
        config = ProxyConfig.from_mapping(config_data)

        assert config.oauth_provider == OAuthProvider(
            authorize_url="https://sso.example.com/authorize",
            token_url="https://sso.example.com/token",
        )

    def test_unknown_provider(self, config_data):
        config_data["oauth_provider"] = "myspace"

        with pytest.raises(ConfigError, match="oauth_provider"):
            ProxyConfig.from_mapping(config_data)

    def test_base_url_trailing_slash_stripped(self, config_data):
        config_data["proxy_base_url"] = "https://proxy.example.com/"

        assert ProxyConfig.from_mapping(config_data).proxy_base_url == "https://proxy.example.com"

    def test_secret_is_masked(self, config_data):
        config = ProxyConfig.from_mapping(config_data)

        assert "file-client-secret" not in repr(config)
        assert config.client_secret.get_secret_value() == "file-client-secret"

    def test_config_is_immutable(self, config_data):
        config = ProxyConfig.from_mapping(config_data)

        with pytest.raises(Exception):
            config.proxy_base_url = "https://elsewhere.example.com"

    def test_missing_required_fields(self):
        with pytest.raises(ConfigError) as exc_info:
            ProxyConfig.from_mapping({"client_secret": "hunter2"})

        message = str(exc_info.value)
        assert "client_id" in message
        assert "proxy_base_url" in message
        assert "hunter2" not in message

    def test_load_json_file(self, tmp_path, config_data):
        path = tmp_path / "proxy.json"
        path.write_text(json.dumps(config_data))

        config = ProxyConfig.from_file(path)

        assert config.client_id == "file-client-id"
        assert config.port == 9000

    def test_load_toml_file(self, tmp_path):
        path = tmp_path / "proxy.toml"
        path.write_text(
            'client_id = "toml-id"\n'
            'client_secret = "toml-secret"\n'
            'proxy_base_url = "http://127.0.0.1:8081"\n'
            'scopes = ["repo"]\n'
            "\n"
            "[oauth_provider]\n"
            'authorize_url = "https://sso.example.com/authorize"\n'
            'token_url = "https://sso.example.com/token"\n'
        )

        config = ProxyConfig.from_file(path)

        assert config.client_id == "toml-id"
        assert config.scopes == ["repo"]
        assert config.oauth_provider.authorize_url == "https://sso.example.com/authorize"

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigError, match="not found"):
            ProxyConfig.from_file(tmp_path / "missing.json")

    def test_unparseable_file(self, tmp_path):
        path = tmp_path / "broken.json"
        path.write_text("{not json")

        with pytest.raises(ConfigError, match="Could not parse"):
            ProxyConfig.from_file(path)

    def test_environment_overrides_file(self, tmp_path, config_data, monkeypatch):
        path = tmp_path / "proxy.json"
        path.write_text(json.dumps(config_data))
        monkeypatch.setenv("OLAF_CLIENT_SECRET", "env-secret")
        monkeypatch.setenv("OLAF_PORT", "9100")
        monkeypatch.setenv("OLAF_SCOPES", "repo, gist")

        config = ProxyConfig.from_file(path)

        assert config.client_secret.get_secret_value() == "env-secret"
        assert config.port == 9100
        assert config.scopes == ["repo", "gist"]
        assert config.client_id == "file-client-id"

    def test_from_env(self, monkeypatch):
        monkeypatch.setenv("OLAF_CLIENT_ID", "env-id")
        monkeypatch.setenv("OLAF_CLIENT_SECRET", "env-secret")
        monkeypatch.setenv("OLAF_PROXY_BASE_URL", "https://proxy.example.com")

        config = ProxyConfig.from_env()

        assert config.client_id == "env-id"
        assert config.oauth_provider == GITHUB
        assert config.welcome_redirect is None
        assert config.echo_failures is False

    def test_client_redirect_host(self, config_data, monkeypatch):
        assert ProxyConfig.from_mapping(config_data).client_redirect_host == "localhost"

        monkeypatch.setenv("OLAF_CLIENT_REDIRECT_HOST", "127.0.0.1")
        assert ProxyConfig.from_mapping(config_data).client_redirect_host == "127.0.0.1"

    def test_client_redirect_host_must_be_loopback(self, config_data):
        config_data["client_redirect_host"] = "evil.example.com"

        with pytest.raises(ConfigError, match="client_redirect_host"):
            ProxyConfig.from_mapping(config_data)
