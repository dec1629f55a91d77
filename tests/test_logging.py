import json
import logging

import pytest
from uvicorn.config import LOGGING_CONFIG
from uvicorn.logging import AccessFormatter

from olaf import _logging
from olaf._logging import JsonFormatter, RedactQueryFilter, redact_query_strings, redact_url
from olaf.proxy import proxy_server
from olaf.proxy.proxy_server import uvicorn_log_config
from olaf.proxy.session_handler import TokenPassthroughHandler


def test_redact_url_drops_query_and_fragment():
    url = "http://localhost:4000/?csrf_token=abc&response=gho_secret#frag"

    assert redact_url(url) == "http://localhost:4000/"


def test_json_formatter():
    record = logging.LogRecord("Olaf Proxy", logging.INFO, __file__, 1, "started", None, None)

    payload = json.loads(JsonFormatter().format(record))

    assert payload["message"] == "started"
    assert payload["level"] == "INFO"
    assert payload["logger"] == "Olaf Proxy"


def test_turn_on_debug(monkeypatch):
    for logger in (_logging.verbose_proxy_logger, _logging.verbose_client_logger, _logging.verbose_logger):
        monkeypatch.setattr(logger, "level", logger.level)
    monkeypatch.setattr(_logging.handler, "level", _logging.handler.level)

    _logging._turn_on_debug()

    assert _logging.verbose_proxy_logger.level == logging.DEBUG
    assert _logging.verbose_client_logger.level == logging.DEBUG


@pytest.mark.parametrize(
    "value, expected",
    [("1", True), ("true", True), ("True", True), ("yes", True), ("false", False), ("0", False), ("", False)],
)
def test_env_flag(monkeypatch, value, expected):
    monkeypatch.setenv("JSON_LOGS", value)

    assert _logging._env_flag("JSON_LOGS") is expected


def test_env_flag_unset(monkeypatch):
    monkeypatch.delenv("JSON_LOGS", raising=False)

    assert _logging._env_flag("JSON_LOGS") is False


class TestAccessLogRedaction:
    """uvicorn access log lines must not carry the OAuth code or state."""

    def _access_record(self):
        return logging.LogRecord(
            "uvicorn.access",
            logging.INFO,
            __file__,
            1,
            '%s - "%s %s HTTP/%s" %d',
            (
                "127.0.0.1:45674",
                "GET",
                "/oauth-cli/finish?client_port=4000&state=NONCE-SECRET&code=CODE-SECRET",
                "1.1",
                303,
            ),
            None,
        )

    def test_filter_strips_query_from_access_line(self):
        record = self._access_record()

        assert RedactQueryFilter().filter(record) is True

        line = AccessFormatter(
            fmt='%(client_addr)s - "%(request_line)s" %(status_code)s', use_colors=False
        ).format(record)
        assert "/oauth-cli/finish" in line
        assert "CODE-SECRET" not in line
        assert "NONCE-SECRET" not in line

    def test_uvicorn_log_config_installs_filter(self):
        log_config = uvicorn_log_config()

        assert "redact_query" in log_config["handlers"]["access"]["filters"]
        assert log_config["filters"]["redact_query"]["()"] == "olaf._logging.RedactQueryFilter"
        assert "redact_query" not in LOGGING_CONFIG["handlers"]["access"].get("filters", [])

    def test_run_uses_redacting_log_config(self, proxy_config, monkeypatch):
        calls = []
        monkeypatch.setattr(proxy_server.uvicorn, "run", lambda app, **kwargs: calls.append(kwargs))

        proxy_server.run(proxy_config, TokenPassthroughHandler())

        assert "redact_query" in calls[0]["log_config"]["handlers"]["access"]["filters"]
        assert calls[0]["port"] == 8081


def test_redact_query_strings():
    text = "Bad request syntax ('GET /?csrf_token=abc&response=gho_secret junk HTTP/1.1')"

    redacted = redact_query_strings(text)

    assert "gho_secret" not in redacted
    assert "abc" not in redacted
    assert redacted.startswith("Bad request syntax ('GET /?<redacted> junk")
