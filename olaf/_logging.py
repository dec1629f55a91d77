import json
import logging
import os
import re
from datetime import datetime

set_verbose = False


def _env_flag(name: str) -> bool:
    return os.getenv(name, "").strip().lower() in ("1", "true", "yes")


json_logs = _env_flag("JSON_LOGS")
log_level = os.getenv("OLAF_LOG", "WARNING")
numeric_level: int = getattr(logging, log_level.upper(), logging.WARNING)

handler = logging.StreamHandler()
handler.setLevel(numeric_level)


class JsonFormatter(logging.Formatter):
    def __init__(self):
        super(JsonFormatter, self).__init__()

    def formatTime(self, record, datefmt=None):
        dt = datetime.fromtimestamp(record.created)
        return dt.isoformat()

    def format(self, record):
        json_record = {
            "message": record.getMessage(),
            "level": record.levelname,
            "logger": record.name,
            "timestamp": self.formatTime(record),
        }
        if record.exc_info:
            json_record["stacktrace"] = self.formatException(record.exc_info)
        return json.dumps(json_record)


formatter = logging.Formatter(
    "\033[92m%(asctime)s - %(name)s:%(levelname)s\033[0m: %(filename)s:%(lineno)s - %(message)s",
    datefmt="%H:%M:%S",
)
if json_logs:
    handler.setFormatter(JsonFormatter())
else:
    handler.setFormatter(formatter)

verbose_proxy_logger = logging.getLogger("Olaf Proxy")
verbose_client_logger = logging.getLogger("Olaf Client")
verbose_logger = logging.getLogger("Olaf")

for _logger in (verbose_proxy_logger, verbose_client_logger, verbose_logger):
    _logger.setLevel(numeric_level)
    _logger.addHandler(handler)


def _turn_on_json():
    handler.setFormatter(JsonFormatter())


def _turn_on_debug():
    """Switch every olaf logger (and the shared handler) to DEBUG."""
    global set_verbose
    set_verbose = True
    handler.setLevel(logging.DEBUG)
    verbose_logger.setLevel(level=logging.DEBUG)
    verbose_proxy_logger.setLevel(level=logging.DEBUG)
    verbose_client_logger.setLevel(level=logging.DEBUG)


def redact_url(url: str) -> str:
    """Strip the query string and fragment; those carry secrets in this protocol."""
    return url.split("?", 1)[0].split("#", 1)[0]


_QUERY_PATTERN = re.compile(r"\?[^\s'\"]*")


def redact_query_strings(text: str) -> str:
    """Replace every query string inside free-form text, e.g. a raw request line."""
    return _QUERY_PATTERN.sub("?<redacted>", text)


class RedactQueryFilter(logging.Filter):
    """
    Strips query strings from uvicorn access log records.

    uvicorn passes ``(client_addr, method, full_path, http_version, status_code)``
    as the record args; ``full_path`` carries the OAuth code and state.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        if isinstance(record.args, tuple) and len(record.args) >= 3:
            args = list(record.args)
            args[2] = redact_url(str(args[2]))
            record.args = tuple(args)
        else:
            record.msg = redact_query_strings(str(record.msg))
        return True
