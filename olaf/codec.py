"""
Secret Value Codec

Serializes the session handler result so it can travel from the proxy to
the client inside a redirect URL query string, and reads it back on the
client side.
"""

import json
from typing import Any, Generic, Optional, Protocol, Type, TypeVar
from urllib.parse import parse_qs, urlencode

from pydantic import BaseModel, ValidationError

from olaf._types import FinResponse
from olaf.exceptions import CodecError

R = TypeVar("R")
M = TypeVar("M", bound=BaseModel)

COMPLETION_PATH = "/"


class SecretValueCodec(Protocol[R]):
    """Round-trips a result value through a single query string value."""

    def encode(self, value: R) -> str:
        ...

    def decode(self, raw: str) -> R:
        ...


class StringCodec:
    """Plain strings, sent as-is."""

    def encode(self, value: str) -> str:
        if not isinstance(value, str):
            raise CodecError(f"StringCodec cannot encode {type(value).__name__}")
        return value

    def decode(self, raw: str) -> str:
        return raw


class JsonCodec:
    """Any JSON-serializable value."""

    def encode(self, value: Any) -> str:
        try:
            return json.dumps(value, separators=(",", ":"), sort_keys=True)
        except (TypeError, ValueError) as e:
            raise CodecError(f"Value is not JSON serializable: {e}") from e

    def decode(self, raw: str) -> Any:
        try:
            return json.loads(raw)
        except json.JSONDecodeError as e:
            raise CodecError(f"Response is not valid JSON: {e.msg}") from e


class ModelCodec(Generic[M]):
    """Pydantic models, serialized as JSON."""

    def __init__(self, model: Type[M]):
        self.model = model

    def encode(self, value: M) -> str:
        if not isinstance(value, self.model):
            raise CodecError(
                f"Expected {self.model.__name__}, got {type(value).__name__}"
            )
        return value.model_dump_json()

    def decode(self, raw: str) -> M:
        try:
            return self.model.model_validate_json(raw)
        except ValidationError as e:
            raise CodecError(
                f"Response does not match {self.model.__name__} "
                f"({e.error_count()} errors)"
            ) from e


def encode_fin_response(
    fin_response: FinResponse,
    client_port: int,
    host: str = "localhost",
) -> str:
    """
    Build the redirect URL pointing the browser at the client listener.

    Args:
        fin_response: Completion payload (``response`` already encoded)
        client_port: Port the client listener is bound to
        host: Host name used in the redirect

    Returns:
        ``http://{host}:{client_port}/?csrf_token=...&response=...``
    """
    params = [("csrf_token", fin_response.csrf_token)]
    if fin_response.error is not None:
        params.append(("error", fin_response.error))
    else:
        params.append(("response", fin_response.response or ""))
    if fin_response.welcome_redirect:
        params.append(("welcome_redirect", fin_response.welcome_redirect))

    return f"http://{host}:{client_port}{COMPLETION_PATH}?{urlencode(params)}"


def _single(params: dict, name: str) -> Optional[str]:
    values = params.get(name)
    if values is None:
        return None
    if len(values) != 1:
        raise CodecError(f"Parameter {name!r} given {len(values)} times")
    return values[0]


def decode_fin_response(query: str) -> FinResponse:
    """
    Parse the completion request query string.

    Raises:
        CodecError: If ``csrf_token`` is missing, if neither or both of
            ``response`` and ``error`` are present, or if a parameter
            is repeated.
    """
    params = parse_qs(query, keep_blank_values=True)

    csrf_token = _single(params, "csrf_token")
    if not csrf_token:
        raise CodecError("Missing csrf_token")

    response = _single(params, "response")
    error = _single(params, "error")
    if (response is None) == (error is None):
        raise CodecError("Exactly one of response and error is required")
    if error is not None and not error:
        raise CodecError("Empty error marker")

    return FinResponse(
        csrf_token=csrf_token,
        response=response,
        error=error,
        welcome_redirect=_single(params, "welcome_redirect") or None,
    )
