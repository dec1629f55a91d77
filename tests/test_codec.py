"""
Tests for result codecs and the completion redirect format
"""

import pytest
from pydantic import BaseModel

from olaf._types import FinResponse
from olaf.codec import (
    JsonCodec,
    ModelCodec,
    StringCodec,
    decode_fin_response,
    encode_fin_response,
)
from olaf.exceptions import CodecError


class Session(BaseModel):
    user: str
    teams: list


class TestCodecs:
    def test_string_codec(self):
        codec = StringCodec()

        assert codec.encode("user:octocat") == "user:octocat"
        assert codec.decode("user:octocat") == "user:octocat"

    def test_string_codec_rejects_other_types(self):
        with pytest.raises(CodecError):
            StringCodec().encode({"user": "octocat"})

    def test_json_codec_is_compact(self):
        assert JsonCodec().encode({"b": 1, "a": [1, 2]}) == '{"a":[1,2],"b":1}'

    def test_json_codec_invalid_input(self):
        with pytest.raises(CodecError, match="not valid JSON"):
            JsonCodec().decode("{nope")

    def test_json_codec_unserializable(self):
        with pytest.raises(CodecError):
            JsonCodec().encode({"when": object()})

    def test_model_codec(self):
        codec = ModelCodec(Session)
        encoded = codec.encode(Session(user="octocat", teams=["core"]))

        assert codec.decode(encoded) == Session(user="octocat", teams=["core"])

    def test_model_codec_rejects_wrong_shape(self):
        with pytest.raises(CodecError, match="Session"):
            ModelCodec(Session).decode('{"user": "octocat"}')


class TestFinResponseCodec:
    """Test suite for the completion redirect URL."""

    def test_encode_fin_response(self):
        url = encode_fin_response(
            FinResponse(
                csrf_token="abc",
                response="user:octocat",
                welcome_redirect="https://example.com/welcome",
            ),
            43210,
        )

        assert url == (
            "http://localhost:43210/?csrf_token=abc&response=user%3Aoctocat"
            "&welcome_redirect=https%3A%2F%2Fexample.com%2Fwelcome"
        )

    def test_encode_error_marker(self):
        url = encode_fin_response(FinResponse(csrf_token="abc", error="exchange_failed"), 5000)

        assert url == "http://localhost:5000/?csrf_token=abc&error=exchange_failed"

    def test_decode_fin_response(self):
        fin = decode_fin_response("csrf_token=abc&response=a%26b%3Dc")

        assert fin.csrf_token == "abc"
        assert fin.response == "a&b=c"
        assert fin.error is None
        assert fin.welcome_redirect is None

    def test_decode_empty_response_value(self):
        assert decode_fin_response("csrf_token=abc&response=").response == ""

    def test_decode_error_marker(self):
        fin = decode_fin_response("csrf_token=abc&error=access_denied")

        assert fin.error == "access_denied"
        assert fin.response is None

    @pytest.mark.parametrize(
        "query",
        [
            "",
            "response=x",
            "csrf_token=&response=x",
            "csrf_token=abc",
            "csrf_token=abc&response=x&error=exchange_failed",
            "csrf_token=abc&error=",
            "csrf_token=abc&csrf_token=def&response=x",
            "csrf_token=abc&response=x&response=y",
        ],
    )
    def test_decode_malformed(self, query):
        with pytest.raises(CodecError):
            decode_fin_response(query)

    def test_secret_values_hidden_from_repr(self):
        fin = FinResponse(csrf_token="nonce-value", response="gho_secret")

        assert "nonce-value" not in repr(fin)
        assert "gho_secret" not in repr(fin)
