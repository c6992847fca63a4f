from __future__ import annotations

import asyncio

import httpx
import pytest

from chatwire.errors import (
    APIError,
    ChatwireError,
    DecodeError,
    HTTPError,
    MalformedObjectError,
    MissingContentError,
    RateLimitError,
)
from chatwire.providers._errors import (
    extract_retry_after_s,
    http_error_from_response,
    wrap_transport_error,
)
from tests.helpers import make_response

pytestmark = pytest.mark.unit


def test_api_error_structured_metadata() -> None:
    err = APIError(
        "boom",
        hint="do this",
        retryable=True,
        status_code=429,
        body={"message": "slow down"},
        retry_after_s=2.0,
        provider="mistral",
        phase="generate",
    )

    assert str(err) == "boom"
    assert err.hint == "do this"
    assert err.retryable is True
    assert err.status_code == 429
    assert err.body == {"message": "slow down"}
    assert err.retry_after_s == 2.0
    assert err.provider == "mistral"
    assert err.phase == "generate"


def test_api_error_defaults_to_none() -> None:
    err = APIError("fail")
    assert err.hint is None
    assert err.retryable is None
    assert err.status_code is None
    assert err.body is None
    assert err.retry_after_s is None
    assert err.provider is None
    assert err.phase is None


def test_subclass_hierarchy() -> None:
    """Decode and HTTP failures are catchable as APIError and ChatwireError."""
    for err in (
        RateLimitError("rate limit", status_code=429, retryable=True),
        MalformedObjectError("bad json", phase="decode"),
        MissingContentError("empty", phase="decode"),
    ):
        assert isinstance(err, APIError)
        assert isinstance(err, ChatwireError)

    assert issubclass(RateLimitError, HTTPError)
    assert issubclass(MalformedObjectError, DecodeError)
    assert not issubclass(DecodeError, HTTPError)


# =============================================================================
# Response Mapping
# =============================================================================


@pytest.mark.parametrize(
    ("header", "expected"),
    [("2", 2.0), ("0.5", 0.5), ("", None), ("soon", None), ("-1", None)],
)
def test_extract_retry_after_seconds(header: str, expected: float | None) -> None:
    response = make_response(503, "busy", headers={"Retry-After": header})
    assert extract_retry_after_s(response) == expected


def test_http_error_from_400_is_not_retryable() -> None:
    body = {"object": "error", "message": "Invalid model", "type": "invalid_model"}

    err = http_error_from_response(make_response(400, body), provider="mistral")

    assert type(err) is HTTPError
    assert err.retryable is False
    assert err.status_code == 400
    assert err.body == body
    assert "Invalid model" in str(err)
    assert err.hint is None


@pytest.mark.parametrize("status", [401, 403])
def test_auth_errors_name_the_key_variable(status: int) -> None:
    err = http_error_from_response(
        make_response(status, {"message": "Unauthorized"}),
        provider="mistral",
        api_key_env="MISTRAL_API_KEY",
    )
    assert err.hint is not None
    assert "MISTRAL_API_KEY" in err.hint


def test_retry_after_marks_any_status_retryable() -> None:
    err = http_error_from_response(
        make_response(409, "conflict", headers={"Retry-After": "1"}),
        provider="mistral",
    )
    assert err.retryable is True
    assert err.retry_after_s == 1.0


def test_wrap_transport_error_marks_network_failures_retryable() -> None:
    request = httpx.Request("POST", "https://api.mistral.ai/v1/chat/completions")
    exc = httpx.ConnectError("connection refused", request=request)

    wrapped = wrap_transport_error(exc, provider="mistral", phase="generate")

    assert isinstance(wrapped, APIError)
    assert wrapped.retryable is True
    assert wrapped.provider == "mistral"
    assert "connection refused" in str(wrapped)


def test_wrap_transport_error_preserves_api_errors() -> None:
    base = APIError("bad request", retryable=False, status_code=400)

    wrapped = wrap_transport_error(base, provider="mistral", phase="generate")

    assert wrapped is base
    assert wrapped.retryable is False
    assert wrapped.provider == "mistral"
    assert wrapped.phase == "generate"


def test_wrap_transport_error_reraises_cancellation() -> None:
    with pytest.raises(asyncio.CancelledError):
        wrap_transport_error(asyncio.CancelledError(), provider="mistral")
