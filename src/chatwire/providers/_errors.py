"""Shared provider-side error helpers.

Providers attach retry metadata via APIError so core retry logic can be
bounded and deterministic without brittle substring matching.
"""

from __future__ import annotations

import asyncio
import json
from typing import Any

import httpx

from chatwire._http import RETRYABLE_STATUS_CODES
from chatwire.errors import APIError, HTTPError, RateLimitError


def _auth_hint(api_key_env: str | None, status_code: int) -> str | None:
    """Generate a hint for auth errors where naming the env var is useful."""
    if status_code in {401, 403}:
        env_var = api_key_env or "API key"
        return f"Check credentials/permissions (try setting {env_var} or Config.api_key)."
    return None


def _parse_body(response: httpx.Response) -> Any:
    try:
        return json.loads(response.content)
    except (ValueError, UnicodeDecodeError):
        return response.text


def _error_message(body: Any) -> str | None:
    """Pull a human-readable message out of an API error body."""
    if not isinstance(body, dict):
        return body.strip() if isinstance(body, str) and body.strip() else None
    error = body.get("error")
    if isinstance(error, dict) and isinstance(error.get("message"), str):
        return error["message"]
    if isinstance(error, str):
        return error
    for key in ("message", "detail"):
        value = body.get(key)
        if isinstance(value, str):
            return value
    return None


def extract_retry_after_s(response: httpx.Response) -> float | None:
    """Read a ``Retry-After`` header given in seconds."""
    raw = response.headers.get("Retry-After")
    if not raw or not raw.strip():
        return None
    try:
        seconds = float(raw)
    except ValueError:
        return None
    return seconds if seconds >= 0 else None


def http_error_from_response(
    response: httpx.Response,
    *,
    provider: str,
    api_key_env: str | None = None,
    phase: str = "generate",
) -> HTTPError:
    """Map a non-success response into HTTPError with status and body attached."""
    status_code = response.status_code
    body = _parse_body(response)
    retry_after_s = extract_retry_after_s(response)

    err_cls: type[HTTPError] = RateLimitError if status_code == 429 else HTTPError
    detail = _error_message(body)
    msg = f"{provider} {phase} failed (status={status_code})"
    return err_cls(
        f"{msg}: {detail}" if detail else msg,
        hint=_auth_hint(api_key_env, status_code),
        retryable=status_code in RETRYABLE_STATUS_CODES or retry_after_s is not None,
        status_code=status_code,
        body=body,
        retry_after_s=retry_after_s,
        provider=provider,
        phase=phase,
    )


def wrap_transport_error(
    exc: BaseException,
    *,
    provider: str,
    phase: str = "generate",
) -> APIError:
    """Map httpx transport exceptions into a retryable APIError."""
    if isinstance(exc, asyncio.CancelledError):
        raise exc

    if isinstance(exc, APIError):
        if exc.provider is None:
            exc.provider = provider
        if exc.phase is None:
            exc.phase = phase
        return exc

    retryable = isinstance(exc, (httpx.TimeoutException, httpx.RequestError))
    cause = str(exc)
    msg = f"{provider} {phase} failed"
    return APIError(
        f"{msg}: {cause}" if cause else msg,
        retryable=retryable,
        provider=provider,
        phase=phase,
    )
