"""Exception hierarchy for chatwire."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Iterator


class ChatwireError(Exception):
    """Base exception for all chatwire errors."""

    def __init__(self, message: str, *, hint: str | None = None) -> None:
        super().__init__(message)
        self.hint = hint


class ConfigurationError(ChatwireError):
    """Configuration validation or resolution failed."""


class InvalidParameterError(ChatwireError):
    """An operation or option value was rejected before any request was built."""


class ProviderMismatchError(ChatwireError):
    """A model reference was routed to a provider that does not own it."""

    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        expected: str | None = None,
        actual: str | None = None,
    ) -> None:
        super().__init__(message, hint=hint)
        self.expected = expected
        self.actual = actual


class APIError(ChatwireError):
    """API call failed.

    Providers attach retry metadata so core execution can perform bounded
    retries without brittle substring matching.
    """

    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        retryable: bool | None = None,
        status_code: int | None = None,
        body: Any = None,
        retry_after_s: float | None = None,
        provider: str | None = None,
        phase: str | None = None,
    ) -> None:
        super().__init__(message, hint=hint)
        self.retryable = retryable
        self.status_code = status_code
        self.body = body
        self.retry_after_s = retry_after_s
        self.provider = provider
        self.phase = phase


class HTTPError(APIError):
    """The API answered with a non-success status code."""


class RateLimitError(HTTPError):
    """Rate limit exceeded (HTTP 429)."""


class DecodeError(APIError):
    """A success response could not be decoded into a chat response."""


class MalformedObjectError(DecodeError):
    """The structured-object payload was not valid JSON."""


class MissingContentError(DecodeError):
    """A success response carried no usable content parts."""


def _walk_exception_chain(exc: BaseException) -> Iterator[BaseException]:
    """Yield *exc* and its ``__cause__``/``__context__`` chain, with cycle protection."""
    seen: set[int] = set()
    stack: list[BaseException] = [exc]
    while stack:
        cur = stack.pop()
        if id(cur) in seen:
            continue
        seen.add(id(cur))
        yield cur

        cause = cur.__cause__
        if isinstance(cause, BaseException):
            stack.append(cause)
        context = cur.__context__
        if isinstance(context, BaseException):
            stack.append(context)
