"""Domain models for the provider transport layer."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any

import httpx

from chatwire.context import Message, ToolCall
from chatwire.options import Options


@dataclass(frozen=True)
class TransportRequest:
    """A fully compiled HTTP request plus the options it was built from.

    The option set travels with the request so the paired response is decoded
    according to the operation the request was prepared for.
    """

    method: str
    url: str
    options: Options
    body: bytes = b""
    headers: tuple[tuple[str, str], ...] = ()

    @property
    def operation(self) -> Any:
        return self.options.get("operation")

    def with_header(self, name: str, value: str) -> TransportRequest:
        """Return a copy with *name* set (replacing any existing value)."""
        lowered = name.lower()
        kept = tuple((k, v) for k, v in self.headers if k.lower() != lowered)
        return replace(self, headers=(*kept, (lowered, value)))

    def header(self, name: str) -> str | None:
        lowered = name.lower()
        for k, v in self.headers:
            if k.lower() == lowered:
                return v
        return None

    def to_httpx(self, *, timeout_s: float | None = None) -> httpx.Request:
        extensions: dict[str, Any] = {}
        if timeout_s is not None:
            extensions["timeout"] = httpx.Timeout(timeout_s).as_dict()
        return httpx.Request(
            self.method,
            self.url,
            headers=list(self.headers),
            content=self.body,
            extensions=extensions,
        )


@dataclass(frozen=True)
class Usage:
    """Token accounting reported by the API."""

    input_tokens: int = 0
    output_tokens: int = 0
    total_tokens: int = 0


@dataclass(frozen=True)
class ChatResponse:
    """A normalized chat completion.

    ``object`` is only populated for structured-object requests.
    """

    id: str | None
    model: str | None
    message: Message
    usage: Usage = field(default_factory=Usage)
    finish_reason: str | None = None
    object: Any = None

    @property
    def text(self) -> str:
        return self.message.text

    @property
    def tool_calls(self) -> list[ToolCall]:
        return self.message.tool_calls

    def with_object(self, value: Any) -> ChatResponse:
        return replace(self, object=value)
