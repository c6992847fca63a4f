"""Test helpers (small, reusable builders).

Keep this file tiny and purpose-built: canned chat completion bodies, raw
httpx responses and sample models, so suites do not hand-roll wire payloads.
"""

from __future__ import annotations

import json
from typing import Any

import httpx
from pydantic import BaseModel


def completion_body(
    content: Any = "Hello! How can I help you today?",
    *,
    tool_calls: list[dict[str, Any]] | None = None,
    prompt_tokens: int = 10,
    completion_tokens: int = 9,
    finish_reason: str = "stop",
) -> dict[str, Any]:
    """A chat completion body as returned by the API."""
    message: dict[str, Any] = {"role": "assistant", "content": content}
    if tool_calls is not None:
        message["tool_calls"] = tool_calls
    return {
        "id": "cmpl-test",
        "object": "chat.completion",
        "model": "mistral-large-latest",
        "choices": [{"index": 0, "message": message, "finish_reason": finish_reason}],
        "usage": {
            "prompt_tokens": prompt_tokens,
            "completion_tokens": completion_tokens,
            "total_tokens": prompt_tokens + completion_tokens,
        },
    }


def tool_call(name: str, arguments: str, call_id: str = "call_1") -> dict[str, Any]:
    return {
        "id": call_id,
        "type": "function",
        "function": {"name": name, "arguments": arguments},
    }


def make_response(
    status: int = 200,
    body: Any = None,
    *,
    headers: dict[str, str] | None = None,
) -> httpx.Response:
    """Build a raw response; dict/list bodies are JSON-encoded."""
    if body is None:
        body = completion_body()
    content = body if isinstance(body, (str, bytes)) else json.dumps(body)
    return httpx.Response(
        status,
        content=content,
        headers={"content-type": "application/json", **(headers or {})},
    )


def request_body(request: Any) -> dict[str, Any]:
    """Decode the JSON body of a TransportRequest."""
    return json.loads(request.body)


def system_prompt_of(request: Any) -> str | None:
    messages = request_body(request)["messages"]
    if messages and messages[0]["role"] == "system":
        return messages[0]["content"]
    return None


class Address(BaseModel):
    city: str
    zip_code: str | None = None


class Resident(BaseModel):
    """A model whose JSON Schema references nested definitions."""

    name: str
    address: Address
    previous: list[Address] = []
