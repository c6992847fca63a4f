"""Conversation model: role-tagged messages made of typed content parts."""

from __future__ import annotations

from dataclasses import dataclass, replace
import json
from typing import TYPE_CHECKING, Any, Literal

from chatwire.errors import InvalidParameterError

if TYPE_CHECKING:
    from collections.abc import Iterable

Role = Literal["system", "user", "assistant", "tool"]
PartType = Literal["text", "tool_call", "tool_result", "thinking"]

_ROLES: frozenset[str] = frozenset({"system", "user", "assistant", "tool"})


@dataclass(frozen=True)
class ToolCall:
    """A tool call requested by the model."""

    id: str
    name: str
    arguments: str


@dataclass(frozen=True)
class ContentPart:
    """One typed piece of a message."""

    type: PartType
    text: str = ""
    tool_call: ToolCall | None = None
    tool_call_id: str | None = None

    @classmethod
    def from_text(cls, text: str) -> ContentPart:
        return cls(type="text", text=text)

    @classmethod
    def from_thinking(cls, text: str) -> ContentPart:
        return cls(type="thinking", text=text)

    @classmethod
    def from_tool_call(cls, call: ToolCall) -> ContentPart:
        return cls(type="tool_call", tool_call=call)

    @classmethod
    def from_tool_result(cls, tool_call_id: str, text: str) -> ContentPart:
        return cls(type="tool_result", text=text, tool_call_id=tool_call_id)


@dataclass(frozen=True)
class Message:
    """A conversational turn."""

    role: Role
    content: tuple[ContentPart, ...] = ()

    @classmethod
    def system(cls, text: str) -> Message:
        return cls(role="system", content=(ContentPart.from_text(text),))

    @classmethod
    def user(cls, text: str) -> Message:
        return cls(role="user", content=(ContentPart.from_text(text),))

    @classmethod
    def assistant(
        cls, text: str = "", *, tool_calls: Iterable[ToolCall] = ()
    ) -> Message:
        parts = [ContentPart.from_text(text)] if text else []
        parts.extend(ContentPart.from_tool_call(tc) for tc in tool_calls)
        return cls(role="assistant", content=tuple(parts))

    @classmethod
    def tool(cls, tool_call_id: str, text: str) -> Message:
        return cls(
            role="tool", content=(ContentPart.from_tool_result(tool_call_id, text),)
        )

    @property
    def text(self) -> str:
        """Concatenated text of all ``text`` parts."""
        return "".join(p.text for p in self.content if p.type == "text")

    @property
    def tool_calls(self) -> list[ToolCall]:
        return [
            p.tool_call
            for p in self.content
            if p.type == "tool_call" and p.tool_call is not None
        ]


@dataclass(frozen=True)
class Context:
    """An ordered, immutable conversation."""

    messages: tuple[Message, ...] = ()

    def __iter__(self):
        return iter(self.messages)

    def __len__(self) -> int:
        return len(self.messages)

    def append(self, message: Message) -> Context:
        """Return a new context with *message* appended."""
        return replace(self, messages=(*self.messages, message))

    @classmethod
    def normalize(cls, prompt: Any) -> Context:
        """Coerce a prompt into a Context.

        Accepts a string (single user turn), a Context, a Message, or a list
        of Messages and ``{"role": ..., "content": ...}`` dicts.

        Raises:
            InvalidParameterError: If the prompt cannot be interpreted.
        """
        if isinstance(prompt, Context):
            return prompt
        if isinstance(prompt, Message):
            return cls(messages=(prompt,))
        if isinstance(prompt, str):
            if not prompt.strip():
                raise InvalidParameterError(
                    "prompt is empty or whitespace-only",
                    hint="Pass a non-empty string or a list of messages.",
                )
            return cls(messages=(Message.user(prompt),))
        if isinstance(prompt, (list, tuple)):
            if not prompt:
                raise InvalidParameterError(
                    "prompt must contain at least one message",
                )
            return cls(messages=tuple(_coerce_message(m) for m in prompt))

        raise InvalidParameterError(
            f"Unsupported prompt type: {type(prompt).__name__}",
            hint="Pass a string, a Context, or a list of messages.",
        )


def _coerce_message(item: Any) -> Message:
    if isinstance(item, Message):
        return item
    if not isinstance(item, dict) or item.get("role") not in _ROLES:
        raise InvalidParameterError(
            "messages must be Message instances or dicts with a valid 'role'",
            hint="Each item needs at least {'role': 'user', 'content': '...'}.",
        )

    role = item["role"]
    content = item.get("content") or ""
    if not isinstance(content, str):
        raise InvalidParameterError(
            f"message content must be a string, got {type(content).__name__}",
        )

    if role == "tool":
        call_id = item.get("tool_call_id")
        if not isinstance(call_id, str) or not call_id:
            raise InvalidParameterError(
                "tool messages require a 'tool_call_id'",
            )
        return Message.tool(call_id, content)

    if role == "assistant":
        raw_calls = item.get("tool_calls") or []
        if not isinstance(raw_calls, (list, tuple)):
            raise InvalidParameterError(
                f"assistant tool_calls must be a list, got {type(raw_calls).__name__}",
            )
        calls = [_coerce_tool_call(tc) for tc in raw_calls]
        return Message.assistant(content, tool_calls=calls)

    if role == "system":
        return Message.system(content)
    return Message.user(content)


def _coerce_tool_call(raw: Any) -> ToolCall:
    if isinstance(raw, ToolCall):
        return raw
    if not (
        isinstance(raw, dict)
        and isinstance(raw.get("id"), str)
        and raw["id"]
        and isinstance(raw.get("name"), str)
        and raw["name"]
    ):
        raise InvalidParameterError(
            f"assistant tool_calls entries need string 'id' and 'name', got {raw!r}",
            hint="Pass {'id': 'call_1', 'name': 'get_weather', 'arguments': '{}'}.",
        )
    arguments = raw.get("arguments")
    if arguments is None:
        arguments = "{}"
    elif not isinstance(arguments, str):
        arguments = json.dumps(arguments)
    return ToolCall(id=raw["id"], name=raw["name"], arguments=arguments)
