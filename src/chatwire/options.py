"""Per-call option sets.

`Options` is an immutable ordered mapping: every update returns a new
instance, so a provider can extend the caller's options without mutating them.
"""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from typing import Any

from chatwire.errors import InvalidParameterError

#: Keys understood by every provider.
GENERATION_KEYS: frozenset[str] = frozenset(
    {
        "temperature",
        "max_tokens",
        "top_p",
        "stop",
        "n",
        "presence_penalty",
        "frequency_penalty",
        "tools",
        "tool_choice",
        "system_prompt",
        "response_format",
        "schema",
        "compiled_schema",
        "base_url",
        "provider_options",
    }
)


class Options(Mapping[str, Any]):
    """Immutable ordered key/value option set; last write wins."""

    __slots__ = ("_items",)

    def __init__(self, items: Mapping[str, Any] | None = None, /, **kwargs: Any) -> None:
        merged: dict[str, Any] = dict(items or {})
        merged.update(kwargs)
        self._items = merged

    def __getitem__(self, key: str) -> Any:
        return self._items[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._items)

    def __len__(self) -> int:
        return len(self._items)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, Options):
            return list(self._items.items()) == list(other._items.items())
        if isinstance(other, Mapping):
            return self._items == dict(other)
        return NotImplemented

    def __repr__(self) -> str:
        return f"Options({self._items!r})"

    def put(self, key: str, value: Any) -> Options:
        """Return a copy with *key* set to *value*."""
        return Options({**self._items, key: value})

    def put_new(self, key: str, value: Any) -> Options:
        """Return a copy with *key* set only when it is absent."""
        if key in self._items:
            return self
        return self.put(key, value)

    def merge(self, other: Mapping[str, Any]) -> Options:
        """Return a copy with *other* applied on top."""
        return Options({**self._items, **other})

    def drop(self, *keys: str) -> Options:
        return Options({k: v for k, v in self._items.items() if k not in keys})

    def to_dict(self) -> dict[str, Any]:
        return dict(self._items)


def validate_options(
    options: Mapping[str, Any], *, provider_keys: frozenset[str] = frozenset()
) -> Options:
    """Check option keys and value ranges; return them as an `Options`.

    Provider-specific keys may be given at top level or nested under
    ``provider_options``.

    Raises:
        InvalidParameterError: On unknown keys or out-of-range values.
    """
    opts = options if isinstance(options, Options) else Options(options)

    allowed = GENERATION_KEYS | provider_keys
    unknown = [k for k in opts if k not in allowed]
    if unknown:
        raise InvalidParameterError(
            f"Unknown options: {sorted(unknown)}",
            hint=f"Supported options: {sorted(allowed)}",
        )

    nested = opts.get("provider_options")
    if nested is not None:
        if not isinstance(nested, Mapping):
            raise InvalidParameterError("provider_options must be a mapping")
        stray = [k for k in nested if k not in provider_keys]
        if stray:
            raise InvalidParameterError(
                f"Unknown provider_options: {sorted(stray)}",
                hint=f"Provider options: {sorted(provider_keys)}",
            )

    temperature = opts.get("temperature")
    if temperature is not None and (
        isinstance(temperature, bool)
        or not isinstance(temperature, (int, float))
        or not 0 <= temperature <= 2
    ):
        raise InvalidParameterError(
            f"temperature must be a number in [0, 2], got {temperature!r}",
        )

    top_p = opts.get("top_p")
    if top_p is not None and (
        isinstance(top_p, bool)
        or not isinstance(top_p, (int, float))
        or not 0 <= top_p <= 1
    ):
        raise InvalidParameterError(f"top_p must be a number in [0, 1], got {top_p!r}")

    for key in ("max_tokens", "n"):
        value = opts.get(key)
        if value is not None and (
            isinstance(value, bool) or not isinstance(value, int) or value <= 0
        ):
            raise InvalidParameterError(
                f"{key} must be a positive integer, got {value!r}",
            )

    system_prompt = opts.get("system_prompt")
    if system_prompt is not None and not isinstance(system_prompt, str):
        raise InvalidParameterError(
            "system_prompt must be a string",
            hint="Pass system_prompt='You are a concise assistant.'",
        )

    return opts
