"""Option set tests: immutability, merge semantics and validation."""

from __future__ import annotations

from typing import Any

import pytest

from chatwire.errors import InvalidParameterError
from chatwire.options import Options, validate_options
from chatwire.providers.mistral import PROVIDER_OPTION_KEYS

pytestmark = pytest.mark.unit


def test_put_returns_new_instance_and_last_write_wins() -> None:
    base = Options(temperature=0.1)
    updated = base.put("temperature", 0.9)

    assert base["temperature"] == 0.1
    assert updated["temperature"] == 0.9
    assert updated is not base


def test_put_new_only_fills_absent_keys() -> None:
    base = Options(max_tokens=100)

    assert base.put_new("max_tokens", 4096)["max_tokens"] == 100
    assert base.put_new("top_p", 0.5)["top_p"] == 0.5


def test_key_order_is_preserved_across_updates() -> None:
    opts = Options({"a": 1, "b": 2}).put("c", 3).put("a", 10)

    assert list(opts) == ["a", "b", "c"]
    assert opts.to_dict() == {"a": 10, "b": 2, "c": 3}


def test_merge_and_drop() -> None:
    opts = Options(a=1, b=2).merge({"b": 3, "c": 4}).drop("a")
    assert opts == {"b": 3, "c": 4}


def test_options_compare_equal_to_plain_mappings() -> None:
    assert Options(a=1) == {"a": 1}
    assert Options(a=1) != Options(a=2)


def test_validate_accepts_core_and_provider_keys() -> None:
    opts = validate_options(
        {"temperature": 0.3, "max_tokens": 10, "safe_prompt": True},
        provider_keys=PROVIDER_OPTION_KEYS,
    )
    assert isinstance(opts, Options)
    assert opts["safe_prompt"] is True


def test_validate_returns_options_instances_unchanged() -> None:
    opts = Options(temperature=0.3)
    assert validate_options(opts) is opts


@pytest.mark.parametrize(
    "bad",
    [
        {"temprature": 0.2},
        {"safe_prompt": True},
        {"temperature": 3},
        {"temperature": True},
        {"top_p": 1.5},
        {"max_tokens": 0},
        {"max_tokens": "100"},
        {"n": -1},
        {"system_prompt": ["not", "a", "string"]},
        {"provider_options": {"unknown": 1}},
        {"provider_options": "safe_prompt"},
        {"operation": "object"},
    ],
)
def test_validate_rejects_bad_options(bad: dict[str, Any]) -> None:
    with pytest.raises(InvalidParameterError):
        validate_options(bad)
