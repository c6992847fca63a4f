"""Model reference and conversation normalization tests."""

from __future__ import annotations

from typing import Any

import pytest

from chatwire.context import Context, Message, ToolCall
from chatwire.errors import ConfigurationError, InvalidParameterError
from chatwire.model import Model

pytestmark = pytest.mark.unit


def test_model_parse_splits_provider_and_name() -> None:
    model = Model.parse("Mistral:mistral-large-latest")

    assert model.provider == "mistral"
    assert model.name == "mistral-large-latest"
    assert str(model) == "mistral:mistral-large-latest"
    assert Model.parse(model) is model


@pytest.mark.parametrize("spec", ["mistral-large-latest", ":large", "mistral:", "", 42])
def test_model_parse_rejects_malformed_references(spec: Any) -> None:
    with pytest.raises(ConfigurationError):
        Model.parse(spec)


def test_string_prompt_becomes_single_user_turn() -> None:
    context = Context.normalize("Hello world")

    assert len(context) == 1
    (message,) = context
    assert message.role == "user"
    assert message.text == "Hello world"


def test_message_dicts_are_normalized() -> None:
    context = Context.normalize(
        [
            {"role": "system", "content": "Be brief."},
            {"role": "user", "content": "Weather in Paris?"},
            {
                "role": "assistant",
                "tool_calls": [
                    {"id": "c1", "name": "get_weather", "arguments": '{"city":"Paris"}'}
                ],
            },
            {"role": "tool", "tool_call_id": "c1", "content": "sunny"},
        ]
    )

    roles = [m.role for m in context]
    assert roles == ["system", "user", "assistant", "tool"]
    assert context.messages[2].tool_calls == [
        ToolCall(id="c1", name="get_weather", arguments='{"city":"Paris"}')
    ]
    assert context.messages[3].content[0].tool_call_id == "c1"


def test_append_returns_new_context() -> None:
    base = Context.normalize("Hi")
    extended = base.append(Message.assistant("Hello!"))

    assert len(base) == 1
    assert len(extended) == 2


@pytest.mark.parametrize(
    "prompt",
    [
        "",
        "   ",
        [],
        [{"role": "robot", "content": "beep"}],
        [{"role": "tool", "content": "orphan"}],
        [{"role": "user", "content": 42}],
        [{"role": "assistant", "content": "", "tool_calls": [{"name": "x"}]}],
        [{"role": "assistant", "content": "", "tool_calls": [{"id": "c1"}]}],
        [{"role": "assistant", "content": "", "tool_calls": [{"id": 1, "name": "x"}]}],
        [{"role": "assistant", "content": "", "tool_calls": ["get_weather"]}],
        [{"role": "assistant", "content": "", "tool_calls": "get_weather"}],
        42,
    ],
)
def test_invalid_prompts_are_rejected(prompt: Any) -> None:
    with pytest.raises(InvalidParameterError):
        Context.normalize(prompt)


def test_tool_call_arguments_given_as_mapping_are_json_encoded() -> None:
    context = Context.normalize(
        [
            {
                "role": "assistant",
                "tool_calls": [
                    {"id": "c1", "name": "get_weather", "arguments": {"city": "Paris"}},
                    {"id": "c2", "name": "get_time"},
                ],
            }
        ]
    )

    first, second = context.messages[0].tool_calls
    assert first.arguments == '{"city": "Paris"}'
    assert second.arguments == "{}"


def test_malformed_tool_call_error_carries_hint() -> None:
    with pytest.raises(InvalidParameterError) as exc:
        Context.normalize([{"role": "assistant", "tool_calls": [{"name": "x"}]}])
    assert exc.value.hint is not None
    assert "'id'" in exc.value.hint
