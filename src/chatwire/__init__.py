"""chatwire: structured-output-aware chat completion adapters.

Public API:
    - generate_text(): Plain chat completion
    - generate_object(): Chat completion coerced into a schema-shaped object
    - Config: Configuration dataclass
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from chatwire.config import Config
from chatwire.context import ContentPart, Context, Message, ToolCall
from chatwire.errors import (
    APIError,
    ChatwireError,
    ConfigurationError,
    DecodeError,
    HTTPError,
    InvalidParameterError,
    MalformedObjectError,
    MissingContentError,
    ProviderMismatchError,
    RateLimitError,
)
from chatwire.execute import execute_request, get_provider
from chatwire.model import Model
from chatwire.options import Options
from chatwire.providers.base import Operation
from chatwire.providers.models import ChatResponse, Usage
from chatwire.retry import RetryPolicy
from chatwire.schema import CompiledSchema, Tool, compile_schema

if TYPE_CHECKING:
    import httpx

try:
    from importlib.metadata import PackageNotFoundError, version

    __version__ = version("chatwire")
except PackageNotFoundError:
    __version__ = "0.0.0+unknown"

# Library-level NullHandler: stay silent unless the consumer configures logging.
logging.getLogger("chatwire").addHandler(logging.NullHandler())


def _with_config_defaults(config: Config, options: dict[str, Any]) -> dict[str, Any]:
    if config.base_url is not None:
        options.setdefault("base_url", config.base_url)
    return options


async def generate_text(
    prompt: Any,
    *,
    config: Config,
    client: httpx.AsyncClient | None = None,
    **options: Any,
) -> ChatResponse:
    """Run a plain chat completion.

    Args:
        prompt: A string, a Context, or a list of messages.
        config: Configuration specifying provider and model.
        client: Optional shared ``httpx.AsyncClient`` (left open).
        **options: Generation options (temperature, max_tokens, tools, ...).

    Returns:
        The decoded ChatResponse.

    Example:
        config = Config(provider="mistral", model="mistral-large-latest")
        response = await generate_text("Hello!", config=config)
        print(response.text)
    """
    provider = get_provider(config.provider)
    request = provider.prepare_request(
        Operation.CHAT,
        config.model_spec,
        prompt,
        _with_config_defaults(config, options),
    )
    return await execute_request(provider, request, config=config, client=client)


async def generate_object(
    prompt: Any,
    schema: Any,
    *,
    config: Config,
    client: httpx.AsyncClient | None = None,
    **options: Any,
) -> ChatResponse:
    """Run a chat completion that returns a structured object.

    Args:
        prompt: A string, a Context, or a list of messages.
        schema: Field mapping, JSON Schema dict, or Pydantic model class.
        config: Configuration specifying provider and model.
        client: Optional shared ``httpx.AsyncClient`` (left open).
        **options: Generation options (temperature, max_tokens, ...).

    Returns:
        The decoded ChatResponse with ``object`` populated when the model
        delivered one.

    Example:
        schema = {"name": {"type": "string", "required": True}}
        response = await generate_object("Generate a person", schema, config=config)
        print(response.object["name"])
    """
    provider = get_provider(config.provider)
    options["compiled_schema"] = compile_schema(schema)
    request = provider.prepare_request(
        Operation.OBJECT,
        config.model_spec,
        prompt,
        _with_config_defaults(config, options),
    )
    return await execute_request(provider, request, config=config, client=client)


__all__ = [  # noqa: RUF022
    # Entry points
    "generate_text",
    "generate_object",
    # Configuration
    "Config",
    "RetryPolicy",
    "Options",
    # Conversation and results
    "Context",
    "Message",
    "ContentPart",
    "ToolCall",
    "ChatResponse",
    "Usage",
    "Model",
    "Operation",
    # Schemas and tools
    "CompiledSchema",
    "Tool",
    "compile_schema",
    # Errors
    "ChatwireError",
    "ConfigurationError",
    "InvalidParameterError",
    "ProviderMismatchError",
    "APIError",
    "HTTPError",
    "RateLimitError",
    "DecodeError",
    "MalformedObjectError",
    "MissingContentError",
]
