"""Shared chat-completion behavior for OpenAI-compatible providers.

Providers delegate here for everything that is not specific to them:
operation validation, body encoding, authentication, chat decoding and
tool-call-based structured output.
"""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING, Any

from chatwire._http import is_success
from chatwire.context import ContentPart, Context, Message, ToolCall
from chatwire.errors import (
    DecodeError,
    InvalidParameterError,
    MalformedObjectError,
    ProviderMismatchError,
)
from chatwire.model import Model
from chatwire.options import Options, validate_options
from chatwire.providers._errors import http_error_from_response
from chatwire.providers.base import Operation
from chatwire.providers.models import ChatResponse, TransportRequest, Usage
from chatwire.schema import (
    STRUCTURED_OUTPUT_TOOL,
    CompiledSchema,
    Tool,
    compile_schema,
    structured_output_tool,
)

if TYPE_CHECKING:
    from collections.abc import Mapping

    import httpx

    from chatwire.providers.base import Provider

log = logging.getLogger(__name__)

CHAT_COMPLETIONS_PATH = "/chat/completions"

# Generation options copied verbatim into the request body when set.
_BODY_KEYS = (
    "temperature",
    "max_tokens",
    "top_p",
    "stop",
    "n",
    "presence_penalty",
    "frequency_penalty",
    "response_format",
)


def coerce_operation(operation: Any) -> Operation:
    """Resolve *operation* to an `Operation` or raise InvalidParameterError."""
    if isinstance(operation, Operation):
        return operation
    if isinstance(operation, str):
        try:
            return Operation(operation)
        except ValueError:
            pass
    raise InvalidParameterError(
        f"Unsupported operation: {operation!r}",
        hint=f"Supported operations: {[op.value for op in Operation]}",
    )


def check_provider(provider: Provider, model: Model | str) -> Model:
    """Parse *model* and ensure it belongs to *provider*."""
    parsed = Model.parse(model)
    if parsed.provider != provider.provider_id:
        raise ProviderMismatchError(
            f"Model {str(parsed)!r} does not belong to provider "
            f"{provider.provider_id!r}",
            hint=f"Use a '{provider.provider_id}:<model>' reference.",
            expected=provider.provider_id,
            actual=parsed.provider,
        )
    return parsed


def compiled_schema_from(options: Mapping[str, Any]) -> CompiledSchema:
    """Return the compiled schema carried by *options*, compiling ``schema`` if needed."""
    compiled = options.get("compiled_schema")
    if compiled is None:
        compiled = options.get("schema")
    if compiled is None:
        raise InvalidParameterError(
            "object operations require a schema",
            hint="Pass compiled_schema=... or schema=... in options.",
        )
    return compile_schema(compiled)


def build_chat_request(
    provider: Provider,
    operation: Operation | str,
    model: Model | str,
    prompt: Any,
    options: Mapping[str, Any] | None = None,
    *,
    decode_as: Operation | None = None,
) -> TransportRequest:
    """Compile a chat completion request.

    ``chat`` requests are sent as given. ``object`` requests elicit the
    structured output through a forced ``structured_output`` tool call.

    The request is tagged with the operation its response must be decoded
    as. Callers cannot set the tag through *options*; a provider that shapes
    a ``chat`` request for its own object flow passes *decode_as* instead.

    Raises:
        InvalidParameterError: Unsupported operation or invalid options.
        ProviderMismatchError: *model* belongs to another provider.
        ConfigurationError: Malformed model reference or schema.
    """
    op = coerce_operation(operation)
    parsed = check_provider(provider, model)
    opts = validate_options(options or {}, provider_keys=provider.provider_option_keys)

    match op:
        case Operation.OBJECT:
            opts = _tool_object_options(opts)
        case Operation.CHAT:
            opts = opts.put("operation", decode_as or Operation.CHAT)

    context = Context.normalize(prompt)
    base_url = opts.get("base_url") or provider.default_base_url
    body = encode_body(
        parsed, context, opts, provider_keys=provider.provider_option_keys
    )
    log.debug(
        "Prepared %s request for %s (%d messages)",
        opts["operation"].value,
        parsed,
        len(context),
    )
    return TransportRequest(
        method="POST",
        url=f"{base_url.rstrip('/')}{CHAT_COMPLETIONS_PATH}",
        options=opts,
        body=body,
        headers=(("content-type", "application/json"),),
    )


def _tool_object_options(opts: Options) -> Options:
    compiled = compiled_schema_from(opts)
    tool = structured_output_tool(compiled)
    return (
        opts.put("compiled_schema", compiled)
        .put("tools", [*(opts.get("tools") or []), tool])
        .put(
            "tool_choice",
            {"type": "function", "function": {"name": STRUCTURED_OUTPUT_TOOL}},
        )
        .put("operation", Operation.OBJECT)
    )


def encode_body(
    model: Model,
    context: Context,
    options: Mapping[str, Any],
    *,
    provider_keys: frozenset[str] = frozenset(),
) -> bytes:
    """Encode the JSON request body."""
    messages: list[dict[str, Any]] = []
    system_prompt = options.get("system_prompt")
    if system_prompt:
        messages.append({"role": "system", "content": system_prompt})
    messages.extend(encode_message(m) for m in context)

    body: dict[str, Any] = {"model": model.name, "messages": messages, "stream": False}
    for key in _BODY_KEYS:
        if options.get(key) is not None:
            body[key] = options[key]

    tools = options.get("tools")
    if tools:
        body["tools"] = [encode_tool(t) for t in tools]
        if options.get("tool_choice") is not None:
            body["tool_choice"] = options["tool_choice"]

    for key in sorted(provider_keys):
        if options.get(key) is not None:
            body[key] = options[key]
    for key, value in (options.get("provider_options") or {}).items():
        if value is not None:
            body[key] = value

    return json.dumps(body, separators=(",", ":"), ensure_ascii=False).encode("utf-8")


def encode_message(message: Message) -> dict[str, Any]:
    """Convert a Message into the chat-completions wire shape."""
    if message.role == "tool":
        result = next((p for p in message.content if p.type == "tool_result"), None)
        return {
            "role": "tool",
            "tool_call_id": result.tool_call_id if result else None,
            "content": result.text if result else "",
        }

    encoded: dict[str, Any] = {"role": message.role, "content": message.text}
    if message.role == "assistant" and message.tool_calls:
        encoded["tool_calls"] = [
            {
                "id": tc.id,
                "type": "function",
                "function": {"name": tc.name, "arguments": tc.arguments},
            }
            for tc in message.tool_calls
        ]
    return encoded


def encode_tool(tool: Tool | Mapping[str, Any]) -> dict[str, Any]:
    """Convert a Tool or tool dict into the ``{"type": "function"}`` shape."""
    if isinstance(tool, Tool):
        return tool.to_schema("openai")
    if isinstance(tool, dict) and tool.get("type") == "function":
        return dict(tool)
    if isinstance(tool, dict) and "name" in tool:
        function: dict[str, Any] = {
            "name": tool["name"],
            "parameters": tool.get("parameters", {"type": "object", "properties": {}}),
        }
        if "description" in tool:
            function["description"] = tool["description"]
        return {"type": "function", "function": function}
    raise InvalidParameterError(
        f"Unsupported tool definition: {tool!r}",
        hint="Pass chatwire.schema.Tool instances or {'name': ..., 'parameters': ...}.",
    )


def attach_auth(request: TransportRequest, api_key: str) -> TransportRequest:
    """Return *request* with a bearer authorization header."""
    return request.with_header("authorization", f"Bearer {api_key}")


def decode_chat_response(
    provider: Provider, request: TransportRequest, response: httpx.Response
) -> ChatResponse:
    """Decode a chat completion into a ChatResponse.

    Raises:
        HTTPError: Non-success status (RateLimitError for 429).
        DecodeError: Success status with a body that is not a chat completion.
    """
    _ = request
    if not is_success(response.status_code):
        raise http_error_from_response(
            response,
            provider=provider.provider_id,
            api_key_env=provider.api_key_env,
        )

    try:
        body = json.loads(response.content)
    except (ValueError, UnicodeDecodeError) as e:
        raise DecodeError(
            f"{provider.provider_id} returned a non-JSON body",
            status_code=response.status_code,
            body=response.text,
            provider=provider.provider_id,
            phase="decode",
        ) from e

    choices = body.get("choices") if isinstance(body, dict) else None
    if not isinstance(choices, list) or not choices:
        raise DecodeError(
            f"{provider.provider_id} response has no choices",
            status_code=response.status_code,
            body=body,
            provider=provider.provider_id,
            phase="decode",
        )

    choice = choices[0] if isinstance(choices[0], dict) else {}
    raw_message = choice.get("message")
    if not isinstance(raw_message, dict):
        raise DecodeError(
            f"{provider.provider_id} response choice has no message",
            status_code=response.status_code,
            body=body,
            provider=provider.provider_id,
            phase="decode",
        )

    parts = _decode_content(raw_message.get("content"))
    parts.extend(
        ContentPart.from_tool_call(tc)
        for tc in _decode_tool_calls(raw_message.get("tool_calls"))
    )
    message = Message(role=raw_message.get("role") or "assistant", content=tuple(parts))

    return ChatResponse(
        id=body.get("id"),
        model=body.get("model"),
        message=message,
        usage=_decode_usage(body.get("usage")),
        finish_reason=choice.get("finish_reason"),
    )


def _decode_content(content: Any) -> list[ContentPart]:
    if content is None:
        return []
    if isinstance(content, str):
        return [ContentPart.from_text(content)] if content else []
    if not isinstance(content, list):
        return []

    parts: list[ContentPart] = []
    for chunk in content:
        if not isinstance(chunk, dict):
            continue
        match chunk.get("type"):
            case "text":
                text = chunk.get("text")
                if isinstance(text, str) and text:
                    parts.append(ContentPart.from_text(text))
            case "thinking":
                # Reasoning models nest text chunks under "thinking".
                inner = chunk.get("thinking") or []
                text = "".join(
                    c.get("text", "")
                    for c in inner
                    if isinstance(c, dict) and isinstance(c.get("text"), str)
                )
                if text:
                    parts.append(ContentPart.from_thinking(text))
    return parts


def _decode_tool_calls(raw: Any) -> list[ToolCall]:
    calls: list[ToolCall] = []
    for idx, item in enumerate(raw or []):
        if not isinstance(item, dict):
            continue
        function = item.get("function") or {}
        name = function.get("name")
        if not isinstance(name, str):
            continue
        arguments = function.get("arguments")
        if not isinstance(arguments, str):
            arguments = json.dumps(arguments if arguments is not None else {})
        calls.append(
            ToolCall(id=str(item.get("id") or f"call_{idx}"), name=name, arguments=arguments)
        )
    return calls


def _decode_usage(raw: Any) -> Usage:
    if not isinstance(raw, dict):
        return Usage()
    input_tokens = int(raw.get("prompt_tokens") or 0)
    output_tokens = int(raw.get("completion_tokens") or 0)
    total = raw.get("total_tokens")
    return Usage(
        input_tokens=input_tokens,
        output_tokens=output_tokens,
        total_tokens=int(total) if total is not None else input_tokens + output_tokens,
    )


def extract_tool_call_object(decoded: ChatResponse) -> ChatResponse:
    """Attach the structured payload delivered through a tool call.

    Prefers the ``structured_output`` call; a single call with another name is
    accepted too. Without a usable call the response is returned unchanged.

    Raises:
        MalformedObjectError: The call's arguments are not valid JSON.
    """
    calls = decoded.tool_calls
    call = next((tc for tc in calls if tc.name == STRUCTURED_OUTPUT_TOOL), None)
    if call is None and len(calls) == 1:
        call = calls[0]
    if call is None:
        return decoded

    try:
        parsed = json.loads(call.arguments)
    except json.JSONDecodeError as e:
        raise MalformedObjectError(
            f"Tool call {call.name!r} arguments are not valid JSON",
            body=call.arguments,
            phase="decode",
        ) from e
    return decoded.with_object(parsed)


def decode_tool_call_object(
    provider: Provider, request: TransportRequest, response: httpx.Response
) -> ChatResponse:
    """Decode a chat completion and attach the tool-call structured payload."""
    return extract_tool_call_object(decode_chat_response(provider, request, response))


def decode_response(
    provider: Provider, request: TransportRequest, response: httpx.Response
) -> ChatResponse:
    """Decode according to the operation stored on *request*."""
    match coerce_operation(request.operation or Operation.CHAT):
        case Operation.OBJECT:
            return decode_tool_call_object(provider, request, response)
        case _:
            return decode_chat_response(provider, request, response)
