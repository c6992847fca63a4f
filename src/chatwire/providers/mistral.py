"""Mistral chat completions provider.

Plain chat goes through the shared defaults untouched. Structured objects use
Mistral's recommended approach instead of a forced tool call: the schema is
written into the system prompt and the body asks for
``response_format={"type": "json_object"}``. Replies are read from the message
text, falling back to tool-call extraction when the text is not JSON, since the
model may deliver the object either way.
"""

from __future__ import annotations

import json
import logging
import re
from typing import TYPE_CHECKING, Any

from chatwire.errors import ConfigurationError, MalformedObjectError, MissingContentError
from chatwire.options import Options, validate_options
from chatwire.providers import defaults
from chatwire.providers.base import Operation, ProviderCapabilities
from chatwire.schema import (
    STRUCTURED_OUTPUT_TOOL,
    schema_properties_json,
    structured_output_tool,
)

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping

    import httpx

    from chatwire.model import Model
    from chatwire.providers.models import ChatResponse, TransportRequest
    from chatwire.schema import CompiledSchema

log = logging.getLogger(__name__)

PROVIDER_ID = "mistral"
DEFAULT_BASE_URL = "https://api.mistral.ai/v1"
API_KEY_ENV = "MISTRAL_API_KEY"
DEFAULT_OBJECT_MAX_TOKENS = 4096

#: Request body keys only Mistral understands.
PROVIDER_OPTION_KEYS: frozenset[str] = frozenset(
    {"safe_prompt", "random_seed", "prompt_mode", "parallel_tool_calls"}
)

_SCHEMA_INSTRUCTION = (
    "Your output should be an instance of a JSON object following this schema: "
    "{schema}\n"
    "\n"
    "Please ensure your response is valid JSON that strictly adheres to the "
    "provided schema.\n"
)

_FENCED_JSON_RE = re.compile(r"```(?:json)?\s*(.*?)\s*```", re.DOTALL | re.IGNORECASE)


def schema_instruction(compiled: CompiledSchema) -> str:
    """Render the system instruction embedding the schema's properties."""
    tool = structured_output_tool(compiled)
    return _SCHEMA_INSTRUCTION.format(schema=schema_properties_json(tool))


def inject_schema_instruction(
    options: Mapping[str, Any], compiled: CompiledSchema
) -> Options:
    """Return a new option set prepared for JSON-object output.

    The schema instruction is appended after any caller system prompt, a
    JSON-object response format is requested, ``max_tokens`` defaults to
    4096 and the set is tagged as an ``object`` operation.
    """
    instruction = schema_instruction(compiled)
    opts = Options(options)

    existing = opts.get("system_prompt")
    system_prompt = instruction if existing is None else f"{existing}\n\n{instruction}"

    enhanced = (
        opts.put("system_prompt", system_prompt)
        .put("response_format", {"type": "json_object"})
        .put("compiled_schema", compiled)
        .put("operation", Operation.OBJECT)
    )
    if enhanced.get("max_tokens") is None:
        enhanced = enhanced.put("max_tokens", DEFAULT_OBJECT_MAX_TOKENS)
    return enhanced


def _first_text(decoded: ChatResponse) -> str:
    for part in decoded.message.content:
        if part.type == "text":
            return part.text
    raise MalformedObjectError("Response has no text part", phase="decode")


def _parse_json(text: str) -> Any:
    try:
        return json.loads(text)
    except json.JSONDecodeError as e:
        raise MalformedObjectError(
            f"Response text is not valid JSON: {e.msg}", body=text, phase="decode"
        ) from e


def _object_from_json_text(decoded: ChatResponse) -> ChatResponse:
    return decoded.with_object(_parse_json(_first_text(decoded)))


def _object_from_fenced_json(decoded: ChatResponse) -> ChatResponse:
    # A structured_output call outranks JSON quoted inside prose.
    if any(tc.name == STRUCTURED_OUTPUT_TOOL for tc in decoded.tool_calls):
        raise MalformedObjectError(
            "Response carries a structured_output call", phase="decode"
        )
    match = _FENCED_JSON_RE.search(_first_text(decoded))
    if match is None:
        raise MalformedObjectError(
            "Response text has no fenced JSON block", phase="decode"
        )
    return decoded.with_object(_parse_json(match.group(1)))


# Tried in order; each raises MalformedObjectError to hand over to the next.
# The last strategy's failure is the one surfaced to the caller.
_OBJECT_STRATEGIES: tuple[Callable[[ChatResponse], ChatResponse], ...] = (
    _object_from_json_text,
    _object_from_fenced_json,
    defaults.extract_tool_call_object,
)


class MistralProvider:
    """Mistral chat completions API provider."""

    provider_id = PROVIDER_ID
    default_base_url = DEFAULT_BASE_URL
    api_key_env = API_KEY_ENV
    provider_option_keys = PROVIDER_OPTION_KEYS

    @property
    def capabilities(self) -> ProviderCapabilities:
        """Return supported feature flags."""
        return ProviderCapabilities(
            tools=True,
            structured_outputs=True,
            reasoning=True,
            streaming=False,
        )

    def prepare_request(
        self,
        operation: Operation | str,
        model: Model | str,
        prompt: Any,
        options: Mapping[str, Any] | None = None,
    ) -> TransportRequest:
        """Compile a call into a transport request.

        Raises:
            InvalidParameterError: Unsupported operation, invalid options, or
                an ``object`` call without a schema.
            ProviderMismatchError: *model* is not a Mistral model.
            ConfigurationError: Malformed model reference or schema.
        """
        match operation:
            case Operation.OBJECT:
                opts = validate_options(
                    options or {}, provider_keys=self.provider_option_keys
                )
                compiled = defaults.compiled_schema_from(opts)
                enhanced = inject_schema_instruction(opts, compiled)
                return defaults.build_chat_request(
                    self,
                    Operation.CHAT,
                    model,
                    prompt,
                    enhanced.drop("operation"),
                    decode_as=enhanced["operation"],
                )
            case _:
                return defaults.build_chat_request(
                    self, operation, model, prompt, options
                )

    def attach(
        self, request: TransportRequest, model: Model | str, api_key: str
    ) -> TransportRequest:
        """Attach bearer authentication after checking *model* is ours."""
        defaults.check_provider(self, model)
        if not api_key:
            raise ConfigurationError(
                "API key required for mistral",
                hint=f"Set {API_KEY_ENV} environment variable or pass api_key=...",
            )
        return defaults.attach_auth(request, api_key)

    def decode_response(
        self, request: TransportRequest, response: httpx.Response
    ) -> ChatResponse:
        """Decode *response* according to the operation *request* was built for.

        ``object`` replies are tried as: the whole text as JSON, then the
        tool-call payload when a ``structured_output`` call is present, then
        a fenced JSON block in the text, then any single tool call.

        Raises:
            HTTPError: Non-success status, whatever the operation.
            MissingContentError: An ``object`` reply without content parts.
            MalformedObjectError: No strategy produced an object and the
                tool-call payload itself is malformed.
        """
        match defaults.coerce_operation(request.operation or Operation.CHAT):
            case Operation.OBJECT:
                return self._decode_object(request, response)
            case _:
                return defaults.decode_chat_response(self, request, response)

    def _decode_object(
        self, request: TransportRequest, response: httpx.Response
    ) -> ChatResponse:
        decoded = defaults.decode_chat_response(self, request, response)
        if not decoded.message.content:
            raise MissingContentError(
                "mistral object response has no content",
                status_code=response.status_code,
                body=response.text,
                provider=PROVIDER_ID,
                phase="decode",
            )

        *attempts, last = _OBJECT_STRATEGIES
        for strategy in attempts:
            try:
                return strategy(decoded)
            except MalformedObjectError as e:
                log.debug("Object strategy %s missed: %s", strategy.__name__, e)
        return last(decoded)
