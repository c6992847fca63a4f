"""Provider protocol: minimal interface for chat-completion adapters."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Mapping

    import httpx

    from chatwire.model import Model
    from chatwire.providers.models import ChatResponse, TransportRequest


class Operation(str, Enum):
    """What a request is for; selects both compilation and decoding."""

    CHAT = "chat"
    OBJECT = "object"


@dataclass(frozen=True)
class ProviderCapabilities:
    """Feature flags exposed by providers."""

    tools: bool = True
    structured_outputs: bool = False
    reasoning: bool = False
    streaming: bool = False


@runtime_checkable
class Provider(Protocol):
    """Minimal provider protocol: prepare, attach, decode."""

    provider_id: str
    default_base_url: str
    api_key_env: str
    provider_option_keys: frozenset[str]

    def prepare_request(
        self,
        operation: Operation | str,
        model: Model | str,
        prompt: Any,
        options: Mapping[str, Any] | None = None,
    ) -> TransportRequest:
        """Compile a call into a transport request."""
        ...

    def attach(
        self, request: TransportRequest, model: Model | str, api_key: str
    ) -> TransportRequest:
        """Attach authentication to a prepared request."""
        ...

    def decode_response(
        self, request: TransportRequest, response: httpx.Response
    ) -> ChatResponse:
        """Decode the raw response paired with *request*."""
        ...

    @property
    def capabilities(self) -> ProviderCapabilities:
        """Feature capabilities for option validation."""
        ...
