"""Execution: send compiled requests and decode the replies."""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

import httpx

from chatwire.errors import ConfigurationError
from chatwire.providers._errors import wrap_transport_error
from chatwire.providers.mistral import MistralProvider
from chatwire.retry import retry_async

if TYPE_CHECKING:
    from chatwire.config import Config
    from chatwire.providers.base import Provider
    from chatwire.providers.models import ChatResponse, TransportRequest

logger = logging.getLogger(__name__)

_PROVIDERS: dict[str, type[Provider]] = {
    "mistral": MistralProvider,
}


def get_provider(name: str) -> Provider:
    """Instantiate the provider registered under *name*."""
    try:
        provider_cls = _PROVIDERS[name]
    except KeyError:
        raise ConfigurationError(
            f"Unknown provider: {name!r}",
            hint=f"Supported providers: {sorted(_PROVIDERS)}",
        ) from None
    return provider_cls()


async def execute_request(
    provider: Provider,
    request: TransportRequest,
    *,
    config: Config,
    client: httpx.AsyncClient | None = None,
) -> ChatResponse:
    """Authenticate, send and decode *request*, retrying transient failures.

    A caller-supplied *client* is used as-is and left open.
    """
    authed = provider.attach(request, config.model_spec, config.api_key or "")
    owns_client = client is None
    http = client if client is not None else httpx.AsyncClient(timeout=config.timeout_s)

    async def _attempt() -> ChatResponse:
        try:
            response = await http.send(authed.to_httpx(timeout_s=config.timeout_s))
        except asyncio.CancelledError:
            raise
        except httpx.RequestError as e:
            raise wrap_transport_error(e, provider=provider.provider_id) from e
        logger.debug(
            "%s %s -> %d (%d bytes)",
            authed.method,
            authed.url,
            response.status_code,
            len(response.content),
        )
        return provider.decode_response(authed, response)

    try:
        return await retry_async(_attempt, policy=config.retry)
    finally:
        if owns_client:
            await http.aclose()
