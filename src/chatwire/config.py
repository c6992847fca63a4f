"""Configuration: frozen Config with explicit provider/model requirements."""

from __future__ import annotations

from dataclasses import dataclass, field
import os
from typing import Literal

from dotenv import load_dotenv

from chatwire.errors import ConfigurationError
from chatwire.retry import RetryPolicy

load_dotenv()

ProviderName = Literal["mistral"]

# Provider-specific API key environment variable names
_API_KEY_ENV_VARS: dict[ProviderName, str] = {
    "mistral": "MISTRAL_API_KEY",
}


@dataclass(frozen=True)
class Config:
    """Immutable configuration for chatwire execution.

    Provider and model are required. API keys are auto-resolved from standard
    environment variables.

    Example:
        config = Config(provider="mistral", model="mistral-large-latest")
        # API key is automatically resolved from MISTRAL_API_KEY
    """

    provider: ProviderName
    model: str
    #: Auto-resolved from ``MISTRAL_API_KEY`` when *None*.
    api_key: str | None = None
    #: Overrides the provider's default base URL (proxies, self-hosted gateways).
    base_url: str | None = None
    timeout_s: float = 60.0
    retry: RetryPolicy = field(default_factory=RetryPolicy)

    def __post_init__(self) -> None:
        """Auto-resolve API key and validate configuration."""
        if self.provider not in _API_KEY_ENV_VARS:
            raise ConfigurationError(
                f"Unknown provider: {self.provider!r}",
                hint=f"Supported providers: {', '.join(map(repr, _API_KEY_ENV_VARS))}",
            )

        if not isinstance(self.model, str) or not self.model.strip():
            raise ConfigurationError(
                "model must be a non-empty string",
                hint="Pass model='mistral-large-latest'.",
            )

        if self.timeout_s <= 0:
            raise ConfigurationError(
                f"timeout_s must be > 0, got {self.timeout_s}",
                hint="This bounds each HTTP round-trip in seconds.",
            )

        if self.base_url is not None and not self.base_url.startswith(
            ("http://", "https://")
        ):
            raise ConfigurationError(
                f"base_url must be an http(s) URL, got {self.base_url!r}",
            )

        env_var = _API_KEY_ENV_VARS[self.provider]
        if self.api_key is None:
            object.__setattr__(self, "api_key", os.environ.get(env_var))

        if not self.api_key:
            raise ConfigurationError(
                f"API key required for {self.provider}",
                hint=f"Set {env_var} environment variable or pass api_key=...",
            )

    @property
    def model_spec(self) -> str:
        """Return the ``provider:model`` reference for this configuration."""
        return f"{self.provider}:{self.model}"

    def __str__(self) -> str:
        """Return a redacted, developer-friendly representation."""
        return (
            f"Config(provider={self.provider!r}, model={self.model!r}, "
            f"api_key={'[REDACTED]' if self.api_key else None}, "
            f"base_url={self.base_url!r})"
        )

    __repr__ = __str__
