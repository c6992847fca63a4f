"""Model references: ``provider:model-name`` routing identifiers."""

from __future__ import annotations

from dataclasses import dataclass

from chatwire.errors import ConfigurationError


@dataclass(frozen=True)
class Model:
    """A parsed model reference.

    Carries routing information only; capabilities live with the provider.
    """

    provider: str
    name: str

    @classmethod
    def parse(cls, spec: str | Model) -> Model:
        """Parse ``"mistral:mistral-large-latest"`` into a Model.

        Raises:
            ConfigurationError: If the reference lacks a provider prefix or a
                model name.
        """
        if isinstance(spec, Model):
            return spec
        if not isinstance(spec, str):
            raise ConfigurationError(
                f"Model reference must be a string, got {type(spec).__name__}",
                hint="Use 'provider:model', e.g. 'mistral:mistral-large-latest'.",
            )

        provider, sep, name = spec.strip().partition(":")
        if not sep or not provider or not name:
            raise ConfigurationError(
                f"Invalid model reference: {spec!r}",
                hint="Use 'provider:model', e.g. 'mistral:mistral-large-latest'.",
            )
        return cls(provider=provider.lower(), name=name)

    def __str__(self) -> str:
        return f"{self.provider}:{self.name}"
