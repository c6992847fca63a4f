"""Provider implementations."""

from .base import Operation, Provider, ProviderCapabilities
from .mistral import MistralProvider

__all__ = [
    "MistralProvider",
    "Operation",
    "Provider",
    "ProviderCapabilities",
]
