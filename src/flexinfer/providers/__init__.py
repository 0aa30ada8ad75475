"""Provider implementations."""

from .anthropic import AnthropicProvider
from .base import CompletionProvider, ProviderCapabilities

__all__ = [
    "AnthropicProvider",
    "CompletionProvider",
    "ProviderCapabilities",
]
