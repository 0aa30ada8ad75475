"""Provider protocol: the interface every completion adapter implements."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from flexinfer.config import ProviderConfig
    from flexinfer.models import CompletionOptions, CompletionRequest, CompletionResponse


@dataclass(frozen=True)
class ProviderCapabilities:
    """Feature flags exposed by providers."""

    streaming: bool = False
    reasoning: bool = False
    tools: bool = False
    web_search: bool = False
    structured_outputs: bool = False


@runtime_checkable
class CompletionProvider(Protocol):
    """Lifecycle plus a single normalized completion call."""

    @property
    def config(self) -> ProviderConfig:
        """Current provider configuration (API key redacted in its repr)."""
        ...

    @property
    def capabilities(self) -> ProviderCapabilities:
        ...

    def init(self) -> None:
        """Build the underlying SDK client."""
        ...

    async def aclose(self) -> None:
        """Release the SDK client and its HTTP resources."""
        ...

    def is_configured(self) -> bool:
        ...

    def set_api_key(self, api_key: str) -> None:
        """Rotate the credential used by subsequent calls."""
        ...

    async def fetch_completion(
        self,
        request: CompletionRequest,
        options: CompletionOptions | None = None,
    ) -> CompletionResponse:
        """Run one completion and return the normalized response."""
        ...
