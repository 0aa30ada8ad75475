"""Provider configuration: frozen, validated, with a redacted repr."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum

from flexinfer.errors import ConfigurationError

DEFAULT_API_TIMEOUT_S = 300.0

DEFAULT_ANTHROPIC_ORIGIN = "https://api.anthropic.com"
DEFAULT_ANTHROPIC_PATH_PREFIX = "/v1/messages"
DEFAULT_ANTHROPIC_API_KEY_HEADER = "x-api-key"

DEFAULT_OPENAI_ORIGIN = "https://api.openai.com"
DEFAULT_OPENAI_CHAT_COMPLETIONS_PREFIX = "/v1/chat/completions"
DEFAULT_AUTHORIZATION_HEADER = "Authorization"


class ProviderSDKType(StrEnum):
    ANTHROPIC = "providerSDKTypeAnthropicMessages"
    OPENAI_CHAT_COMPLETIONS = "providerSDKTypeOpenAIChatCompletions"
    OPENAI_RESPONSES = "providerSDKTypeOpenAIResponses"


@dataclass(frozen=True)
class ProviderConfig:
    """Connection settings for one provider.

    Treated as read-only for the duration of a call; rotate credentials with
    ``dataclasses.replace`` and hand the provider the new value.

    The OpenAI SDK types validate and get their defaults here so registries
    can hold settings for every provider kind, but only
    ``ProviderSDKType.ANTHROPIC`` has an adapter; ``AnthropicProvider``
    rejects the others at construction.

    Example:
        config = ProviderConfig(name="anthropic", sdk_type=ProviderSDKType.ANTHROPIC)
    """

    name: str
    sdk_type: ProviderSDKType
    api_key: str = ""
    origin: str = ""
    path_prefix: str = ""
    api_key_header: str = ""
    default_headers: dict[str, str] = field(default_factory=dict)
    timeout_s: float = DEFAULT_API_TIMEOUT_S

    def __post_init__(self) -> None:
        """Validate and fill per-SDK defaults."""
        if not self.name or not self.name.strip():
            raise ConfigurationError(
                "provider name must be non-empty",
                hint="Pass ProviderConfig(name='anthropic', ...).",
            )
        try:
            sdk_type = ProviderSDKType(self.sdk_type)
        except ValueError:
            allowed = ", ".join(t.value for t in ProviderSDKType)
            raise ConfigurationError(
                f"Unknown sdk_type: {self.sdk_type!r}",
                hint=f"Supported SDK types: {allowed}",
            ) from None
        object.__setattr__(self, "sdk_type", sdk_type)

        if self.timeout_s <= 0:
            raise ConfigurationError(
                f"timeout_s must be > 0, got {self.timeout_s}",
                hint="This bounds each HTTP request in seconds.",
            )

        if sdk_type is ProviderSDKType.ANTHROPIC:
            defaults = (
                DEFAULT_ANTHROPIC_ORIGIN,
                DEFAULT_ANTHROPIC_PATH_PREFIX,
                DEFAULT_ANTHROPIC_API_KEY_HEADER,
            )
        else:
            defaults = (
                DEFAULT_OPENAI_ORIGIN,
                DEFAULT_OPENAI_CHAT_COMPLETIONS_PREFIX,
                DEFAULT_AUTHORIZATION_HEADER,
            )
        for name, default in zip(
            ("origin", "path_prefix", "api_key_header"), defaults, strict=True
        ):
            if not getattr(self, name):
                object.__setattr__(self, name, default)
        object.__setattr__(self, "origin", self.origin.rstrip("/"))

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key.strip())

    def __str__(self) -> str:
        """Return a redacted, developer-friendly representation."""
        return (
            f"ProviderConfig(name={self.name!r}, sdk_type={self.sdk_type.value!r}, "
            f"origin={self.origin!r}, api_key={'[REDACTED]' if self.api_key else None})"
        )

    __repr__ = __str__
