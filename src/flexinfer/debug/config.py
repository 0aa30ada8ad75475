"""Debug capture configuration."""

from __future__ import annotations

from dataclasses import dataclass
import os

from dotenv import load_dotenv

_TRUTHY = frozenset({"1", "true", "yes", "on"})
ENV_PREFIX = "FLEXINFER_DEBUG_"


def _env_flag(name: str) -> bool:
    return os.getenv(ENV_PREFIX + name, "").strip().lower() in _TRUTHY


@dataclass(frozen=True)
class DebugConfig:
    """Controls how HTTP debug information is captured and redacted.

    The defaults mean: capture on, request/response bodies captured, LLM
    text and base64 payloads scrubbed, nothing logged.
    """

    disable: bool = False
    disable_request_body: bool = False
    disable_response_body: bool = False
    #: Leave LLM text and base64 blobs untouched in captured payloads.
    disable_content_stripping: bool = False
    #: Log request/response summaries at DEBUG on the ``flexinfer.debug`` logger.
    log_to_logger: bool = False

    @property
    def strip_content(self) -> bool:
        return not self.disable_content_stripping

    @classmethod
    def from_env(cls) -> DebugConfig:
        """Build a config from ``FLEXINFER_DEBUG_*`` flags (``.env`` honored)."""
        load_dotenv()
        return cls(
            disable=_env_flag("DISABLE"),
            disable_request_body=_env_flag("DISABLE_REQUEST_BODY"),
            disable_response_body=_env_flag("DISABLE_RESPONSE_BODY"),
            disable_content_stripping=_env_flag("DISABLE_CONTENT_STRIPPING"),
            log_to_logger=_env_flag("LOG"),
        )
