"""flexinfer: a provider-agnostic completion core.

Public API:
    - CompletionRequest / CompletionResponse: the normalized call schema
    - InputTurn / OutputTurn: conversation history and model output
    - AnthropicProvider: Messages API adapter
    - HTTPCompletionDebugger / DebugConfig: per-call diagnostics
"""

from __future__ import annotations

import logging

from flexinfer.config import ProviderConfig, ProviderSDKType
from flexinfer.content import (
    CacheControl,
    Citation,
    ContentItem,
    FileItem,
    ImageItem,
    Message,
    ReasoningContent,
    Role,
    Status,
)
from flexinfer.debug import DebugConfig, HTTPCompletionDebugger
from flexinfer.emptiness import drop_empty_turns, is_turn_empty
from flexinfer.errors import (
    APIError,
    ConfigurationError,
    FlexinferError,
    InvalidUnionError,
    RateLimitError,
    StreamAbortedError,
    ToolResolutionError,
)
from flexinfer.models import (
    CompletionOptions,
    CompletionRequest,
    CompletionResponse,
    ModelParam,
    OutputParam,
    ReasoningParam,
    StreamConfig,
    StreamEvent,
    Usage,
)
from flexinfer.providers import AnthropicProvider, CompletionProvider
from flexinfer.tools import (
    AllowedTool,
    ToolCall,
    ToolChoice,
    ToolOutput,
    ToolPolicy,
    ToolPolicyMode,
    ToolType,
)
from flexinfer.turns import InputTurn, OutputTurn

try:
    from importlib.metadata import PackageNotFoundError, version

    __version__ = version("flexinfer")
except PackageNotFoundError:
    __version__ = "0.0.0+unknown"

# Library-level NullHandler: stay silent unless the consumer configures logging.
logging.getLogger("flexinfer").addHandler(logging.NullHandler())

__all__ = [
    "APIError",
    "AllowedTool",
    "AnthropicProvider",
    "CacheControl",
    "Citation",
    "CompletionOptions",
    "CompletionProvider",
    "CompletionRequest",
    "CompletionResponse",
    "ConfigurationError",
    "ContentItem",
    "DebugConfig",
    "FileItem",
    "FlexinferError",
    "HTTPCompletionDebugger",
    "ImageItem",
    "InputTurn",
    "InvalidUnionError",
    "Message",
    "ModelParam",
    "OutputParam",
    "OutputTurn",
    "ProviderConfig",
    "ProviderSDKType",
    "RateLimitError",
    "ReasoningContent",
    "ReasoningParam",
    "Role",
    "Status",
    "StreamAbortedError",
    "StreamConfig",
    "StreamEvent",
    "ToolCall",
    "ToolChoice",
    "ToolOutput",
    "ToolPolicy",
    "ToolPolicyMode",
    "ToolResolutionError",
    "ToolType",
    "Usage",
    "drop_empty_turns",
    "is_turn_empty",
]
