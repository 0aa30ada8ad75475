"""Diagnostic capture and redaction for completion calls."""

from .config import DebugConfig
from .guard import guarded
from .scrub import redact_headers, scrub_any_for_debug, to_plain
from .span import (
    NIL_RESPONSE_MESSAGE,
    CompletionDebugger,
    CompletionSpan,
    CompletionSpanEnd,
    CompletionSpanStart,
    HTTPCompletionDebugger,
    HTTPCompletionSpan,
)
from .state import DebugState, ErrorDetails, RequestDetails, ResponseDetails
from .transport import DebugTransport, SyncDebugTransport

__all__ = [
    "NIL_RESPONSE_MESSAGE",
    "CompletionDebugger",
    "CompletionSpan",
    "CompletionSpanEnd",
    "CompletionSpanStart",
    "DebugConfig",
    "DebugState",
    "DebugTransport",
    "ErrorDetails",
    "HTTPCompletionDebugger",
    "HTTPCompletionSpan",
    "RequestDetails",
    "ResponseDetails",
    "SyncDebugTransport",
    "guarded",
    "redact_headers",
    "scrub_any_for_debug",
    "to_plain",
]
