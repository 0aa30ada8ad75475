"""Per-call debug state and its context-local carrier.

A span installs a fresh DebugState for the duration of one completion call;
the instrumented transport records into whatever state is current. Nothing
is shared between calls.
"""

from __future__ import annotations

from contextvars import ContextVar, Token
from dataclasses import dataclass, field
from typing import Any

_debug_state_var: ContextVar[DebugState | None] = ContextVar(
    "flexinfer_debug_state", default=None
)


def _compact(mapping: dict[str, Any]) -> dict[str, Any]:
    return {k: v for k, v in mapping.items() if v is not None}


@dataclass
class RequestDetails:
    url: str | None = None
    method: str | None = None
    headers: dict[str, Any] | None = None
    params: dict[str, Any] | None = None
    data: Any = None
    #: Read timeout in seconds.
    timeout: float | None = None
    curl_command: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return _compact(
            {
                "url": self.url,
                "method": self.method,
                "headers": self.headers,
                "params": self.params,
                "data": self.data,
                "timeout": self.timeout,
                "curlCommand": self.curl_command,
            }
        )


@dataclass
class ResponseDetails:
    status: int = 0
    headers: dict[str, Any] | None = None
    data: Any = None

    def to_dict(self) -> dict[str, Any]:
        return _compact({"status": self.status, "headers": self.headers, "data": self.data})


@dataclass
class ErrorDetails:
    """An HTTP-level error plus the request/response active when it happened."""

    message: str = ""
    request_details: RequestDetails | None = None
    response_details: ResponseDetails | None = None

    def to_dict(self) -> dict[str, Any]:
        return _compact(
            {
                "message": self.message,
                "requestDetails": (
                    self.request_details.to_dict() if self.request_details else None
                ),
                "responseDetails": (
                    self.response_details.to_dict() if self.response_details else None
                ),
            }
        )


@dataclass
class DebugState:
    request_details: RequestDetails | None = None
    response_details: ResponseDetails | None = None
    error_details: ErrorDetails | None = None
    #: Scrubbed form of the raw provider SDK response.
    provider_response: Any = None
    extra: dict[str, Any] = field(default_factory=dict)

    def is_empty(self) -> bool:
        return (
            self.request_details is None
            and self.response_details is None
            and self.error_details is None
            and self.provider_response is None
            and not self.extra
        )

    def to_dict(self) -> dict[str, Any]:
        out = _compact(
            {
                "requestDetails": (
                    self.request_details.to_dict() if self.request_details else None
                ),
                "responseDetails": (
                    self.response_details.to_dict() if self.response_details else None
                ),
                "errorDetails": self.error_details.to_dict() if self.error_details else None,
                "providerResponse": self.provider_response,
            }
        )
        out.update(self.extra)
        return out


def install_debug_state() -> tuple[DebugState, Token[DebugState | None]]:
    """Attach a fresh DebugState to the current context."""
    state = DebugState()
    return state, _debug_state_var.set(state)


def current_debug_state() -> DebugState | None:
    return _debug_state_var.get()


def release_debug_state(token: Token[DebugState | None]) -> None:
    _debug_state_var.reset(token)
