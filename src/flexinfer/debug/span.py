"""Completion debugger: HTTP client instrumentation plus per-call spans."""

from __future__ import annotations

from contextlib import suppress
from dataclasses import dataclass, replace
import logging
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

import httpx

from flexinfer.config import DEFAULT_API_TIMEOUT_S
from flexinfer.debug.config import DebugConfig
from flexinfer.debug.guard import guarded
from flexinfer.debug.scrub import scrub_any_for_debug, to_plain
from flexinfer.debug.state import ErrorDetails, install_debug_state, release_debug_state
from flexinfer.debug.transport import DebugTransport

if TYPE_CHECKING:
    from contextvars import Token

    from flexinfer.debug.state import DebugState
    from flexinfer.models import CompletionOptions, CompletionRequest, CompletionResponse

log = logging.getLogger("flexinfer.debug")

NIL_RESPONSE_MESSAGE = "got nil response from LLM api"


@dataclass(frozen=True)
class CompletionSpanStart:
    """Read-only snapshot of the call being debugged."""

    provider: str
    model: str
    request: CompletionRequest | None = None
    options: CompletionOptions | None = None


@dataclass(frozen=True)
class CompletionSpanEnd:
    #: Raw SDK response object, if the provider produced one.
    provider_response: Any = None
    error: BaseException | None = None
    #: Normalized response about to be returned.
    response: CompletionResponse | None = None
    #: The model returned no usable response.
    nil_response: bool = False


@runtime_checkable
class CompletionSpan(Protocol):
    def end(self, info: CompletionSpanEnd) -> dict[str, Any] | None:
        """Finish the span (once) and return data for ``debug_details``."""
        ...


@runtime_checkable
class CompletionDebugger(Protocol):
    """Long-lived per-provider debugger; callers never use it directly."""

    def http_client(self, base: httpx.AsyncClient | None = None) -> httpx.AsyncClient | None:
        """Return the client the provider SDK should use."""
        ...

    def start_span(self, info: CompletionSpanStart) -> CompletionSpan | None:
        """Begin debugging one call; None means no debugging for it."""
        ...


class HTTPCompletionSpan:
    """Span backed by the DebugState the instrumented transport records into."""

    def __init__(
        self,
        config: DebugConfig,
        info: CompletionSpanStart,
        state: DebugState,
        token: Token[DebugState | None],
    ) -> None:
        self.config = config
        self.info = info
        self._state = state
        self._token: Token[DebugState | None] | None = token

    def end(self, info: CompletionSpanEnd) -> dict[str, Any] | None:
        token, self._token = self._token, None
        if token is None:
            log.warning("debug span for %s/%s ended twice", self.info.provider, self.info.model)
            return None
        try:
            return guarded("debug span end", self._finish, info)
        finally:
            # The span may end in a different context than it started in.
            with suppress(ValueError, RuntimeError):
                release_debug_state(token)

    def _finish(self, info: CompletionSpanEnd) -> dict[str, Any] | None:
        state = self._state

        provider_response = state.provider_response
        if info.provider_response is not None:
            provider_response = scrub_any_for_debug(
                to_plain(info.provider_response), self.config.strip_content
            )

        parts: list[str] = []
        if state.error_details is not None:
            http_msg = state.error_details.message.strip()
            if http_msg:
                parts.append(http_msg)
        if info.error is not None:
            parts.append(str(info.error) or type(info.error).__name__)
        if info.nil_response:
            parts.append(NIL_RESPONSE_MESSAGE)

        error_details = state.error_details
        if parts:
            message = "; ".join(parts)
            # Copy, so holders of the recorded error details never see the merge.
            error_details = (
                replace(error_details, message=message)
                if error_details is not None
                else ErrorDetails(message=message)
            )

        snapshot = replace(
            state, error_details=error_details, provider_response=provider_response
        )
        if snapshot.is_empty():
            return None
        return snapshot.to_dict()


class HTTPCompletionDebugger:
    """Debugger that instruments httpx and scrubs the raw provider response.

    Example:
        debugger = HTTPCompletionDebugger(DebugConfig(log_to_logger=True))
        client = AsyncAnthropic(http_client=debugger.http_client())
    """

    def __init__(self, config: DebugConfig | None = None) -> None:
        self.config = config or DebugConfig()

    def http_client(self, base: httpx.AsyncClient | None = None) -> httpx.AsyncClient | None:
        if self.config.disable:
            return base
        if base is None:
            return httpx.AsyncClient(
                transport=DebugTransport(httpx.AsyncHTTPTransport(), self.config),
                timeout=httpx.Timeout(DEFAULT_API_TIMEOUT_S, connect=10.0),
            )
        # httpx offers no public accessor for a client's transports.
        inner = getattr(base, "_transport", None) or httpx.AsyncHTTPTransport()
        # A None mount disables its pattern and is kept as is.
        mounts: dict[str, httpx.AsyncBaseTransport | None] = {
            pattern.pattern: (
                DebugTransport(transport, self.config) if transport is not None else None
            )
            for pattern, transport in getattr(base, "_mounts", {}).items()
        }
        return httpx.AsyncClient(
            auth=base.auth,
            params=base.params,
            headers=base.headers,
            cookies=base.cookies,
            timeout=base.timeout,
            follow_redirects=base.follow_redirects,
            max_redirects=base.max_redirects,
            event_hooks=base.event_hooks,
            base_url=base.base_url,
            trust_env=base.trust_env,
            transport=DebugTransport(inner, self.config),
            mounts=mounts or None,
        )

    def start_span(self, info: CompletionSpanStart) -> HTTPCompletionSpan | None:
        if self.config.disable:
            return None
        state, token = install_debug_state()
        return HTTPCompletionSpan(self.config, info, state, token)
