"""httpx transports that record request/response details for the current call.

Recording is best-effort: a failure while capturing is logged and dropped,
and never changes what the wrapped transport returns or raises.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

import httpx

from flexinfer.debug.guard import guarded
from flexinfer.debug.scrub import (
    build_curl_command,
    redact_headers,
    scrub_any_for_debug,
    to_plain,
)
from flexinfer.debug.state import (
    DebugState,
    ErrorDetails,
    RequestDetails,
    ResponseDetails,
    current_debug_state,
)

if TYPE_CHECKING:
    from flexinfer.debug.config import DebugConfig

log = logging.getLogger("flexinfer.debug")


def _decode_body(raw: bytes | None, config: DebugConfig) -> Any:
    if not raw:
        return None
    return scrub_any_for_debug(to_plain(raw), config.strip_content)


def _request_body(request: httpx.Request) -> bytes | None:
    try:
        return request.content
    except httpx.RequestNotRead:
        # Streaming upload; the body is not available without consuming it.
        return None


def _read_timeout(request: httpx.Request) -> float | None:
    timeout = request.extensions.get("timeout")
    if isinstance(timeout, dict):
        value = timeout.get("read")
        if isinstance(value, (int, float)):
            return float(value)
    return None


def record_request(state: DebugState, request: httpx.Request, config: DebugConfig) -> None:
    headers = redact_headers(dict(request.headers.items()))
    data = None
    if not config.disable_request_body:
        data = _decode_body(_request_body(request), config)
    url = str(request.url).split("?", 1)[0]
    state.request_details = RequestDetails(
        url=url,
        method=request.method,
        headers=headers,
        params=dict(request.url.params.items()) or None,
        data=data,
        timeout=_read_timeout(request),
        curl_command=build_curl_command(request.method, str(request.url), headers, data),
    )
    if config.log_to_logger:
        log.debug("HTTP request: %s %s", request.method, url)


def _is_event_stream(response: httpx.Response) -> bool:
    return response.headers.get("content-type", "").startswith("text/event-stream")


def wants_response_body(response: httpx.Response, config: DebugConfig) -> bool:
    """Whether the body should be read now (never for server-sent events)."""
    return not config.disable_response_body and not _is_event_stream(response)


def record_response(
    state: DebugState,
    request: httpx.Request,
    response: httpx.Response,
    config: DebugConfig,
) -> None:
    data = None
    if wants_response_body(response, config):
        data = _decode_body(response.content, config)
    details = ResponseDetails(
        status=response.status_code,
        headers=redact_headers(dict(response.headers.items())),
        data=data,
    )
    state.response_details = details
    if response.status_code >= 400:
        state.error_details = ErrorDetails(
            message=f"HTTP {response.status_code} {response.reason_phrase}".strip(),
            request_details=state.request_details,
            response_details=details,
        )
    if config.log_to_logger:
        log.debug(
            "HTTP response: %s %s -> %s",
            request.method,
            request.url,
            response.status_code,
        )


def record_transport_error(state: DebugState, exc: BaseException) -> None:
    state.error_details = ErrorDetails(
        message=str(exc) or type(exc).__name__,
        request_details=state.request_details,
        response_details=state.response_details,
    )


class DebugTransport(httpx.AsyncBaseTransport):
    """Async transport wrapper feeding the current call's DebugState."""

    def __init__(self, base: httpx.AsyncBaseTransport, config: DebugConfig) -> None:
        self._base = base
        self._config = config

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        state = current_debug_state()
        if state is None:
            return await self._base.handle_async_request(request)

        guarded("debug: record request", record_request, state, request, self._config)
        try:
            response = await self._base.handle_async_request(request)
            if wants_response_body(response, self._config):
                # Cached on the response; the client reads it back from memory.
                await response.aread()
        except Exception as exc:
            guarded("debug: record transport error", record_transport_error, state, exc)
            raise
        guarded(
            "debug: record response", record_response, state, request, response, self._config
        )
        return response

    async def aclose(self) -> None:
        await self._base.aclose()


class SyncDebugTransport(httpx.BaseTransport):
    """Blocking counterpart of DebugTransport."""

    def __init__(self, base: httpx.BaseTransport, config: DebugConfig) -> None:
        self._base = base
        self._config = config

    def handle_request(self, request: httpx.Request) -> httpx.Response:
        state = current_debug_state()
        if state is None:
            return self._base.handle_request(request)

        guarded("debug: record request", record_request, state, request, self._config)
        try:
            response = self._base.handle_request(request)
            if wants_response_body(response, self._config):
                response.read()
        except Exception as exc:
            guarded("debug: record transport error", record_transport_error, state, exc)
            raise
        guarded(
            "debug: record response", record_response, state, request, response, self._config
        )
        return response

    def close(self) -> None:
        self._base.close()
