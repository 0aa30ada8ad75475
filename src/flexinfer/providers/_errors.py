"""Translate provider SDK exceptions into APIError.

Retry decisions come from structured signals only (status code, the
``x-should-retry`` / ``retry-after`` headers, the typed error body), never
from matching message text.
"""

from __future__ import annotations

import asyncio
from typing import Any

import httpx

from flexinfer._http import RETRYABLE_STATUS_CODES
from flexinfer.errors import APIError, RateLimitError, _walk_exception_chain

_RETRYABLE_ERROR_TYPES = frozenset({"overloaded_error", "rate_limit_error", "api_error"})
_AUTH_ERROR_TYPES = frozenset({"authentication_error", "permission_error"})


def _headers(exc: BaseException) -> Any:
    headers = getattr(getattr(exc, "response", None), "headers", None)
    return headers if hasattr(headers, "get") else None


def _valid_status(value: Any) -> int | None:
    if isinstance(value, int) and 100 <= value <= 599:
        return value
    return None


def extract_status_code(exc: BaseException) -> int | None:
    """Return the first HTTP status found along the exception chain."""
    for e in _walk_exception_chain(exc):
        status = _valid_status(getattr(e, "status_code", None)) or _valid_status(
            getattr(getattr(e, "response", None), "status_code", None)
        )
        if status is not None:
            return status
    return None


def _parse_seconds(raw: Any, scale: float = 1.0) -> float | None:
    if not isinstance(raw, str) or not raw.strip():
        return None
    try:
        seconds = float(raw) * scale
    except ValueError:
        return None
    return seconds if seconds >= 0 else None


def extract_retry_after_s(exc: BaseException) -> float | None:
    """Return the server-requested delay, preferring ``retry-after-ms``."""
    for e in _walk_exception_chain(exc):
        value = getattr(e, "retry_after", None)
        if isinstance(value, (int, float)) and value >= 0:
            return float(value)
        headers = _headers(e)
        if headers is None:
            continue
        seconds = _parse_seconds(headers.get("retry-after-ms"), 1 / 1000)
        if seconds is None:
            seconds = _parse_seconds(headers.get("retry-after"))
        if seconds is not None:
            return seconds
    return None


def _should_retry_header(exc: BaseException) -> bool | None:
    for e in _walk_exception_chain(exc):
        headers = _headers(e)
        raw = headers.get("x-should-retry") if headers is not None else None
        if raw == "true":
            return True
        if raw == "false":
            return False
    return None


def extract_error_type(exc: BaseException) -> str | None:
    """Return the typed error from an Anthropic error body, e.g. ``overloaded_error``."""
    for e in _walk_exception_chain(exc):
        body = getattr(e, "body", None)
        error = body.get("error") if isinstance(body, dict) else None
        kind = error.get("type") if isinstance(error, dict) else None
        if isinstance(kind, str) and kind:
            return kind
    return None


def _is_network_error(exc: BaseException) -> bool:
    return any(
        isinstance(e, (httpx.TimeoutException, httpx.RequestError, TimeoutError))
        for e in _walk_exception_chain(exc)
    )


def _auth_hint(status_code: int | None, error_type: str | None) -> str | None:
    if status_code in {401, 403} or error_type in _AUTH_ERROR_TYPES:
        return "Check credentials/permissions (ProviderConfig.api_key or set_api_key())."
    return None


def wrap_provider_error(
    exc: BaseException,
    *,
    provider: str,
    phase: str,
    allow_network_errors: bool,
    message: str | None = None,
    hint: str | None = None,
    response: Any = None,
) -> APIError:
    """Map a provider SDK exception into APIError.

    ``response`` is the partially built CompletionResponse to attach. An
    exception that already is an APIError only gets its missing context
    filled in. Cancellation is re-raised, never wrapped.
    """
    if isinstance(exc, asyncio.CancelledError):
        raise exc

    if isinstance(exc, APIError):
        exc.provider = exc.provider or provider
        exc.phase = exc.phase or phase
        if exc.hint is None:
            exc.hint = hint
        if exc.response is None:
            exc.response = response
        return exc

    status_code = extract_status_code(exc)
    retry_after_s = extract_retry_after_s(exc)
    error_type = extract_error_type(exc)

    should_retry = _should_retry_header(exc)
    if should_retry is not None:
        retryable = should_retry
    else:
        retryable = (
            retry_after_s is not None
            or status_code in RETRYABLE_STATUS_CODES
            or error_type in _RETRYABLE_ERROR_TYPES
            or (allow_network_errors and status_code is None and _is_network_error(exc))
        )

    rate_limited = status_code == 429 or error_type == "rate_limit_error"
    err_cls: type[APIError] = RateLimitError if rate_limited else APIError

    text = message or f"{provider} {phase} failed"
    if status_code is not None:
        text += f" (status={status_code})"
    cause = str(exc)
    if cause:
        text += f": {cause}"

    return err_cls(
        text,
        hint=hint if hint is not None else _auth_hint(status_code, error_type),
        retryable=retryable,
        status_code=status_code,
        retry_after_s=retry_after_s,
        provider=provider,
        phase=phase,
        response=response,
    )
