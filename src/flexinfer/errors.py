"""Exception hierarchy for flexinfer."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Iterator


class FlexinferError(Exception):
    """Base exception for all flexinfer errors.

    ``debug_details`` is set when a debug span was open as the error
    surfaced from a completion call.
    """

    def __init__(self, message: str, *, hint: str | None = None) -> None:
        super().__init__(message)
        self.hint = hint
        self.debug_details: dict[str, Any] | None = None


class ConfigurationError(FlexinferError):
    """Provider or debug configuration validation failed."""


class InvalidUnionError(FlexinferError, ValueError):
    """A tagged union's populated payload does not match its tag.

    Subclasses ``ValueError`` so pydantic reports it as a validation error
    when raised during model construction.
    """


class ToolResolutionError(FlexinferError):
    """An allowed-tools subset could not be resolved to provider tool names."""


class StreamAbortedError(FlexinferError):
    """The caller's stream handler raised and delivery was stopped."""


class APIError(FlexinferError):
    """API call failed.

    ``response`` holds the normalized response assembled so far (usually just
    its ``debug_details``) so callers can inspect diagnostics on failure.
    """

    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        retryable: bool | None = None,
        status_code: int | None = None,
        retry_after_s: float | None = None,
        provider: str | None = None,
        phase: str | None = None,
        response: Any = None,
    ) -> None:
        super().__init__(message, hint=hint)
        self.retryable = retryable
        self.status_code = status_code
        self.retry_after_s = retry_after_s
        self.provider = provider
        self.phase = phase
        self.response = response


class RateLimitError(APIError):
    """Rate limit exceeded (HTTP 429)."""


def _walk_exception_chain(exc: BaseException) -> Iterator[BaseException]:
    """Yield *exc* and its ``__cause__``/``__context__`` chain, with cycle protection."""
    seen: set[int] = set()
    stack: list[BaseException] = [exc]
    while stack:
        cur = stack.pop()
        if id(cur) in seen:
            continue
        seen.add(id(cur))
        yield cur

        cause = cur.__cause__
        if isinstance(cause, BaseException):
            stack.append(cause)
        context = cur.__context__
        if isinstance(context, BaseException):
            stack.append(context)
