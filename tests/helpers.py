"""Test doubles for the Anthropic SDK client.

The fakes mirror only the surface AnthropicProvider touches: ``messages.create``,
``messages.stream`` (an async context manager yielding events), ``with_options``
and ``close``.
"""

from __future__ import annotations

import asyncio
from types import SimpleNamespace
from typing import Any

ANTHROPIC_MODEL = "claude-sonnet-4-5"


class SDKObject(SimpleNamespace):
    """Attribute bag with the pydantic-style ``model_dump`` SDK objects expose."""

    def model_dump(self, **_kwargs: Any) -> dict[str, Any]:
        return {k: _dump(v) for k, v in vars(self).items()}


def _dump(value: Any) -> Any:
    if isinstance(value, SDKObject):
        return value.model_dump()
    if isinstance(value, list):
        return [_dump(v) for v in value]
    return value


def block(type_: str, **fields: Any) -> SDKObject:
    """Build an SDK-like content block."""
    return SDKObject(type=type_, **fields)


def text_delta(text: str) -> SimpleNamespace:
    return SimpleNamespace(
        type="content_block_delta", index=0, delta=SimpleNamespace(type="text_delta", text=text)
    )


def thinking_delta(thinking: str) -> SimpleNamespace:
    return SimpleNamespace(
        type="content_block_delta",
        index=0,
        delta=SimpleNamespace(type="thinking_delta", thinking=thinking),
    )


def anthropic_message(
    *blocks: SimpleNamespace,
    stop_reason: str = "end_turn",
    input_tokens: int = 10,
    output_tokens: int = 5,
    cache_read_input_tokens: int = 0,
) -> SDKObject:
    """Build an SDK-like ``Message`` with usage."""
    return SDKObject(
        id="msg_01",
        type="message",
        role="assistant",
        content=list(blocks),
        stop_reason=stop_reason,
        usage=SDKObject(
            input_tokens=input_tokens,
            output_tokens=output_tokens,
            cache_read_input_tokens=cache_read_input_tokens,
            cache_creation_input_tokens=0,
        ),
    )


class FakeStream:
    """Async context manager mimicking ``messages.stream(...)``."""

    def __init__(self, events: list[Any], final: Any) -> None:
        self._events = events
        self._final = final

    async def __aenter__(self) -> FakeStream:
        return self

    async def __aexit__(self, *exc: object) -> None:
        return None

    def __aiter__(self) -> Any:
        return self._iterate()

    async def _iterate(self) -> Any:
        for event in self._events:
            yield event

    async def get_final_message(self) -> Any:
        return self._final


class FakeMessages:
    """Captures kwargs passed to ``messages.create`` / ``messages.stream``."""

    def __init__(self, response: Any = None, *, error: BaseException | None = None) -> None:
        self.response = response
        self.error = error
        self.stream_events: list[Any] = []
        self.last_kwargs: dict[str, Any] | None = None
        self.calls = 0

    async def create(self, **kwargs: Any) -> Any:
        self.calls += 1
        self.last_kwargs = kwargs
        if self.error is not None:
            raise self.error
        return self.response

    def stream(self, **kwargs: Any) -> FakeStream:
        self.calls += 1
        self.last_kwargs = kwargs
        return FakeStream(self.stream_events, self.response)


class FakeAnthropicClient:
    def __init__(self, messages: FakeMessages) -> None:
        self.messages = messages
        self.closed = False
        self.options: list[dict[str, Any]] = []

    def with_options(self, **kwargs: Any) -> FakeAnthropicClient:
        self.options.append(kwargs)
        return self

    async def close(self) -> None:
        self.closed = True


class SlowMessages(FakeMessages):
    """``messages.create`` that never answers before *delay* seconds."""

    def __init__(self, delay: float) -> None:
        super().__init__(None)
        self.delay = delay

    async def create(self, **kwargs: Any) -> Any:
        self.calls += 1
        self.last_kwargs = kwargs
        await asyncio.sleep(self.delay)
        return self.response


class RecordingSpan:
    def __init__(self, debugger: RecordingDebugger) -> None:
        self._debugger = debugger

    def end(self, info: Any) -> dict[str, Any] | None:
        self._debugger.ends.append(info)
        return {"ended": True}


class RecordingDebugger:
    """CompletionDebugger double that records span lifecycle calls."""

    def __init__(self) -> None:
        self.starts: list[Any] = []
        self.ends: list[Any] = []

    def http_client(self, base: Any = None) -> Any:
        return base

    def start_span(self, info: Any) -> RecordingSpan:
        self.starts.append(info)
        return RecordingSpan(self)
