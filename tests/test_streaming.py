from __future__ import annotations

import pytest

from flexinfer.errors import StreamAbortedError
from flexinfer.models import StreamConfig, StreamContentKind, StreamEvent
from flexinfer.streaming import StreamEmitter

pytestmark = pytest.mark.unit

TEXT = StreamContentKind.TEXT
THINKING = StreamContentKind.THINKING


def _collector() -> tuple[list[StreamEvent], object]:
    events: list[StreamEvent] = []
    return events, events.append


def _texts(events: list[StreamEvent]) -> list[tuple[str, str]]:
    return [(e.kind.value, e.payload().text) for e in events]


@pytest.mark.asyncio
async def test_deltas_are_delivered_immediately_by_default() -> None:
    events, handler = _collector()
    emitter = StreamEmitter(handler, provider="anthropic", model="m")

    await emitter.emit(TEXT, "Hel")
    await emitter.emit(THINKING, "hmm")
    await emitter.emit(TEXT, "lo")

    assert _texts(events) == [("text", "Hel"), ("thinking", "hmm"), ("text", "lo")]
    assert events[0].provider == "anthropic"
    assert events[0].model == "m"


@pytest.mark.asyncio
async def test_async_handlers_are_awaited() -> None:
    seen: list[str] = []

    async def handler(event: StreamEvent) -> None:
        seen.append(event.payload().text)

    emitter = StreamEmitter(handler, provider="p", model="m")
    await emitter.emit(TEXT, "a")
    await emitter.emit(TEXT, "b")

    assert seen == ["a", "b"]
    assert emitter.delivered == 2


@pytest.mark.asyncio
async def test_chunk_size_coalesces_small_deltas() -> None:
    events, handler = _collector()
    emitter = StreamEmitter(
        handler, provider="p", model="m", config=StreamConfig(flush_chunk_size=5)
    )

    for piece in ("ab", "cd", "ef", "g"):
        await emitter.emit(TEXT, piece)
    assert _texts(events) == [("text", "abcdef")]

    await emitter.flush()
    assert _texts(events) == [("text", "abcdef"), ("text", "g")]


@pytest.mark.asyncio
async def test_interval_buffers_until_flush() -> None:
    events, handler = _collector()
    emitter = StreamEmitter(
        handler, provider="p", model="m", config=StreamConfig(flush_interval_ms=60_000)
    )

    await emitter.emit(TEXT, "a")
    await emitter.emit(TEXT, "b")
    assert events == []

    await emitter.flush()
    assert _texts(events) == [("text", "ab")]


@pytest.mark.asyncio
async def test_kind_change_flushes_to_preserve_order() -> None:
    events, handler = _collector()
    emitter = StreamEmitter(
        handler, provider="p", model="m", config=StreamConfig(flush_chunk_size=100)
    )

    await emitter.emit(THINKING, "plan")
    await emitter.emit(TEXT, "answer")
    await emitter.flush()

    assert _texts(events) == [("thinking", "plan"), ("text", "answer")]


@pytest.mark.asyncio
async def test_handler_error_aborts_delivery() -> None:
    calls = 0

    def handler(event: StreamEvent) -> None:
        nonlocal calls
        calls += 1
        raise ValueError("client went away")

    emitter = StreamEmitter(handler, provider="p", model="m")

    with pytest.raises(StreamAbortedError) as excinfo:
        await emitter.emit(TEXT, "a")
    assert isinstance(excinfo.value.__cause__, ValueError)
    assert emitter.aborted

    with pytest.raises(StreamAbortedError):
        await emitter.emit(TEXT, "b")
    assert calls == 1


@pytest.mark.asyncio
async def test_missing_handler_and_empty_deltas_are_ignored() -> None:
    emitter = StreamEmitter(None, provider="p", model="m")
    await emitter.emit(TEXT, "a")
    await emitter.flush()
    assert not emitter.enabled

    events, handler = _collector()
    emitter = StreamEmitter(handler, provider="p", model="m")
    await emitter.emit(TEXT, "")
    assert events == []
