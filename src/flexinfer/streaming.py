"""Ordered delivery of streamed text/thinking deltas to a caller's handler."""

from __future__ import annotations

import inspect
import logging
import time
from typing import TYPE_CHECKING

from flexinfer.errors import StreamAbortedError
from flexinfer.models import StreamChunk, StreamConfig, StreamContentKind, StreamEvent

if TYPE_CHECKING:
    from flexinfer.models import StreamHandler

log = logging.getLogger(__name__)


class StreamEmitter:
    """Deliver StreamEvents one at a time, optionally coalescing small deltas.

    Deltas of the same kind are buffered until ``flush_chunk_size`` characters
    have accumulated or ``flush_interval_ms`` has passed since the last flush;
    a change of kind always flushes first, so ordering is preserved. With
    both settings at zero every delta is delivered immediately.

    If the handler raises, delivery stops and the failure surfaces as
    StreamAbortedError chained to the handler's exception.
    """

    def __init__(
        self,
        handler: StreamHandler | None,
        *,
        provider: str,
        model: str,
        config: StreamConfig | None = None,
    ) -> None:
        self._handler = handler
        self.provider = provider
        self.model = model
        self._config = config or StreamConfig()
        self._kind: StreamContentKind | None = None
        self._buffer: list[str] = []
        self._buffered = 0
        self._last_flush = time.monotonic()
        self._aborted = False
        self.delivered = 0

    @property
    def enabled(self) -> bool:
        return self._handler is not None

    @property
    def aborted(self) -> bool:
        return self._aborted

    async def emit(self, kind: StreamContentKind, text: str) -> None:
        """Queue a delta; empty deltas are ignored."""
        if self._handler is None or not text:
            return
        if self._aborted:
            raise StreamAbortedError("stream handler already failed; delivery stopped")

        if self._kind is not None and self._kind != kind:
            await self.flush()
        self._kind = kind
        self._buffer.append(text)
        self._buffered += len(text)

        if self._should_flush():
            await self.flush()

    def _should_flush(self) -> bool:
        size = self._config.flush_chunk_size
        interval = self._config.flush_interval_ms
        if size <= 0 and interval <= 0:
            return True
        if size > 0 and self._buffered >= size:
            return True
        elapsed_ms = (time.monotonic() - self._last_flush) * 1000
        return interval > 0 and elapsed_ms >= interval

    async def flush(self) -> None:
        """Deliver whatever is buffered."""
        if not self._buffer or self._kind is None or self._handler is None:
            return
        text = "".join(self._buffer)
        kind = self._kind
        self._buffer.clear()
        self._buffered = 0
        self._last_flush = time.monotonic()
        await self._deliver(kind, text)

    async def _deliver(self, kind: StreamContentKind, text: str) -> None:
        if kind == StreamContentKind.THINKING:
            event = StreamEvent(
                kind=kind, provider=self.provider, model=self.model,
                thinking=StreamChunk(text=text),
            )
        else:
            event = StreamEvent(
                kind=kind, provider=self.provider, model=self.model,
                text=StreamChunk(text=text),
            )
        try:
            result = self._handler(event)
            if inspect.isawaitable(result):
                await result
        except Exception as exc:
            self._aborted = True
            log.debug("stream handler raised; aborting %s/%s stream", self.provider, self.model)
            raise StreamAbortedError(
                f"stream handler raised {type(exc).__name__}: {exc}",
                hint="Stream handlers must not raise; the completion was abandoned.",
            ) from exc
        self.delivered += 1
