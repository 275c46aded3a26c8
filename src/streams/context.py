"""In-process registry of resumable output streams.

A registered stream is drained by a background task into a replay buffer, so
the producer keeps running when the client that started it goes away. Any
number of readers can attach by stream id: each one replays what has been
buffered so far and then follows live output until the producer finishes.
"""

import asyncio
import logging
import time
from collections.abc import AsyncIterator, Callable

from src.config.settings import get_settings

logger = logging.getLogger(__name__)

StreamFactory = Callable[[], AsyncIterator[str]]


class _BufferedStream:
    def __init__(self, stream_id: str):
        self.stream_id = stream_id
        self.chunks: list[str] = []
        self.done = False
        self.error: BaseException | None = None
        self.finished_at: float | None = None
        self.condition = asyncio.Condition()
        self.task: asyncio.Task | None = None


class StreamContext:
    def __init__(self, ttl_seconds: float = 300):
        self.ttl_seconds = ttl_seconds
        self._streams: dict[str, _BufferedStream] = {}

    def __contains__(self, stream_id: str) -> bool:
        return stream_id in self._streams

    async def create_new_resumable_stream(self, stream_id: str, make_stream: StreamFactory) -> AsyncIterator[str]:
        self._evict_expired()
        # Ids are never reused while a stream is still replayable
        if stream_id in self._streams:
            raise ValueError(f"Stream {stream_id} is already registered")

        buffered = _BufferedStream(stream_id)
        self._streams[stream_id] = buffered
        buffered.task = asyncio.create_task(self._pump(buffered, make_stream()))
        return self._read(buffered)

    async def resumable_stream(self, stream_id: str, make_stream: StreamFactory) -> AsyncIterator[str]:
        """Attach to a registered stream, or fall back to ``make_stream()``."""
        self._evict_expired()
        buffered = self._streams.get(stream_id)
        if buffered is None:
            logger.info("No buffered stream for %s, using fallback", stream_id)
            return make_stream()
        return self._read(buffered)

    async def _pump(self, buffered: _BufferedStream, source: AsyncIterator[str]) -> None:
        try:
            async for chunk in source:
                async with buffered.condition:
                    buffered.chunks.append(chunk)
                    buffered.condition.notify_all()
        except Exception as e:
            logger.exception("Resumable stream %s failed", buffered.stream_id)
            buffered.error = e
        finally:
            async with buffered.condition:
                buffered.done = True
                buffered.finished_at = time.monotonic()
                buffered.condition.notify_all()

    async def _read(self, buffered: _BufferedStream) -> AsyncIterator[str]:
        index = 0
        while True:
            async with buffered.condition:
                while index >= len(buffered.chunks) and not buffered.done:
                    await buffered.condition.wait()
                batch = buffered.chunks[index:]
                finished = buffered.done
            index += len(batch)
            for chunk in batch:
                yield chunk
            if finished and index >= len(buffered.chunks):
                return

    def _evict_expired(self) -> None:
        now = time.monotonic()
        expired = [
            stream_id
            for stream_id, buffered in self._streams.items()
            if buffered.finished_at is not None and now - buffered.finished_at > self.ttl_seconds
        ]
        for stream_id in expired:
            del self._streams[stream_id]


_stream_context: StreamContext | None = None


def get_stream_context() -> StreamContext:
    global _stream_context
    if _stream_context is None:
        _stream_context = StreamContext(ttl_seconds=get_settings().STREAM_TTL_SECONDS)
    return _stream_context
