"""
Delta stream: the single-consumer channel between a streaming invocation
and its reader.

A producer task pulls the provider's event iterator and pushes into a
bounded queue; the consumer pulls. Closing the consumer side cancels the
producer, and the producer always closes the provider iterator on exit,
which in turn closes the HTTP response.
"""

from __future__ import annotations

import asyncio
import time
import uuid
from collections.abc import AsyncIterator, Callable
from dataclasses import dataclass
from types import TracebackType

from chatrelay.core import ProviderInvocationError, StreamConsumedError, get_logger
from chatrelay.core.metrics import metrics
from chatrelay.providers.base import DeltaEvent, Usage

logger = get_logger(__name__)

ErrorMapper = Callable[[Exception], Exception]


@dataclass(frozen=True)
class _Failure:
    error: Exception


_CLOSED = object()


class DeltaStream:
    """
    Lazy, forward-only, single-consumer sequence of DeltaEvents.

    Usage:
        async with await chat.stream_message(messages, "openai", "gpt-4o") as stream:
            async for event in stream:
                ...

    Iterating a second time raises StreamConsumedError. A failure after the
    first event ends the sequence with ``DeltaEvent.failure``; fragments
    already delivered stay delivered.
    """

    def __init__(
        self,
        source: AsyncIterator[DeltaEvent],
        *,
        buffer_size: int = 64,
        map_error: ErrorMapper | None = None,
        provider_id: str | None = None,
        model_id: str | None = None,
    ):
        self.stream_id = str(uuid.uuid4())
        self.provider_id = provider_id
        self.model_id = model_id
        self._source = source
        self._queue: asyncio.Queue[object] = asyncio.Queue(maxsize=buffer_size)
        self._map_error = map_error or (lambda exc: exc)
        self._producer: asyncio.Task[None] | None = None
        self._head: DeltaEvent | None = None
        self._iterated = False
        self._finished = False
        self._closed = False
        self._started_at = 0.0

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def finished(self) -> bool:
        """True once the terminal event has been handed to the consumer."""
        return self._finished

    async def open(self) -> DeltaStream:
        """
        Start the producer and wait for the first event.

        A failure before anything was produced is raised here instead of
        being delivered as a terminal event.
        """
        if self._producer is not None:
            return self
        self._started_at = time.perf_counter()
        self._producer = asyncio.create_task(self._produce(), name=f"delta-stream-{self.stream_id}")
        metrics.increment("streams_opened_total")
        metrics.add_gauge("active_streams", 1)

        try:
            first = await self._queue.get()
        except BaseException:
            # cancelled while waiting; the producer must not outlive the caller
            await asyncio.shield(self.aclose())
            raise
        if isinstance(first, _Failure):
            self._finished = True
            await self.aclose()
            raise first.error
        self._head = first
        return self

    async def _produce(self) -> None:
        try:
            async for event in self._source:
                await self._queue.put(event)
                if event.is_terminal:
                    return
            await self._queue.put(DeltaEvent.finish("stop", Usage()))
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            await self._queue.put(_Failure(self._map_error(exc)))
        finally:
            aclose = getattr(self._source, "aclose", None)
            if aclose is not None:
                await aclose()

    def __aiter__(self) -> AsyncIterator[DeltaEvent]:
        if self._iterated:
            raise StreamConsumedError()
        if self._producer is None:
            raise RuntimeError("DeltaStream.open() must be awaited before iteration")
        self._iterated = True
        return self._iterate()

    async def _iterate(self) -> AsyncIterator[DeltaEvent]:
        try:
            if self._head is not None:
                head, self._head = self._head, None
                if head.is_terminal:
                    self._finished = True
                yield head
                if head.is_terminal:
                    return

            while not self._closed:
                item = await self._queue.get()
                if item is _CLOSED:
                    return
                if isinstance(item, _Failure):
                    if not isinstance(item.error, ProviderInvocationError):
                        raise item.error
                    logger.warning(
                        "Provider stream failed mid-way",
                        data={"stream_id": self.stream_id, "kind": item.error.kind.value},
                    )
                    self._finished = True
                    yield DeltaEvent.failure(item.error)
                    return
                if item.is_terminal:
                    self._finished = True
                yield item
                if item.is_terminal:
                    return
        finally:
            await self.aclose()

    async def collect(self) -> tuple[str, DeltaEvent]:
        """Drain the stream; return the concatenated text and the terminal event."""
        parts: list[str] = []
        terminal = DeltaEvent.finish("stop")
        async for event in self:
            if event.is_terminal:
                terminal = event
            else:
                parts.append(event.text)
        return "".join(parts), terminal

    async def aclose(self) -> None:
        """Abandon or finish the stream, releasing the upstream connection."""
        if self._closed:
            return
        self._closed = True

        if self._producer is not None and not self._producer.done():
            self._producer.cancel()
        try:
            # wake a consumer blocked on an empty queue
            self._queue.put_nowait(_CLOSED)
        except asyncio.QueueFull:
            pass
        if self._producer is not None:
            await asyncio.gather(self._producer, return_exceptions=True)
            metrics.add_gauge("active_streams", -1)
            metrics.observe("stream_duration_seconds", time.perf_counter() - self._started_at)

        if not self._finished:
            metrics.increment("streams_abandoned_total")
            logger.info("Delta stream abandoned", data={"stream_id": self.stream_id})

    async def __aenter__(self) -> DeltaStream:
        return await self.open()

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()
