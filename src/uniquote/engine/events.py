"""Typed event channel for quote lifecycle notifications."""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import AsyncIterator, Generic, Optional, TypeVar, Union

from uniquote.utils.clock import now_ms

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class QuoteDelivered:
    request_id: str
    quote_id: str
    kind: str
    protocol: str
    to_amount: str
    cached: bool
    processing_time_ms: int
    timestamp: int = field(default_factory=now_ms)


@dataclass(frozen=True)
class QuoteFailed:
    request_id: str
    state: str
    error_kind: Optional[str]
    message: str
    timestamp: int = field(default_factory=now_ms)


QuoteEvent = Union[QuoteDelivered, QuoteFailed]


class EventChannel(Generic[T]):
    """Bounded queue of typed events.

    Publishing never blocks the publisher: when the queue is full the oldest
    event is dropped.
    """

    def __init__(self, maxsize: int = 1000):
        self._queue: asyncio.Queue[T] = asyncio.Queue(maxsize=maxsize)
        self.dropped = 0

    def publish(self, event: T) -> None:
        if self._queue.full():
            self._queue.get_nowait()
            self.dropped += 1
            logger.debug(f"Event channel full, dropped oldest event ({self.dropped} total)")
        self._queue.put_nowait(event)

    async def get(self) -> T:
        return await self._queue.get()

    def get_nowait(self) -> Optional[T]:
        try:
            return self._queue.get_nowait()
        except asyncio.QueueEmpty:
            return None

    def qsize(self) -> int:
        return self._queue.qsize()

    async def __aiter__(self) -> AsyncIterator[T]:
        while True:
            yield await self._queue.get()
