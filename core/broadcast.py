"""
ValueChannel — current-value broadcast channel.

Holds the latest value and pushes every new value to subscribers:
plain callbacks (called synchronously) and async iterators (fed through
``loop.call_soon_threadsafe`` so producers may live on any thread).
New subscribers always receive the current value first.
"""
from __future__ import annotations
import asyncio
import logging
import threading
from typing import AsyncIterator, Callable, Generic, List, Tuple, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

_CLOSED = object()


class ValueChannel(Generic[T]):

    def __init__(self, initial: T) -> None:
        self._value = initial
        self._lock = threading.RLock()
        self._callbacks: List[Callable[[T], None]] = []
        self._queues: List[Tuple[asyncio.AbstractEventLoop, asyncio.Queue]] = []
        self._closed = False

    @property
    def value(self) -> T:
        with self._lock:
            return self._value

    # ------------------------------------------------------------------
    def send(self, value: T) -> None:
        """Store ``value`` and deliver it, in order, to every subscriber."""
        with self._lock:
            if self._closed:
                return
            self._value = value
            for callback in list(self._callbacks):
                callback(value)
            for loop, queue in list(self._queues):
                self._deliver(loop, queue, value)

    def subscribe(self, callback: Callable[[T], None]) -> Callable[[], None]:
        """Register ``callback``; it is invoked immediately with the current value."""
        with self._lock:
            self._callbacks.append(callback)
            callback(self._value)

        def unsubscribe() -> None:
            with self._lock:
                if callback in self._callbacks:
                    self._callbacks.remove(callback)

        return unsubscribe

    async def stream(self) -> AsyncIterator[T]:
        """
        Current value, then every change. Never raises; ends when the
        channel is closed. Each call is an independent subscription.
        """
        loop = asyncio.get_running_loop()
        queue: asyncio.Queue = asyncio.Queue()
        entry = (loop, queue)
        with self._lock:
            queue.put_nowait(self._value)
            if self._closed:
                queue.put_nowait(_CLOSED)
            else:
                self._queues.append(entry)
        try:
            while True:
                item = await queue.get()
                if item is _CLOSED:
                    return
                yield item
        finally:
            with self._lock:
                if entry in self._queues:
                    self._queues.remove(entry)

    def close(self) -> None:
        """Finish every open stream. Further sends are ignored."""
        with self._lock:
            if self._closed:
                return
            self._closed = True
            self._callbacks.clear()
            for loop, queue in list(self._queues):
                self._deliver(loop, queue, _CLOSED)
            self._queues.clear()

    # ------------------------------------------------------------------
    def _deliver(self, loop: asyncio.AbstractEventLoop, queue: asyncio.Queue, item: object) -> None:
        if loop.is_closed():
            logger.debug("Dropping stream subscriber bound to a closed loop")
            self._queues.remove((loop, queue))
            return
        loop.call_soon_threadsafe(queue.put_nowait, item)
