"""Observer registry for fan-out delivery.

Each connected viewer is an :class:`Observer` with its own queue.  The
producer side never awaits an observer: :meth:`Observer.offer` either
enqueues immediately or reports that the observer has fallen too far
behind, in which case the channel evicts it.  The connection task on the
consumer side drains the queue at its own pace.

All mutation happens on the event loop thread, so no locking is needed;
iteration always goes over a snapshot because a fan-out step may remove
observers.
"""

from __future__ import annotations

import asyncio
import itertools
from collections.abc import AsyncIterator
from typing import Generic, TypeVar

from loguru import logger

T = TypeVar("T")

_observer_ids = itertools.count(1)


class Observer(Generic[T]):
    """One subscriber's ordered inbox."""

    def __init__(self, maxsize: int = 1000, *, label: str = "observer") -> None:
        self.id = f"{label}-{next(_observer_ids)}"
        self.maxsize = maxsize
        self._queue: asyncio.Queue[T | None] = asyncio.Queue()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    def offer(self, item: T) -> bool:
        """Enqueue without blocking.  ``False`` if closed or over capacity."""
        if self._closed or self._queue.qsize() >= self.maxsize:
            return False
        self._queue.put_nowait(item)
        return True

    def close(self) -> None:
        """Stop the stream after items already queued.  Idempotent."""
        if self._closed:
            return
        self._closed = True
        self._queue.put_nowait(None)

    async def get(self) -> T | None:
        """Next item, or ``None`` once the observer is closed and drained."""
        item = await self._queue.get()
        if item is None:
            # Keep the sentinel for any other waiter.
            self._queue.put_nowait(None)
        return item

    async def stream(self) -> AsyncIterator[T]:
        while True:
            item = await self.get()
            if item is None:
                return
            yield item


class ObserverRegistry(Generic[T]):
    """Explicit add/remove registry of live observers."""

    def __init__(self, name: str = "channel") -> None:
        self.name = name
        self._observers: dict[str, Observer[T]] = {}

    # -- Mutation --------------------------------------------------------------

    def add(self, observer: Observer[T]) -> None:
        self._observers[observer.id] = observer
        logger.debug("{}: observer {} connected ({} total)", self.name, observer.id, len(self._observers))

    def remove(self, observer: Observer[T]) -> bool:
        """Remove and close ``observer``.  Returns ``False`` if it was not registered."""
        removed = self._observers.pop(observer.id, None)
        observer.close()
        if removed is not None:
            logger.debug("{}: observer {} removed ({} left)", self.name, observer.id, len(self._observers))
        return removed is not None

    def clear(self) -> None:
        for observer in self.snapshot():
            self.remove(observer)

    # -- Query -----------------------------------------------------------------

    def snapshot(self) -> list[Observer[T]]:
        """Copy of the current observers, safe to iterate while mutating."""
        return list(self._observers.values())

    def __contains__(self, observer: object) -> bool:
        return isinstance(observer, Observer) and observer.id in self._observers

    def __len__(self) -> int:
        return len(self._observers)

    # -- Fan-out ---------------------------------------------------------------

    def fan_out(self, item: T) -> int:
        """Offer ``item`` to every observer; evict the ones that cannot take it.

        Returns the number of observers that accepted the item.
        """
        delivered = 0
        for observer in self.snapshot():
            if observer.offer(item):
                delivered += 1
                continue
            logger.warning("{}: evicting observer {} (backlog {})", self.name, observer.id, observer.pending)
            self.remove(observer)
        return delivered
