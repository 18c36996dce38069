"""
Live snapshot streams.

Writers publish "collection changed" signals on a ChangeHub after commit.
Each Subscription re-reads its query on every signal and keeps only the
latest snapshot: a reader that falls behind skips straight to current state.
"""
from __future__ import annotations

import asyncio
import threading
from typing import Any, Callable, Dict, Generic, List, Optional, TypeVar

from loguru import logger

from pingradius.schemas.enums import Collection

T = TypeVar("T")

_EMPTY = object()


class ChangeHub:
    """In-process fan-out of collection change signals."""

    def __init__(self) -> None:
        self._listeners: Dict[Collection, List[Callable[[], None]]] = {}
        self._lock = threading.Lock()

    def add_listener(self, collection: Collection, fn: Callable[[], None]) -> Callable[[], None]:
        with self._lock:
            self._listeners.setdefault(collection, []).append(fn)

        def remove() -> None:
            with self._lock:
                listeners = self._listeners.get(collection, [])
                if fn in listeners:
                    listeners.remove(fn)

        return remove

    def publish(self, collection: Collection) -> None:
        with self._lock:
            listeners = list(self._listeners.get(collection, []))

        for fn in listeners:
            try:
                fn()
            except Exception as e:
                logger.error(f"[live] listener failed | collection={collection.value} err={e}")


class LatestValue(Generic[T]):
    """
    Single-slot buffer. put() overwrites any value nobody has read yet;
    get() waits for the next value. Safe to put() from worker threads.
    """

    def __init__(self) -> None:
        self._value: Any = _EMPTY
        self._closed = False
        self._lock = threading.Lock()
        self._event = asyncio.Event()
        self._loop: Optional[asyncio.AbstractEventLoop] = None

    def _wake(self) -> None:
        loop = self._loop
        if loop is None or loop.is_closed():
            self._event.set()
            return
        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None
        if running is loop:
            self._event.set()
        else:
            loop.call_soon_threadsafe(self._event.set)

    def put(self, value: T) -> None:
        with self._lock:
            if self._closed:
                return
            self._value = value
        self._wake()

    def peek(self) -> Optional[T]:
        with self._lock:
            return None if self._value is _EMPTY else self._value

    def close(self) -> None:
        with self._lock:
            self._closed = True
        self._wake()

    @property
    def closed(self) -> bool:
        return self._closed

    async def get(self) -> T:
        self._loop = asyncio.get_running_loop()
        while True:
            with self._lock:
                if self._value is not _EMPTY:
                    value, self._value = self._value, _EMPTY
                    self._event.clear()
                    return value
                if self._closed:
                    raise StopAsyncIteration
                self._event.clear()
            await self._event.wait()


class Subscription(Generic[T]):
    """
    Cancellable stream of snapshots for one query.

    Use as a callback source (on_snapshot) or iterate it with `async for`.
    start() delivers the current snapshot immediately; stop() detaches from
    the hub and ends any pending iteration.
    """

    def __init__(
        self,
        hub: ChangeHub,
        collection: Collection,
        fetch: Callable[[], List[T]],
        name: str | None = None,
    ) -> None:
        self.collection = collection
        self.name = name or collection.value
        self._hub = hub
        self._fetch = fetch
        self._buffer: LatestValue[List[T]] = LatestValue()
        self._callbacks: List[Callable[[List[T]], None]] = []
        self._remove: Optional[Callable[[], None]] = None
        self._latest: List[T] = []
        # one refresh at a time: fetch and delivery stay in publish order
        self._refresh_lock = threading.RLock()

    # ---------- lifecycle ----------
    @property
    def active(self) -> bool:
        return self._remove is not None

    def start(self) -> "Subscription[T]":
        if self.active:
            return self
        self._remove = self._hub.add_listener(self.collection, self.refresh)
        self.refresh()
        logger.debug(f"[live] subscribed | {self.name}")
        return self

    def stop(self) -> None:
        if self._remove is not None:
            self._remove()
            self._remove = None
        self._buffer.close()
        logger.debug(f"[live] unsubscribed | {self.name}")

    # ---------- delivery ----------
    def on_snapshot(self, callback: Callable[[List[T]], None]) -> "Subscription[T]":
        self._callbacks.append(callback)
        return self

    @property
    def latest(self) -> List[T]:
        return self._latest

    def refresh(self) -> None:
        with self._refresh_lock:
            try:
                snapshot = list(self._fetch())
            except Exception as e:
                # readers see "nothing" rather than a dead stream
                logger.error(f"[live] snapshot read failed | {self.name} err={e}")
                snapshot = []

            self._latest = snapshot
            self._buffer.put(snapshot)
            for callback in list(self._callbacks):
                try:
                    callback(snapshot)
                except Exception as e:
                    logger.error(f"[live] snapshot callback failed | {self.name} err={e}")

    def __aiter__(self) -> "Subscription[T]":
        return self

    async def __anext__(self) -> List[T]:
        return await self._buffer.get()
