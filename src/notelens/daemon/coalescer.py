"""Trailing-edge debouncing for live edits and interactive queries.

UpdateCoalescer
    Fire-and-forget, keyed by document. Holds at most one pending
    ``asyncio.TimerHandle`` per key; a new request for the same key cancels
    the pending timer and starts a fresh one, so only the last request of a
    burst runs, once, after the quiet period. A per-key lock keeps a fired
    trigger from overlapping an earlier one that is still awaiting the
    embedding service. Other writers of a key (deletes, direct and bulk
    indexing) take the same lock through ``exclusive``.

Debouncer
    Awaitable, one logical session (e.g. a search box). Every caller in a
    burst awaits the same outcome: the result of the last call.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import Any, Generic, TypeVar

import structlog

log = structlog.get_logger()

Trigger = Callable[[], Awaitable[Any]]

T = TypeVar("T")


@dataclass
class UpdateCoalescer:
    """Per-key trailing-edge debounce of async triggers."""

    _timers: dict[str, asyncio.TimerHandle] = field(default_factory=dict, init=False)
    _locks: dict[str, asyncio.Lock] = field(default_factory=dict, init=False)
    _lock_users: dict[str, int] = field(default_factory=dict, init=False)
    _running: set[asyncio.Task[None]] = field(default_factory=set, init=False)
    _stopped: bool = field(default=False, init=False)

    def schedule(self, key: str, trigger: Trigger, delay_sec: float) -> None:
        """Run ``trigger`` after ``delay_sec`` unless superseded for ``key``."""
        if self._stopped:
            log.debug("coalescer.schedule_after_stop", key=key)
            return

        loop = asyncio.get_running_loop()
        previous = self._timers.pop(key, None)
        if previous is not None:
            previous.cancel()
            log.debug("coalescer.rescheduled", key=key, delay_sec=delay_sec)
        self._timers[key] = loop.call_later(delay_sec, self._fire, key, trigger)

    def cancel(self, key: str) -> bool:
        """Drop the pending trigger for ``key``. In-flight runs are not touched."""
        handle = self._timers.pop(key, None)
        if handle is None:
            return False
        handle.cancel()
        return True

    def pending_keys(self) -> set[str]:
        return set(self._timers)

    @property
    def in_flight(self) -> int:
        return len(self._running)

    def _fire(self, key: str, trigger: Trigger) -> None:
        self._timers.pop(key, None)
        task = asyncio.get_running_loop().create_task(self._run(key, trigger))
        self._running.add(task)
        task.add_done_callback(self._running.discard)

    @asynccontextmanager
    async def exclusive(self, key: str) -> AsyncIterator[None]:
        """Hold the per-key lock fired triggers run under.

        Not reentrant: a trigger must not enter ``exclusive`` for its own key.
        """
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._lock_users[key] = self._lock_users.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._lock_users[key] -= 1
            if self._lock_users[key] == 0:
                del self._lock_users[key]
                del self._locks[key]

    async def _run(self, key: str, trigger: Trigger) -> None:
        async with self.exclusive(key):
            try:
                await trigger()
            except Exception:
                log.exception("coalescer.trigger_failed", key=key)

    async def drain(self) -> None:
        """Wait for every fired trigger to finish."""
        while self._running:
            await asyncio.gather(*list(self._running), return_exceptions=True)

    async def stop(self) -> None:
        """Cancel pending timers and wait for in-flight triggers."""
        self._stopped = True
        dropped = len(self._timers)
        for handle in self._timers.values():
            handle.cancel()
        self._timers.clear()
        await self.drain()
        log.debug("coalescer.stopped", dropped=dropped)


class Debouncer(Generic[T]):
    """Trailing-edge debounce of one async callable.

    Callers awaiting within one burst all receive the result (or exception)
    of the burst's last call.
    """

    def __init__(self, fn: Callable[..., Awaitable[T]], delay_sec: float) -> None:
        self._fn = fn
        self.delay_sec = delay_sec
        self._timer: asyncio.TimerHandle | None = None
        self._waiter: asyncio.Future[T] | None = None
        self._tasks: set[asyncio.Task[T]] = set()

    @property
    def pending(self) -> bool:
        return self._timer is not None

    async def __call__(self, *args: Any, **kwargs: Any) -> T:
        loop = asyncio.get_running_loop()
        if self._timer is not None:
            self._timer.cancel()
        if self._waiter is None or self._waiter.done():
            self._waiter = loop.create_future()
        waiter = self._waiter
        self._timer = loop.call_later(self.delay_sec, self._fire, waiter, args, kwargs)
        # shield: one caller giving up must not cancel the others' result
        return await asyncio.shield(waiter)

    def cancel(self) -> None:
        """Drop the pending call; its waiters see CancelledError."""
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        if self._waiter is not None and not self._waiter.done():
            self._waiter.cancel()
        self._waiter = None

    def _fire(
        self, waiter: asyncio.Future[T], args: tuple[Any, ...], kwargs: dict[str, Any]
    ) -> None:
        self._timer = None
        self._waiter = None
        coro = self._fn(*args, **kwargs)
        task = asyncio.get_running_loop().create_task(coro)  # type: ignore[arg-type]
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        task.add_done_callback(lambda t: _resolve(waiter, t))


def _resolve(waiter: asyncio.Future[T], task: asyncio.Task[T]) -> None:
    if waiter.done():
        return
    if task.cancelled():
        waiter.cancel()
    elif (exc := task.exception()) is not None:
        waiter.set_exception(exc)
    else:
        waiter.set_result(task.result())
