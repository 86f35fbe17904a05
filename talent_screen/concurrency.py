"""In-process coordination for analysis and ranking passes."""

import asyncio
import logging
from contextlib import asynccontextmanager, contextmanager
from typing import Awaitable, Callable, Hashable, TypeVar

from talent_screen.errors import ConcurrentRankingInProgress

log = logging.getLogger(__name__)

T = TypeVar("T")


class _Flight:
    __slots__ = ("task", "waiters")

    def __init__(self, task: asyncio.Task):
        self.task = task
        self.waiters = 0


class SingleFlight:
    """
    Coalesces concurrent calls for the same key onto one task.

    Each caller awaits the shared task through ``asyncio.shield`` so a cancelled
    caller does not cancel work others are waiting on; once the last waiter is
    gone the task itself is cancelled.
    """

    def __init__(self):
        self._flights: dict[Hashable, _Flight] = {}

    def in_flight(self, key: Hashable) -> bool:
        flight = self._flights.get(key)
        return flight is not None and not flight.task.done()

    async def run(self, key: Hashable, fn: Callable[[], Awaitable[T]]) -> T:
        flight = self._flights.get(key)
        if flight is None or flight.task.done():
            flight = _Flight(asyncio.ensure_future(fn()))
            self._flights[key] = flight
            flight.task.add_done_callback(lambda _t, key=key, flight=flight: self._forget(key, flight))
        else:
            log.debug("Joining in-flight computation for %s", key)

        flight.waiters += 1
        try:
            return await asyncio.shield(flight.task)
        finally:
            flight.waiters -= 1
            if flight.waiters == 0 and not flight.task.done():
                log.debug("Last waiter for %s left; cancelling computation", key)
                flight.task.cancel()

    def _forget(self, key: Hashable, flight: _Flight):
        if self._flights.get(key) is flight:
            del self._flights[key]


class KeyedLock:
    """One asyncio.Lock per key; entries are dropped once nobody holds or waits on them."""

    def __init__(self):
        self._locks: dict[Hashable, asyncio.Lock] = {}
        self._users: dict[Hashable, int] = {}

    def locked(self, key: Hashable) -> bool:
        lock = self._locks.get(key)
        return lock is not None and lock.locked()

    @asynccontextmanager
    async def hold(self, key: Hashable):
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._users[key] = self._users.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._users[key] -= 1
            if not self._users[key]:
                del self._users[key]
                del self._locks[key]


class ExclusiveClaims:
    """Non-blocking per-key mutual exclusion: a second claim fails instead of queueing."""

    def __init__(self):
        self._held: set[Hashable] = set()

    def held(self, key: Hashable) -> bool:
        return key in self._held

    @contextmanager
    def claim(self, key: str):
        if key in self._held:
            raise ConcurrentRankingInProgress(key)
        self._held.add(key)
        try:
            yield
        finally:
            self._held.discard(key)
