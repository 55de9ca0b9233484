"""Per-key coalescing of concurrent asynchronous operations.

:class:`SingleFlightRefresher` keeps at most one in-flight task per key.
Callers that arrive while a task for their key is running await that same
task instead of starting another, so N concurrent cache misses for one
registry cost one CLI invocation (and at most one login prompt).

The in-flight handle is dropped as soon as the task settles, successfully
or not. Failures are therefore never cached: the next call after a failure
starts a fresh attempt. Coordination is process-local only.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Generic, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class SingleFlightRefresher(Generic[T]):
    """Coalesces concurrent :meth:`acquire` calls that share a key.

    Example::

        flights: SingleFlightRefresher[str] = SingleFlightRefresher()
        a, b = await asyncio.gather(
            flights.acquire(registry, fetch),
            flights.acquire(registry, fetch),
        )
        # fetch() ran once; a == b
    """

    def __init__(self) -> None:
        self._in_flight: dict[str, asyncio.Future[T]] = {}

    def in_flight(self, key: str) -> bool:
        """Return whether an operation for *key* is currently running."""
        return key in self._in_flight

    async def acquire(self, key: str, factory: Callable[[], Awaitable[T]]) -> T:
        """Return the result of the in-flight operation for *key*.

        Starts ``factory()`` as a task when nothing is in flight for *key*.
        A caller that is cancelled stops waiting without cancelling the
        shared task, so other waiters still receive its result.

        Raises:
            Exception: Whatever the shared operation raised; every waiter
                sees the same exception.
        """
        future = self._in_flight.get(key)
        if future is None:
            logger.debug("Starting operation for %s", key)
            future = asyncio.ensure_future(factory())
            self._in_flight[key] = future
            future.add_done_callback(lambda done: self._settle(key, done))
        else:
            logger.debug("Joining in-flight operation for %s", key)
        return await asyncio.shield(future)

    def _settle(self, key: str, future: asyncio.Future[T]) -> None:
        if self._in_flight.get(key) is future:
            del self._in_flight[key]
        # Mark the outcome retrieved when every waiter was cancelled.
        if not future.cancelled():
            future.exception()
