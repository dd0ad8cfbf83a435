"""
Latest-request-wins helpers.

Nothing here cancels a request that is already on the wire. Instead every
request gets a generation ticket, and a response is only consumed if its
ticket is still the newest one when it arrives.
"""

import asyncio
import logging
from typing import Awaitable, Callable, TypeVar

T = TypeVar("T")

logger = logging.getLogger(__name__)


class RequestSequencer:
    def __init__(self):
        self._generation = 0

    def issue(self) -> int:
        self._generation += 1
        return self._generation

    def is_current(self, ticket: int) -> bool:
        return ticket == self._generation

    @property
    def generation(self) -> int:
        return self._generation


class Debouncer:
    """
    Delay a call until input has been quiet for `delay` seconds.

    A newer submit within the window cancels the pending timer. Once the
    timer fires the call runs to completion, but its result is dropped
    (None is returned) if a newer submit has been made in the meantime.
    """

    def __init__(self, delay: float):
        self.delay = delay
        self._sequence = RequestSequencer()
        self._timer: asyncio.Task | None = None

    async def submit(self, fn: Callable[..., Awaitable[T]], *args, **kwargs) -> T | None:
        ticket = self._sequence.issue()
        if self._timer is not None and not self._timer.done():
            self._timer.cancel()

        timer = asyncio.ensure_future(asyncio.sleep(self.delay))
        self._timer = timer
        try:
            await timer
        except asyncio.CancelledError:
            if self._sequence.is_current(ticket):
                raise
            return None

        result = await fn(*args, **kwargs)
        if not self._sequence.is_current(ticket):
            logger.debug("Discarding superseded response (ticket %d)", ticket)
            return None
        return result

    def cancel(self) -> None:
        """Drop any pending call; in-flight calls finish but are discarded."""
        self._sequence.issue()
        if self._timer is not None and not self._timer.done():
            self._timer.cancel()

    @property
    def pending(self) -> bool:
        return self._timer is not None and not self._timer.done()
