"""
Rate limiting for iobench runs.

This module provides the fixed-interval gate shared by every unit of a run.
Successive admissions are spaced at least `delay` seconds apart, globally,
whichever strategy drives the units:

- Sequential and threaded strategies call `acquire()`, which sleeps the
  calling thread.
- The cooperative strategy awaits `acquire_async()`, which suspends only the
  calling task so the event loop keeps running other units.

Both paths take their admission slot from the same `reserve()` critical
section, so the throughput ceiling is identical for all strategies.

Example:
    >>> from iobench._rate_limit import RateLimiter
    >>> limiter = RateLimiter(delay=0.05)
    >>> limiter.acquire()  # first admission is immediate, returns 0.0
    >>> limiter.acquire()  # second one sleeps ~50ms, returns ~0.05
"""

import asyncio
import logging
import threading
import time
from collections.abc import Callable

logger = logging.getLogger(__name__)


class RateLimiter:
    """
    Fixed-interval gate bounding how many units may proceed per unit of time.

    Keeps a single "next eligible time" watermark, initialized to the creation
    time. Each caller takes the slot `max(now, watermark)`, moves the watermark
    `delay` seconds past that slot for the next caller, and then waits until
    its own slot outside the lock. Slots are handed out in strict arrival order
    of the lock.

    A delay of 0 disables the gate: admission is immediate and the watermark
    never moves.

    This class is thread-safe and can be shared by concurrent threads and by
    asyncio tasks of a single event loop.

    Args:
        delay: Minimum spacing in seconds between two consecutive admissions.
        clock: Monotonic clock returning seconds. Injectable for tests.
    """

    def __init__(self, delay: float, clock: Callable[[], float] = time.monotonic):
        assert delay is not None, "delay cannot be None."
        assert delay >= 0, "delay must be >= 0."

        self.delay = delay
        self._clock = clock
        self._watermark = clock()
        self._admissions = 0
        self._lock = threading.Lock()

    @property
    def enabled(self) -> bool:
        """Whether the gate enforces any spacing at all."""
        return self.delay > 0

    @property
    def admissions(self) -> int:
        """Number of admission slots handed out so far."""
        return self._admissions

    def reserve(self) -> float:
        """
        Take the next admission slot without waiting for it.

        Returns:
            Seconds the caller must wait before its slot is reached (possibly 0).
        """
        if not self.enabled:
            with self._lock:
                self._admissions += 1
            return 0.0

        with self._lock:
            now = self._clock()
            slot = max(now, self._watermark)
            self._watermark = slot + self.delay
            self._admissions += 1

        return slot - now

    def acquire(self) -> float:
        """
        Block the calling thread until it is admitted.

        Returns:
            Seconds spent waiting for the slot.
        """
        wait_time = self.reserve()
        if wait_time > 0:
            logger.debug(f"{'RateLimiter'[:26]:<26} | Gate | ⏳ Waiting {wait_time:.4f}s for admission slot.")
            # Sleep outside the lock to allow other threads to reserve their slots
            time.sleep(wait_time)
        return wait_time

    async def acquire_async(self) -> float:
        """
        Suspend the calling task until it is admitted.

        Other tasks of the same event loop keep running while this one waits.

        Returns:
            Seconds spent waiting for the slot.
        """
        wait_time = self.reserve()
        if wait_time > 0:
            logger.debug(f"{'RateLimiter'[:26]:<26} | Gate | ⏳ Awaiting {wait_time:.4f}s for admission slot.")
            await asyncio.sleep(wait_time)
        return wait_time

    def __repr__(self) -> str:
        return f"RateLimiter(delay={self.delay!r}, admissions={self._admissions})"
