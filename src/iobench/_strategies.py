"""
Execution strategies.

A strategy drains a batch of units through a shared rate limiter using one
concurrency model. All strategies share the same contract:

    run(units, limiter) -> elapsed seconds

so their timings are directly comparable for the same batch.

Available implementations:
    - SequentialStrategy: One unit after another on the calling thread.
    - CooperativeStrategy: One asyncio task per unit on a single event loop thread.
    - ThreadedStrategy: Units submitted to a fixed-size thread pool.

Example:
    >>> from iobench._strategies import create_strategy
    >>> from iobench._config import StrategyKind
    >>> strategy = create_strategy(StrategyKind.THREADED, worker_count=8)
    >>> elapsed = strategy.run(units, limiter)
"""

import asyncio
import logging
import time
from abc import ABC, abstractmethod
from collections.abc import Sequence
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import override

from iobench._config import StrategyKind
from iobench._rate_limit import RateLimiter
from iobench._work import SimulatedWork

logger = logging.getLogger(__name__)


class Strategy(ABC):
    """
    Abstract base class for execution strategies.

    Implementations must execute every unit exactly once, each one acquiring
    the shared limiter before paying its delays. No shortcut may skip a delay.
    """

    kind: StrategyKind

    @abstractmethod
    def run(self, units: Sequence[SimulatedWork], limiter: RateLimiter) -> float:
        """
        Execute all units and wait until the last one is DONE.

        Args:
            units: The units to drain. All of them must be PENDING.
            limiter: The rate limiter shared by every unit of the run.

        Returns:
            Elapsed wall-clock seconds of the drain.

        Raises:
            KeyboardInterrupt: On Ctrl-C. Units not yet started are never
                started; the finished ones keep their records.
        """
        pass

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"


class SequentialStrategy(Strategy):
    """
    Baseline strategy: a plain loop blocking the calling thread.

    Total time is roughly `count * (gate wait + delays)`.
    """

    kind = StrategyKind.SEQUENTIAL

    @override
    def run(self, units: Sequence[SimulatedWork], limiter: RateLimiter) -> float:
        start = time.perf_counter()
        for unit in units:
            unit.execute(limiter)
        return time.perf_counter() - start


class CooperativeStrategy(Strategy):
    """
    Single-threaded cooperative concurrency with asyncio.

    All units are scheduled as tasks on a fresh event loop. A task waiting for
    the gate or paying its delay suspends, and whichever timer expires first
    resumes first. No OS threads are involved.

    Must be called from synchronous code: `asyncio.run()` refuses to start
    inside an already running event loop.
    """

    kind = StrategyKind.COOPERATIVE

    @override
    def run(self, units: Sequence[SimulatedWork], limiter: RateLimiter) -> float:
        start = time.perf_counter()
        asyncio.run(self._drain(units, limiter))
        return time.perf_counter() - start

    async def _drain(self, units: Sequence[SimulatedWork], limiter: RateLimiter) -> None:
        tasks = [
            asyncio.create_task(unit.execute_async(limiter), name=f"unit-{unit.index}")
            for unit in units
        ]
        await asyncio.gather(*tasks)


class ThreadedStrategy(Strategy):
    """
    Multi-threaded strategy using a fixed-size thread pool.

    Each unit is submitted once to the pool; the pool's internal work queue
    hands every unit to exactly one worker thread. All workers funnel through
    the same shared rate limiter.

    Args:
        worker_count: Number of worker threads.

    Raises:
        AssertionError: If worker_count is not greater than 0.
    """

    kind = StrategyKind.THREADED

    def __init__(self, worker_count: int):
        assert worker_count, "Thread-pool worker_count can not be empty."
        assert worker_count > 0, "Thread-pool worker_count must be greater than 0."
        self.worker_count = worker_count

    @override
    def run(self, units: Sequence[SimulatedWork], limiter: RateLimiter) -> float:
        start = time.perf_counter()
        with ThreadPoolExecutor(max_workers=self.worker_count, thread_name_prefix="iobench-worker") as executor:
            future_to_unit = {
                executor.submit(unit.execute, limiter): unit
                for unit in units
            }
            try:
                for future in as_completed(future_to_unit):
                    unit = future_to_unit[future]
                    try:
                        future.result()
                    except Exception as e:
                        logger.error(
                            f"{'Threaded-Strategy'[:26]:<26} | Strategy | ❌ Unit {unit.index} failed, "
                            f"cancelling pending units: {e}"
                        )
                        executor.shutdown(wait=True, cancel_futures=True)
                        raise
            except KeyboardInterrupt:
                # Units already running finish, queued ones never start
                logger.warning(
                    f"{'Threaded-Strategy'[:26]:<26} | Strategy | ⚠️ Interrupted, cancelling pending units."
                )
                executor.shutdown(wait=True, cancel_futures=True)
                raise
        return time.perf_counter() - start

    @override
    def __repr__(self) -> str:
        return f"ThreadedStrategy(worker_count={self.worker_count})"


def create_strategy(kind: StrategyKind, worker_count: int | None = None) -> Strategy:
    """
    Select the strategy implementation for a run.

    Args:
        kind: Which concurrency model to use.
        worker_count: Number of worker threads (threaded strategy only).

    Returns:
        The strategy instance.

    Raises:
        ValueError: If kind is unknown or worker_count is missing for the threaded strategy.
    """
    if kind == StrategyKind.SEQUENTIAL:
        return SequentialStrategy()
    if kind == StrategyKind.COOPERATIVE:
        return CooperativeStrategy()
    if kind == StrategyKind.THREADED:
        if worker_count is None:
            raise ValueError("worker_count is required for the threaded strategy.")
        return ThreadedStrategy(worker_count=worker_count)
    raise ValueError(f"Unknown strategy: {kind!r}")
