"""
Simulated retrieval units.

A unit stands for one record whose information must be looked up online.
It carries only its index and the delays it has to pay; the retrieval itself
is simulated by sleeping (blocking) or awaiting (cooperative).

Every unit goes through the same lifecycle, whichever strategy drives it:

    PENDING -> AWAITING_GATE -> PROCESSING -> DONE

Listeners can observe the transitions, e.g. to count completed units.

Example:
    >>> from iobench._work import SimulatedWork, UnitStateCounter
    >>> from iobench._rate_limit import RateLimiter
    >>> counter = UnitStateCounter()
    >>> unit = SimulatedWork(index=1, retrieve_delay=0.01, listeners=[counter])
    >>> record = unit.execute(RateLimiter(delay=0.0))
    >>> record.outcome, counter.done
    (<RetrieveOutcome.SUCCESS: 'SUCCESS'>, 1)
"""

import asyncio
import enum
import logging
import threading
import time
from dataclasses import dataclass, field

from iobench._rate_limit import RateLimiter

logger = logging.getLogger(__name__)

RECORD_NOT_FOUND_MESSAGE = "Could not find record information online."


class UnitState(enum.StrEnum):
    """
    Lifecycle state of a unit.

    Attributes:
        PENDING: Created, not yet dispatched.
        AWAITING_GATE: Dispatched, waiting for the rate limiter to admit it.
        PROCESSING: Admitted, paying its simulated delays.
        DONE: Finished. Terminal state.
    """
    PENDING = "PENDING"
    AWAITING_GATE = "AWAITING_GATE"
    PROCESSING = "PROCESSING"
    DONE = "DONE"

    def __str__(self) -> str:
        return self.value


class RetrieveOutcome(enum.StrEnum):
    """
    Simulated result of looking up a record online.

    Attributes:
        SUCCESS: All information was found.
        SUCCESS_PARTIAL: Some information is missing.
        ERROR: The record could not be found.
    """
    SUCCESS = "SUCCESS"
    SUCCESS_PARTIAL = "SUCCESS_PARTIAL"
    ERROR = "ERROR"

    def __str__(self) -> str:
        return self.value

    @classmethod
    def for_index(cls, index: int) -> "RetrieveOutcome":
        """
        Deterministic outcome of the unit at `index`.

        Indices divisible by both 11 and 3 fail, the remaining multiples
        of 3 come back partially populated, everything else succeeds.
        """
        if index % 11 == 0 and index % 3 == 0:
            return cls.ERROR
        if index % 3 == 0:
            return cls.SUCCESS_PARTIAL
        return cls.SUCCESS


@dataclass(frozen=True)
class UnitRecord:
    """
    What happened to a single unit once it reached DONE.

    Attributes:
        index: Index of the unit in the run.
        outcome: Simulated retrieval outcome.
        message: Error message when outcome is ERROR, None otherwise.
        gate_wait: Seconds spent waiting for the rate limiter.
        started_at: perf_counter() timestamp of the dispatch.
        admitted_at: perf_counter() timestamp when the gate admitted the unit.
        finished_at: perf_counter() timestamp when the unit reached DONE.
    """

    index: int
    outcome: RetrieveOutcome
    message: str | None
    gate_wait: float
    started_at: float
    admitted_at: float
    finished_at: float

    @property
    def latency(self) -> float:
        """Seconds from dispatch to DONE."""
        return self.finished_at - self.started_at

    @property
    def processing_time(self) -> float:
        """Seconds from admission to DONE."""
        return self.finished_at - self.admitted_at


class UnitListener:
    """
    Base class for observing unit lifecycle transitions.

    Listeners are read-only observers. They may be called concurrently from
    several worker threads, so implementations that keep state must protect it.

    Example:
        >>> class DoneLogger(UnitListener):
        ...     def on_state_change(self, unit, old_state, new_state):
        ...         if new_state == UnitState.DONE:
        ...             print(f"unit {unit.index} done")
    """

    def on_state_change(
        self,
        unit: "SimulatedWork",
        old_state: UnitState,
        new_state: UnitState,
    ) -> None:
        """
        Called on every transition of a unit.

        Args:
            unit: The unit whose state changed.
            old_state: The previous state.
            new_state: The new state.
        """
        pass


class UnitStateCounter(UnitListener):
    """
    Thread-safe listener counting how many units entered each state.

    Useful to check that every unit of a run was processed exactly once.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._counts: dict[UnitState, int] = {state: 0 for state in UnitState}
        self._done_indexes: list[int] = []

    def on_state_change(
        self,
        unit: "SimulatedWork",
        old_state: UnitState,
        new_state: UnitState,
    ) -> None:
        with self._lock:
            self._counts[new_state] += 1
            if new_state == UnitState.DONE:
                self._done_indexes.append(unit.index)

    def count(self, state: UnitState) -> int:
        """Number of transitions into `state` observed so far."""
        with self._lock:
            return self._counts[state]

    @property
    def done(self) -> int:
        return self.count(UnitState.DONE)

    @property
    def done_indexes(self) -> list[int]:
        """Indexes of the units that reached DONE, in completion order."""
        with self._lock:
            return list(self._done_indexes)


class ProgressListener(UnitListener):
    """
    Thread-safe listener logging run progress as units reach DONE.

    Records skipped by a resumed run count as already completed, so the
    progress always reads `completed/total` over the whole batch.

    Args:
        total: Number of records in the batch.
        completed: Records already processed before the run started.
        every: Log one line every `every` completions (and on the last one).
            Defaults to about twenty lines per run.

    Example:
        >>> listener = ProgressListener(total=50, completed=10)
        >>> runner = BenchmarkRunner(listeners=[listener])
    """

    def __init__(self, total: int, completed: int = 0, every: int | None = None):
        assert total > 0, "Progress total must be greater than 0."
        assert every is None or every > 0, "Progress step must be greater than 0."
        self.total = total
        self.every = every or max(1, total // 20)
        self._lock = threading.Lock()
        self._completed = completed

    @property
    def completed(self) -> int:
        with self._lock:
            return self._completed

    def on_state_change(
        self,
        unit: "SimulatedWork",
        old_state: UnitState,
        new_state: UnitState,
    ) -> None:
        if new_state != UnitState.DONE:
            return
        with self._lock:
            self._completed += 1
            completed = self._completed
        if completed % self.every == 0 or completed == self.total:
            logger.info(
                f"{'Progress'[:26]:<26} | Progress | ⏳ {completed}/{self.total} records processed "
                f"({completed / self.total:.0%})."
            )


@dataclass
class SimulatedWork:
    """
    One simulated retrieval unit.

    Args:
        index: Position of the unit in the run.
        retrieve_delay: Seconds the simulated retrieval takes.
        auth_delay: Seconds the first-time authentication takes. Only paid by index 0.
        write_delay: Seconds writing the populated record takes.
        listeners: Observers notified on every state transition.
    """

    index: int
    retrieve_delay: float
    auth_delay: float = 0.0
    write_delay: float = 0.0
    listeners: list[UnitListener] = field(default_factory=list, repr=False)
    state: UnitState = field(default=UnitState.PENDING, init=False)
    record: UnitRecord | None = field(default=None, init=False, repr=False)
    _dispatch_lock: threading.Lock = field(
        default_factory=threading.Lock, init=False, repr=False, compare=False
    )

    def _delays(self) -> list[float]:
        delays = []
        if self.index == 0 and self.auth_delay > 0:
            delays.append(self.auth_delay)
        delays.append(self.retrieve_delay)
        if self.write_delay > 0:
            delays.append(self.write_delay)
        return delays

    def _notify(self, old_state: UnitState, new_state: UnitState) -> None:
        for listener in self.listeners:
            listener.on_state_change(self, old_state, new_state)

    def _transition(self, new_state: UnitState) -> None:
        old_state = self.state
        self.state = new_state
        self._notify(old_state, new_state)

    def _dispatch(self) -> float:
        # Check-and-set under the lock: only one caller may leave PENDING
        with self._dispatch_lock:
            if self.state != UnitState.PENDING:
                raise RuntimeError(
                    f"Unit {self.index} cannot be executed twice (current state: {self.state})."
                )
            self.state = UnitState.AWAITING_GATE
        started_at = time.perf_counter()
        self._notify(UnitState.PENDING, UnitState.AWAITING_GATE)
        return started_at

    def _complete(self, started_at: float, admitted_at: float, gate_wait: float) -> UnitRecord:
        outcome = RetrieveOutcome.for_index(self.index)
        self.record = UnitRecord(
            index=self.index,
            outcome=outcome,
            message=RECORD_NOT_FOUND_MESSAGE if outcome == RetrieveOutcome.ERROR else None,
            gate_wait=gate_wait,
            started_at=started_at,
            admitted_at=admitted_at,
            finished_at=time.perf_counter(),
        )
        self._transition(UnitState.DONE)
        logger.debug(
            f"{f'Unit-{self.index}'[:26]:<26} | Unit | ✅ Done with outcome {outcome} "
            f"(gate_wait={gate_wait:.4f}s, latency={self.record.latency:.4f}s)"
        )
        return self.record

    def process(self) -> None:
        """Pay the simulated delays by blocking the calling thread."""
        for delay in self._delays():
            time.sleep(delay)

    async def process_async(self) -> None:
        """Pay the simulated delays by suspending the calling task."""
        for delay in self._delays():
            await asyncio.sleep(delay)

    def execute(self, limiter: RateLimiter) -> UnitRecord:
        """
        Run the whole lifecycle on the calling thread: gate first, then the delays.

        Args:
            limiter: The rate limiter shared by every unit of the run.

        Returns:
            The record of this unit.

        Raises:
            RuntimeError: If the unit was already executed.
        """
        started_at = self._dispatch()
        gate_wait = limiter.acquire()
        admitted_at = time.perf_counter()
        self._transition(UnitState.PROCESSING)
        self.process()
        return self._complete(started_at, admitted_at, gate_wait)

    async def execute_async(self, limiter: RateLimiter) -> UnitRecord:
        """
        Run the whole lifecycle as a task: gate first, then the delays.

        Control goes back to the event loop while waiting for the gate and
        while paying the delays.

        Args:
            limiter: The rate limiter shared by every unit of the run.

        Returns:
            The record of this unit.

        Raises:
            RuntimeError: If the unit was already executed.
        """
        started_at = self._dispatch()
        gate_wait = await limiter.acquire_async()
        admitted_at = time.perf_counter()
        self._transition(UnitState.PROCESSING)
        await self.process_async()
        return self._complete(started_at, admitted_at, gate_wait)
