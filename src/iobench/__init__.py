"""
iobench: concurrency benchmarking harness for I/O-bound batches.

Measures how long a batch of independent, simulated retrieval units takes
when drained sequentially, cooperatively on a single asyncio event loop, or
by a pool of worker threads. Every unit first passes a shared rate limiter,
then pays its simulated latency.

Quick Start:
    >>> from iobench import BenchmarkConfig, execute, explain
    >>> config = BenchmarkConfig(count=5, retrieve_delay=0.01, strategy="threaded", worker_count=5)
    >>> result = execute(config)
    >>> explain(result)

Command line:
    $ python -m iobench --count 50 --delay-retrieve 50 --strategy all

Configuration:
    - BenchmarkConfig: Immutable run configuration (defaults < IOBENCH_* env vars < overrides).
    - StrategyKind: Enum with the available concurrency models.
    - InvalidConfigurationError: Raised when a configuration fails validation.
    - ConfigEnvVarError: Raised when an env var cannot be parsed.

Engine:
    - RateLimiter: Fixed-interval gate shared by all units of a run.
    - SimulatedWork: One simulated retrieval unit.
    - Strategy: Base class of SequentialStrategy, CooperativeStrategy and ThreadedStrategy.
    - BenchmarkRunner / execute: Run orchestration.
    - RunResult: Result of a run (count, strategy, elapsed, report, metrics).
    - RunInterrupted: Raised on Ctrl-C, carries the partial RunResult.

Observability:
    - UnitListener: Base class for observing unit state transitions.
    - UnitStateCounter: Thread-safe listener counting transitions.
    - ProgressListener: Logs completed/total records as units finish.
    - explain: Renders a RunResult as human readable lines.
"""

from importlib.metadata import version as _get_version

__version__ = _get_version("iobench")

from iobench._config import (
    BenchmarkConfig,
    ConfigEnvVarError,
    InvalidConfigurationError,
    StrategyKind,
)
from iobench._metrics import RunMetrics, RunReport
from iobench._rate_limit import RateLimiter
from iobench._report import explain
from iobench._runner import BenchmarkRunner, RunInterrupted, RunResult, execute
from iobench._strategies import (
    CooperativeStrategy,
    SequentialStrategy,
    Strategy,
    ThreadedStrategy,
    create_strategy,
)
from iobench._work import (
    ProgressListener,
    RetrieveOutcome,
    SimulatedWork,
    UnitListener,
    UnitRecord,
    UnitState,
    UnitStateCounter,
)

__all__ = [
    "__version__",
    # Configuration
    "BenchmarkConfig",
    "StrategyKind",
    "InvalidConfigurationError",
    "ConfigEnvVarError",
    # Engine
    "RateLimiter",
    "SimulatedWork",
    "Strategy",
    "SequentialStrategy",
    "CooperativeStrategy",
    "ThreadedStrategy",
    "create_strategy",
    "BenchmarkRunner",
    "RunResult",
    "RunInterrupted",
    "execute",
    # Report & metrics
    "RunReport",
    "RunMetrics",
    "explain",
    # Observability
    "RetrieveOutcome",
    "UnitRecord",
    "UnitState",
    "UnitListener",
    "UnitStateCounter",
    "ProgressListener",
]
