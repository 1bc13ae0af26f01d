"""
Benchmark runner.

Orchestrates one run: validates the configuration, builds the shared rate
limiter and the units, dispatches them to the selected strategy, times the
run and assembles the result.

Example:
    >>> from iobench import BenchmarkConfig, execute
    >>> result = execute(BenchmarkConfig(count=5, retrieve_delay=0.01, strategy="cooperative"))
    >>> result.count, result.strategy
    (5, <StrategyKind.COOPERATIVE: 'cooperative'>)
"""

import logging
import time
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any

from iobench._config import BenchmarkConfig, StrategyKind
from iobench._metrics import RunMetrics, RunReport, collect_metrics, collect_report
from iobench._rate_limit import RateLimiter
from iobench._strategies import create_strategy
from iobench._work import SimulatedWork, UnitListener, UnitState

logger = logging.getLogger(__name__)


class RunInterrupted(KeyboardInterrupt):
    """
    Raised when a run is interrupted (Ctrl-C) before every unit reached DONE.

    Still a KeyboardInterrupt, so callers that do not handle it stop as usual.

    Attributes:
        result: Partial RunResult built from the units that finished.
    """

    def __init__(self, result: "RunResult"):
        self.result = result
        super().__init__(
            f"Run interrupted after {result.report.processed} of "
            f"{result.count - result.report.skipped} units."
        )


@dataclass(frozen=True)
class RunResult:
    """
    Result of a single benchmark run.

    Attributes:
        count: Number of units configured for the run.
        strategy: Concurrency model that drained the units.
        elapsed: Wall-clock seconds from run start to completion of the last unit.
        worker_count: Worker threads used (1 for single-threaded strategies).
        rate_limit_delay: Admission spacing enforced during the run.
        report: Outcome of the records.
        metrics: Timing statistics over the units.
        interrupted: True when the run was cut short by Ctrl-C. Report and
            metrics then only cover the units that reached DONE.
    """

    count: int
    strategy: StrategyKind
    elapsed: float
    worker_count: int = 1
    rate_limit_delay: float = 0.0
    report: RunReport = field(default_factory=RunReport)
    metrics: RunMetrics = field(default_factory=RunMetrics)
    interrupted: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "count": self.count,
            "strategy": str(self.strategy),
            "elapsed": self.elapsed,
            "worker_count": self.worker_count,
            "rate_limit_delay": self.rate_limit_delay,
            "interrupted": self.interrupted,
            **self.report.to_dict(),
            **self.metrics.to_dict(),
        }


class BenchmarkRunner:
    """
    Runs benchmarks described by a BenchmarkConfig.

    A runner keeps no state between runs: every call to `execute()` gets its
    own rate limiter, units and timestamps.

    Args:
        listeners: Observers attached to every unit of every run.
    """

    def __init__(self, listeners: Sequence[UnitListener] | None = None):
        self.listeners = list(listeners or [])

    def _create_units(self, config: BenchmarkConfig) -> list[SimulatedWork]:
        return [
            SimulatedWork(
                index=index,
                retrieve_delay=config.retrieve_delay,
                auth_delay=config.auth_delay,
                write_delay=config.write_delay,
                listeners=self.listeners,
            )
            for index in range(config.skip, config.count)
        ]

    def execute(self, config: BenchmarkConfig) -> RunResult:
        """
        Execute one benchmark run and wait for its completion (blocking).

        Args:
            config: The run configuration.

        Returns:
            RunResult with the configured count, the strategy and the elapsed time.

        Raises:
            InvalidConfigurationError: If the configuration is invalid. Raised
                before any unit is created or any timer is started.
            RunInterrupted: If the run is interrupted (Ctrl-C). Carries the
                partial result of the units that finished.
        """
        config.validate()

        label = f"Run-{config.strategy}"[:26]
        worker_count = config.resolved_worker_count()
        logger.info(f"{label:<26} | Runner | 🚀 Starting run of {config.count} units.")
        logger.info(f"{label:<26} | Runner |    ├ strategy={config.strategy}")
        logger.info(f"{label:<26} | Runner |    ├ worker_count={worker_count}")
        logger.info(f"{label:<26} | Runner |    ├ skip={config.skip}")
        logger.info(
            f"{label:<26} | Runner |    └ retrieve_delay={config.retrieve_delay}s, "
            f"rate_limit_delay={config.rate_limit_delay}s"
        )

        limiter = RateLimiter(delay=config.rate_limit_delay)
        units = self._create_units(config)
        strategy = create_strategy(config.strategy, worker_count=worker_count)

        interrupted = False
        start = time.perf_counter()
        try:
            strategy.run(units, limiter)
        except KeyboardInterrupt:
            interrupted = True
            logger.warning(f"{label:<26} | Runner | ⚠️ Run interrupted, reporting finished units only.")
        except Exception as e:
            logger.error(f"{label:<26} | Runner | ❌ Run aborted: {e}")
            raise
        end = time.perf_counter()
        elapsed = end - start

        # Sanity check: every unit must be DONE exactly once
        assert interrupted or all(u.state == UnitState.DONE and u.record is not None for u in units), (
            "🌀 Sanity check | Unexpected mismatch: some units did not reach DONE."
        )
        records = [u.record for u in units if u.record is not None]

        result = RunResult(
            count=config.count,
            strategy=config.strategy,
            elapsed=elapsed,
            worker_count=worker_count,
            rate_limit_delay=config.rate_limit_delay,
            report=collect_report(records, skipped=config.skip),
            metrics=collect_metrics(records, elapsed),
            interrupted=interrupted,
        )

        logger.info(f"{label:<26} | Runner | 🏁 Run {'stopped' if interrupted else 'finished'} in {elapsed:.4f}s.")
        logger.info(f"{label:<26} | Runner |    ├ processed={result.report.processed}")
        logger.info(f"{label:<26} | Runner |    └ admissions={limiter.admissions}")
        if interrupted:
            raise RunInterrupted(result)
        return result


def execute(config: BenchmarkConfig, listeners: Sequence[UnitListener] | None = None) -> RunResult:
    """
    Convenience function to execute a single run.

    Args:
        config: The run configuration.
        listeners: Optional observers attached to every unit.

    Returns:
        The run result.
    """
    return BenchmarkRunner(listeners=listeners).execute(config)
