"""
Report and metrics of a single benchmark run.

Collects what happened to every unit of one run into a record report
(how many records were found, partially found or missing) and summary
timing statistics. Nothing is aggregated across runs.
"""

from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any

import numpy as np

from iobench._work import RetrieveOutcome, UnitRecord


@dataclass(frozen=True)
class RunReport:
    """
    Outcome of the records of a run.

    Attributes:
        skipped: Records already processed before the run (never executed).
        successful: Records processed with all information found.
        info_missing: Records processed with some information missing.
        failed: (index, message) of the records that could not be found.
    """

    skipped: int = 0
    successful: int = 0
    info_missing: int = 0
    failed: list[tuple[int, str]] = field(default_factory=list)

    @property
    def processed(self) -> int:
        """Records executed during the run, whatever their outcome."""
        return self.successful + self.info_missing + len(self.failed)

    def to_dict(self) -> dict[str, Any]:
        return {
            "skipped": self.skipped,
            "processed": self.processed,
            "successful": self.successful,
            "info_missing": self.info_missing,
            "failed": len(self.failed),
        }


@dataclass(frozen=True)
class RunMetrics:
    """
    Timing statistics over the units of a run. All values in seconds,
    except throughput (units per second).
    """

    # Wait time (time waiting for the rate limiter)
    gate_wait_total: float = 0.0
    gate_wait_mean: float = 0.0
    gate_wait_p50: float = 0.0
    gate_wait_p95: float = 0.0

    # Latency (dispatch to DONE, including gate wait)
    latency_mean: float = 0.0
    latency_p50: float = 0.0
    latency_p95: float = 0.0
    latency_max: float = 0.0

    throughput_per_second: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "gate_wait_total": self.gate_wait_total,
            "gate_wait_mean": self.gate_wait_mean,
            "gate_wait_p50": self.gate_wait_p50,
            "gate_wait_p95": self.gate_wait_p95,
            "latency_mean": self.latency_mean,
            "latency_p50": self.latency_p50,
            "latency_p95": self.latency_p95,
            "latency_max": self.latency_max,
            "throughput_per_second": self.throughput_per_second,
        }


def collect_report(records: Sequence[UnitRecord], skipped: int = 0) -> RunReport:
    """
    Count record outcomes.

    Args:
        records: Records of the units executed in the run.
        skipped: Number of records skipped before the run.

    Returns:
        The record report, failures sorted by index.
    """
    successful = sum(1 for r in records if r.outcome == RetrieveOutcome.SUCCESS)
    info_missing = sum(1 for r in records if r.outcome == RetrieveOutcome.SUCCESS_PARTIAL)
    failed = sorted(
        (r.index, r.message or "")
        for r in records
        if r.outcome == RetrieveOutcome.ERROR
    )
    return RunReport(
        skipped=skipped,
        successful=successful,
        info_missing=info_missing,
        failed=failed,
    )


def collect_metrics(records: Sequence[UnitRecord], elapsed: float) -> RunMetrics:
    """
    Aggregate unit records into summary statistics.

    Args:
        records: Records of the units executed in the run.
        elapsed: Wall-clock duration of the run in seconds.

    Returns:
        RunMetrics with aggregated data (all zeros when there are no records).
    """
    if not records:
        return RunMetrics()

    wait_times = np.array([r.gate_wait for r in records], dtype=float)
    latencies = np.array([r.latency for r in records], dtype=float)

    return RunMetrics(
        gate_wait_total=float(np.sum(wait_times)),
        gate_wait_mean=float(np.mean(wait_times)),
        gate_wait_p50=float(np.percentile(wait_times, 50)),
        gate_wait_p95=float(np.percentile(wait_times, 95)),
        latency_mean=float(np.mean(latencies)),
        latency_p50=float(np.percentile(latencies, 50)),
        latency_p95=float(np.percentile(latencies, 95)),
        latency_max=float(np.max(latencies)),
        throughput_per_second=(len(records) / elapsed) if elapsed > 0 else 0.0,
    )
