"""
Human readable rendering of run results.

The library itself never prints: callers choose where the lines go by passing
an output callable (print, a logger method, a list's append, ...).

Example:
    >>> from iobench import execute, explain, BenchmarkConfig
    >>> explain(execute(BenchmarkConfig(count=5, retrieve_delay=0.01)))
    iobench Run Report:
    ...
"""

from collections.abc import Callable, Sequence

from iobench._runner import RunResult


def format_duration(seconds: float) -> str:
    """Format a duration using the most readable unit (µs, ms or s)."""
    if seconds < 1e-3:
        return f"{seconds * 1e6:.0f}µs"
    if seconds < 1.0:
        return f"{seconds * 1e3:.2f}ms"
    return f"{seconds:.3f}s"


def timing_line(result: RunResult) -> str:
    """One-line summary, e.g. 'threaded (8 workers): 50 units in 312.40ms'."""
    workers = f" ({result.worker_count} workers)" if result.worker_count > 1 else ""
    return f"{result.strategy}{workers}: {result.count} units in {format_duration(result.elapsed)}"


def explain(
    result: RunResult,
    output: Callable[[str], None] = print,
) -> None:
    """
    Print a run result: timing line, record report and unit metrics.

    Args:
        result: The result to render.
        output: Callable to output each line. Defaults to print.
                Can be used with logging: `explain(result, logger.info)`
    """
    name_width = 25
    total_width = 2 + name_width + 2 + 20

    report = result.report
    metrics = result.metrics

    output("iobench Run Report:")
    output("=" * total_width)
    output(f"  {timing_line(result)}")
    if result.interrupted:
        output("  interrupted: only finished units are reported")
    output("-" * total_width)

    sections: list[tuple[str, Sequence[tuple[str, str]]]] = [
        ("records", [
            ("skipped", str(report.skipped)),
            ("processed", str(report.processed)),
            ("successful", str(report.successful)),
            ("info_missing", str(report.info_missing)),
            ("failed", str(len(report.failed))),
        ]),
        ("timing", [
            ("rate_limit_delay", format_duration(result.rate_limit_delay)),
            ("gate_wait_total", format_duration(metrics.gate_wait_total)),
            ("gate_wait_p95", format_duration(metrics.gate_wait_p95)),
            ("latency_p50", format_duration(metrics.latency_p50)),
            ("latency_p95", format_duration(metrics.latency_p95)),
            ("latency_max", format_duration(metrics.latency_max)),
            ("throughput", f"{metrics.throughput_per_second:.2f} units/s"),
        ]),
    ]

    for section_name, entries in sections:
        output(f"[{section_name}]")
        for name, value in entries:
            dots = "." * (name_width - len(name))
            output(f"  {name} {dots} {value}")

    if report.failed:
        output("[failures]")
        for index, message in report.failed:
            output(f"  record {index}: {message}")

    output("=" * total_width)
