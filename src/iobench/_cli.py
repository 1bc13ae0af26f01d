"""
Command line interface for iobench.

Simulates online information lookup for records and reports how long each
concurrency strategy takes. Delays are given in milliseconds.

Usage:
    python -m iobench --count 50 --delay-retrieve 50
    python -m iobench --count 50 --delay-retrieve 50 --strategy all
    python -m iobench -c 100 --delay-rate-limit 5 --strategy threaded -w 16
"""

from __future__ import annotations

import argparse
import logging
import sys
from collections.abc import Callable, Sequence
from typing import Any

from iobench._config import BenchmarkConfig, StrategyKind
from iobench._report import explain
from iobench._runner import BenchmarkRunner, RunInterrupted, RunResult
from iobench._work import ProgressListener

ALL_STRATEGIES = "all"


def _ms_to_seconds(value: float | None) -> float | None:
    return None if value is None else value / 1000.0


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser. Unset flags fall back to env vars, then defaults."""
    parser = argparse.ArgumentParser(
        prog="iobench",
        description="Simulates online information lookup for records.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    iobench -c 50 --delay-retrieve 50                  # Sequential baseline
    iobench -c 50 --delay-retrieve 50 --strategy all   # Compare every strategy
    iobench -c 50 --delay-rate-limit 20 -s 10          # Resume after 10 records
        """,
    )
    parser.add_argument("-c", "--count", type=int, help="Total number of records.")
    parser.add_argument("-s", "--skip", type=int, help="Number of records already processed.")
    parser.add_argument(
        "--delay-rate-limit", type=float,
        help="Minimum number of milliseconds between two requests (0 disables rate limiting).",
    )
    parser.add_argument("--delay-auth", type=float, help="Number of milliseconds authentication takes.")
    parser.add_argument(
        "--delay-retrieve", type=float,
        help="Number of milliseconds information retrieval takes.",
    )
    parser.add_argument(
        "--delay-write", type=float,
        help="Number of milliseconds writing a populated record takes.",
    )
    parser.add_argument(
        "--strategy",
        type=str,
        choices=[str(k) for k in StrategyKind] + [ALL_STRATEGIES],
        help="Concurrency model to benchmark, or 'all' to run each one in turn.",
    )
    parser.add_argument("-w", "--workers", type=int, help="Worker threads for the threaded strategy.")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging.")
    return parser


def config_from_args(args: argparse.Namespace) -> BenchmarkConfig:
    """
    Build the configuration from parsed arguments.

    Precedence: CLI flags > env vars (IOBENCH_*) > defaults.
    The 'all' strategy is resolved by the caller, not stored in the config.
    """
    overrides: dict[str, Any] = {
        "count": args.count,
        "skip": args.skip,
        "rate_limit_delay": _ms_to_seconds(args.delay_rate_limit),
        "auth_delay": _ms_to_seconds(args.delay_auth),
        "retrieve_delay": _ms_to_seconds(args.delay_retrieve),
        "write_delay": _ms_to_seconds(args.delay_write),
        "worker_count": args.workers,
    }
    if args.strategy and args.strategy != ALL_STRATEGIES:
        overrides["strategy"] = args.strategy
    return BenchmarkConfig().with_env_vars().with_overrides(overrides)


def run(
    argv: Sequence[str] | None = None,
    output: Callable[[str], None] = print,
) -> list[RunResult]:
    """
    Parse arguments, execute the requested runs and render their reports.

    Args:
        argv: Arguments without the program name. Defaults to sys.argv[1:].
        output: Callable receiving each report line.

    Returns:
        One result per executed run. An interrupted run is the last one
        and has `interrupted` set.

    Raises:
        SystemExit: With status 2 when the configuration is invalid.
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)-7s %(name)s: %(message)s",
    )

    try:
        base = config_from_args(args)
        kinds = list(StrategyKind) if args.strategy == ALL_STRATEGIES else [base.strategy]
        configs = [base.with_overrides({"strategy": kind}).validate() for kind in kinds]
    except ValueError as e:  # InvalidConfigurationError, ConfigEnvVarError, unknown fields
        parser.error(str(e))

    results: list[RunResult] = []
    for config in configs:
        progress = ProgressListener(total=config.count, completed=config.skip)
        runner = BenchmarkRunner(listeners=[progress])
        try:
            result = runner.execute(config)
        except RunInterrupted as e:
            # Report what finished, then skip the remaining strategies
            explain(e.result, output=output)
            results.append(e.result)
            break
        explain(result, output=output)
        results.append(result)
    return results


def main() -> None:
    """Console script entry point. Exits with status 130 when interrupted."""
    results = run(sys.argv[1:])
    if results and results[-1].interrupted:
        sys.exit(130)
