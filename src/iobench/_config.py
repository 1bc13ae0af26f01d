"""
Benchmark configuration for iobench.

This module provides the immutable configuration consumed by the runner,
following Convention over Configuration (CoC): every field has a sensible
default, environment variables may override it, and explicit values (CLI flags
or constructor arguments) always win.

Hierarchy of precedence (highest to lowest):
1. Values passed via `with_overrides()` (CLI flags, constructor arguments)
2. Environment variables (IOBENCH_*)
3. Hardcoded defaults (in dataclass fields)

Example:
    >>> from iobench import BenchmarkConfig
    >>> config = BenchmarkConfig().with_env_vars().with_overrides({
    ...     "count": 50,
    ...     "retrieve_delay": 0.05,
    ...     "strategy": "threaded",
    ... })
    >>> config.validate().resolved_worker_count()
    8
"""

from __future__ import annotations

import enum
import math
import os
from collections.abc import Callable
from dataclasses import dataclass, field, fields, replace
from typing import Any, Self

# =============================================================================
# Exceptions
# =============================================================================


class ConfigEnvVarError(ValueError):
    """Raised when an environment variable has an invalid value."""

    def __init__(
        self,
        env_var: str,
        value: str,
        expected_type: str,
        cause: Exception | None = None,
    ):
        self.env_var = env_var
        self.value = value
        self.expected_type = expected_type
        super().__init__(f"Invalid value for {env_var}: '{value}' (expected {expected_type})")
        self.__cause__ = cause


class InvalidConfigurationError(ValueError):
    """
    Raised when a benchmark configuration fails validation.

    Always raised before any work starts: no timer is started and no partial
    result is produced.

    Attributes:
        field: Name of the offending field.
        value: The rejected value.
    """

    def __init__(self, field: str, value: Any, message: str):
        self.field = field
        self.value = value
        super().__init__(f"Invalid value for '{field}': {value!r}. {message}")


# =============================================================================
# Strategy Kind
# =============================================================================


class StrategyKind(enum.StrEnum):
    """
    Concurrency model used to drain the units of a run.

    Attributes:
        SEQUENTIAL: One unit after another on the calling thread (baseline).
        COOPERATIVE: All units as asyncio tasks multiplexed on one event loop thread.
        THREADED: Units distributed across a pool of worker threads.
    """
    SEQUENTIAL = "sequential"
    COOPERATIVE = "cooperative"
    THREADED = "threaded"

    def __str__(self) -> str:
        return self.value


# =============================================================================
# Environment Variables
# =============================================================================


class EnvVars:
    """
    Utility class for reading environment variables with type conversion.

    Example:
        >>> EnvVars.get("IOBENCH_COUNT", type_hint=int)
        50
        >>> EnvVars.get("UNDEFINED_VAR")
        None
    """

    @staticmethod
    def get(
        var_name: str,
        type_hint: Any = str,
        converter: Callable[[str], Any] | None = None,
    ) -> Any:
        """
        Read an environment variable with optional type conversion.

        Args:
            var_name: The environment variable name.
            type_hint: Type hint used to infer the converter (ignored if converter is provided).
            converter: Custom converter function (takes precedence over type_hint).

        Returns:
            The converted value, or None if env var is not set/empty.

        Raises:
            ConfigEnvVarError: If the value cannot be converted.
        """
        raw_value = os.environ.get(var_name)
        if not raw_value:  # None or empty string
            return None

        actual_converter = converter or EnvVars._infer_converter(type_hint)
        try:
            return actual_converter(raw_value)
        except (ValueError, TypeError) as e:
            raise ConfigEnvVarError(
                env_var=var_name,
                value=raw_value,
                expected_type=type_hint.__name__ if hasattr(type_hint, "__name__") else str(type_hint),
                cause=e,
            ) from e

    @staticmethod
    def _infer_converter(type_hint: Any) -> Callable[[str], Any]:
        """
        Infer converter function from type hint.

        Handles both actual types and string annotations (PEP 563).
        """
        type_str = str(type_hint)

        if type_hint is int or type_str in ("int", "int | None"):
            return int
        if type_hint is float or type_str == "float":
            return float
        if type_hint is bool or type_str == "bool":
            return lambda v: v.lower() in ("true", "1", "yes")
        return str


# =============================================================================
# Base Class
# =============================================================================


@dataclass(frozen=True)
class OverridableConfig:
    """
    Base class for immutable configuration dataclasses.

    Provides `.with_overrides()` for creating new instances with partial field
    updates, and `.with_env_vars()` for applying the env vars declared in each
    field's metadata. Unknown field names are rejected early to catch typos.
    """

    def with_overrides(self, overrides: dict[str, Any]) -> Self:
        """
        Return a new instance with specified fields overridden.

        None values are ignored, so optional CLI flags can be passed through as-is.

        Args:
            overrides: Dict of field names to new values.
                       Only existing fields are allowed.

        Returns:
            New instance with updated values.

        Raises:
            ValueError: If overrides contains unknown field names.
        """
        if not overrides:
            return self

        valid_fields = {f.name for f in fields(self)}
        invalid_fields = set(overrides.keys()) - valid_fields

        if invalid_fields:
            raise ValueError(
                f"Unknown config fields: {invalid_fields}. "
                f"Valid fields are: {valid_fields}"
            )

        filtered = {k: v for k, v in overrides.items() if v is not None}
        return replace(self, **filtered) if filtered else self

    def with_env_vars(self) -> Self:
        """
        Return new instance with environment variables applied.

        Reads env vars declared in field metadata and applies them as overrides.

        Raises:
            ConfigEnvVarError: If an env var has an invalid value.
        """
        overrides: dict[str, Any] = {}
        for f in fields(self):
            env_var = f.metadata.get("env")
            if env_var:
                value = EnvVars.get(
                    var_name=env_var,
                    type_hint=f.type,
                    converter=f.metadata.get("converter"),
                )
                if value is not None:
                    overrides[f.name] = value
        return self.with_overrides(overrides)


# =============================================================================
# Benchmark Configuration
# =============================================================================


def _to_strategy_kind(value: str) -> StrategyKind:
    return StrategyKind(value.strip().lower())


def _is_integer(value: Any) -> bool:
    # bool is an int subclass but never a valid count
    return isinstance(value, int) and not isinstance(value, bool)


def _is_real(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


@dataclass(frozen=True)
class BenchmarkConfig(OverridableConfig):
    """
    Configuration of a single benchmark run.

    All delays are expressed in seconds.

    Attributes:
        count: Number of units to process. Must be greater than 0.
            Env var: IOBENCH_COUNT

        retrieve_delay: Simulated retrieval latency paid by every unit.
            Env var: IOBENCH_RETRIEVE_DELAY

        rate_limit_delay: Minimum spacing between two consecutive admissions
            through the shared rate limiter. 0 disables rate limiting.
            Env var: IOBENCH_RATE_LIMIT_DELAY

        strategy: Concurrency model used to drain the units.
            Env var: IOBENCH_STRATEGY

        worker_count: Number of worker threads for the threaded strategy.
            None means the number of CPUs reported by the platform.
            Ignored by the other strategies.
            Env var: IOBENCH_WORKER_COUNT

        skip: Number of units already processed by a previous run. They are
            reported as skipped and never executed.
            Env var: IOBENCH_SKIP

        auth_delay: One-off authentication latency, paid by the unit at index 0.
            Env var: IOBENCH_AUTH_DELAY

        write_delay: Latency of writing each populated record, paid by every unit
            after retrieval.
            Env var: IOBENCH_WRITE_DELAY

    Example:
        >>> config = BenchmarkConfig(count=5, retrieve_delay=0.01)
        >>> config.with_overrides({"strategy": StrategyKind.COOPERATIVE}).strategy
        <StrategyKind.COOPERATIVE: 'cooperative'>
    """

    count: int = field(default=1, metadata={"env": "IOBENCH_COUNT"})
    retrieve_delay: float = field(default=0.0, metadata={"env": "IOBENCH_RETRIEVE_DELAY"})
    rate_limit_delay: float = field(default=0.0, metadata={"env": "IOBENCH_RATE_LIMIT_DELAY"})
    strategy: StrategyKind = field(
        default=StrategyKind.SEQUENTIAL,
        metadata={"env": "IOBENCH_STRATEGY", "converter": _to_strategy_kind},
    )
    worker_count: int | None = field(default=None, metadata={"env": "IOBENCH_WORKER_COUNT"})
    skip: int = field(default=0, metadata={"env": "IOBENCH_SKIP"})
    auth_delay: float = field(default=0.0, metadata={"env": "IOBENCH_AUTH_DELAY"})
    write_delay: float = field(default=0.0, metadata={"env": "IOBENCH_WRITE_DELAY"})

    def __post_init__(self) -> None:
        # Accept strategy names as plain strings (e.g. "threaded").
        # Unknown names are kept as-is so validate() can report them.
        if isinstance(self.strategy, str) and not isinstance(self.strategy, StrategyKind):
            try:
                object.__setattr__(self, "strategy", _to_strategy_kind(self.strategy))
            except ValueError:
                pass

    def resolved_worker_count(self) -> int:
        """
        Effective degree of parallelism for this run.

        Returns:
            The configured worker_count (or the platform CPU count when unset)
            for the threaded strategy, and 1 for the single-threaded strategies.
        """
        if self.strategy != StrategyKind.THREADED:
            return 1
        if self.worker_count is None:
            return os.cpu_count() or 1
        return self.worker_count

    def validate(self) -> Self:
        """
        Validate benchmark configuration fields.

        Raises:
            InvalidConfigurationError: If any field holds an invalid value.
        """
        if not isinstance(self.strategy, StrategyKind):
            raise InvalidConfigurationError(
                "strategy", self.strategy,
                f"Must be one of: {tuple(str(k) for k in StrategyKind)}."
            )
        for name in ("count", "skip"):
            value = getattr(self, name)
            if not _is_integer(value):
                raise InvalidConfigurationError(
                    name, value,
                    "Must be an integer."
                )
        if self.count <= 0:
            raise InvalidConfigurationError(
                "count", self.count,
                "Must be greater than 0."
            )
        for name in ("retrieve_delay", "rate_limit_delay", "auth_delay", "write_delay"):
            value = getattr(self, name)
            if not _is_real(value) or not math.isfinite(value) or value < 0:
                raise InvalidConfigurationError(
                    name, value,
                    "Must be a finite number >= 0."
                )
        if self.skip < 0 or self.skip > self.count:
            raise InvalidConfigurationError(
                "skip", self.skip,
                f"Must be between 0 and count ({self.count})."
            )
        if self.strategy == StrategyKind.THREADED and self.worker_count is not None:
            if not _is_integer(self.worker_count) or self.worker_count <= 0:
                raise InvalidConfigurationError(
                    "worker_count", self.worker_count,
                    "Must be an integer greater than 0 for the threaded strategy."
                )
        return self
