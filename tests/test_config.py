"""Tests for benchmark configuration module."""

import math
import os
import unittest
from unittest.mock import patch

from iobench._config import (
    BenchmarkConfig,
    ConfigEnvVarError,
    EnvVars,
    InvalidConfigurationError,
    StrategyKind,
)


class TestDefaults(unittest.TestCase):
    """Tests for default configuration values."""

    def test_defaults(self):
        """Should return small, side-effect free defaults."""
        config = BenchmarkConfig()
        self.assertEqual(config.count, 1)
        self.assertEqual(config.retrieve_delay, 0.0)
        self.assertEqual(config.rate_limit_delay, 0.0)
        self.assertEqual(config.strategy, StrategyKind.SEQUENTIAL)
        self.assertIsNone(config.worker_count)
        self.assertEqual(config.skip, 0)
        self.assertEqual(config.auth_delay, 0.0)
        self.assertEqual(config.write_delay, 0.0)

    def test_defaults_are_valid(self):
        """Default configuration should pass validation."""
        config = BenchmarkConfig()
        self.assertIs(config.validate(), config)

    def test_config_is_immutable(self):
        """Should not allow mutation of a frozen config."""
        from dataclasses import FrozenInstanceError

        config = BenchmarkConfig()
        with self.assertRaises(FrozenInstanceError):
            config.count = 10  # type: ignore[misc]


class TestStrategyKind(unittest.TestCase):
    """Tests for strategy name handling."""

    def test_accepts_strategy_name_as_string(self):
        """Should convert plain strings to StrategyKind."""
        config = BenchmarkConfig(strategy="threaded")  # type: ignore[arg-type]
        self.assertIs(config.strategy, StrategyKind.THREADED)

    def test_strategy_name_is_case_insensitive(self):
        """Should accept upper-case strategy names."""
        config = BenchmarkConfig(strategy="COOPERATIVE")  # type: ignore[arg-type]
        self.assertIs(config.strategy, StrategyKind.COOPERATIVE)

    def test_unknown_strategy_is_reported_by_validate(self):
        """Unknown names are kept as-is and rejected by validate()."""
        config = BenchmarkConfig(strategy="multiprocess")  # type: ignore[arg-type]
        with self.assertRaises(InvalidConfigurationError) as ctx:
            config.validate()
        self.assertEqual(ctx.exception.field, "strategy")

    def test_str_returns_value(self):
        """str() should return the plain strategy name."""
        self.assertEqual(str(StrategyKind.SEQUENTIAL), "sequential")


class TestWithOverrides(unittest.TestCase):
    """Tests for with_overrides()."""

    def test_overrides_fields(self):
        """Should return a new instance with the given fields replaced."""
        config = BenchmarkConfig()
        custom = config.with_overrides({"count": 50, "retrieve_delay": 0.05})

        self.assertEqual(custom.count, 50)
        self.assertEqual(custom.retrieve_delay, 0.05)
        self.assertEqual(config.count, 1)  # source instance untouched

    def test_ignores_none_values(self):
        """None values should not override existing values."""
        config = BenchmarkConfig(count=10)
        custom = config.with_overrides({"count": None, "skip": 2})

        self.assertEqual(custom.count, 10)
        self.assertEqual(custom.skip, 2)

    def test_empty_overrides_return_same_instance(self):
        """Empty overrides should return the same instance."""
        config = BenchmarkConfig()
        self.assertIs(config.with_overrides({}), config)

    def test_rejects_unknown_fields(self):
        """Should raise ValueError on typos."""
        with self.assertRaises(ValueError) as ctx:
            BenchmarkConfig().with_overrides({"cuont": 10})
        self.assertIn("Unknown config fields", str(ctx.exception))

    def test_strategy_string_override(self):
        """Should convert strategy strings passed as overrides."""
        custom = BenchmarkConfig().with_overrides({"strategy": "cooperative"})
        self.assertIs(custom.strategy, StrategyKind.COOPERATIVE)


class TestEnvVars(unittest.TestCase):
    """Tests for environment variable layering."""

    @patch.dict(os.environ, {"IOBENCH_COUNT": "50"})
    def test_int_env_var(self):
        """Should convert env var string to int."""
        self.assertEqual(BenchmarkConfig().with_env_vars().count, 50)

    @patch.dict(os.environ, {"IOBENCH_RETRIEVE_DELAY": "0.05"})
    def test_float_env_var(self):
        """Should convert env var string to float."""
        self.assertEqual(BenchmarkConfig().with_env_vars().retrieve_delay, 0.05)

    @patch.dict(os.environ, {"IOBENCH_STRATEGY": "threaded", "IOBENCH_WORKER_COUNT": "16"})
    def test_strategy_and_worker_count_env_vars(self):
        """Should read strategy and optional worker count from env vars."""
        config = BenchmarkConfig().with_env_vars()
        self.assertIs(config.strategy, StrategyKind.THREADED)
        self.assertEqual(config.worker_count, 16)

    @patch.dict(os.environ, {"IOBENCH_COUNT": ""})
    def test_empty_env_var_is_ignored(self):
        """Empty env vars should fall back to the default."""
        self.assertEqual(BenchmarkConfig().with_env_vars().count, 1)

    @patch.dict(os.environ, {"IOBENCH_COUNT": "fifty"})
    def test_invalid_env_var_raises(self):
        """Should raise ConfigEnvVarError for unparsable values."""
        with self.assertRaises(ConfigEnvVarError) as ctx:
            BenchmarkConfig().with_env_vars()
        self.assertEqual(ctx.exception.env_var, "IOBENCH_COUNT")
        self.assertEqual(ctx.exception.value, "fifty")

    @patch.dict(os.environ, {"IOBENCH_STRATEGY": "fibers"})
    def test_invalid_strategy_env_var_raises(self):
        """Should raise ConfigEnvVarError for unknown strategy names."""
        with self.assertRaises(ConfigEnvVarError):
            BenchmarkConfig().with_env_vars()

    @patch.dict(os.environ, {"IOBENCH_COUNT": "50"})
    def test_overrides_win_over_env_vars(self):
        """Explicit overrides should take precedence over env vars."""
        config = BenchmarkConfig().with_env_vars().with_overrides({"count": 7})
        self.assertEqual(config.count, 7)

    def test_env_vars_get_returns_none_when_unset(self):
        """EnvVars.get should return None for undefined variables."""
        with patch.dict(os.environ, {}, clear=True):
            self.assertIsNone(EnvVars.get("IOBENCH_UNDEFINED", type_hint=int))


class TestValidation(unittest.TestCase):
    """Tests for validate()."""

    def assert_invalid(self, field: str, **kwargs):
        with self.assertRaises(InvalidConfigurationError) as ctx:
            BenchmarkConfig(**kwargs).validate()
        self.assertEqual(ctx.exception.field, field)
        self.assertIsInstance(ctx.exception, ValueError)
        return ctx.exception

    def test_count_zero_is_invalid(self):
        """count=0 should be rejected."""
        error = self.assert_invalid("count", count=0)
        self.assertEqual(error.value, 0)
        self.assertIn("greater than 0", str(error))

    def test_negative_count_is_invalid(self):
        self.assert_invalid("count", count=-3)

    def test_negative_retrieve_delay_is_invalid(self):
        self.assert_invalid("retrieve_delay", retrieve_delay=-0.1)

    def test_negative_rate_limit_delay_is_invalid(self):
        self.assert_invalid("rate_limit_delay", rate_limit_delay=-0.1)

    def test_negative_auth_and_write_delays_are_invalid(self):
        self.assert_invalid("auth_delay", auth_delay=-1.0)
        self.assert_invalid("write_delay", write_delay=-1.0)

    def test_non_finite_delays_are_invalid(self):
        """NaN and infinity are rejected before any work starts."""
        for name in ("retrieve_delay", "rate_limit_delay", "auth_delay", "write_delay"):
            for value in (math.nan, math.inf, -math.inf):
                with self.subTest(field=name, value=value):
                    error = self.assert_invalid(name, count=2, **{name: value})
                    self.assertIn("finite", str(error))

    def test_non_numeric_delay_is_invalid(self):
        self.assert_invalid("retrieve_delay", retrieve_delay="0.05")

    def test_non_integer_count_is_invalid(self):
        """A count that is not an int is reported, not a TypeError."""
        self.assert_invalid("count", count="5")
        self.assert_invalid("count", count=2.5)
        self.assert_invalid("count", count=True)

    def test_non_integer_skip_is_invalid(self):
        self.assert_invalid("skip", count=5, skip="1")
        self.assert_invalid("skip", count=5, skip=None)

    def test_non_integer_workers_invalid_for_threaded(self):
        self.assert_invalid("worker_count", strategy=StrategyKind.THREADED, worker_count="4")

    def test_skip_out_of_range_is_invalid(self):
        """skip must be within 0..count."""
        self.assert_invalid("skip", count=5, skip=6)
        self.assert_invalid("skip", count=5, skip=-1)

    def test_skip_equal_to_count_is_valid(self):
        """All records may already be processed."""
        BenchmarkConfig(count=5, skip=5).validate()

    def test_zero_workers_invalid_for_threaded(self):
        """worker_count <= 0 should be rejected for the threaded strategy."""
        self.assert_invalid("worker_count", strategy=StrategyKind.THREADED, worker_count=0)
        self.assert_invalid("worker_count", strategy=StrategyKind.THREADED, worker_count=-2)

    def test_worker_count_ignored_for_single_threaded_strategies(self):
        """worker_count is only validated for the threaded strategy."""
        BenchmarkConfig(strategy=StrategyKind.SEQUENTIAL, worker_count=0).validate()
        BenchmarkConfig(strategy=StrategyKind.COOPERATIVE, worker_count=0).validate()


class TestResolvedWorkerCount(unittest.TestCase):
    """Tests for resolved_worker_count()."""

    def test_single_threaded_strategies_use_one_worker(self):
        self.assertEqual(BenchmarkConfig(strategy=StrategyKind.SEQUENTIAL, worker_count=8).resolved_worker_count(), 1)
        self.assertEqual(BenchmarkConfig(strategy=StrategyKind.COOPERATIVE).resolved_worker_count(), 1)

    def test_threaded_uses_configured_worker_count(self):
        config = BenchmarkConfig(strategy=StrategyKind.THREADED, worker_count=12)
        self.assertEqual(config.resolved_worker_count(), 12)

    @patch("iobench._config.os.cpu_count", return_value=6)
    def test_threaded_defaults_to_cpu_count(self, _mock_cpu_count):
        """Unset worker_count should resolve to the platform CPU count."""
        config = BenchmarkConfig(strategy=StrategyKind.THREADED)
        self.assertEqual(config.resolved_worker_count(), 6)

    @patch("iobench._config.os.cpu_count", return_value=None)
    def test_threaded_falls_back_to_one_worker(self, _mock_cpu_count):
        """Should fall back to 1 when the platform cannot tell."""
        config = BenchmarkConfig(strategy=StrategyKind.THREADED)
        self.assertEqual(config.resolved_worker_count(), 1)


if __name__ == "__main__":
    unittest.main()
