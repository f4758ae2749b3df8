# tests/test_config.py
import textwrap

import numpy as np
import pytest

from trajsim_core.cache import DiskTrajectoryCache, NullTrajectoryCache
from trajsim_core.simulation import ConfigParsingError, SchedulerConfig, load_run_config, parse_time_span


def _write(tmp_path, text):
    path = tmp_path / "run.yaml"
    path.write_text(textwrap.dedent(text))
    return path


class TestParseTimeSpan:

    def test_interval_with_units(self):
        span = parse_time_span({"start": "0 s", "stop": "250 ms"})
        np.testing.assert_allclose(span.values, [0.0, 0.25])
        assert span.is_interval

    def test_evenly_spaced_samples(self):
        span = parse_time_span({"stop": "2 min", "num_points": 5})
        np.testing.assert_allclose(span.values, [0.0, 30.0, 60.0, 90.0, 120.0])

    def test_explicit_points_and_plain_numbers(self):
        span = parse_time_span({"points": [0, "1 ms", 0.5]})
        np.testing.assert_allclose(span.values, [0.0, 0.001, 0.5])
        assert parse_time_span(3).stop == 3.0

    @pytest.mark.parametrize("raw", [
        {"start": 0, "stop": "5 m"},
        {"start": 0, "stop": "5 blargs"},
        {"points": [1.0, 0.5]},
        {"start": 0, "stop": 1, "num_points": 1},
        {"start": 0},
    ])
    def test_invalid_time_spans(self, raw):
        with pytest.raises(ConfigParsingError):
            parse_time_span(raw)


class TestSchedulerConfig:

    def test_defaults(self):
        config = SchedulerConfig()
        assert config.verbose and not config.parallel
        assert config.pool_type == "thread"

    def test_invalid_pool_type(self):
        with pytest.raises(ConfigParsingError, match="pool_type"):
            SchedulerConfig(pool_type="gpu")


class TestLoadRunConfig:

    def test_full_configuration(self, tmp_path):
        path = _write(tmp_path, """
            scheduler:
              parallel: true
              max_workers: 4
              pool_type: process
              verbose: false
            time_span:
              start: 0 s
              stop: 10 ms
              num_points: 11
            cache:
              directory: traj_cache
              lazy_load: true
        """)
        run = load_run_config(path)

        assert run.scheduler == SchedulerConfig(verbose=False, parallel=True, max_workers=4, pool_type="process")
        assert len(run.time_span) == 11
        assert run.cache_dir == tmp_path / "traj_cache"
        cache = run.create_cache()
        assert isinstance(cache, DiskTrajectoryCache)
        assert cache.lazy_load

    def test_empty_file_gives_defaults(self, tmp_path):
        run = load_run_config(_write(tmp_path, ""))

        assert run.scheduler == SchedulerConfig()
        assert run.time_span is None
        assert isinstance(run.create_cache(), NullTrajectoryCache)

    def test_schema_violation(self, tmp_path):
        path = _write(tmp_path, """
            scheduler:
              pool_type: gpu
        """)
        with pytest.raises(ConfigParsingError, match="schema") as exc_info:
            load_run_config(path)
        assert "run.yaml" in exc_info.value.get_diagnostic_report()

    def test_invalid_yaml(self, tmp_path):
        with pytest.raises(ConfigParsingError, match="YAML"):
            load_run_config(_write(tmp_path, "scheduler: [unclosed"))

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigParsingError, match="not found"):
            load_run_config(tmp_path / "absent.yaml")
