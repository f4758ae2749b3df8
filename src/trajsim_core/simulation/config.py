# src/trajsim_core/simulation/config.py
"""
Explicit configuration of trajectory computations.

`SchedulerConfig` carries the scheduler options as a typed, immutable value.
`load_run_config` reads the same options, plus a time span and the cache
location, from a YAML run file validated against a Cerberus schema. Time
values accept Pint unit literals such as '250 ms'.
"""
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional, Union

import cerberus
import numpy as np
import pint
import yaml

from ..cache import DiskTrajectoryCache, NullTrajectoryCache, TrajectoryCache
from ..data_structures import TimeSpan
from ..errors import DiagnosableError, TimeSpanError, format_diagnostic_report
from ..units import to_seconds

logger = logging.getLogger(__name__)

POOL_TYPES = ("thread", "process")


class ConfigParsingError(DiagnosableError, ValueError):
    """Raised when a run configuration or a time span literal cannot be parsed."""

    def __init__(self, details: str, source_file: Optional[Union[str, Path]] = None):
        super().__init__(details)
        self.details = details
        self.source_file = source_file

    def get_diagnostic_report(self) -> str:
        return format_diagnostic_report(
            error_type="Configuration Parsing Error",
            details=self.details,
            suggestion="Check the run configuration against the documented layout: "
                       "'scheduler', 'time_span' and 'cache' sections, with time values in seconds or as unit literals.",
            context={'source_file': str(self.source_file) if self.source_file else None}
        )


@dataclass(frozen=True)
class SchedulerConfig:
    """
    Options of the simulation scheduler.

    Attributes:
        verbose: Log progress while more than one vector is being computed.
        parallel: Dispatch simulations to a worker pool.
        max_workers: Pool size; None lets `concurrent.futures` decide.
        pool_type: "thread" or "process". Process pools require a picklable system.
    """
    verbose: bool = True
    parallel: bool = False
    max_workers: Optional[int] = None
    pool_type: str = "thread"

    def __post_init__(self):
        if self.pool_type not in POOL_TYPES:
            raise ConfigParsingError(f"pool_type must be one of {POOL_TYPES}, got '{self.pool_type}'.")
        if self.max_workers is not None and self.max_workers < 1:
            raise ConfigParsingError(f"max_workers must be at least 1, got {self.max_workers}.")


def parse_time_span(raw: Union[Dict[str, Any], list, tuple, float, int]) -> TimeSpan:
    """
    Parses a time span given as a mapping or a plain list into a `TimeSpan` in seconds.

    Accepted forms:
        {start, stop}               -> the interval [start, stop]
        {start, stop, num_points}   -> `num_points` evenly spaced sample times
        {points: [...]}             -> explicit sample times
        [t0, t1, ...] or tf         -> as for `TimeSpan.coerce`
    """
    try:
        if isinstance(raw, dict):
            if "points" in raw:
                values = [to_seconds(p) for p in raw["points"]]
            else:
                start = to_seconds(raw.get("start", 0.0))
                stop = to_seconds(raw["stop"])
                num_points = raw.get("num_points")
                if num_points is None:
                    values = [start, stop]
                else:
                    if int(num_points) < 2:
                        raise ValueError(f"num_points must be at least 2, got {num_points}.")
                    values = np.linspace(start, stop, int(num_points))
            return TimeSpan(np.asarray(values, dtype=float))
        if isinstance(raw, (list, tuple)):
            return TimeSpan(np.asarray([to_seconds(v) for v in raw], dtype=float))
        return TimeSpan.coerce(to_seconds(raw))
    except (KeyError, TypeError, ValueError, TimeSpanError,
            pint.DimensionalityError, pint.UndefinedUnitError) as e:
        raise ConfigParsingError(f"Failed to parse time span {raw!r}: {e}") from e


_TIME_VALUE = {"type": ["string", "number"]}

_RUN_SCHEMA = {
    "scheduler": {
        "type": "dict", "required": False, "schema": {
            "verbose": {"type": "boolean"},
            "parallel": {"type": "boolean"},
            "max_workers": {"type": "integer", "min": 1, "nullable": True},
            "pool_type": {"type": "string", "allowed": list(POOL_TYPES)},
        },
    },
    "time_span": {
        "type": ["dict", "list", "number", "string"], "required": False,
    },
    "cache": {
        "type": "dict", "required": False, "schema": {
            "directory": {"type": "string", "required": True},
            "lazy_load": {"type": "boolean"},
        },
    },
}


@dataclass(frozen=True)
class RunConfig:
    """A fully parsed run configuration."""
    scheduler: SchedulerConfig = field(default_factory=SchedulerConfig)
    time_span: Optional[TimeSpan] = None
    cache_dir: Optional[Path] = None
    lazy_load: bool = False

    def create_cache(self) -> TrajectoryCache:
        """The explicit cache handle for this run: on disk if a directory is configured."""
        if self.cache_dir is None:
            return NullTrajectoryCache()
        return DiskTrajectoryCache(self.cache_dir, lazy_load=self.lazy_load)


def load_run_config(path: Union[str, Path]) -> RunConfig:
    """
    Loads and validates a YAML run configuration. A relative cache directory is
    resolved against the directory of the configuration file.

    Raises:
        ConfigParsingError: For unreadable files, invalid YAML, schema violations
                            and unparsable time values.
    """
    source = Path(path)
    try:
        with open(source, 'r', encoding='utf-8') as f:
            content = yaml.safe_load(f)
    except FileNotFoundError as e:
        raise ConfigParsingError(f"Run configuration file not found: {source}", source_file=source) from e
    except OSError as e:
        raise ConfigParsingError(f"Cannot read run configuration: {e}", source_file=source) from e
    except yaml.YAMLError as e:
        raise ConfigParsingError(f"Invalid YAML syntax: {e}", source_file=source) from e

    content = content or {}
    validator = cerberus.Validator(_RUN_SCHEMA)
    if not isinstance(content, dict) or not validator.validate(content):
        errors = validator.errors if isinstance(content, dict) else "top level must be a mapping"
        raise ConfigParsingError(f"Run configuration failed schema validation: {errors}", source_file=source)

    try:
        scheduler = SchedulerConfig(**content.get("scheduler", {}))
    except ConfigParsingError as e:
        raise ConfigParsingError(e.details, source_file=source) from e
    time_span = None
    if content.get("time_span") is not None:
        try:
            time_span = parse_time_span(content["time_span"])
        except ConfigParsingError as e:
            raise ConfigParsingError(e.details, source_file=source) from e

    cache_dir, lazy_load = None, False
    if "cache" in content:
        cache_dir = Path(content["cache"]["directory"])
        if not cache_dir.is_absolute():
            cache_dir = source.parent / cache_dir
        lazy_load = bool(content["cache"].get("lazy_load", False))

    logger.info(f"Loaded run configuration from '{source}' (parallel={scheduler.parallel}, cache_dir={cache_dir}).")
    return RunConfig(scheduler=scheduler, time_span=time_span, cache_dir=cache_dir, lazy_load=lazy_load)
