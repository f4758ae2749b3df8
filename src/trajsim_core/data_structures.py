# src/trajsim_core/data_structures.py
"""
Defines the immutable value types shared by every part of the trajectory engine:
the `TimeSpan` of a computation and the `TrajectoryRecord` it produces.

These objects travel between the scheduler, the cache and the parameter set.
Their arrays are stored read-only so that a record, once created or loaded from
the cache, cannot be modified by a downstream consumer.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Sequence, Tuple, Union

import numpy as np

from .errors import TimeSpanError

logger = logging.getLogger(__name__)


def _frozen_array(values: Any, dtype=float) -> np.ndarray:
    """Returns a read-only, C-contiguous copy of `values`."""
    arr = np.array(values, dtype=dtype, copy=True, order="C")
    arr.setflags(write=False)
    return arr


def arrays_bitwise_equal(a: np.ndarray, b: np.ndarray) -> bool:
    """
    Exact equality of two float arrays: same shape and identical bit patterns.
    Unlike `np.array_equal`, NaNs with identical payloads compare equal and
    -0.0 differs from 0.0.
    """
    a = np.ascontiguousarray(a, dtype=np.float64)
    b = np.ascontiguousarray(b, dtype=np.float64)
    return a.shape == b.shape and a.tobytes() == b.tobytes()


TimeSpanLike = Union["TimeSpan", Sequence[float], np.ndarray, float, int]


@dataclass(frozen=True, eq=False)
class TimeSpan:
    """
    The simulation horizon of a trajectory computation.

    Two values `[t0, tf]` let the solver choose its own sampling; three or more
    values are the explicit, strictly increasing sample times the trajectory must
    be reported at.

    Equality is exact: two time spans are equal only if they have the same length
    and bitwise-identical float64 values. No tolerance is applied.
    """
    values: np.ndarray

    def __post_init__(self):
        arr = np.asarray(self.values, dtype=float).ravel()
        if arr.size < 2:
            raise TimeSpanError("A time span needs at least two values.", user_input=self.values)
        if not np.all(np.isfinite(arr)):
            raise TimeSpanError("Time span values must be finite.", user_input=self.values)
        if np.any(np.diff(arr) <= 0):
            raise TimeSpanError("Time span values must be strictly increasing.", user_input=self.values)
        object.__setattr__(self, "values", _frozen_array(arr))

    @classmethod
    def coerce(cls, obj: TimeSpanLike) -> "TimeSpan":
        """
        Builds a TimeSpan from an existing TimeSpan, a sequence of times, or a
        single final time `tf` (meaning the interval `[0, tf]`).
        """
        if isinstance(obj, TimeSpan):
            return obj
        if obj is None:
            raise TimeSpanError("No time span was given and the system defines no default.", user_input=obj)
        if np.isscalar(obj):
            return cls(np.array([0.0, float(obj)]))
        return cls(np.asarray(obj, dtype=float))

    @property
    def is_interval(self) -> bool:
        """True when the solver chooses the sampling between `t0` and `tf`."""
        return self.values.size == 2

    @property
    def start(self) -> float:
        return float(self.values[0])

    @property
    def stop(self) -> float:
        return float(self.values[-1])

    def canonical(self) -> Tuple[str, ...]:
        """Exact, platform-independent encoding of the values, for cache digests."""
        return tuple(float(v).hex() for v in self.values)

    def __eq__(self, other):
        if not isinstance(other, TimeSpan):
            return NotImplemented
        return arrays_bitwise_equal(self.values, other.values)

    def __hash__(self):
        return hash(self.canonical())

    def __len__(self):
        return int(self.values.size)

    def __repr__(self):
        if self.is_interval:
            return f"TimeSpan([{self.start!r}, {self.stop!r}])"
        return f"TimeSpan({self.values.size} samples in [{self.start!r}, {self.stop!r}])"


@dataclass(frozen=True, eq=False)
class TrajectoryRecord:
    """
    A time-sampled record of a simulated system for one parameter vector.

    Attributes:
        time: 1D array of strictly increasing timestamps.
        state: 2D array indexed `[signal][time]`, raw states followed by derived outputs.
        parameters: The simulation-relevant parameter vector the record was computed from.
        status: Solver status code. `0` denotes success; see `constants` for the
                codes recorded by the engine itself.
    """
    time: np.ndarray
    state: np.ndarray
    parameters: np.ndarray
    status: int = 0

    def __post_init__(self):
        object.__setattr__(self, "time", _frozen_array(np.asarray(self.time, dtype=float).ravel()))
        state = np.asarray(self.state, dtype=float)
        if state.ndim == 1:
            state = state.reshape(1, -1)
        object.__setattr__(self, "state", _frozen_array(state))
        object.__setattr__(self, "parameters", _frozen_array(np.asarray(self.parameters, dtype=float).ravel()))
        object.__setattr__(self, "status", int(self.status))

    @property
    def final_state(self) -> np.ndarray:
        """The last state sample, or a NaN vector when the trajectory holds no samples."""
        if self.state.shape[1] == 0:
            return np.full(self.state.shape[0], np.nan)
        return np.array(self.state[:, -1])

    @property
    def succeeded(self) -> bool:
        return self.status == 0

    def with_parameters(self, parameters: np.ndarray) -> "TrajectoryRecord":
        """Returns a copy of this record attributed to another parameter vector."""
        return TrajectoryRecord(time=self.time, state=self.state, parameters=parameters, status=self.status)

    def equals(self, other: Any) -> bool:
        """Bit-identical comparison with another record or lazily loaded record."""
        return (
            int(self.status) == int(other.status)
            and arrays_bitwise_equal(self.time, other.time)
            and arrays_bitwise_equal(self.state, other.state)
            and arrays_bitwise_equal(self.parameters, other.parameters)
        )

    def __repr__(self):
        return (f"TrajectoryRecord(signals={self.state.shape[0]}, samples={self.time.size}, "
                f"status={self.status})")
