# src/trajsim_core/simulation/outputs.py
"""
Composes derived output signals onto raw simulator trajectories.

Each `OutputGenerator` reads some signals and parameters, and writes the rows of
the signals it declares. Generators run in list order on the full signal matrix
(raw states followed by output rows), so a later generator may read what an
earlier one produced. A transform may also return a new time grid, in which case
every row already present is linearly interpolated onto it.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence, Tuple, TYPE_CHECKING

import numpy as np

from .exceptions import OutputSignalError

if TYPE_CHECKING:
    from ..system import SystemDefinition

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OutputGenerator:
    """
    A named transform producing derived signals.

    Attributes:
        signals_in: Names of the signals passed to `transform`, in order.
        params: Names of the simulation parameters passed to `transform`, in order.
        signals_out: Names of the signals the transform writes.
        transform: `transform(time, x_in, p_in)` returning either the
                   (len(signals_out), len(time)) rows, or a tuple `(new_time, rows)`.
        name: Label used in diagnostics. Defaults to the output signal names.
    """
    signals_in: Tuple[str, ...]
    params: Tuple[str, ...]
    signals_out: Tuple[str, ...]
    transform: Callable[[np.ndarray, np.ndarray, np.ndarray], object]
    name: Optional[str] = None

    def __post_init__(self):
        for attr in ("signals_in", "params", "signals_out"):
            value = getattr(self, attr)
            object.__setattr__(self, attr, (value,) if isinstance(value, str) else tuple(value))
        if self.name is None:
            object.__setattr__(self, "name", ",".join(self.signals_out))

    def resolve(self, system: "SystemDefinition") -> Tuple[List[int], List[int], List[int]]:
        """Row and parameter indices of this generator in `system`. Raises UnknownNameError."""
        return (
            system.find_signals(self.signals_in),
            system.find_params(self.params),
            system.find_signals(self.signals_out),
        )


def validate_generators(system: "SystemDefinition", generators: Optional[Sequence[OutputGenerator]] = None) -> None:
    """Resolves every generator's names once, so unknown names fail before any dispatch."""
    for gen in system.output_generators if generators is None else generators:
        gen.resolve(system)


def _resample(time: np.ndarray, full: np.ndarray, new_time: np.ndarray) -> np.ndarray:
    if time.size == 0 or full.shape[0] == 0:
        return np.full((full.shape[0], new_time.size), np.nan)
    return np.vstack([np.interp(new_time, time, row) for row in full]).reshape(full.shape[0], new_time.size)


def compose_outputs(
    system: "SystemDefinition",
    time: np.ndarray,
    state: np.ndarray,
    param_vector: np.ndarray,
    generators: Optional[Sequence[OutputGenerator]] = None,
) -> Tuple[np.ndarray, np.ndarray]:
    """
    Builds the full `(dim_x, len(time))` signal matrix of a trajectory.

    The raw state occupies the leading rows; output rows not written by any
    generator stay NaN.

    Returns:
        The (possibly resampled) time vector and the full signal matrix.

    Raises:
        OutputSignalError: If a transform raises or returns data of the wrong shape.
    """
    generators = system.output_generators if generators is None else tuple(generators)
    time = np.asarray(time, dtype=float).ravel()
    state = np.asarray(state, dtype=float)
    if state.ndim == 1:
        state = state.reshape(1, -1)
    param_vector = np.asarray(param_vector, dtype=float).ravel()

    full = np.full((system.dim_x, time.size), np.nan)
    full[:state.shape[0]] = state
    if not generators:
        return time, full

    for gen in generators:
        in_idx, p_idx, out_idx = gen.resolve(system)
        try:
            result = gen.transform(time, full[in_idx], param_vector[p_idx])
        except Exception as e:
            raise OutputSignalError(generator=gen.name, details=f"{type(e).__name__}: {e}") from e

        if isinstance(result, tuple):
            if len(result) != 2:
                raise OutputSignalError(generator=gen.name, details="A transform tuple must be (time, rows).")
            new_time, rows = result
            new_time = np.asarray(new_time, dtype=float).ravel()
            if new_time.size != time.size or not np.array_equal(new_time, time):
                if new_time.size > 1 and np.any(np.diff(new_time) <= 0):
                    raise OutputSignalError(generator=gen.name, details="A resampled time grid must be strictly increasing.")
                logger.debug(f"Output generator '{gen.name}' resampled time from {time.size} to {new_time.size} sample(s).")
                full = _resample(time, full, new_time)
                time = new_time
        else:
            rows = result

        rows = np.asarray(rows, dtype=float)
        if rows.ndim == 1 and len(out_idx) == 1:
            rows = rows.reshape(1, -1)
        if rows.shape != (len(out_idx), time.size):
            raise OutputSignalError(
                generator=gen.name,
                details=f"Transform returned rows of shape {rows.shape}; expected ({len(out_idx)}, {time.size}).",
            )
        full[out_idx] = rows
    return time, full
