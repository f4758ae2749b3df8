# src/trajsim_core/simulation/input_signal.py
import logging
from dataclasses import dataclass
from typing import Any, Mapping, Optional

import numpy as np

from .exceptions import InputSignalError

logger = logging.getLogger(__name__)


@dataclass(frozen=True, eq=False)
class InputSignal:
    """
    A piecewise-constant input schedule that makes some parameters time dependent.

    Between `time[k]` and `time[k + 1]`, parameter `params_idx[j]` takes the value
    `values[j, k]`; after the last change time it keeps its last value.

    Attributes:
        params_idx: Positions, within the simulation parameter vector, of the driven parameters.
        time: Times at which the inputs change, strictly increasing.
        values: (len(params_idx), len(time)) array of input values.
    """
    params_idx: np.ndarray
    time: np.ndarray
    values: np.ndarray

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any]) -> "InputSignal":
        """Builds an input signal from a mapping with keys 'params_idx', 'time' and 'values'."""
        if not isinstance(raw, Mapping):
            raise InputSignalError(field_name="<root>", details=f"An input signal must be a mapping, got {type(raw).__name__}.")
        for key in ("params_idx", "time", "values"):
            if key not in raw:
                raise InputSignalError(field_name=key, details=f"Missing field '{key}'.")
        return cls(params_idx=raw["params_idx"], time=raw["time"], values=raw["values"])

    def __post_init__(self):
        idx = np.asarray(self.params_idx).ravel()
        if idx.size and not np.issubdtype(idx.dtype, np.integer):
            raise InputSignalError(field_name="params_idx", details="Parameter indices must be integers.")
        time = np.asarray(self.time, dtype=float).ravel()
        values = np.asarray(self.values, dtype=float)
        if values.ndim == 1:
            values = values.reshape(1, -1) if idx.size == 1 else values.reshape(-1, 1)
        object.__setattr__(self, "params_idx", idx.astype(np.intp))
        object.__setattr__(self, "time", time)
        object.__setattr__(self, "values", values)

    def validate(self, dim_p: Optional[int] = None) -> None:
        """
        Checks the consistency of the schedule, and that every driven parameter
        exists when the parameter dimension `dim_p` is given.

        Raises:
            InputSignalError: Naming the specific mismatched field.
        """
        if self.params_idx.size != self.values.shape[0]:
            raise InputSignalError(
                field_name="params_idx",
                details=f"numel(params_idx)={self.params_idx.size} must equal the number of rows of values "
                        f"({self.values.shape[0]}).",
            )
        if self.time.size != self.values.shape[1]:
            raise InputSignalError(
                field_name="time",
                details=f"numel(time)={self.time.size} must equal the number of columns of values "
                        f"({self.values.shape[1]}).",
            )
        if self.time.size and np.any(np.diff(self.time) <= 0):
            raise InputSignalError(field_name="time", details="Input change times must be strictly increasing.")
        if not np.all(np.isfinite(self.values)):
            raise InputSignalError(field_name="values", details="Input values must be finite.")
        if dim_p is not None and self.params_idx.size:
            bad = [int(i) for i in self.params_idx if i < 0 or i >= dim_p]
            if bad:
                raise InputSignalError(
                    field_name="params_idx",
                    details=f"Indices {bad} are outside the parameter vector of dimension {dim_p}.",
                )

    def parameters_at(self, base: np.ndarray, t: float) -> np.ndarray:
        """The parameter vector in effect at time `t`."""
        params = np.array(base, dtype=float)
        if self.time.size == 0:
            return params
        k = int(np.searchsorted(self.time, t, side="right")) - 1
        if k >= 0:
            params[self.params_idx] = self.values[:, k]
        return params

    def breakpoints(self, t0: float, tf: float) -> np.ndarray:
        """The change times strictly inside `(t0, tf)`."""
        return self.time[(self.time > t0) & (self.time < tf)]
