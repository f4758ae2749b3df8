# src/trajsim_core/simulation/results.py
"""
Defines the formal data contracts exchanged inside the simulation layer.
"""
from dataclasses import dataclass
from typing import Optional

import numpy as np

from ..constants import STATUS_SUCCESS
from ..data_structures import TrajectoryRecord


@dataclass(frozen=True)
class SimulatorOutput:
    """
    The raw result of one simulator call, before output signals are composed.

    Attributes:
        time: 1D array of sample times.
        state: (len(state_names), len(time)) array of raw signals.
        status: Solver status code; 0 on success.
    """
    time: np.ndarray
    state: np.ndarray
    status: int = STATUS_SUCCESS


@dataclass(frozen=True)
class TaskOutcome:
    """
    The result of computing one distinct parameter vector.

    Attributes:
        position: Position of the vector in the batch, i.e. its canonical order.
        record: The trajectory, either freshly computed, loaded from the cache or a
                failure placeholder.
        from_cache: True if `record` was served by the cache.
        error: A description of the fault when the computation raised.
    """
    position: int
    record: TrajectoryRecord
    from_cache: bool = False
    error: Optional[str] = None

    @property
    def failed(self) -> bool:
        return not self.record.succeeded
