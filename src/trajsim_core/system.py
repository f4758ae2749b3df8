# src/trajsim_core/system.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence, Tuple, TYPE_CHECKING

import numpy as np

from .parameters.exceptions import UnknownNameError

logger = logging.getLogger(__name__)

if TYPE_CHECKING:
    from .data_structures import TimeSpanLike
    from .parameters.parameter_set import ParameterSet
    from .simulation.outputs import OutputGenerator
    from .simulation.simulators import ModelSimulator


@dataclass(frozen=True, eq=False)
class SystemDefinition:
    """
    The explicit description of a parameterized dynamical model.

    Signals are the rows of every trajectory state matrix: the raw states reported
    by the simulator first, then the derived outputs appended by the output
    generators, in generator order. Parameters are the simulation-relevant
    parameter vector; their order defines the columns of every parameter set
    built for this system and the content of every cache key.

    Attributes:
        name: Model identity, part of every cache key.
        state_names: Names of the raw signals produced by the simulator.
        param_names: Names of the simulation-relevant parameters.
        simulator: The ModelSimulator variant that computes trajectories.
        nominal_values: Default parameter vector (zeros when omitted).
        output_names: Names of the derived signals produced by `output_generators`.
        output_generators: Derived-signal pipeline run on every fresh trajectory.
        init_fun: Optional hook applied to a parameter set before computation.
        time_span: Default time span when a computation does not give one.
    """
    name: str
    state_names: Tuple[str, ...]
    param_names: Tuple[str, ...]
    simulator: "ModelSimulator"
    nominal_values: Optional[np.ndarray] = None
    output_names: Tuple[str, ...] = ()
    output_generators: Tuple["OutputGenerator", ...] = ()
    init_fun: Optional[Callable[["ParameterSet"], "ParameterSet"]] = None
    time_span: Optional["TimeSpanLike"] = None

    def __post_init__(self):
        object.__setattr__(self, "state_names", tuple(self.state_names))
        object.__setattr__(self, "param_names", tuple(self.param_names))
        object.__setattr__(self, "output_names", tuple(self.output_names))
        object.__setattr__(self, "output_generators", tuple(self.output_generators))
        if self.nominal_values is None:
            nominal = np.zeros(len(self.param_names))
        else:
            nominal = np.array(self.nominal_values, dtype=float).ravel()
        if nominal.size != len(self.param_names):
            raise ValueError(
                f"System '{self.name}' declares {len(self.param_names)} parameter(s) "
                f"but {nominal.size} nominal value(s)."
            )
        nominal.setflags(write=False)
        object.__setattr__(self, "nominal_values", nominal)
        duplicates = sorted({n for n in self.signal_names + self.param_names
                             if (self.signal_names + self.param_names).count(n) > 1})
        if duplicates:
            raise ValueError(f"System '{self.name}' declares duplicate signal/parameter names: {duplicates}")
        logger.debug(f"SystemDefinition '{self.name}' created with {self.dim_x} signal(s) and {self.dim_p} parameter(s).")

    @property
    def signal_names(self) -> Tuple[str, ...]:
        return self.state_names + self.output_names

    @property
    def dim_x(self) -> int:
        """Number of rows of every trajectory state matrix."""
        return len(self.state_names) + len(self.output_names)

    @property
    def dim_p(self) -> int:
        """Number of simulation-relevant parameters."""
        return len(self.param_names)

    def find_signals(self, names: Sequence[str]) -> List[int]:
        """Row indices of the named signals."""
        return _resolve(names, self.signal_names, scope="signal")

    def find_params(self, names: Sequence[str]) -> List[int]:
        """Positions of the named parameters within a simulation parameter vector."""
        return _resolve(names, self.param_names, scope="parameter")


def _resolve(names: Sequence[str], available: Sequence[str], scope: str) -> List[int]:
    if isinstance(names, str):
        names = [names]
    lookup = {name: idx for idx, name in enumerate(available)}
    missing = [n for n in names if n not in lookup]
    if missing:
        raise UnknownNameError(names=missing, available=list(available), scope=scope)
    return [lookup[n] for n in names]
