# src/trajsim_core/simulation/simulators.py
"""
The closed family of model simulators the scheduler can dispatch to.

Every variant answers one question: given a system, a time span and a
simulation parameter vector (and optionally a piecewise-constant input
schedule), what are the raw signals over time? Output signals are composed
afterwards by the scheduler, never by a simulator.

Variants:
- `NativeOdeSimulator`: integrates a right-hand side with `scipy.integrate.solve_ivp`.
- `ExternalProcessSimulator`: delegates to a user callable.
- `ModelEngineSimulator`: delegates to a model-execution engine object.
- `PrerecordedTraces`: no model at all; the trajectories are supplied by the caller.

Simulators must be safe to call concurrently for different parameter vectors
and, for process pools, picklable.
"""
from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any, Callable, Optional, Union, TYPE_CHECKING

import numpy as np
from scipy.integrate import solve_ivp

from ..constants import STATUS_SUCCESS
from ..data_structures import TimeSpan
from ..errors import FrameworkLogicError
from .exceptions import TrajectorySimulationError
from .input_signal import InputSignal
from .results import SimulatorOutput

if TYPE_CHECKING:
    from ..system import SystemDefinition

logger = logging.getLogger(__name__)


def normalize_output(raw: Any, system: "SystemDefinition") -> SimulatorOutput:
    """
    Accepts `(time, state)` or `(time, state, status)` from a user callable and
    returns a checked `SimulatorOutput`. A state given as (len(time), n_states) is
    transposed to the row-per-signal layout.
    """
    if isinstance(raw, SimulatorOutput):
        time, state, status = raw.time, raw.state, raw.status
    else:
        if not isinstance(raw, (tuple, list)) or len(raw) not in (2, 3):
            raise TrajectorySimulationError(
                system_name=system.name,
                details=f"Simulator returned {type(raw).__name__}; expected (time, state) or (time, state, status).",
            )
        time, state = raw[0], raw[1]
        status = raw[2] if len(raw) == 3 else STATUS_SUCCESS

    time = np.asarray(time, dtype=float).ravel()
    state = np.asarray(state, dtype=float)
    n_states = len(system.state_names)
    if state.ndim == 1:
        state = state.reshape(1, -1)
    if state.shape != (n_states, time.size) and state.shape == (time.size, n_states):
        state = state.T
    if state.shape != (n_states, time.size):
        raise TrajectorySimulationError(
            system_name=system.name,
            details=f"Simulator returned a state of shape {state.shape}; expected ({n_states}, {time.size}).",
        )
    return SimulatorOutput(time=time, state=state, status=int(status))


class ModelSimulator(ABC):
    """The interface every simulator variant implements."""

    #: True for the variant whose trajectories are supplied rather than simulated.
    provides_traces: bool = False

    @abstractmethod
    def simulate(
        self,
        system: "SystemDefinition",
        time_span: TimeSpan,
        parameters: np.ndarray,
        input_signal: Optional[InputSignal] = None,
    ) -> SimulatorOutput:
        """
        Computes the raw signals of `system` for one simulation parameter vector.
        Returns a non-zero status, or raises, when the simulation fails.
        """
        raise NotImplementedError


class NativeOdeSimulator(ModelSimulator):
    """
    Integrates `dx/dt = rhs(t, x, p)` with `scipy.integrate.solve_ivp`.

    A fresh solver is created for every call, so concurrent calls share no state.
    For an interval time span the solver's own steps are reported; for an explicit
    span the solution is reported exactly at the requested times. An input signal
    is applied by integrating each constant-input segment separately.

    Args:
        rhs: `rhs(t, x, p) -> dx`, with `p` the simulation parameter vector.
        initial_state: Either a fixed initial state, a callable `p -> x0`, or None,
                       in which case the first `len(state_names)` parameters are
                       the initial state.
        method: Any integration method accepted by `solve_ivp`.
        rtol, atol: Solver tolerances.
    """

    def __init__(
        self,
        rhs: Callable[[float, np.ndarray, np.ndarray], np.ndarray],
        initial_state: Union[None, np.ndarray, Callable[[np.ndarray], np.ndarray]] = None,
        method: str = "LSODA",
        rtol: float = 1e-6,
        atol: float = 1e-9,
    ):
        self.rhs = rhs
        self.initial_state = initial_state
        self.method = method
        self.rtol = rtol
        self.atol = atol

    def _initial_state(self, system: "SystemDefinition", parameters: np.ndarray) -> np.ndarray:
        n_states = len(system.state_names)
        if self.initial_state is None:
            if parameters.size < n_states:
                raise TrajectorySimulationError(
                    system_name=system.name,
                    details=f"No initial state given and only {parameters.size} parameter(s) "
                            f"for {n_states} state(s).",
                )
            x0 = parameters[:n_states]
        elif callable(self.initial_state):
            x0 = self.initial_state(parameters)
        else:
            x0 = self.initial_state
        x0 = np.asarray(x0, dtype=float).ravel()
        if x0.size != n_states:
            raise TrajectorySimulationError(
                system_name=system.name,
                details=f"Initial state has {x0.size} value(s) for {n_states} state(s).",
            )
        return x0

    def simulate(self, system, time_span, parameters, input_signal=None):
        parameters = np.asarray(parameters, dtype=float)
        x0 = self._initial_state(system, parameters)
        t0, tf = time_span.start, time_span.stop

        edges = [t0]
        if input_signal is not None:
            edges.extend(float(t) for t in input_signal.breakpoints(t0, tf))
        edges.append(tf)

        times, states = [], []
        status = STATUS_SUCCESS
        x = x0
        for k, (a, b) in enumerate(zip(edges[:-1], edges[1:])):
            p = parameters if input_signal is None else input_signal.parameters_at(parameters, a)
            t_eval = None
            if not time_span.is_interval:
                last = k == len(edges) - 2
                mask = (time_span.values >= a) & ((time_span.values <= b) if last else (time_span.values < b))
                requested = time_span.values[mask]
                # The segment end is always evaluated: the next segment starts from it.
                t_eval = requested if requested.size and requested[-1] == b else np.append(requested, b)
            sol = solve_ivp(
                self.rhs, (a, b), x, method=self.method, t_eval=t_eval,
                args=(p,), rtol=self.rtol, atol=self.atol,
            )
            seg_t, seg_y = sol.t, sol.y
            if not time_span.is_interval:
                seg_t, seg_y = seg_t[:requested.size], seg_y[:, :requested.size]
            # Interval spans report solver steps; the segment start repeats the previous end.
            elif k > 0 and seg_t.size:
                seg_t, seg_y = seg_t[1:], seg_y[:, 1:]
            times.append(seg_t)
            states.append(seg_y)
            if sol.status != 0:
                logger.debug(f"solve_ivp stopped with status {sol.status} on [{a}, {b}]: {sol.message}")
                status = int(sol.status)
                break
            x = sol.y[:, -1]

        time = np.concatenate(times) if times else np.empty(0)
        state = np.hstack(states) if states else np.empty((x0.size, 0))
        return SimulatorOutput(time=time, state=state.reshape(x0.size, -1), status=status)


class ExternalProcessSimulator(ModelSimulator):
    """
    Delegates to a user callable `sim_fn(time, parameters, input_signal)` that
    returns `(time, state)` or `(time, state, status)`. `time` is the array of
    time span values.
    """

    def __init__(self, sim_fn: Callable[..., Any]):
        self.sim_fn = sim_fn

    def simulate(self, system, time_span, parameters, input_signal=None):
        raw = self.sim_fn(np.array(time_span.values), np.array(parameters, dtype=float), input_signal)
        return normalize_output(raw, system)


class ModelEngineSimulator(ModelSimulator):
    """
    Delegates to a model-execution engine exposing
    `run(time, parameters, input_signal) -> (time, state[, status])`.

    Args:
        engine: The model-execution engine.
        input_generator: Optional `input_generator(system, time_span, parameters)`
                         building the input schedule when the computation supplies
                         none. It may return an `InputSignal`, a mapping with its
                         fields, or None.
    """

    def __init__(self, engine: Any, input_generator: Optional[Callable[..., Any]] = None):
        if not callable(getattr(engine, "run", None)):
            raise TypeError(f"Model engine {engine!r} has no callable 'run' method.")
        self.engine = engine
        self.input_generator = input_generator

    def simulate(self, system, time_span, parameters, input_signal=None):
        parameters = np.array(parameters, dtype=float)
        if input_signal is None and self.input_generator is not None:
            generated = self.input_generator(system, time_span, parameters)
            if generated is not None and not isinstance(generated, InputSignal):
                generated = InputSignal.from_mapping(generated)
            if generated is not None:
                generated.validate(system.dim_p)
            input_signal = generated
        raw = self.engine.run(np.array(time_span.values), parameters, input_signal)
        return normalize_output(raw, system)


class PrerecordedTraces(ModelSimulator):
    """
    The variant for systems whose trajectories are recorded elsewhere and handed
    to the engine. The scheduler never simulates such a system.
    """
    provides_traces = True

    def simulate(self, system, time_span, parameters, input_signal=None):
        raise FrameworkLogicError(
            f"System '{system.name}' uses prerecorded traces and cannot be simulated."
        )
