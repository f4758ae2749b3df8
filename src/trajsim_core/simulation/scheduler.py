# src/trajsim_core/simulation/scheduler.py
"""
Defines the `SimulationScheduler`, the stateless service that brings a parameter
set's trajectories up to date.

The scheduler contains the imperative logic (the "how") and operates on a
`SimulationContext` (the "what"). For every parameter set it decides what must be
simulated, serves what it can from the cache, dispatches the rest sequentially or
to a worker pool, and assembles the updated parameter set once the whole batch
has resolved. The input parameter set is never modified; an interrupted batch
leaves it exactly as it was.

Three paths exist:
- prerecorded traces: nothing is simulated, trajectory parameters are refreshed;
- incremental: trajectories computed on the same time span are kept and only the
  pending vectors they do not already cover are simulated and appended;
- full: the simulation projections of all points are deduplicated and one
  trajectory is computed per distinct vector, in first-occurrence order.
"""
import concurrent.futures
import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence, Union

import numpy as np

from ..cache import create_trajectory_key
from ..constants import NO_TRAJECTORY, STATUS_OUTPUT_ERROR, STATUS_SIMULATION_ERROR, STATUS_SUCCESS
from ..data_structures import TimeSpan, TimeSpanLike, TrajectoryRecord
from ..errors import FrameworkLogicError
from ..parameters import DimensionMismatchError, ParameterSet, match_rows, unique_columns
from ..system import SystemDefinition
from .context import SimulationContext
from .exceptions import BatchSimulationError, OutputSignalError
from .input_signal import InputSignal
from .outputs import compose_outputs, validate_generators
from .progress import ProgressReporter
from .results import TaskOutcome
from .simulators import normalize_output

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SimulationTask:
    """One distinct simulation vector to compute. Picklable when the system is."""
    position: int
    point_index: int
    system: SystemDefinition
    parameters: np.ndarray
    time_span: TimeSpan
    input_signal: Optional[InputSignal] = None


def _failed_record(system: SystemDefinition, parameters: np.ndarray, time_span: TimeSpan, status: int) -> TrajectoryRecord:
    time = time_span.values
    return TrajectoryRecord(
        time=time,
        state=np.full((system.dim_x, time.size), np.nan),
        parameters=parameters,
        status=status,
    )


def run_simulation_task(task: SimulationTask) -> TaskOutcome:
    """
    Simulates one vector and composes its output signals.

    This is a module-level function so that process pools can pickle it. A fault
    raised by the simulator or an output generator never escapes, and neither does
    a simulator output whose shape does not match the system: each becomes a
    failed record whose status is `STATUS_SIMULATION_ERROR` or `STATUS_OUTPUT_ERROR`.
    """
    system = task.system
    try:
        raw = system.simulator.simulate(system, task.time_span, task.parameters, task.input_signal)
        output = normalize_output(raw, system)
    except Exception as e:
        message = f"{type(e).__name__}: {e}"
        logger.error(f"Simulation of '{system.name}' failed for point {task.point_index}: {message}")
        record = _failed_record(system, task.parameters, task.time_span, STATUS_SIMULATION_ERROR)
        return TaskOutcome(position=task.position, record=record, error=message)

    if output.status != STATUS_SUCCESS:
        logger.error(f"Simulation of '{system.name}' for point {task.point_index} "
                     f"ended with solver status {output.status}.")
        time, state = compose_outputs(system, output.time, output.state, task.parameters, generators=())
        record = TrajectoryRecord(time=time, state=state, parameters=task.parameters, status=output.status)
        return TaskOutcome(position=task.position, record=record)

    try:
        time, state = compose_outputs(system, output.time, output.state, task.parameters)
    except OutputSignalError as e:
        logger.error(f"Output signals of '{system.name}' failed for point {task.point_index}: {e}")
        time, state = compose_outputs(system, output.time, output.state, task.parameters, generators=())
        record = TrajectoryRecord(time=time, state=state, parameters=task.parameters, status=STATUS_OUTPUT_ERROR)
        return TaskOutcome(position=task.position, record=record, error=str(e))

    record = TrajectoryRecord(time=time, state=state, parameters=task.parameters, status=STATUS_SUCCESS)
    return TaskOutcome(position=task.position, record=record)


class SimulationScheduler:
    """
    A stateless service computing the missing trajectories of parameter sets.
    It owns no state besides the context it was created with.
    """

    def __init__(self, context: SimulationContext):
        self.context: SimulationContext = context
        self.system: SystemDefinition = context.system
        self.cache = context.cache
        self.config = context.config
        logger.debug(f"SimulationScheduler initialized for '{self.system.name}'.")

    def compute_trajectories(
        self,
        param_set: ParameterSet,
        time_span: Optional[TimeSpanLike] = None,
        input_signal: Optional[Union[InputSignal, dict]] = None,
    ) -> ParameterSet:
        """
        Returns `param_set` with a trajectory for every point.

        Structural problems are detected before anything is dispatched. If nothing
        is pending, the very same object is returned.

        Args:
            param_set: The parameter set to bring up to date.
            time_span: The simulation horizon. Defaults to the system's time span.
            input_signal: An optional piecewise-constant input schedule.

        Raises:
            DimensionMismatchError: If the set's simulation columns do not match the system.
            InputSignalError: If the input schedule is malformed.
            TimeSpanError: If the time span is invalid or missing.
            UnknownNameError: If an output generator names an unknown signal or parameter.
            BatchSimulationError: If every simulation of the batch failed.
        """
        system = self.system
        span = TimeSpan.coerce(time_span if time_span is not None else system.time_span)
        self._check_dimensions(param_set)
        if input_signal is not None:
            if not isinstance(input_signal, InputSignal):
                input_signal = InputSignal.from_mapping(input_signal)
            input_signal.validate(system.dim_p)
        validate_generators(system)

        if system.init_fun is not None:
            param_set = system.init_fun(param_set)
            self._check_dimensions(param_set)

        if not param_set.to_compute:
            logger.debug(f"Nothing to compute for '{system.name}'; returning the parameter set unchanged.")
            return param_set

        if system.simulator.provides_traces:
            return self._refresh_traces(param_set)

        incremental = (
            param_set.num_trajectories > 0
            and param_set.time_span is not None
            and param_set.time_span == span
            and len(param_set.to_compute) < param_set.num_points
        )
        if incremental:
            return self._compute_incremental(param_set, span, input_signal)
        return self._compute_full(param_set, span, input_signal)

    # --- Paths ---

    def _refresh_traces(self, param_set: ParameterSet) -> ParameterSet:
        """Each trajectory takes the simulation projection of the first point that references it."""
        trajectories = list(param_set.trajectories)
        seen = set()
        for i, ref in enumerate(param_set.traj_ref.tolist()):
            if ref == NO_TRAJECTORY or ref in seen:
                continue
            seen.add(ref)
            trajectories[ref] = trajectories[ref].with_parameters(param_set.sim_points[i])
        logger.info(f"System '{self.system.name}' uses prerecorded traces; refreshed "
                    f"{len(seen)} trajectory parameter vector(s), nothing simulated.")
        return param_set.with_updates(trajectories=tuple(trajectories))

    def _compute_incremental(self, param_set: ParameterSet, span: TimeSpan,
                             input_signal: Optional[InputSignal]) -> ParameterSet:
        sim = param_set.sim_points
        pending = list(param_set.to_compute)
        existing_params = self._trajectory_params(param_set.trajectories, param_set.dim_sim)
        already_covered = match_rows(sim[pending], existing_params)
        uncovered = [p for p, m in zip(pending, already_covered) if m < 0]

        point_indices: List[int] = []
        if uncovered:
            _, canonical, _ = unique_columns(sim[uncovered])
            point_indices = [uncovered[k] for k in canonical]
        logger.info(f"Incremental computation for '{self.system.name}': {len(pending)} pending point(s), "
                    f"{len(point_indices)} new distinct vector(s), {param_set.num_trajectories} kept.")

        outcomes = self._run_batch(sim, point_indices, span, input_signal)
        trajectories = param_set.trajectories + tuple(o.record for o in outcomes)

        all_params = self._trajectory_params(trajectories, param_set.dim_sim)
        traj_ref = np.array(param_set.traj_ref)
        candidates = sorted(set(np.flatnonzero(traj_ref == NO_TRAJECTORY).tolist()) | set(pending))
        if candidates:
            matches = match_rows(sim[candidates], all_params)
            for i, m in zip(candidates, matches):
                if m >= 0:
                    traj_ref[i] = m

        return param_set.with_updates(
            trajectories=trajectories,
            final_state=tuple(t.final_state for t in trajectories),
            traj_ref=traj_ref,
            to_compute=(),
            time_span=span,
        )

    def _compute_full(self, param_set: ParameterSet, span: TimeSpan,
                      input_signal: Optional[InputSignal]) -> ParameterSet:
        sim = param_set.sim_points
        _, canonical, inverse = unique_columns(sim)
        logger.info(f"Full computation for '{self.system.name}': {param_set.num_points} point(s), "
                    f"{canonical.size} distinct vector(s).")

        outcomes = self._run_batch(sim, canonical.tolist(), span, input_signal)
        trajectories = tuple(o.record for o in outcomes)
        return param_set.with_updates(
            trajectories=trajectories,
            final_state=tuple(t.final_state for t in trajectories),
            traj_ref=inverse,
            to_compute=(),
            time_span=span,
        )

    # --- Batch execution ---

    def _run_batch(self, sim: np.ndarray, point_indices: Sequence[int], span: TimeSpan,
                   input_signal: Optional[InputSignal]) -> List[TaskOutcome]:
        """
        Computes one trajectory per listed point, returned in listing order.
        Cache lookups and stores happen here, in the calling process.
        """
        system = self.system
        total = len(point_indices)
        if total == 0:
            return []
        progress = ProgressReporter(system.name, total, verbose=self.config.verbose)

        outcomes: List[Optional[TaskOutcome]] = [None] * total
        keys: List[str] = []
        tasks: List[SimulationTask] = []
        for position, point_index in enumerate(point_indices):
            params = np.array(sim[point_index])
            key = create_trajectory_key(system, params, span, input_signal)
            keys.append(key)
            cached = self.cache.load(key)
            if cached is not None:
                outcomes[position] = TaskOutcome(position=position, record=cached, from_cache=True)
                progress.advance()
            else:
                tasks.append(SimulationTask(position, int(point_index), system, params, span, input_signal))

        for outcome in self._dispatch(tasks, progress):
            outcomes[outcome.position] = outcome
            # Thrown faults are not cached; solver status codes are part of the record.
            if outcome.error is None:
                self.cache.store(keys[outcome.position], outcome.record)

        if any(o is None for o in outcomes):
            raise FrameworkLogicError("A batch resolved without an outcome for every vector.")

        failed = [o for o in outcomes if o.failed]
        hits = sum(o.from_cache for o in outcomes)
        logger.info(f"Batch for '{system.name}' resolved: {total} vector(s), {hits} from cache, "
                    f"{len(tasks)} simulated, {len(failed)} failed.")
        if len(failed) == total:
            raise BatchSimulationError(
                system_name=system.name,
                failures=[o.error or f"point {point_indices[o.position]}: status {o.record.status}" for o in failed],
                statuses=[o.record.status for o in failed],
            )
        return outcomes

    def _dispatch(self, tasks: List[SimulationTask], progress: ProgressReporter) -> List[TaskOutcome]:
        if not tasks:
            return []
        if not self.config.parallel or len(tasks) == 1:
            results = []
            for task in tasks:
                results.append(run_simulation_task(task))
                progress.advance()
            return results

        executor_cls = (concurrent.futures.ThreadPoolExecutor if self.config.pool_type == "thread"
                        else concurrent.futures.ProcessPoolExecutor)
        logger.debug(f"Dispatching {len(tasks)} simulation(s) to a {self.config.pool_type} pool "
                     f"(max_workers={self.config.max_workers}).")
        results = []
        with executor_cls(max_workers=self.config.max_workers) as executor:
            futures = {executor.submit(run_simulation_task, task): task.position for task in tasks}
            for future in concurrent.futures.as_completed(futures):
                results.append(future.result())
                progress.advance()
        return results

    # --- Helpers ---

    def _check_dimensions(self, param_set: ParameterSet):
        system = self.system
        sim_names = param_set.param_names[:param_set.dim_sim]
        if param_set.dim_sim != system.dim_p:
            raise DimensionMismatchError(
                expected=system.dim_p,
                actual=param_set.dim_sim,
                details=f"The parameter set has {param_set.dim_sim} simulation parameter(s).",
                system_name=system.name,
            )
        if sim_names != system.param_names:
            raise DimensionMismatchError(
                expected=system.dim_p,
                actual=param_set.dim_sim,
                details=f"Simulation parameters {list(sim_names)} do not match the system's "
                        f"{list(system.param_names)}.",
                system_name=system.name,
            )

    @staticmethod
    def _trajectory_params(trajectories: Sequence, dim_sim: int) -> np.ndarray:
        return np.array([t.parameters for t in trajectories], dtype=float).reshape(len(trajectories), dim_sim)
