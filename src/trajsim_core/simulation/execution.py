# src/trajsim_core/simulation/execution.py
"""
Provides the primary public API function for computing trajectories.

`compute_trajectories` is a thin Facade over the internal services
(`SimulationContext`, `SimulationScheduler`, the trajectory cache). It builds
them on behalf of the caller and converts every failure into a single,
actionable `SimulationRunError`.
"""
import logging
from typing import List, Optional, Union

import numpy as np

from ..cache import NullTrajectoryCache, TrajectoryCache
from ..data_structures import TimeSpanLike, TrajectoryRecord
from ..errors import DiagnosableError, SimulationRunError, format_diagnostic_report
from ..parameters import DimensionMismatchError, ParameterSet
from ..system import SystemDefinition
from .config import SchedulerConfig
from .context import SimulationContext
from .input_signal import InputSignal
from .scheduler import SimulationScheduler

logger = logging.getLogger(__name__)


def _points_from_array(system: SystemDefinition, raw: np.ndarray) -> np.ndarray:
    """
    Interprets a raw array as parameter vectors, one per row. An array holding one
    vector per column is accepted too and transposed.
    """
    points = np.atleast_2d(np.asarray(raw, dtype=float))
    if points.ndim != 2:
        raise DimensionMismatchError(
            expected=system.dim_p,
            actual=points.shape[-1],
            details=f"Raw parameter arrays must be two-dimensional, got {points.ndim} dimensions.",
            system_name=system.name,
        )
    if points.shape[1] != system.dim_p and points.shape[0] == system.dim_p:
        logger.debug(f"Raw parameter array of shape {points.shape} holds one vector per column; transposing.")
        points = points.T
    if points.shape[1] != system.dim_p:
        raise DimensionMismatchError(
            expected=system.dim_p,
            actual=points.shape[1],
            details=f"A raw parameter array of shape {points.shape} matches neither orientation.",
            system_name=system.name,
        )
    return points


def compute_trajectories(
    system: SystemDefinition,
    params: Union[ParameterSet, np.ndarray],
    time_span: Optional[TimeSpanLike] = None,
    input_signal: Optional[Union[InputSignal, dict]] = None,
    cache: Optional[TrajectoryCache] = None,
    config: Optional[SchedulerConfig] = None,
) -> Union[ParameterSet, List[Optional[TrajectoryRecord]]]:
    """
    The primary public API: computes the missing trajectories of `params`.

    Args:
        system: The model definition.
        params: A `ParameterSet`, or a raw array of simulation parameter vectors.
        time_span: The simulation horizon; defaults to the system's time span.
        input_signal: An optional piecewise-constant input schedule.
        cache: The explicit cache handle. If None, nothing is cached.
        config: Scheduler options. Defaults to `SchedulerConfig()`.

    Returns:
        The updated `ParameterSet` when one was given. For a raw array, the list of
        trajectories, one per given vector (duplicates share the same record).

    Raises:
        SimulationRunError: A user-friendly, diagnosable error if the computation
                            fails as a whole. The original exception is chained.
    """
    effective_cache = cache if cache is not None else NullTrajectoryCache()
    effective_config = config if config is not None else SchedulerConfig()

    try:
        logger.info(f"--- Computing trajectories of '{system.name}' ---")
        raw_input = not isinstance(params, ParameterSet)
        if raw_input:
            param_set = ParameterSet.create(system.param_names, _points_from_array(system, params))
        else:
            param_set = params

        context = SimulationContext(system=system, cache=effective_cache, config=effective_config)
        scheduler = SimulationScheduler(context)
        result = scheduler.compute_trajectories(param_set, time_span=time_span, input_signal=input_signal)

        logger.info(f"Trajectory computation successful. Cache stats: {effective_cache.get_stats()}")
        if raw_input:
            return result.trajectory_list()
        return result

    except DiagnosableError as e:
        logger.error(f"A diagnosable error occurred while computing trajectories: {e}")
        raise SimulationRunError(e.get_diagnostic_report()) from e

    except Exception as e:
        logger.critical(f"An unexpected internal error occurred while computing trajectories: {e}", exc_info=True)
        report = format_diagnostic_report(
            error_type=f"An Unexpected Simulation Error Occurred ({type(e).__name__})",
            details=f"The engine encountered an unexpected internal error: {e}",
            suggestion="This may be a bug. Review the traceback and consider filing a bug report.",
            context={'system': system.name}
        )
        raise SimulationRunError(report) from e
