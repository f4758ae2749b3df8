# src/trajsim_core/parameters/sampling.py
"""
Quasi-random refinement of a parameter set.

This is the sampling collaborator of the trajectory engine: it only produces
points. The engine consumes them as-is and never validates the sampling strategy.
"""
import logging
from typing import Optional, Sequence, Tuple

import numpy as np
from scipy.stats import qmc

from ..constants import NO_TRAJECTORY
from .dedup import match_rows, unique_columns
from .exceptions import DimensionMismatchError, ParameterSetError
from .parameter_set import ParameterSet

logger = logging.getLogger(__name__)


def quasi_refine(
    param_set: ParameterSet,
    names: Sequence[str],
    bounds: Sequence[Tuple[float, float]],
    num_samples: int,
    seed: Optional[int] = None,
) -> ParameterSet:
    """
    Samples `num_samples` points quasi-uniformly (Sobol sequence) in the box
    spanned by `bounds` for the named parameters. Every other column takes the
    value of the first point of `param_set`.

    The result carries an uncertainty radius for the sampled columns, references
    the trajectories of `param_set` whose parameters a sampled point reproduces
    exactly, and queues the first occurrence of every other distinct vector.

    Args:
        param_set: The set providing the fixed parameter values and any reusable trajectories.
        names: The parameters to sample.
        bounds: One `(low, high)` pair per name.
        num_samples: Number of points to generate.
        seed: Seed of the scrambled Sobol sequence, for reproducible sampling.
    """
    if num_samples < 1:
        raise ParameterSetError(details=f"num_samples must be positive, got {num_samples}.")
    if param_set.num_points == 0:
        raise ParameterSetError(details="Cannot refine an empty parameter set: no fixed values to start from.")
    cols = param_set.find_params(names)
    bounds_arr = np.asarray(bounds, dtype=float).reshape(-1, 2)
    if bounds_arr.shape[0] != len(cols):
        raise DimensionMismatchError(
            expected=len(cols),
            actual=bounds_arr.shape[0],
            details="quasi_refine needs one (low, high) bound per sampled parameter.",
        )
    low, high = bounds_arr[:, 0], bounds_arr[:, 1]
    if np.any(high < low):
        raise ParameterSetError(details=f"Invalid bounds for {list(names)}: every low must be <= high.")

    sampler = qmc.Sobol(d=len(cols), scramble=seed is not None, seed=seed)
    unit = sampler.random(num_samples)
    samples = qmc.scale(unit, low, high) if np.all(high > low) else low + unit * (high - low)

    points = np.repeat(np.asarray(param_set.points[:1], dtype=float), num_samples, axis=0)
    points[:, cols] = samples
    uncertainty = np.zeros_like(points)
    uncertainty[:, cols] = (high - low) / 2.0 / num_samples ** (1.0 / len(cols))

    sim_points = points[:, :param_set.dim_sim]
    traj_params = np.array([t.parameters for t in param_set.trajectories]).reshape(
        param_set.num_trajectories, param_set.dim_sim)
    existing = match_rows(sim_points, traj_params)
    unmatched = np.flatnonzero(existing < 0)
    _, canonical, _ = unique_columns(sim_points[unmatched])

    logger.info(f"Sobol refinement produced {num_samples} point(s) over {list(names)}; "
                f"{unmatched.size - canonical.size} duplicate(s), {int((existing >= 0).sum())} point(s) reusing a trajectory.")

    kept_refs = sorted(set(existing[existing >= 0].tolist()))
    remap = {old: new for new, old in enumerate(kept_refs)}
    traj_ref = np.array([remap[int(r)] if r >= 0 else NO_TRAJECTORY for r in existing], dtype=np.intp)
    return param_set.with_updates(
        points=points,
        uncertainty=uncertainty,
        trajectories=tuple(param_set.trajectories[r] for r in kept_refs),
        final_state=tuple(param_set.final_state[r] for r in kept_refs),
        traj_ref=traj_ref,
        to_compute=tuple(int(unmatched[k]) for k in canonical),
        time_span=param_set.time_span if kept_refs else None,
    )
