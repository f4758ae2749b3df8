# src/trajsim_core/parameters/parameter_set.py
"""
Defines the `ParameterSet`, the core value of the trajectory engine.

A parameter set is an ordered collection of parameter vectors (its points) plus
the trajectories computed from the distinct simulation-relevant projections of
those points. Several points may share one trajectory; `traj_ref` maps every
point to the trajectory it shares, and `to_compute` lists the points whose
trajectory is still missing.

The object is an explicit, versioned value: every operation returns a new
`ParameterSet` with an incremented `version`, and the arrays it holds are
read-only. Callers decide whether to replace their reference.
"""
from __future__ import annotations

import dataclasses
import logging
from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence, Tuple, Union, TYPE_CHECKING

import numpy as np

from ..constants import NO_TRAJECTORY
from ..data_structures import TimeSpan, TrajectoryRecord
from .dedup import match_rows, unique_columns
from .exceptions import DimensionMismatchError, ParameterSetError, UnknownNameError

if TYPE_CHECKING:
    from ..system import SystemDefinition

logger = logging.getLogger(__name__)


def _readonly(arr: np.ndarray) -> np.ndarray:
    arr = np.array(arr, copy=True)
    arr.setflags(write=False)
    return arr


def _pending_cover(sim_points: np.ndarray, traj_ref: np.ndarray, pending: Sequence[int]) -> Tuple[int, ...]:
    """
    Rebuilds `to_compute` after points were rearranged. The first of the given
    pending indices of each distinct vector is kept; then the first occurrence of
    every unreferenced vector no pending point covers is queued.
    """
    dim = sim_points.shape[1]
    pending = list(dict.fromkeys(int(i) for i in pending))
    kept: List[int] = []
    if pending:
        _, canonical, _ = unique_columns(sim_points[pending].reshape(len(pending), dim))
        kept = [pending[k] for k in sorted(canonical.tolist())]

    unreferenced = np.flatnonzero(traj_ref == NO_TRAJECTORY)
    unreferenced = unreferenced[~np.isin(unreferenced, kept)]
    if unreferenced.size:
        covered = match_rows(sim_points[unreferenced], sim_points[kept].reshape(len(kept), dim))
        orphans = unreferenced[covered < 0]
        if orphans.size:
            _, canonical, _ = unique_columns(sim_points[orphans])
            kept.extend(int(orphans[k]) for k in canonical)
    return tuple(kept)


@dataclass(frozen=True, eq=False)
class ParameterSet:
    """
    An immutable, versioned collection of parameter vectors and their trajectories.

    Attributes:
        param_names: Names of all columns of `points`. The first `dim_sim` names
                     are the simulation-relevant parameters; any further columns
                     are bookkeeping (e.g., property parameters) and never reach
                     the simulator, the deduplicator or the cache.
        points: (N, D) array, one parameter vector per row, in caller order.
        dim_sim: Number of simulation-relevant leading columns.
        uncertainty: Optional (N, D) array of per-point radii, passed through unchanged.
        trajectories: The M distinct trajectories computed so far.
        traj_ref: (N,) int array; 0-based index into `trajectories`, or
                  NO_TRAJECTORY (-1) for a point without a trajectory. Code that
                  uses 1-based references with 0 as "unset" maps them as `ref - 1`.
        to_compute: Point indices whose trajectory is missing, with pairwise
                    distinct simulation projections.
        final_state: One vector per trajectory, the last state sample.
        time_span: The time span `trajectories` were computed on, if any.
        version: Incremented by every operation returning an updated set.
    """
    param_names: Tuple[str, ...]
    points: np.ndarray
    dim_sim: int
    uncertainty: Optional[np.ndarray] = None
    trajectories: Tuple[TrajectoryRecord, ...] = ()
    traj_ref: Optional[np.ndarray] = None
    to_compute: Tuple[int, ...] = ()
    final_state: Tuple[np.ndarray, ...] = ()
    time_span: Optional[TimeSpan] = None
    version: int = 0

    def __post_init__(self):
        names = tuple(self.param_names)
        points = np.asarray(self.points, dtype=float)
        if points.ndim == 1:
            points = points.reshape(1, -1) if points.size else points.reshape(0, len(names))
        if points.ndim != 2 or points.shape[1] != len(names):
            raise DimensionMismatchError(
                expected=len(names),
                actual=points.shape[-1] if points.ndim else 0,
                details="The parameter matrix must have one column per parameter name.",
            )
        if not 0 <= self.dim_sim <= len(names):
            raise ParameterSetError(details=f"dim_sim={self.dim_sim} is outside [0, {len(names)}].")

        num_points = points.shape[0]
        uncertainty = self.uncertainty
        if uncertainty is not None:
            uncertainty = np.asarray(uncertainty, dtype=float)
            if uncertainty.shape != points.shape:
                raise ParameterSetError(
                    details=f"Uncertainty shape {uncertainty.shape} does not match points shape {points.shape}."
                )
            uncertainty = _readonly(uncertainty)

        traj_ref = self.traj_ref
        if traj_ref is None:
            traj_ref = np.full(num_points, NO_TRAJECTORY, dtype=np.intp)
        traj_ref = np.asarray(traj_ref, dtype=np.intp).ravel()
        if traj_ref.size != num_points:
            raise ParameterSetError(details=f"traj_ref has {traj_ref.size} entries for {num_points} point(s).")
        trajectories = tuple(self.trajectories)
        if traj_ref.size and (traj_ref.min() < NO_TRAJECTORY or traj_ref.max() >= len(trajectories)):
            raise ParameterSetError(details="traj_ref references a trajectory that does not exist.")

        to_compute = tuple(int(i) for i in self.to_compute)
        if any(i < 0 or i >= num_points for i in to_compute):
            raise ParameterSetError(details=f"to_compute {list(to_compute)} references points outside [0, {num_points}).")
        if len(set(to_compute)) != len(to_compute):
            raise ParameterSetError(details="to_compute must not contain duplicate point indices.")

        final_state = tuple(self.final_state)
        if len(final_state) != len(trajectories):
            final_state = tuple(traj.final_state for traj in trajectories)

        object.__setattr__(self, "param_names", names)
        object.__setattr__(self, "points", _readonly(points))
        object.__setattr__(self, "uncertainty", uncertainty)
        object.__setattr__(self, "trajectories", trajectories)
        object.__setattr__(self, "traj_ref", _readonly(traj_ref))
        object.__setattr__(self, "to_compute", to_compute)
        object.__setattr__(self, "final_state", tuple(_readonly(np.asarray(x, dtype=float)) for x in final_state))

    # --- Construction ---

    @classmethod
    def create(
        cls,
        param_names: Sequence[str],
        points: np.ndarray,
        dim_sim: Optional[int] = None,
        uncertainty: Optional[np.ndarray] = None,
    ) -> "ParameterSet":
        """
        Creates a parameter set in which nothing is referenced yet and the first
        occurrence of every distinct simulation vector is pending. When `dim_sim`
        is omitted, all columns are simulation-relevant.
        """
        points = np.atleast_2d(np.asarray(points, dtype=float))
        names = tuple(param_names)
        if points.size == 0:
            points = points.reshape(0, len(names))
        dim_sim = len(names) if dim_sim is None else dim_sim
        _, canonical, _ = unique_columns(points[:, :dim_sim])
        return cls(
            param_names=names,
            points=points,
            dim_sim=dim_sim,
            uncertainty=uncertainty,
            to_compute=tuple(canonical.tolist()),
        )

    @classmethod
    def from_system(
        cls,
        system: "SystemDefinition",
        points: Optional[np.ndarray] = None,
        extra_names: Sequence[str] = (),
        extra_values: Optional[np.ndarray] = None,
    ) -> "ParameterSet":
        """
        Creates a parameter set for `system`. Without `points`, the set holds the
        single nominal parameter vector. Extra (non-simulation) columns can be
        appended with `extra_names` and `extra_values`.
        """
        names = tuple(system.param_names) + tuple(extra_names)
        if points is None:
            points = np.asarray(system.nominal_values, dtype=float).reshape(1, -1)
            if extra_names:
                extras = np.zeros(len(extra_names)) if extra_values is None else np.asarray(extra_values, dtype=float)
                points = np.hstack([points, extras.reshape(1, -1)])
        points = np.atleast_2d(np.asarray(points, dtype=float))
        if points.shape[1] != len(names):
            raise DimensionMismatchError(
                expected=len(names),
                actual=points.shape[1],
                details=f"Points for system '{system.name}' have the wrong number of columns.",
                system_name=system.name,
            )
        return cls.create(names, points, dim_sim=system.dim_p)

    # --- Read access ---

    @property
    def num_points(self) -> int:
        return int(self.points.shape[0])

    @property
    def num_trajectories(self) -> int:
        return len(self.trajectories)

    @property
    def sim_points(self) -> np.ndarray:
        """The simulation-relevant projection of every point, shape (N, dim_sim)."""
        return self.points[:, :self.dim_sim]

    @property
    def is_computed(self) -> bool:
        return not self.to_compute

    def find_params(self, names: Union[str, Sequence[str]]) -> List[int]:
        """Column indices of the named parameters."""
        if isinstance(names, str):
            names = [names]
        lookup = {n: i for i, n in enumerate(self.param_names)}
        missing = [n for n in names if n not in lookup]
        if missing:
            raise UnknownNameError(names=missing, available=list(self.param_names))
        return [lookup[n] for n in names]

    def get_param(self, name: str) -> np.ndarray:
        """The values of one parameter across all points."""
        return np.array(self.points[:, self.find_params(name)[0]])

    def trajectory_of(self, point_index: int) -> Optional[TrajectoryRecord]:
        """The trajectory shared by a point, or None if it has none yet."""
        ref = int(self.traj_ref[point_index])
        return None if ref == NO_TRAJECTORY else self.trajectories[ref]

    def trajectory_list(self) -> List[Optional[TrajectoryRecord]]:
        """One entry per point, duplicates sharing the same record object."""
        return [self.trajectory_of(i) for i in range(self.num_points)]

    # --- Updates (each returns a new version) ---

    def with_updates(self, **changes) -> "ParameterSet":
        """Returns a new version of this set with the given fields replaced."""
        changes.setdefault("version", self.version + 1)
        return dataclasses.replace(self, **changes)

    def select(self, indices: Iterable[int]) -> "ParameterSet":
        """
        Returns the subset of points at `indices`, in the given order. Trajectories
        referenced by the selected points are kept and re-indexed. Every selected
        point without a trajectory stays covered by `to_compute`, even when the
        pending point of its vector was not selected.
        """
        idx = np.asarray(list(indices), dtype=np.intp)
        if idx.size and (idx.min() < 0 or idx.max() >= self.num_points):
            raise ParameterSetError(details=f"Selection {idx.tolist()} is out of range for {self.num_points} point(s).")

        old_refs = self.traj_ref[idx]
        kept = [int(r) for r in dict.fromkeys(old_refs.tolist()) if r != NO_TRAJECTORY]
        remap = {old: new for new, old in enumerate(kept)}
        new_refs = np.array([remap.get(int(r), NO_TRAJECTORY) for r in old_refs], dtype=np.intp)

        position = {int(old): new for new, old in enumerate(idx.tolist())}
        points = self.points[idx]
        to_compute = _pending_cover(
            points[:, :self.dim_sim], new_refs, [position[i] for i in self.to_compute if i in position]
        )

        return self.with_updates(
            points=points,
            uncertainty=None if self.uncertainty is None else self.uncertainty[idx],
            trajectories=tuple(self.trajectories[r] for r in kept),
            final_state=tuple(self.final_state[r] for r in kept),
            traj_ref=new_refs,
            to_compute=to_compute,
            time_span=self.time_span if kept else None,
        )

    def concat(self, other: "ParameterSet") -> "ParameterSet":
        """
        Appends the points of `other`, which must have the same parameter names.
        Trajectories of `other` are appended and its references offset. If the two
        sets were computed on different time spans, the trajectories of `other`
        are dropped and its points become pending. A pending vector of `other`
        already pending in this set is queued once.
        """
        if other.param_names != self.param_names or other.dim_sim != self.dim_sim:
            raise ParameterSetError(details="Cannot concatenate parameter sets with different parameter names.")

        offset_points = self.num_points
        if self.uncertainty is None and other.uncertainty is None:
            uncertainty = None
        else:
            uncertainty = np.vstack([
                np.zeros_like(self.points) if self.uncertainty is None else self.uncertainty,
                np.zeros_like(other.points) if other.uncertainty is None else other.uncertainty,
            ])

        compatible = (not self.trajectories or not other.trajectories
                      or (self.time_span is not None and self.time_span == other.time_span))
        if compatible:
            offset_traj = self.num_trajectories
            other_refs = np.where(other.traj_ref == NO_TRAJECTORY, NO_TRAJECTORY, other.traj_ref + offset_traj)
            trajectories = self.trajectories + other.trajectories
            final_state = self.final_state + other.final_state
            other_pending = other.to_compute
            time_span = self.time_span if self.trajectories else other.time_span
        else:
            logger.warning("Concatenating parameter sets computed on different time spans; "
                           "trajectories of the appended set are discarded.")
            other_refs = np.full(other.num_points, NO_TRAJECTORY, dtype=np.intp)
            trajectories, final_state, time_span = self.trajectories, self.final_state, self.time_span
            _, canonical, _ = unique_columns(other.sim_points)
            other_pending = tuple(canonical.tolist())

        points = np.vstack([self.points, other.points])
        traj_ref = np.concatenate([self.traj_ref, other_refs])
        to_compute = _pending_cover(
            points[:, :self.dim_sim], traj_ref, self.to_compute + tuple(i + offset_points for i in other_pending)
        )
        return self.with_updates(
            points=points,
            uncertainty=uncertainty,
            trajectories=trajectories,
            final_state=final_state,
            traj_ref=traj_ref,
            to_compute=to_compute,
            time_span=time_span,
        )

    def add_points(self, points: np.ndarray, uncertainty: Optional[np.ndarray] = None) -> "ParameterSet":
        """
        Merges new points into the set, as a refinement step does.

        New points whose simulation projection equals the parameters of an existing
        trajectory reference it immediately. Among the remaining new points, the
        first occurrence of every distinct projection is added to `to_compute`;
        existing references and pending points are left untouched.
        """
        new_points = np.atleast_2d(np.asarray(points, dtype=float))
        if new_points.size == 0:
            return self
        if new_points.shape[1] != len(self.param_names):
            raise DimensionMismatchError(
                expected=len(self.param_names),
                actual=new_points.shape[1],
                details="New points must have one column per parameter name.",
            )
        if uncertainty is not None:
            uncertainty = np.asarray(uncertainty, dtype=float).reshape(new_points.shape)

        offset = self.num_points
        new_sim = new_points[:, :self.dim_sim]
        traj_params = np.array([t.parameters for t in self.trajectories]).reshape(self.num_trajectories, self.dim_sim)
        existing_match = match_rows(new_sim, traj_params)
        new_refs = np.where(existing_match >= 0, existing_match, NO_TRAJECTORY).astype(np.intp)

        # Points already pending in this set must not be queued twice.
        pending_sim = self.sim_points[list(self.to_compute)].reshape(len(self.to_compute), self.dim_sim)
        pending_match = match_rows(new_sim, pending_sim)

        unmatched = np.flatnonzero((existing_match < 0) & (pending_match < 0))
        queued: Tuple[int, ...] = ()
        if unmatched.size:
            _, canonical, _ = unique_columns(new_sim[unmatched])
            queued = tuple(int(offset + unmatched[k]) for k in canonical)

        if self.uncertainty is None and uncertainty is None:
            merged_uncertainty = None
        else:
            merged_uncertainty = np.vstack([
                np.zeros_like(self.points) if self.uncertainty is None else self.uncertainty,
                np.zeros_like(new_points) if uncertainty is None else uncertainty,
            ])

        logger.debug(f"Added {new_points.shape[0]} point(s): {int((new_refs >= 0).sum())} reuse existing "
                     f"trajectories, {len(queued)} distinct vector(s) queued.")
        return self.with_updates(
            points=np.vstack([self.points, new_points]),
            uncertainty=merged_uncertainty,
            traj_ref=np.concatenate([self.traj_ref, new_refs]),
            to_compute=self.to_compute + queued,
        )

    def purge(self) -> "ParameterSet":
        """Drops every trajectory; the canonical point of each distinct vector becomes pending."""
        _, canonical, _ = unique_columns(self.sim_points)
        return self.with_updates(
            trajectories=(),
            final_state=(),
            traj_ref=np.full(self.num_points, NO_TRAJECTORY, dtype=np.intp),
            to_compute=tuple(canonical.tolist()),
            time_span=None,
        )

    def set_param(self, names: Union[str, Sequence[str]], values) -> "ParameterSet":
        """
        Sets the named parameters to `values` on every point. `values` is either one
        value per name or an (N, len(names)) array. Changing a simulation-relevant
        parameter invalidates all trajectories.
        """
        cols = self.find_params(names)
        values = np.asarray(values, dtype=float)
        points = np.array(self.points)
        if values.ndim <= 1:
            points[:, cols] = values.reshape(1, -1)
        else:
            if values.shape != (self.num_points, len(cols)):
                raise DimensionMismatchError(
                    expected=len(cols),
                    actual=values.shape[-1],
                    details=f"Values for {list(names) if not isinstance(names, str) else names} must have shape "
                            f"({self.num_points}, {len(cols)}).",
                )
            points[:, cols] = values
        updated = self.with_updates(points=points)
        if any(c < self.dim_sim for c in cols):
            return updated.purge()
        return updated

    def __repr__(self):
        return (f"ParameterSet(points={self.num_points}, params={len(self.param_names)}, "
                f"trajectories={self.num_trajectories}, pending={len(self.to_compute)}, version={self.version})")
