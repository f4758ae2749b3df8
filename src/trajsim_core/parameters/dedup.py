# src/trajsim_core/parameters/dedup.py
"""
Deduplication of parameter vectors.

Identical simulation inputs produce identical trajectories, so the engine only
simulates one representative (the canonical vector) of every group of equal
parameter vectors. Equality here is exact: two vectors are equal only if their
float64 values have identical bit patterns. No tolerance is ever applied.
"""
import logging
from typing import Tuple

import numpy as np

logger = logging.getLogger(__name__)


def unique_columns(matrix: np.ndarray) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    """
    Finds the distinct parameter vectors of a matrix, in first-occurrence order.

    The matrix holds one parameter vector per row (N x D), restricted to the
    simulation-relevant dimensions. The search is sort-based (O(N*D*log N)) and
    stable: among equal vectors, the one with the smallest index is canonical.

    Args:
        matrix: An (N, D) array of parameter vectors.

    Returns:
        A tuple `(unique_rows, canonical_index, inverse_index)` where
        - `unique_rows[k]` is the k-th distinct vector (shape (K, D)),
        - `canonical_index[k]` is the index of its first occurrence in `matrix`,
        - `inverse_index[i]` is the k such that `matrix[i]` equals `unique_rows[k]`.
    """
    arr = np.ascontiguousarray(np.asarray(matrix, dtype=np.float64))
    if arr.ndim == 1:
        arr = arr.reshape(1, -1)
    if arr.ndim != 2:
        raise ValueError(f"Expected a 2D parameter matrix, got an array with ndim={arr.ndim}.")

    num_rows, dim = arr.shape
    if num_rows == 0:
        return arr.copy(), np.array([], dtype=np.intp), np.array([], dtype=np.intp)
    if dim == 0:
        # Every empty vector equals every other one.
        return arr[:1].copy(), np.array([0], dtype=np.intp), np.zeros(num_rows, dtype=np.intp)

    # Comparing rows as opaque byte strings gives bitwise equality and a total order.
    row_keys = arr.view(np.dtype((np.void, arr.dtype.itemsize * dim))).ravel()

    # A stable sort keeps equal keys in index order, so each run starts at its first occurrence.
    order = np.argsort(row_keys, kind="mergesort")
    sorted_keys = row_keys[order]
    run_starts = np.ones(num_rows, dtype=bool)
    run_starts[1:] = sorted_keys[1:] != sorted_keys[:-1]

    run_id_sorted = np.cumsum(run_starts) - 1
    first_index_per_run = order[run_starts]

    # Renumber runs by first occurrence instead of by sort order.
    first_occurrence_order = np.argsort(first_index_per_run, kind="mergesort")
    rank_of_run = np.empty_like(first_occurrence_order)
    rank_of_run[first_occurrence_order] = np.arange(first_occurrence_order.size)

    canonical_index = first_index_per_run[first_occurrence_order].astype(np.intp)
    inverse_index = np.empty(num_rows, dtype=np.intp)
    inverse_index[order] = rank_of_run[run_id_sorted]

    unique_rows = arr[canonical_index].copy()
    logger.debug(f"Deduplicated {num_rows} parameter vector(s) into {canonical_index.size} distinct vector(s).")
    return unique_rows, canonical_index, inverse_index


def match_rows(candidates: np.ndarray, reference: np.ndarray) -> np.ndarray:
    """
    For each row of `candidates`, the index of the first bitwise-equal row of
    `reference`, or -1 when no row matches.
    """
    cand = np.asarray(candidates, dtype=np.float64)
    ref = np.asarray(reference, dtype=np.float64)
    if cand.shape[0] == 0:
        return np.array([], dtype=np.intp)
    if ref.shape[0] == 0:
        return np.full(cand.shape[0], -1, dtype=np.intp)
    if cand.shape[1] != ref.shape[1]:
        raise ValueError(f"Cannot match vectors of dimension {cand.shape[1]} against dimension {ref.shape[1]}.")

    _, canonical, inverse = unique_columns(np.vstack([ref, cand]))
    num_ref = ref.shape[0]
    group_of_candidates = inverse[num_ref:]
    first_of_group = canonical[group_of_candidates]
    # The canonical member of a group is a reference row only if some reference row belongs to it.
    return np.where(first_of_group < num_ref, first_of_group, -1).astype(np.intp)
