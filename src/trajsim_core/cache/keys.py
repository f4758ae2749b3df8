# src/trajsim_core/cache/keys.py
"""
Centralizes the generation of trajectory cache keys.

A trajectory is fully determined by the model identity, the exact parameter
vector it is simulated with, the time span and the input schedule, if any. The
key is a SHA-256 digest of a canonical serialization of exactly these inputs, so
two computations share a cache entry only if their inputs are bit-identical.
"""
import hashlib
import json
import logging
from typing import Optional, Sequence, TYPE_CHECKING

import numpy as np

from ..constants import CACHE_KEY_SCHEMA_VERSION
from ..data_structures import TimeSpan, TimeSpanLike
from ..parameters.exceptions import DimensionMismatchError

if TYPE_CHECKING:
    from ..simulation.input_signal import InputSignal
    from ..system import SystemDefinition

logger = logging.getLogger(__name__)


def canonical_vector(values: Sequence[float]) -> list:
    """
    Exact, platform-independent encoding of a float vector.

    `float.hex` round-trips every double (including the sign of zero and NaN/inf),
    which a decimal rendering with a fixed number of digits does not.
    """
    return [float(v).hex() for v in np.asarray(values, dtype=np.float64).ravel()]


def create_trajectory_key(
    system: "SystemDefinition",
    parameters: Sequence[float],
    time_span: TimeSpanLike,
    input_signal: Optional["InputSignal"] = None,
) -> str:
    """
    Creates the definitive cache key for one trajectory.

    The payload holds a schema version, the system name, the ordered simulation
    parameter names, the signal names, the hex-encoded parameter vector, the
    hex-encoded time span and, when present, the hex-encoded input schedule.
    Output generators are identified by the names of the signals they produce.

    Raises:
        DimensionMismatchError: If the parameter vector does not match the system.
    """
    params = np.asarray(parameters, dtype=np.float64).ravel()
    if params.size != system.dim_p:
        raise DimensionMismatchError(
            expected=system.dim_p,
            actual=params.size,
            details="Cannot build a cache key for a parameter vector of the wrong dimension.",
            system_name=system.name,
        )
    span = TimeSpan.coerce(time_span)

    payload = {
        "schema": CACHE_KEY_SCHEMA_VERSION,
        "model": system.name,
        "param_names": list(system.param_names),
        "signals": list(system.signal_names),
        "params": canonical_vector(params),
        "time_span": list(span.canonical()),
        "inputs": None,
    }
    if input_signal is not None:
        payload["inputs"] = {
            "params_idx": [int(i) for i in input_signal.params_idx],
            "time": canonical_vector(input_signal.time),
            "values": canonical_vector(input_signal.values),
        }
    serialized = json.dumps(payload, sort_keys=True, separators=(",", ":"))
    return hashlib.sha256(serialized.encode("utf-8")).hexdigest()
