# src/trajsim_core/constants.py
import logging

logger = logging.getLogger(__name__)

# --- Trajectory Status Codes ---

#: Solver status denoting a successful simulation, by convention of every simulator.
STATUS_SUCCESS: int = 0

#: Status recorded when the simulator raised instead of returning a status.
STATUS_SIMULATION_ERROR: int = -1

#: Status recorded when an output-signal generator failed on an otherwise valid trajectory.
STATUS_OUTPUT_ERROR: int = -2

# --- Trajectory References ---

#: Value of `traj_ref[i]` for a point that has no trajectory yet.
NO_TRAJECTORY: int = -1

# --- Disk Cache Layout ---

#: Prefix of every trajectory file written by the disk cache.
CACHE_FILE_PREFIX: str = "traj_"

#: Extension of every trajectory file written by the disk cache.
CACHE_FILE_SUFFIX: str = ".npz"

#: Version tag folded into every cache digest. Bump it when the stored record layout changes.
CACHE_KEY_SCHEMA_VERSION: int = 1
