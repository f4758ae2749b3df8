# src/trajsim_core/__init__.py
import logging
from .log_config import setup_logging

setup_logging()
logger = logging.getLogger(__name__)
logger.info("TrajSim Core package initialized.")

from .units import ureg, pint, Quantity, TIME_DIMENSIONALITY
from .data_structures import TimeSpan, TrajectoryRecord
from .system import SystemDefinition
from .parameters import ParameterSet, quasi_refine
from .cache import (
    TrajectoryCache, NullTrajectoryCache, MemoryTrajectoryCache, DiskTrajectoryCache,
)
from .simulation import (
    compute_trajectories,
    SimulationScheduler,
    SimulationContext,
    SchedulerConfig,
    load_run_config,
    InputSignal,
    OutputGenerator,
    NativeOdeSimulator,
    ExternalProcessSimulator,
    ModelEngineSimulator,
    PrerecordedTraces,
)
from .errors import TrajSimError, SimulationRunError

__all__ = [
    # Units
    "ureg", "pint", "Quantity", "TIME_DIMENSIONALITY",
    # Data Structures
    "TimeSpan", "TrajectoryRecord", "SystemDefinition", "ParameterSet",
    # Sampling
    "quasi_refine",
    # Caches
    "TrajectoryCache", "NullTrajectoryCache", "MemoryTrajectoryCache", "DiskTrajectoryCache",
    # Simulation
    "compute_trajectories", "SimulationScheduler", "SimulationContext",
    "SchedulerConfig", "load_run_config", "InputSignal", "OutputGenerator",
    "NativeOdeSimulator", "ExternalProcessSimulator", "ModelEngineSimulator", "PrerecordedTraces",
    # Top-Level Errors (Actionable Diagnostics)
    "TrajSimError", "SimulationRunError",
]
