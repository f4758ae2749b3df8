# src/trajsim_core/simulation/__init__.py
from .exceptions import (
    InputSignalError,
    TrajectorySimulationError,
    OutputSignalError,
    BatchSimulationError,
)
from .config import (
    ConfigParsingError,
    SchedulerConfig,
    RunConfig,
    parse_time_span,
    load_run_config,
)
from .input_signal import InputSignal
from .results import SimulatorOutput, TaskOutcome
from .simulators import (
    ModelSimulator,
    NativeOdeSimulator,
    ExternalProcessSimulator,
    ModelEngineSimulator,
    PrerecordedTraces,
)
from .outputs import OutputGenerator, compose_outputs
from .context import SimulationContext
from .scheduler import SimulationScheduler
from .execution import compute_trajectories

__all__ = [
    # Exceptions
    "InputSignalError",
    "TrajectorySimulationError",
    "OutputSignalError",
    "BatchSimulationError",
    "ConfigParsingError",
    # Configuration
    "SchedulerConfig",
    "RunConfig",
    "parse_time_span",
    "load_run_config",
    # Simulators
    "InputSignal",
    "SimulatorOutput",
    "TaskOutcome",
    "ModelSimulator",
    "NativeOdeSimulator",
    "ExternalProcessSimulator",
    "ModelEngineSimulator",
    "PrerecordedTraces",
    # Output Signals
    "OutputGenerator",
    "compose_outputs",
    # Core Services
    "SimulationContext",
    "SimulationScheduler",
    "compute_trajectories",
]
