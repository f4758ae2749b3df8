# src/trajsim_core/simulation/context.py
"""
Defines the `SimulationContext`, the explicit inputs of a scheduler.
"""
from dataclasses import dataclass, field

from ..cache.service import TrajectoryCache
from ..system import SystemDefinition
from .config import SchedulerConfig


@dataclass(frozen=True)
class SimulationContext:
    """
    An immutable container for everything a trajectory computation depends on
    besides the parameter set: the system, the cache handle and the options.

    It is passed to the stateless `SimulationScheduler`, which operates on it.
    Nothing is looked up from ambient state.
    """
    system: SystemDefinition
    cache: TrajectoryCache
    config: SchedulerConfig = field(default_factory=SchedulerConfig)
