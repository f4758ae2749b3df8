# src/trajsim_core/simulation/exceptions.py
"""
Defines custom, diagnosable exceptions specific to trajectory computation.

Two families live here:
1.  Structural errors (`InputSignalError`, `BatchSimulationError`) that abort a
    whole computation and reach the caller.
2.  Per-vector failures (`TrajectorySimulationError`, `OutputSignalError`) that
    the scheduler captures into the status of the affected trajectory, so that
    sibling computations in the same batch are unaffected.
"""
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from ..errors import DiagnosableError, format_diagnostic_report


@dataclass()
class InputSignalError(DiagnosableError):
    """
    Raised when an externally supplied input schedule is malformed. It is
    detected before any simulation is dispatched.
    """
    field_name: str
    details: str

    def __str__(self):
        return f"Malformed input signal, field '{self.field_name}': {self.details}"

    def get_diagnostic_report(self) -> str:
        return format_diagnostic_report(
            error_type="Malformed Input Signal",
            details=self.details,
            suggestion="An input signal needs 'params_idx' (one entry per row of 'values') and "
                       "'time' (one entry per column of 'values', strictly increasing).",
            context={'field': self.field_name}
        )


@dataclass()
class TrajectorySimulationError(DiagnosableError):
    """
    Wraps a fault raised by the simulator for one parameter vector. The scheduler
    records it as a failed trajectory instead of propagating it.
    """
    system_name: str
    details: str
    point_index: Optional[int] = None

    def __str__(self):
        return f"Simulation of '{self.system_name}' failed: {self.details}"

    def get_diagnostic_report(self) -> str:
        return format_diagnostic_report(
            error_type="Trajectory Simulation Failure",
            details=self.details,
            suggestion="Inspect the parameter vector at the reported index; the model may be ill-posed there.",
            context={'system': self.system_name, 'point_index': self.point_index}
        )


@dataclass()
class OutputSignalError(DiagnosableError):
    """
    Raised when an output-signal generator fails or returns data of the wrong
    shape. The affected trajectory is recorded as failed.
    """
    generator: str
    details: str

    def __str__(self):
        return f"Output generator '{self.generator}' failed: {self.details}"

    def get_diagnostic_report(self) -> str:
        return format_diagnostic_report(
            error_type="Output Signal Generation Failure",
            details=self.details,
            suggestion="A transform must return (time, rows) with one column per time sample and "
                       "one row per declared output signal.",
            context={'field': self.generator}
        )


@dataclass()
class BatchSimulationError(DiagnosableError):
    """
    Raised when every simulation in a batch failed. Partial failures are never
    raised; they are reported through the status of each trajectory.
    """
    system_name: str
    failures: List[str] = field(default_factory=list)
    statuses: Sequence[int] = field(default_factory=list)

    def __str__(self):
        return f"All {len(self.statuses)} simulation(s) of '{self.system_name}' failed."

    def get_diagnostic_report(self) -> str:
        shown = "\n".join(f"  - {msg}" for msg in self.failures[:10])
        more = f"\n  ... and {len(self.failures) - 10} more" if len(self.failures) > 10 else ""
        return format_diagnostic_report(
            error_type="Total Batch Failure",
            details=f"None of the {len(self.statuses)} requested simulation(s) succeeded.\n"
                    f"Status codes: {list(self.statuses)}\n{shown}{more}",
            suggestion="Check the model and the parameter ranges; a failure of every point usually "
                       "indicates a configuration problem rather than a numerical one.",
            context={'system': self.system_name}
        )
