# src/trajsim_core/parameters/exceptions.py
"""
Defines the custom, diagnosable exceptions for the parameter subsystem.

Every exception here derives from the local `ParameterError`, itself a
`DiagnosableError`, so callers can catch the whole family with a single
`except ParameterError:` and still rely on `get_diagnostic_report()`.
"""
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from ..errors import DiagnosableError, format_diagnostic_report


class ParameterError(DiagnosableError):
    """
    A concrete base class for all parameter-related errors.
    """
    def get_diagnostic_report(self) -> str:
        return format_diagnostic_report(
            error_type="Generic Parameter Error",
            details=str(self),
            suggestion="Review the parameter set and system definition for consistency.",
            context={}
        )


@dataclass()
class DimensionMismatchError(ParameterError):
    """
    Raised when the width of the parameter vectors does not match the dimension
    the system expects. This is fatal for the whole batch: without a consistent
    parameter axis nothing can be simulated.
    """
    expected: int
    actual: int
    details: str
    system_name: Optional[str] = None

    def __str__(self):
        return f"Dimension mismatch: expected {self.expected}, got {self.actual}. {self.details}"

    def get_diagnostic_report(self) -> str:
        return format_diagnostic_report(
            error_type="Parameter Dimension Mismatch",
            details=f"{self.details}\nExpected dimension: {self.expected}\nActual dimension:   {self.actual}",
            suggestion="Parameter vectors must list every system parameter, in the order of the system's parameter names. "
                       "Raw arrays are expected with one row per parameter vector.",
            context={'system': self.system_name}
        )


@dataclass()
class UnknownNameError(ParameterError):
    """Raised when a signal or parameter name cannot be resolved."""
    names: List[str]
    available: Sequence[str] = field(default_factory=list)
    scope: str = "parameter"

    def __str__(self):
        return f"Unknown {self.scope} name(s): {self.names}"

    def get_diagnostic_report(self) -> str:
        return format_diagnostic_report(
            error_type=f"Unknown {self.scope.capitalize()} Name",
            details=f"The following {self.scope} name(s) could not be resolved: {self.names}\n"
                    f"Available names: {list(self.available)}",
            suggestion="Check the spelling of the requested names against the system definition.",
            context={'parameter': ", ".join(self.names)}
        )


@dataclass()
class ParameterSetError(ParameterError):
    """Raised for invalid operations on a parameter set (bad indices, incompatible merges)."""
    details: str

    def __str__(self):
        return self.details

    def get_diagnostic_report(self) -> str:
        return format_diagnostic_report(
            error_type="Invalid Parameter Set Operation",
            details=self.details,
            suggestion="Ensure indices are within range and merged parameter sets share the same parameter names.",
            context={}
        )
