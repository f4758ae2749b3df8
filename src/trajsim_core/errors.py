# src/trajsim_core/errors.py
import logging
from abc import abstractmethod
from typing import Any, Dict, Protocol, runtime_checkable

logger = logging.getLogger(__name__)

# --- User-Facing Exception Hierarchy ---

class TrajSimError(Exception):
    """Base class for all custom, user-facing errors in TrajSim Core."""
    pass

class SimulationRunError(TrajSimError):
    """
    Raised when a trajectory computation fails as a whole: a structural problem
    with the inputs (dimension mismatch, malformed input signal, invalid time span)
    or a batch in which every simulation failed.
    The message is a pre-formatted, user-friendly diagnostic report.
    """
    pass


# --- Diagnostic Protocol & Base Exception ---

@runtime_checkable
class Diagnosable(Protocol):
    """
    A protocol for exceptions that can generate their own rich diagnostic report.
    """
    def get_diagnostic_report(self) -> str:
        """Generates a complete, user-friendly, multi-line report string."""
        ...

class DiagnosableError(Exception, Diagnosable):
    """
    A common, concrete base class for all internal exceptions that are diagnosable.

    It inherits from `Exception`, so it can be used in `except` clauses, and declares
    `get_diagnostic_report` as an abstract method that every subclass must implement.
    """
    @abstractmethod
    def get_diagnostic_report(self) -> str:
        """
        Abstract method to generate the diagnostic report.
        Subclasses MUST implement this.
        """
        raise NotImplementedError


# --- Stateless Formatting Utility ---

def format_diagnostic_report(
    error_type: str,
    details: str,
    suggestion: str,
    context: Dict[str, Any]
) -> str:
    """
    A stateless helper to format the final multi-line report string, ensuring a
    consistent look and feel for all user-facing diagnostics.

    Args:
        error_type: The high-level category of the error (e.g., "Dimension Mismatch").
        details: A detailed, potentially multi-line description of the problem.
        suggestion: Actionable advice for the user to resolve the issue.
        context: A dictionary of contextual information (system name, parameter
                 name, point index, offending field, source file).

    Returns:
        A formatted, user-friendly diagnostic report string ready for display.
    """
    lines = [
        "\n",
        "=============== TrajSim Core: Actionable Diagnostic Report ===============",
        f"Error Type:     {error_type}",
    ]
    if system := context.get('system'):
        lines.append(f"System:         {system}")
    if source_file := context.get('source_file'):
        lines.append(f"Source File:    {source_file}")
    if field := context.get('field'):
        lines.append(f"Field:          {field}")
    if parameter := context.get('parameter'):
        lines.append(f"Parameter:      {parameter}")
    if (point_index := context.get('point_index')) is not None:
        lines.append(f"Point Index:    {point_index}")

    lines.append("\nDetails:")
    for line in details.splitlines():
        lines.append(f"  {line}")

    if suggestion:
        lines.append("\nSuggestion:")
        for line in suggestion.splitlines():
            lines.append(f"  {line}")

    lines.append("========================================================================")
    return "\n".join(lines)


# --- Cross-Cutting Diagnosable Errors ---

class TimeSpanError(DiagnosableError, ValueError):
    """
    Raised when a time span is not a valid simulation horizon: fewer than two
    values, non-finite values, or values that are not strictly increasing.
    """
    def __init__(self, details: str, user_input: Any = None):
        super().__init__(details)
        self.details = details
        self.user_input = user_input

    def get_diagnostic_report(self) -> str:
        return format_diagnostic_report(
            error_type="Invalid Time Span",
            details=f"{self.details}\nReceived: {self.user_input!r}",
            suggestion="Provide either an interval [t0, tf] with t0 < tf, or a strictly increasing sequence of sample times.",
            context={'field': 'time_span'}
        )


class FrameworkLogicError(TrajSimError):
    """
    Raised when an internal consistency check of the engine fails. This always
    indicates a bug in TrajSim Core, never a problem with user input.
    """
    pass
