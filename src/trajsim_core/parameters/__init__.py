# src/trajsim_core/parameters/__init__.py
from .exceptions import (
    ParameterError,
    DimensionMismatchError,
    UnknownNameError,
    ParameterSetError,
)
from .dedup import unique_columns, match_rows
from .parameter_set import ParameterSet
from .sampling import quasi_refine

__all__ = [
    # Exceptions
    "ParameterError",
    "DimensionMismatchError",
    "UnknownNameError",
    "ParameterSetError",
    # Deduplication
    "unique_columns",
    "match_rows",
    # Core Value
    "ParameterSet",
    # Sampling
    "quasi_refine",
]
