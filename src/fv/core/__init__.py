"""Shared building blocks for the finite volume package."""

from .errors import (
    SolverError,
    ConfigurationError,
    ConvergenceFailure,
    NumericalDefectError,
    SingularOperatorError,
)

__all__ = [
    "SolverError",
    "ConfigurationError",
    "ConvergenceFailure",
    "NumericalDefectError",
    "SingularOperatorError",
]
