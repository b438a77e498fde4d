"""Exception hierarchy shared by the grid, operators, pressure solvers and drivers.

- ConfigurationError: invalid setup, raised before any stepping.
- ConvergenceFailure: an iterative solve hit its cap; recoverable by the caller.
- NumericalDefectError: non-finite values in the state; aborts the run.
- SingularOperatorError: the pressure Poisson matrix cannot be factorized.
"""


class SolverError(Exception):
    """Base class for all solver errors."""


class ConfigurationError(SolverError, ValueError):
    """Invalid boundary condition combination, model tag or grid dimensionality."""


class ConvergenceFailure(SolverError):
    """Iteration cap exceeded in a CG, Picard or Newton solve.

    Parameters
    ----------
    message : str
        Human readable description.
    residual : float
        Last residual norm reached.
    iterations : int
        Number of iterations performed.
    """

    def __init__(self, message: str, residual: float = float("nan"), iterations: int = 0):
        super().__init__(f"{message} (residual={residual:.3e}, iterations={iterations})")
        self.residual = residual
        self.iterations = iterations


class NumericalDefectError(SolverError):
    """Non-finite value detected in velocity, pressure or residual."""


class SingularOperatorError(SolverError):
    """Factorization of the pressure Poisson matrix failed."""
