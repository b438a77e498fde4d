"""Linear solvers for the pressure Poisson equation."""

from .scipy_solver import scipy_solver, amg_preconditioner
from .pressure_solvers import (
    PressureSolver,
    DirectPressureSolver,
    CGPressureSolver,
    SpectralPressureSolver,
    create_pressure_solver,
    pressure_poisson,
    pressure_additional_solve,
)

__all__ = [
    "scipy_solver",
    "amg_preconditioner",
    "PressureSolver",
    "DirectPressureSolver",
    "CGPressureSolver",
    "SpectralPressureSolver",
    "create_pressure_solver",
    "pressure_poisson",
    "pressure_additional_solve",
]
