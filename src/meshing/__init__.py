"""Grid generation and boundary conditions for the staggered grid."""

from .grids import stretched_grid, cosine_grid
from .boundary_conditions import (
    BoundaryCondition,
    PeriodicBC,
    DirichletBC,
    SymmetricBC,
    PressureBC,
)
from .mesh_data import StaggeredGrid, create_grid

__all__ = [
    "stretched_grid",
    "cosine_grid",
    "BoundaryCondition",
    "PeriodicBC",
    "DirichletBC",
    "SymmetricBC",
    "PressureBC",
    "StaggeredGrid",
    "create_grid",
]
