"""Problem setup: grid, boundary conditions, operators and physical models.

A ``Setup`` is created once and shared read-only by the time steppers, the pressure
solvers and the post-processing.
"""

from dataclasses import dataclass, field
from typing import Callable, Optional, Union

import numpy as np

from fv.assembly import (
    ConvectionModel,
    Operators,
    ViscosityModel,
    assemble_operators,
    convection_model_from_name,
    viscosity_model_from_name,
)
from fv.core.errors import ConfigurationError
from meshing import StaggeredGrid, create_grid


class BodyForce:
    """Body force ``f(alpha, *coords, t)`` integrated over the velocity volumes.

    Parameters
    ----------
    fn : callable
        ``fn(alpha, *coords, t)`` returning component ``alpha`` of the force density
        at the given coordinates (scalars broadcast).
    steady : bool
        When True the integrated force is evaluated once and reused.
    """

    def __init__(self, fn: Callable, steady: bool = True):
        self.fn = fn
        self.steady = steady
        self._cached = None

    def integrated(self, grid, t: float) -> np.ndarray:
        if self.steady and self._cached is not None:
            return self._cached
        parts = []
        for alpha in range(grid.dimension()):
            pts = grid.velocity_points(alpha)
            values = np.broadcast_to(self.fn(alpha, *pts, t=t), pts[0].shape)
            parts.append(np.asarray(values, dtype=float).ravel())
        f = grid.Omega * np.concatenate(parts)
        if self.steady:
            self._cached = f
        return f

    def __repr__(self):
        return f"BodyForce(steady={self.steady})"


@dataclass(frozen=True)
class Setup:
    """Everything that defines the discrete problem."""

    grid: StaggeredGrid
    operators: Operators
    viscosity_model: ViscosityModel
    convection_model: ConvectionModel
    force: Optional[BodyForce] = None
    metadata: dict = field(default_factory=dict)

    @property
    def boundary_conditions(self):
        return self.grid.boundary_conditions

    @property
    def bc_unsteady(self) -> bool:
        """True when any boundary value depends on time."""
        return any(bc.is_unsteady for pair in self.boundary_conditions for bc in pair)

    @property
    def n_scalars(self) -> int:
        return self.viscosity_model.n_scalars

    @classmethod
    def create(
        cls,
        coords,
        boundary_conditions,
        viscosity_model: Union[ViscosityModel, str, None] = None,
        convection_model: Union[ConvectionModel, str, None] = None,
        force: Union[BodyForce, Callable, None] = None,
        force_steady: bool = False,
        Re: float = 1000.0,
        **model_options,
    ) -> "Setup":
        """Build grid, operators and models.

        Parameters
        ----------
        coords : sequence of np.ndarray
            Face coordinates per axis, without ghost faces.
        boundary_conditions : sequence of (left, right) pairs
        viscosity_model : ViscosityModel or str, optional
            Model instance or name ("laminar", "smagorinsky", ...). Names are created
            with ``Re`` and ``model_options``.
        convection_model : ConvectionModel or str, optional
            Model instance or name ("noreg", "leray", "c2", "c4").
        force : BodyForce or callable, optional
            Callables are wrapped in a ``BodyForce``.
        force_steady : bool
            Evaluate a callable force once and reuse it. Leave False for forces that
            depend on ``t``.
        Re : float
            Reynolds number for named viscosity models.
        """
        grid = create_grid(coords, boundary_conditions)
        operators = assemble_operators(grid)

        if viscosity_model is None:
            viscosity_model = "laminar"
        if isinstance(viscosity_model, str):
            viscosity_model = viscosity_model_from_name(viscosity_model, Re=Re, **model_options)
        elif model_options:
            raise ConfigurationError(f"Unused model options: {sorted(model_options)}")

        if convection_model is None:
            convection_model = "noreg"
        if isinstance(convection_model, str):
            convection_model = convection_model_from_name(convection_model)

        if force is not None and not isinstance(force, BodyForce):
            if not callable(force):
                raise ConfigurationError("force must be a BodyForce or a callable")
            force = BodyForce(force, steady=force_steady)

        return cls(
            grid=grid,
            operators=operators,
            viscosity_model=viscosity_model,
            convection_model=convection_model,
            force=force,
        )
