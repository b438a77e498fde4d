"""Discrete initial conditions from continuous velocity and pressure functions."""

import logging
from dataclasses import dataclass
from typing import Optional, Tuple

import numpy as np

from fv.assembly import MomentumAssembly
from fv.core.errors import ConfigurationError
from fv.linear_solvers import create_pressure_solver, pressure_additional_solve

log = logging.getLogger(__name__)

DIVERGENCE_TOLERANCE = 1e-12


@dataclass
class InitialConditions:
    V: np.ndarray
    p: np.ndarray
    t: float
    projected: bool = False
    scalars: Optional[Tuple[np.ndarray, ...]] = None


def _sample(fn, points) -> np.ndarray:
    values = np.broadcast_to(np.asarray(fn(*points), dtype=float), points[0].shape)
    return np.array(values).ravel()


def create_initial_conditions(setup, t0: float, u0, v0, w0=None, p0=None, pressure_solver=None,
                              p_initial: bool = True, project: bool = True, k0=None, e0=None):
    """Sample the initial fields and make them discretely consistent.

    Parameters
    ----------
    setup : Setup
    t0 : float
        Initial time.
    u0, v0, w0 : callable
        Velocity components ``f(*coords)``; ``w0`` is required in 3D.
    p0 : callable, optional
        Initial pressure, used when ``p_initial`` is False.
    pressure_solver : PressureSolver, optional
        Defaults to a direct solver.
    p_initial : bool
        Compute the pressure from the velocity with an additional Poisson solve.
    project : bool
        Project the velocity when its discrete divergence exceeds 1e-12.
    k0, e0 : callable, optional
        Turbulence scalars for the k-epsilon model, sampled at the pressure points.

    Returns
    -------
    InitialConditions
    """
    grid = setup.grid
    ops = setup.operators
    D = grid.dimension()
    funcs = [u0, v0, w0][:D]
    if any(fn is None for fn in funcs):
        raise ConfigurationError(f"{D}D initial conditions need {D} velocity components")

    V = np.concatenate([_sample(fn, grid.velocity_points(alpha)) for alpha, fn in enumerate(funcs)])

    if pressure_solver is None:
        pressure_solver = create_pressure_solver("direct", setup)
    momentum = MomentumAssembly(setup)
    bv = momentum.boundary_vectors(t0)

    projected = False
    div = ops.divergence(V, bv)
    max_div = float(np.max(np.abs(div)))
    if project and max_div > DIVERGENCE_TOLERANCE:
        log.warning("Initial velocity field is not divergence free (max %.3e), projecting", max_div)
        dp = pressure_solver.solve(div)
        V -= ops.Omega_inv * (ops.G @ dp)
        projected = True

    scalars = None
    if setup.n_scalars:
        if k0 is None or e0 is None:
            raise ConfigurationError("k-epsilon initial conditions need k0 and e0")
        points = grid.pressure_points()
        floor = setup.viscosity_model.floor
        scalars = tuple(np.maximum(_sample(fn, points), floor) for fn in (k0, e0))

    if p_initial:
        p = pressure_additional_solve(pressure_solver, momentum, V, t0, scalars=scalars)
    elif p0 is not None:
        p = _sample(p0, grid.pressure_points())
    else:
        p = np.zeros(grid.NP)

    return InitialConditions(V=V, p=p, t=t0, projected=projected, scalars=scalars)
