"""Time-accurate driver."""

import logging

import numpy as np

from fv.core.errors import ConvergenceFailure
from fv.core.helpers import along
from fv.linear_solvers import pressure_additional_solve
from .base_solver import NavierStokesSolver
from .datastructures import UnsteadyParameters
from .time_steppers import create_time_stepper

log = logging.getLogger(__name__)


def compute_timestep(setup, momentum, V, t, cfl: float = 0.9, scalars=None) -> float:
    """Stable time step from the advective and diffusive limits.

    ``dt = cfl * min(1 / max(sum_a |u_a| / h_a), 1 / (nu_max sum_a 2 / h_min,a^2))``
    """
    grid = setup.grid
    ops = setup.operators
    D = grid.dimension()
    bv = momentum.boundary_vectors(t)
    h = [grid.dx[a][grid.Ip[a]] for a in range(D)]

    u = ops.interpolate_velocity(V, bv)
    rate = sum(np.abs(u[a].reshape(grid.Np)) / along(h[a], a, D) for a in range(D))
    lam_conv = float(np.max(rate))

    nu = setup.viscosity_model.nu
    nu_t = momentum.eddy_viscosity(V, bv, scalars)
    if nu_t is not None:
        nu += float(np.max(nu_t[grid.Ip]))
    lam_diff = nu * sum(2.0 / float(np.min(h[a])) ** 2 for a in range(D))

    dt_conv = 1.0 / lam_conv if lam_conv > 0 else np.inf
    return cfl * min(dt_conv, 1.0 / lam_diff)


class UnsteadySolver(NavierStokesSolver):
    """Integrate from the initial time to ``t_end`` with a Runge-Kutta method.

    The last step is shortened to land on ``t_end``. In adaptive mode the time step is
    recomputed every ``n_adapt_dt`` steps and a step that fails to converge is retried
    with half the time step.
    """

    Parameters = UnsteadyParameters

    def __init__(self, setup, initial_conditions, params=None, processors=(), **kwargs):
        super().__init__(setup, initial_conditions, params, processors, **kwargs)
        self.stepper = create_time_stepper(
            setup, self.params, self.pressure_solver, self.momentum
        )
        self.cache = self.stepper.allocate_cache()
        self.dt = self.params.dt
        self.n_steps = 0

        # The first explicit stage reuses p_n, which must match V_n
        if not setup.bc_unsteady:
            state = self.arrays
            pressure_additional_solve(
                self.pressure_solver, self.momentum, state.V, state.t,
                scalars=state.scalars, out=state.p,
            )

    def _time_left(self) -> float:
        return self.params.t_end - self.arrays.t

    def _is_finished(self, iteration):
        if iteration >= self.params.max_iterations:
            return True
        return self._time_left() <= 1e-12 * max(1.0, abs(self.params.t_end))

    def _is_converged(self, residual):
        return self._time_left() <= 1e-12 * max(1.0, abs(self.params.t_end))

    def step(self):
        params = self.params
        state = self.arrays

        if params.adaptive and self.n_steps % params.n_adapt_dt == 0:
            self.dt = compute_timestep(
                self.setup, self.momentum, state.V, state.t, params.cfl, state.scalars
            )
        dt = min(self.dt, self._time_left())

        backup = state.copy() if params.adaptive else None
        retries = 0
        while True:
            try:
                self.stepper.step(state, dt, self.cache)
                break
            except ConvergenceFailure as exc:
                if backup is None or retries >= params.max_retries:
                    raise
                retries += 1
                self.retries += 1
                log.warning(
                    "Step at t=%.6g failed in stage %s (%s), retrying with dt=%.3e",
                    backup.t, self.stepper.stage, exc, dt / 2,
                )
                state.restore(backup)
                dt /= 2
                self.dt = dt

        self.n_steps += 1
        self.last_dt = dt
        F = self.momentum.momentum(state.V, state.p, state.t, scalars=state.scalars)
        return float(np.max(np.abs(F)))

    def solve(self):
        super().solve()
        if not self.metrics.converged:
            log.warning(
                "Stopped at t=%.6g before t_end=%.6g after %d steps (max_iterations)",
                self.arrays.t, self.params.t_end, self.metrics.iterations,
            )
