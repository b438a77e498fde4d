"""Steady-state driver: Newton or Picard iteration on the coupled system."""

import logging

import numpy as np

from fv.core.errors import ConfigurationError
from .base_solver import NavierStokesSolver
from .datastructures import SteadyParameters
from .time_steppers import solve_saddle_point

log = logging.getLogger(__name__)


class SteadyStateSolver(NavierStokesSolver):
    """Solve ``F(V) - G p - yG = 0``, ``M V + yM = 0``.

    Each iteration solves ``[[-J, G], [M, 0]] [dV; dp] = [R; -(M V + yM)]`` with
    ``J`` the full (Newton) or frozen-flux (Picard) convection-diffusion Jacobian.
    Boundary data are evaluated at the initial time.
    """

    Parameters = SteadyParameters

    def __init__(self, setup, initial_conditions, params=None, processors=(), **kwargs):
        super().__init__(setup, initial_conditions, params, processors, **kwargs)
        if setup.n_scalars:
            raise ConfigurationError("Transported turbulence scalars need the unsteady solver")
        if self.params.nonlinear_solver not in ("newton", "picard"):
            raise ConfigurationError(f"Unknown nonlinear solver '{self.params.nonlinear_solver}'")
        self.newton = self.params.nonlinear_solver == "newton"

    def _residuals(self):
        state = self.arrays
        bv = self.momentum.boundary_vectors(state.t)
        R_V = self.momentum.momentum(state.V, state.p, state.t, bv=bv)
        R_c = self.setup.operators.divergence(state.V, bv)
        return R_V, R_c, bv

    def _is_finished(self, iteration):
        return iteration >= self.params.max_iterations

    def _is_converged(self, residual):
        return residual < self.params.tolerance

    def step(self):
        ops = self.setup.operators
        state = self.arrays
        R_V, R_c, bv = self._residuals()

        J = self.momentum.jacobian(state.V, state.t, bv=bv, newton=self.newton)
        dV, dp = solve_saddle_point(
            ops.M, -J, ops.G, R_V, -R_c, self.pressure_solver.gauge_free
        )
        state.V += dV
        state.p += dp
        if self.pressure_solver.gauge_free:
            state.p -= state.p.mean()

        R_V, R_c, _ = self._residuals()
        return float(max(np.max(np.abs(R_V)), np.max(np.abs(R_c))))

    def solve(self):
        super().solve()
        if not self.metrics.converged:
            log.warning(
                "Steady solve not converged after %d iterations (residual %.3e)",
                self.metrics.iterations, self.metrics.final_residual,
            )
