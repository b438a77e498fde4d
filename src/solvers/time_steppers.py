"""Runge-Kutta time steppers for the incompressible equations.

Both steppers advance a ``SolverState`` in place. Explicit methods project the
velocity onto the divergence-free space after every stage; diagonally implicit
methods solve the coupled velocity-pressure system of each stage.
"""

import logging

import numpy as np
import scipy.sparse as sp
from scipy.sparse.linalg import spsolve

from fv.core.errors import ConfigurationError, ConvergenceFailure, NumericalDefectError
from fv.linear_solvers import pressure_additional_solve, pressure_poisson
from solvers.datastructures import StepperCache
from solvers.tableaux import ButcherTableau, get_tableau

log = logging.getLogger(__name__)


class TimeStepper:
    """Shared state of the Runge-Kutta steppers."""

    def __init__(self, setup, tableau: ButcherTableau, pressure_solver, momentum):
        self.setup = setup
        self.tableau = tableau
        self.pressure_solver = pressure_solver
        self.momentum = momentum
        self.operators = setup.operators
        self.stage = None

    def allocate_cache(self) -> StepperCache:
        grid = self.setup.grid
        return StepperCache.allocate(grid.NV, grid.NP, self.tableau.nstage, self.setup.n_scalars)

    def step(self, state, dt: float, cache: StepperCache):
        raise NotImplementedError

    def __repr__(self):
        return f"{type(self).__name__}({self.tableau.name})"


def solve_saddle_point(M, K_VV, K_Vp, rhs_V, rhs_c, gauge_free: bool):
    """Solve ``[[K_VV, K_Vp], [M, 0]] [x_V; x_p] = [rhs_V; rhs_c]`` by sparse LU.

    Without a pressure boundary the first pressure unknown is fixed to zero and the
    first continuity row, which is linearly dependent on the others, is dropped.
    """
    NV = K_VV.shape[0]
    K = sp.bmat([[K_VV, K_Vp], [M, None]], format="csr")
    rhs = np.concatenate([rhs_V, rhs_c])
    if gauge_free:
        keep = np.ones(K.shape[0], dtype=bool)
        keep[NV] = False
        x = np.zeros(K.shape[0])
        x[keep] = spsolve(K[keep][:, keep].tocsc(), rhs[keep])
    else:
        x = spsolve(K.tocsc(), rhs)
    if not np.all(np.isfinite(x)):
        raise NumericalDefectError("Saddle-point solve returned non-finite values")
    return x[:NV], x[NV:]


# ========================================================
# Explicit Runge-Kutta with stage projection
# ========================================================


class ExplicitRungeKutta(TimeStepper):
    """Explicit Runge-Kutta with a pressure projection after every stage.

    The tableau is shifted so that stage ``i`` produces the velocity at
    ``t_n + c_hat[i] dt``; the last row of the shifted matrix holds the weights.

    Parameters
    ----------
    setup : Setup
    tableau : ButcherTableau
        Explicit tableau.
    pressure_solver : PressureSolver
    momentum : MomentumAssembly
    p_add_solve : bool
        With unsteady boundaries, compute the end-of-step pressure with an additional
        Poisson solve instead of taking the last stage pressure.
    """

    def __init__(self, setup, tableau, pressure_solver, momentum, p_add_solve: bool = True):
        if not tableau.is_explicit:
            raise ConfigurationError(f"{tableau.name} is not an explicit method")
        super().__init__(setup, tableau, pressure_solver, momentum)
        self.A_hat = np.vstack([tableau.A[1:, :], tableau.b])
        self.c_hat = np.append(tableau.c[1:], 1.0)
        if np.any(self.c_hat == 0):
            raise ConfigurationError(f"{tableau.name}: stage times must advance (c_hat == 0)")
        self.p_add_solve = p_add_solve

    def step(self, state, dt, cache):
        setup = self.setup
        ops = self.operators
        mom = self.momentum
        Omega_inv = ops.Omega_inv
        V, p, t_n = state.V, state.p, state.t

        cache.V_n[:] = V
        cache.p_n[:] = p
        scalars = state.scalars
        if scalars is not None:
            for q, s in enumerate(scalars):
                cache.s_n[q] = s

        t_i = t_n
        bv = mom.boundary_vectors(t_i)
        for i in range(self.tableau.nstage):
            self.stage = i + 1

            # Slopes at the current stage value
            mom.momentum(V, None, t_i, bv=bv, out=cache.F, scalars=scalars)
            cache.kV[:, i] = Omega_inv * cache.F
            if scalars is not None:
                rk, re = mom.scalar_rhs(V, scalars[0], scalars[1], t_i, bv=bv)
                cache.ks[0, :, i] = rk / setup.grid.Omega_p
                cache.ks[1, :, i] = re / setup.grid.Omega_p

            a = self.A_hat[i, : i + 1]
            cache.Vtemp[:] = cache.kV[:, : i + 1] @ a

            t_i = t_n + self.c_hat[i] * dt
            bv = mom.boundary_vectors(t_i)

            # Poisson equation for the stage pressure
            if i == 0 and not setup.bc_unsteady:
                cache.dp[:] = cache.p_n
            else:
                f = (ops.M @ (cache.V_n / dt + cache.Vtemp) + bv.yM / dt) / self.c_hat[i]
                pressure_poisson(self.pressure_solver, f, out=cache.dp)

            V[:] = cache.V_n + dt * (cache.Vtemp - self.c_hat[i] * Omega_inv * (ops.G @ cache.dp))

            if scalars is not None:
                updated = cache.s_n + dt * (cache.ks[:, :, : i + 1] @ a)
                np.maximum(updated, setup.viscosity_model.floor, out=updated)
                for q, s in enumerate(scalars):
                    s[:] = updated[q]

        self.stage = "pressure"
        state.t = t_n + dt
        if not setup.bc_unsteady or self.p_add_solve:
            pressure_additional_solve(
                self.pressure_solver, mom, V, state.t, scalars=scalars, out=p
            )
        else:
            p[:] = cache.dp
        self.stage = None


# ========================================================
# Diagonally implicit Runge-Kutta
# ========================================================


class ImplicitRungeKutta(TimeStepper):
    """Diagonally implicit Runge-Kutta with coupled velocity-pressure stages.

    Stage ``i`` solves

        Omega (V_i - V_n) / dt = sum_{j<i} a_ij K_j + a_ii K_i,   M V_i + yM = 0

    with ``K_i = F(V_i) - G p_i - yG``, by Newton or Picard iteration on the
    saddle-point system ``[[Omega/dt - a_ii J, a_ii G], [M, 0]]``.
    """

    def __init__(self, setup, tableau, pressure_solver, momentum, nonlinear_solver: str = "newton",
                 tolerance: float = 1e-10, max_iterations: int = 20):
        if not tableau.is_diagonally_implicit:
            raise ConfigurationError(
                f"{tableau.name} is not diagonally implicit; fully implicit methods are not supported"
            )
        if setup.n_scalars:
            raise ConfigurationError("Transported turbulence scalars need an explicit method")
        if nonlinear_solver not in ("newton", "picard"):
            raise ConfigurationError(f"Unknown nonlinear solver '{nonlinear_solver}'")
        super().__init__(setup, tableau, pressure_solver, momentum)
        self.newton = nonlinear_solver == "newton"
        self.tolerance = tolerance
        self.max_iterations = max_iterations
        self.last_iterations = 0

    def step(self, state, dt, cache):
        ops = self.operators
        mom = self.momentum
        A, c = self.tableau.A, self.tableau.c
        Omega = ops.Omega
        V, p, t_n = state.V, state.p, state.t
        cache.V_n[:] = V
        cache.p_n[:] = p
        scale = 1.0 + np.max(np.abs(Omega * cache.V_n)) / dt

        for i in range(self.tableau.nstage):
            self.stage = i + 1
            t_i = t_n + c[i] * dt
            bv = mom.boundary_vectors(t_i)
            explicit = cache.kV[:, :i] @ A[i, :i]
            a_ii = A[i, i]

            if a_ii == 0.0:
                # Explicit first stage (e.g. Crank-Nicolson)
                mom.momentum(V, p, t_i, bv=bv, out=cache.kV[:, i])
                continue

            self.last_iterations = 0
            for it in range(self.max_iterations + 1):
                mom.momentum(V, p, t_i, bv=bv, out=cache.F)
                R_V = Omega * (V - cache.V_n) / dt - explicit - a_ii * cache.F
                R_c = ops.M @ V + bv.yM
                residual = max(np.max(np.abs(R_V)), np.max(np.abs(R_c)) / dt)
                if not np.isfinite(residual):
                    raise NumericalDefectError(f"Non-finite residual in stage {i + 1}")
                if residual <= self.tolerance * scale:
                    break
                if it == self.max_iterations:
                    raise ConvergenceFailure(
                        f"Stage {i + 1} of {self.tableau.name} did not converge",
                        residual=residual,
                        iterations=it,
                    )
                J = mom.jacobian(V, t_i, bv=bv, newton=self.newton)
                K_VV = sp.diags(Omega / dt) - a_ii * J
                dV, dp = solve_saddle_point(
                    ops.M, K_VV, a_ii * ops.G, -R_V, -R_c, self.pressure_solver.gauge_free
                )
                V += dV
                p += dp
                self.last_iterations = it + 1
            log.debug("Stage %d converged in %d iterations", i + 1, self.last_iterations)

            cache.kV[:, i] = (Omega * (V - cache.V_n) / dt - explicit) / a_ii

        self.stage = "pressure"
        state.t = t_n + dt
        V[:] = cache.V_n + dt * ops.Omega_inv * (cache.kV @ self.tableau.b)

        # Project the combined velocity and recompute a consistent pressure
        bv = mom.boundary_vectors(state.t)
        f = (ops.M @ V + bv.yM) / dt
        pressure_poisson(self.pressure_solver, f, out=cache.dp)
        V -= dt * ops.Omega_inv * (ops.G @ cache.dp)
        pressure_additional_solve(self.pressure_solver, mom, V, state.t, out=p)
        self.stage = None


def create_time_stepper(setup, params, pressure_solver, momentum) -> TimeStepper:
    """Stepper for ``params.rk_method``."""
    tableau = get_tableau(params.rk_method)
    if tableau.is_explicit:
        return ExplicitRungeKutta(
            setup, tableau, pressure_solver, momentum, p_add_solve=params.p_add_solve
        )
    return ImplicitRungeKutta(
        setup,
        tableau,
        pressure_solver,
        momentum,
        nonlinear_solver=params.nonlinear_solver,
        tolerance=params.nonlinear_tolerance,
        max_iterations=params.nonlinear_max_iterations,
    )
