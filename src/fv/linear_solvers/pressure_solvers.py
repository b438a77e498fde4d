"""Pressure Poisson solvers.

All variants solve ``L p = f`` with ``L = M diag(Omega_inv) G`` on the pressure DOFs and
share the ``solve(rhs) -> p`` contract. Without any pressure boundary the pressure is
only defined up to a constant (gauge freedom): the right-hand side must then sum to
zero, and the returned solution has zero mean.
"""

import logging

import numpy as np
import scipy.fft
import scipy.sparse as sp
from scipy.sparse.linalg import splu

from fv.core.errors import (
    ConfigurationError,
    ConvergenceFailure,
    NumericalDefectError,
    SingularOperatorError,
)
from fv.core.helpers import selection_matrix
from fv.linear_solvers.scipy_solver import amg_preconditioner, scipy_solver
from meshing.boundary_conditions import PeriodicBC, PressureBC

log = logging.getLogger(__name__)


class PressureSolver:
    """Common interface and compatibility check."""

    name = ""
    compatibility_rtol = 1e-8
    compatibility_atol = 1e-10

    def __init__(self, setup):
        self.setup = setup
        self.L = setup.operators.L
        self.NP = setup.grid.NP
        self.gauge_free = not any(
            isinstance(bc, PressureBC) for pair in setup.grid.boundary_conditions for bc in pair
        )
        self.n_solves = 0

    def check_compatibility(self, f: np.ndarray):
        """Raise when the right-hand side has a component in the gauge null space."""
        if not self.gauge_free:
            return
        imbalance = abs(float(np.sum(f)))
        if imbalance > max(self.compatibility_rtol * float(np.sum(np.abs(f))), self.compatibility_atol):
            raise ConvergenceFailure(
                "Pressure right-hand side violates the compatibility condition",
                residual=imbalance,
            )

    def solve(self, f: np.ndarray, out=None) -> np.ndarray:
        self.check_compatibility(f)
        p = self._solve(f)
        if not np.all(np.isfinite(p)):
            raise NumericalDefectError(f"{type(self).__name__} returned non-finite pressure")
        if self.gauge_free:
            p = p - p.mean()
        self.n_solves += 1
        if out is not None:
            out[:] = p
            return out
        return p

    def _solve(self, f):
        raise NotImplementedError


class DirectPressureSolver(PressureSolver):
    """Sparse LU factorization computed once, triangular solves per call.

    Parameters
    ----------
    setup : Setup
    pin_gauge : bool, optional
        Fix the first pressure DOF when the pressure is gauge free. Without it the
        factorization of a gauge-free problem is singular.
    """

    name = "direct"

    def __init__(self, setup, pin_gauge: bool = True):
        super().__init__(setup)
        A = (-self.L).tocsr()
        self._pinned = self.gauge_free and pin_gauge
        if self._pinned:
            mask = np.ones(self.NP)
            mask[0] = 0.0
            P = sp.diags(mask)
            A = P @ A @ P + selection_matrix(np.array([0]), np.array([0]), A.shape)
        try:
            self._lu = splu(A.tocsc())
        except RuntimeError as exc:
            raise SingularOperatorError(f"Pressure matrix factorization failed: {exc}") from exc

        pivots = np.abs(self._lu.U.diagonal())
        if pivots.min() <= 1e-12 * pivots.max():
            raise SingularOperatorError(
                "Pressure matrix is singular (gauge freedom not fixed or ill-posed boundaries)"
            )

    def _solve(self, f):
        b = -f
        if self._pinned:
            b[0] = 0.0
        return self._lu.solve(b)


class CGPressureSolver(PressureSolver):
    """Conjugate gradients on ``-L`` with optional AMG or Jacobi preconditioning."""

    name = "cg"

    def __init__(self, setup, tolerance: float = 1e-12, max_iterations: int = 1000,
                 preconditioner=None):
        super().__init__(setup)
        self.A = (-self.L).tocsr()
        self.tolerance = tolerance
        self.max_iterations = max_iterations
        if preconditioner is None:
            self.M = None
        elif preconditioner == "amg":
            self.M = amg_preconditioner(self.A)
        elif preconditioner == "jacobi":
            self.M = sp.diags(1.0 / self.A.diagonal())
        else:
            raise ConfigurationError(f"Unknown CG preconditioner '{preconditioner}'")
        self._x0 = np.zeros(self.NP)
        self.last_iterations = 0

    def _solve(self, f):
        b = -f
        x, info, iterations = scipy_solver(
            self.A, b, x0=self._x0, M=self.M,
            tolerance=self.tolerance, max_iterations=self.max_iterations,
        )
        self.last_iterations = iterations
        if info > 0:
            residual = float(np.linalg.norm(b - self.A @ x) / max(np.linalg.norm(b), 1e-300))
            log.warning("CG pressure solve not converged after %d iterations (residual %.3e)",
                        iterations, residual)
            raise ConvergenceFailure("CG pressure solve did not converge", residual, iterations)
        self._x0 = x.copy()
        return x


class SpectralPressureSolver(PressureSolver):
    """FFT diagonalization of the Poisson matrix on uniform, fully periodic grids."""

    name = "spectral"

    def __init__(self, setup):
        super().__init__(setup)
        grid = setup.grid
        periodic = all(isinstance(bc, PeriodicBC) for pair in grid.boundary_conditions for bc in pair)
        if not periodic or not grid.is_uniform():
            raise ConfigurationError(
                "Spectral pressure solver requires a uniform grid with periodic boundaries"
            )
        self.shape = grid.Np
        e0 = np.zeros(self.NP)
        e0[0] = 1.0
        self._eig = scipy.fft.fftn((self.L @ e0).reshape(self.shape))
        self._zero_mode = (0,) * len(self.shape)
        self._eig[self._zero_mode] = 1.0

    def _solve(self, f):
        fhat = scipy.fft.fftn(f.reshape(self.shape))
        phat = fhat / self._eig
        phat[self._zero_mode] = 0.0
        return np.real(scipy.fft.ifftn(phat)).ravel()


PRESSURE_SOLVERS = {
    cls.name: cls for cls in (DirectPressureSolver, CGPressureSolver, SpectralPressureSolver)
}


def create_pressure_solver(name: str, setup, **options) -> PressureSolver:
    """Instantiate a pressure solver from its tag ("direct", "cg", "spectral")."""
    try:
        cls = PRESSURE_SOLVERS[name.lower()]
    except KeyError:
        raise ConfigurationError(
            f"Unknown pressure solver '{name}', expected one of {sorted(PRESSURE_SOLVERS)}"
        ) from None
    return cls(setup, **options)


# ========================================================
# Poisson problems of the projection method
# ========================================================


def pressure_poisson(solver: PressureSolver, f: np.ndarray, out=None) -> np.ndarray:
    """Solve ``L p = f``."""
    return solver.solve(f, out=out)


def pressure_additional_solve(solver: PressureSolver, momentum, V, t, scalars=None, out=None):
    """Pressure consistent with the velocity ``V`` at time ``t``.

    Solves ``L p = M Omega_inv (F(V, t) - yG) + dyM/dt``, obtained by differentiating the
    divergence constraint in time.
    """
    ops = momentum.operators
    F = momentum.momentum(V, None, t, scalars=scalars)
    f = ops.M @ (ops.Omega_inv * F)
    bv_dt = momentum.boundary_vectors(t, dudt=True)
    if bv_dt is not None:
        f += bv_dt.yM
    return solver.solve(f, out=out)
