"""Scipy-based Krylov solve using conjugate gradients."""

import numpy as np
import pyamg
from scipy.sparse import csr_matrix
from scipy.sparse.linalg import cg

from fv.core.errors import ConvergenceFailure


def scipy_solver(
    A_csr: csr_matrix,
    b_np: np.ndarray,
    x0=None,
    M=None,
    tolerance=1e-12,
    max_iterations=1000,
):
    """Solve the symmetric positive (semi-)definite system A x = b with scipy CG.

    Parameters
    ----------
    A_csr : csr_matrix
        Sparse matrix in CSR format.
    b_np : np.ndarray
        Right-hand side vector.
    x0 : np.ndarray, optional
        Initial guess.
    M : LinearOperator, optional
        Preconditioner approximating the inverse of A.
    tolerance : float, optional
        Relative residual tolerance (default: 1e-12).
    max_iterations : int, optional
        Maximum iterations (default: 1000).

    Returns
    -------
    x_np : np.ndarray
        Solution vector (last iterate when not converged).
    info : int
        0 on convergence, the iteration cap otherwise.
    iterations : int
        Number of CG iterations performed.
    """
    iterations = 0

    def count(_):
        nonlocal iterations
        iterations += 1

    x, info = cg(A_csr, b_np, x0=x0, rtol=tolerance, atol=0.0,
                 maxiter=max_iterations, M=M, callback=count)

    if info < 0:
        raise ConvergenceFailure(f"CG breakdown (info={info})", iterations=iterations)

    return x, info, iterations


def amg_preconditioner(A_csr: csr_matrix):
    """Smoothed aggregation AMG V-cycle as a CG preconditioner."""
    ml = pyamg.smoothed_aggregation_solver(A_csr)
    return ml.aspreconditioner(cycle="V")
