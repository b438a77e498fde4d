"""Stencil and tensor-product helpers for operators on padded staggered arrays.

All padded fields are D-dimensional arrays flattened in C order, so axis 0 is the
slowest index and a 1D operator acting along ``axis`` is embedded as
``I ⊗ ... ⊗ A ⊗ ... ⊗ I``.
"""

from functools import reduce

import numpy as np
import scipy.sparse as sp


# ----- 1D stencils (square, truncated at the ends) -----


def forward_difference(n: int) -> sp.csr_matrix:
    """out[i] = in[i+1] - in[i]."""
    return sp.diags([-np.ones(n), np.ones(n - 1)], [0, 1], shape=(n, n), format="csr")


def backward_difference(n: int) -> sp.csr_matrix:
    """out[i] = in[i] - in[i-1]."""
    return sp.diags([np.ones(n), -np.ones(n - 1)], [0, -1], shape=(n, n), format="csr")


def forward_average(n: int) -> sp.csr_matrix:
    """out[i] = (in[i] + in[i+1]) / 2."""
    return sp.diags([np.full(n, 0.5), np.full(n - 1, 0.5)], [0, 1], shape=(n, n), format="csr")


# ----- Tensor products -----


def kron_axis(A: sp.spmatrix, axis: int, shape) -> sp.csr_matrix:
    """Embed a 1D operator acting along ``axis`` into the full padded index space."""
    factors = [A if d == axis else sp.identity(n, format="csr") for d, n in enumerate(shape)]
    return reduce(lambda a, b: sp.kron(a, b, format="csr"), factors)


def tensor_weights(factors) -> np.ndarray:
    """Flattened outer product of 1D weight arrays (one per axis)."""
    return reduce(np.multiply.outer, factors).ravel()


def safe_reciprocal(a: np.ndarray) -> np.ndarray:
    """Elementwise 1/a with zero where a == 0 (zero-width ghost volumes)."""
    a = np.asarray(a, dtype=np.float64)
    out = np.zeros_like(a)
    np.divide(1.0, a, out=out, where=a != 0)
    return out


# ----- Index shifts on padded arrays -----


def along(vec: np.ndarray, axis: int, ndim: int) -> np.ndarray:
    """Reshape a 1D array so that it broadcasts along ``axis`` of an ndim array."""
    shape = [1] * ndim
    shape[axis] = -1
    return np.reshape(vec, shape)


def shift(a: np.ndarray, axis: int, step: int) -> np.ndarray:
    """Return b with b[I] = a[I + step*e_axis], replicating the edge slab."""
    n = a.shape[axis]
    idx = np.clip(np.arange(n) + step, 0, n - 1)
    return np.take(a, idx, axis=axis)


def selection_matrix(rows: np.ndarray, cols: np.ndarray, shape) -> sp.csr_matrix:
    """Sparse 0/1 matrix with ones at (rows[k], cols[k])."""
    data = np.ones(len(rows))
    return sp.csr_matrix((data, (rows, cols)), shape=shape)
