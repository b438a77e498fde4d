"""1D face-coordinate generators for tensor-product grids."""

import numpy as np

from fv.core.errors import ConfigurationError


def stretched_grid(a: float, b: float, n: int, s: float = 1.0) -> np.ndarray:
    """Faces of ``n`` volumes on [a, b] with geometric stretching factor ``s``.

    Consecutive widths grow by a factor ``s``; ``s == 1`` gives a uniform grid.

    Parameters
    ----------
    a, b : float
        Interval end points, a < b.
    n : int
        Number of volumes (n + 1 faces).
    s : float, optional
        Stretching factor, must be positive.

    Returns
    -------
    np.ndarray
        Strictly increasing face coordinates of length n + 1.
    """
    if s <= 0:
        raise ConfigurationError(f"Stretching factor must be positive, got {s}")
    if n < 1 or not a < b:
        raise ConfigurationError(f"Invalid interval [{a}, {b}] with {n} volumes")
    if np.isclose(s, 1.0):
        return np.linspace(a, b, n + 1)
    i = np.arange(n + 1)
    x = a + (b - a) * (1 - s**i) / (1 - s**n)
    x[-1] = b
    return x


def cosine_grid(a: float, b: float, n: int) -> np.ndarray:
    """Faces of ``n`` volumes on [a, b], clustered at both ends (Chebyshev-like)."""
    if n < 1 or not a < b:
        raise ConfigurationError(f"Invalid interval [{a}, {b}] with {n} volumes")
    i = np.arange(n + 1)
    return a + (b - a) * (1 - np.cos(np.pi * i / n)) / 2
