"""Butcher tableaux of the Runge-Kutta methods.

Explicit methods are integrated with a pressure projection after every stage;
diagonally implicit methods solve a saddle-point system per stage.
"""

from dataclasses import dataclass

import numpy as np

from fv.core.errors import ConfigurationError


@dataclass(frozen=True)
class ButcherTableau:
    name: str
    A: np.ndarray
    b: np.ndarray
    c: np.ndarray
    order: int = 1

    def __post_init__(self):
        A = np.atleast_2d(np.asarray(self.A, dtype=float))
        b = np.asarray(self.b, dtype=float)
        c = np.asarray(self.c, dtype=float)
        s = len(b)
        if A.shape != (s, s) or c.shape != (s,):
            raise ConfigurationError(f"Tableau {self.name}: inconsistent shapes")
        if not np.isclose(b.sum(), 1.0, atol=1e-12):
            raise ConfigurationError(f"Tableau {self.name}: weights do not sum to one")
        if not np.allclose(A.sum(axis=1), c, atol=1e-12):
            raise ConfigurationError(f"Tableau {self.name}: c differs from the row sums of A")
        object.__setattr__(self, "A", A)
        object.__setattr__(self, "b", b)
        object.__setattr__(self, "c", c)

    @property
    def nstage(self) -> int:
        return len(self.b)

    @property
    def is_explicit(self) -> bool:
        return bool(np.all(np.triu(self.A) == 0))

    @property
    def is_diagonally_implicit(self) -> bool:
        return bool(np.all(np.triu(self.A, 1) == 0)) and not self.is_explicit


def _tableau(name, A, b, c, order):
    return ButcherTableau(name, np.array(A, dtype=float), np.array(b, dtype=float),
                          np.array(c, dtype=float), order)


# ========================================================
# Explicit methods
# ========================================================

_EXPLICIT = [
    _tableau("FE11", [[0]], [1], [0], 1),
    _tableau("SSP22", [[0, 0], [1, 0]], [1 / 2, 1 / 2], [0, 1], 2),
    _tableau("Mid22", [[0, 0], [1 / 2, 0]], [0, 1], [0, 1 / 2], 2),
    _tableau(
        "SSP42",
        [[0, 0, 0, 0], [1 / 3, 0, 0, 0], [1 / 3, 1 / 3, 0, 0], [1 / 3, 1 / 3, 1 / 3, 0]],
        [1 / 4, 1 / 4, 1 / 4, 1 / 4],
        [0, 1 / 3, 2 / 3, 1],
        2,
    ),
    _tableau("SSP33", [[0, 0, 0], [1, 0, 0], [1 / 4, 1 / 4, 0]], [1 / 6, 1 / 6, 2 / 3], [0, 1, 1 / 2], 3),
    _tableau(
        "SSP43",
        [[0, 0, 0, 0], [1 / 2, 0, 0, 0], [1 / 2, 1 / 2, 0, 0], [1 / 6, 1 / 6, 1 / 6, 0]],
        [1 / 6, 1 / 6, 1 / 6, 1 / 2],
        [0, 1 / 2, 1, 1 / 2],
        3,
    ),
    _tableau(
        "Wray3",
        [[0, 0, 0], [8 / 15, 0, 0], [1 / 4, 5 / 12, 0]],
        [1 / 4, 0, 3 / 4],
        [0, 8 / 15, 2 / 3],
        3,
    ),
    _tableau(
        "RK44",
        [[0, 0, 0, 0], [1 / 2, 0, 0, 0], [0, 1 / 2, 0, 0], [0, 0, 1, 0]],
        [1 / 6, 1 / 3, 1 / 3, 1 / 6],
        [0, 1 / 2, 1 / 2, 1],
        4,
    ),
    # Half-explicit method of Brasey and Hairer, third order for index-2 DAEs
    _tableau(
        "HEM3",
        [[0, 0, 0], [1 / 3, 0, 0], [-1, 2, 0]],
        [0, 3 / 4, 1 / 4],
        [0, 1 / 3, 1],
        3,
    ),
]

# ========================================================
# Diagonally implicit methods
# ========================================================

_gamma = 1 / 2 + np.cos(np.pi / 18) / np.sqrt(3)
_delta = 1 / (6 * (2 * _gamma - 1) ** 2)

_IMPLICIT = [
    _tableau("BE11", [[1]], [1], [1], 1),
    _tableau("GL1", [[1 / 2]], [1], [1 / 2], 2),
    _tableau("CN22", [[0, 0], [1 / 2, 1 / 2]], [1 / 2, 1 / 2], [0, 1], 2),
    _tableau(
        "SDIRK34",
        [
            [_gamma, 0, 0],
            [1 / 2 - _gamma, _gamma, 0],
            [2 * _gamma, 1 - 4 * _gamma, _gamma],
        ],
        [_delta, 1 - 2 * _delta, _delta],
        [_gamma, 1 / 2, 1 - _gamma],
        4,
    ),
]

TABLEAUX = {t.name: t for t in _EXPLICIT + _IMPLICIT}


def get_tableau(name: str) -> ButcherTableau:
    """Look up a tableau by name (case insensitive)."""
    lookup = {k.lower(): v for k, v in TABLEAUX.items()}
    try:
        return lookup[name.lower()]
    except KeyError:
        raise ConfigurationError(
            f"Unknown Runge-Kutta method '{name}', expected one of {sorted(TABLEAUX)}"
        ) from None
