"""Discrete conservation diagnostics (mass, momentum, kinetic energy)."""

from dataclasses import dataclass
from typing import Tuple

import numpy as np


@dataclass(frozen=True)
class ConservationDiagnostics:
    max_divergence: float
    momentum: Tuple[float, ...]
    kinetic_energy: float


class ConservationMonitor:
    """Compute conservation diagnostics of a velocity field; never mutates its input."""

    def __init__(self, setup):
        self.setup = setup
        self.grid = setup.grid
        self.operators = setup.operators
        self._steady_bv = None

    def _boundary_vectors(self, t):
        if self.setup.bc_unsteady:
            return self.operators.boundary_vectors(t)
        if self._steady_bv is None:
            self._steady_bv = self.operators.boundary_vectors(t)
        return self._steady_bv

    def divergence(self, V: np.ndarray, t: float) -> np.ndarray:
        return self.operators.divergence(V, self._boundary_vectors(t))

    def compute(self, V: np.ndarray, t: float) -> ConservationDiagnostics:
        grid = self.grid
        weighted = grid.Omega * V
        momentum = tuple(
            float(np.sum(weighted[grid.velocity_range(alpha)])) for alpha in range(grid.dimension())
        )
        return ConservationDiagnostics(
            max_divergence=float(np.max(np.abs(self.divergence(V, t)))),
            momentum=momentum,
            kinetic_energy=0.5 * float(np.dot(weighted, V)),
        )
