"""
StaggeredGrid: index and metric layout for the staggered (MAC) finite volume grid.

Layout Conventions:
- Every field is stored as a padded D-dimensional array of shape ``N`` (ghost volumes
  included), flattened in C order. The same shape is used for pressure and for every
  velocity component.
- Volume ``i`` along axis ``β`` spans ``[x[β][i], x[β][i+1]]`` of the extended faces.
  Pressure sits at its center ``xp[β][i]``.
- Velocity component ``α`` with padded index ``I`` sits on the right face of volume ``I``
  in direction ``α`` (``x[α][I_α + 1]``) and at centers in the other directions.

Degrees of Freedom:
- ``Iu[α]`` / ``Ip`` are tuples of slices selecting the DOF block inside the padded
  arrays; their bounds come from the boundary condition offsets.
- ``V`` concatenates the flattened DOF blocks of u, v (, w); ``velocity_range(α)`` is the
  slice of ``V`` owned by component ``α``.

Volume Weights:
- ``Omega_p``: pressure volumes, product of the volume widths ``dx``.
- ``Omega``: velocity volumes, center-to-center distance ``dxu`` along ``α`` and volume
  widths in the other directions. ``Omega_inv`` is its reciprocal.
"""

import numpy as np

from fv.core.errors import ConfigurationError
from fv.core.helpers import tensor_weights
from meshing.boundary_conditions import check_boundary_conditions


class StaggeredGrid:
    def __init__(self, x_interior, x, boundary_conditions):
        D = len(x)
        self.x_interior = tuple(x_interior)
        self.boundary_conditions = tuple(tuple(pair) for pair in boundary_conditions)

        # --- Extended coordinates ---
        self.x = tuple(x)
        self.xp = tuple((xi[1:] + xi[:-1]) / 2 for xi in x)
        self.N = tuple(len(xi) - 1 for xi in x)
        self.dx = tuple(np.diff(xi) for xi in x)
        dxu = []
        for beta in range(D):
            d = np.empty(self.N[beta])
            d[:-1] = np.diff(self.xp[beta])
            d[-1] = self.dx[beta][-1] / 2
            dxu.append(d)
        self.dxu = tuple(dxu)

        # --- DOF index ranges ---
        self.Iu = tuple(
            tuple(
                slice(left.dof_offset(alpha == beta, False),
                      self.N[beta] - right.dof_offset(alpha == beta, True))
                for beta, (left, right) in enumerate(self.boundary_conditions)
            )
            for alpha in range(D)
        )
        self.Ip = tuple(
            slice(left.pressure_offset(False), self.N[beta] - right.pressure_offset(True))
            for beta, (left, right) in enumerate(self.boundary_conditions)
        )
        self.Nu = tuple(tuple(s.stop - s.start for s in I) for I in self.Iu)
        self.Np = tuple(s.stop - s.start for s in self.Ip)
        for shape in self.Nu + (self.Np,):
            if min(shape) < 1:
                raise ConfigurationError(f"Grid too small for its boundary conditions: {shape}")

        sizes = [int(np.prod(shape)) for shape in self.Nu]
        starts = np.concatenate([[0], np.cumsum(sizes)])
        self._velocity_ranges = tuple(slice(int(starts[a]), int(starts[a + 1])) for a in range(D))
        self.NV = int(starts[-1])
        self.NP = int(np.prod(self.Np))
        self.n_padded = int(np.prod(self.N))

        # --- Volume weights ---
        self.Omega_p = self.padded_pressure_volumes()[self.Ip].ravel()
        self.Omega = np.concatenate(
            [self.padded_velocity_volumes(a)[self.Iu[a]].ravel() for a in range(D)]
        )
        if np.any(~np.isfinite(self.Omega)) or np.any(self.Omega <= 0):
            raise ConfigurationError("Velocity volumes must be strictly positive")
        if np.any(~np.isfinite(self.Omega_p)) or np.any(self.Omega_p <= 0):
            raise ConfigurationError("Pressure volumes must be strictly positive")
        self.Omega_inv = 1.0 / self.Omega

        self._coordinate_cache = {}

    def dimension(self) -> int:
        return len(self.N)

    def velocity_range(self, alpha: int) -> slice:
        return self._velocity_ranges[alpha]

    # ----- Metric helpers -----

    def velocity_widths(self, alpha: int):
        """Per-axis widths of the velocity volumes of component ``alpha``."""
        return [self.dxu[b] if b == alpha else self.dx[b] for b in range(self.dimension())]

    def padded_velocity_volumes(self, alpha: int) -> np.ndarray:
        return tensor_weights(self.velocity_widths(alpha)).reshape(self.N)

    def padded_pressure_volumes(self) -> np.ndarray:
        return tensor_weights(list(self.dx)).reshape(self.N)

    def filter_width(self) -> np.ndarray:
        """Cell filter width (product of widths)^(1/D) on the padded pressure grid."""
        return self.padded_pressure_volumes() ** (1.0 / self.dimension())

    # ----- Coordinates -----

    def _velocity_axes(self, alpha: int):
        return [self.x[b][1:] if b == alpha else self.xp[b] for b in range(self.dimension())]

    def padded_velocity_coordinates(self, alpha: int):
        """Full padded coordinate arrays of velocity component ``alpha``."""
        key = ("u", alpha)
        if key not in self._coordinate_cache:
            self._coordinate_cache[key] = np.meshgrid(*self._velocity_axes(alpha), indexing="ij")
        return self._coordinate_cache[key]

    def velocity_points(self, alpha: int):
        """Coordinates of the DOFs of velocity component ``alpha``."""
        return [c[self.Iu[alpha]] for c in self.padded_velocity_coordinates(alpha)]

    def pressure_points(self):
        """Coordinates of the pressure DOFs (cell centers)."""
        mesh = np.meshgrid(*self.xp, indexing="ij")
        return [c[self.Ip] for c in mesh]

    # ----- Padding -----

    def pad_velocity(self, V: np.ndarray):
        """Scatter ``V`` into zero padded arrays, one per component."""
        fields = []
        for alpha in range(self.dimension()):
            u = np.zeros(self.N)
            u[self.Iu[alpha]] = V[self.velocity_range(alpha)].reshape(self.Nu[alpha])
            fields.append(u)
        return fields

    def pad_pressure(self, p: np.ndarray) -> np.ndarray:
        field = np.zeros(self.N)
        field[self.Ip] = p.reshape(self.Np)
        return field

    def interior_coordinates(self, axis: int) -> np.ndarray:
        """Strip the ghost nodes added by the boundary conditions of ``axis``."""
        left, right = self.boundary_conditions[axis]
        x = self.x[axis]
        return x[left.n_ghost(False): len(x) - right.n_ghost(True)]

    def is_uniform(self, rtol: float = 1e-10) -> bool:
        """Whether every axis has equal face spacing in the interior."""
        for xi in self.x_interior:
            h = np.diff(xi)
            if not np.allclose(h, h[0], rtol=rtol, atol=0.0):
                return False
        return True


def create_grid(coords, boundary_conditions) -> StaggeredGrid:
    """Build a staggered grid from 1D face coordinates and boundary conditions.

    Parameters
    ----------
    coords : sequence of array_like
        One strictly increasing array of face coordinates per axis (2 or 3 axes).
    boundary_conditions : sequence of (BoundaryCondition, BoundaryCondition)
        ``(left, right)`` pair per axis.

    Returns
    -------
    StaggeredGrid
    """
    D = len(coords)
    if D not in (2, 3):
        raise ConfigurationError(f"Only 2D and 3D grids are supported, got D={D}")
    check_boundary_conditions(boundary_conditions, D)

    interior, extended = [], []
    for axis, (xi, (left, right)) in enumerate(zip(coords, boundary_conditions)):
        xi = np.asarray(xi, dtype=np.float64)
        if xi.ndim != 1 or len(xi) < 3:
            raise ConfigurationError(f"Axis {axis}: need a 1D array with at least 3 faces")
        if np.any(np.diff(xi) <= 0):
            raise ConfigurationError(f"Axis {axis}: face coordinates must be strictly increasing")
        interior.append(xi)
        xe = left.ghost_extend(xi, is_right=False)
        extended.append(right.ghost_extend(xe, is_right=True))
    return StaggeredGrid(interior, extended, boundary_conditions)
