"""Boundary conditions for the staggered grid.

One instance is attached to each (axis, side) pair. The set of variants is closed:
Periodic, Dirichlet, Symmetric and Pressure. Each variant defines

- how ghost nodes are inserted into the 1D face coordinates (``ghost_extend``),
- how many padded slots at its side are not degrees of freedom (``dof_offset``),
- the ghost rules that ``apply`` executes on padded fields, and their transpose
  ``apply_adjoint``.

Ghost rules are ``(dst, src)`` pairs of slab indices along the boundary axis. ``src``
is ``None`` for slabs that are set to a boundary value instead of copied.
"""

import numpy as np

from fv.core.errors import ConfigurationError

KINDS = ("velocity", "pressure", "scalar")


def slab(axis: int, index: int, ndim: int) -> tuple:
    """Index tuple selecting one slab of a padded array along ``axis``."""
    return tuple(index if d == axis else slice(None) for d in range(ndim))


class BoundaryCondition:
    """Base class for the four boundary condition variants."""

    is_unsteady = False

    def ghost_extend(self, x: np.ndarray, is_right: bool) -> np.ndarray:
        raise NotImplementedError

    def n_ghost(self, is_right: bool) -> int:
        """Number of ghost nodes ``ghost_extend`` adds at this side."""
        return 1

    def dof_offset(self, is_normal: bool, is_right: bool) -> int:
        """Non-DOF velocity slots at this side."""
        raise NotImplementedError

    def pressure_offset(self, is_right: bool) -> int:
        """Non-DOF pressure slots at this side."""
        return 1

    def ghost_rules(self, n: int, is_normal: bool, is_right: bool, kind: str = "velocity") -> list:
        """Ordered ``(dst, src)`` slab rules for a padded axis of ``n`` volumes."""
        raise NotImplementedError

    def boundary_value(self, component, coords, t, dudt):
        """Value written into ``set`` slabs of velocity fields."""
        return 0.0

    # ----- Application on padded fields -----

    def apply(self, field, grid, axis: int, is_right: bool, t: float = 0.0,
              kind: str = "velocity", dudt: bool = False):
        """Write ghost values into ``field`` in place.

        Parameters
        ----------
        field : np.ndarray or sequence of np.ndarray
            Padded array (pressure, scalar) or one padded array per velocity component.
        grid : StaggeredGrid
            Grid providing padded sizes and coordinates.
        axis : int
            Boundary axis.
        is_right : bool
            Side of the axis.
        t : float
            Time at which boundary functions are evaluated.
        kind : {"velocity", "pressure", "scalar"}
        dudt : bool
            Evaluate the time derivative of the boundary velocity instead.
        """
        n = grid.N[axis]
        if kind == "velocity":
            for alpha, u in enumerate(field):
                rules = self.ghost_rules(n, alpha == axis, is_right, kind)
                coords = grid.padded_velocity_coordinates(alpha)
                for dst, src in rules:
                    d = slab(axis, dst, u.ndim)
                    if src is None:
                        value = self.boundary_value(alpha, [c[d] for c in coords], t, dudt)
                        u[d] = np.broadcast_to(value, u[d].shape)
                    else:
                        u[d] = u[slab(axis, src, u.ndim)]
        else:
            for dst, src in self.ghost_rules(n, False, is_right, kind):
                d = slab(axis, dst, field.ndim)
                field[d] = 0.0 if src is None else field[slab(axis, src, field.ndim)]
        return field

    def apply_adjoint(self, field, grid, axis: int, is_right: bool, kind: str = "velocity"):
        """Transpose of the homogeneous part of ``apply``, accumulated in place."""
        n = grid.N[axis]
        arrays = list(enumerate(field)) if kind == "velocity" else [(None, field)]
        for alpha, g in arrays:
            rules = self.ghost_rules(n, alpha == axis, is_right, kind)
            for dst, src in reversed(rules):
                d = slab(axis, dst, g.ndim)
                if src is not None:
                    g[slab(axis, src, g.ndim)] += g[d]
                g[d] = 0.0
        return field

    def __repr__(self):
        return f"{type(self).__name__}()"


class PeriodicBC(BoundaryCondition):
    """Wrap-around boundary; must be used on both sides of an axis."""

    def ghost_extend(self, x, is_right):
        # both ghosts are added in the left call, from the unextended spacing
        if is_right:
            return x
        return np.concatenate([[x[0] - (x[-1] - x[-2])], x, [x[-1] + (x[1] - x[0])]])

    def dof_offset(self, is_normal, is_right):
        return 1

    def ghost_rules(self, n, is_normal, is_right, kind="velocity"):
        return [(n - 1, 1)] if is_right else [(0, n - 2)]


class DirichletBC(BoundaryCondition):
    """Prescribed velocity on the boundary.

    Parameters
    ----------
    u : callable, optional
        ``u(component, *x, t)`` returning the boundary velocity; zero when omitted.
    dudt : callable, optional
        Time derivative of ``u`` with the same signature, used for the pressure
        compatibility of time-dependent boundaries.
    unsteady : bool, optional
        Whether ``u`` depends on time. Defaults to ``dudt is not None``.
    """

    def __init__(self, u=None, dudt=None, unsteady=None):
        self.u = u
        self.dudt = dudt
        self.is_unsteady = (dudt is not None) if unsteady is None else bool(unsteady)

    def ghost_extend(self, x, is_right):
        return np.concatenate([x, [x[-1]]]) if is_right else np.concatenate([[x[0]], x])

    def dof_offset(self, is_normal, is_right):
        return 1 + int(is_normal and is_right)

    def ghost_rules(self, n, is_normal, is_right, kind="velocity"):
        if kind != "velocity":
            return [(n - 1, n - 2)] if is_right else [(0, 1)]
        if not is_right:
            return [(0, None)]
        return [(n - 2, None), (n - 1, None)] if is_normal else [(n - 1, None)]

    def boundary_value(self, component, coords, t, dudt):
        fn = self.dudt if dudt else self.u
        if fn is None:
            return 0.0
        return np.asarray(fn(component, *coords, t), dtype=np.float64)

    def __repr__(self):
        return f"DirichletBC(u={self.u!r}, unsteady={self.is_unsteady})"


class SymmetricBC(BoundaryCondition):
    """Free-slip symmetry plane: zero normal velocity, mirrored tangential values."""

    def ghost_extend(self, x, is_right):
        if is_right:
            return np.concatenate([x, [x[-1] + (x[-1] - x[-2])]])
        return np.concatenate([[x[0] - (x[1] - x[0])], x])

    def dof_offset(self, is_normal, is_right):
        return 1 + int(is_normal and is_right)

    def ghost_rules(self, n, is_normal, is_right, kind="velocity"):
        if kind == "velocity" and is_normal:
            return [(n - 2, None), (n - 1, None)] if is_right else [(0, None)]
        return [(n - 1, n - 2)] if is_right else [(0, 1)]


class PressureBC(BoundaryCondition):
    """Open boundary with zero pressure and zero-gradient velocity."""

    def ghost_extend(self, x, is_right):
        if is_right:
            return np.concatenate([x, [x[-1]]])
        return np.concatenate([[x[0], x[0]], x])

    def n_ghost(self, is_right):
        return 1 if is_right else 2

    def dof_offset(self, is_normal, is_right):
        return 1 + int(not is_normal and not is_right)

    def pressure_offset(self, is_right):
        return 1 + int(not is_right)

    def ghost_rules(self, n, is_normal, is_right, kind="velocity"):
        if kind == "pressure":
            return [(n - 1, None)] if is_right else [(1, None), (0, None)]
        if is_right:
            return [(n - 1, n - 2)]
        if kind == "velocity" and is_normal:
            return [(0, 1)]
        return [(1, 2), (0, 2)]


def check_boundary_conditions(boundary_conditions, ndim: int):
    """Validate one ``(left, right)`` pair per axis and periodic pairing."""
    if len(boundary_conditions) != ndim:
        raise ConfigurationError(
            f"Expected {ndim} boundary condition pairs, got {len(boundary_conditions)}"
        )
    for axis, pair in enumerate(boundary_conditions):
        if len(pair) != 2:
            raise ConfigurationError(f"Axis {axis}: expected a (left, right) pair")
        left, right = pair
        for bc in pair:
            if not isinstance(bc, BoundaryCondition):
                raise ConfigurationError(f"Axis {axis}: unknown boundary condition {bc!r}")
        if isinstance(left, PeriodicBC) != isinstance(right, PeriodicBC):
            raise ConfigurationError(f"Axis {axis}: periodic boundaries must be paired")
