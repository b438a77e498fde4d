"""Sparse operators on the staggered grid.

Every operator is first built on the padded index space (ghost volumes included) from
1D stencils embedded by Kronecker products, and then closed with the boundary
conditions:

    A = R_out @ A_full @ E_in,    y_A(t) = R_out @ A_full @ b_in(t)

``E_in`` maps DOFs to padded fields with homogeneous boundary data. It is obtained by
running the boundary ghost rules on an integer index field. ``b_in(t)`` is the
affine part, i.e. ``apply`` on a zero field. ``R_out`` selects the DOF rows.
"""

import logging
from dataclasses import dataclass

import numpy as np
import scipy.sparse as sp

from fv.core.errors import ConfigurationError
from fv.core.helpers import (
    backward_difference,
    forward_average,
    forward_difference,
    kron_axis,
    safe_reciprocal,
    selection_matrix,
    tensor_weights,
)
from meshing.boundary_conditions import slab

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class BoundaryVectors:
    """Boundary contributions of all operators at time ``t``."""

    t: float
    u: np.ndarray  # padded affine velocity part, all components
    p: np.ndarray  # padded affine pressure part
    yM: np.ndarray
    yG: np.ndarray
    yD: np.ndarray
    diffusion_flux: tuple  # per axis
    conv_flux: tuple  # [alpha][beta]
    conv_average: tuple  # [alpha][beta]
    scalar_flux: tuple  # per axis
    interpolation: tuple  # per component


class Operators:
    """Assembled operators for one grid and boundary condition set.

    Attributes
    ----------
    M : csr_matrix
        Divergence, velocity DOFs -> integrated divergence per pressure volume.
    G : csr_matrix
        Gradient, pressure DOFs -> integrated gradient per velocity volume (``G = -M.T``).
    D : csr_matrix
        Unit-viscosity diffusion of the velocity DOFs.
    L : csr_matrix
        Pressure Poisson matrix ``M diag(Omega_inv) G``.
    """

    def __init__(self, grid):
        self.grid = grid
        self.boundary_conditions = grid.boundary_conditions
        D = grid.dimension()
        shape = grid.N
        n = grid.n_padded
        self._ndim = D

        # --- Extensions and restrictions ---
        self.E_u = self._extension("velocity")
        self.E_p = self._extension("pressure")
        self.E_s = self._extension("scalar")
        self.R_u = self._restriction_u()
        self.R_p = self._restriction_p()
        if self.E_u.shape != (D * n, grid.NV) or self.E_p.shape != (n, grid.NP):
            raise ConfigurationError("Inconsistent padded/DOF sizes in operator assembly")

        # Block selectors: P[alpha] picks component alpha from the padded velocity
        P = [
            selection_matrix(np.arange(n), alpha * n + np.arange(n), (n, D * n))
            for alpha in range(D)
        ]

        # Transverse face areas for faces normal to each axis
        areas = [
            tensor_weights([np.ones(shape[g]) if g == a else grid.dx[g] for g in range(D)])
            for a in range(D)
        ]

        # ----- Divergence / gradient -----
        M_full = sp.hstack(
            [sp.diags(areas[a]) @ kron_axis(backward_difference(shape[a]), a, shape) for a in range(D)],
            format="csr",
        )
        G_full = (-M_full.T).tocsr()
        self._M_y = (self.R_p @ M_full).tocsr()
        self._G_y = (self.R_u @ G_full).tocsr()
        self.M = (self._M_y @ self.E_u).tocsr()
        self.G = (self._G_y @ self.E_p).tocsr()

        # ----- Diffusion (per axis factors kept for eddy viscosity) -----
        self._Sg_full, self.Sg, self.Cd = [], [], []
        for b in range(D):
            blocks_S, blocks_C = [], []
            for a in range(D):
                if a == b:
                    h = np.append(grid.dx[b][1:], 0.0)
                else:
                    h = np.append(np.diff(grid.xp[b]), 0.0)
                widths = grid.velocity_widths(a)
                coef = tensor_weights(
                    [safe_reciprocal(h) if g == b else widths[g] for g in range(D)]
                )
                blocks_S.append(sp.diags(coef) @ kron_axis(forward_difference(shape[b]), b, shape))
                blocks_C.append(kron_axis(backward_difference(shape[b]), b, shape))
            S_full = sp.block_diag(blocks_S, format="csr")
            self._Sg_full.append(S_full)
            self.Sg.append((S_full @ self.E_u).tocsr())
            self.Cd.append((self.R_u @ sp.block_diag(blocks_C, format="csr")).tocsr())
        self.D = sum(C @ S for C, S in zip(self.Cd, self.Sg)).tocsr()

        # ----- Convection -----
        self._Ic_full, self.Ic, self._Ac_full, self.Ac, self.Cc = [], [], [], [], []
        for a in range(D):
            row_If, row_I, row_Af, row_A, row_C = [], [], [], [], []
            for b in range(D):
                # convecting flux through the b-faces of the u_a volumes
                I_full = (kron_axis(forward_average(shape[a]), a, shape) @ sp.diags(areas[b]) @ P[b]).tocsr()
                # convected velocity averaged to the same faces
                A_full = (kron_axis(forward_average(shape[b]), b, shape) @ P[a]).tocsr()
                C = (self.R_u @ P[a].T @ kron_axis(backward_difference(shape[b]), b, shape)).tocsr()
                row_If.append(I_full)
                row_I.append((I_full @ self.E_u).tocsr())
                row_Af.append(A_full)
                row_A.append((A_full @ self.E_u).tocsr())
                row_C.append(C)
            self._Ic_full.append(row_If)
            self.Ic.append(row_I)
            self._Ac_full.append(row_Af)
            self.Ac.append(row_A)
            self.Cc.append(row_C)

        # ----- Velocity interpolation to pressure points -----
        self._Iup_full = [
            (self.R_p @ kron_axis(forward_average(shape[a]).T, a, shape) @ P[a]).tocsr()
            for a in range(D)
        ]
        self.Iup = [(I @ self.E_u).tocsr() for I in self._Iup_full]

        # ----- Cell-centered scalar transport (k-epsilon) -----
        self._sflux_full, self.sflux, self.savg, self.sgrad, self.sdiv = [], [], [], [], []
        for b in range(D):
            F_full = (sp.diags(areas[b]) @ P[b]).tocsr()
            self._sflux_full.append(F_full)
            self.sflux.append((F_full @ self.E_u).tocsr())
            self.savg.append((kron_axis(forward_average(shape[b]), b, shape) @ self.E_s).tocsr())
            hp = np.append(np.diff(grid.xp[b]), 0.0)
            coef = tensor_weights([safe_reciprocal(hp) if g == b else grid.dx[g] for g in range(D)])
            self.sgrad.append(
                (sp.diags(coef) @ kron_axis(forward_difference(shape[b]), b, shape) @ self.E_s).tocsr()
            )
            self.sdiv.append((self.R_p @ kron_axis(backward_difference(shape[b]), b, shape)).tocsr())

        # ----- Pressure Poisson matrix -----
        self.Omega = grid.Omega
        self.Omega_inv = grid.Omega_inv
        self.L = (self.M @ sp.diags(self.Omega_inv) @ self.G).tocsr()

        log.debug(
            "Assembled operators: NV=%d, NP=%d, nnz(M)=%d, nnz(D)=%d",
            grid.NV, grid.NP, self.M.nnz, self.D.nnz,
        )

    # ----- Boundary treatment -----

    def _index_map(self, kind: str, alpha=None) -> np.ndarray:
        grid = self.grid
        imap = np.full(grid.N, -1, dtype=np.int64)
        if kind == "velocity":
            r = grid.velocity_range(alpha)
            imap[grid.Iu[alpha]] = np.arange(r.start, r.stop).reshape(grid.Nu[alpha])
        else:
            imap[grid.Ip] = np.arange(grid.NP).reshape(grid.Np)
        for axis, (left, right) in enumerate(self.boundary_conditions):
            for bc, is_right in ((left, False), (right, True)):
                rules = bc.ghost_rules(grid.N[axis], alpha == axis, is_right, kind)
                for dst, src in rules:
                    d = slab(axis, dst, imap.ndim)
                    imap[d] = -1 if src is None else imap[slab(axis, src, imap.ndim)]
        return imap.ravel()

    def _extension(self, kind: str) -> sp.csr_matrix:
        grid = self.grid
        if kind == "velocity":
            imap = np.concatenate([self._index_map(kind, a) for a in range(self._ndim)])
            n_cols = grid.NV
        else:
            imap = self._index_map(kind)
            n_cols = grid.NP
        rows = np.flatnonzero(imap >= 0)
        return selection_matrix(rows, imap[rows], (len(imap), n_cols))

    def _restriction_u(self) -> sp.csr_matrix:
        grid = self.grid
        index = np.arange(grid.n_padded).reshape(grid.N)
        cols = np.concatenate(
            [a * grid.n_padded + index[grid.Iu[a]].ravel() for a in range(self._ndim)]
        )
        return selection_matrix(np.arange(grid.NV), cols, (grid.NV, self._ndim * grid.n_padded))

    def _restriction_p(self) -> sp.csr_matrix:
        grid = self.grid
        index = np.arange(grid.n_padded).reshape(grid.N)
        cols = index[grid.Ip].ravel()
        return selection_matrix(np.arange(grid.NP), cols, (grid.NP, grid.n_padded))

    def apply_boundary_conditions(self, fields, t: float = 0.0, kind: str = "velocity", dudt: bool = False):
        """Run ``apply`` of every boundary, axis by axis, on padded fields."""
        for axis, (left, right) in enumerate(self.boundary_conditions):
            left.apply(fields, self.grid, axis, False, t, kind, dudt)
            right.apply(fields, self.grid, axis, True, t, kind, dudt)
        return fields

    def boundary_vectors(self, t: float, dudt: bool = False) -> BoundaryVectors:
        """Evaluate all boundary contribution vectors at time ``t``."""
        grid = self.grid
        D = self._ndim
        fields = self.apply_boundary_conditions([np.zeros(grid.N) for _ in range(D)], t, "velocity", dudt)
        bu = np.concatenate([f.ravel() for f in fields])
        bp = self.apply_boundary_conditions(np.zeros(grid.N), t, "pressure").ravel()

        diffusion_flux = tuple(S @ bu for S in self._Sg_full)
        return BoundaryVectors(
            t=t,
            u=bu,
            p=bp,
            yM=self._M_y @ bu,
            yG=self._G_y @ bp,
            yD=sum(C @ y for C, y in zip(self.Cd, diffusion_flux)),
            diffusion_flux=diffusion_flux,
            conv_flux=tuple(tuple(I @ bu for I in row) for row in self._Ic_full),
            conv_average=tuple(tuple(A @ bu for A in row) for row in self._Ac_full),
            scalar_flux=tuple(F @ bu for F in self._sflux_full),
            interpolation=tuple(I @ bu for I in self._Iup_full),
        )

    # ----- Operator evaluation -----

    def padded_velocity(self, V: np.ndarray, bv: BoundaryVectors):
        """Padded velocity arrays (ghosts filled) as a list of D arrays."""
        flat = self.E_u @ V + bv.u
        return [a.reshape(self.grid.N) for a in np.split(flat, self._ndim)]

    def divergence(self, V: np.ndarray, bv: BoundaryVectors) -> np.ndarray:
        return self.M @ V + bv.yM

    def pressure_gradient(self, p: np.ndarray, bv: BoundaryVectors) -> np.ndarray:
        return self.G @ p + bv.yG

    def diffusion(self, V: np.ndarray, bv: BoundaryVectors, nu=1.0, nu_face=None) -> np.ndarray:
        """Integrated diffusion; ``nu_face`` holds per-axis face viscosities when variable."""
        if nu_face is None:
            return nu * (self.D @ V + bv.yD)
        d = np.zeros(self.grid.NV)
        for C, S, y, nf in zip(self.Cd, self.Sg, bv.diffusion_flux, nu_face):
            d += C @ (nf * (S @ V + y))
        return d

    def diffusion_matrix(self, nu=1.0, nu_face=None) -> sp.csr_matrix:
        if nu_face is None:
            return nu * self.D
        return sum(C @ sp.diags(nf) @ S for C, S, nf in zip(self.Cd, self.Sg, nu_face)).tocsr()

    def convection(self, a: np.ndarray, b: np.ndarray, bv: BoundaryVectors,
                   bc_a: bool = True, bc_b: bool = True) -> np.ndarray:
        """Integrated convection of ``b`` by the fluxes of ``a``."""
        c = np.zeros(self.grid.NV)
        for alpha in range(self._ndim):
            for beta in range(self._ndim):
                phi = self.Ic[alpha][beta] @ a
                if bc_a:
                    phi += bv.conv_flux[alpha][beta]
                ubar = self.Ac[alpha][beta] @ b
                if bc_b:
                    ubar += bv.conv_average[alpha][beta]
                c += self.Cc[alpha][beta] @ (phi * ubar)
        return c

    def convection_jacobian(self, V: np.ndarray, bv: BoundaryVectors, newton: bool = True) -> sp.csr_matrix:
        """Derivative of ``convection(V, V)``; Picard freezes the convecting flux."""
        J = sp.csr_matrix((self.grid.NV, self.grid.NV))
        for alpha in range(self._ndim):
            for beta in range(self._ndim):
                phi = self.Ic[alpha][beta] @ V + bv.conv_flux[alpha][beta]
                C = self.Cc[alpha][beta]
                J = J + C @ sp.diags(phi) @ self.Ac[alpha][beta]
                if newton:
                    ubar = self.Ac[alpha][beta] @ V + bv.conv_average[alpha][beta]
                    J = J + C @ sp.diags(ubar) @ self.Ic[alpha][beta]
        return J.tocsr()

    def interpolate_velocity(self, V: np.ndarray, bv: BoundaryVectors):
        """Velocity components averaged to the pressure points."""
        return [I @ V + y for I, y in zip(self.Iup, bv.interpolation)]

    # ----- Scalar transport on the pressure grid -----

    def scalar_convection(self, V: np.ndarray, phi: np.ndarray, bv: BoundaryVectors) -> np.ndarray:
        c = np.zeros(self.grid.NP)
        for F, A, C, y in zip(self.sflux, self.savg, self.sdiv, bv.scalar_flux):
            c += C @ ((F @ V + y) * (A @ phi))
        return c

    def scalar_diffusion(self, phi: np.ndarray, nu_faces) -> np.ndarray:
        d = np.zeros(self.grid.NP)
        for S, C, nf in zip(self.sgrad, self.sdiv, nu_faces):
            d += C @ (nf * (S @ phi))
        return d


def assemble_operators(grid) -> Operators:
    """Assemble all sparse operators for ``grid`` and its boundary conditions."""
    return Operators(grid)
