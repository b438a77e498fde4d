"""Right-hand side of the momentum equation and its Jacobian.

    F(V, p, t) = -C(V) + diffusion(V) + f(t) - (G p + yG)

All terms are integrated over the velocity volumes; the time derivative is
``Omega dV/dt = F``.
"""

import numpy as np

from fv.assembly.closures import face_viscosity, scalar_face_viscosity, strain_fields


class MomentumAssembly:
    """Evaluate the momentum right-hand side for a fixed setup."""

    def __init__(self, setup):
        self.setup = setup
        self.grid = setup.grid
        self.operators = setup.operators
        self.viscosity_model = setup.viscosity_model
        self.convection_model = setup.convection_model
        self._steady_bv = None

    def boundary_vectors(self, t: float, dudt: bool = False):
        """Boundary vectors at ``t``; evaluated once when the boundaries are steady."""
        if self.setup.bc_unsteady:
            return self.operators.boundary_vectors(t, dudt)
        if dudt:
            return None
        if self._steady_bv is None:
            self._steady_bv = self.operators.boundary_vectors(t)
        return self._steady_bv

    # ----- Eddy viscosity -----

    def padded_scalars(self, scalars):
        ops = self.operators
        return tuple((ops.E_s @ s).reshape(self.grid.N) for s in scalars)

    def eddy_viscosity(self, V, bv, scalars=None):
        """Eddy viscosity on the padded pressure grid, ``None`` for laminar flow."""
        model = self.viscosity_model
        if not model.has_eddy_viscosity:
            return None
        u = self.operators.padded_velocity(V, bv)
        padded = self.padded_scalars(scalars) if model.n_scalars else None
        return model.eddy_viscosity(self.grid, u, padded)

    def _viscosity_faces(self, V, bv, scalars):
        nu_t = self.eddy_viscosity(V, bv, scalars)
        if nu_t is None:
            return None
        nu = self.viscosity_model.nu
        return [nu + f for f in face_viscosity(nu_t, self.grid.dimension())]

    # ----- Right-hand side -----

    def momentum(self, V, p, t, bv=None, out=None, scalars=None):
        """Momentum right-hand side.

        Parameters
        ----------
        V : np.ndarray
            Velocity DOFs.
        p : np.ndarray or None
            Pressure DOFs. ``None`` drops ``G p`` but keeps the boundary part ``yG``.
        t : float
            Time.
        bv : BoundaryVectors, optional
            Boundary vectors at ``t`` (evaluated when omitted).
        out : np.ndarray, optional
            Buffer receiving the result.
        scalars : tuple of np.ndarray, optional
            Transported turbulence scalars (k, e).

        Returns
        -------
        np.ndarray
        """
        ops = self.operators
        if bv is None:
            bv = self.boundary_vectors(t)
        F = out if out is not None else np.empty(self.grid.NV)

        F[:] = self.convection_model.convection(ops, V, bv)
        np.negative(F, out=F)

        nu_face = self._viscosity_faces(V, bv, scalars)
        if nu_face is None:
            F += ops.diffusion(V, bv, nu=self.viscosity_model.nu)
        else:
            F += ops.diffusion(V, bv, nu_face=nu_face)

        if self.setup.force is not None:
            F += self.setup.force.integrated(self.grid, t)
        F -= bv.yG
        if p is not None:
            F -= ops.G @ p
        return F

    def jacobian(self, V, t, bv=None, newton: bool = True, scalars=None):
        """Sparse dF/dV with the eddy viscosity frozen at ``V``."""
        ops = self.operators
        if bv is None:
            bv = self.boundary_vectors(t)
        nu_face = self._viscosity_faces(V, bv, scalars)
        if nu_face is None:
            diffusion = ops.diffusion_matrix(nu=self.viscosity_model.nu)
        else:
            diffusion = ops.diffusion_matrix(nu_face=nu_face)
        return (diffusion - ops.convection_jacobian(V, bv, newton)).tocsr()

    # ----- k-epsilon transport -----

    def scalar_rhs(self, V, k, e, t, bv=None):
        """Integrated right-hand sides of the k and epsilon transport equations."""
        model = self.viscosity_model
        ops = self.operators
        grid = self.grid
        D = grid.dimension()
        if bv is None:
            bv = self.boundary_vectors(t)

        u = ops.padded_velocity(V, bv)
        k_pad, e_pad = self.padded_scalars((k, e))
        nu_t = model.eddy_viscosity(grid, u, (k_pad, e_pad))
        norm, _, _ = strain_fields(u, grid)
        production = (nu_t * norm**2)[grid.Ip].ravel()

        k_safe = np.maximum(k, model.floor)
        nu_k = scalar_face_viscosity(model.nu + nu_t / model.sigma_k, D)
        nu_e = scalar_face_viscosity(model.nu + nu_t / model.sigma_e, D)
        Omega_p = grid.Omega_p

        rk = -ops.scalar_convection(V, k, bv) + ops.scalar_diffusion(k, nu_k)
        rk += Omega_p * (production - e)
        re = -ops.scalar_convection(V, e, bv) + ops.scalar_diffusion(e, nu_e)
        re += Omega_p * (model.C1 * e / k_safe * production - model.C2 * e**2 / k_safe)
        return rk, re
