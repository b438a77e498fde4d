"""Viscosity closures: laminar, mixing length, Smagorinsky, QR and k-epsilon.

Eddy viscosities live on the padded pressure grid (cell centers) and are computed
from the strain-rate tensor of the padded velocity.
"""

import numpy as np
from numba import njit

from fv.core.errors import ConfigurationError
from fv.core.helpers import along, safe_reciprocal, shift


@njit(cache=True)
def strain_invariants(S):
    """Per-cell invariants of a symmetric strain tensor field.

    Parameters
    ----------
    S : np.ndarray
        Array of shape (D, D, n_cells).

    Returns
    -------
    norm : np.ndarray
        sqrt(2 S:S)
    q : np.ndarray
        1/2 tr(S^2)
    r : np.ndarray
        -1/3 tr(S^3)
    """
    D = S.shape[0]
    n = S.shape[2]
    norm = np.zeros(n)
    q = np.zeros(n)
    r = np.zeros(n)
    for c in range(n):
        ss = 0.0
        sss = 0.0
        for i in range(D):
            for j in range(D):
                ss += S[i, j, c] * S[j, i, c]
                for k in range(D):
                    sss += S[i, j, c] * S[j, k, c] * S[k, i, c]
        norm[c] = np.sqrt(2.0 * ss)
        q[c] = 0.5 * ss
        r[c] = -sss / 3.0
    return norm, q, r


def strain_rate(u, grid) -> np.ndarray:
    """Strain-rate tensor at the padded cell centers, shape (D, D, *N)."""
    D = grid.dimension()
    g = np.empty((D, D) + tuple(grid.N))
    for a in range(D):
        for b in range(D):
            if a == b:
                g[a, a] = (u[a] - shift(u[a], a, -1)) * along(safe_reciprocal(grid.dx[a]), a, D)
                continue
            # du_a/dx_b on the cell edges, then averaged to the centers
            h = np.append(np.diff(grid.xp[b]), 0.0)
            e = (shift(u[a], b, 1) - u[a]) * along(safe_reciprocal(h), b, D)
            e_a = shift(e, a, -1)
            g[a, b] = (e + e_a + shift(e, b, -1) + shift(e_a, b, -1)) / 4
    return (g + np.swapaxes(g, 0, 1)) / 2


def strain_fields(u, grid):
    """Invariants (|S|, q, r) of the strain rate on the padded pressure grid."""
    S = strain_rate(u, grid)
    D = grid.dimension()
    norm, q, r = strain_invariants(np.ascontiguousarray(S.reshape(D, D, -1)))
    return norm.reshape(grid.N), q.reshape(grid.N), r.reshape(grid.N)


def face_viscosity(nu_t: np.ndarray, ndim: int):
    """Interpolate a cell-centered viscosity to the faces of every velocity volume.

    Returns one vector per axis, each covering all padded velocity components.
    """
    faces = []
    for b in range(ndim):
        blocks = []
        for a in range(ndim):
            nu_a = shift(nu_t, a, 1)
            if a == b:
                blocks.append(nu_a.ravel())
            else:
                blocks.append(((nu_t + nu_a + shift(nu_t, b, 1) + shift(nu_a, b, 1)) / 4).ravel())
        faces.append(np.concatenate(blocks))
    return faces


def scalar_face_viscosity(nu: np.ndarray, ndim: int):
    """Cell-centered viscosity averaged to the pressure-volume faces."""
    return [((nu + shift(nu, b, 1)) / 2).ravel() for b in range(ndim)]


# ========================================================
# Models
# ========================================================


class ViscosityModel:
    """Molecular viscosity ``1/Re`` plus an optional eddy viscosity."""

    name = ""
    n_scalars = 0
    has_eddy_viscosity = True

    def __init__(self, Re: float = 1000.0):
        if Re <= 0:
            raise ConfigurationError(f"Reynolds number must be positive, got {Re}")
        self.Re = Re

    @property
    def nu(self) -> float:
        return 1.0 / self.Re

    def eddy_viscosity(self, grid, u, scalars=None):
        raise NotImplementedError

    def __repr__(self):
        return f"{type(self).__name__}(Re={self.Re})"


class LaminarModel(ViscosityModel):
    name = "laminar"
    has_eddy_viscosity = False

    def eddy_viscosity(self, grid, u, scalars=None):
        return None


class MixingLengthModel(ViscosityModel):
    """Prandtl mixing length, ``nu_t = lm^2 |S|``."""

    name = "mixing_length"

    def __init__(self, Re: float = 1000.0, lm: float = 1.0):
        super().__init__(Re)
        self.lm = lm

    def eddy_viscosity(self, grid, u, scalars=None):
        norm, _, _ = strain_fields(u, grid)
        return self.lm**2 * norm


class SmagorinskyModel(ViscosityModel):
    """``nu_t = (C_s delta)^2 |S|`` with delta the local filter width."""

    name = "smagorinsky"

    def __init__(self, Re: float = 1000.0, C_s: float = 0.17):
        super().__init__(Re)
        self.C_s = C_s

    def eddy_viscosity(self, grid, u, scalars=None):
        norm, _, _ = strain_fields(u, grid)
        return (self.C_s * grid.filter_width()) ** 2 * norm


class QRModel(ViscosityModel):
    """Verstappen's QR model, ``nu_t = C delta^2 max(r, 0) / q``.

    Vanishes identically for two-dimensional flows, where ``tr(S^3) = 0``.
    """

    name = "qr"

    def __init__(self, Re: float = 1000.0, C: float = 1 / np.pi**2):
        super().__init__(Re)
        self.C = C

    def eddy_viscosity(self, grid, u, scalars=None):
        _, q, r = strain_fields(u, grid)
        ratio = np.zeros_like(q)
        np.divide(np.maximum(r, 0.0), q, out=ratio, where=q > 0)
        return self.C * grid.filter_width() ** 2 * ratio


class KEpsilonModel(ViscosityModel):
    """Standard k-epsilon model with two transported cell-centered scalars."""

    name = "k_epsilon"
    n_scalars = 2

    def __init__(self, Re: float = 1000.0, C_mu: float = 0.09, C1: float = 1.44,
                 C2: float = 1.92, sigma_k: float = 1.0, sigma_e: float = 1.3,
                 floor: float = 1e-12):
        super().__init__(Re)
        self.C_mu = C_mu
        self.C1 = C1
        self.C2 = C2
        self.sigma_k = sigma_k
        self.sigma_e = sigma_e
        self.floor = floor

    def eddy_viscosity(self, grid, u, scalars=None):
        if scalars is None:
            raise ConfigurationError("k-epsilon eddy viscosity needs the (k, e) fields")
        k, e = scalars
        return self.C_mu * k**2 / np.maximum(e, self.floor)


VISCOSITY_MODELS = {
    cls.name: cls
    for cls in (LaminarModel, MixingLengthModel, SmagorinskyModel, QRModel, KEpsilonModel)
}


def viscosity_model_from_name(name: str, **kwargs) -> ViscosityModel:
    """Instantiate a viscosity model from its tag."""
    try:
        cls = VISCOSITY_MODELS[name.lower()]
    except KeyError:
        raise ConfigurationError(
            f"Unknown viscosity model '{name}', expected one of {sorted(VISCOSITY_MODELS)}"
        ) from None
    return cls(**kwargs)
