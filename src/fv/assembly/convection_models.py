"""Convection models: plain central convection and its regularizations.

The regularized models use the discrete filter

    u_bar = u + alpha * Omega_inv * (D u + yD)

with ``D`` the unit diffusion operator. Its integrated counterpart
``c + alpha * D (Omega_inv c)`` is the adjoint of the velocity filter, which keeps
C2 energy conserving.
"""

import numpy as np

from fv.core.errors import ConfigurationError


class ConvectionModel:
    name = ""

    def convection(self, ops, V, bv):
        raise NotImplementedError

    def __repr__(self):
        return f"{type(self).__name__}()"


class NoRegConvection(ConvectionModel):
    name = "noreg"

    def convection(self, ops, V, bv):
        return ops.convection(V, V, bv)


class _FilteredConvection(ConvectionModel):
    def __init__(self, alpha=None):
        self.alpha = alpha

    def filter_width(self, ops) -> float:
        if self.alpha is not None:
            return self.alpha
        h = np.mean([np.mean(np.diff(x)) for x in ops.grid.x_interior])
        return h**2 / 16

    def filter_velocity(self, ops, V, bv):
        return V + self.filter_width(ops) * ops.Omega_inv * (ops.D @ V + bv.yD)

    def filter_integrated(self, ops, c):
        return c + self.filter_width(ops) * (ops.D @ (ops.Omega_inv * c))

    def __repr__(self):
        return f"{type(self).__name__}(alpha={self.alpha})"


class LerayConvection(_FilteredConvection):
    """Filtered convecting velocity, ``C(u_bar, u)``."""

    name = "leray"

    def convection(self, ops, V, bv):
        return ops.convection(self.filter_velocity(ops, V, bv), V, bv)


class C2Convection(_FilteredConvection):
    """Second-order regularization, ``F(C(u_bar, u_bar))``."""

    name = "c2"

    def convection(self, ops, V, bv):
        Vbar = self.filter_velocity(ops, V, bv)
        return self.filter_integrated(ops, ops.convection(Vbar, Vbar, bv))


class C4Convection(_FilteredConvection):
    """Fourth-order regularization of Verstappen."""

    name = "c4"

    def convection(self, ops, V, bv):
        Vbar = self.filter_velocity(ops, V, bv)
        Vp = V - Vbar
        c = ops.convection(Vbar, Vbar, bv)
        c += self.filter_integrated(ops, ops.convection(Vbar, Vp, bv, bc_b=False))
        c += self.filter_integrated(ops, ops.convection(Vp, Vbar, bv, bc_a=False))
        return c


CONVECTION_MODELS = {
    cls.name: cls for cls in (NoRegConvection, LerayConvection, C2Convection, C4Convection)
}


def convection_model_from_name(name: str, **kwargs) -> ConvectionModel:
    """Instantiate a convection model from its tag."""
    try:
        cls = CONVECTION_MODELS[name.lower()]
    except KeyError:
        raise ConfigurationError(
            f"Unknown convection model '{name}', expected one of {sorted(CONVECTION_MODELS)}"
        ) from None
    return cls(**kwargs)
