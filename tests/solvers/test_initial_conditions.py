"""Tests for sampling and projecting initial conditions."""

import logging

import numpy as np
import pytest

from conftest import taylor_green_u, taylor_green_v
from fv.core.errors import ConfigurationError
from fv.linear_solvers import create_pressure_solver
from meshing import PeriodicBC
from solvers import ConservationMonitor, Setup, create_initial_conditions


def zero(*coords):
    return 0.0 * coords[0]


class TestInitialConditions:
    def test_divergence_free_field_not_projected(self, periodic_setup, caplog):
        with caplog.at_level(logging.WARNING, logger="solvers.initial_conditions"):
            ic = create_initial_conditions(periodic_setup, 0.0, taylor_green_u, taylor_green_v)
        assert not ic.projected
        assert "projecting" not in caplog.text
        assert ic.t == 0.0

    def test_divergent_field_projected(self, cavity_setup, caplog):
        with caplog.at_level(logging.WARNING, logger="solvers.initial_conditions"):
            ic = create_initial_conditions(
                cavity_setup, 0.0, lambda x, y: x * (1 - x) + 0 * y, lambda x, y: 0 * x
            )
        assert ic.projected
        assert "projecting" in caplog.text
        div = ConservationMonitor(cavity_setup).divergence(ic.V, 0.0)
        assert np.max(np.abs(div)) < 1e-10

    def test_projection_disabled(self, cavity_setup):
        ic = create_initial_conditions(
            cavity_setup, 0.0, lambda x, y: x + 0 * y, zero, project=False
        )
        assert not ic.projected
        div = ConservationMonitor(cavity_setup).divergence(ic.V, 0.0)
        assert np.max(np.abs(div)) > 1e-3

    def test_inflow_made_consistent(self, channel_setup):
        ic = create_initial_conditions(channel_setup, 0.0, zero, zero)
        assert ic.projected
        div = ConservationMonitor(channel_setup).divergence(ic.V, 0.0)
        assert np.max(np.abs(div)) < 1e-10

    def test_sampled_velocity_at_staggered_points(self, periodic_setup):
        grid = periodic_setup.grid
        ic = create_initial_conditions(periodic_setup, 0.0, taylor_green_u, taylor_green_v)
        x, y = grid.velocity_points(0)
        assert np.allclose(ic.V[grid.velocity_range(0)], taylor_green_u(x, y).ravel())

    def test_sampled_pressure(self, periodic_setup):
        p0 = lambda x, y: np.cos(x) + np.cos(y)  # noqa: E731
        ic = create_initial_conditions(
            periodic_setup, 0.0, taylor_green_u, taylor_green_v, p0=p0, p_initial=False
        )
        x, y = periodic_setup.grid.pressure_points()
        assert np.allclose(ic.p, p0(x, y).ravel())

    def test_zero_pressure_without_p0(self, periodic_setup):
        ic = create_initial_conditions(
            periodic_setup, 0.0, taylor_green_u, taylor_green_v, p_initial=False
        )
        assert np.all(ic.p == 0.0)

    def test_taylor_green_pressure(self):
        n = 32
        x = np.linspace(0.0, 2 * np.pi, n + 1)
        setup = Setup.create([x, x], [(PeriodicBC(), PeriodicBC())] * 2, Re=100)
        ic = create_initial_conditions(
            setup, 0.0, taylor_green_u, taylor_green_v,
            pressure_solver=create_pressure_solver("spectral", setup),
        )
        xp, yp = setup.grid.pressure_points()
        exact = 0.25 * (np.cos(2 * xp) + np.cos(2 * yp)).ravel()
        assert np.allclose(ic.p - ic.p.mean(), exact, atol=0.03)

    def test_missing_third_component(self):
        x = np.linspace(0.0, 1.0, 5)
        setup = Setup.create([x, x, x], [(PeriodicBC(), PeriodicBC())] * 3)
        with pytest.raises(ConfigurationError):
            create_initial_conditions(setup, 0.0, zero, zero)

    def test_k_epsilon_scalars(self):
        x = np.linspace(0.0, 1.0, 9)
        setup = Setup.create(
            [x, x], [(PeriodicBC(), PeriodicBC())] * 2, viscosity_model="k_epsilon"
        )
        with pytest.raises(ConfigurationError):
            create_initial_conditions(setup, 0.0, zero, zero)

        ic = create_initial_conditions(
            setup, 0.0, zero, zero, k0=lambda x, y: x - 0.5, e0=lambda x, y: 0.1 + 0 * x
        )
        k, e = ic.scalars
        assert k.shape == (setup.grid.NP,)
        assert np.all(k >= setup.viscosity_model.floor)
        assert np.allclose(e, 0.1)
