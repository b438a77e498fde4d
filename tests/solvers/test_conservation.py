"""Tests for the conservation monitor."""

import numpy as np

from conftest import taylor_green_u, taylor_green_v
from solvers import ConservationMonitor, create_initial_conditions


class TestConservationMonitor:
    def test_uniform_flow(self, periodic_setup):
        grid = periodic_setup.grid
        V = np.zeros(grid.NV)
        V[grid.velocity_range(0)] = 2.0
        diag = ConservationMonitor(periodic_setup).compute(V, 0.0)
        area = (2 * np.pi) ** 2
        assert diag.max_divergence < 1e-14
        assert np.allclose(diag.momentum, (2.0 * area, 0.0))
        assert np.isclose(diag.kinetic_energy, 0.5 * 4.0 * area)

    def test_taylor_green_energy(self, periodic_setup):
        ic = create_initial_conditions(periodic_setup, 0.0, taylor_green_u, taylor_green_v)
        diag = ConservationMonitor(periodic_setup).compute(ic.V, 0.0)
        # 0.5 * integral of sin^2 x cos^2 y + cos^2 x sin^2 y over [0, 2pi]^2
        assert np.isclose(diag.kinetic_energy, np.pi**2, rtol=1e-10)
        assert np.allclose(diag.momentum, 0.0, atol=1e-12)

    def test_input_not_modified(self, cavity_setup, rng):
        V = rng.standard_normal(cavity_setup.grid.NV)
        V0 = V.copy()
        monitor = ConservationMonitor(cavity_setup)
        monitor.compute(V, 0.0)
        monitor.divergence(V, 0.5)
        assert np.array_equal(V, V0)

    def test_lid_does_not_enter_divergence(self, cavity_setup):
        V = np.zeros(cavity_setup.grid.NV)
        div = ConservationMonitor(cavity_setup).divergence(V, 0.0)
        assert np.allclose(div, 0.0)
