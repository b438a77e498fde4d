"""Tests for the explicit and diagonally implicit Runge-Kutta steppers."""

import numpy as np
import pytest

from conftest import parabolic_inflow, taylor_green_u, taylor_green_v
from fv.core.errors import ConfigurationError
from fv.linear_solvers import DirectPressureSolver
from meshing import DirichletBC, PeriodicBC, PressureBC, SymmetricBC
from solvers import (
    ExplicitRungeKutta,
    ImplicitRungeKutta,
    Setup,
    UnsteadySolver,
    create_initial_conditions,
    get_tableau,
)
from solvers.tableaux import TABLEAUX


def zero(*coords):
    return 0.0 * coords[0]


def run(setup, u0, v0, **params):
    ic = create_initial_conditions(setup, 0.0, u0, v0)
    solver = UnsteadySolver(setup, ic, **params)
    solver.solve()
    return solver


def taylor_green_setup(n=32, Re=100.0, **options):
    x = np.linspace(0.0, 2 * np.pi, n + 1)
    bcs = [(PeriodicBC(), PeriodicBC()), (PeriodicBC(), PeriodicBC())]
    return Setup.create([x, x], bcs, Re=Re, **options)


def pulsating_inflow(component, x, y, t):
    return parabolic_inflow(component, x, y, t) * (1 + 0.5 * np.sin(2 * np.pi * t))


def pulsating_inflow_dt(component, x, y, t):
    return parabolic_inflow(component, x, y, t) * np.pi * np.cos(2 * np.pi * t)


class TestExplicitProjection:
    @pytest.mark.parametrize("method", [m for m in TABLEAUX if TABLEAUX[m].is_explicit])
    def test_divergence_free_for_every_method(self, cavity_setup, method):
        solver = run(cavity_setup, zero, zero, rk_method=method, dt=0.002, t_end=0.006)
        assert solver.metrics.max_divergence < 1e-10
        assert np.isclose(solver.metrics.final_time, 0.006)

    @pytest.mark.parametrize("bcs", [
        [(PeriodicBC(), PeriodicBC()), (DirichletBC(), DirichletBC(u=lambda c, x, y, t: float(c == 0)))],
        [(SymmetricBC(), SymmetricBC()), (DirichletBC(), DirichletBC(u=lambda c, x, y, t: float(c == 0)))],
        [(DirichletBC(u=parabolic_inflow), PressureBC()), (SymmetricBC(), DirichletBC())],
    ])
    def test_divergence_free_for_boundary_combinations(self, bcs):
        setup = Setup.create([np.linspace(0, 1, 11), np.linspace(0, 1, 9)], bcs, Re=50)
        solver = run(setup, zero, zero, dt=0.005, t_end=0.05)
        assert solver.metrics.max_divergence < 1e-10
        assert max(solver.time_series.max_divergence) < 1e-10

    @pytest.mark.parametrize("p_add_solve", [True, False])
    def test_unsteady_inflow(self, p_add_solve):
        bcs = [
            (DirichletBC(u=pulsating_inflow, dudt=pulsating_inflow_dt), PressureBC()),
            (DirichletBC(), DirichletBC()),
        ]
        setup = Setup.create([np.linspace(0, 2, 17), np.linspace(0, 1, 9)], bcs, Re=10)
        assert setup.bc_unsteady
        solver = run(setup, zero, zero, dt=0.01, t_end=0.1, p_add_solve=p_add_solve)
        assert solver.metrics.max_divergence < 1e-10
        assert np.all(np.isfinite(solver.arrays.p))

    def test_uniform_flow_is_fixed_point(self, periodic_setup):
        solver = run(periodic_setup, lambda x, y: 1.0 + 0 * x, lambda x, y: -0.5 + 0 * x,
                     dt=0.1, t_end=0.5)
        V = solver.arrays.V
        grid = periodic_setup.grid
        assert np.allclose(V[grid.velocity_range(0)], 1.0, atol=1e-12)
        assert np.allclose(V[grid.velocity_range(1)], -0.5, atol=1e-12)
        assert np.allclose(solver.arrays.p, 0.0, atol=1e-10)

    @pytest.mark.slow
    def test_taylor_green_energy_decay(self):
        setup = taylor_green_setup(n=32, Re=100.0)
        solver = run(setup, taylor_green_u, taylor_green_v, dt=0.01, t_end=0.5)
        energy = np.array(solver.time_series.energy)
        ic = create_initial_conditions(setup, 0.0, taylor_green_u, taylor_green_v)
        E0 = 0.5 * np.dot(setup.grid.Omega * ic.V, ic.V)

        assert np.all(np.diff(np.concatenate([[E0], energy])) <= 1e-14 * E0)
        rate = -np.log(energy[-1] / E0) / 0.5
        assert abs(rate / (4 * setup.viscosity_model.nu) - 1) < 0.05
        assert solver.metrics.max_divergence < 1e-10

    def test_momentum_conserved(self, periodic_setup, rng):
        ops = periodic_setup.operators
        grid = periodic_setup.grid
        ic = create_initial_conditions(periodic_setup, 0.0, taylor_green_u, taylor_green_v)
        V = ic.V + 0.3 * rng.standard_normal(grid.NV)
        V[grid.velocity_range(0)] += 0.7
        dp = DirectPressureSolver(periodic_setup).solve(ops.divergence(V, ops.boundary_vectors(0.0)))
        ic.V = V - ops.Omega_inv * (ops.G @ dp)

        solver = UnsteadySolver(periodic_setup, ic, dt=0.01, t_end=0.1)
        before = solver.monitor.compute(solver.arrays.V, 0.0).momentum
        solver.solve()
        after = solver.monitor.compute(solver.arrays.V, solver.arrays.t).momentum
        assert np.allclose(after, before, rtol=1e-12, atol=1e-11)
        assert np.isclose(before[0], 0.7 * (2 * np.pi) ** 2, rtol=0.2)

    def test_stage_times_must_advance(self, periodic_setup):
        from solvers.tableaux import ButcherTableau

        tableau = ButcherTableau(
            "lazy", np.array([[0.0, 0.0], [0.0, 0.0]]), np.array([0.0, 1.0]), np.array([0.0, 0.0])
        )
        with pytest.raises(ConfigurationError):
            ExplicitRungeKutta(periodic_setup, tableau, None, None)

    def test_implicit_tableau_rejected(self, periodic_setup):
        with pytest.raises(ConfigurationError):
            ExplicitRungeKutta(periodic_setup, get_tableau("BE11"), None, None)


class TestImplicitStepper:
    @pytest.mark.parametrize("method", ["BE11", "GL1", "CN22", "SDIRK34"])
    def test_taylor_green(self, method):
        setup = taylor_green_setup(n=16, Re=100.0)
        solver = run(setup, taylor_green_u, taylor_green_v, rk_method=method, dt=0.05, t_end=0.2)
        assert isinstance(solver.stepper, ImplicitRungeKutta)
        assert solver.metrics.max_divergence < 1e-10
        energy = np.array(solver.time_series.energy)
        assert np.all(np.diff(energy) < 0)

        ic = create_initial_conditions(setup, 0.0, taylor_green_u, taylor_green_v)
        E0 = 0.5 * np.dot(setup.grid.Omega * ic.V, ic.V)
        rate = -np.log(energy[-1] / E0) / 0.2
        assert abs(rate / (4 * setup.viscosity_model.nu) - 1) < 0.1

    @pytest.mark.parametrize("nonlinear_solver", ["newton", "picard"])
    def test_cavity(self, cavity_setup, nonlinear_solver):
        solver = run(cavity_setup, zero, zero, rk_method="SDIRK34", dt=0.01, t_end=0.03,
                     nonlinear_solver=nonlinear_solver, nonlinear_max_iterations=50)
        assert solver.metrics.max_divergence < 1e-10
        assert solver.metrics.final_energy > 0

    def test_explicit_tableau_rejected(self, periodic_setup):
        with pytest.raises(ConfigurationError):
            ImplicitRungeKutta(periodic_setup, get_tableau("RK44"), None, None)

    def test_unknown_nonlinear_solver(self, periodic_setup):
        with pytest.raises(ConfigurationError):
            ImplicitRungeKutta(periodic_setup, get_tableau("BE11"), None, None, nonlinear_solver="anderson")
