"""Tests for the pressure Poisson solvers."""

import numpy as np
import pytest

from fv.core.errors import ConfigurationError, ConvergenceFailure, SingularOperatorError
from fv.linear_solvers import (
    CGPressureSolver,
    DirectPressureSolver,
    SpectralPressureSolver,
    create_pressure_solver,
    pressure_poisson,
)


def compatible_rhs(setup, rng):
    """Right-hand side in the range of L (divergence of a random field)."""
    return setup.operators.M @ rng.standard_normal(setup.grid.NV)


class TestDirectSolver:
    @pytest.mark.parametrize("name", ["periodic_setup", "cavity_setup", "channel_setup"])
    def test_solves_poisson(self, name, request, rng):
        setup = request.getfixturevalue(name)
        f = compatible_rhs(setup, rng)
        p = DirectPressureSolver(setup).solve(f)
        assert np.allclose(setup.operators.L @ p, f, atol=1e-10)

    def test_gauge_free_solution_has_zero_mean(self, cavity_setup, rng):
        p = DirectPressureSolver(cavity_setup).solve(compatible_rhs(cavity_setup, rng))
        assert abs(p.mean()) < 1e-12

    def test_outlet_fixes_gauge(self, channel_setup):
        assert not DirectPressureSolver(channel_setup).gauge_free

    def test_unpinned_gauge_is_singular(self, periodic_setup):
        with pytest.raises(SingularOperatorError):
            DirectPressureSolver(periodic_setup, pin_gauge=False)

    def test_incompatible_rhs_rejected(self, cavity_setup):
        solver = DirectPressureSolver(cavity_setup)
        with pytest.raises(ConvergenceFailure):
            solver.solve(np.ones(cavity_setup.grid.NP))

    def test_out_argument(self, cavity_setup, rng):
        solver = DirectPressureSolver(cavity_setup)
        f = compatible_rhs(cavity_setup, rng)
        out = np.empty(cavity_setup.grid.NP)
        assert pressure_poisson(solver, f, out=out) is out
        assert solver.n_solves == 1


class TestIterativeSolvers:
    @pytest.mark.parametrize("preconditioner", [None, "jacobi"])
    def test_cg_matches_direct(self, cavity_setup, rng, preconditioner):
        f = compatible_rhs(cavity_setup, rng)
        p_direct = DirectPressureSolver(cavity_setup).solve(f)
        cg = CGPressureSolver(cavity_setup, tolerance=1e-11, preconditioner=preconditioner)
        p_cg = cg.solve(f)
        assert np.allclose(p_cg, p_direct, atol=1e-7 * np.max(np.abs(p_direct)))
        assert cg.last_iterations > 0

    def test_amg_on_outlet_problem(self, channel_setup, rng):
        f = rng.standard_normal(channel_setup.grid.NP)
        p_direct = DirectPressureSolver(channel_setup).solve(f)
        p_cg = CGPressureSolver(channel_setup, tolerance=1e-11, preconditioner="amg").solve(f)
        assert np.allclose(p_cg, p_direct, atol=1e-7 * np.max(np.abs(p_direct)))

    def test_cg_iteration_cap(self, cavity_setup, rng):
        solver = CGPressureSolver(cavity_setup, max_iterations=2)
        with pytest.raises(ConvergenceFailure) as excinfo:
            solver.solve(compatible_rhs(cavity_setup, rng))
        assert excinfo.value.iterations == 2
        assert excinfo.value.residual > 0

    def test_cg_incompatible_rhs_rejected(self, periodic_setup):
        solver = CGPressureSolver(periodic_setup)
        with pytest.raises(ConvergenceFailure):
            solver.solve(np.ones(periodic_setup.grid.NP))
        assert solver.n_solves == 0

    def test_unknown_preconditioner(self, cavity_setup):
        with pytest.raises(ConfigurationError):
            CGPressureSolver(cavity_setup, preconditioner="ilu")

    def test_spectral_matches_direct(self, periodic_setup, rng):
        f = compatible_rhs(periodic_setup, rng)
        p_direct = DirectPressureSolver(periodic_setup).solve(f)
        p_fft = SpectralPressureSolver(periodic_setup).solve(f)
        assert np.allclose(p_fft, p_direct, atol=1e-10)

    def test_spectral_needs_periodic_grid(self, cavity_setup):
        with pytest.raises(ConfigurationError):
            SpectralPressureSolver(cavity_setup)


class TestFactory:
    @pytest.mark.parametrize("name, cls", [
        ("direct", DirectPressureSolver),
        ("CG", CGPressureSolver),
        ("spectral", SpectralPressureSolver),
    ])
    def test_create(self, periodic_setup, name, cls):
        assert isinstance(create_pressure_solver(name, periodic_setup), cls)

    def test_unknown_solver(self, periodic_setup):
        with pytest.raises(ConfigurationError):
            create_pressure_solver("multigrid", periodic_setup)
