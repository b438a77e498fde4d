"""Tests for 1D grid generators and staggered grid construction."""

import numpy as np
import pytest

from fv.core.errors import ConfigurationError
from meshing import (
    DirichletBC,
    PeriodicBC,
    PressureBC,
    SymmetricBC,
    cosine_grid,
    create_grid,
    stretched_grid,
)


class TestGenerators:
    def test_uniform_stretched_grid_is_linspace(self):
        assert np.allclose(stretched_grid(0, 2, 8), np.linspace(0, 2, 9))

    def test_stretching_ratio(self):
        x = stretched_grid(0, 1, 10, s=1.2)
        h = np.diff(x)
        assert x[0] == 0.0 and x[-1] == 1.0
        assert np.allclose(h[1:] / h[:-1], 1.2)

    def test_cosine_grid_clusters_at_ends(self):
        x = cosine_grid(-1, 1, 16)
        h = np.diff(x)
        assert np.isclose(x[0], -1) and np.isclose(x[-1], 1)
        assert h[0] < h[8]
        assert np.allclose(h, h[::-1])

    @pytest.mark.parametrize("args", [(1, 0, 4), (0, 1, 0), (0, 1, 4, -1.0)])
    def test_invalid_arguments(self, args):
        with pytest.raises(ConfigurationError):
            stretched_grid(*args)


class TestStaggeredGrid:
    def test_periodic_counts(self):
        x = np.linspace(0, 1, 9)
        grid = create_grid([x, x], [(PeriodicBC(), PeriodicBC())] * 2)
        assert grid.Np == (8, 8)
        assert grid.Nu == ((8, 8), (8, 8))
        assert grid.NV == 128
        assert grid.NP == 64

    def test_dirichlet_counts(self):
        x = np.linspace(0, 1, 7)
        y = np.linspace(0, 1, 5)
        grid = create_grid([x, y], [(DirichletBC(), DirichletBC())] * 2)
        assert grid.Np == (6, 4)
        # Normal velocities on the walls are not unknowns
        assert grid.Nu[0] == (5, 4)
        assert grid.Nu[1] == (6, 3)

    def test_pressure_outlet_keeps_outflow_velocity(self):
        x = np.linspace(0, 1, 7)
        grid = create_grid([x, x], [(DirichletBC(), PressureBC()), (DirichletBC(), DirichletBC())])
        assert grid.Np == (6, 6)
        assert grid.Nu[0] == (6, 6)
        assert grid.Nu[1] == (6, 5)

    @pytest.mark.parametrize(
        "bc",
        [
            (PeriodicBC(), PeriodicBC()),
            (DirichletBC(), DirichletBC()),
            (SymmetricBC(), SymmetricBC()),
            (DirichletBC(), PressureBC()),
        ],
    )
    def test_volumes_cover_domain(self, bc):
        x = stretched_grid(0, 2, 8, 1.1)
        y = np.linspace(0, 1, 5)
        grid = create_grid([x, y], [bc, (DirichletBC(), DirichletBC())])
        assert np.isclose(grid.Omega_p.sum(), 2.0)
        assert np.all(grid.Omega > 0)

    def test_velocity_points_lie_on_faces(self):
        x = np.linspace(0, 1, 5)
        grid = create_grid([x, x], [(DirichletBC(), DirichletBC())] * 2)
        xu, yu = grid.velocity_points(0)
        assert np.allclose(np.unique(xu), [0.25, 0.5, 0.75])
        assert np.allclose(np.unique(yu), [0.125, 0.375, 0.625, 0.875])

    @pytest.mark.parametrize("bc_pair", [
        (PeriodicBC(), PeriodicBC()),
        (DirichletBC(), DirichletBC()),
        (SymmetricBC(), SymmetricBC()),
        (PressureBC(), DirichletBC()),
        (DirichletBC(), PressureBC()),
    ])
    def test_ghost_extension_round_trip(self, bc_pair):
        x = stretched_grid(0, 1, 7, s=1.1)
        grid = create_grid([x, np.linspace(0, 1, 5)], [bc_pair, (DirichletBC(), DirichletBC())])
        assert len(grid.x[0]) > len(x)
        assert np.array_equal(grid.interior_coordinates(0), x)
        assert np.array_equal(grid.interior_coordinates(1), np.linspace(0, 1, 5))

    def test_unpaired_periodic_rejected(self):
        x = np.linspace(0, 1, 5)
        with pytest.raises(ConfigurationError):
            create_grid([x, x], [(PeriodicBC(), DirichletBC()), (DirichletBC(), DirichletBC())])

    def test_one_dimensional_rejected(self):
        with pytest.raises(ConfigurationError):
            create_grid([np.linspace(0, 1, 5)], [(DirichletBC(), DirichletBC())])

    def test_decreasing_coordinates_rejected(self):
        x = np.linspace(0, 1, 5)
        with pytest.raises(ConfigurationError):
            create_grid([x[::-1], x], [(DirichletBC(), DirichletBC())] * 2)

    def test_wrong_number_of_pairs_rejected(self):
        x = np.linspace(0, 1, 5)
        with pytest.raises(ConfigurationError):
            create_grid([x, x], [(DirichletBC(), DirichletBC())])

    def test_uniformity(self):
        x = np.linspace(0, 1, 5)
        bcs = [(PeriodicBC(), PeriodicBC())] * 2
        assert create_grid([x, x], bcs).is_uniform()
        assert not create_grid([stretched_grid(0, 1, 4, 1.3), x], bcs).is_uniform()
