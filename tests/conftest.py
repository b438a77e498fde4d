"""Pytest configuration and fixtures for the staggered-grid solver tests."""

import sys
from pathlib import Path

import numpy as np
import pytest

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from meshing import DirichletBC, PeriodicBC, PressureBC  # noqa: E402
from solvers import Setup  # noqa: E402


def lid(component, x, y, t):
    """Unit tangential velocity on the lid of the cavity."""
    return 1.0 if component == 0 else 0.0


def parabolic_inflow(component, x, y, t):
    return 4.0 * y * (1.0 - y) if component == 0 else 0.0 * y


def taylor_green_u(x, y):
    return np.sin(x) * np.cos(y)


def taylor_green_v(x, y):
    return -np.cos(x) * np.sin(y)


@pytest.fixture
def periodic_setup():
    """Uniform doubly periodic 16x16 grid on [0, 2pi]^2, Re=100."""
    x = np.linspace(0.0, 2 * np.pi, 17)
    bcs = [(PeriodicBC(), PeriodicBC()), (PeriodicBC(), PeriodicBC())]
    return Setup.create([x, x], bcs, Re=100)


@pytest.fixture
def cavity_setup():
    """Lid-driven cavity on a mildly stretched 10x12 grid, Re=100."""
    from meshing import cosine_grid, stretched_grid

    bcs = [(DirichletBC(), DirichletBC()), (DirichletBC(), DirichletBC(u=lid))]
    return Setup.create([stretched_grid(0, 1, 10, 1.05), cosine_grid(0, 1, 12)], bcs, Re=100)


@pytest.fixture
def channel_setup():
    """Channel [0, 2] x [0, 1] with parabolic inflow and a pressure outlet, Re=10."""
    bcs = [(DirichletBC(u=parabolic_inflow), PressureBC()), (DirichletBC(), DirichletBC())]
    return Setup.create([np.linspace(0, 2, 17), np.linspace(0, 1, 9)], bcs, Re=10)


@pytest.fixture
def rng():
    return np.random.default_rng(42)
