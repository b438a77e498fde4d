"""Drivers, time steppers and run configuration for the staggered-grid solver."""

from solvers.setup import Setup, BodyForce
from solvers.datastructures import (
    Parameters,
    UnsteadyParameters,
    SteadyParameters,
    Metrics,
    Fields,
    TimeSeries,
    SolverState,
    StepperCache,
)
from solvers.config import load_parameters
from solvers.tableaux import ButcherTableau, TABLEAUX, get_tableau
from solvers.time_steppers import (
    ExplicitRungeKutta,
    ImplicitRungeKutta,
    create_time_stepper,
    solve_saddle_point,
)
from solvers.initial_conditions import InitialConditions, create_initial_conditions
from solvers.conservation import ConservationDiagnostics, ConservationMonitor
from solvers.processors import Processor, StepLogger, QuantityTracer
from solvers.base_solver import NavierStokesSolver
from solvers.unsteady import UnsteadySolver, compute_timestep
from solvers.steady import SteadyStateSolver


__all__ = [
    # Setup
    "Setup",
    "BodyForce",
    # Data structures
    "Parameters",
    "UnsteadyParameters",
    "SteadyParameters",
    "Metrics",
    "Fields",
    "TimeSeries",
    "SolverState",
    "StepperCache",
    "load_parameters",
    # Time stepping
    "ButcherTableau",
    "TABLEAUX",
    "get_tableau",
    "ExplicitRungeKutta",
    "ImplicitRungeKutta",
    "create_time_stepper",
    "solve_saddle_point",
    # Initial conditions and diagnostics
    "InitialConditions",
    "create_initial_conditions",
    "ConservationDiagnostics",
    "ConservationMonitor",
    "Processor",
    "StepLogger",
    "QuantityTracer",
    # Drivers
    "NavierStokesSolver",
    "UnsteadySolver",
    "compute_timestep",
    "SteadyStateSolver",
]
