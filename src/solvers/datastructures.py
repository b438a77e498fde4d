"""Data structures for solver configuration and results.

Structure:
- Parameters: Input configuration (logged to MLflow at start)
- Metrics: Output results (logged to MLflow at end)
- Fields: Spatial solution data at the pressure points
- TimeSeries: Time or iteration history
- SolverState / StepperCache: Internal arrays of the time steppers
"""

from dataclasses import dataclass, asdict
from typing import Optional, List, Tuple

import numpy as np
import pandas as pd

from fv.core.errors import ConfigurationError


# ========================================================
# Parameters (Input Configuration)
# ========================================================


@dataclass
class Parameters:
    """Base solver parameters - input configuration for all drivers."""

    max_iterations: int = 100_000
    tolerance: float = 1e-8
    pressure_solver: str = "direct"
    cg_tolerance: float = 1e-12
    cg_max_iterations: int = 1000
    cg_preconditioner: Optional[str] = None
    log_interval: int = 50
    method: str = ""

    def __post_init__(self):
        if self.log_interval <= 0:
            raise ConfigurationError(f"log_interval must be positive, got {self.log_interval}")

    def to_dataframe(self):
        return pd.DataFrame([asdict(self)])

    def to_mlflow(self) -> dict:
        """Flat parameter dict; MLflow does not accept None values."""
        return {k: ("None" if v is None else v) for k, v in asdict(self).items()}

    def pressure_solver_options(self) -> dict:
        """Keyword arguments for ``create_pressure_solver``."""
        if self.pressure_solver == "cg":
            return dict(
                tolerance=self.cg_tolerance,
                max_iterations=self.cg_max_iterations,
                preconditioner=self.cg_preconditioner,
            )
        return {}


@dataclass
class UnsteadyParameters(Parameters):
    """Time integration settings."""

    t_end: float = 1.0
    dt: float = 0.01
    rk_method: str = "RK44"
    adaptive: bool = False
    n_adapt_dt: int = 1
    cfl: float = 0.9
    max_retries: int = 4
    p_add_solve: bool = True
    nonlinear_solver: str = "newton"
    nonlinear_tolerance: float = 1e-10
    nonlinear_max_iterations: int = 20
    method: str = "unsteady"

    def __post_init__(self):
        super().__post_init__()
        if self.n_adapt_dt <= 0:
            raise ConfigurationError(f"n_adapt_dt must be positive, got {self.n_adapt_dt}")


@dataclass
class SteadyParameters(Parameters):
    """Newton/Picard settings for the steady-state solve."""

    max_iterations: int = 50
    tolerance: float = 1e-10
    nonlinear_solver: str = "newton"
    method: str = "steady"


# ========================================================
# Metrics (Output Results)
# ========================================================


@dataclass
class Metrics:
    """Solver metrics - output results computed during/after solving."""

    iterations: int = 0
    converged: bool = False
    final_residual: float = float("inf")
    wall_time_seconds: float = 0.0
    final_time: float = 0.0
    max_divergence: float = 0.0
    final_energy: float = 0.0
    pressure_solves: int = 0
    retries: int = 0

    def to_dataframe(self):
        return pd.DataFrame([asdict(self)])


# ========================================================
# Fields (Spatial Solution Data)
# ========================================================


@dataclass
class Fields:
    """Velocity averaged to the pressure points, pressure and coordinates."""

    u: np.ndarray
    v: np.ndarray
    p: np.ndarray
    x: np.ndarray
    y: np.ndarray
    w: Optional[np.ndarray] = None
    z: Optional[np.ndarray] = None

    def to_dataframe(self) -> pd.DataFrame:
        """Convert to DataFrame with one row per pressure point."""
        return pd.DataFrame({k: v for k, v in asdict(self).items() if v is not None})

    @classmethod
    def from_solution(cls, setup, V, p, bv):
        velocity = setup.operators.interpolate_velocity(V, bv)
        coords = [c.ravel() for c in setup.grid.pressure_points()]
        fields = cls(u=velocity[0], v=velocity[1], p=p.copy(), x=coords[0], y=coords[1])
        if setup.grid.dimension() == 3:
            fields.w = velocity[2]
            fields.z = coords[2]
        return fields


# ========================================================
# Time Series (History)
# ========================================================


@dataclass
class TimeSeries:
    """History with one value per recorded step."""

    time: List[float]
    residual: List[float]
    max_divergence: List[float]
    energy: List[float]
    dt: Optional[List[float]] = None

    def to_dataframe(self) -> pd.DataFrame:
        """Convert to DataFrame with one row per step."""
        return pd.DataFrame({k: v for k, v in asdict(self).items() if v is not None})


# ========================================================
# Internal state
# ========================================================


@dataclass
class SolverState:
    """Current solution; the steppers update the arrays in place."""

    V: np.ndarray
    p: np.ndarray
    t: float = 0.0
    scalars: Optional[Tuple[np.ndarray, ...]] = None

    def copy(self) -> "SolverState":
        scalars = None if self.scalars is None else tuple(s.copy() for s in self.scalars)
        return SolverState(V=self.V.copy(), p=self.p.copy(), t=self.t, scalars=scalars)

    def restore(self, other: "SolverState"):
        self.V[:] = other.V
        self.p[:] = other.p
        self.t = other.t
        if self.scalars is not None:
            for s, s_other in zip(self.scalars, other.scalars):
                s[:] = s_other


@dataclass
class StepperCache:
    """Work arrays of a Runge-Kutta step, allocated once per run."""

    V_n: np.ndarray
    p_n: np.ndarray
    kV: np.ndarray  # stage slopes, one column per stage
    Vtemp: np.ndarray
    F: np.ndarray
    dp: np.ndarray
    s_n: np.ndarray  # scalars at the start of the step
    ks: np.ndarray  # scalar stage slopes

    @classmethod
    def allocate(cls, NV: int, NP: int, nstage: int, n_scalars: int = 0):
        """Allocate all arrays with proper sizes."""
        return cls(
            V_n=np.zeros(NV),
            p_n=np.zeros(NP),
            kV=np.zeros((NV, nstage)),
            Vtemp=np.zeros(NV),
            F=np.zeros(NV),
            dp=np.zeros(NP),
            s_n=np.zeros((n_scalars, NP)),
            ks=np.zeros((n_scalars, NP, nstage)),
        )
