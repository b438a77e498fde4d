"""Abstract base solver for the incompressible Navier-Stokes equations."""

from abc import ABC, abstractmethod
from dataclasses import asdict
import logging
import os
from pathlib import Path
import time

import mlflow
import numpy as np
import pandas as pd

from fv.assembly import MomentumAssembly
from fv.core.errors import ConfigurationError, NumericalDefectError
from fv.linear_solvers import create_pressure_solver
from .conservation import ConservationMonitor
from .datastructures import Fields, Metrics, SolverState, TimeSeries

log = logging.getLogger(__name__)


class NavierStokesSolver(ABC):
    """Shared driver loop for the unsteady and steady solvers.

    The base class owns:
    - the run parameters and the result containers (metrics, history, fields)
    - the step loop with finiteness checks and conservation diagnostics
    - processors and live MLflow metrics

    A concrete driver provides:
    - a ``Parameters`` dataclass
    - ``step()``, advancing one time step or one nonlinear iteration
    - ``_is_finished()`` and ``_is_converged()``
    """

    Parameters = None

    def __init__(self, setup, initial_conditions, params=None, processors=(), **kwargs):
        """Copy the initial state and build the shared assemblies.

        Parameters
        ----------
        setup : Setup
            Grid, operators and physical models.
        initial_conditions : InitialConditions
            Starting velocity, pressure, time and turbulence scalars. Copied.
        params : Parameters, optional
            Run parameters; built from ``kwargs`` when omitted.
        processors : sequence of Processor, optional
            Callbacks run on read-only snapshots during the loop.
        **kwargs
            Fields of ``Parameters`` used when ``params`` is None.
        """
        if params is None:
            if self.Parameters is None:
                raise ConfigurationError("Subclass must define Parameters class attribute")
            params = self.Parameters(**kwargs)

        self.setup = setup
        self.params = params
        self.metrics = Metrics()
        self.fields = None
        self.time_series = None
        self.processors = list(processors)
        for processor in self.processors:
            if processor.nupdate <= 0:
                raise ConfigurationError(
                    f"{type(processor).__name__}.nupdate must be positive, got {processor.nupdate}"
                )

        ic = initial_conditions
        if ic.V.shape != (setup.grid.NV,) or ic.p.shape != (setup.grid.NP,):
            raise ConfigurationError("Initial conditions do not match the grid")
        scalars = None
        if setup.n_scalars:
            if ic.scalars is None:
                raise ConfigurationError(
                    f"{setup.viscosity_model!r} needs initial turbulence scalars"
                )
            scalars = tuple(np.array(s, dtype=float) for s in ic.scalars)
        self.arrays = SolverState(
            V=np.array(ic.V, dtype=float), p=np.array(ic.p, dtype=float), t=ic.t, scalars=scalars
        )

        self.momentum = MomentumAssembly(setup)
        self.pressure_solver = create_pressure_solver(
            params.pressure_solver, setup, **params.pressure_solver_options()
        )
        self.monitor = ConservationMonitor(setup)
        self.last_dt = None
        self.retries = 0

    @abstractmethod
    def step(self) -> float:
        """Perform one time step or nonlinear iteration.

        Returns
        -------
        float
            Residual of the momentum equation after the step.
        """
        pass

    @abstractmethod
    def _is_finished(self, iteration: int) -> bool:
        pass

    @abstractmethod
    def _is_converged(self, residual: float) -> bool:
        pass

    def _check_finite(self):
        state = self.arrays
        arrays = [state.V, state.p] + list(state.scalars or ())
        if not all(np.all(np.isfinite(a)) for a in arrays):
            raise NumericalDefectError(f"Non-finite solution at t = {state.t:.6g}")

    def _snapshot(self):
        """Read-only views of (V, p, t)."""
        V = self.arrays.V.view()
        p = self.arrays.p.view()
        V.flags.writeable = False
        p.flags.writeable = False
        return V, p, self.arrays.t

    def _store_results(self, history, n_iterations, converged, wall_time, max_points: int = 1000):
        """Fill ``fields``, ``time_series`` and ``metrics`` from the current state."""
        state = self.arrays
        bv = self.momentum.boundary_vectors(state.t)
        self.fields = Fields.from_solution(self.setup, state.V, state.p, bv)

        def downsample(data):
            if data is None or len(data) <= max_points:
                return data
            keep = np.linspace(0, len(data) - 1, max_points).astype(int)
            return list(np.asarray(data)[keep])

        dt_history = history["dt"] if any(d is not None for d in history["dt"]) else None
        self.time_series = TimeSeries(
            time=downsample(history["time"]),
            residual=downsample(history["residual"]),
            max_divergence=downsample(history["max_divergence"]),
            energy=downsample(history["energy"]),
            dt=downsample(dt_history),
        )

        diagnostics = self.monitor.compute(state.V, state.t)
        self.metrics = Metrics(
            iterations=n_iterations,
            converged=converged,
            final_residual=history["residual"][-1] if history["residual"] else float("inf"),
            wall_time_seconds=wall_time,
            final_time=state.t,
            max_divergence=diagnostics.max_divergence,
            final_energy=diagnostics.kinetic_energy,
            pressure_solves=self.pressure_solver.n_solves,
            retries=self.retries,
        )

    def solve(self):
        """Run the stepping loop until finished or converged.

        Stores results in solver attributes, also when a step raises:
        - self.fields : Fields dataclass with solution fields
        - self.time_series : TimeSeries dataclass with the history
        - self.metrics : Metrics dataclass with solver metrics
        """
        params = self.params
        state = self.arrays
        history = {"time": [], "residual": [], "max_divergence": [], "energy": [], "dt": []}

        for processor in self.processors:
            processor.initialize(self.setup, *self._snapshot())

        time_start = time.time()
        mlflow_time = 0.0  # Track time spent on MLflow logging
        iteration = 0
        is_converged = False

        try:
            while not self._is_finished(iteration):
                residual = self.step()
                iteration += 1
                self._check_finite()

                diagnostics = self.monitor.compute(state.V, state.t)
                history["time"].append(state.t)
                history["residual"].append(residual)
                history["max_divergence"].append(diagnostics.max_divergence)
                history["energy"].append(diagnostics.kinetic_energy)
                history["dt"].append(self.last_dt)

                for processor in self.processors:
                    if iteration % processor.nupdate == 0:
                        V, p, t = self._snapshot()
                        processor.update(self.setup, V, p, t, diagnostics)

                is_converged = self._is_converged(residual)

                if iteration % params.log_interval == 0 or is_converged:
                    log.info(
                        "Iteration %d: t=%.6g, residual=%.6e, max|div|=%.3e",
                        iteration, state.t, residual, diagnostics.max_divergence,
                    )

                    # Live MLflow logging (timed separately)
                    if mlflow.active_run():
                        t_log_start = time.time()
                        live_metrics = {
                            "residual": residual,
                            "max_divergence": diagnostics.max_divergence,
                            "energy": diagnostics.kinetic_energy,
                            "time": state.t,
                        }
                        mlflow.log_metrics(live_metrics, step=iteration)
                        mlflow_time += time.time() - t_log_start

                if is_converged:
                    break
        finally:
            wall_time = time.time() - time_start - mlflow_time  # Exclude MLflow logging time
            for processor in self.processors:
                processor.finalize()
            self._store_results(history, iteration, is_converged, wall_time)
            log.info(
                "Solver finished in %.2f seconds (excl. %.2fs logging).", wall_time, mlflow_time
            )

    def save(self, filepath):
        """Write the run to HDF5: one table each for params, metrics, history and fields.

        Parameters
        ----------
        filepath : str or Path
            Target ``.h5`` file; missing parent directories are created.
        """
        path = Path(filepath)
        path.parent.mkdir(parents=True, exist_ok=True)

        tables = {
            "params": self.params.to_dataframe(),
            "metrics": self.metrics.to_dataframe(),
            "time_series": self.time_series.to_dataframe(),
            "fields": self.fields.to_dataframe(),
        }
        with pd.HDFStore(path, mode="w", complevel=5) as store:
            for key, df in tables.items():
                store[key] = df
        log.info("Saved %s results to %s", type(self).__name__, path)

    # ========================================================================
    # MLflow Integration
    # ========================================================================

    @staticmethod
    def _mlflow_parent_run(experiment_id: str, parent_run_name: str) -> str:
        """Id of the parent run called ``parent_run_name``, created on first use."""
        client = mlflow.tracking.MlflowClient()
        query = f"tags.mlflow.runName = '{parent_run_name}' AND tags.is_parent = 'true'"
        found = client.search_runs(
            experiment_ids=[experiment_id], filter_string=query, max_results=1
        )
        if found:
            return found[0].info.run_id
        run = client.create_run(
            experiment_id=experiment_id, run_name=parent_run_name, tags={"is_parent": "true"}
        )
        return run.info.run_id

    def mlflow_start(self, experiment_name: str, run_name: str, parent_run_name: str = None):
        """Open an MLflow run for this solve and record its parameters.

        Parameters
        ----------
        experiment_name : str
            MLflow experiment, created when missing.
        run_name : str
            Name of the run.
        parent_run_name : str, optional
            Group the run under a parent run of this name (e.g. a grid or Reynolds
            number sweep). The parent is reused when it already exists.
        """
        experiment = mlflow.get_experiment_by_name(experiment_name)
        experiment_id = (
            experiment.experiment_id if experiment is not None
            else mlflow.create_experiment(name=experiment_name)
        )
        mlflow.set_experiment(experiment_id=experiment_id)

        self._mlflow_nested = bool(parent_run_name)
        if self._mlflow_nested:
            mlflow.start_run(run_id=self._mlflow_parent_run(experiment_id, parent_run_name))
            mlflow.start_run(run_name=run_name, nested=True)
        else:
            mlflow.start_run(run_name=run_name)

        mlflow.log_params(self.params.to_mlflow())
        tags = {
            "viscosity_model": repr(self.setup.viscosity_model),
            "convection_model": repr(self.setup.convection_model),
            "grid": "x".join(str(n) for n in self.setup.grid.Np),
        }
        # Batch job id on LSF clusters
        if os.environ.get("LSB_JOBID"):
            tags["lsf.job_id"] = os.environ["LSB_JOBID"]
        mlflow.set_tags(tags)

    def mlflow_end(self):
        """Log the final metrics and close the run (and its parent when nested)."""
        mlflow.log_metrics({k: float(v) for k, v in asdict(self.metrics).items()})
        mlflow.end_run()
        if getattr(self, "_mlflow_nested", False):
            mlflow.end_run()
