"""Processors: callbacks invoked by the driver loop on read-only snapshots."""

import logging

import pandas as pd

log = logging.getLogger(__name__)


class Processor:
    """Base processor; ``update`` runs every ``nupdate`` steps."""

    nupdate = 1

    def initialize(self, setup, V, p, t):
        pass

    def update(self, setup, V, p, t, diagnostics=None):
        pass

    def finalize(self):
        pass


class StepLogger(Processor):
    """Log time, kinetic energy and divergence."""

    def __init__(self, nupdate: int = 10):
        self.nupdate = nupdate

    def update(self, setup, V, p, t, diagnostics=None):
        if diagnostics is None:
            log.info("t = %.6g", t)
            return
        log.info(
            "t = %.6g  energy = %.6e  max|div| = %.3e",
            t,
            diagnostics.kinetic_energy,
            diagnostics.max_divergence,
        )


class QuantityTracer(Processor):
    """Record conservation diagnostics over time."""

    def __init__(self, nupdate: int = 1):
        self.nupdate = nupdate
        self.records = []

    def initialize(self, setup, V, p, t):
        self.records = []

    def update(self, setup, V, p, t, diagnostics=None):
        if diagnostics is None:
            return
        record = {
            "time": t,
            "kinetic_energy": diagnostics.kinetic_energy,
            "max_divergence": diagnostics.max_divergence,
        }
        for alpha, m in enumerate(diagnostics.momentum):
            record[f"momentum_{alpha}"] = m
        self.records.append(record)

    def to_dataframe(self) -> pd.DataFrame:
        return pd.DataFrame(self.records)
