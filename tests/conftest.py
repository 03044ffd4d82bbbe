"""
Shared fixtures: a scripted solver engine that records every call.
"""

from typing import Dict, List, Optional

import pytest

from partitioned_cht.core.config import CouplingConfig
from partitioned_cht.engine.base import (
    CriterionHandle,
    CriterionKind,
    DomainHandle,
    SolverEngine,
)


class FakeEngine(SolverEngine):
    """Engine that jumps straight to whichever enabled limit applies.

    A run with the fluid active advances the iteration counter to the step
    limit; a run with solids active advances time to the time limit. Every run
    records the activation and limits it saw.
    """

    snapshot_extension = ".sim"

    def __init__(
        self,
        domains=("Fluid_Volume", "S_Die", "S_Plate"),
        start_time: float = 0.0,
        max_steps: int = 0,
        fail_on_run: Optional[int] = None,
        fail_snapshots: int = 0,
        time_offset: float = 0.0,
    ):
        self._active: Dict[str, bool] = {name: True for name in domains}
        self.fluid_name = domains[0]
        self.time = start_time
        self.iteration = 0
        self.limits = {
            "Maximum Steps": [CriterionKind.STEPS, max_steps, True],
            "Maximum Physical Time": [CriterionKind.PHYSICAL_TIME, start_time, True],
        }
        self.fail_on_run = fail_on_run
        self.fail_snapshots = fail_snapshots
        self.time_offset = time_offset
        self.runs: List[dict] = []
        self.snapshots: List[str] = []
        self.set_active_calls = 0

    def resolve_domain(self, name):
        if name not in self._active:
            raise KeyError(f"Continuum '{name}' not found")
        return DomainHandle(name=name)

    def set_domain_active(self, handle, active):
        self.set_active_calls += 1
        self._active[handle.name] = active

    def is_domain_active(self, handle):
        return self._active[handle.name]

    def resolve_stopping_criterion(self, name):
        if name not in self.limits:
            raise KeyError(name)
        return CriterionHandle(name=name, kind=self.limits[name][0])

    def get_step_limit(self, handle):
        return self.limits[handle.name][1]

    def set_step_limit(self, handle, value):
        self.limits[handle.name][1] = value

    def get_time_limit(self, handle):
        return self.limits[handle.name][1]

    def set_time_limit(self, handle, value):
        self.limits[handle.name][1] = value

    def set_criterion_enabled(self, handle, enabled):
        self.limits[handle.name][2] = enabled

    def run(self):
        if self.fail_on_run is not None and len(self.runs) + 1 == self.fail_on_run:
            raise RuntimeError("Floating point exception")

        step_kind, step_limit, step_enabled = self.limits["Maximum Steps"]
        time_kind, time_limit, time_enabled = self.limits["Maximum Physical Time"]
        fluid_active = self._active[self.fluid_name]
        solids_active = [n for n, a in self._active.items() if a and n != self.fluid_name]

        self.runs.append(
            {
                "fluid_active": fluid_active,
                "solids_active": solids_active,
                "step_limit": step_limit,
                "step_enabled": step_enabled,
                "time_limit": time_limit,
                "time_enabled": time_enabled,
                "time_before": self.time,
            }
        )

        if fluid_active and step_enabled:
            self.iteration = max(self.iteration, step_limit)
        if solids_active and time_enabled:
            self.time = max(self.time, time_limit + self.time_offset)

    def current_iteration(self):
        return self.iteration

    def current_physical_time(self):
        return self.time

    def save_snapshot(self, path):
        if self.fail_snapshots > 0:
            self.fail_snapshots -= 1
            raise OSError("No space left on device")
        with open(path, "w") as f:
            f.write(f"t={self.time}\n")
        self.snapshots.append(path)

    def monitor_value(self, name):
        if name == "Continuity":
            return 1e-5
        raise KeyError(name)

    def report_value(self, name):
        if name == "Max Die Temperature":
            return 350.0 + self.time
        raise KeyError(name)


@pytest.fixture
def fake_engine():
    return FakeEngine()


@pytest.fixture
def make_engine():
    """Factory for engines with custom behaviour."""
    return FakeEngine


@pytest.fixture
def scenario_config():
    """The reference scenario: T_end=1.0, dt_s=0.2, K=2, N_fast=30, save every 0.5 s."""
    return CouplingConfig(
        end_time=1.0,
        solid_time_step=0.2,
        fluid_iterations=30,
        subcycles=2,
        save_interval=0.5,
    )
