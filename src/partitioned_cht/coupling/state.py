"""
Run state owned by the phase scheduler.

Time control, activation and progress counters are explicit objects held by a
single :class:`~partitioned_cht.coupling.scheduler.PhaseScheduler` for the
lifetime of one run. Nothing here is persisted; only simulation state is
checkpointed.
"""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import List, Optional


class ActivationState(str, Enum):
    """Which side of the coupled problem is enabled."""

    FAST = "fast"
    SLOW = "slow"


def time_reached(t: float, threshold: float, step: Optional[float] = None) -> bool:
    """Return True if ``t >= threshold`` up to floating-point accumulation.

    The tolerance is relative to ``threshold``. When ``step`` is given it is
    capped at a thousandth of it, so a large threshold never swallows a whole
    step.
    """
    tol = max(1e-12, 1e-9 * abs(threshold))
    if step is not None:
        tol = min(tol, 1e-3 * step)
    return t >= threshold - tol


@dataclass
class TimeState:
    """Time cursor of the coupled run.

    Attributes
    ----------
    initial_time : float
        Engine physical time when the run started [s].
    current_time : float
        Last physical time read back from the engine [s]. Non-decreasing.
    next_save_time : float
        Next point on the fixed save grid ``initial_time + n * save_interval``.
    major_step : int
        Number of major steps started so far.
    target_time : float, optional
        Nominal end time of the current major step (informational).
    """

    initial_time: float
    current_time: float
    next_save_time: float
    major_step: int = 0
    target_time: Optional[float] = None

    @classmethod
    def start(cls, initial_time: float, save_interval: float) -> "TimeState":
        return cls(
            initial_time=initial_time,
            current_time=initial_time,
            next_save_time=initial_time + save_interval,
        )

    def advance_save_grid(self, save_interval: float) -> None:
        """Move to the next save point without re-anchoring to the current time."""
        self.next_save_time += save_interval


@dataclass
class ProgressCounters:
    """Monotonic counters of completed phases."""

    total_fluid_iterations: int = 0
    total_solid_steps: int = 0

    def record_fluid_phase(self, iterations: int) -> None:
        if iterations < 0:
            raise ValueError(f"iterations must be non-negative: {iterations}")
        self.total_fluid_iterations += iterations

    def record_solid_phase(self) -> None:
        self.total_solid_steps += 1


@dataclass
class RunSummary:
    """Result of a partitioned run."""

    initial_time: float
    final_time: float
    total_fluid_iterations: int
    total_solid_steps: int
    major_steps: int
    solid_time_step: float
    reference_time_step: float = 1e-6
    checkpoints: List[Path] = field(default_factory=list)

    @property
    def simulated_time(self) -> float:
        """Physical time covered by the run [s]."""
        return self.final_time - self.initial_time

    @property
    def speedup_estimate(self) -> int:
        """Ratio of the solid timestep to the fully coupled reference timestep."""
        return int(self.solid_time_step / self.reference_time_step)

    @property
    def equivalent_coupled_steps(self) -> int:
        """Timesteps a fully coupled run would need for the same physical time."""
        return int(self.simulated_time / self.reference_time_step)

    def __str__(self) -> str:
        lines = [
            "Summary:",
            f"  - Total simulated time: {self.simulated_time:.6g} s",
            f"  - Final time: {self.final_time:.6g} s",
            f"  - Major steps: {self.major_steps}",
            f"  - Total fluid iterations: {self.total_fluid_iterations}",
            f"  - Total solid timesteps: {self.total_solid_steps}",
            f"  - Effective timestep used: {self.solid_time_step} s",
            f"  - Computational savings vs fully coupled: ~{self.speedup_estimate}x faster",
            f"  - Equivalent fully-coupled iterations avoided: {self.equivalent_coupled_steps}",
            f"  - Checkpoints written: {len(self.checkpoints)}",
        ]
        return "\n".join(lines)
