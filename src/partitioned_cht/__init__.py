"""
Partitioned conjugate heat transfer coupling.

Alternates steady fluid iterations with transient solid timesteps so that
solids with large thermal inertia can be advanced at their own timescale
instead of the fluid's.
"""

from .core.config import CouplingConfig, SimulationConfig
from .core.exceptions import (
    ActivationError,
    CheckpointError,
    ConfigurationError,
    CouplingError,
    DiagnosticsError,
    SolverInvocationError,
)
from .coupling import PhaseScheduler, RunSummary
from .engine import LumpedThermalEngine, SolverEngine
from .runner import CouplingRunner, run, run_from_yaml

__version__ = "0.1.0"

__all__ = [
    "CouplingConfig",
    "SimulationConfig",
    "CouplingError",
    "ConfigurationError",
    "ActivationError",
    "SolverInvocationError",
    "CheckpointError",
    "DiagnosticsError",
    "PhaseScheduler",
    "RunSummary",
    "SolverEngine",
    "LumpedThermalEngine",
    "CouplingRunner",
    "run",
    "run_from_yaml",
]
