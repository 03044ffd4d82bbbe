"""
Partitioned fluid/solid coupling.

This module contains the phase scheduler and the components it drives:

- **domains**: domain resolution and activation (DomainRegistry, DomainSet)
- **stopping**: host stopping criteria (StoppingCriteriaController)
- **state**: time state, counters and run summary
- **checkpoint**: snapshots on the save grid (CheckpointManager)
- **diagnostics**: best-effort monitoring hooks (DiagnosticsReporter)
- **scheduler**: the alternating scheduler (PhaseScheduler)
"""

from .checkpoint import CheckpointInfo, CheckpointManager
from .diagnostics import (
    DiagnosticsContext,
    DiagnosticsReporter,
    HistoryWriter,
    ReportLoggerHook,
    ResidualMonitorHook,
)
from .domains import DomainRegistry, DomainSet
from .scheduler import PhaseScheduler
from .state import ActivationState, ProgressCounters, RunSummary, TimeState, time_reached
from .stopping import StoppingCriteriaController

__all__ = [
    # Scheduler
    "PhaseScheduler",
    # Components
    "DomainRegistry",
    "DomainSet",
    "StoppingCriteriaController",
    "CheckpointManager",
    "CheckpointInfo",
    "DiagnosticsReporter",
    "DiagnosticsContext",
    "ResidualMonitorHook",
    "ReportLoggerHook",
    "HistoryWriter",
    # State
    "ActivationState",
    "TimeState",
    "ProgressCounters",
    "RunSummary",
    "time_reached",
]
