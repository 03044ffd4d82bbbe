from .config import (
    CouplingConfig,
    DiagnosticsConfig,
    DomainsConfig,
    EngineConfig,
    EngineType,
    OutputConfig,
    SimulationConfig,
    StartFrom,
    StoppingCriteriaConfig,
)
from .exceptions import (
    ActivationError,
    CheckpointError,
    ConfigurationError,
    CouplingError,
    DiagnosticsError,
    SolverInvocationError,
)

__all__ = [
    "CouplingConfig",
    "DiagnosticsConfig",
    "DomainsConfig",
    "EngineConfig",
    "EngineType",
    "OutputConfig",
    "SimulationConfig",
    "StartFrom",
    "StoppingCriteriaConfig",
    "ActivationError",
    "CheckpointError",
    "ConfigurationError",
    "CouplingError",
    "DiagnosticsError",
    "SolverInvocationError",
]
