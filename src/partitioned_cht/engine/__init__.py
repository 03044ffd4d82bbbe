"""
Solver engines driven by the coupling scheduler.

This module provides the abstract engine boundary and the engines shipped with
the package.
"""

from ..core.config import EngineConfig, EngineType
from ..core.exceptions import ConfigurationError
from .base import CriterionHandle, CriterionKind, DomainHandle, SolverEngine
from .lumped import DEFAULT_SOLIDS, FluidParams, LumpedThermalEngine, SolidParams


def create_engine(config: EngineConfig) -> SolverEngine:
    """Create the solver engine described by ``config``.

    Raises
    ------
    ConfigurationError
        If the engine type is unknown or its parameters are invalid.
    """
    if config.type == EngineType.LUMPED.value:
        return LumpedThermalEngine.from_params(config.params)
    raise ConfigurationError(f"Unknown engine type: {config.type}")


__all__ = [
    # Interface
    "SolverEngine",
    "DomainHandle",
    "CriterionHandle",
    "CriterionKind",
    # Engines
    "LumpedThermalEngine",
    "FluidParams",
    "SolidParams",
    "DEFAULT_SOLIDS",
    "create_engine",
]
