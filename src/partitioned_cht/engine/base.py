"""
Abstract boundary between the coupling scheduler and a host solver engine.

The scheduler never touches solver internals. Everything it needs from the host
(continuum lookup and activation, stopping criteria, the blocking run call,
physical time read-back, snapshots and monitor values) goes through
:class:`SolverEngine`. A concrete engine wraps a real host session or, as in
:mod:`partitioned_cht.engine.lumped`, implements the physics in-process.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any


class CriterionKind(str, Enum):
    """Kind of host-level stopping criterion."""

    STEPS = "steps"
    PHYSICAL_TIME = "physical_time"


@dataclass(frozen=True)
class DomainHandle:
    """Reference to a resolved computational domain (continuum).

    Parameters
    ----------
    name : str
        Name of the domain in the host engine.
    ref : Any
        Engine-specific object backing the handle.
    """

    name: str
    ref: Any = None


@dataclass(frozen=True)
class CriterionHandle:
    """Reference to a resolved stopping criterion."""

    name: str
    kind: CriterionKind
    ref: Any = None


class SolverEngine(ABC):
    """Host solver engine driven by the partitioned coupling scheduler.

    Lookup methods raise ``KeyError`` when the requested object does not exist;
    the coupling layer turns that into a configuration error. Any exception
    raised from :meth:`run` is treated as a fatal solver failure.
    """

    #: File extension appended to snapshot names, including the dot.
    snapshot_extension: str = ".sim"

    # ------------------------------------------------------------------
    # Domains
    # ------------------------------------------------------------------

    @abstractmethod
    def resolve_domain(self, name: str) -> DomainHandle:
        """Return a handle for the named domain or raise ``KeyError``."""

    @abstractmethod
    def set_domain_active(self, handle: DomainHandle, active: bool) -> None:
        """Enable or disable a domain for subsequent runs."""

    @abstractmethod
    def is_domain_active(self, handle: DomainHandle) -> bool:
        """Return whether the domain is currently enabled."""

    # ------------------------------------------------------------------
    # Stopping criteria
    # ------------------------------------------------------------------

    @abstractmethod
    def resolve_stopping_criterion(self, name: str) -> CriterionHandle:
        """Return a handle for the named stopping criterion or raise ``KeyError``."""

    @abstractmethod
    def get_step_limit(self, handle: CriterionHandle) -> int:
        """Current maximum-steps value of a step criterion."""

    @abstractmethod
    def set_step_limit(self, handle: CriterionHandle, value: int) -> None:
        """Set the maximum-steps value of a step criterion."""

    @abstractmethod
    def get_time_limit(self, handle: CriterionHandle) -> float:
        """Current maximum physical time of a time criterion."""

    @abstractmethod
    def set_time_limit(self, handle: CriterionHandle, value: float) -> None:
        """Set the maximum physical time of a time criterion."""

    @abstractmethod
    def set_criterion_enabled(self, handle: CriterionHandle, enabled: bool) -> None:
        """Enable or disable a stopping criterion."""

    # ------------------------------------------------------------------
    # Solution
    # ------------------------------------------------------------------

    @abstractmethod
    def run(self) -> None:
        """Advance the solution until an enabled stopping criterion triggers.

        Blocks until the host returns. Raises on any solver failure.
        """

    @abstractmethod
    def current_iteration(self) -> int:
        """Global iteration count seen by the step criterion."""

    @abstractmethod
    def current_physical_time(self) -> float:
        """Current physical time of the solution [s]."""

    @abstractmethod
    def save_snapshot(self, path: str) -> None:
        """Persist the complete simulation state to ``path``."""

    def load_snapshot(self, path: str) -> None:
        """Restore simulation state from ``path``."""
        raise NotImplementedError(f"{type(self).__name__} cannot restore snapshots")

    # ------------------------------------------------------------------
    # Monitoring
    # ------------------------------------------------------------------

    def monitor_value(self, name: str) -> float:
        """Latest value of a residual/monitor."""
        raise KeyError(f"Monitor '{name}' not available")

    def report_value(self, name: str) -> float:
        """Current value of a report (temperatures, fluxes, ...)."""
        raise KeyError(f"Report '{name}' not available")

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"
