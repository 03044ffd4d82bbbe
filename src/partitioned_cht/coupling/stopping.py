"""
Stopping-criterion controller.

The host solver stops a run when either of two criteria triggers: a cumulative
step ceiling or a physical-time ceiling. Fluid phases are bounded by the step
ceiling, solid phases by the time ceiling. Only the criterion of the current
phase is enabled, so the limit left over from the other phase cannot cut a
phase short.
"""

import logging

from ..core.config import StoppingCriteriaConfig
from ..core.exceptions import ConfigurationError
from ..engine.base import CriterionHandle, CriterionKind, SolverEngine

logger = logging.getLogger(__name__)


class StoppingCriteriaController:
    """Drives the host's step and physical-time stopping criteria.

    Parameters
    ----------
    engine : SolverEngine
        Host engine.
    time_criterion : CriterionHandle
        Resolved physical-time criterion.
    step_criterion : CriterionHandle
        Resolved step criterion.
    """

    def __init__(
        self,
        engine: SolverEngine,
        time_criterion: CriterionHandle,
        step_criterion: CriterionHandle,
    ):
        self.engine = engine
        self.time_criterion = time_criterion
        self.step_criterion = step_criterion

    @classmethod
    def resolve(
        cls, engine: SolverEngine, config: StoppingCriteriaConfig
    ) -> "StoppingCriteriaController":
        """Look up both criteria by name.

        Raises
        ------
        ConfigurationError
            If a criterion is missing or has the wrong kind.
        """
        time_criterion = cls._resolve_one(engine, config.physical_time, CriterionKind.PHYSICAL_TIME)
        step_criterion = cls._resolve_one(engine, config.steps, CriterionKind.STEPS)
        return cls(engine, time_criterion, step_criterion)

    @staticmethod
    def _resolve_one(engine: SolverEngine, name: str, kind: CriterionKind) -> CriterionHandle:
        try:
            handle = engine.resolve_stopping_criterion(name)
        except Exception as e:
            raise ConfigurationError(f"Failed to get stopping criterion '{name}': {e}") from e
        if handle.kind is not kind:
            raise ConfigurationError(
                f"Stopping criterion '{name}' is a {handle.kind.value} criterion, "
                f"expected {kind.value}"
            )
        return handle

    @property
    def step_budget(self) -> int:
        """Current value of the cumulative step ceiling."""
        return self.engine.get_step_limit(self.step_criterion)

    @property
    def time_limit(self) -> float:
        """Current physical-time ceiling [s]."""
        return self.engine.get_time_limit(self.time_criterion)

    def raise_step_budget(self, by_amount: int) -> int:
        """Raise the step ceiling by ``by_amount`` relative to its current value.

        The host counts steps over the whole run, so the ceiling is never reset.

        Returns
        -------
        int
            The new step ceiling.
        """
        if by_amount <= 0:
            raise ValueError(f"by_amount must be positive: {by_amount}")
        new_budget = self.step_budget + by_amount
        self.engine.set_step_limit(self.step_criterion, new_budget)
        return new_budget

    def set_time_limit(self, to: float) -> None:
        """Set the physical-time ceiling to an absolute value."""
        self.engine.set_time_limit(self.time_criterion, to)

    def use_step_limit(self) -> None:
        """Bound the next run by the step ceiling only."""
        self.engine.set_criterion_enabled(self.time_criterion, False)
        self.engine.set_criterion_enabled(self.step_criterion, True)

    def use_time_limit(self) -> None:
        """Bound the next run by the physical-time ceiling only."""
        self.engine.set_criterion_enabled(self.step_criterion, False)
        self.engine.set_criterion_enabled(self.time_criterion, True)

    def step_headroom(self) -> int:
        """Steps left before the step ceiling triggers."""
        return self.step_budget - self.engine.current_iteration()
