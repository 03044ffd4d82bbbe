"""
Domain registry: resolution and activation of the coupled continua.
"""

import logging
from dataclasses import dataclass
from typing import Iterator, List, Sequence, Tuple

from ..core.exceptions import ActivationError, ConfigurationError
from ..engine.base import DomainHandle, SolverEngine
from .state import ActivationState

logger = logging.getLogger(__name__)


class DomainRegistry:
    """Resolves named domains against an engine and toggles their activation.

    Parameters
    ----------
    engine : SolverEngine
        Host engine owning the domains.
    """

    def __init__(self, engine: SolverEngine):
        self.engine = engine

    def resolve(self, name: str) -> DomainHandle:
        """Resolve a domain by name.

        Raises
        ------
        ConfigurationError
            If the engine does not know the domain or the lookup fails.
        """
        try:
            handle = self.engine.resolve_domain(name)
        except Exception as e:
            raise ConfigurationError(f"Failed to get continuum '{name}': {e}") from e
        if handle is None:
            raise ConfigurationError(f"Continuum '{name}' not found")
        logger.info("Found continuum: %s", name)
        return handle

    def resolve_domains(self, fluid: str, solids: Sequence[str]) -> "DomainSet":
        """Resolve the fast domain and then every slow domain in order."""
        if not solids:
            raise ConfigurationError("At least one solid domain is required")
        names = [fluid] + list(solids)
        if len(set(names)) != len(names):
            raise ConfigurationError(f"Domain names must be unique: {names}")

        fluid_handle = self.resolve(fluid)
        solid_handles = tuple(self.resolve(name) for name in solids)
        return DomainSet(registry=self, fluid=fluid_handle, solids=solid_handles)

    def set_active(self, handle: DomainHandle, active: bool) -> None:
        """Enable or disable a domain; no-op if it is already in that state."""
        if self.engine.is_domain_active(handle) == active:
            return
        self.engine.set_domain_active(handle, active)

    def is_active(self, handle: DomainHandle) -> bool:
        return self.engine.is_domain_active(handle)


@dataclass(frozen=True)
class DomainSet:
    """The resolved fast domain and the ordered slow domains of a run."""

    registry: DomainRegistry
    fluid: DomainHandle
    solids: Tuple[DomainHandle, ...]

    def __iter__(self) -> Iterator[DomainHandle]:
        yield self.fluid
        yield from self.solids

    @property
    def names(self) -> List[str]:
        return [handle.name for handle in self]

    def activate(self, state: ActivationState) -> None:
        """Enable exactly one side of the coupled problem."""
        fluid_active = state is ActivationState.FAST
        self.registry.set_active(self.fluid, fluid_active)
        for solid in self.solids:
            self.registry.set_active(solid, not fluid_active)

    def verify(self, state: ActivationState) -> None:
        """Check the engine's activation matches ``state`` exactly.

        Raises
        ------
        ActivationError
            If the fluid and solids are not on opposite sides as requested.
        """
        fluid_expected = state is ActivationState.FAST
        mismatched = [
            handle.name
            for handle in self
            if self.registry.is_active(handle)
            != (fluid_expected if handle is self.fluid else not fluid_expected)
        ]
        if mismatched:
            raise ActivationError(
                f"Activation for {state.value} phase not applied to: {mismatched}"
            )
