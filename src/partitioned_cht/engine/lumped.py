"""
Lumped-capacitance thermal engine.

In-process stand-in for a host CFD/CHT session. The fluid is a single bulk
coolant node solved to steady state by under-relaxed iterations; each solid is
a lumped thermal mass exchanging heat with the coolant through a convective
conductance and advanced in time with backward Euler.

Fluid (steady, one iteration)::

    T_f* = (W T_in + sum_i G_i T_i) / (W + sum_i G_i)
    T_f <- T_f + omega (T_f* - T_f)

Solid i (transient)::

    C_i dT_i/dt = P_i - G_i (T_i - T_f)

The engine honours the same stopping-criterion semantics as a host solver:
steady runs are bounded by the global iteration counter, transient runs by
physical time.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence

import numpy as np

from ..core.exceptions import ConfigurationError
from .base import CriterionHandle, CriterionKind, DomainHandle, SolverEngine

logger = logging.getLogger(__name__)


@dataclass
class FluidParams:
    """Coolant parameters.

    Parameters
    ----------
    name : str
        Continuum name.
    inlet_temperature : float
        Coolant inlet temperature [K].
    capacity_rate : float
        Coolant heat capacity rate m_dot * cp [W/K].
    relaxation : float
        Under-relaxation factor of the steady iterations, in (0, 1].
    initial_temperature : float, optional
        Initial bulk temperature [K]. Defaults to the inlet temperature.
    """

    name: str = "Fluid_Volume"
    inlet_temperature: float = 298.15
    capacity_rate: float = 80.0
    relaxation: float = 0.5
    initial_temperature: Optional[float] = None

    def __post_init__(self):
        if self.capacity_rate <= 0:
            raise ConfigurationError(f"capacity_rate must be positive: {self.capacity_rate}")
        if not 0 < self.relaxation <= 1:
            raise ConfigurationError(f"relaxation must be in (0, 1]: {self.relaxation}")


@dataclass
class SolidParams:
    """Lumped solid parameters.

    Parameters
    ----------
    name : str
        Continuum name.
    heat_capacity : float
        Thermal mass m * cp [J/K].
    power : float
        Internal heat generation [W].
    conductance : float
        Convective conductance h * A to the coolant [W/K].
    initial_temperature : float
        Initial temperature [K].
    """

    name: str
    heat_capacity: float
    power: float = 0.0
    conductance: float = 1.0
    initial_temperature: float = 298.15

    def __post_init__(self):
        if self.heat_capacity <= 0:
            raise ConfigurationError(
                f"heat_capacity of '{self.name}' must be positive: {self.heat_capacity}"
            )
        if self.conductance < 0:
            raise ConfigurationError(
                f"conductance of '{self.name}' must be non-negative: {self.conductance}"
            )


# GPU cold-plate stack used when no solids are configured.
DEFAULT_SOLIDS = (
    SolidParams("S_Silicon_Die", heat_capacity=0.5, power=150.0, conductance=0.8),
    SolidParams("S_Silicon_Substrate", heat_capacity=2.0, conductance=0.5),
    SolidParams("S_Vapor_Chamber", heat_capacity=15.0, conductance=5.0),
    SolidParams("S_Cold_Plate", heat_capacity=120.0, conductance=40.0),
    SolidParams("S_PCB", heat_capacity=30.0, power=10.0, conductance=2.0),
    SolidParams("S_Air_Gap", heat_capacity=0.05, conductance=0.05),
)


@dataclass
class _Criterion:
    kind: CriterionKind
    value: float
    enabled: bool = True


class LumpedThermalEngine(SolverEngine):
    """Lumped fluid/solid thermal model behind the :class:`SolverEngine` interface.

    Parameters
    ----------
    fluid : FluidParams
        Coolant parameters.
    solids : sequence of SolidParams
        Solid continua, in order.
    time_step : float
        Internal transient timestep [s]. Solid phases are split into steps of
        at most this size, the last one clamped to the time limit.
    start_time : float
        Initial physical time [s].
    max_steps : int
        Initial value of the step criterion.
    step_criterion, time_criterion : str
        Names under which the two stopping criteria are registered.
    """

    snapshot_extension = ".npz"

    def __init__(
        self,
        fluid: FluidParams,
        solids: Sequence[SolidParams],
        time_step: float = 1e-3,
        start_time: float = 0.0,
        max_steps: int = 0,
        step_criterion: str = "Maximum Steps",
        time_criterion: str = "Maximum Physical Time",
    ):
        if time_step <= 0:
            raise ConfigurationError(f"time_step must be positive: {time_step}")
        names = [fluid.name] + [s.name for s in solids]
        if len(set(names)) != len(names):
            raise ConfigurationError(f"Continuum names must be unique: {names}")

        self.fluid = fluid
        self.time_step = float(time_step)
        self._solid_names: List[str] = [s.name for s in solids]
        self._capacity = np.array([s.heat_capacity for s in solids], dtype=float)
        self._power = np.array([s.power for s in solids], dtype=float)
        self._conductance = np.array([s.conductance for s in solids], dtype=float)
        self._solid_temperature = np.array([s.initial_temperature for s in solids], dtype=float)

        if fluid.initial_temperature is None:
            self._fluid_temperature = float(fluid.inlet_temperature)
        else:
            self._fluid_temperature = float(fluid.initial_temperature)

        self._fluid_active = True
        self._solid_active = np.ones(len(solids), dtype=bool)

        self._time = float(start_time)
        self._iteration = 0
        self._time_step_index = 0
        self._residual: Optional[float] = None

        self._criteria: Dict[str, _Criterion] = {
            step_criterion: _Criterion(CriterionKind.STEPS, float(max_steps)),
            time_criterion: _Criterion(CriterionKind.PHYSICAL_TIME, float(start_time)),
        }

    @classmethod
    def from_params(cls, params: Dict[str, Any]) -> "LumpedThermalEngine":
        """Build the engine from the ``engine.params`` mapping of a YAML config."""
        params = dict(params or {})
        try:
            fluid = FluidParams(**(params.pop("fluid", None) or {}))
            solids_data = params.pop("solids", None)
            if solids_data:
                solids = [SolidParams(**s) for s in solids_data]
            else:
                solids = list(DEFAULT_SOLIDS)
            return cls(fluid, solids, **params)
        except TypeError as e:
            raise ConfigurationError(f"Invalid lumped engine parameters: {e}") from e

    # ------------------------------------------------------------------
    # Domains
    # ------------------------------------------------------------------

    def resolve_domain(self, name: str) -> DomainHandle:
        if name == self.fluid.name:
            return DomainHandle(name=name, ref=None)
        if name in self._solid_names:
            return DomainHandle(name=name, ref=self._solid_names.index(name))
        raise KeyError(f"Continuum '{name}' not found")

    def set_domain_active(self, handle: DomainHandle, active: bool) -> None:
        if handle.ref is None:
            self._fluid_active = bool(active)
        else:
            self._solid_active[handle.ref] = bool(active)

    def is_domain_active(self, handle: DomainHandle) -> bool:
        if handle.ref is None:
            return self._fluid_active
        return bool(self._solid_active[handle.ref])

    # ------------------------------------------------------------------
    # Stopping criteria
    # ------------------------------------------------------------------

    def resolve_stopping_criterion(self, name: str) -> CriterionHandle:
        if name not in self._criteria:
            raise KeyError(f"Stopping criterion '{name}' not found")
        return CriterionHandle(name=name, kind=self._criteria[name].kind)

    def _criterion(self, handle: CriterionHandle, kind: CriterionKind) -> _Criterion:
        criterion = self._criteria[handle.name]
        if criterion.kind is not kind:
            raise TypeError(f"Stopping criterion '{handle.name}' is not a {kind.value} criterion")
        return criterion

    def get_step_limit(self, handle: CriterionHandle) -> int:
        return int(self._criterion(handle, CriterionKind.STEPS).value)

    def set_step_limit(self, handle: CriterionHandle, value: int) -> None:
        self._criterion(handle, CriterionKind.STEPS).value = float(value)

    def get_time_limit(self, handle: CriterionHandle) -> float:
        return self._criterion(handle, CriterionKind.PHYSICAL_TIME).value

    def set_time_limit(self, handle: CriterionHandle, value: float) -> None:
        self._criterion(handle, CriterionKind.PHYSICAL_TIME).value = float(value)

    def set_criterion_enabled(self, handle: CriterionHandle, enabled: bool) -> None:
        self._criteria[handle.name].enabled = bool(enabled)

    # ------------------------------------------------------------------
    # Solution
    # ------------------------------------------------------------------

    def run(self) -> None:
        solids_active = bool(self._solid_active.any())
        if not self._fluid_active and not solids_active:
            raise RuntimeError("No active continua")

        enabled = [c for c in self._criteria.values() if c.enabled]
        if not enabled:
            raise RuntimeError("No enabled stopping criterion")
        has_step_limit = any(c.kind is CriterionKind.STEPS for c in enabled)
        has_time_limit = any(c.kind is CriterionKind.PHYSICAL_TIME for c in enabled)

        transient = solids_active
        if not transient and not has_step_limit:
            raise RuntimeError("Steady run cannot reach a physical time limit")
        if transient and not self._fluid_active and not has_time_limit:
            raise RuntimeError("Transient solid run has no physical time limit")

        n_steps = 0
        while not self._stop_requested():
            if transient:
                self._advance_time_step()
            else:
                self._iterate_fluid()
            n_steps += 1

        logger.debug(
            "Lumped engine run finished: %d %s, t=%.6f s, iteration=%d",
            n_steps,
            "time steps" if transient else "iterations",
            self._time,
            self._iteration,
        )

    def _time_limit(self) -> float:
        limits = [
            c.value
            for c in self._criteria.values()
            if c.enabled and c.kind is CriterionKind.PHYSICAL_TIME
        ]
        return min(limits) if limits else np.inf

    def _stop_requested(self) -> bool:
        for c in self._criteria.values():
            if not c.enabled:
                continue
            if c.kind is CriterionKind.STEPS and self._iteration >= c.value:
                return True
            if c.kind is CriterionKind.PHYSICAL_TIME and self._time >= c.value - _time_tol(c.value):
                return True
        return False

    def _iterate_fluid(self) -> None:
        w = self.fluid.capacity_rate
        g = self._conductance
        target = (w * self.fluid.inlet_temperature + np.dot(g, self._solid_temperature)) / (
            w + g.sum()
        )
        old = self._fluid_temperature
        new = old + self.fluid.relaxation * (target - old)
        self._fluid_temperature = float(new)
        self._residual = abs(new - old) / max(abs(new), 1.0)
        self._iteration += 1

    def _advance_time_step(self) -> None:
        limit = self._time_limit()
        dt = min(self.time_step, limit - self._time)

        if self._fluid_active:
            self._iterate_fluid()

        mask = self._solid_active
        c = self._capacity[mask]
        g = self._conductance[mask]
        t_old = self._solid_temperature[mask]
        self._solid_temperature[mask] = (
            c * t_old + dt * (self._power[mask] + g * self._fluid_temperature)
        ) / (c + dt * g)

        self._time += dt
        if np.isfinite(limit) and abs(self._time - limit) <= _time_tol(limit):
            self._time = float(limit)
        self._time_step_index += 1

    def current_iteration(self) -> int:
        return self._iteration

    def current_physical_time(self) -> float:
        return self._time

    # ------------------------------------------------------------------
    # Snapshots
    # ------------------------------------------------------------------

    def save_snapshot(self, path: str) -> None:
        names = list(self._criteria)
        np.savez_compressed(
            path,
            time=self._time,
            iteration=self._iteration,
            time_step_index=self._time_step_index,
            fluid_temperature=self._fluid_temperature,
            solid_temperature=self._solid_temperature,
            solid_names=np.array(self._solid_names),
            criterion_names=np.array(names),
            criterion_values=np.array([self._criteria[n].value for n in names]),
        )

    def load_snapshot(self, path: str) -> None:
        with np.load(path) as data:
            names = [str(n) for n in data["solid_names"]]
            if names != self._solid_names:
                raise ValueError(
                    f"Snapshot solids {names} do not match engine solids {self._solid_names}"
                )
            self._time = float(data["time"])
            self._iteration = int(data["iteration"])
            self._time_step_index = int(data["time_step_index"])
            self._fluid_temperature = float(data["fluid_temperature"])
            self._solid_temperature = np.array(data["solid_temperature"], dtype=float)
            for name, value in zip(data["criterion_names"], data["criterion_values"]):
                if str(name) in self._criteria:
                    self._criteria[str(name)].value = float(value)
        logger.info("Restored lumped engine state from %s (t=%.6f s)", path, self._time)

    # ------------------------------------------------------------------
    # Monitoring
    # ------------------------------------------------------------------

    def monitor_value(self, name: str) -> float:
        if name != "Energy":
            raise KeyError(f"Monitor '{name}' not available")
        if self._residual is None:
            raise KeyError("Monitor 'Energy' has no value before the first fluid iteration")
        return self._residual

    def report_value(self, name: str) -> float:
        if name == "Fluid Temperature":
            return self._fluid_temperature
        if name == "Max Solid Temperature":
            return float(self._solid_temperature.max())
        if name == "Total Heat Flux":
            return float(
                np.dot(self._conductance, self._solid_temperature - self._fluid_temperature)
            )
        if name.startswith("Temperature: "):
            solid = name[len("Temperature: "):]
            if solid in self._solid_names:
                return float(self._solid_temperature[self._solid_names.index(solid)])
        raise KeyError(f"Report '{name}' not available")

    @property
    def solid_temperatures(self) -> Dict[str, float]:
        """Current solid temperatures by continuum name [K]."""
        return dict(zip(self._solid_names, self._solid_temperature.tolist()))

    @property
    def fluid_temperature(self) -> float:
        """Current coolant bulk temperature [K]."""
        return self._fluid_temperature

    def __repr__(self) -> str:
        return (
            f"LumpedThermalEngine(fluid={self.fluid.name!r}, "
            f"solids={self._solid_names}, t={self._time})"
        )


def _time_tol(value: float) -> float:
    return 1e-12 * max(1.0, abs(value))
