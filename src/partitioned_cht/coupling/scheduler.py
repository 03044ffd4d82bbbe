"""
Partitioned alternating fluid/solid phase scheduler.

The fluid converges in a few steady iterations while the solids respond on a
thermal timescale orders of magnitude longer. Instead of advancing both at the
fluid's stable timestep, the scheduler alternates:

- Fluid phase: steady iterations with frozen solid temperatures.
- Solid phase: transient conduction over one solid timestep with the heat
  fluxes of the freshly converged fluid.

``subcycles`` fluid/solid pairs form one major step. After each major step the
scheduler checks the save grid and runs diagnostics. The run ends when the
physical time read back from the engine reaches the end time.
"""

import logging
from typing import Optional

from ..core.config import CouplingConfig
from ..core.exceptions import SolverInvocationError
from ..engine.base import SolverEngine
from .checkpoint import CheckpointManager
from .diagnostics import DiagnosticsContext, DiagnosticsReporter
from .domains import DomainSet
from .state import ActivationState, ProgressCounters, RunSummary, TimeState, time_reached
from .stopping import StoppingCriteriaController

logger = logging.getLogger(__name__)


class PhaseScheduler:
    """
    Drives the alternating fluid/solid solution of a coupled run.

    The scheduler is the only writer of the activation state, the time state
    and the progress counters while :meth:`run` executes.

    Parameters
    ----------
    engine : SolverEngine
        Host engine performing the solves.
    config : CouplingConfig
        Time control parameters.
    domains : DomainSet
        Resolved fluid and solid domains.
    criteria : StoppingCriteriaController
        Controller for the host stopping criteria.
    checkpoints : CheckpointManager
        Snapshot writer for the save grid.
    diagnostics : DiagnosticsReporter, optional
        Best-effort monitoring hooks.
    """

    def __init__(
        self,
        engine: SolverEngine,
        config: CouplingConfig,
        domains: DomainSet,
        criteria: StoppingCriteriaController,
        checkpoints: CheckpointManager,
        diagnostics: Optional[DiagnosticsReporter] = None,
    ):
        self.engine = engine
        self.config = config
        self.domains = domains
        self.criteria = criteria
        self.checkpoints = checkpoints
        self.diagnostics = diagnostics or DiagnosticsReporter()

        self.progress = ProgressCounters()
        self.time: Optional[TimeState] = None
        self.activation: Optional[ActivationState] = None

    def run(self) -> RunSummary:
        """
        Run major steps until the end time is reached.

        Returns
        -------
        RunSummary
            Final time, counters and written checkpoints.

        Raises
        ------
        SolverInvocationError
            If a solver run fails or physical time does not advance.
        CheckpointError
            If a snapshot cannot be written.
        """
        cfg = self.config
        self.time = TimeState.start(self.engine.current_physical_time(), cfg.save_interval)

        logger.info(
            "Starting partitioned CHT solution: t = %.4f -> %.4f s",
            self.time.initial_time,
            cfg.end_time,
        )

        while not time_reached(self.time.current_time, cfg.end_time, cfg.solid_time_step):
            self._run_major_step()

        return RunSummary(
            initial_time=self.time.initial_time,
            final_time=self.time.current_time,
            total_fluid_iterations=self.progress.total_fluid_iterations,
            total_solid_steps=self.progress.total_solid_steps,
            major_steps=self.time.major_step,
            solid_time_step=cfg.solid_time_step,
            reference_time_step=cfg.reference_time_step,
            checkpoints=list(self.checkpoints.saved),
        )

    def _run_major_step(self) -> None:
        cfg = self.config
        ts = self.time
        ts.major_step += 1
        step_start = ts.current_time
        ts.target_time = min(step_start + cfg.major_step_duration, cfg.end_time)

        logger.info(
            "--- Major Step %d: t = %.4f -> %.4f s ---", ts.major_step, step_start, ts.target_time
        )

        for subcycle in range(1, cfg.subcycles + 1):
            self._run_fluid_phase(subcycle)
            self._run_solid_phase(subcycle)
            if time_reached(ts.current_time, cfg.end_time, cfg.solid_time_step):
                break

        if self.checkpoints.is_due(ts, cfg.end_time, cfg.solid_time_step):
            self.checkpoints.save(ts.current_time)
            ts.advance_save_grid(cfg.save_interval)

        self.diagnostics.on_major_step(
            DiagnosticsContext(engine=self.engine, time=ts, progress=self.progress)
        )

    def _run_fluid_phase(self, subcycle: int) -> None:
        """Converge the flow field with frozen solid temperatures."""
        n_iter = self.config.fluid_iterations
        logger.info("  [Fluid %d] Converging flow field (%d iterations)...", subcycle, n_iter)

        self._activate(ActivationState.FAST)
        self.criteria.use_step_limit()
        budget = self.criteria.raise_step_budget(n_iter)
        headroom = self.criteria.step_headroom()
        if headroom < n_iter:
            logger.warning(
                "  [Fluid %d] Step budget %d leaves only %d of %d iterations; "
                "the engine counted steps outside fluid phases",
                subcycle,
                budget,
                max(headroom, 0),
                n_iter,
            )

        self._invoke("fluid", subcycle)
        self.progress.record_fluid_phase(n_iter)

        self.diagnostics.on_fluid_converged(
            DiagnosticsContext(
                engine=self.engine, time=self.time, progress=self.progress, subcycle=subcycle
            )
        )

    def _run_solid_phase(self, subcycle: int) -> None:
        """Advance the solids by one timestep with the converged heat fluxes."""
        ts = self.time
        start = ts.current_time
        target = min(start + self.config.solid_time_step, self.config.end_time)
        logger.info(
            "  [Solid %d] Advancing thermal solution: %.4f -> %.4f s", subcycle, start, target
        )

        self._activate(ActivationState.SLOW)
        self.criteria.use_time_limit()
        self.criteria.set_time_limit(target)

        self._invoke("solid", subcycle)

        # The engine may clamp or round the step; its time is authoritative.
        reached = self.engine.current_physical_time()
        if reached <= start:
            raise SolverInvocationError(
                f"Solid phase {subcycle} of major step {ts.major_step} did not advance "
                f"physical time (t = {start:.6f} s -> {reached:.6f} s)"
            )
        ts.current_time = reached
        self.progress.record_solid_phase()

    def _activate(self, state: ActivationState) -> None:
        self.domains.activate(state)
        self.domains.verify(state)
        self.activation = state

    def _invoke(self, phase: str, subcycle: int) -> None:
        try:
            self.engine.run()
        except Exception as e:
            raise SolverInvocationError(
                f"{phase.capitalize()} phase {subcycle} of major step "
                f"{self.time.major_step} failed: {e}"
            ) from e
