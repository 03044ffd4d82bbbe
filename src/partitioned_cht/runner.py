"""
Partitioned CHT Simulation Runner.

This module provides a runner that executes partitioned conjugate heat transfer
runs from YAML configuration files, without requiring any Python code editing.

Example usage:
    from partitioned_cht.runner import CouplingRunner

    runner = CouplingRunner("simulation.yaml")
    summary = runner.run()

Or from command line:
    python -m partitioned_cht.cli.run_cht simulation.yaml
"""

import logging
from pathlib import Path
from typing import Optional, Union

from .core.config import SimulationConfig, StartFrom
from .core.exceptions import ConfigurationError
from .coupling.checkpoint import CheckpointManager
from .coupling.diagnostics import DiagnosticsReporter
from .coupling.domains import DomainRegistry, DomainSet
from .coupling.scheduler import PhaseScheduler
from .coupling.state import RunSummary
from .coupling.stopping import StoppingCriteriaController
from .engine import SolverEngine, create_engine

logger = logging.getLogger(__name__)


class CouplingRunner:
    """
    Runs a partitioned CHT simulation from configuration.

    This class handles:
    - Creating the solver engine (unless one is supplied)
    - Resolving the fluid and solid domains and the stopping criteria
    - Restoring the latest snapshot when ``start_from`` is ``latestTime``
    - Running the phase scheduler
    - Printing the run summary

    Parameters
    ----------
    config : SimulationConfig or str or Path
        Configuration object or path to YAML configuration file.
    engine : SolverEngine, optional
        Engine to drive. If None, one is created from ``config.engine``.
    working_dir : str or Path, optional
        Directory that relative output paths of an in-memory configuration
        resolve against. If None, uses current directory.

    Attributes
    ----------
    config : SimulationConfig
        The validated configuration.
    scheduler : PhaseScheduler
        The scheduler after setup.
    summary : RunSummary
        The result after :meth:`run`.

    Examples
    --------
    >>> runner = CouplingRunner("simulation.yaml")
    >>> summary = runner.run()
    >>> summary.total_solid_steps
    """

    def __init__(
        self,
        config: Union[SimulationConfig, str, Path],
        engine: Optional[SolverEngine] = None,
        working_dir: Optional[Union[str, Path]] = None,
    ):
        if isinstance(config, (str, Path)):
            self.config_path = Path(config)
            self.config = SimulationConfig.from_yaml(config)
        else:
            self.config_path = None
            self.config = config

        self.working_dir = Path(working_dir) if working_dir else Path.cwd()
        self.engine = engine
        self.domains: Optional[DomainSet] = None
        self.scheduler: Optional[PhaseScheduler] = None
        self.summary: Optional[RunSummary] = None

    def run(self) -> RunSummary:
        """
        Execute the complete partitioned run.

        Returns
        -------
        RunSummary
            Final time and counters.

        Raises
        ------
        ConfigurationError
            If a domain or stopping criterion cannot be resolved.
        SolverInvocationError
            If a solver run fails.
        CheckpointError
            If a snapshot cannot be written.
        """
        self._print_header()

        if self.engine is None:
            self.engine = create_engine(self.config.engine)

        print("\nInitializing simulation components...", flush=True)
        registry = DomainRegistry(self.engine)
        self.domains = registry.resolve_domains(self.config.domains.fluid, self.config.domains.solids)
        criteria = StoppingCriteriaController.resolve(self.engine, self.config.stopping_criteria)

        checkpoints = CheckpointManager(
            engine=self.engine,
            output_folder=self._output_folder(),
            save_interval=self.config.coupling.save_interval,
            case_name=self.config.case_name,
            filename_template=self.config.output.filename_template,
            retries=self.config.output.checkpoint_retries,
        )
        restored = False
        if self.config.output.start_from == StartFrom.LATEST_TIME.value:
            restored = self._restore_latest(checkpoints)

        self._validate_config()
        self._print_configuration()

        diagnostics = DiagnosticsReporter.from_config(self.config.diagnostics, append=restored)
        self.scheduler = PhaseScheduler(
            engine=self.engine,
            config=self.config.coupling,
            domains=self.domains,
            criteria=criteria,
            checkpoints=checkpoints,
            diagnostics=diagnostics,
        )

        try:
            self.summary = self.scheduler.run()
        finally:
            diagnostics.close()

        self._print_summary()
        return self.summary

    def _output_folder(self) -> str:
        folder = Path(self.config.output.folder)
        if not folder.is_absolute():
            folder = self.working_dir / folder
        return str(folder)

    def _validate_config(self) -> None:
        """Log configuration warnings before running."""
        warnings = self.config.validate(start_time=self.engine.current_physical_time())
        for warning in warnings:
            logger.warning("Configuration warning: %s", warning)

    def _restore_latest(self, checkpoints: CheckpointManager) -> bool:
        """Load the newest snapshot into the engine. Returns False if there is none."""
        latest = checkpoints.find_latest()
        if latest is None:
            print("  ⚠️  No checkpoints found, starting from current engine state", flush=True)
            return False
        try:
            self.engine.load_snapshot(latest.path)
        except NotImplementedError as e:
            raise ConfigurationError(f"start_from=latestTime not supported: {e}") from e
        print(f"  ✓ Restored from checkpoint at t = {latest.time:.4f} s", flush=True)
        return True

    def _print_header(self) -> None:
        """Print simulation header."""
        print("\n" + "=" * 70)
        print("  PARTITIONED CHT SOLVER")
        print("=" * 70)
        print(f"  Configuration: {self.config_path or 'Provided object'}")
        print(f"  Case: {self.config.case_name}")
        print("=" * 70, flush=True)

    def _print_configuration(self) -> None:
        c = self.config.coupling
        print("\nConfiguration:")
        print(f"  - End time: {c.end_time} s")
        print(f"  - Solid timestep: {c.solid_time_step} s (vs {c.reference_time_step} for fully coupled)")
        print(f"  - Fluid iterations per solve: {c.fluid_iterations}")
        print(f"  - Subcycles per timestep: {c.subcycles}")
        print(f"  - Effective speedup: ~{int(c.solid_time_step / c.reference_time_step)}x")
        print(f"  - Starting from t = {self.engine.current_physical_time()} s", flush=True)

    def _print_summary(self) -> None:
        print("\n" + "=" * 70)
        print("  SIMULATION COMPLETE")
        print("=" * 70)
        print(self.summary)
        print("=" * 70 + "\n", flush=True)


def run(config: SimulationConfig, engine: Optional[SolverEngine] = None) -> RunSummary:
    """
    Run a partitioned CHT simulation.

    Parameters
    ----------
    config : SimulationConfig
        Run configuration.
    engine : SolverEngine, optional
        Engine to drive. If None, one is created from ``config.engine``.

    Returns
    -------
    RunSummary
        Final simulated time, total fluid iterations and total solid steps.
    """
    return CouplingRunner(config, engine=engine).run()


def run_from_yaml(
    yaml_path: Union[str, Path], working_dir: Optional[Union[str, Path]] = None
) -> RunSummary:
    """
    Convenience function to run a partitioned simulation from a YAML file.

    Parameters
    ----------
    yaml_path : str or Path
        Path to the YAML configuration file.
    working_dir : str or Path, optional
        Working directory for the simulation.

    Returns
    -------
    RunSummary
        The run summary.

    Examples
    --------
    >>> from partitioned_cht.runner import run_from_yaml
    >>> summary = run_from_yaml("simulation.yaml")
    """
    runner = CouplingRunner(yaml_path, working_dir=working_dir)
    return runner.run()
