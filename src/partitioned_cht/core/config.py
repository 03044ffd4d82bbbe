"""
Partitioned CHT Configuration Module.

This module provides a YAML-based configuration system for partitioned
conjugate heat transfer runs, so a complete coupled run can be described
without writing Python code.

Example YAML configuration:
    case_name: "Electronics_CHT_partitioned"

    coupling:
      end_time: 10.0
      solid_time_step: 0.002
      fluid_iterations: 30
      subcycles: 2
      save_interval: 0.5

    domains:
      fluid: "Fluid_Volume"
      solids: ["S_Silicon_Die", "S_Cold_Plate"]

    engine:
      type: "lumped"
"""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union

import yaml

from .exceptions import ConfigurationError


class StartFrom(str, Enum):
    """Where a run takes its initial state from."""

    START_TIME = "startTime"
    LATEST_TIME = "latestTime"


class EngineType(str, Enum):
    """Available solver engines."""

    LUMPED = "lumped"


# =============================================================================
# Configuration Data Classes
# =============================================================================


@dataclass(frozen=True)
class CouplingConfig:
    """Time control of the alternating fluid/solid scheme.

    Parameters
    ----------
    end_time : float
        Physical end time of the run [s].
    solid_time_step : float
        Physical time advanced by one solid phase [s].
    fluid_iterations : int
        Steady iterations per fluid phase.
    subcycles : int
        Fluid/solid pairs per major step.
    save_interval : float
        Physical time between checkpoints [s].
    reference_time_step : float
        Timestep a fully coupled transient run would need [s]. Only used for
        the speedup estimate in the run summary.
    """

    end_time: float
    solid_time_step: float
    fluid_iterations: int
    subcycles: int = 1
    save_interval: float = 1.0
    reference_time_step: float = 1e-6

    def __post_init__(self):
        if self.solid_time_step <= 0:
            raise ConfigurationError(f"solid_time_step must be positive: {self.solid_time_step}")
        if self.fluid_iterations <= 0:
            raise ConfigurationError(
                f"fluid_iterations must be positive: {self.fluid_iterations}"
            )
        if self.subcycles < 1:
            raise ConfigurationError(f"subcycles must be at least 1: {self.subcycles}")
        if self.save_interval <= 0:
            raise ConfigurationError(f"save_interval must be positive: {self.save_interval}")
        if self.reference_time_step <= 0:
            raise ConfigurationError(
                f"reference_time_step must be positive: {self.reference_time_step}"
            )

    @property
    def major_step_duration(self) -> float:
        """Nominal physical time covered by one major step."""
        return self.subcycles * self.solid_time_step


@dataclass
class DomainsConfig:
    """Names of the fast (fluid) domain and the ordered slow (solid) domains."""

    fluid: str
    solids: List[str]

    def __post_init__(self):
        if not self.fluid:
            raise ConfigurationError("A fluid domain name is required")
        if not self.solids:
            raise ConfigurationError("At least one solid domain is required")
        names = [self.fluid] + list(self.solids)
        duplicates = sorted({n for n in names if names.count(n) > 1})
        if duplicates:
            raise ConfigurationError(f"Duplicate domain names: {duplicates}")


@dataclass
class StoppingCriteriaConfig:
    """Names of the host stopping criteria driven by the scheduler."""

    physical_time: str = "Maximum Physical Time"
    steps: str = "Maximum Steps"


@dataclass
class OutputConfig:
    """Checkpoint output configuration.

    ``filename_template`` is formatted with ``case`` and ``time``; the engine's
    snapshot extension is appended.
    """

    folder: str = "results"
    filename_template: str = "{case}_t{time:.2f}"
    checkpoint_retries: int = 0
    start_from: str = StartFrom.START_TIME.value

    def __post_init__(self):
        valid = [s.value for s in StartFrom]
        if self.start_from not in valid:
            raise ConfigurationError(f"Invalid start_from: {self.start_from}. Valid: {valid}")
        if self.checkpoint_retries < 0:
            raise ConfigurationError(
                f"checkpoint_retries must be non-negative: {self.checkpoint_retries}"
            )
        try:
            self.filename_template.format(case="case", time=0.0)
        except (KeyError, IndexError, ValueError) as e:
            raise ConfigurationError(
                f"Invalid filename_template '{self.filename_template}': {e}"
            ) from e


@dataclass
class DiagnosticsConfig:
    """Optional monitoring performed after each phase and major step."""

    residual_monitor: Optional[str] = None
    residual_threshold: float = 1e-3
    reports: List[str] = field(default_factory=list)
    history_file: Optional[str] = None
    separator: str = ","


@dataclass
class EngineConfig:
    """Solver engine selection and engine-specific parameters."""

    type: str = EngineType.LUMPED.value
    params: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        valid = [e.value for e in EngineType]
        if self.type not in valid:
            raise ConfigurationError(f"Invalid engine type: {self.type}. Valid: {valid}")


@dataclass
class SimulationConfig:
    """Complete configuration of a partitioned CHT run."""

    coupling: CouplingConfig
    domains: DomainsConfig
    stopping_criteria: StoppingCriteriaConfig = field(default_factory=StoppingCriteriaConfig)
    output: OutputConfig = field(default_factory=OutputConfig)
    diagnostics: DiagnosticsConfig = field(default_factory=DiagnosticsConfig)
    engine: EngineConfig = field(default_factory=EngineConfig)
    case_name: str = "cht_partitioned"

    @classmethod
    def from_yaml(cls, yaml_path: Union[str, Path]) -> "SimulationConfig":
        """Load configuration from a YAML file.

        Parameters
        ----------
        yaml_path : str or Path
            Path to the YAML configuration file.

        Returns
        -------
        SimulationConfig
            Validated configuration object.

        Raises
        ------
        FileNotFoundError
            If the file does not exist.
        ConfigurationError
            If the content is invalid.
        """
        yaml_path = Path(yaml_path)
        if not yaml_path.exists():
            raise FileNotFoundError(f"Configuration file not found: {yaml_path}")

        with open(yaml_path, "r") as f:
            try:
                data = yaml.safe_load(f)
            except yaml.YAMLError as e:
                raise ConfigurationError(f"Invalid YAML in {yaml_path}: {e}") from e

        if not isinstance(data, dict):
            raise ConfigurationError(f"Configuration root must be a mapping: {yaml_path}")

        return cls.from_dict(data, base_path=yaml_path.parent)

    @classmethod
    def from_dict(
        cls, data: Dict[str, Any], base_path: Optional[Path] = None
    ) -> "SimulationConfig":
        """Create configuration from a dictionary.

        Parameters
        ----------
        data : dict
            Configuration dictionary (typically from YAML).
        base_path : Path, optional
            Directory used to resolve relative output paths.
        """
        coupling_data = _require(data, "coupling")
        try:
            coupling_config = CouplingConfig(
                end_time=float(_require(coupling_data, "end_time", "coupling")),
                solid_time_step=float(_require(coupling_data, "solid_time_step", "coupling")),
                fluid_iterations=int(_require(coupling_data, "fluid_iterations", "coupling")),
                subcycles=int(coupling_data.get("subcycles", 1)),
                save_interval=float(coupling_data.get("save_interval", 1.0)),
                reference_time_step=float(coupling_data.get("reference_time_step", 1e-6)),
            )
        except ConfigurationError:
            raise
        except (TypeError, ValueError) as e:
            raise ConfigurationError(f"Invalid coupling configuration: {e}") from e

        domains_data = _require(data, "domains")
        solids = domains_data.get("solids", [])
        if isinstance(solids, str):
            solids = [solids]
        if not isinstance(solids, (list, tuple)):
            raise ConfigurationError(
                f"Invalid domains configuration: solids must be a name or a list, got {solids!r}"
            )
        domains_config = DomainsConfig(fluid=domains_data.get("fluid"), solids=list(solids))

        criteria_data = data.get("stopping_criteria") or {}
        criteria_config = StoppingCriteriaConfig(
            physical_time=criteria_data.get("physical_time", "Maximum Physical Time"),
            steps=criteria_data.get("steps", "Maximum Steps"),
        )

        output_data = data.get("output") or {}
        try:
            folder = output_data.get("folder", "results")
            if base_path and not Path(folder).is_absolute():
                folder = str(base_path / folder)
            output_config = OutputConfig(
                folder=folder,
                filename_template=output_data.get("filename_template", "{case}_t{time:.2f}"),
                checkpoint_retries=int(output_data.get("checkpoint_retries", 0)),
                start_from=output_data.get("start_from", StartFrom.START_TIME.value),
            )
        except ConfigurationError:
            raise
        except (TypeError, ValueError) as e:
            raise ConfigurationError(f"Invalid output configuration: {e}") from e

        diag_data = data.get("diagnostics") or {}
        try:
            history_file = diag_data.get("history_file")
            if base_path and history_file and not Path(history_file).is_absolute():
                history_file = str(base_path / history_file)
            reports = diag_data.get("reports") or []
            if isinstance(reports, str):
                reports = [reports]
            diagnostics_config = DiagnosticsConfig(
                residual_monitor=diag_data.get("residual_monitor"),
                residual_threshold=float(diag_data.get("residual_threshold", 1e-3)),
                reports=list(reports),
                history_file=history_file,
                separator=diag_data.get("separator", ","),
            )
        except (TypeError, ValueError) as e:
            raise ConfigurationError(f"Invalid diagnostics configuration: {e}") from e

        engine_data = data.get("engine") or {}
        engine_config = EngineConfig(
            type=engine_data.get("type", EngineType.LUMPED.value),
            params=dict(engine_data.get("params") or {}),
        )

        return cls(
            coupling=coupling_config,
            domains=domains_config,
            stopping_criteria=criteria_config,
            output=output_config,
            diagnostics=diagnostics_config,
            engine=engine_config,
            case_name=data.get("case_name", "cht_partitioned"),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to dictionary for serialization."""
        result = {
            "case_name": self.case_name,
            "coupling": {
                "end_time": self.coupling.end_time,
                "solid_time_step": self.coupling.solid_time_step,
                "fluid_iterations": self.coupling.fluid_iterations,
                "subcycles": self.coupling.subcycles,
                "save_interval": self.coupling.save_interval,
                "reference_time_step": self.coupling.reference_time_step,
            },
            "domains": {
                "fluid": self.domains.fluid,
                "solids": list(self.domains.solids),
            },
            "stopping_criteria": {
                "physical_time": self.stopping_criteria.physical_time,
                "steps": self.stopping_criteria.steps,
            },
            "output": {
                "folder": self.output.folder,
                "filename_template": self.output.filename_template,
                "checkpoint_retries": self.output.checkpoint_retries,
                "start_from": self.output.start_from,
            },
            "engine": {
                "type": self.engine.type,
            },
        }

        if self.engine.params:
            result["engine"]["params"] = self.engine.params

        diagnostics: Dict[str, Any] = {}
        if self.diagnostics.residual_monitor:
            diagnostics["residual_monitor"] = self.diagnostics.residual_monitor
            diagnostics["residual_threshold"] = self.diagnostics.residual_threshold
        if self.diagnostics.reports:
            diagnostics["reports"] = list(self.diagnostics.reports)
        if self.diagnostics.history_file:
            diagnostics["history_file"] = self.diagnostics.history_file
            diagnostics["separator"] = self.diagnostics.separator
        if diagnostics:
            result["diagnostics"] = diagnostics

        return result

    def save_yaml(self, yaml_path: Union[str, Path]) -> None:
        """Save configuration to YAML file.

        Parameters
        ----------
        yaml_path : str or Path
            Path to the output YAML file.
        """
        with open(yaml_path, "w") as f:
            yaml.dump(self.to_dict(), f, default_flow_style=False, sort_keys=False)

    def validate(self, start_time: float = 0.0) -> List[str]:
        """Validate the complete configuration.

        Parameters
        ----------
        start_time : float
            Expected physical time at which the run starts.

        Returns
        -------
        list of str
            List of validation warnings (empty if all OK).
        """
        warnings = []

        if self.coupling.end_time <= start_time:
            warnings.append(
                f"end_time ({self.coupling.end_time}) is not after the start time "
                f"({start_time}); no major step will run"
            )

        if self.coupling.save_interval < self.coupling.major_step_duration:
            warnings.append(
                f"save_interval ({self.coupling.save_interval}) is shorter than one major "
                f"step ({self.coupling.major_step_duration}); checkpoints will lag the save grid"
            )

        # Continua defined by the engine but never driven by the scheduler stay
        # in whatever activation state they had.
        defined = set(_engine_continua(self.engine.params))
        if defined:
            unused = sorted(defined - {self.domains.fluid} - set(self.domains.solids))
            if unused:
                warnings.append(f"Engine continua not referenced in domains: {unused}")

        return warnings

    def __str__(self) -> str:
        """Human-readable string representation."""
        c = self.coupling
        lines = [
            "Partitioned CHT Configuration",
            "=" * 40,
            f"Case: {self.case_name}",
            f"End time: {c.end_time} s",
            f"Solid timestep: {c.solid_time_step} s (vs {c.reference_time_step} for fully coupled)",
            f"Fluid iterations per solve: {c.fluid_iterations}",
            f"Subcycles per major step: {c.subcycles}",
            f"Save interval: {c.save_interval} s",
            f"Fluid domain: {self.domains.fluid}",
            f"Solid domains: {len(self.domains.solids)}",
        ]
        for name in self.domains.solids:
            lines.append(f"  - {name}")
        lines.append(f"Engine: {self.engine.type}")
        lines.append(f"Output: {self.output.folder} ({self.output.start_from})")
        return "\n".join(lines)


def _require(data: Dict[str, Any], key: str, section: Optional[str] = None) -> Any:
    """Return ``data[key]`` or raise a configuration error naming the section."""
    if not isinstance(data, dict) or data.get(key) is None:
        where = f"{section}.{key}" if section else key
        raise ConfigurationError(f"Missing required configuration key: '{where}'")
    return data[key]


def _engine_continua(params: Dict[str, Any]) -> Tuple[str, ...]:
    names = []
    fluid = params.get("fluid")
    if isinstance(fluid, dict) and fluid.get("name"):
        names.append(fluid["name"])
    for solid in params.get("solids") or []:
        if isinstance(solid, dict) and solid.get("name"):
            names.append(solid["name"])
    return tuple(names)
