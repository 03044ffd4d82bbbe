"""
Best-effort diagnostics for partitioned runs.

Hooks inspect convergence indicators after each fluid phase and report
temperatures or heat fluxes after each major step. A failing hook is logged and
skipped; it can never abort a numerically successful run.
"""

import logging
import math
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Callable, Dict, List, Optional, Sequence, TextIO

from ..core.config import DiagnosticsConfig
from ..core.exceptions import DiagnosticsError
from ..engine.base import SolverEngine
from .state import ProgressCounters, TimeState

logger = logging.getLogger(__name__)


@dataclass
class DiagnosticsContext:
    """Snapshot of the run passed to diagnostics hooks."""

    engine: SolverEngine
    time: TimeState
    progress: ProgressCounters
    subcycle: Optional[int] = None


Hook = Callable[[DiagnosticsContext], None]


class DiagnosticsReporter:
    """Runs diagnostics hooks and contains their failures.

    Parameters
    ----------
    fluid_hooks : sequence of callables
        Called after every fluid phase.
    step_hooks : sequence of callables
        Called after every major step.
    """

    def __init__(self, fluid_hooks: Sequence[Hook] = (), step_hooks: Sequence[Hook] = ()):
        self.fluid_hooks: List[Hook] = list(fluid_hooks)
        self.step_hooks: List[Hook] = list(step_hooks)
        self.failures = 0

    @classmethod
    def from_config(
        cls, config: DiagnosticsConfig, append: bool = False
    ) -> "DiagnosticsReporter":
        """Build the reporter and its built-in hooks from configuration.

        ``append`` continues an existing history file, for restarted runs.
        """
        reporter = cls()
        if config.residual_monitor:
            reporter.fluid_hooks.append(
                ResidualMonitorHook(config.residual_monitor, config.residual_threshold)
            )
        if config.reports:
            reporter.step_hooks.append(ReportLoggerHook(config.reports))
        if config.history_file:
            reporter.step_hooks.append(
                HistoryWriter(config.history_file, config.reports, config.separator, append=append)
            )
        return reporter

    def on_fluid_converged(self, context: DiagnosticsContext) -> None:
        self._dispatch(self.fluid_hooks, context)

    def on_major_step(self, context: DiagnosticsContext) -> None:
        self._dispatch(self.step_hooks, context)

    def _dispatch(self, hooks: Sequence[Hook], context: DiagnosticsContext) -> None:
        for hook in hooks:
            try:
                hook(context)
            except Exception as e:
                self.failures += 1
                logger.warning("Diagnostics hook %r failed: %s", hook, e)
                logger.debug("Diagnostics hook traceback", exc_info=True)

    def close(self) -> None:
        """Release resources held by hooks."""
        for hook in self.fluid_hooks + self.step_hooks:
            close = getattr(hook, "close", None)
            if close is None:
                continue
            try:
                close()
            except Exception as e:
                logger.warning("Failed to close diagnostics hook %r: %s", hook, e)


class ResidualMonitorHook:
    """Warns when a residual monitor is above threshold after a fluid phase."""

    def __init__(self, monitor: str, threshold: float = 1e-3):
        self.monitor = monitor
        self.threshold = threshold
        self.last_value: Optional[float] = None

    def __call__(self, context: DiagnosticsContext) -> None:
        try:
            value = float(context.engine.monitor_value(self.monitor))
        except KeyError as e:
            raise DiagnosticsError(f"Residual monitor unavailable: {e}") from e
        self.last_value = value
        if math.isnan(value) or value > self.threshold:
            logger.warning(
                "  [Fluid %s] May need more iterations (%s residual: %.3e)",
                context.subcycle,
                self.monitor,
                value,
            )

    def __repr__(self) -> str:
        return f"ResidualMonitorHook({self.monitor!r}, threshold={self.threshold})"


class ReportLoggerHook:
    """Logs engine report values after each major step."""

    def __init__(self, reports: Sequence[str]):
        self.reports = list(reports)

    def __call__(self, context: DiagnosticsContext) -> None:
        missing = []
        for name in self.reports:
            try:
                value = context.engine.report_value(name)
            except KeyError:
                missing.append(name)
                continue
            logger.info("  %s at t=%.4f: %.6g", name, context.time.current_time, value)
        if missing:
            raise DiagnosticsError(f"Reports not available: {missing}")

    def __repr__(self) -> str:
        return f"ReportLoggerHook({self.reports})"


class HistoryWriter:
    """
    Writes one CSV row per major step.

    The file starts with a commented header describing the run, followed by the
    column names. The file is opened lazily on the first row.

    Parameters
    ----------
    path : str
        Output file. Parent directories are created.
    reports : sequence of str
        Engine reports written as extra columns.
    separator : str
        Column separator.
    append : bool
        Continue an existing history (restarted runs) instead of replacing
        it. The header is only written to a missing or empty file.
    """

    def __init__(
        self,
        path: str,
        reports: Sequence[str] = (),
        separator: str = ",",
        append: bool = False,
    ):
        self.path = path
        self.reports = list(reports)
        self.separator = separator
        self.append = append
        self.handle: Optional[TextIO] = None

    def _open(self) -> TextIO:
        log_path = Path(self.path)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        if self.append and log_path.exists() and log_path.stat().st_size > 0:
            logger.info("Appending to history file %s", log_path)
            return open(log_path, "a", encoding="utf-8")
        handle = open(log_path, "w", encoding="utf-8")
        handle.write("# Partitioned CHT history\n")
        handle.write(f"# Generated: {datetime.now().isoformat()}\n")
        columns = ["major_step", "time", "fluid_iterations", "solid_steps"] + self.reports
        handle.write(self.separator.join(columns) + "\n")
        return handle

    def __call__(self, context: DiagnosticsContext) -> None:
        if self.handle is None:
            self.handle = self._open()

        row: Dict[str, str] = {
            "major_step": str(context.time.major_step),
            "time": f"{context.time.current_time:.6f}",
            "fluid_iterations": str(context.progress.total_fluid_iterations),
            "solid_steps": str(context.progress.total_solid_steps),
        }
        for name in self.reports:
            try:
                row[name] = f"{context.engine.report_value(name):.6e}"
            except KeyError:
                row[name] = "nan"
        self.handle.write(self.separator.join(row.values()) + "\n")
        self.handle.flush()

    def close(self) -> None:
        if self.handle is not None:
            self.handle.close()
            self.handle = None

    def __repr__(self) -> str:
        return f"HistoryWriter({self.path!r})"
