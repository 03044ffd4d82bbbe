"""
Checkpoint Manager for partitioned runs.

Writes full engine snapshots on a fixed physical-time grid. Files are named
from the simulated time at fixed precision, e.g.
``Electronics_CHT_partitioned_t1.50.sim``, so every save point produces one
distinct artifact and a restart can locate the newest one.

Save failures are fatal: a silently lost checkpoint defeats periodic saving in
long unattended runs. With ``retries > 0`` a failed write is retried before the
error is raised.
"""

import logging
import os
import re
import string
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

from ..core.exceptions import CheckpointError
from ..engine.base import SolverEngine
from .state import TimeState, time_reached

logger = logging.getLogger(__name__)


@dataclass
class CheckpointInfo:
    """Information about a checkpoint on disk."""

    time: float
    path: str


class CheckpointManager:
    """
    Decides when the save grid is crossed and writes engine snapshots.

    Parameters
    ----------
    engine : SolverEngine
        Engine whose state is persisted.
    output_folder : str
        Directory for snapshot files.
    save_interval : float
        Physical time between save points [s].
    case_name : str
        Value substituted for ``{case}`` in the filename template.
    filename_template : str
        Name template formatted with ``case`` and ``time``. The engine's
        snapshot extension is appended.
    retries : int
        Extra write attempts before a failure is raised. Default: 0.
    """

    def __init__(
        self,
        engine: SolverEngine,
        output_folder: str,
        save_interval: float,
        case_name: str = "cht_partitioned",
        filename_template: str = "{case}_t{time:.2f}",
        retries: int = 0,
    ):
        self.engine = engine
        self.output_folder = output_folder
        self.save_interval = save_interval
        self.case_name = case_name
        self.filename_template = filename_template
        self.retries = retries
        self.saved: List[Path] = []

    def is_due(
        self, time_state: TimeState, end_time: float, step: Optional[float] = None
    ) -> bool:
        """Return True if the current time crossed the save grid or the end time.

        ``step`` caps the comparison tolerance, see :func:`time_reached`.
        """
        t = time_state.current_time
        return time_reached(t, time_state.next_save_time, step) or time_reached(t, end_time, step)

    def snapshot_path(self, at_time: float) -> Path:
        """Deterministic snapshot path for ``at_time``."""
        name = self.filename_template.format(case=self.case_name, time=at_time)
        return Path(self.output_folder) / f"{name}{self.engine.snapshot_extension}"

    def save(self, at_time: float) -> Path:
        """
        Write a snapshot of the engine state.

        Parameters
        ----------
        at_time : float
            Simulated time used to name the artifact.

        Returns
        -------
        Path
            Path of the written snapshot.

        Raises
        ------
        CheckpointError
            If the snapshot cannot be written after all attempts.
        """
        path = self.snapshot_path(at_time)
        logger.info("Saving simulation at t = %.4f s -> %s", at_time, path)

        attempts = self.retries + 1
        for attempt in range(1, attempts + 1):
            try:
                os.makedirs(self.output_folder, exist_ok=True)
                self.engine.save_snapshot(str(path))
                break
            except Exception as e:
                if attempt == attempts:
                    raise CheckpointError(
                        f"Failed to save checkpoint at t={at_time:.4f} s to {path}: {e}"
                    ) from e
                logger.warning(
                    "Checkpoint write failed (attempt %d/%d): %s", attempt, attempts, e
                )

        self.saved.append(path)
        return path

    def _name_pattern(self) -> "re.Pattern":
        """Regex matching file names produced by the template; captures the time."""
        parts = []
        for literal, field_name, _spec, _conv in string.Formatter().parse(self.filename_template):
            parts.append(re.escape(literal))
            if field_name == "case":
                parts.append(re.escape(self.case_name))
            elif field_name == "time":
                parts.append(r"(?P<time>-?\d+(?:\.\d+)?(?:[eE][-+]?\d+)?)")
            elif field_name is not None:
                parts.append(".*?")
        parts.append(re.escape(self.engine.snapshot_extension))
        return re.compile("^" + "".join(parts) + "$")

    def find_latest(self) -> Optional[CheckpointInfo]:
        """
        Find the latest snapshot in the output folder.

        Returns
        -------
        CheckpointInfo or None
            The snapshot with the largest time, or None if none found.
        """
        if not os.path.isdir(self.output_folder):
            return None

        pattern = self._name_pattern()
        latest: Optional[CheckpointInfo] = None

        for entry in os.listdir(self.output_folder):
            match = pattern.match(entry)
            if not match or match.groupdict().get("time") is None:
                continue
            t = float(match.group("time"))
            if latest is None or t > latest.time:
                latest = CheckpointInfo(time=t, path=os.path.join(self.output_folder, entry))

        return latest
