"""
Run session: the directory and timestamp shared by one supervisor run.
"""

from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Optional

from ..utils.exceptions import RunSessionError
from ..utils.logger import get_logger


logger = get_logger(__name__)

TIMESTAMP_FORMAT = '%Y%m%d_%H%M%S'


def make_timestamp(when: Optional[datetime] = None) -> str:
    """Format a timestamp the way run and file names use it."""
    return (when or datetime.now()).strftime(TIMESTAMP_FORMAT)


@dataclass(frozen=True)
class RunSession:
    """Working directory and timestamp for one run."""
    timestamp: str
    working_directory: Path

    @classmethod
    def create(cls, base_dir: Path, when: Optional[datetime] = None) -> 'RunSession':
        """
        Create ``<base_dir>/<timestamp>`` for a new run.

        A second run in the same second gets a ``_1``, ``_2``... suffix.

        Raises:
            RunSessionError: If the directory cannot be created
        """
        timestamp = make_timestamp(when)
        base_dir = Path(base_dir)

        try:
            base_dir.mkdir(parents=True, exist_ok=True)

            candidate = base_dir / timestamp
            suffix = 0
            while True:
                try:
                    candidate.mkdir()
                    break
                except FileExistsError:
                    suffix += 1
                    candidate = base_dir / f"{timestamp}_{suffix}"

        except OSError as e:
            raise RunSessionError(f"Cannot create run directory under {base_dir}: {e}")

        logger.info(f"Run directory: {candidate}")
        return cls(timestamp=timestamp, working_directory=candidate)

    def paths_for(self, safe_name: str, when: Optional[datetime] = None,
                  attempt: int = 0, extension: str = 'mp4') -> tuple[Path, Path, Path]:
        """
        Build (log, err log, output) paths for one start attempt.

        Args:
            safe_name: Sanitized camera name
            when: Attempt start time
            attempt: Restart number; nonzero values add an ``_r<n>`` suffix
            extension: Recording file extension
        """
        stem = f"{safe_name}_{make_timestamp(when)}"
        if attempt:
            stem += f"_r{attempt}"

        return (
            self.working_directory / f"{stem}.log",
            self.working_directory / f"{stem}.err.log",
            self.working_directory / f"{stem}.{extension}",
        )
