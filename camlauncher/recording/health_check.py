"""
Health checking for running recorders.

Flags recorders whose output file has stopped growing.
"""

from typing import Callable, Optional

from ..state.models import WorkerState
from ..utils.config import Config
from ..utils.logger import get_logger
from .worker import WorkerHandle


logger = get_logger(__name__)


class HealthChecker:
    """
    Detects stale recordings.

    A running worker is stale when its output file size has not changed for
    ``stale_threshold`` seconds. A fresh start gets the same grace period.
    Disabled when the threshold is 0.
    """

    def __init__(
        self,
        config: Config,
        on_stale: Optional[Callable[[WorkerHandle, float], None]] = None
    ):
        """
        Initialize health checker.

        Args:
            config: Launcher configuration
            on_stale: Callback receiving the stale worker and its idle seconds
        """
        health_config = config.get_health_config()
        self.stale_threshold = float(health_config.get('stale_threshold', 0))
        self.restart_stale = bool(health_config.get('restart_stale', False))
        self.on_stale = on_stale

        # camera name -> (output path, last size, monotonic time size last changed)
        self._progress: dict[str, tuple] = {}
        self._reported: set[str] = set()

    @property
    def enabled(self) -> bool:
        return self.stale_threshold > 0

    def check(self, handle: WorkerHandle, now: float) -> bool:
        """
        Check one worker.

        Returns:
            True if the worker is stale
        """
        if not self.enabled or handle.state is not WorkerState.RUNNING:
            return False

        name = handle.camera_name
        size = handle.output_size()
        previous = self._progress.get(name)

        if previous is None or previous[0] != handle.output_path or size != previous[1]:
            self._progress[name] = (handle.output_path, size, now)
            self._reported.discard(name)
            return False

        idle = now - previous[2]
        if idle < self.stale_threshold:
            return False

        if name not in self._reported:
            logger.warning(f"[{name}] no new output in {idle:.0f}s ({handle.output_path})")
            self._reported.add(name)
            if self.on_stale:
                self.on_stale(handle, idle)
        return True

    def forget(self, camera_name: str) -> None:
        """Drop tracking state for a worker."""
        self._progress.pop(camera_name, None)
        self._reported.discard(camera_name)
