"""
Supervisor for the recording workers.

One single-threaded control loop launches a recorder per camera, polls them
without blocking, restarts crashed recorders with exponential backoff and
stops every child on shutdown.
"""

import signal
import threading
import time
from collections import deque
from datetime import datetime
from typing import Callable, Iterable, Optional, Union

from ..cameras.camera_config import CameraConfig, RowError
from ..cameras.url_resolver import URLResolver, create_url_resolver
from ..state.models import ExitKind, RunReport, WorkerReport, WorkerState
from ..state.session import RunSession
from ..utils.config import Config
from ..utils.exceptions import ConfigError, SpawnError, UnsupportedModelError
from ..utils.logger import add_run_log, get_logger, remove_run_log
from .command import RecorderCommand
from .health_check import HealthChecker
from .launcher import ProcessLauncher, SubprocessLauncher
from .worker import WorkerHandle


logger = get_logger(__name__)

REPORT_FILENAME = 'report.json'
RUN_LOG_FILENAME = 'launcher.log'


class Supervisor:
    """
    Launches, monitors and restarts one recorder per camera.

    Usage:
        supervisor = Supervisor(config)
        report = supervisor.run(cameras)

    ``request_stop()`` may be called from a signal handler or another thread
    to end the run; every live child is then stopped before ``run`` returns.
    """

    def __init__(
        self,
        config: Config,
        launcher: Optional[ProcessLauncher] = None,
        resolver: Optional[URLResolver] = None,
        clock: Callable[[], float] = time.monotonic
    ):
        """
        Initialize supervisor.

        Args:
            config: Launcher configuration
            launcher: Process launcher (defaults to subprocess)
            resolver: URL resolver (defaults to one built from config)
            clock: Monotonic time source for scheduling
        """
        self.config = config

        settings = config.get_supervisor_config()
        self.poll_interval = float(settings['poll_interval'])
        self.launch_delay = float(settings['launch_delay'])
        self.max_restarts = int(settings['max_restarts'])
        self.backoff_initial = float(settings['backoff_initial'])
        self.backoff_factor = float(settings['backoff_factor'])
        self.backoff_max = float(settings['backoff_max'])
        self.shutdown_timeout = float(settings['shutdown_timeout'])
        self.terminate_on_shutdown = bool(settings['terminate_on_shutdown'])
        self.stop_signal = getattr(signal, settings['stop_signal'])

        self.base_dir = config.get_base_dir()
        self.extension = config.get('recorder.extension', 'mp4')

        self.launcher = launcher or SubprocessLauncher()
        self.resolver = resolver or create_url_resolver(config)
        self.command = RecorderCommand.from_config(config)
        self.health_checker = HealthChecker(config, on_stale=self._on_stale)

        self._clock = clock
        self._stop_event = threading.Event()

        self.session: Optional[RunSession] = None
        self.handles: list[WorkerHandle] = []
        self._entries: list[Union[WorkerHandle, WorkerReport]] = []
        self._launch_queue: deque[WorkerHandle] = deque()
        self._next_spawn_at = 0.0
        # camera name -> monotonic time a stalled recorder gets SIGKILL
        self._kill_deadlines: dict[str, float] = {}
        self._started_at: Optional[datetime] = None
        self._shut_down = False

    @property
    def stop_requested(self) -> bool:
        return self._stop_event.is_set()

    @property
    def finished(self) -> bool:
        """True when no worker will ever be started again."""
        return not self._launch_queue and all(h.is_terminal for h in self.handles)

    def request_stop(self) -> None:
        """Ask the control loop to stop; safe from signal handlers."""
        self._stop_event.set()

    def backoff_delay(self, restart_count: int) -> float:
        """Delay before restart number ``restart_count + 1``."""
        delay = self.backoff_initial * (self.backoff_factor ** restart_count)
        return min(delay, self.backoff_max)

    def _check_names(self, cameras: list[CameraConfig]) -> None:
        names: set[str] = set()
        safe_names: dict[str, str] = {}

        for camera in cameras:
            if camera.name in names:
                raise ConfigError(f"Duplicate camera name: {camera.name}")
            names.add(camera.name)

            other = safe_names.get(camera.safe_name)
            if other is not None:
                raise ConfigError(
                    f"Camera names {other!r} and {camera.name!r} both map to file prefix {camera.safe_name!r}"
                )
            safe_names[camera.safe_name] = camera.name

    def start(
        self,
        cameras: Iterable[CameraConfig],
        row_errors: Iterable[RowError] = ()
    ) -> None:
        """
        Validate the batch, create the run session and queue every launch.

        Nothing is spawned here; spawning happens in ``step``.

        Raises:
            ConfigError: On duplicate camera names (nothing is started)
            RunSessionError: If the run directory cannot be created
        """
        cameras = list(cameras)
        self._check_names(cameras)

        self.session = RunSession.create(self.base_dir)
        self._started_at = datetime.now()

        for row_error in row_errors:
            self._entries.append(WorkerReport(
                camera_name=row_error.camera_name,
                model='',
                address='',
                error_type='ConfigError',
                error=f"row {row_error.line}: {row_error.message}",
            ))

        for camera in cameras:
            try:
                url = self.resolver.resolve(camera.model, camera.address)
            except (UnsupportedModelError, ConfigError) as e:
                logger.error(f"[{camera.name}] {e}; skipping camera")
                self._entries.append(WorkerReport(
                    camera_name=camera.name,
                    model=camera.model,
                    address=camera.address,
                    error_type=type(e).__name__,
                    error=str(e),
                ))
                continue

            handle = WorkerHandle(
                camera,
                url,
                self.session,
                self.command,
                self.launcher,
                extension=self.extension
            )
            self.handles.append(handle)
            self._entries.append(handle)
            self._launch_queue.append(handle)

        self._next_spawn_at = self._clock()
        logger.info(f"Queued {len(self.handles)} recorder(s) in {self.session.working_directory}")

    def step(self, now: Optional[float] = None) -> None:
        """Run one poll cycle."""
        if now is None:
            now = self._clock()

        for handle in self.handles:
            if handle.poll() is None and not self._kill_if_stalled(handle, now):
                continue

            self._kill_deadlines.pop(handle.camera_name, None)
            self.health_checker.forget(handle.camera_name)
            if handle.exit_kind is ExitKind.CRASH:
                self._apply_restart_policy(handle, now)
            elif handle.exit_kind is ExitKind.CLEAN:
                logger.info(f"[{handle.camera_name}] recorder finished cleanly; not restarting")

        for handle in self.handles:
            self.health_checker.check(handle, now)
            if handle.force_restart and handle.is_alive:
                self._kill_deadlines.setdefault(handle.camera_name, now + self.shutdown_timeout)

        for handle in self.handles:
            if (handle.state is WorkerState.RESTARTING
                    and handle.restart_due_at is not None
                    and handle.restart_due_at <= now
                    and handle not in self._launch_queue):
                self._launch_queue.append(handle)

        while self._launch_queue and not self.stop_requested and now >= self._next_spawn_at:
            handle = self._launch_queue.popleft()
            self._spawn(handle, now)
            # Stagger spawns so recorders don't contend for shared resources
            self._next_spawn_at = now + self.launch_delay
            if self.launch_delay > 0:
                break

    def _spawn(self, handle: WorkerHandle, now: float) -> None:
        try:
            handle.start()
        except SpawnError as e:
            handle.record_spawn_error(e)
            self._apply_restart_policy(handle, now)

    def _apply_restart_policy(self, handle: WorkerHandle, now: float) -> None:
        if handle.restart_count < self.max_restarts:
            delay = self.backoff_delay(handle.restart_count)
            handle.schedule_restart(now + delay, delay)
        else:
            handle.mark_failed(
                f"gave up after {handle.restart_count} restart(s): {handle.last_error}"
            )

    def _on_stale(self, handle: WorkerHandle, idle: float) -> None:
        if self.health_checker.restart_stale:
            handle.interrupt(self.stop_signal)

    def _kill_if_stalled(self, handle: WorkerHandle, now: float) -> bool:
        """
        SIGKILL an interrupted recorder that outlived ``shutdown_timeout``.

        Returns:
            True if the recorder was killed and reaped
        """
        deadline = self._kill_deadlines.get(handle.camera_name)
        if deadline is None or now < deadline or not handle.is_alive:
            return False

        del self._kill_deadlines[handle.camera_name]
        handle.kill()
        return not handle.is_alive

    def _next_wakeup(self, now: float) -> float:
        wait = self.poll_interval

        if self._launch_queue:
            wait = min(wait, self._next_spawn_at - now)

        for handle in self.handles:
            if handle.state is WorkerState.RESTARTING and handle.restart_due_at is not None:
                wait = min(wait, handle.restart_due_at - now)

        for deadline in self._kill_deadlines.values():
            wait = min(wait, deadline - now)

        return max(wait, 0.0)

    def run(
        self,
        cameras: Iterable[CameraConfig],
        row_errors: Iterable[RowError] = ()
    ) -> RunReport:
        """
        Run every camera until all workers are done or a stop is requested.

        Args:
            cameras: Cameras in launch order
            row_errors: Rows the loader rejected, carried into the report

        Returns:
            RunReport with one entry per camera

        Raises:
            ConfigError: On duplicate camera names (nothing is started)
            RunSessionError: If the run directory cannot be created
        """
        self.start(cameras, row_errors)
        run_log = add_run_log(self.session.working_directory / RUN_LOG_FILENAME)

        try:
            while not self.stop_requested:
                self.step()
                if self.finished:
                    logger.info("All recorders have finished")
                    break
                self._stop_event.wait(self._next_wakeup(self._clock()))
        finally:
            self.shutdown()
            remove_run_log(run_log)

        report = self.report()
        self._write_report(report)
        return report

    def shutdown(self) -> None:
        """
        Stop every live child.

        Children get ``stop_signal`` and up to ``shutdown_timeout`` seconds
        to exit, then SIGKILL. Process groups of recorders that already
        exited get SIGKILL too, so no group member outlives the run. With
        ``terminate_on_shutdown`` disabled children are left running and
        reported as detached.
        """
        if self._shut_down:
            return
        self._shut_down = True
        self._launch_queue.clear()

        live = [h for h in self.handles if h.is_alive]

        if not self.terminate_on_shutdown:
            for handle in live:
                handle.detached = True
                logger.warning(f"[{handle.camera_name}] leaving recorder running as pid {handle.pid}")
            return

        if live:
            self._stop_live(live)

        for handle in self.handles:
            handle.kill_stragglers()

    def _stop_live(self, live: list[WorkerHandle]) -> None:
        logger.info(f"Stopping {len(live)} recorder(s)...")
        for handle in live:
            handle.request_stop(self.stop_signal)

        deadline = time.monotonic() + self.shutdown_timeout
        while True:
            for handle in live:
                handle.poll()
            live = [h for h in live if h.is_alive]

            remaining = deadline - time.monotonic()
            if not live or remaining <= 0:
                break
            time.sleep(min(0.05, remaining))

        for handle in live:
            handle.kill()

        logger.info("All recorders stopped")

    def report(self) -> RunReport:
        """Build the run report from the current worker states."""
        workers = [
            entry if isinstance(entry, WorkerReport) else entry.to_report()
            for entry in self._entries
        ]
        return RunReport(
            working_directory=self.session.working_directory if self.session else None,
            started_at=self._started_at or datetime.now(),
            finished_at=datetime.now(),
            stop_requested=self.stop_requested,
            workers=workers,
        )

    def _write_report(self, report: RunReport) -> None:
        if self.session is None:
            return

        path = self.session.working_directory / REPORT_FILENAME
        try:
            report.write(path)
            logger.info(f"Run report written to {path}")
        except OSError as e:
            logger.error(f"Failed to write run report {path}: {e}")


def create_supervisor(
    config: Config,
    launcher: Optional[ProcessLauncher] = None
) -> Supervisor:
    """
    Factory function to create a supervisor.

    Args:
        config: Launcher configuration
        launcher: Optional process launcher override

    Returns:
        Supervisor instance
    """
    return Supervisor(config, launcher=launcher)
