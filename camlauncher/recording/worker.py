"""
Recording worker: one external recorder process for one camera.

The handle tracks the child across restarts. The supervisor decides when to
restart or give up; the handle only enforces legal state transitions.
"""

import signal
import subprocess
from datetime import datetime
from pathlib import Path
from typing import Optional

from ..cameras.camera_config import CameraConfig
from ..state.models import ExitKind, WorkerReport, WorkerState
from ..state.session import RunSession, make_timestamp
from ..utils.exceptions import SpawnError, WorkerStateError
from ..utils.logger import get_logger
from .command import InvocationDescriptor, RecorderCommand
from .launcher import ChildProcess, ProcessLauncher


logger = get_logger(__name__)


_TRANSITIONS = {
    WorkerState.STARTING: {WorkerState.RUNNING, WorkerState.RESTARTING, WorkerState.FAILED},
    WorkerState.RUNNING: {WorkerState.EXITED},
    WorkerState.EXITED: {WorkerState.RESTARTING, WorkerState.FAILED},
    WorkerState.RESTARTING: {WorkerState.STARTING, WorkerState.FAILED},
    WorkerState.FAILED: set(),
}


class WorkerHandle:
    """
    Tracks one recorder process and its output files.

    State machine:
        STARTING -> RUNNING        spawn succeeded
        RUNNING -> EXITED(code)    child terminated
        EXITED -> RESTARTING       crash with restart budget left
        RESTARTING -> STARTING     backoff elapsed
        * -> FAILED                budget exhausted (terminal)

    A spawn failure leaves STARTING directly for RESTARTING or FAILED.
    """

    def __init__(
        self,
        camera: CameraConfig,
        url: str,
        session: RunSession,
        command: RecorderCommand,
        launcher: ProcessLauncher,
        extension: str = 'mp4'
    ):
        """
        Initialize worker handle.

        Args:
            camera: Camera this worker records
            url: Resolved stream URL
            session: Run session owning the output directory
            command: Recorder argument template
            launcher: Process launcher used for every attempt
            extension: Recording file extension
        """
        self.camera = camera
        self.url = url
        self.session = session
        self.command = command
        self.launcher = launcher
        self.extension = extension

        self.state = WorkerState.STARTING
        self.exit_code: Optional[int] = None
        self.exit_kind: Optional[ExitKind] = None
        self.restart_count = 0
        self.last_start_time: Optional[datetime] = None
        self.last_error: Optional[str] = None
        self.restart_due_at: Optional[float] = None

        self.log_path: Optional[Path] = None
        self.err_log_path: Optional[Path] = None
        self.output_path: Optional[Path] = None
        self.outputs: list[Path] = []

        self.stop_requested = False
        self.force_restart = False
        self.detached = False

        self._process: Optional[ChildProcess] = None
        # Exited attempts whose process group may still have members
        self._exited: list[ChildProcess] = []

    @property
    def camera_name(self) -> str:
        return self.camera.name

    @property
    def pid(self) -> Optional[int]:
        return self._process.pid if self._process else None

    @property
    def is_alive(self) -> bool:
        """True while the child process has not been reaped."""
        return self.state is WorkerState.RUNNING

    @property
    def is_terminal(self) -> bool:
        """True once the worker will never be started again."""
        return self.state in (WorkerState.EXITED, WorkerState.FAILED)

    def _transition(self, new_state: WorkerState, detail: str = '') -> None:
        if new_state not in _TRANSITIONS[self.state]:
            raise WorkerStateError(
                f"[{self.camera_name}] illegal transition {self.state.value} -> {new_state.value}"
            )

        old_state = self.state
        self.state = new_state
        message = f"[{self.camera_name}] {old_state.value} -> {new_state.value}"
        if detail:
            message += f" ({detail})"

        if new_state is WorkerState.FAILED:
            logger.error(message)
        elif self.exit_kind in (ExitKind.CRASH, ExitKind.SPAWN_ERROR):
            logger.warning(message)
        else:
            logger.info(message)

    def _prepare_files(self, now: datetime) -> None:
        attempt = self.restart_count
        self.log_path, self.err_log_path, self.output_path = self.session.paths_for(
            self.camera.safe_name, when=now, attempt=attempt, extension=self.extension
        )
        self.outputs.append(self.output_path)

        # Marks the attempt even if the recorder never writes a byte
        banner = f"Commencing {self.camera_name} at {make_timestamp(now)}\n"
        for path in (self.log_path, self.err_log_path):
            with open(path, 'w') as f:
                f.write(banner)

    def build_invocation(self) -> InvocationDescriptor:
        """Build the descriptor for the current attempt's paths."""
        return self.command.build(
            camera_name=self.camera_name,
            url=self.url,
            output_path=self.output_path,
            cwd=self.session.working_directory,
            stdout_path=self.log_path,
            stderr_path=self.err_log_path,
        )

    def start(self) -> 'WorkerHandle':
        """
        Spawn the recorder for a new attempt.

        Returns:
            self, now RUNNING

        Raises:
            SpawnError: If the process (or its log files) cannot be created;
                the handle stays STARTING for the supervisor to resolve
        """
        restarting = self.state is WorkerState.RESTARTING
        if not restarting and (self.state is not WorkerState.STARTING or self._process is not None):
            raise WorkerStateError(f"[{self.camera_name}] cannot start from {self.state.value}")

        self.exit_code = None
        self.exit_kind = None
        self.restart_due_at = None
        self.force_restart = False

        if restarting:
            self.restart_count += 1
            self._transition(WorkerState.STARTING, f"restart {self.restart_count}")

        now = datetime.now()
        self.last_start_time = now

        try:
            self._prepare_files(now)
        except OSError as e:
            raise SpawnError(f"Cannot create log files: {e}", self.camera_name)

        descriptor = self.build_invocation()
        logger.info(f"[{self.camera_name}] launching: {descriptor.display()}")

        self._process = self.launcher.launch(descriptor)
        self.last_error = None
        self._transition(WorkerState.RUNNING, f"pid {self._process.pid}")
        return self

    def poll(self) -> Optional[int]:
        """
        Check the child without blocking.

        Returns:
            Exit code if the child terminated during this call, else None
        """
        if self.state is not WorkerState.RUNNING or self._process is None:
            return None

        code = self._process.poll()
        if code is None:
            return None

        self._record_exit(code)
        return code

    def _record_exit(self, code: int, group_killed: bool = False) -> None:
        self.exit_code = code
        if self.stop_requested:
            self.exit_kind = ExitKind.STOPPED
        elif code == 0 and not self.force_restart:
            self.exit_kind = ExitKind.CLEAN
            self.last_error = None
        elif self.force_restart:
            self.exit_kind = ExitKind.CRASH
            self.last_error = f"recorder stalled and was stopped (exit code {code})"
        else:
            self.exit_kind = ExitKind.CRASH
            self.last_error = f"recorder exited with code {code}"

        if not group_killed:
            self._exited.append(self._process)
        self._process = None
        self._transition(WorkerState.EXITED, f"exit code {code}, {self.exit_kind.value}")

    def record_spawn_error(self, error: SpawnError) -> None:
        """Note a failed spawn; the supervisor then applies restart policy."""
        self.exit_kind = ExitKind.SPAWN_ERROR
        self.last_error = str(error)
        logger.error(f"[{self.camera_name}] spawn failed: {error}")

    def schedule_restart(self, due_at: float, delay: float) -> None:
        """Enter RESTARTING until the monotonic time ``due_at``."""
        self.restart_due_at = due_at
        self._transition(
            WorkerState.RESTARTING,
            f"attempt {self.restart_count + 1} in {delay:.1f}s"
        )

    def mark_failed(self, reason: str) -> None:
        """Give up on this worker."""
        self.last_error = reason
        self.restart_due_at = None
        self._transition(WorkerState.FAILED, reason)

    def request_stop(self, signum: int = signal.SIGINT) -> None:
        """Ask the child to stop; it is reaped by a later poll()."""
        self.stop_requested = True
        if self._process is not None:
            logger.info(f"[{self.camera_name}] sending {signal.Signals(signum).name} to pid {self._process.pid}")
            self._process.send_signal(signum)

    def interrupt(self, signum: int = signal.SIGINT) -> None:
        """Stop a stalled child so its exit counts as a crash."""
        if self._process is None:
            return
        self.force_restart = True
        logger.warning(f"[{self.camera_name}] interrupting stalled recorder pid {self._process.pid}")
        self._process.send_signal(signum)

    def kill(self, timeout: float = 5.0) -> None:
        """
        Force-kill the child's process group and reap the child.

        After ``interrupt`` the exit still counts as a crash; otherwise it
        counts as stopped.
        """
        if self._process is None:
            return

        if not self.force_restart:
            self.stop_requested = True
        pid = self._process.pid
        logger.warning(f"[{self.camera_name}] recorder not responding, force killing pid {pid}")
        self._process.kill()

        try:
            code = self._process.wait(timeout=timeout)
        except subprocess.TimeoutExpired:
            logger.error(f"[{self.camera_name}] pid {pid} survived SIGKILL")
            self.detached = True
            return

        self._record_exit(code, group_killed=True)

    def kill_stragglers(self) -> None:
        """SIGKILL the process group of every attempt that has already exited."""
        for process in self._exited:
            process.kill()
        self._exited.clear()

    def output_size(self) -> int:
        """Current size of the recording file in bytes."""
        if self.output_path is None or not self.output_path.exists():
            return 0
        return self.output_path.stat().st_size

    def to_report(self) -> WorkerReport:
        """Snapshot for the run report."""
        return WorkerReport(
            camera_name=self.camera_name,
            model=self.camera.model,
            address=self.camera.address,
            url=self.url,
            state=self.state,
            exit_code=self.exit_code,
            exit_kind=self.exit_kind,
            restart_count=self.restart_count,
            pid=self.pid if self.detached else None,
            detached=self.detached,
            log_path=self.log_path,
            err_log_path=self.err_log_path,
            output_path=self.output_path,
            outputs=list(self.outputs),
            error_type=self._error_type() if self.last_error else None,
            error=self.last_error,
        )

    def _error_type(self) -> Optional[str]:
        if self.exit_kind is ExitKind.SPAWN_ERROR:
            return 'SpawnError'
        if self.exit_kind is ExitKind.CRASH:
            return 'ChildCrash'
        return None
