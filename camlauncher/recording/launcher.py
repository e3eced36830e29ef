"""
OS-level process launching for recorder workers.

Each child runs in its own session so the whole process group (e.g. cargo
and the recorder it spawns) can be signalled at once.
"""

import os
import signal
import subprocess
from typing import Optional, Protocol

from ..utils.exceptions import SpawnError
from ..utils.logger import get_logger
from .command import InvocationDescriptor


logger = get_logger(__name__)


class ChildProcess(Protocol):
    """Interface the supervisor needs from a running child."""

    @property
    def pid(self) -> int: ...

    def poll(self) -> Optional[int]: ...

    def wait(self, timeout: Optional[float] = None) -> int: ...

    def send_signal(self, signum: int) -> None: ...

    def kill(self) -> None: ...


class ProcessLauncher(Protocol):
    """Starts a child process from an invocation descriptor."""

    def launch(self, descriptor: InvocationDescriptor) -> ChildProcess: ...


class GroupProcess:
    """
    A Popen wrapper that signals the child's whole process group.

    Signals go to the group recorded at launch even after the leader has
    been reaped, so members that outlive it can still be stopped.
    """

    def __init__(self, process: subprocess.Popen):
        self._process = process
        # start_new_session makes the pgid equal to the leader's pid
        self.pgid = process.pid if os.name != 'nt' else None

    @property
    def pid(self) -> int:
        return self._process.pid

    def poll(self) -> Optional[int]:
        return self._process.poll()

    def wait(self, timeout: Optional[float] = None) -> int:
        return self._process.wait(timeout=timeout)

    def send_signal(self, signum: int) -> None:
        if os.name == 'nt':
            if self._process.poll() is None:
                self._process.terminate()
            return

        try:
            os.killpg(self.pgid, signum)
        except (ProcessLookupError, PermissionError):
            # Every member of the group is gone
            pass

    def kill(self) -> None:
        if os.name != 'nt':
            self.send_signal(signal.SIGKILL)
        elif self._process.poll() is None:
            self._process.kill()


class SubprocessLauncher:
    """Launches recorders with :mod:`subprocess`."""

    def launch(self, descriptor: InvocationDescriptor) -> GroupProcess:
        """
        Start the recorder with stdout/stderr appended to its log files.

        Raises:
            SpawnError: If the OS refuses to create the process
        """
        try:
            with open(descriptor.stdout_path, 'ab') as stdout, \
                    open(descriptor.stderr_path, 'ab') as stderr:
                process = subprocess.Popen(
                    descriptor.argv,
                    cwd=str(descriptor.cwd),
                    stdin=subprocess.DEVNULL,
                    stdout=stdout,
                    stderr=stderr,
                    # New session makes the child a process group leader
                    start_new_session=(os.name != 'nt'),
                )
        except FileNotFoundError:
            raise SpawnError(
                f"Recorder executable not found: {descriptor.executable}",
                descriptor.camera_name
            )
        except OSError as e:
            raise SpawnError(
                f"Failed to start recorder: {e}",
                descriptor.camera_name
            )

        logger.debug(f"Spawned pid {process.pid}: {descriptor.display()}")
        return GroupProcess(process)
