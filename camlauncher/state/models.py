"""
Data models for the camera launcher.

Defines worker states and the run report structures.
"""

import json
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Optional


class WorkerState(Enum):
    """States a recording worker moves through."""

    STARTING = "starting"       # Queued or being spawned
    RUNNING = "running"         # Child process alive
    EXITED = "exited"           # Child terminated, exit code recorded
    FAILED = "failed"           # Restart budget exhausted, terminal
    RESTARTING = "restarting"   # Waiting out the backoff interval


class ExitKind(Enum):
    """How a worker's last attempt ended."""

    CLEAN = "clean"               # Exit code 0, assumed intentional
    CRASH = "crash"               # Nonzero exit
    STOPPED = "stopped"           # Stopped by the supervisor
    SPAWN_ERROR = "spawn_error"   # OS refused to create the process


@dataclass
class WorkerReport:
    """Final outcome for one camera."""

    camera_name: str
    model: str
    address: str
    url: Optional[str] = None

    state: Optional[WorkerState] = None
    exit_code: Optional[int] = None
    exit_kind: Optional[ExitKind] = None
    restart_count: int = 0
    pid: Optional[int] = None
    detached: bool = False

    log_path: Optional[Path] = None
    err_log_path: Optional[Path] = None
    output_path: Optional[Path] = None
    outputs: list[Path] = field(default_factory=list)

    # Exception class name and message for errors attributable to the camera
    error_type: Optional[str] = None
    error: Optional[str] = None

    @property
    def skipped(self) -> bool:
        """True if the camera was never launched."""
        return self.state is None

    @property
    def ok(self) -> bool:
        """True if the camera neither failed nor was skipped."""
        return self.state is not None and self.state is not WorkerState.FAILED

    @property
    def outcome(self) -> str:
        return 'skipped' if self.state is None else self.state.value

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON output."""
        return {
            'camera_name': self.camera_name,
            'model': self.model,
            'address': self.address,
            'url': self.url,
            'state': self.outcome,
            'exit_code': self.exit_code,
            'exit_kind': self.exit_kind.value if self.exit_kind else None,
            'restart_count': self.restart_count,
            'pid': self.pid,
            'detached': self.detached,
            'log_path': str(self.log_path) if self.log_path else None,
            'err_log_path': str(self.err_log_path) if self.err_log_path else None,
            'output_path': str(self.output_path) if self.output_path else None,
            'outputs': [str(p) for p in self.outputs],
            'error_type': self.error_type,
            'error': self.error,
        }


@dataclass
class RunReport:
    """Summary returned by the supervisor when a run ends."""

    working_directory: Optional[Path] = None
    started_at: datetime = field(default_factory=datetime.now)
    finished_at: Optional[datetime] = None
    stop_requested: bool = False
    workers: list[WorkerReport] = field(default_factory=list)

    def get(self, camera_name: str) -> Optional[WorkerReport]:
        """Get the report for a camera by name."""
        for worker in self.workers:
            if worker.camera_name == camera_name:
                return worker
        return None

    @property
    def failed(self) -> list[WorkerReport]:
        return [w for w in self.workers if w.state is WorkerState.FAILED]

    @property
    def skipped(self) -> list[WorkerReport]:
        return [w for w in self.workers if w.skipped]

    @property
    def all_ok(self) -> bool:
        return all(w.ok for w in self.workers)

    def summary_lines(self) -> list[str]:
        """Human readable one-line-per-camera summary."""
        lines = []
        for w in self.workers:
            line = f"{w.camera_name}: {w.outcome}"
            if w.exit_code is not None:
                line += f" (exit {w.exit_code})"
            line += f", restarts={w.restart_count}"
            if w.detached:
                line += f", still running as pid {w.pid}"
            if w.log_path:
                line += f", log={w.log_path}"
            if w.error:
                line += f" [{w.error_type}: {w.error}]"
            lines.append(line)
        return lines

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON output."""
        return {
            'working_directory': str(self.working_directory) if self.working_directory else None,
            'started_at': self.started_at.isoformat(),
            'finished_at': self.finished_at.isoformat() if self.finished_at else None,
            'stop_requested': self.stop_requested,
            'workers': [w.to_dict() for w in self.workers],
        }

    def write(self, path: Path) -> None:
        """Write the report as JSON."""
        with open(path, 'w') as f:
            json.dump(self.to_dict(), f, indent=2)
