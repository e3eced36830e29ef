"""
Shared fixtures: a fake process launcher and a manual clock.
"""

import signal
from collections import defaultdict

import pytest

from camlauncher.utils.config import Config
from camlauncher.utils.exceptions import SpawnError


RUN_FOREVER = None
IGNORE_SIGNALS = 'ignore'


class FakeProcess:
    """Child process stand-in driven by a scripted exit code."""

    def __init__(self, pid, exit_code=None, ignore_signals=False):
        self.pid = pid
        self.returncode = None
        self.signals = []
        self._exit_code = exit_code
        self._ignore_signals = ignore_signals

    def poll(self):
        if self.returncode is None and self._exit_code is not None:
            self.returncode = self._exit_code
        return self.returncode

    def wait(self, timeout=None):
        return self.poll()

    def send_signal(self, signum):
        self.signals.append(signum)
        if self.returncode is None and not self._ignore_signals:
            self.returncode = -signum

    def kill(self):
        self.signals.append(signal.SIGKILL)
        if self.returncode is None:
            self.returncode = -signal.SIGKILL

    def exit(self, code):
        """Make a running process terminate on the next poll."""
        self._exit_code = code


class FakeLauncher:
    """
    Launcher returning FakeProcess objects.

    ``script`` maps camera name to a list of per-attempt behaviours:
    an int exit code, RUN_FOREVER, IGNORE_SIGNALS, or an OSError to raise.
    Attempts past the end of the list run forever.
    """

    def __init__(self, script=None):
        self.script = {name: list(steps) for name, steps in (script or {}).items()}
        self.descriptors = []
        self.processes = defaultdict(list)
        self._next_pid = 1000

    def launch(self, descriptor):
        self.descriptors.append(descriptor)
        steps = self.script.get(descriptor.camera_name, [])
        behaviour = steps.pop(0) if steps else RUN_FOREVER

        if isinstance(behaviour, OSError):
            raise SpawnError(f"Failed to start recorder: {behaviour}", descriptor.camera_name)

        self._next_pid += 1
        process = FakeProcess(
            self._next_pid,
            exit_code=None if behaviour in (RUN_FOREVER, IGNORE_SIGNALS) else behaviour,
            ignore_signals=behaviour == IGNORE_SIGNALS,
        )
        self.processes[descriptor.camera_name].append(process)
        return process

    def launch_count(self, camera_name):
        return sum(1 for d in self.descriptors if d.camera_name == camera_name)


class FakeClock:
    """Monotonic clock advanced by hand."""

    def __init__(self, start=0.0):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


def make_config(tmp_path, **supervisor):
    settings = {
        'poll_interval': 0.01,
        'launch_delay': 0,
        'max_restarts': 3,
        'backoff_initial': 2.0,
        'backoff_factor': 2.0,
        'backoff_max': 60.0,
        'shutdown_timeout': 0.2,
    }
    settings.update(supervisor)
    return Config({
        'credentials': {'username': 'retina', 'password': 'testingisfun'},
        'recorder': {
            'command': [
                'recorder', 'mp4', '{output}',
                '--url', '{url}',
                '--username', '{username}',
                '--password', '{password}',
            ],
        },
        'storage': {'base_dir': str(tmp_path / 'runs')},
        'supervisor': settings,
    })


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def config(tmp_path):
    return make_config(tmp_path)
