"""
Recording module for the camera launcher.

Recorder invocation, process launching, worker lifecycle and supervision.
"""

from .command import InvocationDescriptor, RecorderCommand
from .launcher import SubprocessLauncher, GroupProcess
from .worker import WorkerHandle
from .health_check import HealthChecker
from .supervisor import Supervisor, create_supervisor

__all__ = [
    'InvocationDescriptor',
    'RecorderCommand',
    'SubprocessLauncher',
    'GroupProcess',
    'WorkerHandle',
    'HealthChecker',
    'Supervisor',
    'create_supervisor',
]
