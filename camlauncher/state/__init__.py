"""
State module for the camera launcher.
"""

from .models import WorkerState, ExitKind, WorkerReport, RunReport
from .session import RunSession, make_timestamp

__all__ = [
    'WorkerState',
    'ExitKind',
    'WorkerReport',
    'RunReport',
    'RunSession',
    'make_timestamp',
]
