"""
Utilities module for the camera launcher.
"""

from .config import load_config, Config
from .logger import setup_logging, setup_from_config, get_logger
from .exceptions import (
    LauncherError,
    ConfigError,
    UnsupportedModelError,
    SpawnError,
    WorkerStateError,
    RunSessionError,
)

__all__ = [
    'load_config',
    'Config',
    'setup_logging',
    'setup_from_config',
    'get_logger',
    'LauncherError',
    'ConfigError',
    'UnsupportedModelError',
    'SpawnError',
    'WorkerStateError',
    'RunSessionError',
]
