"""
Camera Launcher

Supervised multi-camera recording launcher: one external recorder process
per IP camera, restarted with backoff when it crashes.
"""

__version__ = "1.0.0"

from .utils.config import load_config, Config
from .utils.logger import setup_logging, get_logger
from .cameras.camera_config import CameraConfig, parse_camera_rows, load_cameras
from .cameras.url_resolver import URLResolver
from .recording.supervisor import Supervisor
from .state.models import RunReport, WorkerState

__all__ = [
    'load_config',
    'Config',
    'setup_logging',
    'get_logger',
    'CameraConfig',
    'parse_camera_rows',
    'load_cameras',
    'URLResolver',
    'Supervisor',
    'RunReport',
    'WorkerState',
]
