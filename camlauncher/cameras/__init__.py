"""
Cameras module for the camera launcher.

Camera list loading and per-vendor URL resolution.
"""

from .camera_config import (
    CameraConfig,
    RowError,
    sanitize_name,
    parse_camera_rows,
    load_cameras_file,
    cameras_from_records,
    load_cameras,
)
from .url_resolver import URLResolver, ModelRule, create_url_resolver

__all__ = [
    'CameraConfig',
    'RowError',
    'sanitize_name',
    'parse_camera_rows',
    'load_cameras_file',
    'cameras_from_records',
    'load_cameras',
    'URLResolver',
    'ModelRule',
    'create_url_resolver',
]
