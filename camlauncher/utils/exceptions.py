"""
Custom exceptions for the camera launcher.
"""


class LauncherError(Exception):
    """Base exception for all launcher errors."""
    pass


class ConfigError(LauncherError):
    """Raised when configuration or a camera row is invalid."""
    pass


class UnsupportedModelError(LauncherError):
    """Raised when no URL rule exists for a camera model."""

    def __init__(self, model: str):
        super().__init__(f"Unknown camera type/model: {model}")
        self.model = model


class SpawnError(LauncherError):
    """Raised when the OS refuses to create a recorder process."""

    def __init__(self, message: str, camera_name: str):
        super().__init__(message)
        self.camera_name = camera_name


class WorkerStateError(LauncherError):
    """Raised on an illegal worker state transition."""
    pass


class RunSessionError(LauncherError):
    """Raised when the run's working directory cannot be created."""
    pass
