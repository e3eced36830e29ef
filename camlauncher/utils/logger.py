"""
Logging setup for the camera launcher.

Console output plus an optional rotating log file for the supervisor itself.
Each run also mirrors the launcher's log into its own directory; recorder
output goes to per-camera files, not here.
"""

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional


# Module-level logger cache
_loggers: dict[str, logging.Logger] = {}
_initialized = False

DEFAULT_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
_log_format = DEFAULT_FORMAT


def setup_logging(
    log_file: Optional[str] = None,
    level: str = 'INFO',
    max_size_mb: int = 10,
    backup_count: int = 5,
    log_format: Optional[str] = None,
    console: bool = True
) -> None:
    """
    Initialize logging configuration.

    Args:
        log_file: Path to log file (None = no file logging)
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        max_size_mb: Maximum log file size in MB before rotation
        backup_count: Number of backup files to keep
        log_format: Log format string
        console: Whether to log to console
    """
    global _initialized, _log_format

    if log_format is None:
        log_format = DEFAULT_FORMAT
    _log_format = log_format

    # Get numeric log level
    numeric_level = getattr(logging, str(level).upper(), logging.INFO)

    # Configure root logger
    root_logger = logging.getLogger()
    root_logger.setLevel(numeric_level)

    # Clear existing handlers
    root_logger.handlers = []

    formatter = logging.Formatter(log_format)

    # Add console handler
    if console:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(numeric_level)
        console_handler.setFormatter(formatter)
        root_logger.addHandler(console_handler)

    # Add file handler
    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = RotatingFileHandler(
            log_path,
            maxBytes=max_size_mb * 1024 * 1024,
            backupCount=backup_count
        )
        file_handler.setLevel(numeric_level)
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)

    _initialized = True


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger for the specified module.

    Args:
        name: Logger name (usually __name__)

    Returns:
        Logger instance
    """
    if name not in _loggers:
        # Initialize with defaults if not already done
        if not _initialized:
            setup_logging()

        _loggers[name] = logging.getLogger(name)

    return _loggers[name]


def add_run_log(path: Path) -> logging.Handler:
    """
    Mirror launcher logging into a run's own log file.

    Args:
        path: Log file inside the run directory

    Returns:
        The attached handler, to pass to ``remove_run_log`` when the run ends
    """
    handler = logging.FileHandler(path)
    handler.setFormatter(logging.Formatter(_log_format))
    logging.getLogger().addHandler(handler)
    return handler


def remove_run_log(handler: logging.Handler) -> None:
    """Detach and close a handler from ``add_run_log``."""
    logging.getLogger().removeHandler(handler)
    handler.close()


def setup_from_config(config: dict) -> None:
    """
    Setup logging from the ``logging`` configuration section.

    Args:
        config: Dict with optional keys level, file, max_size_mb,
            backup_count, format, console
    """
    setup_logging(
        log_file=config.get('file'),
        level=config.get('level', 'INFO'),
        max_size_mb=config.get('max_size_mb', 10),
        backup_count=config.get('backup_count', 5),
        log_format=config.get('format'),
        console=config.get('console', True)
    )
