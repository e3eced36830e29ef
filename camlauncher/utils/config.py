"""
Configuration loader for the camera launcher.

Loads YAML configuration with environment variable substitution.
"""

import os
import re
from pathlib import Path
from string import Formatter
from typing import Any

import yaml
from dotenv import load_dotenv

from .exceptions import ConfigError


# Load .env file if present
load_dotenv()


RECORDER_PLACEHOLDERS = frozenset({'output', 'url', 'username', 'password', 'camera'})

DEFAULT_RECORDER_COMMAND = [
    'cargo', 'run', '--quiet',
    '--manifest-path', '/usr/local/src/retina/Cargo.toml',
    '--example', 'client', '--',
    'mp4', '{output}',
    '--url', '{url}',
    '--username', '{username}',
    '--password', '{password}',
]

SUPERVISOR_DEFAULTS = {
    'poll_interval': 1.0,
    'launch_delay': 1.0,
    'max_restarts': 3,
    'backoff_initial': 2.0,
    'backoff_factor': 2.0,
    'backoff_max': 60.0,
    'shutdown_timeout': 10.0,
    'terminate_on_shutdown': True,
    'stop_signal': 'SIGINT',
}


def template_fields(token: str) -> set[str]:
    """
    Return the placeholder names used in a format string.

    A positional ``{}`` field is returned as the empty string.
    """
    return {name for _, name, _, _ in Formatter().parse(token) if name is not None}


class Config:
    """
    Configuration wrapper with environment variable substitution.

    Usage:
        config = Config.load('config.yaml')
        base_dir = config.get_base_dir()
        delay = config.get('supervisor.launch_delay', 1.0)
    """

    _env_pattern = re.compile(r'\$\{([^}]+)\}')

    def __init__(self, config_data: dict):
        self._data = config_data

    @classmethod
    def load(cls, config_path: str = 'config.yaml') -> 'Config':
        """
        Load configuration from YAML file.

        Args:
            config_path: Path to YAML configuration file

        Returns:
            Validated Config instance

        Raises:
            ConfigError: If file not found, invalid YAML or invalid values
        """
        path = Path(config_path)

        if not path.exists():
            raise ConfigError(f"Configuration file not found: {config_path}")

        try:
            with open(path, 'r') as f:
                raw_content = f.read()

            content = cls._substitute_env_vars(raw_content)
            data = yaml.safe_load(content)

        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML in configuration: {e}")

        if data is None:
            data = {}
        if not isinstance(data, dict):
            raise ConfigError("Configuration must be a YAML dictionary")

        instance = cls(data)
        instance.validate()
        return instance

    @classmethod
    def _substitute_env_vars(cls, content: str) -> str:
        """
        Substitute ${VAR} patterns with environment variable values.

        Unset variables are left as-is.
        """
        def replace(match):
            value = os.environ.get(match.group(1))
            if value is None:
                return match.group(0)
            return value

        return cls._env_pattern.sub(replace, content)

    def validate(self) -> None:
        """
        Validate supervisor settings, the recorder command and credentials.

        Raises:
            ConfigError: On the first invalid value found
        """
        supervisor = self.get_supervisor_config()

        for key in ('poll_interval', 'backoff_initial', 'backoff_max', 'shutdown_timeout'):
            value = supervisor[key]
            if not isinstance(value, (int, float)) or isinstance(value, bool) or value <= 0:
                raise ConfigError(f"supervisor.{key} must be a positive number")

        launch_delay = supervisor['launch_delay']
        if not isinstance(launch_delay, (int, float)) or isinstance(launch_delay, bool) or launch_delay < 0:
            raise ConfigError("supervisor.launch_delay must be a non-negative number")

        max_restarts = supervisor['max_restarts']
        if not isinstance(max_restarts, int) or isinstance(max_restarts, bool) or max_restarts < 0:
            raise ConfigError("supervisor.max_restarts must be a non-negative integer")

        factor = supervisor['backoff_factor']
        if not isinstance(factor, (int, float)) or isinstance(factor, bool) or factor < 1:
            raise ConfigError("supervisor.backoff_factor must be >= 1")

        stop_signal = supervisor['stop_signal']
        if stop_signal not in ('SIGINT', 'SIGTERM'):
            raise ConfigError(f"supervisor.stop_signal must be SIGINT or SIGTERM, got {stop_signal}")

        command = self.get_recorder_command()
        if not command or not all(isinstance(token, str) for token in command):
            raise ConfigError("recorder.command must be a non-empty list of strings")

        used = set()
        for token in command:
            try:
                used |= template_fields(token)
            except ValueError as e:
                raise ConfigError(f"Invalid recorder.command token {token!r}: {e}")

        if '' in used:
            raise ConfigError("recorder.command must use named placeholders, not {}")

        unknown = used - RECORDER_PLACEHOLDERS
        if unknown:
            raise ConfigError(f"Unknown recorder.command placeholder(s): {', '.join(sorted(unknown))}")

        credentials = self.get_credentials()
        for field in ('username', 'password'):
            if field in used and not credentials.get(field):
                raise ConfigError(f"Required configuration field missing: credentials.{field}")

        models = self.get_models_config()
        if not isinstance(models, dict):
            raise ConfigError("models must be a mapping of model name to URL template")
        for model, template in models.items():
            if not isinstance(template, str):
                raise ConfigError(f"URL template for model {model} must be a string")
            try:
                fields = template_fields(template)
            except ValueError as e:
                raise ConfigError(f"Invalid URL template for model {model}: {e}")
            # {address} is the only value available when resolving
            if fields != {'address'}:
                raise ConfigError(f"URL template for model {model} must contain {{address}} and no other placeholder")

        health = self.get_health_config()
        threshold = health.get('stale_threshold', 0)
        if not isinstance(threshold, (int, float)) or isinstance(threshold, bool) or threshold < 0:
            raise ConfigError("health.stale_threshold must be a non-negative number")

    def get(self, key: str, default: Any = None) -> Any:
        """
        Get configuration value by dot-separated key.

        Args:
            key: Dot-separated key (e.g., 'supervisor.max_restarts')
            default: Default value if key not found

        Returns:
            Configuration value or default
        """
        value = self._data

        for k in key.split('.'):
            if isinstance(value, dict) and k in value:
                value = value[k]
            else:
                return default

        return value

    def get_cameras_config(self) -> dict:
        """Get cameras configuration section."""
        return self._data.get('cameras') or {}

    def get_credentials(self) -> dict:
        """Get the shared camera credentials."""
        return self._data.get('credentials') or {}

    def get_recorder_config(self) -> dict:
        """Get recorder configuration section."""
        return self._data.get('recorder') or {}

    def get_recorder_command(self) -> list:
        """Get the recorder argument template."""
        return self.get_recorder_config().get('command', DEFAULT_RECORDER_COMMAND)

    def get_models_config(self) -> dict:
        """Get extra model URL templates."""
        models = self._data.get('models')
        return {} if models is None else models

    def get_supervisor_config(self) -> dict:
        """Get supervisor settings merged over the defaults."""
        return {**SUPERVISOR_DEFAULTS, **(self._data.get('supervisor') or {})}

    def get_health_config(self) -> dict:
        """Get health monitoring configuration section."""
        return self._data.get('health') or {}

    def get_logging_config(self) -> dict:
        """Get logging configuration section."""
        return self._data.get('logging') or {}

    def get_base_dir(self) -> Path:
        """Get the directory under which run directories are created."""
        return Path(self.get('storage.base_dir', '/tmp/retina'))

    def get_log_file(self) -> Path:
        """Get the supervisor log file path."""
        return Path(self.get('logging.file', './data/logs/camlauncher.log'))

    def to_dict(self) -> dict:
        """Return configuration as dictionary."""
        return self._data.copy()


def load_config(config_path: str = 'config.yaml') -> Config:
    """
    Convenience function to load configuration.

    Args:
        config_path: Path to YAML configuration file

    Returns:
        Config instance
    """
    return Config.load(config_path)
