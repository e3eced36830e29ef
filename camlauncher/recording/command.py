"""
Recorder invocation building.

Turns the ``recorder.command`` template into a structured invocation
descriptor. Every token is formatted on its own and passed as a separate
argument, so camera names and addresses never reach a shell.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from ..utils.config import Config
from ..utils.exceptions import ConfigError


MASK = '****'


@dataclass(frozen=True)
class InvocationDescriptor:
    """Everything an OS process launcher needs to start one recorder."""
    camera_name: str
    executable: str
    args: tuple[str, ...]
    cwd: Path
    stdout_path: Path
    stderr_path: Path
    secrets: tuple[str, ...] = field(default=(), repr=False, compare=False)

    @property
    def argv(self) -> list[str]:
        return [self.executable, *self.args]

    def display(self) -> str:
        """Command line for logging, with secrets masked."""
        text = ' '.join(self.argv)
        for secret in self.secrets:
            if secret:
                text = text.replace(secret, MASK)
        return text


class RecorderCommand:
    """
    Argument template for the external recorder.

    Placeholders: {output}, {url}, {username}, {password}, {camera}.
    """

    def __init__(self, template: list[str], username: str = '', password: str = ''):
        if not template:
            raise ConfigError("Recorder command template is empty")
        self.template = list(template)
        self.username = username or ''
        self.password = password or ''

    @classmethod
    def from_config(cls, config: Config) -> 'RecorderCommand':
        credentials = config.get_credentials()
        return cls(
            config.get_recorder_command(),
            username=str(credentials.get('username') or ''),
            password=str(credentials.get('password') or ''),
        )

    def build(
        self,
        camera_name: str,
        url: str,
        output_path: Path,
        cwd: Path,
        stdout_path: Path,
        stderr_path: Path,
        extra_secrets: Optional[tuple[str, ...]] = None
    ) -> InvocationDescriptor:
        """
        Build the invocation descriptor for one start attempt.

        Raises:
            ConfigError: If a token uses an unknown placeholder
        """
        values = {
            'output': str(output_path),
            'url': url,
            'username': self.username,
            'password': self.password,
            'camera': camera_name,
        }

        try:
            argv = [token.format_map(values) for token in self.template]
        except (KeyError, IndexError, ValueError) as e:
            raise ConfigError(f"Invalid recorder command template: {e}")

        return InvocationDescriptor(
            camera_name=camera_name,
            executable=argv[0],
            args=tuple(argv[1:]),
            cwd=cwd,
            stdout_path=stdout_path,
            stderr_path=stderr_path,
            secrets=(self.password,) + tuple(extra_secrets or ()),
        )
