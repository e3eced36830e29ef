"""
Camera definitions and the camera list loader.

Rows are tab delimited: ``model<TAB>name<TAB>address``, e.g.

    Reolink	Garage West	192.168.1.48
"""

import re
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Optional

from ..utils.config import Config
from ..utils.exceptions import ConfigError
from ..utils.logger import get_logger


logger = get_logger(__name__)

_UNSAFE_CHARS = re.compile(r'[\s/\\]')


def sanitize_name(name: str) -> str:
    """Replace whitespace and path separators with underscores."""
    return _UNSAFE_CHARS.sub('_', name)


@dataclass(frozen=True)
class CameraConfig:
    """Static description of one camera."""
    model: str
    name: str
    address: str

    @property
    def safe_name(self) -> str:
        """Name usable as a file name prefix."""
        return sanitize_name(self.name)


@dataclass(frozen=True)
class RowError:
    """A camera row rejected by the loader."""
    line: int
    text: str
    message: str

    @property
    def camera_name(self) -> str:
        """Name field of the row, or a row marker if it has none."""
        fields = self.text.split('\t')
        if len(fields) > 1 and fields[1].strip():
            return fields[1].strip()
        return f"<row {self.line}>"


def _check_unique(cameras: list[CameraConfig]) -> None:
    seen: dict[str, CameraConfig] = {}
    for camera in cameras:
        if camera.name in seen:
            raise ConfigError(f"Duplicate camera name: {camera.name}")
        seen[camera.name] = camera


def parse_camera_rows(
    lines: Iterable[str],
    skip_invalid: bool = False,
    errors: Optional[list[RowError]] = None
) -> list[CameraConfig]:
    """
    Parse tab-delimited camera rows.

    Args:
        lines: Row strings; blank lines and ``#`` comments are ignored
        skip_invalid: Collect malformed rows into ``errors`` instead of raising
        errors: List receiving RowError entries when skip_invalid is set

    Returns:
        CameraConfig entries in input order

    Raises:
        ConfigError: On a malformed row (unless skip_invalid) or a
            duplicate camera name
    """
    cameras = []

    for lineno, raw in enumerate(lines, start=1):
        line = raw.rstrip('\r\n')
        if not line.strip() or line.lstrip().startswith('#'):
            continue

        fields = line.split('\t')
        message = None
        if len(fields) < 3:
            message = f"expected 3 tab-separated fields, got {len(fields)}"
        elif not all(f.strip() for f in fields[:3]):
            message = "model, name and address must not be empty"

        if message:
            if not skip_invalid:
                raise ConfigError(f"Invalid camera row {lineno}: {message}: {line!r}")
            logger.warning(f"Skipping camera row {lineno}: {message}")
            if errors is not None:
                errors.append(RowError(lineno, line, message))
            continue

        if len(fields) > 3:
            logger.debug(f"Ignoring {len(fields) - 3} extra field(s) on camera row {lineno}")

        model, name, address = (f.strip() for f in fields[:3])
        cameras.append(CameraConfig(model=model, name=name, address=address))

    _check_unique(cameras)
    return cameras


def load_cameras_file(
    path: Path,
    skip_invalid: bool = False,
    errors: Optional[list[RowError]] = None
) -> list[CameraConfig]:
    """Load cameras from a tab-delimited file."""
    path = Path(path)
    if not path.exists():
        raise ConfigError(f"Camera list not found: {path}")

    with open(path, 'r') as f:
        return parse_camera_rows(f, skip_invalid=skip_invalid, errors=errors)


def cameras_from_records(records: Iterable[dict]) -> list[CameraConfig]:
    """
    Build cameras from structured records (e.g. a YAML list).

    Raises:
        ConfigError: If a record lacks a field or a name repeats
    """
    cameras = []

    for index, record in enumerate(records, start=1):
        if not isinstance(record, dict):
            raise ConfigError(f"Camera entry {index} must be a mapping")

        values = {}
        for field in ('model', 'name', 'address'):
            value = record.get(field)
            if value is None or str(value).strip() == '':
                raise ConfigError(f"Camera entry {index} is missing '{field}'")
            values[field] = str(value).strip()

        cameras.append(CameraConfig(**values))

    _check_unique(cameras)
    return cameras


def load_cameras(
    config: Config,
    errors: Optional[list[RowError]] = None
) -> list[CameraConfig]:
    """
    Load the camera list declared by the ``cameras`` config section.

    ``cameras.file`` rows come first, then ``cameras.list`` entries. Names
    must be unique across both.
    """
    section = config.get_cameras_config()
    skip_invalid = bool(section.get('skip_invalid_rows', False))

    cameras = []
    if section.get('file'):
        cameras.extend(load_cameras_file(
            Path(section['file']),
            skip_invalid=skip_invalid,
            errors=errors
        ))

    if section.get('list'):
        cameras.extend(cameras_from_records(section['list']))

    _check_unique(cameras)

    if not cameras:
        raise ConfigError("No cameras configured")

    logger.info(f"Loaded {len(cameras)} camera(s)")
    return cameras
