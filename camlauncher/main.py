"""
Main entry point for the camera launcher.

Loads the configuration and camera list, then hands them to the supervisor.
"""

import signal
import sys
from pathlib import Path
from typing import Optional

import click

from .cameras.camera_config import RowError, load_cameras, load_cameras_file
from .cameras.url_resolver import create_url_resolver
from .recording.command import RecorderCommand
from .recording.supervisor import Supervisor
from .state.models import RunReport
from .utils.config import Config, load_config
from .utils.exceptions import ConfigError, LauncherError, UnsupportedModelError
from .utils.logger import get_logger, setup_from_config


logger = None  # Initialize after config


def _install_signal_handlers(supervisor: Supervisor) -> None:
    """Route SIGINT/SIGTERM to a graceful supervisor stop."""
    def signal_handler(signum, frame):
        signame = signal.Signals(signum).name
        logger.info(f"Received {signame}, initiating shutdown...")
        supervisor.request_stop()

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)


def check_configuration(config: Config, cameras) -> bool:
    """
    Print each camera's resolved URL and recorder command.

    Returns:
        True if every camera resolves
    """
    resolver = create_url_resolver(config)
    command = RecorderCommand.from_config(config)
    base_dir = config.get_base_dir()
    ok = True

    for camera in cameras:
        try:
            url = resolver.resolve(camera.model, camera.address)
        except (UnsupportedModelError, ConfigError) as e:
            click.echo(f"{camera.name}: {e}")
            ok = False
            continue

        output = base_dir / '<run>' / f"{camera.safe_name}_<timestamp>.mp4"
        descriptor = command.build(
            camera_name=camera.name,
            url=url,
            output_path=output,
            cwd=base_dir,
            stdout_path=output.with_suffix('.log'),
            stderr_path=output.with_suffix('.err.log'),
        )
        click.echo(f"{camera.name}: {url}")
        click.echo(f"    {descriptor.display()}")

    return ok


def print_report(report: RunReport) -> None:
    """Print the per-camera summary."""
    click.echo(f"Run directory: {report.working_directory}")
    for line in report.summary_lines():
        click.echo(f"  {line}")


@click.command()
@click.option(
    '--config', '-c',
    default='config.yaml',
    help='Path to configuration file'
)
@click.option(
    '--cameras',
    type=click.Path(dir_okay=False),
    default=None,
    help='Tab-delimited camera list (overrides cameras in the config)'
)
@click.option(
    '--check',
    is_flag=True,
    help='Validate configuration, print resolved URLs and exit'
)
@click.option(
    '--no-terminate',
    is_flag=True,
    help='Leave recorders running when the launcher exits'
)
def main(config: str, cameras: Optional[str], check: bool, no_terminate: bool):
    """
    Multi-camera recording launcher

    Starts one recorder per camera and restarts recorders that crash.
    """
    global logger

    try:
        cfg = load_config(config)
    except ConfigError as e:
        click.echo(f"Configuration error: {e}", err=True)
        sys.exit(1)

    setup_from_config(cfg.get_logging_config())
    logger = get_logger(__name__)

    if no_terminate:
        cfg = Config({**cfg.to_dict(), 'supervisor': {
            **cfg.get_supervisor_config(), 'terminate_on_shutdown': False
        }})

    row_errors: list[RowError] = []
    try:
        if cameras:
            skip_invalid = bool(cfg.get('cameras.skip_invalid_rows', False))
            camera_list = load_cameras_file(Path(cameras), skip_invalid=skip_invalid, errors=row_errors)
        else:
            camera_list = load_cameras(cfg, errors=row_errors)
    except ConfigError as e:
        click.echo(f"Camera list error: {e}", err=True)
        sys.exit(1)

    if check:
        success = check_configuration(cfg, camera_list) and not row_errors
        sys.exit(0 if success else 1)

    supervisor = Supervisor(cfg)
    _install_signal_handlers(supervisor)

    try:
        report = supervisor.run(camera_list, row_errors)
    except LauncherError as e:
        logger.error(f"Run aborted: {e}")
        sys.exit(1)
    except Exception as e:
        logger.exception(f"Launcher error: {e}")
        sys.exit(1)

    print_report(report)
    sys.exit(0 if report.all_ok else 1)


if __name__ == '__main__':
    main()
