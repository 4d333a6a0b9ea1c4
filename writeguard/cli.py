"""
Copyright 2024, Zep Software, Inc.

Licensed under the Apache License, Version 2.0 (the "License");
you may not use this file except in compliance with the License.
You may obtain a copy of the License at

    http://www.apache.org/licenses/LICENSE-2.0

Unless required by applicable law or agreed to in writing, software
distributed under the License is distributed on an "AS IS" BASIS,
WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
See the License for the specific language governing permissions and
limitations under the License.
"""

import asyncio
import logging
from pathlib import Path

import typer
import yaml
from dotenv import load_dotenv

from .config import WriteGuardConfig
from .digest import compute_fingerprint
from .logging_config import setup_logging
from .tracker import SelfWriteTracker
from .watcher import GeneratedTreeWatcher

# WRITEGUARD_* overrides may live in a .env file next to the project
load_dotenv()

logger = logging.getLogger(__name__)

cli_app = typer.Typer(help='Inspect and exercise the writeguard self-write suppression layer.')

# Define app as an alias for cli_app to support package entry points
app = cli_app


# --- Typer Option Constants ---
FILES_ARGUMENT = typer.Argument(
    ...,
    help='Files to fingerprint.',
    exists=True,
    file_okay=True,
    dir_okay=False,
    readable=True,
    resolve_path=True,
)
ROOT_ARGUMENT = typer.Argument(
    ...,
    help='Directory to watch.',
    exists=True,
    file_okay=False,
    dir_okay=True,
    resolve_path=True,
)
CONFIG_OPTION = typer.Option(
    None,
    '--config',
    '-c',
    help='YAML configuration file. Defaults to WRITEGUARD_CONFIG_PATH or ./writeguard.yaml.',
    exists=True,
    dir_okay=False,
    resolve_path=True,
)
LOG_LEVEL_OPTION = typer.Option('INFO', '--log-level', '-l', help='Logging level.')
LOG_FORMAT_OPTION = typer.Option(
    'plain', '--log-format', help="Log format: 'structured' (JSON) or 'plain'."
)
DURATION_OPTION = typer.Option(
    None, '--duration', '-d', help='Stop after this many seconds instead of running until Ctrl+C.'
)


def load_config(config_path: Path | None) -> WriteGuardConfig:
    if config_path is not None:
        return WriteGuardConfig.from_yaml(config_path)
    return WriteGuardConfig.from_env()


@cli_app.command()
def fingerprint(files: list[Path] = FILES_ARGUMENT):
    """Print the content fingerprint of each file."""
    for file_path in files:
        typer.echo(f'{compute_fingerprint(file_path.read_bytes())}  {file_path}')


@cli_app.command()
def show_config(config_path: Path | None = CONFIG_OPTION):
    """Print the effective configuration as YAML."""
    try:
        config = load_config(config_path)
    except (FileNotFoundError, ValueError) as err:
        typer.echo(f'Invalid configuration: {err}', err=True)
        raise typer.Exit(code=1) from err

    typer.echo(yaml.dump(config.model_dump(mode='json'), default_flow_style=False, sort_keys=False))


@cli_app.command()
def watch(
    root: Path = ROOT_ARGUMENT,
    config_path: Path | None = CONFIG_OPTION,
    log_level: str = LOG_LEVEL_OPTION,
    log_format: str = LOG_FORMAT_OPTION,
    duration: float | None = DURATION_OPTION,
):
    """
    Watch a directory and print every change classified as a user edit.
    With no generator attached, every change is reported.
    Enabling tracker.debug_logging raises the log level to DEBUG.
    """
    try:
        config = load_config(config_path)
    except (FileNotFoundError, ValueError) as err:
        setup_logging(log_level, log_format)
        logger.error(f'Invalid configuration: {err}')
        raise typer.Exit(code=1) from err

    setup_logging('DEBUG' if config.tracker.debug_logging else log_level, log_format)

    try:
        asyncio.run(_watch(root, config, duration))
    except KeyboardInterrupt:
        logger.info('Stopped watching')


async def _watch(root: Path, config: WriteGuardConfig, duration: float | None):
    tracker = SelfWriteTracker(config.tracker)

    def report(path: str, content: bytes):
        typer.echo(f'{compute_fingerprint(content)}  {path}')

    watcher = GeneratedTreeWatcher(tracker, root, report, config.watcher)
    watcher.start(asyncio.get_running_loop())
    try:
        if duration is None:
            await asyncio.Event().wait()
        else:
            await asyncio.sleep(duration)
    finally:
        await watcher.stop()
        await tracker.aclose()


if __name__ == '__main__':
    cli_app()
