"""Shared helper functions for CLI commands."""

import logging
from pathlib import Path
from typing import List, NoReturn, Optional

import typer

from ..config import Config
from ..credentials import FileCredentialStore
from ..errors import ConflictError, ErrorKind, SettingsRepositoryError
from ..manager import RepositoryManager
from ..progress import ProgressSink
from ..system import Environment

# Global environment instance
env = Environment()
logger = logging.getLogger(__name__)

# Supported config filenames (in order of preference)
CONFIG_FILENAMES: List[str] = [".settingsrepo.yaml", ".settingsrepo.yml"]

HINTS = {
    ErrorKind.INITIALIZATION: "Check that the repository directory is writable.",
    ErrorKind.CREDENTIAL: "Check the credentials stored for the remote.",
    ErrorKind.SYNC: "Check your network connection and try again.",
    ErrorKind.CONFLICT: "Resolve the conflicting files, then sync again.",
}


def get_config_path(home: Optional[Path] = None) -> Path:
    """Find the config file, defaulting to ~/.settingsrepo.yaml."""
    home_dir = home or env.home
    for filename in CONFIG_FILENAMES:
        path = home_dir / filename
        if path.exists():
            return path
    return home_dir / CONFIG_FILENAMES[0]


def get_config() -> Config:
    return Config(get_config_path(), env=env)


class EchoProgressSink(ProgressSink):
    """Prints progress messages to the terminal."""

    def report(self, message: str) -> None:
        typer.echo(f"  {message}")


def fail(error: SettingsRepositoryError) -> NoReturn:
    """Print an actionable message for error and exit with status 1."""
    typer.echo(f"✗ {error}", err=True)
    if isinstance(error, ConflictError) and error.paths:
        for path in error.paths:
            typer.echo(f"    - {path}", err=True)
    hint = HINTS.get(error.kind)
    if hint:
        typer.echo(hint, err=True)
    raise typer.Exit(1)


def get_manager(config: Config) -> RepositoryManager:
    """Open the configured repository, exiting on failure."""
    store = FileCredentialStore(config.get_path("credentials.file"))
    try:
        return RepositoryManager(
            config.get_path("repository.dir"),
            store,
            app_name=config.get_app_name(),
            env=env,
        )
    except SettingsRepositoryError as e:
        fail(e)
