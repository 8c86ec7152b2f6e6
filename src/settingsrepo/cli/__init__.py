"""settingsrepo CLI - a small host around the repository manager."""

import typer

from ..utils import get_version, setup_logging
from . import repo, sync

app = typer.Typer(
    name="settingsrepo",
    help="Keep application settings in sync through git.",
    add_completion=False,
    no_args_is_help=True,
)


@app.callback()
def main_callback(
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Enable verbose logging output.",
    ),
):
    """settingsrepo - settings repository manager."""
    setup_logging(verbose=verbose)


repo.register(app)
sync.register(app)


@app.command()
def version():
    """Show the version of settingsrepo."""
    typer.echo(f"settingsrepo version {get_version()}")


def main():
    """Main entry point for the settingsrepo CLI."""
    app()
