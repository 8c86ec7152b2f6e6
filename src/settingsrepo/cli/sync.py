"""Commit, push, pull and sync commands."""

from typing import List, Optional

import typer

from ..errors import SettingsRepositoryError
from ..pull import MergeStatus
from .helpers import EchoProgressSink, fail, get_config, get_manager


def register(app: typer.Typer) -> None:
    """Register sync commands with the app."""
    app.command()(commit)
    app.command()(push)
    app.command()(pull)
    app.command()(sync)


def commit(
    paths: Optional[List[str]] = typer.Argument(
        None, help="Only commit these paths"
    ),
):
    """Commit changed settings files."""
    manager = get_manager(get_config())
    progress = EchoProgressSink()

    try:
        if paths:
            result = manager.commit(progress, paths=paths)
        else:
            manager.handle.stage_all()
            result = manager.commit(progress)
    except SettingsRepositoryError as e:
        fail(e)

    if result is None:
        typer.echo("✓ Nothing to commit")
        return
    typer.echo(f"✓ Committed {result.commit_id[:7]}")
    for path in result.paths:
        typer.echo(f"    - {path}")


def push():
    """Push committed settings to the remote."""
    manager = get_manager(get_config())
    try:
        result = manager.push(EchoProgressSink())
    except SettingsRepositoryError as e:
        fail(e)

    if not result.refspecs:
        typer.echo("✓ Nothing to push")
        return
    for update in result.ref_updates:
        typer.echo(f"  {update.remote_name}: {update.status.value}")
    if result.rejected:
        typer.echo("⚠ Some refs were not accepted by the remote", err=True)
        raise typer.Exit(1)
    typer.echo("✓ Pushed")


def pull():
    """Fetch remote settings and fast-forward the local copy."""
    manager = get_manager(get_config())
    try:
        result = manager.pull(EchoProgressSink())
    except SettingsRepositoryError as e:
        fail(e)

    if result.status is MergeStatus.NO_REMOTE:
        typer.echo("No remote configured. Run 'settingsrepo upstream URL'.")
    elif result.status is MergeStatus.NO_REMOTE_BRANCH:
        typer.echo("✓ Remote has no settings yet")
    elif result.status is MergeStatus.UP_TO_DATE:
        typer.echo("✓ Already up to date")
    else:
        typer.echo(f"✓ Updated to {result.commit_id[:7]}")
        for path in result.updated_paths:
            typer.echo(f"    - {path}")


def sync():
    """Commit local changes, pull, then push."""
    manager = get_manager(get_config())
    manager.handle.stage_all()

    outcome = manager.sync(EchoProgressSink())
    if not outcome.ok:
        fail(outcome.error)
    typer.echo("✓ Settings are in sync")
