"""Repository setup and inspection commands."""

from pathlib import Path
from typing import Optional

import typer

from ..repository import is_valid_repository
from .helpers import get_config, get_config_path, get_manager


def register(app: typer.Typer) -> None:
    """Register repository commands with the app."""
    app.command()(init)
    app.command()(upstream)
    app.command()(status)
    app.command()(validate)


def init(
    url: Optional[str] = typer.Option(
        None, "--url", "-u", help="Remote repository URL"
    ),
    branch: Optional[str] = typer.Option(
        None, "--branch", "-b", help="Remote branch to track"
    ),
    repo_dir: Optional[Path] = typer.Option(
        None, "--dir", "-d", help="Directory of the settings repository"
    ),
):
    """Create the settings repository and its configuration."""
    config = get_config()
    if repo_dir:
        config.set("repository.dir", str(repo_dir))
    if url:
        config.set("upstream.url", url)
    if branch:
        config.set("upstream.branch", branch)
    config.save(get_config_path())

    manager = get_manager(config)
    if url:
        manager.set_upstream(url, branch)
    typer.echo(f"✓ Settings repository ready at {manager.work_tree}")


def upstream(
    url: Optional[str] = typer.Argument(None, help="Remote repository URL"),
    branch: Optional[str] = typer.Option(
        None, "--branch", "-b", help="Remote branch to track"
    ),
    unset: bool = typer.Option(False, "--unset", help="Remove the remote"),
):
    """Show, set or remove the remote repository."""
    config = get_config()
    manager = get_manager(config)

    if unset:
        manager.set_upstream(None)
        config.set("upstream.url", None)
        config.save(get_config_path())
        typer.echo("✓ Remote removed")
        return

    if url is None:
        typer.echo(manager.remote_url() or "(no remote)")
        return

    manager.set_upstream(url, branch)
    config.set("upstream.url", url)
    config.set("upstream.branch", branch)
    config.save(get_config_path())
    typer.echo(f"✓ Remote set to {url}")


def status():
    """Show the state of the settings repository."""
    config = get_config()
    manager = get_manager(config)
    repo = manager.repository

    branch = manager.handle.head_branch() or "(detached)"
    head = "(no commits)"
    if not repo.head_is_unborn:
        head = str(repo.head.target)[:7]

    typer.echo(f"Repository: {manager.work_tree}")
    typer.echo(f"Branch:     {branch}")
    typer.echo(f"Commit:     {head}")
    typer.echo(f"Remote:     {manager.remote_url() or '(none)'}")


def validate(
    path: Path = typer.Argument(..., help="Directory to check"),
):
    """Check whether a directory holds a usable repository."""
    if is_valid_repository(path):
        typer.echo(f"✓ {path} is a valid repository")
    else:
        typer.echo(f"✗ {path} is not a repository", err=True)
        raise typer.Exit(1)
