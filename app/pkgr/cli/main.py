"""Main CLI application entry point.

Defines the Typer application and global options.
"""

import logging
from pathlib import Path
from typing import Annotated

import typer
from rich.logging import RichHandler

from pkgr import __version__
from pkgr.cli.commands import apps, repo, source
from pkgr.utils.formatting import err_console

app = typer.Typer(
    name="pkgr",
    help="Transactional package repository manager.",
    no_args_is_help=True,
    rich_markup_mode="rich",
    context_settings={"help_option_names": ["-h", "--help"]},
)


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        typer.echo(f"pkgr version {__version__}")
        raise typer.Exit()


def configure_logging(verbose: bool) -> None:
    """Route library logging to stderr; DEBUG with --verbose, WARNING otherwise."""
    root = logging.getLogger()
    for handler in list(root.handlers):
        if isinstance(handler, RichHandler):
            root.removeHandler(handler)
    root.addHandler(RichHandler(console=err_console, show_path=False, rich_tracebacks=True))
    root.setLevel(logging.DEBUG if verbose else logging.WARNING)


@app.callback()
def main(
    ctx: typer.Context,
    version: Annotated[
        bool | None,
        typer.Option(
            "--version",
            "-V",
            callback=version_callback,
            is_eager=True,
            help="Show version and exit.",
        ),
    ] = None,
    verbose: Annotated[
        bool,
        typer.Option(
            "--verbose",
            "-v",
            help="Enable verbose output.",
        ),
    ] = False,
    repo_dir: Annotated[
        Path | None,
        typer.Option(
            "--repo",
            "-r",
            help="Repository root (default: current directory).",
        ),
    ] = None,
    yes: Annotated[
        bool,
        typer.Option(
            "--yes",
            "-y",
            help="Skip confirmation prompts.",
        ),
    ] = False,
) -> None:
    """pkgr - Transactional package repository manager.

    Add, install, upgrade and remove content-verified packages. Every
    change is journaled and rolled back completely if any step fails.
    """
    configure_logging(verbose)

    # Store options in context for subcommands
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["repo"] = repo_dir
    ctx.obj["yes"] = yes


# Register commands
app.add_typer(repo.app, name="repo")
app.add_typer(source.app, name="source")
app.add_typer(apps.app, name="app")


if __name__ == "__main__":
    app()
