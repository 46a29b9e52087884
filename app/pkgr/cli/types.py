"""Shared helpers for CLI commands.

Commands read the global options stored on the Typer context by the
main callback and report library errors in one consistent way.
"""

from pathlib import Path

import typer

from pkgr.core.errors import PkgrError, TransactionRollbackError
from pkgr.core.repo import RepoManager
from pkgr.utils.formatting import print_error, print_info, print_warning


def repo_path(ctx: typer.Context) -> Path:
    """Repository root selected with ``--repo`` (default: current directory)."""
    obj = ctx.find_root().obj or {}
    return Path(obj.get("repo") or Path.cwd())


def open_repo(ctx: typer.Context) -> RepoManager:
    """Open the selected repository, exiting with an error if it is missing."""
    try:
        return RepoManager.open(repo_path(ctx))
    except PkgrError as e:
        raise fail(e) from e


def confirm(ctx: typer.Context, message: str) -> bool:
    """Ask for confirmation unless ``--yes`` was given.

    Prints "Cancelled." when the user declines.
    """
    obj = ctx.find_root().obj or {}
    if obj.get("yes"):
        return True
    if typer.confirm(message):
        return True
    print_info("Cancelled.")
    return False


def fail(error: PkgrError) -> typer.Exit:
    """Print ``error`` and return the exit to raise."""
    print_error(str(error))
    if isinstance(error, TransactionRollbackError):
        print_warning("The repository is in an inconsistent state and needs manual repair.")
    return typer.Exit(code=1)
