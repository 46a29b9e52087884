"""CLI package for pkgr.

This package contains the Typer application and all subcommands.
"""

from pkgr.cli.main import app

__all__ = ["app"]
