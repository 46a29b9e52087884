"""CLI commands for pkgr.

This package contains all subcommand implementations.
"""

from pkgr.cli.commands import apps, repo, source

__all__ = ["apps", "repo", "source"]
