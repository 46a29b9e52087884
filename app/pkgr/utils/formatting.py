"""Rich console formatting utilities.

Provides consistent formatting for CLI output using Rich.
"""

import sys

from rich.console import Console
from rich.table import Table

from pkgr.core.theme import get_theme
from pkgr.models.catalog import CatalogEntry
from pkgr.models.config import SourceConfig


def _detect_color_system() -> str | None:
    """Use truecolor on interactive terminals and let Rich auto-detect otherwise."""
    if sys.stdout.isatty():
        return "truecolor"
    return None


# Shared console instances (theme loaded once at import)
console = Console(theme=get_theme(), color_system=_detect_color_system())
err_console = Console(theme=get_theme(), stderr=True, color_system=_detect_color_system())


def create_package_table(title: str = "Installed Packages") -> Table:
    """Create a pre-configured table for displaying catalog entries.

    Args:
        title: Table title.

    Returns:
        Rich Table with id, name, version, author and location columns.
    """
    table = Table(
        title=title,
        show_header=True,
        header_style="bold_header",
        border_style="border",
        row_styles=["", "on grey7"],
    )
    table.add_column("ID", style="package.id", no_wrap=True)
    table.add_column("Name", style="text")
    table.add_column("Version", style="package.version")
    table.add_column("Author", style="muted")
    table.add_column("Location", style="package.location", overflow="fold")
    return table


def format_package_row(entry: CatalogEntry) -> tuple[str, str, str, str, str]:
    """Format a catalog entry as a table row."""
    return (
        entry.id,
        entry.name or "-",
        entry.latest_version,
        entry.author or "-",
        entry.location,
    )


def create_source_table(sources: list[SourceConfig]) -> Table:
    """Build a table listing configured sources in priority order."""
    table = Table(
        title="Sources",
        show_header=True,
        header_style="bold_header",
        border_style="border",
    )
    table.add_column("ID", style="package.id", no_wrap=True)
    table.add_column("Name", style="text")
    table.add_column("URL", style="package.location", overflow="fold")
    table.add_column("Enabled", justify="center")
    table.add_column("HTTPS only", justify="center")

    for source in sources:
        table.add_row(
            source.id,
            source.name or "-",
            source.url,
            "[success]yes[/]" if source.enabled else "[muted]no[/]",
            "yes" if source.require_https else "no",
        )
    return table


def print_info(message: str) -> None:
    """Print an info message."""
    console.print(f"[info]{message}[/]")


def print_warning(message: str) -> None:
    """Print a warning message."""
    err_console.print(f"[warning]Warning:[/] {message}")


def print_error(message: str) -> None:
    """Print an error message."""
    err_console.print(f"[error]Error:[/] {message}")


def print_success(message: str) -> None:
    """Print a success message."""
    console.print(f"[success]{message}[/]")
