"""Source management commands.

Provides ``pkgr source`` subcommands that edit the ordered source list
in the repository's config.toml.
"""

from typing import Annotated

import typer

from pkgr.cli.types import fail, repo_path
from pkgr.core.config import ConfigManager, validate_source
from pkgr.core.errors import PkgrError
from pkgr.core.paths import CONFIG_FILENAME
from pkgr.utils.formatting import console, create_source_table, print_info, print_success

app = typer.Typer(
    help="Manage catalog sources.",
    no_args_is_help=True,
)


def _manager(ctx: typer.Context) -> ConfigManager:
    return ConfigManager(repo_path(ctx) / CONFIG_FILENAME)


@app.command(name="list")
def list_sources(ctx: typer.Context) -> None:
    """List configured sources in priority order."""
    try:
        config = _manager(ctx).load()
    except PkgrError as e:
        raise fail(e) from e

    if not config.source:
        print_info("No sources configured.")
        return
    console.print(create_source_table(config.source))


@app.command()
def add(
    ctx: typer.Context,
    source_id: Annotated[str, typer.Argument(help="Unique source id.")],
    url: Annotated[str, typer.Argument(help="Source root URL or absolute path.")],
    name: Annotated[str, typer.Option("--name", "-n", help="Display name.")] = "",
    allow_http: Annotated[
        bool,
        typer.Option("--allow-http", help="Accept http:// URLs and local paths."),
    ] = False,
    disabled: Annotated[
        bool,
        typer.Option("--disabled", help="Add the source disabled."),
    ] = False,
) -> None:
    """Add a source. Later sources win when several list the same package."""
    try:
        source = validate_source(
            {
                "id": source_id,
                "name": name,
                "url": url,
                "enabled": not disabled,
                "require_https": not allow_http,
            }
        )
        _manager(ctx).add_source(source)
    except PkgrError as e:
        raise fail(e) from e
    print_success(f"Added source {source_id}")


@app.command()
def remove(
    ctx: typer.Context,
    source_id: Annotated[str, typer.Argument(help="Source id.")],
) -> None:
    """Remove a source."""
    try:
        _manager(ctx).remove_source(source_id)
    except PkgrError as e:
        raise fail(e) from e
    print_success(f"Removed source {source_id}")


@app.command()
def enable(
    ctx: typer.Context,
    source_id: Annotated[str, typer.Argument(help="Source id.")],
) -> None:
    """Enable a source."""
    try:
        _manager(ctx).enable_source(source_id)
    except PkgrError as e:
        raise fail(e) from e
    print_success(f"Enabled source {source_id}")


@app.command()
def disable(
    ctx: typer.Context,
    source_id: Annotated[str, typer.Argument(help="Source id.")],
) -> None:
    """Disable a source without removing it."""
    try:
        _manager(ctx).disable_source(source_id)
    except PkgrError as e:
        raise fail(e) from e
    print_success(f"Disabled source {source_id}")
