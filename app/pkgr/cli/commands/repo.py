"""Repository lifecycle commands.

Provides ``pkgr repo`` subcommands to create a repository, add, install,
remove and upgrade packages, and keep the available catalog current.
"""

from pathlib import Path
from typing import Annotated

import typer

from pkgr.cli.types import confirm, fail, open_repo, repo_path
from pkgr.core.errors import PkgrError
from pkgr.core.repo import RepoManager
from pkgr.utils.formatting import (
    console,
    create_package_table,
    format_package_row,
    print_info,
    print_success,
)

app = typer.Typer(
    help="Manage a package repository.",
    no_args_is_help=True,
)


@app.command()
def init(
    ctx: typer.Context,
    path: Annotated[
        Path | None,
        typer.Argument(help="Repository directory (default: --repo or current directory)."),
    ] = None,
) -> None:
    """Create a repository with an empty index and default config."""
    target = path or repo_path(ctx)
    try:
        with RepoManager.init(target) as repo:
            print_success(f"Initialized repository at {repo.path}")
    except PkgrError as e:
        raise fail(e) from e


@app.command()
def add(
    ctx: typer.Context,
    package_dir: Annotated[
        Path,
        typer.Argument(help="Package directory containing metadata.json."),
    ],
) -> None:
    """Add a locally built package after verifying every file."""
    with open_repo(ctx) as repo:
        try:
            entry = repo.add(package_dir)
        except PkgrError as e:
            raise fail(e) from e
    print_success(f"Added {entry.id} {entry.latest_version}")


@app.command()
def install(
    ctx: typer.Context,
    spec: Annotated[
        str,
        typer.Argument(help="package, source:package or source:package:version."),
    ],
    version: Annotated[
        str | None,
        typer.Option("--version", help="Version to install (default: latest)."),
    ] = None,
) -> None:
    """Install a package from the available catalog."""
    with open_repo(ctx) as repo:
        try:
            entry = repo.install(spec, version)
        except PkgrError as e:
            raise fail(e) from e
    print_success(f"Installed {entry.id} {entry.latest_version}")


@app.command()
def remove(
    ctx: typer.Context,
    package_id: Annotated[str, typer.Argument(help="Package id.")],
    version: Annotated[
        str | None,
        typer.Option("--version", help="Remove only this version."),
    ] = None,
) -> None:
    """Remove a package, or a single version of it."""
    target = f"{package_id} {version}" if version else f"{package_id} (all versions)"
    if not confirm(ctx, f"Remove {target}?"):
        return

    with open_repo(ctx) as repo:
        try:
            entry = repo.remove(package_id, version)
        except PkgrError as e:
            raise fail(e) from e

    print_success(f"Removed {target}")
    if entry is not None:
        print_info(f"Latest installed version is now {entry.latest_version}")


@app.command()
def upgrade(
    ctx: typer.Context,
    package_id: Annotated[
        str | None,
        typer.Argument(help="Package id (default: every installed package)."),
    ] = None,
) -> None:
    """Upgrade packages to the catalog's latest version."""
    with open_repo(ctx) as repo:
        try:
            if package_id is None:
                upgraded = repo.upgrade_all()
            else:
                result = repo.upgrade(package_id)
                upgraded = [] if result is None else [(package_id, *result)]
        except PkgrError as e:
            raise fail(e) from e

    if not upgraded:
        print_info("Everything is up to date.")
        return
    for pkg, old, new in upgraded:
        print_success(f"Upgraded {pkg}: {old} -> {new}")


@app.command()
def update(ctx: typer.Context) -> None:
    """Refresh the available catalog from every enabled source."""
    with open_repo(ctx) as repo:
        try:
            merged = repo.refresh()
        except PkgrError as e:
            raise fail(e) from e
    print_success(f"Catalog updated: {len(merged)} package(s) available")


@app.command()
def sync(
    ctx: typer.Context,
    source_id: Annotated[str, typer.Argument(help="Source id.")],
    mirror: Annotated[
        bool,
        typer.Option("--mirror", help="Replace packages/ with the source's packages."),
    ] = False,
) -> None:
    """Synchronize the catalog, or mirror every package, from one source."""
    if mirror and not confirm(ctx, f"Delete all installed packages and mirror '{source_id}'?"):
        return

    with open_repo(ctx) as repo:
        try:
            entries = repo.sync(source_id, mirror=mirror)
        except PkgrError as e:
            raise fail(e) from e

    action = "Mirrored" if mirror else "Synced"
    print_success(f"{action} {len(entries)} package(s) from {source_id}")


@app.command()
def reindex(ctx: typer.Context) -> None:
    """Rebuild the installed package list from packages/."""
    with open_repo(ctx) as repo:
        try:
            packages = repo.rebuild_index()
        except PkgrError as e:
            raise fail(e) from e
    print_success(f"Index rebuilt: {len(packages)} package(s) installed")


@app.command()
def clean(ctx: typer.Context) -> None:
    """Clear the download cache and keep only two versions per package."""
    if not confirm(ctx, "Clear the cache and prune old package versions?"):
        return

    with open_repo(ctx) as repo:
        try:
            pruned = repo.clean()
        except PkgrError as e:
            raise fail(e) from e

    for package_id, versions in pruned.items():
        print_info(f"Pruned {package_id}: {', '.join(versions)}")
    print_success("Repository cleaned.")


@app.command(name="list")
def list_packages(
    ctx: typer.Context,
    available: Annotated[
        bool,
        typer.Option("--available", "-a", help="List the available catalog instead."),
    ] = False,
) -> None:
    """List installed (or available) packages."""
    with open_repo(ctx) as repo:
        try:
            entries = repo.list_available() if available else repo.list_installed()
        except PkgrError as e:
            raise fail(e) from e

    if not entries:
        print_info("No packages available." if available else "No packages installed.")
        return

    table = create_package_table("Available Packages" if available else "Installed Packages")
    for entry in entries:
        table.add_row(*format_package_row(entry))
    console.print(table)
