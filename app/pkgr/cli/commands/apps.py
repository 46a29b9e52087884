"""Package authoring commands.

Provides ``pkgr app`` subcommands for creating a package directory and
maintaining the file manifest in its metadata.json.
"""

from pathlib import Path
from typing import Annotated

import typer

from pkgr.cli.types import fail
from pkgr.core.errors import PkgrError
from pkgr.core.package import add_to_manifest, init_package, remove_from_manifest, scan_package
from pkgr.utils.formatting import print_info, print_success

app = typer.Typer(
    help="Author packages.",
    no_args_is_help=True,
)

PackageDirOption = Annotated[
    Path,
    typer.Option("--dir", "-d", help="Package directory (default: current directory)."),
]


@app.command()
def new(
    name: Annotated[str, typer.Argument(help="Directory to create; also the package id.")],
) -> None:
    """Create a new package directory with default metadata."""
    target = Path(name)
    if target.exists():
        print_info(f"{target} already exists, initializing in place.")
    try:
        metadata = init_package(target)
    except PkgrError as e:
        raise fail(e) from e
    print_success(f"Created package {metadata.id} in {target}")


@app.command()
def init(package_dir: PackageDirOption = Path(".")) -> None:
    """Initialize metadata.json in an existing directory."""
    try:
        metadata = init_package(package_dir.absolute())
    except PkgrError as e:
        raise fail(e) from e
    print_success(f"Initialized package {metadata.id} {metadata.version}")


@app.command()
def add(
    paths: Annotated[list[Path], typer.Argument(help="Files or directories to add.")],
    package_dir: PackageDirOption = Path("."),
) -> None:
    """Hash files into the manifest."""
    try:
        added = [key for path in paths for key in add_to_manifest(path, package_dir)]
    except PkgrError as e:
        raise fail(e) from e
    for key in added:
        print_info(f"+ {key}")
    print_success(f"Added {len(added)} file(s) to the manifest")


@app.command()
def remove(
    paths: Annotated[list[Path], typer.Argument(help="Files or directories to drop.")],
    package_dir: PackageDirOption = Path("."),
) -> None:
    """Drop files from the manifest (the files are kept)."""
    try:
        removed = [key for path in paths for key in remove_from_manifest(path, package_dir)]
    except PkgrError as e:
        raise fail(e) from e
    for key in removed:
        print_info(f"- {key}")
    print_success(f"Removed {len(removed)} file(s) from the manifest")


@app.command()
def scan(package_dir: PackageDirOption = Path(".")) -> None:
    """Rebuild the manifest from every file in the package directory."""
    try:
        metadata = scan_package(package_dir)
    except PkgrError as e:
        raise fail(e) from e
    print_success(f"Manifest now lists {len(metadata.all_files)} file(s)")
