"""Package metadata I/O and authoring.

Loads and saves ``metadata.json`` and maintains its ``all_files``
manifest while a package is being authored: creating the initial
metadata, hashing files or whole directories into the manifest, and
rebuilding the manifest from the directory tree.
"""

import json
import logging
import os
from pathlib import Path

from pydantic import ValidationError

from pkgr.core.content import file_hash
from pkgr.core.errors import InvalidManifestError, NotFoundError, PkgrError
from pkgr.core.paths import METADATA_FILENAME
from pkgr.models.metadata import PackageMetadata

logger = logging.getLogger(__name__)

DEFAULT_VERSION = "0.0.0"
DEFAULT_TYPE = "webapp"
DEFAULT_CATEGORY = "utility"
DEFAULT_ENTRY = "index.html"


def parse_metadata(data: bytes | str, origin: str = "metadata.json") -> PackageMetadata:
    """Parse metadata.json content.

    Args:
        data: Raw JSON content.
        origin: Where the content came from, for error messages.

    Raises:
        InvalidManifestError: If the JSON is malformed or fails validation.
    """
    try:
        raw = json.loads(data)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        msg = f"Invalid JSON in {origin}: {e}"
        raise InvalidManifestError(msg) from e

    try:
        return PackageMetadata.model_validate(raw)
    except ValidationError as e:
        msg = f"Invalid metadata in {origin}: {e}"
        raise InvalidManifestError(msg) from e


def load_metadata(path: Path) -> PackageMetadata:
    """Load metadata.json from disk.

    Raises:
        NotFoundError: If the file does not exist.
        InvalidManifestError: If the content is invalid.
    """
    if not path.is_file():
        msg = f"Metadata not found: {path}"
        raise NotFoundError(msg)
    return parse_metadata(path.read_bytes(), str(path))


def metadata_to_bytes(metadata: PackageMetadata) -> bytes:
    """Serialize metadata as pretty-printed JSON."""
    return (metadata.model_dump_json(indent=2) + "\n").encode("utf-8")


def save_metadata(metadata: PackageMetadata, path: Path) -> None:
    try:
        path.write_bytes(metadata_to_bytes(metadata))
    except OSError as e:
        msg = f"Failed to write metadata {path}: {e}"
        raise PkgrError(msg) from e


def init_package(package_dir: Path) -> PackageMetadata:
    """Initialize a package directory.

    Creates the directory, a default metadata.json (named after the
    directory) and a .gitignore. Existing files are left untouched.

    Returns:
        The package's metadata (existing or newly created).
    """
    package_dir.mkdir(parents=True, exist_ok=True)
    metadata_path = package_dir / METADATA_FILENAME

    if metadata_path.exists():
        metadata = load_metadata(metadata_path)
    else:
        metadata = PackageMetadata(
            id=package_dir.name,
            name=package_dir.name,
            version=DEFAULT_VERSION,
            description="A web application",
            author="Unknown",
            type=DEFAULT_TYPE,
            category=DEFAULT_CATEGORY,
            entry=DEFAULT_ENTRY,
        )
        save_metadata(metadata, metadata_path)
        logger.info("Created %s", metadata_path)

    gitignore = package_dir / ".gitignore"
    if not gitignore.exists():
        gitignore.write_text("/target/\n", encoding="utf-8")

    return metadata


def _relative_key(path: Path, root: Path) -> str:
    """Manifest key of ``path`` inside ``root``.

    Raises:
        InvalidManifestError: If ``path`` lies outside ``root``.
    """
    try:
        relative = path.resolve().relative_to(root.resolve())
    except ValueError as e:
        msg = f"Path {path} is not inside package directory {root}"
        raise InvalidManifestError(msg) from e
    return relative.as_posix()


def _is_hidden(path: Path, root: Path) -> bool:
    return any(part.startswith(".") for part in path.relative_to(root).parts)


def _package_files(directory: Path, root: Path) -> list[Path]:
    """Files under ``directory``, skipping dot-entries and the root metadata.json."""
    files: list[Path] = []
    for dirpath, dirnames, filenames in os.walk(directory):
        dirnames[:] = sorted(d for d in dirnames if not d.startswith("."))
        for name in sorted(filenames):
            file_path = Path(dirpath) / name
            if _is_hidden(file_path, root):
                continue
            if file_path.resolve() == (root / METADATA_FILENAME).resolve():
                continue
            files.append(file_path)
    return files


def add_to_manifest(path: Path, package_dir: Path) -> list[str]:
    """Hash a file, or every file under a directory, into the manifest.

    Args:
        path: File or directory inside the package.
        package_dir: Package root containing metadata.json.

    Returns:
        Manifest keys that were added or updated.

    Raises:
        NotFoundError: If ``path`` does not exist.
        InvalidManifestError: If ``path`` is outside the package.
    """
    metadata_path = package_dir / METADATA_FILENAME
    metadata = load_metadata(metadata_path)

    if path.is_file():
        files = [path]
    elif path.is_dir():
        files = _package_files(path, package_dir)
    else:
        msg = f"Path not found: {path}"
        raise NotFoundError(msg)

    added: list[str] = []
    for file_path in files:
        key = _relative_key(file_path, package_dir)
        if key == METADATA_FILENAME:
            continue
        metadata.add_file(key, file_hash(file_path))
        added.append(key)

    save_metadata(metadata, metadata_path)
    logger.info("Added %d file(s) to %s", len(added), metadata_path)
    return added


def remove_from_manifest(path: Path, package_dir: Path) -> list[str]:
    """Drop a file, or every manifest entry under a directory, from the manifest.

    The files themselves are not deleted.

    Returns:
        Manifest keys that were removed.
    """
    metadata_path = package_dir / METADATA_FILENAME
    metadata = load_metadata(metadata_path)

    key = _relative_key(path, package_dir)
    if path.is_dir():
        prefix = "" if key == "." else f"{key}/"
        doomed = [k for k in metadata.all_files if k.startswith(prefix)]
    else:
        doomed = [key] if metadata.has_file(key) else []

    for k in doomed:
        metadata.remove_file(k)

    save_metadata(metadata, metadata_path)
    return doomed


def scan_package(package_dir: Path) -> PackageMetadata:
    """Rebuild the manifest from every file in the package tree.

    Returns:
        The updated metadata, also written back to metadata.json.
    """
    metadata_path = package_dir / METADATA_FILENAME
    metadata = load_metadata(metadata_path)
    metadata.all_files = {
        _relative_key(file_path, package_dir): file_hash(file_path)
        for file_path in _package_files(package_dir, package_dir)
    }
    save_metadata(metadata, metadata_path)
    logger.info("Scanned %d file(s) into %s", len(metadata.all_files), metadata_path)
    return metadata
