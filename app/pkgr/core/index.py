"""Repository index persistence.

Reads and atomically writes a repository's index.json.
"""

import json
import os
from pathlib import Path
from tempfile import NamedTemporaryFile

from pydantic import ValidationError

from pkgr.core.content import materialize
from pkgr.core.errors import InvalidManifestError, NotFoundError, PkgrError
from pkgr.core.transaction import Transaction
from pkgr.models.catalog import RepositoryIndex


def load_index(path: Path) -> RepositoryIndex:
    """Load and validate index.json.

    Raises:
        NotFoundError: If the file does not exist.
        InvalidManifestError: If the JSON is malformed or fails validation.
    """
    if not path.exists():
        msg = f"Index not found: {path}"
        raise NotFoundError(msg)

    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        msg = f"Invalid JSON in {path}: {e}"
        raise InvalidManifestError(msg) from e
    except OSError as e:
        msg = f"Failed to read index: {e}"
        raise PkgrError(msg) from e

    try:
        return RepositoryIndex.model_validate(data)
    except ValidationError as e:
        msg = f"Invalid index content in {path}: {e}"
        raise InvalidManifestError(msg) from e


def load_index_or_empty(path: Path) -> RepositoryIndex:
    """Load index.json, or return an empty index if it does not exist yet."""
    if not path.exists():
        return RepositoryIndex()
    return load_index(path)


def save_index(index: RepositoryIndex, path: Path, tx: Transaction | None = None) -> Path:
    """Write index.json.

    Inside a transaction the write is journaled so rollback restores the
    previous index; otherwise the file is replaced atomically.

    Raises:
        PkgrError: If the file cannot be written.
    """
    content = index.model_dump_json(indent=2) + "\n"
    if tx is not None:
        materialize(content.encode("utf-8"), path, tx)
        return path

    tmp_path: Path | None = None
    try:
        with NamedTemporaryFile(
            mode="w",
            encoding="utf-8",
            dir=path.parent,
            delete=False,
            suffix=".tmp",
        ) as f:
            tmp_path = Path(f.name)
            f.write(content)
        os.replace(tmp_path, path)
    except OSError as e:
        if tmp_path is not None and tmp_path.exists():
            tmp_path.unlink()
        msg = f"Failed to write index: {e}"
        raise PkgrError(msg) from e
    return path
