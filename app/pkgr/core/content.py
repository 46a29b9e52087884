"""Content hashing and file materialization.

Digests are lowercase SHA-256 hex strings computed from file content only,
so identical bytes always hash identically regardless of file metadata.
"""

import hashlib
import logging
import uuid
from pathlib import Path

from pkgr.core.errors import HashMismatchError, NotFoundError, PkgrError
from pkgr.core.transaction import Transaction

logger = logging.getLogger(__name__)

# Read size used when streaming files through the hasher
CHUNK_SIZE = 8192


def file_hash(path: Path) -> str:
    """Compute the SHA-256 digest of a file.

    Args:
        path: File to hash.

    Returns:
        64-character lowercase hex digest.

    Raises:
        NotFoundError: If the file does not exist.
        PkgrError: If the path is a directory or cannot be read.
    """
    if not path.exists():
        msg = f"File not found: {path}"
        raise NotFoundError(msg)
    if path.is_dir():
        msg = f"Path is a directory, not a file: {path}"
        raise PkgrError(msg)

    hasher = hashlib.sha256()
    try:
        with path.open("rb") as f:
            while chunk := f.read(CHUNK_SIZE):
                hasher.update(chunk)
    except OSError as e:
        msg = f"Cannot read {path}: {e}"
        raise PkgrError(msg) from e
    return hasher.hexdigest()


def bytes_hash(data: bytes) -> str:
    """Compute the SHA-256 digest of in-memory content."""
    return hashlib.sha256(data).hexdigest()


def verify_file(path: Path, expected: str) -> bool:
    """Check a file against an expected digest (case-insensitive).

    Args:
        path: File to verify.
        expected: Expected SHA-256 hex digest.

    Returns:
        True if the digests match.
    """
    return file_hash(path) == expected.strip().lower()


def check_file(path: Path, expected: str) -> None:
    """Verify a file and raise if it does not match.

    Raises:
        HashMismatchError: If the computed digest differs from ``expected``.
        NotFoundError: If the file does not exist.
    """
    actual = file_hash(path)
    if actual != expected.strip().lower():
        raise HashMismatchError(path, expected, actual)
    logger.debug("Verified %s", path)


def materialize(source: bytes | Path, dest: Path, tx: Transaction | None = None) -> None:
    """Write content to ``dest``, creating parent directories.

    Inside a transaction the write is journaled: a new file becomes a
    Create, and an existing file is replaced by staging the new bytes next
    to it and moving them over it, so rollback restores the old content.

    Args:
        source: Raw bytes, or a file whose content is copied.
        dest: Destination file path.
        tx: Active transaction to journal the write in, if any.

    Raises:
        NotFoundError: If ``source`` is a path that does not exist.
        PkgrError: If ``source`` is a directory or the parent cannot be created.
    """
    if isinstance(source, Path):
        if not source.exists():
            msg = f"Source file not found: {source}"
            raise NotFoundError(msg)
        if source.is_dir():
            msg = f"Source path is a directory, not a file: {source}"
            raise PkgrError(msg)
        data = source.read_bytes()
    else:
        data = source

    if tx is None:
        try:
            dest.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            msg = f"Cannot create directory {dest.parent}: {e}"
            raise PkgrError(msg) from e
        dest.write_bytes(data)
        return

    if not dest.exists():
        tx.safe_create(dest, data)
        return

    staging = dest.with_name(f".{dest.name}.{uuid.uuid4().hex[:8]}.tmp")
    tx.safe_create(staging, data)
    tx.safe_move(staging, dest)
