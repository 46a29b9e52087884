"""Exception hierarchy for pkgr.

Every error raised by the repository engine derives from PkgrError so
that callers (the CLI in particular) can handle them uniformly.
"""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from pkgr.core.transaction import Operation


class PkgrError(Exception):
    """Base exception for all pkgr errors."""


class NotFoundError(PkgrError):
    """Raised when a path, package, version or source does not exist."""


class AlreadyExistsError(PkgrError):
    """Raised when a create target is already present."""


class HashMismatchError(PkgrError):
    """Raised when file content does not match its expected digest.

    Attributes:
        path: File whose content was checked.
        expected: Digest recorded in the manifest.
        actual: Digest computed from the file content.
    """

    def __init__(self, path: Path | str, expected: str, actual: str) -> None:
        self.path = Path(path)
        self.expected = expected
        self.actual = actual
        super().__init__(f"Hash mismatch for {path} (expected: {expected}, actual: {actual})")


class InvalidManifestError(PkgrError):
    """Raised when a metadata or index document is missing, malformed or empty."""


class ConfigInvalidError(PkgrError):
    """Raised when the repository configuration fails validation."""


class NetworkError(PkgrError):
    """Raised when a transport request fails or returns a non-2xx status.

    Attributes:
        url: URL that was requested.
    """

    def __init__(self, url: str, reason: str) -> None:
        self.url = url
        super().__init__(f"Failed to fetch {url}: {reason}")


class TransactionClosedError(PkgrError):
    """Raised when a committed or rolled back transaction is used again."""


class TransactionRollbackError(PkgrError):
    """Raised when undoing a transaction fails part-way.

    The repository is left in an inconsistent state and needs manual repair.

    Attributes:
        failed: Operation whose inversion raised.
        remaining: Operations that were never inverted (oldest first).
    """

    def __init__(
        self,
        failed: Operation,
        remaining: list[Operation],
        cause: BaseException,
    ) -> None:
        self.failed = failed
        self.remaining = remaining
        super().__init__(
            f"Rollback failed while undoing {failed.describe()}: {cause} "
            f"({len(remaining)} operation(s) left unreverted)"
        )


class SourceError(PkgrError):
    """Raised when a source's catalog cannot be fetched or parsed.

    Attributes:
        source_id: Id of the failing source.
    """

    def __init__(self, source_id: str, cause: BaseException) -> None:
        self.source_id = source_id
        super().__init__(f"Source '{source_id}': {cause}")
