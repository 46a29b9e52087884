"""Journaled filesystem mutations with full rollback.

A Transaction records every primitive filesystem change made through it
(create, remove, move, mkdir, rmdir) together with whatever is needed to
invert it. Rolling back replays the journal newest-first and restores the
pre-transaction bytes of every touched path. Committing discards the
journal and leaves the changes in place.

Use the ``transaction()`` context manager rather than calling ``commit``
and ``rollback`` by hand:

    with transaction() as tx:
        tx.safe_create(path, data)
        ...
"""

from __future__ import annotations

import logging
import os
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import assert_never

from pkgr.core.errors import (
    AlreadyExistsError,
    NotFoundError,
    PkgrError,
    TransactionClosedError,
    TransactionRollbackError,
)

logger = logging.getLogger(__name__)


class TransactionState(str, Enum):
    """Lifecycle state of a transaction.

    Attributes:
        ACTIVE: Accepting operations.
        COMMITTED: Journal discarded, changes kept (terminal).
        ROLLED_BACK: Journal replayed in reverse and discarded (terminal).
    """

    ACTIVE = "active"
    COMMITTED = "committed"
    ROLLED_BACK = "rolled_back"


@dataclass(frozen=True, slots=True)
class Create:
    """A file that did not exist before and was written."""

    path: Path

    def describe(self) -> str:
        return f"create {self.path}"


@dataclass(frozen=True, slots=True)
class Remove:
    """A file that was deleted, with its content kept for restoration."""

    path: Path
    original: bytes = field(repr=False)

    def describe(self) -> str:
        return f"remove {self.path}"


@dataclass(frozen=True, slots=True)
class Move:
    """A file renamed onto ``dest``, which may have held a file before."""

    source: Path
    dest: Path
    original_dest: bytes | None = field(default=None, repr=False)

    def describe(self) -> str:
        return f"move {self.source} -> {self.dest}"


@dataclass(frozen=True, slots=True)
class MakeDir:
    """A directory that did not exist before and was created."""

    path: Path

    def describe(self) -> str:
        return f"mkdir {self.path}"


@dataclass(frozen=True, slots=True)
class RemoveDir:
    """An empty directory that was removed."""

    path: Path

    def describe(self) -> str:
        return f"rmdir {self.path}"


Operation = Create | Remove | Move | MakeDir | RemoveDir


class Transaction:
    """Journal of filesystem operations performed since ``begin``.

    Single-use: once committed or rolled back, every further call raises
    TransactionClosedError. Not thread-safe; one writer per repository.
    """

    def __init__(self) -> None:
        self._log: list[Operation] = []
        self._state = TransactionState.ACTIVE

    @classmethod
    def begin(cls) -> Transaction:
        """Start a new, empty transaction."""
        return cls()

    @property
    def state(self) -> TransactionState:
        return self._state

    @property
    def is_active(self) -> bool:
        return self._state is TransactionState.ACTIVE

    @property
    def operations(self) -> tuple[Operation, ...]:
        """Journaled operations, oldest first."""
        return tuple(self._log)

    def __len__(self) -> int:
        return len(self._log)

    def _ensure_active(self) -> None:
        if not self.is_active:
            msg = f"Transaction is already {self._state.value}"
            raise TransactionClosedError(msg)

    def _record(self, op: Operation) -> None:
        logger.debug("Journal: %s", op.describe())
        self._log.append(op)

    # -------------------------------------------------------------------------
    # Journaled primitives
    # -------------------------------------------------------------------------

    def safe_mkdir(self, path: Path) -> None:
        """Create ``path`` and any missing ancestors, journaling each one.

        Raises:
            AlreadyExistsError: If ``path`` or an ancestor exists as a non-directory.
        """
        self._ensure_active()
        missing: list[Path] = []
        current = path
        while not current.exists():
            missing.append(current)
            if current.parent == current:
                break
            current = current.parent
        if not current.is_dir():
            msg = f"Not a directory: {current}"
            raise AlreadyExistsError(msg)

        for directory in reversed(missing):
            directory.mkdir()
            self._record(MakeDir(directory))

    def safe_create(self, path: Path, content: bytes) -> None:
        """Write a new file. Never overwrites.

        Raises:
            AlreadyExistsError: If ``path`` already exists.
        """
        self._ensure_active()
        if path.exists() or path.is_symlink():
            msg = f"File already exists: {path}"
            raise AlreadyExistsError(msg)

        self.safe_mkdir(path.parent)
        # Journal first so a partial write is still cleaned up on rollback
        self._record(Create(path))
        path.write_bytes(content)

    def safe_remove(self, path: Path) -> None:
        """Delete a file, keeping its bytes for rollback.

        Raises:
            NotFoundError: If ``path`` does not exist.
            PkgrError: If ``path`` is a directory.
        """
        self._ensure_active()
        if not path.exists():
            msg = f"File not found: {path}"
            raise NotFoundError(msg)
        if path.is_dir():
            msg = f"Path is a directory, not a file: {path}"
            raise PkgrError(msg)

        original = path.read_bytes()
        path.unlink()
        self._record(Remove(path, original))

    def safe_move(self, source: Path, dest: Path) -> None:
        """Rename ``source`` onto ``dest``, capturing any overwritten file.

        Raises:
            NotFoundError: If ``source`` does not exist.
            PkgrError: If ``source`` or ``dest`` is a directory.
        """
        self._ensure_active()
        if not source.exists():
            msg = f"Source file not found: {source}"
            raise NotFoundError(msg)
        if source.is_dir():
            msg = f"Source path is a directory, cannot move: {source}"
            raise PkgrError(msg)

        original_dest: bytes | None = None
        if dest.exists():
            if dest.is_dir():
                msg = f"Destination path is a directory: {dest}"
                raise PkgrError(msg)
            original_dest = dest.read_bytes()

        self.safe_mkdir(dest.parent)
        os.replace(source, dest)
        self._record(Move(source, dest, original_dest))

    def safe_rmdir(self, path: Path) -> None:
        """Remove an empty directory.

        Raises:
            NotFoundError: If ``path`` is not an existing directory.
            PkgrError: If the directory is not empty.
        """
        self._ensure_active()
        if not path.is_dir():
            msg = f"Directory not found: {path}"
            raise NotFoundError(msg)
        if any(path.iterdir()):
            msg = f"Directory is not empty: {path}"
            raise PkgrError(msg)

        path.rmdir()
        self._record(RemoveDir(path))

    def remove_tree(self, root: Path) -> None:
        """Remove every file and directory under ``root``, then ``root`` itself.

        Files are removed through ``safe_remove`` and directories through
        ``safe_rmdir``, deepest first, so the whole tree is restorable.
        """
        self._ensure_active()
        if not root.is_dir():
            msg = f"Directory not found: {root}"
            raise NotFoundError(msg)

        for dirpath, dirnames, filenames in os.walk(root, topdown=False):
            current = Path(dirpath)
            for name in sorted(filenames):
                self.safe_remove(current / name)
            for name in sorted(dirnames):
                child = current / name
                if child.is_symlink():
                    self.safe_remove(child)
                else:
                    self.safe_rmdir(child)
        self.safe_rmdir(root)

    # -------------------------------------------------------------------------
    # Termination
    # -------------------------------------------------------------------------

    def commit(self) -> None:
        """Discard the journal. The filesystem is not touched."""
        self._ensure_active()
        logger.debug("Committing transaction (%d operation(s))", len(self._log))
        self._log.clear()
        self._state = TransactionState.COMMITTED

    def rollback(self) -> None:
        """Undo every journaled operation, newest first.

        Raises:
            TransactionRollbackError: If an inversion fails. The remaining
                operations are not attempted and the transaction is closed.
        """
        self._ensure_active()
        logger.info("Rolling back %d operation(s)", len(self._log))
        while self._log:
            op = self._log.pop()
            try:
                _undo(op)
            except OSError as e:
                remaining = list(self._log)
                self._log.clear()
                self._state = TransactionState.ROLLED_BACK
                logger.error("Rollback failed at %s: %s", op.describe(), e)
                raise TransactionRollbackError(op, remaining, e) from e
        self._state = TransactionState.ROLLED_BACK


def _undo(op: Operation) -> None:
    """Invert a single journaled operation."""
    match op:
        case Create(path=path):
            if path.exists() or path.is_symlink():
                path.unlink()
            else:
                logger.warning("Rollback: created file already absent: %s", path)
        case Remove(path=path, original=original):
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(original)
        case Move(source=source, dest=dest, original_dest=original_dest):
            if dest.exists():
                source.parent.mkdir(parents=True, exist_ok=True)
                os.replace(dest, source)
            else:
                logger.warning("Rollback: moved file already absent: %s", dest)
            if original_dest is not None:
                dest.write_bytes(original_dest)
        case MakeDir(path=path):
            if not path.is_dir():
                logger.warning("Rollback: created directory already absent: %s", path)
            elif any(path.iterdir()):
                logger.warning("Rollback: leaving non-empty directory in place: %s", path)
            else:
                path.rmdir()
        case RemoveDir(path=path):
            path.mkdir(parents=True, exist_ok=True)
        case _:
            assert_never(op)


@contextmanager
def transaction() -> Iterator[Transaction]:
    """Run a block inside a transaction scope.

    Commits when the block exits normally. On any exception the journal is
    rolled back and the original exception propagates; if the rollback
    itself fails, TransactionRollbackError is raised chained to it.

    Yields:
        The active Transaction.
    """
    tx = Transaction.begin()
    try:
        yield tx
    except BaseException as e:
        if tx.is_active:
            try:
                tx.rollback()
            except TransactionRollbackError as rollback_error:
                raise rollback_error from e
        raise
    else:
        if tx.is_active:
            tx.commit()
