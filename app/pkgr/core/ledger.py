"""Per-package version history.

Each installed package keeps ``packages/<id>/versions.txt``: one version
per line, oldest first. Order is arrival order, not semantic version
order, and the last line is by definition the latest version.

Mutations accept an optional Transaction so that ledger changes made as
part of a package operation are undone together with its files.
"""

import logging
import os
from pathlib import Path
from tempfile import NamedTemporaryFile

from pkgr.core.content import materialize
from pkgr.core.transaction import Transaction

logger = logging.getLogger(__name__)


class VersionLedger:
    """Reads and writes the versions.txt ledgers under a packages directory.

    Attributes:
        packages_dir: The repository's ``packages/`` directory.
    """

    LEDGER_FILENAME = "versions.txt"

    def __init__(self, packages_dir: Path) -> None:
        self.packages_dir = packages_dir

    def ledger_path(self, package_id: str) -> Path:
        """Path to the ledger file of ``package_id``."""
        return self.packages_dir / package_id / self.LEDGER_FILENAME

    def versions(self, package_id: str) -> list[str]:
        """Read the ledger, oldest first.

        Returns:
            Versions in arrival order; empty if the ledger does not exist.
        """
        path = self.ledger_path(package_id)
        if not path.exists():
            return []

        versions: list[str] = []
        for line_num, line in enumerate(path.read_text(encoding="utf-8").splitlines(), start=1):
            version = line.strip()
            if not version:
                continue
            if version in versions:
                logger.warning(
                    "Skipping duplicate ledger line %d in %s: %s", line_num, path, version
                )
                continue
            versions.append(version)
        return versions

    def latest(self, package_id: str) -> str | None:
        """Latest (last appended) version, or None if nothing is recorded."""
        versions = self.versions(package_id)
        return versions[-1] if versions else None

    def contains(self, package_id: str, version: str) -> bool:
        return version in self.versions(package_id)

    def append(self, package_id: str, version: str, tx: Transaction | None = None) -> bool:
        """Record ``version`` as the newest version of ``package_id``.

        Appending a version that is already present is a no-op.

        Returns:
            True if the ledger changed.
        """
        versions = self.versions(package_id)
        if version in versions:
            return False
        versions.append(version)
        self._write(package_id, versions, tx)
        logger.debug("Ledger %s: appended %s", package_id, version)
        return True

    def remove(self, package_id: str, version: str, tx: Transaction | None = None) -> bool:
        """Drop ``version`` from the ledger.

        When the last version is removed the ledger file is deleted, so a
        package with no versions looks exactly like one never installed.

        Returns:
            True if the version was present.
        """
        versions = self.versions(package_id)
        if version not in versions:
            return False
        versions.remove(version)
        if versions:
            self._write(package_id, versions, tx)
        elif tx is not None:
            tx.safe_remove(self.ledger_path(package_id))
        else:
            self.ledger_path(package_id).unlink()
        logger.debug("Ledger %s: removed %s", package_id, version)
        return True

    def clear(self, package_id: str, tx: Transaction | None = None) -> None:
        """Delete the ledger of ``package_id`` if it exists."""
        path = self.ledger_path(package_id)
        if not path.exists():
            return
        if tx is not None:
            tx.safe_remove(path)
        else:
            path.unlink()

    def package_ids(self) -> list[str]:
        """Ids of every package that has a ledger, sorted."""
        if not self.packages_dir.is_dir():
            return []
        return sorted(
            entry.name
            for entry in self.packages_dir.iterdir()
            if (entry / self.LEDGER_FILENAME).is_file()
        )

    def _write(self, package_id: str, versions: list[str], tx: Transaction | None) -> None:
        """Replace the ledger file, journaled when ``tx`` is given, atomically otherwise."""
        path = self.ledger_path(package_id)
        content = "\n".join(versions) + "\n"
        if tx is not None:
            materialize(content.encode("utf-8"), path, tx)
            return

        path.parent.mkdir(parents=True, exist_ok=True)
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
        except OSError:
            if tmp_path is not None and tmp_path.exists():
                tmp_path.unlink()
            raise
