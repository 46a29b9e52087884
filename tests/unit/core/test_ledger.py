"""Unit tests for the per-package version ledger."""

from pathlib import Path

import pytest
from pkgr.core.ledger import VersionLedger
from pkgr.core.transaction import Transaction


@pytest.fixture
def ledger(tmp_path: Path) -> VersionLedger:
    """Ledger over an empty packages directory."""
    packages = tmp_path / "packages"
    packages.mkdir()
    return VersionLedger(packages)


class TestAppend:
    """Tests for VersionLedger.append."""

    def test_latest_is_last_appended(self, ledger: VersionLedger) -> None:
        """Latest follows arrival order."""
        ledger.append("pkg", "1.0.0")
        ledger.append("pkg", "1.1.0")

        assert ledger.latest("pkg") == "1.1.0"
        assert ledger.versions("pkg") == ["1.0.0", "1.1.0"]

    def test_arrival_order_not_semantic(self, ledger: VersionLedger) -> None:
        """A higher version added earlier is not latest."""
        ledger.append("pkg", "2.0.0")
        ledger.append("pkg", "1.0.0")

        assert ledger.latest("pkg") == "1.0.0"

    def test_duplicate_is_noop(self, ledger: VersionLedger) -> None:
        """Appending an existing version changes nothing."""
        assert ledger.append("pkg", "1.0.0") is True
        assert ledger.append("pkg", "1.0.0") is False

        assert ledger.ledger_path("pkg").read_text() == "1.0.0\n"

    def test_unknown_package(self, ledger: VersionLedger) -> None:
        """A package without ledger has no versions."""
        assert ledger.versions("nope") == []
        assert ledger.latest("nope") is None


class TestRemove:
    """Tests for VersionLedger.remove."""

    def test_latest_falls_back(self, ledger: VersionLedger) -> None:
        """Removing the latest makes the previous one latest."""
        ledger.append("pkg", "1.0.0")
        ledger.append("pkg", "1.1.0")

        assert ledger.remove("pkg", "1.1.0") is True
        assert ledger.latest("pkg") == "1.0.0"

    def test_last_version_deletes_file(self, ledger: VersionLedger) -> None:
        """An empty ledger does not exist on disk."""
        ledger.append("pkg", "1.0.0")

        ledger.remove("pkg", "1.0.0")

        assert not ledger.ledger_path("pkg").exists()
        assert ledger.package_ids() == []

    def test_absent_version(self, ledger: VersionLedger) -> None:
        assert ledger.remove("pkg", "9.9.9") is False


class TestReading:
    """Tests for reading hand-edited ledgers."""

    def test_skips_blank_and_duplicate_lines(self, ledger: VersionLedger) -> None:
        """Blank lines and repeats are ignored."""
        path = ledger.ledger_path("pkg")
        path.parent.mkdir()
        path.write_text("1.0.0\n\n1.1.0\n1.0.0\n")

        assert ledger.versions("pkg") == ["1.0.0", "1.1.0"]

    def test_package_ids_sorted(self, ledger: VersionLedger) -> None:
        ledger.append("zeta", "1")
        ledger.append("alpha", "1")
        (ledger.packages_dir / "no-ledger").mkdir()

        assert ledger.package_ids() == ["alpha", "zeta"]


class TestJournaled:
    """Tests for ledger changes made inside a transaction."""

    def test_rollback_restores_previous_ledger(self, ledger: VersionLedger) -> None:
        """An append inside a rolled back transaction disappears."""
        ledger.append("pkg", "1.0.0")
        tx = Transaction.begin()

        ledger.append("pkg", "1.1.0", tx)
        assert ledger.latest("pkg") == "1.1.0"

        tx.rollback()
        assert ledger.versions("pkg") == ["1.0.0"]

    def test_rollback_restores_deleted_ledger(self, ledger: VersionLedger) -> None:
        """Removing the last version is undone too."""
        ledger.append("pkg", "1.0.0")
        tx = Transaction.begin()

        ledger.remove("pkg", "1.0.0", tx)
        assert not ledger.ledger_path("pkg").exists()

        tx.rollback()
        assert ledger.versions("pkg") == ["1.0.0"]
