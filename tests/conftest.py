"""Pytest configuration and shared fixtures.

This module contains fixtures used across all test modules.
"""

import hashlib
import json
from collections.abc import Callable
from pathlib import Path

import pytest
from pkgr.core.repo import RepoManager
from pkgr.models.config import SourceConfig

HELLO_DIGEST = "315f5bdb76d078c43b8ac0064e4a0164612b1fce77c869345bfc94c75894edd3"

MakePackage = Callable[..., Path]


@pytest.fixture(autouse=True)
def isolated_xdg(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep the download cache and theme lookups inside the test directory."""
    monkeypatch.setenv("XDG_CACHE_HOME", str(tmp_path / "xdg-cache"))
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "xdg-config"))


@pytest.fixture
def hello_digest() -> str:
    """SHA-256 of b"Hello, world!"."""
    return HELLO_DIGEST


@pytest.fixture
def make_package(tmp_path: Path) -> MakePackage:
    """Factory writing a package directory with a correct manifest.

    Call as ``make_package(pkg_id, version, {"rel/path": b"content"})``.
    """

    def _make(
        pkg_id: str,
        version: str,
        files: dict[str, bytes] | None = None,
        name: str | None = None,
        root: Path | None = None,
    ) -> Path:
        files = files if files is not None else {"index.html": b"Hello, world!"}
        package_dir = (root or tmp_path / "build") / f"{pkg_id}-{version}"
        package_dir.mkdir(parents=True, exist_ok=True)
        for relative, content in files.items():
            target = package_dir / relative
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(content)
        metadata = {
            "id": pkg_id,
            "name": name or pkg_id,
            "version": version,
            "description": f"{pkg_id} test package",
            "author": "Tester",
            "type": "webapp",
            "category": "utility",
            "permissions": [],
            "entry": "index.html",
            "all_files": {
                relative: hashlib.sha256(content).hexdigest()
                for relative, content in files.items()
            },
        }
        (package_dir / "metadata.json").write_text(json.dumps(metadata, indent=2))
        return package_dir

    return _make


@pytest.fixture
def repo(tmp_path: Path) -> RepoManager:
    """An empty repository."""
    return RepoManager.init(tmp_path / "repo")


@pytest.fixture
def upstream(tmp_path: Path) -> RepoManager:
    """A second repository that serves as a local-path source."""
    return RepoManager.init(tmp_path / "upstream")


@pytest.fixture
def repo_with_source(repo: RepoManager, upstream: RepoManager) -> RepoManager:
    """``repo`` configured with ``upstream`` as source ``up``."""
    repo.config_manager.add_source(
        SourceConfig(id="up", name="Upstream", url=str(upstream.path), require_https=False)
    )
    repo.reload()
    return repo
