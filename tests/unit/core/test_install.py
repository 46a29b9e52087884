"""Unit tests for installing from sources.

Covers refresh, install, upgrade and sync. Sources are either a second
on-disk repository used as an absolute-path source or an HTTPS source
served through httpx.MockTransport.
"""

import hashlib
import json
from collections.abc import Callable
from pathlib import Path

import httpx
import pytest
from pkgr.core.errors import (
    HashMismatchError,
    InvalidManifestError,
    NetworkError,
    NotFoundError,
    SourceError,
)
from pkgr.core.net import HttpFetcher
from pkgr.core.repo import RepoManager
from pkgr.models.config import SourceConfig

MakePackage = Callable[..., Path]


def _snapshot(root: Path) -> dict[str, bytes]:
    return {
        str(p.relative_to(root)): p.read_bytes() for p in sorted(root.rglob("*")) if p.is_file()
    }


class TestRefresh:
    """Tests for RepoManager.refresh."""

    def test_catalog_from_local_source(
        self, repo_with_source: RepoManager, upstream: RepoManager, make_package: MakePackage
    ) -> None:
        """Relative locations are rooted at the source path."""
        upstream.add(make_package("app", "1.0"))

        merged = repo_with_source.refresh()

        assert [e.id for e in merged] == ["app"]
        assert merged[0].location == f"{upstream.path}/packages/app/1.0"
        assert repo_with_source.find_available("app") == merged[0]

    def test_failed_refresh_keeps_index(
        self, repo_with_source: RepoManager, upstream: RepoManager
    ) -> None:
        (upstream.path / "index.json").write_text("not json")
        before = (repo_with_source.path / "index.json").read_bytes()

        with pytest.raises(SourceError):
            repo_with_source.refresh()

        assert (repo_with_source.path / "index.json").read_bytes() == before


class TestInstall:
    """Tests for RepoManager.install."""

    def test_install_latest(
        self, repo_with_source: RepoManager, upstream: RepoManager, make_package: MakePackage
    ) -> None:
        upstream.add(make_package("app", "1.0", {"index.html": b"<h1>", "js/main.js": b"go()"}))
        repo_with_source.refresh()

        entry = repo_with_source.install("app")

        target = repo_with_source.path / "packages" / "app" / "1.0"
        assert (target / "index.html").read_bytes() == b"<h1>"
        assert (target / "js" / "main.js").read_bytes() == b"go()"
        assert (target / "metadata.json").is_file()
        assert entry.latest_version == "1.0"
        assert entry.location == "./packages/app/1.0"
        assert repo_with_source.ledger.versions("app") == ["1.0"]
        cached = repo_with_source.cache_path / "app" / "1.0" / "metadata.json"
        assert cached.read_bytes() == (target / "metadata.json").read_bytes()

    def test_install_explicit_older_version(
        self, repo_with_source: RepoManager, upstream: RepoManager, make_package: MakePackage
    ) -> None:
        """A three-part spec installs a version other than the advertised latest."""
        upstream.add(make_package("app", "1.0", {"v.txt": b"one"}))
        upstream.add(make_package("app", "2.0", {"v.txt": b"two"}))
        repo_with_source.refresh()

        repo_with_source.install("up:app:1.0")

        assert (repo_with_source.path / "packages" / "app" / "1.0" / "v.txt").read_bytes() == b"one"

    def test_version_argument(
        self, repo_with_source: RepoManager, upstream: RepoManager, make_package: MakePackage
    ) -> None:
        upstream.add(make_package("app", "1.0"))
        upstream.add(make_package("app", "2.0"))
        repo_with_source.refresh()

        entry = repo_with_source.install("up:app", version="1.0")

        assert entry.latest_version == "1.0"

    def test_hash_mismatch_rolls_back(
        self, repo_with_source: RepoManager, upstream: RepoManager, make_package: MakePackage
    ) -> None:
        """A tampered download leaves the repository as it was."""
        upstream.add(make_package("app", "1.0", {"a.txt": b"a", "b.txt": b"b"}))
        (upstream.path / "packages" / "app" / "1.0" / "b.txt").write_bytes(b"evil")
        repo_with_source.refresh()
        before = _snapshot(repo_with_source.path)

        with pytest.raises(HashMismatchError):
            repo_with_source.install("app")

        assert _snapshot(repo_with_source.path) == before
        assert not (repo_with_source.path / "packages" / "app").exists()

    def test_unknown_package(self, repo_with_source: RepoManager) -> None:
        repo_with_source.refresh()

        with pytest.raises(NotFoundError, match="not available"):
            repo_with_source.install("ghost")

    def test_disabled_named_source(
        self, repo_with_source: RepoManager, upstream: RepoManager, make_package: MakePackage
    ) -> None:
        upstream.add(make_package("app", "1.0"))
        repo_with_source.refresh()
        repo_with_source.config_manager.disable_source("up")
        repo_with_source.reload()

        with pytest.raises(NotFoundError, match="disabled"):
            repo_with_source.install("up:app")

    def test_unknown_named_source(
        self, repo_with_source: RepoManager, upstream: RepoManager, make_package: MakePackage
    ) -> None:
        upstream.add(make_package("app", "1.0"))
        repo_with_source.refresh()

        with pytest.raises(NotFoundError, match="Source not found"):
            repo_with_source.install("nope:app")


def _remote_routes(files: dict[str, bytes], *, version: str = "1.0") -> dict[str, bytes]:
    base = "https://pkgs.example/repo"
    metadata = {
        "id": "remote.app",
        "name": "Remote App",
        "version": version,
        "all_files": {name: hashlib.sha256(data).hexdigest() for name, data in files.items()},
    }
    catalog = [
        {
            "id": "remote.app",
            "name": "Remote App",
            "latest_version": "1.0",
            "location": "./packages/remote.app/1.0",
        }
    ]
    routes = {
        f"{base}/index.json": json.dumps(catalog).encode(),
        f"{base}/packages/remote.app/1.0/metadata.json": json.dumps(metadata).encode(),
    }
    for name, data in files.items():
        routes[f"{base}/packages/remote.app/1.0/{name}"] = data
    return routes


def _remote_repo(tmp_path: Path, routes: dict[str, bytes]) -> RepoManager:
    def handler(request: httpx.Request) -> httpx.Response:
        body = routes.get(str(request.url))
        if body is None:
            return httpx.Response(404)
        return httpx.Response(200, content=body)

    fetcher = HttpFetcher(transport=httpx.MockTransport(handler))
    repo = RepoManager.init(tmp_path / "client", fetcher=fetcher)
    repo.config_manager.add_source(SourceConfig(id="web", url="https://pkgs.example/repo/"))
    repo.reload()
    return repo


class TestRemoteInstall:
    """Tests against an HTTPS source publishing a flat catalog."""

    def test_install_over_http(self, tmp_path: Path) -> None:
        repo = _remote_repo(tmp_path, _remote_routes({"index.html": b"<p>remote</p>"}))

        repo.refresh()
        entry = repo.install("remote.app")

        assert entry.name == "Remote App"
        installed = repo.path / "packages" / "remote.app" / "1.0" / "index.html"
        assert installed.read_bytes() == b"<p>remote</p>"

    def test_missing_file_rolls_back(self, tmp_path: Path) -> None:
        """A 404 part-way through removes the files already downloaded."""
        routes = _remote_routes({"a.txt": b"a", "b.txt": b"b"})
        del routes["https://pkgs.example/repo/packages/remote.app/1.0/b.txt"]
        repo = _remote_repo(tmp_path, routes)
        repo.refresh()
        before = _snapshot(repo.path)

        with pytest.raises(NetworkError, match="HTTP 404"):
            repo.install("remote.app")

        assert _snapshot(repo.path) == before

    def test_metadata_for_other_version_rejected(self, tmp_path: Path) -> None:
        repo = _remote_repo(tmp_path, _remote_routes({"a.txt": b"a"}, version="9.9"))
        repo.refresh()

        with pytest.raises(InvalidManifestError, match="expected remote.app 1.0"):
            repo.install("remote.app")


class TestUpgrade:
    """Tests for RepoManager.upgrade and upgrade_all."""

    def test_upgrade_to_catalog_latest(
        self, repo_with_source: RepoManager, upstream: RepoManager, make_package: MakePackage
    ) -> None:
        upstream.add(make_package("app", "1.0"))
        repo_with_source.refresh()
        repo_with_source.install("app")
        upstream.add(make_package("app", "1.1"))
        repo_with_source.refresh()

        result = repo_with_source.upgrade("app")

        assert result == ("1.0", "1.1")
        assert repo_with_source.ledger.versions("app") == ["1.0", "1.1"]
        assert repo_with_source.list_installed()[0].latest_version == "1.1"

    def test_up_to_date_is_noop(
        self, repo_with_source: RepoManager, upstream: RepoManager, make_package: MakePackage
    ) -> None:
        upstream.add(make_package("app", "1.0"))
        repo_with_source.refresh()
        repo_with_source.install("app")

        assert repo_with_source.upgrade("app") is None

    def test_not_installed(self, repo_with_source: RepoManager) -> None:
        with pytest.raises(NotFoundError, match="not installed"):
            repo_with_source.upgrade("app")

    def test_upgrade_all_skips_local_only(
        self, repo_with_source: RepoManager, upstream: RepoManager, make_package: MakePackage
    ) -> None:
        """Packages missing from the catalog are left alone."""
        upstream.add(make_package("app", "1.0"))
        repo_with_source.refresh()
        repo_with_source.install("app")
        repo_with_source.add(make_package("local.only", "0.1"))
        upstream.add(make_package("app", "2.0"))
        repo_with_source.refresh()

        upgraded = repo_with_source.upgrade_all()

        assert upgraded == [("app", "1.0", "2.0")]


class TestSync:
    """Tests for RepoManager.sync."""

    def test_incremental_replaces_catalog_only(
        self, repo_with_source: RepoManager, upstream: RepoManager, make_package: MakePackage
    ) -> None:
        repo_with_source.add(make_package("local.only", "0.1"))
        upstream.add(make_package("app", "1.0"))

        entries = repo_with_source.sync("up")

        assert [e.id for e in entries] == ["app"]
        assert repo_with_source.list_available() == entries
        assert [e.id for e in repo_with_source.list_installed()] == ["local.only"]

    def test_mirror_replaces_packages(
        self, repo_with_source: RepoManager, upstream: RepoManager, make_package: MakePackage
    ) -> None:
        """Mirror mode drops local packages and downloads the source's."""
        repo_with_source.add(make_package("local.only", "0.1"))
        upstream.add(make_package("app", "1.0", {"a.txt": b"a"}))
        upstream.add(make_package("tool", "3.0", {"t/b.txt": b"b"}))

        repo_with_source.sync("up", mirror=True)

        packages = repo_with_source.path / "packages"
        assert sorted(p.name for p in packages.iterdir()) == ["app", "tool"]
        assert (packages / "tool" / "3.0" / "t" / "b.txt").read_bytes() == b"b"
        assert repo_with_source.ledger.versions("tool") == ["3.0"]
        assert [e.id for e in repo_with_source.list_installed()] == ["app", "tool"]

    def test_disabled_source_is_noop(
        self, repo_with_source: RepoManager, upstream: RepoManager, make_package: MakePackage
    ) -> None:
        repo_with_source.add(make_package("local.only", "0.1"))
        upstream.add(make_package("app", "1.0"))
        repo_with_source.config_manager.disable_source("up")
        repo_with_source.reload()

        assert repo_with_source.sync("up", mirror=True) == []
        assert [e.id for e in repo_with_source.list_installed()] == ["local.only"]

    def test_unknown_source(self, repo: RepoManager) -> None:
        with pytest.raises(NotFoundError):
            repo.sync("ghost")


def _edit_catalog(upstream: RepoManager, **changes: str) -> None:
    index_path = upstream.path / "index.json"
    data = json.loads(index_path.read_text())
    data["packages"][0].update(changes)
    index_path.write_text(json.dumps(data))


class TestMirrorVerification:
    """Mirror sync refuses catalogs that disagree with what they serve."""

    def test_escaping_id_rejected_before_anything_is_deleted(
        self,
        repo_with_source: RepoManager,
        upstream: RepoManager,
        make_package: MakePackage,
        tmp_path: Path,
    ) -> None:
        repo_with_source.add(make_package("local.only", "0.1"))
        upstream.add(make_package("app", "1.0"))
        _edit_catalog(upstream, id="../../escaped")

        with pytest.raises(SourceError):
            repo_with_source.sync("up", mirror=True)

        assert not (tmp_path / "escaped").exists()
        assert [e.id for e in repo_with_source.list_installed()] == ["local.only"]

    def test_version_disagreeing_with_metadata(
        self, repo_with_source: RepoManager, upstream: RepoManager, make_package: MakePackage
    ) -> None:
        """A catalog advertising 9.9 for 1.0 content is not filed under 9.9."""
        upstream.add(make_package("app", "1.0"))
        _edit_catalog(upstream, latest_version="9.9")

        with pytest.raises(InvalidManifestError, match="expected app 9.9"):
            repo_with_source.sync("up", mirror=True)

        assert not (repo_with_source.path / "packages" / "app").exists()
        assert repo_with_source.ledger.versions("app") == []

    def test_hash_mismatch_leaves_only_complete_packages(
        self, repo_with_source: RepoManager, upstream: RepoManager, make_package: MakePackage
    ) -> None:
        """Mirroring stops at the bad package; packages before it stay installed."""
        upstream.add(make_package("app", "1.0", {"a.txt": b"a"}))
        upstream.add(make_package("tool", "3.0", {"t/b.txt": b"b", "t/c.txt": b"c"}))
        (upstream.path / "packages" / "tool" / "3.0" / "t" / "c.txt").write_bytes(b"tampered")

        with pytest.raises(HashMismatchError):
            repo_with_source.sync("up", mirror=True)

        packages = repo_with_source.path / "packages"
        assert sorted(p.name for p in packages.iterdir()) == ["app"]
        assert repo_with_source.ledger.versions("app") == ["1.0"]
        assert [e.id for e in repo_with_source.list_installed()] == ["app"]
