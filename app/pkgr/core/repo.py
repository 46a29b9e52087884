"""Repository lifecycle orchestration.

RepoManager owns one repository root and drives every mutating operation
through a single transaction scope:

    verify -> write files -> update ledger -> update index -> commit

A failure at any step rolls the whole scope back, so the repository is
left exactly as it was before the operation. Mirror sync and clean are
bulk maintenance operations and are not journaled.

The engine assumes a single writer per repository root. It takes no
locks; concurrent invocations against the same root are undefined.
"""

import logging
import shutil
from pathlib import Path
from types import TracebackType

from pkgr.core.catalog import CatalogMerger
from pkgr.core.config import ConfigManager
from pkgr.core.content import bytes_hash, check_file, materialize
from pkgr.core.errors import HashMismatchError, InvalidManifestError, NotFoundError, PkgrError
from pkgr.core.index import load_index_or_empty, save_index
from pkgr.core.ledger import VersionLedger
from pkgr.core.net import Fetcher, HttpFetcher, join_url
from pkgr.core.package import load_metadata, parse_metadata
from pkgr.core.paths import (
    CONFIG_FILENAME,
    INDEX_FILENAME,
    METADATA_FILENAME,
    PACKAGES_DIRNAME,
    ensure_dir,
    expand_path,
    package_dir,
    relative_location,
    version_dir,
)
from pkgr.core.transaction import Transaction, transaction
from pkgr.models.catalog import CatalogEntry, RepositoryIndex
from pkgr.models.config import RepositoryConfig, SourceConfig
from pkgr.models.metadata import PackageMetadata, validate_path_component

logger = logging.getLogger(__name__)

# Version directories kept per package by clean()
KEEP_VERSIONS = 2


def parse_install_spec(spec: str) -> tuple[str | None, str, str | None]:
    """Split ``package``, ``source:package`` or ``source:package:version``.

    Returns:
        Tuple of (source_id, package_id, version); absent parts are None.

    Raises:
        PkgrError: If the spec has more than three parts or an empty part.
    """
    parts = spec.split(":")
    if len(parts) > 3 or any(not part for part in parts):
        msg = f"Invalid package spec '{spec}' (expected [source:]package[:version])"
        raise PkgrError(msg)
    if len(parts) == 1:
        return None, parts[0], None
    if len(parts) == 2:
        return parts[0], parts[1], None
    return parts[0], parts[1], parts[2]


def _belongs_to(location: str, source: SourceConfig) -> bool:
    return location == source.base_url or location.startswith(source.base_url + "/")


class RepoManager:
    """Manages a package repository on disk.

    The configuration is loaded once when the manager is created; call
    ``reload()`` to pick up changes made to config.toml afterwards.

    Attributes:
        path: Repository root.
        config: Loaded repository configuration.
        fetcher: Transport used for sources.
        ledger: Version ledgers under ``packages/``.
    """

    def __init__(
        self,
        path: Path,
        config: RepositoryConfig,
        fetcher: Fetcher | None = None,
    ) -> None:
        self.path = path
        self.config = config
        self._owns_fetcher = fetcher is None
        self.fetcher: Fetcher = fetcher if fetcher is not None else HttpFetcher()
        self.ledger = VersionLedger(self.packages_path)

    # -------------------------------------------------------------------------
    # Construction
    # -------------------------------------------------------------------------

    @classmethod
    def init(cls, path: str | Path, fetcher: Fetcher | None = None) -> "RepoManager":
        """Create a repository at ``path``.

        Creates ``packages/``, a default config.toml and an empty
        index.json. Existing files are kept, so re-running is harmless.

        Raises:
            PkgrError: If the directories cannot be created.
        """
        root = expand_path(path)
        ensure_dir(root / PACKAGES_DIRNAME, "packages")
        config = ConfigManager(root / CONFIG_FILENAME).load()
        index_path = root / INDEX_FILENAME
        if not index_path.exists():
            save_index(RepositoryIndex(), index_path)
        logger.info("Initialized repository at %s", root)
        return cls(root, config, fetcher)

    @classmethod
    def open(cls, path: str | Path, fetcher: Fetcher | None = None) -> "RepoManager":
        """Open an existing repository.

        Raises:
            NotFoundError: If ``path`` is not a directory.
        """
        root = expand_path(path)
        if not root.is_dir():
            msg = f"Repository not found: {root}"
            raise NotFoundError(msg)
        config = ConfigManager(root / CONFIG_FILENAME).load()
        return cls(root, config, fetcher)

    def reload(self) -> RepositoryConfig:
        """Re-read config.toml from disk."""
        self.config = self.config_manager.load()
        return self.config

    def close(self) -> None:
        if self._owns_fetcher and isinstance(self.fetcher, HttpFetcher):
            self.fetcher.close()

    def __enter__(self) -> "RepoManager":
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()

    # -------------------------------------------------------------------------
    # Layout
    # -------------------------------------------------------------------------

    @property
    def packages_path(self) -> Path:
        return self.path / PACKAGES_DIRNAME

    @property
    def index_path(self) -> Path:
        return self.path / INDEX_FILENAME

    @property
    def config_manager(self) -> ConfigManager:
        return ConfigManager(self.path / CONFIG_FILENAME)

    @property
    def cache_path(self) -> Path:
        return expand_path(self.config.cache_dir)

    def load_index(self) -> RepositoryIndex:
        return load_index_or_empty(self.index_path)

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def list_installed(self) -> list[CatalogEntry]:
        return list(self.load_index().packages)

    def list_available(self) -> list[CatalogEntry]:
        return list(self.load_index().source)

    def find_available(self, package_id: str) -> CatalogEntry | None:
        return self.load_index().find_available(package_id)

    def installed_entry(self, package_id: str) -> CatalogEntry | None:
        """Index entry derived from the ledger's latest version on disk.

        Returns:
            The entry, or None if the package has no recorded versions.

        Raises:
            NotFoundError: If the latest version has no metadata.json.
            InvalidManifestError: If that metadata.json is invalid.
        """
        latest = self.ledger.latest(package_id)
        if latest is None:
            return None
        metadata = load_metadata(version_dir(self.path, package_id, latest) / METADATA_FILENAME)
        return CatalogEntry(
            id=package_id,
            name=metadata.name or package_id,
            icon=metadata.icon,
            author=metadata.author,
            latest_version=latest,
            description=metadata.description,
            location=relative_location(package_id, latest),
        )

    # -------------------------------------------------------------------------
    # Add
    # -------------------------------------------------------------------------

    def add(self, source_dir: str | Path) -> CatalogEntry:
        """Add a locally built package to the repository.

        Every file listed in the package's manifest is verified before
        anything is copied; a single mismatch aborts with nothing written.

        Args:
            source_dir: Package directory containing metadata.json.

        Returns:
            The package's index entry after the add.

        Raises:
            InvalidManifestError: If the manifest is empty or lacks id/version.
            NotFoundError: If a listed file is missing.
            HashMismatchError: If a listed file does not match its digest.
        """
        source_dir = expand_path(source_dir)
        metadata_file = source_dir / METADATA_FILENAME
        metadata = load_metadata(metadata_file)
        _require_publishable(metadata, str(metadata_file))

        for relative, digest in sorted(metadata.all_files.items()):
            source_file = source_dir / relative
            if not source_file.exists():
                msg = f"File listed in manifest not found: {source_file}"
                raise NotFoundError(msg)
            if source_file.is_dir():
                msg = f"Manifest entry is a directory, not a file: {source_file}"
                raise InvalidManifestError(msg)
            check_file(source_file, digest)

        target = version_dir(self.path, metadata.id, metadata.version)
        index = self.load_index()
        with transaction() as tx:
            if target.is_dir() and target.resolve() != source_dir.resolve():
                # Republishing replaces the version instead of merging into it
                tx.remove_tree(target)
            for relative in sorted(metadata.all_files):
                materialize(source_dir / relative, target / relative, tx)
            materialize(metadata_file, target / METADATA_FILENAME, tx)
            entry = self._record_version(index, metadata.id, metadata.version, tx)

        logger.info("Added %s %s", metadata.id, metadata.version)
        return entry

    # -------------------------------------------------------------------------
    # Install / upgrade
    # -------------------------------------------------------------------------

    def install(self, spec: str, version: str | None = None) -> CatalogEntry:
        """Install a package from the available catalog.

        Args:
            spec: ``package``, ``source:package`` or ``source:package:version``.
            version: Version to install when the spec does not name one;
                defaults to the catalog's latest version.

        Returns:
            The package's index entry after the install.

        Raises:
            NotFoundError: If the package or source is unknown, or the
                source is disabled.
            InvalidManifestError: If the downloaded metadata does not
                describe the requested package version.
            NetworkError: If a download fails.
            HashMismatchError: If a downloaded file does not verify.
        """
        source_id, package_id, spec_version = parse_install_spec(spec)
        version = spec_version or version

        index = self.load_index()
        entry = index.find_available(package_id)
        if entry is None:
            msg = f"Package '{package_id}' is not available from any source (try 'repo update')"
            raise NotFoundError(msg)

        source = self._resolve_source(source_id, entry)
        version = version or entry.latest_version

        if version == entry.latest_version and _belongs_to(entry.location, source):
            metadata_root = entry.location
        else:
            metadata_root = join_url(source.base_url, PACKAGES_DIRNAME, package_id, version)
        metadata_url = join_url(metadata_root, METADATA_FILENAME)

        logger.info("Installing %s %s from %s", package_id, version, source.id)
        metadata_bytes = self.fetcher.fetch_bytes(metadata_url)
        metadata = parse_metadata(metadata_bytes, metadata_url)
        _require_publishable(metadata, metadata_url)
        _require_matching(metadata, package_id, version, metadata_url)

        cached_metadata = self._cache_metadata(package_id, version, metadata_bytes)

        target = version_dir(self.path, package_id, version)
        with transaction() as tx:
            if target.is_dir():
                tx.remove_tree(target)
            for relative, digest in sorted(metadata.all_files.items()):
                file_url = join_url(
                    source.base_url, PACKAGES_DIRNAME, package_id, version, relative
                )
                logger.debug("Downloading %s", file_url)
                dest = target / relative
                materialize(self.fetcher.fetch_bytes(file_url), dest, tx)
                check_file(dest, digest)
            materialize(cached_metadata, target / METADATA_FILENAME, tx)
            installed = self._record_version(index, package_id, version, tx)

        logger.info("Installed %s %s", package_id, version)
        return installed

    def upgrade(self, package_id: str) -> tuple[str, str] | None:
        """Install the catalog's latest version if it differs from the installed one.

        Returns:
            ``(old_version, new_version)`` if an install happened, None if
            the package was already current.

        Raises:
            NotFoundError: If the package is not installed or not in the catalog.
        """
        installed = self.ledger.latest(package_id)
        if installed is None:
            msg = f"Package '{package_id}' is not installed"
            raise NotFoundError(msg)

        entry = self.find_available(package_id)
        if entry is None:
            msg = f"Package '{package_id}' is not available from any source"
            raise NotFoundError(msg)

        if installed == entry.latest_version:
            logger.info("%s is up to date (%s)", package_id, installed)
            return None

        source = self._resolve_source(None, entry)
        self.install(f"{source.id}:{package_id}:{entry.latest_version}")
        return installed, entry.latest_version

    def upgrade_all(self) -> list[tuple[str, str, str]]:
        """Upgrade every installed package the catalog carries.

        Returns:
            ``(package_id, old_version, new_version)`` for each upgrade.
        """
        index = self.load_index()
        upgraded: list[tuple[str, str, str]] = []
        for entry in index.packages:
            if index.find_available(entry.id) is None:
                logger.debug("Skipping %s: not in catalog", entry.id)
                continue
            result = self.upgrade(entry.id)
            if result is not None:
                upgraded.append((entry.id, *result))
        return upgraded

    # -------------------------------------------------------------------------
    # Remove
    # -------------------------------------------------------------------------

    def remove(self, package_id: str, version: str | None = None) -> CatalogEntry | None:
        """Remove one version of a package, or the whole package.

        Args:
            package_id: Package to remove.
            version: Version to remove; None removes every version.

        Returns:
            The package's index entry after removal, or None if the
            package is gone entirely.

        Raises:
            NotFoundError: If the package or version is not installed.
        """
        _require_installable_name(package_id, "Package")
        if version is not None:
            _require_installable_name(version, "Version")

        index = self.load_index()
        pkg_dir = package_dir(self.path, package_id)

        if version is None:
            if not pkg_dir.is_dir() and index.find_installed(package_id) is None:
                msg = f"Package '{package_id}' is not installed"
                raise NotFoundError(msg)
            with transaction() as tx:
                if pkg_dir.is_dir():
                    tx.remove_tree(pkg_dir)
                index.remove_installed(package_id)
                save_index(index, self.index_path, tx)
            logger.info("Removed %s", package_id)
            return None

        target = version_dir(self.path, package_id, version)
        if not target.is_dir() and not self.ledger.contains(package_id, version):
            msg = f"Version '{version}' of '{package_id}' is not installed"
            raise NotFoundError(msg)

        with transaction() as tx:
            if target.is_dir():
                tx.remove_tree(target)
            self.ledger.remove(package_id, version, tx)
            entry = self.installed_entry(package_id)
            if entry is None:
                if pkg_dir.is_dir() and not any(pkg_dir.iterdir()):
                    tx.safe_rmdir(pkg_dir)
                index.remove_installed(package_id)
            else:
                index.upsert_installed(entry)
            save_index(index, self.index_path, tx)

        logger.info("Removed %s %s", package_id, version)
        return entry

    # -------------------------------------------------------------------------
    # Sources
    # -------------------------------------------------------------------------

    def refresh(self) -> list[CatalogEntry]:
        """Rebuild the available catalog from every enabled source.

        Returns:
            The merged catalog now stored in the index.

        Raises:
            SourceError: If any enabled source fails; the index is unchanged.
        """
        merged = CatalogMerger(self.fetcher).refresh(self.config.source)
        index = self.load_index()
        index.source = merged
        save_index(index, self.index_path)
        logger.info("Catalog refreshed: %d package(s) available", len(merged))
        return merged

    def sync(self, source_id: str, mirror: bool = False) -> list[CatalogEntry]:
        """Synchronize with a single source.

        Incremental mode replaces the available catalog with the source's
        catalog and leaves installed packages alone. Mirror mode deletes
        ``packages/`` and re-downloads the latest version of every package
        the source lists; a failure part-way leaves the tree truncated.
        Each mirrored package is verified in full before it is written, so
        the truncated tree only holds complete packages.

        Returns:
            The source's catalog entries (empty for a disabled source).

        Raises:
            NotFoundError: If no such source is configured.
            SourceError: If the source's catalog cannot be fetched.
            InvalidManifestError: If a package's metadata does not match its
                catalog entry.
            HashMismatchError: If a downloaded file does not verify.
        """
        source = self.config.get_source(source_id)
        if source is None:
            msg = f"Source not found: {source_id}"
            raise NotFoundError(msg)
        if not source.enabled:
            logger.warning("Source %s is disabled, nothing to sync", source_id)
            return []

        entries = sorted(CatalogMerger(self.fetcher).fetch_source(source), key=lambda e: e.id)
        index = self.load_index()

        if not mirror:
            index.source = entries
            save_index(index, self.index_path)
            logger.info("Synced catalog of %s: %d package(s)", source_id, len(entries))
            return entries

        logger.warning("Mirroring %s: replacing %s", source_id, self.packages_path)
        if self.packages_path.exists():
            shutil.rmtree(self.packages_path)
        ensure_dir(self.packages_path, "packages")
        index.packages = []
        save_index(index, self.index_path)

        for entry in entries:
            self._mirror_package(entry)
            installed = self.installed_entry(entry.id)
            if installed is not None:
                index.upsert_installed(installed)
            save_index(index, self.index_path)

        logger.info("Mirrored %d package(s) from %s", len(entries), source_id)
        return entries

    def _mirror_package(self, entry: CatalogEntry) -> None:
        version = entry.latest_version
        metadata_url = join_url(entry.location, METADATA_FILENAME)
        metadata_bytes = self.fetcher.fetch_bytes(metadata_url)
        metadata = parse_metadata(metadata_bytes, metadata_url)
        _require_publishable(metadata, metadata_url)
        _require_matching(metadata, entry.id, version, metadata_url)

        # Download and verify every file before writing any of them
        downloads: dict[str, bytes] = {}
        for relative, digest in sorted(metadata.all_files.items()):
            file_url = join_url(entry.location, relative)
            data = self.fetcher.fetch_bytes(file_url)
            actual = bytes_hash(data)
            if actual != digest.strip().lower():
                raise HashMismatchError(file_url, digest, actual)
            downloads[relative] = data

        target = version_dir(self.path, entry.id, version)
        for relative, data in downloads.items():
            materialize(data, target / relative)
        materialize(metadata_bytes, target / METADATA_FILENAME)
        self.ledger.append(entry.id, version)
        logger.debug("Mirrored %s %s", entry.id, version)

    # -------------------------------------------------------------------------
    # Maintenance
    # -------------------------------------------------------------------------

    def clean(self) -> dict[str, list[str]]:
        """Clear the download cache and prune old version directories.

        For every package only the two greatest version directory names
        (plain string order) are kept. Pruned versions are dropped from
        the ledger and the available catalog is emptied.

        Returns:
            Pruned versions per package id.
        """
        if self.cache_path.is_dir():
            shutil.rmtree(self.cache_path)
            logger.info("Cleared cache %s", self.cache_path)

        index = self.load_index()
        pruned: dict[str, list[str]] = {}
        if self.packages_path.is_dir():
            for pkg_dir in sorted(p for p in self.packages_path.iterdir() if p.is_dir()):
                versions = sorted(d.name for d in pkg_dir.iterdir() if d.is_dir())
                doomed = versions[:-KEEP_VERSIONS]
                if not doomed:
                    continue
                for version in doomed:
                    shutil.rmtree(pkg_dir / version)
                    self.ledger.remove(pkg_dir.name, version)
                pruned[pkg_dir.name] = doomed
                logger.info("Pruned %s: %s", pkg_dir.name, ", ".join(doomed))

                entry = self.installed_entry(pkg_dir.name)
                if entry is None:
                    index.remove_installed(pkg_dir.name)
                else:
                    index.upsert_installed(entry)

        index.source = []
        save_index(index, self.index_path)
        return pruned

    def rebuild_index(self) -> list[CatalogEntry]:
        """Regenerate the installed list purely from ``packages/``.

        Packages whose latest version lacks valid metadata are skipped
        with a warning.
        """
        index = self.load_index()
        packages: list[CatalogEntry] = []
        for package_id in self.ledger.package_ids():
            try:
                entry = self.installed_entry(package_id)
            except PkgrError as e:
                logger.warning("Skipping %s: %s", package_id, e)
                continue
            if entry is not None:
                packages.append(entry)
        index.packages = packages
        save_index(index, self.index_path)
        logger.info("Rebuilt index: %d package(s) installed", len(packages))
        return packages

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    def _record_version(
        self,
        index: RepositoryIndex,
        package_id: str,
        version: str,
        tx: Transaction,
    ) -> CatalogEntry:
        """Append to the ledger and upsert the index entry, journaled in ``tx``."""
        self.ledger.append(package_id, version, tx)
        entry = self.installed_entry(package_id)
        if entry is None:
            msg = f"Ledger for '{package_id}' is empty after recording {version}"
            raise PkgrError(msg)
        index.upsert_installed(entry)
        save_index(index, self.index_path, tx)
        return entry

    def _resolve_source(self, source_id: str | None, entry: CatalogEntry) -> SourceConfig:
        """Pick the source to download ``entry`` from.

        A named source must be configured and enabled. Otherwise the first
        enabled source that the entry's location points into is used,
        falling back to the first enabled source.
        """
        if source_id is not None:
            source = self.config.get_source(source_id)
            if source is None:
                msg = f"Source not found: {source_id}"
                raise NotFoundError(msg)
            if not source.enabled:
                msg = f"Source '{source_id}' is disabled"
                raise NotFoundError(msg)
            return source

        enabled = self.config.enabled_sources()
        if not enabled:
            msg = "No enabled sources configured"
            raise NotFoundError(msg)
        return next((s for s in enabled if _belongs_to(entry.location, s)), enabled[0])

    def _cache_metadata(self, package_id: str, version: str, data: bytes) -> Path:
        path = self.cache_path / package_id / version / METADATA_FILENAME
        ensure_dir(path.parent, "cache")
        path.write_bytes(data)
        logger.debug("Cached metadata at %s", path)
        return path


def _require_publishable(metadata: PackageMetadata, origin: str) -> None:
    if not metadata.id or not metadata.version:
        msg = f"Metadata in {origin} must have a non-empty id and version"
        raise InvalidManifestError(msg)
    if not metadata.all_files:
        msg = f"Metadata in {origin} has an empty all_files manifest"
        raise InvalidManifestError(msg)


def _require_matching(
    metadata: PackageMetadata, package_id: str, version: str, origin: str
) -> None:
    if metadata.id != package_id or metadata.version != version:
        msg = (
            f"Metadata at {origin} describes {metadata.id} {metadata.version}, "
            f"expected {package_id} {version}"
        )
        raise InvalidManifestError(msg)


def _require_installable_name(value: str, what: str) -> None:
    """Reject ids and versions that do not name a single directory."""
    msg = f"{what} '{value}' is not installed"
    if not value:
        raise NotFoundError(msg)
    try:
        validate_path_component(value, what)
    except ValueError as e:
        raise NotFoundError(msg) from e
