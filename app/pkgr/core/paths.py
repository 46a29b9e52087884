"""Path management for pkgr.

Provides the on-disk layout of a repository and the XDG-compliant
location of the shared download cache.

Repository layout:
- config.toml
- index.json
- packages/<id>/versions.txt
- packages/<id>/<version>/metadata.json
- packages/<id>/<version>/<manifest files...>

XDG defaults:
- Cache: ~/.cache/pkgr/cache
- Config: ~/.config/pkgr (CLI theme overrides)
"""

import os
from pathlib import Path

from pkgr.core.errors import PkgrError

# Application identifier for directory naming
APP_NAME = "pkgr"

CONFIG_FILENAME = "config.toml"
INDEX_FILENAME = "index.json"
PACKAGES_DIRNAME = "packages"
METADATA_FILENAME = "metadata.json"


def _get_xdg_dir(env_var: str, default_subdir: str) -> Path:
    """Get XDG directory respecting environment variable override.

    Args:
        env_var: XDG environment variable name (e.g., "XDG_CACHE_HOME").
        default_subdir: Default subdirectory under home (e.g., ".cache").

    Returns:
        Path to the application-specific directory.
    """
    base = os.environ.get(env_var)
    if base:
        return Path(base) / APP_NAME
    return Path.home() / default_subdir / APP_NAME


def get_cache_dir() -> Path:
    """Get the cache directory path.

    Returns:
        Path to ~/.cache/pkgr/ (or XDG_CACHE_HOME/pkgr/).
    """
    return _get_xdg_dir("XDG_CACHE_HOME", ".cache")


def get_default_download_dir() -> Path:
    """Get the default download cache used by new repositories.

    Returns:
        Path to ~/.cache/pkgr/cache.
    """
    return get_cache_dir() / "cache"


def expand_path(path: str | Path) -> Path:
    """Expand ``~`` and make a path absolute."""
    return Path(path).expanduser().absolute()


def ensure_dir(path: Path, name: str) -> Path:
    """Create directory if it doesn't exist.

    Args:
        path: Directory path to create.
        name: Human-readable name for error messages.

    Returns:
        The created/existing directory path.

    Raises:
        PkgrError: If directory cannot be created.
    """
    try:
        path.mkdir(parents=True, exist_ok=True)
    except PermissionError as e:
        msg = f"Cannot create {name} directory {path}: Permission denied"
        raise PkgrError(msg) from e
    except OSError as e:
        msg = f"Cannot create {name} directory {path}: {e}"
        raise PkgrError(msg) from e
    return path


def package_dir(repo_path: Path, package_id: str) -> Path:
    """Directory holding every version of a package."""
    return repo_path / PACKAGES_DIRNAME / package_id


def version_dir(repo_path: Path, package_id: str, version: str) -> Path:
    """Directory holding one version of a package."""
    return package_dir(repo_path, package_id) / version


def relative_location(package_id: str, version: str) -> str:
    """Repository-relative location recorded in index entries."""
    return f"./{PACKAGES_DIRNAME}/{package_id}/{version}"


def get_config_dir() -> Path:
    """Get the user configuration directory path.

    Returns:
        Path to ~/.config/pkgr/ (or XDG_CONFIG_HOME/pkgr/).
    """
    return _get_xdg_dir("XDG_CONFIG_HOME", ".config")
