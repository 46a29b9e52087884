"""Configuration I/O and source management.

This module provides functions and a small manager class for reading,
validating, writing and editing a repository's config.toml.
"""

import logging
import os
import tomllib
from pathlib import Path
from tempfile import NamedTemporaryFile
from typing import Any

import tomli_w
from pydantic import ValidationError

from pkgr.core.errors import ConfigInvalidError, NotFoundError, PkgrError
from pkgr.models.config import RepositoryConfig, SourceConfig

logger = logging.getLogger(__name__)


def load_config(path: Path) -> RepositoryConfig:
    """Load and validate a config.toml file.

    Args:
        path: Path to the config file.

    Returns:
        Validated RepositoryConfig.

    Raises:
        NotFoundError: If the file does not exist.
        ConfigInvalidError: If the TOML is malformed or fails validation.
        PkgrError: If the file cannot be read.
    """
    if not path.exists():
        msg = f"Config not found: {path}"
        raise NotFoundError(msg)

    try:
        with open(path, "rb") as f:
            data = tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        msg = f"Invalid TOML syntax in {path}: {e}"
        raise ConfigInvalidError(msg) from e
    except OSError as e:
        msg = f"Failed to read config: {e}"
        raise PkgrError(msg) from e

    return validate_config(data)


def validate_config(data: dict[str, Any]) -> RepositoryConfig:
    """Validate raw config data.

    Raises:
        ConfigInvalidError: If the data does not satisfy the schema.
    """
    try:
        return RepositoryConfig.model_validate(data)
    except ValidationError as e:
        msg = f"Invalid config content: {e}"
        raise ConfigInvalidError(msg) from e


def validate_source(data: dict[str, Any]) -> SourceConfig:
    """Validate raw source settings.

    Raises:
        ConfigInvalidError: If the source does not satisfy the schema.
    """
    try:
        return SourceConfig.model_validate(data)
    except ValidationError as e:
        msg = f"Invalid source: {e}"
        raise ConfigInvalidError(msg) from e


def save_config(config: RepositoryConfig, path: Path) -> Path:
    """Save a config to a TOML file.

    The file is written atomically by first writing to a temporary file
    in the same directory and then using os.replace() for atomic rename.
    On POSIX systems the result is readable by its owner only.

    Args:
        config: The RepositoryConfig to save.
        path: Destination path.

    Returns:
        Path where the config was saved.

    Raises:
        ConfigInvalidError: If the config does not validate.
        PkgrError: If the file cannot be written.
    """
    # Mutated models skip validation, so check again before persisting
    data = validate_config(config.model_dump()).model_dump()

    tmp_path: Path | None = None
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with NamedTemporaryFile(
            mode="wb",
            dir=path.parent,
            delete=False,
            suffix=".tmp",
        ) as f:
            tmp_path = Path(f.name)
            tomli_w.dump(data, f)
        os.replace(tmp_path, path)
        if os.name == "posix":
            os.chmod(path, 0o600)
    except OSError as e:
        if tmp_path is not None and tmp_path.exists():
            tmp_path.unlink()
        msg = f"Failed to write config: {e}"
        raise PkgrError(msg) from e

    return path


class ConfigManager:
    """Loads, saves and edits one config.toml.

    Attributes:
        path: Path to the managed config file.
    """

    def __init__(self, path: Path) -> None:
        self.path = path

    def load(self) -> RepositoryConfig:
        """Load the config, writing the default one first if the file is missing."""
        if not self.path.exists():
            logger.info("Config %s not found, writing defaults", self.path)
            config = RepositoryConfig()
            self.save(config)
            return config
        return load_config(self.path)

    def save(self, config: RepositoryConfig) -> None:
        save_config(config, self.path)

    def add_source(self, source: SourceConfig) -> RepositoryConfig:
        """Append a source.

        Raises:
            ConfigInvalidError: If a source with the same id already exists.
        """
        config = self.load()
        if config.get_source(source.id) is not None:
            msg = f"Source id '{source.id}' already exists"
            raise ConfigInvalidError(msg)
        config.source.append(source)
        self.save(config)
        logger.info("Added source %s (%s)", source.id, source.url)
        return config

    def remove_source(self, source_id: str) -> RepositoryConfig:
        """Remove a source by id.

        Raises:
            NotFoundError: If no such source is configured.
        """
        config = self.load()
        remaining = [s for s in config.source if s.id != source_id]
        if len(remaining) == len(config.source):
            msg = f"Source not found: {source_id}"
            raise NotFoundError(msg)
        config.source = remaining
        self.save(config)
        logger.info("Removed source %s", source_id)
        return config

    def enable_source(self, source_id: str) -> RepositoryConfig:
        return self._set_enabled(source_id, True)

    def disable_source(self, source_id: str) -> RepositoryConfig:
        return self._set_enabled(source_id, False)

    def update_source(self, source_id: str, updated: SourceConfig) -> RepositoryConfig:
        """Replace a source's settings, keeping its original id.

        Raises:
            NotFoundError: If no such source is configured.
        """
        config = self.load()
        for i, source in enumerate(config.source):
            if source.id == source_id:
                config.source[i] = updated.model_copy(update={"id": source_id})
                self.save(config)
                return config
        msg = f"Source not found: {source_id}"
        raise NotFoundError(msg)

    def _set_enabled(self, source_id: str, enabled: bool) -> RepositoryConfig:
        config = self.load()
        source = config.get_source(source_id)
        if source is None:
            msg = f"Source not found: {source_id}"
            raise NotFoundError(msg)
        source.enabled = enabled
        self.save(config)
        return config
