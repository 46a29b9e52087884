"""Package metadata model.

This module defines the Pydantic model for ``metadata.json``, the manifest
shipped inside every package version. Its ``all_files`` map binds each
package-relative path to the SHA-256 digest of that file.
"""

import re
from typing import Annotated

from pydantic import BaseModel, ConfigDict, Field, field_validator

_HEX_DIGEST = re.compile(r"^[0-9a-fA-F]{64}$")


def validate_path_component(value: str, what: str) -> str:
    """Reject values that cannot be used as a single directory name.

    Empty values are allowed here; publishability is checked separately.
    """
    if value in (".", "..") or "/" in value or "\\" in value:
        msg = f"{what} must be a single path component, got {value!r}"
        raise ValueError(msg)
    return value


def validate_relative_path(path: str) -> str:
    """Validate a manifest key: relative, '/'-separated, never escaping the root."""
    if not path:
        msg = "Manifest path cannot be empty"
        raise ValueError(msg)
    if "\\" in path:
        msg = f"Manifest path must use '/' separators: {path!r}"
        raise ValueError(msg)
    if path.startswith("/"):
        msg = f"Manifest path must be relative: {path!r}"
        raise ValueError(msg)
    parts = path.split("/")
    if any(part in ("", ".", "..") for part in parts):
        msg = f"Manifest path must not contain empty, '.' or '..' segments: {path!r}"
        raise ValueError(msg)
    return path


class PackageMetadata(BaseModel):
    """Manifest of a single package version.

    Attributes:
        id: Unique package identifier (e.g., "org.example.notes").
        name: Display name.
        version: Version string; compared only for equality and ledger order.
        description: Longer description.
        icon: Icon path relative to the package root.
        author: Package author.
        type: Application type (e.g., "webapp").
        category: Catalog category.
        permissions: Permissions requested by the application.
        entry: Entry point relative to the package root.
        all_files: Map of relative path to SHA-256 hex digest.
    """

    model_config = ConfigDict(extra="ignore")

    id: Annotated[str, Field(description="Unique package identifier")] = ""
    name: Annotated[str, Field(description="Display name")] = ""
    version: Annotated[str, Field(description="Version string")] = ""
    description: str = ""
    icon: str = ""
    author: str = ""
    type: str = ""
    category: str = ""
    permissions: list[str] = Field(default_factory=list)
    entry: str = ""
    all_files: Annotated[
        dict[str, str],
        Field(description="Relative path to SHA-256 hex digest"),
    ] = Field(default_factory=dict)

    @field_validator("id")
    @classmethod
    def validate_id(cls, v: str) -> str:
        """Package ids become directory names."""
        return validate_path_component(v, "Package id")

    @field_validator("version")
    @classmethod
    def validate_version(cls, v: str) -> str:
        """Versions become directory names."""
        return validate_path_component(v, "Version")

    @field_validator("all_files")
    @classmethod
    def validate_all_files(cls, v: dict[str, str]) -> dict[str, str]:
        """Every key is a safe relative path and every value a SHA-256 digest."""
        for path, digest in v.items():
            validate_relative_path(path)
            if not _HEX_DIGEST.match(digest):
                msg = f"Invalid SHA-256 digest for {path!r}: {digest!r}"
                raise ValueError(msg)
        return v

    def add_file(self, path: str, digest: str) -> None:
        """Record (or replace) a manifest entry."""
        self.all_files[validate_relative_path(path)] = digest

    def remove_file(self, path: str) -> str | None:
        """Drop a manifest entry, returning its digest if it was present."""
        return self.all_files.pop(path, None)

    def has_file(self, path: str) -> bool:
        return path in self.all_files

    def get_file_hash(self, path: str) -> str | None:
        return self.all_files.get(path)
