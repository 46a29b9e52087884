"""Catalog and repository index models.

A repository's ``index.json`` holds two independent lists of catalog
entries: ``packages`` (what is installed on disk) and ``source`` (the
merged catalog advertised by the configured sources).

Sources publish their catalog either as a full index document
(``{"schema_version": 1, "packages": [...], "source": [...]}``) or as a
bare JSON array of entries. Both are parsed into the tagged
``CatalogDocument`` union.
"""

from dataclasses import dataclass
from typing import Annotated, Any, assert_never

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    TypeAdapter,
    ValidationError,
    field_validator,
    model_validator,
)

from pkgr.core.errors import InvalidManifestError
from pkgr.models.metadata import validate_path_component

# Schema version written into every index.json produced by pkgr
INDEX_SCHEMA_VERSION = 1


class CatalogEntry(BaseModel):
    """One package as listed in a catalog.

    Attributes:
        id: Unique package identifier.
        name: Display name.
        icon: Icon path relative to the package root.
        author: Package author.
        latest_version: Newest version known for this package.
        description: Package description.
        location: ``./packages/<id>/<version>`` for local entries, or an
            absolute URL/path for entries coming from a source.
    """

    model_config = ConfigDict(extra="ignore")

    id: Annotated[str, Field(min_length=1, description="Unique package identifier")]
    name: str = ""
    icon: str = ""
    author: str = ""
    latest_version: Annotated[str, Field(min_length=1, description="Latest version")]
    description: str = ""
    location: Annotated[str, Field(min_length=1, description="Package version root")]

    @field_validator("id")
    @classmethod
    def validate_id(cls, v: str) -> str:
        """Package ids name a directory under packages/."""
        return validate_path_component(v, "Package id")

    @field_validator("latest_version")
    @classmethod
    def validate_latest_version(cls, v: str) -> str:
        return validate_path_component(v, "Version")


def _check_unique(entries: list[CatalogEntry], section: str) -> None:
    seen: set[str] = set()
    for entry in entries:
        if entry.id in seen:
            msg = f"Duplicate package id in '{section}': {entry.id}"
            raise ValueError(msg)
        seen.add(entry.id)


class RepositoryIndex(BaseModel):
    """Contents of a repository's index.json.

    Attributes:
        schema_version: Index document schema version.
        packages: Locally installed packages (authoritative for disk state).
        source: Merged catalog of available packages (advisory).
    """

    model_config = ConfigDict(extra="ignore")

    schema_version: int = INDEX_SCHEMA_VERSION
    packages: list[CatalogEntry] = Field(default_factory=list)
    source: list[CatalogEntry] = Field(default_factory=list)

    @model_validator(mode="after")
    def validate_unique_ids(self) -> "RepositoryIndex":
        """Ids are unique within each list."""
        _check_unique(self.packages, "packages")
        _check_unique(self.source, "source")
        return self

    def find_installed(self, package_id: str) -> CatalogEntry | None:
        return next((p for p in self.packages if p.id == package_id), None)

    def find_available(self, package_id: str) -> CatalogEntry | None:
        return next((p for p in self.source if p.id == package_id), None)

    def upsert_installed(self, entry: CatalogEntry) -> None:
        """Replace the installed entry with the same id, or append it."""
        for i, existing in enumerate(self.packages):
            if existing.id == entry.id:
                self.packages[i] = entry
                return
        self.packages.append(entry)

    def remove_installed(self, package_id: str) -> bool:
        """Drop the installed entry for ``package_id``. Returns True if present."""
        before = len(self.packages)
        self.packages = [p for p in self.packages if p.id != package_id]
        return len(self.packages) != before


@dataclass(frozen=True, slots=True)
class IndexDocument:
    """Catalog published as a full repository index.

    The catalog a source offers is its ``packages`` list: the packages it
    holds on disk.
    """

    schema_version: int
    index: RepositoryIndex


@dataclass(frozen=True, slots=True)
class FlatDocument:
    """Catalog published as a bare array of entries."""

    entries: tuple[CatalogEntry, ...]


CatalogDocument = IndexDocument | FlatDocument

_entry_list_adapter: TypeAdapter[list[CatalogEntry]] = TypeAdapter(list[CatalogEntry])


def parse_catalog_document(data: Any) -> CatalogDocument:
    """Classify and validate a fetched catalog document.

    Args:
        data: Parsed JSON value.

    Returns:
        IndexDocument for a JSON object, FlatDocument for a JSON array.

    Raises:
        InvalidManifestError: If the document has neither shape or fails validation.
    """
    try:
        if isinstance(data, dict):
            index = RepositoryIndex.model_validate(data)
            return IndexDocument(schema_version=index.schema_version, index=index)
        if isinstance(data, list):
            entries = _entry_list_adapter.validate_python(data)
            _check_unique(entries, "catalog")
            return FlatDocument(entries=tuple(entries))
    except (ValidationError, ValueError) as e:
        msg = f"Invalid catalog document: {e}"
        raise InvalidManifestError(msg) from e

    msg = f"Catalog document must be a JSON object or array, got {type(data).__name__}"
    raise InvalidManifestError(msg)


def catalog_entries(document: CatalogDocument) -> list[CatalogEntry]:
    """Entries a catalog document advertises."""
    match document:
        case IndexDocument(index=index):
            return list(index.packages)
        case FlatDocument(entries=entries):
            return list(entries)
        case _:
            assert_never(document)
