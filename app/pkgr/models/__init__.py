"""Data models for pkgr.

This module exports the core data structures used throughout the application.
"""

from pkgr.models.catalog import (
    INDEX_SCHEMA_VERSION,
    CatalogDocument,
    CatalogEntry,
    FlatDocument,
    IndexDocument,
    RepositoryIndex,
    catalog_entries,
    parse_catalog_document,
)
from pkgr.models.config import RepositoryConfig, SourceConfig
from pkgr.models.metadata import PackageMetadata

__all__ = [
    "INDEX_SCHEMA_VERSION",
    "CatalogDocument",
    "CatalogEntry",
    "FlatDocument",
    "IndexDocument",
    "PackageMetadata",
    "RepositoryConfig",
    "RepositoryIndex",
    "SourceConfig",
    "catalog_entries",
    "parse_catalog_document",
]
