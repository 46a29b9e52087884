"""Multi-source catalog reconciliation.

Combines the catalogs of the enabled sources into the single ``source``
listing stored in a repository's index. Sources are processed in
configured order and, for a package id listed by several sources, the
entry from the later source wins. A failing source aborts the whole
refresh; no partial merge is ever returned.
"""

import logging

from pkgr.core.errors import PkgrError, SourceError
from pkgr.core.net import Fetcher, join_url
from pkgr.core.paths import INDEX_FILENAME
from pkgr.models.catalog import CatalogEntry, catalog_entries, parse_catalog_document
from pkgr.models.config import SourceConfig

logger = logging.getLogger(__name__)


def resolve_location(location: str, source_url: str) -> str:
    """Root a repository-relative location (``./...``) at the source URL.

    Absolute URLs and paths are returned unchanged.
    """
    if location.startswith("./"):
        return join_url(source_url, location[2:])
    return location


class CatalogMerger:
    """Fetches and merges source catalogs.

    Attributes:
        fetcher: Transport used to retrieve each source's index document.
    """

    def __init__(self, fetcher: Fetcher) -> None:
        self.fetcher = fetcher

    def fetch_source(self, source: SourceConfig) -> list[CatalogEntry]:
        """Fetch one source's catalog with locations made absolute.

        Raises:
            SourceError: If the index cannot be fetched or parsed.
        """
        url = join_url(source.base_url, INDEX_FILENAME)
        logger.info("Fetching catalog from %s (%s)", source.id, url)
        try:
            document = parse_catalog_document(self.fetcher.fetch_index(url))
        except PkgrError as e:
            raise SourceError(source.id, e) from e

        return [
            entry.model_copy(update={"location": resolve_location(entry.location, source.base_url)})
            for entry in catalog_entries(document)
        ]

    def refresh(self, sources: list[SourceConfig]) -> list[CatalogEntry]:
        """Merge the catalogs of all enabled sources.

        Args:
            sources: Sources in configured order.

        Returns:
            Merged entries sorted by id.

        Raises:
            SourceError: If any enabled source fails.
        """
        merged: dict[str, CatalogEntry] = {}
        for source in sources:
            if not source.enabled:
                logger.debug("Skipping disabled source %s", source.id)
                continue
            entries = self.fetch_source(source)
            for entry in entries:
                if entry.id in merged:
                    logger.debug("Source %s overrides entry %s", source.id, entry.id)
                merged[entry.id] = entry
            logger.info("Source %s: %d package(s)", source.id, len(entries))

        return sorted(merged.values(), key=lambda e: e.id)
