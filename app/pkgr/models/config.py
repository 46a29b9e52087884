"""Repository configuration models.

This module defines the Pydantic models representing config.toml:
the download cache location and the ordered list of catalog sources.
"""

from typing import Annotated

from pydantic import BaseModel, ConfigDict, Field, model_validator

from pkgr.core.paths import get_default_download_dir


class SourceConfig(BaseModel):
    """A catalog source.

    Attributes:
        id: Unique identifier used on the command line (``<id>:<package>``).
        name: Display name.
        url: Source root: an ``http(s)://`` URL or an absolute local path.
        enabled: Whether refresh and install consider this source.
        require_https: Reject any URL that is not ``https://``.
    """

    model_config = ConfigDict(extra="forbid")

    id: Annotated[str, Field(min_length=1, description="Unique source identifier")]
    name: Annotated[str, Field(description="Display name")] = ""
    url: Annotated[str, Field(description="Source root URL or absolute path")]
    enabled: Annotated[bool, Field(description="Whether this source is used")] = True
    require_https: Annotated[bool, Field(description="Only allow https:// URLs")] = True

    @model_validator(mode="after")
    def validate_url(self) -> "SourceConfig":
        """URL is non-empty, of a supported scheme, and honours require_https."""
        if not self.url:
            msg = f"Source '{self.id}' has an empty URL"
            raise ValueError(msg)
        if not self.url.startswith(("http://", "https://", "/")):
            msg = f"Source '{self.id}' has an invalid URL: {self.url}"
            raise ValueError(msg)
        if self.require_https and not self.url.startswith("https://"):
            msg = f"Source '{self.id}' requires HTTPS but its URL is not https://: {self.url}"
            raise ValueError(msg)
        return self

    @property
    def base_url(self) -> str:
        """URL with trailing slashes removed, ready for concatenation."""
        return self.url.rstrip("/")


class RepositoryConfig(BaseModel):
    """Contents of config.toml.

    Attributes:
        cache_dir: Directory for downloaded metadata and other temporary files.
        source: Sources in priority order; later sources win on duplicate ids.
    """

    model_config = ConfigDict(extra="forbid")

    cache_dir: str = Field(
        default_factory=lambda: str(get_default_download_dir()),
        description="Download cache directory",
    )
    source: list[SourceConfig] = Field(default_factory=list)

    @model_validator(mode="after")
    def validate_unique_ids(self) -> "RepositoryConfig":
        """Source ids are unique."""
        seen: set[str] = set()
        for source in self.source:
            if source.id in seen:
                msg = f"Duplicate source id: '{source.id}'"
                raise ValueError(msg)
            seen.add(source.id)
        return self

    def get_source(self, source_id: str) -> SourceConfig | None:
        return next((s for s in self.source if s.id == source_id), None)

    def enabled_sources(self) -> list[SourceConfig]:
        """Enabled sources in configured order."""
        return [s for s in self.source if s.enabled]
