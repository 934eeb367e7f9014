"""Image records from the remote catalog and the local runtime."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, model_validator


class ImageCatalogEntry(BaseModel):
    """One published tag of the repository."""

    model_config = ConfigDict(frozen=True)

    tag: str
    digest: str = ""
    published_at: datetime | None = None


class CatalogSnapshot(BaseModel):
    """All entries returned by a single catalog fetch.

    Tags are unique within a snapshot.
    """

    model_config = ConfigDict(frozen=True)

    entries: tuple[ImageCatalogEntry, ...] = ()

    @model_validator(mode="after")
    def _unique_tags(self) -> CatalogSnapshot:
        seen: set[str] = set()
        for entry in self.entries:
            if entry.tag in seen:
                raise ValueError(f"duplicate tag in catalog snapshot: {entry.tag}")
            seen.add(entry.tag)
        return self

    def get(self, tag: str) -> ImageCatalogEntry | None:
        for entry in self.entries:
            if entry.tag == tag:
                return entry
        return None

    def tags(self) -> set[str]:
        return {entry.tag for entry in self.entries}


class LocalImageRecord(BaseModel):
    """An image of the repository already present in the local runtime."""

    model_config = ConfigDict(frozen=True)

    tag: str
    image_id: str
    size: str = ""
    created_at: datetime | None = None
