"""Pydantic models for versions, persisted state and image records."""

from cave.models.config import ConfigOption, GlobalConfig, ProjectPin
from cave.models.images import CatalogSnapshot, ImageCatalogEntry, LocalImageRecord
from cave.models.versioning import (
    Alias,
    ResolutionSource,
    ResolvedVersion,
    VersionSpec,
)

__all__ = [
    "Alias",
    "CatalogSnapshot",
    "ConfigOption",
    "GlobalConfig",
    "ImageCatalogEntry",
    "LocalImageRecord",
    "ProjectPin",
    "ResolutionSource",
    "ResolvedVersion",
    "VersionSpec",
]
