"""Local image inventory: what the container runtime already has cached."""

from __future__ import annotations

import logging

from cave.core.runtime import ContainerRuntime
from cave.models.images import LocalImageRecord
from cave.models.versioning import is_explicit_version, version_key

logger = logging.getLogger(__name__)


class LocalImageInventory:
    """Queries the runtime for images of one repository.

    Nothing is cached: every call asks the runtime again, since images can be
    pulled or removed outside cave at any time. Runtime failures propagate as
    :class:`cave.core.errors.RuntimeUnavailable`.
    """

    def __init__(self, runtime: ContainerRuntime, repository: str) -> None:
        self._runtime = runtime
        self._repository = repository

    def list(self) -> list[LocalImageRecord]:
        records = self._runtime.list_images(self._repository)
        logger.debug("Found %d local images for %s", len(records), self._repository)
        return records

    def contains(self, tag: str) -> bool:
        return any(record.tag == tag for record in self.list())

    def image_id(self, tag: str) -> str | None:
        for record in self.list():
            if record.tag == tag:
                return record.image_id
        return None

    def versions(self, prefix: str = "") -> list[str]:
        """Explicit versions installed locally, numerically sorted."""
        tags = {
            record.tag
            for record in self.list()
            if is_explicit_version(record.tag) and record.tag.startswith(prefix)
        }
        return sorted(tags, key=version_key)
