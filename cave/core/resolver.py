"""Version resolution: which image does this invocation run?

Precedence, first match wins:

1. the project pin of the working directory,
2. the global default set with ``cave use``,
3. nothing: :class:`NoVersionConfigured`.

Explicit versions are returned as-is after syntax validation, without any
I/O. Aliases (``stable``, ``testing``) are expanded against the remote
catalog on every resolution. When the catalog is unreachable, the local
images previously tagged with the alias are used instead, with a warning.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from datetime import datetime
from typing import TypeVar

from cave.core.catalog import RemoteCatalogClient
from cave.core.errors import CatalogFetchError, CatalogUnavailable, NoVersionConfigured
from cave.core.inventory import LocalImageInventory
from cave.models.config import ProjectPin
from cave.models.images import CatalogSnapshot
from cave.models.versioning import (
    Alias,
    ResolutionSource,
    ResolvedVersion,
    VersionSpec,
    is_explicit_version,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


def latest(
    items: Iterable[T],
    *,
    tag: Callable[[T], str],
    timestamp: Callable[[T], datetime | None],
) -> T | None:
    """Pick the most recent item: newest timestamp, then greatest tag.

    Items without a timestamp sort before any dated item.
    """

    def key(item: T) -> tuple[bool, float, str]:
        ts = timestamp(item)
        return (ts is not None, ts.timestamp() if ts is not None else 0.0, tag(item))

    return max(items, key=key, default=None)


def alias_targets(snapshot: CatalogSnapshot, alias: Alias) -> str | None:
    """Concrete version the alias currently maps to in *snapshot*.

    The alias tag's digest is matched against every explicit-version tag;
    the latest of those wins.
    """
    alias_entry = snapshot.get(alias.value)
    if alias_entry is None or not alias_entry.digest:
        return None
    candidates = [
        entry
        for entry in snapshot.entries
        if entry.digest == alias_entry.digest and is_explicit_version(entry.tag)
    ]
    chosen = latest(candidates, tag=lambda e: e.tag, timestamp=lambda e: e.published_at)
    return chosen.tag if chosen else None


class VersionResolver:
    """Decides the single effective version of an invocation.

    Parameters
    ----------
    catalog:
        Remote tag catalog, consulted only for aliases.
    inventory:
        Local images, consulted only when the catalog is unreachable.
    image_reference:
        Maps a concrete tag to a fully-qualified image reference.
    """

    def __init__(
        self,
        catalog: RemoteCatalogClient,
        inventory: LocalImageInventory,
        image_reference: Callable[[str], str],
    ) -> None:
        self._catalog = catalog
        self._inventory = inventory
        self._image_reference = image_reference

    def resolve(
        self,
        project_pin: ProjectPin | None,
        global_default: VersionSpec | None,
    ) -> ResolvedVersion:
        """Resolve the effective version for one invocation.

        Raises
        ------
        NoVersionConfigured
            Neither a pin nor a default is set.
        CatalogUnavailable
            An alias could not be expanded remotely nor locally.
        RuntimeUnavailable
            The local fallback could not query the container runtime.
        """
        if project_pin is not None:
            requested, source = project_pin.pinned_version, ResolutionSource.PROJECT_PIN
        elif global_default is not None:
            requested, source = global_default, ResolutionSource.GLOBAL_DEFAULT
        else:
            raise NoVersionConfigured()

        logger.debug("Requested version %s from %s", requested, source.value)
        alias = requested.alias
        if alias is None:
            return self._resolved(requested.value, requested, source)

        version, from_fallback = self._expand(alias)
        logger.debug("Alias %s resolved to %s", alias.value, version)
        return self._resolved(version, requested, source, from_fallback=from_fallback)

    def expand_remote(self, alias: Alias) -> str:
        """Expand *alias* against the catalog only, without local fallback."""
        try:
            snapshot = self._catalog.list()
        except CatalogFetchError as exc:
            raise CatalogUnavailable(alias.value, str(exc)) from exc
        version = alias_targets(snapshot, alias)
        if version is None:
            raise CatalogUnavailable(alias.value, "alias not published")
        return version

    # ------------------------------------------------------------------
    # Alias expansion
    # ------------------------------------------------------------------

    def _expand(self, alias: Alias) -> tuple[str, bool]:
        try:
            snapshot = self._catalog.list()
        except CatalogFetchError as exc:
            logger.warning(
                "Registry unreachable (%s); using the local '%s' image.", exc, alias.value
            )
            version = self._expand_locally(alias)
            if version is None:
                raise CatalogUnavailable(alias.value, str(exc)) from exc
            return version, True

        version = alias_targets(snapshot, alias)
        if version is None:
            raise CatalogUnavailable(alias.value, "alias not published")
        return version, False

    def _expand_locally(self, alias: Alias) -> str | None:
        records = self._inventory.list()
        alias_ids = {record.image_id for record in records if record.tag == alias.value}
        if not alias_ids:
            return None
        candidates = [
            record
            for record in records
            if record.image_id in alias_ids and is_explicit_version(record.tag)
        ]
        chosen = latest(candidates, tag=lambda r: r.tag, timestamp=lambda r: r.created_at)
        return chosen.tag if chosen else None

    def _resolved(
        self,
        version: str,
        requested: VersionSpec,
        source: ResolutionSource,
        *,
        from_fallback: bool = False,
    ) -> ResolvedVersion:
        return ResolvedVersion(
            version=version,
            image=self._image_reference(version),
            requested=requested,
            source=source,
            from_fallback=from_fallback,
        )
