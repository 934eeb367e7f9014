"""Remote tag catalog: the images published on Docker Hub.

Retry strategy:
    - Retryable: timeouts, network errors, 429, 5xx
    - Non-retryable: other 4xx, unparsable payloads
    - Backoff: exponential with jitter, bounded number of attempts

Each attempt is an independent, read-only GET, so retries have no side
effects.
"""

from __future__ import annotations

import logging
import random
import time
from collections.abc import Callable
from datetime import datetime

import httpx
from pydantic import ValidationError

from cave.core.errors import CatalogFetchError
from cave.models.images import CatalogSnapshot, ImageCatalogEntry

logger = logging.getLogger(__name__)

MAX_BACKOFF_SECONDS = 10.0


def _parse_timestamp(value: str | None) -> datetime | None:
    if not value:
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None


def _entry_from_result(result: dict) -> ImageCatalogEntry:
    """Build an entry from one ``results`` item of the Hub tag listing.

    The per-platform ``images`` list is preferred; top-level ``digest`` and
    ``tag_last_pushed`` are used when it is empty.
    """
    images = result.get("images") or []
    first = images[0] if images else {}
    digest = first.get("digest") or result.get("digest") or ""
    pushed = first.get("last_pushed") or result.get("tag_last_pushed") or result.get("last_updated")
    return ImageCatalogEntry(
        tag=result["name"],
        digest=digest,
        published_at=_parse_timestamp(pushed),
    )


class RemoteCatalogClient:
    """Lists the published tags of one repository.

    Parameters
    ----------
    repository:
        ``namespace/name`` of the image repository.
    api_url:
        Base URL of the Docker Hub v2 API.
    client:
        Optional preconfigured ``httpx.Client`` (tests inject a mock transport).
    max_retries:
        Extra attempts after the first one for retryable failures.
    retry_delay:
        Base delay in seconds; doubles on every retry.
    sleep:
        Sleep function, injectable for tests.
    """

    def __init__(
        self,
        repository: str,
        *,
        api_url: str = "https://hub.docker.com/v2",
        timeout: float = 10.0,
        client: httpx.Client | None = None,
        max_retries: int = 2,
        retry_delay: float = 0.5,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._repository = repository
        self._url = f"{api_url.rstrip('/')}/repositories/{repository}/tags"
        self._client = client or httpx.Client(timeout=timeout, follow_redirects=True)
        self._max_retries = max_retries
        self._retry_delay = retry_delay
        self._sleep = sleep
        self._snapshot: CatalogSnapshot | None = None

    @property
    def repository(self) -> str:
        return self._repository

    def list(self, *, refresh: bool = False) -> CatalogSnapshot:
        """Fetch every tag of the repository, following pagination.

        A successful fetch is kept for the lifetime of this client, so
        several steps of one invocation share a single snapshot. Pass
        ``refresh=True`` to force a new fetch.

        Raises
        ------
        CatalogFetchError
            When the registry cannot be reached after the bounded retries,
            or answers with a non-retryable error.
        """
        if self._snapshot is not None and not refresh:
            return self._snapshot

        entries: dict[str, ImageCatalogEntry] = {}
        url: str | None = self._url
        params: dict[str, int] | None = {"page_size": 100}
        while url:
            payload = self._get_with_retry(url, params)
            try:
                for result in payload.get("results", []):
                    entry = _entry_from_result(result)
                    entries.setdefault(entry.tag, entry)
            except (KeyError, TypeError, AttributeError, ValidationError) as exc:
                raise CatalogFetchError(f"Unexpected catalog payload: {exc}") from exc
            url = payload.get("next")
            params = None

        self._snapshot = CatalogSnapshot(entries=tuple(entries.values()))
        logger.debug("Fetched %d tags for %s", len(self._snapshot.entries), self._repository)
        return self._snapshot

    def close(self) -> None:
        self._client.close()

    # ------------------------------------------------------------------
    # HTTP
    # ------------------------------------------------------------------

    def _get_with_retry(self, url: str, params: dict[str, int] | None) -> dict:
        for attempt in range(self._max_retries + 1):
            try:
                return self._get(url, params)
            except CatalogFetchError as exc:
                if not exc.retryable or attempt >= self._max_retries:
                    raise
                backoff = self._backoff(attempt)
                logger.info(
                    "Catalog fetch failed (%s), retry %d/%d in %.2fs",
                    exc,
                    attempt + 1,
                    self._max_retries,
                    backoff,
                )
                self._sleep(backoff)
        raise CatalogFetchError("Catalog fetch failed")

    def _backoff(self, attempt: int) -> float:
        base_delay = self._retry_delay * (2**attempt)
        jitter = base_delay * 0.25 * (2 * random.random() - 1)
        return min(base_delay + jitter, MAX_BACKOFF_SECONDS)

    def _get(self, url: str, params: dict[str, int] | None) -> dict:
        try:
            response = self._client.get(url, params=params)
        except httpx.TimeoutException as exc:
            raise CatalogFetchError(f"Request timeout: {exc}", retryable=True) from exc
        except httpx.TransportError as exc:
            raise CatalogFetchError(f"Network error: {exc}", retryable=True) from exc

        status = response.status_code
        if status == 429 or status >= 500:
            raise CatalogFetchError(
                f"Failed to fetch Docker tags: HTTP {status}",
                status_code=status,
                retryable=True,
            )
        if not response.is_success:
            raise CatalogFetchError(
                f"Failed to fetch Docker tags: HTTP {status}", status_code=status
            )
        try:
            payload = response.json()
        except ValueError as exc:
            raise CatalogFetchError(f"Invalid JSON from registry: {exc}") from exc
        if not isinstance(payload, dict):
            raise CatalogFetchError("Invalid catalog payload: expected an object")
        return payload
