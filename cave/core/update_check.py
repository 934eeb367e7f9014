"""Check whether a newer cave release has been published."""

from __future__ import annotations

import logging

import httpx

from cave.models.versioning import version_key

logger = logging.getLogger(__name__)


def is_newer(current: str, latest: str) -> bool:
    """Whether release *latest* is strictly newer than *current*.

    A leading ``v`` is ignored; components are compared numerically.
    """
    return version_key(latest.lstrip("v")) > version_key(current.lstrip("v"))


class UpdateChecker:
    """Fetches the latest release tag and compares it to the running version.

    Parameters
    ----------
    release_url:
        URL of a JSON document with a ``tag_name`` field (GitHub's
        ``releases/latest`` format).
    current_version:
        Version of the running cave.
    """

    def __init__(
        self,
        release_url: str,
        current_version: str,
        *,
        timeout: float = 3.0,
        client: httpx.Client | None = None,
    ) -> None:
        self._url = release_url
        self._current = current_version
        self._client = client or httpx.Client(timeout=timeout, follow_redirects=True)

    def latest_release(self) -> str:
        response = self._client.get(self._url, headers={"Accept": "application/json"})
        response.raise_for_status()
        payload = response.json()
        if not isinstance(payload, dict) or "tag_name" not in payload:
            raise ValueError("release payload has no tag_name")
        return str(payload["tag_name"])

    def check(self) -> str | None:
        """Return the newer release tag, or ``None`` when up to date.

        Never raises: failures are logged and treated as "no update".
        """
        if not self._url:
            return None
        try:
            latest = self.latest_release()
        except (httpx.HTTPError, KeyError, ValueError) as exc:
            logger.warning("Failed to check for updates: %s", exc)
            return None
        if is_newer(self._current, latest):
            return latest
        return None

    def close(self) -> None:
        self._client.close()
