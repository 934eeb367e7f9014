"""Tests for RemoteCatalogClient: Hub parsing, pagination and bounded retries."""

from __future__ import annotations

from datetime import datetime, timezone

import httpx
import pytest

from cave.core.catalog import RemoteCatalogClient
from cave.core.errors import CatalogFetchError

from conftest import REPOSITORY, hub_tag


def _client(handler, **kwargs) -> RemoteCatalogClient:
    return RemoteCatalogClient(
        REPOSITORY,
        client=httpx.Client(transport=httpx.MockTransport(handler)),
        retry_delay=0.0,
        sleep=lambda _: None,
        **kwargs,
    )


class TestListing:
    def test_parses_entries(self, make_catalog):
        catalog, server = make_catalog([hub_tag("17.2.24", "sha256:a", "2025-03-01T10:00:00.123456Z")])
        snapshot = catalog.list()
        entry = snapshot.get("17.2.24")
        assert entry.digest == "sha256:a"
        assert entry.published_at == datetime(2025, 3, 1, 10, 0, 0, 123456, tzinfo=timezone.utc)
        assert server.requests[0].url.path == f"/v2/repositories/{REPOSITORY}/tags"
        assert server.requests[0].url.params["page_size"] == "100"

    def test_falls_back_to_top_level_digest(self, make_catalog):
        catalog, _ = make_catalog(
            [{"name": "stable", "images": [], "digest": "sha256:b", "tag_last_pushed": None}]
        )
        entry = catalog.list().get("stable")
        assert entry.digest == "sha256:b"
        assert entry.published_at is None

    def test_follows_pagination(self):
        pages = {
            "1": {"next": "https://hub.docker.com/v2/repositories/simvia/code_aster/tags?page=2",
                  "results": [hub_tag("17.2.24", "a")]},
            "2": {"next": None, "results": [hub_tag("17.1.0", "b")]},
        }

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json=pages[request.url.params.get("page", "1")])

        snapshot = _client(handler).list()
        assert snapshot.tags() == {"17.2.24", "17.1.0"}

    def test_snapshot_reused_within_invocation(self, make_catalog):
        catalog, server = make_catalog([hub_tag("stable", "a")])
        assert catalog.list() is catalog.list()
        assert len(server.requests) == 1
        catalog.list(refresh=True)
        assert len(server.requests) == 2


class TestRetries:
    def test_retries_server_errors_then_succeeds(self):
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            if len(calls) < 3:
                return httpx.Response(503)
            return httpx.Response(200, json={"results": [hub_tag("stable", "a")], "next": None})

        snapshot = _client(handler, max_retries=2).list()
        assert len(calls) == 3
        assert snapshot.tags() == {"stable"}

    def test_retry_bound_is_respected(self):
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(CatalogFetchError) as excinfo:
            _client(handler, max_retries=2).list()
        assert len(calls) == 3
        assert excinfo.value.retryable

    def test_backoff_grows(self):
        sleeps: list[float] = []

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(429)

        client = RemoteCatalogClient(
            REPOSITORY,
            client=httpx.Client(transport=httpx.MockTransport(handler)),
            max_retries=3,
            retry_delay=1.0,
            sleep=sleeps.append,
        )
        with pytest.raises(CatalogFetchError):
            client.list()
        assert len(sleeps) == 3
        assert sleeps[0] < sleeps[2]

    def test_not_found_is_not_retried(self, make_catalog):
        catalog, server = make_catalog(status=404, max_retries=3)
        with pytest.raises(CatalogFetchError) as excinfo:
            catalog.list()
        assert excinfo.value.status_code == 404
        assert len(server.requests) == 1

    def test_invalid_payload(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, content=b"<html>")

        with pytest.raises(CatalogFetchError):
            _client(handler).list()
