"""Shared test fixtures for cave."""

from __future__ import annotations

import io
from collections.abc import Callable
from pathlib import Path
from typing import Any

import httpx
import pytest

from cave.config import CaveSettings
from cave.core.catalog import RemoteCatalogClient
from cave.core.errors import PullFailed, RuntimeUnavailable
from cave.core.orchestrator import Orchestrator
from cave.core.runtime import ContainerExit, ContainerSpec
from cave.models.images import LocalImageRecord

REPOSITORY = "simvia/code_aster"


# ---------------------------------------------------------------------------
# Container runtime fake
# ---------------------------------------------------------------------------


class FakeProcess:
    """Popen-like stand-in for an attached ``docker run`` client."""

    def __init__(
        self,
        returncode: int = 0,
        stdout: bytes = b"",
        stderr: bytes = b"",
        *,
        interrupt: bool = False,
    ) -> None:
        self.stdout = io.BytesIO(stdout)
        self.stderr = io.BytesIO(stderr)
        self._final = returncode
        self._interrupt = interrupt
        self.returncode: int | None = None
        self.stopped = False

    def wait(self, timeout: float | None = None) -> int:
        if self._interrupt and not self.stopped:
            raise KeyboardInterrupt
        self.returncode = self._final
        return self._final

    def poll(self) -> int | None:
        if self._interrupt and not self.stopped:
            return None
        return self.returncode


class FakeRuntime:
    """In-memory :class:`cave.core.runtime.ContainerRuntime`."""

    def __init__(
        self,
        images: list[LocalImageRecord] | None = None,
        *,
        pull_error: str | None = None,
        unavailable: bool = False,
        process: FakeProcess | None = None,
        exit_signal: int | None = None,
        container_created: bool = True,
    ) -> None:
        self.images = list(images or [])
        self.pull_error = pull_error
        self.unavailable = unavailable
        self.process = process
        self.exit_signal = exit_signal
        self.container_created = container_created
        self.calls: list[tuple[str, Any]] = []
        self.started: list[ContainerSpec] = []
        self.stopped: list[str] = []
        self.removed_containers: list[str] = []
        self.removed_images: list[str] = []

    def list_images(self, repository: str) -> list[LocalImageRecord]:
        self.calls.append(("list_images", repository))
        if self.unavailable:
            raise RuntimeUnavailable("Cannot connect to the Docker daemon")
        return list(self.images)

    def pull(self, image: str) -> None:
        self.calls.append(("pull", image))
        if self.pull_error:
            raise PullFailed(image, self.pull_error)
        tag = image.rsplit(":", 1)[1]
        self.images.append(LocalImageRecord(tag=tag, image_id=f"id-{tag}"))

    def tag(self, source: str, target: str) -> None:
        self.calls.append(("tag", (source, target)))
        source_tag = source.rsplit(":", 1)[1]
        target_tag = target.rsplit(":", 1)[1]
        image_id = next(r.image_id for r in self.images if r.tag == source_tag)
        self.images = [r for r in self.images if r.tag != target_tag]
        self.images.append(LocalImageRecord(tag=target_tag, image_id=image_id))

    def remove_image(self, image: str) -> None:
        self.calls.append(("remove_image", image))
        self.removed_images.append(image)

    def start(self, spec: ContainerSpec) -> FakeProcess:
        self.calls.append(("start", spec))
        self.started.append(spec)
        if self.process is None:
            self.process = FakeProcess()
        return self.process

    def inspect_exit(self, name: str) -> ContainerExit | None:
        self.calls.append(("inspect_exit", name))
        if not self.container_created:
            return None
        code = self.process.returncode if self.process else 0
        return ContainerExit(exit_code=code or 0, signal=self.exit_signal)

    def stop(self, name: str, timeout: int = 10) -> None:
        self.calls.append(("stop", name))
        self.stopped.append(name)
        if self.process is not None:
            self.process.stopped = True

    def remove_container(self, name: str) -> None:
        self.calls.append(("remove_container", name))
        self.removed_containers.append(name)


def local_image(tag: str, image_id: str | None = None, created_at: str | None = None) -> LocalImageRecord:
    return LocalImageRecord(
        tag=tag,
        image_id=image_id or f"id-{tag}",
        created_at=created_at,
    )


def hub_tag(name: str, digest: str, pushed: str | None = "2025-01-01T00:00:00Z") -> dict[str, Any]:
    """One ``results`` item of the Docker Hub tag listing."""
    return {"name": name, "images": [{"digest": digest, "last_pushed": pushed}]}


@pytest.fixture
def make_runtime() -> Callable[..., FakeRuntime]:
    """Factory fixture: build a FakeRuntime."""

    def _factory(*images: LocalImageRecord, **kwargs: Any) -> FakeRuntime:
        return FakeRuntime(list(images), **kwargs)

    return _factory


# ---------------------------------------------------------------------------
# Catalog
# ---------------------------------------------------------------------------


class CatalogServer:
    """Mock Docker Hub: serves tag pages and counts requests."""

    def __init__(self, tags: list[dict[str, Any]] | None = None, *, status: int = 200) -> None:
        self.tags = tags or []
        self.status = status
        self.requests: list[httpx.Request] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.status != 200:
            return httpx.Response(self.status, json={"message": "unavailable"})
        return httpx.Response(200, json={"count": len(self.tags), "next": None, "results": self.tags})


@pytest.fixture
def make_catalog() -> Callable[..., tuple[RemoteCatalogClient, CatalogServer]]:
    """Factory fixture: a RemoteCatalogClient wired to a mock Hub server."""

    def _factory(
        tags: list[dict[str, Any]] | None = None,
        *,
        status: int = 200,
        max_retries: int = 1,
    ) -> tuple[RemoteCatalogClient, CatalogServer]:
        server = CatalogServer(tags, status=status)
        client = httpx.Client(transport=httpx.MockTransport(server.handler))
        catalog = RemoteCatalogClient(
            REPOSITORY,
            client=client,
            max_retries=max_retries,
            retry_delay=0.0,
            sleep=lambda _: None,
        )
        return catalog, server

    return _factory


# ---------------------------------------------------------------------------
# Settings and orchestrator
# ---------------------------------------------------------------------------


@pytest.fixture
def settings(tmp_path: Path) -> CaveSettings:
    """Settings isolated to a temp home directory."""
    return CaveSettings(
        config_path=tmp_path / "home" / ".caveconfig.json",
        telemetry_url="",
        release_url="",
    )


@pytest.fixture
def project_dir(tmp_path: Path) -> Path:
    path = tmp_path / "project"
    path.mkdir()
    return path


@pytest.fixture
def make_orchestrator(
    settings: CaveSettings, project_dir: Path
) -> Callable[..., Orchestrator]:
    """Factory fixture: an Orchestrator over fakes, capturing solver output."""

    def _factory(
        runtime: FakeRuntime,
        catalog: RemoteCatalogClient,
        *,
        workdir: Path | None = None,
        **kwargs: Any,
    ) -> Orchestrator:
        return Orchestrator(
            settings,
            workdir=workdir or project_dir,
            runtime=runtime,
            catalog=catalog,
            stdout=io.StringIO(),
            stderr=io.StringIO(),
            **kwargs,
        )

    return _factory
