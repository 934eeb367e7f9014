"""Orchestrator: the central coordinator behind every cave command.

Wires the stores, the catalog client, the local inventory, the resolver and
the execution engine together. The global config is loaded once, when the
orchestrator is created, and written back after each explicit mutation.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Sequence
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import IO

from pydantic import BaseModel, ConfigDict

from cave.config import CaveSettings
from cave.core.catalog import RemoteCatalogClient
from cave.core.engine import INTERACTIVE_FLAG, ExecutionEngine
from cave.core.errors import (
    CatalogFetchError,
    CatalogUnavailable,
    ExportFileNotFound,
    RuntimeUnavailable,
    Terminated,
    UserAborted,
    VersionNotAvailable,
)
from cave.core.inventory import LocalImageInventory
from cave.core.resolver import VersionResolver, alias_targets
from cave.core.runtime import ContainerRuntime, DockerCliRuntime
from cave.core.stores import ConfigStore, ProjectPinStore
from cave.core.telemetry import ExecutionData, HttpTelemetrySink, TelemetryReporter, TelemetrySink
from cave.core.update_check import UpdateChecker
from cave.models.config import ConfigOption, GlobalConfig, ProjectPin
from cave.models.versioning import (
    Alias,
    ResolutionSource,
    ResolvedVersion,
    VersionSpec,
    is_explicit_version,
    version_key,
)

logger = logging.getLogger(__name__)

EXPORT_SUFFIX = ".export"


class Scope(str, Enum):
    """Where ``select`` records the chosen version."""

    GLOBAL = "global"
    PROJECT = "project"


class RemoteVersion(BaseModel):
    """One published explicit version, as shown by ``cave available``."""

    model_config = ConfigDict(frozen=True)

    tag: str
    published_at: datetime | None = None
    alias: Alias | None = None
    installed: bool = False


def find_export_file(args: Sequence[str], workdir: Path) -> Path | None:
    """Validate a trailing ``.export`` study file among the solver arguments.

    Returns its path, or ``None`` when the last argument is not an export
    file. Raises :class:`ExportFileNotFound` when it is named but missing.
    """
    if not args or not args[-1].endswith(EXPORT_SUFFIX):
        return None
    path = workdir / args[-1]
    if not path.is_file():
        raise ExportFileNotFound(args[-1])
    return path


class Orchestrator:
    """Central coordinator for cave commands.

    Parameters
    ----------
    settings:
        Runtime settings. Read from the environment if not provided.
    workdir:
        Directory the invocation runs in; defaults to the current directory.
    runtime:
        Container runtime; the Docker CLI if not provided.
    catalog:
        Remote catalog client; built from *settings* if not provided.
    telemetry_sink:
        Transport for usage records; an HTTP sink if ``telemetry_url`` is set.
    stdout, stderr:
        Sinks for solver output.
    """

    def __init__(
        self,
        settings: CaveSettings | None = None,
        *,
        workdir: Path | None = None,
        runtime: ContainerRuntime | None = None,
        catalog: RemoteCatalogClient | None = None,
        telemetry_sink: TelemetrySink | None = None,
        stdout: IO[str] | None = None,
        stderr: IO[str] | None = None,
    ) -> None:
        self.settings = settings or CaveSettings()
        self.workdir = Path(workdir) if workdir is not None else Path.cwd()

        # Persisted state
        self.config_store = ConfigStore(self.settings.config_path)
        self.pin_store = ProjectPinStore(self.workdir, self.settings.pin_filename)
        self.config: GlobalConfig = self.config_store.load_or_init()

        # Images
        self.runtime = runtime or DockerCliRuntime(self.settings.docker_binary)
        self.catalog = catalog or RemoteCatalogClient(
            self.settings.repository,
            api_url=self.settings.hub_api_url,
            timeout=self.settings.catalog_timeout,
            max_retries=self.settings.catalog_max_retries,
            retry_delay=self.settings.catalog_retry_delay,
        )
        self.inventory = LocalImageInventory(self.runtime, self.settings.repository)

        # Resolution and execution
        self.resolver = VersionResolver(
            self.catalog, self.inventory, self.settings.image_reference
        )
        self.engine = ExecutionEngine(
            self.runtime,
            self.inventory,
            workdir=self.workdir,
            solver_command=self.settings.solver_command,
            mount_point=self.settings.mount_point,
            stop_timeout=self.settings.stop_timeout,
            stdout=stdout,
            stderr=stderr,
        )

        self._http_sink: HttpTelemetrySink | None = None
        if telemetry_sink is None and self.settings.telemetry_url:
            self._http_sink = telemetry_sink = HttpTelemetrySink(self.settings.telemetry_url)
        self.telemetry = TelemetryReporter(
            telemetry_sink, enabled=self.config.telemetry_enabled
        )

    # ------------------------------------------------------------------
    # Resolution and run
    # ------------------------------------------------------------------

    def resolve(self) -> ResolvedVersion:
        """Resolve the effective version for the working directory."""
        return self.resolver.resolve(self.pin_store.load(), self.config.default_version)

    def run(self, solver_args: Sequence[str]) -> int:
        """Resolve, then run the solver; returns the container's exit code."""
        resolved = self.resolve()
        if resolved.from_fallback:
            logger.warning(
                "Using local %s image %s; it may be outdated.",
                resolved.requested,
                resolved.version,
            )
        find_export_file(solver_args, self.workdir)

        interactive = INTERACTIVE_FLAG in solver_args
        started = time.monotonic()
        try:
            code = self.engine.run(resolved, solver_args)
        except Terminated:
            if not interactive:
                self._report(resolved, started, valid=False)
            raise
        if not interactive:
            self._report(resolved, started, valid=code == 0)
        return code

    def _report(self, resolved: ResolvedVersion, started: float, *, valid: bool) -> None:
        if not self.telemetry.active:
            return
        try:
            image_id = self.inventory.image_id(resolved.version) or ""
        except RuntimeUnavailable as exc:
            logger.warning("Could not read image id for telemetry: %s", exc)
            image_id = ""
        self.telemetry.report(
            ExecutionData(
                user_id=self.config.user_id,
                time_execution_ms=int((time.monotonic() - started) * 1000),
                valid_result=valid,
                timezone=ExecutionData.local_timezone(),
                version=resolved.version,
                id_docker=image_id,
            )
        )

    # ------------------------------------------------------------------
    # use / pin
    # ------------------------------------------------------------------

    def select(
        self,
        version: str,
        scope: Scope,
        confirm: Callable[[str], bool],
    ) -> str:
        """Record *version* as the global default or the directory pin.

        The version must exist locally or in the catalog. A version that is
        only published is downloaded first if *confirm* agrees. Aliases are
        stored as aliases and expanded again on every run.

        Returns the concrete version the selection currently maps to.
        """
        spec = VersionSpec.parse(version)
        alias = spec.alias
        concrete = self.resolver.expand_remote(alias) if alias else spec.value

        if not self.inventory.contains(concrete):
            try:
                published = self.catalog.list().tags()
            except CatalogFetchError as exc:
                raise CatalogUnavailable(concrete, str(exc)) from exc
            if concrete not in published:
                raise VersionNotAvailable(concrete)
            if not confirm(concrete):
                raise UserAborted()

        source = ResolutionSource.GLOBAL_DEFAULT if scope is Scope.GLOBAL else ResolutionSource.PROJECT_PIN
        self.engine.ensure_image(
            ResolvedVersion(
                version=concrete,
                image=self.settings.image_reference(concrete),
                requested=spec,
                source=source,
            )
        )

        if scope is Scope.GLOBAL:
            self.config = self.config.model_copy(update={"default_version": spec})
            self.config_store.save(self.config)
        else:
            self.pin_store.save(ProjectPin(pinned_version=spec))
        logger.info("Selected %s (%s) for %s scope", spec, concrete, scope.value)
        return concrete

    # ------------------------------------------------------------------
    # list / available
    # ------------------------------------------------------------------

    def local_versions(self, prefix: str = "") -> list[str]:
        return self.inventory.versions(prefix)

    def remote_versions(self, prefix: str = "") -> list[RemoteVersion]:
        """Published explicit versions, numerically sorted, with alias labels."""
        snapshot = self.catalog.list()
        labels = {alias_targets(snapshot, alias): alias for alias in Alias}
        installed = set(self.inventory.versions())
        entries = [
            entry
            for entry in snapshot.entries
            if is_explicit_version(entry.tag) and entry.tag.startswith(prefix)
        ]
        entries.sort(key=lambda entry: version_key(entry.tag))
        return [
            RemoteVersion(
                tag=entry.tag,
                published_at=entry.published_at,
                alias=labels.get(entry.tag),
                installed=entry.tag in installed,
            )
            for entry in entries
        ]

    # ------------------------------------------------------------------
    # config
    # ------------------------------------------------------------------

    def configure(self, option: ConfigOption) -> GlobalConfig:
        self.config = option.apply(self.config)
        self.config_store.save(self.config)
        self.telemetry.enabled = self.config.telemetry_enabled
        return self.config

    def check_for_update(self, current_version: str) -> str | None:
        """Newer cave release tag, if update checks are enabled and one exists."""
        if not self.config.auto_update_enabled:
            return None
        checker = UpdateChecker(self.settings.release_url, current_version)
        try:
            return checker.check()
        finally:
            checker.close()

    def close(self) -> None:
        """Release the HTTP clients this orchestrator opened."""
        self.catalog.close()
        if self._http_sink is not None:
            self._http_sink.close()

    def __enter__(self) -> Orchestrator:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()
