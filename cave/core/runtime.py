"""Container runtime contract and its Docker CLI implementation.

The core depends only on :class:`ContainerRuntime`; :class:`DockerCliRuntime`
fulfils it by shelling out to the ``docker`` binary. Tests substitute an
in-memory fake.
"""

from __future__ import annotations

import json
import logging
import signal
import subprocess
import sys
from datetime import datetime
from pathlib import Path
from typing import IO, Protocol, runtime_checkable

from pydantic import BaseModel, ConfigDict

from cave.core.errors import PullFailed, RuntimeUnavailable
from cave.models.images import LocalImageRecord

logger = logging.getLogger(__name__)


class ContainerSpec(BaseModel):
    """Everything needed to launch one solver container."""

    model_config = ConfigDict(frozen=True)

    name: str
    image: str
    command: tuple[str, ...]
    workdir: Path
    mount_point: str = "/home/user/data"
    interactive: bool = False


class ContainerExit(BaseModel):
    """Final state of a container as reported by the runtime."""

    model_config = ConfigDict(frozen=True)

    exit_code: int
    signal: int | None = None


@runtime_checkable
class ContainerProcess(Protocol):
    """The attached client process of a running container (``Popen``-like)."""

    stdout: IO[bytes] | None
    stderr: IO[bytes] | None
    returncode: int | None

    def wait(self, timeout: float | None = None) -> int: ...

    def poll(self) -> int | None: ...


@runtime_checkable
class ContainerRuntime(Protocol):
    """Operations the core needs from a container runtime."""

    def list_images(self, repository: str) -> list[LocalImageRecord]: ...

    def pull(self, image: str) -> None: ...

    def tag(self, source: str, target: str) -> None: ...

    def remove_image(self, image: str) -> None: ...

    def start(self, spec: ContainerSpec) -> ContainerProcess: ...

    def inspect_exit(self, name: str) -> ContainerExit | None: ...

    def stop(self, name: str, timeout: int = 10) -> None: ...

    def remove_container(self, name: str) -> None: ...


# ---------------------------------------------------------------------------
# Docker CLI
# ---------------------------------------------------------------------------


def _parse_created_at(value: str) -> datetime | None:
    """Parse ``docker images`` CreatedAt (``2024-05-03 10:11:12 +0200 CEST``)."""
    parts = value.split(" ")
    if len(parts) < 3:
        return None
    try:
        return datetime.strptime(" ".join(parts[:3]), "%Y-%m-%d %H:%M:%S %z")
    except ValueError:
        return None


def _last_line(text: str) -> str:
    lines = [line.strip() for line in text.splitlines() if line.strip()]
    return lines[-1] if lines else "unknown error"


class DockerCliRuntime:
    """:class:`ContainerRuntime` backed by the ``docker`` command line.

    Parameters
    ----------
    binary:
        Name or path of the docker executable.
    progress_stream:
        Where ``docker pull`` progress is written. Defaults to stderr so that
        stdout only carries solver output.
    """

    def __init__(self, binary: str = "docker", progress_stream: IO[str] | None = None) -> None:
        self._binary = binary
        self._progress = progress_stream

    def _run(self, *args: str, check: bool = True) -> subprocess.CompletedProcess[str]:
        cmd = [self._binary, *args]
        logger.debug("Running %s", " ".join(cmd))
        try:
            result = subprocess.run(cmd, capture_output=True, text=True)
        except FileNotFoundError as exc:
            raise RuntimeUnavailable(
                "Docker not found. Please install Docker and try again."
            ) from exc
        except OSError as exc:
            raise RuntimeUnavailable(str(exc)) from exc
        if check and result.returncode != 0:
            raise RuntimeUnavailable(
                f"`docker {args[0]}` failed: {_last_line(result.stderr)}"
            )
        return result

    # ------------------------------------------------------------------
    # Images
    # ------------------------------------------------------------------

    def list_images(self, repository: str) -> list[LocalImageRecord]:
        result = self._run(
            "images", "--filter", f"reference={repository}", "--format", "{{json .}}"
        )
        records: list[LocalImageRecord] = []
        for line in result.stdout.splitlines():
            line = line.strip()
            if not line:
                continue
            try:
                row = json.loads(line)
            except json.JSONDecodeError:
                logger.warning("Skipping unparsable docker images line: %s", line)
                continue
            tag = row.get("Tag", "")
            if not tag or tag == "<none>":
                continue
            records.append(
                LocalImageRecord(
                    tag=tag,
                    image_id=row.get("ID", ""),
                    size=row.get("Size", ""),
                    created_at=_parse_created_at(row.get("CreatedAt", "")),
                )
            )
        return records

    def pull(self, image: str) -> None:
        cmd = [self._binary, "pull", image]
        logger.info("Pulling %s", image)
        try:
            result = subprocess.run(
                cmd,
                stdout=self._progress or sys.stderr,
                stderr=subprocess.PIPE,
                text=True,
            )
        except FileNotFoundError as exc:
            raise RuntimeUnavailable(
                "Docker not found. Please install Docker and try again."
            ) from exc
        if result.returncode != 0:
            raise PullFailed(image, _last_line(result.stderr or ""))

    def tag(self, source: str, target: str) -> None:
        self._run("tag", source, target)

    def remove_image(self, image: str) -> None:
        self._run("rmi", image, check=False)

    # ------------------------------------------------------------------
    # Containers
    # ------------------------------------------------------------------

    def start(self, spec: ContainerSpec) -> subprocess.Popen[bytes]:
        cmd = [
            self._binary,
            "run",
            "--name",
            spec.name,
            "-v",
            f"{spec.workdir}:{spec.mount_point}",
            "-w",
            spec.mount_point,
        ]
        if spec.interactive:
            cmd.append("-i")
        cmd.append(spec.image)
        cmd.extend(spec.command)
        logger.debug("Starting container: %s", cmd)
        try:
            return subprocess.Popen(
                cmd,
                stdin=None if spec.interactive else subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
            )
        except FileNotFoundError as exc:
            raise RuntimeUnavailable(
                "Docker not found. Please install Docker and try again."
            ) from exc

    def inspect_exit(self, name: str) -> ContainerExit | None:
        result = self._run("inspect", "-f", "{{json .State}}", name, check=False)
        if result.returncode != 0:
            return None
        try:
            state = json.loads(result.stdout)
        except json.JSONDecodeError:
            return None
        exit_code = int(state.get("ExitCode", 0))
        if state.get("OOMKilled"):
            return ContainerExit(exit_code=exit_code, signal=int(signal.SIGKILL))
        return ContainerExit(exit_code=exit_code)

    def stop(self, name: str, timeout: int = 10) -> None:
        self._run("stop", "-t", str(timeout), name, check=False)

    def remove_container(self, name: str) -> None:
        self._run("rm", "-f", name, check=False)
