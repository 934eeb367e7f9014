"""Execution engine: run the solver in a fresh container.

For each invocation the engine

1. makes sure the resolved image is present, pulling it if needed,
2. launches exactly one new container with the solver arguments,
3. relays the container's stdout and stderr line by line while waiting for
   it to exit,
4. returns the container's exit code once all output has been flushed.

The container is treated as a scoped resource: whatever happens after
launch (normal exit, error, interrupt), it is stopped, waited for and
removed before :meth:`ExecutionEngine.run` returns.
"""

from __future__ import annotations

import logging
import sys
import threading
import uuid
from collections import deque
from collections.abc import Sequence
from pathlib import Path
from typing import IO

from cave.core.errors import PullFailed, RunCancelled, RuntimeUnavailable, Terminated
from cave.core.inventory import LocalImageInventory
from cave.core.runtime import ContainerProcess, ContainerRuntime, ContainerSpec
from cave.models.versioning import ResolvedVersion

logger = logging.getLogger(__name__)

INTERACTIVE_FLAG = "-i"


def _pump(source: IO[bytes], sink: IO[str], tail: deque[str] | None = None) -> None:
    """Copy *source* to *sink* line by line, flushing after each line.

    The last lines are also kept in *tail* when given.
    """
    try:
        for raw in iter(source.readline, b""):
            line = raw.decode("utf-8", errors="replace")
            sink.write(line)
            sink.flush()
            if tail is not None and line.strip():
                tail.append(line.strip())
    finally:
        source.close()


class ExecutionEngine:
    """Runs a :class:`ResolvedVersion` with the given solver arguments.

    Parameters
    ----------
    runtime:
        The container runtime.
    inventory:
        Local images, re-queried before every run.
    workdir:
        Host directory mounted into the container and used as its working
        directory.
    solver_command:
        Executable inside the image that receives the solver arguments.
    mount_point:
        Where *workdir* is mounted inside the container.
    stop_timeout:
        Grace period in seconds given to the container on cancellation.
    stdout, stderr:
        Sinks for the container streams. Default to the process streams.
    """

    def __init__(
        self,
        runtime: ContainerRuntime,
        inventory: LocalImageInventory,
        *,
        workdir: Path,
        solver_command: str = "run_aster",
        mount_point: str = "/home/user/data",
        stop_timeout: int = 10,
        stdout: IO[str] | None = None,
        stderr: IO[str] | None = None,
    ) -> None:
        self._runtime = runtime
        self._inventory = inventory
        self._workdir = Path(workdir)
        self._solver_command = solver_command
        self._mount_point = mount_point
        self._stop_timeout = stop_timeout
        self._stdout = stdout
        self._stderr = stderr

    # ------------------------------------------------------------------
    # Image presence
    # ------------------------------------------------------------------

    def ensure_image(self, resolved: ResolvedVersion) -> None:
        """Pull the resolved image unless the runtime already has it.

        A failed pull removes whatever partial image the runtime may have
        registered and raises :class:`PullFailed`.
        """
        if self._inventory.contains(resolved.version):
            logger.debug("Image %s already present", resolved.image)
        else:
            logger.info("Version %s not installed locally, pulling", resolved.version)
            try:
                self._runtime.pull(resolved.image)
            except PullFailed:
                self._runtime.remove_image(resolved.image)
                raise
            if not self._inventory.contains(resolved.version):
                self._runtime.remove_image(resolved.image)
                raise PullFailed(resolved.image, "image missing after pull")

        alias = resolved.requested.alias
        if alias is not None and not resolved.from_fallback:
            # Record which concrete version the alias mapped to, for offline runs.
            alias_image = resolved.image.rsplit(":", 1)[0] + f":{alias.value}"
            try:
                self._runtime.tag(resolved.image, alias_image)
            except RuntimeUnavailable as exc:
                logger.warning("Could not tag %s as %s: %s", resolved.image, alias_image, exc)

    # ------------------------------------------------------------------
    # Run
    # ------------------------------------------------------------------

    def run(self, resolved: ResolvedVersion, solver_args: Sequence[str]) -> int:
        """Run the solver and return the container's exit code.

        Raises
        ------
        PullFailed
            The image was absent and could not be pulled.
        RuntimeUnavailable
            The container runtime cannot be reached, or ``docker run``
            failed before the container was created.
        Terminated
            The docker client was killed by a signal, or the runtime reports
            the container as OOM-killed.
        RunCancelled
            The invoking process was interrupted; the container has been
            stopped.
        """
        self.ensure_image(resolved)

        args = list(solver_args)
        spec = ContainerSpec(
            name=f"cave-{uuid.uuid4().hex[:12]}",
            image=resolved.image,
            command=(self._solver_command, *args),
            workdir=self._workdir,
            mount_point=self._mount_point,
            interactive=INTERACTIVE_FLAG in args,
        )
        logger.info("Running code_aster %s in container %s", resolved.version, spec.name)

        process = self._runtime.start(spec)
        pumps: list[threading.Thread] = []
        stderr_tail: deque[str] = deque(maxlen=5)
        cancelled = False
        try:
            self._start_pumps(process, pumps, stderr_tail)
            try:
                returncode = process.wait()
            except KeyboardInterrupt:
                cancelled = True
                logger.warning("Interrupted, stopping container %s", spec.name)
                self._stop(spec.name, process)
                returncode = process.wait()
        finally:
            if process.poll() is None:
                self._stop(spec.name, process)
            for pump in pumps:
                pump.join()
            try:
                container_exit = None if cancelled else self._runtime.inspect_exit(spec.name)
            finally:
                self._runtime.remove_container(spec.name)

        if cancelled:
            raise RunCancelled(spec.name)
        if returncode < 0:
            raise Terminated(-returncode)
        if container_exit is None:
            if returncode != 0:
                # docker run failed before the container existed (125-127)
                reason = stderr_tail[-1] if stderr_tail else f"docker run exited with {returncode}"
                raise RuntimeUnavailable(reason)
            return returncode
        if container_exit.signal is not None:
            raise Terminated(container_exit.signal)
        logger.debug("Container %s exited with %d", spec.name, container_exit.exit_code)
        return container_exit.exit_code

    def _start_pumps(
        self,
        process: ContainerProcess,
        pumps: list[threading.Thread],
        stderr_tail: deque[str],
    ) -> None:
        for source, sink, tail in (
            (process.stdout, self._stdout or sys.stdout, None),
            (process.stderr, self._stderr or sys.stderr, stderr_tail),
        ):
            if source is None:
                continue
            thread = threading.Thread(
                target=_pump, args=(source, sink, tail), name="cave-pump", daemon=True
            )
            thread.start()
            pumps.append(thread)

    def _stop(self, name: str, process: ContainerProcess) -> None:
        self._runtime.stop(name, timeout=self._stop_timeout)
        process.wait()
