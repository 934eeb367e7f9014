"""Error taxonomy for cave.

Every error the core surfaces derives from :class:`CaveError` and carries the
process exit code the CLI should use for it, so that resolution and
configuration failures stay distinguishable from solver failures.
"""

from __future__ import annotations

import signal as _signal

# Exit code classes
EXIT_USAGE = 2
EXIT_RUNTIME = 3
EXIT_CANCELLED = 130


class CaveError(Exception):
    """Base class for all errors surfaced by the cave core."""

    exit_code: int = 1


# ---------------------------------------------------------------------------
# Resolution
# ---------------------------------------------------------------------------


class ResolutionError(CaveError):
    """The effective version for an invocation could not be decided."""

    exit_code = EXIT_USAGE


class MalformedVersion(ResolutionError):
    """Raised when a version string is neither an alias nor ``xx.x.xx``."""

    def __init__(self, text: str) -> None:
        super().__init__(
            f"Invalid version input: '{text}'. "
            "Expected stable, testing or a version like 17.2.24."
        )
        self.text = text


class NoVersionConfigured(ResolutionError):
    """Raised when neither a project pin nor a global default exists."""

    def __init__(self) -> None:
        super().__init__(
            "No version configured. Run `cave use <version>` or `cave pin <version>`."
        )


class CatalogUnavailable(ResolutionError):
    """Raised when an alias cannot be expanded remotely nor locally."""

    def __init__(self, alias: str, reason: str = "") -> None:
        message = f"Cannot resolve '{alias}': no matching version in the catalog or local images."
        if reason:
            message = f"{message} ({reason})"
        super().__init__(message)
        self.alias = alias
        self.reason = reason


class VersionNotAvailable(ResolutionError):
    """Raised when a requested version exists neither locally nor remotely."""

    def __init__(self, version: str) -> None:
        super().__init__(
            f"Version '{version}' is not available. Run `cave available` to list published versions."
        )
        self.version = version


class UserAborted(ResolutionError):
    """Raised when the user declines to download a missing version."""

    def __init__(self) -> None:
        super().__init__("No version selected. Operation cancelled by user.")


# ---------------------------------------------------------------------------
# Persisted state
# ---------------------------------------------------------------------------


class ConfigError(CaveError):
    """Raised on I/O or parse failures of the config or pin files."""

    exit_code = EXIT_USAGE


# ---------------------------------------------------------------------------
# Catalog (recoverable, never surfaced directly from a resolution)
# ---------------------------------------------------------------------------


class CatalogFetchError(CaveError):
    """Raised when the remote tag catalog cannot be fetched."""

    exit_code = EXIT_RUNTIME

    def __init__(self, message: str, *, status_code: int | None = None, retryable: bool = False) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.retryable = retryable


# ---------------------------------------------------------------------------
# Execution
# ---------------------------------------------------------------------------


class ExecutionError(CaveError):
    """Base class for failures while acquiring or running an image."""

    exit_code = EXIT_RUNTIME


class RuntimeUnavailable(ExecutionError):
    """Raised when the container runtime cannot be reached. Never retried."""

    def __init__(self, reason: str) -> None:
        super().__init__(f"Docker error: {reason}")
        self.reason = reason


class PullFailed(ExecutionError):
    """Raised when an image could not be pulled."""

    def __init__(self, image: str, reason: str) -> None:
        super().__init__(f"Failed to pull {image}: {reason}")
        self.image = image
        self.reason = reason


class Terminated(ExecutionError):
    """Raised when a run ended by a signal.

    Only two cases are detected: the docker client itself was killed by a
    signal, or the runtime reports the container as OOM-killed (SIGKILL).
    A container killed any other way (``docker kill``, a segfault) reports
    128 + signal as its exit code, which is passed through unchanged.
    """

    def __init__(self, signum: int) -> None:
        try:
            name = _signal.Signals(signum).name
        except ValueError:
            name = f"signal {signum}"
        super().__init__(f"code_aster container terminated by {name}")
        self.signal = signum
        self.exit_code = 128 + signum


class RunCancelled(ExecutionError):
    """Raised after an interrupted run once its container has stopped."""

    exit_code = EXIT_CANCELLED

    def __init__(self, container: str) -> None:
        super().__init__(f"Run cancelled; container {container} stopped.")
        self.container = container


class ExportFileNotFound(ExecutionError):
    """Raised when the ``.export`` study file passed to ``run`` is missing."""

    exit_code = EXIT_USAGE

    def __init__(self, path: str) -> None:
        super().__init__(f"Export file '{path}' not found or invalid.")
        self.path = path
