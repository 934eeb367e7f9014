"""Runtime settings: env-driven, read once per process.

Every setting can be overridden through ``CAVE_*`` environment variables or a
``.env`` file in the working directory. User preferences (default version,
opt-ins) are *not* settings; they live in the global config file managed by
:class:`cave.core.stores.ConfigStore`.
"""

from __future__ import annotations

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class CaveSettings(BaseSettings):
    """Process-wide settings with environment variable overrides.

    Examples
    --------
    Turn on debug logging::

        export CAVE_DEBUG=true

    Point at another repository::

        export CAVE_REPOSITORY=myorg/code_aster
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="CAVE_",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Logging
    debug: bool = False
    log_level: str = "INFO"

    # Persisted state
    config_path: Path = Field(default_factory=lambda: Path.home() / ".caveconfig.json")
    pin_filename: str = ".cave"

    # Images and registry
    repository: str = "simvia/code_aster"
    registry_host: str = "docker.io"
    hub_api_url: str = "https://hub.docker.com/v2"
    catalog_timeout: float = 10.0
    catalog_max_retries: int = 2
    catalog_retry_delay: float = 0.5

    # Container runtime
    docker_binary: str = "docker"
    mount_point: str = "/home/user/data"
    solver_command: str = "run_aster"
    stop_timeout: int = 10

    # Optional collaborators; empty disables them
    telemetry_url: str = ""
    release_url: str = "https://api.github.com/repos/simvia-tech/cave/releases/latest"

    @property
    def effective_log_level(self) -> str:
        """DEBUG when ``CAVE_DEBUG`` is set, the configured level otherwise."""
        return "DEBUG" if self.debug else self.log_level.upper()

    def image_reference(self, tag: str) -> str:
        """Fully-qualified image reference for *tag* in the configured repository."""
        return f"{self.registry_host}/{self.repository}:{tag}"
