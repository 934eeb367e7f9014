"""Persisted user state: global preferences and per-directory pins."""

from __future__ import annotations

import uuid
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from cave.models.versioning import VersionSpec


class GlobalConfig(BaseModel):
    """User-scoped preferences, stored in ``~/.caveconfig.json``.

    Loaded once per process and written back after every mutation.
    """

    model_config = ConfigDict(frozen=True)

    default_version: VersionSpec | None = None
    auto_update_enabled: bool = False
    telemetry_enabled: bool = True
    user_id: str = Field(default_factory=lambda: str(uuid.uuid4()))


class ProjectPin(BaseModel):
    """Directory-scoped version override, stored in ``./.cave``."""

    model_config = ConfigDict(frozen=True)

    pinned_version: VersionSpec


class ConfigOption(str, Enum):
    """The closed set of ``cave config`` mutations."""

    ENABLE_AUTO_UPDATE = "enable-auto-update"
    DISABLE_AUTO_UPDATE = "disable-auto-update"
    ENABLE_USAGE_TRACKING = "enable-usage-tracking"
    DISABLE_USAGE_TRACKING = "disable-usage-tracking"

    def apply(self, config: GlobalConfig) -> GlobalConfig:
        """Return *config* with this option's single field updated."""
        field, value = _OPTION_FIELDS[self]
        return config.model_copy(update={field: value})


_OPTION_FIELDS: dict[ConfigOption, tuple[str, bool]] = {
    ConfigOption.ENABLE_AUTO_UPDATE: ("auto_update_enabled", True),
    ConfigOption.DISABLE_AUTO_UPDATE: ("auto_update_enabled", False),
    ConfigOption.ENABLE_USAGE_TRACKING: ("telemetry_enabled", True),
    ConfigOption.DISABLE_USAGE_TRACKING: ("telemetry_enabled", False),
}
