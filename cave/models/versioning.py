"""Version models: requested specs and resolved image references."""

from __future__ import annotations

import re
from enum import Enum

from pydantic import BaseModel, ConfigDict, RootModel, ValidationError, field_validator

from cave.core.errors import MalformedVersion

VERSION_PATTERN = re.compile(r"^\d{1,2}\.\d{1,2}\.\d{1,2}$")


class Alias(str, Enum):
    """Symbolic versions that move as new builds are published."""

    STABLE = "stable"
    TESTING = "testing"


def is_explicit_version(text: str) -> bool:
    """Whether *text* is a numeric dotted version such as ``17.2.24``."""
    return bool(VERSION_PATTERN.fullmatch(text))


def version_key(text: str) -> tuple[int, ...]:
    """Numeric sort key for dotted versions (non-numeric parts are skipped)."""
    return tuple(int(part) for part in text.split(".") if part.isdigit())


class VersionSpec(RootModel[str]):
    """A requested version: an alias or an explicit ``xx.x.xx`` version.

    Serializes as the plain string, so it can be embedded in persisted
    documents. Use :meth:`parse` on user input; it raises
    :class:`MalformedVersion` rather than coercing.
    """

    model_config = ConfigDict(frozen=True)

    @field_validator("root")
    @classmethod
    def _check_format(cls, value: str) -> str:
        if value in {a.value for a in Alias} or is_explicit_version(value):
            return value
        raise ValueError(f"unrecognized version format: {value!r}")

    @classmethod
    def parse(cls, text: str) -> VersionSpec:
        try:
            return cls(text)
        except ValidationError:
            raise MalformedVersion(text) from None

    @property
    def value(self) -> str:
        return self.root

    @property
    def alias(self) -> Alias | None:
        """The alias this spec names, or ``None`` for explicit versions."""
        try:
            return Alias(self.root)
        except ValueError:
            return None

    @property
    def is_alias(self) -> bool:
        return self.alias is not None

    def __str__(self) -> str:
        return self.root


class ResolutionSource(str, Enum):
    """Where the effective version of a resolution came from."""

    PROJECT_PIN = "project_pin"
    GLOBAL_DEFAULT = "global_default"


class ResolvedVersion(BaseModel):
    """The concrete version an invocation runs, with its image reference.

    Produced only by :class:`cave.core.resolver.VersionResolver`; never
    persisted.
    """

    model_config = ConfigDict(frozen=True)

    version: str
    image: str
    requested: VersionSpec
    source: ResolutionSource
    from_fallback: bool = False
