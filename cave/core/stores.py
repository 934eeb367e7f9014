"""Persisted state: the global config file and per-directory pin files.

Both stores read and write small JSON documents. Writes go to a temporary
file next to the target and are moved into place with ``os.replace``, so a
failed write never leaves a truncated file behind and concurrent writers
result in last-writer-wins, never corruption.
"""

from __future__ import annotations

import logging
import os
import tempfile
import uuid
from pathlib import Path

from pydantic import BaseModel, ValidationError

from cave.core.errors import ConfigError
from cave.models.config import GlobalConfig, ProjectPin

logger = logging.getLogger(__name__)


def _atomic_write_text(path: Path, content: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with tempfile.NamedTemporaryFile(
        mode="w",
        encoding="utf-8",
        delete=False,
        dir=str(path.parent),
        prefix=path.name + ".",
        suffix=".tmp",
    ) as handle:
        temp_path = Path(handle.name)
        try:
            handle.write(content)
            handle.flush()
            os.fsync(handle.fileno())
        except BaseException:
            handle.close()
            temp_path.unlink(missing_ok=True)
            raise
    try:
        os.replace(temp_path, path)
    except BaseException:
        temp_path.unlink(missing_ok=True)
        raise


def _read_model(path: Path, model: type[BaseModel]) -> BaseModel | None:
    """Parse *path* as *model*; ``None`` if the file does not exist."""
    try:
        content = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return None
    except OSError as exc:
        raise ConfigError(f"Cannot read {path}: {exc}") from exc
    try:
        return model.model_validate_json(content)
    except ValidationError as exc:
        raise ConfigError(f"Invalid content in {path}: {exc}") from exc


def _write_model(path: Path, value: BaseModel) -> None:
    try:
        _atomic_write_text(path, value.model_dump_json(indent=2) + "\n")
    except OSError as exc:
        raise ConfigError(f"Cannot write {path}: {exc}") from exc


class ConfigStore:
    """Loads and saves the user-scoped :class:`GlobalConfig`.

    Parameters
    ----------
    path:
        Location of the config file, usually ``~/.caveconfig.json``.
    """

    def __init__(self, path: Path) -> None:
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> GlobalConfig:
        """Return the stored config, or defaults on first run."""
        config = _read_model(self._path, GlobalConfig)
        if config is None:
            logger.debug("No config at %s, using defaults", self._path)
            return GlobalConfig()
        return config  # type: ignore[return-value]

    def save(self, config: GlobalConfig) -> None:
        _write_model(self._path, config)
        logger.debug("Saved config to %s", self._path)

    def load_or_init(self) -> GlobalConfig:
        """Like :meth:`load`, but writes the defaults on first run.

        The anonymous user id is generated once and kept across invocations.
        """
        if not self._path.exists():
            config = GlobalConfig()
            self.save(config)
            return config
        return self.ensure_user_id(self.load())

    def ensure_user_id(self, config: GlobalConfig) -> GlobalConfig:
        """Give *config* a persisted anonymous user id.

        An empty id is replaced. An id the file never stored (generated on
        load) is written back so it stays the same on the next run.
        """
        if config.user_id and "user_id" in config.model_fields_set:
            return config
        updated = config.model_copy(update={"user_id": config.user_id or str(uuid.uuid4())})
        self.save(updated)
        return updated


class ProjectPinStore:
    """Loads and saves the :class:`ProjectPin` of one directory.

    Parameters
    ----------
    directory:
        The directory the pin applies to.
    filename:
        Name of the pin file inside *directory*.
    """

    def __init__(self, directory: Path, filename: str = ".cave") -> None:
        self._path = Path(directory) / filename

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> ProjectPin | None:
        """Return the directory's pin, or ``None`` if it was never pinned."""
        return _read_model(self._path, ProjectPin)  # type: ignore[return-value]

    def save(self, pin: ProjectPin) -> None:
        _write_model(self._path, pin)
        logger.debug("Pinned %s in %s", pin.pinned_version, self._path.parent)
