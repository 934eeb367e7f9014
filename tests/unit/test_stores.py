"""Tests for ConfigStore and ProjectPinStore: defaults, round trips, atomic writes."""

from __future__ import annotations

import json
import os

import pytest

from cave.core import stores as stores_module
from cave.core.errors import ConfigError
from cave.core.stores import ConfigStore, ProjectPinStore
from cave.models.config import GlobalConfig, ProjectPin
from cave.models.versioning import VersionSpec


class TestConfigStore:
    def test_missing_file_returns_defaults(self, tmp_path):
        store = ConfigStore(tmp_path / ".caveconfig.json")
        config = store.load()
        assert config.default_version is None
        assert not store.path.exists()

    @pytest.mark.parametrize("default", [None, "stable", "testing", "17.2.24"])
    @pytest.mark.parametrize("auto_update", [True, False])
    @pytest.mark.parametrize("telemetry", [True, False])
    def test_save_load_round_trip(self, tmp_path, default, auto_update, telemetry):
        store = ConfigStore(tmp_path / ".caveconfig.json")
        config = GlobalConfig(
            default_version=VersionSpec.parse(default) if default else None,
            auto_update_enabled=auto_update,
            telemetry_enabled=telemetry,
        )
        store.save(config)
        assert store.load() == config

    def test_file_is_json(self, tmp_path):
        store = ConfigStore(tmp_path / ".caveconfig.json")
        store.save(GlobalConfig(default_version=VersionSpec.parse("17.2.24"), user_id="u1"))
        data = json.loads(store.path.read_text())
        assert data["default_version"] == "17.2.24"
        assert data["user_id"] == "u1"

    def test_creates_parent_directory(self, tmp_path):
        store = ConfigStore(tmp_path / "nested" / "dir" / ".caveconfig.json")
        store.save(GlobalConfig())
        assert store.path.exists()

    def test_failed_write_keeps_previous_value(self, tmp_path, monkeypatch):
        store = ConfigStore(tmp_path / ".caveconfig.json")
        original = GlobalConfig(default_version=VersionSpec.parse("17.2.24"))
        store.save(original)

        def broken_replace(src, dst):
            raise OSError("disk full")

        monkeypatch.setattr(stores_module.os, "replace", broken_replace)
        with pytest.raises(ConfigError):
            store.save(GlobalConfig(default_version=VersionSpec.parse("stable")))
        monkeypatch.setattr(stores_module.os, "replace", os.replace)

        assert store.load() == original
        assert [p.name for p in tmp_path.iterdir()] == [".caveconfig.json"]

    def test_corrupt_file_raises_config_error(self, tmp_path):
        path = tmp_path / ".caveconfig.json"
        path.write_text("{not json")
        with pytest.raises(ConfigError):
            ConfigStore(path).load()

    def test_malformed_version_in_file_raises_config_error(self, tmp_path):
        path = tmp_path / ".caveconfig.json"
        path.write_text(json.dumps({"default_version": "17.2.x"}))
        with pytest.raises(ConfigError):
            ConfigStore(path).load()

    def test_load_or_init_persists_user_id(self, tmp_path):
        store = ConfigStore(tmp_path / ".caveconfig.json")
        first = store.load_or_init()
        assert store.path.exists()
        assert store.load_or_init().user_id == first.user_id

    def test_empty_user_id_regenerated(self, tmp_path):
        path = tmp_path / ".caveconfig.json"
        path.write_text(json.dumps({"user_id": ""}))
        config = ConfigStore(path).load_or_init()
        assert config.user_id
        assert json.loads(path.read_text())["user_id"] == config.user_id

    def test_missing_user_id_is_kept_across_runs(self, tmp_path):
        path = tmp_path / ".caveconfig.json"
        path.write_text(json.dumps({"default_version": "17.2.24", "telemetry_enabled": False}))
        store = ConfigStore(path)
        first = store.load_or_init()
        second = store.load_or_init()
        assert first.user_id == second.user_id
        stored = json.loads(path.read_text())
        assert stored["user_id"] == first.user_id
        assert stored["default_version"] == "17.2.24"
        assert stored["telemetry_enabled"] is False


class TestProjectPinStore:
    def test_missing_pin_is_none(self, tmp_path):
        assert ProjectPinStore(tmp_path).load() is None

    def test_pin_round_trip(self, tmp_path):
        store = ProjectPinStore(tmp_path)
        pin = ProjectPin(pinned_version=VersionSpec.parse("17.2.24"))
        store.save(pin)
        assert store.path == tmp_path / ".cave"
        assert store.load() == pin

    def test_pin_overwritten(self, tmp_path):
        store = ProjectPinStore(tmp_path)
        store.save(ProjectPin(pinned_version=VersionSpec.parse("17.2.24")))
        store.save(ProjectPin(pinned_version=VersionSpec.parse("testing")))
        assert store.load().pinned_version == VersionSpec.parse("testing")

    def test_pins_are_per_directory(self, tmp_path):
        a, b = tmp_path / "a", tmp_path / "b"
        a.mkdir()
        b.mkdir()
        ProjectPinStore(a).save(ProjectPin(pinned_version=VersionSpec.parse("17.2.24")))
        assert ProjectPinStore(b).load() is None
