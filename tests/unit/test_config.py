"""Tests for CaveSettings: env-driven runtime settings."""

from __future__ import annotations

from pathlib import Path

from cave.config import CaveSettings


class TestCaveSettings:
    def test_defaults(self):
        settings = CaveSettings()
        assert settings.repository == "simvia/code_aster"
        assert settings.pin_filename == ".cave"
        assert settings.solver_command == "run_aster"
        assert settings.config_path == Path.home() / ".caveconfig.json"

    def test_image_reference(self):
        assert CaveSettings().image_reference("17.2.24") == "docker.io/simvia/code_aster:17.2.24"

    def test_debug_env_raises_log_level(self, monkeypatch):
        monkeypatch.setenv("CAVE_DEBUG", "true")
        assert CaveSettings().effective_log_level == "DEBUG"

    def test_log_level_normalised(self):
        assert CaveSettings(log_level="warning").effective_log_level == "WARNING"

    def test_env_overrides(self, monkeypatch, tmp_path):
        monkeypatch.setenv("CAVE_REPOSITORY", "myorg/code_aster")
        monkeypatch.setenv("CAVE_CONFIG_PATH", str(tmp_path / "cfg.json"))
        settings = CaveSettings()
        assert settings.repository == "myorg/code_aster"
        assert settings.config_path == tmp_path / "cfg.json"
