"""
Unit tests for Config defaults and overrides.
"""
import json

import pytest

from config import Config


@pytest.mark.unit
class TestConfig:

    def test_environment_overrides(self, temp_dir, monkeypatch):
        monkeypatch.setenv("CONFIG_DIR", str(temp_dir))
        monkeypatch.setenv("LLM_MODEL", "qwen2.5")
        monkeypatch.setenv("PROVIDER_TIMEOUT", "12.5")
        monkeypatch.setenv("AT_RISK_MULTIPLIER", "3")

        config = Config()

        assert config.llm_model == "qwen2.5"
        assert config.provider_timeout_seconds == 12.5
        assert config.at_risk_multiplier == 3

    def test_settings_file_overlay(self, temp_dir, monkeypatch):
        monkeypatch.setenv("CONFIG_DIR", str(temp_dir))
        (temp_dir / "procurement_settings.json").write_text(json.dumps({
            "_comment": "ignored",
            "provider_max_attempts": "5",
            "at_risk_multiplier": 4,
            "db_path": "/not/allowed.db",
        }), encoding="utf-8")

        config = Config()

        assert config.provider_max_attempts == 5
        assert config.at_risk_multiplier == 4
        assert str(config.db_path) != "/not/allowed.db"

    def test_broken_settings_file_is_ignored(self, temp_dir, monkeypatch):
        monkeypatch.setenv("CONFIG_DIR", str(temp_dir))
        (temp_dir / "procurement_settings.json").write_text("{broken", encoding="utf-8")

        config = Config()

        assert config.provider_max_attempts == 3

    def test_ensure_data_dir(self, test_config):
        test_config.ensure_data_dir()

        assert test_config.data_dir.is_dir()
        assert test_config.db_path.parent.is_dir()
