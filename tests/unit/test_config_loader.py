"""
Unit Tests for settings and the JSON config loader
==================================================
"""

import json

import pytest
from pydantic import ValidationError

from lodgebot.infrastructure.config.config_loader import (
    get_settings_from_working_directory,
    load_app_settings_from_json,
    resolve_env_vars,
)
from lodgebot.infrastructure.config.settings import AppSettings, LogLevel, WhatsAppSettings


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ("WHATSAPP_SESSION_DIR", "WHATSAPP_MAX_RECONNECT_ATTEMPTS", "LOG_LEVEL", "WHATSAPP__SESSION_DIR"):
        monkeypatch.delenv(name, raising=False)


def write_config(tmp_path, data, name="config.json"):
    path = tmp_path / name
    path.write_text(json.dumps(data), encoding="utf-8")
    return str(path)


class TestWhatsAppSettings:

    def test_defaults(self):
        settings = WhatsAppSettings()

        assert settings.session_dir == "data/session"
        assert settings.qr_png_path == "data/qr_code.png"
        assert settings.reconnect_initial_delay_ms == 3000
        assert settings.reconnect_max_delay_ms == 30000
        assert settings.max_reconnect_attempts == 10
        assert settings.browser == ["ValidationBot", "Chrome", "1.0.0"]
        assert settings.mark_online_on_connect is False
        assert settings.sync_full_history is False

    def test_env_prefix(self, monkeypatch):
        monkeypatch.setenv("WHATSAPP_SESSION_DIR", "/var/lib/lodgebot/session")
        monkeypatch.setenv("WHATSAPP_MAX_RECONNECT_ATTEMPTS", "4")

        settings = WhatsAppSettings()

        assert settings.session_dir == "/var/lib/lodgebot/session"
        assert settings.max_reconnect_attempts == 4

    @pytest.mark.parametrize("overrides", [
        {"reconnect_initial_delay_ms": 0},
        {"reconnect_max_delay_ms": -1},
        {"max_reconnect_attempts": -1},
        {"reconnect_initial_delay_ms": 5000, "reconnect_max_delay_ms": 1000},
        {"browser": ["OnlyName"]},
    ])
    def test_invalid_values_rejected(self, overrides):
        with pytest.raises(ValidationError):
            WhatsAppSettings(**overrides)


class TestResolveEnvVars:

    def test_nested_placeholders(self, monkeypatch):
        monkeypatch.setenv("LODGE_SESSION", "/srv/session")

        resolved = resolve_env_vars({"whatsapp": {"session_dir": "${LODGE_SESSION}", "browser": ["${MISSING}"]}})

        assert resolved == {"whatsapp": {"session_dir": "/srv/session", "browser": [""]}}

    def test_plain_values_untouched(self):
        assert resolve_env_vars({"a": 1, "b": "text", "c": None}) == {"a": 1, "b": "text", "c": None}


class TestLoadFromJson:

    def test_whatsapp_and_logging_blocks(self, tmp_path):
        path = write_config(tmp_path, {
            "logging": {"level": "debug", "file": "var/logs/bot.jsonl", "console": False},
            "whatsapp": {
                "session_dir": "var/session",
                "connection": {"max_reconnect_attempts": 3, "reconnect_initial_delay_ms": 1000}
            }
        })

        settings = load_app_settings_from_json(path)

        assert settings.logging.level == LogLevel.DEBUG
        assert settings.logging.log_dir == "var/logs"
        assert settings.logging.console_enabled is False
        assert settings.whatsapp.session_dir == "var/session"
        assert settings.whatsapp.max_reconnect_attempts == 3
        assert settings.whatsapp.reconnect_initial_delay_ms == 1000
        assert settings.whatsapp.reconnect_max_delay_ms == 30000

    def test_unknown_keys_ignored(self, tmp_path):
        path = write_config(tmp_path, {"whatsapp": {"not_a_setting": 1}, "extra": {}})

        assert load_app_settings_from_json(path).whatsapp.session_dir == "data/session"

    def test_invalid_whatsapp_values(self, tmp_path):
        path = write_config(tmp_path, {"whatsapp": {"reconnect_initial_delay_ms": -5}})

        with pytest.raises(ValueError):
            load_app_settings_from_json(path)

    def test_invalid_json(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text("{broken", encoding="utf-8")

        with pytest.raises(ValueError):
            load_app_settings_from_json(str(path))

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_app_settings_from_json(str(tmp_path / "nope.json"))


class TestWorkingDirectoryLookup:

    def test_falls_back_to_environment(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)

        settings = get_settings_from_working_directory()

        assert isinstance(settings, AppSettings)
        assert settings.whatsapp.session_dir == "data/session"

    def test_finds_config_directory(self, tmp_path, monkeypatch):
        (tmp_path / "config").mkdir()
        write_config(tmp_path / "config", {"whatsapp": {"session_dir": "from-config-dir"}})
        write_config(tmp_path, {"whatsapp": {"session_dir": "from-root"}})
        monkeypatch.chdir(tmp_path)

        assert get_settings_from_working_directory().whatsapp.session_dir == "from-config-dir"

    def test_explicit_path(self, tmp_path):
        path = write_config(tmp_path, {"whatsapp": {"session_dir": "explicit"}}, name="bot.json")

        assert get_settings_from_working_directory(path).whatsapp.session_dir == "explicit"
