"""Tests for settings and environment configuration."""
from __future__ import annotations

from datetime import timedelta
from pathlib import Path

import pytest

from mewoai.config import PlatformConfig, RoleConfig, Settings, SettingsLoader


def test_default_settings_file(settings):
    assert settings.message_xp == 5
    assert settings.media_xp == 15
    assert settings.absence_penalty == 10
    assert settings.media_cooldown == timedelta(seconds=120)
    assert settings.escalation_interval == 5
    assert settings.warning_durations == {
        1: timedelta(days=2),
        2: timedelta(days=5),
        3: timedelta(days=5),
    }
    assert settings.sweep_interval_seconds == 60
    assert settings.venue_channel == "📚│MeWoAI Hall"
    assert settings.security_candidates == 10
    assert settings.brand == "MeWoai"


def test_from_dict_defaults(monkeypatch):
    monkeypatch.delenv("PORT", raising=False)

    settings = Settings.from_dict({})

    assert settings.dashboard_port == 3000
    assert settings.upload_dir == Path("uploads")
    assert settings.warning_durations[1] == timedelta(days=2)


def test_port_environment_override(monkeypatch):
    monkeypatch.setenv("PORT", "8080")

    assert Settings.from_dict({"dashboard": {"port": 3000}}).dashboard_port == 8080


def test_invalid_escalation_interval():
    with pytest.raises(ValueError):
        Settings.from_dict({"warnings": {"escalation_interval": 0}})


def test_loader_reads_custom_file(tmp_path):
    path = tmp_path / "settings.yaml"
    path.write_text("experience:\n  message: 7\nthrottle:\n  media_cooldown_seconds: 30\n", encoding="utf-8")

    loader = SettingsLoader(path)
    settings = loader.load()

    assert settings.message_xp == 7
    assert settings.media_cooldown_seconds == 30
    assert loader.load() is settings


def test_warning_role_lookup():
    roles = RoleConfig(member=1, warnings=(11, None, 13), expert=2)

    assert roles.warning_role(0) is None
    assert roles.warning_role(1) == 11
    assert roles.warning_role(2) is None
    assert roles.warning_role(7) == 13
    assert roles.warning_role_ids() == [11, 13]


def test_platform_config_from_env(monkeypatch, caplog):
    monkeypatch.setenv("MEWOAI_GUILD_ID", "123")
    monkeypatch.setenv("DISCORD_APP_ID", "not-a-number")
    monkeypatch.setenv("MEWOAI_ROLE_MEMBER", "10")
    monkeypatch.setenv("MEWOAI_ROLE_WARN1", "21")
    monkeypatch.setenv("MEWOAI_ROLE_WARN2", "22")
    monkeypatch.delenv("MEWOAI_ROLE_WARN3", raising=False)
    monkeypatch.setenv("MEWOAI_ROLE_EXPERT", "30")
    monkeypatch.setenv("MEWOAI_DB", "/tmp/mewoai-test.db")

    config = PlatformConfig.from_env()

    assert config.guild_id == 123
    assert config.application_id is None
    assert "Invalid id not-a-number for DISCORD_APP_ID" in caplog.text
    assert config.roles == RoleConfig(member=10, warnings=(21, 22, None), expert=30)
    assert config.db_path == Path("/tmp/mewoai-test.db")
