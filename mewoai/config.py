"""Configuration loading utilities for the MeWoai bot."""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from datetime import timedelta
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import yaml

logger = logging.getLogger(__name__)

DEFAULT_SETTINGS_PATH = Path(__file__).parent / "data" / "settings.yaml"


@dataclass(frozen=True)
class Settings:
    """Typed view over the settings YAML file."""

    message_xp: int
    media_xp: int
    absence_penalty: int
    media_cooldown_seconds: float
    escalation_interval: int
    warning_durations: Dict[int, timedelta]
    sweep_interval_seconds: float
    venue_channel: str
    dashboard_port: int
    upload_dir: Path
    security_candidates: int
    brand: str

    @property
    def media_cooldown(self) -> timedelta:
        return timedelta(seconds=self.media_cooldown_seconds)

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> "Settings":
        experience = data.get("experience", {})
        throttle = data.get("throttle", {})
        warnings_cfg = data.get("warnings", {})
        sweep = data.get("sweep", {})
        attendance = data.get("attendance", {})
        dashboard = data.get("dashboard", {})
        announcements = data.get("announcements", {})
        raw_durations = warnings_cfg.get("durations_days", {1: 2, 2: 5, 3: 5})
        durations = {
            int(tier): timedelta(days=float(days)) for tier, days in raw_durations.items()
        }
        if not durations:
            raise ValueError("warnings.durations_days must define at least one tier")
        interval = int(warnings_cfg.get("escalation_interval", 5))
        if interval <= 0:
            raise ValueError("warnings.escalation_interval must be positive")
        return Settings(
            message_xp=int(experience.get("message", 5)),
            media_xp=int(experience.get("media", 15)),
            absence_penalty=int(experience.get("absence_penalty", 10)),
            media_cooldown_seconds=float(throttle.get("media_cooldown_seconds", 120)),
            escalation_interval=interval,
            warning_durations=durations,
            sweep_interval_seconds=float(sweep.get("interval_seconds", 60)),
            venue_channel=str(attendance.get("venue_channel", "📚│MeWoAI Hall")),
            dashboard_port=int(os.environ.get("PORT") or dashboard.get("port", 3000)),
            upload_dir=Path(dashboard.get("upload_dir", "uploads")),
            security_candidates=int(dashboard.get("security_candidates", 10)),
            brand=str(announcements.get("brand", "MeWoai")),
        )


class SettingsLoader:
    """Loads and caches settings from YAML configuration files."""

    def __init__(self, path: Path | None = None) -> None:
        env_path = os.environ.get("MEWOAI_SETTINGS")
        self._path = path or (Path(env_path) if env_path else DEFAULT_SETTINGS_PATH)
        self._cache: Settings | None = None

    @property
    def path(self) -> Path:
        return self._path

    def load(self, force: bool = False) -> Settings:
        if self._cache is not None and not force:
            return self._cache
        with self._path.open("r", encoding="utf-8") as fh:
            data = yaml.safe_load(fh) or {}
        self._cache = Settings.from_dict(data)
        return self._cache


def get_settings() -> Settings:
    """Convenience accessor for default settings."""

    return SettingsLoader().load()


def _parse_id(env_key: str) -> Optional[int]:
    value = os.environ.get(env_key)
    if not value:
        return None
    try:
        return int(value)
    except ValueError:
        logger.warning("Invalid id %s for %s", value, env_key)
        return None


@dataclass(frozen=True)
class RoleConfig:
    """Discord role ids used by registration, warnings and promotion."""

    member: Optional[int]
    warnings: Tuple[Optional[int], ...]
    expert: Optional[int]

    def warning_role(self, tier: int) -> Optional[int]:
        """Role for a warning tier; tiers past the last role reuse it."""

        if tier <= 0 or not self.warnings:
            return None
        return self.warnings[min(tier, len(self.warnings)) - 1]

    def warning_role_ids(self) -> List[int]:
        return [role for role in self.warnings if role is not None]

    @staticmethod
    def from_env() -> "RoleConfig":
        return RoleConfig(
            member=_parse_id("MEWOAI_ROLE_MEMBER"),
            warnings=(
                _parse_id("MEWOAI_ROLE_WARN1"),
                _parse_id("MEWOAI_ROLE_WARN2"),
                _parse_id("MEWOAI_ROLE_WARN3"),
            ),
            expert=_parse_id("MEWOAI_ROLE_EXPERT"),
        )


@dataclass(frozen=True)
class PlatformConfig:
    """Discord identifiers and storage location read from the environment."""

    guild_id: Optional[int]
    application_id: Optional[int]
    roles: RoleConfig
    db_path: Path

    @staticmethod
    def from_env() -> "PlatformConfig":
        return PlatformConfig(
            guild_id=_parse_id("MEWOAI_GUILD_ID"),
            application_id=_parse_id("DISCORD_APP_ID"),
            roles=RoleConfig.from_env(),
            db_path=Path(os.environ.get("MEWOAI_DB", "mewoai.db")),
        )


__all__ = [
    "PlatformConfig",
    "RoleConfig",
    "Settings",
    "SettingsLoader",
    "get_settings",
]
