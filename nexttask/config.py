from __future__ import annotations

import logging
import os
import sys
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

from dotenv import load_dotenv

logger = logging.getLogger(__name__)


def _resolve_project_root() -> Path:
    if getattr(sys, "frozen", False):
        return Path(sys.executable).resolve().parent
    return Path(__file__).resolve().parents[1]


PROJECT_ROOT = _resolve_project_root()


def load_env() -> None:
    env_name = os.getenv("APP_ENV", "development")
    candidates = [Path.cwd(), PROJECT_ROOT]
    for base in candidates:
        env_path = base / ".env"
        if env_path.exists():
            load_dotenv(env_path)
            break

    for base in candidates:
        env_specific = base / f".env.{env_name}"
        if env_specific.exists():
            load_dotenv(env_specific, override=True)
            break


class ConfigSource(Protocol):
    def get(self, key: str) -> str | None:
        ...


class EnvConfigSource:
    """Reads configuration from the process environment."""

    def get(self, key: str) -> str | None:
        return os.getenv(key)


class MappingConfigSource:
    def __init__(self, values: Mapping[str, object]) -> None:
        self._values = dict(values)

    def get(self, key: str) -> str | None:
        value = self._values.get(key)
        return None if value is None else str(value)


DEFAULT_BOUNDARIES = {
    "morning_start": "05:00",
    "morning_end": "11:59",
    "afternoon_end": "17:59",
    "evening_end": "23:59",
}


@dataclass(frozen=True)
class Settings:
    database_url: str = "sqlite:///nexttask.db"
    log_level: str = "INFO"
    log_dir: str = "logs"
    timezone: str = "UTC"
    cooldown_mins: int = 120
    morning_start: object = DEFAULT_BOUNDARIES["morning_start"]
    morning_end: object = DEFAULT_BOUNDARIES["morning_end"]
    afternoon_end: object = DEFAULT_BOUNDARIES["afternoon_end"]
    evening_end: object = DEFAULT_BOUNDARIES["evening_end"]
    idempotency_enforce_hash: bool = False
    list_limit_default: int = 50
    list_limit_max: int = 200

    @classmethod
    def from_source(cls, source: ConfigSource) -> Settings:
        defaults = cls()

        def _str(key: str, default: str) -> str:
            value = (source.get(key) or "").strip()
            return value or default

        return cls(
            database_url=_str("DATABASE_URL", defaults.database_url),
            log_level=_str("LOG_LEVEL", defaults.log_level),
            log_dir=_str("LOG_DIR", defaults.log_dir),
            timezone=_str("TIMEZONE", defaults.timezone),
            cooldown_mins=_int(source.get("COOLDOWN_MINS"), defaults.cooldown_mins, "COOLDOWN_MINS"),
            morning_start=_str("MORNING_START", DEFAULT_BOUNDARIES["morning_start"]),
            morning_end=_str("MORNING_END", DEFAULT_BOUNDARIES["morning_end"]),
            afternoon_end=_str("AFTERNOON_END", DEFAULT_BOUNDARIES["afternoon_end"]),
            evening_end=_str("EVENING_END", DEFAULT_BOUNDARIES["evening_end"]),
            idempotency_enforce_hash=_bool(source.get("IDEMPOTENCY_ENFORCE_HASH")),
            list_limit_default=_int(
                source.get("LIST_LIMIT_DEFAULT"), defaults.list_limit_default, "LIST_LIMIT_DEFAULT"
            ),
            list_limit_max=_int(source.get("LIST_LIMIT_MAX"), defaults.list_limit_max, "LIST_LIMIT_MAX"),
        )

    @property
    def boundaries(self) -> dict[str, object]:
        return {
            "morning_start": self.morning_start,
            "morning_end": self.morning_end,
            "afternoon_end": self.afternoon_end,
            "evening_end": self.evening_end,
        }


def _int(raw: str | None, default: int, key: str) -> int:
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw.strip())
    except ValueError:
        logger.warning("Ignoring non-integer %s=%r, using %s", key, raw, default)
        return default


def _bool(raw: str | None) -> bool:
    return (raw or "").strip().lower() in {"1", "true", "yes", "on"}


def load_settings(source: ConfigSource | None = None) -> Settings:
    if source is None:
        load_env()
        source = EnvConfigSource()
    return Settings.from_source(source)
