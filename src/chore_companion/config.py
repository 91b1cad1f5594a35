# src/chore_companion/config.py

"""Centralized settings loaded from environment variables (+ optional .env).

Design goals:
- One Settings object for the whole app (normal "settings layer").
- No secrets required at import time.
- Validation is explicit (Settings.validate) and raises ConfigError.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import find_dotenv, load_dotenv

from .errors import ConfigError

ENV_PREFIX = "CHORE"


def _k(suffix: str) -> str:
    """Build env var name with the project prefix."""
    return f"{ENV_PREFIX}_{suffix}"


def _load_dotenv() -> None:
    """Load .env from the working directory (if present) without overriding the real environment."""
    load_dotenv(find_dotenv(usecwd=True), override=False)


def _env(name: str, default: str = "") -> str:
    v = os.getenv(name)
    return default if v is None else v


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError as e:
        raise ConfigError(f"{name} must be a number, got {raw!r}") from e


def _env_path(name: str, default: Path) -> Path:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return Path(raw).expanduser()


@dataclass(frozen=True, slots=True)
class Settings:
    # ---- App / logging ----
    app_name: str
    log_level: str

    # ---- Local data paths (ignored by git) ----
    data_dir: Path
    db_path: Path

    # ---- Matrix (notification channel) ----
    matrix_enabled: bool
    matrix_homeserver: str
    matrix_user_id: str
    matrix_password: str
    matrix_room_id: str
    matrix_store_path: Path

    # ---- Scheduling ----
    alert_lead_hours: float
    idle_poll_seconds: float
    retry_delay_seconds: float

    @property
    def alert_lead_seconds(self) -> float:
        return self.alert_lead_hours * 60 * 60

    @staticmethod
    def from_env() -> "Settings":
        _load_dotenv()

        app_name = _env(_k("APP_NAME"), "chore-companion")
        log_level = _env(_k("LOG_LEVEL"), "INFO")

        data_dir = _env_path(_k("DATA_DIR"), Path(".local/chore"))
        db_path = _env_path(_k("DB_PATH"), data_dir / "obligations.sqlite3")

        matrix_enabled = _env_bool(_k("MATRIX_ENABLED"), False)
        matrix_homeserver = _env(_k("MATRIX_HOMESERVER")).strip()
        matrix_user_id = _env(_k("MATRIX_USER_ID")).strip()
        matrix_password = _env(_k("MATRIX_PASSWORD")).strip()
        matrix_room_id = _env(_k("MATRIX_ROOM_ID")).strip()
        matrix_store_path = _env_path(_k("MATRIX_STORE_PATH"), data_dir / "matrix_store")

        alert_lead_hours = _env_float(_k("ALERT_LEAD_HOURS"), 8.0)
        idle_poll_seconds = _env_float(_k("IDLE_POLL_SECONDS"), 60.0)
        retry_delay_seconds = _env_float(_k("RETRY_DELAY_SECONDS"), 60.0)

        return Settings(
            app_name=app_name,
            log_level=log_level,
            data_dir=data_dir,
            db_path=db_path,
            matrix_enabled=matrix_enabled,
            matrix_homeserver=matrix_homeserver,
            matrix_user_id=matrix_user_id,
            matrix_password=matrix_password,
            matrix_room_id=matrix_room_id,
            matrix_store_path=matrix_store_path,
            alert_lead_hours=alert_lead_hours,
            idle_poll_seconds=idle_poll_seconds,
            retry_delay_seconds=retry_delay_seconds,
        )

    def validate(self) -> "Settings":
        """Raise ConfigError for settings the service cannot start with."""
        if self.alert_lead_hours < 0:
            raise ConfigError(f"{_k('ALERT_LEAD_HOURS')} must not be negative")
        if self.idle_poll_seconds <= 0:
            raise ConfigError(f"{_k('IDLE_POLL_SECONDS')} must be positive")
        if self.retry_delay_seconds <= 0:
            raise ConfigError(f"{_k('RETRY_DELAY_SECONDS')} must be positive")

        if self.matrix_enabled:
            missing = [
                _k(name)
                for name, value in (
                    ("MATRIX_HOMESERVER", self.matrix_homeserver),
                    ("MATRIX_USER_ID", self.matrix_user_id),
                    ("MATRIX_ROOM_ID", self.matrix_room_id),
                )
                if not value
            ]
            if missing:
                raise ConfigError(f"Matrix is enabled but not configured: set {', '.join(missing)}")
        return self


_SETTINGS: Settings | None = None


def get_settings() -> Settings:
    global _SETTINGS
    if _SETTINGS is None:
        _SETTINGS = Settings.from_env()
    return _SETTINGS
