# src/eduquest/config.py

"""Centralized settings loaded from environment variables (+ optional .env).

Design goals:
- One Settings object for the whole app (normal "settings layer").
- No secrets required at import time.
- Components receive settings by injection; get_settings() is only used at the composition root.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

ENV_PREFIX = "EDUQUEST"

LEDGER_MODES = ("memory", "http")


def _k(suffix: str) -> str:
    """Build env var name with the project prefix."""
    return f"{ENV_PREFIX}_{suffix}"


def _load_dotenv_if_available() -> None:
    """Load .env locally if python-dotenv is installed. Safe no-op otherwise."""
    try:
        from dotenv import load_dotenv  # type: ignore
    except Exception:
        return
    load_dotenv(override=False)


_load_dotenv_if_available()


def _env(name: str, default: str = "") -> str:
    v = os.getenv(name)
    return default if v is None else v


def _first_env(*names: str, default: str | None = None) -> str | None:
    for n in names:
        v = os.getenv(n)
        if v is not None and v.strip() != "":
            return v
    return default


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        return default


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
    reconciler_log_level: str

    # ---- Console ----
    console_enabled: bool

    # ---- Session ----
    user_id: str
    catalog_path: Optional[Path]
    default_max_retries: int

    # ---- Reward ledger ----
    ledger_mode: str
    ledger_base_url: str
    ledger_api_key: Optional[str]
    ledger_timeout_seconds: float
    reconcile_interval_seconds: float

    # ---- Local data paths (ignored by git) ----
    data_dir: Path
    tasks_db_path: Path

    @staticmethod
    def from_env() -> "Settings":
        app_name = _first_env(_k("APP_NAME"), default="eduquest") or "eduquest"
        log_level = _env(_k("LOG_LEVEL"), "INFO")
        reconciler_log_level = _env(_k("RECONCILER_LOG_LEVEL"), "WARNING")

        console_enabled = _env_bool(_k("CONSOLE_ENABLED"), True)

        user_id = (_env(_k("USER_ID"), "demo_user") or "demo_user").strip()

        raw_catalog = _env(_k("CATALOG_PATH"), "").strip()
        catalog_path = Path(raw_catalog).expanduser() if raw_catalog else None

        # max_retries below 1 would reject every first submission outright.
        default_max_retries = max(1, _env_int(_k("DEFAULT_MAX_RETRIES"), 3))

        ledger_base_url = (
            _first_env(_k("LEDGER_BASE_URL"), "SUPABASE_FUNCTIONS_URL", default="") or ""
        ).strip()
        ledger_api_key = _first_env(_k("LEDGER_API_KEY"), "SUPABASE_ANON_KEY", default=None)

        # Without a base URL the HTTP ledger cannot work; fall back to the in-memory one.
        ledger_mode = _env(_k("LEDGER_MODE"), "http" if ledger_base_url else "memory").strip().lower()
        if ledger_mode not in LEDGER_MODES:
            ledger_mode = "memory"

        ledger_timeout_seconds = _env_float(_k("LEDGER_TIMEOUT_SECONDS"), 10.0)
        reconcile_interval_seconds = _env_float(_k("RECONCILE_INTERVAL_SECONDS"), 30.0)

        data_dir = _env_path(_k("DATA_DIR"), Path(".local/eduquest"))
        tasks_db_path = _env_path(_k("TASKS_DB_PATH"), data_dir / "tasks.sqlite3")

        return Settings(
            app_name=app_name,
            log_level=log_level,
            reconciler_log_level=reconciler_log_level,
            console_enabled=console_enabled,
            user_id=user_id,
            catalog_path=catalog_path,
            default_max_retries=default_max_retries,
            ledger_mode=ledger_mode,
            ledger_base_url=ledger_base_url,
            ledger_api_key=ledger_api_key,
            ledger_timeout_seconds=ledger_timeout_seconds,
            reconcile_interval_seconds=reconcile_interval_seconds,
            data_dir=data_dir,
            tasks_db_path=tasks_db_path,
        )


SETTINGS = Settings.from_env()


def get_settings() -> Settings:
    return SETTINGS
