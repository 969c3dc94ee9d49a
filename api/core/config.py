"""
Environment-driven settings.

Values are read on each call. The one exception is the `/uploads` static
mount in `api/main.py`, which binds UPLOAD_DIR and UPLOAD_URL_PREFIX at
import time; change them before the app is imported.
"""

from __future__ import annotations

import os


def env_str(name: str, default: str) -> str:
    return os.environ.get(name, default).strip() or default


def env_int(name: str, default: int) -> int:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def cors_origins() -> list[str]:
    raw = env_str("CORS_ORIGINS", "*")
    return [origin.strip() for origin in raw.split(",") if origin.strip()]


def log_level() -> str:
    return env_str("LOG_LEVEL", "INFO").upper()


def log_file() -> str | None:
    """
    Optional path for a second, file-based log handler. Unset means stdout only.
    """
    value = env_str("LOG_FILE", "").strip()
    return value or None
