"""SafeQuery API settings.

Runtime configuration is read from environment variables with the
``SAFEQUERY_`` prefix. A ``.env`` file at the repository root is loaded
once at import; values already present in the environment win.
"""

from __future__ import annotations

import os
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]


def _load_env_file(path: Path) -> None:
    """Load KEY=VALUE from a .env-style file into os.environ if not already set."""
    if not path.exists():
        return
    with path.open(encoding="utf-8") as f:
        for raw in f:
            line = raw.strip()
            if not line or line.startswith("#") or "=" not in line:
                continue
            key, value = line.split("=", 1)
            key = key.strip()
            value = value.strip().strip('"').strip("'")
            if key and key not in os.environ:
                os.environ[key] = value


# One-time load at import
_load_env_file(ROOT / ".env")


def _get_env(name: str, default: str | None = None) -> str | None:
    return os.environ.get(name, default)


def _parse_bool(val: str | None, default: bool = False) -> bool:
    if val is None:
        return default
    return str(val).strip().lower() in {"1", "true", "yes", "on"}


def _parse_int(val: str | None, default: int) -> int:
    try:
        return int(str(val)) if val is not None else default
    except ValueError:
        return default


def _parse_csv(val: str | None) -> list[str]:
    if not val:
        return []
    items = [s.strip() for s in str(val).split(",")]
    return [s for s in items if s]


class Settings:
    """
    Runtime configuration loaded from environment variables with prefix
    SAFEQUERY_.

        Variables:
        - SAFEQUERY_ENV: "dev" or "prod" (default: dev)
        - SAFEQUERY_API_PORT: int (default: 24811)
        - SAFEQUERY_ALLOWED_ORIGINS: CSV list
            dev default if empty: [http://localhost:3000, http://localhost:5173]
            prod default if empty: []
        - SAFEQUERY_ADMIN_TOKEN: /admin endpoints require the X-SafeQuery-Admin
            header to match it. Without a token /admin is open in dev and
            always rejected in prod.
        - SAFEQUERY_LOG_LEVEL: INFO|DEBUG|WARNING|ERROR (default: INFO)
        - SAFEQUERY_LOG_DIR: logs directory path (default: logs)
        - SAFEQUERY_CONFIG_FILE: safety config JSON
            (default: config/safety_config.json)
        - SAFEQUERY_EXPOSE_OPENAPI_IN_DEV: bool (default: true)
    """

    def __init__(self) -> None:
        # Environment
        self.environment: str = (_get_env("SAFEQUERY_ENV", "dev") or "dev").strip().lower()
        self.is_dev: bool = self.environment in {"dev", "development"}

        # Network
        self.port: int = _parse_int(_get_env("SAFEQUERY_API_PORT"), 24811)

        if allowed_origins_env := _get_env("SAFEQUERY_ALLOWED_ORIGINS"):
            self.allowed_origins: list[str] = _parse_csv(allowed_origins_env)
        else:
            self.allowed_origins = (
                ["http://localhost:3000", "http://localhost:5173"] if self.is_dev else []
            )

        # Admin endpoints
        self.admin_token: str | None = _get_env("SAFEQUERY_ADMIN_TOKEN") or None
        self.admin_auth_required: bool = bool(self.admin_token) or not self.is_dev

        # Logging
        self.log_level: str = (_get_env("SAFEQUERY_LOG_LEVEL", "INFO") or "INFO").upper()
        self.log_dir: str = _get_env("SAFEQUERY_LOG_DIR", "logs") or "logs"

        # Safety configuration file
        self.config_file: Path = Path(
            _get_env("SAFEQUERY_CONFIG_FILE") or ROOT / "config" / "safety_config.json"
        )

        # Docs in dev
        self.expose_openapi_in_dev: bool = _parse_bool(
            _get_env("SAFEQUERY_EXPOSE_OPENAPI_IN_DEV"), True
        )
