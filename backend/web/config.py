"""
Configuration and startup security checks for the procurement web client.

Why: Tokens live server-side in the session storage. A deployment that talks
to the backend over plain HTTP, or that keeps sessions only in process
memory, is unsafe or loses every session on restart. This module reads the
settings once and provides a single guard that refuses such production
configurations without burdening local development.

Permissions: The caller needs no special privileges. The functions read
environment variables and raise `SystemExit` on fatal misconfiguration.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional
import os

DEFAULT_API_BASE_URL = "http://localhost:8000"
DEFAULT_API_TIMEOUT = 10.0
DEFAULT_QUERY_STALE_SECONDS = 300.0
STORAGE_BACKENDS = ("memory", "db")
DEFAULT_STORAGE_TABLE = "public.procure_session_storage"


def _is_prod_like(env: str) -> bool:
    env_l = (env or "").lower()
    return env_l in {"prod", "production", "stage", "staging"}


def _float_env(name: str, default: float) -> float:
    raw = (os.getenv(name) or "").strip()
    if not raw:
        return default
    try:
        value = float(raw)
    except ValueError:
        raise SystemExit(f"Refusing to start: {name} must be a number (got {raw!r}).")
    if value <= 0:
        raise SystemExit(f"Refusing to start: {name} must be positive.")
    return value


@dataclass(frozen=True)
class Settings:
    environment: str = "dev"
    api_base_url: str = DEFAULT_API_BASE_URL
    api_timeout: float = DEFAULT_API_TIMEOUT
    storage_backend: str = "memory"
    database_url: Optional[str] = None
    storage_table: str = DEFAULT_STORAGE_TABLE
    query_stale_seconds: float = DEFAULT_QUERY_STALE_SECONDS

    @property
    def is_prod_like(self) -> bool:
        return _is_prod_like(self.environment)


def load_settings() -> Settings:
    """Read settings from the environment (call after `.env` is loaded)."""
    backend = (os.getenv("PROCURE_STORAGE_BACKEND") or "memory").strip().lower()
    if backend not in STORAGE_BACKENDS:
        raise SystemExit(
            f"Refusing to start: PROCURE_STORAGE_BACKEND must be one of {', '.join(STORAGE_BACKENDS)}."
        )
    database_url = (os.getenv("PROCURE_DATABASE_URL") or os.getenv("DATABASE_URL") or "").strip()
    return Settings(
        environment=(os.getenv("PROCURE_ENV") or "dev").strip().lower(),
        api_base_url=(os.getenv("PROCURE_API_BASE_URL") or DEFAULT_API_BASE_URL).strip().rstrip("/"),
        api_timeout=_float_env("PROCURE_API_TIMEOUT", DEFAULT_API_TIMEOUT),
        storage_backend=backend,
        database_url=database_url or None,
        storage_table=(os.getenv("PROCURE_STORAGE_TABLE") or DEFAULT_STORAGE_TABLE).strip(),
        query_stale_seconds=_float_env("PROCURE_QUERY_STALE_SECONDS", DEFAULT_QUERY_STALE_SECONDS),
    )


def ensure_secure_config_on_startup(settings: Optional[Settings] = None) -> None:
    """Fail fast on insecure production configuration.

    Checks (prod/stage only):
    - The backend API must be reached over HTTPS; bearer tokens travel on
      every call.
    - Sessions must be persisted (`db` backend), not kept in memory.
    - The `db` backend needs a database URL, and that URL must not disable TLS.
    """
    settings = settings or load_settings()
    if not settings.is_prod_like:
        return  # dev/test remain permissive

    if not settings.api_base_url.lower().startswith("https://"):
        raise SystemExit("Refusing to start: PROCURE_API_BASE_URL must use https in production.")

    if settings.storage_backend == "memory":
        raise SystemExit(
            "Refusing to start: PROCURE_STORAGE_BACKEND=memory is not allowed in production/staging."
        )

    dsn = settings.database_url or ""
    if not dsn:
        raise SystemExit(
            "Refusing to start: PROCURE_DATABASE_URL (or DATABASE_URL) is required for the db storage backend."
        )

    # Postgres TLS: basic guard to avoid explicit disable
    if "sslmode=disable" in dsn:
        raise SystemExit(
            "Refusing to start: PROCURE_DATABASE_URL contains sslmode=disable in production. Use sslmode=require or verify TLS."
        )
