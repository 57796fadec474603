"""Relay configuration read from `PUSHRELAY_*` environment variables."""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache

from app.utils.env import default_env_path, load_env_file

load_env_file(default_env_path(), override=False)

# Expo rejects requests carrying more than 100 messages.
EXPO_MAX_BATCH_SIZE = 100


@dataclass(frozen=True)
class Settings:
  """Typed settings for the push relay service."""

  environment: str
  debug: bool
  allowed_origins: tuple[str, ...]
  pg_dsn: str | None
  pg_connect_timeout: int
  auto_create_tables: bool
  log_dir: str
  log_max_bytes: int
  log_backup_count: int
  log_http_4xx: bool
  push_enabled: bool
  expo_base_url: str
  expo_access_token: str | None
  expo_timeout_seconds: float
  push_batch_size: int
  push_default_sound: str
  error_log_default_limit: int
  error_log_max_limit: int
  log_write_concurrency: int = 10


@dataclass(frozen=True)
class DatabaseSettings:
  """Subset of settings the database layer needs; avoids validating CORS for scripts."""

  debug: bool
  pg_dsn: str | None
  pg_connect_timeout: int


def _optional_str(raw: str | None) -> str | None:
  if raw is None:
    return None
  return raw.strip() or None


def _env_str(name: str, default: str) -> str:
  return _optional_str(os.getenv(name)) or default


def _env_flag(name: str) -> bool:
  raw = os.getenv(name)
  return raw is not None and raw.strip().lower() in {"1", "true", "yes", "on"}


def _env_int(name: str, default: int, *, minimum: int, maximum: int | None = None) -> int:
  raw = _optional_str(os.getenv(name))
  try:
    value = int(raw) if raw is not None else default
  except ValueError as exc:
    raise ValueError(f"{name} must be an integer, got {raw!r}.") from exc

  if value < minimum or (maximum is not None and value > maximum):
    bounds = f"between {minimum} and {maximum}" if maximum is not None else f">= {minimum}"
    raise ValueError(f"{name} must be {bounds}, got {value}.")
  return value


def _env_float(name: str, default: float) -> float:
  raw = _optional_str(os.getenv(name))
  try:
    value = float(raw) if raw is not None else default
  except ValueError as exc:
    raise ValueError(f"{name} must be a number, got {raw!r}.") from exc

  if value <= 0:
    raise ValueError(f"{name} must be a positive number.")
  return value


def _allowed_origins() -> tuple[str, ...]:
  raw = os.getenv("PUSHRELAY_ALLOWED_ORIGINS") or ""
  origins = tuple(part.strip() for part in raw.split(",") if part.strip())
  if not origins:
    raise ValueError("PUSHRELAY_ALLOWED_ORIGINS must list at least one origin.")
  # Credentials are allowed on CORS requests, so a wildcard would expose the admin API.
  if "*" in origins:
    raise ValueError("PUSHRELAY_ALLOWED_ORIGINS must not include wildcard origins.")
  return origins


def _pg_dsn() -> str | None:
  # DATABASE_URL is honored so platform-provided DSNs work without renaming.
  return _optional_str(os.getenv("PUSHRELAY_PG_DSN")) or _optional_str(os.getenv("DATABASE_URL"))


def _expo_base_url(push_enabled: bool) -> str:
  base_url = _env_str("PUSHRELAY_EXPO_BASE_URL", "https://exp.host").rstrip("/")
  if push_enabled and not base_url.startswith(("https://", "http://")):
    raise ValueError("PUSHRELAY_EXPO_BASE_URL must be an http(s) URL when push is enabled.")
  return base_url


@lru_cache(maxsize=1)
def get_settings() -> Settings:
  """Load settings once per process."""
  push_enabled = _env_flag("PUSHRELAY_PUSH_ENABLED")
  error_log_max_limit = _env_int("PUSHRELAY_ERROR_LOG_MAX_LIMIT", 500, minimum=1)

  return Settings(
    environment=_env_str("PUSHRELAY_ENV", "development").lower(),
    debug=_env_flag("PUSHRELAY_DEBUG"),
    allowed_origins=_allowed_origins(),
    pg_dsn=_pg_dsn(),
    pg_connect_timeout=_env_int("PUSHRELAY_PG_CONNECT_TIMEOUT", 5, minimum=1),
    auto_create_tables=_env_flag("PUSHRELAY_AUTO_CREATE_TABLES"),
    log_dir=_env_str("PUSHRELAY_LOG_DIR", "./logs"),
    log_max_bytes=_env_int("PUSHRELAY_LOG_MAX_BYTES", 5 * 1024 * 1024, minimum=1),
    log_backup_count=_env_int("PUSHRELAY_LOG_BACKUP_COUNT", 10, minimum=0),
    log_http_4xx=_env_flag("PUSHRELAY_LOG_HTTP_4XX"),
    push_enabled=push_enabled,
    expo_base_url=_expo_base_url(push_enabled),
    expo_access_token=_optional_str(os.getenv("PUSHRELAY_EXPO_ACCESS_TOKEN")),
    expo_timeout_seconds=_env_float("PUSHRELAY_EXPO_TIMEOUT_SECONDS", 10.0),
    push_batch_size=_env_int("PUSHRELAY_PUSH_BATCH_SIZE", EXPO_MAX_BATCH_SIZE, minimum=1, maximum=EXPO_MAX_BATCH_SIZE),
    push_default_sound=_env_str("PUSHRELAY_PUSH_DEFAULT_SOUND", "default"),
    error_log_default_limit=_env_int("PUSHRELAY_ERROR_LOG_DEFAULT_LIMIT", 50, minimum=1, maximum=error_log_max_limit),
    error_log_max_limit=error_log_max_limit,
    log_write_concurrency=_env_int("PUSHRELAY_LOG_WRITE_CONCURRENCY", 10, minimum=1),
  )


@lru_cache(maxsize=1)
def get_database_settings() -> DatabaseSettings:
  """Load only what the engine needs."""
  return DatabaseSettings(debug=_env_flag("PUSHRELAY_DEBUG"), pg_dsn=_pg_dsn(), pg_connect_timeout=_env_int("PUSHRELAY_PG_CONNECT_TIMEOUT", 5, minimum=1))
