"""Application configuration loaded from environment variables."""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache

from campus_push.utils.env import default_env_path, load_env_file

load_env_file(default_env_path(), override=False)


@dataclass(frozen=True)
class Settings:
  """Typed settings for the campus push service."""

  environment: str
  allowed_origins: tuple[str, ...]
  debug: bool
  log_max_bytes: int
  log_backup_count: int
  log_http_4xx: bool
  log_http_bodies: bool
  log_http_body_bytes: int
  pg_dsn: str | None
  pg_connect_timeout: int
  vapid_public_key: str
  vapid_private_key: str
  vapid_sub: str
  jwt_secret: str
  jwt_ttl_seconds: int
  push_timeout_seconds: float
  push_ttl_seconds: int
  push_max_concurrency: int


@dataclass(frozen=True)
class DatabaseSettings:
  """Typed settings for database connectivity."""

  debug: bool
  pg_dsn: str | None
  pg_connect_timeout: int


def _parse_origins(raw: str | None) -> tuple[str, ...]:
  if not raw:
    return ("http://localhost:3000",)

  origins = [origin.strip() for origin in raw.split(",") if origin.strip()]

  if not origins:
    raise ValueError("CAMPUS_PUSH_ALLOWED_ORIGINS must include at least one origin.")

  if "*" in origins:
    raise ValueError("CAMPUS_PUSH_ALLOWED_ORIGINS must not include wildcard origins.")

  return tuple(origins)


def _parse_bool(raw: str | None) -> bool:
  """Parse a boolean-ish string from environment variables."""

  if raw is None:
    return False

  normalized = raw.strip().lower()
  return normalized in {"1", "true", "yes", "on"}


def _positive_int(name: str, default: str) -> int:
  value = int(os.getenv(name, default))
  if value <= 0:
    raise ValueError(f"{name} must be a positive integer.")
  return value


@lru_cache(maxsize=1)
def get_settings() -> Settings:
  """Load settings once per process."""

  environment = os.getenv("CAMPUS_PUSH_ENV", "development").lower()
  debug = _parse_bool(os.getenv("CAMPUS_PUSH_DEBUG"))

  log_max_bytes = _positive_int("CAMPUS_PUSH_LOG_MAX_BYTES", "5242880")
  log_backup_count = int(os.getenv("CAMPUS_PUSH_LOG_BACKUP_COUNT", "10"))
  if log_backup_count < 0:
    raise ValueError("CAMPUS_PUSH_LOG_BACKUP_COUNT must be zero or a positive integer.")

  log_http_4xx = _parse_bool(os.getenv("CAMPUS_PUSH_LOG_HTTP_4XX"))
  log_http_bodies = _parse_bool(os.getenv("CAMPUS_PUSH_LOG_HTTP_BODIES"))
  log_http_body_bytes = _positive_int("CAMPUS_PUSH_LOG_HTTP_BODY_BYTES", "2048")

  # The signing key pair is loaded once; the service cannot run without both halves.
  vapid_public_key = _optional_str(os.getenv("CAMPUS_PUSH_VAPID_PUBLIC_KEY"))
  vapid_private_key = _optional_str(os.getenv("CAMPUS_PUSH_VAPID_PRIVATE_KEY"))
  vapid_sub = _optional_str(os.getenv("CAMPUS_PUSH_VAPID_SUB")) or "mailto:notifications@example.com"
  if not vapid_public_key:
    raise ValueError("CAMPUS_PUSH_VAPID_PUBLIC_KEY must be set.")

  if not vapid_private_key:
    raise ValueError("CAMPUS_PUSH_VAPID_PRIVATE_KEY must be set.")

  if not (vapid_sub.startswith("mailto:") or vapid_sub.startswith("https://")):
    raise ValueError("CAMPUS_PUSH_VAPID_SUB must start with 'mailto:' or 'https://'.")

  jwt_secret = _optional_str(os.getenv("CAMPUS_PUSH_JWT_SECRET"))
  if not jwt_secret:
    raise ValueError("CAMPUS_PUSH_JWT_SECRET must be set.")

  push_timeout_seconds = float(os.getenv("CAMPUS_PUSH_PUSH_TIMEOUT_SECONDS", "10"))
  if push_timeout_seconds <= 0:
    raise ValueError("CAMPUS_PUSH_PUSH_TIMEOUT_SECONDS must be positive.")

  database = get_database_settings()

  return Settings(
    environment=environment,
    allowed_origins=_parse_origins(os.getenv("CAMPUS_PUSH_ALLOWED_ORIGINS")),
    debug=debug,
    log_max_bytes=log_max_bytes,
    log_backup_count=log_backup_count,
    log_http_4xx=log_http_4xx,
    log_http_bodies=log_http_bodies,
    log_http_body_bytes=log_http_body_bytes,
    pg_dsn=database.pg_dsn,
    pg_connect_timeout=database.pg_connect_timeout,
    vapid_public_key=vapid_public_key,
    vapid_private_key=vapid_private_key,
    vapid_sub=vapid_sub,
    jwt_secret=jwt_secret,
    jwt_ttl_seconds=_positive_int("CAMPUS_PUSH_JWT_TTL_SECONDS", "3600"),
    push_timeout_seconds=push_timeout_seconds,
    push_ttl_seconds=_positive_int("CAMPUS_PUSH_PUSH_TTL_SECONDS", "86400"),
    push_max_concurrency=_positive_int("CAMPUS_PUSH_PUSH_MAX_CONCURRENCY", "8"),
  )


@lru_cache(maxsize=1)
def get_database_settings() -> DatabaseSettings:
  """Load database settings without requiring VAPID or JWT configuration."""
  # Keep database configuration isolated so migrations don't require unrelated env vars.
  debug = _parse_bool(os.getenv("CAMPUS_PUSH_DEBUG"))
  pg_connect_timeout = _positive_int("CAMPUS_PUSH_PG_CONNECT_TIMEOUT", "5")
  pg_dsn = _optional_str(os.getenv("CAMPUS_PUSH_PG_DSN")) or _optional_str(os.getenv("DATABASE_URL"))

  return DatabaseSettings(debug=debug, pg_dsn=pg_dsn, pg_connect_timeout=pg_connect_timeout)


def _optional_str(raw: str | None) -> str | None:
  if raw is None:
    return None
  value = raw.strip()
  if value == "":
    return None
  return value
