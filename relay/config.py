"""Application configuration loaded from environment variables."""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache

from relay.notifications.contracts import Environment

DISPATCH_MODES = ("queued", "sync")
OVERFLOW_POLICIES = ("reject", "block")
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass(frozen=True)
class Settings:
  """Typed settings for the relay service."""

  cert_path: str
  cert_base64: str | None
  cert_password: str | None
  topic: str | None
  trust_roots_path: str | None
  host: str
  port: int
  tls_cert_path: str
  tls_key_path: str
  environment_in_path: bool
  default_environment: Environment
  dispatch_mode: str
  queue_overflow: str
  worker_count: int
  queue_capacity: int
  push_timeout_seconds: float
  location_base_url: str
  log_dir: str
  log_level: str
  log_max_bytes: int
  log_backup_count: int
  debug: bool


def _parse_bool(raw: str | None, *, default: bool = False) -> bool:
  """Parse a boolean-ish string from environment variables."""

  if raw is None or raw.strip() == "":
    return default

  normalized = raw.strip().lower()
  return normalized in {"1", "true", "yes", "on"}


def _optional_str(raw: str | None) -> str | None:
  if raw is None:
    return None
  value = raw.strip()
  if value == "":
    return None
  return value


def _parse_choice(name: str, raw: str | None, choices: tuple[str, ...], default: str) -> str:
  value = (raw or default).strip().lower()
  if value not in choices:
    raise ValueError(f"{name} must be one of: {', '.join(choices)}.")
  return value


def _parse_positive_int(name: str, raw: str | None, default: int) -> int:
  value = int(raw) if raw and raw.strip() else default
  if value <= 0:
    raise ValueError(f"{name} must be a positive integer.")
  return value


@lru_cache(maxsize=1)
def get_settings() -> Settings:
  """Load settings once per process."""

  # Reject bad dispatch knobs up front; they decide which status codes callers observe.
  dispatch_mode = _parse_choice("RELAY_DISPATCH_MODE", os.getenv("RELAY_DISPATCH_MODE"), DISPATCH_MODES, "queued")
  queue_overflow = _parse_choice("RELAY_QUEUE_OVERFLOW", os.getenv("RELAY_QUEUE_OVERFLOW"), OVERFLOW_POLICIES, "reject")
  worker_count = _parse_positive_int("RELAY_WORKER_COUNT", os.getenv("RELAY_WORKER_COUNT"), 4)
  queue_capacity = _parse_positive_int("RELAY_QUEUE_CAPACITY", os.getenv("RELAY_QUEUE_CAPACITY"), 1000)

  port = _parse_positive_int("RELAY_PORT", os.getenv("RELAY_PORT"), 42069)
  if port > 65535:
    raise ValueError("RELAY_PORT must be a valid TCP port.")

  push_timeout_seconds = float(os.getenv("RELAY_PUSH_TIMEOUT_SECONDS", "10"))
  if push_timeout_seconds <= 0:
    raise ValueError("RELAY_PUSH_TIMEOUT_SECONDS must be positive.")

  debug = _parse_bool(os.getenv("RELAY_DEBUG"))
  log_level = (os.getenv("RELAY_LOG_LEVEL") or ("DEBUG" if debug else "INFO")).strip().upper()
  if log_level not in LOG_LEVELS:
    raise ValueError(f"RELAY_LOG_LEVEL must be one of: {', '.join(LOG_LEVELS)}.")

  log_max_bytes = _parse_positive_int("RELAY_LOG_MAX_BYTES", os.getenv("RELAY_LOG_MAX_BYTES"), 5242880)  # 5MB default
  log_backup_count = int(os.getenv("RELAY_LOG_BACKUP_COUNT", "10"))
  if log_backup_count < 0:
    raise ValueError("RELAY_LOG_BACKUP_COUNT must be zero or a positive integer.")

  default_environment = os.getenv("RELAY_DEFAULT_ENVIRONMENT", Environment.DEVELOPMENT.value).strip().lower()
  if default_environment not in {member.value for member in Environment}:
    raise ValueError("RELAY_DEFAULT_ENVIRONMENT must be 'development' or 'production'.")

  return Settings(
    cert_path=(os.getenv("RELAY_CERT_PATH") or "toot-relay.p12").strip(),
    cert_base64=_optional_str(os.getenv("RELAY_CERT_BASE64")),
    cert_password=_optional_str(os.getenv("RELAY_CERT_PASSWORD")),
    topic=_optional_str(os.getenv("RELAY_TOPIC")),
    trust_roots_path=_optional_str(os.getenv("RELAY_TRUST_ROOTS_PATH")),
    host=(os.getenv("RELAY_HOST") or "0.0.0.0").strip(),
    port=port,
    tls_cert_path=(os.getenv("RELAY_TLS_CERT_PATH") or "toot-relay.crt").strip(),
    tls_key_path=(os.getenv("RELAY_TLS_KEY_PATH") or "toot-relay.key").strip(),
    environment_in_path=_parse_bool(os.getenv("RELAY_ENVIRONMENT_IN_PATH"), default=True),
    default_environment=Environment(default_environment),
    dispatch_mode=dispatch_mode,
    queue_overflow=queue_overflow,
    worker_count=worker_count,
    queue_capacity=queue_capacity,
    push_timeout_seconds=push_timeout_seconds,
    location_base_url=(os.getenv("RELAY_LOCATION_BASE_URL") or "https://not-supported").strip().rstrip("/"),
    log_dir=(os.getenv("RELAY_LOG_DIR") or "./logs").strip(),
    log_level=log_level,
    log_max_bytes=log_max_bytes,
    log_backup_count=log_backup_count,
    debug=debug,
  )
