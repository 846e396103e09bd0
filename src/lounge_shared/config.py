"""
Utilities to centralize configuration handling across the lounge services.
"""

from __future__ import annotations

import os
import re
from dataclasses import dataclass

from .constants import (
    DEFAULT_MAX_SERVICE_MINUTES,
    DEFAULT_OVERDUE_MINUTES,
    DEFAULT_WARNING_MINUTES,
)


@dataclass
class AppConfig:
    """Simple container for application level settings."""

    app_name: str
    # PostgreSQL database (used when DATABASE_URL is not set)
    db_host: str
    db_port: int
    db_user: str
    db_password: str
    db_name: str
    db_sslmode: str
    database_url_override: str
    # App settings
    log_level: str
    restaurant_name: str
    restaurant_slug: str
    restaurant_timezone: str
    debug_mode: bool
    seed_sample_data: bool
    # Table status escalation
    table_warning_minutes: int
    table_overdue_minutes: int
    table_max_service_minutes: int
    # Cross-process change relay (disabled when empty)
    redis_url: str = ""
    redis_channel_prefix: str = "lounge:changes"

    @property
    def database_url(self) -> str:
        """
        Explicit DATABASE_URL wins; otherwise build a SQLAlchemy PostgreSQL URI
        using psycopg2 as the driver.
        """
        if self.database_url_override:
            return self.database_url_override
        ssl_arg = f"?sslmode={self.db_sslmode}" if self.db_sslmode else ""
        return (
            f"postgresql+psycopg2://{self.db_user}:{self.db_password}"
            f"@{self.db_host}:{self.db_port}/{self.db_name}{ssl_arg}"
        )

    def status_thresholds(self):
        """Escalation thresholds for the table status engine."""
        from .services.table_status_service import TableStatusThresholds

        return TableStatusThresholds(
            warning_minutes=self.table_warning_minutes,
            overdue_minutes=self.table_overdue_minutes,
            max_service_minutes=self.table_max_service_minutes,
        )


def _read_env(name: str, default: str | None = None) -> str:
    """
    Internal helper to fetch environment variables with support for defaults.
    """
    value = os.getenv(name)
    if value is None:
        if default is None:
            raise RuntimeError(f"Missing required environment variable '{name}'")
        value = default
    return value


def read_bool(name: str, default: str = "false") -> bool:
    value = _read_env(name, default)
    return value.strip().lower() in {"1", "true", "yes", "on"}


def read_int(name: str, default: int) -> int:
    raw = _read_env(name, str(default))
    try:
        return int(raw)
    except ValueError as exc:
        raise RuntimeError(f"{name} must be a valid integer, got: {raw}") from exc


def _slugify(value: str) -> str:
    value = value.strip().lower()
    value = re.sub(r"[^a-z0-9]+", "-", value)
    return value.strip("-")


def validate_thresholds(config: AppConfig) -> None:
    """
    Fail fast on escalation thresholds that cannot produce a sensible board.

    Raises:
        RuntimeError: if a threshold is not positive or warning >= overdue
    """
    errors = []
    for name in ("table_warning_minutes", "table_overdue_minutes", "table_max_service_minutes"):
        if getattr(config, name) <= 0:
            errors.append(f"{name.upper()} must be a positive number of minutes")
    if config.table_warning_minutes >= config.table_overdue_minutes:
        errors.append("TABLE_WARNING_MINUTES must be lower than TABLE_OVERDUE_MINUTES")

    if errors:
        error_msg = "\nConfiguration Errors - invalid table status thresholds:\n"
        for error in errors:
            error_msg += f"  - {error}\n"
        raise RuntimeError(error_msg)


def load_config(app_name: str) -> AppConfig:
    """
    Produce an AppConfig instance populated from environment variables.

    Each service passes its desired `app_name` to keep logs easy to
    differentiate while still reusing the same config loader.
    """
    config = AppConfig(
        app_name=app_name,
        db_host=_read_env("POSTGRES_HOST", "lounge-postgres"),
        db_port=int(_read_env("POSTGRES_PORT", "5432")),
        db_user=_read_env("POSTGRES_USER", "lounge"),
        db_password=_read_env("POSTGRES_PASSWORD", "lounge"),
        db_name=_read_env("POSTGRES_DB", "lounge"),
        db_sslmode=_read_env("POSTGRES_SSLMODE", "disable"),
        database_url_override=_read_env("DATABASE_URL", ""),
        log_level=_read_env("LOG_LEVEL", "INFO"),
        restaurant_name=_read_env("RESTAURANT_NAME", "lounge"),
        restaurant_slug=_slugify(_read_env("RESTAURANT_NAME", "lounge")),
        restaurant_timezone=_read_env("RESTAURANT_TIMEZONE", ""),
        debug_mode=read_bool("DEBUG_MODE", "false"),
        seed_sample_data=read_bool("SEED_SAMPLE_DATA", "false"),
        table_warning_minutes=read_int("TABLE_WARNING_MINUTES", DEFAULT_WARNING_MINUTES),
        table_overdue_minutes=read_int("TABLE_OVERDUE_MINUTES", DEFAULT_OVERDUE_MINUTES),
        table_max_service_minutes=read_int(
            "TABLE_MAX_SERVICE_MINUTES", DEFAULT_MAX_SERVICE_MINUTES
        ),
        redis_url=_read_env("REDIS_URL", ""),
        redis_channel_prefix=_read_env("REDIS_CHANNEL_PREFIX", "lounge:changes"),
    )
    validate_thresholds(config)
    return config
