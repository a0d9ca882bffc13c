"""Scheduler settings loaded from the environment.

``CronSettings`` collects every knob the scheduling core exposes (tick
interval, rate limits, store location, default timezone, logging) so that a
deployment configures the scheduler through ``CRON_*`` environment variables
or a ``.env`` file instead of code.

Manifesto:
    Configuration should be explicit, validated, and environment-driven.

    - **Pydantic validation:** Type-checked at startup, not at first tick
    - **Environment-driven:** Reads from env vars and .env files
    - **Sensible defaults:** Works out of the box for development

Examples:
    >>> from cronspine.core.settings import CronSettings
    >>> settings = CronSettings(tick_interval_ms=500)
    >>> settings.tick_interval_seconds
    0.5

Tags:
    settings, configuration, pydantic, environment, cronspine

Doc-Types:
    - API Reference
    - Configuration Guide
"""

from __future__ import annotations

from pathlib import Path
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class CronSettings(BaseSettings):
    """Settings for the cron scheduling core.

    Fields
    ──────
    tick_interval_ms          : How often the scheduler wakes up
    max_executions_per_minute : Sliding one-minute execution cap
    max_executions_per_hour   : Sliding one-hour execution cap
    store_dir                 : Directory holding one JSON document per job
    default_timezone          : IANA zone for jobs created without one
    audit_max_entries         : Retention bound for the in-memory audit log
    log_level                 : Structlog log level
    json_logs                 : JSON output (None = auto-detect from tty)
    """

    model_config = SettingsConfigDict(
        env_prefix="CRON_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ── Ticking ──────────────────────────────────────────────────
    tick_interval_ms: int = Field(default=1000, gt=0)

    # ── Rate limiting ────────────────────────────────────────────
    max_executions_per_minute: int = Field(default=10, gt=0)
    max_executions_per_hour: int = Field(default=100, gt=0)

    # ── Storage ──────────────────────────────────────────────────
    store_dir: Path = Field(
        default_factory=lambda: Path.home() / ".cronspine" / "jobs",
        description="Directory holding one JSON document per job",
    )

    # ── Scheduling ───────────────────────────────────────────────
    default_timezone: str = "UTC"

    # ── Observability ────────────────────────────────────────────
    audit_max_entries: int | None = Field(default=None, gt=0)
    log_level: str = "INFO"
    json_logs: bool | None = None

    @field_validator("default_timezone")
    @classmethod
    def _check_timezone(cls, value: str) -> str:
        try:
            ZoneInfo(value)
        except (ZoneInfoNotFoundError, ValueError, OSError) as exc:
            raise ValueError(f"Invalid timezone: {value}") from exc
        return value

    @field_validator("log_level")
    @classmethod
    def _check_log_level(cls, value: str) -> str:
        level = value.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Invalid log level: {value}")
        return level

    @property
    def tick_interval_seconds(self) -> float:
        return self.tick_interval_ms / 1000
