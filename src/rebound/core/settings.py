"""Environment-driven defaults for rebound.

Policies are configured programmatically; these settings only supply the
defaults a service wants to tune without a code change (attempt budget,
backoff shape, per-attempt timeout) and the logging setup.

Every field can be set through a ``REBOUND_*`` environment variable or a
``.env`` file::

    REBOUND_DEFAULT_MAX_ATTEMPTS=5
    REBOUND_DEFAULT_BASE_DELAY=0.25
    REBOUND_LOG_FORMAT=json

Examples:
    >>> from rebound.core.settings import get_settings
    >>> from rebound.execution.policy import PolicyBuilder
    >>> settings = get_settings()
    >>> builder = PolicyBuilder.from_settings(settings).with_operation(fetch)

Tags:
    settings, configuration, pydantic, environment, rebound

Doc-Types:
    - API Reference
    - Configuration Guide
"""

from __future__ import annotations

from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ReboundSettings(BaseSettings):
    """Validated defaults for policies and logging."""

    model_config = SettingsConfigDict(
        env_prefix="REBOUND_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ── Observability ────────────────────────────────────────────
    service_name: str = Field(default="rebound")
    log_level: str = Field(default="INFO")
    log_format: Literal["console", "json"] = Field(default="console")

    # ── Policy defaults ──────────────────────────────────────────
    default_max_attempts: int = Field(default=3, ge=1)
    default_base_delay: float = Field(default=0.5, ge=0)
    default_multiplier: float = Field(default=2.0, ge=1.0)
    default_max_delay: float | None = Field(default=30.0, ge=0)
    default_jitter: float = Field(default=0.0, ge=0.0, le=1.0)
    default_attempt_timeout: float | None = Field(default=None, gt=0)

    @field_validator("log_level")
    @classmethod
    def _normalize_level(cls, value: str) -> str:
        level = value.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"unknown log level {value!r}")
        return level


_settings_cache: dict[str, ReboundSettings] = {}


def get_settings(*, _force_reload: bool = False) -> ReboundSettings:
    """Load, validate, and cache a :class:`ReboundSettings` instance."""
    if _force_reload or "default" not in _settings_cache:
        _settings_cache["default"] = ReboundSettings()
    return _settings_cache["default"]


def clear_settings_cache() -> None:
    _settings_cache.clear()


__all__ = ["ReboundSettings", "get_settings", "clear_settings_cache"]
