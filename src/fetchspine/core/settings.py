"""
Centralized settings for fetchspine.

Manifesto:
    Request defaults (timeouts, retry budget, backoff policy, dedup window)
    should be explicit, validated, and environment-driven.  One cached
    ``FetchSpineSettings`` object is the source of truth that the composition
    root turns into a configured ``RequestExecutor``.

    - **Pydantic validation:** Type-checked at startup, not per request
    - **Environment-driven:** ``FETCHSPINE_*`` env vars and ``.env`` files
    - **Sensible defaults:** 30s timeout, 3 retries, 1s base delay, 5s dedup

Examples:
    >>> from fetchspine.core.settings import get_settings
    >>> settings = get_settings()
    >>> settings.to_request_config().max_retries
    3

Tags:
    settings, configuration, pydantic, environment, fetchspine

Doc-Types:
    api-reference
"""

from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

if TYPE_CHECKING:
    from fetchspine.execution.executor import RequestConfig


class BackoffKind(str, Enum):
    """Named backoff policies selectable from configuration."""

    LINEAR = "linear"
    EXPONENTIAL = "exponential"
    CONSTANT = "constant"


class FetchSpineSettings(BaseSettings):
    """fetchspine configuration.

    All fields can be set via ``FETCHSPINE_*`` environment variables (e.g.
    ``FETCHSPINE_MAX_RETRIES=5``) or through a ``.env`` file.
    """

    model_config = SettingsConfigDict(
        env_prefix="FETCHSPINE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ── Attempts ─────────────────────────────────────────────────
    timeout: float = Field(default=30.0, gt=0, description="Per-attempt deadline in seconds")
    max_retries: int = Field(default=3, ge=0)

    # ── Backoff ──────────────────────────────────────────────────
    backoff: BackoffKind = Field(default=BackoffKind.LINEAR)
    base_retry_delay: float = Field(default=1.0, ge=0)
    max_retry_delay: float = Field(default=60.0, ge=0)

    # ── Deduplication / pacing ───────────────────────────────────
    dedup_ttl: float = Field(default=5.0, gt=0, description="Seconds a dedup entry stays visible")
    min_pacing_delay: float = Field(default=0.0, ge=0)

    # ── Transport ────────────────────────────────────────────────
    user_agent: str = Field(default="fetchspine/0.1")

    # ── Logging ──────────────────────────────────────────────────
    log_level: str = Field(default="INFO")
    log_format: str = Field(default="auto", description="json, console or auto")

    def to_request_config(self) -> RequestConfig:
        """Build the default per-request configuration from these settings."""
        from fetchspine.execution.executor import RequestConfig  # noqa: PLC0415

        return RequestConfig(
            timeout=self.timeout,
            max_retries=self.max_retries,
            min_pacing_delay=self.min_pacing_delay,
        )

    @property
    def json_logs(self) -> bool | None:
        if self.log_format == "auto":
            return None
        return self.log_format == "json"


# ── Settings factory with caching ────────────────────────────────────────

_settings_cache: dict[str, FetchSpineSettings] = {}


def get_settings(*, _force_reload: bool = False) -> FetchSpineSettings:
    """Load, validate, and cache a :class:`FetchSpineSettings` instance."""
    if _force_reload or "default" not in _settings_cache:
        _settings_cache["default"] = FetchSpineSettings()
    return _settings_cache["default"]


def clear_settings_cache() -> None:
    """Drop the cached settings (tests, reconfiguration)."""
    _settings_cache.clear()


__all__ = ["BackoffKind", "FetchSpineSettings", "get_settings", "clear_settings_cache"]
