"""Application configuration using Pydantic Settings.

Configuration is environment-aware:
- APP_ENV determines which .env file to load
- Supports: development, testing, staging, production
- Each environment has its own .env.{environment} file
"""

from __future__ import annotations

import os
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


APP_ENV = os.getenv("APP_ENV", "development")

# Project root (so .env resolution doesn't depend on current working directory)
PROJECT_ROOT = Path(__file__).resolve().parents[2]

ENV_FILE_MAP = {
    "development": ".env.development",
    "testing": ".env.testing",
    "staging": ".env.staging",
    "production": ".env.production",
}

_env_filename = ENV_FILE_MAP.get(APP_ENV, ".env.development")
_env_path = PROJECT_ROOT / _env_filename

# Production may inject everything via env vars only
_env_file = str(_env_path) if _env_path.is_file() else None


# Nested BaseSettings don't inherit env_file, so populate os.environ up front
if _env_file:
    from dotenv import load_dotenv
    load_dotenv(_env_file, override=True)


class AppSettings(BaseSettings):
    """Request pipeline configuration: rate limiting and response caching."""

    debug: bool = Field(
        False,
        description="Enable debug mode with verbose logging",
    )

    rate_limit_enabled: bool = Field(
        True,
        description="Enable per-client rate limiting on the image search endpoint",
    )
    rate_limit_requests: int = Field(
        30,
        description="Maximum number of requests allowed per window (per client)",
        ge=1,
    )
    rate_limit_window_seconds: int = Field(
        60,
        description="Rate limit window size in seconds",
        ge=1,
    )
    rate_limit_max_keys: int = Field(
        10000,
        description="Maximum number of tracked clients before least recently seen are dropped",
        ge=1,
    )
    rate_limit_include_headers: bool = Field(
        True,
        description="Include X-RateLimit-* and Retry-After headers when throttling",
    )
    trust_forwarded_for: bool = Field(
        False,
        description=(
            "Identify clients by the first X-Forwarded-For entry; enable only behind "
            "a reverse proxy that overwrites the header"
        ),
    )

    cache_ttl_seconds: int = Field(
        120,
        description="Time-to-live for cached search results in seconds",
        ge=1,
    )
    cache_max_entries: int = Field(
        1024,
        description="Maximum number of cached search results (LRU eviction beyond)",
        ge=1,
    )

    model_config = SettingsConfigDict(
        env_prefix="APP_",
        case_sensitive=False,
    )


class UpstreamSettings(BaseSettings):
    """Outbound image board configuration."""

    timeout_seconds: float = Field(
        8.0,
        description="Deadline for a single upstream call in seconds",
        gt=0,
    )
    gelbooru_base_url: str = Field(
        "https://gelbooru.com",
        description="Gelbooru API host",
    )
    danbooru_base_url: str = Field(
        "https://danbooru.donmai.us",
        description="Danbooru API host (also used to absolutize relative file URLs)",
    )
    user_agent: str = Field(
        "booru-proxy/0.1 (+https://github.com/)",
        description="User-Agent sent to upstream boards",
    )
    body_excerpt_chars: int = Field(
        200,
        description="Number of upstream body characters included in failure logs",
        ge=0,
    )

    model_config = SettingsConfigDict(
        env_prefix="UPSTREAM_",
        case_sensitive=False,
    )


class LogSettings(BaseSettings):
    """Logging output configuration."""

    level: str = Field("INFO", description="Root log level")
    format: str = Field("json", description="Log format: json or plain")
    output: str = Field("stdout", description="Log destination: stdout or file")
    file_path: str | None = Field(None, description="Log file path when output=file")
    max_bytes: int = Field(
        10 * 1024 * 1024,
        description="Rotate the log file past this size (0 disables rotation)",
        ge=0,
    )
    backup_count: int = Field(5, description="Rotated log files to keep", ge=0)
    request_id_header: str = Field(
        "X-Request-ID",
        description="Header used to propagate the request correlation id",
    )

    model_config = SettingsConfigDict(
        env_prefix="LOG_",
        case_sensitive=False,
    )


class Settings(BaseSettings):
    """Main application settings container.

    Automatically loads from the appropriate .env.{APP_ENV} file.
    Raises validation errors on startup if a setting is malformed.
    """

    app_env: str = APP_ENV
    app: AppSettings = Field(default_factory=AppSettings)
    upstream: UpstreamSettings = Field(default_factory=UpstreamSettings)
    log: LogSettings = Field(default_factory=LogSettings)

    model_config = SettingsConfigDict(
        case_sensitive=False,
    )


settings = Settings()
