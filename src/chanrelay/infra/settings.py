"""
Application settings for chanrelay.

This module defines all configuration settings for chanrelay using Pydantic BaseSettings.
"""

from __future__ import annotations

import os
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Main application settings using Pydantic BaseSettings."""

    # Channel definitions and per-channel logs
    channels_file: Path = Field(default=Path("canales.txt"), alias="CHANRELAY_CHANNELS_FILE")
    log_dir: Path = Field(default=Path("logs"), alias="CHANRELAY_LOG_DIR")

    # Remote ingest endpoint; each channel publishes to <output_prefix>/<name>
    output_prefix: str = Field(default="rtmp://127.0.0.1:1935/live", alias="CHANRELAY_OUTPUT_PREFIX")

    # External tools
    ffmpeg_path: str = Field(default="ffmpeg", alias="CHANRELAY_FFMPEG")
    ffprobe_path: str = Field(default="ffprobe", alias="CHANRELAY_FFPROBE")
    probe_timeout: float = Field(default=8.0, alias="CHANRELAY_PROBE_TIMEOUT")

    # Supervisor policy
    poll_interval: float = Field(default=60.0, alias="CHANRELAY_POLL_INTERVAL")
    max_fails: int = Field(default=5, alias="CHANRELAY_MAX_FAILS")
    fail_window: float = Field(default=600.0, alias="CHANRELAY_FAIL_WINDOW")
    pause_seconds: float = Field(default=600.0, alias="CHANRELAY_PAUSE_SECONDS")
    kill_settle_seconds: float = Field(default=1.0, alias="CHANRELAY_KILL_SETTLE")

    # Per-channel log bounds
    max_log_lines: int = Field(default=2000, alias="CHANRELAY_MAX_LOG_LINES")
    max_log_bytes: int = Field(default=81920, alias="CHANRELAY_MAX_LOG_BYTES")

    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    log_json: bool = Field(default=False, alias="CHANRELAY_LOG_JSON")

    model_config: SettingsConfigDict = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )


def _resolve_env_file() -> str | None:
    # 1) Explicit override
    explicit = os.getenv("CHANRELAY_ENV_FILE")
    if explicit and Path(explicit).is_file():
        return explicit

    # 2) CWD .env
    cwd_env = Path.cwd() / ".env"
    if cwd_env.is_file():
        return str(cwd_env)

    # 3) Walk up from this file to find nearest .env
    here = Path(__file__).resolve()
    for parent in here.parents:
        candidate = parent / ".env"
        if candidate.is_file():
            return str(candidate)
    return None


# Global settings instance (load from best-effort .env discovery)
_env_file = _resolve_env_file()
settings = Settings(_env_file=_env_file) if _env_file else Settings()  # type: ignore[call-arg]
