"""Shared configuration schema for the Signal Desk dashboard."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from libs.common.market_types import INTERVAL_SECONDS

ENV_PREFIX = "SIGNAL_DESK_"


class FeedSettings(BaseModel):
    poll_interval_seconds: float = Field(default=5.0, gt=0)
    max_gap_seconds: int = Field(default=120, ge=1)
    history_limit: int = Field(default=150, ge=1, le=1000)


class OverlaySettings(BaseModel):
    lookahead_bars: int = Field(default=10, ge=0)
    background_color: str = Field(default="#131722")
    profit_color: str = Field(default="rgba(38, 166, 154, 0.25)")
    loss_color: str = Field(default="rgba(239, 83, 80, 0.25)")


class AnalysisSettings(BaseModel):
    base_url: str = Field(default="http://localhost:54321/functions/v1")
    api_key: Optional[str] = None
    timeout_seconds: float = Field(default=60.0, gt=0)
    window: int = Field(default=150, ge=1)


class MonitorSettings(BaseModel):
    enabled: bool = Field(default=False)
    interval_seconds: float = Field(default=60.0, gt=0)


class DashboardSettings(BaseModel):
    default_symbol: str = Field(default="BTCUSDT")
    default_interval: str = Field(default="1d")
    user_id: str = Field(default="local")
    worker_url: Optional[str] = None
    worker_token: Optional[str] = None
    log_level: str = Field(default="INFO")
    feed: FeedSettings = Field(default_factory=FeedSettings)
    overlay: OverlaySettings = Field(default_factory=OverlaySettings)
    analysis: AnalysisSettings = Field(default_factory=AnalysisSettings)
    monitor: MonitorSettings = Field(default_factory=MonitorSettings)

    @field_validator("default_symbol")
    @classmethod
    def validate_symbol(cls, value: str) -> str:
        cleaned = normalize_symbol(value)
        if not cleaned:
            raise ValueError("default_symbol must contain letters or digits, e.g. BTCUSDT")
        return cleaned

    @field_validator("default_interval")
    @classmethod
    def validate_interval(cls, value: str) -> str:
        if value not in INTERVAL_SECONDS:
            raise ValueError(f"Unsupported interval: {value}")
        return value

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, value: str) -> str:
        return value.upper()

    @classmethod
    def from_env(cls) -> DashboardSettings:
        """Build settings from ``SIGNAL_DESK_*`` environment variables."""

        def env(name: str) -> Optional[str]:
            value = os.getenv(f"{ENV_PREFIX}{name}")
            return value if value not in (None, "") else None

        data: dict = {
            "default_symbol": env("SYMBOL"),
            "default_interval": env("INTERVAL"),
            "user_id": env("USER_ID"),
            "worker_url": env("WORKER_URL"),
            "worker_token": env("WORKER_TOKEN"),
            "log_level": env("LOG_LEVEL"),
            "feed": {
                "poll_interval_seconds": env("FEED_POLL_SECONDS"),
                "max_gap_seconds": env("FEED_MAX_GAP_SECONDS"),
                "history_limit": env("HISTORY_LIMIT"),
            },
            "overlay": {
                "lookahead_bars": env("LOOKAHEAD_BARS"),
            },
            "analysis": {
                "base_url": env("ANALYSIS_URL"),
                "api_key": env("ANALYSIS_API_KEY"),
                "timeout_seconds": env("ANALYSIS_TIMEOUT_SECONDS"),
            },
            "monitor": {
                "enabled": env("MONITOR_ENABLED"),
                "interval_seconds": env("MONITOR_INTERVAL_SECONDS"),
            },
        }
        return cls(**_drop_none(data))


def normalize_symbol(symbol: str) -> str:
    """Uppercase and strip everything but letters and digits (btc/usdt -> BTCUSDT)."""
    return "".join(ch for ch in symbol.upper() if ch.isalnum())


def load_env_file(path: Path) -> bool:
    """Lightweight .env loader. Returns True if loaded.

    Existing environment variables win over values from the file.
    """
    if not path.exists():
        return False
    for line in path.read_text().splitlines():
        line = line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, _, value = line.partition("=")
        key = key.strip()
        if key and key not in os.environ:
            os.environ[key] = value.strip()
    return True


def _drop_none(data: dict) -> dict:
    cleaned = {}
    for key, value in data.items():
        if isinstance(value, dict):
            nested = _drop_none(value)
            if nested:
                cleaned[key] = nested
        elif value is not None:
            cleaned[key] = value
    return cleaned


__all__ = [
    "DashboardSettings",
    "FeedSettings",
    "OverlaySettings",
    "AnalysisSettings",
    "MonitorSettings",
    "normalize_symbol",
    "load_env_file",
]
