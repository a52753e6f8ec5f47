"""Configuration schema for Signal Desk."""

from .schema import (
    AnalysisSettings,
    DashboardSettings,
    FeedSettings,
    MonitorSettings,
    OverlaySettings,
    load_env_file,
    normalize_symbol,
)

__all__ = [
    "DashboardSettings",
    "FeedSettings",
    "OverlaySettings",
    "AnalysisSettings",
    "MonitorSettings",
    "load_env_file",
    "normalize_symbol",
]
