"""
config.py

Centralized configuration management using pydantic-settings.
All modules must import settings from this file.
Direct os.getenv() calls are prohibited elsewhere.
"""

from typing import Literal

from pydantic_settings import BaseSettings

from pulsewatch.constants import (
    HEART_RATE_THRESHOLD_MULTIPLIER,
    HRV_RATIO_THRESHOLD,
    NOTIFICATION_TIMEOUT_SECONDS,
    SEVERITY_BREAKPOINTS,
    WRIST_TEMPERATURE_DELTA_IMPERIAL,
    WRIST_TEMPERATURE_DELTA_METRIC,
)


class Settings(BaseSettings):
    """Application-wide settings loaded from .env file."""

    # Persistence
    persistence_backend: Literal["memory", "sql"] = "memory"
    database_url: str = "mysql+aiomysql://pulsewatch:@127.0.0.1:3306/pulsewatch"

    # Locale
    unit_system: Literal["metric", "imperial"] = "metric"
    timezone: str = "UTC"

    # Threshold policy
    heart_rate_threshold_multiplier: float = HEART_RATE_THRESHOLD_MULTIPLIER
    wrist_temperature_delta_metric: float = WRIST_TEMPERATURE_DELTA_METRIC
    wrist_temperature_delta_imperial: float = WRIST_TEMPERATURE_DELTA_IMPERIAL
    hrv_ratio_threshold: float = HRV_RATIO_THRESHOLD
    severity_breakpoints: tuple[float, float, float, float] = SEVERITY_BREAKPOINTS

    # Push notifications
    notification_webhook_url: str = ""
    notification_timeout_seconds: float = NOTIFICATION_TIMEOUT_SECONDS

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "env_prefix": "PULSEWATCH_",
    }


settings = Settings()
