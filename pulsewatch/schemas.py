"""
pulsewatch/schemas.py

Pydantic data models and enums shared across the service.
- Measurement: a single timestamped reading delivered by the measurement source
- Trend / HeartRateLevel: decision and severity vocabularies
- NotificationResult: outcome reported by a notification gateway
- MeasurementIn / AverageIn: HTTP request bodies
"""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict


class MeasurementKind(str, Enum):
    """Types of biometric measurements the service tracks."""

    HEART_RATE = "heart_rate"
    WRIST_TEMPERATURE = "wrist_temperature"
    HRV = "hrv"


class Trend(str, Enum):
    """Direction of an abnormal-state transition."""

    RISING = "rising"
    LOWERING = "lowering"

    @property
    def display_text(self) -> str:
        if self is Trend.RISING:
            return "Elevated resting heart rate"
        return "Resting heart rate back to normal"


class HeartRateLevel(str, Enum):
    """Qualitative severity bucket used for message phrasing and coloring."""

    BELOW_AVERAGE = "below_average"
    NORMAL = "normal"
    SLIGHTLY_ELEVATED = "slightly_elevated"
    NOTICEABLY_ELEVATED = "noticeably_elevated"
    WAY_ABOVE_ELEVATED = "way_above_elevated"

    @property
    def numeric_value(self) -> int:
        return {
            HeartRateLevel.BELOW_AVERAGE: 0,
            HeartRateLevel.NORMAL: 0,
            HeartRateLevel.SLIGHTLY_ELEVATED: 1,
            HeartRateLevel.NOTICEABLY_ELEVATED: 2,
            HeartRateLevel.WAY_ABOVE_ELEVATED: 3,
        }[self]


class UnitSystem(str, Enum):
    """Measurement system of the active locale."""

    METRIC = "metric"
    IMPERIAL = "imperial"

    @property
    def temperature_symbol(self) -> str:
        return "F" if self is UnitSystem.IMPERIAL else "C"


class Measurement(BaseModel):
    """A timestamped reading from the user's wearable device."""

    model_config = ConfigDict(frozen=True)

    timestamp: datetime
    value: float
    kind: MeasurementKind


class NotificationResult(BaseModel):
    """Completion reported by a notification gateway for a single post."""

    model_config = ConfigDict(frozen=True)

    ok: bool
    reason: Optional[str] = None

    @classmethod
    def success(cls) -> "NotificationResult":
        return cls(ok=True)

    @classmethod
    def failure(cls, reason: str) -> "NotificationResult":
        return cls(ok=False, reason=reason)


class MeasurementIn(BaseModel):
    """Incoming measurement posted by the measurement source."""

    timestamp: datetime
    value: float
    kind: MeasurementKind

    def to_measurement(self) -> Measurement:
        return Measurement(timestamp=self.timestamp, value=self.value, kind=self.kind)


class AverageIn(BaseModel):
    """Average value written by the external averaging process."""

    value: float
