"""
pulsewatch/services/policy.py

Threshold policy: pure functions deciding whether a measurement deviates
from its average, and how severe the deviation is.
- heart_rate_is_above_average / wrist_temperature_is_above_average /
  hrv_is_below_average: kind-specific abnormality checks
- heart_rate_level / severity_for: severity bucketing for message phrasing
- ThresholdPolicy: the tunables bundled together, built from Settings

Uses constants from pulsewatch/constants.py; no magic numbers allowed.
Every function returns False / not-applicable for a mismatched kind and
never raises.
"""

from pydantic import BaseModel, ConfigDict

from pulsewatch.constants import (
    HEART_RATE_THRESHOLD_MULTIPLIER,
    HRV_RATIO_THRESHOLD,
    SEVERITY_BREAKPOINTS,
    WRIST_TEMPERATURE_DELTA_IMPERIAL,
    WRIST_TEMPERATURE_DELTA_METRIC,
)
from pulsewatch.schemas import HeartRateLevel, Measurement, MeasurementKind, UnitSystem

# Kinds that have a "back to normal" notification
_LOWERING_KINDS: frozenset[MeasurementKind] = frozenset({MeasurementKind.HEART_RATE})


def heart_rate_is_above_average(
    measurement: Measurement,
    average: float,
    threshold_multiplier: float = HEART_RATE_THRESHOLD_MULTIPLIER,
) -> bool:
    """Return True if the resting heart rate is above 1 + threshold_multiplier times the average."""
    if measurement.kind is not MeasurementKind.HEART_RATE or average <= 0:
        return False

    return measurement.value / average > 1 + threshold_multiplier


def wrist_temperature_is_above_average(
    measurement: Measurement,
    average: float,
    unit_system: UnitSystem = UnitSystem.METRIC,
    metric_delta: float = WRIST_TEMPERATURE_DELTA_METRIC,
    imperial_delta: float = WRIST_TEMPERATURE_DELTA_IMPERIAL,
) -> bool:
    """Return True if the wrist temperature exceeds the average by more than the locale's delta."""
    if measurement.kind is not MeasurementKind.WRIST_TEMPERATURE or average <= 0:
        return False

    delta = imperial_delta if unit_system is UnitSystem.IMPERIAL else metric_delta
    return measurement.value - average > delta


def hrv_is_below_average(
    measurement: Measurement,
    average: float,
    ratio_threshold: float = HRV_RATIO_THRESHOLD,
) -> bool:
    """Return True if HRV has dropped below ratio_threshold times the average."""
    if measurement.kind is not MeasurementKind.HRV or average <= 0:
        return False

    return measurement.value / average < ratio_threshold


def heart_rate_level(
    multiplier: float,
    breakpoints: tuple[float, float, float, float] = SEVERITY_BREAKPOINTS,
) -> HeartRateLevel:
    """
    Bucket a value/average multiplier into a severity level.

    Breakpoints are exclusive: a multiplier exactly on a breakpoint stays in
    the lower bucket (1.05 is normal, 1.051 is slightly elevated).
    """
    below, slightly, noticeably, way = breakpoints

    if multiplier > slightly:
        if multiplier > way:
            return HeartRateLevel.WAY_ABOVE_ELEVATED
        if multiplier > noticeably:
            return HeartRateLevel.NOTICEABLY_ELEVATED
        return HeartRateLevel.SLIGHTLY_ELEVATED
    if multiplier < below:
        return HeartRateLevel.BELOW_AVERAGE
    return HeartRateLevel.NORMAL


def severity_multiplier(measurement: Measurement, average: float) -> float:
    """value/average, inverted for HRV where lower values are worse."""
    if measurement.kind is MeasurementKind.HRV:
        if measurement.value <= 0:
            return float("inf")
        return average / measurement.value
    if average <= 0:
        return 1.0
    return measurement.value / average


def severity_for(
    measurement: Measurement,
    average: float,
    breakpoints: tuple[float, float, float, float] = SEVERITY_BREAKPOINTS,
) -> HeartRateLevel:
    return heart_rate_level(severity_multiplier(measurement, average), breakpoints)


def supports_lowering(kind: MeasurementKind) -> bool:
    """Only resting heart rate has a 'back to normal' notification."""
    return kind in _LOWERING_KINDS


class ThresholdPolicy(BaseModel):
    """All policy tunables in one immutable object, so the manager stays config-free."""

    model_config = ConfigDict(frozen=True)

    unit_system: UnitSystem = UnitSystem.METRIC
    heart_rate_threshold_multiplier: float = HEART_RATE_THRESHOLD_MULTIPLIER
    wrist_temperature_delta_metric: float = WRIST_TEMPERATURE_DELTA_METRIC
    wrist_temperature_delta_imperial: float = WRIST_TEMPERATURE_DELTA_IMPERIAL
    hrv_ratio_threshold: float = HRV_RATIO_THRESHOLD
    severity_breakpoints: tuple[float, float, float, float] = SEVERITY_BREAKPOINTS

    @classmethod
    def from_settings(cls, settings) -> "ThresholdPolicy":
        return cls(
            unit_system=UnitSystem(settings.unit_system),
            heart_rate_threshold_multiplier=settings.heart_rate_threshold_multiplier,
            wrist_temperature_delta_metric=settings.wrist_temperature_delta_metric,
            wrist_temperature_delta_imperial=settings.wrist_temperature_delta_imperial,
            hrv_ratio_threshold=settings.hrv_ratio_threshold,
            severity_breakpoints=settings.severity_breakpoints,
        )

    def is_abnormal(self, measurement: Measurement, average: float) -> bool:
        """Dispatch to the kind-specific check."""
        if measurement.kind is MeasurementKind.HEART_RATE:
            return heart_rate_is_above_average(
                measurement, average, self.heart_rate_threshold_multiplier
            )
        if measurement.kind is MeasurementKind.WRIST_TEMPERATURE:
            return wrist_temperature_is_above_average(
                measurement,
                average,
                self.unit_system,
                self.wrist_temperature_delta_metric,
                self.wrist_temperature_delta_imperial,
            )
        if measurement.kind is MeasurementKind.HRV:
            return hrv_is_below_average(measurement, average, self.hrv_ratio_threshold)
        return False

    def level(self, measurement: Measurement, average: float) -> HeartRateLevel:
        return severity_for(measurement, average, self.severity_breakpoints)
