"""
pulsewatch/services/messages.py

Notification title and body formatting.
Severity buckets come from the threshold policy; this module only turns
them into user-facing text.
"""

from pulsewatch.constants import SEVERITY_BREAKPOINTS
from pulsewatch.schemas import HeartRateLevel, Trend, UnitSystem
from pulsewatch.services.policy import heart_rate_level

_EMOJI_BY_LEVEL: dict[HeartRateLevel, str] = {
    HeartRateLevel.BELOW_AVERAGE: "🟩",
    HeartRateLevel.NORMAL: "🟩",
    HeartRateLevel.SLIGHTLY_ELEVATED: "🟨",
    HeartRateLevel.NOTICEABLY_ELEVATED: "🟧",
    HeartRateLevel.WAY_ABOVE_ELEVATED: "🟥",
}

_COLOR_BY_LEVEL: dict[HeartRateLevel, str] = {
    HeartRateLevel.BELOW_AVERAGE: "green",
    HeartRateLevel.NORMAL: "green",
    HeartRateLevel.SLIGHTLY_ELEVATED: "yellow",
    HeartRateLevel.NOTICEABLY_ELEVATED: "orange",
    HeartRateLevel.WAY_ABOVE_ELEVATED: "red",
}

_ADJECTIVE_BY_LEVEL: dict[HeartRateLevel, str] = {
    HeartRateLevel.BELOW_AVERAGE: "normal",
    HeartRateLevel.NORMAL: "normal",
    HeartRateLevel.SLIGHTLY_ELEVATED: "slightly",
    HeartRateLevel.NOTICEABLY_ELEVATED: "noticeably",
    HeartRateLevel.WAY_ABOVE_ELEVATED: "way",
}

HEART_RATE_LOWERED_MESSAGE = "Your resting heart rate returned back to normal. Well done!"
HRV_LOW_TITLE = "Your heart rate variability is low"
HRV_LOW_MESSAGE = (
    "Your heart rate variability is below your average, which can be a sign "
    "of stress. Consider taking it easy and getting some rest today."
)


def color_emoji(level: HeartRateLevel) -> str:
    return _EMOJI_BY_LEVEL[level]


def color_name(level: HeartRateLevel) -> str:
    return _COLOR_BY_LEVEL[level]


def severity_adjective(level: HeartRateLevel) -> str:
    return _ADJECTIVE_BY_LEVEL[level]


def analysis_text(
    current: float,
    average: float,
    breakpoints: tuple[float, float, float, float] = SEVERITY_BREAKPOINTS,
) -> str:
    """
    Describe how the resting heart rate compares to the average.

    The deviation is measured symmetrically (the larger of current/average
    and average/current), so "slightly below" and "slightly above" share
    the same bucket.
    """
    if current <= 0 or average <= 0:
        return "Your resting heart rate is normal."

    level = heart_rate_level(max(current / average, average / current), breakpoints)
    if level in (HeartRateLevel.NORMAL, HeartRateLevel.BELOW_AVERAGE):
        return "Your resting heart rate is normal."

    direction = "above" if current > average else "below"
    return f"Your resting heart rate is {severity_adjective(level)} {direction} your average."


def heart_rate_title(trend: Trend, level: HeartRateLevel) -> str:
    return f"{color_emoji(level)} {trend.display_text}"


def heart_rate_message(
    trend: Trend,
    current: float,
    average: float,
    breakpoints: tuple[float, float, float, float] = SEVERITY_BREAKPOINTS,
) -> str:
    if trend is Trend.LOWERING:
        return HEART_RATE_LOWERED_MESSAGE

    percentage = (current / average - 1.0) * 100
    return (
        f"{analysis_text(current, average, breakpoints)} "
        f"It's {percentage:.0f}% above your average. You should slow down."
    )


def wrist_temperature_title(temperature: float, unit_system: UnitSystem) -> str:
    return (
        f"Your wrist temperature is elevated: "
        f"{temperature:.1f}°{unit_system.temperature_symbol}"
    )


def wrist_temperature_message(
    temperature: float,
    average: float,
    level: HeartRateLevel,
    unit_system: UnitSystem,
) -> str:
    delta = temperature - average
    if level in (HeartRateLevel.NORMAL, HeartRateLevel.BELOW_AVERAGE):
        lead = "Your wrist temperature is above your average."
    else:
        lead = f"Your wrist temperature is {severity_adjective(level)} above your average."
    return f"{lead} It's {delta:.1f}°{unit_system.temperature_symbol} above the average."
