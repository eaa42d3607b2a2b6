"""
pulsewatch/constants.py

Threshold constants used by the threshold policy and the decision manager.
All numeric tuning values must be referenced from this module.
Settings use these as defaults; business logic must not hardcode them.
"""

# ── Resting heart rate ───────────────────────────────────────
HEART_RATE_THRESHOLD_MULTIPLIER: float = 0.05  # abnormal if value/avg > 1 + this

# ── Wrist temperature (degrees above average) ────────────────
WRIST_TEMPERATURE_DELTA_METRIC: float = 1.0  # °C
WRIST_TEMPERATURE_DELTA_IMPERIAL: float = 1.8  # °F

# ── Heart rate variability ───────────────────────────────────
HRV_RATIO_THRESHOLD: float = 0.8  # abnormal if value/avg < this

# ── Severity buckets (multiplier breakpoints) ────────────────
# (below_average, slightly, noticeably, way_above)
SEVERITY_BREAKPOINTS: tuple[float, float, float, float] = (0.95, 1.05, 1.1, 1.2)

# ── Notification transport ───────────────────────────────────
NOTIFICATION_TIMEOUT_SECONDS: float = 5.0
