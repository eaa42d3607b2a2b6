"""
tests/fixtures.py

Shared test data and helper classes for constructing measurements and managers.
All tests must use these fixtures instead of hardcoding test values.
"""

import asyncio
from datetime import datetime, timedelta, timezone
from typing import Optional

from pulsewatch.schemas import Measurement, MeasurementKind, NotificationResult
from pulsewatch.services.decision import DecisionManager
from pulsewatch.services.persistence import InMemoryNotificationRecordRepository
from pulsewatch.services.policy import ThresholdPolicy
from pulsewatch.services.store import InMemoryMeasurementStore

# ── Reference time ──────────────────────────────────────────

TEST_NOW: datetime = datetime(2024, 6, 15, 8, 0, 0, tzinfo=timezone.utc)

# ── Test averages ───────────────────────────────────────────

TEST_HEART_RATE_AVERAGE: float = 50.0
TEST_WRIST_TEMPERATURE_AVERAGE: float = 37.0
TEST_HRV_AVERAGE: float = 50.0


def build_measurement(
    value: float = 50.0,
    kind: MeasurementKind = MeasurementKind.HEART_RATE,
    timestamp: datetime | None = None,
) -> Measurement:
    """Build a Measurement with sensible defaults for testing."""
    return Measurement(timestamp=timestamp or TEST_NOW, value=value, kind=kind)


class FakeClock:
    """Controllable clock; advance() moves time forward."""

    def __init__(self, now: datetime = TEST_NOW) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now = self.now + timedelta(**kwargs)


class RecordingGateway:
    """
    Notification gateway double.

    Records every post, tracks how many posts are in flight at once, and can
    hold posts until release is set when gated=True.
    """

    def __init__(
        self,
        result: Optional[NotificationResult] = None,
        gated: bool = False,
    ) -> None:
        self.result = result or NotificationResult.success()
        self.posts: list[tuple[str, str]] = []
        self.in_flight = 0
        self.max_in_flight = 0
        self.release = asyncio.Event()
        if not gated:
            self.release.set()

    async def post(self, title: str, body: str) -> NotificationResult:
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await self.release.wait()
            self.posts.append((title, body))
            return self.result
        finally:
            self.in_flight -= 1


def build_manager(
    averages: Optional[dict[MeasurementKind, float]] = None,
    gateway: Optional[RecordingGateway] = None,
    clock: Optional[FakeClock] = None,
    policy: Optional[ThresholdPolicy] = None,
) -> DecisionManager:
    """Build a DecisionManager backed by in-memory collaborators."""
    return DecisionManager(
        store=InMemoryMeasurementStore(averages),
        gateway=gateway or RecordingGateway(),
        records=InMemoryNotificationRecordRepository(),
        policy=policy,
        clock=clock or FakeClock(),
    )


async def wait_until(predicate, attempts: int = 100) -> None:
    """Yield to the event loop until predicate() holds."""
    for _ in range(attempts):
        if predicate():
            return
        await asyncio.sleep(0)
    raise AssertionError("condition not reached")
