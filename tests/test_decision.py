"""
tests/test_decision.py

Unit tests for pulsewatch/services/decision.py.
Covers the daily budget, rising/lowering transitions, per-kind serialization,
gateway failure handling and degradation scenarios.
All collaborators are in-memory doubles from tests/fixtures.py.
"""

import threading
from datetime import timedelta
from unittest.mock import AsyncMock

import pytest

from pulsewatch.schemas import HeartRateLevel, MeasurementKind, NotificationResult, Trend
from tests.fixtures import (
    TEST_HEART_RATE_AVERAGE,
    TEST_HRV_AVERAGE,
    TEST_NOW,
    TEST_WRIST_TEMPERATURE_AVERAGE,
    FakeClock,
    RecordingGateway,
    build_manager,
    build_measurement,
    wait_until,
)

HR = MeasurementKind.HEART_RATE
WT = MeasurementKind.WRIST_TEMPERATURE
HRV = MeasurementKind.HRV


@pytest.mark.asyncio
async def test_no_notification_without_average() -> None:
    """Without an average the comparison cannot be made."""
    gateway = RecordingGateway()
    manager = build_manager(gateway=gateway)

    manager.handle_update(build_measurement(100.0))
    manager.handle_update(build_measurement(39.0, WT))
    await manager.join()

    assert gateway.posts == []
    await manager.aclose()


@pytest.mark.asyncio
async def test_rising_heart_rate_posts_once_with_emoji() -> None:
    gateway = RecordingGateway()
    manager = build_manager({HR: TEST_HEART_RATE_AVERAGE}, gateway=gateway)

    manager.handle_update(build_measurement(100.0))
    await manager.join()

    assert len(gateway.posts) == 1
    title, body = gateway.posts[0]
    assert title == "🟥 Elevated resting heart rate"
    assert "way above your average" in body
    assert await manager.has_notified_today(HR, Trend.RISING)
    assert not await manager.has_notified_today(HR, Trend.LOWERING)
    await manager.aclose()


@pytest.mark.asyncio
async def test_average_heart_rate_posts_nothing() -> None:
    gateway = RecordingGateway()
    manager = build_manager({HR: TEST_HEART_RATE_AVERAGE}, gateway=gateway)

    manager.handle_update(build_measurement(50.0))
    await manager.join()

    assert gateway.posts == []
    assert not await manager.has_notified_today(HR, Trend.RISING)
    assert not await manager.has_notified_today(HR, Trend.LOWERING)
    await manager.aclose()


@pytest.mark.asyncio
async def test_rising_then_lowering() -> None:
    gateway = RecordingGateway()
    manager = build_manager({HR: TEST_HEART_RATE_AVERAGE}, gateway=gateway)

    manager.handle_update(build_measurement(100.0, timestamp=TEST_NOW - timedelta(hours=1)))
    manager.handle_update(build_measurement(50.0, timestamp=TEST_NOW))
    await manager.join()

    assert [title for title, _ in gateway.posts] == [
        "🟥 Elevated resting heart rate",
        "🟩 Resting heart rate back to normal",
    ]
    assert gateway.posts[1][1] == "Your resting heart rate returned back to normal. Well done!"
    await manager.aclose()


@pytest.mark.asyncio
async def test_daily_budget_alternating_updates() -> None:
    """High, average, high, average within one day: one rising and one lowering notification."""
    gateway = RecordingGateway()
    clock = FakeClock()
    manager = build_manager({HR: TEST_HEART_RATE_AVERAGE}, gateway=gateway, clock=clock)

    for hours_ago, value in [(3, 100.0), (2, 50.0), (1, 100.0), (0, 50.0)]:
        manager.handle_update(
            build_measurement(value, timestamp=TEST_NOW - timedelta(hours=hours_ago))
        )
        await manager.join()
        clock.advance(minutes=30)

    assert len(gateway.posts) == 2
    assert await manager.has_notified_today(HR, Trend.RISING)
    assert await manager.has_notified_today(HR, Trend.LOWERING)
    await manager.aclose()


@pytest.mark.asyncio
async def test_budget_resets_on_next_calendar_day() -> None:
    """The budget is per calendar day, not a rolling 24 hour window."""
    gateway = RecordingGateway()
    clock = FakeClock(TEST_NOW.replace(hour=23, minute=30))
    manager = build_manager({HR: TEST_HEART_RATE_AVERAGE}, gateway=gateway, clock=clock)

    manager.handle_update(build_measurement(100.0))
    await manager.join()
    clock.advance(hours=1)
    manager.handle_update(build_measurement(100.0, timestamp=TEST_NOW + timedelta(hours=1)))
    await manager.join()

    assert len(gateway.posts) == 2
    await manager.aclose()


@pytest.mark.asyncio
async def test_replayed_measurement_is_idempotent() -> None:
    gateway = RecordingGateway()
    manager = build_manager({HR: TEST_HEART_RATE_AVERAGE}, gateway=gateway)
    measurement = build_measurement(100.0)

    manager.handle_update(measurement)
    manager.handle_update(measurement)
    await manager.join()

    assert len(gateway.posts) == 1
    await manager.aclose()


@pytest.mark.asyncio
async def test_one_gateway_call_in_flight_per_kind() -> None:
    """A second update waits in the queue until the first post completes, and is not lost."""
    gateway = RecordingGateway(gated=True)
    manager = build_manager({HR: TEST_HEART_RATE_AVERAGE}, gateway=gateway)

    manager.handle_update(build_measurement(100.0, timestamp=TEST_NOW - timedelta(minutes=1)))
    manager.handle_update(build_measurement(50.0, timestamp=TEST_NOW))
    await wait_until(lambda: gateway.in_flight == 1)

    assert manager.pending(HR) == 1
    assert gateway.posts == []

    gateway.release.set()
    await manager.join()

    assert gateway.max_in_flight == 1
    assert len(gateway.posts) == 2
    assert manager.pending(HR) == 0
    await manager.aclose()


@pytest.mark.asyncio
async def test_different_kinds_are_processed_independently() -> None:
    gateway = RecordingGateway()
    manager = build_manager(
        {
            HR: TEST_HEART_RATE_AVERAGE,
            WT: TEST_WRIST_TEMPERATURE_AVERAGE,
            HRV: TEST_HRV_AVERAGE,
        },
        gateway=gateway,
    )

    manager.handle_update(build_measurement(100.0, HR))
    manager.handle_update(build_measurement(39.0, WT))
    manager.handle_update(build_measurement(38.0, HRV))
    await manager.join()

    titles = sorted(title for title, _ in gateway.posts)
    assert titles == sorted(
        [
            "🟥 Elevated resting heart rate",
            "Your wrist temperature is elevated: 39.0°C",
            "Your heart rate variability is low",
        ]
    )
    await manager.aclose()


@pytest.mark.asyncio
async def test_wrist_temperature_is_rising_only() -> None:
    gateway = RecordingGateway()
    manager = build_manager({WT: TEST_WRIST_TEMPERATURE_AVERAGE}, gateway=gateway)

    for hours_ago, value in [(3, 39.0), (2, 40.0), (1, 41.0), (0, 36.0)]:
        manager.handle_update(
            build_measurement(value, WT, timestamp=TEST_NOW - timedelta(hours=hours_ago))
        )
    await manager.join()

    assert len(gateway.posts) == 1
    assert await manager.has_notified_today(WT, Trend.RISING)
    assert not await manager.has_notified_today(WT, Trend.LOWERING)
    await manager.aclose()


@pytest.mark.asyncio
async def test_wrist_temperature_within_delta_is_ignored() -> None:
    gateway = RecordingGateway()
    manager = build_manager({WT: TEST_WRIST_TEMPERATURE_AVERAGE}, gateway=gateway)

    manager.handle_update(build_measurement(37.5, WT))
    await manager.join()

    assert gateway.posts == []
    await manager.aclose()


@pytest.mark.asyncio
async def test_hrv_below_average_posts_stress_message() -> None:
    gateway = RecordingGateway()
    manager = build_manager({HRV: TEST_HRV_AVERAGE}, gateway=gateway)

    manager.handle_update(build_measurement(45.0, HRV, timestamp=TEST_NOW - timedelta(hours=1)))
    manager.handle_update(build_measurement(38.0, HRV))
    manager.handle_update(build_measurement(50.0, HRV, timestamp=TEST_NOW + timedelta(hours=1)))
    await manager.join()

    assert len(gateway.posts) == 1
    title, body = gateway.posts[0]
    assert title == "Your heart rate variability is low"
    assert "stress" in body
    await manager.aclose()


@pytest.mark.asyncio
async def test_gateway_failure_does_not_record_and_queue_continues() -> None:
    """A failed post leaves the budget untouched so a later update can retry."""
    gateway = RecordingGateway(result=NotificationResult.failure("denied"))
    manager = build_manager({HR: TEST_HEART_RATE_AVERAGE}, gateway=gateway)

    manager.handle_update(build_measurement(100.0, timestamp=TEST_NOW - timedelta(minutes=2)))
    manager.handle_update(build_measurement(110.0, timestamp=TEST_NOW - timedelta(minutes=1)))
    await manager.join()

    assert len(gateway.posts) == 2
    assert not await manager.has_notified_today(HR, Trend.RISING)

    gateway.result = NotificationResult.success()
    manager.handle_update(build_measurement(100.0))
    await manager.join()

    assert len(gateway.posts) == 3
    assert await manager.has_notified_today(HR, Trend.RISING)
    await manager.aclose()


@pytest.mark.asyncio
async def test_gateway_exception_is_treated_as_failure() -> None:
    manager = build_manager({HR: TEST_HEART_RATE_AVERAGE})
    manager.gateway = AsyncMock()
    manager.gateway.post = AsyncMock(side_effect=RuntimeError("transport down"))

    manager.handle_update(build_measurement(100.0))
    await manager.join()

    manager.gateway.post.assert_awaited_once()
    assert not await manager.has_notified_today(HR, Trend.RISING)
    await manager.aclose()


@pytest.mark.asyncio
async def test_store_error_does_not_stop_worker() -> None:
    gateway = RecordingGateway()
    manager = build_manager({HR: TEST_HEART_RATE_AVERAGE}, gateway=gateway)
    original_get_average = manager.store.get_average
    manager.store.get_average = AsyncMock(
        side_effect=[ConnectionError("db down"), await original_get_average(HR)]
    )

    manager.handle_update(build_measurement(100.0, timestamp=TEST_NOW - timedelta(minutes=1)))
    manager.handle_update(build_measurement(100.0))
    await manager.join()

    assert len(gateway.posts) == 1
    await manager.aclose()


@pytest.mark.asyncio
async def test_decide_has_no_side_effects() -> None:
    gateway = RecordingGateway()
    manager = build_manager({HR: TEST_HEART_RATE_AVERAGE}, gateway=gateway)

    decision = await manager.decide(build_measurement(100.0), TEST_HEART_RATE_AVERAGE)

    assert decision is not None
    assert decision.trend is Trend.RISING
    assert decision.level is HeartRateLevel.WAY_ABOVE_ELEVATED
    assert decision.level.numeric_value == 3
    assert gateway.posts == []
    assert not await manager.has_notified_today(HR, Trend.RISING)


@pytest.mark.asyncio
async def test_notified_timestamp_comes_from_clock() -> None:
    clock = FakeClock()
    manager = build_manager({HR: TEST_HEART_RATE_AVERAGE}, clock=clock)

    manager.handle_update(build_measurement(100.0, timestamp=TEST_NOW - timedelta(days=3)))
    await manager.join()

    assert await manager.records.get(HR, Trend.RISING) == TEST_NOW
    await manager.aclose()


@pytest.mark.asyncio
async def test_handle_update_from_another_thread() -> None:
    gateway = RecordingGateway()
    manager = build_manager({HR: TEST_HEART_RATE_AVERAGE}, gateway=gateway)

    thread = threading.Thread(
        target=manager.handle_update_threadsafe, args=(build_measurement(100.0),)
    )
    thread.start()
    thread.join()
    await wait_until(lambda: len(gateway.posts) == 1)
    await manager.join()

    assert len(gateway.posts) == 1
    assert await manager.has_notified_today(HR, Trend.RISING)
    await manager.aclose()


def test_handle_update_threadsafe_requires_event_loop() -> None:
    """A manager built outside a running loop has nowhere to schedule work."""
    manager = build_manager({HR: TEST_HEART_RATE_AVERAGE})

    with pytest.raises(RuntimeError):
        manager.handle_update_threadsafe(build_measurement(100.0))
