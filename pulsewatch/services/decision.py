"""
pulsewatch/services/decision.py

Decision manager: decides whether a measurement update warrants a notification.

Flow per measurement kind:
1. handle_update() appends the measurement to the kind's queue
2. A single worker per kind takes measurements one at a time (FIFO)
3. The threshold policy and the persisted "last notified" records decide
   between a rising notification, a lowering notification, or nothing
4. The notification gateway is awaited; the record is only written on success
5. The worker moves on to the next queued measurement

Because each kind has exactly one worker, at most one notification decision
is in flight per kind, and "last notified" writes never race each other.
"""

import asyncio
from datetime import datetime, timezone, tzinfo
from typing import Callable, Optional

import structlog
from pydantic import BaseModel, ConfigDict

from pulsewatch.schemas import (
    HeartRateLevel,
    Measurement,
    MeasurementKind,
    NotificationResult,
    Trend,
)
from pulsewatch.services import messages
from pulsewatch.services.notification import NotificationGateway
from pulsewatch.services.persistence import NotificationRecordRepository, as_utc
from pulsewatch.services.policy import ThresholdPolicy, supports_lowering
from pulsewatch.services.store import MeasurementStore

logger = structlog.get_logger(__name__)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class Decision(BaseModel):
    """A notification the manager has decided to post."""

    model_config = ConfigDict(frozen=True)

    kind: MeasurementKind
    trend: Trend
    level: HeartRateLevel
    title: str
    body: str


class DecisionManager:
    def __init__(
        self,
        store: MeasurementStore,
        gateway: NotificationGateway,
        records: NotificationRecordRepository,
        policy: Optional[ThresholdPolicy] = None,
        clock: Callable[[], datetime] = _utc_now,
        tz: tzinfo = timezone.utc,
    ) -> None:
        self.store = store
        self.gateway = gateway
        self.records = records
        self.policy = policy or ThresholdPolicy()
        self.clock = clock
        self.tz = tz

        self._queues: dict[MeasurementKind, asyncio.Queue[Measurement]] = {}
        self._workers: dict[MeasurementKind, asyncio.Task] = {}
        try:
            self._loop: Optional[asyncio.AbstractEventLoop] = asyncio.get_running_loop()
        except RuntimeError:
            self._loop = None

    # ── Input ────────────────────────────────────────────────

    def handle_update(self, measurement: Measurement) -> None:
        """
        Queue a measurement for a decision. Never blocks and never raises.

        Must be called from the event loop thread; use
        handle_update_threadsafe() from other threads.
        """
        kind = measurement.kind
        self._loop = asyncio.get_running_loop()

        queue = self._queues.get(kind)
        if queue is None:
            queue = asyncio.Queue()
            self._queues[kind] = queue
        queue.put_nowait(measurement)

        worker = self._workers.get(kind)
        if worker is None or worker.done():
            self._workers[kind] = asyncio.create_task(
                self._run_worker(kind, queue), name=f"decision-worker-{kind.value}"
            )

        logger.info(
            "measurement_enqueued",
            kind=kind.value,
            value=measurement.value,
            timestamp=str(measurement.timestamp),
            pending=queue.qsize(),
        )

    def handle_update_threadsafe(self, measurement: Measurement) -> None:
        if self._loop is None:
            raise RuntimeError("DecisionManager is not bound to an event loop yet")
        self._loop.call_soon_threadsafe(self.handle_update, measurement)

    async def join(self) -> None:
        """Wait until every queued measurement has been fully processed."""
        for queue in list(self._queues.values()):
            await queue.join()

    async def aclose(self) -> None:
        """Drain the queues, then stop the workers."""
        await self.join()
        workers = list(self._workers.values())
        for worker in workers:
            worker.cancel()
        await asyncio.gather(*workers, return_exceptions=True)
        self._workers.clear()
        logger.info("decision_manager_closed")

    def pending(self, kind: MeasurementKind) -> int:
        queue = self._queues.get(kind)
        return 0 if queue is None else queue.qsize()

    # ── Worker ───────────────────────────────────────────────

    async def _run_worker(
        self, kind: MeasurementKind, queue: asyncio.Queue[Measurement]
    ) -> None:
        while True:
            measurement = await queue.get()
            try:
                await self._process(measurement)
            except Exception:
                logger.exception(
                    "measurement_processing_failed",
                    kind=kind.value,
                    timestamp=str(measurement.timestamp),
                )
            finally:
                queue.task_done()

    async def _process(self, measurement: Measurement) -> None:
        kind = measurement.kind

        average = await self.store.get_average(kind)
        if average is None:
            # No average yet, the comparison cannot be made
            logger.info("decision_skipped_no_average", kind=kind.value)
            return

        decision = await self.decide(measurement, average)
        if decision is None:
            logger.info(
                "decision_skipped",
                kind=kind.value,
                value=measurement.value,
                average=average,
            )
            return

        result = await self._post(decision)
        if result.ok:
            notified_at = as_utc(self.clock())
            await self.records.set(kind, decision.trend, notified_at)
            logger.info(
                "notification_posted",
                kind=kind.value,
                trend=decision.trend.value,
                severity=decision.level.numeric_value,
                notified_at=str(notified_at),
            )
        else:
            logger.warning(
                "notification_post_failed",
                kind=kind.value,
                trend=decision.trend.value,
                reason=result.reason,
            )

    async def _post(self, decision: Decision) -> NotificationResult:
        try:
            return await self.gateway.post(decision.title, decision.body)
        except Exception as exc:
            logger.error(
                "notification_gateway_error",
                kind=decision.kind.value,
                error=str(exc),
            )
            return NotificationResult.failure(str(exc))

    # ── Decision policy ──────────────────────────────────────

    async def decide(self, measurement: Measurement, average: float) -> Optional[Decision]:
        """
        Return the notification to post for this measurement, or None.

        Reads the notification records but writes nothing.
        """
        kind = measurement.kind

        if self.policy.is_abnormal(measurement, average):
            if await self.has_notified_today(kind, Trend.RISING):
                return None
            return self._compose(Trend.RISING, measurement, average)

        # Abnormal earlier today, now back within range
        if (
            supports_lowering(kind)
            and await self.has_notified_today(kind, Trend.RISING)
            and not await self.has_notified_today(kind, Trend.LOWERING)
        ):
            return self._compose(Trend.LOWERING, measurement, average)

        return None

    async def has_notified_today(self, kind: MeasurementKind, trend: Trend) -> bool:
        """Calendar-day comparison in the configured time zone, not a rolling 24h window."""
        notified_at = await self.records.get(kind, trend)
        if notified_at is None:
            return False
        today = as_utc(self.clock()).astimezone(self.tz).date()
        return as_utc(notified_at).astimezone(self.tz).date() == today

    def _compose(self, trend: Trend, measurement: Measurement, average: float) -> Decision:
        kind = measurement.kind
        level = self.policy.level(measurement, average)

        if kind is MeasurementKind.HEART_RATE:
            title = messages.heart_rate_title(trend, level)
            body = messages.heart_rate_message(
                trend, measurement.value, average, self.policy.severity_breakpoints
            )
        elif kind is MeasurementKind.WRIST_TEMPERATURE:
            title = messages.wrist_temperature_title(measurement.value, self.policy.unit_system)
            body = messages.wrist_temperature_message(
                measurement.value, average, level, self.policy.unit_system
            )
        else:
            title = messages.HRV_LOW_TITLE
            body = messages.HRV_LOW_MESSAGE

        return Decision(kind=kind, trend=trend, level=level, title=title, body=body)
