"""
pulsewatch/services/persistence.py

Repository for "last notified" timestamps keyed by (kind, trend).
- InMemoryNotificationRecordRepository: process-local, used by default and in tests
- SqlNotificationRecordRepository: durable storage via SQLAlchemy 2.0 async sessions

Timestamps are stored in UTC and always returned timezone-aware.
"""

from datetime import datetime, timezone
from typing import Optional, Protocol

import structlog
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from db.models import NotificationRecord
from pulsewatch.schemas import MeasurementKind, Trend

logger = structlog.get_logger(__name__)


def as_utc(timestamp: datetime) -> datetime:
    """Attach UTC to naive timestamps (SQLite drops tzinfo) and convert aware ones."""
    if timestamp.tzinfo is None:
        return timestamp.replace(tzinfo=timezone.utc)
    return timestamp.astimezone(timezone.utc)


class NotificationRecordRepository(Protocol):
    async def get(self, kind: MeasurementKind, trend: Trend) -> Optional[datetime]: ...

    async def set(self, kind: MeasurementKind, trend: Trend, timestamp: datetime) -> None: ...


class InMemoryNotificationRecordRepository:
    def __init__(self) -> None:
        self._records: dict[tuple[MeasurementKind, Trend], datetime] = {}

    async def get(self, kind: MeasurementKind, trend: Trend) -> Optional[datetime]:
        return self._records.get((kind, trend))

    async def set(self, kind: MeasurementKind, trend: Trend, timestamp: datetime) -> None:
        self._records[(kind, trend)] = as_utc(timestamp)


class SqlNotificationRecordRepository:
    """Stores one notification_records row per (kind, trend)."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def get(self, kind: MeasurementKind, trend: Trend) -> Optional[datetime]:
        try:
            async with self._session_factory() as session:
                record = await session.get(NotificationRecord, (kind.value, trend.value))
                if record is None:
                    return None
                return as_utc(record.notified_at)
        except Exception as exc:
            logger.error(
                "notification_record_query_failed",
                kind=kind.value,
                trend=trend.value,
                error=str(exc),
            )
            raise

    async def set(self, kind: MeasurementKind, trend: Trend, timestamp: datetime) -> None:
        """Upsert the last notified timestamp for a (kind, trend) pair."""
        try:
            async with self._session_factory() as session:
                record = await session.get(NotificationRecord, (kind.value, trend.value))
                if record is None:
                    session.add(
                        NotificationRecord(
                            kind=kind.value,
                            trend=trend.value,
                            notified_at=as_utc(timestamp),
                        )
                    )
                else:
                    record.notified_at = as_utc(timestamp)
                await session.commit()
                logger.info(
                    "notification_record_persisted",
                    kind=kind.value,
                    trend=trend.value,
                    notified_at=str(timestamp),
                )
        except Exception as exc:
            logger.error(
                "notification_record_persist_failed",
                kind=kind.value,
                trend=trend.value,
                error=str(exc),
            )
            raise
