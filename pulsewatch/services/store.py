"""
pulsewatch/services/store.py

Measurement store: current averages and the last accepted measurement per kind.
Averages are written by the external averaging process; the decision manager
only reads them. accept() enforces ordering at the store boundary: a
measurement not strictly newer than the previously accepted one is rejected.
"""

from datetime import datetime, timezone
from typing import Optional, Protocol

import structlog
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from db.models import LatestMeasurement, MeasurementAverage
from pulsewatch.schemas import Measurement, MeasurementKind
from pulsewatch.services.persistence import as_utc

logger = structlog.get_logger(__name__)


class MeasurementStore(Protocol):
    async def get_average(self, kind: MeasurementKind) -> Optional[float]: ...

    async def set_average(self, kind: MeasurementKind, value: float) -> None: ...

    async def get_latest(self, kind: MeasurementKind) -> Optional[Measurement]: ...

    async def accept(self, measurement: Measurement) -> bool: ...


class InMemoryMeasurementStore:
    def __init__(self, averages: Optional[dict[MeasurementKind, float]] = None) -> None:
        self._averages: dict[MeasurementKind, float] = dict(averages or {})
        self._latest: dict[MeasurementKind, Measurement] = {}

    async def get_average(self, kind: MeasurementKind) -> Optional[float]:
        return self._averages.get(kind)

    async def set_average(self, kind: MeasurementKind, value: float) -> None:
        self._averages[kind] = value

    async def get_latest(self, kind: MeasurementKind) -> Optional[Measurement]:
        return self._latest.get(kind)

    async def accept(self, measurement: Measurement) -> bool:
        previous = self._latest.get(measurement.kind)
        if previous is not None and as_utc(measurement.timestamp) <= as_utc(previous.timestamp):
            logger.info(
                "measurement_stale",
                kind=measurement.kind.value,
                timestamp=str(measurement.timestamp),
                latest=str(previous.timestamp),
            )
            return False
        self._latest[measurement.kind] = measurement
        return True


class SqlMeasurementStore:
    """Measurement store backed by the measurement_averages and latest_measurements tables."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def get_average(self, kind: MeasurementKind) -> Optional[float]:
        try:
            async with self._session_factory() as session:
                row = await session.get(MeasurementAverage, kind.value)
                return None if row is None else row.value
        except Exception as exc:
            logger.error("average_query_failed", kind=kind.value, error=str(exc))
            raise

    async def set_average(self, kind: MeasurementKind, value: float) -> None:
        try:
            async with self._session_factory() as session:
                row = await session.get(MeasurementAverage, kind.value)
                now = datetime.now(timezone.utc)
                if row is None:
                    session.add(MeasurementAverage(kind=kind.value, value=value, updated_at=now))
                else:
                    row.value = value
                    row.updated_at = now
                await session.commit()
                logger.info("average_persisted", kind=kind.value, value=value)
        except Exception as exc:
            logger.error("average_persist_failed", kind=kind.value, error=str(exc))
            raise

    async def get_latest(self, kind: MeasurementKind) -> Optional[Measurement]:
        try:
            async with self._session_factory() as session:
                row = await session.get(LatestMeasurement, kind.value)
                if row is None:
                    return None
                return Measurement(
                    timestamp=as_utc(row.recorded_at), value=row.value, kind=kind
                )
        except Exception as exc:
            logger.error("latest_measurement_query_failed", kind=kind.value, error=str(exc))
            raise

    async def accept(self, measurement: Measurement) -> bool:
        """Record the measurement as latest if it is newer than the stored one."""
        kind = measurement.kind.value
        recorded_at = as_utc(measurement.timestamp)
        try:
            async with self._session_factory() as session:
                row = await session.get(LatestMeasurement, kind)
                if row is not None and recorded_at <= as_utc(row.recorded_at):
                    logger.info(
                        "measurement_stale",
                        kind=kind,
                        timestamp=str(recorded_at),
                        latest=str(row.recorded_at),
                    )
                    return False
                if row is None:
                    session.add(
                        LatestMeasurement(kind=kind, recorded_at=recorded_at, value=measurement.value)
                    )
                else:
                    row.recorded_at = recorded_at
                    row.value = measurement.value
                await session.commit()
                return True
        except Exception as exc:
            logger.error("measurement_accept_failed", kind=kind, error=str(exc))
            raise
