"""
db/models.py

SQLAlchemy 2.0 async ORM model definitions.
- NotificationRecord: last successful notification per (kind, trend)
- MeasurementAverage: current average per kind, written by the averaging process
- LatestMeasurement: last accepted measurement per kind
"""

from datetime import datetime

from sqlalchemy import DateTime, Float, String
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


def build_engine(database_url: str) -> AsyncEngine:
    """Create the async engine with connection pool settings."""
    if database_url.startswith("sqlite"):
        return create_async_engine(database_url)
    return create_async_engine(
        database_url,
        pool_size=10,
        max_overflow=20,
        pool_pre_ping=True,
    )


def build_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


async def create_tables(engine: AsyncEngine) -> None:
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


class NotificationRecord(Base):
    """Timestamp of the last successfully posted notification for a (kind, trend) pair."""

    __tablename__ = "notification_records"

    kind: Mapped[str] = mapped_column(String(32), primary_key=True)
    trend: Mapped[str] = mapped_column(String(16), primary_key=True)
    notified_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)


class MeasurementAverage(Base):
    """Current average for a measurement kind."""

    __tablename__ = "measurement_averages"

    kind: Mapped[str] = mapped_column(String(32), primary_key=True)
    value: Mapped[float] = mapped_column(Float, nullable=False)
    updated_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )


class LatestMeasurement(Base):
    """Most recent accepted measurement for a measurement kind."""

    __tablename__ = "latest_measurements"

    kind: Mapped[str] = mapped_column(String(32), primary_key=True)
    recorded_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    value: Mapped[float] = mapped_column(Float, nullable=False)
