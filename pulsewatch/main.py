"""
pulsewatch/main.py

FastAPI application entry point for the pulsewatch service.
Wires the measurement store, notification records, gateway and decision
manager from settings, and registers routers.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator
from zoneinfo import ZoneInfo

import structlog
from fastapi import FastAPI

from config import Settings, settings
from db.models import build_engine, build_session_factory, create_tables
from pulsewatch.routers.measurements import router as measurements_router
from pulsewatch.services.decision import DecisionManager
from pulsewatch.services.notification import build_gateway
from pulsewatch.services.persistence import (
    InMemoryNotificationRecordRepository,
    SqlNotificationRecordRepository,
)
from pulsewatch.services.policy import ThresholdPolicy
from pulsewatch.services.store import InMemoryMeasurementStore, SqlMeasurementStore

logger = structlog.get_logger(__name__)


def create_app(app_settings: Settings = settings) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        """Manage application lifecycle: startup and shutdown."""
        engine = None
        if app_settings.persistence_backend == "sql":
            engine = build_engine(app_settings.database_url)
            await create_tables(engine)
            session_factory = build_session_factory(engine)
            store = SqlMeasurementStore(session_factory)
            records = SqlNotificationRecordRepository(session_factory)
        else:
            store = InMemoryMeasurementStore()
            records = InMemoryNotificationRecordRepository()

        app.state.store = store
        app.state.decision_manager = DecisionManager(
            store=store,
            gateway=build_gateway(app_settings),
            records=records,
            policy=ThresholdPolicy.from_settings(app_settings),
            tz=ZoneInfo(app_settings.timezone),
        )
        logger.info(
            "pulsewatch_starting",
            persistence=app_settings.persistence_backend,
            unit_system=app_settings.unit_system,
        )
        yield
        logger.info("pulsewatch_shutting_down")
        await app.state.decision_manager.aclose()
        if engine is not None:
            await engine.dispose()

    app = FastAPI(
        title="pulsewatch",
        description="Biometric measurement ingestion and notification decisions",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.include_router(measurements_router)
    return app


app = create_app()
