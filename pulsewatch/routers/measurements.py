"""
pulsewatch/routers/measurements.py

Ingestion endpoints for the measurement source and the averaging process.
- POST /measurements: accept a new reading and hand it to the decision manager
- PUT/GET /averages/{kind}: current average per measurement kind
- GET /notifications/{kind}: last notified timestamps per trend
"""

import structlog
from fastapi import APIRouter, HTTPException, Request

from pulsewatch.schemas import AverageIn, MeasurementIn, MeasurementKind, Trend

logger = structlog.get_logger(__name__)

router = APIRouter()


@router.post("/measurements")
async def receive_measurement(payload: MeasurementIn, request: Request) -> dict[str, str]:
    """
    Receive a measurement from the measurement source.

    Flow:
    1. Record it as the latest accepted measurement if it is newer
    2. Stale or duplicate readings are ignored and never reach the decision manager
    3. Accepted readings are queued for a notification decision
    """
    state = request.app.state
    measurement = payload.to_measurement()

    logger.info(
        "measurement_received",
        kind=measurement.kind.value,
        value=measurement.value,
        timestamp=str(measurement.timestamp),
    )

    if not await state.store.accept(measurement):
        return {"status": "ignored", "reason": "stale"}

    state.decision_manager.handle_update(measurement)
    return {"status": "accepted"}


@router.put("/averages/{kind}")
async def update_average(kind: MeasurementKind, payload: AverageIn, request: Request) -> dict:
    await request.app.state.store.set_average(kind, payload.value)
    logger.info("average_updated", kind=kind.value, value=payload.value)
    return {"kind": kind.value, "average": payload.value}


@router.get("/averages/{kind}")
async def read_average(kind: MeasurementKind, request: Request) -> dict:
    average = await request.app.state.store.get_average(kind)
    if average is None:
        raise HTTPException(status_code=404, detail=f"No average for {kind.value}")
    return {"kind": kind.value, "average": average}


@router.get("/notifications/{kind}")
async def read_notification_records(kind: MeasurementKind, request: Request) -> dict:
    records = request.app.state.decision_manager.records
    result: dict = {"kind": kind.value}
    for trend in Trend:
        notified_at = await records.get(kind, trend)
        result[trend.value] = notified_at.isoformat() if notified_at else None
    return result
