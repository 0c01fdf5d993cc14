"""HTTP route definitions for the service."""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status

from app.schemas import (
    AcknowledgeRequest,
    AlertListResponse,
    AlertModel,
    AlertResponse,
    AlertTestRequest,
    AlertTestResponse,
    DailyReportRequest,
    DailyReportResponse,
    DispatchModel,
    FindingModel,
    OfficialListResponse,
    OfficialModel,
    ReadingListResponse,
    ReadingModel,
    SensorListResponse,
    SensorModel,
    SimulationControlResponse,
    SimulationStatusResponse,
)
from models.records import Severity
from services.engine import SimulationEngine

router = APIRouter()


def get_engine(request: Request) -> SimulationEngine:
    return request.app.state.engine


def _not_found(exc: KeyError) -> HTTPException:
    detail = exc.args[0] if exc.args else "Not found."
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(detail))


@router.post(
    "/simulation/start",
    response_model=SimulationControlResponse,
    summary="Start the sensor simulation loop.",
)
async def start_simulation(
    engine: SimulationEngine = Depends(get_engine),
) -> SimulationControlResponse:
    changed = await engine.start()
    return SimulationControlResponse(
        is_running=engine.is_running,
        changed=changed,
        message="Simulation started." if changed else "Simulation already running.",
    )


@router.post(
    "/simulation/stop",
    response_model=SimulationControlResponse,
    summary="Stop the sensor simulation loop.",
)
async def stop_simulation(
    engine: SimulationEngine = Depends(get_engine),
) -> SimulationControlResponse:
    changed = await engine.stop()
    return SimulationControlResponse(
        is_running=engine.is_running,
        changed=changed,
        message="Simulation stopped." if changed else "Simulation was not running.",
    )


@router.get(
    "/simulation/status",
    response_model=SimulationStatusResponse,
    summary="Snapshot of the loop state, sensors and recent history.",
)
async def simulation_status(
    engine: SimulationEngine = Depends(get_engine),
) -> SimulationStatusResponse:
    snapshot = engine.status()
    return SimulationStatusResponse(
        is_running=snapshot.is_running,
        tick_count=snapshot.tick_count,
        tick_seconds=snapshot.tick_seconds,
        source=snapshot.source,
        sensors=[SensorModel.from_domain(sensor) for sensor in snapshot.sensors],
        recent_readings=[ReadingModel.from_domain(reading) for reading in snapshot.recent_readings],
        recent_alerts=[AlertModel.from_domain(alert) for alert in snapshot.recent_alerts],
    )


@router.get("/sensors", response_model=SensorListResponse, summary="List monitored sensors.")
async def list_sensors(engine: SimulationEngine = Depends(get_engine)) -> SensorListResponse:
    return SensorListResponse(
        sensors=[SensorModel.from_domain(sensor) for sensor in engine.get_sensors()]
    )


@router.get(
    "/sensors/{sensor_id}/readings",
    response_model=ReadingListResponse,
    summary="Recent readings for one sensor, newest first.",
)
async def list_sensor_readings(
    sensor_id: str,
    limit: int = Query(20, ge=1, le=100),
    engine: SimulationEngine = Depends(get_engine),
) -> ReadingListResponse:
    try:
        readings = engine.get_readings(sensor_id, limit)
    except KeyError as exc:
        raise _not_found(exc) from exc
    return ReadingListResponse(readings=[ReadingModel.from_domain(reading) for reading in readings])


@router.get(
    "/readings",
    response_model=ReadingListResponse,
    summary="Recent readings across all sensors, newest first.",
)
async def list_readings(
    limit: int = Query(20, ge=1, le=100),
    engine: SimulationEngine = Depends(get_engine),
) -> ReadingListResponse:
    readings = engine.get_readings(None, limit)
    return ReadingListResponse(readings=[ReadingModel.from_domain(reading) for reading in readings])


@router.get(
    "/alerts",
    response_model=AlertListResponse,
    summary="Recent alerts, newest first.",
)
async def list_alerts(
    limit: int = Query(20, ge=1, le=100),
    severity: Optional[Severity] = Query(None),
    sensor_id: Optional[str] = Query(None),
    engine: SimulationEngine = Depends(get_engine),
) -> AlertListResponse:
    alerts = engine.get_alerts(limit=limit, severity=severity, sensor_id=sensor_id)
    return AlertListResponse(alerts=[AlertModel.from_domain(alert) for alert in alerts])


@router.patch(
    "/alerts/{alert_id}/acknowledge",
    response_model=AlertResponse,
    summary="Acknowledge an alert still held in the recent-alerts buffer.",
)
async def acknowledge_alert(
    alert_id: str,
    payload: AcknowledgeRequest,
    engine: SimulationEngine = Depends(get_engine),
) -> AlertResponse:
    try:
        alert = engine.acknowledge_alert(alert_id, payload.acknowledged_by, payload.notes)
    except KeyError as exc:
        raise _not_found(exc) from exc
    return AlertResponse(alert=AlertModel.from_domain(alert))


@router.post(
    "/alerts/test",
    response_model=AlertTestResponse,
    summary="Push a preset or explicit reading through the alert pipeline.",
)
async def trigger_test_alert(
    payload: AlertTestRequest,
    engine: SimulationEngine = Depends(get_engine),
) -> AlertTestResponse:
    try:
        reading = engine.build_test_reading(
            payload.sensor_id,
            preset=payload.preset.value if payload.preset else None,
            overrides=payload.reading.overrides() if payload.reading else None,
        )
        outcome = await engine.test_alert(reading)
    except KeyError as exc:
        raise _not_found(exc) from exc
    except ValueError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(exc),
        ) from exc
    return AlertTestResponse(
        success=outcome.dispatch.success if outcome.dispatch else True,
        reading=ReadingModel.from_domain(outcome.reading),
        findings=[FindingModel.from_domain(finding) for finding in outcome.findings],
        alert=AlertModel.from_domain(outcome.alert) if outcome.alert else None,
        dispatch=DispatchModel.from_domain(outcome.dispatch) if outcome.dispatch else None,
    )


@router.post(
    "/reports/daily",
    response_model=DailyReportResponse,
    summary="Compile and send the daily summary for a time window.",
)
async def send_daily_report(
    payload: Optional[DailyReportRequest] = None,
    engine: SimulationEngine = Depends(get_engine),
) -> DailyReportResponse:
    payload = payload or DailyReportRequest()
    try:
        report = await engine.send_daily_summary(payload.window_start, payload.window_end)
    except ValueError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(exc),
        ) from exc
    return DailyReportResponse.from_domain(report)


@router.get(
    "/officials",
    response_model=OfficialListResponse,
    summary="Preview who would be notified for an alert.",
)
async def preview_officials(
    severity: Severity = Query(Severity.critical),
    district: str = Query("", description="District of the alerting sensor."),
    engine: SimulationEngine = Depends(get_engine),
) -> OfficialListResponse:
    officials = await engine.preview_recipients(severity, district)
    return OfficialListResponse(
        officials=[OfficialModel.from_domain(official) for official in officials]
    )


@router.get(
    "/health",
    summary="Health check endpoint.",
    status_code=status.HTTP_200_OK,
)
async def healthcheck() -> dict[str, str]:
    return {"status": "ok"}


@router.get(
    "/",
    summary="Root endpoint mirrors health information.",
    status_code=status.HTTP_200_OK,
)
async def root() -> dict[str, str]:
    return {"status": "ok", "detail": "See /health for service status."}
