"""Pydantic schemas for the HTTP API layer."""

from __future__ import annotations

from datetime import date, datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from models.records import (
    AlertFinding,
    AlertRecord,
    AlertStatus,
    Connectivity,
    DispatchResult,
    FindingKind,
    Location,
    Official,
    Reading,
    SendOutcome,
    Sensor,
    Severity,
    SummaryReport,
    WaterParameters,
)


class AlertTestPreset(str, Enum):
    """Canned readings accepted by the test alert endpoint."""

    critical = "critical"
    warning = "warning"
    maintenance = "maintenance"


class LocationModel(BaseModel):
    lat: float
    lng: float
    village: str
    district: str

    @classmethod
    def from_domain(cls, location: Location) -> "LocationModel":
        return cls(
            lat=location.lat,
            lng=location.lng,
            village=location.village,
            district=location.district,
        )


class ParametersModel(BaseModel):
    ph: float
    turbidity: float = Field(..., description="NTU")
    tds: float = Field(..., description="ppm")
    ecoli: float = Field(..., description="CFU/100ml")
    temperature: float = Field(..., description="Degrees Celsius")
    flow_rate: float = Field(..., description="L/min")
    dissolved_oxygen: float = Field(..., description="mg/L")

    @classmethod
    def from_domain(cls, parameters: WaterParameters) -> "ParametersModel":
        return cls(**parameters.as_dict())


class ReadingModel(BaseModel):
    sensor_id: str
    timestamp: datetime
    location: LocationModel
    parameters: ParametersModel
    battery_level: float = Field(..., description="Percent")
    signal_strength: float = Field(..., description="Percent")
    connectivity: Connectivity
    anomaly_type: Optional[str] = None

    @classmethod
    def from_domain(cls, reading: Reading) -> "ReadingModel":
        return cls(
            sensor_id=reading.sensor_id,
            timestamp=reading.timestamp,
            location=LocationModel.from_domain(reading.location),
            parameters=ParametersModel.from_domain(reading.parameters),
            battery_level=reading.battery_level,
            signal_strength=reading.signal_strength,
            connectivity=reading.connectivity,
            anomaly_type=reading.anomaly_type,
        )


class FindingModel(BaseModel):
    kind: FindingKind
    parameter: str
    value: float | str
    message: str
    action: str

    @classmethod
    def from_domain(cls, finding: AlertFinding) -> "FindingModel":
        return cls(
            kind=finding.kind,
            parameter=finding.parameter,
            value=finding.value,
            message=finding.message,
            action=finding.action,
        )


class AlertModel(BaseModel):
    id: str
    sensor_id: str
    location: LocationModel
    timestamp: datetime
    severity: Severity
    status: AlertStatus
    findings: List[FindingModel]
    parameters: ParametersModel
    acknowledged_by: Optional[str] = None
    acknowledged_at: Optional[datetime] = None
    notes: Optional[str] = None

    @classmethod
    def from_domain(cls, alert: AlertRecord) -> "AlertModel":
        return cls(
            id=alert.id,
            sensor_id=alert.sensor_id,
            location=LocationModel.from_domain(alert.location),
            timestamp=alert.timestamp,
            severity=alert.severity,
            status=alert.status,
            findings=[FindingModel.from_domain(finding) for finding in alert.findings],
            parameters=ParametersModel.from_domain(alert.parameters),
            acknowledged_by=alert.acknowledged_by,
            acknowledged_at=alert.acknowledged_at,
            notes=alert.notes,
        )


class SensorModel(BaseModel):
    id: str
    name: str
    location: LocationModel
    type: str
    status: str
    installed_on: date
    last_maintenance: date
    last_reading: Optional[ReadingModel] = None
    total_readings: int = Field(..., ge=0)
    alerts_sent: int = Field(..., ge=0)
    consecutive_abnormal_readings: int = Field(..., ge=0)

    @classmethod
    def from_domain(cls, sensor: Sensor) -> "SensorModel":
        return cls(
            id=sensor.id,
            name=sensor.name,
            location=LocationModel.from_domain(sensor.location),
            type=sensor.type,
            status=sensor.status,
            installed_on=sensor.installed_on,
            last_maintenance=sensor.last_maintenance,
            last_reading=(
                ReadingModel.from_domain(sensor.last_reading) if sensor.last_reading else None
            ),
            total_readings=sensor.total_readings,
            alerts_sent=sensor.alerts_sent,
            consecutive_abnormal_readings=sensor.consecutive_abnormal_readings,
        )


class OfficialModel(BaseModel):
    id: str
    name: str
    email: str
    position: str
    district: str
    alert_types: List[str] = Field(default_factory=list)

    @classmethod
    def from_domain(cls, official: Official) -> "OfficialModel":
        return cls(
            id=official.id,
            name=official.name,
            email=official.email,
            position=official.position,
            district=official.district,
            alert_types=list(official.alert_types),
        )


class SendOutcomeModel(BaseModel):
    success: bool
    severity: Optional[Severity] = None
    recipient_count: int = Field(default=0, ge=0)
    recipients: List[str] = Field(default_factory=list)
    message_id: Optional[str] = None
    error: Optional[str] = None

    @classmethod
    def from_domain(cls, outcome: SendOutcome) -> "SendOutcomeModel":
        return cls(
            success=outcome.success,
            severity=outcome.severity,
            recipient_count=outcome.recipient_count,
            recipients=list(outcome.recipients),
            message_id=outcome.message_id,
            error=outcome.error,
        )


class DispatchModel(BaseModel):
    success: bool
    recipient_count: int = Field(..., ge=0)
    sends: List[SendOutcomeModel] = Field(default_factory=list)

    @classmethod
    def from_domain(cls, result: DispatchResult) -> "DispatchModel":
        return cls(
            success=result.success,
            recipient_count=result.recipient_count,
            sends=[SendOutcomeModel.from_domain(outcome) for outcome in result.sends],
        )


class SimulationControlResponse(BaseModel):
    """Outcome of a start or stop request."""

    success: bool = True
    is_running: bool
    changed: bool = Field(..., description="False when the call was a no-op.")
    message: str


class SimulationStatusResponse(BaseModel):
    success: bool = True
    is_running: bool
    tick_count: int = Field(..., ge=0)
    tick_seconds: float
    source: Dict[str, Any] = Field(default_factory=dict)
    sensors: List[SensorModel]
    recent_readings: List[ReadingModel]
    recent_alerts: List[AlertModel]


class SensorListResponse(BaseModel):
    success: bool = True
    sensors: List[SensorModel]


class ReadingListResponse(BaseModel):
    success: bool = True
    readings: List[ReadingModel]


class AlertListResponse(BaseModel):
    success: bool = True
    alerts: List[AlertModel]


class AcknowledgeRequest(BaseModel):
    acknowledged_by: str = Field(..., min_length=1, description="Who handled the alert.")
    notes: Optional[str] = None


class AlertResponse(BaseModel):
    success: bool = True
    alert: AlertModel


class ReadingInput(BaseModel):
    """Explicit reading values for a test alert; omitted parameters stay in range."""

    ph: Optional[float] = None
    turbidity: Optional[float] = None
    tds: Optional[float] = None
    ecoli: Optional[float] = None
    temperature: Optional[float] = None
    flow_rate: Optional[float] = None
    dissolved_oxygen: Optional[float] = None
    battery_level: Optional[float] = None
    connectivity: Optional[Connectivity] = None

    def overrides(self) -> Dict[str, Any]:
        return self.model_dump(exclude_none=True)


class AlertTestRequest(BaseModel):
    sensor_id: str = Field(..., min_length=1)
    preset: Optional[AlertTestPreset] = None
    reading: Optional[ReadingInput] = None

    @model_validator(mode="after")
    def _preset_or_reading(self) -> "AlertTestRequest":
        if self.preset is None and self.reading is None:
            raise ValueError("Provide either a preset or explicit reading values.")
        return self


class AlertTestResponse(BaseModel):
    success: bool
    reading: ReadingModel
    findings: List[FindingModel]
    alert: Optional[AlertModel] = None
    dispatch: Optional[DispatchModel] = None


class DailyReportRequest(BaseModel):
    """Report window; naive timestamps are read as UTC."""

    window_start: Optional[datetime] = None
    window_end: Optional[datetime] = None

    @field_validator("window_start", "window_end")
    @classmethod
    def _assume_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        if value is not None and value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value


class SummaryStatsModel(BaseModel):
    total_sensors: int = Field(..., ge=0)
    active_sensors: int = Field(..., ge=0)
    total_readings: int = Field(..., ge=0)
    total_alerts: int = Field(..., ge=0)
    critical_alerts: int = Field(..., ge=0)
    warning_alerts: int = Field(..., ge=0)


class DailyReportResponse(BaseModel):
    success: bool
    window_start: datetime
    window_end: datetime
    overall_status: str
    status_text: str
    stats: SummaryStatsModel
    recommendations: List[str]
    recipients: List[OfficialModel]
    send_result: SendOutcomeModel

    @classmethod
    def from_domain(cls, report: SummaryReport) -> "DailyReportResponse":
        stats = report.stats
        return cls(
            success=report.send_result.success,
            window_start=report.window_start,
            window_end=report.window_end,
            overall_status=report.overall_status,
            status_text=report.status_text,
            stats=SummaryStatsModel(
                total_sensors=stats.total_sensors,
                active_sensors=stats.active_sensors,
                total_readings=stats.total_readings,
                total_alerts=stats.total_alerts,
                critical_alerts=stats.critical_alerts,
                warning_alerts=stats.warning_alerts,
            ),
            recommendations=list(report.recommendations),
            recipients=[OfficialModel.from_domain(official) for official in report.recipients],
            send_result=SendOutcomeModel.from_domain(report.send_result),
        )


class OfficialListResponse(BaseModel):
    success: bool = True
    officials: List[OfficialModel]
