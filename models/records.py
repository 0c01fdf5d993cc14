"""Domain models shared across services."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Dict, List, Optional, Tuple


class FindingKind(str, Enum):
    """Category of a single threshold evaluation result."""

    critical = "critical"
    warning = "warning"
    maintenance = "maintenance"
    technical = "technical"


class Severity(str, Enum):
    critical = "critical"
    warning = "warning"


class AlertStatus(str, Enum):
    active = "active"
    acknowledged = "acknowledged"


class Connectivity(str, Enum):
    online = "online"
    offline = "offline"


@dataclass(frozen=True, slots=True)
class Location:
    lat: float
    lng: float
    village: str
    district: str


@dataclass(frozen=True, slots=True)
class ParameterRange:
    """Declared normal operating range of a water-quality parameter."""

    min: float
    max: float
    optimal: float

    @property
    def lower_clamp(self) -> float:
        return self.min * 0.5

    @property
    def upper_clamp(self) -> float:
        return self.max * 2.0

    def clamp(self, value: float) -> float:
        return max(self.lower_clamp, min(self.upper_clamp, value))


@dataclass(frozen=True, slots=True)
class WaterParameters:
    ph: float
    turbidity: float
    tds: float
    ecoli: float
    temperature: float
    flow_rate: float
    dissolved_oxygen: float

    def as_dict(self) -> Dict[str, float]:
        return {
            "ph": self.ph,
            "turbidity": self.turbidity,
            "tds": self.tds,
            "ecoli": self.ecoli,
            "temperature": self.temperature,
            "flow_rate": self.flow_rate,
            "dissolved_oxygen": self.dissolved_oxygen,
        }


@dataclass(frozen=True, slots=True)
class Reading:
    """A single immutable measurement taken by one sensor on one tick."""

    sensor_id: str
    timestamp: datetime
    location: Location
    parameters: WaterParameters
    battery_level: float
    signal_strength: float
    connectivity: Connectivity = Connectivity.online
    anomaly_type: Optional[str] = None


@dataclass(frozen=True, slots=True)
class AlertFinding:
    kind: FindingKind
    parameter: str
    value: float | str
    message: str
    action: str


@dataclass(slots=True)
class AlertRecord:
    """Aggregate of every finding raised by one reading."""

    id: str
    sensor_id: str
    location: Location
    timestamp: datetime
    findings: Tuple[AlertFinding, ...]
    parameters: WaterParameters
    severity: Severity
    status: AlertStatus = AlertStatus.active
    acknowledged_by: Optional[str] = None
    acknowledged_at: Optional[datetime] = None
    notes: Optional[str] = None


@dataclass(slots=True)
class Sensor:
    """Monitored station plus the runtime counters kept by the scheduler."""

    id: str
    name: str
    location: Location
    type: str
    status: str
    installed_on: date
    last_maintenance: date
    last_reading: Optional[Reading] = None
    total_readings: int = 0
    alerts_sent: int = 0
    consecutive_abnormal_readings: int = 0


@dataclass(frozen=True, slots=True)
class Official:
    id: str
    name: str
    email: str
    position: str
    district: str
    alert_types: Tuple[str, ...] = field(default_factory=tuple)

    @property
    def mailbox(self) -> str:
        return f"{self.name} <{self.email}>" if self.name else self.email


@dataclass(frozen=True, slots=True)
class SendOutcome:
    """Result of handing one message to the mailer."""

    success: bool
    severity: Optional[str] = None
    recipient_count: int = 0
    recipients: Tuple[str, ...] = ()
    message_id: Optional[str] = None
    error: Optional[str] = None


@dataclass(frozen=True, slots=True)
class DispatchResult:
    success: bool
    recipient_count: int
    sends: Tuple[SendOutcome, ...] = ()


@dataclass(slots=True)
class SummaryStats:
    total_sensors: int = 0
    active_sensors: int = 0
    total_readings: int = 0
    total_alerts: int = 0
    critical_alerts: int = 0
    warning_alerts: int = 0


@dataclass(slots=True)
class SummaryReport:
    window_start: datetime
    window_end: datetime
    stats: SummaryStats
    overall_status: str
    status_text: str
    recommendations: List[str]
    recipients: List[Official]
    send_result: SendOutcome
