"""Aggregation of evaluator findings into alert records."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable, Iterable, Optional, Sequence
from uuid import uuid4

from datastore.history import BoundedHistory
from models.records import (
    AlertFinding,
    AlertRecord,
    AlertStatus,
    FindingKind,
    Reading,
    Sensor,
    Severity,
)

logger = logging.getLogger(__name__)


def derive_severity(findings: Iterable[AlertFinding]) -> Severity:
    """``critical`` iff at least one finding is critical."""

    if any(finding.kind == FindingKind.critical for finding in findings):
        return Severity.critical
    return Severity.warning


def _new_alert_id() -> str:
    return f"alert_{uuid4().hex}"


class AlertAggregator:
    """Turns non-empty findings into alert records kept in a bounded history."""

    def __init__(
        self,
        history: BoundedHistory[AlertRecord],
        id_factory: Callable[[], str] = _new_alert_id,
    ) -> None:
        self.history = history
        self._id_factory = id_factory

    def aggregate(
        self,
        reading: Reading,
        findings: Sequence[AlertFinding],
        sensor: Sensor,
    ) -> Optional[AlertRecord]:
        if not findings:
            sensor.consecutive_abnormal_readings = 0
            return None

        sensor.alerts_sent += len(findings)
        record = AlertRecord(
            id=self._id_factory(),
            sensor_id=reading.sensor_id,
            location=reading.location,
            timestamp=reading.timestamp,
            findings=tuple(findings),
            parameters=reading.parameters,
            severity=derive_severity(findings),
        )
        self.history.append(record)
        logger.info(
            "Raised %s alert",
            record.severity.value,
            extra={
                "sensor_id": sensor.id,
                "alert_id": record.id,
                "severity": record.severity.value,
                "finding_count": len(findings),
            },
        )
        return record

    def acknowledge(
        self,
        alert_id: str,
        acknowledged_by: str,
        at: datetime,
        notes: Optional[str] = None,
    ) -> AlertRecord:
        """Mark a buffered alert as acknowledged; KeyError once it has been evicted."""

        record = self.history.find(lambda item: item.id == alert_id)
        if record is None:
            raise KeyError(f"Alert {alert_id!r} not found.")
        record.status = AlertStatus.acknowledged
        record.acknowledged_by = acknowledged_by
        record.acknowledged_at = at
        record.notes = notes
        return record
