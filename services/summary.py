"""Daily water-quality digest."""

from __future__ import annotations

import csv
import io
import logging
from datetime import datetime, timedelta
from typing import Callable, List, Optional, Sequence, Tuple

from datastore.history import BoundedHistory
from models.records import (
    AlertRecord,
    FindingKind,
    Reading,
    Sensor,
    SendOutcome,
    Severity,
    SummaryReport,
    SummaryStats,
)
from services.evaluator import ThresholdEvaluator
from services.notifier import distinct_addresses
from services.recipients import RecipientResolver
from services.rendering import render_pair
from storage.mailer import Attachment, Mailer, OutgoingMessage

logger = logging.getLogger(__name__)

DEFAULT_WINDOW = timedelta(hours=24)
RECENT_ALERT_LIMIT = 5
CSV_COLUMNS = (
    "sensor_id",
    "village",
    "timestamp",
    "ph",
    "turbidity",
    "tds",
    "ecoli",
    "temperature",
    "status",
)

BASE_RECOMMENDATIONS = (
    "Continue regular monitoring of all water sources",
    "Maintain contact with village health workers",
    "Review seasonal turbidity patterns for monsoon preparedness",
)


def compute_stats(
    sensors: Sequence[Sensor],
    readings: Sequence[Reading],
    alerts: Sequence[AlertRecord],
) -> SummaryStats:
    return SummaryStats(
        total_sensors=len(sensors),
        active_sensors=sum(1 for sensor in sensors if sensor.status == "active"),
        total_readings=len(readings),
        total_alerts=len(alerts),
        critical_alerts=sum(1 for alert in alerts if alert.severity == Severity.critical),
        warning_alerts=sum(1 for alert in alerts if alert.severity == Severity.warning),
    )


def overall_status(stats: SummaryStats) -> Tuple[str, str]:
    if stats.critical_alerts:
        return "critical", "Critical issues require immediate attention"
    if stats.warning_alerts:
        return "warning", "Water quality warnings raised - monitoring required"
    return "normal", "All systems operating normally"


def recommendations_for(stats: SummaryStats) -> List[str]:
    recommendations = list(BASE_RECOMMENDATIONS)
    if stats.critical_alerts:
        recommendations.insert(0, "Immediate field investigation required for critical alerts")
    return recommendations


class DailySummaryReporter:
    """Compiles buffered readings and alerts for a time window into one digest email."""

    def __init__(
        self,
        readings: BoundedHistory[Reading],
        alerts: BoundedHistory[AlertRecord],
        sensors: Callable[[], List[Sensor]],
        resolver: RecipientResolver,
        mailer: Mailer,
        sender: str,
        cc_addresses: Sequence[str],
        clock: Callable[[], datetime],
        evaluator: Optional[ThresholdEvaluator] = None,
    ) -> None:
        self.readings = readings
        self.alerts = alerts
        self.sensors = sensors
        self.resolver = resolver
        self.mailer = mailer
        self.sender = sender
        self.cc_addresses = tuple(cc_addresses)
        self.clock = clock
        self.evaluator = evaluator or ThresholdEvaluator()

    async def summarize(
        self,
        window_start: Optional[datetime] = None,
        window_end: Optional[datetime] = None,
    ) -> SummaryReport:
        """Send the digest for ``[window_start, window_end]``.

        The window defaults to the 24 hours before now. Mailer failures are
        reported in ``send_result`` and never raised.
        """

        window_end = window_end or self.clock()
        window_start = window_start or window_end - DEFAULT_WINDOW
        if window_end < window_start:
            raise ValueError("Summary window end must not precede its start.")

        def in_window(item: Reading | AlertRecord) -> bool:
            return window_start <= item.timestamp <= window_end

        readings = [reading for reading in self.readings.snapshot() if in_window(reading)]
        alerts = [alert for alert in self.alerts.snapshot() if in_window(alert)]
        sensors = self.sensors()
        stats = compute_stats(sensors, readings, alerts)
        status, status_text = overall_status(stats)
        recommendations = recommendations_for(stats)
        recipients = await self.resolver.resolve_daily_summary()

        html, text = render_pair(
            "daily_summary",
            {
                "window_start": window_start,
                "window_end": window_end,
                "overall_status": status,
                "status_text": status_text,
                "stats": stats,
                "recent_alerts": list(reversed(alerts[-RECENT_ALERT_LIMIT:])),
                "sensors": sensors,
                "recommendations": recommendations,
            },
        )
        message = OutgoingMessage(
            sender=self.sender,
            to=tuple(official.mailbox for official in recipients),
            cc=self.cc_addresses,
            subject=f"AquaAlert Daily Water Quality Summary - {window_end:%Y-%m-%d}",
            html=html,
            text=text,
            attachments=(
                Attachment(
                    filename=f"water-quality-report-{window_end:%Y-%m-%d}.csv",
                    content=self.readings_csv(readings).encode("utf-8"),
                    content_type="text/csv",
                ),
            ),
        )
        addresses = distinct_addresses([official.email for official in recipients], message.cc)
        log_extra = {
            "window_start": window_start.isoformat(),
            "window_end": window_end.isoformat(),
            "recipient_count": len(addresses),
        }

        try:
            message_id = await self.mailer.send(message)
        except Exception as exc:  # noqa: BLE001 - digest failures are reported, not raised
            reason = str(exc) or exc.__class__.__name__
            logger.warning("Failed to send daily summary", extra={**log_extra, "reason": reason})
            send_result = SendOutcome(success=False, recipients=addresses, error=reason)
        else:
            logger.info("Sent daily summary", extra={**log_extra, "message_id": message_id})
            send_result = SendOutcome(
                success=True,
                recipient_count=len(addresses),
                recipients=addresses,
                message_id=message_id,
            )

        return SummaryReport(
            window_start=window_start,
            window_end=window_end,
            stats=stats,
            overall_status=status,
            status_text=status_text,
            recommendations=recommendations,
            recipients=recipients,
            send_result=send_result,
        )

    def readings_csv(self, readings: Sequence[Reading]) -> str:
        buffer = io.StringIO()
        writer = csv.writer(buffer, lineterminator="\n")
        writer.writerow(CSV_COLUMNS)
        for reading in readings:
            params = reading.parameters
            writer.writerow(
                [
                    reading.sensor_id,
                    reading.location.village,
                    reading.timestamp.isoformat(),
                    params.ph,
                    params.turbidity,
                    int(params.tds),
                    int(params.ecoli),
                    params.temperature,
                    self.reading_status(reading),
                ]
            )
        return buffer.getvalue()

    def reading_status(self, reading: Reading) -> str:
        kinds = {finding.kind for finding in self.evaluator.evaluate(reading)}
        if FindingKind.critical in kinds:
            return "critical"
        if kinds:
            return "warning"
        return "normal"
