"""Alert email dispatch."""

from __future__ import annotations

import asyncio
import logging
from typing import List, Optional, Sequence, Tuple

from models.records import (
    AlertFinding,
    AlertRecord,
    DispatchResult,
    FindingKind,
    Official,
    SendOutcome,
    Severity,
)
from services.recipients import RecipientResolver
from services.rendering import parameter_rows, render_pair
from storage.mailer import Mailer, OutgoingMessage

logger = logging.getLogger(__name__)

# Only these finding kinds are mailed; maintenance and technical findings stay on the record.
MAILED_KINDS: Tuple[Tuple[Severity, FindingKind], ...] = (
    (Severity.critical, FindingKind.critical),
    (Severity.warning, FindingKind.warning),
)


def distinct_addresses(*groups: Sequence[str]) -> Tuple[str, ...]:
    seen: set[str] = set()
    ordered: List[str] = []
    for group in groups:
        for address in group:
            key = address.strip().lower()
            if key and key not in seen:
                seen.add(key)
                ordered.append(address)
    return tuple(ordered)


class NotificationDispatcher:
    """Sends one message per non-empty critical/warning batch of findings."""

    def __init__(
        self,
        mailer: Mailer,
        resolver: RecipientResolver,
        sender: str,
        cc_addresses: Sequence[str],
    ) -> None:
        self.mailer = mailer
        self.resolver = resolver
        self.sender = sender
        self.cc_addresses = tuple(cc_addresses)

    async def dispatch(
        self,
        alert: AlertRecord,
        findings: Sequence[AlertFinding],
        sensor_name: Optional[str] = None,
    ) -> DispatchResult:
        batches = [
            (severity, [finding for finding in findings if finding.kind == kind])
            for severity, kind in MAILED_KINDS
        ]
        batches = [(severity, subset) for severity, subset in batches if subset]
        if not batches:
            return DispatchResult(success=True, recipient_count=0)

        # Batches resolve disjoint recipient sets, so they may go out concurrently.
        outcomes = await asyncio.gather(
            *(
                self._send_batch(severity, alert, subset, sensor_name or alert.sensor_id)
                for severity, subset in batches
            )
        )
        return DispatchResult(
            success=all(outcome.success for outcome in outcomes),
            recipient_count=sum(outcome.recipient_count for outcome in outcomes if outcome.success),
            sends=tuple(outcomes),
        )

    async def _send_batch(
        self,
        severity: Severity,
        alert: AlertRecord,
        findings: Sequence[AlertFinding],
        sensor_name: str,
    ) -> SendOutcome:
        recipients = await self.resolver.resolve(severity, alert.location.district)
        message = self.compose(severity, alert, findings, sensor_name, recipients)
        addresses = distinct_addresses(
            [official.email for official in recipients], message.cc
        )
        log_extra = {
            "sensor_id": alert.sensor_id,
            "alert_id": alert.id,
            "severity": severity.value,
            "recipient_count": len(addresses),
        }

        try:
            message_id = await self.mailer.send(message)
        except Exception as exc:  # noqa: BLE001 - a failed send must not abort sibling sends
            logger.warning(
                "Failed to send alert email",
                extra={**log_extra, "reason": str(exc) or exc.__class__.__name__},
            )
            return SendOutcome(
                success=False,
                severity=severity.value,
                recipients=addresses,
                error=str(exc) or exc.__class__.__name__,
            )

        logger.info("Sent alert email", extra={**log_extra, "message_id": message_id})
        return SendOutcome(
            success=True,
            severity=severity.value,
            recipient_count=len(addresses),
            recipients=addresses,
            message_id=message_id,
        )

    def compose(
        self,
        severity: Severity,
        alert: AlertRecord,
        findings: Sequence[AlertFinding],
        sensor_name: str,
        recipients: Sequence[Official],
    ) -> OutgoingMessage:
        html, text = render_pair(
            "alert_email",
            {
                "severity": severity.value,
                "alert": alert,
                "findings": list(findings),
                "sensor_name": sensor_name,
                "parameter_rows": parameter_rows(alert.parameters),
            },
        )
        location = alert.location
        return OutgoingMessage(
            sender=self.sender,
            to=tuple(official.mailbox for official in recipients),
            cc=self.cc_addresses,
            subject=(
                f"{severity.value.upper()} Water Quality Alert - "
                f"{location.village}, {location.district}"
            ),
            html=html,
            text=text,
            priority="high" if severity == Severity.critical else "normal",
        )
