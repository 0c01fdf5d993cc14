"""Threshold evaluation of a single reading."""

from __future__ import annotations

from typing import List

from models.records import AlertFinding, Connectivity, FindingKind, Reading
from models.reference import (
    CRITICAL_ECOLI_MAX,
    CRITICAL_PH_MAX,
    CRITICAL_PH_MIN,
    CRITICAL_TURBIDITY_MAX,
    LOW_BATTERY_LEVEL,
    WARNING_PH_MAX,
    WARNING_PH_MIN,
)


class ThresholdEvaluator:
    """Pure rule set: every applicable rule fires, none suppresses another.

    Rules run in a fixed order so findings are reported consistently:
    critical pH, critical E.coli, critical turbidity, warning pH, low
    battery, offline connectivity.
    """

    def evaluate(self, reading: Reading) -> List[AlertFinding]:
        params = reading.parameters
        findings: List[AlertFinding] = []

        if params.ph < CRITICAL_PH_MIN or params.ph > CRITICAL_PH_MAX:
            findings.append(
                AlertFinding(
                    kind=FindingKind.critical,
                    parameter="pH",
                    value=params.ph,
                    message=f"Critical pH level detected: {params.ph}",
                    action="Immediate water treatment required",
                )
            )

        if params.ecoli > CRITICAL_ECOLI_MAX:
            findings.append(
                AlertFinding(
                    kind=FindingKind.critical,
                    parameter="E.coli",
                    value=params.ecoli,
                    message=f"Dangerous E.coli levels detected: {params.ecoli:g} CFU/100ml",
                    action="Stop water consumption immediately, alert health authorities",
                )
            )

        if params.turbidity > CRITICAL_TURBIDITY_MAX:
            findings.append(
                AlertFinding(
                    kind=FindingKind.critical,
                    parameter="Turbidity",
                    value=params.turbidity,
                    message=f"High turbidity detected: {params.turbidity} NTU",
                    action="Check water filtration systems",
                )
            )

        # Independent of the critical band: an extreme pH yields both findings.
        if params.ph < WARNING_PH_MIN or params.ph > WARNING_PH_MAX:
            findings.append(
                AlertFinding(
                    kind=FindingKind.warning,
                    parameter="pH",
                    value=params.ph,
                    message=f"pH level outside normal range: {params.ph}",
                    action="Monitor closely, consider water treatment",
                )
            )

        if reading.battery_level < LOW_BATTERY_LEVEL:
            findings.append(
                AlertFinding(
                    kind=FindingKind.maintenance,
                    parameter="Battery",
                    value=reading.battery_level,
                    message=f"Low battery level: {reading.battery_level}%",
                    action="Schedule battery replacement",
                )
            )

        if reading.connectivity == Connectivity.offline:
            findings.append(
                AlertFinding(
                    kind=FindingKind.technical,
                    parameter="Connectivity",
                    value=Connectivity.offline.value,
                    message="Sensor gone offline",
                    action="Check sensor connectivity and power",
                )
            )

        return findings
