"""Static reference data: parameter ranges, alert thresholds, sensors and roster."""

from __future__ import annotations

from datetime import date
from typing import Dict, List, Tuple

from models.records import Location, Official, ParameterRange, Sensor

NORMAL_RANGES: Dict[str, ParameterRange] = {
    "ph": ParameterRange(min=6.5, max=8.5, optimal=7.2),
    "turbidity": ParameterRange(min=0.0, max=10.0, optimal=2.0),
    "tds": ParameterRange(min=200.0, max=500.0, optimal=300.0),
    "ecoli": ParameterRange(min=0.0, max=5.0, optimal=0.0),
    "temperature": ParameterRange(min=15.0, max=35.0, optimal=25.0),
    "flow_rate": ParameterRange(min=1.0, max=5.0, optimal=2.5),
    "dissolved_oxygen": ParameterRange(min=5.0, max=12.0, optimal=8.0),
}

# Parameters reported as whole numbers.
INTEGER_PARAMETERS = frozenset({"ecoli", "tds"})

CRITICAL_PH_MIN = 5.5
CRITICAL_PH_MAX = 9.0
CRITICAL_ECOLI_MAX = 10.0
CRITICAL_TURBIDITY_MAX = 15.0

WARNING_PH_MIN = 6.0
WARNING_PH_MAX = 8.8

LOW_BATTERY_LEVEL = 20.0

CRITICAL_TAG = "critical_alerts"
WATER_QUALITY_TAG = "water_quality"
DAILY_SUMMARY_TAG = "daily_summary"
DEFAULT_ALERT_TYPES: Tuple[str, ...] = (WATER_QUALITY_TAG, CRITICAL_TAG)

_SENSOR_CATALOGUE = (
    (
        "SENSOR_001_MAJULI_V1",
        "Majuli Village 1 Water Station",
        Location(lat=26.97, lng=94.17, village="Majuli Village 1", district="Jorhat"),
        date(2025, 8, 15),
        date(2025, 9, 1),
    ),
    (
        "SENSOR_002_MAJULI_V2",
        "Majuli Village 2 Water Station",
        Location(lat=26.95, lng=94.15, village="Majuli Village 2", district="Jorhat"),
        date(2025, 8, 20),
        date(2025, 9, 5),
    ),
    (
        "SENSOR_003_MAJULI_V3",
        "Majuli Village 3 Water Station",
        Location(lat=26.93, lng=94.13, village="Majuli Village 3", district="Jorhat"),
        date(2025, 8, 10),
        date(2025, 8, 28),
    ),
)


def default_sensors() -> List[Sensor]:
    """Fresh sensor instances with zeroed runtime counters."""
    return [
        Sensor(
            id=sensor_id,
            name=name,
            location=location,
            type="water_quality",
            status="active",
            installed_on=installed,
            last_maintenance=maintained,
        )
        for sensor_id, name, location, installed, maintained in _SENSOR_CATALOGUE
    ]


FALLBACK_OFFICIALS: Tuple[Official, ...] = (
    Official(
        id="static-1",
        name="Dr. Rajesh Kumar",
        email="rajesh.kumar@assam.gov.in",
        position="District Health Officer",
        district="Jorhat",
        alert_types=("water_quality", "health_outbreak", "critical_alerts"),
    ),
    Official(
        id="static-2",
        name="Mrs. Priya Sharma",
        email="priya.sharma@assam.gov.in",
        position="Water Quality Supervisor",
        district="Majuli",
        alert_types=("water_quality", "turbidity_high", "ph_abnormal"),
    ),
    Official(
        id="static-3",
        name="Mr. Bhaskar Goswami",
        email="bhaskar.goswami@assam.gov.in",
        position="Public Health Director",
        district="Jorhat",
        alert_types=("daily_summary", "critical_alerts", "health_outbreak"),
    ),
    Official(
        id="static-4",
        name="Dr. Anita Das",
        email="anita.das@assam.gov.in",
        position="Environmental Health Officer",
        district="Majuli",
        alert_types=("water_quality", "environmental_alerts", "daily_summary"),
    ),
    Official(
        id="static-5",
        name="Dr. Suresh Kalita",
        email="suresh.kalita@assam.gov.in",
        position="Chief Medical Officer",
        district="Jorhat",
        alert_types=("critical_alerts", "health_outbreak", "daily_summary"),
    ),
    Official(
        id="static-6",
        name="Mrs. Rekha Devi",
        email="rekha.devi@assam.gov.in",
        position="ASHA Coordinator",
        district="Majuli",
        alert_types=("water_quality", "community_alerts", "health_outbreak"),
    ),
    Official(
        id="static-7",
        name="Mr. Dinesh Borah",
        email="dinesh.borah@assam.gov.in",
        position="Water Resources Engineer",
        district="Jorhat",
        alert_types=("water_quality", "infrastructure_alerts", "daily_summary"),
    ),
    Official(
        id="static-8",
        name="Dr. Manju Gogoi",
        email="manju.gogoi@assam.gov.in",
        position="District Surveillance Officer",
        district="Majuli",
        alert_types=("health_outbreak", "critical_alerts", "daily_summary"),
    ),
)


# Overrides applied on top of an in-range baseline reading for test alerts.
TEST_ALERT_PRESETS: Dict[str, Dict[str, float]] = {
    "critical": {"ph": 4.5, "ecoli": 15.0, "turbidity": 20.0},
    "warning": {"ph": 8.9},
    "maintenance": {"battery_level": 15.0},
}

BASELINE_BATTERY_LEVEL = 85.0
BASELINE_SIGNAL_STRENGTH = 80.0
