"""Synthetic water-quality reading generation."""

from __future__ import annotations

import logging
import random
from datetime import datetime
from typing import Callable, Dict, Mapping, MutableMapping, Optional

from models.records import (
    Connectivity,
    ParameterRange,
    Reading,
    Sensor,
    WaterParameters,
)
from models.reference import INTEGER_PARAMETERS, NORMAL_RANGES

logger = logging.getLogger(__name__)

ANOMALY_PROBABILITY = 0.25
OFFLINE_PROBABILITY = 0.01
ECOLI_SPIKE_PROBABILITY = 0.15
PH_EXCURSION_PROBABILITY = 0.10
TURBIDITY_SPIKE_PROBABILITY = 0.12

SEASONAL_WEIGHT = 0.2
DIURNAL_WEIGHT = 0.15
JITTER_SHARE = 0.3


def seasonal_factor(month: int) -> float:
    """Contamination bias for a calendar month (1-12)."""
    if 6 <= month <= 9:
        return 0.8  # monsoon
    if 10 <= month <= 11:
        return 0.6
    if month == 12 or month <= 2:
        return -0.2
    return 0.1


def diurnal_factor(hour: int) -> float:
    """Contamination bias for an hour of the day (0-23)."""
    if 5 <= hour <= 8:
        return -0.1
    if 12 <= hour <= 16:
        return 0.2
    if 20 <= hour <= 23:
        return -0.05
    return 0.0


def _contamination(values: MutableMapping[str, float], rng: random.Random) -> Dict[str, float]:
    values["ecoli"] = rng.randint(15, 44)
    values["turbidity"] = rng.uniform(18.0, 38.0)
    values["ph"] = rng.uniform(5.0, 5.7)
    values["tds"] = rng.uniform(400.0, 600.0)
    return {}


def _equipment_malfunction(values: MutableMapping[str, float], rng: random.Random) -> Dict[str, float]:
    values["ph"] = rng.uniform(3.5, 4.5) if rng.random() < 0.5 else rng.uniform(9.5, 11.0)
    return {
        "battery_level": rng.uniform(0.0, 15.0),
        "signal_strength": rng.uniform(0.0, 25.0),
    }


def _seasonal_extreme(values: MutableMapping[str, float], rng: random.Random) -> Dict[str, float]:
    values["ecoli"] = rng.randint(8, 32)
    values["turbidity"] = rng.uniform(15.0, 40.0)
    values["temperature"] = rng.uniform(30.0, 38.0)
    return {}


def _pollution_event(values: MutableMapping[str, float], rng: random.Random) -> Dict[str, float]:
    values["ph"] = rng.uniform(8.5, 10.5)
    values["tds"] = rng.uniform(500.0, 800.0)
    values["dissolved_oxygen"] = rng.uniform(1.0, 4.0)
    values["turbidity"] = rng.uniform(10.0, 30.0)
    return {}


# Archetype name -> (anomaly tag, mutator). A mutator overwrites water
# parameters in place and returns overrides for equipment fields.
ARCHETYPES: Dict[str, tuple[str, Callable[[MutableMapping[str, float], random.Random], Dict[str, float]]]] = {
    "contamination": ("contamination_detected", _contamination),
    "equipment_malfunction": ("sensor_malfunction", _equipment_malfunction),
    "seasonal_extreme": ("seasonal_contamination", _seasonal_extreme),
    "pollution_event": ("pollution_detected", _pollution_event),
}


class ReadingGenerator:
    """Produces one synthetic reading per call with seasonal, diurnal and anomaly bias."""

    def __init__(
        self,
        rng: Optional[random.Random] = None,
        ranges: Mapping[str, ParameterRange] = NORMAL_RANGES,
    ) -> None:
        self.rng = rng or random.Random()
        self.ranges = ranges

    def generate(self, sensor: Sensor, now: datetime) -> Reading:
        season = seasonal_factor(now.month)
        daytime = diurnal_factor(now.hour)

        values: Dict[str, float] = {
            name: self._sample_parameter(name, season, daytime) for name in self.ranges
        }
        battery_level = max(20.0, 100.0 - self.rng.random() * 5.0)
        signal_strength = float(self.rng.randint(60, 99))
        connectivity = Connectivity.online
        anomaly_type: Optional[str] = None

        if self.rng.random() < ANOMALY_PROBABILITY:
            archetype = self.rng.choice(tuple(ARCHETYPES))
            anomaly_type, mutate = ARCHETYPES[archetype]
            overrides = mutate(values, self.rng)
            battery_level = overrides.get("battery_level", battery_level)
            signal_strength = overrides.get("signal_strength", signal_strength)
            sensor.consecutive_abnormal_readings += 1
            logger.debug(
                "Injected %s anomaly",
                archetype,
                extra={"sensor_id": sensor.id, "reason": anomaly_type},
            )

        if self.rng.random() < OFFLINE_PROBABILITY:
            connectivity = Connectivity.offline
            battery_level = 0.0

        accepted = {name: self._finalize(name, value) for name, value in values.items()}
        return Reading(
            sensor_id=sensor.id,
            timestamp=now,
            location=sensor.location,
            parameters=WaterParameters(**accepted),
            battery_level=round(battery_level, 2),
            signal_strength=round(signal_strength, 2),
            connectivity=connectivity,
            anomaly_type=anomaly_type,
        )

    def _sample_parameter(self, name: str, season: float, daytime: float) -> float:
        bounds = self.ranges[name]
        span = bounds.max - bounds.min
        # Bias scales with the range span; optimal can be 0 (E.coli).
        value = bounds.optimal + span * season * SEASONAL_WEIGHT
        value += span * daytime * DIURNAL_WEIGHT

        half_span = span * JITTER_SHARE / 2
        value += self.rng.triangular(-half_span, half_span, 0.0)

        if name == "ecoli" and self.rng.random() < ECOLI_SPIKE_PROBABILITY:
            value = self.rng.uniform(5.0, 25.0)
        elif name == "ph" and self.rng.random() < PH_EXCURSION_PROBABILITY:
            if self.rng.random() < 0.5:
                value = self.rng.uniform(5.0, 5.8)
            else:
                value = self.rng.uniform(8.8, 10.3)
        elif name == "turbidity" and self.rng.random() < TURBIDITY_SPIKE_PROBABILITY:
            value = self.rng.uniform(12.0, 27.0)
        return value

    def _finalize(self, name: str, value: float) -> float:
        clamped = self.ranges[name].clamp(float(value))
        if name in INTEGER_PARAMETERS:
            return float(round(clamped))
        return round(clamped, 2)
