"""Sensor sources feeding the simulation loop."""

from __future__ import annotations

import random
from datetime import datetime
from typing import Any, Dict, Mapping, Optional, Protocol

from models.records import Reading, Sensor
from services.generator import ReadingGenerator
from settings import Settings, get_settings


class SensorSource(Protocol):
    def generate(self, sensor_id: str, now: datetime) -> Reading:
        """Produce the reading for ``sensor_id`` at ``now``; KeyError for unknown sensors."""
        ...

    def status(self) -> Dict[str, Any]:
        ...


class SimulatedSensorSource:
    """Synthetic readings for a fixed catalogue of sensors."""

    name = "simulated"

    def __init__(self, sensors: Mapping[str, Sensor], generator: ReadingGenerator) -> None:
        self.sensors = sensors
        self.generator = generator
        self.readings_generated = 0

    def generate(self, sensor_id: str, now: datetime) -> Reading:
        try:
            sensor = self.sensors[sensor_id]
        except KeyError:
            raise KeyError(f"Sensor {sensor_id!r} not found.") from None
        reading = self.generator.generate(sensor, now)
        self.readings_generated += 1
        return reading

    def status(self) -> Dict[str, Any]:
        return {
            "source": self.name,
            "sensor_count": len(self.sensors),
            "readings_generated": self.readings_generated,
        }


def build_sensor_source(
    sensors: Mapping[str, Sensor],
    settings: Optional[Settings] = None,
    rng: Optional[random.Random] = None,
) -> SensorSource:
    """Select the sensor source named in the settings."""

    settings = settings or get_settings()
    if settings.sensor_source == "simulated":
        rng = rng or random.Random(settings.random_seed)
        return SimulatedSensorSource(sensors, ReadingGenerator(rng=rng))
    raise ValueError(f"Unsupported sensor source: {settings.sensor_source!r}")
