from __future__ import annotations

import asyncio
import logging
import random
from datetime import datetime
from typing import Any, Dict

import pytest

from datastore.roster import StaticRosterStore
from models.records import Reading, Severity
from models.reference import default_sensors
from services.engine import SimulationEngine
from services.generator import ReadingGenerator
from services.recipients import RecipientResolver
from services.sources import SimulatedSensorSource


def _engine(mailer, clock, tick_seconds: float = 3600.0, **kwargs: Any) -> SimulationEngine:
    sensors = default_sensors()
    source = SimulatedSensorSource(
        {sensor.id: sensor for sensor in sensors}, ReadingGenerator(rng=random.Random(11))
    )
    return SimulationEngine(
        sensors=sensors,
        source=source,
        resolver=RecipientResolver(StaticRosterStore()),
        mailer=mailer,
        tick_seconds=tick_seconds,
        clock=clock,
        **kwargs,
    )


class BrokenSource:
    """Fails for one sensor and delegates the rest."""

    def __init__(self, inner: SimulatedSensorSource, broken_id: str) -> None:
        self.inner = inner
        self.broken_id = broken_id

    def generate(self, sensor_id: str, now: datetime) -> Reading:
        if sensor_id == self.broken_id:
            raise ZeroDivisionError("calibration table empty")
        return self.inner.generate(sensor_id, now)

    def status(self) -> Dict[str, Any]:
        return {"source": "broken"}


def test_start_runs_initial_tick_and_is_idempotent(recording_mailer, clock) -> None:
    engine = _engine(recording_mailer, clock)

    async def scenario():
        first = await engine.start()
        task = engine._loop_task
        second = await engine.start()
        same_task = engine._loop_task is task
        await engine.stop()
        return first, second, same_task

    first, second, same_task = asyncio.run(scenario())

    assert (first, second, same_task) == (True, False, True)
    assert engine.status().tick_count == 1
    assert all(sensor.total_readings == 1 for sensor in engine.get_sensors())
    assert len(engine.readings) == 3


def test_double_start_does_not_double_tick_rate(recording_mailer, clock) -> None:
    engine = _engine(recording_mailer, clock, tick_seconds=0.05)

    async def scenario() -> int:
        await asyncio.gather(engine.start(), engine.start())
        await asyncio.sleep(0.28)
        await engine.stop()
        return engine.status().tick_count

    ticks = asyncio.run(scenario())

    assert 2 <= ticks <= 7


def test_stop_halts_future_ticks_and_is_safe_when_stopped(recording_mailer, clock) -> None:
    engine = _engine(recording_mailer, clock, tick_seconds=0.02)

    async def scenario():
        assert await engine.stop() is False
        await engine.start()
        await asyncio.sleep(0.05)
        stopped = await engine.stop()
        ticks = engine.status().tick_count
        await asyncio.sleep(0.1)
        return stopped, ticks, await engine.stop()

    stopped, ticks, second_stop = asyncio.run(scenario())

    assert stopped is True
    assert second_stop is False
    assert engine.is_running is False
    assert engine.status().tick_count == ticks


def test_failing_sensor_does_not_break_the_tick(recording_mailer, clock, caplog) -> None:
    engine = _engine(recording_mailer, clock)
    engine.source = BrokenSource(engine.source, "SENSOR_002_MAJULI_V2")

    with caplog.at_level(logging.ERROR, logger="services.engine"):
        completed = asyncio.run(engine.tick())

    assert completed == 2
    counts = {sensor.id: sensor.total_readings for sensor in engine.get_sensors()}
    assert counts == {
        "SENSOR_001_MAJULI_V1": 1,
        "SENSOR_002_MAJULI_V2": 0,
        "SENSOR_003_MAJULI_V3": 1,
    }
    record = next(r for r in caplog.records if r.name == "services.engine")
    assert getattr(record, "sensor_id") == "SENSOR_002_MAJULI_V2"
    assert record.exc_info is not None


def test_readings_buffer_is_bounded(recording_mailer, clock) -> None:
    engine = _engine(recording_mailer, clock)

    async def scenario() -> None:
        for _ in range(40):
            clock.advance(seconds=10)
            await engine.tick()

    asyncio.run(scenario())

    assert len(engine.readings) == 100
    status = engine.status()
    assert len(status.recent_readings) == 20
    assert status.recent_readings[-1].timestamp == clock.now
    assert len(status.recent_alerts) <= 10
    assert sum(sensor.total_readings for sensor in status.sensors) == 120


def test_critical_test_alert_runs_full_pipeline(recording_mailer, clock) -> None:
    engine = _engine(recording_mailer, clock)
    reading = engine.build_test_reading("SENSOR_001_MAJULI_V1", preset="critical")

    outcome = asyncio.run(engine.test_alert(reading))

    assert reading.parameters.ph == 4.5
    assert reading.parameters.ecoli == 15
    assert reading.location == engine.sensors["SENSOR_001_MAJULI_V1"].location
    assert len(outcome.findings) == 4
    assert outcome.alert is not None
    assert outcome.alert.severity == Severity.critical
    assert outcome.dispatch is not None and outcome.dispatch.success is True
    assert len(recording_mailer.sent) == 2
    assert engine.sensors["SENSOR_001_MAJULI_V1"].alerts_sent == 4
    assert engine.get_alerts(severity="critical")[0].id == outcome.alert.id


def test_explicit_values_override_preset(recording_mailer, clock) -> None:
    engine = _engine(recording_mailer, clock)

    reading = engine.build_test_reading(
        "SENSOR_003_MAJULI_V3",
        preset="maintenance",
        overrides={"battery_level": 50, "connectivity": "offline"},
    )

    assert reading.battery_level == 50
    assert reading.connectivity.value == "offline"
    assert reading.anomaly_type == "test_maintenance"


def test_test_alert_input_errors(recording_mailer, clock) -> None:
    engine = _engine(recording_mailer, clock)

    with pytest.raises(KeyError):
        engine.build_test_reading("SENSOR_999", preset="critical")
    with pytest.raises(ValueError):
        engine.build_test_reading("SENSOR_001_MAJULI_V1", preset="flood")
    with pytest.raises(ValueError):
        engine.build_test_reading("SENSOR_001_MAJULI_V1", overrides={"arsenic": 1.0})


def test_reading_and_alert_queries(recording_mailer, clock) -> None:
    engine = _engine(recording_mailer, clock)

    async def scenario() -> None:
        for sensor_id, preset in (
            ("SENSOR_001_MAJULI_V1", "critical"),
            ("SENSOR_002_MAJULI_V2", "warning"),
            ("SENSOR_002_MAJULI_V2", "maintenance"),
        ):
            clock.advance(minutes=1)
            await engine.test_alert(engine.build_test_reading(sensor_id, preset=preset))

    asyncio.run(scenario())

    assert len(engine.get_alerts()) == 3
    assert [alert.sensor_id for alert in engine.get_alerts(limit=2)] == [
        "SENSOR_002_MAJULI_V2",
        "SENSOR_002_MAJULI_V2",
    ]
    assert len(engine.get_alerts(severity=Severity.warning)) == 2
    assert len(engine.get_alerts(sensor_id="SENSOR_001_MAJULI_V1")) == 1
    readings = engine.get_readings("SENSOR_002_MAJULI_V2")
    assert [reading.anomaly_type for reading in readings] == ["test_maintenance", "test_warning"]
    with pytest.raises(KeyError):
        engine.get_readings("SENSOR_404")


def test_acknowledge_alert_uses_engine_clock(recording_mailer, clock) -> None:
    engine = _engine(recording_mailer, clock)
    outcome = asyncio.run(
        engine.test_alert(engine.build_test_reading("SENSOR_001_MAJULI_V1", preset="warning"))
    )

    record = engine.acknowledge_alert(outcome.alert.id, "asha-worker", notes="boiled water advisory")

    assert record.acknowledged_at == clock.now
    with pytest.raises(KeyError):
        engine.acknowledge_alert("alert_missing", "asha-worker")


def test_periodic_summary_runs_while_started(recording_mailer, clock) -> None:
    engine = _engine(recording_mailer, clock, summary_interval_hours=0.00002)

    async def scenario() -> None:
        await engine.start()
        await asyncio.sleep(0.25)
        await engine.stop()

    asyncio.run(scenario())

    subjects = [message.subject for message in recording_mailer.sent]
    assert any(subject.startswith("AquaAlert Daily Water Quality Summary") for subject in subjects)
