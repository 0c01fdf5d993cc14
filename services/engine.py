"""Simulation engine: the periodic sample, evaluate, alert and notify loop."""

from __future__ import annotations

import asyncio
import logging
import random
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Optional, Sequence

from datastore.history import BoundedHistory
from datastore.roster import build_default_roster
from models.records import (
    AlertFinding,
    AlertRecord,
    Connectivity,
    DispatchResult,
    Official,
    Reading,
    Sensor,
    Severity,
    SummaryReport,
    WaterParameters,
)
from models.reference import (
    BASELINE_BATTERY_LEVEL,
    BASELINE_SIGNAL_STRENGTH,
    NORMAL_RANGES,
    TEST_ALERT_PRESETS,
    default_sensors,
)
from services.aggregator import AlertAggregator
from services.evaluator import ThresholdEvaluator
from services.notifier import NotificationDispatcher
from services.recipients import RecipientResolver
from services.sources import SensorSource, build_sensor_source
from services.summary import DailySummaryReporter
from settings import DEFAULT_CC_ADDRESSES, Settings, get_settings
from storage.mailer import Mailer, build_default_mailer

logger = logging.getLogger(__name__)

STATUS_READINGS_TAIL = 20
STATUS_ALERTS_TAIL = 10


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(slots=True)
class PipelineOutcome:
    """Everything one reading produced on its way through the pipeline."""

    reading: Reading
    findings: List[AlertFinding] = field(default_factory=list)
    alert: Optional[AlertRecord] = None
    dispatch: Optional[DispatchResult] = None


@dataclass(slots=True)
class EngineStatus:
    is_running: bool
    tick_count: int
    tick_seconds: float
    sensors: List[Sensor]
    recent_readings: List[Reading]
    recent_alerts: List[AlertRecord]
    source: Dict[str, Any]


class SimulationEngine:
    """Owns the sensors, the bounded histories and the scheduler task.

    ``start`` and ``stop`` are idempotent. Sensors are processed one after
    another inside a tick and ticks never overlap, so the histories and the
    sensor counters are only mutated from the loop (or from ``test_alert``).
    """

    def __init__(
        self,
        sensors: Sequence[Sensor],
        source: SensorSource,
        resolver: RecipientResolver,
        mailer: Mailer,
        *,
        tick_seconds: float = 10.0,
        readings_capacity: int = 100,
        alerts_capacity: int = 10,
        summary_interval_hours: float = 0.0,
        alert_sender: str = "AquaAlert System <noreply@aquaalert.gov.in>",
        report_sender: str = "AquaAlert Daily Reports <reports@aquaalert.gov.in>",
        cc_addresses: Sequence[str] = DEFAULT_CC_ADDRESSES,
        clock: Callable[[], datetime] = utc_now,
        evaluator: Optional[ThresholdEvaluator] = None,
    ) -> None:
        if tick_seconds <= 0:
            raise ValueError("Tick interval must be positive.")
        self.sensors: Dict[str, Sensor] = {sensor.id: sensor for sensor in sensors}
        self.source = source
        self.resolver = resolver
        self.mailer = mailer
        self.tick_seconds = tick_seconds
        self.summary_interval_hours = summary_interval_hours
        self.clock = clock

        self.readings: BoundedHistory[Reading] = BoundedHistory("readings", readings_capacity)
        self.alerts: BoundedHistory[AlertRecord] = BoundedHistory("alerts", alerts_capacity)
        self.evaluator = evaluator or ThresholdEvaluator()
        self.aggregator = AlertAggregator(self.alerts)
        self.dispatcher = NotificationDispatcher(
            mailer=mailer,
            resolver=resolver,
            sender=alert_sender,
            cc_addresses=cc_addresses,
        )
        self.reporter = DailySummaryReporter(
            readings=self.readings,
            alerts=self.alerts,
            sensors=self.get_sensors,
            resolver=resolver,
            mailer=mailer,
            sender=report_sender,
            cc_addresses=cc_addresses,
            clock=clock,
            evaluator=self.evaluator,
        )

        self._running = False
        self._tick_count = 0
        self._stop_event: Optional[asyncio.Event] = None
        self._loop_task: Optional[asyncio.Task[None]] = None
        self._summary_task: Optional[asyncio.Task[None]] = None

    @property
    def is_running(self) -> bool:
        return self._running

    async def start(self) -> bool:
        """Run one full tick, then schedule the periodic loop; False if already running."""

        # Flag is set before the first await so concurrent callers see it.
        if self._running:
            return False
        self._running = True
        stop_event = asyncio.Event()
        self._stop_event = stop_event
        logger.info(
            "Starting simulation for %d sensors every %ss",
            len(self.sensors),
            self.tick_seconds,
        )

        await self.tick()
        if stop_event.is_set():
            return True

        self._loop_task = asyncio.create_task(self._run(stop_event), name="simulation-loop")
        if self.summary_interval_hours > 0:
            self._summary_task = asyncio.create_task(
                self._run_summaries(stop_event), name="daily-summary"
            )
        return True

    async def stop(self) -> bool:
        """Halt future ticks; False if the engine was not running."""

        if not self._running:
            return False
        self._running = False
        if self._stop_event is not None:
            self._stop_event.set()
        tasks = [task for task in (self._loop_task, self._summary_task) if task is not None]
        self._loop_task = None
        self._summary_task = None
        current = asyncio.current_task()
        pending = [task for task in tasks if task is not current]
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
        logger.info("Simulation stopped", extra={"tick": self._tick_count})
        return True

    async def close(self) -> None:
        await self.stop()
        aclose = getattr(self.resolver.roster, "aclose", None)
        if aclose is not None:
            await aclose()

    async def tick(self) -> int:
        """Process every sensor once; return how many completed without error."""

        self._tick_count += 1
        tick = self._tick_count
        now = self.clock()
        completed = 0
        for sensor in list(self.sensors.values()):
            try:
                reading = self.source.generate(sensor.id, now)
                await self.ingest(sensor, reading)
            except Exception:
                logger.exception(
                    "Sensor pipeline failed",
                    extra={"sensor_id": sensor.id, "tick": tick},
                )
            else:
                completed += 1
        logger.debug("Completed tick", extra={"tick": tick})
        return completed

    async def ingest(self, sensor: Sensor, reading: Reading) -> PipelineOutcome:
        """Record ``reading`` for ``sensor`` and run it through evaluate, aggregate, dispatch."""

        self.readings.append(reading)
        sensor.last_reading = reading
        sensor.total_readings += 1

        findings = self.evaluator.evaluate(reading)
        outcome = PipelineOutcome(reading=reading, findings=findings)
        outcome.alert = self.aggregator.aggregate(reading, findings, sensor)
        if outcome.alert is not None:
            outcome.dispatch = await self.dispatcher.dispatch(
                outcome.alert, findings, sensor_name=sensor.name
            )
        return outcome

    async def test_alert(self, reading: Reading) -> PipelineOutcome:
        """Force ``reading`` through the pipeline; values are evaluated as given."""

        sensor = self._get_sensor(reading.sensor_id)
        return await self.ingest(sensor, reading)

    def build_test_reading(
        self,
        sensor_id: str,
        preset: Optional[str] = None,
        overrides: Optional[Dict[str, Any]] = None,
    ) -> Reading:
        """In-range reading for ``sensor_id`` with a named preset and explicit values applied.

        Explicit ``overrides`` win over the preset. Keys are water parameter
        names plus ``battery_level`` and ``connectivity``.
        """

        sensor = self._get_sensor(sensor_id)
        values: Dict[str, Any] = {}
        if preset is not None:
            try:
                values.update(TEST_ALERT_PRESETS[preset])
            except KeyError:
                choices = ", ".join(sorted(TEST_ALERT_PRESETS))
                raise ValueError(
                    f"Unknown test alert preset {preset!r}; expected one of {choices}."
                ) from None
        values.update(overrides or {})

        unknown = set(values) - set(NORMAL_RANGES) - {"battery_level", "connectivity"}
        if unknown:
            raise ValueError(f"Unsupported reading fields: {', '.join(sorted(unknown))}")

        baseline = WaterParameters(**{name: bounds.optimal for name, bounds in NORMAL_RANGES.items()})
        return Reading(
            sensor_id=sensor.id,
            timestamp=self.clock(),
            location=sensor.location,
            parameters=replace(
                baseline,
                **{name: float(value) for name, value in values.items() if name in NORMAL_RANGES},
            ),
            battery_level=float(values.get("battery_level", BASELINE_BATTERY_LEVEL)),
            signal_strength=BASELINE_SIGNAL_STRENGTH,
            connectivity=Connectivity(values.get("connectivity", Connectivity.online)),
            anomaly_type=f"test_{preset}" if preset else "test_manual",
        )

    def status(self) -> EngineStatus:
        return EngineStatus(
            is_running=self._running,
            tick_count=self._tick_count,
            tick_seconds=self.tick_seconds,
            sensors=self.get_sensors(),
            recent_readings=self.readings.tail(STATUS_READINGS_TAIL),
            recent_alerts=self.alerts.tail(STATUS_ALERTS_TAIL),
            source=self.source.status(),
        )

    def get_sensors(self) -> List[Sensor]:
        return list(self.sensors.values())

    def get_readings(self, sensor_id: Optional[str] = None, limit: int = 20) -> List[Reading]:
        """Most recent readings, newest first."""

        predicate = None
        if sensor_id is not None:
            self._get_sensor(sensor_id)
            predicate = lambda reading: reading.sensor_id == sensor_id  # noqa: E731
        return list(reversed(self.readings.tail(limit, predicate)))

    def get_alerts(
        self,
        limit: int = 20,
        severity: Optional[Severity | str] = None,
        sensor_id: Optional[str] = None,
    ) -> List[AlertRecord]:
        """Most recent buffered alerts, newest first."""

        wanted = Severity(severity) if severity is not None else None

        def matches(alert: AlertRecord) -> bool:
            if wanted is not None and alert.severity != wanted:
                return False
            return sensor_id is None or alert.sensor_id == sensor_id

        return list(reversed(self.alerts.tail(limit, matches)))

    def acknowledge_alert(
        self, alert_id: str, acknowledged_by: str, notes: Optional[str] = None
    ) -> AlertRecord:
        record = self.aggregator.acknowledge(alert_id, acknowledged_by, self.clock(), notes)
        logger.info("Alert acknowledged", extra={"alert_id": alert_id, "sensor_id": record.sensor_id})
        return record

    async def send_daily_summary(
        self,
        window_start: Optional[datetime] = None,
        window_end: Optional[datetime] = None,
    ) -> SummaryReport:
        return await self.reporter.summarize(window_start, window_end)

    async def preview_recipients(self, severity: Severity | str, district: str) -> List[Official]:
        return await self.resolver.resolve(severity, district)

    async def _run(self, stop_event: asyncio.Event) -> None:
        while not await _wait_or_stop(stop_event, self.tick_seconds):
            await self.tick()

    async def _run_summaries(self, stop_event: asyncio.Event) -> None:
        interval = timedelta(hours=self.summary_interval_hours).total_seconds()
        while not await _wait_or_stop(stop_event, interval):
            try:
                await self.send_daily_summary()
            except Exception:
                logger.exception("Scheduled daily summary failed")

    def _get_sensor(self, sensor_id: str) -> Sensor:
        try:
            return self.sensors[sensor_id]
        except KeyError:
            raise KeyError(f"Sensor {sensor_id!r} not found.") from None


async def _wait_or_stop(stop_event: asyncio.Event, timeout: float) -> bool:
    """Sleep for ``timeout`` seconds; True as soon as ``stop_event`` is set."""

    try:
        await asyncio.wait_for(stop_event.wait(), timeout=timeout)
    except asyncio.TimeoutError:
        return False
    return True


def build_engine(
    settings: Optional[Settings] = None,
    *,
    mailer: Optional[Mailer] = None,
    resolver: Optional[RecipientResolver] = None,
    clock: Callable[[], datetime] = utc_now,
    rng: Optional[random.Random] = None,
) -> SimulationEngine:
    """Wire an engine with the backends named in the settings."""

    settings = settings or get_settings()
    sensors = default_sensors()
    source = build_sensor_source({sensor.id: sensor for sensor in sensors}, settings, rng)
    return SimulationEngine(
        sensors=sensors,
        source=source,
        resolver=resolver or RecipientResolver(build_default_roster(settings)),
        mailer=mailer or build_default_mailer(settings),
        tick_seconds=settings.tick_seconds,
        readings_capacity=settings.readings_capacity,
        alerts_capacity=settings.alerts_capacity,
        summary_interval_hours=settings.summary_interval_hours,
        alert_sender=settings.alert_sender,
        report_sender=settings.report_sender,
        cc_addresses=settings.cc_addresses,
        clock=clock,
    )
