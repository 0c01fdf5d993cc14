from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, Callable, List, Mapping, Optional

import pytest

from datastore.roster import RosterUnavailableError
from models.records import Connectivity, Location, Official, Reading, WaterParameters
from storage.mailer import MailerError, OutgoingMessage

MAJULI_V1 = Location(lat=26.97, lng=94.17, village="Majuli Village 1", district="Jorhat")


class RecordingMailer:
    """Collects messages instead of sending them; optionally refuses some."""

    def __init__(self, fail_when: Optional[Callable[[OutgoingMessage], bool]] = None) -> None:
        self.sent: List[OutgoingMessage] = []
        self.fail_when = fail_when

    async def send(self, message: OutgoingMessage) -> str:
        if self.fail_when is not None and self.fail_when(message):
            raise MailerError("relay refused the message")
        self.sent.append(message)
        return f"msg-{len(self.sent)}"


class FailingRoster:
    def __init__(self) -> None:
        self.calls = 0

    async def list_officials(self, filter: Mapping[str, Any]) -> List[Official]:
        self.calls += 1
        raise RosterUnavailableError("user directory offline")


class FixedClock:
    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture
def recording_mailer() -> RecordingMailer:
    return RecordingMailer()


@pytest.fixture
def failing_roster() -> FailingRoster:
    return FailingRoster()


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock(datetime(2025, 7, 15, 13, 30, tzinfo=timezone.utc))


@pytest.fixture
def make_reading() -> Callable[..., Reading]:
    def factory(
        ph: float = 7.2,
        ecoli: float = 0.0,
        turbidity: float = 2.0,
        battery: float = 85.0,
        connectivity: Connectivity = Connectivity.online,
        sensor_id: str = "SENSOR_001_MAJULI_V1",
        timestamp: Optional[datetime] = None,
        location: Location = MAJULI_V1,
    ) -> Reading:
        return Reading(
            sensor_id=sensor_id,
            timestamp=timestamp or datetime(2025, 7, 15, 13, 30, tzinfo=timezone.utc),
            location=location,
            parameters=WaterParameters(
                ph=ph,
                turbidity=turbidity,
                tds=300.0,
                ecoli=ecoli,
                temperature=25.0,
                flow_rate=2.5,
                dissolved_oxygen=8.0,
            ),
            battery_level=battery,
            signal_strength=80.0,
            connectivity=connectivity,
        )

    return factory
