from __future__ import annotations

import asyncio
import logging

from datastore.history import BoundedHistory
from datastore.roster import StaticRosterStore
from models.records import Official
from models.reference import default_sensors
from services.aggregator import AlertAggregator
from services.evaluator import ThresholdEvaluator
from services.notifier import NotificationDispatcher
from services.recipients import RecipientResolver
from settings import DEFAULT_CC_ADDRESSES

UNRELATED_OFFICIAL = Official(
    id="kamrup-1",
    name="Kamrup Epidemiologist",
    email="epi@kamrup.example.gov",
    position="Epidemiologist",
    district="Kamrup",
    alert_types=("health_outbreak",),
)


def _dispatcher(mailer) -> NotificationDispatcher:
    return NotificationDispatcher(
        mailer=mailer,
        resolver=RecipientResolver(StaticRosterStore()),
        sender="AquaAlert System <noreply@aquaalert.gov.in>",
        cc_addresses=DEFAULT_CC_ADDRESSES,
    )


def _alert_for(reading):
    findings = ThresholdEvaluator().evaluate(reading)
    alert = AlertAggregator(BoundedHistory("alerts", 10)).aggregate(reading, findings, default_sensors()[0])
    return alert, findings


def test_critical_reading_sends_critical_and_warning_emails(make_reading, recording_mailer) -> None:
    mailer = recording_mailer
    alert, findings = _alert_for(make_reading(ph=4.5, ecoli=15, turbidity=20))

    result = asyncio.run(_dispatcher(mailer).dispatch(alert, findings, sensor_name="Majuli Station"))

    assert result.success is True
    assert [send.severity for send in result.sends] == ["critical", "warning"]
    subjects = sorted(message.subject for message in mailer.sent)
    assert subjects == [
        "CRITICAL Water Quality Alert - Majuli Village 1, Jorhat",
        "WARNING Water Quality Alert - Majuli Village 1, Jorhat",
    ]
    critical = next(message for message in mailer.sent if message.subject.startswith("CRITICAL"))
    warning = next(message for message in mailer.sent if message.subject.startswith("WARNING"))
    assert critical.priority == "high"
    assert warning.priority == "normal"
    assert critical.cc == DEFAULT_CC_ADDRESSES
    assert warning.cc == DEFAULT_CC_ADDRESSES
    assert len(critical.to) == 8
    assert len(warning.to) == 7
    assert result.recipient_count == 10 + 9
    assert "Majuli Station" in critical.html
    assert "Dangerous E.coli levels detected" in critical.text
    assert "pH level outside normal range" in warning.html


def test_html_body_escapes_markup(make_reading, recording_mailer) -> None:
    mailer = recording_mailer
    alert, findings = _alert_for(make_reading(ph=4.0))

    asyncio.run(_dispatcher(mailer).dispatch(alert, findings, sensor_name="<b>Station</b>"))

    assert "&lt;b&gt;Station&lt;/b&gt;" in mailer.sent[0].html


def test_failed_send_does_not_abort_sibling(make_reading, recording_mailer, caplog) -> None:
    mailer = recording_mailer
    mailer.fail_when = lambda message: message.subject.startswith("CRITICAL")
    alert, findings = _alert_for(make_reading(ph=4.5))

    with caplog.at_level(logging.WARNING, logger="services.notifier"):
        result = asyncio.run(_dispatcher(mailer).dispatch(alert, findings))

    assert result.success is False
    outcomes = {send.severity: send for send in result.sends}
    assert outcomes["critical"].success is False
    assert outcomes["critical"].error == "relay refused the message"
    assert outcomes["warning"].success is True
    assert result.recipient_count == outcomes["warning"].recipient_count
    assert [message.subject.split()[0] for message in mailer.sent] == ["WARNING"]
    record = next(r for r in caplog.records if r.name == "services.notifier")
    assert getattr(record, "alert_id") == alert.id


def test_maintenance_only_alert_sends_nothing(make_reading, recording_mailer) -> None:
    mailer = recording_mailer
    alert, findings = _alert_for(make_reading(battery=10))

    result = asyncio.run(_dispatcher(mailer).dispatch(alert, findings))

    assert result.success is True
    assert result.recipient_count == 0
    assert result.sends == ()
    assert mailer.sent == []


def test_cc_is_kept_when_no_official_matches(make_reading, recording_mailer) -> None:
    mailer = recording_mailer
    dispatcher = NotificationDispatcher(
        mailer=mailer,
        resolver=RecipientResolver(StaticRosterStore([UNRELATED_OFFICIAL])),
        sender="noreply@aquaalert.gov.in",
        cc_addresses=DEFAULT_CC_ADDRESSES,
    )
    alert, findings = _alert_for(make_reading(ph=8.9))

    result = asyncio.run(dispatcher.dispatch(alert, findings))

    assert result.success is True
    assert mailer.sent[0].to == ()
    assert mailer.sent[0].cc == DEFAULT_CC_ADDRESSES
    assert result.recipient_count == 2
