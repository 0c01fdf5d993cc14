from __future__ import annotations

import asyncio
import logging

from datastore.roster import StaticRosterStore
from models.records import Official, Severity
from services.recipients import RecipientResolver, dedupe_by_email


def _official(id: str, email: str, district: str = "Kamrup", tags=("water_quality",), position="Clerk") -> Official:
    return Official(
        id=id,
        name=id.title(),
        email=email,
        position=position,
        district=district,
        alert_types=tuple(tags),
    )


def _ids(officials) -> set[str]:
    return {official.id for official in officials}


def test_dedupe_is_case_insensitive_and_skips_blank_emails() -> None:
    officials = [
        _official("a", "Lead@Example.gov"),
        _official("b", "lead@example.gov "),
        _official("c", ""),
        _official("d", "other@example.gov"),
    ]

    assert [official.id for official in dedupe_by_email(officials)] == ["a", "d"]


def test_live_roster_with_duplicates_never_yields_duplicate_emails() -> None:
    roster = StaticRosterStore(
        [
            _official("a", "shared@example.gov", tags=("critical_alerts",)),
            _official("b", "SHARED@example.gov", tags=("water_quality",)),
            _official("c", "solo@example.gov", district="Jorhat", tags=()),
        ]
    )
    resolver = RecipientResolver(roster)

    for _ in range(2):
        emails = [
            official.email.lower()
            for official in asyncio.run(resolver.resolve(Severity.critical, "Jorhat"))
        ]
        assert sorted(emails) == ["shared@example.gov", "solo@example.gov"]


def test_district_match_overrides_missing_subscription() -> None:
    roster = StaticRosterStore(
        [
            _official("local", "local@example.gov", district="Majuli", tags=("health_outbreak",)),
            _official("remote", "remote@example.gov", district="Kamrup", tags=("health_outbreak",)),
        ]
    )

    officials = asyncio.run(RecipientResolver(roster).resolve("warning", "Majuli"))

    assert _ids(officials) == {"local"}


def test_failed_lookup_falls_back_to_static_roster(failing_roster, caplog) -> None:
    resolver = RecipientResolver(failing_roster)

    with caplog.at_level(logging.WARNING, logger="services.recipients"):
        officials = asyncio.run(resolver.resolve(Severity.warning, "Nowhere"))

    assert _ids(officials) == {"static-1", "static-2", "static-4", "static-6", "static-7"}
    assert failing_roster.calls == 1
    record = next(r for r in caplog.records if r.name == "services.recipients")
    assert getattr(record, "reason") == "user directory offline"


def test_failed_lookup_for_critical_alert_still_reaches_everyone_in_district(failing_roster) -> None:
    officials = asyncio.run(RecipientResolver(failing_roster).resolve(Severity.critical, "Jorhat"))

    assert len(officials) == 8


def test_daily_summary_recipients_by_tag_or_title(failing_roster) -> None:
    officials = asyncio.run(RecipientResolver(failing_roster).resolve_daily_summary())

    assert _ids(officials) == {"static-1", "static-3", "static-4", "static-5", "static-7", "static-8"}


def test_empty_live_roster_falls_back_to_static_roster(caplog) -> None:
    resolver = RecipientResolver(StaticRosterStore([]))

    with caplog.at_level(logging.WARNING, logger="services.recipients"):
        officials = asyncio.run(resolver.resolve(Severity.critical, "Jorhat"))

    assert len(officials) == 8
    record = next(r for r in caplog.records if r.name == "services.recipients")
    assert getattr(record, "reason") == "empty roster"
