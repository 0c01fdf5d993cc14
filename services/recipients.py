"""Recipient resolution against the officials roster."""

from __future__ import annotations

import logging
from typing import Callable, Iterable, List, Sequence

from datastore.roster import ACTIVE_GOVERNMENT_FILTER, RosterStore
from models.records import Official, Severity
from models.reference import (
    CRITICAL_TAG,
    DAILY_SUMMARY_TAG,
    FALLBACK_OFFICIALS,
    WATER_QUALITY_TAG,
)

logger = logging.getLogger(__name__)

SUMMARY_POSITION_KEYWORDS = ("director", "officer")


def dedupe_by_email(officials: Iterable[Official]) -> List[Official]:
    """Keep the first official seen for each (case-insensitive) email address."""

    seen: set[str] = set()
    unique: List[Official] = []
    for official in officials:
        key = official.email.strip().lower()
        if not key or key in seen:
            continue
        seen.add(key)
        unique.append(official)
    return unique


def alert_tag_for(severity: Severity | str) -> str:
    return CRITICAL_TAG if Severity(severity) == Severity.critical else WATER_QUALITY_TAG


class RecipientResolver:
    """Computes who is notified, falling back to the embedded roster on lookup failure."""

    def __init__(
        self,
        roster: RosterStore,
        fallback: Sequence[Official] = FALLBACK_OFFICIALS,
    ) -> None:
        self.roster = roster
        self.fallback = tuple(fallback)

    async def fetch_roster(self) -> List[Official]:
        """Return the live roster, or the static one if the lookup fails or comes back empty."""

        try:
            officials = await self.roster.list_officials(ACTIVE_GOVERNMENT_FILTER)
        except Exception as exc:  # noqa: BLE001 - any store failure degrades to fallback
            logger.warning(
                "Roster lookup failed, using static roster",
                extra={"reason": str(exc) or exc.__class__.__name__},
            )
            return list(self.fallback)
        unique = dedupe_by_email(officials)
        if not unique:
            logger.warning(
                "Roster lookup returned no officials, using static roster",
                extra={"reason": "empty roster"},
            )
            return list(self.fallback)
        return unique

    async def resolve(self, severity: Severity | str, district: str) -> List[Official]:
        tag = alert_tag_for(severity)

        def wanted(official: Official) -> bool:
            return (
                tag in official.alert_types
                or WATER_QUALITY_TAG in official.alert_types
                or official.district == district
            )

        return await self._select(wanted)

    async def resolve_daily_summary(self) -> List[Official]:
        def wanted(official: Official) -> bool:
            position = official.position.lower()
            return DAILY_SUMMARY_TAG in official.alert_types or any(
                keyword in position for keyword in SUMMARY_POSITION_KEYWORDS
            )

        return await self._select(wanted)

    async def _select(self, wanted: Callable[[Official], bool]) -> List[Official]:
        roster = await self.fetch_roster()
        return dedupe_by_email(official for official in roster if wanted(official))
