"""Officials roster stores consulted when resolving alert recipients."""

from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path
from threading import Lock
from typing import Any, Dict, Iterable, List, Mapping, Optional, Protocol, Sequence

import httpx

from models.records import Official
from models.reference import DEFAULT_ALERT_TYPES, FALLBACK_OFFICIALS
from settings import Settings, get_settings

logger = logging.getLogger(__name__)

# Tuple values match any of their members.
ACTIVE_GOVERNMENT_FILTER: Mapping[str, Any] = {"role": ("government", "official"), "is_active": True}


class RosterUnavailableError(Exception):
    """Raised when the live roster cannot be consulted."""


class RosterStore(Protocol):
    async def list_officials(self, filter: Mapping[str, Any]) -> List[Official]:
        ...


def official_from_record(record: Mapping[str, Any], fallback_id: str = "") -> Official:
    """Build an Official from a loosely-shaped user document."""

    alert_types = record.get("alert_types") or record.get("alertTypes") or DEFAULT_ALERT_TYPES
    return Official(
        id=str(record.get("id") or fallback_id),
        name=str(record.get("name") or record.get("display_name") or ""),
        email=str(record.get("email") or "").strip(),
        position=str(
            record.get("position") or record.get("designation") or record.get("job_title") or ""
        ),
        district=str(record.get("district") or record.get("location") or ""),
        alert_types=tuple(alert_types),
    )


def official_to_record(official: Official) -> Dict[str, Any]:
    return {
        "id": official.id,
        "name": official.name,
        "email": official.email,
        "position": official.position,
        "district": official.district,
        "alert_types": list(official.alert_types),
        "role": "government",
        "is_active": True,
    }


def _matches(record: Mapping[str, Any], filter: Mapping[str, Any]) -> bool:
    for key, value in filter.items():
        if isinstance(value, (tuple, list, set, frozenset)):
            if record.get(key) not in value:
                return False
        elif record.get(key) != value:
            return False
    return True


def _query_value(value: Any) -> Any:
    if isinstance(value, bool):
        return str(value).lower()
    if isinstance(value, (tuple, list, set, frozenset)):
        return [_query_value(item) for item in value]
    return value


class StaticRosterStore:
    """Serves the embedded roster; never fails."""

    def __init__(self, officials: Sequence[Official] = FALLBACK_OFFICIALS) -> None:
        self._officials = tuple(officials)

    async def list_officials(self, filter: Mapping[str, Any]) -> List[Official]:
        return list(self._officials)


class JsonRosterTable:
    """File-backed users table holding official records keyed by id."""

    def __init__(self, name: str, persistence_path: Optional[Path] = None) -> None:
        self.name = name
        self._records: Dict[str, Dict[str, Any]] = {}
        self.persistence_path = persistence_path
        self._lock = Lock()
        if persistence_path:
            persistence_path.parent.mkdir(parents=True, exist_ok=True)

    def put_record(self, record: Mapping[str, Any]) -> None:
        record_id = str(record.get("id") or "")
        if not record_id:
            raise ValueError("Roster records require an id.")
        with self._lock:
            self._reload()
            self._records[record_id] = dict(record)
            self._persist()

    def seed(self, officials: Iterable[Official]) -> None:
        for official in officials:
            self.put_record(official_to_record(official))

    async def list_officials(self, filter: Mapping[str, Any]) -> List[Official]:
        records = await asyncio.to_thread(self._snapshot)
        return [
            official_from_record(record, fallback_id=str(index))
            for index, record in enumerate(records)
            if _matches(record, filter)
        ]

    def _snapshot(self) -> List[Dict[str, Any]]:
        with self._lock:
            try:
                self._reload()
            except (OSError, json.JSONDecodeError) as exc:
                raise RosterUnavailableError(
                    f"Roster table {self.name!r} could not be read: {exc}"
                ) from exc
            return [dict(record) for record in self._records.values()]

    def _persist(self) -> None:
        if not self.persistence_path:
            return
        self.persistence_path.write_text(json.dumps(self._records, indent=2, sort_keys=True))

    def _reload(self) -> None:
        if not self.persistence_path or not self.persistence_path.exists():
            return
        raw = self.persistence_path.read_text() or "{}"
        data = json.loads(raw)
        if not isinstance(data, dict):
            raise json.JSONDecodeError("Roster file must hold a JSON object", raw, 0)
        self._records = {str(key): dict(value) for key, value in data.items()}


class HttpRosterStore:
    """Queries a remote user directory for active government officials."""

    def __init__(self, base_url: str, timeout: float = 10.0, client: Optional[httpx.AsyncClient] = None) -> None:
        self._client = client or httpx.AsyncClient(base_url=base_url, timeout=timeout)

    async def list_officials(self, filter: Mapping[str, Any]) -> List[Official]:
        params = {key: _query_value(value) for key, value in filter.items()}
        try:
            response = await self._client.get("/officials", params=params)
            response.raise_for_status()
            payload = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            raise RosterUnavailableError(f"Roster lookup failed: {exc}") from exc

        items = payload.get("items", payload) if isinstance(payload, dict) else payload
        if not isinstance(items, list):
            raise RosterUnavailableError("Roster response did not contain a list of officials.")
        return [
            official_from_record(item, fallback_id=str(index))
            for index, item in enumerate(items)
            if isinstance(item, dict)
        ]

    async def aclose(self) -> None:
        await self._client.aclose()


def build_default_roster(settings: Optional[Settings] = None) -> RosterStore:
    """Select the roster backend named in the settings."""

    settings = settings or get_settings()
    backend = settings.roster_backend
    if backend == "file":
        path = Path(settings.roster_path) if settings.roster_path else None
        return JsonRosterTable(name="users", persistence_path=path)
    if backend == "http":
        if not settings.roster_url:
            raise ValueError("ROSTER_URL is required for the http roster backend.")
        return HttpRosterStore(base_url=settings.roster_url, timeout=settings.roster_timeout)
    if backend == "static":
        return StaticRosterStore()
    raise ValueError(f"Unsupported roster backend: {backend!r}")
