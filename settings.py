from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional, Tuple


_LOG_LEVEL_ENV = "LOG_LEVEL"
_TICK_SECONDS_ENV = "SIMULATION_TICK_SECONDS"
_AUTOSTART_ENV = "SIMULATION_AUTOSTART"
_SEED_ENV = "SIMULATION_SEED"
_SENSOR_SOURCE_ENV = "SENSOR_SOURCE"
_READINGS_CAPACITY_ENV = "READINGS_CAPACITY"
_ALERTS_CAPACITY_ENV = "ALERTS_CAPACITY"
_SUMMARY_INTERVAL_ENV = "DAILY_SUMMARY_INTERVAL_HOURS"
_ROSTER_BACKEND_ENV = "ROSTER_BACKEND"
_ROSTER_PATH_ENV = "ROSTER_PATH"
_ROSTER_URL_ENV = "ROSTER_URL"
_ROSTER_TIMEOUT_ENV = "ROSTER_TIMEOUT_SECONDS"
_MAILER_BACKEND_ENV = "MAILER_BACKEND"
_OUTBOX_PATH_ENV = "MAILER_OUTBOX_PATH"
_SMTP_HOST_ENV = "SMTP_HOST"
_SMTP_PORT_ENV = "SMTP_PORT"
_SMTP_USER_ENV = "SMTP_USER"
_SMTP_PASSWORD_ENV = "SMTP_PASSWORD"
_MAILER_TIMEOUT_ENV = "MAILER_TIMEOUT_SECONDS"
_ALERT_SENDER_ENV = "ALERT_SENDER"
_REPORT_SENDER_ENV = "REPORT_SENDER"
_CC_ADDRESSES_ENV = "ALERT_CC_ADDRESSES"

DEFAULT_CC_ADDRESSES = ("emergency@assam.gov.in", "water.monitoring@assam.gov.in")


@dataclass(frozen=True)
class Settings:
    log_level: str
    tick_seconds: float
    autostart: bool
    random_seed: Optional[int]
    sensor_source: str
    readings_capacity: int
    alerts_capacity: int
    summary_interval_hours: float
    roster_backend: str
    roster_path: Optional[str]
    roster_url: Optional[str]
    roster_timeout: float
    mailer_backend: str
    outbox_path: Optional[str]
    smtp_host: str
    smtp_port: int
    smtp_user: Optional[str]
    smtp_password: Optional[str]
    mailer_timeout: float
    alert_sender: str
    report_sender: str
    cc_addresses: Tuple[str, ...]


def _read_str_env(name: str, default: str) -> str:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    return candidate or default


def _read_optional_env(name: str, default: Optional[str]) -> Optional[str]:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    return candidate or None


def _read_positive_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    if not candidate:
        return default
    try:
        parsed = int(candidate)
    except ValueError:
        return default
    return parsed if parsed > 0 else default


def _read_float(name: str, default: float, allow_zero: bool = False) -> float:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    if not candidate:
        return default
    try:
        parsed = float(candidate)
    except ValueError:
        return default
    if parsed > 0 or (allow_zero and parsed == 0):
        return parsed
    return default


def _read_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip().lower()
    if candidate in {"1", "true", "yes", "on"}:
        return True
    if candidate in {"0", "false", "no", "off"}:
        return False
    return default


def _read_seed() -> Optional[int]:
    value = os.getenv(_SEED_ENV)
    if value is None:
        return None
    try:
        return int(value.strip())
    except ValueError:
        return None


def _read_log_level(default: str) -> str:
    value = os.getenv(_LOG_LEVEL_ENV)
    if value is None:
        return default
    candidate = value.strip()
    if not candidate:
        return default
    return candidate.upper()


def _read_addresses(name: str, default: Tuple[str, ...]) -> Tuple[str, ...]:
    value = os.getenv(name)
    if value is None:
        return default
    addresses = tuple(part.strip() for part in value.split(",") if part.strip())
    return addresses or default


@lru_cache
def get_settings() -> Settings:
    return Settings(
        log_level=_read_log_level("INFO"),
        tick_seconds=_read_float(_TICK_SECONDS_ENV, 10.0),
        autostart=_read_bool(_AUTOSTART_ENV, False),
        random_seed=_read_seed(),
        sensor_source=_read_str_env(_SENSOR_SOURCE_ENV, "simulated").lower(),
        readings_capacity=_read_positive_int(_READINGS_CAPACITY_ENV, 100),
        alerts_capacity=_read_positive_int(_ALERTS_CAPACITY_ENV, 10),
        summary_interval_hours=_read_float(_SUMMARY_INTERVAL_ENV, 24.0, allow_zero=True),
        roster_backend=_read_str_env(_ROSTER_BACKEND_ENV, "static").lower(),
        roster_path=_read_optional_env(_ROSTER_PATH_ENV, "./tmp/officials.json"),
        roster_url=_read_optional_env(_ROSTER_URL_ENV, None),
        roster_timeout=_read_float(_ROSTER_TIMEOUT_ENV, 10.0),
        mailer_backend=_read_str_env(_MAILER_BACKEND_ENV, "outbox").lower(),
        outbox_path=_read_optional_env(_OUTBOX_PATH_ENV, "./tmp/outbox"),
        smtp_host=_read_str_env(_SMTP_HOST_ENV, "localhost"),
        smtp_port=_read_positive_int(_SMTP_PORT_ENV, 587),
        smtp_user=_read_optional_env(_SMTP_USER_ENV, None),
        smtp_password=_read_optional_env(_SMTP_PASSWORD_ENV, None),
        mailer_timeout=_read_float(_MAILER_TIMEOUT_ENV, 15.0),
        alert_sender=_read_str_env(
            _ALERT_SENDER_ENV, "AquaAlert System <noreply@aquaalert.gov.in>"
        ),
        report_sender=_read_str_env(
            _REPORT_SENDER_ENV, "AquaAlert Daily Reports <reports@aquaalert.gov.in>"
        ),
        cc_addresses=_read_addresses(_CC_ADDRESSES_ENV, DEFAULT_CC_ADDRESSES),
    )
