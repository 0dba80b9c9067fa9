from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional


DEFAULT_IMGW_BASE_URL = "https://danepubliczne.imgw.pl/api/data/hydro/id/"
DEFAULT_TELEGRAM_API_BASE_URL = "https://api.telegram.org"
DEFAULT_FETCH_TIMEOUT_MS = 10000

_ALERTS_TABLE_NAME_ENV = "ALERTS_TABLE_NAME"
_ALERTS_TABLE_PATH_ENV = "ALERTS_TABLE_PATH"
_ALERTS_PARTITION_ENV = "ALERTS_PARTITION"
_EVENTS_TABLE_NAME_ENV = "EVENTS_TABLE_NAME"
_EVENTS_TABLE_PATH_ENV = "EVENTS_TABLE_PATH"
_EVENT_TTL_DAYS_ENV = "EVENT_TTL_DAYS"
_PARAMETER_STORE_PATH_ENV = "PARAMETER_STORE_PATH"
_TELEGRAM_TOKEN_PARAM_ENV = "TELEGRAM_TOKEN_PARAM"
_TELEGRAM_API_BASE_URL_ENV = "TELEGRAM_API_BASE_URL"
_IMGW_BASE_URL_ENV = "IMGW_BASE_URL"
_FETCH_TIMEOUT_ENV = "FETCH_TIMEOUT_MS"
_LOG_LEVEL_ENV = "LOG_LEVEL"


@dataclass(frozen=True)
class Settings:
    alerts_table_name: str
    alerts_table_path: Optional[str]
    alerts_partition: str
    events_table_name: str
    events_table_path: Optional[str]
    event_ttl_days: Optional[int]
    parameter_store_path: Optional[str]
    telegram_token_param: Optional[str]
    telegram_api_base_url: str
    imgw_base_url: str
    fetch_timeout_ms: int
    log_level: str


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


def _read_positive_int(name: str, default: Optional[int]) -> Optional[int]:
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


def _read_log_level(default: str) -> str:
    value = os.getenv(_LOG_LEVEL_ENV)
    if value is None:
        return default
    candidate = value.strip()
    if not candidate:
        return default
    return candidate.upper()


@lru_cache
def get_settings() -> Settings:
    return Settings(
        alerts_table_name=_read_str_env(_ALERTS_TABLE_NAME_ENV, "WaterAlerts"),
        alerts_table_path=_read_optional_env(_ALERTS_TABLE_PATH_ENV, "./tmp/alerts.json"),
        alerts_partition=_read_str_env(_ALERTS_PARTITION_ENV, "ALERT"),
        events_table_name=_read_str_env(_EVENTS_TABLE_NAME_ENV, "WaterAlertEvents"),
        events_table_path=_read_optional_env(_EVENTS_TABLE_PATH_ENV, "./tmp/events.json"),
        event_ttl_days=_read_positive_int(_EVENT_TTL_DAYS_ENV, None),
        parameter_store_path=_read_optional_env(
            _PARAMETER_STORE_PATH_ENV, "./tmp/parameters.json"
        ),
        telegram_token_param=_read_optional_env(_TELEGRAM_TOKEN_PARAM_ENV, None),
        telegram_api_base_url=_read_str_env(
            _TELEGRAM_API_BASE_URL_ENV, DEFAULT_TELEGRAM_API_BASE_URL
        ).rstrip("/"),
        imgw_base_url=_read_str_env(_IMGW_BASE_URL_ENV, DEFAULT_IMGW_BASE_URL),
        fetch_timeout_ms=_read_positive_int(_FETCH_TIMEOUT_ENV, DEFAULT_FETCH_TIMEOUT_MS)
        or DEFAULT_FETCH_TIMEOUT_MS,
        log_level=_read_log_level("INFO"),
    )
