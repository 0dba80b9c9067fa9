"""HTTP client for the IMGW hydrological data API."""

from __future__ import annotations

import logging
import math
from typing import Any, Callable, Mapping, Optional, Tuple

import httpx

from models.records import Measurement
from models.timestamps import isoformat_utc, utc_now
from services.errors import FormatError, RequestTimeoutError, TransportError
from settings import DEFAULT_FETCH_TIMEOUT_MS, DEFAULT_IMGW_BASE_URL

logger = logging.getLogger(__name__)

LEVEL_FIELD = "stan_wody"

TimestampExtractor = Callable[[Mapping[str, Any]], Optional[str]]


def _field_extractor(field_name: str) -> TimestampExtractor:
    def extract(record: Mapping[str, Any]) -> Optional[str]:
        value = record.get(field_name)
        if not value:
            return None
        return str(value)

    extract.__name__ = f"extract_{field_name}"
    return extract


# Tried in order; the first field carrying a non-empty value wins.
TIMESTAMP_EXTRACTORS: Tuple[TimestampExtractor, ...] = (
    _field_extractor("stan_wody_data_pomiaru"),
    _field_extractor("data_pomiaru"),
    _field_extractor("timestamp"),
    _field_extractor("date"),
)


def convert_to_number(value: Any) -> Optional[float]:
    """Convert a raw API value into a finite float, or ``None`` if impossible."""
    if value is None:
        return None

    if isinstance(value, bool):
        return float(value)

    if isinstance(value, (int, float)):
        number = float(value)
        return number if math.isfinite(number) else None

    if isinstance(value, str):
        trimmed = value.strip()
        if not trimmed or "_" in trimmed:
            return None
        try:
            number = float(trimmed)
        except ValueError:
            return None
        return number if math.isfinite(number) else None

    if isinstance(value, (list, tuple, dict, set)):
        return None

    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


def resolve_measurement_time(record: Mapping[str, Any]) -> str:
    for extractor in TIMESTAMP_EXTRACTORS:
        found = extractor(record)
        if found is not None:
            return found
    return isoformat_utc(utc_now())


def parse_measurement(record: Any) -> Optional[Measurement]:
    """Turn one API record into a :class:`Measurement`, or ``None`` if unusable."""
    if not isinstance(record, Mapping):
        return None

    raw_level = record.get(LEVEL_FIELD)
    if raw_level is None:
        return None

    level = convert_to_number(raw_level)
    if level is None:
        return None

    return Measurement(
        level=level,
        measurement_time=resolve_measurement_time(record),
        raw_data=record,
    )


class MeasurementClient:
    """Fetches the latest reading for a station."""

    def __init__(
        self,
        base_url: str = DEFAULT_IMGW_BASE_URL,
        timeout_ms: int = DEFAULT_FETCH_TIMEOUT_MS,
        client: Optional[httpx.Client] = None,
    ) -> None:
        self.base_url = base_url
        self.timeout_ms = timeout_ms
        self._owns_client = client is None
        self._client = client or httpx.Client(timeout=timeout_ms / 1000)

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    def fetch(self, station_id: str) -> Optional[Measurement]:
        url = f"{self.base_url}{station_id}"
        try:
            response = self._client.get(
                url,
                headers={"Accept": "application/json"},
                timeout=self.timeout_ms / 1000,
            )
        except httpx.TimeoutException as exc:
            raise RequestTimeoutError(f"Request timeout after {self.timeout_ms}ms") from exc
        except httpx.HTTPError as exc:
            raise TransportError(f"IMGW API request failed: {exc}") from exc

        if not response.is_success:
            raise TransportError(
                f"IMGW API returned status {response.status_code}: {response.reason_phrase}",
                status_code=response.status_code,
            )

        try:
            data = response.json()
        except ValueError as exc:
            raise FormatError("IMGW API returned a body that is not valid JSON") from exc

        if not isinstance(data, list):
            raise FormatError(f"Expected array response, got {type(data).__name__}")

        if not data:
            logger.info("No measurements returned", extra={"station_id": station_id})
            return None

        return parse_measurement(data[0])
