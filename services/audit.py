"""Builds and persists the audit trail of alert-processing attempts.

Every processed alert produces exactly one event. Events are stored under

* ``pk = "ALERT#{stationId}#{alertId}"``
* ``sk = "MEASUREMENT#{timestamp}#{random}"``

so the trail of one alert can be queried in measurement order. The random
suffix keeps keys distinct when the source repeats a timestamp or several
attempts target the same measurement.
"""

from __future__ import annotations

import logging
from datetime import timedelta
from typing import Optional, Union
from uuid import uuid4

from app.schemas import (
    AlertDefinition,
    AuditEvent,
    AuditRecord,
    FailedEvent,
    SentEvent,
    SkippedEvent,
    extract_alert_id,
)
from datastore.mock_dynamodb import MockDynamoDBTable
from models.records import Measurement
from models.timestamps import normalize_timestamp, utc_now
from services.errors import PersistenceError

logger = logging.getLogger(__name__)


def generate_partition_key(station_id: str, alert_id: str) -> str:
    return f"ALERT#{station_id}#{alert_id}"


def generate_sort_key(measurement_time: str) -> str:
    clean_timestamp = measurement_time.replace(":", "-").replace(".", "-")
    return f"MEASUREMENT#{clean_timestamp}#{uuid4().hex[:16]}"


def _common_fields(
    alert: AlertDefinition, measurement: Measurement, alert_sk: Optional[str]
) -> dict:
    return {
        "station_id": alert.station_id,
        "alert_sk": alert_sk if alert_sk is not None else alert.sk,
        "level": measurement.level,
        "measurement_time_raw": measurement.measurement_time,
        "measurement_time_iso": normalize_timestamp(measurement.measurement_time),
        "attempted_at": utc_now(),
    }


def sent_event(
    alert: AlertDefinition,
    measurement: Measurement,
    message_id: int,
    alert_sk: Optional[str] = None,
) -> SentEvent:
    fields = _common_fields(alert, measurement, alert_sk)
    return SentEvent(
        **fields,
        matched=True,
        sent_at=fields["attempted_at"],
        message_id=message_id,
    )


def failed_event(
    alert: AlertDefinition,
    measurement: Measurement,
    error: Union[BaseException, str],
    alert_sk: Optional[str] = None,
    matched: bool = True,
) -> FailedEvent:
    message = str(error) if isinstance(error, BaseException) else error
    if not message:
        message = type(error).__name__ if isinstance(error, BaseException) else "Unknown error"
    return FailedEvent(
        **_common_fields(alert, measurement, alert_sk),
        matched=matched,
        error=message,
    )


def skipped_event(
    alert: AlertDefinition,
    measurement: Measurement,
    alert_sk: Optional[str] = None,
    matched: bool = False,
) -> SkippedEvent:
    return SkippedEvent(
        **_common_fields(alert, measurement, alert_sk),
        matched=matched,
    )


class AuditRecorder:
    """Writes audit events to the events table."""

    def __init__(self, table: MockDynamoDBTable, ttl_days: Optional[int] = None) -> None:
        self.table = table
        self.ttl_days = ttl_days

    def persist(self, event: AuditEvent) -> AuditRecord:
        alert_id = extract_alert_id(event.alert_sk)
        ttl_epoch_seconds: Optional[int] = None
        if self.ttl_days:
            ttl_epoch_seconds = int((utc_now() + timedelta(days=self.ttl_days)).timestamp())

        record = AuditRecord(
            pk=generate_partition_key(event.station_id, alert_id),
            sk=generate_sort_key(event.measurement_time_iso),
            ttl_epoch_seconds=ttl_epoch_seconds,
            event=event,
        )

        try:
            self.table.put_item(record.to_item())
        except (OSError, TypeError, ValueError) as exc:
            raise PersistenceError(
                f"Failed to write audit event to table {self.table.name!r}: {exc}"
            ) from exc

        logger.debug(
            "Audit event written",
            extra={"audit_pk": record.pk, "audit_sk": record.sk, "status": event.status},
        )
        return record
