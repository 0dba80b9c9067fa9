"""Run orchestration: load alerts, then fetch, evaluate, notify and audit each one."""

from __future__ import annotations

import logging
from functools import lru_cache
from typing import List, Optional

from pydantic import ValidationError

from app.schemas import AlertDefinition, AuditEvent
from datastore.mock_dynamodb import MockDynamoDBTable, build_alerts_table, build_events_table
from models.records import ChannelMessage, Measurement, RunSummary
from models.timestamps import isoformat_utc, utc_now
from services import audit
from services.audit import AuditRecorder
from services.errors import AlertStoreError, PersistenceError
from services.evaluator import ThresholdEvaluator
from services.measurement_client import MeasurementClient
from services.notifier import (
    CredentialCache,
    TelegramDispatcher,
    format_alert_message,
    parameter_store_loader,
)
from settings import get_settings
from storage.parameter_store import build_default_parameter_store

logger = logging.getLogger(__name__)

PLACEHOLDER_LEVEL = -1.0


def _placeholder_measurement() -> Measurement:
    return Measurement(level=PLACEHOLDER_LEVEL, measurement_time=isoformat_utc(utc_now()))


class RunOrchestrator:
    """Drives every enabled alert definition through one processing pass."""

    def __init__(
        self,
        alerts_table: MockDynamoDBTable,
        recorder: AuditRecorder,
        measurement_client: MeasurementClient,
        dispatcher: TelegramDispatcher,
        evaluator: Optional[ThresholdEvaluator] = None,
        alerts_partition: str = "ALERT",
    ) -> None:
        self.alerts_table = alerts_table
        self.recorder = recorder
        self.measurement_client = measurement_client
        self.dispatcher = dispatcher
        self.evaluator = evaluator or ThresholdEvaluator()
        self.alerts_partition = alerts_partition

    def run(self) -> RunSummary:
        """Process all enabled alerts once.

        Only a failure to load the alert definitions escapes this method; every
        per-alert failure ends up in the audit trail and the logs.
        """
        logger.info("Worker started")
        alerts = self._load_alerts()
        summary = RunSummary(total=len(alerts))
        logger.info("Found alert definitions", extra={"alert_count": len(alerts)})

        enabled = self.evaluator.filter_enabled(alerts)
        summary.enabled = len(enabled)
        if not enabled:
            logger.info("No enabled alerts to process")
            return summary

        logger.info("Processing enabled alerts", extra={"enabled_count": len(enabled)})
        for alert in enabled:
            try:
                self._process_alert(alert, summary)
            except Exception as exc:
                self._record_unexpected_failure(alert, exc, summary)

        logger.info(
            "Worker completed",
            extra={
                "sent": summary.sent,
                "failed": summary.failed,
                "skipped": summary.skipped,
                "audit_failures": summary.audit_failures,
            },
        )
        return summary

    def close(self) -> None:
        self.measurement_client.close()
        self.dispatcher.close()

    def _load_alerts(self) -> List[AlertDefinition]:
        try:
            items = self.alerts_table.query(self.alerts_partition)
        except Exception as exc:
            logger.exception(
                "Fatal error loading alert definitions", extra={"error": str(exc)}
            )
            raise AlertStoreError(
                f"Failed to load alerts from table {self.alerts_table.name!r}: {exc}"
            ) from exc

        alerts: List[AlertDefinition] = []
        for item in items:
            try:
                alerts.append(AlertDefinition.model_validate(item))
            except ValidationError as exc:
                logger.warning(
                    "Skipping invalid alert definition",
                    extra={"alert_sk": item.get("sk"), "error": str(exc)},
                )
        return alerts

    def _process_alert(self, alert: AlertDefinition, summary: RunSummary) -> None:
        context = {
            "station_id": alert.station_id,
            "alert_sk": alert.alert_sk,
            "alert_name": alert.display_name,
        }
        logger.info("Processing alert", extra=context)

        try:
            measurement = self.measurement_client.fetch(alert.station_id)
            if measurement is None:
                logger.info(
                    "No measurement data available",
                    extra={**context, "status": "SKIPPED"},
                )
                self._record(
                    audit.skipped_event(alert, _placeholder_measurement(), alert.alert_sk),
                    summary,
                    context,
                )
                return

            matched = self.evaluator.evaluate(alert, measurement)
        except Exception as exc:
            logger.error(
                "Error processing alert",
                exc_info=exc,
                extra={**context, "status": "FAILED", "error": str(exc)},
            )
            self._record(
                audit.failed_event(
                    alert, _placeholder_measurement(), exc, alert.alert_sk, matched=False
                ),
                summary,
                context,
            )
            return

        context["level"] = measurement.level
        if not matched:
            logger.info(
                "Alert not matched (level out of range)",
                extra={**context, "matched": False, "status": "SKIPPED"},
            )
            self._record(
                audit.skipped_event(alert, measurement, alert.alert_sk, matched=False),
                summary,
                context,
            )
            return

        logger.info(
            "Alert matched, sending notification",
            extra={**context, "matched": True},
        )
        try:
            message_id = self.dispatcher.send(
                ChannelMessage(
                    destination=alert.channel_target,
                    text=format_alert_message(alert, measurement),
                )
            )
        except Exception as exc:
            logger.error(
                "Failed to send notification",
                exc_info=exc,
                extra={**context, "matched": True, "status": "FAILED", "error": str(exc)},
            )
            self._record(
                audit.failed_event(alert, measurement, exc, alert.alert_sk),
                summary,
                context,
            )
            return

        logger.info(
            "Notification sent",
            extra={**context, "matched": True, "status": "SENT", "message_id": message_id},
        )
        self._record(
            audit.sent_event(alert, measurement, message_id, alert.alert_sk),
            summary,
            context,
        )

    def _record_unexpected_failure(
        self, alert: AlertDefinition, exc: Exception, summary: RunSummary
    ) -> None:
        context = {"station_id": alert.station_id, "alert_sk": alert.alert_sk}
        logger.error(
            "Unexpected error processing alert",
            exc_info=exc,
            extra={**context, "status": "FAILED", "error": str(exc)},
        )
        self._record(
            audit.failed_event(
                alert, _placeholder_measurement(), exc, alert.alert_sk, matched=False
            ),
            summary,
            context,
        )

    def _record(self, event: AuditEvent, summary: RunSummary, context: dict) -> None:
        if event.status == "SENT":
            summary.sent += 1
        elif event.status == "FAILED":
            summary.failed += 1
        else:
            summary.skipped += 1

        try:
            self.recorder.persist(event)
        except PersistenceError as exc:
            summary.audit_failures += 1
            logger.error(
                "Failed to write audit event",
                extra={**context, "status": event.status, "error": str(exc)},
            )
            return
        summary.events.append(event)


@lru_cache
def build_default_orchestrator() -> RunOrchestrator:
    """Factory that wires the orchestrator with the configured stores and clients."""
    settings = get_settings()

    credentials: Optional[CredentialCache] = None
    if settings.telegram_token_param:
        credentials = CredentialCache(
            parameter_store_loader(
                build_default_parameter_store(), settings.telegram_token_param
            )
        )

    return RunOrchestrator(
        alerts_table=build_alerts_table(),
        recorder=AuditRecorder(build_events_table(), ttl_days=settings.event_ttl_days),
        measurement_client=MeasurementClient(
            base_url=settings.imgw_base_url,
            timeout_ms=settings.fetch_timeout_ms,
        ),
        dispatcher=TelegramDispatcher(
            credentials,
            api_base_url=settings.telegram_api_base_url,
        ),
        evaluator=ThresholdEvaluator(),
        alerts_partition=settings.alerts_partition,
    )
