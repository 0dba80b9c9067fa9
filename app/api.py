"""HTTP route definitions for the service."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query, status

from app.schemas import DEFAULT_ALERT_ID, AuditEventList, AuditRecord, RunResponse
from datastore.mock_dynamodb import MockDynamoDBTable, build_events_table
from services.audit import generate_partition_key
from services.errors import AlertStoreError
from services.orchestrator import RunOrchestrator, build_default_orchestrator

router = APIRouter()


def get_orchestrator() -> RunOrchestrator:
    return build_default_orchestrator()


def get_events_table() -> MockDynamoDBTable:
    return build_events_table()


@router.post(
    "/runs",
    response_model=RunResponse,
    summary="Run one pass over all enabled alert definitions.",
)
def trigger_run(
    orchestrator: RunOrchestrator = Depends(get_orchestrator),
) -> RunResponse:
    try:
        summary = orchestrator.run()
    except AlertStoreError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=str(exc),
        ) from exc
    return RunResponse(
        total=summary.total,
        enabled=summary.enabled,
        sent=summary.sent,
        failed=summary.failed,
        skipped=summary.skipped,
        audit_failures=summary.audit_failures,
    )


@router.get(
    "/events/{station_id}",
    response_model=AuditEventList,
    summary="List audit events recorded for one alert.",
)
def list_events(
    station_id: str,
    alert_id: str = Query(DEFAULT_ALERT_ID, description="Alert identifier within the station."),
    table: MockDynamoDBTable = Depends(get_events_table),
) -> AuditEventList:
    pk = generate_partition_key(station_id, alert_id)
    records = [AuditRecord.from_item(item) for item in table.query(pk)]
    return AuditEventList(pk=pk, events=records)


@router.get(
    "/health",
    summary="Health check endpoint.",
    status_code=status.HTTP_200_OK,
)
async def healthcheck() -> dict[str, str]:
    return {"status": "ok"}


@router.get(
    "/",
    summary="Root endpoint mirrors health information.",
    status_code=status.HTTP_200_OK,
)
async def root() -> dict[str, str]:
    return {"status": "ok", "detail": "See /health for service status."}
