"""Pydantic schemas for stored items and the HTTP API layer."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Annotated, Any, Dict, List, Literal, Mapping, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, field_validator
from pydantic.alias_generators import to_camel

DEFAULT_ALERT_ID = "default"


def extract_alert_id(alert_sk: Optional[str]) -> str:
    """Return the alert id part of a ``"{stationId}#{alertId}"`` key."""
    if not alert_sk:
        return DEFAULT_ALERT_ID
    parts = alert_sk.split("#")
    if len(parts) > 1 and parts[1]:
        return parts[1]
    return DEFAULT_ALERT_ID


class AlertDefinition(BaseModel):
    """A monitored station, its inclusive level range and a chat to notify."""

    model_config = ConfigDict(
        populate_by_name=True, frozen=True, extra="ignore", coerce_numbers_to_str=True
    )

    station_id: str = Field(..., alias="stationId")
    min_level: float = Field(..., alias="minLevel")
    max_level: float = Field(..., alias="maxLevel")
    enabled: bool = False
    channel_target: str = Field(..., alias="telegramChatId")
    display_name: Optional[str] = Field(default=None, alias="name")
    sk: Optional[str] = None

    @field_validator("enabled", mode="before")
    @classmethod
    def _only_literal_true(cls, value: Any) -> bool:
        # "true", 1 and friends leave the alert disabled.
        return value is True

    @property
    def alert_id(self) -> str:
        return extract_alert_id(self.sk)

    @property
    def alert_sk(self) -> str:
        return self.sk or f"{self.station_id}#{DEFAULT_ALERT_ID}"


class EventStatus(str, Enum):
    """Outcome of one alert-processing attempt."""

    sent = "SENT"
    failed = "FAILED"
    skipped = "SKIPPED"


class _AuditEventBase(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, frozen=True, extra="ignore"
    )

    station_id: str
    alert_sk: Optional[str] = None
    level: float
    measurement_time_raw: Optional[str] = None
    measurement_time_iso: str
    matched: bool
    attempted_at: datetime


class SentEvent(_AuditEventBase):
    status: Literal["SENT"] = "SENT"
    sent_at: datetime
    message_id: int = Field(..., alias="telegramMessageId")


class FailedEvent(_AuditEventBase):
    status: Literal["FAILED"] = "FAILED"
    error: str = Field(..., min_length=1)


class SkippedEvent(_AuditEventBase):
    status: Literal["SKIPPED"] = "SKIPPED"


AuditEvent = Annotated[
    Union[SentEvent, FailedEvent, SkippedEvent], Field(discriminator="status")
]

_audit_event_adapter: TypeAdapter[AuditEvent] = TypeAdapter(AuditEvent)


class AuditRecord(BaseModel):
    """An audit event together with the keys it is stored under."""

    model_config = ConfigDict(frozen=True)

    pk: str
    sk: str
    ttl_epoch_seconds: Optional[int] = None
    event: AuditEvent

    def to_item(self) -> Dict[str, Any]:
        item: Dict[str, Any] = {"pk": self.pk, "sk": self.sk}
        item.update(self.event.model_dump(mode="json", by_alias=True, exclude_none=True))
        if self.ttl_epoch_seconds is not None:
            item["ttlEpochSeconds"] = self.ttl_epoch_seconds
        return item

    @classmethod
    def from_item(cls, item: Mapping[str, Any]) -> "AuditRecord":
        return cls(
            pk=item["pk"],
            sk=item["sk"],
            ttl_epoch_seconds=item.get("ttlEpochSeconds"),
            event=_audit_event_adapter.validate_python(dict(item)),
        )


class RunResponse(BaseModel):
    """Counters reported after a triggered run."""

    total: int = Field(..., ge=0)
    enabled: int = Field(..., ge=0)
    sent: int = Field(..., ge=0)
    failed: int = Field(..., ge=0)
    skipped: int = Field(..., ge=0)
    audit_failures: int = Field(..., ge=0)


class AuditEventList(BaseModel):
    """Audit trail for one alert partition, oldest sort key first."""

    pk: str
    events: List[AuditRecord] = Field(default_factory=list)
