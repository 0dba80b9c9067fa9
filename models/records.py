"""Domain models shared across services."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, List


@dataclass(frozen=True, slots=True)
class Measurement:
    """A single water level reading for one station."""

    level: float
    measurement_time: str
    raw_data: Any = None


@dataclass(frozen=True, slots=True)
class ChannelMessage:
    """Outgoing notification addressed to one channel destination."""

    destination: str
    text: str


@dataclass
class RunSummary:
    """Outcome counters for one pass over the stored alert definitions."""

    total: int = 0
    enabled: int = 0
    sent: int = 0
    failed: int = 0
    skipped: int = 0
    audit_failures: int = 0
    events: List[Any] = field(default_factory=list)
