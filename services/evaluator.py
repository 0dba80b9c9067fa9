"""Threshold matching for alert definitions."""

from __future__ import annotations

from typing import Iterable, List

from app.schemas import AlertDefinition
from models.records import Measurement


class ThresholdEvaluator:
    """Pure range-matching component that can be unit tested in isolation."""

    def evaluate(self, alert: AlertDefinition, measurement: Measurement) -> bool:
        """Return ``True`` when ``alert`` is enabled and the level lies in its range.

        Both bounds are inclusive and compared exactly. A range whose bounds are
        inverted never matches.
        """
        if not alert.enabled:
            return False
        return alert.min_level <= measurement.level <= alert.max_level

    def filter_enabled(self, alerts: Iterable[AlertDefinition]) -> List[AlertDefinition]:
        return [alert for alert in alerts if alert.enabled is True]
