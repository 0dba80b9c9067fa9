from __future__ import annotations

from typing import Iterable

from datastore.mock_dynamodb import build_alerts_table, build_events_table
from services.orchestrator import build_default_orchestrator
from settings import DEFAULT_FETCH_TIMEOUT_MS, get_settings
from storage.parameter_store import build_default_parameter_store


def _clear_caches(caches: Iterable) -> None:
    for cache in caches:
        cache.cache_clear()


CACHES = (
    get_settings,
    build_alerts_table,
    build_events_table,
    build_default_parameter_store,
    build_default_orchestrator,
)


def test_environment_overrides_apply(monkeypatch, tmp_path) -> None:
    alerts_path = tmp_path / "alerts.json"
    events_path = tmp_path / "events.json"

    monkeypatch.setenv("ALERTS_TABLE_NAME", "custom-alerts")
    monkeypatch.setenv("ALERTS_TABLE_PATH", str(alerts_path))
    monkeypatch.setenv("EVENTS_TABLE_NAME", "custom-events")
    monkeypatch.setenv("EVENTS_TABLE_PATH", str(events_path))
    monkeypatch.setenv("PARAMETER_STORE_PATH", str(tmp_path / "parameters.json"))
    monkeypatch.setenv("EVENT_TTL_DAYS", "30")
    monkeypatch.setenv("TELEGRAM_TOKEN_PARAM", "/imgw-alerts/telegram-token")
    monkeypatch.setenv("IMGW_BASE_URL", "https://imgw.test/id/")
    monkeypatch.setenv("FETCH_TIMEOUT_MS", "2500")
    _clear_caches(CACHES)

    orchestrator = build_default_orchestrator()

    try:
        assert orchestrator.alerts_table.name == "custom-alerts"
        assert orchestrator.alerts_table.persistence_path == alerts_path
        assert orchestrator.recorder.table.name == "custom-events"
        assert orchestrator.recorder.table.persistence_path == events_path
        assert orchestrator.recorder.ttl_days == 30
        assert orchestrator.measurement_client.base_url == "https://imgw.test/id/"
        assert orchestrator.measurement_client.timeout_ms == 2500
        assert orchestrator.dispatcher.credentials is not None
    finally:
        orchestrator.close()
        _clear_caches(CACHES)


def test_invalid_values_fall_back_to_defaults(monkeypatch, tmp_path) -> None:
    monkeypatch.setenv("ALERTS_TABLE_PATH", str(tmp_path / "alerts.json"))
    monkeypatch.setenv("EVENTS_TABLE_PATH", str(tmp_path / "events.json"))
    monkeypatch.setenv("PARAMETER_STORE_PATH", str(tmp_path / "parameters.json"))
    monkeypatch.setenv("FETCH_TIMEOUT_MS", "soon")
    monkeypatch.setenv("EVENT_TTL_DAYS", "-1")
    monkeypatch.delenv("TELEGRAM_TOKEN_PARAM", raising=False)
    _clear_caches(CACHES)

    try:
        settings = get_settings()
        assert settings.fetch_timeout_ms == DEFAULT_FETCH_TIMEOUT_MS
        assert settings.event_ttl_days is None
        assert settings.telegram_token_param is None

        orchestrator = build_default_orchestrator()
        assert orchestrator.dispatcher.credentials is None
        orchestrator.close()
    finally:
        _clear_caches(CACHES)
