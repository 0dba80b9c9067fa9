from __future__ import annotations

import json
import threading
import time

import httpx
import pytest

from app.schemas import AlertDefinition
from models.records import ChannelMessage, Measurement
from services.errors import (
    ChannelApiError,
    ChannelProtocolError,
    ChannelTransportError,
    CredentialError,
)
from services.notifier import (
    UNKNOWN_TIME_PLACEHOLDER,
    CredentialCache,
    TelegramDispatcher,
    format_alert_message,
    parameter_store_loader,
)
from storage.parameter_store import MockParameterStore

TOKEN = "123456:ABCdefGhIJKlmNoPQRstuVWXyz0123456789"
API_BASE = "https://telegram.test"


def _dispatcher(handler, credentials: CredentialCache | None = None) -> TelegramDispatcher:
    return TelegramDispatcher(
        credentials if credentials is not None else CredentialCache(lambda: TOKEN),
        api_base_url=API_BASE,
        client=httpx.Client(transport=httpx.MockTransport(handler)),
    )


def _message() -> ChannelMessage:
    return ChannelMessage(destination="123456789", text="<b>Alert</b>")


def test_credential_cache_loads_once() -> None:
    calls: list[int] = []

    def loader() -> str:
        calls.append(1)
        return TOKEN

    cache = CredentialCache(loader)

    assert cache.get() == TOKEN
    assert cache.get() == TOKEN
    assert len(calls) == 1


def test_credential_cache_invalidate_forces_reload() -> None:
    values = iter(["first", "second"])
    cache = CredentialCache(lambda: next(values))

    assert cache.get() == "first"
    cache.invalidate()
    assert cache.get() == "second"


def test_credential_cache_does_not_cache_failures() -> None:
    attempts: list[int] = []

    def loader() -> str:
        attempts.append(1)
        if len(attempts) == 1:
            raise CredentialError("temporarily unavailable")
        return TOKEN

    cache = CredentialCache(loader)

    with pytest.raises(CredentialError):
        cache.get()
    assert cache.get() == TOKEN
    assert len(attempts) == 2


def test_credential_cache_coalesces_concurrent_loads() -> None:
    started = threading.Event()
    release = threading.Event()
    calls: list[int] = []

    def loader() -> str:
        calls.append(1)
        started.set()
        release.wait(timeout=2.0)
        return TOKEN

    cache = CredentialCache(loader)
    results: list[str] = []

    def worker() -> None:
        results.append(cache.get())

    threads = [threading.Thread(target=worker) for _ in range(4)]
    threads[0].start()
    assert started.wait(timeout=2.0)
    for thread in threads[1:]:
        thread.start()
    time.sleep(0.05)
    release.set()
    for thread in threads:
        thread.join(timeout=2.0)

    assert results == [TOKEN] * 4
    assert len(calls) == 1


def test_parameter_store_loader_reads_decrypted_value() -> None:
    store = MockParameterStore()
    store.put_parameter("/imgw-alerts/telegram-token", TOKEN)

    loader = parameter_store_loader(store, "/imgw-alerts/telegram-token")

    assert loader() == TOKEN


def test_parameter_store_loader_missing_parameter() -> None:
    loader = parameter_store_loader(MockParameterStore(), "/missing")

    with pytest.raises(CredentialError, match="/missing"):
        loader()


def test_parameter_store_loader_empty_value() -> None:
    store = MockParameterStore()
    store.put_parameter("/empty", "")

    with pytest.raises(CredentialError, match="has no value"):
        parameter_store_loader(store, "/empty")()


def test_send_posts_message_and_returns_id() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"ok": True, "result": {"message_id": 42}})

    message_id = _dispatcher(handler).send(_message())

    assert message_id == 42
    assert str(seen[0].url) == f"{API_BASE}/bot{TOKEN}/sendMessage"
    assert json.loads(seen[0].content) == {
        "chat_id": "123456789",
        "text": "<b>Alert</b>",
        "parse_mode": "HTML",
    }


def test_send_without_credential_source() -> None:
    dispatcher = TelegramDispatcher(
        None,
        api_base_url=API_BASE,
        client=httpx.Client(transport=httpx.MockTransport(lambda r: httpx.Response(200))),
    )

    with pytest.raises(CredentialError, match="not provided"):
        dispatcher.send(_message())


def test_send_wraps_loader_failures() -> None:
    def loader() -> str:
        raise RuntimeError("store offline")

    dispatcher = _dispatcher(
        lambda request: httpx.Response(200, json={"ok": True, "result": {"message_id": 1}}),
        credentials=CredentialCache(loader),
    )

    with pytest.raises(CredentialError, match="store offline"):
        dispatcher.send(_message())


def test_send_non_success_status() -> None:
    dispatcher = _dispatcher(lambda request: httpx.Response(403, text="Forbidden: bot was blocked"))

    with pytest.raises(ChannelTransportError, match="403: Forbidden: bot was blocked") as excinfo:
        dispatcher.send(_message())

    assert excinfo.value.status_code == 403


def test_send_network_failure_hides_token() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError(f"cannot connect to {request.url}", request=request)

    with pytest.raises(ChannelTransportError) as excinfo:
        _dispatcher(handler).send(_message())

    assert TOKEN not in str(excinfo.value)
    assert excinfo.value.__cause__ is None


def test_send_api_reports_failure() -> None:
    dispatcher = _dispatcher(
        lambda request: httpx.Response(200, json={"ok": False, "description": "chat not found"})
    )

    with pytest.raises(ChannelApiError, match="chat not found"):
        dispatcher.send(_message())


@pytest.mark.parametrize(
    "body",
    [
        {"ok": True},
        {"ok": True, "result": {}},
        {"ok": True, "result": {"message_id": "42"}},
    ],
)
def test_send_missing_message_id(body) -> None:
    dispatcher = _dispatcher(lambda request: httpx.Response(200, json=body))

    with pytest.raises(ChannelProtocolError, match="missing message_id"):
        dispatcher.send(_message())


def _alert(**overrides) -> AlertDefinition:
    fields = {
        "station_id": "149200090",
        "min_level": 235,
        "max_level": 260,
        "enabled": True,
        "channel_target": "123456789",
        "display_name": "Dobczyce (Raba)",
    }
    fields.update(overrides)
    return AlertDefinition(**fields)


def test_format_alert_message_contents() -> None:
    text = format_alert_message(
        _alert(),
        Measurement(level=245.5, measurement_time="2026-02-06T10:00:00Z"),
    )

    assert "<b>Alert: Dobczyce (Raba)</b>" in text
    assert "Poziom wody: <b>246 cm</b>" in text
    assert "Zakres alertu: 235 - 260 cm" in text
    assert "Czas pomiaru: 06.02.2026, 11:00" in text


def test_format_alert_message_falls_back_to_station_id() -> None:
    text = format_alert_message(
        _alert(display_name=None),
        Measurement(level=240.2, measurement_time="2026-07-01T10:00:00Z"),
    )

    assert "Alert: Station 149200090" in text
    assert "240 cm" in text
    assert "01.07.2026, 12:00" in text


def test_format_alert_message_never_fails_on_bad_timestamp() -> None:
    text = format_alert_message(
        _alert(),
        Measurement(level=245.0, measurement_time="not a date"),
    )

    assert f"Czas pomiaru: {UNKNOWN_TIME_PLACEHOLDER}" in text


@pytest.mark.parametrize("raw", ["9999-12-31T23:59:59Z", "0001-01-01T00:00:00+01:00"])
def test_format_alert_message_out_of_range_time_uses_placeholder(raw: str) -> None:
    text = format_alert_message(_alert(), Measurement(level=245.5, measurement_time=raw))

    assert f"Czas pomiaru: {UNKNOWN_TIME_PLACEHOLDER}" in text
