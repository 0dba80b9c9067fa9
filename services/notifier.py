"""Telegram notification delivery and message formatting."""

from __future__ import annotations

import html
import logging
from concurrent.futures import Future
from decimal import ROUND_HALF_UP, Decimal
from threading import Lock
from typing import Any, Callable, Optional
from zoneinfo import ZoneInfo

import httpx

from app.schemas import AlertDefinition
from models.records import ChannelMessage, Measurement
from models.timestamps import parse_timestamp
from services.errors import (
    ChannelApiError,
    ChannelProtocolError,
    ChannelTransportError,
    CredentialError,
)
from settings import DEFAULT_TELEGRAM_API_BASE_URL
from storage.parameter_store import MockParameterStore

logger = logging.getLogger(__name__)

DISPLAY_TIMEZONE = ZoneInfo("Europe/Warsaw")
UNKNOWN_TIME_PLACEHOLDER = "nieznany"


class CredentialCache:
    """Caches one secret for the lifetime of the process.

    A successful load is kept until :meth:`invalidate`. Callers arriving while a
    load is in flight wait on the same load instead of starting another one.
    Failed loads are not cached.
    """

    def __init__(self, loader: Callable[[], str]) -> None:
        self._loader = loader
        self._lock = Lock()
        self._value: Optional[str] = None
        self._pending: Optional[Future[str]] = None

    def get(self) -> str:
        with self._lock:
            if self._value is not None:
                return self._value
            pending = self._pending
            owner = pending is None
            if pending is None:
                pending = Future()
                self._pending = pending

        if not owner:
            return pending.result()

        try:
            value = self._loader()
        except Exception as exc:
            with self._lock:
                if self._pending is pending:
                    self._pending = None
            pending.set_exception(exc)
            raise

        with self._lock:
            if self._pending is pending:
                self._value = value
                self._pending = None
        pending.set_result(value)
        return value

    def invalidate(self) -> None:
        with self._lock:
            self._value = None
            self._pending = None


def parameter_store_loader(store: MockParameterStore, name: str) -> Callable[[], str]:
    """Build a loader reading the decrypted value of parameter ``name``."""

    def load() -> str:
        try:
            parameter = store.get_parameter(name, with_decryption=True)
        except KeyError as exc:
            raise CredentialError(
                f"Failed to get bot token from parameter store: parameter {name} not found"
            ) from exc
        if not parameter.value:
            raise CredentialError(
                f"Failed to get bot token from parameter store: parameter {name} has no value"
            )
        return parameter.value

    return load


def _round_half_up(value: float) -> int:
    return int(Decimal(repr(value)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def format_measurement_time(raw: str) -> str:
    parsed = parse_timestamp(raw) if raw else None
    if parsed is None:
        return UNKNOWN_TIME_PLACEHOLDER
    try:
        local = parsed.astimezone(DISPLAY_TIMEZONE)
    except (OverflowError, ValueError):
        return UNKNOWN_TIME_PLACEHOLDER
    return local.strftime("%d.%m.%Y, %H:%M")


def _format_bound(value: float) -> str:
    return str(int(value)) if float(value).is_integer() else str(value)


def format_alert_message(alert: AlertDefinition, measurement: Measurement) -> str:
    station_name = alert.display_name or f"Station {alert.station_id}"
    return (
        f"🌊 <b>Alert: {html.escape(station_name)}</b>\n\n"
        f"Poziom wody: <b>{_round_half_up(measurement.level)} cm</b>\n"
        f"Zakres alertu: {_format_bound(alert.min_level)} - {_format_bound(alert.max_level)} cm\n"
        f"Czas pomiaru: {format_measurement_time(measurement.measurement_time)}"
    )


class TelegramDispatcher:
    """Sends messages through the Telegram Bot API. Never retries."""

    def __init__(
        self,
        credentials: Optional[CredentialCache],
        api_base_url: str = DEFAULT_TELEGRAM_API_BASE_URL,
        timeout: float = 10.0,
        client: Optional[httpx.Client] = None,
    ) -> None:
        self.credentials = credentials
        self.api_base_url = api_base_url.rstrip("/")
        self._owns_client = client is None
        self._client = client or httpx.Client(timeout=timeout)

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    def send(self, message: ChannelMessage) -> int:
        token = self._get_token()
        payload = {
            "chat_id": message.destination,
            "text": message.text,
            "parse_mode": "HTML",
        }

        try:
            response = self._client.post(
                f"{self.api_base_url}/bot{token}/sendMessage",
                json=payload,
            )
        except httpx.HTTPError as exc:
            # The request URL embeds the bot token, so only the failure type is reported.
            raise ChannelTransportError(
                f"Telegram API request failed: {exc.__class__.__name__}"
            ) from None

        if not response.is_success:
            raise ChannelTransportError(
                f"Telegram API returned status {response.status_code}: {response.text}",
                status_code=response.status_code,
            )

        try:
            data: Any = response.json()
        except ValueError as exc:
            raise ChannelProtocolError("Invalid response from Telegram API: body is not JSON") from exc

        if not isinstance(data, dict) or data.get("ok") is not True:
            raise ChannelApiError(f"Telegram API returned error: {data}")

        result = data.get("result")
        message_id = result.get("message_id") if isinstance(result, dict) else None
        if not isinstance(message_id, int) or isinstance(message_id, bool):
            raise ChannelProtocolError("Invalid response from Telegram API: missing message_id")

        logger.debug(
            "Telegram message accepted",
            extra={"message_id": message_id},
        )
        return message_id

    def _get_token(self) -> str:
        if self.credentials is None:
            raise CredentialError("Telegram token parameter name not provided")
        try:
            return self.credentials.get()
        except CredentialError:
            raise
        except Exception as exc:
            raise CredentialError(f"Failed to get bot token: {exc}") from exc
