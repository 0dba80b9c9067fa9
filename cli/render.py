from __future__ import annotations

from typing import Any, Dict, Iterable

import typer


def echo_heading(text: str) -> None:
    typer.secho(text, bold=True)


def echo_key_values(pairs: Iterable[tuple[str, Any]]) -> None:
    for key, value in pairs:
        typer.echo(f"{key}: {value}")


def render_summary(payload: Dict[str, Any]) -> None:
    echo_heading("Run Summary")
    echo_key_values(
        (key, payload.get(key))
        for key in ("total", "enabled", "sent", "failed", "skipped", "audit_failures")
    )


def render_events(payload: Dict[str, Any]) -> None:
    echo_heading(f"Audit Events for {payload.get('pk')}")
    events = payload.get("events") or []
    if not events:
        typer.echo("No events recorded.")
        return

    for record in events:
        event = record.get("event") or {}
        line = (
            f"  - {event.get('attemptedAt')} {event.get('status')}"
            f" level={event.get('level')} matched={event.get('matched')}"
        )
        if event.get("telegramMessageId") is not None:
            line += f" message_id={event.get('telegramMessageId')}"
        if event.get("error"):
            line += f" error={event.get('error')}"
        typer.echo(line)
