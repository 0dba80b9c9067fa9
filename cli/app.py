from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import typer

from cli.client import ApiClient
from cli.config import CLIConfig, load_config
from cli.render import render_events, render_summary
from logging_config import configure_logging
from services.errors import AlertStoreError
from services.orchestrator import build_default_orchestrator


@dataclass
class CLIState:
    config: CLIConfig
    client: ApiClient


app = typer.Typer(
    help="Utilities for running and inspecting the water level alerts worker.",
    context_settings={"help_option_names": ["-h", "--help"]},
)


def _get_state(ctx: typer.Context) -> CLIState:
    state = ctx.obj
    if not isinstance(state, CLIState):
        typer.secho("CLI state is uninitialized.", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)
    return state


@app.callback()
def main(
    ctx: typer.Context,
    base_url: Optional[str] = typer.Option(
        None,
        "--base-url",
        "-b",
        help="Alerts API base URL (defaults to API_BASE_URL env or http://localhost:8000).",
    ),
    timeout: Optional[float] = typer.Option(
        None,
        "--timeout",
        help="Seconds to wait for an API response.",
    ),
) -> None:
    """Entry point for the CLI."""
    config = load_config(base_url=base_url, request_timeout=timeout)
    client = ApiClient(config)
    ctx.obj = CLIState(config=config, client=client)
    ctx.call_on_close(client.close)


@app.command("run")
def run_command() -> None:
    """Process all enabled alerts once in this process (for cron-style schedulers)."""
    configure_logging()
    orchestrator = build_default_orchestrator()
    try:
        summary = orchestrator.run()
    except AlertStoreError as exc:
        typer.secho(f"Run failed: {exc}", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1) from exc
    finally:
        orchestrator.close()
        build_default_orchestrator.cache_clear()

    render_summary(
        {
            "total": summary.total,
            "enabled": summary.enabled,
            "sent": summary.sent,
            "failed": summary.failed,
            "skipped": summary.skipped,
            "audit_failures": summary.audit_failures,
        }
    )


@app.command("trigger")
def trigger_command(ctx: typer.Context) -> None:
    """Ask a running service to process all enabled alerts once."""
    state = _get_state(ctx)
    typer.echo(f"Triggering run on {state.config.base_url} ...")
    payload = state.client.trigger_run()
    render_summary(payload)


@app.command("events")
def events_command(
    ctx: typer.Context,
    station_id: str = typer.Argument(..., help="IMGW station identifier."),
    alert_id: str = typer.Option("default", "--alert-id", "-a", help="Alert identifier."),
) -> None:
    """Show the audit trail recorded for one alert."""
    state = _get_state(ctx)
    payload = state.client.get_events(station_id, alert_id)
    render_events(payload)
