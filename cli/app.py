from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Optional

import typer

from cli.client import ApiClient
from cli.config import CLIConfig, load_config
from cli.render import (
    render_alerts,
    render_control,
    render_report,
    render_status,
    render_test_alert,
)


class Preset(str, Enum):
    critical = "critical"
    warning = "warning"
    maintenance = "maintenance"


class SeverityFilter(str, Enum):
    critical = "critical"
    warning = "warning"


@dataclass
class CLIState:
    config: CLIConfig
    client: ApiClient


app = typer.Typer(
    help="Utilities for driving the water-quality sensor engine.",
    context_settings={"help_option_names": ["-h", "--help"]},
)


def _get_state(ctx: typer.Context) -> CLIState:
    state = ctx.obj
    if not isinstance(state, CLIState):
        raise typer.Exit(code=1, message="CLI state is uninitialized.")
    return state


@app.callback()
def main(
    ctx: typer.Context,
    base_url: Optional[str] = typer.Option(
        None,
        "--base-url",
        "-b",
        help="Engine API base URL (defaults to API_BASE_URL env or http://localhost:8000).",
    ),
    timeout: Optional[float] = typer.Option(
        None,
        "--timeout",
        help="Seconds to wait for each API request.",
    ),
) -> None:
    """Entry point for the CLI."""
    config = load_config(base_url=base_url, timeout=timeout)
    client = ApiClient(config)
    ctx.obj = CLIState(config=config, client=client)
    ctx.call_on_close(client.close)


@app.command("start")
def start_command(ctx: typer.Context) -> None:
    """Start the simulation loop."""
    render_control(_get_state(ctx).client.start())


@app.command("stop")
def stop_command(ctx: typer.Context) -> None:
    """Stop the simulation loop."""
    render_control(_get_state(ctx).client.stop())


@app.command("status")
def status_command(ctx: typer.Context) -> None:
    """Show loop state, sensor counters and recent alerts."""
    render_status(_get_state(ctx).client.status())


@app.command("alerts")
def alerts_command(
    ctx: typer.Context,
    severity: Optional[SeverityFilter] = typer.Option(None, "--severity", help="Only this severity."),
    sensor_id: Optional[str] = typer.Option(None, "--sensor-id", help="Only this sensor."),
    limit: int = typer.Option(20, "--limit", min=1, max=100, help="Maximum alerts to list."),
) -> None:
    """List recent alerts, newest first."""
    state = _get_state(ctx)
    payload = state.client.list_alerts(
        limit=limit,
        severity=severity.value if severity else None,
        sensor_id=sensor_id,
    )
    render_alerts(payload)


@app.command("test-alert")
def test_alert_command(
    ctx: typer.Context,
    sensor_id: str = typer.Argument(..., help="Sensor to raise the alert for."),
    preset: Preset = typer.Option(Preset.critical, "--preset", help="Canned reading to submit."),
) -> None:
    """Push a canned reading through the alert pipeline."""
    state = _get_state(ctx)
    typer.echo(f"Submitting {preset.value} test reading for {sensor_id} ...")
    render_test_alert(state.client.test_alert(sensor_id, preset.value))


@app.command("daily-report")
def daily_report_command(
    ctx: typer.Context,
    hours: float = typer.Option(24.0, "--hours", min=0.1, help="Length of the window ending now."),
) -> None:
    """Compile and send the daily summary for the last HOURS hours."""
    state = _get_state(ctx)
    window_end = datetime.now(timezone.utc)
    window_start = window_end - timedelta(hours=hours)
    payload = state.client.daily_report(window_start, window_end)
    render_report(payload)
    if not payload.get("success"):
        raise typer.Exit(code=1)
