from __future__ import annotations

from typing import Any, Dict, Iterable, List

import typer


def echo_heading(text: str) -> None:
    typer.secho(text, bold=True)


def echo_key_values(pairs: Iterable[tuple[str, Any]]) -> None:
    for key, value in pairs:
        typer.echo(f"{key}: {value}")


def _severity_color(severity: Any) -> str:
    return typer.colors.RED if severity == "critical" else typer.colors.YELLOW


def render_control(payload: Dict[str, Any]) -> None:
    color = typer.colors.GREEN if payload.get("changed") else typer.colors.YELLOW
    typer.secho(str(payload.get("message")), fg=color)


def render_alert_lines(alerts: List[Dict[str, Any]]) -> None:
    if not alerts:
        typer.echo("No alerts recorded.")
        return
    for alert in alerts:
        location = alert.get("location") or {}
        findings = alert.get("findings") or []
        typer.secho(
            (
                f"  - [{str(alert.get('severity')).upper()}] {alert.get('id')} "
                f"{alert.get('sensor_id')} ({location.get('village')}) "
                f"{alert.get('timestamp')} status={alert.get('status')}"
            ),
            fg=_severity_color(alert.get("severity")),
        )
        for finding in findings:
            typer.echo(f"      {finding.get('kind')}: {finding.get('message')}")


def render_status(payload: Dict[str, Any]) -> None:
    echo_heading("Simulation Status")
    echo_key_values(
        [
            ("running", payload.get("is_running")),
            ("ticks", payload.get("tick_count")),
            ("tick_seconds", payload.get("tick_seconds")),
            ("recent_readings", len(payload.get("recent_readings") or [])),
        ]
    )

    typer.echo()
    echo_heading("Sensors")
    for sensor in payload.get("sensors") or []:
        last = sensor.get("last_reading") or {}
        params = last.get("parameters") or {}
        typer.echo(
            f"  - {sensor.get('id')}: readings={sensor.get('total_readings')} "
            f"alerts={sensor.get('alerts_sent')} "
            f"pH={params.get('ph', '-')} E.coli={params.get('ecoli', '-')} "
            f"turbidity={params.get('turbidity', '-')}"
        )

    typer.echo()
    echo_heading("Recent Alerts")
    render_alert_lines(payload.get("recent_alerts") or [])


def render_alerts(payload: Dict[str, Any]) -> None:
    echo_heading("Alerts")
    render_alert_lines(payload.get("alerts") or [])


def render_test_alert(payload: Dict[str, Any]) -> None:
    echo_heading("Test Alert")
    findings = payload.get("findings") or []
    alert = payload.get("alert")
    dispatch = payload.get("dispatch") or {}
    echo_key_values(
        [
            ("findings", len(findings)),
            ("severity", alert.get("severity") if alert else "none"),
            ("recipients", dispatch.get("recipient_count", 0)),
        ]
    )
    for finding in findings:
        typer.echo(f"  - {finding.get('kind')}: {finding.get('message')}")
    for send in dispatch.get("sends") or []:
        if not send.get("success"):
            typer.secho(
                f"  ! {send.get('severity')} email failed: {send.get('error')}",
                fg=typer.colors.RED,
            )


def render_report(payload: Dict[str, Any]) -> None:
    echo_heading("Daily Summary")
    stats = payload.get("stats") or {}
    send_result = payload.get("send_result") or {}
    echo_key_values(
        [
            ("window", f"{payload.get('window_start')} - {payload.get('window_end')}"),
            ("overall_status", payload.get("overall_status")),
            ("readings", stats.get("total_readings")),
            ("alerts", stats.get("total_alerts")),
            ("critical", stats.get("critical_alerts")),
            ("warning", stats.get("warning_alerts")),
            ("recipients", send_result.get("recipient_count")),
        ]
    )
    if send_result.get("success"):
        typer.secho(f"Sent as {send_result.get('message_id')}", fg=typer.colors.GREEN)
    else:
        typer.secho(f"Send failed: {send_result.get('error')}", fg=typer.colors.RED)
