from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Optional

import httpx
import typer

from cli.config import CLIConfig


class ApiClient:
    """Minimal HTTP client for the sensor engine service."""

    def __init__(self, config: CLIConfig) -> None:
        self._config = config
        self._client = httpx.Client(base_url=config.base_url, timeout=config.timeout)

    def close(self) -> None:
        self._client.close()

    def start(self) -> Dict[str, Any]:
        return self._request("POST", "/simulation/start")

    def stop(self) -> Dict[str, Any]:
        return self._request("POST", "/simulation/stop")

    def status(self) -> Dict[str, Any]:
        return self._request("GET", "/simulation/status")

    def list_alerts(
        self,
        limit: int = 20,
        severity: Optional[str] = None,
        sensor_id: Optional[str] = None,
    ) -> Dict[str, Any]:
        params: Dict[str, Any] = {"limit": limit}
        if severity:
            params["severity"] = severity
        if sensor_id:
            params["sensor_id"] = sensor_id
        return self._request("GET", "/alerts", params=params)

    def test_alert(self, sensor_id: str, preset: str) -> Dict[str, Any]:
        return self._request(
            "POST",
            "/alerts/test",
            json={"sensor_id": sensor_id, "preset": preset},
        )

    def daily_report(self, window_start: datetime, window_end: datetime) -> Dict[str, Any]:
        return self._request(
            "POST",
            "/reports/daily",
            json={
                "window_start": window_start.isoformat(),
                "window_end": window_end.isoformat(),
            },
        )

    def _request(self, method: str, path: str, **kwargs: Any) -> Dict[str, Any]:
        try:
            response = self._client.request(method, path, **kwargs)
            if response.status_code == 404:
                raise typer.BadParameter(self._detail(response) or f"{path} was not found.")
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            self._handle_http_error(exc)
        except httpx.RequestError as exc:
            typer.secho(
                f"Could not reach {self._config.base_url}: {exc}",
                fg=typer.colors.RED,
                err=True,
            )
            raise typer.Exit(code=1)
        return response.json()

    @staticmethod
    def _detail(response: httpx.Response) -> Optional[str]:
        try:
            data = response.json()
        except ValueError:
            return response.text.strip() or None
        detail = data.get("detail") if isinstance(data, dict) else None
        return str(detail) if detail else None

    @classmethod
    def _handle_http_error(cls, exc: httpx.HTTPStatusError) -> None:
        detail = cls._detail(exc.response)
        message = (
            f"Request failed with status {exc.response.status_code}: {detail or 'no detail provided.'}"
        )
        typer.secho(message, fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)
