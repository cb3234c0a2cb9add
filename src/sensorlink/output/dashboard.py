"""Rich Live dashboard for a running telemetry stream.

The dashboard is a pull-model renderable: each ``rich.live.Live`` refresh
reads the client's current snapshot, so nothing here runs per message.
"""

from __future__ import annotations

import time
from typing import TYPE_CHECKING

from rich.console import Group
from rich.panel import Panel
from rich.table import Table

from sensorlink.output.rich_output import (
    build_device_table,
    build_energy_table,
    build_snapshot_table,
    status_markup,
)
from sensorlink.stream.energy import is_pzem_channel

if TYPE_CHECKING:
    from pathlib import Path

    from rich.console import RenderableType

    from sensorlink.stream.client import TelemetryStreamClient
    from sensorlink.stream.energy import EnergyMeter


def _format_uptime(seconds: float) -> str:
    minutes, secs = divmod(int(seconds), 60)
    hours, minutes = divmod(minutes, 60)
    return f"{hours:d}:{minutes:02d}:{secs:02d}"


class StreamDashboard:
    """Header + sensor table + (for PZEM channels) energy gauges."""

    def __init__(
        self,
        client: TelemetryStreamClient,
        *,
        meter: EnergyMeter | None = None,
        log_path: Path | None = None,
        show_devices: bool = False,
    ) -> None:
        self._client = client
        self._meter = meter
        self._log_path = log_path
        self._show_devices = show_devices
        self._started = time.monotonic()

    def _header(self) -> Panel:
        c = self._client
        grid = Table.grid(padding=(0, 2))
        grid.add_column(style="bold")
        grid.add_column()
        grid.add_row("Status", status_markup(c.connection_status))
        grid.add_row("Device", f"[cyan]{c.device_id or '—'}[/cyan]")
        grid.add_row("Endpoint", f"[dim]{c.endpoint_url or '—'}[/dim]")
        grid.add_row(
            "Messages",
            f"{c.message_count} received, {c.dropped_count} dropped, {c.sample_count} samples",
        )
        if c.attempt:
            grid.add_row("Retry", f"[yellow]attempt {c.attempt}[/yellow]")
        grid.add_row("Uptime", _format_uptime(time.monotonic() - self._started))
        if self._log_path is not None:
            grid.add_row("CSV log", f"[dim]{self._log_path}[/dim]")
        return Panel(grid, title="sensorlink stream", subtitle="Ctrl+C or q to quit", expand=False)

    def __rich__(self) -> RenderableType:
        snapshot = self._client.snapshot()
        parts: list[RenderableType] = [self._header()]

        if snapshot:
            parts.append(build_snapshot_table(snapshot, title=f"Last {self._client.capacity}"))
        else:
            parts.append("[dim]No sensor data yet — waiting for heartbeat...[/dim]")

        if self._meter is not None and any(is_pzem_channel(sid) for sid in snapshot):
            parts.append(build_energy_table(self._meter))

        if self._show_devices and len(self._client.devices):
            parts.append(build_device_table(self._client.devices.all()))

        return Group(*parts)
