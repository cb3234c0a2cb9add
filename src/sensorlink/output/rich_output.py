from __future__ import annotations

from typing import TYPE_CHECKING

from rich.panel import Panel
from rich.table import Table

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence

    from rich.console import Console

    from sensorlink.models.config import AppSettings
    from sensorlink.stream.buffer import Sample
    from sensorlink.stream.energy import EnergyMeter
    from sensorlink.stream.parser import DeviceInfo

_STATUS_STYLES = {
    "connected": "green",
    "connecting": "yellow",
    "disconnected": "red",
    "error": "bold red",
}

_SPARK_CHARS = "▁▂▃▄▅▆▇█"


def status_markup(status: str) -> str:
    """Colour a connection status for Rich markup."""
    style = _STATUS_STYLES.get(str(status), "white")
    return f"[{style}]{status}[/{style}]"


def sparkline(values: Sequence[float], width: int = 20) -> str:
    """Render the last *width* values as a unicode sparkline."""
    tail = list(values)[-width:]
    if not tail:
        return ""
    low, high = min(tail), max(tail)
    span = high - low
    if span == 0:
        return _SPARK_CHARS[0] * len(tail)
    top = len(_SPARK_CHARS) - 1
    return "".join(_SPARK_CHARS[round((v - low) / span * top)] for v in tail)


def field_names(samples: Sequence[Sample]) -> list[str]:
    """Field names across *samples*, in first-seen order."""
    seen: dict[str, None] = {}
    for sample in samples:
        for name in sample.fields:
            seen.setdefault(name, None)
    return list(seen)


def _fmt(value: float | None) -> str:
    if value is None:
        return "—"
    return f"{value:,.2f}"


def build_snapshot_table(
    snapshot: Mapping[str, tuple[Sample, ...]], *, title: str = "Sensors"
) -> Table:
    """Build a table with one row per (sensor, field): latest, min, avg, max, trend."""
    table = Table(title=title, expand=False)
    table.add_column("Sensor", style="cyan")
    table.add_column("Field", style="bold")
    table.add_column("Latest", justify="right")
    table.add_column("Min", justify="right")
    table.add_column("Avg", justify="right")
    table.add_column("Max", justify="right")
    table.add_column("Trend")
    table.add_column("Samples", justify="right", style="dim")

    for sensor_id, samples in snapshot.items():
        names = field_names(samples)
        if not names:
            table.add_row(sensor_id, "[dim](no numeric fields)[/dim]", "", "", "", "", "", "")
            continue
        for i, name in enumerate(names):
            values = [s.fields[name] for s in samples if name in s.fields]
            latest = samples[-1].fields.get(name) if samples else None
            table.add_row(
                sensor_id if i == 0 else "",
                name,
                _fmt(latest),
                _fmt(min(values)),
                _fmt(sum(values) / len(values)),
                _fmt(max(values)),
                sparkline(values),
                str(len(samples)) if i == 0 else "",
            )
    return table


def build_device_table(devices: Sequence[DeviceInfo]) -> Table:
    table = Table(title="Devices")
    table.add_column("Device ID", style="cyan")
    table.add_column("Name")
    table.add_column("Status")
    table.add_column("IP", style="dim")
    table.add_column("Sensors", justify="right")

    for d in devices:
        table.add_row(
            d.device_id,
            d.name or "",
            status_markup(d.status) if d.status else "",
            d.ip or "",
            str(len(d.sensors)),
        )
    return table


def build_energy_table(meter: EnergyMeter) -> Table:
    """Gauge readings (clamped to device limits) plus the running bill."""
    table = Table(title=f"Energy ({meter.tariff})")
    table.add_column("Reading", style="bold")
    table.add_column("Value", justify="right")

    units = {"voltage": "V", "current": "A", "power": "W", "energy": "kWh", "frequency": "Hz"}
    for name, value in meter.gauges().items():
        table.add_row(name.capitalize(), f"{value:,.2f} {units[name]}")
    table.add_row("Bill", f"₹ {meter.bill:,.2f}")
    return table


class RichOutput:
    """Rich-based terminal output helpers for *sensorlink*."""

    def __init__(self, console: Console) -> None:
        self._con = console

    # ------------------------------------------------------------------
    # Stream snapshots
    # ------------------------------------------------------------------

    def sensor_snapshot(
        self, snapshot: Mapping[str, tuple[Sample, ...]], *, device_id: str = ""
    ) -> None:
        """Print the windowed statistics for every sensor channel."""
        if not snapshot:
            self._con.print("[dim]No sensor data yet — waiting for heartbeat...[/dim]")
            return
        title = f"Sensors — {device_id}" if device_id else "Sensors"
        self._con.print(build_snapshot_table(snapshot, title=title))

    def connection_status(self, status: str, *, url: str = "", device_id: str = "") -> None:
        parts = [f"WebSocket: {status_markup(status)}"]
        if device_id:
            parts.append(f"device [cyan]{device_id}[/cyan]")
        if url:
            parts.append(f"[dim]{url}[/dim]")
        self._con.print("  ".join(parts))

    # ------------------------------------------------------------------
    # Devices
    # ------------------------------------------------------------------

    def device_list(self, devices: Sequence[DeviceInfo]) -> None:
        """Print a table of devices known to the server."""
        if not devices:
            self._con.print("[dim]No devices connected.[/dim]")
            return
        self._con.print(build_device_table(devices))

    # ------------------------------------------------------------------
    # Energy
    # ------------------------------------------------------------------

    def energy(self, meter: EnergyMeter) -> None:
        self._con.print(build_energy_table(meter))

    # ------------------------------------------------------------------
    # Settings
    # ------------------------------------------------------------------

    def settings(self, settings: AppSettings) -> None:
        """Print the effective configuration."""
        table = Table(title="Settings")
        table.add_column("Key", style="bold")
        table.add_column("Value")
        for key, value in settings.model_dump().items():
            table.add_row(key, "" if value is None else str(value))
        self._con.print(Panel(table, expand=False, title="sensorlink"))

    # ------------------------------------------------------------------
    # Generic helpers
    # ------------------------------------------------------------------

    def error(self, message: str) -> None:
        """Print a bold red error line."""
        self._con.print(f"[bold red]Error:[/bold red] {message}")

    def info(self, message: str) -> None:
        """Print an informational message (plain)."""
        self._con.print(message)
