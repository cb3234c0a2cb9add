"""CLI commands that talk to the telemetry WebSocket: ``stream`` and ``devices``."""

from __future__ import annotations

import asyncio
import contextlib
import logging
import signal
from typing import TYPE_CHECKING, Any

import click
from pydantic import ValidationError

from sensorlink._internal.async_utils import run_async, wait_for_interrupt
from sensorlink.cli._options import global_options
from sensorlink.errors import ConfigError
from sensorlink.models.config import AppSettings, StreamConfig
from sensorlink.stream.backoff import Backoff
from sensorlink.stream.client import TelemetryStreamClient, validate_endpoint
from sensorlink.stream.csv_sink import CSVLogSink, create_log_path
from sensorlink.stream.energy import TARIFF_RATES, EnergyMeter

if TYPE_CHECKING:
    from sensorlink.cli.main import AppContext
    from sensorlink.stream.buffer import Sample
    from sensorlink.stream.client import ConnectionStatus

logger = logging.getLogger(__name__)

# Heartbeats are irrelevant to ``devices``; the client still needs a scope.
_PRESENCE_SCOPE = "presence"


def _load_config(**overrides: Any) -> tuple[AppSettings, StreamConfig]:
    settings = AppSettings()
    try:
        config = StreamConfig.from_settings(settings, **overrides)
    except ValidationError as exc:
        raise click.UsageError(str(exc)) from exc
    validate_endpoint(config.ws_url)
    return settings, config


def _build_client(config: StreamConfig, device_id: str) -> TelemetryStreamClient:
    return TelemetryStreamClient(
        device_id=device_id,
        endpoint_url=config.ws_url,
        capacity=config.capacity,
        backoff=Backoff(base=config.backoff_base, maximum=config.backoff_max),
    )


def _install_sigterm(shutdown_event: asyncio.Event) -> None:
    def _handle_sigterm() -> None:
        logger.info("SIGTERM received — shutting down gracefully")
        shutdown_event.set()

    # Windows event loops do not support add_signal_handler.
    if hasattr(signal, "SIGTERM"):
        with contextlib.suppress(NotImplementedError, RuntimeError):
            asyncio.get_running_loop().add_signal_handler(signal.SIGTERM, _handle_sigterm)


# ---------------------------------------------------------------------------
# stream
# ---------------------------------------------------------------------------


@click.command("stream")
@click.argument("device_id_positional", required=False, default=None, metavar="DEVICE_ID")
@click.option("--url", "ws_url", default=None, help="Telemetry WebSocket URL (ws:// or wss://)")
@click.option("--capacity", type=int, default=None, help="Samples kept per sensor channel")
@click.option(
    "--tariff",
    type=click.Choice(sorted(TARIFF_RATES)),
    default=None,
    help="Billing tariff for PZEM energy readings",
)
@click.option(
    "--log/--no-log",
    "write_log",
    default=False,
    help="Write accepted samples to a CSV log under the config directory",
)
@click.option(
    "--devices",
    "show_devices",
    is_flag=True,
    default=False,
    help="Also show devices reported connected by the server (dashboard only)",
)
@click.option(
    "--duration",
    type=click.FloatRange(min=0, min_open=True),
    default=None,
    help="Stop after this many seconds (default: run until interrupted)",
)
@global_options
def stream_cmd(
    app_ctx: AppContext,
    device_id_positional: str | None,
    ws_url: str | None,
    capacity: int | None,
    tariff: str | None,
    write_log: bool,
    show_devices: bool,
    duration: float | None,
) -> None:
    """Stream live sensor telemetry for DEVICE_ID.

    On a TTY a live dashboard shows the rolling window per sensor; when
    piped, each accepted sample is printed as one JSON line.

    \b
    Examples:
      sensorlink stream ESP32-A --url ws://192.168.1.20:8080/ws/devices
      sensorlink stream ESP32-A --log --tariff commercial --devices
      sensorlink stream ESP32-A --format json --duration 30 > samples.jsonl
    """
    run_async(
        _cmd_stream(
            app_ctx,
            device_id=device_id_positional,
            ws_url=ws_url,
            capacity=capacity,
            tariff=tariff,
            write_log=write_log,
            show_devices=show_devices,
            duration=duration,
        )
    )


async def _cmd_stream(
    app_ctx: AppContext,
    *,
    device_id: str | None,
    ws_url: str | None,
    capacity: int | None,
    tariff: str | None,
    write_log: bool,
    show_devices: bool,
    duration: float | None,
) -> None:
    settings, config = _load_config(
        ws_url=ws_url, device_id=device_id, capacity=capacity, tariff=tariff
    )
    if not config.device_id or not config.device_id.strip():
        raise ConfigError(
            "No device id given. Pass DEVICE_ID or set SENSORLINK_DEVICE_ID."
        )

    formatter = app_ctx.formatter
    is_rich = formatter.format == "rich"
    client = _build_client(config, config.device_id)

    meter = EnergyMeter(config.tariff)
    client.add_sample_sink(meter.on_sample)

    csv_sink: CSVLogSink | None = None
    if write_log:
        csv_sink = CSVLogSink(
            create_log_path(config.device_id, settings.config_path), config.device_id
        )
        client.add_sample_sink(csv_sink.on_sample)

    if formatter.format == "json":

        def _jsonl_sample(sensor_id: str, sample: Sample) -> None:
            formatter.output_sample(client.device_id, sensor_id, sample)

        def _jsonl_status(status: ConnectionStatus) -> None:
            formatter.output_line({"status": str(status)}, command="stream.status")

        client.add_sample_sink(_jsonl_sample)
        client.on_status(_jsonl_status)

    shutdown_event = asyncio.Event()
    _install_sigterm(shutdown_event)

    try:
        async with client.session():
            if is_rich:
                from rich.live import Live

                from sensorlink.output.dashboard import StreamDashboard

                dashboard = StreamDashboard(
                    client,
                    meter=meter,
                    log_path=csv_sink.log_path if csv_sink else None,
                    show_devices=show_devices,
                )
                with Live(dashboard, console=formatter.console, refresh_per_second=4):
                    await wait_for_interrupt(shutdown_event, duration=duration)
            else:
                await wait_for_interrupt(shutdown_event, duration=duration)
            summary = {
                "device_id": client.device_id,
                "messages": client.message_count,
                "dropped": client.dropped_count,
                "samples": client.sample_count,
                "bill": round(meter.bill, 4),
                "tariff": meter.tariff,
            }
    finally:
        if csv_sink is not None:
            csv_sink.close()
            if is_rich:
                formatter.rich.info(
                    f"[dim]CSV log: {csv_sink.log_path} ({csv_sink.row_count} rows)[/dim]"
                )

    if is_rich:
        formatter.rich.info(
            f"[dim]{summary['messages']} messages, {summary['samples']} samples, "
            f"{summary['dropped']} dropped. Bill: ₹ {meter.bill:,.2f} ({meter.tariff})[/dim]"
        )
    elif formatter.format == "json":
        formatter.output_line(summary, command="stream.summary")


# ---------------------------------------------------------------------------
# devices
# ---------------------------------------------------------------------------


@click.command("devices")
@click.option("--url", "ws_url", default=None, help="Telemetry WebSocket URL (ws:// or wss://)")
@click.option(
    "--timeout",
    type=click.FloatRange(min=0, min_open=True),
    default=5.0,
    show_default=True,
    help="Seconds to wait for the server's device list",
)
@global_options
def devices_cmd(app_ctx: AppContext, ws_url: str | None, timeout: float) -> None:
    """List devices currently connected to the telemetry server."""
    run_async(_cmd_devices(app_ctx, ws_url=ws_url, timeout=timeout))


async def _cmd_devices(app_ctx: AppContext, *, ws_url: str | None, timeout: float) -> None:
    settings, config = _load_config(ws_url=ws_url)
    formatter = app_ctx.formatter
    client = _build_client(config, settings.device_id or _PRESENCE_SCOPE)

    changed = asyncio.Event()
    client.devices.on_change(lambda _devices: changed.set())

    async with client.session():
        with contextlib.suppress(TimeoutError):
            await asyncio.wait_for(changed.wait(), timeout=timeout)
        devices = client.devices.all()
        status = client.connection_status

    if formatter.format == "json":
        formatter.output(devices, command="devices")
        return

    if not changed.is_set():
        formatter.rich.info(
            f"[yellow]No device list received within {timeout:g}s "
            f"(connection {status}).[/yellow]"
        )
    formatter.rich.device_list(devices)
