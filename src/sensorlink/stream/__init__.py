"""Telemetry stream client: connection, parsing and windowed sample buffers."""

from __future__ import annotations

from sensorlink.stream.backoff import Backoff
from sensorlink.stream.buffer import DEFAULT_CAPACITY, ChannelBuffers, Sample
from sensorlink.stream.client import (
    ConnectionState,
    ConnectionStatus,
    TelemetryStreamClient,
    validate_device_id,
    validate_endpoint,
)
from sensorlink.stream.csv_sink import CSVLogSink, create_log_path
from sensorlink.stream.devices import DeviceRegistry
from sensorlink.stream.energy import PZEM_MAX, TARIFF_RATES, EnergyMeter
from sensorlink.stream.fanout import SampleFanout
from sensorlink.stream.parser import HeartbeatMessage, MessageType, SensorReading

__all__ = [
    "DEFAULT_CAPACITY",
    "PZEM_MAX",
    "TARIFF_RATES",
    "Backoff",
    "CSVLogSink",
    "ChannelBuffers",
    "ConnectionState",
    "ConnectionStatus",
    "DeviceRegistry",
    "EnergyMeter",
    "HeartbeatMessage",
    "MessageType",
    "Sample",
    "SampleFanout",
    "SensorReading",
    "TelemetryStreamClient",
    "create_log_path",
    "validate_device_id",
    "validate_endpoint",
]
