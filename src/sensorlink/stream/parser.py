"""Decoding and classification of inbound telemetry frames.

The upstream server pushes JSON text frames on a single channel::

    {"type": "heartbeat", "deviceId": "ESP32-A",
     "sensors": [{"id": "pzem004t", "status": "active",
                  "data": {"voltage_v": "229.8", "current_a": 0.42}}]}

    {"type": "device_registered", "device": {"deviceId": "ESP32-A", ...}}
    {"type": "device_disconnected", "deviceId": "ESP32-A"}
    {"type": "devices_list", "devices": [{"deviceId": "ESP32-A", ...}, ...]}

Nothing in this module raises on bad input: malformed frames decode to
``None`` and are dropped by the caller.
"""

from __future__ import annotations

import json
import logging
import math
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

logger = logging.getLogger(__name__)

_WIRE_CONFIG = ConfigDict(extra="allow", populate_by_name=True, coerce_numbers_to_str=True)


class MessageType(StrEnum):
    """Frame types recognised on the telemetry channel."""

    HEARTBEAT = "heartbeat"
    DEVICE_REGISTERED = "device_registered"
    DEVICE_DISCONNECTED = "device_disconnected"
    DEVICES_LIST = "devices_list"


PRESENCE_TYPES: frozenset[str] = frozenset(
    {
        MessageType.DEVICE_REGISTERED,
        MessageType.DEVICE_DISCONNECTED,
        MessageType.DEVICES_LIST,
    }
)

ACTIVE_STATUS = "active"


# -- Wire models -------------------------------------------------------------


class SensorReading(BaseModel):
    """One sensor entry inside a heartbeat."""

    model_config = _WIRE_CONFIG

    id: str
    status: str = ""
    data: dict[str, Any] = Field(default_factory=dict)

    @field_validator("data", mode="before")
    @classmethod
    def _data_must_be_mapping(cls, value: Any) -> Any:
        return value if isinstance(value, dict) else {}

    @property
    def is_active(self) -> bool:
        return self.status == ACTIVE_STATUS


class HeartbeatMessage(BaseModel):
    """Periodic telemetry message from a device."""

    model_config = _WIRE_CONFIG

    type: str
    device_id: str = Field(alias="deviceId", min_length=1)
    sensors: list[SensorReading] = Field(default_factory=list)

    @field_validator("sensors", mode="before")
    @classmethod
    def _drop_unusable_sensors(cls, value: Any) -> Any:
        # A single broken sensor entry must not discard the whole heartbeat.
        if not isinstance(value, list):
            return []
        readings: list[SensorReading] = []
        for entry in value:
            if not isinstance(entry, dict) or entry.get("id") in (None, ""):
                continue
            try:
                readings.append(SensorReading.model_validate(entry))
            except ValidationError as exc:
                logger.debug("Skipping malformed sensor entry: %s", exc.errors())
        return readings


class DeviceInfo(BaseModel):
    """A device as advertised by the server's presence messages."""

    model_config = _WIRE_CONFIG

    device_id: str = Field(alias="deviceId", min_length=1)
    name: str | None = None
    status: str | None = None
    ip: str | None = None
    sensors: list[Any] = Field(default_factory=list)


class DeviceRegisteredMessage(BaseModel):
    model_config = _WIRE_CONFIG

    type: str
    device: DeviceInfo


class DeviceDisconnectedMessage(BaseModel):
    model_config = _WIRE_CONFIG

    type: str
    device_id: str = Field(alias="deviceId", min_length=1)


class DevicesListMessage(BaseModel):
    model_config = _WIRE_CONFIG

    type: str
    devices: list[DeviceInfo] = Field(default_factory=list)


# -- Helpers -----------------------------------------------------------------


def decode_message(raw: str | bytes | bytearray) -> dict[str, Any] | None:
    """Parse a raw frame into a JSON object, or ``None`` if it isn't one."""
    try:
        msg = json.loads(raw)
    except (ValueError, RecursionError, TypeError) as exc:
        # ValueError covers JSONDecodeError, UnicodeDecodeError and the
        # int digit limit.
        logger.debug("Dropping non-JSON frame: %s", exc)
        return None
    if not isinstance(msg, dict):
        logger.debug("Dropping JSON frame that is not an object (%s)", type(msg).__name__)
        return None
    return msg


def coerce_number(value: Any) -> float | None:
    """Coerce *value* to a finite float, or return ``None``.

    Accepts ints, floats and numeric strings (surrounding whitespace is
    ignored). Rejects booleans, empty strings, NaN and infinities.

    >>> coerce_number("229.8")
    229.8
    >>> coerce_number("n/a") is None
    True
    """
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, int | float):
        try:
            number = float(value)
        except OverflowError:
            return None
    elif isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        try:
            number = float(text)
        except ValueError:
            return None
    else:
        return None
    if not math.isfinite(number):
        return None
    return number


def numeric_fields(data: dict[str, Any]) -> dict[str, float]:
    """Keep only the numeric-coercible entries of a sensor's ``data`` block."""
    fields: dict[str, float] = {}
    for name, value in data.items():
        number = coerce_number(value)
        if number is not None:
            fields[str(name)] = number
    return fields


def normalize_device_id(device_id: str) -> str:
    return device_id.strip().casefold()


def device_matches(expected: str, actual: Any) -> bool:
    """Case-insensitive device id comparison."""
    if not isinstance(actual, str) or not actual.strip():
        return False
    return normalize_device_id(expected) == normalize_device_id(actual)
