"""Registry of devices currently known to the telemetry server.

Kept up to date from the presence messages that share the telemetry
channel (``device_registered``, ``device_disconnected``, ``devices_list``).
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from pydantic import ValidationError

from sensorlink.stream.parser import (
    DeviceDisconnectedMessage,
    DeviceInfo,
    DeviceRegisteredMessage,
    DevicesListMessage,
    MessageType,
    normalize_device_id,
)

if TYPE_CHECKING:
    from collections.abc import Callable

logger = logging.getLogger(__name__)


class DeviceRegistry:
    """Devices keyed by case-insensitive device id, in registration order."""

    def __init__(self) -> None:
        self._devices: dict[str, DeviceInfo] = {}
        self._listeners: list[Callable[[list[DeviceInfo]], None]] = []

    def on_change(self, callback: Callable[[list[DeviceInfo]], None]) -> Callable[[], None]:
        """Register *callback* for registry changes; returns an unsubscribe function."""
        self._listeners.append(callback)

        def _unsubscribe() -> None:
            if callback in self._listeners:
                self._listeners.remove(callback)

        return _unsubscribe

    def apply(self, msg: dict[str, Any]) -> bool:
        """Apply a decoded presence message. Returns ``True`` if it was used."""
        msg_type = msg.get("type")
        try:
            if msg_type == MessageType.DEVICE_REGISTERED:
                self._upsert(DeviceRegisteredMessage.model_validate(msg).device)
            elif msg_type == MessageType.DEVICE_DISCONNECTED:
                self._remove(DeviceDisconnectedMessage.model_validate(msg).device_id)
            elif msg_type == MessageType.DEVICES_LIST:
                self._replace(DevicesListMessage.model_validate(msg).devices)
            else:
                return False
        except ValidationError as exc:
            logger.debug("Dropping malformed %s message: %s", msg_type, exc.errors())
            return False
        self._notify()
        return True

    def _upsert(self, device: DeviceInfo) -> None:
        key = normalize_device_id(device.device_id)
        if key not in self._devices:
            logger.info("Device registered: %s", device.device_id)
        self._devices[key] = device

    def _remove(self, device_id: str) -> None:
        if self._devices.pop(normalize_device_id(device_id), None) is not None:
            logger.info("Device disconnected: %s", device_id)

    def _replace(self, devices: list[DeviceInfo]) -> None:
        self._devices = {normalize_device_id(d.device_id): d for d in devices}
        logger.debug("Device list replaced (%d devices)", len(self._devices))

    def _notify(self) -> None:
        devices = self.all()
        for listener in list(self._listeners):
            try:
                listener(devices)
            except Exception:
                logger.warning("Device listener %s failed", listener, exc_info=True)

    def get(self, device_id: str) -> DeviceInfo | None:
        return self._devices.get(normalize_device_id(device_id))

    def all(self) -> list[DeviceInfo]:
        """Return the known devices, in registration order."""
        return list(self._devices.values())

    def clear(self) -> None:
        self._devices.clear()

    def __len__(self) -> int:
        return len(self._devices)

    def __contains__(self, device_id: object) -> bool:
        return isinstance(device_id, str) and normalize_device_id(device_id) in self._devices
