"""Resilient WebSocket client for ESP32 sensor telemetry.

Lifecycle::

    idle ──start()──▶ connecting ──▶ open ──(close/error)──▶ closed
                          ▲                                      │
                          └──────── backoff sleep ◀──────────────┘
    any state ──stop()──▶ idle (no further reconnects)

Reconnect delay is ``min(max_delay, base_delay * 2**attempt)``; the attempt
counter resets on every successful open. Transport failures are never
raised to the caller; they surface only through :attr:`connection_status`.
Malformed frames are dropped one at a time and never end the connection.
"""

from __future__ import annotations

import asyncio
import contextlib
import functools
import logging
from datetime import UTC, datetime
from enum import StrEnum
from typing import TYPE_CHECKING, Any
from urllib.parse import urlsplit

from pydantic import ValidationError
from websockets.exceptions import ConnectionClosed, ConnectionClosedOK

from sensorlink.errors import StreamConfigError
from sensorlink.stream.backoff import Backoff
from sensorlink.stream.buffer import DEFAULT_CAPACITY, ChannelBuffers, Sample
from sensorlink.stream.devices import DeviceRegistry
from sensorlink.stream.fanout import SampleFanout
from sensorlink.stream.parser import (
    PRESENCE_TYPES,
    HeartbeatMessage,
    MessageType,
    decode_message,
    device_matches,
    numeric_fields,
)

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Awaitable, Callable, Mapping

logger = logging.getLogger(__name__)

_WS_SCHEMES = frozenset({"ws", "wss"})
_OPEN_TIMEOUT = 10.0


class ConnectionState(StrEnum):
    """Transport lifecycle state."""

    IDLE = "idle"
    CONNECTING = "connecting"
    OPEN = "open"
    CLOSED = "closed"


class ConnectionStatus(StrEnum):
    """UI-facing connection status."""

    CONNECTING = "connecting"
    CONNECTED = "connected"
    DISCONNECTED = "disconnected"
    ERROR = "error"


async def _websockets_connect(url: str, *, open_timeout: float = _OPEN_TIMEOUT) -> Any:
    import websockets.asyncio.client as ws_client

    return await ws_client.connect(url, open_timeout=open_timeout)


def validate_endpoint(endpoint_url: Any) -> str:
    """Return *endpoint_url* stripped, or raise :class:`StreamConfigError`."""
    if not isinstance(endpoint_url, str) or not endpoint_url.strip():
        raise StreamConfigError("Endpoint URL must be a non-empty ws:// or wss:// URI")
    url = endpoint_url.strip()
    try:
        parts = urlsplit(url)
        host = parts.hostname
        parts.port  # noqa: B018 - raises ValueError on a malformed port
    except ValueError as exc:
        raise StreamConfigError(f"Malformed endpoint URL {url!r}: {exc}") from exc
    if parts.scheme.lower() not in _WS_SCHEMES:
        raise StreamConfigError(
            f"Endpoint URL must use the ws:// or wss:// scheme, got {url!r}"
        )
    if not host:
        raise StreamConfigError(f"Endpoint URL has no host: {url!r}")
    return url


def validate_device_id(device_id: Any) -> str:
    """Return *device_id* stripped, or raise :class:`StreamConfigError`."""
    if not isinstance(device_id, str) or not device_id.strip():
        raise StreamConfigError("Device id must be a non-empty string")
    return device_id.strip()


class TelemetryStreamClient:
    """Owns one telemetry connection and the per-sensor sample buffers.

    Parameters:
        device_id: Default device scope used when :meth:`start` is called
            without one.
        endpoint_url: Default endpoint used when :meth:`start` is called
            without one.
        capacity: Maximum samples kept per sensor channel.
        backoff: Reconnect schedule (defaults to 1s base, 30s cap).
        connect: Coroutine function opening a connection for a URL. The
            returned object must support ``async for`` over inbound frames
            and ``await close()``. Defaults to :mod:`websockets`.
        sleep: Coroutine function used for backoff waits.
        clock: Returns the receipt timestamp for new samples.

    All methods must be called from the event loop that runs the client.
    """

    def __init__(
        self,
        *,
        device_id: str | None = None,
        endpoint_url: str | None = None,
        capacity: int = DEFAULT_CAPACITY,
        backoff: Backoff | None = None,
        connect: Callable[[str], Awaitable[Any]] | None = None,
        sleep: Callable[[float], Awaitable[Any]] | None = None,
        clock: Callable[[], datetime] | None = None,
        open_timeout: float = _OPEN_TIMEOUT,
    ) -> None:
        self._device_id = device_id.strip() if device_id else None
        self._endpoint_url = endpoint_url.strip() if endpoint_url else None
        self._buffers = ChannelBuffers(capacity)
        self._backoff = backoff or Backoff()
        self._connect = connect or functools.partial(
            _websockets_connect, open_timeout=open_timeout
        )
        self._sleep = sleep or asyncio.sleep
        self._clock = clock or (lambda: datetime.now(UTC))

        self._state = ConnectionState.IDLE
        self._status = ConnectionStatus.DISCONNECTED
        self._ws: Any = None
        self._task: asyncio.Task[None] | None = None

        self._update_subscribers: list[Callable[[Mapping[str, tuple[Sample, ...]]], None]] = []
        self._status_subscribers: list[Callable[[ConnectionStatus], None]] = []
        self._fanout = SampleFanout()
        self._devices = DeviceRegistry()

        self._message_count = 0
        self._dropped_count = 0
        self._sample_count = 0
        self._connect_count = 0

    # -- Properties -----------------------------------------------------------

    @property
    def connection_status(self) -> ConnectionStatus:
        return self._status

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def device_id(self) -> str | None:
        return self._device_id

    @property
    def endpoint_url(self) -> str | None:
        return self._endpoint_url

    @property
    def capacity(self) -> int:
        return self._buffers.capacity

    @property
    def attempt(self) -> int:
        """Consecutive failed connection attempts since the last open."""
        return self._backoff.attempt

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def devices(self) -> DeviceRegistry:
        """Devices reported by the server's presence messages."""
        return self._devices

    @property
    def message_count(self) -> int:
        """Total frames handed to :meth:`handle_message`."""
        return self._message_count

    @property
    def dropped_count(self) -> int:
        """Frames discarded as malformed, foreign or irrelevant."""
        return self._dropped_count

    @property
    def sample_count(self) -> int:
        return self._sample_count

    @property
    def connect_count(self) -> int:
        """Number of successful opens since construction."""
        return self._connect_count

    def snapshot(self) -> Mapping[str, tuple[Sample, ...]]:
        """Immutable view of every channel's current samples."""
        return self._buffers.snapshot()

    # -- Subscriptions --------------------------------------------------------

    def on_update(
        self, callback: Callable[[Mapping[str, tuple[Sample, ...]]], None]
    ) -> Callable[[], None]:
        """Call *callback* with a fresh snapshot after each accepted sample.

        Returns a function that removes the subscription.
        """
        self._update_subscribers.append(callback)
        return functools.partial(_discard, self._update_subscribers, callback)

    def on_status(self, callback: Callable[[ConnectionStatus], None]) -> Callable[[], None]:
        """Call *callback* whenever :attr:`connection_status` changes."""
        self._status_subscribers.append(callback)
        return functools.partial(_discard, self._status_subscribers, callback)

    def add_sample_sink(self, callback: Callable[[str, Sample], None]) -> None:
        """Register a sink receiving ``(sensor_id, sample)`` for each accepted sample."""
        self._fanout.add_sink(callback)

    # -- Lifecycle ------------------------------------------------------------

    def start(self, device_id: str | None = None, endpoint_url: str | None = None) -> None:
        """Begin streaming *device_id*'s telemetry from *endpoint_url*.

        Falls back to the constructor defaults for omitted arguments.
        Raises :class:`StreamConfigError` for an empty device id or a
        non-websocket URL. A second call for the same target while the
        client is connecting, open or waiting to retry does nothing; a
        call for a different target restarts the stream and clears the
        buffers.

        Must be called with a running event loop.
        """
        target_device = validate_device_id(device_id if device_id is not None else self._device_id)
        target_url = validate_endpoint(
            endpoint_url if endpoint_url is not None else self._endpoint_url
        )

        if self.is_running:
            assert self._device_id is not None
            if target_url == self._endpoint_url and device_matches(self._device_id, target_device):
                logger.debug("start() ignored: already streaming %s", target_device)
                return
            logger.info(
                "Retargeting stream from %s@%s to %s@%s",
                self._device_id,
                self._endpoint_url,
                target_device,
                target_url,
            )
            assert self._task is not None
            self._task.cancel()
            self._buffers.clear()

        loop = asyncio.get_running_loop()
        self._device_id = target_device
        self._endpoint_url = target_url
        self._backoff.reset()
        self._set_state(ConnectionState.CONNECTING)
        self._set_status(ConnectionStatus.CONNECTING)
        self._task = loop.create_task(self._run(target_url), name=f"sensorlink:{target_device}")
        self._task.add_done_callback(self._on_task_done)

    async def stop(self) -> None:
        """Close the connection, cancel any pending retry and drop all buffers.

        Safe to call from any state, any number of times.
        """
        task, self._task = self._task, None
        try:
            if task is not None and not task.done():
                task.cancel()
                if task is not asyncio.current_task():
                    with contextlib.suppress(asyncio.CancelledError):
                        await task
        finally:
            await self._close_socket()
            self._buffers.clear()
            self._devices.clear()
            self._set_state(ConnectionState.IDLE)
            self._set_status(ConnectionStatus.DISCONNECTED)
            if task is not None:
                logger.info("Telemetry stream stopped")

    @contextlib.asynccontextmanager
    async def session(
        self, device_id: str | None = None, endpoint_url: str | None = None
    ) -> AsyncIterator[TelemetryStreamClient]:
        """Start streaming for the duration of an ``async with`` block."""
        self.start(device_id, endpoint_url)
        try:
            yield self
        finally:
            await self.stop()

    async def __aenter__(self) -> TelemetryStreamClient:
        self.start()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.stop()

    # -- Connection loop ------------------------------------------------------

    async def _run(self, url: str) -> None:
        """Connect, pump frames, and reconnect with backoff until cancelled."""
        try:
            while True:
                self._set_state(ConnectionState.CONNECTING)
                if self._status is not ConnectionStatus.ERROR:
                    self._set_status(ConnectionStatus.CONNECTING)
                await self._connect_and_pump(url)

                self._set_state(ConnectionState.CLOSED)
                delay = self._backoff.next_delay()
                logger.info(
                    "Reconnecting to %s in %.1fs (attempt %d)",
                    url,
                    delay,
                    self._backoff.attempt,
                )
                await self._sleep(delay)
        except asyncio.CancelledError:
            logger.debug("Stream loop for %s cancelled", url)
            raise

    async def _connect_and_pump(self, url: str) -> None:
        """Run one connection to completion. Never raises transport errors."""
        try:
            ws = await self._connect(url)
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            logger.warning("Failed to connect to %s: %s", url, exc)
            self._set_status(ConnectionStatus.ERROR)
            return

        self._ws = ws
        self._connect_count += 1
        self._backoff.reset()
        self._set_state(ConnectionState.OPEN)
        self._set_status(ConnectionStatus.CONNECTED)
        logger.info("Connected to %s (device %s)", url, self._device_id)

        try:
            async for raw in ws:
                self.handle_message(raw)
        except ConnectionClosedOK:
            logger.info("Telemetry stream closed by server")
            self._set_status(ConnectionStatus.DISCONNECTED)
        except ConnectionClosed as exc:
            logger.warning("Telemetry stream dropped: %s", exc)
            self._set_status(ConnectionStatus.ERROR)
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            logger.warning("Telemetry stream error: %s", exc, exc_info=True)
            self._set_status(ConnectionStatus.ERROR)
        else:
            logger.info("Telemetry stream closed")
            self._set_status(ConnectionStatus.DISCONNECTED)
        finally:
            # Close proactively so one failure schedules exactly one retry.
            await self._close_socket(ws)

    async def _close_socket(self, ws: Any = None) -> None:
        """Close *ws* (default: the current socket) and forget it if current."""
        if ws is None:
            ws = self._ws
        if ws is self._ws:
            self._ws = None
        if ws is not None:
            with contextlib.suppress(Exception):
                await ws.close()

    def _on_task_done(self, task: asyncio.Task[None]) -> None:
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Telemetry stream loop crashed", exc_info=exc)
            self._set_state(ConnectionState.CLOSED)
            self._set_status(ConnectionStatus.ERROR)

    # -- Inbound frames -------------------------------------------------------

    def handle_message(self, raw: str | bytes) -> int:
        """Process one inbound frame and return the number of samples accepted.

        Never raises: frames that are not JSON objects, that have an
        unknown ``type``, or that belong to another device are logged and
        dropped. Presence messages update :attr:`devices`.
        """
        self._message_count += 1
        msg = decode_message(raw)
        if msg is None:
            return self._drop()

        msg_type = msg.get("type")
        if not isinstance(msg_type, str):
            logger.debug("Dropping frame without a string type")
            return self._drop()

        if msg_type in PRESENCE_TYPES:
            if not self._devices.apply(msg):
                self._dropped_count += 1
            return 0

        if msg_type != MessageType.HEARTBEAT:
            logger.debug("Dropping frame of unhandled type %r", msg_type)
            return self._drop()

        if self._device_id is None or not device_matches(self._device_id, msg.get("deviceId")):
            logger.debug("Dropping heartbeat for device %r", msg.get("deviceId"))
            return self._drop()

        try:
            heartbeat = HeartbeatMessage.model_validate(msg)
        except ValidationError as exc:
            logger.debug("Dropping malformed heartbeat: %s", exc.errors())
            return self._drop()

        received_at = self._clock()
        accepted = 0
        for sensor in heartbeat.sensors:
            if not sensor.is_active:
                continue
            sample = Sample(timestamp=received_at, fields=numeric_fields(sensor.data))
            self._buffers.append(sensor.id, sample)
            self._sample_count += 1
            accepted += 1
            self._fanout.on_sample(sensor.id, sample)
            self._notify_update()
        return accepted

    def _drop(self) -> int:
        self._dropped_count += 1
        return 0

    # -- Notification ---------------------------------------------------------

    def _notify_update(self) -> None:
        if not self._update_subscribers:
            return
        snapshot = self._buffers.snapshot()
        for callback in list(self._update_subscribers):
            try:
                callback(snapshot)
            except Exception:
                logger.warning("Update subscriber %s failed", callback, exc_info=True)

    def _set_state(self, state: ConnectionState) -> None:
        if state is not self._state:
            logger.debug("Connection state %s -> %s", self._state, state)
            self._state = state

    def _set_status(self, status: ConnectionStatus) -> None:
        if status is self._status:
            return
        self._status = status
        for callback in list(self._status_subscribers):
            try:
                callback(status)
            except Exception:
                logger.warning("Status subscriber %s failed", callback, exc_info=True)


def _discard(items: list[Any], item: Any) -> None:
    if item in items:
        items.remove(item)
