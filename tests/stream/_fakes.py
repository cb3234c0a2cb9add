"""Fakes and frame builders shared by stream tests."""

from __future__ import annotations

import asyncio
import json
from datetime import UTC, datetime, timedelta
from typing import Any

DEVICE = "ESP32-A"
URL = "ws://telemetry.test:8080/ws/devices"


def heartbeat(
    *sensors: dict[str, Any],
    device_id: str = DEVICE,
    msg_type: str = "heartbeat",
) -> str:
    """Build a heartbeat frame as the server sends it."""
    return json.dumps({"type": msg_type, "deviceId": device_id, "sensors": list(sensors)})


def sensor(sensor_id: str = "pzem004t", status: str = "active", **data: Any) -> dict[str, Any]:
    return {"id": sensor_id, "status": status, "data": data}


class FakeSocket:
    """Async-iterable stand-in for a websockets connection.

    Yields *frames*, then either stays open until closed (``hold=True``),
    raises *error*, or ends (clean close).
    """

    def __init__(
        self,
        frames: list[str | bytes] | None = None,
        *,
        error: BaseException | None = None,
        hold: bool = False,
    ) -> None:
        self._frames = list(frames or [])
        self._error = error
        self._hold = hold
        self._released = asyncio.Event()
        self.closed = False

    def __aiter__(self) -> Any:
        return self._iterate()

    async def _iterate(self) -> Any:
        for frame in self._frames:
            await asyncio.sleep(0)
            yield frame
        if self._hold:
            await self._released.wait()
        if self._error is not None:
            raise self._error

    async def close(self) -> None:
        self.closed = True
        self._released.set()


class FakeConnector:
    """Connect function returning queued outcomes; holds forever once exhausted."""

    def __init__(self, *outcomes: FakeSocket | BaseException) -> None:
        self._outcomes = list(outcomes)
        self.calls: list[str] = []
        self.sockets: list[FakeSocket] = []

    async def __call__(self, url: str, **_kwargs: Any) -> FakeSocket:
        self.calls.append(url)
        await asyncio.sleep(0)
        outcome = self._outcomes.pop(0) if self._outcomes else FakeSocket(hold=True)
        if isinstance(outcome, BaseException):
            raise outcome
        self.sockets.append(outcome)
        return outcome


class RecordingSleep:
    """Backoff sleep that records requested delays and returns immediately."""

    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)
        await asyncio.sleep(0)


class StepClock:
    """Deterministic receipt clock: each call advances one second."""

    def __init__(self, start: datetime | None = None) -> None:
        self._now = start or datetime(2026, 3, 1, 12, 0, 0, tzinfo=UTC)

    def __call__(self) -> datetime:
        current = self._now
        self._now += timedelta(seconds=1)
        return current


async def wait_until(predicate: Any, timeout: float = 2.0) -> None:
    """Yield to the loop until *predicate()* is true."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not met before timeout")
        await asyncio.sleep(0.001)
