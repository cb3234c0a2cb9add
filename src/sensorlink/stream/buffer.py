"""Bounded per-channel sample buffers.

Each sensor channel keeps a fixed-size FIFO of :class:`Sample` records;
once capacity is reached the oldest sample is evicted first. Channels are
created lazily on their first sample.
"""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import TYPE_CHECKING

from sensorlink.errors import StreamConfigError

if TYPE_CHECKING:
    from collections.abc import Mapping
    from datetime import datetime

DEFAULT_CAPACITY = 60


@dataclass(frozen=True, slots=True)
class Sample:
    """One set of numeric readings from a sensor, stamped with receipt time."""

    timestamp: datetime
    fields: Mapping[str, float] = field(default_factory=dict)

    def __post_init__(self) -> None:
        # Freeze the field mapping so snapshots can be shared with subscribers.
        if not isinstance(self.fields, MappingProxyType):
            object.__setattr__(self, "fields", MappingProxyType(dict(self.fields)))

    def get(self, name: str) -> float | None:
        return self.fields.get(name)

    def to_dict(self) -> dict[str, object]:
        """JSON-friendly representation."""
        return {"timestamp": self.timestamp.isoformat(), "fields": dict(self.fields)}


class ChannelBuffers:
    """Ring buffers of samples, keyed by sensor id.

    Not thread-safe: all mutation happens on the event loop that owns the
    stream client.
    """

    def __init__(self, capacity: int = DEFAULT_CAPACITY) -> None:
        if capacity < 1:
            raise StreamConfigError(f"Buffer capacity must be >= 1, got {capacity}")
        self._capacity = capacity
        self._channels: dict[str, deque[Sample]] = {}

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def channel_ids(self) -> list[str]:
        """Sensor ids in first-seen order."""
        return list(self._channels)

    def append(self, sensor_id: str, sample: Sample) -> None:
        """Append *sample* to *sensor_id*'s buffer, evicting the oldest if full."""
        channel = self._channels.get(sensor_id)
        if channel is None:
            channel = deque(maxlen=self._capacity)
            self._channels[sensor_id] = channel
        channel.append(sample)

    def get(self, sensor_id: str) -> tuple[Sample, ...]:
        """Return the samples for *sensor_id*, oldest first (empty if unknown)."""
        channel = self._channels.get(sensor_id)
        return tuple(channel) if channel is not None else ()

    def latest(self, sensor_id: str) -> Sample | None:
        """Return the most recent sample for *sensor_id*, or ``None``."""
        channel = self._channels.get(sensor_id)
        if not channel:
            return None
        return channel[-1]

    def snapshot(self) -> Mapping[str, tuple[Sample, ...]]:
        """Return an immutable view of every channel's current samples."""
        return MappingProxyType({sid: tuple(ch) for sid, ch in self._channels.items()})

    def clear(self) -> None:
        """Drop every channel."""
        self._channels.clear()

    def __len__(self) -> int:
        return len(self._channels)

    def __contains__(self, sensor_id: object) -> bool:
        return sensor_id in self._channels
