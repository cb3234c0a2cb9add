"""Fan-out dispatcher for accepted samples.

Multiplexes each accepted ``(sensor_id, Sample)`` pair to N sinks, each
error-isolated. One sink failing does not affect others.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Callable

    from sensorlink.stream.buffer import Sample

logger = logging.getLogger(__name__)


class SampleFanout:
    """Delivers each accepted sample to all registered sinks."""

    def __init__(self) -> None:
        self._sinks: list[Callable[[str, Sample], None]] = []

    def add_sink(self, callback: Callable[[str, Sample], None]) -> None:
        """Register a sink to receive samples."""
        self._sinks.append(callback)

    def remove_sink(self, callback: Callable[[str, Sample], None]) -> None:
        if callback in self._sinks:
            self._sinks.remove(callback)

    @property
    def sink_count(self) -> int:
        """Number of registered sinks."""
        return len(self._sinks)

    def has_sinks(self) -> bool:
        return len(self._sinks) > 0

    def on_sample(self, sensor_id: str, sample: Sample) -> None:
        """Dispatch *sample* to all registered sinks.

        If a sink raises, the exception is logged and the remaining sinks
        still receive the sample.
        """
        for sink in list(self._sinks):
            try:
                sink(sensor_id, sample)
            except Exception:
                logger.warning("Sink %s failed for sensor %s", sink, sensor_id, exc_info=True)
