"""Exception hierarchy for sensorlink."""

from __future__ import annotations


class SensorlinkError(Exception):
    """Base class for all sensorlink errors."""


class StreamConfigError(SensorlinkError, ValueError):
    """Invalid arguments passed to the stream client (programming error).

    Raised synchronously at call time: bad endpoint URLs, empty device ids,
    non-positive buffer capacities, unknown tariffs.
    """


class ConfigError(SensorlinkError):
    """Required configuration (endpoint URL, device id) is missing."""
