"""Resilient real-time telemetry stream client for ESP32 / PZEM sensor feeds."""

from __future__ import annotations

__version__ = "0.3.0"
