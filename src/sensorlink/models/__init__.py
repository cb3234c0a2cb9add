from __future__ import annotations

from sensorlink.models.config import DEFAULT_WS_URL, AppSettings, StreamConfig

__all__ = [
    "DEFAULT_WS_URL",
    "AppSettings",
    "StreamConfig",
]
