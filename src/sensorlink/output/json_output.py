"""JSON envelopes for machine-readable output.

One-shot commands print a single indented envelope; ``stream`` prints one
compact envelope per line (JSONL) so consumers can parse incrementally.
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel

from sensorlink.stream.buffer import Sample


def _to_jsonable(obj: Any) -> Any:
    if isinstance(obj, BaseModel):
        # Wire aliases (``deviceId``) so output matches what the server sends.
        return obj.model_dump(by_alias=True, exclude_none=True)
    if isinstance(obj, Sample):
        return obj.to_dict()
    if isinstance(obj, Mapping):
        return {str(key): _to_jsonable(value) for key, value in obj.items()}
    if isinstance(obj, list | tuple):
        return [_to_jsonable(item) for item in obj]
    return obj


def _envelope(*, ok: bool, command: str, indent: int | None, **body: Any) -> str:
    payload: dict[str, Any] = {"ok": ok, "command": command, **body}
    payload["timestamp"] = datetime.now(UTC).isoformat()
    return json.dumps(payload, indent=indent, default=str)


def format_json_response(*, data: Any, command: str, indent: int | None = 2) -> str:
    """Serialise *data* into ``{"ok": true, "command", "data", "timestamp"}``.

    Samples, snapshots and pydantic models are converted recursively.
    Pass ``indent=None`` for a single line.
    """
    return _envelope(ok=True, command=command, indent=indent, data=_to_jsonable(data))


def format_json_error(*, code: str, message: str, command: str, **extra: Any) -> str:
    """Build ``{"ok": false, "command", "error": {"code", "message", ...}, "timestamp"}``."""
    return _envelope(
        ok=False,
        command=command,
        indent=2,
        error={"code": code, "message": message, **extra},
    )


def sample_record(device_id: str | None, sensor_id: str, sample: Sample) -> dict[str, Any]:
    """The ``data`` payload of one ``stream.sample`` line."""
    return {"device_id": device_id, "sensor_id": sensor_id, "sample": sample.to_dict()}
