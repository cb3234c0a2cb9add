from __future__ import annotations

import sys
from typing import TYPE_CHECKING, Any

from rich.console import Console

from sensorlink.output.json_output import (
    format_json_error,
    format_json_response,
    sample_record,
)
from sensorlink.output.rich_output import RichOutput

if TYPE_CHECKING:
    from io import TextIOBase

    from sensorlink.stream.buffer import Sample

_FORMATS = ("rich", "json", "quiet")


class OutputFormatter:
    """Picks JSON or Rich output for a command.

    An explicit *force_format* wins; otherwise a TTY on *stream* (default
    ``sys.stdout``) means ``"rich"`` and anything else means ``"json"``.
    ``"quiet"`` routes the Rich console to stderr so stdout stays empty.
    """

    def __init__(
        self,
        *,
        stream: TextIOBase | Any | None = None,
        force_format: str | None = None,
    ) -> None:
        target = stream or sys.stdout
        if force_format is None:
            force_format = "rich" if getattr(target, "isatty", lambda: False)() else "json"
        if force_format not in _FORMATS:
            raise ValueError(f"Unknown output format {force_format!r}")
        self._format = force_format
        self._console = Console(stderr=force_format == "quiet")
        self._rich = RichOutput(self._console)

    @property
    def format(self) -> str:  # noqa: A003
        return self._format

    @property
    def console(self) -> Console:
        """Console shared by one-shot output and the live dashboard."""
        return self._console

    @property
    def rich(self) -> RichOutput:
        return self._rich

    def output(self, data: Any, *, command: str) -> None:
        """Print *data* as a JSON envelope, or its ``str()`` in Rich modes."""
        if self._format == "json":
            print(format_json_response(data=data, command=command))  # noqa: T201
        else:
            self._rich.info(str(data))

    def output_line(self, data: Any, *, command: str) -> None:
        """Print one compact JSON envelope and flush (a JSONL record)."""
        print(format_json_response(data=data, command=command, indent=None), flush=True)  # noqa: T201

    def output_sample(self, device_id: str | None, sensor_id: str, sample: Sample) -> None:
        self.output_line(sample_record(device_id, sensor_id, sample), command="stream.sample")

    def output_error(self, *, code: str, message: str, command: str) -> None:
        if self._format == "json":
            print(format_json_error(code=code, message=message, command=command))  # noqa: T201
        else:
            self._rich.error(message)
