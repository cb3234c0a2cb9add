"""Wide-format CSV log sink for sensor samples.

Writes one row per accepted sample with one column per numeric field.
The header extends dynamically as new fields are discovered.

Output format::

    timestamp,device_id,sensor_id,voltage_v,current_a,power_w,...
    2026-02-01T12:34:55+00:00,ESP32-A,pzem004t,229.8,0.42,96.5,...
"""

from __future__ import annotations

import csv
import logging
import re
from datetime import datetime
from pathlib import Path
from typing import IO, TYPE_CHECKING, Any

if TYPE_CHECKING:
    from sensorlink.stream.buffer import Sample

logger = logging.getLogger(__name__)

# Fixed columns that always appear first.
_FIXED_COLUMNS = ("timestamp", "device_id", "sensor_id")

# Flush to disk every N rows for crash safety.
_FLUSH_INTERVAL = 10

_UNSAFE_FILENAME_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


def create_log_path(device_id: str, config_dir: Path | None = None) -> Path:
    """Build a timestamped CSV log path under the config directory.

    Returns a path like
    ``~/.config/sensorlink/logs/stream-{DEVICE}-{YYYYMMDD-HHMMSS}.csv``.
    Creates the ``logs/`` subdirectory if it does not exist.
    """
    if config_dir is None:
        config_dir = Path.home() / ".config" / "sensorlink"
    log_dir = config_dir / "logs"
    log_dir.mkdir(parents=True, exist_ok=True)

    safe_device = _UNSAFE_FILENAME_CHARS.sub("_", device_id.strip()) or "device"
    stamp = datetime.now().strftime("%Y%m%d-%H%M%S")
    return log_dir / f"stream-{safe_device}-{stamp}.csv"


class CSVLogSink:
    """Sample sink that writes wide-format CSV.

    Parameters:
        path: Destination CSV file path.
        device_id: Value written to the ``device_id`` column.
        sensors: Only log these sensor ids (``None`` = log all).
    """

    def __init__(self, path: Path, device_id: str, sensors: set[str] | None = None) -> None:
        self._path = path
        self._device_id = device_id
        self._sensors = sensors
        self._fh: IO[str] | None = None
        self._writer: csv.DictWriter[str] | None = None
        self._fieldnames: list[str] = list(_FIXED_COLUMNS)
        self._row_count: int = 0
        self._since_flush: int = 0

    # -- Properties -----------------------------------------------------------

    @property
    def log_path(self) -> Path:
        """The CSV file path."""
        return self._path

    @property
    def row_count(self) -> int:
        """Total rows written."""
        return self._row_count

    # -- Sink callback --------------------------------------------------------

    def on_sample(self, sensor_id: str, sample: Sample) -> None:
        """Write a single sample as a CSV row.

        Called by :class:`~sensorlink.stream.fanout.SampleFanout`.
        Samples for filtered-out sensors are silently skipped.
        """
        if self._sensors is not None and sensor_id not in self._sensors:
            return

        row: dict[str, Any] = {
            "timestamp": sample.timestamp.isoformat(),
            "device_id": self._device_id,
            "sensor_id": sensor_id,
        }
        row.update(sample.fields)

        # Discover new fields and rewrite the header if needed.
        new_fields = [f for f in row if f not in self._fieldnames]
        if new_fields:
            self._fieldnames.extend(new_fields)
            if self._fh is not None:
                self._rewrite_header()

        # Lazily open the file on the first row.
        if self._fh is None:
            self._open()

        assert self._writer is not None
        self._writer.writerow(row)
        self._row_count += 1
        self._since_flush += 1

        if self._since_flush >= _FLUSH_INTERVAL:
            self._flush()

    # -- Lifecycle ------------------------------------------------------------

    def close(self) -> None:
        """Flush and close the CSV file."""
        if self._fh is not None:
            self._flush()
            self._fh.close()
            self._fh = None
            self._writer = None
            logger.info("CSV log closed: %s (%d rows)", self._path, self._row_count)

    # -- Internals ------------------------------------------------------------

    def _open(self) -> None:
        self._fh = open(self._path, "w", newline="", encoding="utf-8")  # noqa: SIM115
        self._writer = csv.DictWriter(self._fh, fieldnames=self._fieldnames, extrasaction="ignore")
        self._writer.writeheader()

    def _rewrite_header(self) -> None:
        """Rewrite the file with the expanded header, keeping existing rows."""
        if self._fh is None:
            return

        self._fh.flush()
        self._fh.close()

        with open(self._path, newline="", encoding="utf-8") as f:
            rows = list(csv.DictReader(f))

        self._open()
        assert self._writer is not None
        self._writer.writerows(rows)
        logger.debug("CSV header extended to %d columns", len(self._fieldnames))

    def _flush(self) -> None:
        if self._fh is not None:
            self._fh.flush()
            self._since_flush = 0
