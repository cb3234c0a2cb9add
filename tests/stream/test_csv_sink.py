"""Tests for the CSVLogSink wide-format sample log."""

from __future__ import annotations

import csv
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from sensorlink.stream.buffer import Sample
from sensorlink.stream.csv_sink import CSVLogSink, create_log_path

if TYPE_CHECKING:
    from pathlib import Path

DEVICE = "ESP32-A"
T0 = datetime(2026, 3, 1, 12, 0, 0, tzinfo=UTC)


def _read(path: Path) -> list[dict[str, str]]:
    with open(path, newline="", encoding="utf-8") as f:
        return list(csv.DictReader(f))


class TestCreateLogPath:
    def test_creates_log_directory(self, tmp_path: Path) -> None:
        path = create_log_path(DEVICE, config_dir=tmp_path)
        assert path.parent.exists()
        assert path.parent.name == "logs"

    def test_filename_contains_device(self, tmp_path: Path) -> None:
        path = create_log_path(DEVICE, config_dir=tmp_path)
        assert DEVICE in path.name
        assert path.suffix == ".csv"

    def test_unsafe_characters_replaced(self, tmp_path: Path) -> None:
        path = create_log_path("dock/door 1", config_dir=tmp_path)
        assert "/" not in path.name
        assert " " not in path.name
        assert path.parent == tmp_path / "logs"


class TestCSVLogSink:
    def test_no_file_until_first_sample(self, tmp_path: Path) -> None:
        path = tmp_path / "out.csv"
        sink = CSVLogSink(path, DEVICE)
        sink.close()
        assert not path.exists()

    def test_writes_header_and_rows(self, tmp_path: Path) -> None:
        path = tmp_path / "out.csv"
        sink = CSVLogSink(path, DEVICE)
        sink.on_sample("pzem004t", Sample(timestamp=T0, fields={"voltage_v": 229.8}))
        sink.on_sample("pzem004t", Sample(timestamp=T0, fields={"voltage_v": 230.1}))
        sink.close()

        rows = _read(path)
        assert len(rows) == 2
        assert rows[0]["timestamp"] == T0.isoformat()
        assert rows[0]["device_id"] == DEVICE
        assert rows[0]["sensor_id"] == "pzem004t"
        assert rows[1]["voltage_v"] == "230.1"
        assert sink.row_count == 2

    def test_header_extends_for_new_fields(self, tmp_path: Path) -> None:
        path = tmp_path / "out.csv"
        sink = CSVLogSink(path, DEVICE)
        sink.on_sample("pzem004t", Sample(timestamp=T0, fields={"voltage_v": 229.8}))
        sink.on_sample("dht22", Sample(timestamp=T0, fields={"temperature_c": 21.5}))
        sink.close()

        with open(path, newline="", encoding="utf-8") as f:
            header = next(csv.reader(f))
        assert header == ["timestamp", "device_id", "sensor_id", "voltage_v", "temperature_c"]

        rows = _read(path)
        assert rows[0]["voltage_v"] == "229.8"
        assert rows[0]["temperature_c"] == ""
        assert rows[1]["temperature_c"] == "21.5"

    def test_sensor_filter(self, tmp_path: Path) -> None:
        path = tmp_path / "out.csv"
        sink = CSVLogSink(path, DEVICE, sensors={"dht22"})
        sink.on_sample("pzem004t", Sample(timestamp=T0, fields={"voltage_v": 229.8}))
        sink.on_sample("dht22", Sample(timestamp=T0, fields={"temperature_c": 21.5}))
        sink.close()

        rows = _read(path)
        assert [r["sensor_id"] for r in rows] == ["dht22"]

    def test_close_is_idempotent(self, tmp_path: Path) -> None:
        sink = CSVLogSink(tmp_path / "out.csv", DEVICE)
        sink.on_sample("pzem004t", Sample(timestamp=T0, fields={"power_w": 1.0}))
        sink.close()
        sink.close()
        assert sink.log_path == tmp_path / "out.csv"
