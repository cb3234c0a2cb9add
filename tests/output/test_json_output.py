from __future__ import annotations

import json
from datetime import UTC, datetime
from types import MappingProxyType

from sensorlink.output.json_output import format_json_error, format_json_response, sample_record
from sensorlink.stream.buffer import Sample
from sensorlink.stream.parser import DeviceInfo

T0 = datetime(2026, 3, 1, 12, 0, 0, tzinfo=UTC)


class TestFormatJsonResponse:
    """Tests for :func:`format_json_response`."""

    def test_with_model_uses_wire_aliases(self) -> None:
        device = DeviceInfo(deviceId="ESP32-A", name="Kitchen", ip="192.168.1.20")
        parsed = json.loads(format_json_response(data=device, command="devices"))

        assert parsed["ok"] is True
        assert parsed["command"] == "devices"
        assert parsed["data"]["deviceId"] == "ESP32-A"
        assert parsed["data"]["name"] == "Kitchen"
        # None fields should be excluded
        assert "status" not in parsed["data"]
        assert "timestamp" in parsed

    def test_with_list_of_models(self) -> None:
        devices = [DeviceInfo(deviceId="ESP32-A"), DeviceInfo(deviceId="ESP32-B")]
        parsed = json.loads(format_json_response(data=devices, command="devices"))
        assert [d["deviceId"] for d in parsed["data"]] == ["ESP32-A", "ESP32-B"]

    def test_with_snapshot(self) -> None:
        snapshot = MappingProxyType(
            {"pzem004t": (Sample(timestamp=T0, fields={"voltage_v": 229.8}),)}
        )
        parsed = json.loads(format_json_response(data=snapshot, command="stream.snapshot"))

        (sample,) = parsed["data"]["pzem004t"]
        assert sample["timestamp"] == T0.isoformat()
        assert sample["fields"] == {"voltage_v": 229.8}

    def test_single_line(self) -> None:
        raw = format_json_response(data={"a": 1}, command="stream.sample", indent=None)
        assert "\n" not in raw
        assert json.loads(raw)["data"] == {"a": 1}


class TestFormatJsonError:
    def test_error_envelope(self) -> None:
        parsed = json.loads(
            format_json_error(code="config_missing", message="No device", command="stream")
        )
        assert parsed["ok"] is False
        assert parsed["command"] == "stream"
        assert parsed["error"] == {"code": "config_missing", "message": "No device"}

    def test_extra_fields(self) -> None:
        parsed = json.loads(
            format_json_error(code="x", message="y", command="z", hint="try again")
        )
        assert parsed["error"]["hint"] == "try again"


class TestSampleRecord:
    def test_shape(self) -> None:
        record = sample_record("ESP32-A", "dht22", Sample(timestamp=T0, fields={"t": 21.5}))
        assert record == {
            "device_id": "ESP32-A",
            "sensor_id": "dht22",
            "sample": {"timestamp": T0.isoformat(), "fields": {"t": 21.5}},
        }
