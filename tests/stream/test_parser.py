"""Tests for frame decoding, numeric coercion and wire models."""

from __future__ import annotations

import json

import pytest
from pydantic import ValidationError

from sensorlink.stream.parser import (
    DeviceInfo,
    HeartbeatMessage,
    MessageType,
    SensorReading,
    coerce_number,
    decode_message,
    device_matches,
    numeric_fields,
)


class TestDecodeMessage:
    def test_object(self) -> None:
        assert decode_message('{"type": "heartbeat"}') == {"type": "heartbeat"}

    def test_bytes(self) -> None:
        assert decode_message(b'{"type": "devices_list"}') == {"type": "devices_list"}

    @pytest.mark.parametrize("raw", ["", "not json", "{", b"\xff\xfe", "[1, 2]", "42", "null"])
    def test_malformed_returns_none(self, raw: str | bytes) -> None:
        assert decode_message(raw) is None

    def test_integer_over_digit_limit_returns_none(self) -> None:
        assert decode_message('{"x": ' + "1" * 5000 + "}") is None

    def test_deep_nesting_returns_none(self) -> None:
        assert decode_message("[" * 100_000) is None


class TestCoerceNumber:
    @pytest.mark.parametrize(
        ("value", "expected"),
        [
            (230, 230.0),
            (0.42, 0.42),
            ("229.8", 229.8),
            ("  50 ", 50.0),
            ("-3e2", -300.0),
            (0, 0.0),
        ],
    )
    def test_accepts(self, value: object, expected: float) -> None:
        assert coerce_number(value) == expected

    @pytest.mark.parametrize(
        "value",
        [None, True, False, "", "   ", "abc", "NaN", "inf", float("nan"), float("inf"), [], {}],
    )
    def test_rejects(self, value: object) -> None:
        assert coerce_number(value) is None

    def test_integer_too_large_for_float(self) -> None:
        assert coerce_number(10**400) is None

    def test_huge_numeric_string_is_not_finite(self) -> None:
        assert coerce_number("9" * 400) is None


class TestNumericFields:
    def test_drops_non_numeric(self) -> None:
        data = {
            "voltage_v": "229.8",
            "current_a": 0.42,
            "label": "kitchen",
            "online": True,
            "nested": {"x": 1},
            "bad": float("nan"),
        }
        assert numeric_fields(data) == {"voltage_v": 229.8, "current_a": 0.42}

    def test_empty(self) -> None:
        assert numeric_fields({}) == {}


class TestDeviceMatches:
    def test_case_insensitive(self) -> None:
        assert device_matches("ESP32-A", "esp32-a")

    def test_whitespace_trimmed(self) -> None:
        assert device_matches("ESP32-A", " ESP32-A ")

    @pytest.mark.parametrize("actual", ["ESP32-B", "", None, 42])
    def test_mismatch(self, actual: object) -> None:
        assert not device_matches("ESP32-A", actual)


class TestWireModels:
    def test_heartbeat_alias(self) -> None:
        msg = HeartbeatMessage.model_validate(
            {
                "type": "heartbeat",
                "deviceId": "ESP32-A",
                "sensors": [{"id": "pzem004t", "status": "active", "data": {"power_w": 5}}],
            }
        )
        assert msg.device_id == "ESP32-A"
        assert msg.sensors[0].is_active
        assert msg.sensors[0].data == {"power_w": 5}

    def test_heartbeat_requires_device_id(self) -> None:
        with pytest.raises(ValidationError):
            HeartbeatMessage.model_validate({"type": "heartbeat", "sensors": []})

    def test_broken_sensor_entries_are_skipped(self) -> None:
        msg = HeartbeatMessage.model_validate(
            {
                "type": "heartbeat",
                "deviceId": "ESP32-A",
                "sensors": ["junk", {"status": "active"}, {"id": "dht22", "status": "active"}],
            }
        )
        assert [s.id for s in msg.sensors] == ["dht22"]

    def test_invalid_sensor_does_not_discard_siblings(self) -> None:
        msg = HeartbeatMessage.model_validate(
            {
                "type": "heartbeat",
                "deviceId": "ESP32-A",
                "sensors": [
                    {"id": "dht22", "status": "active", "data": {"t": 21.5}},
                    {"id": "pzem004t", "status": None, "data": {"power_w": 5}},
                    {"id": {"nested": 1}, "status": "active"},
                ],
            }
        )
        assert [s.id for s in msg.sensors] == ["dht22"]

    def test_non_list_sensors_treated_as_empty(self) -> None:
        msg = HeartbeatMessage.model_validate(
            {"type": "heartbeat", "deviceId": "ESP32-A", "sensors": "oops"}
        )
        assert msg.sensors == []

    def test_sensor_numeric_id_coerced(self) -> None:
        reading = SensorReading.model_validate({"id": 7, "status": "active", "data": None})
        assert reading.id == "7"
        assert reading.data == {}

    def test_inactive_sensor(self) -> None:
        assert not SensorReading(id="x", status="inactive").is_active

    def test_device_info_keeps_extra_fields(self) -> None:
        info = DeviceInfo.model_validate({"deviceId": "ESP32-A", "firmware": "1.2.0"})
        assert info.device_id == "ESP32-A"
        dumped = json.loads(info.model_dump_json(by_alias=True))
        assert dumped["firmware"] == "1.2.0"

    def test_message_type_values(self) -> None:
        assert MessageType.HEARTBEAT == "heartbeat"
        assert MessageType("devices_list") is MessageType.DEVICES_LIST
