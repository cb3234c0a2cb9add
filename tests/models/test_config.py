from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError

from sensorlink.models.config import DEFAULT_WS_URL, AppSettings, StreamConfig


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    """Keep a developer's .env and SENSORLINK_* variables out of these tests."""
    monkeypatch.chdir(tmp_path)
    for name in (
        "SENSORLINK_WS_URL",
        "SENSORLINK_DEVICE_ID",
        "SENSORLINK_CAPACITY",
        "SENSORLINK_BACKOFF_BASE",
        "SENSORLINK_BACKOFF_MAX",
        "SENSORLINK_TARIFF",
        "SENSORLINK_CONFIG_DIR",
        "SENSORLINK_OUTPUT_FORMAT",
    ):
        monkeypatch.delenv(name, raising=False)


class TestAppSettings:
    def test_defaults(self) -> None:
        settings = AppSettings()
        assert settings.ws_url == DEFAULT_WS_URL
        assert settings.device_id is None
        assert settings.capacity == 60
        assert settings.backoff_base == 1.0
        assert settings.backoff_max == 30.0
        assert settings.tariff == "residential"

    def test_reads_prefixed_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("SENSORLINK_WS_URL", "wss://telemetry.example.com/ws/devices")
        monkeypatch.setenv("SENSORLINK_DEVICE_ID", "ESP32-A")
        monkeypatch.setenv("SENSORLINK_CAPACITY", "120")
        monkeypatch.setenv("SENSORLINK_TARIFF", "commercial")
        settings = AppSettings()
        assert settings.ws_url == "wss://telemetry.example.com/ws/devices"
        assert settings.device_id == "ESP32-A"
        assert settings.capacity == 120
        assert settings.tariff == "commercial"

    def test_reads_dotenv(self, tmp_path: Path) -> None:
        (tmp_path / ".env").write_text("SENSORLINK_DEVICE_ID=ESP32-DOTENV\n")
        assert AppSettings().device_id == "ESP32-DOTENV"

    def test_unknown_tariff_rejected(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("SENSORLINK_TARIFF", "industrial")
        with pytest.raises(ValidationError):
            AppSettings()

    def test_config_path_expands_home(self) -> None:
        settings = AppSettings(config_dir="~/sensorlink-test")
        assert settings.config_path == Path.home() / "sensorlink-test"


class TestStreamConfig:
    def test_from_settings_copies_values(self) -> None:
        settings = AppSettings(device_id="ESP32-A", capacity=10, backoff_max=8.0)
        config = StreamConfig.from_settings(settings)
        assert config.device_id == "ESP32-A"
        assert config.capacity == 10
        assert config.backoff_max == 8.0

    def test_overrides_win_and_none_is_ignored(self) -> None:
        settings = AppSettings(device_id="ESP32-A", capacity=10)
        config = StreamConfig.from_settings(settings, device_id="ESP32-B", capacity=None)
        assert config.device_id == "ESP32-B"
        assert config.capacity == 10

    @pytest.mark.parametrize(
        "overrides",
        [
            {"capacity": 0},
            {"capacity": -5},
            {"backoff_base": 0},
            {"backoff_base": 10.0, "backoff_max": 5.0},
            {"tariff": "free"},
        ],
    )
    def test_invalid_values_rejected(self, overrides: dict[str, object]) -> None:
        with pytest.raises(ValidationError):
            StreamConfig(**overrides)

    def test_equal_base_and_max_allowed(self) -> None:
        config = StreamConfig(backoff_base=5.0, backoff_max=5.0)
        assert config.backoff_max == config.backoff_base


class TestOutputFormatEnv:
    def test_output_format_env_is_left_to_click(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("SENSORLINK_OUTPUT_FORMAT", "json")
        settings = AppSettings()
        assert "output_format" not in settings.model_dump()
