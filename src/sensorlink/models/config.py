from __future__ import annotations

from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from sensorlink.stream.buffer import DEFAULT_CAPACITY

DEFAULT_WS_URL = "ws://localhost:8080/ws/devices"

Tariff = Literal["residential", "commercial"]


class AppSettings(BaseSettings):
    """Application-wide settings populated from environment variables and .env file."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="SENSORLINK_",
        extra="ignore",
    )

    ws_url: str = DEFAULT_WS_URL
    device_id: str | None = None
    capacity: int = DEFAULT_CAPACITY
    backoff_base: float = 1.0
    backoff_max: float = 30.0
    tariff: Tariff = "residential"
    config_dir: str = "~/.config/sensorlink"

    @property
    def config_path(self) -> Path:
        return Path(self.config_dir).expanduser()


class StreamConfig(BaseModel):
    """Validated knobs for one :class:`~sensorlink.stream.TelemetryStreamClient`."""

    ws_url: str = DEFAULT_WS_URL
    device_id: str | None = None
    capacity: int = Field(default=DEFAULT_CAPACITY, ge=1)
    backoff_base: float = Field(default=1.0, gt=0)
    backoff_max: float = Field(default=30.0, gt=0)
    tariff: Tariff = "residential"

    @model_validator(mode="after")
    def _max_not_below_base(self) -> StreamConfig:
        if self.backoff_max < self.backoff_base:
            raise ValueError(
                f"backoff_max ({self.backoff_max}) must be >= backoff_base ({self.backoff_base})"
            )
        return self

    @classmethod
    def from_settings(cls, settings: AppSettings | None = None, **overrides: Any) -> StreamConfig:
        """Build a config from *settings*, applying non-``None`` CLI overrides."""
        settings = settings or AppSettings()
        data: dict[str, Any] = {
            "ws_url": settings.ws_url,
            "device_id": settings.device_id,
            "capacity": settings.capacity,
            "backoff_base": settings.backoff_base,
            "backoff_max": settings.backoff_max,
            "tariff": settings.tariff,
        }
        data.update({k: v for k, v in overrides.items() if v is not None})
        return cls.model_validate(data)
