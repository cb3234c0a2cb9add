"""Energy billing for PZEM-004T power-meter channels.

The meter reports a cumulative ``energy_wh`` counter. The bill grows by
``delta_kwh * rate`` whenever that counter increases; counter resets
(device reboot) and repeated readings add nothing.
"""

from __future__ import annotations

import logging
import math
from typing import TYPE_CHECKING

from sensorlink.errors import StreamConfigError

if TYPE_CHECKING:
    from sensorlink.stream.buffer import Sample

logger = logging.getLogger(__name__)

PZEM_CHANNEL_HINT = "pzem004t"

# Tariff rates per kWh.
TARIFF_RATES: dict[str, float] = {
    "residential": 5.0,
    "commercial": 10.0,
}

# Display limits for gauges (approximate PZEM-004T capabilities).
PZEM_MAX: dict[str, float] = {
    "voltage": 300.0,
    "current": 100.0,
    "power": 25000.0,
    "energy": 10000.0,
    "frequency": 65.0,
}

# Wire field name -> gauge name.
PZEM_FIELDS: dict[str, str] = {
    "voltage_v": "voltage",
    "current_a": "current",
    "power_w": "power",
    "energy_wh": "energy",
    "frequency_hz": "frequency",
}


def clamp(value: float | None, maximum: float, minimum: float = 0.0) -> float:
    """Clamp *value* into ``[minimum, maximum]``; non-finite values map to *minimum*."""
    if value is None or not math.isfinite(value):
        return minimum
    return max(minimum, min(maximum, value))


def is_pzem_channel(sensor_id: str) -> bool:
    return PZEM_CHANNEL_HINT in sensor_id.lower()


class EnergyMeter:
    """Sample sink that accumulates an electricity bill from PZEM readings."""

    def __init__(self, tariff: str = "residential") -> None:
        self._tariff = self._check_tariff(tariff)
        self._bill = 0.0
        self._last_energy_kwh: float | None = None
        self._latest: dict[str, float] = {}

    @staticmethod
    def _check_tariff(tariff: str) -> str:
        if tariff not in TARIFF_RATES:
            raise StreamConfigError(
                f"Unknown tariff {tariff!r} (expected one of: {', '.join(TARIFF_RATES)})"
            )
        return tariff

    @property
    def tariff(self) -> str:
        return self._tariff

    @tariff.setter
    def tariff(self, value: str) -> None:
        self._tariff = self._check_tariff(value)

    @property
    def rate(self) -> float:
        return TARIFF_RATES[self._tariff]

    @property
    def bill(self) -> float:
        return self._bill

    @property
    def last_energy_kwh(self) -> float | None:
        return self._last_energy_kwh

    def gauges(self) -> dict[str, float]:
        """Latest readings clamped to :data:`PZEM_MAX`, energy in kWh."""
        return {name: clamp(self._latest.get(name), limit) for name, limit in PZEM_MAX.items()}

    def on_sample(self, sensor_id: str, sample: Sample) -> None:
        """Sink callback; samples from non-PZEM channels are ignored."""
        if not is_pzem_channel(sensor_id):
            return

        for wire_name, gauge_name in PZEM_FIELDS.items():
            value = sample.get(wire_name)
            if value is None:
                continue
            self._latest[gauge_name] = value / 1000 if gauge_name == "energy" else value

        energy_wh = sample.get("energy_wh")
        if energy_wh is None:
            return
        energy_kwh = energy_wh / 1000
        previous = self._last_energy_kwh
        if previous is not None and energy_kwh > previous:
            self._bill += (energy_kwh - previous) * self.rate
            logger.debug("Bill now %.4f (%s tariff)", self._bill, self._tariff)
        self._last_energy_kwh = energy_kwh

    def reset(self) -> None:
        self._bill = 0.0
        self._last_energy_kwh = None
        self._latest.clear()
