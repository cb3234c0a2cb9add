"""Shared fixtures for CLI execution tests."""

from __future__ import annotations

import io
import sys
from typing import TYPE_CHECKING

import pytest

if TYPE_CHECKING:
    from pathlib import Path

_ENV_VARS = (
    "SENSORLINK_WS_URL",
    "SENSORLINK_DEVICE_ID",
    "SENSORLINK_CAPACITY",
    "SENSORLINK_BACKOFF_BASE",
    "SENSORLINK_BACKOFF_MAX",
    "SENSORLINK_TARIFF",
    "SENSORLINK_CONFIG_DIR",
    "SENSORLINK_OUTPUT_FORMAT",
)


@pytest.fixture()
def cli_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> Path:
    """Run the CLI in an empty directory with no SENSORLINK_* settings and no TTY."""
    monkeypatch.chdir(tmp_path)
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("SENSORLINK_CONFIG_DIR", str(tmp_path / "config"))
    monkeypatch.setattr(sys, "stdin", io.StringIO())
    return tmp_path
