"""``sensorlink config``: show the effective settings."""

from __future__ import annotations

from typing import TYPE_CHECKING

import click

from sensorlink.cli._options import global_options
from sensorlink.models.config import AppSettings

if TYPE_CHECKING:
    from sensorlink.cli.main import AppContext


@click.command("config")
@global_options
def config_cmd(app_ctx: AppContext) -> None:
    """Show settings resolved from SENSORLINK_* environment variables and .env."""
    settings = AppSettings()
    formatter = app_ctx.formatter
    if formatter.format == "json":
        formatter.output(settings, command="config")
    else:
        formatter.rich.settings(settings)
