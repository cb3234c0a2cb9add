"""CLI entry-point: Click command group and dispatch."""

from __future__ import annotations

import dataclasses

import click

from sensorlink._internal.log import configure_logging
from sensorlink.errors import ConfigError, StreamConfigError
from sensorlink.output.formatter import OutputFormatter

# ---------------------------------------------------------------------------
# Application context (stored in ctx.obj)
# ---------------------------------------------------------------------------


@dataclasses.dataclass
class AppContext:
    """Shared state passed to every Click command via ``@click.pass_obj``."""

    output_format: str | None
    quiet: bool
    verbose: bool
    _formatter: OutputFormatter | None = dataclasses.field(default=None, repr=False)

    @property
    def formatter(self) -> OutputFormatter:
        if self._formatter is None:
            force = "quiet" if self.quiet else self.output_format
            self._formatter = OutputFormatter(force_format=force)
        return self._formatter


# ---------------------------------------------------------------------------
# Root Click group
# ---------------------------------------------------------------------------


@click.group()
@click.option(
    "--format",
    "output_format",
    type=click.Choice(["rich", "json", "quiet"]),
    default=None,
    envvar="SENSORLINK_OUTPUT_FORMAT",
    help="Output format (default: auto-detect)",
)
@click.option("--quiet", is_flag=True, default=False, help="Suppress normal output")
@click.option("--verbose", is_flag=True, default=False, help="Enable verbose logging")
@click.pass_context
def cli(
    ctx: click.Context,
    output_format: str | None,
    quiet: bool,
    verbose: bool,
) -> None:
    """Stream live ESP32 / PZEM sensor telemetry from a WebSocket feed."""
    configure_logging(verbose=verbose)
    ctx.obj = AppContext(
        output_format=output_format,
        quiet=quiet,
        verbose=verbose,
    )


# ---------------------------------------------------------------------------
# Register subcommands (lazy imports keep startup fast)
# ---------------------------------------------------------------------------


def _register_commands() -> None:
    """Import and attach all subcommands to the root CLI."""
    from sensorlink.cli.config import config_cmd
    from sensorlink.cli.stream import devices_cmd, stream_cmd

    cli.add_command(config_cmd)
    cli.add_command(devices_cmd)
    cli.add_command(stream_cmd)


_register_commands()


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def main(argv: list[str] | None = None) -> None:
    """Parse arguments and dispatch to the appropriate command handler."""
    try:
        cli(args=argv, standalone_mode=False)
    except click.exceptions.Exit as exc:
        raise SystemExit(exc.exit_code) from None
    except click.exceptions.Abort:
        raise SystemExit(1) from None
    except click.ClickException as exc:
        exc.show()
        raise SystemExit(exc.exit_code) from None
    except KeyboardInterrupt:
        raise SystemExit(130) from None
    except SystemExit:
        raise
    except Exception as exc:
        app_ctx = _extract_app_ctx()
        formatter = app_ctx.formatter if app_ctx else OutputFormatter()
        cmd_name = _get_command_name()

        if _handle_known_error(exc, formatter, cmd_name):
            raise SystemExit(1) from exc

        formatter.output_error(
            code=type(exc).__name__,
            message=str(exc),
            command=cmd_name,
        )
        raise SystemExit(1) from exc


# ---------------------------------------------------------------------------
# Helpers for error handling
# ---------------------------------------------------------------------------


def _extract_app_ctx() -> AppContext | None:
    """Try to extract AppContext from the current Click context."""
    ctx = click.get_current_context(silent=True)
    while ctx is not None:
        if isinstance(ctx.obj, AppContext):
            return ctx.obj
        ctx = ctx.parent
    return None


def _get_command_name() -> str:
    """Reconstruct a dotted command name from the Click context chain."""
    ctx = click.get_current_context(silent=True)
    parts: list[str] = []
    while ctx is not None:
        if ctx.info_name and ctx.info_name not in ("cli", "sensorlink"):
            parts.append(ctx.info_name)
        ctx = ctx.parent
    return ".".join(reversed(parts)) or "unknown"


def _handle_known_error(
    exc: Exception,
    formatter: OutputFormatter,
    cmd_name: str,
) -> bool:
    """Handle well-known errors with friendly output.

    Returns ``True`` if the error was handled and the caller should exit.
    """
    if isinstance(exc, ConfigError):
        _show_error_with_hint(
            formatter,
            cmd_name,
            code="config_missing",
            message=str(exc),
            hint="Set SENSORLINK_DEVICE_ID / SENSORLINK_WS_URL in your environment or .env file.",
        )
        return True
    if isinstance(exc, StreamConfigError):
        _show_error_with_hint(
            formatter,
            cmd_name,
            code="invalid_argument",
            message=str(exc),
            hint="Endpoints look like ws://host:port/ws/devices or wss://host/ws/devices.",
        )
        return True
    return False


def _show_error_with_hint(
    formatter: OutputFormatter,
    cmd_name: str,
    *,
    code: str,
    message: str,
    hint: str,
) -> None:
    if formatter.format == "json":
        formatter.output_error(code=code, message=f"{message} {hint}", command=cmd_name)
        return

    formatter.rich.error(message)
    formatter.rich.info("")
    formatter.rich.info(f"[dim]{hint}[/dim]")
