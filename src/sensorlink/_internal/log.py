"""Logging setup for the CLI.

Library modules only create module-level loggers; handlers are attached
here, once, by the command line entry point.
"""

from __future__ import annotations

import logging

from rich.console import Console
from rich.logging import RichHandler

_NOISY_LOGGERS = ("websockets", "asyncio")


def configure_logging(verbose: bool = False) -> None:
    """Route log records to stderr through Rich.

    Verbose mode logs everything at DEBUG (including websockets frames
    at INFO); otherwise only warnings and errors are shown.
    """
    root = logging.getLogger()
    for handler in list(root.handlers):
        if isinstance(handler, RichHandler):
            root.removeHandler(handler)

    handler = RichHandler(
        console=Console(stderr=True),
        show_path=verbose,
        rich_tracebacks=verbose,
    )
    handler.setFormatter(logging.Formatter("%(name)s: %(message)s"))
    root.addHandler(handler)
    root.setLevel(logging.DEBUG if verbose else logging.WARNING)

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.INFO if verbose else logging.WARNING)
