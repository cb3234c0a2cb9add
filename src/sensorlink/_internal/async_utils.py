"""Asyncio utilities for the CLI."""

from __future__ import annotations

import asyncio
import sys
import time
from typing import Any, Coroutine


def run_async(coro: Coroutine[Any, Any, Any]) -> Any:
    """Run an async coroutine from synchronous code."""
    try:
        loop = asyncio.get_running_loop()
    except RuntimeError:
        loop = None

    if loop and loop.is_running():
        import concurrent.futures

        with concurrent.futures.ThreadPoolExecutor() as pool:
            return pool.submit(asyncio.run, coro).result()
    else:
        return asyncio.run(coro)


async def wait_for_interrupt(
    shutdown_event: asyncio.Event | None = None,
    *,
    duration: float | None = None,
    poll_interval: float = 0.1,
) -> None:
    """Block until Ctrl+C, 'q' is pressed, *shutdown_event* is set, or *duration* elapses.

    Keypresses are only watched when stdin is an interactive POSIX
    terminal; otherwise the wait is purely event/deadline based.
    """
    deadline = None if duration is None else time.monotonic() + duration

    def _should_stop() -> bool:
        if shutdown_event is not None and shutdown_event.is_set():
            return True
        return deadline is not None and time.monotonic() >= deadline

    try:
        import selectors
        import termios
        import tty
    except ImportError:
        termios = None  # type: ignore[assignment]

    if termios is None or not sys.stdin.isatty():
        try:
            while not _should_stop():
                await asyncio.sleep(poll_interval)
        except asyncio.CancelledError:
            pass
        return

    fd = sys.stdin.fileno()
    old_settings = termios.tcgetattr(fd)
    sel = selectors.DefaultSelector()
    try:
        tty.setcbreak(fd)
        sel.register(sys.stdin, selectors.EVENT_READ)
        while not _should_stop():
            await asyncio.sleep(poll_interval)
            for _key, _ in sel.select(timeout=0):
                ch = sys.stdin.read(1)
                if ch in ("q", "Q"):
                    return
    except asyncio.CancelledError:
        pass
    finally:
        termios.tcsetattr(fd, termios.TCSADRAIN, old_settings)
        sel.close()
