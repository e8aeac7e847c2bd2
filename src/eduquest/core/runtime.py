# src/eduquest/core/runtime.py

"""
Background asyncio loop.

Why a thread:
- console REPL is blocking (input()).
- the manager, ledger and reconciler are async and want one event loop that
  outlives individual commands (httpx connections are bound to their loop).
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import threading
from collections.abc import Callable, Coroutine
from dataclasses import dataclass
from typing import Any, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Coroutine factory run for the lifetime of the loop; receives the stop event.
LoopMain = Callable[[asyncio.Event], Coroutine[Any, Any, None]]


@dataclass
class BackgroundLoop:
    thread: threading.Thread
    loop: asyncio.AbstractEventLoop
    stop_event: asyncio.Event

    def submit(self, coro: Coroutine[Any, Any, T], timeout: float | None = None) -> T:
        """Run `coro` on the background loop and block until it finishes."""
        fut = asyncio.run_coroutine_threadsafe(coro, self.loop)
        return fut.result(timeout=timeout)

    def stop(self) -> None:
        try:
            self.loop.call_soon_threadsafe(self.stop_event.set)
        except RuntimeError:
            logger.debug("Background loop already closed.", exc_info=True)

    def join(self, timeout: float | None = None) -> None:
        self.thread.join(timeout=timeout)


def start_background_loop(main: LoopMain, *, name: str = "eduquest-loop") -> BackgroundLoop | None:
    """
    Start an event loop in a daemon thread and run `main(stop_event)` on it.

    The loop keeps serving submitted coroutines until stop() is called and `main` returns.
    """
    ready = threading.Event()
    holder: dict[str, object] = {}

    def runner() -> None:
        loop = asyncio.new_event_loop()
        asyncio.set_event_loop(loop)
        stop_event = asyncio.Event()

        holder["loop"] = loop
        holder["stop_event"] = stop_event
        ready.set()

        try:
            loop.run_until_complete(main(stop_event))
        except Exception:
            logger.exception("Background loop main crashed.")
        finally:
            with contextlib.suppress(Exception):
                loop.run_until_complete(loop.shutdown_asyncgens())
            with contextlib.suppress(Exception):
                loop.close()

    t = threading.Thread(target=runner, name=name, daemon=True)
    t.start()

    ready.wait(timeout=5.0)
    loop = holder.get("loop")
    stop_event = holder.get("stop_event")

    if not isinstance(loop, asyncio.AbstractEventLoop) or not isinstance(stop_event, asyncio.Event):
        logger.error("Background loop thread did not initialize properly.")
        return None

    logger.info("Background loop started (%s).", name)
    return BackgroundLoop(thread=t, loop=loop, stop_event=stop_event)
