# src/eduquest/cli/main.py

"""
CLI entrypoint.

Initializes logging, builds AppState, then starts:
- a background event loop that runs the reward reconciler and serves manager calls,
- the console REPL in the main thread (optional).
"""

from __future__ import annotations

import asyncio
import logging
import signal
import threading

from ..cli.bootstrap import create_initial_state
from ..config import get_settings
from ..connectors.console_connector import run_console_loop
from ..core.runtime import start_background_loop
from ..logging_setup import level_from_name, setup_logging
from ..rewards.reconciler import run_reward_reconciler

logger = logging.getLogger(__name__)


def _shutdown(state) -> None:
    """Best-effort shutdown (no exceptions should escape)."""
    runner = getattr(state, "runner", None)

    # UserTaskStore uses short-lived sqlite connections per call; no explicit close required.
    aclose = getattr(state.ledger, "aclose", None)
    if callable(aclose):
        try:
            if runner is not None:
                runner.submit(aclose(), timeout=5.0)
            else:
                asyncio.run(aclose())
        except Exception:
            logger.debug("Ledger close failed.", exc_info=True)

    if runner is not None:
        runner.stop()
        runner.join(timeout=10.0)


def main() -> None:
    settings = get_settings()

    setup_logging(
        log_dir=settings.data_dir,
        console_level=level_from_name(settings.log_level),
        reconciler_level=level_from_name(settings.reconciler_log_level, logging.WARNING),
    )

    logger.info("Starting %s...", getattr(settings, "app_name", "eduquest"))

    # IMPORTANT: reuse same settings object
    state = create_initial_state(settings=settings)

    async def _loop_main(stop_event: asyncio.Event) -> None:
        await run_reward_reconciler(
            state.manager,
            interval_seconds=settings.reconcile_interval_seconds,
            stop_event=stop_event,
        )

    state.runner = start_background_loop(_loop_main, name="eduquest-reconciler")
    if state.runner is None:
        logger.warning("Reconciler is not running; use /reconcile to retry pending rewards.")

    # Use an Event so main can wait without a busy while-loop.
    stop_main = threading.Event()

    def _handle_signal(signum, _frame) -> None:
        logger.info("Signal %s received, shutting down...", signum)
        stop_main.set()

    try:
        signal.signal(signal.SIGTERM, _handle_signal)
        if not settings.console_enabled:
            signal.signal(signal.SIGINT, _handle_signal)
    except (ValueError, OSError):
        # Some platforms may not support SIGTERM, etc.
        pass

    try:
        if settings.console_enabled:
            run_console_loop(state)
            stop_main.set()
        else:
            logger.info("Console disabled. Running the reward reconciler only. Press Ctrl+C to stop.")
            stop_main.wait()
    finally:
        _shutdown(state)
        logger.info("Bye.")


if __name__ == "__main__":
    main()
