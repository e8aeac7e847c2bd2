# src/eduquest/connectors/console_connector.py

from __future__ import annotations

import logging
import sys
from datetime import datetime

from ..cli.commands import registry as command_registry
from ..core.state import AppState

logger = logging.getLogger(__name__)


def _ts_local() -> str:
    return datetime.now().astimezone().strftime("%Y-%m-%d %H:%M:%S")


def _rewrite_prev_line(line: str) -> None:
    """
    Replace the last terminal line with `line`.
    Best-effort: if not a TTY, just print a new line.
    """
    try:
        if sys.stdout.isatty():
            sys.stdout.write("\033[1A\033[2K\r")
            sys.stdout.write(line + "\n")
            sys.stdout.flush()
        else:
            print(line)
    except OSError:
        print(line)


def _print_ts(text: str) -> None:
    print(f"[{_ts_local()}] {text}")


def run_console_loop(state: AppState) -> None:
    user_id = str(getattr(getattr(state, "settings", None), "user_id", "user"))
    logger.info("Console connector started (user=%s).", user_id)
    _print_ts("[CONSOLE] Use /tasks to list quests, /help for commands, /exit to quit.\n")

    lock = getattr(state, "lock", None)

    def emit(text: str) -> None:
        # Immediate feedback while a ledger call is in flight.
        print(f"[{_ts_local()}] {text}", flush=True)

    while True:
        try:
            user_input = input(f">>> {user_id}: ").strip()
            _rewrite_prev_line(f"[{_ts_local()}] >>> {user_id}: {user_input}")
        except EOFError:
            logger.info("Console EOF received, exiting.")
            break
        except KeyboardInterrupt:
            logger.info("Console KeyboardInterrupt, exiting.")
            print()
            break

        if not user_input:
            continue

        if user_input.lower() in ("/exit", "/quit"):
            logger.info("Console exit command received.")
            break

        if not user_input.startswith("/"):
            _print_ts("Commands start with '/'. Use /help to list them.")
            continue

        try:
            if lock:
                with lock:
                    reply = command_registry.handle(state, user_input, emit=emit)
            else:
                reply = command_registry.handle(state, user_input, emit=emit)
        except Exception:
            logger.exception("Command handler crashed.")
            reply = "Internal error while handling a command."

        if reply is not None:
            _print_ts(reply)

    logger.info("Console connector finished.")
