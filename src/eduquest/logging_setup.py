# src/eduquest/logging_setup.py

"""
Logging for the console REPL and the reward reconciler.

The REPL shares stderr with a reconciler that polls in a background thread,
so the console handler holds the reconciler to its own threshold
(EDUQUEST_RECONCILER_LOG_LEVEL). The log file under the data dir gets everything.
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path

LOG_FILE_NAME = "eduquest.log"

_APP_LOGGER = "eduquest"
_RECONCILER_LOGGER = "eduquest.rewards.reconciler"


def level_from_name(name: str | None, default: int = logging.INFO) -> int:
    """Map a level name from settings ("warning", "DEBUG") to its number."""
    value = logging.getLevelName(str(name or "").strip().upper())
    return value if isinstance(value, int) else default


class ConsoleFilter(logging.Filter):
    """
    - eduquest records pass (the handler level still applies)
    - reconciler records pass only at `reconciler_level` and above
    - third-party loggers and captured warnings pass only at ERROR and above
    """

    def __init__(self, reconciler_level: int = logging.WARNING) -> None:
        super().__init__()
        self.reconciler_level = reconciler_level

    def filter(self, record: logging.LogRecord) -> bool:
        name = record.name
        if name == _RECONCILER_LOGGER or name.startswith(_RECONCILER_LOGGER + "."):
            return record.levelno >= self.reconciler_level
        if name == _APP_LOGGER or name.startswith(_APP_LOGGER + "."):
            return True
        return record.levelno >= logging.ERROR


def setup_logging(
    *,
    log_dir: str | Path = ".local/eduquest",
    console_level: int = logging.INFO,
    reconciler_level: int = logging.WARNING,
    file_level: int = logging.DEBUG,
) -> Path:
    """
    Install the console and file handlers on the root logger. Returns the log file path.

    Call this ONCE, very early (before first logger.info).
    """
    log_dir = Path(log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / LOG_FILE_NAME

    root = logging.getLogger()
    root.setLevel(logging.DEBUG)

    # Remove any pre-existing handlers to avoid duplicates.
    for h in list(root.handlers):
        root.removeHandler(h)

    fmt = logging.Formatter(
        fmt="%(asctime)s.%(msecs)03d %(levelname)s %(threadName)s %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    console = logging.StreamHandler(sys.stderr)
    console.setLevel(console_level)
    console.setFormatter(fmt)
    console.addFilter(ConsoleFilter(reconciler_level))
    root.addHandler(console)

    fh = logging.FileHandler(str(log_file), encoding="utf-8")
    fh.setLevel(file_level)
    fh.setFormatter(fmt)
    root.addHandler(fh)

    logging.captureWarnings(True)

    # The HTTP ledger logs its own failures; request lines go to the file only.
    for noisy in ("httpx", "httpcore"):
        logging.getLogger(noisy).setLevel(logging.INFO)

    return log_file
