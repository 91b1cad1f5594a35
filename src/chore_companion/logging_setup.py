# src/chore_companion/logging_setup.py

from __future__ import annotations

import logging
import logging.handlers
import sys
from pathlib import Path

# Minimum console level per logger prefix; first match wins.
_CONSOLE_THRESHOLDS: tuple[tuple[str, int], ...] = (
    # Background transport thread: only problems.
    ("chore_companion.connectors.matrix_", logging.WARNING),
    # Phase transitions are DEBUG; keep them in the file.
    ("chore_companion.scheduling.", logging.INFO),
    ("chore_companion.", logging.NOTSET),
    ("py.warnings", logging.ERROR),
)


class _ConsoleNoiseFilter(logging.Filter):
    """Per-component console thresholds; unknown third-party loggers need ERROR+."""

    def filter(self, record: logging.LogRecord) -> bool:
        for prefix, threshold in _CONSOLE_THRESHOLDS:
            if record.name.startswith(prefix):
                return record.levelno >= threshold
        return record.levelno >= logging.ERROR


def level_from_name(name: str | int, default: int = logging.INFO) -> int:
    """'debug' / 'INFO' / 20 -> logging level; unknown names fall back to `default`."""
    if isinstance(name, int):
        return name
    level = logging.getLevelName(str(name).strip().upper())
    return level if isinstance(level, int) else default


def setup_logging(
    *,
    log_dir: str | Path = ".local/chore",
    console_level: str | int = logging.INFO,
    file_level: str | int = logging.DEBUG,
    max_bytes: int = 2_000_000,
    backup_count: int = 3,
) -> Path:
    """
    Console: filtered, on stderr so stdout stays free for CLI output and console notifications.
    File: everything (including scheduler phase changes), rotated; the service runs for weeks.

    Call once at startup. Returns the log file path.
    """
    log_dir = Path(log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / "chore.log"

    root = logging.getLogger()
    root.setLevel(logging.DEBUG)
    for h in list(root.handlers):
        root.removeHandler(h)
        h.close()

    # Thread name tells the task loop, reminder loop and one-off passes apart.
    fmt = logging.Formatter(
        fmt="%(asctime)s.%(msecs)03d %(levelname)-7s [%(threadName)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    console = logging.StreamHandler(sys.stderr)
    console.setLevel(level_from_name(console_level))
    console.setFormatter(fmt)
    console.addFilter(_ConsoleNoiseFilter())
    root.addHandler(console)

    file_handler = logging.handlers.RotatingFileHandler(
        log_file, maxBytes=max_bytes, backupCount=backup_count, encoding="utf-8"
    )
    file_handler.setLevel(level_from_name(file_level, logging.DEBUG))
    file_handler.setFormatter(fmt)
    root.addHandler(file_handler)

    logging.captureWarnings(True)

    # nio logs every sync response at DEBUG.
    logging.getLogger("nio").setLevel(logging.INFO)
    logging.getLogger("aiohttp").setLevel(logging.WARNING)

    return log_file
