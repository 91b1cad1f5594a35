# src/chore_companion/connectors/console_notifier.py

from __future__ import annotations

import logging
import sys
import threading
from datetime import datetime
from typing import TextIO

logger = logging.getLogger(__name__)


def _ts_local() -> str:
    return datetime.now().astimezone().strftime("%Y-%m-%d %H:%M:%S")


class ConsoleNotifier:
    """Notifier used when Matrix is disabled: prints notifications with a local timestamp."""

    def __init__(self, stream: TextIO | None = None) -> None:
        self._stream = stream
        self._lock = threading.Lock()

    def notify(self, text: str) -> None:
        stream = self._stream or sys.stdout
        with self._lock:
            print(f"[{_ts_local()}] {text}", file=stream, flush=True)
        logger.debug("Console notification: %r", text)
