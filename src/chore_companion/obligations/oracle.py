# src/chore_companion/obligations/oracle.py

from __future__ import annotations

import time

from ..core.ports import ObligationRepo
from .models import ObligationKind, Reminder, Task


class DueTimeOracle:
    """
    Read-only view over the store answering "when is the next one?" and
    "what is due now?" per obligation class.

    Holds no cached state; every answer re-reads the store.
    """

    def __init__(self, store: ObligationRepo) -> None:
        self._store = store

    def next_due_instant(self, kind: ObligationKind) -> float | None:
        return self._store.next_due_instant(kind)

    def time_until_next(self, kind: ObligationKind, now_ts: float | None = None) -> float | None:
        due = self.next_due_instant(kind)
        if due is None:
            return None
        if now_ts is None:
            now_ts = time.time()
        return max(0.0, due - now_ts)

    def due_within(
        self, kind: ObligationKind, window_s: float, now_ts: float | None = None
    ) -> list[Task] | list[Reminder]:
        """Obligations due at or before now + window, earliest first."""
        if now_ts is None:
            now_ts = time.time()
        return self._store.list_due(kind, until=now_ts + float(window_s))
