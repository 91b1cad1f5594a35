# src/chore_companion/obligations/rotation.py

"""
Rotation helpers.

Pure functions used by the store while it holds a transaction:
- who is next for a task (least recently served participant),
- how a task's due date advances after it fired,
- where a freshly created task's first occurrence lands.
"""

from __future__ import annotations

import math
from collections.abc import Iterable

from ..errors import NoParticipantsError
from .models import SECONDS_PER_DAY, TaskParticipation


def pick_next_responsible(
    participations: Iterable[TaskParticipation], *, task_id: int = 0
) -> TaskParticipation:
    """
    Least-recently-served participant.

    Ties on last_participated go to the lowest participation id (insertion order),
    so participants created together are served in the order they were added.
    """
    entries = list(participations)
    if not entries:
        raise NoParticipantsError(task_id)
    return min(entries, key=lambda p: (p.last_participated, p.id))


def advance_due(due_at: float, interval_days: int) -> float:
    # Always relative to the previous due date, never to "now".
    return float(due_at) + int(interval_days) * SECONDS_PER_DAY


def first_occurrence_not_before(initial_due_at: float, interval_days: int, now_ts: float) -> float:
    """Smallest initial + k*interval (k >= 0) that is >= now_ts."""
    if interval_days <= 0:
        raise ValueError("interval_days must be positive")
    if initial_due_at >= now_ts:
        return float(initial_due_at)

    step = int(interval_days) * SECONDS_PER_DAY
    k = math.ceil((now_ts - initial_due_at) / step)
    due = initial_due_at + k * step
    # Float rounding can leave us a hair short of now.
    while due < now_ts:
        due += step
    return float(due)
