# tests/test_rotation.py

from __future__ import annotations

from datetime import datetime, timezone

import pytest

from chore_companion.errors import NoParticipantsError
from chore_companion.obligations.models import TaskParticipation
from chore_companion.obligations.rotation import (
    advance_due,
    first_occurrence_not_before,
    pick_next_responsible,
)

from .conftest import DAY, T0


def _p(pid: int, user_id: int, last: float) -> TaskParticipation:
    return TaskParticipation(id=pid, user_id=user_id, task_id=1, last_participated=last)


def test_pick_least_recently_served() -> None:
    chosen = pick_next_responsible([_p(1, 10, T0 + 5), _p(2, 20, T0 + 1), _p(3, 30, T0 + 3)])
    assert chosen.user_id == 20


def test_pick_ties_go_to_lowest_participation_id() -> None:
    chosen = pick_next_responsible([_p(3, 30, T0), _p(1, 10, T0), _p(2, 20, T0)])
    assert chosen.id == 1


def test_pick_without_participants_is_an_integrity_fault() -> None:
    with pytest.raises(NoParticipantsError) as exc:
        pick_next_responsible([], task_id=42)
    assert exc.value.task_id == 42


def test_weekly_task_advances_from_previous_due_date() -> None:
    due = datetime(2024, 1, 1, tzinfo=timezone.utc).timestamp()
    assert advance_due(due, 7) == datetime(2024, 1, 8, tzinfo=timezone.utc).timestamp()


def test_first_occurrence_keeps_future_dates() -> None:
    assert first_occurrence_not_before(T0 + 3 * DAY, 7, T0) == T0 + 3 * DAY


def test_first_occurrence_moves_past_dates_by_whole_intervals() -> None:
    due = first_occurrence_not_before(T0 - 10 * DAY, 7, T0)
    assert due == T0 + 4 * DAY
    assert (due - (T0 - 10 * DAY)) % (7 * DAY) == 0


def test_first_occurrence_exactly_now_is_kept() -> None:
    assert first_occurrence_not_before(T0 - 14 * DAY, 7, T0) == T0


def test_first_occurrence_rejects_non_positive_interval() -> None:
    with pytest.raises(ValueError):
        first_occurrence_not_before(T0 - DAY, 0, T0)
