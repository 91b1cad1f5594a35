# tests/test_intake.py

from __future__ import annotations

import time

import pytest

from chore_companion.errors import UnknownUserError
from chore_companion.intake import ObligationIntake
from chore_companion.obligations.models import ObligationKind
from chore_companion.scheduling.service import ObligationService

from .conftest import DAY, HOUR, T0
from .fakes import FakeNotifier


class SpyService:
    def __init__(self) -> None:
        self.triggered: list[ObligationKind] = []

    def trigger_early_check(self, kind: ObligationKind) -> None:
        self.triggered.append(kind)


def test_past_reminder_is_skipped(store, intake) -> None:
    assert intake.import_reminder("Yesterday", T0 - HOUR) is None
    assert store.count_reminders() == 0


def test_batch_import_skips_past_events(store, clock) -> None:
    spy = SpyService()
    intake = ObligationIntake(store, spy, clock=clock)

    created = intake.import_reminders([("old", T0 - DAY), ("a", T0 + HOUR), ("b", T0 + 2 * HOUR)])

    assert [r.description for r in created] == ["a", "b"]
    assert spy.triggered == [ObligationKind.REMINDER]


def test_reminder_triggers_only_when_sooner(store, clock) -> None:
    spy = SpyService()
    intake = ObligationIntake(store, spy, clock=clock)

    intake.import_reminder("first", T0 + 10 * HOUR)
    assert spy.triggered == [ObligationKind.REMINDER]

    intake.import_reminder("later", T0 + 20 * HOUR)
    assert spy.triggered == [ObligationKind.REMINDER]

    intake.import_reminder("sooner", T0 + HOUR)
    assert spy.triggered == [ObligationKind.REMINDER, ObligationKind.REMINDER]


def test_past_task_moves_to_next_occurrence(store, intake) -> None:
    store.create_user("Alice")

    task = intake.create_task("Bins", T0 - 10 * DAY, 7, ["Alice"])

    assert task.next_due_at == T0 + 4 * DAY


def test_task_participants_default_to_all_users(store, intake) -> None:
    for name in ("Alice", "Bob"):
        store.create_user(name)

    task = intake.create_task("Dishes", T0 + DAY, 1)

    assert len(store.list_participations(task.id)) == 2


def test_task_with_unknown_user_writes_nothing(store, intake) -> None:
    store.create_user("Alice")

    with pytest.raises(UnknownUserError):
        intake.create_task("Dishes", T0 + DAY, 1, ["Alice", "Mallory"])

    assert store.count_tasks() == 0
    assert store.count_participations() == 0


def test_task_rejects_non_positive_interval(store, intake) -> None:
    store.create_user("Alice")
    with pytest.raises(ValueError):
        intake.create_task("Dishes", T0 + DAY, 0, ["Alice"])


def test_task_triggers_only_when_sooner(store, clock) -> None:
    spy = SpyService()
    intake = ObligationIntake(store, spy, clock=clock)
    store.create_user("Alice")

    intake.create_task("a", T0 + 5 * DAY, 7, ["Alice"])
    intake.create_task("b", T0 + 6 * DAY, 7, ["Alice"])
    intake.create_task("c", T0 + DAY, 7, ["Alice"])

    assert spy.triggered == [ObligationKind.TASK, ObligationKind.TASK]


def test_sooner_reminder_is_delivered_without_waiting(store) -> None:
    notifier = FakeNotifier()
    service = ObligationService(store, notifier, idle_poll_seconds=3600.0)
    intake = ObligationIntake(store, service)
    now = time.time()

    intake.import_reminder("Party", now + 10 * HOUR)
    service.start()
    try:
        deadline = time.monotonic() + 5
        while service.phase(ObligationKind.REMINDER) != "sleeping" and time.monotonic() < deadline:
            time.sleep(0.01)

        intake.import_reminder("Call mom", now + 120)

        assert notifier.wait_for(1, timeout=5.0)
        assert notifier.sent == ["Reminder: Call mom"]
        assert [r.description for r in store.list_reminders()] == ["Party"]
    finally:
        service.stop()
        service.join(timeout=5.0)
