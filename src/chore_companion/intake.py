# src/chore_companion/intake.py

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Iterable, Sequence
from typing import TYPE_CHECKING

from .core.ports import ObligationRepo
from .obligations.models import ObligationKind, Reminder, Task
from .obligations.rotation import first_occurrence_not_before

if TYPE_CHECKING:
    from .scheduling.service import ObligationService

logger = logging.getLogger(__name__)


def _is_sooner(new_due: float, previous_due: float | None) -> bool:
    # Nothing of this class existed: the loop is idling on the poll interval.
    if previous_due is None:
        return True
    return new_due < previous_due


class ObligationIntake:
    """
    Entry point for new obligations (calendar events, admin-created tasks).

    After inserting, compares the new due instant with the next due instant observed
    *before* the insert; if it is sooner and the service is running, an early check
    is triggered instead of waiting for the currently scheduled wake.
    """

    def __init__(
        self,
        store: ObligationRepo,
        service: ObligationService | None = None,
        *,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._store = store
        self._service = service
        self._clock = clock

    def _maybe_trigger(self, kind: ObligationKind, sooner: bool) -> None:
        if not sooner or self._service is None:
            return
        self._service.trigger_early_check(kind)

    # ---- reminders ----

    def import_reminder(self, description: str, due_at: float) -> Reminder | None:
        """Insert one reminder. Past instants are skipped (returns None)."""
        created = self.import_reminders([(description, due_at)])
        return created[0] if created else None

    def import_reminders(self, events: Iterable[tuple[str, float]]) -> list[Reminder]:
        """
        Insert a batch of (description, due_at) pairs, e.g. the events of one calendar.

        One early-wake decision is made for the whole batch.
        """
        previous = self._store.next_due_instant(ObligationKind.REMINDER)
        now_ts = self._clock()
        sooner = False
        created: list[Reminder] = []

        for description, due_at in events:
            if due_at < now_ts:
                logger.info("Skipping past reminder %r (due_at=%s)", description, due_at)
                continue
            created.append(self._store.create_reminder(description, due_at))
            sooner = sooner or _is_sooner(due_at, previous)

        if created:
            logger.info("Imported %d reminder(s)", len(created))
        self._maybe_trigger(ObligationKind.REMINDER, sooner)
        return created

    # ---- tasks ----

    def create_task(
        self,
        description: str,
        first_due_at: float,
        interval_days: int,
        participant_names: Sequence[str] | None = None,
    ) -> Task:
        """
        Create a recurring task.

        - a past first_due_at is moved forward by whole intervals to the first future occurrence
        - no participant names means "every known user"
        - raises UnknownUserError (nothing written) if any name does not resolve
        """
        interval_days = int(interval_days)
        if interval_days <= 0:
            raise ValueError("interval_days must be positive")

        now_ts = self._clock()
        due_at = first_occurrence_not_before(first_due_at, interval_days, now_ts)
        if due_at != first_due_at:
            logger.info("Task %r: due date moved forward to the next occurrence %s", description, due_at)

        names = list(participant_names or []) or self._store.all_usernames()

        previous = self._store.next_due_instant(ObligationKind.TASK)
        task = self._store.create_task(description, due_at, interval_days, names, now_ts=now_ts)

        self._maybe_trigger(ObligationKind.TASK, _is_sooner(task.next_due_at, previous))
        return task
